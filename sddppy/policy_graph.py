from sddppy.sp import StochasticModel
from sddppy.value_function import ValueFunction
from sddppy.cut_io import read_cuts
from sddppy.utils.measure import Expectation, Expectation_AVaR
from sddppy.utils.statistics import check_transition_matrix, rand_int
from sddppy.utils.exception import ModelConstructionError
import gurobipy
import functools
import inspect


class Node(object):
    """A (stage, Markov state) pair of the policy graph.

    The node owns its subproblem, its value function and the price of its
    last solve. Nodes are created by PolicyGraph.build.
    """
    def __init__(self, graph, stage, markov_state, value_function):
        self.graph = graph
        self.stage = stage
        self.markov_state = markov_state
        self.value_function = value_function
        self.model = None
        self.price = None

    def __repr__(self):
        return "<Node stage {}, Markov state {}, {}>".format(
            self.stage, self.markov_state, self.value_function)

    @property
    def is_terminal(self):
        return self.stage == self.graph.T - 1

    @property
    def transition(self):
        """Transition probabilities to the nodes of the next stage"""
        if self.is_terminal:
            return []
        return list(self.graph.transition_matrix[self.stage+1][self.markov_state])

    def successors(self):
        """(node, probability) of every successor with positive probability"""
        return [
            (self.graph.nodes[self.stage+1][j], p)
            for j, p in enumerate(self.transition)
            if p > 0
        ]

    def _new_model(self):
        graph = self.graph
        m = StochasticModel(
            name="{}_{}".format(self.stage, self.markov_state),
            env=graph.env,
        )
        m.Params.outputFlag = graph.outputFlag
        m.setAttr('modelsense', graph.sense)
        for k, v in graph.params.items():
            m.setParam(k, v)
        m.retry_policy = graph.retry_policy
        graph._call_builder(m, self.stage, self.markov_state)
        m.update()
        if m.IsMIP:
            raise ModelConstructionError(
                "subproblem {} has integer variables; cuts require the duals "
                "of a linear program!".format(m.ModelName)
            )
        m._set_up_link_constrs()
        return m

    def build(self):
        self.model = self._new_model()
        if not self.is_terminal:
            self.value_function.initialize(
                self.model, self.graph.sense, self.graph.bound)
        return self

    def rebuild(self):
        """Replace the subproblem by a freshly built one carrying every valid
        cut of the value function."""
        model = self._new_model()
        if model.n_states != self.model.n_states:
            raise ModelConstructionError(
                "rebuilt subproblem {} has {} state variables instead of {}!"
                .format(model.ModelName, model.n_states, self.model.n_states)
            )
        if not self.is_terminal:
            self.value_function.rebuild(model)
        self.model = model
        self.price = None

    def set_price(self, price):
        """Put the price dependent objective and the interpolated cost-to-go
        at price into the subproblem."""
        self.model._update_price(price)
        if not self.is_terminal:
            self.value_function.set_location(self.model, price)
        self.price = price

    def sample_price(self, price, random_state):
        """Sample the price of this node given the price of the previous
        stage."""
        vf = self.value_function
        noise = vf.price_noise()
        idx = rand_int(
            k=len(noise),
            random_state=random_state,
            probability=[p for _, p in noise],
        )
        return vf.next_price(price, noise[idx][0], self.stage, self.markov_state)

    def stage_cost(self):
        """Objective value of the last solve without the cost-to-go"""
        if self.is_terminal:
            return self.model.objVal
        return self.model.objVal - self.value_function.future_cost(self.price)

    def install_cut(self, cut, rib=None, state=None):
        if self.is_terminal:
            raise ModelConstructionError(
                "the last stage has no cost-to-go to add cuts to!")
        return self.value_function.install_cut(self.model, cut, rib, state)


class PolicyGraph(object):
    """
    A multistage stochastic linear program as a graph of stages and Markov
    states.

    Parameters
    ----------
    T: integer (>1)
        The number of stages.

    bound: float, optional
        A known uniform lower bound or upper bound (depending on optimization
        sense) of the cost-to-go of every node.
        Default value is -1B for minimization problem and 1B for maximization
        problem.

    sense: +1/-1, optional, default=1
        The optimization sense. +1 indicates minimization and -1 indicates
        maximization.

    transition_matrix: list of matrix-like, optional, default=None
        Markov chain transition matrices. transition_matrix[0] has shape
        (1, n_0) and gives the distribution of the first-stage Markov state;
        transition_matrix[t] has shape (n_{t-1}, n_t). Default is a single
        Markov state per stage.

    value_function: ValueFunction, optional, default=ValueFunction()
        Template of the value function; every node gets its own copy.

    outputFlag: 1/0, optional, default=0
        Log model solving process or not.

    **kwargs: optional
        Gurobipy parameters to set on individual subproblems. (e.g.,
        presolve, method)

    Examples
    --------
    >>> def build(m, stage):
    ...     now, past = m.addStateVar(name='stored', initial_value=5)
    ...     ...
    >>> graph = PolicyGraph(T=3, bound=0).build(build)
    """
    def __init__(
            self,
            T,
            bound=None,
            sense=1,
            transition_matrix=None,
            value_function=None,
            outputFlag=0,
            **kwargs):
        if (T < 2
                or sense not in [-1, 1]
                or outputFlag not in [0, 1]):
            raise ModelConstructionError(
                'Arguments of policy graph construction are not valid!')
        self.T = T
        self.sense = sense
        self.bound = bound
        self._set_up_default_bound()
        self.transition_matrix, self.n_Markov_states = check_transition_matrix(
            transition_matrix, T)
        self.value_function = (
            value_function if value_function is not None else ValueFunction()
        )
        if self.value_function.is_initialized:
            raise ModelConstructionError(
                "value_function must be an uninitialized template!")
        self.outputFlag = outputFlag
        self.params = kwargs
        self.measure = Expectation
        self._retry_policy = None
        self.builder = None
        self.nodes = []
        self.db = None
        self.env = gurobipy.Env(empty=True)
        self.env.setParam('OutputFlag', outputFlag)
        self.env.start()

    def __repr__(self):
        sense = 'Minimization' if self.sense == 1 else 'Maximization'
        return ("<PolicyGraph {} problem, {} stages, {} Markov states, "
            "{} known bound>").format(
                sense, self.T, self.n_Markov_states, self.bound)

    def __getitem__(self, key):
        if isinstance(key, tuple):
            t, k = key
            return self.nodes[t][k]
        return self.nodes[key]

    def __iter__(self):
        for t in range(len(self.nodes)):
            for node in self.nodes[t]:
                yield node

    def _set_up_default_bound(self):
        if self.bound is None:
            self.bound = -1000000000 if self.sense == 1 else 1000000000

    def build(self, builder):
        """Build the subproblem of every node.

        Parameters
        ----------
        builder: callable
            builder(model, stage) or builder(model, stage, markov_state).
            Declares state variables, other variables, constraints,
            uncertainties and the stage objective on model (a
            StochasticModel). It is called again whenever a subproblem is
            rebuilt.

        Returns
        -------
        The policy graph
        """
        if not callable(builder):
            raise ModelConstructionError("builder must be callable!")
        parameters = [
            item for item in inspect.signature(builder).parameters.values()
            if item.kind in [item.POSITIONAL_ONLY, item.POSITIONAL_OR_KEYWORD]
        ]
        if len(parameters) not in [2, 3]:
            raise ModelConstructionError(
                "builder must take (model, stage) or "
                "(model, stage, markov_state)!"
            )
        self.builder = builder
        self._n_args = len(parameters)
        self.nodes = [
            [
                Node(self, t, k, self.value_function.spawn()).build()
                for k in range(self.n_Markov_states[t])
            ]
            for t in range(self.T)
        ]
        self._check_multistage_model()
        return self

    def _call_builder(self, m, t, k):
        if self._n_args == 2:
            self.builder(m, t)
        else:
            self.builder(m, t, k)

    def _check_multistage_model(self):
        # the number of states must be the same in a stage and match the
        # number of local copies in the next stage
        for t in range(self.T):
            n_states = set(node.model.n_states for node in self.nodes[t])
            if len(n_states) != 1:
                raise ModelConstructionError(
                    "nodes of stage {} have different numbers of state "
                    "variables!".format(t)
                )
            if t == 0:
                continue
            n_states_past = self.nodes[t-1][0].model.n_states
            if n_states.pop() != n_states_past:
                raise ModelConstructionError(
                    "stage {} has {} state variables while stage {} has {}!"
                    .format(t, self.nodes[t][0].model.n_states, t-1,
                        n_states_past)
                )

    @property
    def retry_policy(self):
        """callable(model, SolverError) -> bool. If it returns True, the
        subproblem is solved once more before the error is raised."""
        return self._retry_policy

    @retry_policy.setter
    def retry_policy(self, retry_policy):
        self._retry_policy = retry_policy
        for node in self:
            node.model.retry_policy = retry_policy

    def set_AVaR(self, l, a):
        """Set linear combination of expectation and conditional value at risk
        (average value at risk) as risk measure

        Parameters
        ----------
        l: float between 0 and 1
            The weight of AVaR.

        a: float between 0 (exclusive) and 1
            The level of AVaR.
        """
        if not 0 <= l <= 1 or not 0 < a <= 1:
            raise ModelConstructionError("l must be in [0,1] and a in (0,1]!")
        self.measure = functools.partial(Expectation_AVaR, a=a, l=l)

    def first_stage_nodes(self):
        """(node, probability) of every first-stage node with positive
        probability"""
        return [
            (self.nodes[0][k], p)
            for k, p in enumerate(self.transition_matrix[0][0])
            if p > 0
        ]

    @property
    def n_cuts(self):
        """The number of cuts stored in the value functions"""
        return sum(
            len(oracle)
            for node in self if not node.is_terminal
            for oracle in node.value_function.cutoracles
        )

    @property
    def initial_price(self):
        return self.value_function.initial_price

    def install_cut(self, stage, markov_state, rib, cut, state=None):
        """Install a cut into the node (stage, markov_state). Return True if
        the cut is new."""
        try:
            node = self.nodes[stage][markov_state]
        except IndexError:
            raise ModelConstructionError(
                "there is no node at stage {}, Markov state {}!"
                .format(stage, markov_state)
            )
        return node.install_cut(cut, rib, state)

    def read_cuts(self, path):
        """Replay the cuts of a cut file written by SDDP.solve(cut_file=...).
        Cuts already in the graph are skipped. Return the number of cuts
        added."""
        count = 0
        for stage, markov_state, rib, cut in read_cuts(path):
            if self.install_cut(stage, markov_state, rib, cut):
                count += 1
        return count

from sddppy.utils.statistics import check_random_state, compute_CI
from sddppy.utils.measure import Expectation
import pandas
import numpy


class Evaluation(object):
    """Evaluate the policy of a policy graph by Monte Carlo simulation.

    Parameters
    ----------
    graph: PolicyGraph
        A policy graph, usually trained by SDDP.

    Attributes
    ----------
    db: float
        The deterministic bound.

    pv: list
        The simulated policy values.

    CI: tuple
        The CI of simulated policy values.

    gap: float
        The relative gap between the far end of the CI (or the single policy
        value) and the deterministic bound; -1 if the bound is zero or the
        graph is risk averse.

    stage_cost: dataframe
        The cost of individual stages (simulations by stages).

    solution: dict of dataframes
        The solution of queried variables (simulations by stages).

    path: dataframe
        The sampled Markov states (simulations by stages).

    price: dataframe
        The sampled prices (simulations by stages).
    """
    def __init__(self, graph):
        self.graph = graph
        self.db = graph.db
        self.pv = None
        self.CI = None
        self.gap = None
        self.stage_cost = None
        self.solution = None
        self.path = None
        self.price = None

    def __repr__(self):
        return "<Evaluation of {}>".format(self.graph)

    def _compute_gap(self):
        # the bound of a risk averse graph is not an expected cost
        if (self.db is None or self.db == 0
                or self.graph.measure is not Expectation):
            self.gap = -1
        elif self.CI is not None:
            if self.graph.sense == 1:
                self.gap = abs((self.CI[1]-self.db) / self.db)
            else:
                self.gap = abs((self.db-self.CI[0]) / self.db)
        else:
            self.gap = abs((self.pv[0]-self.db) / self.db)

    def run(
            self,
            n_simulations,
            percentile=95,
            query=None,
            query_stage_cost=False,
            random_state=None):
        """Run a Monte Carlo simulation to evaluate the policy.

        Parameters
        ----------
        n_simulations: int
            The number of simulations.

        percentile: float, optional (default=95)
            The percentile used to compute the confidence interval.

        query: list, optional (default=None)
            The names of variables that are intended to query.

        query_stage_cost: bool, optional (default=False)
            Whether to query values of individual stage costs.

        random_state: int, RandomState instance or None, optional
            (default=None)
            If None, a fixed seed is used so that successive evaluations
            compare policies on the same sample paths.
        """
        from sddppy.solver import SDDP
        if n_simulations < 1:
            raise ValueError("n_simulations must be a positive integer!")
        if self.db is None:
            self.db = self.graph.db
        random_state = (
            numpy.random.RandomState(2**32-1)
            if random_state is None
            else check_random_state(random_state)
        )
        solver = SDDP(self.graph)
        results = [
            solver._forward(
                random_state,
                query=query,
                query_stage_cost=query_stage_cost,
            )
            for _ in range(n_simulations)
        ]
        self.pv = [result['pv'] for result in results]
        self.path = pandas.DataFrame([result['path'] for result in results])
        self.price = pandas.DataFrame([result['prices'] for result in results])
        if n_simulations != 1:
            self.CI = compute_CI(self.pv, percentile)
        self._compute_gap()
        if query:
            self.solution = {
                item: pandas.DataFrame(
                    numpy.array([result['solution'][item] for result in results])
                )
                for item in query
            }
        if query_stage_cost:
            self.stage_cost = pandas.DataFrame(
                numpy.array([result['stage_cost'] for result in results])
            )
        return self

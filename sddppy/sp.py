import gurobipy
import numpy
from sddppy.utils.exception import (SampleSizeError, ModelConstructionError,
    InfeasibleSubproblemError, SolverError)
from sddppy.utils.statistics import check_probability
from collections import abc
from numbers import Number


class StochasticModel(object):
    """The subproblem of a node.

    A gurobipy model with state variables, local copies of the incoming state
    and finite discrete stage-wise independent noise. The noise has n_samples
    realizations; realization k sets the k-th scenario of every uncertain
    right hand side, constraint coefficient and objective coefficient and
    calls every noise parameterization with its k-th support point.

    Unknown attributes are forwarded to the underlying gurobipy.Model, so the
    usual gurobipy API (setParam, getVars, update, ...) is available.
    """
    def __init__(self, name="", env=None):
        self.env = env if env is not None else gurobipy.Env()
        self._model = gurobipy.Model(env=self.env, name=name)
        # outgoing state, incoming state (local copies) and its first-stage
        # value
        self.states = []
        self.local_copies = []
        self.initial_values = []
        self.n_states = 0
        # scenarios keyed by the uncertain object
        self.uncertainty_rhs = {}
        self.uncertainty_coef = {}
        self.uncertainty_obj = {}
        # (fn, support) pairs, fn(support[k]) mutates the model
        self.parameterizations = []
        # var -> fn, fn(price) is the objective coefficient of var
        self.price_objective = {}
        # local_copy == incoming state
        self.link_constrs = []
        # "discrete" once noise has been added
        self._type = None
        self.n_samples = 1
        self.probability = None
        # retry_policy(model, SolverError) -> True to solve once more
        self.retry_policy = None

    def __getattr__(self, name):
        try:
            return getattr(self._model, name)
        except AttributeError:
            raise AttributeError("no attribute named {}".format(name))

    def __repr__(self):
        kinds = [
            description
            for description, item in [
                ("uncertain RHS", self.uncertainty_rhs),
                ("uncertain coefficients", self.uncertainty_coef),
                ("uncertain objective", self.uncertainty_obj),
                ("noise parameterizations", self.parameterizations),
                ("price dependent objective", self.price_objective),
            ]
            if item
        ]
        return "<Stochastic {}, {} state variables, {} samples{}>".format(
            repr(self._model)[1:-1],
            self.n_states,
            self.n_samples,
            "".join(", " + kind for kind in kinds),
        )

    def _set_n_samples(self, uncertainty, n_samples):
        # the first noise fixes the number of realizations
        if self._type is None:
            self._type = "discrete"
            self.n_samples = n_samples
        elif n_samples != self.n_samples:
            raise SampleSizeError(
                self._model.ModelName, self.n_samples, uncertainty, n_samples
            )

    def _scenarios(self, uncertainty, dim):
        """Scenarios of an object of dimension dim as a list of n_samples
        floats (dim=None) or a list of n_samples lists of dim floats."""
        if isinstance(uncertainty, abc.Mapping) or callable(uncertainty):
            raise TypeError(
                "uncertainty must be a finite list of scenarios, got {}!"
                .format(type(uncertainty).__name__)
            )
        try:
            array = numpy.array(uncertainty, dtype='float64')
        except (TypeError, ValueError):
            raise ValueError("Scenarios must only contains numbers!")
        expected = 1 if dim is None else 2
        if array.ndim != expected or (dim is not None and array.shape[1] != dim):
            raise ValueError(
                "scenarios of shape {} do not fit an object of dimension {}!"
                .format(array.shape, 1 if dim is None else dim)
            )
        self._set_n_samples(uncertainty, len(array))
        return array.tolist()

    def _scenario_dict(self, uncertainty):
        """Scenarios of a constraint, {'rhs' or gurobipy.Var: scenarios}"""
        if not isinstance(uncertainty, abc.Mapping):
            raise TypeError(
                "uncertainty of a constraint must be a dict keyed by 'rhs' "
                "or gurobipy.Var!"
            )
        return {
            key: self._scenarios(value, None)
            for key, value in uncertainty.items()
        }

    def _add_objective_uncertainty(self, variables, uncertainty):
        if uncertainty is None:
            return
        if isinstance(variables, gurobipy.Var):
            self.uncertainty_obj[variables] = self._scenarios(uncertainty, None)
        else:
            variables = tuple(variables.values())
            self.uncertainty_obj[variables] = self._scenarios(
                uncertainty, len(variables))

    def _add_local_copies(self, state, local_copy, initial_value):
        states = [state] if isinstance(state, gurobipy.Var) else list(
            state.values())
        copies = [local_copy] if isinstance(
            local_copy, gurobipy.Var) else list(local_copy.values())
        if isinstance(initial_value, Number):
            initial_value = [initial_value] * len(states)
        if len(initial_value) != len(states):
            raise ModelConstructionError(
                "{} initial values given for {} state variables!"
                .format(len(initial_value), len(states))
            )
        self.states += states
        self.local_copies += copies
        self.initial_values += [float(item) for item in initial_value]
        self.n_states += len(states)

    def addStateVars(
            self,
            *indices,
            lb=0.0,
            ub=gurobipy.GRB.INFINITY,
            obj=0.0,
            vtype='C',
            name="",
            initial_value=0.0,
            uncertainty=None
    ):
        """Add state variables in bulk, together with free local copies that
        receive the incoming state.

        Parameters
        ----------
        initial_value: float or array-like, optional, default=0.0
            The incoming state of the first stage.

        uncertainty: array-like, optional, default=None
            Scenarios of the objective coefficients, of shape
            (n_samples, number of variables).

        Returns
        -------
        (state variables, local copies): tuple of gurobipy.tupledict

        Examples
        --------
        >>> now, past = model.addStateVars(2, ub=2.0, initial_value=[1,0])
        """
        state = self._model.addVars(
            *indices, lb=lb, ub=ub, obj=obj, vtype=vtype, name=name
        )
        local_copy = self._model.addVars(
            *indices, lb=-gurobipy.GRB.INFINITY, name=name + "_local_copy"
        )
        self._model.update()
        self._add_local_copies(state, local_copy, initial_value)
        self._add_objective_uncertainty(state, uncertainty)
        return state, local_copy

    def addStateVar(
            self,
            lb=0.0,
            ub=gurobipy.GRB.INFINITY,
            obj=0.0,
            vtype='C',
            name="",
            column=None,
            initial_value=0.0,
            uncertainty=None
    ):
        """Add a state variable, together with a free local copy that receives
        the incoming state.

        Examples
        --------
        >>> now, past = model.addStateVar(ub=2.0, initial_value=1.0)
        """
        state = self._model.addVar(
            lb=lb, ub=ub, obj=obj, vtype=vtype, name=name, column=column,
        )
        local_copy = self._model.addVar(
            lb=-gurobipy.GRB.INFINITY, name=name + "_local_copy",
        )
        self._model.update()
        self._add_local_copies(state, local_copy, [initial_value])
        self._add_objective_uncertainty(state, uncertainty)
        return state, local_copy

    def addVars(
            self,
            *indices,
            lb=0.0,
            ub=gurobipy.GRB.INFINITY,
            obj=0.0,
            vtype='C',
            name="",
            uncertainty=None
    ):
        """gurobipy.Model.addVars with optional scenarios of the objective
        coefficients, of shape (n_samples, number of variables)."""
        var = self._model.addVars(
            *indices, lb=lb, ub=ub, obj=obj, vtype=vtype, name=name
        )
        self._model.update()
        self._add_objective_uncertainty(var, uncertainty)
        return var

    def addVar(
            self,
            lb=0.0,
            ub=gurobipy.GRB.INFINITY,
            obj=0.0,
            vtype='C',
            name="",
            column=None,
            uncertainty=None
    ):
        """gurobipy.Model.addVar with optional scenarios of the objective
        coefficient.

        Examples
        --------
        >>> cost = model.addVar(ub=2.0, uncertainty=[1,2,3])
        """
        var = self._model.addVar(
            lb=lb, ub=ub, obj=obj, vtype=vtype, name=name, column=column
        )
        self._model.update()
        self._add_objective_uncertainty(var, uncertainty)
        return var

    def addConstr(self, constr, name="", uncertainty=None):
        """gurobipy.Model.addConstr with optional scenarios of the right hand
        side (key 'rhs') and of coefficients (key: the gurobipy.Var).

        Examples
        --------
        >>> a = model.addVars(2)
        >>> model.addConstr(
        ...     a[0] + a[1] == 0,
        ...     uncertainty={'rhs': [1,2,3], a[1]: [4,5,6]}
        ... )
        """
        constr = self._model.addConstr(constr, name=name)
        self._model.update()
        if uncertainty is None:
            return constr
        for key, value in self._scenario_dict(uncertainty).items():
            if isinstance(key, gurobipy.Var):
                self.uncertainty_coef[(constr, key)] = value
            elif key == 'rhs':
                self.uncertainty_rhs[constr] = value
            else:
                raise TypeError(
                    "keys of uncertainty must be 'rhs' or gurobipy.Var!"
                )
        return constr

    def addConstrs(self, generator, name="", uncertainty=None):
        """gurobipy.Model.addConstrs with optional scenarios of the right hand
        sides, of shape (n_samples, number of constraints).

        Examples
        --------
        >>> demand = model.addConstrs(
        ...     (a[i] >= 0 for i in range(2)),
        ...     uncertainty=[[1,2],[3,4],[5,6]]
        ... )
        """
        constr = self._model.addConstrs(generator, name=name)
        self._model.update()
        if uncertainty is not None:
            constrs = tuple(constr.values())
            self.uncertainty_rhs[constrs] = self._scenarios(
                uncertainty, len(constrs))
        return constr

    def parameterize(self, fn, support, probability=None):
        """Add a noise parameterization. Before the model is solved for the
        k-th realization, fn(support[k]) is called to mutate the model.

        Parameters
        ----------
        fn: callable
            Takes a single realization of the noise.

        support: array-like
            The realizations of the noise.

        probability: array-like, optional, default=None
            Probability of the realizations. Default is uniform measure.

        Examples
        --------
        >>> demand = model.addConstr(x >= 0)
        >>> def f(w):
        ...     demand.rhs = w
        >>> model.parameterize(f, [1,2,3], [0.2,0.3,0.5])
        """
        if not callable(fn):
            raise TypeError("noise parameterization must be callable!")
        support = list(support)
        if len(support) == 0:
            raise ValueError("support of the noise is empty!")
        self._set_n_samples(support, len(support))
        self.parameterizations.append((fn, support))
        if probability is not None:
            self.set_probability(probability)

    def set_probability(self, probability):
        """Set the probability of the n_samples realizations, in the order of
        the scenarios. Default is uniform.

        Examples
        --------
        >>> cost = model.addVar(uncertainty=[1,2,3])
        >>> model.set_probability([0.2,0.3,0.5])
        """
        self.probability = list(check_probability(probability, self.n_samples))

    def set_price_objective(self, price_objective):
        """Set objective coefficients that depend on the price of a price
        interpolated value function.

        Parameters
        ----------
        price_objective: dict
            Maps gurobipy.Var to a callable that takes the price and returns
            the objective coefficient of the variable.

        Examples
        --------
        >>> generation = model.addVar()
        >>> model.set_price_objective({generation: lambda price: -price})
        """
        for var, fn in price_objective.items():
            if not callable(fn):
                raise TypeError("price objective of {} must be callable!"
                    .format(var.VarName))
            if var in self.uncertainty_obj:
                raise ModelConstructionError(
                    "{} has both uncertain and price dependent objective!"
                    .format(var.VarName)
                )
            self.price_objective[var] = fn

    @property
    def scenario_probability(self):
        """Probability of every realization as a numpy array"""
        return check_probability(self.probability, self.n_samples)

    def _update_uncertainty(self, k):
        for (constr, var), value in self.uncertainty_coef.items():
            self._model.chgCoeff(constr, var, value[k])
        for attr, uncertainty in [
                ("RHS", self.uncertainty_rhs), ("Obj", self.uncertainty_obj)]:
            for key, value in uncertainty.items():
                if isinstance(key, tuple):
                    self._model.setAttr(attr, list(key), value[k])
                else:
                    key.setAttr(attr, value[k])
        for fn, support in self.parameterizations:
            fn(support[k])

    def _update_price(self, price):
        for var, fn in self.price_objective.items():
            var.setAttr("Obj", fn(price))

    def _set_up_link_constrs(self):
        if self.link_constrs:
            return
        self.link_constrs = list(
            self._model.addConstrs(
                (
                    local_copy == value
                    for local_copy, value in zip(
                        self.local_copies, self.initial_values)
                ),
                name="link_constrs",
            ).values()
        )
        self._model.update()

    def _update_link_constrs(self, incoming):
        if self.link_constrs:
            self._model.setAttr("RHS", self.link_constrs, list(incoming))

    def _solve(self, stage=None, markov_state=None):
        """Solve the model and return the objective value. Raise
        InfeasibleSubproblemError if the model is infeasible and SolverError if
        the solver returns any other non-optimal status."""
        self._model.optimize()
        status = self._model.status
        if status == gurobipy.GRB.INF_OR_UNBD:
            self._model.Params.DualReductions = 0
            self._model.optimize()
            self._model.Params.DualReductions = 1
            status = self._model.status
        if status == gurobipy.GRB.OPTIMAL:
            return self._model.objVal
        if status == gurobipy.GRB.INFEASIBLE:
            raise InfeasibleSubproblemError(
                self._model.ModelName, stage, markov_state)
        error = SolverError(self._model.ModelName, status)
        if self.retry_policy is not None and self.retry_policy(self, error):
            self._model.optimize()
            if self._model.status == gurobipy.GRB.OPTIMAL:
                return self._model.objVal
            error = SolverError(self._model.ModelName, self._model.status)
        raise error

    def _get_duals(self):
        return self._model.getAttr("Pi", self.link_constrs)

    def _get_forward_solution(self):
        # clip to the bounds against numerical noise
        return [
            min(max(var.X, var.lb), var.ub) for var in self.states
        ]

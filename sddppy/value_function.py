#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Cost-to-go approximations of a node.

Two flavours are provided:

ValueFunction
    A single cost-to-go variable theta bounded by the cuts of one cut oracle.

StaticPriceInterpolation
    The static price interpolation of

    Gjelsvik, A., Belsnes, M., and Haugstad, A., (1999). An Algorithm for
    Stochastic Medium Term Hydro Thermal Scheduling under Spot Price
    Uncertainty. In PSCC: 13th Power Systems Computation Conference.

    One cost-to-go variable and one cut oracle per rib location of the price
    dimension; the cost-to-go at a price between two ribs is the convex
    combination of the two rib variables.
"""
import math
import gurobipy
import numpy
from sddppy.cut_oracle import DefaultCutOracle
from sddppy.utils.exception import (ModelConstructionError,
    InterpolationRangeError)
from sddppy.utils.statistics import check_probability


class ValueFunction(object):
    """Cutting plane approximation of the cost-to-go with a single variable.

    Parameters
    ----------
    cut_oracle: class, optional (default=DefaultCutOracle)
        The cut oracle class. One instance is created per rib.
    """
    def __init__(self, cut_oracle=DefaultCutOracle):
        self.cut_oracle = cut_oracle
        self.rib_locations = [None]
        self.variables = []
        self.cutoracles = []
        # keys of the cuts present in the subproblem, per rib
        self.installed = []
        self.sense = None
        self.bound = None
        self.n_states = None

    def __repr__(self):
        return "<{}, {} ribs, {} cuts>".format(
            self.__class__.__name__,
            len(self.rib_locations),
            sum(len(oracle) for oracle in self.cutoracles),
        )

    def spawn(self):
        """Return an uninitialized value function of the same configuration.
        """
        return self.__class__(cut_oracle=self.cut_oracle)

    @property
    def is_initialized(self):
        return self.variables != []

    @property
    def prunes(self):
        """Whether the cut oracles may retire cuts"""
        return self.cut_oracle is not DefaultCutOracle

    def initialize(self, model, sense, bound):
        """Create one cost-to-go variable and cut oracle per rib on model.

        Parameters
        ----------
        model: StochasticModel
            The subproblem; its state variables must already be added.

        sense: +1/-1
            +1 for minimization, the variables are bounded below by bound;
            -1 for maximization, the variables are bounded above by bound.

        bound: float
            A valid bound of the cost-to-go.
        """
        if sense not in [-1, 1]:
            raise ModelConstructionError("sense must be +1 or -1!")
        self.sense = sense
        self.bound = bound
        self.n_states = model.n_states
        self.cutoracles = [
            self.cut_oracle(self.n_states) for _ in self.rib_locations
        ]
        self.installed = [set() for _ in self.rib_locations]
        self._add_variables(model)
        return self

    def _add_variables(self, model):
        if self.sense == 1:
            lb, ub = self.bound, gurobipy.GRB.INFINITY
        else:
            lb, ub = -gurobipy.GRB.INFINITY, self.bound
        self.variables = list(
            model.addVars(
                len(self.rib_locations), lb=lb, ub=ub, obj=0.0, name="theta"
            ).values()
        )
        model.update()

    @property
    def cut_sense(self):
        return '>=' if self.sense == 1 else '<='

    def _rib_index(self, rib):
        if rib is None and len(self.rib_locations) == 1:
            return 0
        try:
            return self.rib_locations.index(rib)
        except ValueError:
            raise ModelConstructionError(
                "Attempting to add a cut at the price {}, but there is no rib "
                "in the value function. Rib locations are {}."
                .format(rib, self.rib_locations)
            )

    def interpolation_weights(self, price=None):
        """List of (rib index, weight) pairs of the cost-to-go at price"""
        return [(0, 1.0)]

    def interpolate(self, price=None):
        """The cost-to-go expression at price."""
        weights = self.interpolation_weights(price)
        if len(self.rib_locations) == 1:
            return self.variables[0]
        return gurobipy.LinExpr(
            [weight for _, weight in weights],
            [self.variables[idx] for idx, _ in weights],
        )

    def set_location(self, model, price=None):
        """Put the interpolated cost-to-go at price into the objective of
        model."""
        weights = [0.0] * len(self.variables)
        for idx, weight in self.interpolation_weights(price):
            weights[idx] = weight
        model.setAttr("Obj", self.variables, weights)

    def _add_cut_constr(self, model, variable, cut):
        expr = gurobipy.LinExpr(list(cut.coefficients), model.states)
        if cut.sense == '>=':
            model.addConstr(variable >= expr + cut.intercept)
        else:
            model.addConstr(variable <= expr + cut.intercept)

    def install_cut(self, model, cut, rib=None, state=None):
        """Store cut in the oracle of rib and add it to model unless it is
        already there. Return True if the oracle has not seen the cut before.
        """
        if cut.n_states != self.n_states:
            raise ModelConstructionError(
                "cut has {} coefficients while the state vector is of "
                "dimension {}!".format(cut.n_states, self.n_states)
            )
        if cut.sense != self.cut_sense:
            raise ModelConstructionError(
                "cut of sense {} does not match the value function of sense {}!"
                .format(cut.sense, self.cut_sense)
            )
        idx = self._rib_index(rib)
        is_new = self.cutoracles[idx].store(cut, state)
        # a retired cut that is generated again goes back into the subproblem
        if cut.key not in self.installed[idx]:
            self._add_cut_constr(model, self.variables[idx], cut)
            self.installed[idx].add(cut.key)
            model.update()
        return is_new

    def rebuild(self, model):
        """Recreate the cost-to-go variables on a fresh model and add every
        valid cut of every oracle."""
        self._add_variables(model)
        self.installed = [set() for _ in self.rib_locations]
        for idx, oracle in enumerate(self.cutoracles):
            for cut in oracle.valid_cuts():
                self._add_cut_constr(model, self.variables[idx], cut)
                self.installed[idx].add(cut.key)
        model.update()

    def future_cost(self, price=None):
        """Value of the cost-to-go expression in the current solution"""
        return sum(
            weight * self.variables[idx].X
            for idx, weight in self.interpolation_weights(price)
        )

    def price_noise(self):
        """(realization, probability) pairs of the price noise"""
        return [(None, 1.0)]

    def next_price(self, price, noise, stage, markov_state):
        return None

    @property
    def initial_price(self):
        return None


class StaticPriceInterpolation(ValueFunction):
    """Value function interpolated along a price dimension.

    Parameters
    ----------
    rib_locations: array-like
        Strictly increasing points at which to discretize the price.

    dynamics: callable, optional
        dynamics(price, noise, stage, markov_state) returns the price of the
        current stage given the price of the previous stage and a realization
        of the price noise. Default keeps the price unchanged.

    initial_price: float, optional (default=0.0)
        The price before the first stage.

    noise: array-like, optional (default=[0.0])
        Realizations of the stage-wise independent price noise.

    probability: array-like, optional (default=None)
        Probability of the realizations. Default is uniform measure.

    cut_oracle: class, optional (default=DefaultCutOracle)

    Examples
    --------
    >>> StaticPriceInterpolation(
    ...     dynamics=lambda price, noise, t, i: price + noise - t,
    ...     initial_price=50.0,
    ...     rib_locations=numpy.arange(0, 110, 10),
    ...     noise=[-10.0, 40.0],
    ...     probability=[0.8, 0.2],
    ... )
    """
    def __init__(
            self,
            rib_locations=(0.0, 1.0),
            dynamics=None,
            initial_price=0.0,
            noise=(0.0,),
            probability=None,
            cut_oracle=DefaultCutOracle):
        super().__init__(cut_oracle=cut_oracle)
        self.rib_locations = self._check_rib_locations(rib_locations)
        self.dynamics = dynamics if dynamics is not None else (
            lambda price, noise, stage, markov_state: price)
        if not callable(self.dynamics):
            raise ModelConstructionError("price dynamics must be callable!")
        self._initial_price = float(initial_price)
        self.noise = list(noise)
        if len(self.noise) == 0:
            raise ModelConstructionError("support of the price noise is empty!")
        try:
            self.probability = list(
                check_probability(probability, len(self.noise)))
        except ValueError as error:
            raise ModelConstructionError(str(error))

    @staticmethod
    def _check_rib_locations(rib_locations):
        try:
            ribs = [float(item) for item in rib_locations]
        except (TypeError, ValueError):
            raise ModelConstructionError("rib locations must be numbers!")
        if len(ribs) == 0:
            raise ModelConstructionError("at least one rib location is needed!")
        if not all(math.isfinite(item) for item in ribs):
            raise ModelConstructionError("rib locations must be finite!")
        if any(b <= a for a, b in zip(ribs[:-1], ribs[1:])):
            raise ModelConstructionError(
                "rib locations must be strictly increasing, got {}!"
                .format(ribs)
            )
        return ribs

    def spawn(self):
        return self.__class__(
            rib_locations=self.rib_locations,
            dynamics=self.dynamics,
            initial_price=self._initial_price,
            noise=self.noise,
            probability=self.probability,
            cut_oracle=self.cut_oracle,
        )

    def _rib_index(self, rib):
        if rib is None:
            raise ModelConstructionError(
                "a rib location is needed to add a cut to a price "
                "interpolated value function!"
            )
        idx = int(numpy.searchsorted(self.rib_locations, rib))
        if idx == len(self.rib_locations) or self.rib_locations[idx] != rib:
            return super()._rib_index(rib)
        return idx

    def interpolation_weights(self, price=None):
        ribs = self.rib_locations
        if len(ribs) == 1:
            return [(0, 1.0)]
        if price is None:
            raise InterpolationRangeError(price, ribs)
        # a price equal to rib k starts the interval [k, k+1]
        lower_idx = int(numpy.searchsorted(ribs, price, side='right')) - 1
        lower_idx = min(max(lower_idx, 0), len(ribs) - 2)
        upper_idx = lower_idx + 1
        lam = (price - ribs[lower_idx]) / (ribs[upper_idx] - ribs[lower_idx])
        if not 0.0 <= lam <= 1.0:
            raise InterpolationRangeError(price, ribs)
        return [(lower_idx, 1.0 - lam), (upper_idx, lam)]

    def price_noise(self):
        return [
            (noise, p)
            for noise, p in zip(self.noise, self.probability)
            if p > 0
        ]

    def next_price(self, price, noise, stage, markov_state):
        return float(self.dynamics(price, noise, stage, markov_state))

    @property
    def initial_price(self):
        return self._initial_price

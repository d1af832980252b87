#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
@author: lingquan
"""
class ModelConstructionError(Exception):
    """Exception class to raise if the policy graph, a value function or a cut
    is malformed. Raised at build time."""
    pass


class SampleSizeError(ModelConstructionError):
    """Exception class to raise if uncertainty of different sample sizes are
    added to the model."""
    def __init__(self, modelName, dimensionality, uncertainty, dimension):
        ModelConstructionError.__init__(
            self,
            "Dimensionality of stochasticModel {} is {} "
            "but dimension of the uncertainty {} is {}".format(
                modelName, dimensionality, uncertainty, dimension
            ),
        )


class TransitionMatrixError(ModelConstructionError):
    """Exception class to raise if transition matrices are not compatible
    with the number of stages or do not sum to one."""
    pass


class InfeasibleSubproblemError(Exception):
    """Exception class to raise if a subproblem is infeasible. The relatively
    complete recourse condition is violated."""
    def __init__(self, modelName, stage=None, markov_state=None):
        self.stage = stage
        self.markov_state = markov_state
        Exception.__init__(
            self,
            "infeasibility caught in subproblem {} (stage {}, Markov state {});"
            " check complete recourse condition!".format(
                modelName, stage, markov_state
            ),
        )


class InterpolationRangeError(ValueError):
    """Exception class to raise if a price falls outside the rib locations of
    a price interpolated value function."""
    def __init__(self, price, rib_locations):
        self.price = price
        self.rib_locations = list(rib_locations)
        ValueError.__init__(
            self,
            "The location {} is outside the interpolated region [{}, {}]."
            .format(price, self.rib_locations[0], self.rib_locations[-1]),
        )


class SolverError(Exception):
    """Exception class to raise if the solver returns a status that is neither
    optimal nor infeasible."""
    def __init__(self, modelName, status):
        self.status = status
        Exception.__init__(
            self,
            "solver returns status {} for subproblem {}".format(
                status, modelName
            ),
        )


class WorkerError(Exception):
    """Exception class to raise if an asynchronous worker fails. The message
    carries the traceback of the worker."""
    pass

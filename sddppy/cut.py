#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
@author: lingquan
"""
from collections import namedtuple
import numpy


class Cut(namedtuple(
        "Cut",
        ["intercept", "coefficients", "sense", "stage", "markov_state",
         "iteration"])):
    """An affine bound on the cost-to-go of a node.

        theta >= intercept + coefficients . x   (sense '>=', minimization)
        theta <= intercept + coefficients . x   (sense '<=', maximization)

    where x are the outgoing state variables of the node. Cuts are immutable;
    stage, markov_state and iteration record where the cut was produced and
    take no part in equality.
    """
    __slots__ = ()

    def __new__(cls, intercept, coefficients, sense='>=', stage=None,
            markov_state=None, iteration=None):
        if sense not in ['>=', '<=']:
            raise ValueError("sense of a cut must be '>=' or '<='!")
        return super().__new__(
            cls,
            float(intercept),
            tuple(float(item) for item in coefficients),
            sense,
            stage,
            markov_state,
            iteration,
        )

    def __repr__(self):
        return (
            "<Cut theta {} {} + {} x, stage {}, Markov state {}, iteration {}>"
            .format(self.sense, self.intercept, list(self.coefficients),
                self.stage, self.markov_state, self.iteration)
        )

    @property
    def key(self):
        """Identity of the inequality. Two cuts with the same key describe the
        same half space."""
        return (self.sense, self.intercept, self.coefficients)

    def __eq__(self, other):
        return isinstance(other, Cut) and self.key == other.key

    def __ne__(self, other):
        return not self.__eq__(other)

    def __hash__(self):
        return hash(self.key)

    @property
    def n_states(self):
        return len(self.coefficients)

    def evaluate(self, state):
        """Value of the affine function at the given state."""
        return self.intercept + numpy.dot(self.coefficients, state)

#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
@author: lingquan
"""
import numpy
from sddppy.utils.exception import ModelConstructionError


class DefaultCutOracle(object):
    """Keep every cut ever stored.

    Parameters
    ----------
    n_states: int, optional (default=None)
        The dimension of the state vector. If None, it is fixed by the first
        stored cut.
    """
    def __init__(self, n_states=None):
        self.n_states = n_states
        self.cuts = []
        self._keys = set()

    def __repr__(self):
        return "<{} with {} cuts>".format(self.__class__.__name__, len(self))

    def __len__(self):
        return len(self.cuts)

    def __contains__(self, cut):
        return cut.key in self._keys

    def _check_cut(self, cut):
        if self.n_states is None:
            self.n_states = cut.n_states
        if cut.n_states != self.n_states:
            raise ModelConstructionError(
                "cut has {} coefficients while the state vector is of "
                "dimension {}!".format(cut.n_states, self.n_states)
            )

    def store(self, cut, state=None):
        """Store a cut. Return True if the cut is new and False if an
        identical cut has been stored before.

        Parameters
        ----------
        cut: Cut

        state: array-like, optional (default=None)
            The forward state at which the cut was generated.
        """
        self._check_cut(cut)
        if cut.key in self._keys:
            return False
        self._keys.add(cut.key)
        self.cuts.append(cut)
        return True

    def valid_cuts(self):
        """Generator of the currently active cuts"""
        return (cut for cut in self.cuts)


class LevelOneCutOracle(DefaultCutOracle):
    """Level-one dominance cut selection.

    The oracle tracks the forward states at which cuts were generated. A cut
    is active if it attains the best value (highest for '>=' cuts, lowest for
    '<=' cuts) at one or more tracked states; cuts within tol of the best
    value tie with it. If no state has been tracked, every cut is active.

    Parameters
    ----------
    n_states: int, optional (default=None)

    tol: float, optional (default=1e-9)
        Relative tolerance under which two cut values at a state tie.
    """
    def __init__(self, n_states=None, tol=1e-9):
        super().__init__(n_states)
        self.tol = tol
        self.states = []
        # best value and indices of the cuts attaining it, per tracked state
        self.best_value = []
        self.best = []
        # number of tracked states at which each cut is best
        self.n_dominated = []

    def _ties(self, a, b):
        return abs(a - b) <= self.tol * max(1.0, abs(a), abs(b))

    def _better(self, a, b, sense):
        if self._ties(a, b):
            return False
        return a > b if sense == '>=' else a < b

    def _check_state(self, state, n_states):
        state = numpy.array(state, dtype='float64')
        if state.ndim != 1 or len(state) != n_states:
            raise ModelConstructionError(
                "state is of dimension {} while cuts are of dimension {}!"
                .format(state.size, n_states)
            )
        return state

    def store(self, cut, state=None):
        if state is not None:
            state = self._check_state(
                state,
                self.n_states if self.n_states is not None else cut.n_states,
            )
        if super().store(cut, state):
            self.n_dominated.append(0)
            self._compete(len(self.cuts) - 1)
            is_new = True
        else:
            is_new = False
        if state is not None:
            self._track(state)
        return is_new

    def _compete(self, idx):
        # let the new cut idx challenge the best cuts of every tracked state
        cut = self.cuts[idx]
        for i, x in enumerate(self.states):
            value = cut.evaluate(x)
            if self._better(value, self.best_value[i], cut.sense):
                for j in self.best[i]:
                    self.n_dominated[j] -= 1
                self.best[i] = {idx}
                self.best_value[i] = value
                self.n_dominated[idx] += 1
            elif self._ties(value, self.best_value[i]):
                self.best[i].add(idx)
                self.n_dominated[idx] += 1

    def _track(self, state):
        values = [cut.evaluate(state) for cut in self.cuts]
        sense = self.cuts[0].sense
        best_value = max(values) if sense == '>=' else min(values)
        best = {
            idx for idx, value in enumerate(values)
            if self._ties(value, best_value)
        }
        self.states.append(state)
        self.best_value.append(best_value)
        self.best.append(best)
        for idx in best:
            self.n_dominated[idx] += 1

    def valid_cuts(self):
        if not self.states:
            return super().valid_cuts()
        return (
            cut
            for cut, count in zip(self.cuts, self.n_dominated)
            if count > 0
        )

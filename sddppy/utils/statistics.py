#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
@author: lingquan
"""
import numpy
from scipy import stats
import numbers
from sddppy.utils.exception import TransitionMatrixError


def compute_CI(array, percentile):
    """Compute percentile% CI for the given array."""
    if len(array) == 1:
        raise NotImplementedError
    mean = numpy.mean(array)
    # standard error
    se = numpy.std(array, ddof=1) / numpy.sqrt(len(array))
    # critical value
    cv = stats.t.ppf(1 - (1-percentile/100)/2, len(array)-1)
    return mean - cv * se, mean + cv * se

def rand_int(k, random_state, probability=None, size=None, replace=None):
    """Randomly generate certain numbers of sample from range(k) with given
    probability with/without replacement"""
    if probability is None and replace is None:
        return random_state.randint(low=0, high=k, size=size)
    else:
        return random_state.choice(a=k, p=probability, size=size, replace=replace)

def check_random_state(seed):
    """Turn the seed into a RandomState instance.

    Parameters & Returns
    --------------------
    seed : None, numpy.random, int, instance of RandomState
        If None, return numpy.random.
        If int, return a new RandomState instance with seed.
        Otherwise raise ValueError.
    """
    if seed is None or seed is numpy.random:
        return numpy.random.mtrand._rand
    if isinstance(seed, (numbers.Integral, numpy.integer)):
        return numpy.random.RandomState(seed)
    if isinstance(seed, numpy.random.RandomState):
        return seed
    raise ValueError(
        "{!r} cannot be used to seed a numpy.random.RandomState instance"
            .format(seed)
    )

def check_probability(probability, n_samples):
    """Return the probability measure of n_samples scenarios as a numpy array;
    uniform if probability is None."""
    if probability is None:
        return numpy.ones(n_samples) / n_samples
    probability = numpy.array(probability, dtype='float64')
    if probability.ndim != 1 or len(probability) != n_samples:
        raise ValueError(
            "probability of length {} is not compatible with {} scenarios!"
            .format(len(probability), n_samples)
        )
    if numpy.any(probability < 0) or round(sum(probability), 4) != 1:
        raise ValueError("Probability does not sum to one!")
    return probability

def check_transition_matrix(transition_matrix, T):
    """Check transition matrices are in the right form. Return the transition
    matrices as numpy arrays and the number of Markov states per stage.

    transition_matrix[0] has shape (1, n_0) and gives the distribution of the
    first-stage node; transition_matrix[t] has shape (n_{t-1}, n_t)."""
    if transition_matrix is None:
        return [numpy.ones((1, 1)) for _ in range(T)], [1] * T
    if len(transition_matrix) != T:
        raise TransitionMatrixError(
            "The transition_matrix is of length {}, expecting of length {}!"
            .format(len(transition_matrix), T)
        )
    matrices = []
    n_Markov_states = []
    a = 1
    for t, item in enumerate(transition_matrix):
        item = numpy.array(item, dtype='float64')
        if item.ndim != 2 or item.shape[0] != a:
            raise TransitionMatrixError(
                "Invalid transition_matrix at stage {}!".format(t)
            )
        if numpy.any(item < 0):
            raise TransitionMatrixError("Negative transition probability!")
        for single in item:
            if round(sum(single), 4) != 1:
                raise TransitionMatrixError("Probability does not sum to one!")
        a = item.shape[1]
        n_Markov_states.append(a)
        matrices.append(item)
    return matrices, n_Markov_states


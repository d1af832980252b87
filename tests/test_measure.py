#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
@author: lingquan
"""
from sddppy.utils.measure import Expectation, Expectation_AVaR
from sddppy.utils.statistics import (check_probability, compute_CI,
    check_transition_matrix)
from sddppy.utils.exception import TransitionMatrixError
import numpy
import pytest

obj = numpy.array([1.0, 2.0, 3.0, 4.0])
grad = numpy.array([[1.0], [2.0], [3.0], [4.0]])
p = numpy.array([0.25, 0.25, 0.25, 0.25])


class TestMeasure(object):

    def test_expectation(self):
        objAvg, gradAvg = Expectation(obj, grad, p, 1)
        assert objAvg == pytest.approx(2.5)
        assert list(gradAvg) == [pytest.approx(2.5)]
        objAvg, gradAvg = Expectation(obj, grad, None, 1)
        assert objAvg == pytest.approx(2.5)

    def test_AVaR_minimization(self):
        # the worst half of the costs are 3 and 4
        objAvg, gradAvg = Expectation_AVaR(obj, grad, p, 1, a=0.5, l=1)
        assert objAvg == pytest.approx(3.5)
        assert gradAvg[0] == pytest.approx(3.5)
        objAvg, _ = Expectation_AVaR(obj, grad, p, 1, a=0.5, l=0.5)
        assert objAvg == pytest.approx(3.0)

    def test_AVaR_maximization(self):
        # the worst half of the profits are 1 and 2
        objAvg, gradAvg = Expectation_AVaR(obj, grad, p, -1, a=0.5, l=1)
        assert objAvg == pytest.approx(1.5)
        assert gradAvg[0] == pytest.approx(1.5)

    def test_AVaR_limits(self):
        objAvg, _ = Expectation_AVaR(obj, grad, p, 1, a=1, l=1)
        assert objAvg == pytest.approx(2.5)
        objAvg, _ = Expectation_AVaR(obj, grad, p, 1, a=0.25, l=1)
        assert objAvg == pytest.approx(4)
        objAvg, _ = Expectation_AVaR(obj, grad, p, 1, a=0.5, l=0)
        assert objAvg == pytest.approx(2.5)


    def test_AVaR_rounding(self):
        # probabilities that sum to slightly less than one never reach 1-a
        q = p * (1 - 1e-9)
        objAvg, gradAvg = Expectation_AVaR(obj, grad, q, 1, a=1e-12, l=1)
        assert objAvg == pytest.approx(4)
        assert gradAvg[0] == pytest.approx(4)
        objAvg, _ = Expectation_AVaR(obj, grad, q, -1, a=1e-12, l=1)
        assert objAvg == pytest.approx(1)

class TestStatistics(object):

    def test_check_probability(self):
        assert list(check_probability(None, 4)) == [0.25] * 4
        with pytest.raises(ValueError):
            check_probability([0.5, 0.5], 3)
        with pytest.raises(ValueError):
            check_probability([1.5, -0.5], 2)

    def test_compute_CI(self):
        lb, ub = compute_CI([1, 2, 3, 4], 95)
        assert lb < 2.5 < ub

    def test_check_transition_matrix(self):
        matrices, n_Markov_states = check_transition_matrix(None, 3)
        assert n_Markov_states == [1, 1, 1]
        with pytest.raises(TransitionMatrixError):
            check_transition_matrix([[[1]], [[-0.5, 1.5]]], 2)


#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Risk measures used to aggregate scenario objectives and duals into a single
cut. Every measure takes the scenario objective values obj (n,), the scenario
gradients grad (n, n_states), the scenario probabilities p (n,) and the
optimization sense (+1 minimization, -1 maximization) and returns
(aggregated obj, aggregated grad).
"""
import numpy


def Expectation(obj, grad, p, sense):
    obj = numpy.asarray(obj, dtype='float64')
    grad = numpy.asarray(grad, dtype='float64')
    if p is None:
        return numpy.mean(obj), numpy.mean(grad, axis=0)
    p = numpy.asarray(p, dtype='float64')
    return numpy.dot(p, obj), numpy.dot(p, grad)


def Expectation_AVaR(obj, grad, p, sense, a, l):
    """(1-l) * expectation + l * AVaR_a, the AVaR taken over the upper tail of
    cost (minimization) or the lower tail of profit (maximization)."""
    obj = numpy.asarray(obj, dtype='float64')
    grad = numpy.asarray(grad, dtype='float64')
    n_samples = len(obj)
    p = (
        numpy.ones(n_samples) / n_samples
        if p is None
        else numpy.asarray(p, dtype='float64')
    )
    objAvg, gradAvg = numpy.dot(p, obj), numpy.dot(p, grad)
    # worst outcomes first
    order = numpy.argsort(obj)
    if sense == 1:
        order = order[::-1]
    # kappa is the (1-a) quantile scenario, the worst one if rounding keeps
    # the cumulative probability below 1-a
    kappa = order[0]
    cumulative = 0.0
    for index in order[::-1]:
        cumulative += p[index]
        if cumulative >= 1 - a:
            kappa = index
            break
    excess = sense * (obj - obj[kappa]) > 0
    objTail = obj[kappa] + numpy.dot(p[excess], obj[excess] - obj[kappa]) / a
    gradTail = (
        grad[kappa]
        + numpy.dot(p[excess], grad[excess] - grad[kappa]) / a
    )
    return (1 - l) * objAvg + l * objTail, (1 - l) * gradAvg + l * gradTail

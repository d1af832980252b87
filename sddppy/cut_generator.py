#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Benders cuts from the duals of the state linking constraints.

For a node with forward state x̄ the successors are solved for every noise
realization w with positive probability p(w). With obj(w) the optimal value
and pi(w) the duals of the linking constraints,

    coefficients = sum_w p(w) pi(w)
    intercept    = sum_w p(w) obj(w) - coefficients . x̄

(or the corresponding risk averse aggregation). For price interpolation the
construction is repeated at every rib with the rib as the price of the stage.
"""
import numpy
from sddppy.cut import Cut


def solve_successors(successors, state, price):
    """Solve the successors for every price noise and noise realization with
    positive probability.

    Parameters
    ----------
    successors: list of (Node, float)
        The successor nodes and their transition probabilities.

    state: array-like or None
        The incoming state of the successors. If None, every successor keeps
        its initial values.

    price: float or None
        The price of the stage preceding the successors.

    Returns
    -------
    obj, grad, probability: numpy arrays of shape (n,), (n, n_states), (n,)
    """
    obj, grad, probability = [], [], []
    for node, p_node in successors:
        m = node.model
        m._update_link_constrs(state if state is not None else m.initial_values)
        vf = node.value_function
        for noise, p_price in vf.price_noise():
            successor_price = vf.next_price(
                price, noise, node.stage, node.markov_state)
            for k, p_noise in enumerate(m.scenario_probability):
                if p_noise == 0:
                    continue
                m._update_uncertainty(k)
                node.set_price(successor_price)
                obj.append(m._solve(node.stage, node.markov_state))
                grad.append(m._get_duals())
                probability.append(p_node * p_price * p_noise)
    n_states = len(grad[0]) if grad else 0
    return (
        numpy.array(obj, dtype='float64'),
        numpy.array(grad, dtype='float64').reshape(len(obj), n_states),
        numpy.array(probability, dtype='float64'),
    )


def expected_value(graph, successors, state, price):
    """Aggregated optimal value of the successors"""
    obj, grad, probability = solve_successors(successors, state, price)
    return graph.measure(obj=obj, grad=grad, p=probability, sense=graph.sense)[0]


def construct_cut(node, state, rib=None, iteration=None):
    """Cut on the cost-to-go of node (at rib) generated at state."""
    graph = node.graph
    obj, grad, probability = solve_successors(node.successors(), state, rib)
    objAvg, gradAvg = graph.measure(
        obj=obj, grad=grad, p=probability, sense=graph.sense)
    intercept = objAvg - numpy.dot(gradAvg, state)
    return Cut(
        intercept=intercept,
        coefficients=gradAvg,
        sense='>=' if graph.sense == 1 else '<=',
        stage=node.stage,
        markov_state=node.markov_state,
        iteration=iteration,
    )


def update_value_function(node, state, iteration=None, cut_writer=None):
    """Generate one cut per rib of the value function of node, write it to
    cut_writer (if given) and install it. Return the
    (stage, markov_state, rib, cut) records."""
    records = []
    for rib in node.value_function.rib_locations:
        cut = construct_cut(node, state, rib, iteration)
        if cut_writer is not None:
            cut_writer.write(node.stage, node.markov_state, rib, cut)
        node.install_cut(cut, rib, state)
        records.append((node.stage, node.markov_state, rib, cut))
    return records

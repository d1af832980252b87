#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
@author: lingquan
"""
from sddppy.policy_graph import PolicyGraph
from sddppy.value_function import StaticPriceInterpolation
from sddppy.cut import Cut
from sddppy.cut_oracle import LevelOneCutOracle
from sddppy.utils.examples import construct_newsvendor, construct_inventory_markov
from sddppy.utils.exception import (ModelConstructionError,
    TransitionMatrixError)
import pytest

transition_matrix = [
    [[1]],
    [[0.4, 0.6]],
    [[0.2, 0.8], [0.3, 0.7]],
]
invalid_transition_matrix = [None] * 3
# first stage must start from a single row
invalid_transition_matrix[0] = [
    [[0.4, 0.6], [0.4, 0.6]],
    [[0.4, 0.6], [0.4, 0.6]],
    [[0.2, 0.8], [0.3, 0.7]],
]
# rows must sum to one
invalid_transition_matrix[1] = [
    [[1]],
    [[0.3, 0.6]],
    [[0.2, 0.8], [0.3, 0.7]],
]
# shapes of consecutive stages must agree
invalid_transition_matrix[2] = [
    [[1]],
    [[0.4, 0.6]],
    [[0.2, 0.8], [0.3, 0.7], [0.4, 0.6]],
]


def build(m, stage):
    x, x_past = m.addStateVar(name='x', obj=1)
    m.addConstr(x >= x_past)


def build_markov(m, stage, markov_state):
    x, x_past = m.addStateVar(name='x', obj=markov_state + 1)
    m.addConstr(x >= x_past)


class TestPolicyGraph(object):

    def test_arguments(self):
        with pytest.raises(ModelConstructionError):
            PolicyGraph(T=1)
        with pytest.raises(ModelConstructionError):
            PolicyGraph(T=2, sense=0)
        graph = PolicyGraph(T=2, sense=-1)
        assert graph.bound == 1000000000
        assert PolicyGraph(T=2).bound == -1000000000

    def test_transition_matrix(self):
        graph = PolicyGraph(T=3, transition_matrix=transition_matrix)
        assert graph.n_Markov_states == [1, 2, 2]
        for item in invalid_transition_matrix:
            with pytest.raises(TransitionMatrixError):
                PolicyGraph(T=3, transition_matrix=item)
        with pytest.raises(TransitionMatrixError):
            PolicyGraph(T=2, transition_matrix=transition_matrix)

    def test_build(self):
        graph = PolicyGraph(T=3, bound=0).build(build)
        assert len(list(graph)) == 3
        assert graph[1] == [graph[1, 0]]
        assert graph[2, 0].is_terminal
        assert not graph[2, 0].value_function.is_initialized
        assert graph[0, 0].value_function.is_initialized
        assert graph[0, 0].value_function is not graph[1, 0].value_function
        assert graph[0, 0].successors() == [(graph[1, 0], 1.0)]

    def test_build_markov(self):
        graph = PolicyGraph(
            T=3, bound=0, transition_matrix=transition_matrix
        ).build(build_markov)
        assert [len(nodes) for nodes in graph.nodes] == [1, 2, 2]
        assert graph[2, 1].model.getVarByName('x').obj == 2
        assert graph[1, 1].successors() == [
            (graph[2, 0], 0.3), (graph[2, 1], 0.7)]
        assert [p for _, p in graph.first_stage_nodes()] == [1.0]

    def test_builder_arity(self):
        with pytest.raises(ModelConstructionError):
            PolicyGraph(T=2).build(lambda m: None)
        with pytest.raises(ModelConstructionError):
            PolicyGraph(T=2).build(lambda m, t, k, i: None)
        with pytest.raises(ModelConstructionError):
            PolicyGraph(T=2).build(None)

    def test_inconsistent_states(self):
        def build_wrong(m, stage):
            m.addStateVars(stage + 1, name='x')
        with pytest.raises(ModelConstructionError):
            PolicyGraph(T=2).build(build_wrong)

    def test_integer_subproblem(self):
        def build_integer(m, stage):
            m.addStateVar(name='x', vtype='I')
        with pytest.raises(ModelConstructionError):
            PolicyGraph(T=2).build(build_integer)

    def test_value_function_template(self):
        template = StaticPriceInterpolation(rib_locations=[0, 1, 2])
        graph = PolicyGraph(
            T=2, bound=0, value_function=template).build(build)
        assert not template.is_initialized
        assert len(graph[0, 0].value_function.variables) == 3
        assert graph.initial_price == 0.0
        with pytest.raises(ModelConstructionError):
            PolicyGraph(T=2, value_function=graph[0, 0].value_function)

    def test_install_cut(self):
        graph = construct_newsvendor()
        assert graph.install_cut(0, 0, None, Cut(20, [0], sense='<='))
        assert not graph.install_cut(0, 0, None, Cut(20, [0], sense='<='))
        assert graph.n_cuts == 1
        with pytest.raises(ModelConstructionError):
            graph.install_cut(1, 0, None, Cut(20, [0], sense='<='))
        with pytest.raises(ModelConstructionError):
            graph.install_cut(5, 0, None, Cut(20, [0], sense='<='))

    def test_set_AVaR(self):
        graph = construct_inventory_markov()
        graph.set_AVaR(l=0.5, a=0.25)
        assert graph.measure.keywords == {'a': 0.25, 'l': 0.5}
        with pytest.raises(ModelConstructionError):
            graph.set_AVaR(l=2, a=0.25)

    def test_rebuild(self):
        graph = construct_newsvendor(cut_oracle=LevelOneCutOracle)
        node = graph[0, 0]
        n_constrs = node.model.NumConstrs
        node.install_cut(Cut(0, [1], sense='<='), state=[0])
        node.install_cut(Cut(5, [0], sense='<='), state=[10])
        node.install_cut(Cut(20, [0], sense='<='), state=[1])
        assert node.model.NumConstrs == n_constrs + 3
        old_model = node.model
        node.rebuild()
        assert node.model is not old_model
        assert node.model.NumConstrs == n_constrs + 2
        assert len(node.value_function.cutoracles[0]) == 3

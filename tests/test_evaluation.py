#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
@author: lingquan
"""
from sddppy.utils.examples import (construct_newsvendor,
    construct_inventory_markov, construct_hydro_price)
from sddppy.solver import SDDP
from sddppy.evaluation import Evaluation
import pytest

silent = {'logFile': 0, 'logToConsole': 0}


class TestEvaluation(object):

    def test_newsvendor(self):
        graph = construct_newsvendor()
        SDDP(graph).solve(max_iterations=30, **silent)
        result = Evaluation(graph).run(
            n_simulations=100, query=['bought', 'sold'],
            query_stage_cost=True)
        assert len(result.pv) == 100
        assert result.CI[0] <= result.CI[1]
        assert result.gap >= 0
        assert (abs(result.solution["bought"][0] - 7) < 1e-6).all()
        assert result.solution['sold'].shape == (100, 2)
        assert result.stage_cost.shape == (100, 2)
        assert (abs(result.stage_cost[0] + 7) < 1e-6).all()

    def test_reproducible(self):
        graph = construct_inventory_markov()
        SDDP(graph).solve(max_iterations=5, **silent)
        a = Evaluation(graph).run(n_simulations=20)
        b = Evaluation(graph).run(n_simulations=20)
        assert a.pv == b.pv
        c = Evaluation(graph).run(n_simulations=20, random_state=1)
        assert c.pv != a.pv
        assert a.path.shape == (20, 3)
        assert set(a.path[0]) == {0}

    def test_single_simulation(self):
        graph = construct_newsvendor()
        SDDP(graph).solve(max_iterations=5, **silent)
        result = Evaluation(graph).run(n_simulations=1)
        assert result.CI is None
        assert result.gap == pytest.approx(
            abs((result.pv[0] - graph.db) / graph.db))
        with pytest.raises(ValueError):
            Evaluation(graph).run(n_simulations=0)

    def test_untrained(self):
        graph = construct_newsvendor()
        result = Evaluation(graph).run(n_simulations=10)
        assert result.db is None
        assert result.gap == -1

    def test_price(self):
        graph = construct_hydro_price()
        SDDP(graph).solve(max_iterations=5, **silent)
        result = Evaluation(graph).run(n_simulations=10)
        prices = result.price.values
        assert ((prices >= 0) & (prices <= 100)).all()
        # prices move by one noise realization per stage
        assert set(abs(prices[:, 0] - 50.0)) == {10.0}

    def test_risk_averse_gap(self):
        graph = construct_inventory_markov()
        graph.set_AVaR(l=1, a=0.1)
        SDDP(graph).solve(max_iterations=10, **silent)
        result = Evaluation(graph).run(n_simulations=100)
        assert result.gap == -1

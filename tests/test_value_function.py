#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
@author: lingquan
"""
from sddppy.sp import StochasticModel
from sddppy.cut import Cut
from sddppy.value_function import ValueFunction, StaticPriceInterpolation
from sddppy.cut_oracle import LevelOneCutOracle
from sddppy.utils.exception import (ModelConstructionError,
    InterpolationRangeError)
import numpy
import pytest


def model_with_state():
    m = StochasticModel()
    m.addStateVar(ub=10, name='x')
    m.update()
    return m


class TestValueFunction(object):

    def test_initialize(self):
        m = model_with_state()
        vf = ValueFunction().initialize(m, sense=1, bound=-5)
        assert vf.is_initialized
        assert len(vf.variables) == 1
        assert vf.variables[0].lb == -5
        assert vf.interpolate() is vf.variables[0]
        assert vf.interpolation_weights(42) == [(0, 1.0)]
        assert not vf.prunes
        assert ValueFunction(cut_oracle=LevelOneCutOracle).prunes

    def test_maximization_bound(self):
        m = model_with_state()
        vf = ValueFunction().initialize(m, sense=-1, bound=5)
        assert vf.variables[0].ub == 5
        assert vf.cut_sense == '<='

    def test_install_cut_idempotent(self):
        m = model_with_state()
        vf = ValueFunction().initialize(m, sense=1, bound=0)
        n_constrs = m.NumConstrs
        assert vf.install_cut(m, Cut(1, [2]))
        assert not vf.install_cut(m, Cut(1, [2]))
        assert m.NumConstrs == n_constrs + 1
        assert len(vf.cutoracles[0]) == 1

    def test_install_cut_mismatch(self):
        m = model_with_state()
        vf = ValueFunction().initialize(m, sense=1, bound=0)
        with pytest.raises(ModelConstructionError):
            vf.install_cut(m, Cut(1, [2, 3]))
        with pytest.raises(ModelConstructionError):
            vf.install_cut(m, Cut(1, [2], sense='<='))

    def test_cut_bounds_cost_to_go(self):
        m = model_with_state()
        x = m.states[0]
        vf = ValueFunction().initialize(m, sense=1, bound=0)
        vf.set_location(m)
        m.addConstr(x == 3)
        vf.install_cut(m, Cut(1, [2]))
        m._solve()
        assert vf.future_cost() == pytest.approx(7)

    def test_spawn(self):
        template = ValueFunction(cut_oracle=LevelOneCutOracle)
        vf = template.spawn()
        assert vf is not template
        assert vf.cut_oracle is LevelOneCutOracle
        assert not vf.is_initialized


class TestStaticPriceInterpolation(object):

    def test_rib_locations(self):
        with pytest.raises(ModelConstructionError):
            StaticPriceInterpolation(rib_locations=[])
        with pytest.raises(ModelConstructionError):
            StaticPriceInterpolation(rib_locations=[0, 1, 1])
        with pytest.raises(ModelConstructionError):
            StaticPriceInterpolation(rib_locations=[1, 0])
        with pytest.raises(ModelConstructionError):
            StaticPriceInterpolation(rib_locations=[0, numpy.inf])
        with pytest.raises(ModelConstructionError):
            StaticPriceInterpolation(noise=[1, 2], probability=[0.3, 0.3])

    def test_weights(self):
        vf = StaticPriceInterpolation(rib_locations=[0.0, 10.0, 20.0])
        for price in numpy.linspace(0, 20, 41):
            weights = vf.interpolation_weights(price)
            assert len(weights) == 2
            assert sum(weight for _, weight in weights) == pytest.approx(1)
            assert all(0 <= weight <= 1 for _, weight in weights)
        assert vf.interpolation_weights(2.5) == [(0, 0.75), (1, 0.25)]

    def test_weights_at_ribs(self):
        vf = StaticPriceInterpolation(rib_locations=[0.0, 10.0, 20.0])
        assert vf.interpolation_weights(0.0) == [(0, 1.0), (1, 0.0)]
        assert vf.interpolation_weights(10.0) == [(1, 1.0), (2, 0.0)]
        assert vf.interpolation_weights(20.0) == [(1, 0.0), (2, 1.0)]

    def test_out_of_range(self):
        vf = StaticPriceInterpolation(rib_locations=[0.0, 10.0])
        for price in [-0.1, 10.1, numpy.nan, None]:
            with pytest.raises(InterpolationRangeError):
                vf.interpolation_weights(price)
        # the error is a ValueError too
        with pytest.raises(ValueError):
            vf.interpolation_weights(11)

    def test_single_rib(self):
        m = model_with_state()
        vf = StaticPriceInterpolation(rib_locations=[5.0])
        vf.initialize(m, sense=1, bound=0)
        assert vf.interpolate(100.0) is vf.variables[0]
        assert vf.interpolation_weights(-100.0) == [(0, 1.0)]

    def test_interpolate(self):
        m = model_with_state()
        vf = StaticPriceInterpolation(rib_locations=[0.0, 10.0])
        vf.initialize(m, sense=1, bound=0)
        expr = vf.interpolate(4.0)
        assert expr.size() == 2
        assert expr.getCoeff(0) == pytest.approx(0.6)
        assert expr.getCoeff(1) == pytest.approx(0.4)

    def test_install_cut_per_rib(self):
        m = model_with_state()
        vf = StaticPriceInterpolation(rib_locations=[0.0, 10.0])
        vf.initialize(m, sense=1, bound=0)
        assert vf.install_cut(m, Cut(1, [0]), rib=0.0)
        assert vf.install_cut(m, Cut(1, [0]), rib=10.0)
        assert not vf.install_cut(m, Cut(1, [0]), rib=10.0)
        assert [len(oracle) for oracle in vf.cutoracles] == [1, 1]
        with pytest.raises(ModelConstructionError):
            vf.install_cut(m, Cut(2, [0]), rib=5.0)
        with pytest.raises(ModelConstructionError):
            vf.install_cut(m, Cut(2, [0]))

    def test_interpolated_cost_to_go(self):
        m = model_with_state()
        vf = StaticPriceInterpolation(rib_locations=[0.0, 10.0])
        vf.initialize(m, sense=1, bound=0)
        vf.install_cut(m, Cut(2, [0]), rib=0.0)
        vf.install_cut(m, Cut(6, [0]), rib=10.0)
        vf.set_location(m, 2.5)
        m._solve()
        assert vf.future_cost(2.5) == pytest.approx(3)
        assert m.objVal == pytest.approx(3)

    def test_price_noise(self):
        vf = StaticPriceInterpolation(
            dynamics=lambda price, noise, t, i: price + noise + t,
            initial_price=1.0,
            noise=[-1.0, 0.0, 1.0],
            probability=[0.5, 0.0, 0.5],
        )
        assert vf.initial_price == 1.0
        assert vf.price_noise() == [(-1.0, 0.5), (1.0, 0.5)]
        assert vf.next_price(1.0, 1.0, 2, 0) == 4.0
        clone = vf.spawn()
        assert clone.rib_locations == vf.rib_locations
        assert clone.price_noise() == vf.price_noise()
        assert clone.initial_price == 1.0

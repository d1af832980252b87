#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
A hydro reservoir sells its generation at a spot price that follows a
mean reverting random walk. The cost-to-go is interpolated on ribs of the
price (static price interpolation), cuts are shared by asynchronous
workers and persisted to a cut file so that a later run can warm start.

usage: price_interpolation.py n_iterations n_processes cut_file

@author: lingquan
"""
import numpy
import pandas
from sddppy.policy_graph import PolicyGraph
from sddppy.value_function import StaticPriceInterpolation
from sddppy.solver import SDDP
from sddppy.evaluation import Evaluation
import os
import sys

n_iterations = int(sys.argv[1])
n_processes = int(sys.argv[2])
cut_file = sys.argv[3]

T = 12
mean_price = 50.0
inflow = [[0.0, 50.0, 100.0]] * 12
inflow_probability = [0.2, 0.5, 0.3]
demand = 150.0

def dynamics(price, noise, stage, markov_state):
    price = price + 0.5 * (mean_price - price) + noise
    return min(max(price, 0.0), 150.0)

value_function = StaticPriceInterpolation(
    rib_locations=numpy.linspace(0, 150, 7),
    dynamics=dynamics,
    initial_price=mean_price,
    noise=[-20.0, -5.0, 5.0, 20.0],
    probability=[0.1, 0.4, 0.4, 0.1],
)

def build(m, t):
    stored_now, stored_past = m.addStateVar(
        ub=500, name="stored", initial_value=250)
    hydro = m.addVar(ub=200, name="hydro")
    spill = m.addVar(obj=0.001, name="spill")
    sold = m.addVar(name="sold")
    thermal = m.addVar(ub=100, obj=40.0, name="thermal")
    deficit = m.addVar(obj=1000.0, name="deficit")
    m.addConstr(
        stored_now + hydro + spill - stored_past == 0,
        uncertainty={'rhs': inflow[t]},
    )
    m.set_probability(inflow_probability)
    m.addConstr(hydro + thermal + deficit - sold == demand)
    # sales earn the spot price
    m.set_price_objective({sold: lambda price: -price})
    if t == T-1:
        # stored water is worth the mean price at the end of the horizon
        m.setAttr("Obj", [stored_now], [-0.5 * mean_price])

HydroThermal = PolicyGraph(
    T=T, bound=-1e6, value_function=value_function).build(build)
if os.path.exists(cut_file):
    print('cuts replayed', HydroThermal.read_cuts(cut_file))
HT_sddp = SDDP(HydroThermal)
HT_sddp.solve(
    n_processes=n_processes,
    max_iterations=n_iterations,
    cut_file=cut_file,
)
result = Evaluation(HydroThermal)
result.run(random_state=666, n_simulations=1000, query=['stored'])
pandas.DataFrame({'pv':result.pv}).to_csv("./price_interpolation_result.csv")
print('bound', HT_sddp.db[-1])
print('CI', result.CI)
print(result.solution['stored'].mean())

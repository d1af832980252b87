#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
News vendor problem. Minimize cost.
risk neutral optimum is -97.9

Uncertainties on the right hand side (demand), markovian purchase price
stage-wise independent discrete uncertainties & Markov states on the
purchase price.
initial inventory is 5, full capacity is 100.
selling amount is restricted between half of demand and full demand

@author: lingquan
"""
from sddppy.policy_graph import PolicyGraph
from sddppy.solver import SDDP
from sddppy.evaluation import Evaluation
import gurobipy
T = 4
PurchasePrice = [[5.0], [5.0], [5.0, 8.0], [5.0, 8.0]]
Demand = [[10.0, 15.0], [12.0, 20.0], [8.0, 20.0]]
RetailPrice = 7.0

def build(m, t, markov_state):
    now, past = m.addStateVar(ub=100, name="stock", initial_value=5.0)
    if t > 0:
        buy = m.addVar(name="buy", obj=PurchasePrice[t][markov_state])
        sell = m.addVar(name="sell", obj=- RetailPrice)
        m.addConstr(now == past + buy - sell)
        random = m.addVar(lb=-gurobipy.GRB.INFINITY, ub=gurobipy.GRB.INFINITY, name="demand")
        m.addConstr(random == 20, uncertainty={'rhs': Demand[t-1]})
        m.addConstr(sell <= random)
        m.addConstr(sell >= 0.5 * random)
    if t == 0:
        m.addConstr(now == past)

newsVendor = PolicyGraph(
    T=T,
    sense=1,
    bound=-1000,
    transition_matrix = [
        [[1]],
        [[1]],
        [[0.6,0.4]],
        [[0.3,0.7],[0.3,0.7]]
    ],
).build(build)
SDDP(newsVendor).solve(max_iterations=100, max_stable_iterations=10)
result = Evaluation(newsVendor).run(n_simulations=1000, query=['buy'])
print(result.CI)
print(result.solution['buy'].mean())
newsVendor.set_AVaR(a=0.6, l=0.5)
SDDP(newsVendor).solve(max_iterations=100, max_stable_iterations=10)

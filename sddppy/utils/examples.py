#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Small policy graphs used by the tests and the quick start.
"""
from sddppy.policy_graph import PolicyGraph
from sddppy.value_function import ValueFunction, StaticPriceInterpolation
from sddppy.cut_oracle import DefaultCutOracle


# Two-stage capacity expansion (problem 5.2 of Birge and Louveaux), known
# optimal value 340315.52
def construct_capacity_expansion(cut_oracle=DefaultCutOracle):
    n = 4
    m_ = 3
    investment_cost = [16, 5, 32, 2]
    operation_cost = [25, 80, 6.5, 160]
    duration = [8760 / 8760, 7000 / 8760, 1500 / 8760]
    # demand in the three load modes under the two scenarios
    demand = [[3919, 3410, 2986], [7086, 1918, 2165]]
    probability = [0.9, 0.1]

    def build(m, stage):
        capacity, capacity_past = m.addStateVars(n, name="capacity")
        produce = m.addVars(
            n, m_,
            obj={
                (i,j): operation_cost[i] * duration[j]
                for i in range(n) for j in range(m_)
            },
            name="produce",
        )
        invest = m.addVars(n, obj=investment_cost, name="invest")
        penalty = m.addVar(obj=1e6, name="penalty")
        m.addConstrs(
            (capacity[i] == capacity_past[i] + invest[i] for i in range(n)),
            name="expand",
        )
        m.addConstrs(
            (produce.sum(i, '*') <= capacity_past[i] for i in range(n)),
            name="available",
        )
        if stage == 1:
            m.addConstrs(
                (produce.sum('*', j) + penalty >= 0 for j in range(m_)),
                name="demand",
                uncertainty=demand,
            )
            m.set_probability(probability)
            # no investment in the last stage
            m.addConstr(invest.sum() == 0)

    return PolicyGraph(
        T=2,
        bound=0.0,
        value_function=ValueFunction(cut_oracle=cut_oracle),
    ).build(build)


# Newsvendor, maximization, known optimal value 35/11
def construct_newsvendor(cut_oracle=DefaultCutOracle):
    def build(m, stage):
        if stage == 0:
            m.addStateVar(name='bought', obj=-1.0)
        else:
            _, bought_past = m.addStateVar(name='bought')
            sold = m.addVar(name='sold', obj=2)
            unsatisfied = m.addVar(name='unsatisfied')
            recycled = m.addVar(name='recycled', obj=0.5)
            m.addConstr(sold + unsatisfied == 0,
                uncertainty={'rhs': range(11)})
            m.addConstr(sold + recycled == bought_past)

    return PolicyGraph(
        T=2,
        sense=-1,
        bound=20,
        value_function=ValueFunction(cut_oracle=cut_oracle),
    ).build(build)


# Inventory control with Markovian demand levels and additive noise
def construct_inventory_markov():
    demand = [[5], [3, 8], [3, 8]]
    transition_matrix = [
        [[1.0]],
        [[0.5, 0.5]],
        [[0.7, 0.3], [0.3, 0.7]],
    ]

    def build(m, stage, markov_state):
        stock, stock_past = m.addStateVar(
            name='stock', obj=0.5, initial_value=2)
        order = m.addVar(name='order', obj=1.0)
        lost = m.addVar(name='lost', obj=5.0)
        d = demand[stage][markov_state]
        m.addConstr(
            stock - stock_past - order - lost == 0,
            uncertainty={'rhs': [-(d + w) for w in [-1, 0, 1]]},
        )

    return PolicyGraph(
        T=3,
        bound=0.0,
        transition_matrix=transition_matrix,
    ).build(build)


# Hydro storage that buys the shortfall on the spot market; the spot price
# is a random walk interpolated on ribs
def construct_hydro_price(rib_locations=(0.0, 25.0, 50.0, 75.0, 100.0),
        cut_oracle=DefaultCutOracle, T=3):
    def dynamics(price, noise, stage, markov_state):
        return min(max(price + noise, 0.0), 100.0)

    value_function = StaticPriceInterpolation(
        rib_locations=rib_locations,
        dynamics=dynamics,
        initial_price=50.0,
        noise=[-10.0, 10.0],
        cut_oracle=cut_oracle,
    )

    def build(m, stage):
        volume, volume_past = m.addStateVar(
            ub=200, name='volume', initial_value=100)
        hydro = m.addVar(ub=100, name='hydro')
        spill = m.addVar(name='spill')
        buy = m.addVar(name='buy')
        m.addConstr(
            volume == volume_past - hydro - spill,
            uncertainty={'rhs': [0.0, 25.0, 50.0]},
        )
        m.addConstr(hydro + buy >= 120)
        m.set_price_objective({buy: lambda price: price})

    return PolicyGraph(
        T=T,
        bound=0.0,
        value_function=value_function,
    ).build(build)

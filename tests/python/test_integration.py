from __future__ import annotations

from pygame.math import Vector2
from pytest import approx

from flocksim.sim.core.agent import SteeringForces, VariationFactors, create_agent
from flocksim.sim.core.config import AgentSettings, BoundaryConfig, SimulationConfig
from flocksim.sim.systems import pipeline
from flocksim.sim.systems.integration import clamp_speed, integrate, total_force


def test_clamp_speed_caps_at_max():
    x, y = clamp_speed(30.0, 40.0, 1.0, 5.0)
    assert (x, y) == approx((3.0, 4.0))


def test_clamp_speed_lifts_slow_agents_to_min():
    x, y = clamp_speed(0.3, 0.4, 2.0, 5.0)
    assert (x, y) == approx((1.2, 1.6))


def test_clamp_speed_keeps_zero_vector():
    assert clamp_speed(0.0, 0.0, 2.0, 5.0) == (0.0, 0.0)


def test_clamp_speed_caps_min_at_max():
    x, y = clamp_speed(0.6, 0.8, 9.0, 2.0)
    assert (x, y) == approx((1.2, 1.6))


def test_integrate_applies_velocity_before_position():
    agent = create_agent(0, Vector2(10.0, 10.0), Vector2(3.0, 0.0), AgentSettings(max_speed=4.0, min_speed=0.0))
    forces = SteeringForces(
        cohesion=Vector2(0.0, 2.0),
        separation=Vector2(0.0, -1.0),
        alignment=Vector2(1.0, 0.0),
        boundary=Vector2(0.0, 0.0),
    )
    factors = VariationFactors(cohesion=0.5, separation=1.0, alignment=0.0)

    integrate(agent, forces, factors, 2.0)

    assert agent.velocity == Vector2(3.0, 0.0)
    assert agent.position == Vector2(16.0, 10.0)


def test_total_force_scales_rule_forces_but_not_boundary():
    forces = SteeringForces(
        cohesion=Vector2(1.0, 0.0),
        separation=Vector2(0.0, 1.0),
        alignment=Vector2(1.0, 1.0),
        boundary=Vector2(2.0, 2.0),
    )
    total = total_force(forces, VariationFactors(0.0, 0.0, 0.0))
    assert total == Vector2(2.0, 2.0)


def test_cancelled_velocity_keeps_moving_at_min_speed():
    agent = create_agent(0, Vector2(1000.0, 500.0), Vector2(4.0, 0.0), AgentSettings(max_speed=4.0, min_speed=3.0))
    config = SimulationConfig(boundary=BoundaryConfig(force_fraction=1.0))

    pipeline.tick([agent], 1.0, config)

    assert agent.velocity == Vector2(3.0, 0.0)
    assert agent.position == Vector2(1003.0, 500.0)


def test_cancelled_velocity_may_stop_when_min_speed_is_zero():
    agent = create_agent(0, Vector2(), Vector2(2.0, 0.0), AgentSettings(min_speed=0.0))
    forces = SteeringForces(alignment=Vector2(-2.0, 0.0))

    integrate(agent, forces, VariationFactors(), 1.0)

    assert agent.velocity == Vector2(0.0, 0.0)

from __future__ import annotations

import math

import pytest
from pytest import approx

from flocksim.sim.core.config import BoundaryPolicy, SimulationConfig, WorldConfig
from flocksim.sim.core.world import World


def _positions(world):
    return [(agent.position.x, agent.position.y) for agent in world.agents]


def test_bootstrap_places_agents_inside_bounds():
    config = SimulationConfig(seed=3, world=WorldConfig(width=640.0, height=480.0, agent_count=75))
    world = World(config)

    assert len(world.agents) == 75
    assert [agent.id for agent in world.agents] == list(range(75))
    for agent in world.agents:
        assert 0.0 <= agent.position.x <= 640.0
        assert 0.0 <= agent.position.y <= 480.0
        speed = agent.velocity.length()
        assert config.agent.min_speed - 1e-9 <= speed <= config.agent.max_speed + 1e-9
        assert 0.0 <= agent.phase <= 2.0 * math.pi


def test_reset_restores_initial_population():
    world = World(SimulationConfig(seed=12, world=WorldConfig(agent_count=25)))
    initial = _positions(world)
    for _ in range(10):
        world.tick()
    assert _positions(world) != initial

    world.reset()

    assert _positions(world) == initial
    assert world.tick_count == 0
    assert world.sim_time == 0.0
    assert world.metrics is None


def test_tick_counts_and_accumulates_time():
    world = World(SimulationConfig(time_step=0.5, world=WorldConfig(agent_count=5)))
    world.tick()
    metrics = world.tick()

    assert world.tick_count == 2
    assert world.sim_time == approx(1.0)
    assert metrics.tick == 2
    assert metrics.population == 5
    assert world.metrics is metrics


def test_advance_scales_wall_clock_time():
    world = World(SimulationConfig(world=WorldConfig(agent_count=3, time_scale=0.06)))
    world.advance(1000.0 / 60.0)
    assert world.sim_time == approx(1.0)
    world.advance(0.0)
    assert world.tick_count == 1


def test_live_setters_reach_every_agent():
    world = World(SimulationConfig(world=WorldConfig(agent_count=10)))

    world.set_coefficients(separation=2.0, cohesion=0.0)
    world.set_detection_range(42.0)
    world.set_fov_angle(math.pi)

    for agent in world.agents:
        assert agent.separation_coefficient == 2.0
        assert agent.cohere_coefficient == 0.0
        assert agent.align_coefficient == 1.0
        assert agent.detection_range == 42.0
        assert (agent.fov_left, agent.fov_right) == approx((math.pi / 2, math.pi / 2))

    world.set_fov_half_angles(0.25, 3.0)
    assert (world.agents[0].fov_left, world.agents[0].fov_right) == approx((0.25, 3.0))
    world.set_fov_angle(2.0 * math.pi)
    assert world.agents[0].fov_left == approx(math.pi)


def test_speed_limits_are_sanitized():
    world = World(SimulationConfig(world=WorldConfig(agent_count=4)))
    world.set_speed_limits(min_speed=6.0, max_speed=2.0)

    assert world.config.agent.max_speed == 2.0
    assert world.config.agent.min_speed == 2.0
    for agent in world.agents:
        assert agent.min_speed == agent.max_speed == 2.0

    world.set_coefficients(alignment=-3.0)
    assert world.agents[0].align_coefficient == 0.0


def test_variation_setter_clamps_values():
    world = World(SimulationConfig(world=WorldConfig(agent_count=2)))
    world.set_variation(enabled=True, frequency=-1.0, amplitude=4.0)

    variation = world.config.variation
    assert variation.enabled
    assert variation.frequency == 0.0
    assert variation.amplitude == 1.0


def test_world_bounds_validation():
    world = World(SimulationConfig(world=WorldConfig(agent_count=2)))
    with pytest.raises(ValueError):
        world.set_world_bounds(0.0, 100.0)
    with pytest.raises(ValueError):
        World(SimulationConfig(world=WorldConfig(width=-5.0)))

    world.set_world_bounds(300.0, 200.0)
    assert world.snapshot().world.width == 300.0
    assert len(world.agents) == 2


def test_apply_overrides_updates_sections():
    world = World(SimulationConfig(world=WorldConfig(agent_count=6)))
    world.apply_overrides(
        {
            "agent": {"detection_range": 80.0},
            "rules": {"separation_distance": 25.0},
            "boundary": {"policy": "fixed"},
            "variation": {"enabled": True, "amplitude": 3.0},
            "cell_size": 40.0,
        }
    )

    config = world.config
    assert config.agent.detection_range == 80.0
    assert config.rules.separation_distance == 25.0
    assert config.boundary.policy is BoundaryPolicy.FIXED
    assert config.variation.amplitude == 1.0
    assert config.cell_size == 40.0
    assert all(agent.detection_range == 80.0 for agent in world.agents)
    world.tick()


@pytest.mark.parametrize(
    "overrides, error",
    [
        ({"agent": {"warp_drive": 1.0}}, TypeError),
        ({"weather": {"rain": True}}, TypeError),
        ({"agent": 5}, TypeError),
        ({"boundary": {"policy": "bouncy"}}, ValueError),
        ({"world": {"width": 0.0}}, ValueError),
        ({"world": {"agent_count": 2.5}}, ValueError),
        ({"world": {"height": "tall"}}, ValueError),
        ({"time_step": "fast"}, ValueError),
        ({"max_dt": math.inf}, ValueError),
        ({"seed": 1.5}, ValueError),
        ({"cell_size": None}, ValueError),
        ({"rules": {"separation_distance": "wide"}}, ValueError),
        ({"boundary": {"margin": math.nan}}, ValueError),
    ],
)
def test_apply_overrides_rejects_invalid_input(overrides, error):
    world = World(SimulationConfig(world=WorldConfig(agent_count=3)))
    before = world.config
    positions = _positions(world)

    with pytest.raises(error):
        world.apply_overrides({"rules": {"cohesion_factor": 10.0}, **overrides})

    assert world.config == before
    assert _positions(world) == positions
    world.tick()
    assert world.tick_count == 1


def test_apply_overrides_converts_whole_numbers():
    world = World(SimulationConfig(world=WorldConfig(agent_count=3)))

    world.apply_overrides({"seed": 7.0, "time_step": 2, "world": {"agent_count": 5.0}})

    assert world.config.seed == 7
    assert isinstance(world.config.seed, int)
    assert world.config.world.agent_count == 5
    assert len(world.agents) == 5
    world.tick()
    assert world.sim_time == 2.0


def test_agent_count_override_rebuilds_population():
    world = World(SimulationConfig(world=WorldConfig(agent_count=4)))
    world.tick()

    world.apply_overrides({"world": {"agent_count": 9}})

    assert len(world.agents) == 9
    assert world.tick_count == 0


def test_snapshot_payload():
    config = SimulationConfig(seed=7, time_step=0.5, world=WorldConfig(width=420.0, height=300.0, agent_count=3))
    world = World(config)
    world.tick()
    snapshot = world.snapshot()

    assert snapshot.tick == 1
    assert snapshot.sim_time == approx(0.5)
    assert snapshot.world.width == approx(420.0)
    assert snapshot.world.height == approx(300.0)
    assert snapshot.metadata.sim_dt == approx(0.5)
    assert snapshot.metadata.seed == 7
    assert snapshot.metadata.config_version == "v1"
    assert snapshot.metrics.population == 3

    payload = snapshot.agents[0]
    for key in ["id", "x", "y", "vx", "vy", "speed", "heading", "neighbors", "forces", "variation"]:
        assert key in payload
    assert set(payload["forces"]) == {"cohesion", "separation", "alignment", "boundary", "total"}
    assert payload["neighbors"] == sorted(world.agents[0].neighbor_ids)
    assert payload["speed"] == approx(world.agents[0].velocity.length())


def test_snapshot_before_first_tick_has_idle_metrics():
    world = World(SimulationConfig(world=WorldConfig(agent_count=2)))
    snapshot = world.snapshot()
    assert snapshot.tick == 0
    assert snapshot.metrics.neighbor_checks == 0
    assert snapshot.metrics.population == 2

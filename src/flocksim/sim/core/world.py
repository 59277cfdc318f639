from __future__ import annotations

import logging
from dataclasses import replace
from time import perf_counter
from typing import Any, Dict, List, Mapping

from pygame.math import Vector2

from .agent import Agent, create_agent
from .config import (
    AgentSettings,
    BoundaryPolicy,
    SimulationConfig,
    WorldConfig,
    coerce_run_settings,
    coerce_section,
    validate_world,
)
from .rng import DeterministicRng
from .spatial_grid import SpatialGrid
from ..systems import metrics as metrics_system, pipeline
from ..systems.integration import total_force
from ..types.metrics import TickMetrics
from ..types.snapshot import Snapshot, SnapshotMetadata, SnapshotWorld
from ..utils.math2d import clamp_value, heading_from_velocity

logger = logging.getLogger(__name__)

_TOP_LEVEL_KEYS = {"time_step", "max_dt", "seed", "cell_size"}


class World:
    """Owns one flock and the live configuration it runs under."""

    def __init__(self, config: SimulationConfig):
        self._config = self._prepare(config)
        self._rng = DeterministicRng(self._config.seed)
        self._grid: SpatialGrid | None = None
        self._agents: List[Agent] = []
        self._tick = 0
        self._sim_time = 0.0
        self._metrics: TickMetrics | None = None
        self.reset()

    @property
    def agents(self) -> List[Agent]:
        return self._agents

    @property
    def config(self) -> SimulationConfig:
        return self._config

    @property
    def metrics(self) -> TickMetrics | None:
        return self._metrics

    @property
    def tick_count(self) -> int:
        return self._tick

    @property
    def sim_time(self) -> float:
        return self._sim_time

    def reset(self, config: SimulationConfig | None = None) -> None:
        config = self._config if config is None else self._prepare(config)
        self._rng.reset(config.seed)
        agents = self._spawn_population(config)
        self._config = config
        self._grid = self._make_grid(config.cell_size)
        self._agents = agents
        self._tick = 0
        self._sim_time = 0.0
        self._metrics = None
        logger.debug("World reset with %d agents (seed=%d)", len(agents), config.seed)

    def tick(self, dt: float | None = None) -> TickMetrics:
        start = perf_counter()
        step = self._config.time_step if dt is None else dt
        stats = pipeline.tick(self._agents, step, self._config, sim_time=self._sim_time, grid=self._grid)
        if stats.applied:
            self._tick += 1
            self._sim_time += stats.dt
        elapsed_ms = (perf_counter() - start) * 1000.0
        metrics = metrics_system.create_metrics(self._tick, self._sim_time, self._agents, stats, elapsed_ms)
        self._metrics = metrics
        return metrics

    def advance(self, elapsed_ms: float) -> TickMetrics:
        """Tick by a wall-clock interval scaled into simulated time."""
        return self.tick(elapsed_ms * self._config.world.time_scale)

    def snapshot(self) -> Snapshot:
        metrics = self._metrics if self._metrics is not None else self._idle_metrics()
        world = self._config.world
        metadata = SnapshotMetadata(
            sim_dt=self._config.time_step,
            time_scale=world.time_scale,
            seed=self._config.seed,
            config_version=self._config.config_version,
            variation_enabled=self._config.variation.enabled,
        )
        return Snapshot(
            tick=self._tick,
            sim_time=self._sim_time,
            metrics=metrics,
            agents=[self._agent_snapshot(agent) for agent in self._agents],
            world=SnapshotWorld(width=world.width, height=world.height),
            metadata=metadata,
        )

    # Live configuration surface. Changes take effect on the next tick.

    def set_world_bounds(self, width: float, height: float) -> None:
        self.replace_world(replace(self._config.world, width=float(width), height=float(height)))

    def replace_world(self, world: WorldConfig) -> None:
        world = validate_world(world)
        config = replace(self._config, world=world)
        if world.agent_count != self._config.world.agent_count:
            self.reset(config)
        else:
            self._config = config
        logger.debug("World bounds now %sx%s", world.width, world.height)

    def set_coefficients(
        self,
        separation: float | None = None,
        cohesion: float | None = None,
        alignment: float | None = None,
    ) -> None:
        changes: Dict[str, float] = {}
        if separation is not None:
            changes["separation_coefficient"] = float(separation)
        if cohesion is not None:
            changes["cohere_coefficient"] = float(cohesion)
        if alignment is not None:
            changes["align_coefficient"] = float(alignment)
        self._apply_agent_settings(replace(self._config.agent, **changes))

    def set_detection_range(self, detection_range: float) -> None:
        self._apply_agent_settings(replace(self._config.agent, detection_range=float(detection_range)))

    def set_fov_angle(self, angle: float) -> None:
        self._apply_agent_settings(
            replace(self._config.agent, fov_angle=float(angle), fov_left=None, fov_right=None)
        )

    def set_fov_half_angles(self, left: float, right: float) -> None:
        self._apply_agent_settings(replace(self._config.agent, fov_left=float(left), fov_right=float(right)))

    def set_speed_limits(self, min_speed: float | None = None, max_speed: float | None = None) -> None:
        changes: Dict[str, float] = {}
        if min_speed is not None:
            changes["min_speed"] = float(min_speed)
        if max_speed is not None:
            changes["max_speed"] = float(max_speed)
        self._apply_agent_settings(replace(self._config.agent, **changes))

    def set_variation(
        self,
        enabled: bool | None = None,
        frequency: float | None = None,
        amplitude: float | None = None,
    ) -> None:
        current = self._config.variation
        updated = replace(
            current,
            enabled=current.enabled if enabled is None else bool(enabled),
            frequency=current.frequency if frequency is None else max(0.0, float(frequency)),
            amplitude=current.amplitude if amplitude is None else clamp_value(float(amplitude), 0.0, 1.0),
        )
        self._config = replace(self._config, variation=updated)
        logger.debug("Variation set to %s", updated)

    def set_rule_constants(
        self,
        cohesion_factor: float | None = None,
        separation_distance: float | None = None,
        alignment_factor: float | None = None,
    ) -> None:
        changes: Dict[str, float] = {}
        if cohesion_factor is not None:
            changes["cohesion_factor"] = float(cohesion_factor)
        if separation_distance is not None:
            changes["separation_distance"] = float(separation_distance)
        if alignment_factor is not None:
            changes["alignment_factor"] = float(alignment_factor)
        self._config = replace(self._config, rules=replace(self._config.rules, **changes))

    def apply_overrides(self, overrides: Mapping[str, Any]) -> None:
        """
        Apply a nested mapping shaped like the YAML config file.

        Unknown sections or fields raise ``TypeError``; invalid values raise
        ``ValueError``. Nothing is applied unless every section is valid.
        """
        config = self._config
        world = config.world
        agent = config.agent
        top_level: Dict[str, Any] = {}
        for section, values in overrides.items():
            if section in _TOP_LEVEL_KEYS:
                top_level[section] = values
                continue
            if not isinstance(values, Mapping):
                raise TypeError(f"Section {section!r} must be a mapping")
            if section == "world":
                world = validate_world(replace(world, **values))
            elif section == "agent":
                agent = replace(agent, **values)
            elif section == "rules":
                config = replace(config, rules=replace(config.rules, **values))
            elif section == "boundary":
                boundary_values = dict(values)
                if "policy" in boundary_values:
                    boundary_values["policy"] = BoundaryPolicy(boundary_values["policy"])
                config = replace(config, boundary=replace(config.boundary, **boundary_values))
            elif section == "place":
                config = replace(config, place=replace(config.place, **values))
            elif section == "variation":
                config = replace(config, variation=replace(config.variation, **values))
            else:
                raise TypeError(f"Unknown config section {section!r}")

        top_level = coerce_run_settings(top_level)
        agent = agent.sanitized()
        variation = coerce_section(config.variation)
        variation = replace(
            variation,
            frequency=max(0.0, variation.frequency),
            amplitude=clamp_value(variation.amplitude, 0.0, 1.0),
        )
        config = replace(
            config,
            world=world,
            agent=agent,
            rules=coerce_section(config.rules),
            boundary=coerce_section(config.boundary),
            place=coerce_section(config.place),
            variation=variation,
            **top_level,
        )

        if world.agent_count != self._config.world.agent_count:
            self.reset(config)
        else:
            if config.cell_size != self._config.cell_size:
                self._grid = self._make_grid(config.cell_size)
            self._config = config
            for member in self._agents:
                member.apply_settings(agent)
        logger.debug("Applied overrides for %s", sorted(overrides))

    def _apply_agent_settings(self, settings: AgentSettings) -> None:
        settings = settings.sanitized()
        self._config = replace(self._config, agent=settings)
        for agent in self._agents:
            agent.apply_settings(settings)

    @staticmethod
    def _prepare(config: SimulationConfig) -> SimulationConfig:
        run = coerce_run_settings({name: getattr(config, name) for name in _TOP_LEVEL_KEYS})
        return replace(config, world=validate_world(config.world), agent=config.agent.sanitized(), **run)

    def _spawn_population(self, config: SimulationConfig) -> List[Agent]:
        world = config.world
        settings = config.agent
        agents: List[Agent] = []
        for agent_id in range(world.agent_count):
            position = Vector2(
                self._rng.next_range(0.0, world.width),
                self._rng.next_range(0.0, world.height),
            )
            velocity = self._rng.next_unit_circle() * self._rng.next_range(settings.min_speed, settings.max_speed)
            agents.append(
                create_agent(agent_id, position, velocity, settings, phase=self._rng.next_angle())
            )
        return agents

    @staticmethod
    def _make_grid(cell_size: float) -> SpatialGrid | None:
        if cell_size > 0.0:
            return SpatialGrid(cell_size)
        return None

    def _idle_metrics(self) -> TickMetrics:
        return metrics_system.create_metrics(
            self._tick, self._sim_time, self._agents, pipeline.TickStats(), 0.0
        )

    def _agent_snapshot(self, agent: Agent) -> Dict[str, Any]:
        forces = agent.forces
        total = total_force(forces, agent.variation)
        return {
            "id": agent.id,
            "x": agent.position.x,
            "y": agent.position.y,
            "vx": agent.velocity.x,
            "vy": agent.velocity.y,
            "speed": agent.velocity.length(),
            "heading": heading_from_velocity(agent.velocity),
            "neighbors": sorted(agent.neighbor_ids),
            "forces": {
                "cohesion": [forces.cohesion.x, forces.cohesion.y],
                "separation": [forces.separation.x, forces.separation.y],
                "alignment": [forces.alignment.x, forces.alignment.y],
                "boundary": [forces.boundary.x, forces.boundary.y],
                "total": [total.x, total.y],
            },
            "variation": {
                "cohesion": agent.variation.cohesion,
                "separation": agent.variation.separation,
                "alignment": agent.variation.alignment,
            },
        }

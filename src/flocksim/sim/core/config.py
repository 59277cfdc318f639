from __future__ import annotations

import math
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict

import yaml


class BoundaryPolicy(str, Enum):
    QUADRATIC = "quadratic"
    FIXED = "fixed"


@dataclass(frozen=True)
class WorldConfig:
    width: float = 1000.0
    height: float = 1000.0
    agent_count: int = 50
    # Simulated time units per millisecond of wall clock (about one unit per frame at 60 fps).
    time_scale: float = 0.06


@dataclass
class AgentSettings:
    max_speed: float = 4.0
    min_speed: float = 3.0
    detection_range: float = 150.0
    fov_angle: float = 2.0 * math.pi
    # Explicit half-angles override fov_angle / 2 when set.
    fov_left: float | None = None
    fov_right: float | None = None
    separation_coefficient: float = 1.0
    cohere_coefficient: float = 1.0
    align_coefficient: float = 1.0

    def half_angles(self) -> tuple[float, float]:
        half = _clamp_half_angle(self.fov_angle * 0.5)
        left = half if self.fov_left is None else _clamp_half_angle(self.fov_left)
        right = half if self.fov_right is None else _clamp_half_angle(self.fov_right)
        return left, right

    def sanitized(self) -> "AgentSettings":
        max_speed = max(0.0, float(self.max_speed))
        return replace(
            self,
            max_speed=max_speed,
            min_speed=min(max(0.0, float(self.min_speed)), max_speed),
            detection_range=max(0.0, float(self.detection_range)),
            fov_angle=max(0.0, min(2.0 * math.pi, float(self.fov_angle))),
            separation_coefficient=max(0.0, float(self.separation_coefficient)),
            cohere_coefficient=max(0.0, float(self.cohere_coefficient)),
            align_coefficient=max(0.0, float(self.align_coefficient)),
        )


@dataclass
class RuleConfig:
    cohesion_factor: float = 500.0
    separation_distance: float = 15.0
    alignment_factor: float = 50.0


@dataclass
class BoundaryConfig:
    margin: float = 20.0
    policy: BoundaryPolicy = BoundaryPolicy.QUADRATIC
    # QUADRATIC: peak push is max_speed * force_fraction.
    force_fraction: float = 0.25
    # FIXED: constant push per edge inside the margin.
    fixed_force: float = 10.0


@dataclass
class PlaceConfig:
    enabled: bool = False
    factor: float = 100.0
    radius_fraction: float = 1.0 / 3.0


@dataclass
class VariationConfig:
    enabled: bool = False
    frequency: float = 0.005
    amplitude: float = 0.5
    cohesion_offset: float = 0.4 * math.pi
    separation_offset: float = 1.2 * math.pi
    alignment_offset: float = 2.0 * math.pi


@dataclass
class SimulationConfig:
    time_step: float = 1.0
    max_dt: float = 50.0
    seed: int = 42
    # 0 disables the spatial grid and falls back to a full scan.
    cell_size: float = 0.0
    config_version: str = "v1"
    world: WorldConfig = field(default_factory=WorldConfig)
    agent: AgentSettings = field(default_factory=AgentSettings)
    rules: RuleConfig = field(default_factory=RuleConfig)
    boundary: BoundaryConfig = field(default_factory=BoundaryConfig)
    place: PlaceConfig = field(default_factory=PlaceConfig)
    variation: VariationConfig = field(default_factory=VariationConfig)

    @staticmethod
    def from_yaml(path: Path) -> "SimulationConfig":
        data = yaml.safe_load(Path(path).read_text()) or {}
        return load_config(data)


@dataclass
class AppConfig:
    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    broadcast_interval: int = 2


_SECTIONS = {"world", "agent", "rules", "boundary", "place", "variation"}


def _clamp_half_angle(value: float) -> float:
    return max(0.0, min(math.pi, float(value)))


def _finite_float(name: str, value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name} must be a number, got {value!r}") from exc
    if not math.isfinite(number):
        raise ValueError(f"{name} must be finite, got {value!r}")
    return number


def _whole_number(name: str, value: Any) -> int:
    number = _finite_float(name, value)
    if not number.is_integer():
        raise ValueError(f"{name} must be a whole number, got {value!r}")
    return int(number)


def coerce_run_settings(values: Dict[str, Any]) -> Dict[str, Any]:
    """Convert the top-level run settings, raising ``ValueError`` on bad values."""
    coerced = dict(values)
    for name in ("time_step", "max_dt", "cell_size"):
        if name in coerced:
            coerced[name] = _finite_float(name, coerced[name])
    if "seed" in coerced:
        coerced["seed"] = _whole_number("seed", coerced["seed"])
    if "config_version" in coerced:
        coerced["config_version"] = str(coerced["config_version"])
    return coerced


def coerce_section(section: Any) -> Any:
    """Convert the float and bool fields of a config section by their defaults."""
    changes: Dict[str, Any] = {}
    for item in fields(section):
        value = getattr(section, item.name)
        if isinstance(item.default, bool):
            changes[item.name] = bool(value)
        elif isinstance(item.default, float):
            changes[item.name] = _finite_float(item.name, value)
    return replace(section, **changes)


def validate_world(world: WorldConfig) -> WorldConfig:
    """Return ``world`` with numeric fields converted, or raise ``ValueError``."""
    width = _finite_float("width", world.width)
    height = _finite_float("height", world.height)
    if not (width > 0.0 and height > 0.0):
        raise ValueError(f"World bounds must be positive, got {world.width}x{world.height}")
    agent_count = _whole_number("agent_count", world.agent_count)
    if agent_count < 0:
        raise ValueError(f"Agent count must be non-negative, got {world.agent_count}")
    time_scale = _finite_float("time_scale", world.time_scale)
    return replace(world, width=width, height=height, agent_count=agent_count, time_scale=time_scale)


def load_config(raw: Dict[str, Any]) -> SimulationConfig:
    world = validate_world(WorldConfig(**raw.get("world", {})))
    agent = AgentSettings(**raw.get("agent", {}))
    rules = coerce_section(RuleConfig(**raw.get("rules", {})))
    boundary_raw = dict(raw.get("boundary", {}))
    if "policy" in boundary_raw:
        boundary_raw["policy"] = BoundaryPolicy(boundary_raw["policy"])
    boundary = coerce_section(BoundaryConfig(**boundary_raw))
    place = coerce_section(PlaceConfig(**raw.get("place", {})))
    variation = coerce_section(VariationConfig(**raw.get("variation", {})))
    sim_values = coerce_run_settings({k: v for k, v in raw.items() if k not in _SECTIONS})
    return SimulationConfig(
        world=world,
        agent=agent,
        rules=rules,
        boundary=boundary,
        place=place,
        variation=variation,
        **sim_values,
    )

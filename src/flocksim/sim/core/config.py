from __future__ import annotations

import math
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import List

import yaml

DEFAULT_GROUPS = ["black", "yellow", "blue", "magenta", "green", "red", "cyan"]


class ConfigurationError(ValueError):
    """Raised when a simulation config cannot produce a valid run."""


def _is_finite_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


@dataclass
class SpeedConfig:
    min_speed: float = 5.0
    max_speed: float = 6.0


@dataclass
class RuleWeights:
    separation: float = 0.1
    alignment: float = 0.05
    cohesion: float = 0.005
    evasion: float = 1.3
    target: float = 0.0005
    leader: float = 0.0005


@dataclass
class SimulationConfig:
    screen_width: float = 1400.0
    screen_height: float = 1000.0
    boid_count: int = 800
    speed: SpeedConfig = field(default_factory=SpeedConfig)
    weights: RuleWeights = field(default_factory=RuleWeights)
    # Distance from a wall at which evasion starts pushing back.
    margin: float = 140.0
    steering_distance: float = 25.0
    influence_distance: float = 75.0
    groups: List[str] = field(default_factory=lambda: list(DEFAULT_GROUPS))
    wall_evasion: bool = True
    tick_rate: float = 60.0
    seed: int = 42
    config_version: str = "v1"

    @property
    def cell_size(self) -> float:
        return max(self.steering_distance, self.influence_distance)

    @property
    def time_step(self) -> float:
        return 0.0 if self.tick_rate <= 0 else 1.0 / self.tick_rate

    def validate(self) -> "SimulationConfig":
        problems = self._type_problems()
        if problems:
            raise ConfigurationError("invalid simulation config: " + "; ".join(problems))
        if not self.screen_width > 0 or not self.screen_height > 0:
            problems.append(
                f"screen dimensions must be positive (got {self.screen_width} x {self.screen_height})"
            )
        if self.boid_count < 1:
            problems.append(f"boid_count must be at least 1 (got {self.boid_count})")
        speed = self.speed
        if speed.min_speed < 0:
            problems.append(f"speed.min_speed must not be negative (got {speed.min_speed})")
        if not speed.max_speed > 0:
            problems.append(f"speed.max_speed must be positive (got {speed.max_speed})")
        if speed.min_speed > speed.max_speed:
            problems.append(
                f"speed.min_speed ({speed.min_speed}) exceeds speed.max_speed ({speed.max_speed})"
            )
        if not self.steering_distance > 0:
            problems.append(f"steering_distance must be positive (got {self.steering_distance})")
        if self.steering_distance >= self.influence_distance:
            problems.append(
                f"steering_distance ({self.steering_distance}) must be smaller than "
                f"influence_distance ({self.influence_distance})"
            )
        if self.margin < 0:
            problems.append(f"margin must not be negative (got {self.margin})")
        for weight in fields(self.weights):
            value = getattr(self.weights, weight.name)
            if value < 0:
                problems.append(f"weights.{weight.name} must be a non-negative number (got {value})")
        if not self.tick_rate > 0:
            problems.append(f"tick_rate must be positive (got {self.tick_rate})")
        if not self.groups:
            problems.append("groups must name at least one group")
        if problems:
            raise ConfigurationError("invalid simulation config: " + "; ".join(problems))
        return self

    def _type_problems(self) -> List[str]:
        problems: List[str] = []
        scalar_names = (
            "screen_width",
            "screen_height",
            "margin",
            "steering_distance",
            "influence_distance",
            "tick_rate",
        )
        numbers = {name: getattr(self, name) for name in scalar_names}
        if isinstance(self.speed, SpeedConfig):
            numbers.update({f"speed.{f.name}": getattr(self.speed, f.name) for f in fields(self.speed)})
        else:
            problems.append(f"speed must be a SpeedConfig (got {type(self.speed).__name__})")
        if isinstance(self.weights, RuleWeights):
            numbers.update({f"weights.{f.name}": getattr(self.weights, f.name) for f in fields(self.weights)})
        else:
            problems.append(f"weights must be a RuleWeights (got {type(self.weights).__name__})")
        for name, value in numbers.items():
            if not _is_finite_number(value):
                problems.append(f"{name} must be a finite number (got {value!r})")
        for name in ("boid_count", "seed"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool):
                problems.append(f"{name} must be an integer (got {value!r})")
        if not isinstance(self.groups, list) or not all(isinstance(name, str) for name in self.groups):
            problems.append(f"groups must be a list of colour names (got {self.groups!r})")
        return problems

    @staticmethod
    def from_yaml(path: Path) -> "SimulationConfig":
        data = yaml.safe_load(Path(path).read_text()) or {}
        return load_config(data)


@dataclass
class AppConfig:
    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    broadcast_interval: int = 2
    # Unacknowledged snapshots kept for viewers; older ones are dropped.
    snapshot_backlog: int = 120


def load_config(raw: dict) -> SimulationConfig:
    if not isinstance(raw, dict):
        raise ConfigurationError(f"config root must be a mapping, got {type(raw).__name__}")
    try:
        speed = SpeedConfig(**(raw.get("speed") or {}))
        weights = RuleWeights(**(raw.get("weights") or {}))
        sim_values = {k: v for k, v in raw.items() if k not in {"speed", "weights"}}
        if isinstance(sim_values.get("groups"), list):
            sim_values["groups"] = [str(name) for name in sim_values["groups"]]
        config = SimulationConfig(speed=speed, weights=weights, **sim_values)
    except TypeError as exc:
        raise ConfigurationError(f"unknown or malformed config key: {exc}") from exc
    return config.validate()

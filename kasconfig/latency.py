"""API server settings tied to the worker latency profile."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any

from kasconfig.unstructured import set_nested_field


class WorkerLatencyProfile(str, enum.Enum):
    DEFAULT = "Default"
    MEDIUM_UPDATE_AVERAGE_REACTION = "MediumUpdateAverageReaction"
    LOW_UPDATE_SLOW_REACTION = "LowUpdateSlowReaction"


DEFAULT_NOT_READY_TOLERATION_SECONDS = 300
MEDIUM_NOT_READY_TOLERATION_SECONDS = 60
LOW_NOT_READY_TOLERATION_SECONDS = 60
DEFAULT_UNREACHABLE_TOLERATION_SECONDS = 300
MEDIUM_UNREACHABLE_TOLERATION_SECONDS = 60
LOW_UNREACHABLE_TOLERATION_SECONDS = 60


@dataclass(frozen=True)
class LatencyConfigProfile:
    """A configuration path and the value it takes under each latency profile."""

    config_path: tuple[str, ...]
    profile_config_values: dict[WorkerLatencyProfile, str] = field(default_factory=dict)


LATENCY_CONFIGS = (
    LatencyConfigProfile(
        config_path=("apiServerArguments", "default-not-ready-toleration-seconds"),
        profile_config_values={
            WorkerLatencyProfile.DEFAULT: str(DEFAULT_NOT_READY_TOLERATION_SECONDS),
            WorkerLatencyProfile.MEDIUM_UPDATE_AVERAGE_REACTION: str(
                MEDIUM_NOT_READY_TOLERATION_SECONDS
            ),
            WorkerLatencyProfile.LOW_UPDATE_SLOW_REACTION: str(LOW_NOT_READY_TOLERATION_SECONDS),
        },
    ),
    LatencyConfigProfile(
        config_path=("apiServerArguments", "default-unreachable-toleration-seconds"),
        profile_config_values={
            WorkerLatencyProfile.DEFAULT: str(DEFAULT_UNREACHABLE_TOLERATION_SECONDS),
            WorkerLatencyProfile.MEDIUM_UPDATE_AVERAGE_REACTION: str(
                MEDIUM_UNREACHABLE_TOLERATION_SECONDS
            ),
            WorkerLatencyProfile.LOW_UPDATE_SLOW_REACTION: str(
                LOW_UNREACHABLE_TOLERATION_SECONDS
            ),
        },
    ),
)


def config_values_for_profile(profile) -> dict[str, Any]:
    """Return the configuration fragment for a profile; unknown profiles raise ValueError."""
    profile = WorkerLatencyProfile(profile)
    observed: dict[str, Any] = {}
    for config in LATENCY_CONFIGS:
        set_nested_field(observed, [config.profile_config_values[profile]], *config.config_path)
    return observed
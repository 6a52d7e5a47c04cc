"""Upgradeable condition derived from the cluster feature set."""

from __future__ import annotations

import json
from typing import Callable

from kasconfig.listers import InMemoryLister
from kasconfig.model import (
    CONDITION_FALSE,
    CONDITION_TRUE,
    FEATURE_SET_LATENCY_SENSITIVE,
    FeatureGate,
    OperatorCondition,
)

_FEATURE_SETS_ALLOWING_UPGRADE = frozenset({"", FEATURE_SET_LATENCY_SENSITIVE})
_CONDITION_TYPE = "FeatureGatesUpgradeable"


def new_upgradeable_condition(feature_gate: FeatureGate) -> OperatorCondition:
    """Return the condition saying whether the feature set allows upgrades."""
    feature_set = feature_gate.feature_set
    if feature_set in _FEATURE_SETS_ALLOWING_UPGRADE:
        return OperatorCondition(
            type=_CONDITION_TYPE,
            status=CONDITION_TRUE,
            reason="AllowedFeatureGates_" + feature_set,
        )
    return OperatorCondition(
        type=_CONDITION_TYPE,
        status=CONDITION_FALSE,
        reason="RestrictedFeatureGates_" + feature_set,
        message=f"{json.dumps(feature_set, ensure_ascii=False)} does not allow updates",
    )


class FeatureUpgradeableController:
    """Marks the operator not upgradeable when a restricted feature set is in use."""

    def __init__(
        self,
        feature_gate_lister: InMemoryLister,
        update_condition: Callable[[OperatorCondition], None],
    ) -> None:
        self.feature_gate_lister = feature_gate_lister
        self.update_condition = update_condition

    def sync(self) -> OperatorCondition:
        feature_gate = self.feature_gate_lister.get("cluster")
        condition = new_upgradeable_condition(feature_gate)
        self.update_condition(condition)
        return condition
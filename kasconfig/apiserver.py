"""Observers for CORS origins and API server termination timing."""

from __future__ import annotations

import json
import logging
from typing import Any

from kasconfig.model import (
    PLATFORM_AWS,
    TOPOLOGY_SINGLE_REPLICA,
    Infrastructure,
    NotFoundError,
)
from kasconfig.unstructured import (
    nested_string,
    nested_string_slice,
    pruned,
    set_nested_field,
)

logger = logging.getLogger(__name__)

CLUSTER_DEFAULT_CORS_ALLOWED_ORIGINS = (
    r"//127\.0\.0\.1(:|$)",
    r"//localhost(:|$)",
)

_CORS_ALLOWED_ORIGINS_PATH = ("corsAllowedOrigins",)
SHUTDOWN_DELAY_DURATION_PATH = ("apiServerArguments", "shutdown-delay-duration")
GRACEFUL_TERMINATION_DURATION_PATH = ("gracefulTerminationDuration",)


def _quoted_list(items: list[str]) -> str:
    return "[" + " ".join(json.dumps(item, ensure_ascii=False) for item in items) + "]"


def observe_additional_cors_allowed_origins(listers, recorder, existing_config):
    """Merge the cluster default CORS origins with the user supplied ones."""
    errs: list[Exception] = []
    default_config: dict[str, Any] = {}
    set_nested_field(
        default_config, list(CLUSTER_DEFAULT_CORS_ALLOWED_ORIGINS), *_CORS_ALLOWED_ORIGINS_PATH
    )

    try:
        current, _ = nested_string_slice(existing_config, *_CORS_ALLOWED_ORIGINS_PATH)
    except TypeError as err:
        return default_config, [err]
    current_set = set(current) | set(CLUSTER_DEFAULT_CORS_ALLOWED_ORIGINS)

    try:
        apiserver = listers.apiserver.get("cluster")
    except NotFoundError:
        logger.warning("apiserver.config.openshift.io/cluster: not found")
        return default_config, errs
    except Exception:
        return existing_config, errs

    new_set = set(CLUSTER_DEFAULT_CORS_ALLOWED_ORIGINS) | set(
        apiserver.additional_cors_allowed_origins
    )
    new_list = sorted(new_set)
    observed: dict[str, Any] = {}
    set_nested_field(observed, new_list, *_CORS_ALLOWED_ORIGINS_PATH)

    if current_set != new_set:
        recorder.eventf(
            "ObserveAdditionalCORSAllowedOrigins",
            "corsAllowedOrigins changed to %s",
            _quoted_list(new_list),
        )
    return observed, errs


def _infrastructure(listers) -> Infrastructure:
    try:
        return listers.infrastructure.get("cluster")
    except NotFoundError:
        return Infrastructure()


def observe_shutdown_delay_duration(listers, recorder, existing_config):
    """Override shutdown-delay-duration on platforms that need a different value."""
    errs: list[Exception] = []
    path = SHUTDOWN_DELAY_DURATION_PATH
    try:
        infra = _infrastructure(listers)
    except Exception as err:
        return pruned(existing_config, path), errs + [err]

    if infra.control_plane_topology == TOPOLOGY_SINGLE_REPLICA:
        observed_value = "0s"
    elif infra.platform_type == PLATFORM_AWS:
        observed_value = "129s"
    else:
        return {}, errs

    current_value = ""
    try:
        current_slice, _ = nested_string_slice(existing_config, *path)
    except TypeError as err:
        errs.append(
            ValueError(f"unable to extract shutdown delay duration from the existing config: {err}")
        )
        current_slice = []
    if current_slice:
        current_value = current_slice[0]

    if current_value != observed_value:
        observed: dict[str, Any] = {}
        set_nested_field(observed, [observed_value], *path)
        return pruned(observed, path), errs
    return pruned(existing_config, path), errs


def observe_graceful_termination_duration(listers, recorder, existing_config):
    """Set gracefulTerminationDuration according to the current platform."""
    errs: list[Exception] = []
    path = GRACEFUL_TERMINATION_DURATION_PATH
    try:
        infra = _infrastructure(listers)
    except Exception as err:
        return pruned(existing_config, path), errs + [err]

    if infra.control_plane_topology == TOPOLOGY_SINGLE_REPLICA:
        observed_value = "15"
    elif infra.platform_type == PLATFORM_AWS:
        observed_value = "194"
    else:
        return {}, errs

    try:
        current_value, _ = nested_string(existing_config, *path)
    except TypeError as err:
        errs.append(
            ValueError(
                "unable to extract gracefulTerminationDuration from the existing config: "
                f"{err}, path = {list(path)}"
            )
        )
        current_value = ""

    if current_value != observed_value:
        observed: dict[str, Any] = {}
        set_nested_field(observed, observed_value, *path)
        return pruned(observed, path), errs
    return pruned(existing_config, path), errs
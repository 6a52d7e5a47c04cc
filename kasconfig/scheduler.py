"""Observer for the cluster default node selector."""

from __future__ import annotations

import json
import logging
from typing import Any

from kasconfig.model import NotFoundError
from kasconfig.unstructured import nested_string, set_nested_field

logger = logging.getLogger(__name__)

_DEFAULT_NODE_SELECTOR_PATH = ("projectConfig", "defaultNodeSelector")


def observe_default_node_selector(listers, recorder, existing_config):
    """Read defaultNodeSelector from the cluster scheduler configuration."""
    errs: list[Exception] = []
    prev_observed: dict[str, Any] = {}

    try:
        current, _ = nested_string(existing_config, *_DEFAULT_NODE_SELECTOR_PATH)
    except TypeError as err:
        return prev_observed, [err]
    if current:
        set_nested_field(prev_observed, current, *_DEFAULT_NODE_SELECTOR_PATH)

    observed: dict[str, Any] = {}
    try:
        scheduler = listers.scheduler.get("cluster")
    except NotFoundError:
        logger.warning("scheduler.config.openshift.io/cluster: not found")
        return observed, errs
    except Exception:
        return prev_observed, errs

    selector = scheduler.default_node_selector
    if selector:
        set_nested_field(observed, selector, *_DEFAULT_NODE_SELECTOR_PATH)
        if selector != current:
            recorder.eventf(
                "ObserveDefaultNodeSelectorChanged",
                "default node selector changed to %s",
                json.dumps(selector, ensure_ascii=False),
            )
    return observed, errs
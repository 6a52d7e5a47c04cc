"""Observers for image registry settings of the API server."""

from __future__ import annotations

import json
import logging
from typing import Any

from kasconfig.model import NotFoundError
from kasconfig.unstructured import (
    nested_slice,
    nested_string,
    nested_string_slice,
    set_nested_field,
)

logger = logging.getLogger(__name__)

_INTERNAL_HOSTNAME_PATH = ("imagePolicyConfig", "internalRegistryHostname")
_EXTERNAL_HOSTNAMES_PATH = ("imagePolicyConfig", "externalRegistryHostnames")
_ALLOWED_REGISTRIES_PATH = ("imagePolicyConfig", "allowedRegistriesForImport")


def _registry_to_dict(location) -> dict[str, Any]:
    encoded: dict[str, Any] = {"domainName": location.domain_name}
    if location.insecure:
        encoded["insecure"] = True
    return encoded


def _go_list(items) -> str:
    return "[" + " ".join(str(item) for item in items) + "]"


def _go_registry(location) -> str:
    return "{%s %s}" % (location.domain_name, "true" if location.insecure else "false")


def observe_internal_registry_hostname(listers, recorder, existing_config):
    """Read the internal registry hostname published by the registry operator."""
    errs: list[Exception] = []
    prev_observed: dict[str, Any] = {}

    try:
        current, _ = nested_string(existing_config, *_INTERNAL_HOSTNAME_PATH)
    except TypeError as err:
        return prev_observed, [err]
    if current:
        set_nested_field(prev_observed, current, *_INTERNAL_HOSTNAME_PATH)

    observed: dict[str, Any] = {}
    try:
        image = listers.image.get("cluster")
    except NotFoundError:
        logger.warning("image.config.openshift.io/cluster: not found")
        return observed, errs
    except Exception:
        return prev_observed, errs

    hostname = image.internal_registry_hostname
    if hostname:
        set_nested_field(observed, hostname, *_INTERNAL_HOSTNAME_PATH)
        if hostname != current:
            recorder.eventf(
                "ObserveInternalRegistryHostnameChanged",
                "Internal registry hostname changed to %s",
                json.dumps(hostname, ensure_ascii=False),
            )
    return observed, errs


def observe_external_registry_hostnames(listers, recorder, existing_config):
    """Combine user provided and generated external registry hostnames, user ones first."""
    errs: list[Exception] = []
    prev_observed: dict[str, Any] = {}

    try:
        existing, _ = nested_string_slice(existing_config, *_EXTERNAL_HOSTNAMES_PATH)
    except TypeError as err:
        return prev_observed, [err]
    if existing:
        set_nested_field(prev_observed, existing, *_EXTERNAL_HOSTNAMES_PATH)

    observed: dict[str, Any] = {}
    try:
        image = listers.image.get("cluster")
    except NotFoundError:
        logger.warning("image.config.openshift.io/cluster: not found")
        return observed, errs
    except Exception as err:
        return prev_observed, errs + [err]

    hostnames = list(image.external_registry_hostnames) + list(
        image.status_external_registry_hostnames
    )
    if hostnames:
        set_nested_field(observed, hostnames, *_EXTERNAL_HOSTNAMES_PATH)

    if existing != hostnames:
        recorder.eventf(
            "ObserveExternalRegistryHostnameChanged",
            "External registry hostname changed to %s",
            _go_list(hostnames),
        )
    return observed, errs


def observe_allowed_registries_for_import(listers, recorder, existing_config):
    """Map the allowed registries for image import into the configuration."""
    errs: list[Exception] = []
    prev_observed: dict[str, Any] = {}

    try:
        existing, _ = nested_slice(existing_config, *_ALLOWED_REGISTRIES_PATH)
    except TypeError as err:
        return prev_observed, [err]
    if existing:
        set_nested_field(prev_observed, existing, *_ALLOWED_REGISTRIES_PATH)

    observed: dict[str, Any] = {}
    try:
        image = listers.image.get("cluster")
    except NotFoundError:
        logger.warning("image.config.openshift.io/cluster: not found")
        return observed, errs
    except Exception as err:
        return prev_observed, errs + [err]

    allowed = image.allowed_registries_for_import
    if allowed:
        set_nested_field(
            observed, [_registry_to_dict(location) for location in allowed], *_ALLOWED_REGISTRIES_PATH
        )

    try:
        new_allowed, _ = nested_slice(observed, *_ALLOWED_REGISTRIES_PATH)
        changed = existing != new_allowed
    except TypeError:
        changed = True
    if changed:
        recorder.eventf(
            "ObserveAllowedRegistriesForImport",
            "Allowed registries for import changed to %s",
            _go_list(_go_registry(location) for location in allowed),
        )
    return observed, errs
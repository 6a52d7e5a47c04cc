"""Observers for OAuth metadata and the service account issuer."""

from __future__ import annotations

import dataclasses
import json
import logging
import re
from typing import Any, Callable

from kasconfig.model import (
    AUTH_TYPE_INTEGRATED_OAUTH,
    Authentication,
    Infrastructure,
    KubeAPIServer,
    NotFoundError,
    ResourceLocation,
    ServiceAccountIssuerStatus,
)
from kasconfig.unstructured import (
    nested_string,
    nested_string_slice,
    pruned,
    set_nested_field,
)

logger = logging.getLogger(__name__)

TARGET_NAMESPACE = "openshift-kube-apiserver"
OAUTH_METADATA_FILE_PATH = (
    "/etc/kubernetes/static-pod-resources/configmaps/oauth-metadata/oauthMetadata"
)
CONFIG_NAMESPACE = "openshift-config"
MANAGED_NAMESPACE = "openshift-config-managed"

_METADATA_FILE_PATH = ("authConfig", "oauthMetadataFile")

SERVICE_ACCOUNT_ISSUER_PATH = ("apiServerArguments", "service-account-issuer")
AUDIENCES_PATH = ("apiServerArguments", "api-audiences")
JWKS_URI_PATH = ("apiServerArguments", "service-account-jwks-uri")


def _default_auth_config(auth: Authentication) -> Authentication:
    # Work on a copy so the stored resource stays untouched.
    if not auth.type:
        return dataclasses.replace(auth, type=AUTH_TYPE_INTEGRATED_OAUTH)
    return dataclasses.replace(auth)


def observe_auth_metadata(listers, recorder, existing_config):
    """Point authConfig.oauthMetadataFile at the synced OAuth metadata config map."""
    errs: list[Exception] = []
    prev_observed: dict[str, Any] = {}

    try:
        current, _ = nested_string(existing_config, *_METADATA_FILE_PATH)
    except TypeError as err:
        errs.append(err)
        current = ""
    if current:
        set_nested_field(prev_observed, current, *_METADATA_FILE_PATH)

    observed: dict[str, Any] = {}
    try:
        stored = listers.authentication.get("cluster")
    except NotFoundError:
        logger.warning("authentications.config.openshift.io/cluster: not found")
        return observed, errs
    except Exception as err:
        errs.append(err)
        return prev_observed, errs

    auth = _default_auth_config(stored)

    status_config_map = ""
    if auth.integrated_oauth_metadata_name and auth.type == AUTH_TYPE_INTEGRATED_OAUTH:
        status_config_map = auth.integrated_oauth_metadata_name
    else:
        logger.debug("no integrated oauth metadata configmap observed from status")

    # The config map named in the spec takes precedence over the status one.
    source_namespace = ""
    source_config_map = ""
    if auth.oauth_metadata_name:
        source_config_map = auth.oauth_metadata_name
        source_namespace = CONFIG_NAMESPACE
    elif status_config_map:
        source_config_map = status_config_map
        source_namespace = MANAGED_NAMESPACE
    else:
        logger.debug("no authentication config metadata specified")

    # An empty source removes whatever was synced to the destination before.
    try:
        listers.resource_syncer.sync_config_map(
            ResourceLocation(namespace=TARGET_NAMESPACE, name="oauth-metadata"),
            ResourceLocation(namespace=source_namespace, name=source_config_map),
        )
    except Exception as err:
        errs.append(err)
        return prev_observed, errs

    if not source_config_map:
        return observed, errs

    set_nested_field(observed, OAUTH_METADATA_FILE_PATH, *_METADATA_FILE_PATH)
    return observed, errs


def observe_service_account_issuer(listers, recorder, existing_config):
    """Set the service account issuer, audiences and JWKS URI of the API server."""
    ret, errs = observed_issuer_config(
        existing_config,
        listers.kube_apiserver_operator.get,
        listers.infrastructure.get,
        recorder,
    )
    return pruned(ret, SERVICE_ACCOUNT_ISSUER_PATH, AUDIENCES_PATH, JWKS_URI_PATH), errs


def _issuers_changed(kas_issuers: list[str], operator_issuers: list[str]) -> bool:
    return set(kas_issuers) != set(operator_issuers)


def _trusted_issuers(issuers: list[ServiceAccountIssuerStatus]) -> list[str]:
    return [issuer.name for issuer in issuers if issuer.expiration_time is not None]


def _active_issuer(issuers: list[ServiceAccountIssuerStatus]) -> str:
    return next((issuer.name for issuer in issuers if issuer.expiration_time is None), "")


def observed_issuer_config(
    existing_config,
    get_operator: Callable[[str], KubeAPIServer],
    get_infrastructure: Callable[[str], Infrastructure],
    recorder,
):
    """Return the issuer fragment of the API server configuration and any errors."""
    errs: list[Exception] = []
    issuer_changed = False
    existing_active = ""
    new_active = ""
    try:
        try:
            existing_issuers, _ = nested_string_slice(
                existing_config, *SERVICE_ACCOUNT_ISSUER_PATH
            )
        except TypeError as err:
            errs.append(
                ValueError(f"unable to extract service account issuer from unstructured: {err}")
            )
            existing_issuers = []
        if existing_issuers:
            existing_active = existing_issuers[0]

        try:
            operator = get_operator("cluster")
        except NotFoundError:
            logger.warning("kubeapiserver.operators.openshift.io/cluster: not found")
            operator = KubeAPIServer()
        except Exception as err:
            return existing_config, errs + [err]

        new_active = _active_issuer(operator.service_account_issuers)
        try:
            check_issuer(new_active)
        except ValueError as err:
            return existing_config, errs + [err]

        if new_active:
            trusted = _trusted_issuers(operator.service_account_issuers)
            value = [new_active, *trusted]
            issuer_changed = _issuers_changed(existing_issuers, value)
            return {
                "apiServerArguments": {
                    "service-account-issuer": list(value),
                    "api-audiences": list(value),
                }
            }, errs

        # Without an issuer the overrides set issuer and audiences; only point
        # the JWKS URI at the load balancer, which the serving certs cover.
        try:
            infrastructure = get_infrastructure("cluster")
        except Exception as err:
            return existing_config, errs + [err]
        internal_url = infrastructure.api_server_internal_url
        if not internal_url:
            return existing_config, errs + [
                ValueError("APIServerInternalURL missing from infrastructure/cluster")
            ]

        issuer_changed = existing_active != new_active
        return {
            "apiServerArguments": {
                "service-account-jwks-uri": [internal_url + "/openid/v1/jwks"],
            }
        }, errs
    finally:
        if issuer_changed:
            recorder.eventf(
                "ObserveServiceAccountIssuer",
                "ServiceAccount issuer changed from %s to %s",
                existing_active,
                new_active,
            )


_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})(.{0,2})", re.DOTALL)


def _url_error(raw: str, reason: str) -> ValueError:
    return ValueError(f"parse {json.dumps(raw, ensure_ascii=False)}: {reason}")


def _split_scheme(raw: str) -> tuple[str, str]:
    for index, char in enumerate(raw):
        if char.isascii() and char.isalpha():
            continue
        if char.isascii() and (char.isdigit() or char in "+-."):
            if index == 0:
                return "", raw
            continue
        if char == ":":
            if index == 0:
                raise _url_error(raw, "missing protocol scheme")
            return raw[:index], raw[index + 1 :]
        return "", raw
    return "", raw


def _parse_url(raw: str) -> None:
    if any(ord(char) < 0x20 or ord(char) == 0x7F for char in raw):
        raise _url_error(raw, "net/url: invalid control character in URL")
    without_fragment, _, _ = raw.partition("#")
    scheme, rest = _split_scheme(without_fragment)
    rest, _, _ = rest.partition("?")
    if scheme and not rest.startswith("/"):
        return
    if not scheme and not rest.startswith("/"):
        first_segment = rest.split("/", 1)[0]
        if ":" in first_segment:
            raise _url_error(raw, "first path segment in URL cannot contain colon")
    path = rest
    if rest.startswith("//"):
        authority, slash, tail = rest[2:].partition("/")
        path = slash + tail
        host = authority.rpartition("@")[2]
        port = ""
        if host.startswith("["):
            closing = host.find("]")
            if closing < 0:
                raise _url_error(raw, "missing ']' in host")
            after = host[closing + 1 :]
            if after:
                if not after.startswith(":"):
                    raise _url_error(raw, f"invalid port {json.dumps(after)} after host")
                port = after[1:]
        elif ":" in host:
            port = host.rpartition(":")[2]
        if port and not port.isdigit():
            raise _url_error(raw, f"invalid port {json.dumps(':' + port)} after host")
    bad_escape = _ESCAPE.search(path)
    if bad_escape:
        raise _url_error(raw, f"invalid URL escape {json.dumps(bad_escape.group(0))}")


def check_issuer(issuer: str) -> None:
    """Validate the issuer the way the API server does; raise ValueError if invalid."""
    if ":" not in issuer:
        return
    try:
        _parse_url(issuer)
    except ValueError as err:
        raise ValueError(
            f"service-account issuer contained a ':' but was not a valid URL: {err}"
        ) from err
"""Observer for the webhook token authenticator and kubeconfig validation."""

from __future__ import annotations

import base64
import binascii
import json
import logging
from dataclasses import dataclass, field
from typing import Any

import yaml

from kasconfig.model import NotFoundError, ResourceLocation, Secret
from kasconfig.unstructured import nested_slice, set_nested_field

logger = logging.getLogger(__name__)

TARGET_NAMESPACE = "openshift-kube-apiserver"
CONFIG_NAMESPACE = "openshift-config"
SYNCED_SECRET_NAME = "webhook-authenticator"

WEBHOOK_TOKEN_AUTHENTICATOR_PATH = ("apiServerArguments", "authentication-token-webhook-config-file")
WEBHOOK_TOKEN_AUTHENTICATOR_FILE = (
    "/etc/kubernetes/static-pod-resources/secrets/webhook-authenticator/kubeConfig",
)
WEBHOOK_TOKEN_AUTHENTICATOR_VERSION_PATH = (
    "apiServerArguments",
    "authentication-token-webhook-version",
)
WEBHOOK_TOKEN_AUTHENTICATOR_VERSION = ("v1",)


def _aggregate(errors: list[Exception]) -> str:
    messages: list[str] = []
    for error in errors:
        message = str(error)
        if message not in messages:
            messages.append(message)
    if len(messages) == 1:
        return messages[0]
    return "[" + ", ".join(messages) + "]"


def _sync_secret(syncer, destination: ResourceLocation, source: ResourceLocation) -> None:
    try:
        syncer.sync_secret(destination, source)
    except Exception as err:  # retried on the next observation
        logger.warning("failed to sync secret %s/%s: %s", destination.namespace, destination.name, err)


def observe_webhook_token_authenticator(listers, recorder, existing_config):
    """Configure the webhook token authenticator from the cluster authentication resource."""
    errs: list[Exception] = []
    try:
        existing_webhook, _ = nested_slice(existing_config, *WEBHOOK_TOKEN_AUTHENTICATOR_PATH)
    except TypeError as err:
        errs.append(err)
        existing_webhook = []
    existing_configured = bool(existing_webhook)

    observed: dict[str, Any] = {}
    try:
        auth = listers.authentication.get("cluster")
    except NotFoundError:
        return observed, []
    except Exception as err:
        return existing_config, errs + [err]

    secret_name = auth.webhook_kubeconfig_secret or ""
    observed_configured = bool(secret_name)
    destination = ResourceLocation(namespace=TARGET_NAMESPACE, name=SYNCED_SECRET_NAME)

    if observed_configured:
        try:
            kubeconfig_resource = listers.config_secrets.get(secret_name)
        except Exception as err:
            failure = LookupError(f"failed to get secret {CONFIG_NAMESPACE}/{secret_name}: {err}")
            failure.__cause__ = err
            return existing_config, errs + [failure]

        problems = validate_kubeconfig_secret(kubeconfig_resource)
        if problems:
            return existing_config, errs + [
                ValueError(
                    f"secret {CONFIG_NAMESPACE}/{secret_name} is invalid: {_aggregate(problems)}"
                )
            ]

        set_nested_field(
            observed, list(WEBHOOK_TOKEN_AUTHENTICATOR_VERSION), *WEBHOOK_TOKEN_AUTHENTICATOR_VERSION_PATH
        )
        set_nested_field(
            observed, list(WEBHOOK_TOKEN_AUTHENTICATOR_FILE), *WEBHOOK_TOKEN_AUTHENTICATOR_PATH
        )
        _sync_secret(
            listers.resource_syncer,
            destination,
            ResourceLocation(namespace=CONFIG_NAMESPACE, name=secret_name),
        )
    else:
        # Nothing is configured: remove whatever was synced before.
        _sync_secret(listers.resource_syncer, destination, ResourceLocation())

    if observed_configured != existing_configured:
        recorder.eventf(
            "ObserveWebhookTokenAuthenticator",
            "authentication-token webhook configuration status changed from %s to %s",
            str(existing_configured).lower(),
            str(observed_configured).lower(),
        )
    return observed, errs


@dataclass
class _Kubeconfig:
    clusters: dict[str, dict[str, Any]] = field(default_factory=dict)
    users: dict[str, dict[str, Any]] = field(default_factory=dict)
    contexts: dict[str, dict[str, Any]] = field(default_factory=dict)
    current_context: str = ""


_BASE64_FIELDS = {"certificate-authority-data", "client-certificate-data", "client-key-data"}


def _named_entries(document: dict, list_key: str, item_key: str) -> dict[str, dict[str, Any]]:
    entries = document.get(list_key) or []
    if not isinstance(entries, list):
        raise ValueError(f"{list_key} must be a list")
    result: dict[str, dict[str, Any]] = {}
    for entry in entries:
        if not isinstance(entry, dict):
            raise ValueError(f"{list_key} entries must be mappings")
        name = entry.get("name", "")
        if not isinstance(name, str):
            raise ValueError(f"{list_key} entry names must be strings")
        body = entry.get(item_key) or {}
        if not isinstance(body, dict):
            raise ValueError(f"{list_key}[{name}].{item_key} must be a mapping")
        for key, value in body.items():
            if key in _BASE64_FIELDS and value is not None:
                try:
                    body[key] = base64.b64decode(str(value), validate=True)
                except (binascii.Error, ValueError) as err:
                    raise ValueError(f"illegal base64 data in {list_key}[{name}].{key}") from err
        result[name] = body
    return result


def _load_kubeconfig(raw: bytes) -> _Kubeconfig:
    try:
        document = yaml.safe_load(raw)
    except yaml.YAMLError as err:
        raise ValueError(str(err)) from err
    if document is None:
        document = {}
    if not isinstance(document, dict):
        raise ValueError("kubeconfig must be a mapping")
    current = document.get("current-context") or ""
    if not isinstance(current, str):
        raise ValueError("current-context must be a string")
    return _Kubeconfig(
        clusters=_named_entries(document, "clusters", "cluster"),
        users=_named_entries(document, "users", "user"),
        contexts=_named_entries(document, "contexts", "context"),
        current_context=current,
    )


def _format_value(value: Any) -> str:
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, dict):
        return "map[" + " ".join(sorted(str(key) for key in value)) + "]"
    return str(value)


def _required(path: str, detail: str = "") -> ValueError:
    message = f"{path}: Required value"
    return ValueError(f"{message}: {detail}" if detail else message)


def _invalid(path: str, value: Any, detail: str) -> ValueError:
    return ValueError(f"{path}: Invalid value: {_format_value(value)}: {detail}")


def _field_redirect(path: str, value: Any, original: str, replacement: str) -> ValueError:
    target = json.dumps(f"{path}.{replacement}", ensure_ascii=False)
    return _invalid(f"{path}.{original}", value, f"use {target} with the direct content of the file instead")


def _text(entry: dict[str, Any], key: str) -> Any:
    return entry.get(key) or ""


def _validate_clusters(clusters: dict[str, dict[str, Any]]) -> list[Exception]:
    errs: list[Exception] = []
    if len(clusters) != 1:
        errs.append(_invalid("clusters", clusters, "expected a single cluster"))
    for name, cluster in clusters.items():
        path = f"clusters[{name}]"
        if not _text(cluster, "server"):
            errs.append(_required(f"{path}.server"))
        ca_file = _text(cluster, "certificate-authority")
        if ca_file:
            errs.append(
                _field_redirect(path, ca_file, "certificate-authority", "certificate-authority-data")
            )
    return errs


def _validate_users(users: dict[str, dict[str, Any]]) -> list[Exception]:
    errs: list[Exception] = []
    if len(users) != 1:
        errs.append(_invalid("users", users, "expected a single user"))
    for name, user in users.items():
        path = f"users[{name}]"
        if _text(user, "username"):
            if not _text(user, "password"):
                errs.append(_required(f"{path}.password", "required when 'username' is set"))
        elif _text(user, "client-certificate-data"):
            if not _text(user, "client-key-data"):
                errs.append(
                    _required(
                        f"{path}.client-key-data",
                        "required when 'client-certificate-data' is set",
                    )
                )
        elif _text(user, "token"):
            pass
        else:
            errs.append(
                _required(path, "at least one authentication mechanism needs to be configured")
            )

        for original, replacement in (
            ("client-certificate", "client-certificate-data"),
            ("client-key", "client-key-data"),
            ("tokenFile", "token"),
        ):
            value = _text(user, original)
            if value:
                errs.append(_field_redirect(path, value, original, replacement))
    return errs


def _validate_contexts(kubeconfig: _Kubeconfig) -> list[Exception]:
    errs: list[Exception] = []
    current = kubeconfig.current_context
    if not current:
        errs.append(_required("current-context"))
    if len(kubeconfig.contexts) != 1:
        errs.append(_invalid("contexts", kubeconfig.contexts, "expected a single value"))

    selected = kubeconfig.contexts.get(current)
    if selected is None:
        errs.append(
            _invalid("current-context", current, "does not appear to be present in the 'contexts' field")
        )
        return errs

    path = f"contexts[{current}]"
    user = _text(selected, "user")
    if user not in kubeconfig.users:
        errs.append(_invalid(f"{path}.user", user, "this value cannot be found in 'users'"))
    cluster = _text(selected, "cluster")
    if cluster not in kubeconfig.clusters:
        errs.append(_invalid(f"{path}.cluster", cluster, "this value cannot be found in 'clusters'"))
    return errs


def validate_kubeconfig_secret(secret: Secret) -> list[Exception]:
    """Return the problems that keep the secret's kubeconfig from being usable."""
    if "kubeConfig" not in secret.data:
        return [ValueError("missing required 'kubeConfig' key")]
    raw = secret.data["kubeConfig"]
    if not raw:
        return [ValueError("the 'kubeConfig' key is empty")]
    try:
        kubeconfig = _load_kubeconfig(raw)
    except ValueError as err:
        failure = ValueError(f"failed to load kubeconfig: {err}")
        failure.__cause__ = err
        return [failure]

    errs = _validate_clusters(kubeconfig.clusters)
    errs.extend(_validate_users(kubeconfig.users))
    errs.extend(_validate_contexts(kubeconfig))
    return errs
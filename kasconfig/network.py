"""Observers for the cluster network settings of the API server."""

from __future__ import annotations

import ipaddress
from typing import Any, Optional

from kasconfig.model import ExternalIPPolicy, Network, NotFoundError
from kasconfig.unstructured import nested_field, nested_map, set_nested_field

_NETWORK_RESOURCE = "networks.config.openshift.io/cluster"

RESTRICTED_CIDRS_CONFIG_PATH = (
    "admission",
    "pluginConfig",
    "network.openshift.io/RestrictedEndpointsAdmission",
    "configuration",
)
EXTERNAL_IP_RANGER_CONFIG_PATH = (
    "admission",
    "pluginConfig",
    "network.openshift.io/ExternalIPRanger",
    "configuration",
)
SERVICES_SUBNET_CONFIG_PATH = ("servicesSubnet",)
BIND_ADDRESS_CONFIG_PATH = ("servingInfo", "bindAddress")
BIND_NETWORK_CONFIG_PATH = ("servingInfo", "bindNetwork")
SERVICES_NODE_PORT_RANGE_CONFIG_PATH = ("apiServerArguments", "service-node-port-range")

_ADMISSION_API_VERSION = "network.openshift.io/v1"


def _cluster_network(listers, recorder, reason: str) -> Optional[Network]:
    """Return the cluster network resource, or None when it does not exist."""
    try:
        return listers.network.get("cluster")
    except NotFoundError:
        recorder.warningf(reason, "Required %s not found", _NETWORK_RESOURCE)
        return None
    except Exception as err:
        recorder.warningf(reason, "error getting %s: %s", _NETWORK_RESOURCE, err)
        raise


def _cluster_cidrs(listers, recorder) -> list[str]:
    network = _cluster_network(listers, recorder, "ObserveRestrictedCIDRFailed")
    return list(network.cluster_network_cidrs) if network is not None else []


def _service_cidrs(listers, recorder) -> list[str]:
    network = _cluster_network(listers, recorder, "ObserveServiceCIDRFailed")
    return list(network.service_network) if network is not None else []


def _external_ip_policy(listers, recorder) -> Optional[ExternalIPPolicy]:
    network = _cluster_network(listers, recorder, "ObserveExternalIPPolicyFailed")
    return network.external_ip_policy if network is not None else None


def _external_ip_auto_assign_cidrs(listers, recorder) -> list[str]:
    network = _cluster_network(listers, recorder, "ObserveExternalIPAutoAssignCIDRsFailed")
    return list(network.external_ip_auto_assign_cidrs) if network is not None else []


def _service_node_port_range(listers, recorder) -> str:
    network = _cluster_network(listers, recorder, "ObserveServiceNodePortRangeFailed")
    return network.service_node_port_range if network is not None else ""


def _is_ipv6_cidr(cidr: str) -> bool:
    try:
        return ipaddress.ip_network(cidr, strict=False).version == 6
    except ValueError:
        return False


def _extract_previously_observed_config(existing, *paths):
    """Copy the given paths of the existing config into a new dictionary."""
    errs: list[Exception] = []
    previous: dict[str, Any] = {}
    for fields in paths:
        try:
            value, found = nested_field(existing, *fields)
        except TypeError:
            continue
        if not found:
            continue
        try:
            set_nested_field(previous, value, *fields)
        except (TypeError, ValueError) as err:
            errs.append(err)
    return previous, errs


def observe_restricted_cidrs(listers, recorder, existing_config):
    """Configure the RestrictedEndpointsAdmission plugin with cluster and service CIDRs."""
    errs: list[Exception] = []
    path = RESTRICTED_CIDRS_CONFIG_PATH

    admission_config: dict[str, Any] = {}
    try:
        previous, found = nested_map(existing_config, *path)
    except TypeError as err:
        errs.append(err)
        previous, found = {}, False
    if found:
        admission_config = previous
    admission_config["apiVersion"] = _ADMISSION_API_VERSION
    admission_config["kind"] = "RestrictedEndpointsAdmissionConfig"

    try:
        cluster_cidrs = _cluster_cidrs(listers, recorder)
    except Exception as err:
        errs.append(err)
        cluster_cidrs = []
    try:
        service_cidrs = _service_cidrs(listers, recorder)
    except Exception as err:
        errs.append(err)
        service_cidrs = []

    # Without CIDRs keep whatever was configured before.
    if errs or not cluster_cidrs or not service_cidrs:
        previously_observed: dict[str, Any] = {}
        set_nested_field(previously_observed, admission_config, *path)
        return previously_observed, errs

    admission_config["restrictedCIDRs"] = cluster_cidrs + service_cidrs
    observed: dict[str, Any] = {}
    set_nested_field(observed, admission_config, *path)
    return observed, errs


def observe_services_subnet(listers, recorder, existing_config):
    """Generate servicesSubnet and the serving bind address and network."""
    out: dict[str, Any] = {}
    previous, errs = _extract_previously_observed_config(
        existing_config,
        SERVICES_SUBNET_CONFIG_PATH,
        BIND_ADDRESS_CONFIG_PATH,
        BIND_NETWORK_CONFIG_PATH,
    )

    try:
        service_cidrs = _service_cidrs(listers, recorder)
    except Exception as err:
        return previous, errs + [err]

    set_nested_field(out, ",".join(service_cidrs), *SERVICES_SUBNET_CONFIG_PATH)
    bind_address = "0.0.0.0:6443"
    bind_network = "tcp4"
    if len(service_cidrs) == 1 and _is_ipv6_cidr(service_cidrs[0]):
        bind_address = "[::]:6443"
        bind_network = "tcp6"
    set_nested_field(out, bind_address, *BIND_ADDRESS_CONFIG_PATH)
    set_nested_field(out, bind_network, *BIND_NETWORK_CONFIG_PATH)
    return out, errs


def observe_external_ip_policy(listers, recorder, existing_config):
    """Configure the ExternalIPRanger admission plugin from the external IP policy."""
    path = EXTERNAL_IP_RANGER_CONFIG_PATH
    previous, errs = _extract_previously_observed_config(existing_config, path)

    try:
        policy = _external_ip_policy(listers, recorder)
    except Exception as err:
        errs.append(err)
        policy = None
    try:
        auto_external_ips = _external_ip_auto_assign_cidrs(listers, recorder)
    except Exception as err:
        errs.append(err)
        auto_external_ips = []

    if errs:
        return previous, errs

    # Merely creating this configuration enables the plugin, denying all by default.
    admission_config: dict[str, Any] = {
        "apiVersion": _ADMISSION_API_VERSION,
        "kind": "ExternalIPRangerAdmissionConfig",
    }
    cidrs: list[str] = []
    if policy is not None:
        cidrs.extend("!" + cidr for cidr in policy.rejected_cidrs)
        cidrs.extend(policy.allowed_cidrs)
    if cidrs:
        admission_config["externalIPNetworkCIDRs"] = cidrs
    # Auto-assigned external IPs are called ingress IPs by the admission plugin.
    admission_config["allowIngressIP"] = bool(auto_external_ips)

    observed: dict[str, Any] = {}
    set_nested_field(observed, admission_config, *path)
    return observed, errs


def observe_services_node_port_range(listers, recorder, existing_config):
    """Generate the service-node-port-range argument when a range is configured."""
    path = SERVICES_NODE_PORT_RANGE_CONFIG_PATH
    previous, errs = _extract_previously_observed_config(existing_config, path)

    try:
        port_range = _service_node_port_range(listers, recorder)
    except Exception as err:
        return previous, errs + [err]

    # Shrinking a configured range is rejected by resource validation, so an
    # empty value here only happens when no range was ever set.
    if not port_range:
        return {}, errs
    out: dict[str, Any] = {}
    set_nested_field(out, [port_range], *path)
    return out, errs
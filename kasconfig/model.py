"""Cluster resources read by the configuration observers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

PLATFORM_AWS = "AWS"
TOPOLOGY_SINGLE_REPLICA = "SingleReplica"
AUTH_TYPE_INTEGRATED_OAUTH = "IntegratedOAuth"
FEATURE_SET_LATENCY_SENSITIVE = "LatencySensitive"
FEATURE_SET_TECH_PREVIEW = "TechPreviewNoUpgrade"
CONDITION_TRUE = "True"
CONDITION_FALSE = "False"


class NotFoundError(LookupError):
    """A named resource does not exist."""

    def __init__(self, resource: str, name: str) -> None:
        super().__init__(f'{resource} "{name}" not found')
        self.resource = resource
        self.name = name


@dataclass(frozen=True)
class ResourceLocation:
    """Namespace and name of a synced resource."""

    namespace: str = ""
    name: str = ""

    def is_empty(self) -> bool:
        return not self.namespace and not self.name


@dataclass
class APIServer:
    name: str = "cluster"
    additional_cors_allowed_origins: list[str] = field(default_factory=list)


@dataclass
class Infrastructure:
    name: str = "cluster"
    platform_type: str = ""
    control_plane_topology: str = ""
    api_server_url: str = ""
    api_server_internal_url: str = ""


@dataclass
class Authentication:
    name: str = "cluster"
    type: str = ""
    oauth_metadata_name: str = ""
    integrated_oauth_metadata_name: str = ""
    webhook_kubeconfig_secret: Optional[str] = None


@dataclass
class RegistryLocation:
    domain_name: str = ""
    insecure: bool = False


@dataclass
class Image:
    name: str = "cluster"
    internal_registry_hostname: str = ""
    external_registry_hostnames: list[str] = field(default_factory=list)
    status_external_registry_hostnames: list[str] = field(default_factory=list)
    allowed_registries_for_import: list[RegistryLocation] = field(default_factory=list)


@dataclass
class ExternalIPPolicy:
    allowed_cidrs: list[str] = field(default_factory=list)
    rejected_cidrs: list[str] = field(default_factory=list)


@dataclass
class Network:
    name: str = "cluster"
    cluster_network_cidrs: list[str] = field(default_factory=list)
    service_network: list[str] = field(default_factory=list)
    service_node_port_range: str = ""
    external_ip_policy: Optional[ExternalIPPolicy] = None
    external_ip_auto_assign_cidrs: list[str] = field(default_factory=list)


@dataclass
class Scheduler:
    name: str = "cluster"
    default_node_selector: str = ""


@dataclass
class FeatureGate:
    name: str = "cluster"
    feature_set: str = ""


@dataclass
class ServiceAccountIssuerStatus:
    name: str
    expiration_time: Optional[datetime] = None


@dataclass
class KubeAPIServer:
    name: str = "cluster"
    service_account_issuers: list[ServiceAccountIssuerStatus] = field(default_factory=list)


@dataclass
class OperatorCondition:
    type: str
    status: str
    reason: str = ""
    message: str = ""


@dataclass
class Secret:
    name: str
    namespace: str = ""
    data: dict[str, bytes] = field(default_factory=dict)
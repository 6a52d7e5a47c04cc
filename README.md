# kasconfig

`kasconfig` computes kube-apiserver configuration fragments from
cluster-level configuration resources. An observer is called as
`observer(listers, recorder, existing_config)`. It reads typed resources
through a `Listers` bundle and takes the existing observed configuration, a
nested dictionary. It returns a tuple `(fragment, errors)`: a new configuration
fragment and a list of exceptions. Changes it notices are recorded as events
on the recorder.

## Installation

```
pip install kasconfig
```

To run the test suite:

```
pip install "kasconfig[test]"
pytest
```

## Modules

- `kasconfig.apiserver`: CORS allowed origins, the shutdown delay duration and
  the graceful termination duration (`observe_additional_cors_allowed_origins`,
  `observe_shutdown_delay_duration`, `observe_graceful_termination_duration`).
  Single-replica topologies get `0s` and `15`. AWS gets `129s` and `194`.
  Other platforms get an empty fragment.
- `kasconfig.auth`: the OAuth metadata file and the service account issuers
  (`observe_auth_metadata`, `observe_service_account_issuer`,
  `observed_issuer_config`, `check_issuer`). `check_issuer` raises
  `ValueError` for an issuer that contains a `:` but is not a valid URL.
- `kasconfig.webhook`: the webhook token authenticator
  (`observe_webhook_token_authenticator`). `validate_kubeconfig_secret` checks
  the kubeconfig held in a `Secret` under the `kubeConfig` key. It returns a
  list of problems, which is empty when the kubeconfig is usable.
- `kasconfig.images`: the internal and external registry hostnames and the
  registries allowed for import (`observe_internal_registry_hostname`,
  `observe_external_registry_hostnames`,
  `observe_allowed_registries_for_import`).
- `kasconfig.network`: restricted CIDRs, the services subnet and bind
  address, the external IP policy and the service node port range
  (`observe_restricted_cidrs`, `observe_services_subnet`,
  `observe_external_ip_policy`, `observe_services_node_port_range`).
- `kasconfig.scheduler`: the default node selector
  (`observe_default_node_selector`).
- `kasconfig.latency`: the worker latency profiles (`WorkerLatencyProfile`,
  `LatencyConfigProfile`, `LATENCY_CONFIGS`). `config_values_for_profile`
  returns the toleration-seconds arguments for a profile. An unknown profile
  raises `ValueError`.
- `kasconfig.featuregates`: the `FeatureGatesUpgradeable` operator condition
  (`new_upgradeable_condition`). `FeatureUpgradeableController.sync()` reads
  the `cluster` feature gate and passes the condition to the callback it was
  given.
- `kasconfig.model`: the resource dataclasses (`APIServer`, `Infrastructure`,
  `Authentication`, `Image`, `RegistryLocation`, `Network`,
  `ExternalIPPolicy`, `Scheduler`, `FeatureGate`, `KubeAPIServer`,
  `ServiceAccountIssuerStatus`, `OperatorCondition`, `Secret`,
  `ResourceLocation`) and `NotFoundError`.
- `kasconfig.listers`:
  - `InMemoryLister` is a store keyed by resource name. Its `get` raises
    `NotFoundError` for unknown names.
  - `InMemoryRecorder` keeps `Event`s in the order they were recorded.
  - `Listers` bundles one lister for each resource kind, together with an
    optional `resource_syncer`. The syncer is any object with
    `sync_config_map(destination, source)` and `sync_secret(destination, source)`
    methods.
- `kasconfig.unstructured`: helpers for reading, setting and pruning nested
  configuration (`nested_field`, `nested_string`, `nested_string_slice`,
  `nested_slice`, `nested_map`, `set_nested_field`, `pruned`). A value of the
  wrong type at a path raises `TypeError`.

## Example

```python
from kasconfig.listers import InMemoryLister, InMemoryRecorder, Listers
from kasconfig.model import Scheduler
from kasconfig.scheduler import observe_default_node_selector

schedulers = InMemoryLister("schedulers.config.openshift.io")
schedulers.add(Scheduler(name="cluster", default_node_selector="type=user-node"))

recorder = InMemoryRecorder("scheduler")
config, errors = observe_default_node_selector(
    Listers(scheduler=schedulers), recorder, {}
)
# config == {"projectConfig": {"defaultNodeSelector": "type=user-node"}}
# errors == []
# recorder.events()[0].reason == "ObserveDefaultNodeSelectorChanged"
```

Pass each observer the result of its previous run as `existing_config`. If a
resource cannot be read, the observer keeps the previously observed values.

## What it does not do

`kasconfig` is a library of observer functions only. It does not connect to a
cluster, watch resources or run a reconcile loop. It has no command-line
program and does not write the observed configuration anywhere. Resources come
from the in-memory listers you fill yourself. Syncing config maps and secrets
is handed to the `resource_syncer` you supply.
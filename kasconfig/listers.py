"""In-memory resource listers, event recording and the lister bundle."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Iterator, Optional, Protocol, TypeVar

from kasconfig.model import NotFoundError, ResourceLocation

T = TypeVar("T")


class InMemoryLister(Generic[T]):
    """A store of named resources; lookups of unknown names raise NotFoundError."""

    def __init__(self, resource: str = "resource", objects=()) -> None:
        self.resource = resource
        self._items: dict[str, T] = {}
        for obj in objects:
            self.add(obj)

    def add(self, obj: T) -> None:
        self._items[getattr(obj, "name")] = obj

    def update(self, obj: T) -> None:
        self._items[getattr(obj, "name")] = obj

    def delete(self, name: str) -> None:
        self._items.pop(name, None)

    def get(self, name: str) -> T:
        try:
            return self._items[name]
        except KeyError:
            raise NotFoundError(self.resource, name) from None

    def list(self) -> list[T]:
        return list(self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._items.values()))


@dataclass(frozen=True)
class Event:
    reason: str
    message: str
    type: str = "Normal"


class InMemoryRecorder:
    """Keeps recorded events in order."""

    def __init__(self, source: str = "") -> None:
        self.source = source
        self._events: list[Event] = []

    @staticmethod
    def _format(message: str, args: tuple) -> str:
        return message % args if args else message

    def eventf(self, reason: str, message: str, *args: Any) -> None:
        self._events.append(Event(reason, self._format(message, args)))

    def warningf(self, reason: str, message: str, *args: Any) -> None:
        self._events.append(Event(reason, self._format(message, args), "Warning"))

    def events(self) -> list[Event]:
        return list(self._events)


class _ResourceSyncer(Protocol):
    def sync_config_map(self, destination: ResourceLocation, source: ResourceLocation) -> None: ...

    def sync_secret(self, destination: ResourceLocation, source: ResourceLocation) -> None: ...


def _lister(resource: str):
    return field(default_factory=lambda: InMemoryLister(resource))


@dataclass
class Listers:
    """The resource stores and the resource syncer the observers read from."""

    apiserver: InMemoryLister = _lister("apiservers.config.openshift.io")
    authentication: InMemoryLister = _lister("authentications.config.openshift.io")
    feature_gate: InMemoryLister = _lister("featuregates.config.openshift.io")
    infrastructure: InMemoryLister = _lister("infrastructures.config.openshift.io")
    image: InMemoryLister = _lister("images.config.openshift.io")
    network: InMemoryLister = _lister("networks.config.openshift.io")
    node: InMemoryLister = _lister("nodes.config.openshift.io")
    proxy: InMemoryLister = _lister("proxies.config.openshift.io")
    scheduler: InMemoryLister = _lister("schedulers.config.openshift.io")
    kube_apiserver_operator: InMemoryLister = _lister("kubeapiservers.operator.openshift.io")
    configmaps: InMemoryLister = _lister("configmaps")
    secrets: InMemoryLister = _lister("secrets")
    config_secrets: InMemoryLister = _lister("secrets")
    resource_syncer: Optional[_ResourceSyncer] = None
    pre_run_caches_synced: list[Callable[[], bool]] = field(default_factory=list)
# syncer.py
"""
FILE: syncer.py
DESCRIPTION:
  Interfaces shared by every sensor module.
  - Syncer: rebind to a PubSub and (re)publish current state.
  - Discoverable: optional capability, lists the Home Assistant entities a module exposes.
  - EntityConfig: one discovery entity (name, HA component class, raw config map).
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List

from pubsub import StubPubSub


@dataclass(frozen=True)
class EntityConfig:
    # Entity name within the module, e.g. 'link'
    name: str
    # HA component class, e.g. 'sensor', 'binary_sensor'
    cls: str
    # Discovery payload before normalisation and template substitution.
    config: Dict[str, Any] = field(default_factory=dict)


class Syncer(ABC):
    """A module whose published state can be rebound and replayed."""

    def __init__(self):
        self.ps = StubPubSub()

    def sync(self, ps):
        """Rebind to `ps` and publish the current state unconditionally."""
        self.ps = ps
        self.publish()

    @abstractmethod
    def publish(self):
        """Publish the current state of all contained entities, changed or not."""

    def close(self):
        """Release resources (pollers). Safe to call more than once."""


class Discoverable(ABC):
    @abstractmethod
    def config(self) -> List[EntityConfig]:
        """Return the discovery entities this module exposes."""


def is_discoverable(module):
    return isinstance(module, Discoverable)

# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Host capability negotiation.

Hosts declare the optional registration features they support once per
session. ``negotiate`` trims the metadata a caller would like to attach down
to what the host can accept, so registration never fails because of an
unsupported extra.
"""

import logging
from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Any, Iterable, Optional

logger = logging.getLogger(__name__)


class HostFeature(str, Enum):
    """Optional registration features a host may support."""

    GROUPING = "grouping"
    EXCLUSIONS = "exclusions"
    DEBOUNCE_HINT = "debounce_hint"
    DISPLAY_NAME = "display_name"
    YIELD_TO = "yield_to"
    EXTENDED_METADATA = "extended_metadata"


@dataclass(frozen=True)
class CapabilitySet:
    """Immutable set of features a host declared as supported."""

    features: frozenset[HostFeature] = frozenset()

    @classmethod
    def of(cls, *features: "HostFeature | str") -> "CapabilitySet":
        return cls.from_names(features)

    @classmethod
    def from_names(cls, names: Iterable["HostFeature | str"]) -> "CapabilitySet":
        """Build a capability set from feature names.

        Unknown names are ignored so newer hosts can advertise features this
        package does not know about.
        """
        known: set[HostFeature] = set()
        for name in names:
            try:
                known.add(HostFeature(name))
            except ValueError:
                logger.debug(f"Ignoring unknown host feature: {name}")
        return cls(frozenset(known))

    @classmethod
    def all(cls) -> "CapabilitySet":
        return cls(frozenset(HostFeature))

    @classmethod
    def probe(cls, host: Any, attribute: str = "supported_features") -> "CapabilitySet":
        """Compute the capability set from a host object once.

        Reads the named attribute (a collection of feature names). A host
        without the attribute supports no optional features.
        """
        declared = getattr(host, attribute, None)
        if declared is None:
            return cls()
        return cls.from_names(declared)

    def supports(self, feature: "HostFeature | str") -> bool:
        try:
            return HostFeature(feature) in self.features
        except ValueError:
            return False

    def __contains__(self, feature: object) -> bool:
        return isinstance(feature, (HostFeature, str)) and self.supports(feature)

    def __len__(self) -> int:
        return len(self.features)


@dataclass(frozen=True)
class RegistrationMetadata:
    """Optional metadata attached when registering an inline provider."""

    group_id: Optional[str] = None
    excludes: Optional[tuple[str, ...]] = None
    debounce_delay_ms: Optional[int] = None
    display_name: Optional[str] = None
    yield_to: Optional[tuple[str, ...]] = None

    @property
    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))

    def to_host_options(self) -> dict[str, Any]:
        """Convert to the camelCase option mapping hosts expect."""
        options: dict[str, Any] = {}
        for name, key in _HOST_OPTION_KEYS.items():
            value = getattr(self, name)
            if value is None:
                continue
            options[key] = list(value) if isinstance(value, tuple) else value
        return options


# Metadata field -> the feature that must be present to send it
FIELD_FEATURES: dict[str, HostFeature] = {
    "group_id": HostFeature.GROUPING,
    "excludes": HostFeature.EXCLUSIONS,
    "debounce_delay_ms": HostFeature.DEBOUNCE_HINT,
    "display_name": HostFeature.DISPLAY_NAME,
    "yield_to": HostFeature.YIELD_TO,
}

_HOST_OPTION_KEYS = {
    "group_id": "groupId",
    "excludes": "excludes",
    "debounce_delay_ms": "debounceDelayMs",
    "display_name": "displayName",
    "yield_to": "yieldTo",
}


def negotiate(
    capabilities: CapabilitySet,
    desired: RegistrationMetadata,
) -> RegistrationMetadata:
    """Return the subset of ``desired`` the host can accept.

    Args:
        capabilities: Features the host supports
        desired: Metadata the caller would like to send

    Returns:
        Metadata with every unsupported field cleared
    """
    dropped = {
        name: None
        for name, feature in FIELD_FEATURES.items()
        if getattr(desired, name) is not None and not capabilities.supports(feature)
    }
    if not dropped:
        return desired
    return replace(desired, **dropped)

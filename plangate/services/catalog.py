"""
PlanGate - Catalog Registry

Read-only registry of feature and limit catalog entries, built once at import
time from plangate.config.catalog_config. Lookups of unknown keys return None;
callers decide whether that is a validation error or a fail-closed default.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, List, Mapping, Optional, Tuple

from plangate.config.catalog_config import (
    FEATURE_DEFINITIONS,
    LIMIT_DEFINITIONS,
    FeatureGroup,
)
from plangate.services.limit_values import LimitValue


@dataclass(frozen=True)
class FeatureCatalogEntry:
    key: str
    label: str
    description: str
    group: FeatureGroup
    restricted_on_free: bool = False


@dataclass(frozen=True)
class LimitCatalogEntry:
    key: str
    label: str
    description: str
    default_value: int

    @property
    def default(self) -> LimitValue:
        return LimitValue.from_wire(self.default_value)


class Catalog:
    """Immutable feature/limit registry."""

    def __init__(
        self,
        features: Iterable[FeatureCatalogEntry],
        limits: Iterable[LimitCatalogEntry],
    ):
        feature_map = {}
        for entry in features:
            if entry.key in feature_map:
                raise ValueError(f"Duplicate feature key in catalog: {entry.key}")
            feature_map[entry.key] = entry

        limit_map = {}
        for entry in limits:
            if entry.key in limit_map:
                raise ValueError(f"Duplicate limit key in catalog: {entry.key}")
            if entry.default_value < -1:
                raise ValueError(f"Invalid default for limit {entry.key}: {entry.default_value}")
            limit_map[entry.key] = entry

        self._features: Mapping[str, FeatureCatalogEntry] = MappingProxyType(feature_map)
        self._limits: Mapping[str, LimitCatalogEntry] = MappingProxyType(limit_map)

    @property
    def features(self) -> Mapping[str, FeatureCatalogEntry]:
        return self._features

    @property
    def limits(self) -> Mapping[str, LimitCatalogEntry]:
        return self._limits

    def feature(self, key: str) -> Optional[FeatureCatalogEntry]:
        return self._features.get(key)

    def limit(self, key: str) -> Optional[LimitCatalogEntry]:
        return self._limits.get(key)

    def has_feature(self, key: str) -> bool:
        return key in self._features

    def has_limit(self, key: str) -> bool:
        return key in self._limits

    def feature_keys(self) -> Tuple[str, ...]:
        return tuple(self._features)

    def limit_keys(self) -> Tuple[str, ...]:
        return tuple(self._limits)

    def features_in_group(self, group: FeatureGroup) -> List[FeatureCatalogEntry]:
        return [entry for entry in self._features.values() if entry.group == group]

    def restricted_on_free_keys(self) -> Tuple[str, ...]:
        return tuple(key for key, entry in self._features.items() if entry.restricted_on_free)

    def feature_label(self, key: str) -> str:
        entry = self.feature(key)
        return entry.label if entry else key

    def limit_label(self, key: str) -> str:
        entry = self.limit(key)
        return entry.label if entry else key


def build_default_catalog() -> Catalog:
    """Build the process-wide catalog from the static configuration tables."""
    features = [
        FeatureCatalogEntry(
            key=feature.value,
            label=definition["label"],
            description=definition["description"],
            group=definition["group"],
            restricted_on_free=definition["restricted_on_free"],
        )
        for feature, definition in FEATURE_DEFINITIONS.items()
    ]
    limits = [
        LimitCatalogEntry(
            key=limit_key.value,
            label=definition["label"],
            description=definition["description"],
            default_value=definition["default_value"],
        )
        for limit_key, definition in LIMIT_DEFINITIONS.items()
    ]
    return Catalog(features, limits)


CATALOG = build_default_catalog()

"""
Tests for the feature and limit catalog.
"""

from decimal import Decimal

import pytest

from plangate.config.catalog_config import (
    BillingCycle,
    Feature,
    FeatureGroup,
    LimitKey,
    format_money,
    get_currency_for_country,
    get_cycle_months,
)
from plangate.services.catalog import (
    CATALOG,
    Catalog,
    FeatureCatalogEntry,
    LimitCatalogEntry,
)


class TestDefaultCatalog:
    """Tests for the process-wide catalog."""

    def test_every_feature_registered(self):
        assert set(CATALOG.feature_keys()) == {f.value for f in Feature}

    def test_every_limit_registered(self):
        assert set(CATALOG.limit_keys()) == {k.value for k in LimitKey}

    def test_unknown_lookups_return_none(self):
        assert CATALOG.feature("teleportation") is None
        assert CATALOG.limit("teleports") is None
        assert CATALOG.feature_label("teleportation") == "teleportation"

    def test_limit_defaults(self):
        assert CATALOG.limit("users").default.cap == 1
        assert CATALOG.limit("employees").default.is_unavailable

    def test_restricted_on_free(self):
        restricted = CATALOG.restricted_on_free_keys()
        assert "payroll" in restricted
        assert "whatsapp_automation" in restricted
        assert "invoicing" not in restricted

    def test_features_in_group(self):
        keys = [entry.key for entry in CATALOG.features_in_group(FeatureGroup.ANALYTICS)]
        assert keys == ["analytics_basic", "analytics_advanced"]

    def test_catalog_is_read_only(self):
        with pytest.raises(TypeError):
            CATALOG.features["new"] = None


class TestCatalogConstruction:
    """Tests for building a catalog."""

    def test_duplicate_feature_rejected(self):
        entry = FeatureCatalogEntry("a", "A", "", FeatureGroup.SUPPORT)
        with pytest.raises(ValueError):
            Catalog([entry, entry], [])

    def test_duplicate_limit_rejected(self):
        entry = LimitCatalogEntry("a", "A", "", 1)
        with pytest.raises(ValueError):
            Catalog([], [entry, entry])

    def test_invalid_default_rejected(self):
        with pytest.raises(ValueError):
            Catalog([], [LimitCatalogEntry("a", "A", "", -5)])


class TestCatalogHelpers:
    """Tests for catalog configuration helpers."""

    def test_currency_lookup(self):
        assert get_currency_for_country("in") == "INR"
        assert get_currency_for_country("ZZ") == "USD"
        assert get_currency_for_country(None) == "USD"

    def test_cycle_months(self):
        assert get_cycle_months(BillingCycle.QUARTERLY) == 3
        assert get_cycle_months(BillingCycle.YEARLY) == 12

    def test_format_money(self):
        assert format_money(Decimal("1234.5"), "INR") == "INR 1,234.50"

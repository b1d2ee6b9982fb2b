"""Tests for OrderingSettings loading and validation."""

import pytest
from protean.exceptions import ConfigurationError

from ordering.settings import OrderingSettings


class TestDefaults:
    def test_default_values(self):
        settings = OrderingSettings()
        assert settings.tax_rate == 19.0
        assert settings.free_shipping_threshold == 100000.0
        assert settings.shipping_fee == 5000.0
        assert settings.currency == "CLP"


class TestValidation:
    def test_tax_rate_out_of_range(self):
        with pytest.raises(ConfigurationError):
            OrderingSettings(tax_rate=120)

    def test_negative_shipping_fee(self):
        with pytest.raises(ConfigurationError):
            OrderingSettings(shipping_fee=-1)

    def test_failure_rate_out_of_range(self):
        with pytest.raises(ConfigurationError):
            OrderingSettings(payment_failure_rate=1.5)


class TestFromMapping:
    def test_coerces_values(self):
        settings = OrderingSettings.from_mapping({"tax_rate": "21", "shipping_fee": 3990, "currency": "CLP"})
        assert settings.tax_rate == 21.0
        assert settings.shipping_fee == 3990.0

    def test_missing_values_keep_defaults(self):
        settings = OrderingSettings.from_mapping({"tax_rate": 10})
        assert settings.free_shipping_threshold == 100000.0

    def test_invalid_value(self):
        with pytest.raises(ConfigurationError):
            OrderingSettings.from_mapping({"tax_rate": "diecinueve"})


class TestFromDomain:
    def test_reads_domain_configuration(self, ordering_domain):
        settings = OrderingSettings.from_domain(ordering_domain)
        assert settings.tax_rate == 19.0
        assert settings.shipping_fee == 5000.0

    def test_environment_overrides(self, ordering_domain, monkeypatch):
        monkeypatch.setenv("ORDERING_TAX_RATE", "10")
        monkeypatch.setenv("ORDERING_FREE_SHIPPING_THRESHOLD", "50000")
        settings = OrderingSettings.from_domain(ordering_domain)
        assert settings.tax_rate == 10.0
        assert settings.free_shipping_threshold == 50000.0

"""
Tests for the pricing service and payment-method instructions.
"""

import pytest
from decimal import Decimal

from goldwallet.errors import InvalidInputError, PaymentMethodNotFoundError, PriceNotConfiguredError
from goldwallet.models import PaymentMethod
from goldwallet.payment_methods import PaymentMethodService
from goldwallet.pricing import PricingService
from goldwallet.storage import InMemoryStorage


class TestPricing:
    """Tests for current price and price history."""

    def test_seeded_price(self):
        pricing = PricingService(InMemoryStorage())

        price = pricing.get_current_price()

        assert price.price_per_gram == Decimal("9500")
        assert price.updated_by == "admin-1"

    def test_configured_initial_price(self):
        pricing = PricingService(InMemoryStorage(initial_price=Decimal("10250.50")))

        assert pricing.get_current_price().price_per_gram == Decimal("10250.50")

    def test_not_configured(self):
        pricing = PricingService(InMemoryStorage(seed=False))

        with pytest.raises(PriceNotConfiguredError):
            pricing.get_current_price()

    def test_set_price_appends(self):
        """Test a new price becomes current and the old one is kept."""
        pricing = PricingService(InMemoryStorage())

        new_price = pricing.set_price(9800, "admin-1")

        assert pricing.get_current_price().id == new_price.id
        history = pricing.get_price_history()
        assert [p.price_per_gram for p in history] == [Decimal("9800"), Decimal("9500")]

    def test_history_limit(self):
        pricing = PricingService(InMemoryStorage())
        for value in (9600, 9700, 9800):
            pricing.set_price(value, "admin-1")

        assert [p.price_per_gram for p in pricing.get_price_history(limit=2)] == [Decimal("9800"), Decimal("9700")]

    def test_negative_history_limit_rejected(self):
        pricing = PricingService(InMemoryStorage())
        pricing.set_price(9600, "admin-1")

        with pytest.raises(InvalidInputError):
            pricing.get_price_history(limit=-1)

    @pytest.mark.parametrize("value", [0, -1, "-9500", "abc", "NaN", "Infinity"])
    def test_invalid_price_rejected(self, value):
        """Test non-positive or non-numeric prices are rejected without a write."""
        pricing = PricingService(InMemoryStorage())

        with pytest.raises(InvalidInputError):
            pricing.set_price(value, "admin-1")

        assert len(pricing.get_price_history()) == 1

    def test_accepts_float_and_string(self):
        pricing = PricingService(InMemoryStorage())

        assert pricing.set_price(9600.5, "admin-1").price_per_gram == Decimal("9600.5")
        assert pricing.set_price("9700", "admin-1").price_per_gram == Decimal("9700")


class TestPaymentMethods:
    """Tests for payment-method instructions."""

    def test_list_in_fixed_order(self):
        service = PaymentMethodService(InMemoryStorage())

        methods = service.list_payment_methods()

        assert [m.name for m in methods] == list(PaymentMethod)
        assert "01700000000" in methods[0].details

    def test_update_instructions(self):
        service = PaymentMethodService(InMemoryStorage())

        updated = service.update_payment_method(PaymentMethod.NAGAD, "  Send to 01899999999  ")

        assert updated.details == "Send to 01899999999"
        assert service.get_payment_method("Nagad").details == "Send to 01899999999"

    def test_update_unknown_method(self):
        service = PaymentMethodService(InMemoryStorage())

        with pytest.raises(PaymentMethodNotFoundError):
            service.update_payment_method("PayPal", "nope")

    def test_update_missing_record(self):
        service = PaymentMethodService(InMemoryStorage(seed=False))

        with pytest.raises(PaymentMethodNotFoundError):
            service.update_payment_method(PaymentMethod.BANK, "City Bank")

    def test_blank_instructions_rejected(self):
        service = PaymentMethodService(InMemoryStorage())

        with pytest.raises(InvalidInputError):
            service.update_payment_method(PaymentMethod.BANK, "   ")

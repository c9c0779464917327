"""
Pricing resolver and totals calculator.

Verifies:
- Missing or null override falls back to the base price
- An override of 0 is charged as 0, not the base price
- Totals, rounding and the non-negative total clamp
"""

from decimal import Decimal

import pytest

from dryclean.services.pricing_service import (
    PRICE_SOURCE_BASE,
    PRICE_SOURCE_OVERRIDE,
    compute_totals,
    line_amount,
    normalize_pricing,
    resolve_price,
    resolve_unit_price,
)
from dryclean.validation import MAX_AMOUNT, ValidationError, NotFoundError


class TestResolvePrice:

    def test_no_entry_uses_base_price(self):
        resolved = resolve_price(5000, 1, {})
        assert resolved.unit_price == 5000
        assert resolved.source == PRICE_SOURCE_BASE

    def test_null_entry_uses_base_price(self):
        resolved = resolve_price(5000, 1, {1: None})
        assert resolved.unit_price == 5000
        assert resolved.source == PRICE_SOURCE_BASE

    def test_zero_override_is_free(self):
        resolved = resolve_price(5000, 1, {1: 0})
        assert resolved.unit_price == 0
        assert resolved.source == PRICE_SOURCE_OVERRIDE

    def test_override_for_other_service_ignored(self):
        assert resolve_price(5000, 1, {2: 100}).unit_price == 5000

    def test_override_wins(self):
        assert resolve_price(5000, 1, {1: 8000}).unit_price == 8000


class TestNormalizePricing:

    def test_object_with_string_keys(self):
        assert normalize_pricing({"1": 8000, "2": None, "3": ""}) == {1: 8000, 2: None, 3: None}

    def test_list_of_entries(self):
        raw = [{"serviceId": 1, "price": 0}, {"serviceId": "2", "price": "1500"}]
        assert normalize_pricing(raw) == {1: 0, 2: 1500}

    def test_none_is_empty(self):
        assert normalize_pricing(None) == {}

    def test_duplicate_entries_rejected(self):
        with pytest.raises(ValidationError):
            normalize_pricing([{"serviceId": 1, "price": 1}, {"serviceId": 1, "price": 2}])

    def test_negative_price_rejected(self):
        with pytest.raises(ValidationError):
            normalize_pricing({"1": -5})

    def test_scalar_rejected(self):
        with pytest.raises(ValidationError):
            normalize_pricing("8000")


class TestTotals:

    def test_reference_invoice(self):
        totals = compute_totals([(5000, 2), (3000, 1)], 1000)
        assert totals.subtotal == 13000
        assert totals.discount == 1000
        assert totals.total == 12000
        assert totals.raw_total == 12000

    def test_discount_larger_than_subtotal_clamps_to_zero(self):
        totals = compute_totals([(2000, 1)], 5000)
        assert totals.raw_total == -3000
        assert totals.total == 0

    def test_fractional_quantity_rounds_half_up(self):
        # 3333 * 1.5 = 4999.5 -> 5000
        assert line_amount(3333, "1.5").line_total == 5000

    def test_quantity_kept_as_decimal(self):
        assert line_amount(1000, 2).quantity == Decimal("2.000")

    @pytest.mark.parametrize("quantity", [0, -1, "abc", "1.2345", None, True])
    def test_bad_quantity_rejected(self, quantity):
        with pytest.raises(ValidationError):
            line_amount(1000, quantity)

    def test_negative_discount_rejected(self):
        with pytest.raises(ValidationError):
            compute_totals([(1000, 1)], -1)

    def test_missing_discount_is_zero(self):
        assert compute_totals([(1000, 1)], None).total == 1000

    def test_line_total_above_limit_rejected(self):
        with pytest.raises(ValidationError, match="Item 1 total"):
            compute_totals([(MAX_AMOUNT, "1.001")])

    def test_subtotal_above_limit_rejected(self):
        with pytest.raises(ValidationError, match="subtotal"):
            compute_totals([(MAX_AMOUNT, 1), (1, 1)])

    def test_subtotal_at_limit_allowed(self):
        assert compute_totals([(MAX_AMOUNT - 1, 1), (1, 1)]).subtotal == MAX_AMOUNT


class TestResolveUnitPrice:

    def test_resolves_against_catalog(self, db_session, catalog):
        washing, ironing, suit, shirt = catalog["washing"], catalog["ironing"], catalog["suit"], catalog["shirt"]

        assert resolve_unit_price(washing.id).unit_price == 5000
        assert resolve_unit_price(washing.id, shirt.id).unit_price == 5000
        assert resolve_unit_price(washing.id, suit.id).unit_price == 8000
        assert resolve_unit_price(ironing.id, suit.id).unit_price == 0

    def test_unknown_clothing_type(self, db_session, catalog):
        with pytest.raises(NotFoundError):
            resolve_unit_price(catalog["washing"].id, 9999)

    def test_unknown_service(self, db_session, catalog):
        with pytest.raises(NotFoundError):
            resolve_unit_price(9999)

    def test_price_endpoint(self, client, db_session, catalog, admin_headers):
        suit, ironing = catalog["suit"], catalog["ironing"]
        resp = client.get(
            f"/api/clothing-types/{suit.id}/price?serviceId={ironing.id}",
            headers=admin_headers,
        )
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["unitPrice"] == 0
        assert data["source"] == PRICE_SOURCE_OVERRIDE

    def test_price_endpoint_requires_service(self, client, db_session, catalog, admin_headers):
        resp = client.get(f"/api/clothing-types/{catalog['suit'].id}/price", headers=admin_headers)
        assert resp.status_code == 400

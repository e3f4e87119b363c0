"""
Webhook Tests - base price propagation and variant-selection events

Tests:
1. HMAC signature check over the raw body
2. Sibling target = base + (surcharge(sibling) - surcharge(base))
3. Idempotence: prices within 0.1 are not pushed again
4. Skips: inactive, unclassified, unsupported family, no base variant
5. Collections fallback with cache
6. Theme variant-selection events
"""

import json

import pytest

from bijou_pricing.event_store import VariantSelectionStore
from bijou_pricing.matcher import build_lookup
from bijou_pricing.models import ProductFamily
from bijou_pricing.supplements import default_supplement_tables
from bijou_pricing.webhooks import (
    CollectionCache,
    ProductUpdateHandler,
    compare_at_equal,
    compute_signature,
    find_base_variant,
    prices_equal,
    record_variant_selection,
    surcharge_function,
    verify_signature,
)

from conftest import FakeShopifyClient

SECRET = "whsec_test"


def _body(payload) -> bytes:
    return json.dumps(payload).encode("utf-8")


def _bracelet_payload(**overrides):
    payload = {
        "id": 1001,
        "title": "Bracelet Lune",
        "status": "active",
        "tags": "brac, or",
        "variants": [
            {"id": 1, "option1": "Forsat S", "price": "1000.00", "compare_at_price": "1000.00"},
            {"id": 2, "option1": "Forsat M", "price": "1000.00", "compare_at_price": "1000.00"},
            {"id": 3, "option1": "Forsat L", "price": "1290.00", "compare_at_price": "1290.00"},
        ],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def client():
    return FakeShopifyClient()


@pytest.fixture
def handler(client):
    return ProductUpdateHandler(SECRET, client, default_supplement_tables)


def _handle(handler, payload):
    body = _body(payload)
    return handler.handle(body, compute_signature(SECRET, body))


class TestSignature:
    def test_roundtrip(self):
        body = b'{"id": 1}'
        assert verify_signature(SECRET, body, compute_signature(SECRET, body))

    def test_mismatch(self):
        body = b'{"id": 1}'
        assert not verify_signature(SECRET, body, compute_signature("other", body))
        assert not verify_signature(SECRET, body + b" ", compute_signature(SECRET, body))
        assert not verify_signature(SECRET, body, None)
        assert not verify_signature("", body, "abc")

    def test_handler_rejects_bad_signature(self, handler, client):
        status, body = handler.handle(_body(_bracelet_payload()), "bogus")
        assert status == 401
        assert body == {"error": "Invalid signature"}
        assert client.updates == []

    def test_handler_rejects_malformed_body(self, handler):
        raw = b"{not json"
        status, _ = handler.handle(raw, compute_signature(SECRET, raw))
        assert status == 400

    def test_handler_rejects_non_object(self, handler):
        raw = b"[1, 2]"
        status, _ = handler.handle(raw, compute_signature(SECRET, raw))
        assert status == 400


class TestPriceHelpers:
    def test_prices_equal(self):
        assert prices_equal("999.96", 1000)
        assert not prices_equal("999.80", 1000)
        assert not prices_equal(None, 1000)
        assert not prices_equal("1000", None)

    def test_compare_at_equal(self):
        assert compare_at_equal(None, None)
        assert compare_at_equal("", None)
        assert compare_at_equal("0.00", None)
        assert not compare_at_equal("1200.00", None)
        assert compare_at_equal("1200.04", 1200)


class TestPropagation:
    def test_bracelet_siblings(self, handler, client):
        status, body = _handle(handler, _bracelet_payload())
        assert status == 200
        assert body["updated"] == 1
        assert body["attempted"] == 1
        assert body["variants"] == [{"id": "2", "ok": True, "status": 200}]
        assert client.updates == [{
            "id": "2",
            "price": 1150,
            "compare_at_price": 1150,
            "retry": False,
            "clear_compare_at": True,
        }]

    def test_within_tolerance_not_pushed(self, handler, client):
        payload = _bracelet_payload()
        payload["variants"][1]["price"] = "1149.96"
        payload["variants"][1]["compare_at_price"] = "1150.00"
        status, body = _handle(handler, payload)
        assert status == 200
        assert body == {"updated": 0, "attempted": 0, "variants": []}
        assert client.updates == []

    def test_near_equal_price_excluded(self, client):
        tables = default_supplement_tables()
        tables.bracelets["Forsat M"] = 0
        handler = ProductUpdateHandler(SECRET, client, lambda: tables)
        payload = _bracelet_payload()
        payload["variants"] = payload["variants"][:2]
        payload["variants"][1]["price"] = "999.96"
        _, body = _handle(handler, payload)
        assert body["attempted"] == 0
        assert client.updates == []

    def test_compare_at_follows_base(self, handler, client):
        payload = _bracelet_payload()
        payload["variants"][0]["compare_at_price"] = "1200.00"
        _handle(handler, payload)
        targets = {update["id"]: update for update in client.updates}
        assert targets["2"]["compare_at_price"] == 1350
        assert targets["3"]["compare_at_price"] == 1490

    def test_necklace_sizes(self, client):
        client.collections = [{"title": "Colliers"}]
        handler = ProductUpdateHandler(SECRET, client, default_supplement_tables)
        payload = {
            "id": 2002,
            "status": "active",
            "tags": "",
            "variants": [
                {"id": 10, "option1": "Forsat S", "option2": "41 cm", "price": "1000.00", "compare_at_price": "1000.00"},
                {"id": 11, "option1": "Forsat S", "option2": "45 cm", "price": "1000.00", "compare_at_price": "1000.00"},
                {"id": 12, "option1": "Forsat M", "option2": "41 cm", "price": "1140.00", "compare_at_price": "1140.00"},
            ],
        }
        status, body = _handle(handler, payload)
        assert status == 200
        assert client.collection_calls == [2002]
        assert [update["id"] for update in client.updates] == ["11"]
        assert client.updates[0]["price"] == 1180

    def test_off_ladder_length_uses_formula(self, handler, client):
        """42 cm is not on the ladder: Forsat S surcharge = (42-41) × 20"""
        payload = {
            "id": 2003,
            "status": "active",
            "tags": "nckl",
            "variants": [
                {"id": 10, "option1": "Forsat S", "option2": "41 cm", "price": "1000.00", "compare_at_price": "1000.00"},
                {"id": 11, "option1": "Forsat S", "option2": "42 cm", "price": "1020.00", "compare_at_price": "1020.00"},
                {"id": 12, "option1": "Forsat S", "option2": "43 cm", "price": "1000.00", "compare_at_price": "1000.00"},
            ],
        }
        status, body = _handle(handler, payload)
        assert status == 200
        assert [update["id"] for update in client.updates] == ["12"]
        assert client.updates[0]["price"] == 1040
        assert client.updates[0]["compare_at_price"] == 1040

    def test_missing_base_compare_derived_from_sibling(self, handler, client):
        payload = _bracelet_payload()
        payload["variants"][0]["compare_at_price"] = None
        payload["variants"][1]["price"] = "1150.00"
        payload["variants"][1]["compare_at_price"] = "1150.00"
        status, body = _handle(handler, payload)
        assert status == 200
        assert body["attempted"] == 0
        assert client.updates == []

    def test_missing_compare_falls_back_to_base_price(self, handler, client):
        payload = _bracelet_payload()
        for variant in payload["variants"]:
            variant["compare_at_price"] = None
        payload["variants"] = payload["variants"][:2]
        _handle(handler, payload)
        assert client.updates == [{
            "id": "2",
            "price": 1150,
            "compare_at_price": 1150,
            "retry": False,
            "clear_compare_at": True,
        }]

    def test_set_surcharge(self, handler, client):
        payload = {
            "id": 3003,
            "status": "active",
            "tags": "set",
            "variants": [
                {"id": 20, "option1": "Forsat S", "option2": "41 cm", "price": "2000.00"},
                {"id": 21, "option1": "Forsat M", "option2": "45 cm", "price": "2000.00"},
            ],
        }
        _handle(handler, payload)
        assert client.updates[0]["price"] == 2375

    def test_failed_push_reported(self, client):
        client.failing_ids = {"2"}
        handler = ProductUpdateHandler(SECRET, client, default_supplement_tables)
        status, body = _handle(handler, _bracelet_payload())
        assert status == 200
        assert body["updated"] == 0
        assert body["attempted"] == 1
        assert body["variants"][0]["ok"] is False
        assert body["variants"][0]["status"] == 422

    def test_unexpected_error_is_500(self, client):
        def broken_tables():
            raise RuntimeError("boom")

        handler = ProductUpdateHandler(SECRET, client, broken_tables)
        status, body = _handle(handler, _bracelet_payload())
        assert status == 500
        assert body == {"error": "Failed to process webhook"}


class TestSkips:
    def test_inactive(self, handler):
        status, body = _handle(handler, _bracelet_payload(status="draft"))
        assert status == 200
        assert body["skipped"] is True
        assert body["updated"] == 0

    def test_unclassified(self, handler):
        status, body = _handle(handler, _bracelet_payload(tags="misc"))
        assert body["skipped"] is True
        assert body["reason"] == "Product family unclassified"

    def test_ring_not_supported(self, handler):
        status, body = _handle(handler, _bracelet_payload(tags="rng"))
        assert status == 200
        assert body["skipped"] is True
        assert "ring" in body["reason"]

    def test_no_variants(self, handler):
        _, body = _handle(handler, _bracelet_payload(variants=[]))
        assert body["reason"] == "No variants found"

    def test_no_base_variant(self, handler, client):
        payload = _bracelet_payload()
        payload["variants"] = payload["variants"][1:]
        _, body = _handle(handler, payload)
        assert body["skipped"] is True
        assert "Base variant" in body["reason"]
        assert client.updates == []


class TestBaseVariant:
    def test_requires_reference_length_and_no_option3(self):
        lookup = build_lookup(default_supplement_tables().necklaces)
        variants = [
            {"id": 1, "option1": "Forsat S", "option2": "45 cm"},
            {"id": 2, "option1": "Forsat S", "option2": "41 cm", "option3": "Or"},
            {"id": 3, "option1": "forsat-s", "option2": "41 cm"},
        ]
        assert find_base_variant(variants, lookup)["id"] == 3

    def test_surcharge_functions(self):
        tables = default_supplement_tables()
        assert surcharge_function(ProductFamily.BRACELET, tables)("Forsat M", 80) == 150
        assert surcharge_function(ProductFamily.NECKLACE, tables)("Forsat M", 45) == 225
        assert surcharge_function(ProductFamily.NECKLACE, tables)("Unknown", 45) is None
        assert surcharge_function(ProductFamily.SET, tables)("Forsat M", 45) == 375
        with pytest.raises(ValueError):
            surcharge_function(ProductFamily.RING, tables)


class TestCollectionCache:
    def test_entries_expire(self):
        calls = []
        now = [0.0]

        def loader(product_id):
            calls.append(product_id)
            return [{"title": "Bracelet"}]

        cache = CollectionCache(loader, ttl=300, clock=lambda: now[0])
        cache.get(1)
        cache.get("1")
        assert calls == [1]
        now[0] = 301
        cache.get(1)
        assert calls == [1, 1]
        assert cache.get(None) == []


class TestVariantSelection:
    def test_accepted(self):
        store = VariantSelectionStore()
        status, body = record_variant_selection(store, {
            "productHandle": "bracelet-lune",
            "variantTitle": "Forsat M",
            "selectedOptions": [{"name": "Chaîne", "value": "Forsat M", "extra": 1}, "junk"],
            "ignored": True,
        })
        assert status == 202
        assert body == {"accepted": True}
        event = store.list()[0]
        assert event["productId"] is None
        assert event["productHandle"] == "bracelet-lune"
        assert event["selectedOptions"] == [{"name": "Chaîne", "value": "Forsat M"}]
        assert "ignored" not in event
        assert event["receivedAt"]

    def test_one_identifier_is_enough(self):
        store = VariantSelectionStore()
        status, _ = record_variant_selection(store, {"productId": "1"})
        assert status == 202
        status, _ = record_variant_selection(store, {"variantTitle": "Forsat M"})
        assert status == 202
        first, second = store.list()
        assert first["variantId"] is None and first["variantTitle"] is None
        assert second["productId"] is None and second["productHandle"] is None

    def test_both_identifiers_missing(self):
        store = VariantSelectionStore()
        status, _ = record_variant_selection(store, {"selectedOptions": [], "productId": ""})
        assert status == 400
        assert len(store) == 0

    def test_non_object(self):
        status, _ = record_variant_selection(VariantSelectionStore(), ["a"])
        assert status == 400

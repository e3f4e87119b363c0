"""
Shared fixtures for the Bijou Pricing tests
"""

from types import SimpleNamespace

import pytest

from bijou_pricing.errors import UpstreamError
from bijou_pricing.models import (
    BulkUpdateFailure,
    BulkUpdateResult,
    ProductFamily,
    ProductRecord,
    ProductStatus,
    ProductVariant,
)
from bijou_pricing.supplements import default_supplement_tables


def make_variant(variant_id, options, price, compare_at=None, title=""):
    return ProductVariant(
        id=variant_id,
        title=title or " / ".join(options),
        price=price,
        compare_at_price=price if compare_at is None else compare_at,
        options=options,
    )


@pytest.fixture
def tables():
    return default_supplement_tables()


@pytest.fixture
def bracelet_product():
    return ProductRecord(
        id="b1",
        title="Bracelet Lune",
        family=ProductFamily.BRACELET,
        tags=["brac"],
        base_price=1500,
        base_compare_at_price=1500,
        variants=[
            make_variant("v1", ["Forsat S"], 1500),
            make_variant("v2", ["Forsat M"], 1500),
        ],
    )


@pytest.fixture
def necklace_product():
    return ProductRecord(
        id="n1",
        title="Collier Étoile",
        family=ProductFamily.NECKLACE,
        tags=["nckl"],
        base_price=1000,
        base_compare_at_price=1000,
        variants=[
            make_variant("n1-41", ["Forsat S", "41 cm"], 1000),
            make_variant("n1-45", ["Forsat S", "45 cm"], 1190),
        ],
    )


@pytest.fixture
def ring_product():
    return ProductRecord(
        id="r1",
        title="Bague Soleil",
        family=ProductFamily.RING,
        tags=["rng"],
        base_price=500,
        base_compare_at_price=500,
    )


@pytest.fixture
def inactive_product():
    return ProductRecord(
        id="x1",
        title="Bracelet archivé",
        family=ProductFamily.BRACELET,
        base_price=900,
        status=ProductStatus.INACTIVE,
        variants=[make_variant("x1-s", ["Forsat S"], 900)],
    )


class FakeCatalogClient:
    """Stands in for CatalogClient in orchestrator tests"""

    def __init__(self, products=None, failed_ids=(), error=None):
        self.products = products or []
        self.failed_ids = set(failed_ids)
        self.error = error
        self.pushed = []
        self.synced = []

    def fetch_products(self, status="active"):
        if self.error:
            raise self.error
        return list(self.products)

    def push_variant_updates(self, updates):
        if self.error:
            raise self.error
        self.pushed.append(updates)
        result = BulkUpdateResult()
        for entry in updates:
            for variant in entry.variants:
                if variant.id in self.failed_ids:
                    result.failed_count += 1
                    result.failures.append(BulkUpdateFailure(
                        product_id=entry.product_id,
                        product_title=entry.product_title,
                        variant_id=variant.id,
                        reason="rejected",
                    ))
                else:
                    result.updated_count += 1
        return result

    def sync_supplements(self, tables):
        if self.error:
            raise self.error
        self.synced.append(tables)
        return {"success": True}


class FakeShopifyClient:
    """Stands in for ShopifyAdminClient in webhook and route tests"""

    def __init__(self, products=None, collections=None, failing_ids=(), error=None):
        self.products = products or []
        self.collections = collections or []
        self.failing_ids = set(failing_ids)
        self.error = error
        self.updates = []
        self.collection_calls = []

    def fetch_products(self, status="active"):
        if self.error:
            raise self.error
        return list(self.products)

    def fetch_product_collections(self, product_id):
        self.collection_calls.append(product_id)
        return list(self.collections)

    def update_variant(self, variant_id, price, compare_at_price=None, retry=True, clear_compare_at=False):
        self.updates.append({
            "id": variant_id,
            "price": price,
            "compare_at_price": compare_at_price,
            "retry": retry,
            "clear_compare_at": clear_compare_at,
        })
        if variant_id in self.failing_ids:
            raise UpstreamError(f"Failed to update variant {variant_id}", status=422, body='{"errors":"price"}')
        return SimpleNamespace(status_code=200)

    def bulk_update(self, entries):
        result = BulkUpdateResult()
        for entry in entries:
            for variant in entry.get("variants", [entry]):
                if str(variant.get("id")) in self.failing_ids:
                    result.failed_count += 1
                    result.failures.append(BulkUpdateFailure(variant_id=str(variant.get("id")), reason="422"))
                else:
                    result.updated_count += 1
        return result


@pytest.fixture
def fake_catalog():
    return FakeCatalogClient()


@pytest.fixture
def fake_shopify():
    return FakeShopifyClient()

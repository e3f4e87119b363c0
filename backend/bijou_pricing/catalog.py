"""
Bijou Pricing - Catalog normalization

- Family classification from Shopify tags / product type
- Shopify REST product → ProductRecord
- Scope filtering for backups and previews
- Money helpers (Shopify sends prices as strings)
"""

import logging
import math
from typing import Any, Dict, Iterable, List, Optional

from .errors import UnknownScopeError
from .models import (
    ProductFamily,
    ProductRecord,
    ProductStatus,
    ProductVariant,
    Scope,
    SCOPE_FAMILIES,
)

logger = logging.getLogger(__name__)


# === FAMILY RULES (first match wins) ===
# (family, tags, product_type substrings)
FAMILY_RULES = [
    (ProductFamily.BRACELET, {"brac"}, ("bracelet",)),
    (ProductFamily.NECKLACE, {"nckl"}, ("necklace", "collier")),
    (ProductFamily.RING, {"rng"}, ("ring", "bague")),
    (ProductFamily.HANDCHAIN, {"hand", "handchain"}, ("hand chain", "handchain")),
    (ProductFamily.SET, {"set", "ensemble"}, ("set", "ensemble")),
]

# collection titles the webhook accepts when tags say nothing
COLLECTION_FAMILIES = {
    "bracelet": ProductFamily.BRACELET,
    "colliers": ProductFamily.NECKLACE,
}


# === MONEY ===

def to_number(value, default: Optional[float] = 0) -> Optional[float]:
    if value is None or value == "":
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default


def format_money(value) -> Optional[str]:
    number = to_number(value, None)
    if number is None:
        return None
    return f"{round(number * 100) / 100:.2f}"


# === FAMILY ===

def parse_tags(tags) -> List[str]:
    if not tags:
        return []
    items = tags if isinstance(tags, (list, tuple)) else str(tags).split(",")
    return [str(tag).strip() for tag in items if str(tag).strip()]


def classify_family(tags, product_type: Optional[str] = None) -> Optional[ProductFamily]:
    normalized_tags = {tag.lower() for tag in parse_tags(tags)}
    normalized_type = (product_type or "").strip().lower()

    for family, family_tags, type_fragments in FAMILY_RULES:
        if normalized_tags & family_tags:
            return family
        if any(fragment in normalized_type for fragment in type_fragments):
            return family
    return None


def classify_from_collections(collections: Iterable[Dict[str, Any]]) -> Optional[ProductFamily]:
    for collection in collections or []:
        title = str((collection or {}).get("title") or "").strip().lower()
        family = COLLECTION_FAMILIES.get(title)
        if family:
            return family
    return None


# === SHOPIFY → PRODUCT RECORD ===

def variant_options(raw_variant: Dict[str, Any]) -> List[str]:
    options = []
    for key in ("option1", "option2", "option3"):
        value = raw_variant.get(key)
        if value is not None and str(value).strip():
            options.append(str(value).strip())
    return options


def transform_shopify_variant(raw_variant: Dict[str, Any]) -> ProductVariant:
    price = to_number(raw_variant.get("price"))
    return ProductVariant(
        id=str(raw_variant.get("id")),
        title=raw_variant.get("title") or "",
        price=price,
        compare_at_price=to_number(raw_variant.get("compare_at_price"), price),
        options=variant_options(raw_variant),
    )


def transform_shopify_product(raw: Dict[str, Any]) -> ProductRecord:
    """
    Base price / compare-at come from the variant with the lowest position.
    Shopify statuses other than "active" (draft, archived) become inactive.
    """
    raw_variants = raw.get("variants") or []
    ordered = sorted(
        raw_variants,
        key=lambda v: v.get("position") if isinstance(v.get("position"), (int, float)) else math.inf,
    )
    variants = [transform_shopify_variant(v) for v in raw_variants]
    first = transform_shopify_variant(ordered[0]) if ordered else None

    tags = parse_tags(raw.get("tags"))
    return ProductRecord(
        id=str(raw.get("id")),
        title=raw.get("title") or "",
        handle=raw.get("handle"),
        family=classify_family(tags, raw.get("product_type")),
        tags=tags,
        base_price=first.price if first else 0,
        base_compare_at_price=first.compare_at_price if first else 0,
        variants=variants,
        status=ProductStatus.ACTIVE if raw.get("status") == "active" else ProductStatus.INACTIVE,
        metafields=raw.get("metafields") or {},  # {key: value}, absent from Admin REST listings
    )


# === SCOPES ===

def parse_scope(scope) -> Scope:
    if isinstance(scope, Scope):
        return scope
    normalized = str(scope or "").strip().lower()
    try:
        return Scope(normalized)
    except ValueError:
        raise UnknownScopeError(scope)


def filter_products_for_scope(products: List[ProductRecord], scope) -> List[ProductRecord]:
    """global keeps everything, family scopes keep their family only"""
    family = SCOPE_FAMILIES[parse_scope(scope)]
    if family is None:
        return list(products)
    return [product for product in products if product.family == family]

"""
Bijou Pricing - Webhooks

product-update: when the Forsat S / 41 cm variant of a bracelet, necklace or
set changes price, every sibling variant is re-priced as
    base + (surcharge(sibling) - surcharge(base))
and pushed to Shopify one variant at a time.

theme-variant-selection: storefront analytics, buffered in a VariantSelectionStore.
"""

import base64
import hashlib
import hmac
import json
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from .catalog import classify_family, classify_from_collections, format_money, to_number, transform_shopify_variant
from .errors import AuthError, UpstreamError, ValidationError
from .event_store import VariantSelectionStore
from .matcher import build_lookup, chain_size_identity, match_chain, parse_necklace_size
from .models import ProductFamily
from .shopify_client import redact
from .supplements import (
    BASE_CHAIN_KEY,
    REFERENCE_NECKLACE_SIZE,
    SupplementTables,
    necklace_size_supplement,
    set_size_supplement,
)

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Shopify-Hmac-Sha256"
PRICE_TOLERANCE = 0.1
COLLECTIONS_TTL = 5 * 60
PROPAGATED_FAMILIES = (ProductFamily.BRACELET, ProductFamily.NECKLACE, ProductFamily.SET)

WebhookResponse = Tuple[int, Dict[str, Any]]


# =====================
# SIGNATURE
# =====================

def compute_signature(secret: str, raw_body: bytes) -> str:
    digest = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_signature(secret: str, raw_body: bytes, header: Optional[str]) -> bool:
    if not header or not secret:
        return False
    return hmac.compare_digest(compute_signature(secret, raw_body).encode("ascii"), header.strip().encode("ascii", "ignore"))


# =====================
# PRICE HELPERS
# =====================

def prices_equal(current, target: Optional[float], tolerance: float = PRICE_TOLERANCE) -> bool:
    if target is None:
        return False
    current_value = to_number(current, None)
    return current_value is not None and abs(current_value - target) < tolerance


def compare_at_equal(current, target: Optional[float], tolerance: float = PRICE_TOLERANCE) -> bool:
    """A missing target matches an empty / zero compare-at"""
    if target is None:
        return current is None or current == "" or to_number(current) == 0
    return prices_equal(current, target, tolerance)


class CollectionCache:
    """product id → collections, entries expire after `ttl` seconds"""

    def __init__(self, loader: Callable[[Any], List[Dict[str, Any]]], ttl: float = COLLECTIONS_TTL,
                 clock=time.monotonic):
        self.loader = loader
        self.ttl = ttl
        self.clock = clock
        self._entries: Dict[str, Tuple[float, List[Dict[str, Any]]]] = {}

    def get(self, product_id) -> List[Dict[str, Any]]:
        if not product_id:
            return []
        key = str(product_id)
        cached = self._entries.get(key)
        if cached and self.clock() - cached[0] < self.ttl:
            return cached[1]
        collections = self.loader(product_id)
        self._entries[key] = (self.clock(), collections)
        return collections


# =====================
# PRODUCT UPDATE
# =====================

def _skipped(reason: str) -> WebhookResponse:
    return 200, {"skipped": True, "reason": reason, "updated": 0, "attempted": 0, "variants": []}


class ProductUpdateHandler:
    """
    Stateless per request apart from the collections cache.
    `supplements` returns the current SupplementTables on every call, so
    table edits are picked up without a restart.
    """

    def __init__(self, secret: str, client, supplements: Callable[[], SupplementTables],
                 collections_ttl: float = COLLECTIONS_TTL):
        self.secret = secret
        self.client = client
        self.supplements = supplements
        self.collections = CollectionCache(self._load_collections, ttl=collections_ttl)

    def _load_collections(self, product_id) -> List[Dict[str, Any]]:
        try:
            return self.client.fetch_product_collections(product_id)
        except UpstreamError as e:
            logger.warning(f"Loading collections of product {product_id} failed: {e} {e.body or ''}")
            return []

    def handle(self, raw_body: bytes, signature: Optional[str]) -> WebhookResponse:
        request_id = uuid.uuid4().hex[:12]
        logger.info(f"[{request_id}] product-update received (len={len(raw_body or b'')}, "
                    f"hmac={'present' if signature else 'missing'})")
        try:
            self._authenticate(raw_body, signature)
            product = self._parse(raw_body)
        except AuthError as e:
            logger.warning(f"[{request_id}] {e}")
            return 401, {"error": "Invalid signature"}
        except ValidationError as e:
            logger.warning(f"[{request_id}] {e}")
            return 400, {"error": str(e)}

        try:
            return self._propagate(product, request_id)
        except Exception:
            logger.exception(f"[{request_id}] Failed to process product update webhook")
            return 500, {"error": "Failed to process webhook"}

    def _authenticate(self, raw_body: bytes, signature: Optional[str]):
        if not verify_signature(self.secret, raw_body or b"", signature):
            raise AuthError(f"Signature check failed (secret {redact(self.secret)})")

    @staticmethod
    def _parse(raw_body: bytes) -> Dict[str, Any]:
        try:
            payload = json.loads(raw_body or b"")
        except ValueError:
            raise ValidationError("Malformed payload")
        if not isinstance(payload, dict):
            raise ValidationError("Payload must be a JSON object")
        return payload

    def _resolve_family(self, product: Dict[str, Any], request_id: str) -> Optional[ProductFamily]:
        family = classify_family(product.get("tags"), product.get("product_type"))
        if family is not None:
            return family
        family = classify_from_collections(self.collections.get(product.get("id")))
        if family is None:
            logger.warning(f"[{request_id}] family unresolved (tags={product.get('tags')!r})")
        return family

    def _propagate(self, product: Dict[str, Any], request_id: str) -> WebhookResponse:
        status = product.get("status")
        if status is not None and status != "active":
            return _skipped("Product not active")

        family = self._resolve_family(product, request_id)
        if family is None:
            return _skipped("Product family unclassified")
        if family not in PROPAGATED_FAMILIES:
            return _skipped(f"Price propagation not supported for {family.value}")

        raw_variants = [v for v in product.get("variants") or [] if isinstance(v, dict)]
        if not raw_variants:
            return _skipped("No variants found")

        tables = self.supplements()
        table = tables.bracelets if family == ProductFamily.BRACELET else tables.necklaces
        lookup = build_lookup(table)

        base = find_base_variant(raw_variants, lookup)
        if base is None:
            logger.warning(f"[{request_id}] no {BASE_CHAIN_KEY} / {REFERENCE_NECKLACE_SIZE} base variant")
            return _skipped(f"Base variant ({BASE_CHAIN_KEY}, {REFERENCE_NECKLACE_SIZE} cm) not found")

        surcharge_of = surcharge_function(family, tables)
        base_surcharge = surcharge_of(BASE_CHAIN_KEY, REFERENCE_NECKLACE_SIZE) or 0
        base_price = to_number(base.get("price"))
        base_compare = to_number(base.get("compare_at_price"), None)
        logger.debug(f"[{request_id}] base {base.get('id')}: price={base_price} compare_at={base_compare}")

        siblings = []
        for raw in raw_variants:
            if raw is base:
                continue
            variant = transform_shopify_variant(raw)
            chain, size = chain_size_identity(variant, lookup)
            if chain is None:
                logger.debug(f"[{request_id}] skip {variant.id}: no chain in {variant.title!r}")
                continue
            surcharge = surcharge_of(chain, size if size is not None else REFERENCE_NECKLACE_SIZE)
            if surcharge is None:
                continue
            siblings.append((raw, variant, surcharge - base_surcharge))

        if base_compare is None:
            base_compare = derive_base_compare(siblings, base_price)
            logger.debug(f"[{request_id}] base compare_at missing, using {base_compare}")

        updates = []
        for raw, variant, delta in siblings:
            target_price = base_price + delta
            target_compare = base_compare + delta
            if prices_equal(raw.get("price"), target_price) and compare_at_equal(raw.get("compare_at_price"), target_compare):
                continue
            updates.append((variant.id, target_price, target_compare))

        if not updates:
            logger.info(f"[{request_id}] no changes required")
            return 200, {"updated": 0, "attempted": 0, "variants": []}

        results = []
        for variant_id, price, compare_at in updates:
            results.append(self._push(variant_id, price, compare_at, request_id))

        updated = sum(1 for result in results if result["ok"])
        logger.info(f"[{request_id}] done: {updated}/{len(updates)} variants updated")
        return 200, {"updated": updated, "attempted": len(updates), "variants": results}

    def _push(self, variant_id, price, compare_at, request_id) -> Dict[str, Any]:
        try:
            response = self.client.update_variant(
                variant_id, price, compare_at, retry=False, clear_compare_at=True,
            )
        except UpstreamError as e:
            logger.error(f"[{request_id}] update of variant {variant_id} failed: {e}")
            return {"id": variant_id, "ok": False, "status": e.status, "body": e.body}
        logger.info(f"[{request_id}] variant {variant_id} → {format_money(price)}")
        return {"id": variant_id, "ok": True, "status": response.status_code}


def find_base_variant(raw_variants: List[Dict[str, Any]], lookup: Dict[str, str]) -> Optional[Dict[str, Any]]:
    """
    First variant whose option1 is the zero-surcharge chain, whose option2
    (when present) is the reference length and which has no option3.
    """
    for raw in raw_variants:
        first, second, third = raw.get("option1"), raw.get("option2"), raw.get("option3")
        if third not in (None, ""):
            continue
        if match_chain(first, lookup) != BASE_CHAIN_KEY:
            continue
        if second not in (None, "") and parse_necklace_size(second) != REFERENCE_NECKLACE_SIZE:
            continue
        return raw
    return None


def derive_base_compare(siblings: List[Tuple[Dict[str, Any], Any, float]], base_price: float) -> float:
    """
    Compare-at of a base variant that has none: the first sibling compare-at
    minus its surcharge delta, else the base price itself.
    """
    for raw, _, delta in siblings:
        compare_at = to_number(raw.get("compare_at_price"), None)
        if compare_at:
            return compare_at - delta
    return base_price


def surcharge_function(family: ProductFamily, tables: SupplementTables) -> Callable[[str, int], Optional[float]]:
    if family == ProductFamily.BRACELET:
        return lambda chain, size: tables.bracelets.get(chain)

    if family == ProductFamily.NECKLACE:
        def necklace(chain, size):
            config = tables.necklaces.get(chain)
            return necklace_size_supplement(config, size) if config is not None else None
        return necklace

    if family == ProductFamily.SET:
        return lambda chain, size: set_size_supplement(tables.bracelets, tables.necklaces, chain, size)

    raise ValueError(f"No surcharge function for {family}")


# =====================
# THEME VARIANT SELECTION
# =====================

EVENT_FIELDS = (
    "productId",
    "productHandle",
    "productTitle",
    "variantId",
    "variantTitle",
    "price",
    "currency",
    "pageUrl",
    "timestamp",
)


def _selected_options(value) -> Optional[List[Dict[str, Any]]]:
    if not isinstance(value, list):
        return None
    options = []
    for entry in value:
        if isinstance(entry, dict):
            options.append({"name": entry.get("name"), "value": entry.get("value")})
    return options


def record_variant_selection(store: VariantSelectionStore, payload) -> WebhookResponse:
    if not isinstance(payload, dict):
        return 400, {"error": "Payload must be a JSON object"}

    has_product = payload.get("productId") not in (None, "") or payload.get("productHandle") not in (None, "")
    has_variant = payload.get("variantId") not in (None, "") or payload.get("variantTitle") not in (None, "")
    if not has_product and not has_variant:
        return 400, {"error": "A product or variant identifier is required"}

    event = {name: payload.get(name) for name in EVENT_FIELDS}
    event["selectedOptions"] = _selected_options(payload.get("selectedOptions"))
    event["receivedAt"] = datetime.now(timezone.utc).isoformat()
    store.record(event)
    logger.debug(f"Variant selection recorded: {event['productId'] or event['productHandle']} / "
                 f"{event['variantId'] or event['variantTitle']}")
    return 202, {"accepted": True}

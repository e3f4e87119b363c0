"""
Bijou Pricing - Shopify Admin REST client

- product listing with Link-header cursor pagination
- single variant price updates
- product collections lookup (webhook family fallback)

Calls are spaced at least `min_interval` seconds apart; 429/502/503/504 are
retried honouring Retry-After unless the caller disables retries.
"""

import logging
import re
import threading
import time
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs, urlparse

import requests

from .catalog import format_money, transform_shopify_product
from .errors import UpstreamError
from .models import BulkUpdateFailure, BulkUpdateResult, ProductRecord

logger = logging.getLogger(__name__)

DEFAULT_API_VERSION = "2024-04"
MIN_REQUEST_INTERVAL = 0.25
MAX_RETRIES = 5
MAX_BACKOFF = 8.0
RETRY_STATUSES = {429, 502, 503, 504}
PAGE_LIMIT = 250
# products.json has no metafields; alignment only sees metafields on records that
# already carry them (a seeded catalog, or a `metafields` dict joined in by the caller)
PRODUCT_FIELDS = "id,title,handle,status,tags,product_type,variants"

NEXT_LINK_PATTERN = re.compile(r'<([^>]+)>;\s*rel="next"', re.IGNORECASE)


def redact(secret: Optional[str]) -> Optional[str]:
    if not secret:
        return secret
    return f"{str(secret)[:4]}…"


def parse_next_page_info(link_header: Optional[str]) -> Optional[str]:
    if not link_header:
        return None
    for part in link_header.split(","):
        match = NEXT_LINK_PATTERN.search(part)
        if not match:
            continue
        values = parse_qs(urlparse(match.group(1)).query).get("page_info")
        if values:
            return values[0]
    return None


def parse_retry_after(value: Optional[str], default: float = MIN_REQUEST_INTERVAL) -> float:
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return default
    return seconds if seconds > 0 else default


class ShopifyAdminClient:
    def __init__(
        self,
        domain: str,
        access_token: str,
        api_version: str = DEFAULT_API_VERSION,
        session: Optional[requests.Session] = None,
        min_interval: float = MIN_REQUEST_INTERVAL,
        max_retries: int = MAX_RETRIES,
        timeout: float = 30,
        sleep=time.sleep,
    ):
        self.domain = domain
        self.api_version = api_version
        self.session = session or requests.Session()
        self.session.headers.update({
            "Content-Type": "application/json",
            "X-Shopify-Access-Token": access_token,
        })
        self.min_interval = min_interval
        self.max_retries = max(1, max_retries)
        self.timeout = timeout
        self._sleep = sleep
        self._lock = threading.Lock()
        self._last_request = 0.0
        logger.info(f"Shopify client for {domain} (api {api_version}, token {redact(access_token)})")

    @property
    def base_url(self) -> str:
        return f"https://{self.domain}/admin/api/{self.api_version}"

    # === TRANSPORT ===

    def _wait_turn(self):
        with self._lock:
            wait = self.min_interval - (time.monotonic() - self._last_request)
            if wait > 0:
                self._sleep(wait)
            self._last_request = time.monotonic()

    def request(self, method: str, path: str, retry: bool = True, **kwargs) -> requests.Response:
        url = path if path.startswith("http") else f"{self.base_url}{path}"
        attempts = self.max_retries if retry else 1
        backoff = self.min_interval

        for attempt in range(1, attempts + 1):
            self._wait_turn()
            try:
                response = self.session.request(method, url, timeout=self.timeout, **kwargs)
            except requests.RequestException as e:
                raise UpstreamError(f"{method} {url} failed: {e}")

            if response.status_code not in RETRY_STATUSES or attempt >= attempts:
                return response

            wait = max(parse_retry_after(response.headers.get("Retry-After"), self.min_interval), backoff)
            logger.warning(
                f"Shopify {response.status_code} on {method} {url}, retry {attempt}/{attempts - 1} in {wait:.2f}s"
            )
            self._sleep(wait)
            backoff = min(backoff * 2, MAX_BACKOFF)

        return response

    @staticmethod
    def _raise_for_status(response: requests.Response, what: str):
        if response.ok:
            return
        raise UpstreamError(
            f"{what}: {response.status_code} {response.reason}",
            status=response.status_code,
            body=response.text,
        )

    # === PRODUCTS ===

    def fetch_raw_products(self, status: Optional[str] = "active") -> List[Dict[str, Any]]:
        products = []
        page_info = None

        while True:
            params = {"limit": PAGE_LIMIT, "fields": PRODUCT_FIELDS}
            # Shopify rejects filters alongside a page_info cursor
            if page_info:
                params["page_info"] = page_info
            elif status:
                params["status"] = status

            response = self.request("GET", "/products.json", params=params)
            self._raise_for_status(response, "Failed to load Shopify products")

            batch = (response.json() or {}).get("products") or []
            for product in batch:
                if status == "active" and product.get("status") != "active":
                    continue
                products.append(product)

            page_info = parse_next_page_info(response.headers.get("Link"))
            if not page_info:
                break

        logger.info(f"Loaded {len(products)} Shopify products (status={status})")
        return products

    def fetch_products(self, status: Optional[str] = "active") -> List[ProductRecord]:
        return [transform_shopify_product(raw) for raw in self.fetch_raw_products(status)]

    def fetch_product_collections(self, product_id) -> List[Dict[str, Any]]:
        response = self.request("GET", f"/products/{product_id}/collections.json", retry=False)
        self._raise_for_status(response, f"Failed to load collections of product {product_id}")
        return (response.json() or {}).get("collections") or []

    # === VARIANTS ===

    def update_variant(self, variant_id, price, compare_at_price=None, retry: bool = True,
                       clear_compare_at: bool = False) -> requests.Response:
        """
        PUT one variant's price. compare_at_price None is omitted unless
        clear_compare_at is set, in which case it is sent as null.
        Returns the response; non-2xx raises UpstreamError.
        """
        payload: Dict[str, Any] = {"id": variant_id}
        money = format_money(price)
        if money is not None:
            payload["price"] = money
        compare_money = format_money(compare_at_price)
        if compare_money is not None:
            payload["compare_at_price"] = compare_money
        elif clear_compare_at:
            payload["compare_at_price"] = None

        if len(payload) == 1:
            raise ValueError(f"Nothing to update for variant {variant_id}")

        logger.debug(f"PUT variant {variant_id}: {payload}")
        response = self.request("PUT", f"/variants/{variant_id}.json", retry=retry, json={"variant": payload})
        self._raise_for_status(response, f"Failed to update variant {variant_id}")
        return response

    def bulk_update(self, entries: List[Dict[str, Any]]) -> BulkUpdateResult:
        """
        entries: [{productId, productTitle, variants: [{id, price, compareAtPrice}]}]
        or flat [{id, price, compare_at_price}]. Updates run one by one; a
        failure is recorded and the rest continue.
        """
        result = BulkUpdateResult()
        for entry in entries or []:
            if not isinstance(entry, dict):
                continue
            if isinstance(entry.get("variants"), list):
                product_id = str(entry.get("productId") or entry.get("product_id") or "")
                product_title = entry.get("productTitle") or entry.get("product_title") or ""
                variants = entry["variants"]
            else:
                product_id, product_title, variants = "", "", [entry]

            for variant in variants:
                variant = variant if isinstance(variant, dict) else {}
                variant_id = str(variant.get("id") or "")
                compare_at = variant.get("compareAtPrice", variant.get("compare_at_price"))
                try:
                    if not variant_id:
                        raise ValueError("Invalid variant payload provided for update.")
                    self.update_variant(variant_id, variant.get("price"), compare_at)
                    result.updated_count += 1
                except (UpstreamError, ValueError) as e:
                    result.failed_count += 1
                    result.failures.append(BulkUpdateFailure(
                        product_id=product_id,
                        product_title=product_title,
                        variant_id=variant_id,
                        reason=f"{e} {getattr(e, 'body', None) or ''}".strip(),
                    ))
        logger.info(f"Bulk update: {result.updated_count} updated, {result.failed_count} failed")
        return result

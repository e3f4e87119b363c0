"""
Bijou Pricing - Catalog proxy client

What the orchestrator talks to: the proxy routes of this service
(/products, /variants/bulk-update, /backups/{scope}, /supplements).
"""

import logging
from typing import Any, Dict, List, Optional

import requests

from .catalog import parse_scope
from .errors import UpstreamError
from .models import BackupSnapshot, BulkUpdateResult, ProductRecord, ProductVariantUpdates
from .supplements import SupplementTables

logger = logging.getLogger(__name__)


class CatalogClient:
    def __init__(self, base_url: str, session: Optional[requests.Session] = None, timeout: float = 60):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def _call(self, method: str, path: str, ok=(200,), **kwargs) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise UpstreamError(f"{method} {url} failed: {e}")
        if response.status_code not in ok:
            raise UpstreamError(
                f"{method} {path} returned {response.status_code}",
                status=response.status_code,
                body=response.text,
            )
        return response

    def fetch_products(self, status: str = "active") -> List[ProductRecord]:
        response = self._call("GET", "/products", params={"status": status})
        products = (response.json() or {}).get("products") or []
        logger.info(f"Fetched {len(products)} products (status={status})")
        return [ProductRecord.model_validate(product) for product in products]

    def push_variant_updates(self, updates: List[ProductVariantUpdates]) -> BulkUpdateResult:
        """200 = all updated, 207 = partial; both carry the summary"""
        body = {"updates": [update.to_wire() for update in updates]}
        response = self._call("POST", "/variants/bulk-update", ok=(200, 207), json=body)
        result = BulkUpdateResult.model_validate(response.json() or {})
        if result.failed_count:
            logger.warning(f"Bulk update: {result.updated_count} updated, {result.failed_count} failed")
        return result

    def get_backup(self, scope) -> Optional[BackupSnapshot]:
        key = parse_scope(scope).value
        response = self._call("GET", f"/backups/{key}", ok=(200, 404))
        if response.status_code == 404:
            return None
        backup = (response.json() or {}).get("backup")
        return BackupSnapshot.model_validate(backup) if backup else None

    def put_backup(self, scope, snapshot: BackupSnapshot) -> BackupSnapshot:
        key = parse_scope(scope).value
        response = self._call("POST", f"/backups/{key}", json=snapshot.to_wire())
        return BackupSnapshot.model_validate((response.json() or {}).get("backup") or snapshot.to_wire())

    def sync_supplements(self, tables: SupplementTables) -> Dict[str, Any]:
        wire = tables.to_wire()
        response = self._call(
            "POST",
            "/supplements",
            json={"bracelets": wire["bracelets"], "necklaces": wire["necklaces"]},
        )
        logger.info("Supplement tables synchronized")
        return response.json() or {}


class RemoteBackupStore:
    """get/put backup store backed by the proxy, for PricingOrchestrator(backup_store=...)"""

    def __init__(self, client: CatalogClient):
        self.client = client

    def get(self, scope) -> Optional[BackupSnapshot]:
        return self.client.get_backup(scope)

    def put(self, scope, snapshot: BackupSnapshot) -> BackupSnapshot:
        return self.client.put_backup(scope, snapshot)

"""
Bijou Pricing - Persistence

Scope-keyed backups (one slot per scope, last write wins) and the persisted
supplement tables. Two flavours each: in-memory (tests, no MONGO_URL) and
MongoDB (pymongo, synchronous like the rest of the catalog code).
"""

import copy
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pymongo.database import Database

from .catalog import parse_scope
from .models import BackupSnapshot
from .supplements import SupplementTables, default_supplement_tables

logger = logging.getLogger(__name__)


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def sanitize_backup_payload(payload: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    {timestamp, products} with a default timestamp and a products list.
    Products are deep-copied so the stored snapshot shares nothing with the caller.
    """
    payload = payload if isinstance(payload, dict) else {}
    timestamp = payload.get("timestamp")
    if not isinstance(timestamp, str) or not timestamp.strip():
        timestamp = now_iso()
    products = payload.get("products")
    if not isinstance(products, list):
        products = []
    return {"timestamp": timestamp, "products": copy.deepcopy(products)}


# === BACKUPS ===

class InMemoryBackupStore:
    def __init__(self):
        self._slots: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def get(self, scope) -> Optional[BackupSnapshot]:
        key = parse_scope(scope).value
        with self._lock:
            stored = self._slots.get(key)
        if stored is None:
            return None
        return BackupSnapshot.model_validate(copy.deepcopy(stored))

    def put(self, scope, payload) -> BackupSnapshot:
        key = parse_scope(scope).value
        if isinstance(payload, BackupSnapshot):
            payload = payload.to_wire()
        sanitized = sanitize_backup_payload(payload)
        with self._lock:
            self._slots[key] = sanitized
        logger.info(f"Backup stored for scope {key}: {len(sanitized['products'])} products")
        return BackupSnapshot.model_validate(copy.deepcopy(sanitized))


class MongoBackupStore:
    """One document per scope in `pricing_backups`"""

    def __init__(self, db: Database, collection: str = "pricing_backups"):
        self.collection = db[collection]

    def get(self, scope) -> Optional[BackupSnapshot]:
        key = parse_scope(scope).value
        doc = self.collection.find_one({"scope": key}, {"_id": 0})
        if not doc:
            return None
        return BackupSnapshot.model_validate({
            "timestamp": doc.get("timestamp") or now_iso(),
            "products": doc.get("products") or [],
        })

    def put(self, scope, payload) -> BackupSnapshot:
        key = parse_scope(scope).value
        if isinstance(payload, BackupSnapshot):
            payload = payload.to_wire()
        sanitized = sanitize_backup_payload(payload)
        self.collection.replace_one(
            {"scope": key},
            {"scope": key, **sanitized},
            upsert=True,
        )
        logger.info(f"Backup persisted for scope {key}: {len(sanitized['products'])} products")
        return BackupSnapshot.model_validate(sanitized)


# === SUPPLEMENTS ===

def merge_supplement_updates(current: SupplementTables, bracelets=None, necklaces=None) -> SupplementTables:
    """
    Merge partial {bracelets, necklaces} updates into the current tables.

    Only chains already present are updated; non-numeric values are ignored;
    necklace size overrides merge key by key.
    """
    updated = current.clone()

    if isinstance(bracelets, dict):
        for chain, value in bracelets.items():
            if chain not in updated.bracelets:
                continue
            try:
                updated.bracelets[chain] = float(value)
            except (TypeError, ValueError):
                logger.warning(f"Ignoring non-numeric bracelet supplement for {chain}: {value!r}")

    if isinstance(necklaces, dict):
        for chain, values in necklaces.items():
            config = updated.necklaces.get(chain)
            if config is None or not isinstance(values, dict):
                continue
            for source, attr in (("supplement", "supplement"), ("perCm", "per_cm"), ("per_cm", "per_cm")):
                if source not in values:
                    continue
                try:
                    setattr(config, attr, float(values[source]))
                except (TypeError, ValueError):
                    logger.warning(f"Ignoring non-numeric necklace {source} for {chain}: {values[source]!r}")
            for size, value in (values.get("sizes") or {}).items():
                try:
                    config.sizes[int(size)] = float(value)
                except (TypeError, ValueError):
                    continue

    return updated


class InMemorySupplementStore:
    def __init__(self, tables: Optional[SupplementTables] = None):
        self._tables = (tables or default_supplement_tables()).clone()
        self._lock = threading.Lock()

    def load(self) -> SupplementTables:
        with self._lock:
            return self._tables.clone()

    def save(self, tables: SupplementTables) -> SupplementTables:
        with self._lock:
            self._tables = tables.clone()
            return self._tables.clone()

    def update(self, bracelets=None, necklaces=None) -> SupplementTables:
        with self._lock:
            self._tables = merge_supplement_updates(self._tables, bracelets, necklaces)
            return self._tables.clone()


class MongoSupplementStore:
    """Single document `{_key: "current", tables: {...}}` in `pricing_supplements`"""

    KEY = "current"

    def __init__(self, db: Database, collection: str = "pricing_supplements"):
        self.collection = db[collection]

    def load(self) -> SupplementTables:
        doc = self.collection.find_one({"_key": self.KEY}, {"_id": 0})
        if not doc or not doc.get("tables"):
            return default_supplement_tables()
        return SupplementTables.model_validate(doc["tables"])

    def save(self, tables: SupplementTables) -> SupplementTables:
        wire = tables.to_wire()
        self.collection.replace_one(
            {"_key": self.KEY},
            {"_key": self.KEY, "tables": _mongo_safe(wire), "updated_at": now_iso()},
            upsert=True,
        )
        logger.info("Supplement tables persisted")
        return tables.clone()

    def update(self, bracelets=None, necklaces=None) -> SupplementTables:
        return self.save(merge_supplement_updates(self.load(), bracelets, necklaces))


def _mongo_safe(value):
    """BSON document keys must be strings (necklace size overrides are ints)"""
    if isinstance(value, dict):
        return {str(key): _mongo_safe(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_mongo_safe(item) for item in value]
    return value

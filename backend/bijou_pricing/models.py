"""
Bijou Pricing - Data Models

Entities:
- ProductRecord / ProductVariant - catalog products as seen by the pricing engine
- PricingPreview / PreviewVariant - ephemeral preview rows, never persisted
- LogEntry - activity log line shown to admins
- BackupSnapshot - one scope backup slot
- VariantUpdate / BulkUpdateResult - outbound catalog updates

Wire format is camelCase (compareAtPrice, basePrice, ...); Python attributes are snake_case.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


# === ENUMS ===

class ProductFamily(str, Enum):
    BRACELET = "bracelet"
    NECKLACE = "necklace"
    RING = "ring"
    HANDCHAIN = "handchain"
    SET = "set"


class ProductStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class Scope(str, Enum):
    GLOBAL = "global"
    BRACELETS = "bracelets"
    NECKLACES = "necklaces"
    RINGS = "rings"
    HANDCHAINS = "handchains"
    SETS = "sets"


class Action(str, Enum):
    PREVIEW = "preview"
    APPLY = "apply"
    BACKUP = "backup"
    RESTORE = "restore"
    METAFIELD_ALIGN = "metafield-align"


class VariantStatus(str, Enum):
    CHANGED = "changed"
    UNCHANGED = "unchanged"
    MISSING = "missing"


class PreviewOutcome(str, Enum):
    READY = "ready"
    EMPTY = "empty"
    MISSING_VARIANTS = "missing-variants"


# scope → family it regenerates (global has none)
SCOPE_FAMILIES: Dict[Scope, Optional[ProductFamily]] = {
    Scope.GLOBAL: None,
    Scope.BRACELETS: ProductFamily.BRACELET,
    Scope.NECKLACES: ProductFamily.NECKLACE,
    Scope.RINGS: ProductFamily.RING,
    Scope.HANDCHAINS: ProductFamily.HANDCHAIN,
    Scope.SETS: ProductFamily.SET,
}

# scopes whose supplement table can take a percentage adjustment with undo
CHAIN_ADJUSTMENT_SCOPES = (Scope.BRACELETS, Scope.NECKLACES)


# === CATALOG ===

class ProductVariant(CamelModel):
    id: str
    title: str = ""
    price: float = 0
    compare_at_price: Optional[float] = None
    options: List[str] = Field(default_factory=list)

    # filled by generators, empty for variants read from the catalog
    chain_type: Optional[str] = None
    size: Optional[int] = None
    band: Optional[str] = None
    ring_size: Optional[str] = None
    parent_signature: Optional[str] = None


class ProductRecord(CamelModel):
    id: str
    title: str = ""
    handle: Optional[str] = None
    family: Optional[ProductFamily] = None
    tags: List[str] = Field(default_factory=list)
    base_price: float = 0
    base_compare_at_price: Optional[float] = None
    variants: List[ProductVariant] = Field(default_factory=list)
    status: ProductStatus = ProductStatus.ACTIVE
    metafields: Dict[str, Any] = Field(default_factory=dict)

    @property
    def is_active(self) -> bool:
        return self.status == ProductStatus.ACTIVE


# === PREVIEW ===

class PreviewVariant(ProductVariant):
    previous_price: Optional[float] = None
    previous_compare_at_price: Optional[float] = None
    status: VariantStatus = VariantStatus.MISSING
    change_type: Optional[str] = None
    existing_variant_id: Optional[str] = None


class PricingPreview(CamelModel):
    product: ProductRecord
    updated_base_price: float
    updated_compare_at_price: Optional[float] = None
    variants: List[PreviewVariant] = Field(default_factory=list)


class PreviewResult(CamelModel):
    """What a Preview(scope) call hands back to the caller"""
    scope: Scope
    outcome: PreviewOutcome
    previews: List[PricingPreview] = Field(default_factory=list)
    missing_count: int = 0


class ApplyResult(CamelModel):
    scope: Scope
    products_touched: int = 0
    variants_changed: int = 0
    missing_count: int = 0
    pushed_count: int = 0
    failed_count: int = 0
    failures: List[Dict[str, Any]] = Field(default_factory=list)


# === LOG / BACKUPS ===

class LogEntry(CamelModel):
    id: str
    message: str
    scope: Scope
    timestamp: str
    level: str = "info"


class BackupSnapshot(CamelModel):
    timestamp: str
    products: List[ProductRecord] = Field(default_factory=list)


# === OUTBOUND UPDATES ===

class VariantUpdate(CamelModel):
    id: str
    price: Optional[float] = None
    compare_at_price: Optional[float] = None


class ProductVariantUpdates(CamelModel):
    """One product's worth of variant updates in a bulk-update request"""
    product_id: str
    product_title: str = ""
    variants: List[VariantUpdate] = Field(default_factory=list)


class BulkUpdateFailure(CamelModel):
    product_id: str = ""
    product_title: str = ""
    variant_id: str = ""
    reason: str = ""


class BulkUpdateResult(CamelModel):
    updated_count: int = 0
    failed_count: int = 0
    failures: List[BulkUpdateFailure] = Field(default_factory=list)

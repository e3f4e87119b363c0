"""
Bijou Pricing - Preview / Apply / Backup / Restore

Owns the in-memory catalog, the supplement tables, the scope backup slots and
the chain-adjustment undo slots.

Per scope: Idle → Busy(action) → Idle. The busy flags are informational; the
per-scope RLock is what serializes Apply/Backup/Restore/adjustments.

Flow:
1. preview(scope): generate variants, pair them with existing ones, classify
2. apply(scope): same pairing, write prices into the catalog, push changes
3. backup(scope) / restore(scope): deep snapshots of the whole catalog
4. adjust_supplements / undo_supplement_adjustment: % on a chain table with undo
"""

import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from pymongo.errors import PyMongoError

from .activity_log import ActivityLog
from .alignment import align_product
from .catalog import filter_products_for_scope, parse_scope
from .errors import NoBackupError, PricingError, ValidationError
from .generators import generate_variants
from .matcher import (
    VariantMatchContext,
    build_lookup,
    build_match_contexts,
    chain_size_identity,
    classify_tokens,
    resolve_base_prices,
    ring_identity,
)
from .models import (
    Action,
    ApplyResult,
    BackupSnapshot,
    CHAIN_ADJUSTMENT_SCOPES,
    PreviewOutcome,
    PreviewResult,
    PreviewVariant,
    PricingPreview,
    ProductFamily,
    ProductRecord,
    ProductVariant,
    ProductVariantUpdates,
    SCOPE_FAMILIES,
    Scope,
    VariantStatus,
    VariantUpdate,
)
from .rounding import apply_percentage
from .supplements import (
    NECKLACE_SIZES,
    REFERENCE_NECKLACE_SIZE,
    SupplementTables,
    apply_supplement_percentage,
    default_supplement_tables,
    necklace_size_supplement,
    update_bracelet_supplement,
    update_hand_chain_supplement,
    update_necklace_supplement,
    update_ring_supplement,
)

logger = logging.getLogger(__name__)

CHANGE_TOLERANCE = 0.01

# scope → supplement table adjusted by adjust_supplements
CHAIN_ADJUSTMENT_TABLES = {
    Scope.BRACELETS: "bracelets",
    Scope.NECKLACES: "necklaces",
}

VARIANT_FIELDS = set(ProductVariant.model_fields)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def has_meaningful_delta(previous, target, tolerance: float = CHANGE_TOLERANCE) -> bool:
    if previous is None or target is None:
        return previous is not target
    return abs(previous - target) > tolerance


def change_type(price_changed: bool, compare_changed: bool) -> Optional[str]:
    if price_changed and compare_changed:
        return "price-compare"
    if price_changed:
        return "price"
    if compare_changed:
        return "compare"
    return None


def as_catalog_variant(variant: ProductVariant) -> ProductVariant:
    """Strip preview-only fields"""
    return ProductVariant.model_validate(variant.model_dump(include=VARIANT_FIELDS))


# =====================
# PAIRING GENERATED ↔ EXISTING
# =====================

def _resolved_contexts(product: ProductRecord, tables: SupplementTables) -> List[VariantMatchContext]:
    family = product.family

    if family == ProductFamily.BRACELET:
        lookup = build_lookup(tables.bracelets)
        contexts = build_match_contexts(product, lookup)

        def surcharge_of(chain, size):
            return tables.bracelets.get(chain)

        for context in contexts:
            resolve_base_prices(context, product, tables.bracelets.keys(), surcharge_of)
        return contexts

    if family == ProductFamily.NECKLACE:
        lookup = build_lookup(tables.necklaces)
        contexts = build_match_contexts(product, lookup, reference_size=REFERENCE_NECKLACE_SIZE)

        def surcharge_of(chain, size):
            config = tables.necklaces.get(chain)
            if config is None:
                return None
            return necklace_size_supplement(config, size if size is not None else REFERENCE_NECKLACE_SIZE)

        for context in contexts:
            resolve_base_prices(context, product, tables.necklaces.keys(), surcharge_of)
        return contexts

    return []


def _existing_index(
    product: ProductRecord,
    tables: SupplementTables,
    contexts: List[VariantMatchContext],
) -> Dict[Tuple, ProductVariant]:
    """pairing key → existing variant; the first variant per key wins"""
    family = product.family
    index: Dict[Tuple, ProductVariant] = {}

    if family == ProductFamily.BRACELET:
        for context in contexts:
            for member in context.members:
                index.setdefault((context.parent_signature, member.chain), member.variant)

    elif family == ProductFamily.NECKLACE:
        for context in contexts:
            for member in context.members:
                if member.size in NECKLACE_SIZES:
                    index.setdefault((context.parent_signature, member.chain, member.size), member.variant)

    elif family == ProductFamily.SET:
        lookup = build_lookup(tables.necklaces)
        for variant in product.variants:
            chain, size = chain_size_identity(variant, lookup, NECKLACE_SIZES)
            if chain and size is not None:
                index.setdefault((chain, size), variant)

    elif family == ProductFamily.HANDCHAIN:
        lookup = build_lookup(tables.hand_chains)
        for variant in product.variants:
            chain = classify_tokens(variant, lookup).chain
            if chain:
                index.setdefault((chain,), variant)

    elif family == ProductFamily.RING:
        lookup = build_lookup(tables.rings)
        for variant in product.variants:
            band, size = ring_identity(variant, lookup)
            if band and size:
                index.setdefault((band, size), variant)

    return index


def _generated_key(family: ProductFamily, variant: ProductVariant) -> Tuple:
    if family == ProductFamily.BRACELET:
        return (variant.parent_signature, variant.chain_type)
    if family == ProductFamily.NECKLACE:
        return (variant.parent_signature, variant.chain_type, variant.size)
    if family == ProductFamily.SET:
        return (variant.chain_type, variant.size)
    if family == ProductFamily.HANDCHAIN:
        return (variant.chain_type,)
    return (variant.band, variant.ring_size)


def _compare_of(variant: ProductVariant, product: ProductRecord) -> Optional[float]:
    if variant.compare_at_price is not None:
        return variant.compare_at_price
    if product.base_compare_at_price is not None:
        return product.base_compare_at_price
    return variant.price


def classify_variant(
    generated: ProductVariant,
    existing: Optional[ProductVariant],
    product: ProductRecord,
) -> PreviewVariant:
    """Attach previous prices, status and change type to one generated variant"""
    data = generated.model_dump()
    if existing is None:
        return PreviewVariant(**data, status=VariantStatus.MISSING)

    previous_price = existing.price
    previous_compare = _compare_of(existing, product)
    price_changed = has_meaningful_delta(previous_price, generated.price)
    compare_changed = generated.compare_at_price is not None and (
        previous_compare is None or has_meaningful_delta(previous_compare, generated.compare_at_price)
    )
    kind = change_type(price_changed, compare_changed)

    return PreviewVariant(
        **data,
        previous_price=previous_price,
        previous_compare_at_price=previous_compare,
        status=VariantStatus.CHANGED if kind else VariantStatus.UNCHANGED,
        change_type=kind,
        existing_variant_id=existing.id,
    )


def build_family_preview(
    product: ProductRecord,
    tables: SupplementTables,
    allowed_chains: Optional[Iterable[str]] = None,
) -> PricingPreview:
    contexts = _resolved_contexts(product, tables)
    generated = generate_variants(product.family, product, tables, contexts=contexts, allowed_chains=allowed_chains)
    index = _existing_index(product, tables, contexts)

    variants = [
        classify_variant(variant, index.get(_generated_key(product.family, variant)), product)
        for variant in generated
    ]
    return PricingPreview(
        product=product,
        updated_base_price=product.base_price,
        updated_compare_at_price=product.base_compare_at_price,
        variants=variants,
    )


def build_global_preview(product: ProductRecord, percent: float) -> PricingPreview:
    base_price = product.base_price or 0
    base_compare = product.base_compare_at_price if product.base_compare_at_price is not None else base_price

    variants = []
    for variant in product.variants:
        current_price = variant.price if variant.price is not None else base_price
        current_compare = variant.compare_at_price if variant.compare_at_price is not None else base_compare
        next_price = apply_percentage(current_price, percent)
        next_compare = apply_percentage(current_compare, percent)
        price_changed = has_meaningful_delta(current_price, next_price)
        compare_changed = has_meaningful_delta(current_compare, next_compare)
        kind = change_type(price_changed, compare_changed)
        variants.append(PreviewVariant(
            **variant.model_dump(exclude={"price", "compare_at_price"}),
            price=next_price,
            compare_at_price=next_compare,
            previous_price=current_price,
            previous_compare_at_price=current_compare,
            status=VariantStatus.CHANGED if kind else VariantStatus.UNCHANGED,
            change_type=kind,
            existing_variant_id=variant.id,
        ))

    return PricingPreview(
        product=product,
        updated_base_price=apply_percentage(base_price, percent),
        updated_compare_at_price=apply_percentage(base_compare, percent),
        variants=variants,
    )


def preview_outcome(previews: List[PricingPreview]) -> Tuple[PreviewOutcome, int]:
    if not previews:
        return PreviewOutcome.EMPTY, 0
    missing = sum(
        1 for preview in previews for variant in preview.variants if variant.status == VariantStatus.MISSING
    )
    return (PreviewOutcome.MISSING_VARIANTS if missing else PreviewOutcome.READY), missing


# =====================
# ORCHESTRATOR
# =====================

class PricingOrchestrator:
    """
    Collaborators are optional and injected:
    - catalog_client: fetch_products / push_variant_updates / sync_supplements
    - backup_store: get(scope) / put(scope, snapshot)
    - supplement_store: load() / save(tables)
    """

    def __init__(
        self,
        products: Optional[List[ProductRecord]] = None,
        supplements: Optional[SupplementTables] = None,
        catalog_client=None,
        backup_store=None,
        supplement_store=None,
        activity_log: Optional[ActivityLog] = None,
    ):
        self._products: List[ProductRecord] = [product.model_copy(deep=True) for product in products or []]
        if supplements is None:
            supplements = supplement_store.load() if supplement_store else default_supplement_tables()
        self._supplements = supplements.clone()
        self.catalog_client = catalog_client
        self.backup_store = backup_store
        self.supplement_store = supplement_store
        self.activity_log = activity_log or ActivityLog()

        self.backups: Dict[Scope, BackupSnapshot] = {}
        self.chain_adjustment_backups: Dict[Scope, SupplementTables] = {}
        self.busy: Dict[Scope, Action] = {}

        self._locks = {scope: threading.RLock() for scope in Scope}
        self._catalog_lock = threading.RLock()

    # === STATE ===

    @property
    def products(self) -> List[ProductRecord]:
        with self._catalog_lock:
            return [product.model_copy(deep=True) for product in self._products]

    @property
    def supplements(self) -> SupplementTables:
        return self._supplements.clone()

    def is_busy(self, scope) -> bool:
        return parse_scope(scope) in self.busy

    def log(self, message: str, scope, level: str = "info"):
        return self.activity_log.log(message, scope, level)

    @contextmanager
    def _busy(self, scope: Scope, action: Action):
        with self._locks[scope]:
            previous = self.busy.get(scope)
            self.busy[scope] = action
            try:
                yield
            finally:
                if previous is None:
                    self.busy.pop(scope, None)
                else:
                    self.busy[scope] = previous

    def _replace_products(self, products: List[ProductRecord]):
        with self._catalog_lock:
            self._products = products

    # === CATALOG SYNC ===

    def sync_products(self, status: str = "active") -> int:
        if self.catalog_client is None:
            self.log("Catalog client missing; keeping the local catalog.", Scope.GLOBAL, "warning")
            return len(self._products)
        try:
            products = self.catalog_client.fetch_products(status)
        except PricingError as e:
            logger.error(f"Catalog sync failed: {e}")
            self.log("Failed to load catalog products; keeping the local catalog.", Scope.GLOBAL, "error")
            return len(self._products)

        self._replace_products([product.model_copy(deep=True) for product in products])
        if products:
            self.log(f"Loaded {_plural(len(products), 'product')} from the catalog.", Scope.GLOBAL, "success")
        else:
            self.log("No catalog products found.", Scope.GLOBAL, "warning")
        return len(products)

    # === PREVIEW ===

    def preview(self, scope, percent: float = 0, allowed_chains: Optional[Iterable[str]] = None) -> PreviewResult:
        """Pure: nothing is stored, nothing is logged"""
        scope = parse_scope(scope)
        with self._busy(scope, Action.PREVIEW):
            if scope == Scope.GLOBAL:
                return self.preview_global(percent)

            tables = self._supplements.clone()
            products = [
                product for product in filter_products_for_scope(self.products, scope)
                if product.is_active
            ]
            previews = [build_family_preview(product, tables, allowed_chains) for product in products]
            outcome, missing = preview_outcome(previews)
            return PreviewResult(scope=scope, outcome=outcome, previews=previews, missing_count=missing)

    def preview_global(self, percent: float = 0) -> PreviewResult:
        previews = [
            build_global_preview(product, percent) for product in self.products if product.is_active
        ]
        outcome, missing = preview_outcome(previews)
        return PreviewResult(scope=Scope.GLOBAL, outcome=outcome, previews=previews, missing_count=missing)

    # === APPLY ===

    def apply(self, scope, percent: float = 0, allowed_chains: Optional[Iterable[str]] = None) -> ApplyResult:
        scope = parse_scope(scope)
        if scope == Scope.GLOBAL:
            return self.apply_global(percent)

        with self._busy(scope, Action.APPLY):
            preview = self.preview(scope, allowed_chains=allowed_chains)
            previews = {entry.product.id: entry for entry in preview.previews}
            result = ApplyResult(scope=scope, missing_count=preview.missing_count)

            updated_products = []
            updates: Dict[str, ProductVariantUpdates] = {}
            originals: Dict[str, ProductVariant] = {}
            notes: List[str] = []
            warn = False

            for product in self.products:
                entry = previews.get(product.id)
                if entry is None:
                    updated_products.append(product)
                    continue

                if not product.variants:
                    product.variants = [as_catalog_variant(variant) for variant in entry.variants]
                    notes.append(f"{product.title}: created {_plural(len(product.variants), 'variant')} (no existing variants).")
                    result.products_touched += 1
                    updated_products.append(product)
                    continue

                targets = {
                    variant.existing_variant_id: variant
                    for variant in entry.variants
                    if variant.status == VariantStatus.CHANGED
                }
                missing = [variant.title for variant in entry.variants if variant.status == VariantStatus.MISSING]
                if missing:
                    notes.append(f"{product.title}: {_plural(len(missing), 'variant')} missing in catalog ({', '.join(missing)}).")
                    warn = True

                next_variants = []
                for variant in product.variants:
                    target = targets.get(variant.id)
                    if target is None:
                        next_variants.append(variant)
                        continue
                    originals[variant.id] = variant
                    next_variants.append(variant.model_copy(update={
                        "price": target.price,
                        "compare_at_price": target.compare_at_price,
                    }))
                    updates.setdefault(product.id, ProductVariantUpdates(
                        product_id=product.id, product_title=product.title,
                    )).variants.append(VariantUpdate(
                        id=variant.id, price=target.price, compare_at_price=target.compare_at_price,
                    ))

                if targets:
                    result.products_touched += 1
                    result.variants_changed += len(targets)
                product.variants = next_variants
                updated_products.append(product)

            self._commit(scope, updated_products, updates, originals, result, notes, warn)
            return result

    def apply_global(self, percent: float = 0) -> ApplyResult:
        """Scales base prices and every variant of active products, rounded to the luxury step"""
        scope = Scope.GLOBAL
        with self._busy(scope, Action.APPLY):
            result = ApplyResult(scope=scope)
            updated_products = []
            updates: Dict[str, ProductVariantUpdates] = {}
            originals: Dict[str, ProductVariant] = {}

            for product in self.products:
                if not product.is_active:
                    updated_products.append(product)
                    continue

                preview = build_global_preview(product, percent)
                changed = {
                    variant.id: variant for variant in preview.variants if variant.status == VariantStatus.CHANGED
                }
                next_variants = []
                for variant in product.variants:
                    target = changed.get(variant.id)
                    if target is None:
                        next_variants.append(variant)
                        continue
                    originals[variant.id] = variant
                    next_variants.append(variant.model_copy(update={
                        "price": target.price,
                        "compare_at_price": target.compare_at_price,
                    }))
                    updates.setdefault(product.id, ProductVariantUpdates(
                        product_id=product.id, product_title=product.title,
                    )).variants.append(VariantUpdate(
                        id=variant.id, price=target.price, compare_at_price=target.compare_at_price,
                    ))

                product.base_price = preview.updated_base_price
                product.base_compare_at_price = preview.updated_compare_at_price
                product.variants = next_variants
                result.products_touched += 1
                result.variants_changed += len(changed)
                updated_products.append(product)

            self._commit(scope, updated_products, updates, originals, result)
            return result

    def _commit(
        self,
        scope: Scope,
        updated_products: List[ProductRecord],
        updates: Dict[str, ProductVariantUpdates],
        originals: Dict[str, ProductVariant],
        result: ApplyResult,
        notes: Optional[List[str]] = None,
        warn: bool = False,
    ):
        """
        Store the updated catalog and push changed variants when a catalog
        client is attached. Variants the catalog rejected are reverted.

        One Apply writes one activity entry: the summary, followed by the
        per-product notes (created sets, missing variants).
        """
        notes = notes or []

        def finish(summary: str, level: str):
            self.log(" ".join([summary] + notes), scope, "warning" if warn and level == "success" else level)

        if self.catalog_client is None or not updates:
            self._replace_products(updated_products)
            if result.variants_changed:
                finish(
                    f"Updated {_plural(result.variants_changed, 'variant')} across "
                    f"{_plural(result.products_touched, 'product')}.",
                    "success",
                )
            else:
                finish("No price changes required.", "success" if notes else "info")
            return

        try:
            summary = self.catalog_client.push_variant_updates(list(updates.values()))
        except PricingError as e:
            logger.error(f"Variant push failed for {scope.value}: {e}")
            result.failed_count = sum(len(entry.variants) for entry in updates.values())
            result.failures = [{"reason": str(e)}]
            notes = []
            finish("Failed to push price changes to the catalog; nothing was applied.", "error")
            return

        failed_ids = {failure.variant_id for failure in summary.failures if failure.variant_id}
        if failed_ids:
            for product in updated_products:
                product.variants = [
                    originals[variant.id] if variant.id in failed_ids and variant.id in originals else variant
                    for variant in product.variants
                ]

        self._replace_products(updated_products)
        result.pushed_count = summary.updated_count
        result.failed_count = summary.failed_count
        result.failures = [failure.to_wire() for failure in summary.failures]

        for failure in summary.failures:
            logger.warning(
                f"Catalog rejected variant {failure.variant_id} of {failure.product_title or failure.product_id}: "
                f"{failure.reason}"
            )
        if summary.failed_count:
            finish(
                f"Pushed {_plural(summary.updated_count, 'variant')}, "
                f"{summary.failed_count} failed and were reverted.",
                "warning",
            )
        else:
            finish(f"Pushed {_plural(summary.updated_count, 'variant')} to the catalog.", "success")

    # === BACKUP / RESTORE ===

    def backup(self, scope) -> BackupSnapshot:
        """Single slot per scope, overwritten on every call"""
        scope = parse_scope(scope)
        with self._busy(scope, Action.BACKUP):
            snapshot = BackupSnapshot(timestamp=_now(), products=self.products)
            self.backups[scope] = snapshot.model_copy(deep=True)

            if self.backup_store is not None:
                try:
                    self.backup_store.put(scope, snapshot)
                except (PricingError, PyMongoError) as e:
                    logger.error(f"Persisting backup for {scope.value} failed: {e}")
                    self.log("Backup kept locally; persisting it failed.", scope, "warning")

            self.log(f"Backup captured with {_plural(len(snapshot.products), 'product')}.", scope, "success")
            return snapshot

    def _load_backup(self, scope: Scope) -> BackupSnapshot:
        snapshot = self.backups.get(scope)
        if snapshot is None and self.backup_store is not None:
            try:
                snapshot = self.backup_store.get(scope)
            except (PricingError, PyMongoError) as e:
                logger.error(f"Loading persisted backup for {scope.value} failed: {e}")
                snapshot = None
        if snapshot is None:
            raise NoBackupError(scope.value)
        return snapshot

    def restore(self, scope) -> bool:
        """
        Put the scope's backup back into the live catalog.
        Without a backup this logs a warning and leaves everything untouched.
        """
        scope = parse_scope(scope)
        with self._busy(scope, Action.RESTORE):
            try:
                snapshot = self._load_backup(scope)
            except NoBackupError:
                self.log("No backup available to restore.", scope, "warning")
                return False

            restored = [product.model_copy(deep=True) for product in snapshot.products]

            if self.catalog_client is not None:
                current = {
                    variant.id: variant for product in self._products for variant in product.variants
                }
                updates: Dict[str, ProductVariantUpdates] = {}
                originals: Dict[str, ProductVariant] = {}
                for product in restored:
                    for variant in product.variants:
                        live = current.get(variant.id)
                        if live is None or (
                            live.price == variant.price and live.compare_at_price == variant.compare_at_price
                        ):
                            continue
                        originals[variant.id] = live
                        updates.setdefault(product.id, ProductVariantUpdates(
                            product_id=product.id, product_title=product.title,
                        )).variants.append(VariantUpdate(
                            id=variant.id, price=variant.price, compare_at_price=variant.compare_at_price,
                        ))
                result = ApplyResult(
                    scope=scope,
                    products_touched=len(updates),
                    variants_changed=sum(len(entry.variants) for entry in updates.values()),
                )
                self._commit(scope, restored, updates, originals, result)
                if result.failed_count:
                    self.log("Backup restore completed with catalog errors.", scope, "warning")
                    return False
            else:
                self._replace_products(restored)

            self.log(f"Backup from {snapshot.timestamp} restored.", scope, "success")
            return True

    # === SUPPLEMENTS ===

    def _store_supplements(self, tables: SupplementTables):
        self._supplements = tables
        if self.supplement_store is not None:
            try:
                self.supplement_store.save(tables)
            except PyMongoError as e:
                logger.error(f"Persisting supplement tables failed: {e}")

    def set_bracelet_supplement(self, chain: str, value: float, rounding: bool = True) -> SupplementTables:
        with self._locks[Scope.BRACELETS]:
            self._store_supplements(update_bracelet_supplement(self._supplements, chain, value, rounding))
            self.log(f"Bracelet supplement for {chain} set to {self._supplements.bracelets[chain]}.",
                     Scope.BRACELETS, "silent")
        return self.supplements

    def set_necklace_supplement(self, chain: str, field: str, value: float, rounding: bool = True) -> SupplementTables:
        with self._locks[Scope.NECKLACES]:
            self._store_supplements(update_necklace_supplement(self._supplements, chain, field, value, rounding))
            self.log(f"Necklace {field} for {chain} updated.", Scope.NECKLACES, "silent")
        return self.supplements

    def set_ring_supplement(self, band: str, size: str, value: float, rounding: bool = True) -> SupplementTables:
        with self._locks[Scope.RINGS]:
            self._store_supplements(update_ring_supplement(self._supplements, band, size, value, rounding))
            self.log(f"Ring supplement for {band} {size} set to {self._supplements.rings[band][size]}.",
                     Scope.RINGS, "silent")
        return self.supplements

    def set_hand_chain_supplement(self, chain: str, value: float, rounding: bool = True) -> SupplementTables:
        with self._locks[Scope.HANDCHAINS]:
            self._store_supplements(update_hand_chain_supplement(self._supplements, chain, value, rounding))
            self.log(f"Hand chain supplement for {chain} set to {self._supplements.hand_chains[chain]}.",
                     Scope.HANDCHAINS, "silent")
        return self.supplements

    def adjust_supplements(
        self,
        scope,
        percent: float,
        step: float = 10,
        minimum: float = 0,
        strategy: Optional[str] = None,
    ) -> SupplementTables:
        """Percentage on the bracelet or necklace table; the previous tables are kept for undo"""
        scope = parse_scope(scope)
        if scope not in CHAIN_ADJUSTMENT_SCOPES:
            raise ValidationError(f"Supplement adjustment is not available for scope {scope.value}")

        with self._locks[scope]:
            self.chain_adjustment_backups[scope] = self._supplements.clone()
            adjusted = apply_supplement_percentage(
                self._supplements, CHAIN_ADJUSTMENT_TABLES[scope], percent, step, minimum, strategy,
            )
            self._store_supplements(adjusted)
            self.log(f"Applied {percent}% to {CHAIN_ADJUSTMENT_TABLES[scope]} supplements.", scope, "success")
        return self.supplements

    def undo_supplement_adjustment(self, scope) -> bool:
        scope = parse_scope(scope)
        if scope not in CHAIN_ADJUSTMENT_SCOPES:
            raise ValidationError(f"Supplement adjustment is not available for scope {scope.value}")

        with self._locks[scope]:
            previous = self.chain_adjustment_backups.pop(scope, None)
            if previous is None:
                self.log("No supplement adjustment to undo.", scope, "warning")
                return False

            table = CHAIN_ADJUSTMENT_TABLES[scope]
            restored = self._supplements.clone()
            setattr(restored, table, getattr(previous, table))
            self._store_supplements(restored)
            self.log(f"Restored {table} supplements from before the last adjustment.", scope, "success")
            return True

    def sync_supplements(self) -> bool:
        if self.catalog_client is None:
            self.log("Catalog client missing; supplements not synchronized.", Scope.GLOBAL, "warning")
            return False
        try:
            self.catalog_client.sync_supplements(self._supplements)
        except PricingError as e:
            logger.error(f"Supplement sync failed: {e}")
            self.log("Failed to synchronize supplement tables.", Scope.GLOBAL, "error")
            return False
        self.log("Supplement tables synchronized.", Scope.GLOBAL, "success")
        return True

    # === METAFIELD ALIGNMENT ===

    def align_variant_options(self, scope) -> Dict[str, int]:
        scope = parse_scope(scope)
        family = SCOPE_FAMILIES[scope]
        if family is None:
            raise ValidationError("Metafield alignment needs a family scope")

        with self._busy(scope, Action.METAFIELD_ALIGN):
            tables = self._supplements.clone()
            touched = changed = 0
            updated_products = []
            for product in self.products:
                outcome = align_product(product, tables) if product.family == family else None
                if outcome is not None:
                    touched += 1
                    if outcome.changed:
                        changed += 1
                        product.variants = outcome.variants
                updated_products.append(product)

            if changed:
                self._replace_products(updated_products)

            label = family.value
            if touched == 0:
                self.log(f"No {label} products had complete metafields to align.", scope, "warning")
            elif changed == 0:
                self.log(f"Metafield options already aligned for {_plural(touched, label)}.", scope, "info")
            else:
                self.log(
                    f"Set variant options from metafields for {_plural(touched, label)} ({changed} updated).",
                    scope,
                    "success",
                )
            return {"touchedCount": touched, "changedCount": changed}

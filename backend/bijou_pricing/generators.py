"""
Bijou Pricing - Variant Generators

One pure function per product family; none of them mutates its inputs.

- bracelet: match context × bracelet chain
- necklace: price group × necklace chain × size ladder
- ring: band × ring size (direct 2-D lookup)
- hand chain: hand-chain table, optional allow-list
- set: necklace chain × size, bracelet + necklace per-size supplement

Every generated price and compare-at price is rounded to the luxury step.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from .matcher import DEFAULT_PARENT_SIGNATURE, VariantMatchContext, default_context
from .models import ProductFamily, ProductRecord, ProductVariant
from .rounding import round_to_luxury_step
from .supplements import (
    NECKLACE_SIZES,
    RING_SIZES,
    NecklaceSupplement,
    SupplementTables,
    necklace_size_supplement,
)

TITLE_SEPARATOR = " • "


@dataclass
class PriceGroup:
    """Base prices of one necklace option group (e.g. one pendant colour)"""
    signature: str = DEFAULT_PARENT_SIGNATURE
    label: str = ""
    base_price: float = 0
    base_compare_at: Optional[float] = None

    @classmethod
    def from_context(cls, context: VariantMatchContext) -> "PriceGroup":
        return cls(
            signature=context.parent_signature,
            label=context.parent_label,
            base_price=context.base_price or 0,
            base_compare_at=context.base_compare_at,
        )


def _price(value: float, round_prices: bool) -> float:
    return round_to_luxury_step(value) if round_prices else value


def _compare_base(base_price: float, base_compare_at: Optional[float]) -> float:
    return base_compare_at if base_compare_at is not None else base_price


def _variant_id(product: ProductRecord, signature: str, *parts) -> str:
    pieces = [product.id]
    if signature and signature != DEFAULT_PARENT_SIGNATURE:
        pieces.append(signature)
    pieces.extend(str(part) for part in parts)
    return "-".join(pieces)


def _title(label: str, *parts) -> str:
    body = TITLE_SEPARATOR.join(str(part) for part in parts)
    return f"{label}{TITLE_SEPARATOR}{body}" if label else body


def _size_label(size: int) -> str:
    return f"{size}cm"


# =====================
# BRACELET
# =====================

def build_bracelet_variants(
    product: ProductRecord,
    supplements: Dict[str, float],
    contexts: Optional[List[VariantMatchContext]] = None,
    round_prices: bool = True,
) -> List[ProductVariant]:
    contexts = contexts or [default_context(product)]
    variants = []
    for context in contexts:
        base_price = context.base_price or 0
        base_compare = _compare_base(base_price, context.base_compare_at)
        options = [context.parent_label] if context.parent_label else []
        for chain, supplement in supplements.items():
            variants.append(ProductVariant(
                id=_variant_id(product, context.parent_signature, chain),
                title=_title(context.parent_label, chain),
                price=_price(base_price + supplement, round_prices),
                compare_at_price=_price(base_compare + supplement, round_prices),
                options=options + [chain],
                chain_type=chain,
                parent_signature=context.parent_signature,
            ))
    return variants


# =====================
# NECKLACE
# =====================

def build_necklace_variants(
    product: ProductRecord,
    necklaces: Dict[str, NecklaceSupplement],
    groups: Optional[List[PriceGroup]] = None,
    sizes: Iterable[int] = NECKLACE_SIZES,
    round_prices: bool = True,
) -> List[ProductVariant]:
    sizes = sorted(sizes)
    reference_size = sizes[0]
    groups = groups or [PriceGroup(
        base_price=product.base_price,
        base_compare_at=product.base_compare_at_price,
    )]

    variants = []
    for group in groups:
        base_compare = _compare_base(group.base_price, group.base_compare_at)
        options = [group.label] if group.label else []
        for chain, config in necklaces.items():
            for size in sizes:
                supplement = necklace_size_supplement(config, size, reference_size)
                variants.append(ProductVariant(
                    id=_variant_id(product, group.signature, chain, size),
                    title=_title(group.label, chain, _size_label(size)),
                    price=_price(group.base_price + supplement, round_prices),
                    compare_at_price=_price(base_compare + supplement, round_prices),
                    options=options + [chain, f"{size} cm"],
                    chain_type=chain,
                    size=size,
                    parent_signature=group.signature,
                ))
    return variants


# =====================
# RING
# =====================

def build_ring_variants(
    product: ProductRecord,
    rings: Dict[str, Dict[str, float]],
    sizes: Iterable[str] = RING_SIZES,
    round_prices: bool = True,
) -> List[ProductVariant]:
    base_compare = _compare_base(product.base_price, product.base_compare_at_price)
    variants = []
    for band, band_sizes in rings.items():
        for size in sizes:
            supplement = band_sizes.get(size, 0)
            variants.append(ProductVariant(
                id=f"{product.id}-{band}-{size}",
                title=_title("", band, size),
                price=_price(product.base_price + supplement, round_prices),
                compare_at_price=_price(base_compare + supplement, round_prices),
                options=[band, size],
                band=band,
                ring_size=size,
            ))
    return variants


# =====================
# HAND CHAIN
# =====================

def build_hand_chain_variants(
    product: ProductRecord,
    hand_chains: Dict[str, float],
    allowed_chains: Optional[Iterable[str]] = None,
    round_prices: bool = True,
) -> List[ProductVariant]:
    allowed = set(allowed_chains) if allowed_chains else None
    base_compare = _compare_base(product.base_price, product.base_compare_at_price)
    variants = []
    for chain, supplement in hand_chains.items():
        if allowed is not None and chain not in allowed:
            continue
        variants.append(ProductVariant(
            id=f"{product.id}-{chain}",
            title=chain,
            price=_price(product.base_price + supplement, round_prices),
            compare_at_price=_price(base_compare + supplement, round_prices),
            options=[chain],
            chain_type=chain,
        ))
    return variants


# =====================
# SET
# =====================

def build_set_variants(
    product: ProductRecord,
    bracelets: Dict[str, float],
    necklaces: Dict[str, NecklaceSupplement],
    sizes: Iterable[int] = NECKLACE_SIZES,
    round_prices: bool = True,
) -> List[ProductVariant]:
    sizes = sorted(sizes)
    reference_size = sizes[0]
    base_compare = _compare_base(product.base_price, product.base_compare_at_price)
    variants = []
    for chain, config in necklaces.items():
        bracelet_supplement = bracelets.get(chain, 0)
        for size in sizes:
            supplement = bracelet_supplement + necklace_size_supplement(config, size, reference_size)
            variants.append(ProductVariant(
                id=f"{product.id}-{chain}-{size}",
                title=_title("", chain, _size_label(size)),
                price=_price(product.base_price + supplement, round_prices),
                compare_at_price=_price(base_compare + supplement, round_prices),
                options=[chain, f"{size} cm"],
                chain_type=chain,
                size=size,
            ))
    return variants


# =====================
# FAMILY DISPATCH
# =====================

def generate_variants(
    family: Optional[ProductFamily],
    product: ProductRecord,
    tables: SupplementTables,
    contexts: Optional[List[VariantMatchContext]] = None,
    allowed_chains: Optional[Iterable[str]] = None,
    round_prices: bool = True,
) -> List[ProductVariant]:
    """
    Closed dispatch over ProductFamily.

    Unclassified products (family None) raise ValueError: callers decide
    whether that means "skip".
    """
    if family is None:
        raise ValueError(f"Product {product.id} has no family; nothing to generate")

    if family == ProductFamily.BRACELET:
        return build_bracelet_variants(product, tables.bracelets, contexts, round_prices)
    if family == ProductFamily.NECKLACE:
        groups = [PriceGroup.from_context(context) for context in contexts or []]
        return build_necklace_variants(product, tables.necklaces, groups, round_prices=round_prices)
    if family == ProductFamily.RING:
        return build_ring_variants(product, tables.rings, round_prices=round_prices)
    if family == ProductFamily.HANDCHAIN:
        return build_hand_chain_variants(product, tables.hand_chains, allowed_chains, round_prices)
    if family == ProductFamily.SET:
        return build_set_variants(product, tables.bracelets, tables.necklaces, round_prices=round_prices)

    raise ValueError(f"Unhandled product family: {family}")

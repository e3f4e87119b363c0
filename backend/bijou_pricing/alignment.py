"""
Bijou Pricing - Metafield option alignment

Rewrites variant option labels to the display labels a product lists in its
metafields, so the storefront shows "Forsat M" rather than "forsat-m 45".

Metafield keys:
- Chain Variants: chain display labels (bracelets, necklaces, hand chains, sets)
- Taille de chaine / Chain Length: necklace length labels
- Band Type / Ring Size: ring labels
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .matcher import (
    build_lookup,
    chain_size_identity,
    classify_tokens,
    match_chain,
    parse_necklace_size,
    parse_ring_size,
    ring_identity,
)
from .models import ProductFamily, ProductRecord, ProductVariant
from .supplements import NECKLACE_SIZES, SupplementTables

logger = logging.getLogger(__name__)

CHAIN_VARIANTS_KEY = "Chain Variants"
CHAIN_LENGTH_KEYS = ("Taille de chaine", "Chain Length")
BAND_TYPE_KEY = "Band Type"
RING_SIZE_KEY = "Ring Size"

VALUE_SEPARATORS = re.compile(r"[\n,;|/]+")


# === METAFIELD READING ===

def _camel(value: str) -> str:
    return re.sub(r"[^a-z0-9]+([a-z0-9])", lambda m: m.group(1).upper(), value.lower())


def metafield_key_variants(key: str) -> List[str]:
    """'Chain Variants' → Chain Variants, chain variants, chain_variants, chain-variants, ..."""
    base = str(key or "").strip()
    if not base:
        return []
    lower = base.lower()
    camel = _camel(base)
    candidates = [
        base,
        lower,
        re.sub(r"[^a-z0-9]+", "_", lower),
        re.sub(r"[^a-z0-9]+", "-", lower),
        re.sub(r"[^a-z0-9]+", "", lower),
        camel,
        camel[:1].upper() + camel[1:],
        re.sub(r"[^a-zA-Z0-9]+", "_", base),
        re.sub(r"[^a-zA-Z0-9]+", "-", base),
        re.sub(r"[^a-zA-Z0-9]+", "", base),
    ]
    return list(dict.fromkeys(candidate for candidate in candidates if candidate))


def read_metafield(metafields: Optional[Dict[str, Any]], key: str):
    if not isinstance(metafields, dict):
        return None
    for candidate in metafield_key_variants(key):
        if metafields.get(candidate) is not None:
            return metafields[candidate]
    return None


def metafield_values(raw) -> List[str]:
    """Flatten a metafield value: lists, {value}, {values}, {nodes}, JSON strings, separated strings"""
    if raw is None:
        return []
    if isinstance(raw, (list, tuple)):
        return [value for entry in raw for value in metafield_values(entry)]
    if isinstance(raw, dict):
        for key in ("value", "values", "nodes"):
            if key in raw:
                return metafield_values(raw[key])
        return []
    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return []
        if text[0] in "[{":
            try:
                parsed = json.loads(text)
            except ValueError:
                logger.warning(f"Could not parse metafield JSON value {text[:60]!r}")
            else:
                if isinstance(parsed, list):
                    return metafield_values(parsed)
        return [part.strip() for part in VALUE_SEPARATORS.split(text) if part.strip()]
    text = str(raw).strip()
    return [text] if text else []


def display_map(
    raw,
    canonicalize: Callable[[str], Any],
    format_display: Optional[Callable[[str, Any], str]] = None,
) -> Dict[Any, str]:
    """canonical value → display label, first label per canonical value wins"""
    mapping: Dict[Any, str] = {}
    for value in metafield_values(raw):
        canonical = canonicalize(value)
        if canonical is None:
            continue
        display = format_display(value, canonical) if format_display else value
        display = str(display or "").strip() or str(canonical)
        mapping.setdefault(canonical, display)
    return mapping


def necklace_size_display(raw: str, size: int) -> str:
    text = str(raw or "").strip()
    if not text:
        return f"{size}cm"
    if text.isdigit():
        return f"{text}cm"
    return text


def ring_size_display(raw: str, size: str) -> str:
    text = str(raw or "").strip()
    return text.upper() if text else size


# === PER-FAMILY ALIGNMENT ===

@dataclass
class AlignmentOutcome:
    changed: bool = False
    variants: List[ProductVariant] = field(default_factory=list)


def _ladder_size(value) -> Optional[int]:
    size = parse_necklace_size(value)
    return size if size in NECKLACE_SIZES else None


def _chain_lookup(family: ProductFamily, tables: SupplementTables) -> Dict[str, str]:
    if family == ProductFamily.BRACELET:
        return build_lookup(tables.bracelets)
    if family == ProductFamily.HANDCHAIN:
        return build_lookup(tables.hand_chains)
    return build_lookup(tables.necklaces)


def _target_options(family, variant, lookup, maps) -> Optional[List[str]]:
    if family in (ProductFamily.BRACELET, ProductFamily.HANDCHAIN):
        chain = variant.chain_type or classify_tokens(variant, lookup).chain
        display = maps["chain"].get(chain)
        return [display] if display else None

    if family in (ProductFamily.NECKLACE, ProductFamily.SET):
        chain, size = chain_size_identity(variant, lookup, NECKLACE_SIZES)
        chain_display = maps["chain"].get(chain)
        size_display = maps["size"].get(size)
        if not chain_display or not size_display:
            return None
        return [chain_display, size_display]

    band, size = ring_identity(variant, lookup)
    band_display = maps["band"].get(band)
    size_display = maps["size"].get(size)
    if not band_display or not size_display:
        return None
    return [band_display, size_display]


def _maps_for(family: ProductFamily, product: ProductRecord, lookup) -> Optional[Dict[str, Dict]]:
    metafields = product.metafields
    if family == ProductFamily.RING:
        maps = {
            "band": display_map(read_metafield(metafields, BAND_TYPE_KEY), lambda v: match_chain(v, lookup)),
            "size": display_map(read_metafield(metafields, RING_SIZE_KEY), parse_ring_size, ring_size_display),
        }
    else:
        maps = {"chain": display_map(read_metafield(metafields, CHAIN_VARIANTS_KEY), lambda v: match_chain(v, lookup))}
        if family in (ProductFamily.NECKLACE, ProductFamily.SET):
            raw_sizes = None
            for key in CHAIN_LENGTH_KEYS:
                raw_sizes = read_metafield(metafields, key)
                if raw_sizes is not None:
                    break
            maps["size"] = display_map(raw_sizes, _ladder_size, necklace_size_display)

    if any(not mapping for mapping in maps.values()):
        return None
    return maps


def align_product(product: ProductRecord, tables: SupplementTables) -> Optional[AlignmentOutcome]:
    """
    None when the product has no usable metafields or no variant could be
    aligned; otherwise the (possibly unchanged) variant list.
    """
    family = product.family
    if family is None or not product.variants:
        return None

    lookup = build_lookup(tables.rings) if family == ProductFamily.RING else _chain_lookup(family, tables)
    maps = _maps_for(family, product, lookup)
    if maps is None:
        return None

    applied = False
    outcome = AlignmentOutcome()
    for variant in product.variants:
        options = _target_options(family, variant, lookup, maps)
        if options is None:
            outcome.variants.append(variant)
            continue
        applied = True
        if list(variant.options) != options:
            outcome.changed = True
            outcome.variants.append(variant.model_copy(update={"options": options}))
        else:
            outcome.variants.append(variant)

    return outcome if applied else None

"""
Bijou Pricing - Token Matcher

Maps free-form variant option text ("Forsat M", "forsat-m", "Forsät M doré")
to canonical chain keys of a supplement table, groups variants into match
contexts by their non-chain ("parent") options and resolves each context's
base price.

Matching tiers (first hit wins, table insertion order, never re-sorted):
1. exact: sanitize(token) == sanitize(key)
2. prefix: sanitize(token) starts with sanitize(key)
3. substring: sanitize(key) (≥3 chars) occurs inside sanitize(token)
"""

import logging
import math
import re
import unicodedata
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .models import ProductRecord, ProductVariant
from .supplements import BASE_CHAIN_KEY, RING_SIZES

logger = logging.getLogger(__name__)

DEFAULT_PARENT_SIGNATURE = "default"
PARENT_SIGNATURE_SEPARATOR = "::"
MIN_SUBSTRING_KEY_LENGTH = 3

TITLE_SEPARATORS = re.compile(r"[/•|\-–]")
DEFAULT_TITLE_TOKENS = {"default title", "default", "defaulttitle"}
SIZE_UNIT_PATTERN = re.compile(r"\d\s*(cm|mm)\b|\b(cm|mm|centim\w*|millim\w*)\b")
CM_SIZE_PATTERN = re.compile(r"(\d+(?:[.,]\d+)?)\s*cm")
NUMBER_PATTERN = re.compile(r"(\d+(?:[.,]\d+)?)")

# (chain, size) → surcharge of that observation; None when unknown
SurchargeFn = Callable[[str, Optional[int]], Optional[float]]


# =====================
# NORMALIZATION
# =====================

def strip_diacritics(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize(text) -> str:
    """lowercase, no diacritics, collapsed whitespace"""
    if text is None:
        return ""
    return " ".join(strip_diacritics(str(text)).lower().split())


def sanitize(text) -> str:
    """normalize + drop everything outside [a-z0-9]"""
    return re.sub(r"[^a-z0-9]", "", normalize(text))


def build_lookup(keys: Iterable[str]) -> Dict[str, str]:
    """sanitize(canonical) → canonical, first key wins on collisions"""
    lookup: Dict[str, str] = {}
    for key in keys:
        sanitized = sanitize(key)
        if sanitized and sanitized not in lookup:
            lookup[sanitized] = key
    return lookup


def match_chain(token, lookup: Dict[str, str]) -> Optional[str]:
    sanitized = sanitize(token)
    if not sanitized:
        return None

    exact = lookup.get(sanitized)
    if exact:
        return exact

    for key, canonical in lookup.items():
        if sanitized.startswith(key):
            return canonical

    for key, canonical in lookup.items():
        if len(key) >= MIN_SUBSTRING_KEY_LENGTH and key in sanitized:
            return canonical

    return None


def has_size_unit(token) -> bool:
    return bool(SIZE_UNIT_PATTERN.search(normalize(token)))


def parse_necklace_size(value) -> Optional[int]:
    """
    "41 cm" → 41, "Longueur 45cm" → 45, "50" → 50, "Gold" → None.
    A number followed by cm wins over any other number in the text.
    """
    text = normalize(value)
    if not text:
        return None
    match = CM_SIZE_PATTERN.search(text) or NUMBER_PATTERN.search(text)
    if not match:
        return None
    try:
        number = float(match.group(1).replace(",", "."))
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    return int(round(number))


def parse_ring_size(value) -> Optional[str]:
    """"XL (60 - 65)" → "XL"; None if not one of the ring sizes"""
    if value is None:
        return None
    head = str(value).split("(")[0].strip().upper()
    return head if head in RING_SIZES else None


def parse_band(value, bands: Iterable[str]) -> Optional[str]:
    return match_chain(value, build_lookup(bands))


# =====================
# TOKEN CLASSIFICATION
# =====================

@dataclass
class TokenClassification:
    chain: Optional[str] = None
    size: Optional[int] = None
    parent_tokens: List[str] = field(default_factory=list)
    discarded: List[str] = field(default_factory=list)

    @property
    def parent_signature(self) -> str:
        if not self.parent_tokens:
            return DEFAULT_PARENT_SIGNATURE
        return PARENT_SIGNATURE_SEPARATOR.join(sanitize(token) for token in self.parent_tokens)

    @property
    def parent_label(self) -> str:
        return " / ".join(self.parent_tokens)


def split_title(title) -> List[str]:
    if not title:
        return []
    return [part.strip() for part in TITLE_SEPARATORS.split(str(title)) if part.strip()]


def variant_tokens(variant: ProductVariant) -> List[str]:
    """Explicit option fields first; the title only when no option is set"""
    options = [str(option).strip() for option in (variant.options or []) if option is not None]
    options = [option for option in options if option]
    if options:
        return options
    return split_title(variant.title)


def classify_tokens(variant: ProductVariant, lookup: Dict[str, str]) -> TokenClassification:
    result = TokenClassification()
    seen_parents = set()

    for token in variant_tokens(variant):
        chain = match_chain(token, lookup)
        if chain:
            if result.size is None and has_size_unit(token):
                result.size = parse_necklace_size(token)
            if result.chain is None:
                result.chain = chain
            else:
                result.discarded.append(token)
            continue

        if normalize(token) in DEFAULT_TITLE_TOKENS:
            result.discarded.append(token)
            continue

        if has_size_unit(token):
            if result.size is None:
                result.size = parse_necklace_size(token)
            result.discarded.append(token)
            continue

        key = sanitize(token)
        if not key:
            result.discarded.append(token)
            continue
        if key not in seen_parents:
            seen_parents.add(key)
            result.parent_tokens.append(token)

    return result


# =====================
# MATCH CONTEXTS
# =====================

@dataclass
class ObservedPrice:
    variant_id: str
    price: Optional[float]
    compare_at: Optional[float]
    size: Optional[int] = None


@dataclass
class MatchedVariant:
    variant: ProductVariant
    chain: str
    size: Optional[int]


@dataclass
class VariantMatchContext:
    parent_signature: str = DEFAULT_PARENT_SIGNATURE
    parent_label: str = ""
    observed: Dict[str, ObservedPrice] = field(default_factory=dict)
    members: List[MatchedVariant] = field(default_factory=list)
    base_price: Optional[float] = None
    base_compare_at: Optional[float] = None

    def observe(self, chain: str, observation: ObservedPrice, reference_size: Optional[int] = None):
        """At most one observation per chain; a reference-size one replaces a non-reference one"""
        current = self.observed.get(chain)
        if current is None:
            self.observed[chain] = observation
            return
        if (
            reference_size is not None
            and observation.size == reference_size
            and current.size != reference_size
        ):
            self.observed[chain] = observation


def _finite(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def build_match_contexts(
    product: ProductRecord,
    lookup: Dict[str, str],
    reference_size: Optional[int] = None,
) -> List[VariantMatchContext]:
    """
    Group existing variants by parent signature.

    Variants without a chain match are left out entirely (MatchGap, not an error).
    Contexts come back in first-seen order.
    """
    contexts: Dict[str, VariantMatchContext] = {}

    for variant in product.variants:
        classification = classify_tokens(variant, lookup)
        if not classification.chain:
            logger.debug(f"No chain match for variant {variant.id} ({variant.title!r}) of {product.id}")
            continue

        signature = classification.parent_signature
        context = contexts.get(signature)
        if context is None:
            context = VariantMatchContext(
                parent_signature=signature,
                parent_label=classification.parent_label,
            )
            contexts[signature] = context

        size = classification.size if classification.size is not None else variant.size
        context.members.append(MatchedVariant(variant=variant, chain=classification.chain, size=size))
        context.observe(
            classification.chain,
            ObservedPrice(
                variant_id=variant.id,
                price=variant.price,
                compare_at=variant.compare_at_price,
                size=size,
            ),
            reference_size=reference_size,
        )

    return list(contexts.values())


# =====================
# BASE PRICE RESOLUTION
# =====================

def _resolve_from_observed(
    context: VariantMatchContext,
    chain_order: Iterable[str],
    surcharge_of: SurchargeFn,
    attr: str,
) -> Optional[float]:
    base = context.observed.get(BASE_CHAIN_KEY)
    if base is not None:
        value = getattr(base, attr)
        if _finite(value):
            surcharge = surcharge_of(BASE_CHAIN_KEY, base.size)
            return value - (surcharge if _finite(surcharge) else 0)

    for chain in chain_order:
        observation = context.observed.get(chain)
        if observation is None or chain == BASE_CHAIN_KEY:
            continue
        value = getattr(observation, attr)
        surcharge = surcharge_of(chain, observation.size)
        if _finite(value) and _finite(surcharge):
            return value - surcharge

    return None


def resolve_base_prices(
    context: VariantMatchContext,
    product: ProductRecord,
    chain_order: Iterable[str],
    surcharge_of: SurchargeFn,
) -> VariantMatchContext:
    """
    Base price preference:
    1. observed price of the zero-surcharge chain (Forsat S)
    2. observed price − supplement of the first other observed chain, table order
    3. product base price (compare-at: product base compare-at, then base price)
    4. 0 (compare-at: resolved base price)
    """
    chain_order = list(chain_order)

    price = _resolve_from_observed(context, chain_order, surcharge_of, "price")
    if price is None:
        price = product.base_price if _finite(product.base_price) else 0

    compare_at = _resolve_from_observed(context, chain_order, surcharge_of, "compare_at")
    if compare_at is None:
        if _finite(product.base_compare_at_price):
            compare_at = product.base_compare_at_price
        elif _finite(product.base_price):
            compare_at = product.base_price
        else:
            compare_at = price

    context.base_price = price
    context.base_compare_at = compare_at
    return context


def default_context(product: ProductRecord) -> VariantMatchContext:
    """Context used when no existing variant matched a chain"""
    context = VariantMatchContext()
    context.base_price = product.base_price if _finite(product.base_price) else 0
    if _finite(product.base_compare_at_price):
        context.base_compare_at = product.base_compare_at_price
    else:
        context.base_compare_at = context.base_price
    return context


# =====================
# RING / SIZE IDENTITY
# =====================

def _has_digits(token: str) -> bool:
    return any(ch.isdigit() for ch in token)


def ring_identity(variant: ProductVariant, band_lookup: Dict[str, str]) -> Tuple[Optional[str], Optional[str]]:
    """(band, ring size) of an existing ring variant; either may be None"""
    band = match_chain(variant.band, band_lookup) if variant.band else None
    size = parse_ring_size(variant.ring_size) if variant.ring_size else None

    for token in variant_tokens(variant):
        if size is None:
            parsed = parse_ring_size(token)
            if parsed:
                size = parsed
                continue
        if band is None and not _has_digits(token):
            band = match_chain(token, band_lookup)
        if band and size:
            break

    return band, size


def chain_size_identity(
    variant: ProductVariant,
    lookup: Dict[str, str],
    sizes: Optional[Iterable[int]] = None,
) -> Tuple[Optional[str], Optional[int]]:
    """
    (chain, length) of a necklace-like variant.

    With a ladder, only lengths on it count, and a bare number ("45") counts
    when it is on the ladder. Without one, any length carrying a unit
    ("42 cm") counts, and a bare token only when it is all digits.
    """
    allowed = set(sizes) if sizes is not None else None

    def accepted(value) -> bool:
        return value is not None and (allowed is None or value in allowed)

    classification = classify_tokens(variant, lookup)
    size = classification.size if accepted(classification.size) else None
    if size is None and accepted(variant.size):
        size = variant.size
    if size is None:
        for token in classification.parent_tokens:
            if allowed is None and not str(token).strip().isdigit():
                continue
            parsed = parse_necklace_size(token)
            if accepted(parsed):
                size = parsed
                break
    return classification.chain, size

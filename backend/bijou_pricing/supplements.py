"""
Bijou Pricing - Supplement Tables

Canonical surcharge data per product family:
- bracelets: chain → supplement
- necklaces: chain → {supplement, perCm, sizes (exact per-size overrides)}
- rings: band → ring size → supplement
- handChains: chain → supplement (seeded from necklaces × 1.5, edited independently afterwards)

Insertion order of every table is meaningful: generators emit variants in that
order and the matcher breaks ambiguous matches by it.
"""

import logging
from typing import Dict, List, Optional

from pydantic import Field

from .models import CamelModel
from .rounding import round_supplement_value, STRATEGY_STEP

logger = logging.getLogger(__name__)


# === CONSTANTS ===

BASE_CHAIN_KEY = "Forsat S"  # zero-surcharge chain, anchors every base variant
NECKLACE_SIZES: List[int] = [41, 45, 50, 55, 60, 70, 80]
REFERENCE_NECKLACE_SIZE = NECKLACE_SIZES[0]
RING_SIZES: List[str] = ["XS", "S", "L", "XL"]
HAND_CHAIN_MULTIPLIER = 1.5


BRACELET_CHAIN_TYPES: Dict[str, float] = {
    "Forsat S": 0,
    "Forsat M": 150,
    "Forsat L": 290,
    "Gourmette S": 290,
    "Chopard S": 390,
    "Gourmette M": 550,
    "Chopard M": 750,
}

NECKLACE_CHAIN_TYPES: Dict[str, dict] = {
    "Forsat S": {
        "supplement": 0,
        "perCm": 20,
        "sizes": {41: 0, 45: 180, 50: 280, 55: 380, 60: 560, 70: 780, 80: 980},
    },
    "Forsat M": {
        "supplement": 140,
        "perCm": 25,
        "sizes": {41: 140, 45: 225, 50: 350, 55: 455, 60: 635, 70: 865, 80: 1125},
    },
    "Forsat L": {
        "supplement": 490,
        "perCm": 35,
        "sizes": {41: 490, 45: 665, 50: 865, 55: 1090, 60: 1365, 70: 1790, 80: 2335},
    },
    "Gourmette S": {
        "supplement": 490,
        "perCm": 35,
        "sizes": {41: 490, 45: 665, 50: 865, 55: 1090, 60: 1365, 70: 1790, 80: 2335},
    },
    "Chopard S": {
        "supplement": 690,
        "perCm": 45,
        "sizes": {41: 690, 45: 890, 50: 1115, 55: 1370, 60: 1715, 70: 2240, 80: 2885},
    },
    "Gourmette M": {
        "supplement": 990,
        "perCm": 55,
        "sizes": {41: 990, 45: 1225, 50: 1505, 55: 1830, 60: 2255, 70: 2940, 80: 3825},
    },
    "Chopard M": {
        "supplement": 1890,
        "perCm": 70,
        "sizes": {41: 1890, 45: 2190, 50: 2565, 55: 3005, 60: 3555, 70: 4540, 80: 5825},
    },
}

RING_BAND_SUPPLEMENTS: Dict[str, Dict[str, float]] = {
    "Small": {"XS": 0, "S": 300, "L": 500, "XL": 700},
    "Light": {"XS": 0, "S": 600, "L": 900, "XL": 1400},
    "Big": {"XS": 0, "S": 1000, "L": 1500, "XL": 2000},
}


# === MODELS ===

class NecklaceSupplement(CamelModel):
    supplement: float = 0
    per_cm: float = 0
    sizes: Dict[int, float] = Field(default_factory=dict)


class SupplementTables(CamelModel):
    bracelets: Dict[str, float] = Field(default_factory=dict)
    necklaces: Dict[str, NecklaceSupplement] = Field(default_factory=dict)
    rings: Dict[str, Dict[str, float]] = Field(default_factory=dict)
    hand_chains: Dict[str, float] = Field(default_factory=dict)

    def clone(self) -> "SupplementTables":
        return self.model_copy(deep=True)


def seed_hand_chains(necklaces: Dict[str, NecklaceSupplement]) -> Dict[str, float]:
    return {
        chain: config.supplement * HAND_CHAIN_MULTIPLIER
        for chain, config in necklaces.items()
    }


def default_supplement_tables() -> SupplementTables:
    necklaces = {
        chain: NecklaceSupplement.model_validate(config)
        for chain, config in NECKLACE_CHAIN_TYPES.items()
    }
    return SupplementTables(
        bracelets=dict(BRACELET_CHAIN_TYPES),
        necklaces=necklaces,
        rings={band: dict(sizes) for band, sizes in RING_BAND_SUPPLEMENTS.items()},
        hand_chains=seed_hand_chains(necklaces),
    )


# === SURCHARGE FORMULAS ===

def necklace_size_supplement(
    config: NecklaceSupplement,
    size: int,
    reference_size: int = REFERENCE_NECKLACE_SIZE,
) -> float:
    """
    Surcharge of one chain at one length.

    Exact override from `sizes` wins; otherwise supplement + max(0, size - reference) * perCm.
    """
    override = config.sizes.get(size)
    if override is not None:
        return override
    return config.supplement + max(0, size - reference_size) * config.per_cm


def set_size_supplement(
    bracelets: Dict[str, float],
    necklaces: Dict[str, NecklaceSupplement],
    chain: str,
    size: int,
    reference_size: int = REFERENCE_NECKLACE_SIZE,
) -> Optional[float]:
    """Bracelet supplement + necklace per-size supplement; None when the chain has no necklace entry"""
    config = necklaces.get(chain)
    if config is None:
        return None
    return bracelets.get(chain, 0) + necklace_size_supplement(config, size, reference_size)


# === TABLE EDITING ===

def update_bracelet_supplement(
    tables: SupplementTables, chain: str, value: float, rounding: bool = True
) -> SupplementTables:
    updated = tables.clone()
    updated.bracelets[chain] = round_supplement_value(value) if rounding else value
    return updated


def update_necklace_supplement(
    tables: SupplementTables, chain: str, field: str, value: float, rounding: bool = True
) -> SupplementTables:
    """field is 'supplement' or 'perCm'"""
    updated = tables.clone()
    config = updated.necklaces.get(chain) or NecklaceSupplement()
    if field == "supplement":
        config.supplement = round_supplement_value(value) if rounding else value
    elif field in ("perCm", "per_cm"):
        config.per_cm = round_supplement_value(value, step=1, strategy=STRATEGY_STEP) if rounding else value
    else:
        raise ValueError(f"Unknown necklace supplement field: {field}")
    updated.necklaces[chain] = config
    return updated


def update_ring_supplement(
    tables: SupplementTables, band: str, size: str, value: float, rounding: bool = True
) -> SupplementTables:
    updated = tables.clone()
    updated.rings.setdefault(band, {})[size] = round_supplement_value(value) if rounding else value
    return updated


def update_hand_chain_supplement(
    tables: SupplementTables, chain: str, value: float, rounding: bool = True
) -> SupplementTables:
    updated = tables.clone()
    updated.hand_chains[chain] = round_supplement_value(value) if rounding else value
    return updated


def _scale(value: float, percent: float) -> float:
    return value * (1 + percent / 100)


def apply_supplement_percentage(
    tables: SupplementTables,
    table: str,
    percent: float,
    step: float = 10,
    minimum: float = 0,
    strategy: Optional[str] = None,
) -> SupplementTables:
    """
    Scale one whole supplement table by percent.

    table: bracelets | necklaces | rings | handChains
    Supplements and per-size overrides go through round_supplement_value;
    necklace perCm is rounded up to the unit.
    """
    updated = tables.clone()

    def rnd(value):
        return round_supplement_value(_scale(value, percent), step=step, minimum=minimum, strategy=strategy)

    if table == "bracelets":
        updated.bracelets = {chain: rnd(value) for chain, value in updated.bracelets.items()}
    elif table == "necklaces":
        for config in updated.necklaces.values():
            config.supplement = rnd(config.supplement)
            config.per_cm = round_supplement_value(
                _scale(config.per_cm, percent), step=1, minimum=minimum, strategy=STRATEGY_STEP
            )
            config.sizes = {size: rnd(value) for size, value in config.sizes.items()}
    elif table == "rings":
        updated.rings = {
            band: {size: rnd(value) for size, value in sizes.items()}
            for band, sizes in updated.rings.items()
        }
    elif table in ("handChains", "hand_chains"):
        updated.hand_chains = {chain: rnd(value) for chain, value in updated.hand_chains.items()}
    else:
        raise ValueError(f"Unknown supplement table: {table}")

    logger.info(f"Applied {percent}% to {table} supplements")
    return updated

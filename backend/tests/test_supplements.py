"""
Supplement Table Tests

Tests:
1. Default tables and hand-chain seeding
2. Necklace per-size formula (override first, then perCm)
3. Set = bracelet + necklace per-size
4. Editors return new tables and round the value
5. Percentage on a whole table
"""

import pytest

from bijou_pricing.supplements import (
    BASE_CHAIN_KEY,
    NECKLACE_SIZES,
    NecklaceSupplement,
    apply_supplement_percentage,
    necklace_size_supplement,
    set_size_supplement,
    update_bracelet_supplement,
    update_hand_chain_supplement,
    update_necklace_supplement,
    update_ring_supplement,
)


class TestDefaults:
    def test_base_chain_has_no_surcharge(self, tables):
        assert tables.bracelets[BASE_CHAIN_KEY] == 0
        assert tables.necklaces[BASE_CHAIN_KEY].supplement == 0
        assert tables.hand_chains[BASE_CHAIN_KEY] == 0

    def test_hand_chains_seeded_from_necklaces(self, tables):
        assert tables.hand_chains["Forsat M"] == 210
        assert tables.hand_chains["Chopard M"] == 2835
        assert list(tables.hand_chains) == list(tables.necklaces)

    def test_table_order_is_kept(self, tables):
        assert list(tables.bracelets)[:3] == ["Forsat S", "Forsat M", "Forsat L"]
        assert list(tables.rings) == ["Small", "Light", "Big"]

    def test_necklace_ladder(self):
        assert NECKLACE_SIZES == [41, 45, 50, 55, 60, 70, 80]

    def test_clone_is_deep(self, tables):
        copy = tables.clone()
        copy.necklaces["Forsat S"].sizes[45] = 999
        copy.rings["Small"]["XS"] = 1
        assert tables.necklaces["Forsat S"].sizes[45] == 180
        assert tables.rings["Small"]["XS"] == 0


class TestSurchargeFormulas:
    def test_override_wins(self, tables):
        assert necklace_size_supplement(tables.necklaces["Forsat S"], 45) == 180
        assert necklace_size_supplement(tables.necklaces["Forsat M"], 41) == 140

    def test_per_cm_fallback(self):
        config = NecklaceSupplement(supplement=100, per_cm=10)
        assert necklace_size_supplement(config, 41) == 100
        assert necklace_size_supplement(config, 50) == 190
        assert necklace_size_supplement(config, 30) == 100

    def test_set_supplement(self, tables):
        assert set_size_supplement(tables.bracelets, tables.necklaces, "Forsat M", 45) == 150 + 225
        assert set_size_supplement(tables.bracelets, tables.necklaces, "Forsat S", 41) == 0

    def test_set_supplement_unknown_chain(self, tables):
        assert set_size_supplement(tables.bracelets, tables.necklaces, "Venitienne", 45) is None

    def test_set_without_bracelet_entry(self, tables):
        necklaces = {"Venitienne": NecklaceSupplement(supplement=50, per_cm=5)}
        assert set_size_supplement({}, necklaces, "Venitienne", 45) == 70


class TestEditors:
    def test_bracelet_edit_rounds_and_copies(self, tables):
        updated = update_bracelet_supplement(tables, "Forsat M", 163)
        assert updated.bracelets["Forsat M"] == 190
        assert tables.bracelets["Forsat M"] == 150

    def test_bracelet_edit_without_rounding(self, tables):
        updated = update_bracelet_supplement(tables, "Forsat M", 163, rounding=False)
        assert updated.bracelets["Forsat M"] == 163

    def test_necklace_fields(self, tables):
        updated = update_necklace_supplement(tables, "Forsat M", "perCm", 22.3)
        assert updated.necklaces["Forsat M"].per_cm == 23
        updated = update_necklace_supplement(updated, "Forsat M", "supplement", 141)
        assert updated.necklaces["Forsat M"].supplement == 150
        assert tables.necklaces["Forsat M"].per_cm == 25

    def test_necklace_unknown_field(self, tables):
        with pytest.raises(ValueError):
            update_necklace_supplement(tables, "Forsat M", "length", 10)

    def test_ring_and_hand_chain(self, tables):
        updated = update_ring_supplement(tables, "Light", "XL", 1420)
        assert updated.rings["Light"]["XL"] == 1450
        updated = update_hand_chain_supplement(updated, "Forsat M", 205)
        assert updated.hand_chains["Forsat M"] == 250


class TestPercentage:
    def test_bracelets_step(self, tables):
        updated = apply_supplement_percentage(tables, "bracelets", 10, step=10, strategy="step")
        assert updated.bracelets["Forsat S"] == 0
        assert updated.bracelets["Forsat M"] == 170
        assert updated.necklaces == tables.necklaces

    def test_necklaces_touch_every_field(self, tables):
        updated = apply_supplement_percentage(tables, "necklaces", 10, step=10, strategy="step")
        config = updated.necklaces["Forsat M"]
        assert config.supplement == 160
        assert config.per_cm == 28
        assert config.sizes[45] == 250
        assert updated.hand_chains == tables.hand_chains

    def test_hand_chains_by_wire_name(self, tables):
        updated = apply_supplement_percentage(tables, "handChains", 100, step=10, strategy="step")
        assert updated.hand_chains["Forsat M"] == 420

    def test_unknown_table(self, tables):
        with pytest.raises(ValueError):
            apply_supplement_percentage(tables, "earrings", 10)

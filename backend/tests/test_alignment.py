"""
Metafield Alignment Tests - reading metafield values and rewriting variant options
"""

from bijou_pricing.alignment import (
    align_product,
    metafield_key_variants,
    metafield_values,
    necklace_size_display,
    read_metafield,
    ring_size_display,
)
from bijou_pricing.models import ProductFamily, ProductRecord

from conftest import make_variant


class TestMetafieldReading:
    def test_key_variants(self):
        variants = metafield_key_variants("Chain Variants")
        assert variants[0] == "Chain Variants"
        assert "chain_variants" in variants
        assert "chainVariants" in variants
        assert metafield_key_variants("") == []

    def test_read_metafield_any_spelling(self):
        assert read_metafield({"chainVariants": "A"}, "Chain Variants") == "A"
        assert read_metafield({"taille-de-chaine": "41"}, "Taille de chaine") == "41"
        assert read_metafield(None, "Chain Variants") is None

    def test_values(self):
        assert metafield_values('["Forsat S", "Forsat M"]') == ["Forsat S", "Forsat M"]
        assert metafield_values({"value": "41 cm; 45 cm"}) == ["41 cm", "45 cm"]
        assert metafield_values({"nodes": ["Small", "Big"]}) == ["Small", "Big"]
        assert metafield_values("Forsat S\nForsat M | Chopard S") == ["Forsat S", "Forsat M", "Chopard S"]
        assert metafield_values(45) == ["45"]
        assert metafield_values(None) == []

    def test_display_helpers(self):
        assert necklace_size_display("45", 45) == "45cm"
        assert necklace_size_display("45 cm", 45) == "45 cm"
        assert ring_size_display("xl", "XL") == "XL"


class TestAlignProduct:
    def test_necklace_chain_and_length(self, tables):
        product = ProductRecord(
            id="n2",
            family=ProductFamily.NECKLACE,
            metafields={"Chain Variants": ["Forsat S"], "Taille de chaine": "41, 45"},
            variants=[
                make_variant("a", ["forsat s", "41"], 1000),
                make_variant("b", ["Forsat S", "45 cm"], 1190),
                make_variant("c", ["Forsat M", "41 cm"], 1140),
            ],
        )
        outcome = align_product(product, tables)
        assert outcome.changed
        assert [v.options for v in outcome.variants] == [
            ["Forsat S", "41cm"],
            ["Forsat S", "45cm"],
            ["Forsat M", "41 cm"],
        ]
        assert product.variants[0].options == ["forsat s", "41"]

    def test_chain_length_fallback_key(self, tables):
        product = ProductRecord(
            id="n3",
            family=ProductFamily.NECKLACE,
            metafields={"chain_variants": "Forsat S", "chain_length": "41"},
            variants=[make_variant("a", ["Forsat S", "41 cm"], 1000)],
        )
        assert align_product(product, tables).variants[0].options == ["Forsat S", "41cm"]

    def test_ring_band_and_size(self, tables):
        product = ProductRecord(
            id="r2",
            family=ProductFamily.RING,
            metafields={"Band Type": "Light", "Ring Size": "XS, XL"},
            variants=[make_variant("a", ["light", "xl (60 - 65)"], 1900)],
        )
        outcome = align_product(product, tables)
        assert outcome.variants[0].options == ["Light", "XL"]

    def test_incomplete_metafields(self, tables):
        product = ProductRecord(
            id="n4",
            family=ProductFamily.NECKLACE,
            metafields={"Chain Variants": "Forsat S"},
            variants=[make_variant("a", ["Forsat S", "41 cm"], 1000)],
        )
        assert align_product(product, tables) is None

    def test_unclassified_product(self, tables):
        product = ProductRecord(id="z", metafields={"Chain Variants": "Forsat S"},
                                variants=[make_variant("a", ["Forsat S"], 10)])
        assert align_product(product, tables) is None

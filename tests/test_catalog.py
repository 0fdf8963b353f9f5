"""
core/catalog.py と common/card_schema.py のテスト
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from common.card_schema import Card, CardKey, Col, format_weight, parse_weight
from core.catalog import ALL, Catalog


class TestCardSchema:
    def test_key_uses_all_five_columns(self, card_factory):
        a = card_factory(Item="Same item", Campaign="Search")
        b = card_factory(Item="Same item", Campaign="Pmax")
        assert a.item == b.item
        assert a.key != b.key
        assert a.key == card_factory(Item="Same item", Campaign="Search").key

    def test_key_from_mapping_fills_missing_columns(self):
        key = CardKey.from_mapping({"Item": "x"})
        assert key == CardKey("x", "", "", "", "")
        assert key.label() == "x"

    def test_values_are_read_only(self, card_factory):
        card = card_factory()
        with pytest.raises(TypeError):
            card.values["Item"] = "changed"  # type: ignore[index]

    def test_with_weightage_returns_new_card(self, card_factory):
        card = card_factory()
        weighted = card.with_weightage("12.5")
        assert card.weightage is None
        assert weighted.weight == Decimal("12.5")
        assert weighted.key == card.key

    def test_to_row_formats_weight_with_two_decimals(self, card_factory):
        card = card_factory().with_weightage("15")
        assert card.to_row(weight_column=Col.WEBUI_WEIGHTAGE)[Col.WEBUI_WEIGHTAGE] == "15.00%"
        assert card_factory().to_row(weight_column=Col.WEBUI_WEIGHTAGE)[Col.WEBUI_WEIGHTAGE] == ""

    @pytest.mark.parametrize(
        "text,expected",
        [("12.5", Decimal("12.5")), (" 3 ", Decimal("3")), ("", None), (None, None), ("abc", None), ("nan", None)],
    )
    def test_parse_weight(self, text, expected):
        assert parse_weight(text) == expected

    @pytest.mark.parametrize(
        "value,expected",
        [(Decimal("12.50"), "12.5"), (20, "20"), (15.0, "15"), (Decimal("7.33"), "7.33"), (0, "0")],
    )
    def test_format_weight(self, value, expected):
        assert format_weight(value) == expected


class TestCatalog:
    def test_empty_catalog(self):
        catalog = Catalog.empty()
        assert not catalog.is_loaded
        assert len(catalog) == 0
        assert catalog.facet_values(Col.OWNER_GPM) == ()
        assert catalog.facet_values(Col.UCM_STATUS) == ()

    def test_single_select_values_start_with_all(self, sample_catalog):
        assert sample_catalog.facet_values(Col.UCM_STATUS) == (ALL, "Included in UCM DMS", "Not in UCM DMS")
        assert sample_catalog.facet_values(Col.CAMPAIGN) == (ALL, "All campaigns", "Search")

    def test_multi_select_values_skip_blanks(self, sample_catalog):
        assert sample_catalog.facet_values(Col.OWNER_GPM) == ("Alice", "Bob", "Carol")
        assert sample_catalog.facet_values(Col.DMS_STATUS) == ("Beta", "Live")

    def test_unindexed_column_is_computed_on_demand(self, sample_catalog):
        assert sample_catalog.facet_values("Can apply to account level") == ("-", "Can apply to account level")
        assert sample_catalog.facet_values("No such column") == ()

    def test_load_parses_text(self):
        catalog = Catalog.load("Item,Pillar,Owner GPM\nA,Ads,Zed\nB,Audience,Amy\n")
        assert catalog.is_loaded
        assert [c.item for c in catalog] == ["A", "B"]
        assert catalog.facet_values(Col.OWNER_GPM) == ("Amy", "Zed")

    def test_reload_recomputes_indexes(self):
        first = Catalog.load("Item,Owner GPM\nA,Zed\n")
        second = Catalog.load("Item,Owner GPM\nB,Amy\n")
        assert first.facet_values(Col.OWNER_GPM) == ("Zed",)
        assert second.facet_values(Col.OWNER_GPM) == ("Amy",)

    def test_navigation_tree_skips_other(self, sample_catalog):
        assert sample_catalog.pillars_and_categories() == {
            "Ads": ["Health check", "Feature adoption"],
            "Targeting": ["Tactic 2"],
            "Measurement": ["Health check"],
        }

    def test_find_by_key(self, sample_catalog):
        card = sample_catalog.cards[1]
        assert sample_catalog.find(card.key) is card
        assert sample_catalog.find(CardKey("missing", "", "", "", "")) is None

    def test_to_frame_selects_columns(self, sample_catalog):
        df = sample_catalog.to_frame([Col.ITEM, Col.PILLAR])
        assert list(df.columns) == [Col.ITEM, Col.PILLAR]
        assert len(df) == len(sample_catalog)

    def test_bundled_template_loads(self, template_path):
        catalog = Catalog.load(template_path.read_text(encoding="utf-8"))
        assert len(catalog) > 0
        assert isinstance(catalog.cards[0], Card)
        assert set(catalog.pillars_and_categories()) == {
            "Targeting",
            "Budget & Bidding",
            "Audience",
            "Ads",
            "Measurement",
        }

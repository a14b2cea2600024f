"""
Label classifier and translator tests.

Run:
    pytest tests/test_classifier.py -v
"""

import pytest

from garbage.models.classifier import (
    Category,
    FOOD_WASTE_ITEMS,
    GENERAL_TRASH_ITEMS,
    ITEM_TRANSLATIONS,
    RECYCLABLE_ITEMS,
    WasteClassifier,
    classify,
    translate,
)


@pytest.fixture
def classifier():
    return WasteClassifier()


class TestClassify:
    """Category lookup."""

    @pytest.mark.parametrize("label", sorted(RECYCLABLE_ITEMS))
    def test_recyclable_items(self, label):
        assert classify(label) == Category.RECYCLABLE

    @pytest.mark.parametrize("label", sorted(GENERAL_TRASH_ITEMS))
    def test_general_trash_items(self, label):
        assert classify(label) == Category.GENERAL_TRASH

    @pytest.mark.parametrize("label", sorted(FOOD_WASTE_ITEMS))
    def test_food_waste_items(self, label):
        assert classify(label) == Category.FOOD_WASTE

    @pytest.mark.parametrize("label", ["giraffe", "", "Bottle", "bottle ", "person", "???"])
    def test_unknown_labels_are_other(self, label):
        assert classify(label) == Category.OTHER

    def test_toothbrush_is_general_trash(self):
        assert classify("toothbrush") == Category.GENERAL_TRASH

    def test_category_display_names(self):
        assert Category.RECYCLABLE.display_name == "回收"
        assert Category.GENERAL_TRASH.display_name == "一般垃圾"
        assert Category.FOOD_WASTE.display_name == "廚餘"
        assert Category.OTHER.display_name == "其他"


class TestTranslate:
    """Display name lookup."""

    def test_known_label(self):
        assert translate("bottle") == "瓶子"
        assert translate("banana") == "香蕉"

    def test_unknown_label_falls_back(self):
        assert translate("giraffe") == "giraffe"
        assert translate("") == ""

    def test_every_table_entry(self, classifier):
        for label, name in ITEM_TRANSLATIONS.items():
            assert classifier.translate(label) == name

    def test_every_categorized_label_has_translation(self):
        for label in RECYCLABLE_ITEMS | GENERAL_TRASH_ITEMS | FOOD_WASTE_ITEMS:
            assert label in ITEM_TRANSLATIONS


class TestTableIntegrity:
    """Static checks over the category tables."""

    def test_default_sets_are_disjoint(self):
        assert not RECYCLABLE_ITEMS & GENERAL_TRASH_ITEMS
        assert not RECYCLABLE_ITEMS & FOOD_WASTE_ITEMS
        assert not GENERAL_TRASH_ITEMS & FOOD_WASTE_ITEMS

    def test_default_classifier_has_no_overlaps(self, classifier):
        assert classifier.find_overlaps() == set()

    def test_overlapping_sets_rejected(self):
        with pytest.raises(ValueError, match="toothbrush"):
            WasteClassifier(
                recyclable={"bottle", "toothbrush"},
                general_trash={"toothbrush"},
                food_waste=set(),
            )

    def test_tables_are_read_only(self, classifier):
        with pytest.raises(TypeError):
            classifier.translations["giraffe"] = "長頸鹿"
        assert not hasattr(classifier.recyclable, "add")


class TestCustomTables:
    """Replaceable membership lists."""

    def test_custom_membership(self):
        custom = WasteClassifier(
            recyclable={"toothbrush"},
            general_trash={"cup"},
            food_waste={"giraffe"},
            translations={"giraffe": "長頸鹿"},
        )
        assert custom.classify("toothbrush") == Category.RECYCLABLE
        assert custom.classify("cup") == Category.GENERAL_TRASH
        assert custom.classify("giraffe") == Category.FOOD_WASTE
        assert custom.classify("bottle") == Category.OTHER
        assert custom.translate("giraffe") == "長頸鹿"
        assert custom.translate("bottle") == "bottle"

    def test_from_config_with_nulls_uses_defaults(self):
        config = {
            "categories": {"recyclable": None, "general_trash": None, "food_waste": None},
            "translations": None,
        }
        built = WasteClassifier.from_config(config)
        assert built.recyclable == RECYCLABLE_ITEMS
        assert built.translate("bottle") == "瓶子"

    def test_from_config_partial_override(self):
        config = {"categories": {"general_trash": ["teddy bear"], "recyclable": ["toothbrush"]}}
        built = WasteClassifier.from_config(config)
        assert built.classify("toothbrush") == Category.RECYCLABLE
        assert built.classify("banana") == Category.FOOD_WASTE
        assert built.classify("bottle") == Category.OTHER

    def test_from_config_overlap_rejected(self):
        config = {"categories": {"food_waste": ["bottle"]}}
        with pytest.raises(ValueError):
            WasteClassifier.from_config(config)

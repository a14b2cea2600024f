"""
Label classification and translation for detected objects
Maps detector labels (COCO names) to disposal categories and Chinese display names
"""

from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional
import logging


class Category(Enum):
    """Disposal category, valued by its display name"""
    RECYCLABLE = "回收"
    GENERAL_TRASH = "一般垃圾"
    FOOD_WASTE = "廚餘"
    OTHER = "其他"

    @property
    def display_name(self) -> str:
        return self.value


# Default category membership (COCO labels)
RECYCLABLE_ITEMS = frozenset({
    "bottle", "wine glass", "cup", "bowl", "book",
    "spoon", "fork", "knife", "laptop", "mouse",
    "keyboard", "cell phone", "tv", "remote", "microwave",
    "oven", "toaster", "refrigerator", "scissors",
})

GENERAL_TRASH_ITEMS = frozenset({
    "toothbrush", "teddy bear",
})

FOOD_WASTE_ITEMS = frozenset({
    "banana", "apple", "sandwich", "orange", "broccoli",
    "carrot", "hot dog", "pizza", "donut", "cake",
})

ITEM_TRANSLATIONS = MappingProxyType({
    "bottle": "瓶子",
    "wine glass": "酒杯",
    "cup": "杯子",
    "bowl": "碗",
    "book": "書",
    "spoon": "湯匙",
    "fork": "叉子",
    "knife": "刀子",
    "laptop": "筆記型電腦",
    "mouse": "滑鼠",
    "keyboard": "鍵盤",
    "cell phone": "手機",
    "tv": "電視",
    "remote": "遙控器",
    "microwave": "微波爐",
    "oven": "烤箱",
    "toaster": "烤麵包機",
    "refrigerator": "冰箱",
    "scissors": "剪刀",
    "toothbrush": "牙刷",
    "banana": "香蕉",
    "apple": "蘋果",
    "sandwich": "三明治",
    "orange": "橘子",
    "broccoli": "花椰菜",
    "carrot": "紅蘿蔔",
    "hot dog": "熱狗",
    "pizza": "披薩",
    "donut": "甜甜圈",
    "cake": "蛋糕",
    "teddy bear": "泰迪熊",
})


class WasteClassifier:
    """
    Read-only lookup tables for label classification and translation.
    Safe to share between threads once constructed.
    """

    def __init__(self,
                 recyclable: Iterable[str] = RECYCLABLE_ITEMS,
                 general_trash: Iterable[str] = GENERAL_TRASH_ITEMS,
                 food_waste: Iterable[str] = FOOD_WASTE_ITEMS,
                 translations: Optional[Mapping[str, str]] = None):
        """
        Build the classifier tables

        Args:
            recyclable: Labels that go to recycling
            general_trash: Labels that go to general trash
            food_waste: Labels that go to food waste
            translations: Label to display name mapping, defaults to ITEM_TRANSLATIONS

        Raises:
            ValueError: If a label appears in more than one category set
        """
        self.logger = logging.getLogger(__name__)

        self.recyclable = frozenset(recyclable)
        self.general_trash = frozenset(general_trash)
        self.food_waste = frozenset(food_waste)
        self.translations = MappingProxyType(
            dict(ITEM_TRANSLATIONS if translations is None else translations)
        )

        overlaps = self.find_overlaps()
        if overlaps:
            raise ValueError(f"Category sets must be disjoint, overlapping labels: {sorted(overlaps)}")

        self.logger.debug(
            f"Classifier tables: {len(self.recyclable)} recyclable, "
            f"{len(self.general_trash)} general trash, {len(self.food_waste)} food waste, "
            f"{len(self.translations)} translations"
        )

    def find_overlaps(self) -> set:
        """Return labels that belong to more than one category set"""
        return (
            (self.recyclable & self.general_trash)
            | (self.recyclable & self.food_waste)
            | (self.general_trash & self.food_waste)
        )

    def classify(self, label: str) -> Category:
        """Map a label to its disposal category; unknown labels are OTHER"""
        if label in self.recyclable:
            return Category.RECYCLABLE
        if label in self.general_trash:
            return Category.GENERAL_TRASH
        if label in self.food_waste:
            return Category.FOOD_WASTE
        return Category.OTHER

    def translate(self, label: str) -> str:
        """Map a label to its display name, or return it unchanged"""
        return self.translations.get(label, label)

    @classmethod
    def from_config(cls, config: Dict) -> "WasteClassifier":
        """
        Build a classifier from the 'categories' and 'translations' config sections.
        Missing or null lists fall back to the built-in tables.
        """
        categories = config.get('categories') or {}

        def members(key, default):
            value = categories.get(key)
            return default if value is None else value

        return cls(
            recyclable=members('recyclable', RECYCLABLE_ITEMS),
            general_trash=members('general_trash', GENERAL_TRASH_ITEMS),
            food_waste=members('food_waste', FOOD_WASTE_ITEMS),
            translations=config.get('translations'),
        )


_default_classifier = WasteClassifier()


def classify(label: str) -> Category:
    """Classify a label with the built-in tables"""
    return _default_classifier.classify(label)


def translate(label: str) -> str:
    """Translate a label with the built-in table"""
    return _default_classifier.translate(label)

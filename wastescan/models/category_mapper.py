"""
Rule-based mapping from open-vocabulary classifier labels to waste categories

The classifier knows about objects ("water bottle", "banana", "envelope"),
not about waste streams. This module turns its top label into one of a fixed
set of categories using an ordered keyword table. Disposal guidance always
comes from the table, never from the model.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Optional, Sequence, Tuple


class WasteCategory(Enum):
    """Closed set of disposal classes"""

    ORGANIC = "Organic"
    PLASTIC = "Plastic"
    PAPER = "Paper"
    METAL = "Metal"
    GLASS = "Glass"
    E_WASTE = "E-Waste"
    UNKNOWN = "Unknown"


@dataclass(frozen=True)
class CategoryRule:
    """One row of the rule table: any keyword hit maps to `category`"""

    keywords: Tuple[str, ...]
    category: WasteCategory
    instructions: str

    @classmethod
    def build(cls, keywords: Iterable[str], category: WasteCategory,
              instructions: str) -> "CategoryRule":
        return cls(tuple(k.lower() for k in keywords), category, instructions)

    def matches(self, normalized_label: str) -> bool:
        return any(keyword in normalized_label for keyword in self.keywords)


@dataclass(frozen=True)
class ClassificationResult:
    """Outcome of one classification, immutable once built"""

    category: WasteCategory
    label: str
    confidence: float
    reasoning: str
    disposal_instructions: str

    def to_dict(self) -> Dict[str, object]:
        return {
            "category": self.category.value,
            "label": self.label,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "disposalInstructions": self.disposal_instructions,
        }


UNKNOWN_LABEL = "Unknown Object"

UNKNOWN_INSTRUCTIONS = (
    "We could not identify a specific waste stream for this item. "
    "Check your local council's recycling guide, or place it in general "
    "waste if no guidance is available. Never put batteries, chemicals or "
    "sharp objects in household bins."
)

# Order matters: the first rule with a matching keyword wins.
DEFAULT_RULES: Tuple[CategoryRule, ...] = (
    CategoryRule.build(
        ["laptop", "notebook", "desktop computer", "computer keyboard", "mouse",
         "monitor", "crt screen", "television", "cellular telephone", "phone",
         "ipod", "remote control", "printer", "modem", "hard disc", "joystick",
         "loudspeaker", "projector", "calculator", "digital clock",
         "digital watch", "battery", "charger", "cable"],
        WasteCategory.E_WASTE,
        "Take electronics to a certified e-waste drop-off point or retailer "
        "take-back scheme. Remove batteries where possible and wipe personal "
        "data first. Never place in household bins.",
    ),
    CategoryRule.build(
        ["wine bottle", "beer bottle", "beer glass", "wine glass", "goblet",
         "glass jar", "jar", "vase"],
        WasteCategory.GLASS,
        "Empty and rinse, remove lids and corks, then place in the glass "
        "recycling bank. Broken glass should be wrapped and put in general "
        "waste.",
    ),
    CategoryRule.build(
        ["tin can", "beer can", "soda can", "can opener", "aluminum",
         "aluminium", "foil", "frying pan", "wok", "caldron", "padlock",
         "nail", "screw", "chain"],
        WasteCategory.METAL,
        "Rinse food and drink cans and place them in mixed recycling. Larger "
        "metal items such as pans and tools go to the scrap metal section of "
        "your recycling centre.",
    ),
    CategoryRule.build(
        ["plastic", "water bottle", "pop bottle", "pill bottle", "water jug",
         "bottle", "bucket", "lotion", "soap dispenser", "shower cap"],
        WasteCategory.PLASTIC,
        "Empty and rinse, keep caps on bottles, and place in the plastics "
        "recycling bin. Soft plastic films and bags go to supermarket "
        "collection points.",
    ),
    CategoryRule.build(
        ["paper", "cardboard", "carton", "envelope", "book jacket",
         "comic book", "menu", "crossword puzzle", "toilet tissue", "tissue",
         "packet", "binder"],
        WasteCategory.PAPER,
        "Flatten boxes and keep paper dry and clean, then place in the paper "
        "and card recycling bin. Greasy or food-soiled paper belongs in "
        "compost.",
    ),
    CategoryRule.build(
        ["banana", "apple", "orange", "lemon", "fig", "strawberry",
         "pineapple", "pomegranate", "jackfruit", "broccoli", "cauliflower",
         "cucumber", "zucchini", "cabbage", "bell pepper", "mushroom",
         "artichoke", "squash", "bagel", "pretzel", "french loaf", "pizza",
         "burrito", "hotdog", "cheeseburger", "potpie", "meat loaf",
         "mashed potato", "guacamole", "carbonara", "food", "fruit",
         "vegetable"],
        WasteCategory.ORGANIC,
        "Place in the food or garden waste caddy, or add to a home compost "
        "heap. Remove any stickers, packaging or elastic bands first.",
    ),
)


def display_label(label: str) -> str:
    """First alias of a comma-separated classifier label"""
    return label.split(",")[0].strip()


class CategoryMapper:
    """
    Deterministic label → category mapping driven by an ordered rule table

    Rules are scanned in order and the first one with a keyword contained in
    the lowercased label wins. There is no scoring between rules.
    """

    def __init__(self, rules: Optional[Sequence[CategoryRule]] = None):
        self.rules: Tuple[CategoryRule, ...] = tuple(
            DEFAULT_RULES if rules is None else rules
        )

    def find_rule(self, label: str) -> Optional[CategoryRule]:
        normalized = label.lower()
        for rule in self.rules:
            if rule.matches(normalized):
                return rule
        return None

    def map_label(self, label: str, confidence: float) -> ClassificationResult:
        """
        Map a classifier label to a waste category

        Args:
            label: Raw label reported by the classifier
            confidence: Classifier probability, passed through unchanged

        Returns:
            ClassificationResult for the first matching rule, or the
            UNKNOWN fallback
        """
        rule = self.find_rule(label)
        if rule is None:
            return self.unknown_result(label, confidence)

        shown = display_label(label)
        return ClassificationResult(
            category=rule.category,
            label=shown,
            confidence=confidence,
            reasoning=f"Identified as '{shown}' which typically falls under "
                      f"{rule.category.value}.",
            disposal_instructions=rule.instructions,
        )

    def unknown_result(self, label: str = UNKNOWN_LABEL,
                       confidence: float = 0.0) -> ClassificationResult:
        shown = display_label(label)
        return ClassificationResult(
            category=WasteCategory.UNKNOWN,
            label=shown,
            confidence=confidence,
            reasoning=f"The system detected '{shown}' but could not match it "
                      f"to a specific waste stream with high confidence.",
            disposal_instructions=UNKNOWN_INSTRUCTIONS,
        )


_default_mapper = CategoryMapper()


def map_label(label: str, confidence: float) -> ClassificationResult:
    """Map a label using the default rule table"""
    return _default_mapper.map_label(label, confidence)

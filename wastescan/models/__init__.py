"""
Models package initialization
"""

from .category_mapper import (
    CategoryMapper,
    CategoryRule,
    ClassificationResult,
    DEFAULT_RULES,
    UNKNOWN_INSTRUCTIONS,
    WasteCategory,
    map_label,
)
from .classifier import MobileNetClassifier, Prediction
from .provider import ModelProvider, ModelState

__all__ = [
    'CategoryMapper', 'CategoryRule', 'ClassificationResult', 'DEFAULT_RULES',
    'UNKNOWN_INSTRUCTIONS', 'WasteCategory', 'map_label',
    'MobileNetClassifier', 'Prediction', 'ModelProvider', 'ModelState',
]

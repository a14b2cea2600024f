"""
Models package initialization
"""

from .classifier import Category, WasteClassifier, classify, translate
from .detector import Detection, ObjectDetector, ScoredLabel

__all__ = ['Category', 'WasteClassifier', 'classify', 'translate',
           'Detection', 'ObjectDetector', 'ScoredLabel']

"""
Garbage Sorter

Camera application that detects objects with a pre-trained model and
tells the user which bin they belong in (recyclable, general trash,
food waste, other).
"""

__version__ = "1.0.0"
__author__ = "Garbage Sorter Project"

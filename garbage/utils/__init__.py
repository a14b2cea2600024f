"""
Utilities package initialization
"""

from .display_state import AcceptanceGate, DisplayedState, DisplayStateCell

__all__ = ['AcceptanceGate', 'DisplayedState', 'DisplayStateCell']

"""Lysoria: persistent game state for a terminal AI role-playing game."""

__version__ = "0.1.0"

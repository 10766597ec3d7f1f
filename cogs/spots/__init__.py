"""
Spots Package

Slash commands that mirror catalog spots into channels, threads and forums.
"""

from .commands import SpotsCog

__all__ = ["SpotsCog"]

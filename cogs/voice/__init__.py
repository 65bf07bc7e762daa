"""
Voice Package

Gateway event listeners for temporary voice channels.
"""

from .events import VoiceEvents

__all__ = ["VoiceEvents"]

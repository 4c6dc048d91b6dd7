"""Configuration package; exports Settings and load_config."""

from helping_hand.config.loader import load_config
from helping_hand.config.settings import Settings

__all__ = ["Settings", "load_config"]

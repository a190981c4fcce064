"""Jewelkit - AI jewelry photography asset kits."""

__version__ = "0.1.0"

from jewelkit.core.config import JewelkitConfig, config

__all__ = ["JewelkitConfig", "config", "__version__"]

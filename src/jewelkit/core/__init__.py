"""Core services: configuration, errors, prompt policy and the two external
service clients (blob storage and image generation)."""

from jewelkit.core.blob_store import BlobStore, extension_for_content_type
from jewelkit.core.config import JewelkitConfig, config
from jewelkit.core.image_generator import ImageGenerator

__all__ = [
    "BlobStore",
    "ImageGenerator",
    "JewelkitConfig",
    "config",
    "extension_for_content_type",
]

"""Configuration management for Jewelkit.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the JEWELKIT_ prefix,
allowing easy customization without code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (JEWELKIT_* prefix)
2. .env file in the project root
3. Default values defined in JewelkitConfig

The Google API key is additionally accepted from the un-prefixed
``GOOGLE_API_KEY`` and ``GEMINI_API_KEY`` variables.

Example .env file:
    JEWELKIT_R2_ACCOUNT_ID=0123456789abcdef
    JEWELKIT_S3_ACCESS_KEY=...
    JEWELKIT_S3_SECRET_KEY=...
    JEWELKIT_R2_BUCKET_NAME=jewelry-assets
    JEWELKIT_R2_PUBLIC_URL=https://assets.example.com
    GOOGLE_API_KEY=...

Global Configuration Instance
------------------------------
A global `config` instance is created automatically at module import time.
It is the one configuration object of the process: the storage client, the
generation client and the orchestrator client all receive it (or a custom
instance) through their constructors and never read the environment
themselves.

Usage Example
-------------
    from jewelkit.core.config import config
    from jewelkit.core.blob_store import BlobStore

    store = BlobStore(config)
"""

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class JewelkitConfig(BaseSettings):
    """Main configuration for Jewelkit.

    Attributes
    ----------
    Object Storage (S3-compatible, Cloudflare R2 by default):
        r2_account_id : str
            Account id used to derive the default storage endpoint
        s3_access_key : str
            Access key id for the storage API
        s3_secret_key : str
            Secret access key for the storage API
        r2_bucket_name : str
            Bucket that receives every uploaded and generated image
        r2_public_url : str
            Public base URL that serves the bucket's objects
        storage_endpoint_url : str | None
            Explicit endpoint, overrides the account-derived R2 endpoint
        storage_region : str
            Region name passed to the S3 client ("auto" for R2)
        upload_folder : str
            Folder that receives user uploads
        presigned_url_expiry : int
            Default lifetime of presigned URLs in seconds

    Image Generation:
        google_api_key : str
            API key for the generative image model
        gemini_model : str
            Model identifier
        max_reference_images : int
            Number of input images forwarded to the model (excess dropped)
        max_reference_image_bytes : int
            Declared size above which an input image is skipped
        fetch_timeout : float
            Timeout in seconds for fetching remote images

    Server / Orchestrator:
        server_host : str
            Bind address for uvicorn
        server_port : int
            Port for uvicorn
        api_base_url : str
            Base URL the orchestrator uses to reach the upload/generate API
        progress_clear_delay : float
            Seconds a completed progress state stays visible
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="JEWELKIT_",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Object storage
    r2_account_id: str = Field(default="", description="Storage account id")
    s3_access_key: str = Field(default="", description="Storage access key id")
    s3_secret_key: str = Field(default="", description="Storage secret access key")
    r2_bucket_name: str = Field(default="", description="Target bucket name")
    r2_public_url: str = Field(default="", description="Public base URL of the bucket")
    storage_endpoint_url: str | None = Field(
        default=None,
        description="Explicit S3 endpoint (defaults to the R2 endpoint of r2_account_id)",
    )
    storage_region: str = Field(default="auto", description="S3 region name")
    upload_folder: str = Field(default="uploads", description="Folder for user uploads")
    presigned_url_expiry: int = Field(default=3600, ge=1, le=7 * 24 * 3600)

    # Image generation
    google_api_key: str = Field(
        default="",
        validation_alias=AliasChoices(
            "JEWELKIT_GOOGLE_API_KEY",
            "GOOGLE_API_KEY",
            "GEMINI_API_KEY",
        ),
        description="API key for the image generation model",
    )
    gemini_model: str = Field(
        default="gemini-2.5-flash-image-preview",
        description="Image generation model identifier",
    )
    max_reference_images: int = Field(default=3, ge=1, le=16)
    max_reference_image_bytes: int = Field(default=7 * 1024 * 1024, ge=1)
    fetch_timeout: float = Field(default=60.0, gt=0)

    # Server
    server_host: str = Field(default="0.0.0.0", description="Server bind address")
    server_port: int = Field(default=3000, ge=1024, le=65535)

    # Orchestrator
    api_base_url: str = Field(
        default="http://127.0.0.1:3000",
        description="Base URL of the upload/generate API used by the orchestrator",
    )
    progress_clear_delay: float = Field(default=3.0, ge=0)

    @property
    def resolved_storage_endpoint(self) -> str:
        """Return the S3 endpoint, deriving the R2 endpoint from the account id."""
        if self.storage_endpoint_url:
            return self.storage_endpoint_url
        return f"https://{self.r2_account_id}.r2.cloudflarestorage.com"

    @property
    def public_base_url(self) -> str:
        """Public URL base without a trailing slash."""
        return self.r2_public_url.rstrip("/")


# Global configuration instance
# Loaded once from JEWELKIT_* environment variables and the .env file.
config = JewelkitConfig()

"""
Application Configuration Module
Handles all configuration settings for the Sandbox Proxy
"""

from pydantic_settings import BaseSettings
from typing import Optional, List
from functools import lru_cache


class Settings(BaseSettings):
    """Main application settings"""

    # Application Settings
    app_name: str = "Sandbox Proxy"
    app_version: str = "1.0.0"
    debug: bool = False

    # Server Configuration
    host: str = "0.0.0.0"
    port: int = 8000
    workers: int = 4
    reload: bool = False

    # Proxy entry point
    proxy_prefix: str = "/proxy"
    legacy_proxy_prefix: Optional[str] = "/api/proxy"
    default_identity: str = "default"

    # Outbound request profile
    default_user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )
    accept_language: str = "en-US,en;q=0.9"
    max_redirects: int = 10
    request_timeout: float = 30.0  # seconds, per socket operation
    upstream_call_timeout: float = 45.0  # seconds, whole upstream call
    disconnect_poll_interval: float = 0.5  # seconds

    # Target resolution
    redirector_hosts: List[str] = ["google.com"]
    search_engine_url: str = "https://www.google.com/search"

    # Rewriting
    disabled_site_shims: List[str] = []

    # Cache Settings
    asset_cache_ttl: int = 3600  # 1 hour

    # Security Settings
    cors_origins: List[str] = ["*"]
    cors_allow_credentials: bool = True
    cors_allow_methods: List[str] = ["GET", "POST", "PUT", "OPTIONS"]
    cors_allow_headers: List[str] = ["*"]

    # Logging Configuration
    log_level: str = "INFO"
    log_file: Optional[str] = "logs/app.log"
    log_rotation: str = "100 MB"
    log_retention: str = "30 days"
    log_format: str = "{time:YYYY-MM-DD HH:mm:ss} | {level} | {message}"

    # Performance Settings
    enable_compression: bool = True
    min_compression_size: int = 1024  # bytes

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False

        # Allow extra fields for flexibility
        extra = "allow"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()

"""
Main entry point for Sandbox Proxy
Run this file to start the application
"""

import sys
from pathlib import Path

import uvicorn
from loguru import logger

from config.settings import get_settings

settings = get_settings()

# Configure logging
logger.remove()
logger.add(
    sys.stdout,
    format=settings.log_format,
    level=settings.log_level,
    colorize=True
)

if settings.log_file:
    logger.add(
        settings.log_file,
        format=settings.log_format,
        level=settings.log_level,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
        compression="zip"
    )


def main():
    """Main function to run the application"""

    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info("Configuration:")
    logger.info(f"  • Host: {settings.host}:{settings.port}")
    logger.info(f"  • Proxy prefix: {settings.proxy_prefix} (legacy: {settings.legacy_proxy_prefix})")
    logger.info(f"  • Upstream timeout: {settings.upstream_call_timeout}s, max redirects: {settings.max_redirects}")
    logger.info(f"  • Debug Mode: {settings.debug}")

    # Create required directories
    if settings.log_file:
        Path(settings.log_file).parent.mkdir(parents=True, exist_ok=True)

    # Run the application
    uvicorn.run(
        "sandbox_proxy.core.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        workers=1 if settings.reload else settings.workers,
        log_level=settings.log_level.lower(),
        access_log=True
    )


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        logger.info("Application stopped by user")
    except Exception as e:
        logger.error(f"Application error: {str(e)}")
        sys.exit(1)

"""
Sandbox Proxy - Main Application Package
A content-rewriting forwarding proxy that serves third-party pages inside a
sandboxed browser frame
"""

__version__ = "1.0.0"

from .core.app import create_app

__all__ = ["create_app"]

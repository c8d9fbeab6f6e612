"""
Services module for Sandbox Proxy
"""

from .proxy_service import ProxyService
from .outbound_fetcher import OutboundFetcher
from .content_rewriter import ContentRewriter
from .security_filter import SecurityFilter
from .settings_store import SecuritySettingsStore

__all__ = [
    'ProxyService',
    'OutboundFetcher',
    'ContentRewriter',
    'SecurityFilter',
    'SecuritySettingsStore'
]

"""
Core module for Sandbox Proxy
"""

from .app import create_app, app
from .exceptions import ProxyError, InvalidInput, MissingUrl, InvalidUrl, UpstreamUnreachable, RewriteFailure

__all__ = [
    'create_app',
    'app',
    'ProxyError',
    'InvalidInput',
    'MissingUrl',
    'InvalidUrl',
    'UpstreamUnreachable',
    'RewriteFailure'
]

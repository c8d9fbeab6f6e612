"""
API Routes Module
"""

from . import proxy_routes
from . import settings_routes
from . import validation_routes

__all__ = [
    'proxy_routes',
    'settings_routes',
    'validation_routes'
]

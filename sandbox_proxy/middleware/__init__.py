"""
Middleware Module
"""

from .security import SecurityMiddleware

__all__ = [
    'SecurityMiddleware'
]

"""
Proxy error taxonomy
"""

from typing import Optional


class ProxyError(Exception):
    """Base class for all proxy failures"""


class InvalidInput(ProxyError):
    """Structurally invalid caller input, answered with a 400 JSON body"""

    message = "Invalid input"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class MissingUrl(InvalidInput):
    message = "URL parameter is required"


class InvalidUrl(InvalidInput):
    message = "Invalid URL"


class UpstreamUnreachable(ProxyError):
    """Network level failure talking to the upstream origin"""

    def __init__(self, url: str, reason: str):
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason


class RewriteFailure(ProxyError):
    """A rewrite rule faulted on the document"""

    def __init__(self, rule: str, cause: Exception):
        super().__init__(f"rewrite rule {rule} failed: {cause}")
        self.rule = rule
        self.cause = cause

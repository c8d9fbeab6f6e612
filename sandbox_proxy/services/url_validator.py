"""
URL Validator
Advisory safety check used by the address bar before navigating
"""

from dataclasses import asdict, dataclass
from typing import Dict, Optional, Sequence

from sandbox_proxy.core.exceptions import InvalidUrl
from sandbox_proxy.services.site_shims import FormShim
from sandbox_proxy.services.url_resolver import normalize_address


SUSPICIOUS_KEYWORDS = ("malicious", "phishing", "scam", "hack", "virus", "malware")


@dataclass
class UrlVerdict:
    isValid: bool
    isSafe: bool
    reason: str
    isHttps: bool = False
    sanitizedUrl: Optional[str] = None

    def to_dict(self) -> Dict:
        return asdict(self)


def validate_url(text: str, search_url: str, form_shims: Sequence[FormShim] = ()) -> UrlVerdict:
    """Normalize address bar input, then screen it for suspicious keywords.

    The verdict is advisory; it never blocks navigation by itself.
    """

    try:
        url = normalize_address(text, search_url, form_shims)
    except InvalidUrl:
        return UrlVerdict(isValid=False, isSafe=False, reason="Invalid URL format")

    lowered = url.lower()
    is_safe = not any(keyword in lowered for keyword in SUSPICIOUS_KEYWORDS)
    is_https = lowered.startswith("https://")

    if not is_safe:
        reason = "URL contains suspicious content"
    elif not is_https:
        reason = "URL is not using secure HTTPS protocol"
    else:
        reason = "URL appears safe"

    return UrlVerdict(isValid=True, isSafe=is_safe, isHttps=is_https, reason=reason, sanitizedUrl=url)

"""
URL Resolver
Validates caller supplied targets and unwraps search redirector links
"""

from typing import Iterable, Optional, Sequence
from urllib.parse import urlparse, parse_qs, urlencode

from loguru import logger

from sandbox_proxy.core.exceptions import InvalidUrl
from sandbox_proxy.services.site_shims import FormShim

ALLOWED_SCHEMES = ("http", "https")


def parse_absolute_url(raw: Optional[str]) -> str:
    """Return ``raw`` if it is an absolute http(s) URL, raise InvalidUrl otherwise"""

    if raw is None:
        raise InvalidUrl()

    candidate = raw.strip()
    if not candidate or any(char.isspace() for char in candidate):
        raise InvalidUrl()

    try:
        parsed = urlparse(candidate)
        # Accessing the port validates it
        parsed.port
    except ValueError:
        raise InvalidUrl()

    if parsed.scheme.lower() not in ALLOWED_SCHEMES or not parsed.hostname:
        raise InvalidUrl()

    return candidate


def _host_matches(host: str, domains: Iterable[str]) -> bool:
    host = host.lower()
    return any(host == domain or host.endswith("." + domain) for domain in domains)


def unwrap_redirector(url: str, redirector_hosts: Iterable[str]) -> str:
    """Swap a search redirect wrapper for the destination it wraps.

    Best effort: when the wrapper carries no usable ``url``/``q`` parameter
    the original URL is returned unchanged.
    """

    parsed = urlparse(url)
    if not _host_matches(parsed.hostname or "", redirector_hosts):
        return url
    if "/url" not in parsed.path:
        return url

    params = parse_qs(parsed.query)
    for key in ("url", "q"):
        for value in params.get(key, []):
            try:
                wrapped = parse_absolute_url(value)
            except InvalidUrl:
                continue
            logger.debug(f"Unwrapped redirector {url} -> {wrapped}")
            return wrapped

    return url


def resolve_target(raw: Optional[str], redirector_hosts: Iterable[str]) -> str:
    """Validate the caller URL and return the effective upstream target"""

    return unwrap_redirector(parse_absolute_url(raw), redirector_hosts)


def _search_url(query: str, search_url: str, form_shims: Sequence[FormShim]) -> str:
    params = {"q": query}
    for shim in form_shims:
        if shim.matches_target(search_url):
            params.update(shim.params())
            for name in shim.echo_query_as:
                params.setdefault(name, query)
            break
    return f"{search_url}?{urlencode(params)}"


def normalize_address(text: str, search_url: str, form_shims: Sequence[FormShim] = ()) -> str:
    """Turn address bar input into a fetchable URL.

    Input that looks like a bare query becomes a search URL, a host without
    a scheme defaults to https.
    """

    text = text.strip()
    if not text:
        raise InvalidUrl()

    if "." not in text and not text.lower().startswith("http"):
        return _search_url(text, search_url, form_shims)

    if not text.lower().startswith(("http://", "https://")):
        text = f"https://{text}"

    return parse_absolute_url(text)

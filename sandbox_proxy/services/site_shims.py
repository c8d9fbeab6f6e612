"""
Site Shims
Destination-specific compatibility tweaks, kept as a table of
{matcher -> transform} so the rewrite pipeline itself stays origin agnostic
"""

import re
import secrets
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional
from urllib.parse import urlparse

from sandbox_proxy.models import RewriteContext


@dataclass(frozen=True)
class FormShim:
    """Extra query parameters a search destination expects from its own forms"""

    name: str
    hosts: tuple
    search_path: str
    params: Callable[[], Dict[str, str]]
    # Copy the query into these parameters when they are missing
    echo_query_as: tuple = ()

    def matches_host(self, url: str) -> bool:
        host = (urlparse(url).hostname or "").lower()
        return any(host == h or host.endswith("." + h) for h in self.hosts)

    def matches_target(self, url: str) -> bool:
        return self.matches_host(url) and urlparse(url).path.startswith(self.search_path)

    def default_target(self, page_url: str) -> Optional[str]:
        """Where an action-less form on one of our pages really submits"""
        if not self.matches_host(page_url):
            return None
        parsed = urlparse(page_url)
        return f"{parsed.scheme}://{parsed.netloc}{self.search_path}"


@dataclass(frozen=True)
class PageShim:
    """Whole-document transform applied to matching pages"""

    name: str
    matches: Callable[[str], bool]
    transform: Callable[[str, RewriteContext], str]


def _google_search_params() -> Dict[str, str]:
    return {
        "source": "hp",
        "sclient": "gws-wiz",
        "uact": "5",
        "sca_esv": secrets.token_hex(8),
        "ei": secrets.token_hex(8),
        "iflsig": "AOw8s4IAAAAAaEd8EwCpc6JljWV3fai-Gxi76OQQrTWV",
        "ved": "0ahUKEwj327jzvuWNAxXciO4BHcPlAYcQ4dUDCA8",
        "gs_lp": "Egdnd3Mtd2l6",
    }


GOOGLE_SEARCH_FORM = FormShim(
    name="google-search-form",
    hosts=("google.com",),
    search_path="/search",
    params=_google_search_params,
    echo_query_as=("oq",),
)


# Search homepage notice -----------------------------------------------------

_GOOGLE_HOMEPAGE = re.compile(r"^https://(www\.)?google\.com/?(\?.*)?$")

SEARCH_NOTICE_ID = "sandbox-search-notice"
SEARCH_DISABLED_MARKER = "data-sandbox-disabled"

_SEARCH_NOTICE_STYLE = """<style>
.browser-popup-overlay {
  position: fixed; top: 0; left: 0; width: 100%; height: 100%;
  background: rgba(0, 0, 0, 0.5); z-index: 10000;
  display: flex; align-items: center; justify-content: center;
}
.browser-popup {
  background: white; padding: 30px; border-radius: 12px;
  box-shadow: 0 10px 25px rgba(0,0,0,0.2); max-width: 400px; text-align: center;
  font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
}
.browser-popup h3 { margin: 0 0 15px 0; color: #333; font-size: 18px; }
.browser-popup p { margin: 0 0 20px 0; color: #666; line-height: 1.5; }
.browser-popup button {
  background: #4285f4; color: white; border: none; padding: 10px 20px;
  border-radius: 6px; cursor: pointer; font-size: 14px;
}
.browser-popup button:hover { background: #3367d6; }
.browser-search-disabled { position: relative; cursor: not-allowed; }
</style>
"""

_SEARCH_NOTICE_OVERLAY = (
    f'<div class="browser-popup-overlay" id="{SEARCH_NOTICE_ID}">'
    '<div class="browser-popup"><h3>Search Notice</h3>'
    "<p>To search, please use the URL bar at the top of the browser.</p>"
    f"<button onclick=\"document.getElementById('{SEARCH_NOTICE_ID}').style.display='none'\">"
    "Got it</button></div></div>"
)

_HEAD_CLOSE = re.compile(r"</head\s*>", re.IGNORECASE)
_BODY_OPEN = re.compile(r"<body\b[^>]*>", re.IGNORECASE)
_SEARCH_FIELD = re.compile(
    r"<(?P<tag>input|textarea)\b(?P<attrs>[^>]*\bname\s*=\s*[\"']q[\"'][^>]*?)(?P<close>/?)>",
    re.IGNORECASE,
)


def _disable_search_field(match: re.Match) -> str:
    if SEARCH_DISABLED_MARKER in match.group("attrs"):
        return match.group(0)
    return (
        f"<{match.group('tag')}{match.group('attrs').rstrip()} disabled "
        f'{SEARCH_DISABLED_MARKER} class="browser-search-disabled"{match.group("close")}>'
    )


def apply_search_notice(html: str, context: RewriteContext) -> str:
    """Overlay a notice and disable the page's own search box"""

    if SEARCH_NOTICE_ID in html:
        return html

    html = _HEAD_CLOSE.sub(lambda m: _SEARCH_NOTICE_STYLE + m.group(0), html, count=1)
    html = _BODY_OPEN.sub(lambda m: m.group(0) + _SEARCH_NOTICE_OVERLAY, html, count=1)
    return _SEARCH_FIELD.sub(_disable_search_field, html)


GOOGLE_HOMEPAGE_NOTICE = PageShim(
    name="google-homepage-notice",
    matches=lambda url: bool(_GOOGLE_HOMEPAGE.match(url)),
    transform=apply_search_notice,
)


FORM_SHIMS: List[FormShim] = [GOOGLE_SEARCH_FORM]
PAGE_SHIMS: List[PageShim] = [GOOGLE_HOMEPAGE_NOTICE]


def enabled(shims: Iterable, disabled_names: Iterable[str]) -> list:
    """Filter a shim table by the names switched off in configuration"""
    disabled_names = set(disabled_names)
    return [shim for shim in shims if shim.name not in disabled_names]

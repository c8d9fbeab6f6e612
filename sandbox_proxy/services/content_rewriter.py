"""
Content Rewriter Service
Pattern based HTML rewriting that keeps navigation, assets and form
submissions flowing back through the proxy.

Every rule is a pure function over the document text. Rules only touch
attribute values matching their exact pattern and never rewrite a value that
already points at the proxy, so running the pipeline over its own output is
a no-op.
"""

import html as html_lib
import json
import re
from typing import Callable, List, Optional, Sequence, Tuple
from urllib.parse import parse_qs, quote, urljoin, urlparse

from loguru import logger

from config.settings import Settings
from sandbox_proxy.core.exceptions import RewriteFailure
from sandbox_proxy.models import RewriteContext
from sandbox_proxy.services import site_shims
from sandbox_proxy.services.site_shims import FormShim, PageShim


# Same character set as JavaScript's encodeURIComponent
_URI_COMPONENT_SAFE = "-_.!~*'()"

_SCHEME = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.\-]*:")
_NON_NAVIGABLE = ("#", "mailto:", "javascript:", "data:", "tel:", "about:", "blob:")

_LINK_ATTR = re.compile(
    r"(?<![\w-])(?P<attr>href|src|action)=(?P<q>[\"'])(?P<value>.*?)(?P=q)",
    re.IGNORECASE,
)
_SRCSET_ATTR = re.compile(
    r"(?<![\w-])(?P<attr>srcset)=(?P<q>[\"'])(?P<value>.*?)(?P=q)",
    re.IGNORECASE,
)
_CSS_URL = re.compile(
    r"(?<![\w.$])url\(\s*(?P<q>[\"']?)(?P<value>(?:/|https?://)[^\"')]*)(?P=q)\s*\)",
)
_CSS_IMPORT = re.compile(
    r"@import\s+(?P<q>[\"'])(?P<value>(?:/|https?://)[^\"']*)(?P=q)",
    re.IGNORECASE,
)
_FORM_TAG = re.compile(r"<form\b(?P<attrs>[^>]*)>", re.IGNORECASE)
_TAG_ATTR = re.compile(
    r"(?P<name>[^\s\"'=<>/]+)(?:\s*=\s*(?:\"(?P<dq>[^\"]*)\"|'(?P<sq>[^']*)'|(?P<uq>[^\s\"'=<>`]+)))?"
)
_HEAD_OPEN = re.compile(r"<head\b[^>]*>", re.IGNORECASE)
_VIEWPORT_META = re.compile(r"<meta\b[^>]*\bname\s*=\s*[\"']?viewport", re.IGNORECASE)

VIEWPORT_TAG = '<meta name="viewport" content="width=device-width, initial-scale=1.0">'
FORM_MARKER = "data-sandbox-form"

# App interstitials
_APP_BANNERS = [
    re.compile(r"<div[^>]*class=\"[^\"]*app-banner[^\"]*\"[^>]*>.*?</div>", re.IGNORECASE),
    re.compile(r"<div[^>]*class=\"[^\"]*mobile-app[^\"]*\"[^>]*>.*?</div>", re.IGNORECASE),
    re.compile(r"<div[^>]*class=\"[^\"]*smartbanner[^\"]*\"[^>]*>.*?</div>", re.IGNORECASE),
]
_APP_TARGET = r"(?:apps\.apple\.com|itunes\.apple\.com|play\.google\.com|itms-apps:|market:|intent:)"
_APP_REDIRECTS = [
    re.compile(
        r"window\.location\.href\s*=\s*[\"'][^\"']*" + _APP_TARGET + r"[^\"']*[\"']\s*;?",
        re.IGNORECASE,
    ),
    re.compile(
        r"location\.replace\s*\(\s*[\"'][^\"']*" + _APP_TARGET + r"[^\"']*[\"']\s*\)\s*;?",
        re.IGNORECASE,
    ),
]
_APP_LABELS = [
    (re.compile(r"\bContinue in App\b", re.IGNORECASE), "Stay in Browser"),
    (re.compile(r"\bOpen in App\b", re.IGNORECASE), "Continue in Browser"),
    (re.compile(r"\bDownload App\b", re.IGNORECASE), "Continue Browsing"),
]


# Helpers --------------------------------------------------------------------

def encode_uri_component(value: str) -> str:
    return quote(value, safe=_URI_COMPONENT_SAFE)


def proxy_url(target: str, context: RewriteContext) -> str:
    """Proxy entry point URL carrying ``target`` as an absolute URL"""
    return f"{context.proxy_prefix}?url={encode_uri_component(target)}"


def root_relative_proxy_url(path: str, context: RewriteContext) -> str:
    """``/x`` on the page origin -> ``prefix?url=<enc(origin)>/x``"""
    return (
        f"{context.proxy_prefix}?url={encode_uri_component(context.base_origin)}"
        f"/{quote(path.lstrip('/'), safe='/')}"
    )


def css_proxy_url(value: str, context: RewriteContext) -> str:
    """Root-relative CSS targets keep the origin form, absolute ones are encoded whole"""
    if _is_root_relative(value):
        return root_relative_proxy_url(value, context)
    return proxy_url(urljoin(context.page_url, value), context)


def is_proxied(value: str, context: RewriteContext) -> bool:
    return value == context.proxy_prefix or value.startswith(context.proxy_prefix + "?")


def unwrap_proxied(value: str, context: RewriteContext) -> Optional[str]:
    """Absolute target embedded in a proxy URL, if ``value`` is one"""
    if not is_proxied(value, context):
        return None
    targets = parse_qs(value.split("?", 1)[1]).get("url")
    return targets[0] if targets else None


def _is_root_relative(value: str) -> bool:
    return value.startswith("/") and not value.startswith("//")


def _is_absolute(value: str) -> bool:
    lowered = value.lower()
    return lowered.startswith(("http://", "https://", "//"))


def _is_relative(value: str) -> bool:
    if not value or value.startswith("/"):
        return False
    if value.lower().startswith(_NON_NAVIGABLE):
        return False
    return not _SCHEME.match(value)


def _replace_value(match: re.Match, new_value: str) -> str:
    q = match.group("q")
    return f"{match.group('attr')}={q}{html_lib.escape(new_value)}{q}"


# Rules ----------------------------------------------------------------------

def rewrite_root_relative_refs(
    text: str, context: RewriteContext, attrs: Sequence[str] = ("href", "src", "action")
) -> str:
    """Rule 1: href="/x", src="/x", action="/x" -> proxied origin URL"""

    wanted = {a.lower() for a in attrs}

    def replace(match: re.Match) -> str:
        value = html_lib.unescape(match.group("value")).strip()
        if match.group("attr").lower() not in wanted:
            return match.group(0)
        if not _is_root_relative(value) or is_proxied(value, context):
            return match.group(0)
        return _replace_value(match, root_relative_proxy_url(value, context))

    return _LINK_ATTR.sub(replace, text)


def rewrite_css_urls(text: str, context: RewriteContext) -> str:
    """Rule 2: url(/x), url(//x), url(https://x) -> url(proxied), keeping the original quotes"""

    def replace(match: re.Match) -> str:
        value = match.group("value").strip()
        if is_proxied(value, context):
            return match.group(0)
        q = match.group("q")
        return f"url({q}{css_proxy_url(value, context)}{q})"

    return _CSS_URL.sub(replace, text)


def rewrite_relative_refs(text: str, context: RewriteContext) -> str:
    """Rule 3: page-relative href/src resolved against the page URL"""

    def replace(match: re.Match) -> str:
        if match.group("attr").lower() == "action":
            return match.group(0)
        value = html_lib.unescape(match.group("value")).strip()
        if not _is_relative(value):
            return match.group(0)
        return _replace_value(match, proxy_url(urljoin(context.page_url, value), context))

    return _LINK_ATTR.sub(replace, text)


def rewrite_absolute_refs(text: str, context: RewriteContext) -> str:
    """Absolute and protocol-relative href/src go through the proxy as well"""

    def replace(match: re.Match) -> str:
        if match.group("attr").lower() == "action":
            return match.group(0)
        value = html_lib.unescape(match.group("value")).strip()
        if not _is_absolute(value):
            return match.group(0)
        return _replace_value(match, proxy_url(urljoin(context.page_url, value), context))

    return _LINK_ATTR.sub(replace, text)


def split_srcset(value: str) -> List[Tuple[str, str]]:
    """(url, descriptor) pairs; a URL runs to whitespace so it may contain commas"""

    candidates = []
    pos, end = 0, len(value)
    while pos < end:
        while pos < end and (value[pos].isspace() or value[pos] == ","):
            pos += 1
        if pos >= end:
            break
        start = pos
        while pos < end and not value[pos].isspace():
            pos += 1
        url = value[start:pos]
        descriptor = ""
        if url.endswith(","):
            url = url.rstrip(",")
        else:
            start = pos
            while pos < end and value[pos] != ",":
                pos += 1
            descriptor = value[start:pos].strip()
        candidates.append((url, descriptor))
    return candidates


def rewrite_srcset(text: str, context: RewriteContext) -> str:
    """Every candidate URL of a srcset attribute"""

    def rewrite_candidate(url: str, descriptor: str) -> str:
        if not (is_proxied(url, context) or url.lower().startswith("data:")):
            url = proxy_url(urljoin(context.page_url, url), context)
        return f"{url} {descriptor}" if descriptor else url

    def replace(match: re.Match) -> str:
        value = html_lib.unescape(match.group("value"))
        rewritten = ", ".join(rewrite_candidate(u, d) for u, d in split_srcset(value))
        return _replace_value(match, rewritten)

    return _SRCSET_ATTR.sub(replace, text)


def rewrite_css_imports(text: str, context: RewriteContext) -> str:
    """Rule 4: @import "/x" or an absolute target -> @import "proxied" """

    def replace(match: re.Match) -> str:
        value = match.group("value").strip()
        if is_proxied(value, context):
            return match.group(0)
        q = match.group("q")
        return f"@import {q}{css_proxy_url(value, context)}{q}"

    return _CSS_IMPORT.sub(replace, text)


def _parse_tag_attrs(attrs: str) -> List[Tuple[str, Optional[str], str]]:
    """(lower-cased name, value, original text) for each attribute"""
    parsed = []
    for match in _TAG_ATTR.finditer(attrs):
        value = match.group("dq")
        if value is None:
            value = match.group("sq")
        if value is None:
            value = match.group("uq")
        parsed.append((match.group("name").lower(), value, match.group(0)))
    return parsed


def _get_form_submit_script(target: str, context: RewriteContext, shim: Optional[FormShim]) -> str:
    lines = ["var p=new URLSearchParams(new FormData(this));"]
    if shim:
        for key, value in shim.params().items():
            lines.append(f"if(!p.has({json.dumps(key)}))p.append({json.dumps(key)},{json.dumps(value)});")
        for key in shim.echo_query_as:
            lines.append(f"if(!p.has({json.dumps(key)})&&p.get('q'))p.append({json.dumps(key)},p.get('q'));")
    lines.append(f"var t={json.dumps(target)};")
    lines.append(
        f"window.location.href={json.dumps(context.proxy_prefix + '?url=')}"
        "+encodeURIComponent(t+(t.indexOf('?')>=0?'&':'?')+p.toString());"
    )
    lines.append("return false;")
    return "".join(lines)


def intercept_forms(text: str, context: RewriteContext, form_shims: Sequence[FormShim] = ()) -> str:
    """Rule 5: route every form submission through the proxy.

    GET forms are submitted from script so the query string ends up inside
    the proxied target URL. POST forms keep method and encoding and post to
    the proxy with the real target as a parameter.
    """

    def replace(match: re.Match) -> str:
        attrs = _parse_tag_attrs(match.group("attrs"))
        names = {name: value for name, value, _ in attrs}
        if FORM_MARKER in names:
            return match.group(0)

        action = html_lib.unescape(names.get("action") or "").strip()
        if action.lower().startswith("javascript:"):
            return match.group(0)

        method = (names.get("method") or "get").strip().lower()
        if method not in ("get", "post"):
            return match.group(0)

        shim = None
        if not action or action.startswith("#"):
            target = context.page_url.split("#", 1)[0]
            if method == "get":
                for candidate in form_shims:
                    default = candidate.default_target(context.page_url)
                    if default:
                        target, shim = default, candidate
                        break
        else:
            target = unwrap_proxied(action, context) or urljoin(context.page_url, action)
            target = target.split("#", 1)[0]

        kept = "".join(
            " " + raw for name, _, raw in attrs if name not in ("action", "onsubmit", "target")
        )

        if method == "post":
            return (
                f'<form{kept} action="{html_lib.escape(proxy_url(target, context))}" '
                f'target="_self" {FORM_MARKER}="post">'
            )

        if shim is None:
            shim = next((s for s in form_shims if s.matches_target(target)), None)

        script = _get_form_submit_script(target, context, shim)
        return (
            f'<form{kept} action="{html_lib.escape(context.proxy_prefix)}" target="_self" '
            f'{FORM_MARKER}="get" onsubmit="{html_lib.escape(script)}">'
        )

    return _FORM_TAG.sub(replace, text)


def strip_app_interstitials(text: str) -> str:
    """Rule 6: drop app banners and forced app-store navigation"""

    for pattern in _APP_BANNERS + _APP_REDIRECTS:
        text = pattern.sub("", text)
    for pattern, label in _APP_LABELS:
        text = pattern.sub(label, text)
    return text


def inject_viewport(text: str) -> str:
    """Rule 7: add a viewport meta tag when the page has none"""

    if _VIEWPORT_META.search(text):
        return text
    return _HEAD_OPEN.sub(lambda m: m.group(0) + VIEWPORT_TAG, text, count=1)


def apply_page_shims(text: str, context: RewriteContext, page_shims: Sequence[PageShim] = ()) -> str:
    """Rule 8: destination specific document transforms"""

    for shim in page_shims:
        if shim.matches(context.page_url):
            logger.debug(f"Applying page shim {shim.name} to {context.page_url}")
            text = shim.transform(text, context)
    return text


class ContentRewriter:
    """Runs the rewrite rules over HTML documents in a fixed order"""

    def __init__(
        self,
        settings: Settings,
        form_shims: Optional[Sequence[FormShim]] = None,
        page_shims: Optional[Sequence[PageShim]] = None,
    ):
        self.settings = settings
        disabled = settings.disabled_site_shims
        self.form_shims = site_shims.enabled(
            site_shims.FORM_SHIMS if form_shims is None else form_shims, disabled
        )
        self.page_shims = site_shims.enabled(
            site_shims.PAGE_SHIMS if page_shims is None else page_shims, disabled
        )

    def pipeline(self) -> List[Tuple[str, Callable[[str, RewriteContext], str]]]:
        return [
            ("root_relative_refs", rewrite_root_relative_refs),
            ("css_urls", rewrite_css_urls),
            ("relative_refs", rewrite_relative_refs),
            ("absolute_refs", rewrite_absolute_refs),
            ("srcset", rewrite_srcset),
            ("css_imports", rewrite_css_imports),
            ("forms", lambda text, ctx: intercept_forms(text, ctx, self.form_shims)),
            ("app_interstitials", lambda text, ctx: strip_app_interstitials(text)),
            ("viewport", lambda text, ctx: inject_viewport(text)),
            ("page_shims", lambda text, ctx: apply_page_shims(text, ctx, self.page_shims)),
        ]

    def rewrite(self, html: str, context: RewriteContext) -> str:
        """Full pipeline; the untouched document comes back if any rule faults"""

        try:
            return self._run(html, context, self.pipeline())
        except RewriteFailure as e:
            logger.warning(f"Serving {context.page_url} unmodified: {e}")
            return html

    def rewrite_links(self, html: str, context: RewriteContext) -> str:
        """Link-only rewriting used for form POST responses"""

        rules = [
            (
                "root_relative_links",
                lambda text, ctx: rewrite_root_relative_refs(text, ctx, attrs=("href", "src")),
            )
        ]
        try:
            return self._run(html, context, rules)
        except RewriteFailure as e:
            logger.warning(f"Serving {context.page_url} unmodified: {e}")
            return html

    def _run(self, html: str, context: RewriteContext, rules) -> str:
        for name, rule in rules:
            try:
                html = rule(html, context)
            except Exception as e:
                raise RewriteFailure(name, e) from e
        return html

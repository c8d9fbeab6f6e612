"""
Content Classifier
Decides which handling path an upstream resource takes
"""

import mimetypes
import re
from enum import Enum
from urllib.parse import urlparse

from sandbox_proxy.models import FetchResult


class ResourceKind(str, Enum):
    DOCUMENT = "document"
    STYLE = "style"
    SCRIPT = "script"
    IMAGE = "image"
    FONT = "font"


_SUFFIX_KINDS = {
    ResourceKind.STYLE: ("css",),
    ResourceKind.SCRIPT: ("js", "mjs"),
    ResourceKind.IMAGE: ("jpg", "jpeg", "png", "gif", "webp", "svg", "ico", "avif", "bmp"),
    ResourceKind.FONT: ("woff", "woff2", "ttf", "otf", "eot"),
}

_HTML_SNIFF = re.compile(rb"^\s*(?:<!doctype\s+html|<html|<head|<body)", re.IGNORECASE)


def _suffix(url: str) -> str:
    path = urlparse(url).path
    last = path.rsplit("/", 1)[-1]
    if "." not in last:
        return ""
    return last.rsplit(".", 1)[-1].lower()


def guess_resource_kind(url: str) -> ResourceKind:
    """Guess what the browser would be loading from the URL path suffix"""

    suffix = _suffix(url)
    for kind, suffixes in _SUFFIX_KINDS.items():
        if suffix in suffixes:
            return kind
    return ResourceKind.DOCUMENT


def is_html_response(result: FetchResult) -> bool:
    """True when the response goes down the rewrite path.

    A declared content type is authoritative. Without one, the URL suffix
    and the first bytes of the body decide.
    """

    content_type = result.content_type.strip().lower()
    if content_type:
        return content_type.startswith("text/html")

    if guess_resource_kind(result.final_url) is not ResourceKind.DOCUMENT:
        return False

    guessed, _ = mimetypes.guess_type(urlparse(result.final_url).path)
    if guessed:
        return guessed == "text/html"

    return bool(_HTML_SNIFF.match(result.body[:512]))

import pytest

from sandbox_proxy.models import FetchResult
from sandbox_proxy.services.content_classifier import (
    ResourceKind,
    guess_resource_kind,
    is_html_response,
)


def _result(url, body=b"", content_type=None):
    headers = {"content-type": content_type} if content_type else {}
    return FetchResult(final_url=url, status_code=200, body=body, headers=headers)


@pytest.mark.parametrize(
    "url,kind",
    [
        ("https://example.com/static/site.css", ResourceKind.STYLE),
        ("https://example.com/app.js?v=3", ResourceKind.SCRIPT),
        ("https://example.com/module.mjs", ResourceKind.SCRIPT),
        ("https://example.com/logo.PNG", ResourceKind.IMAGE),
        ("https://example.com/fonts/inter.woff2", ResourceKind.FONT),
        ("https://example.com/about", ResourceKind.DOCUMENT),
        ("https://example.com/index.html", ResourceKind.DOCUMENT),
        ("https://example.com/", ResourceKind.DOCUMENT),
    ],
)
def test_guess_resource_kind(url, kind):
    assert guess_resource_kind(url) is kind


def test_declared_html_content_type_goes_to_rewrite():
    assert is_html_response(_result("https://example.com/", content_type="text/html; charset=utf-8"))
    assert is_html_response(_result("https://example.com/", content_type="TEXT/HTML"))


def test_declared_non_html_content_type_is_passthrough():
    assert not is_html_response(_result("https://example.com/page", b"<html>", "application/json"))
    assert not is_html_response(_result("https://example.com/page", b"<html>", "application/xhtml+xml"))
    assert not is_html_response(_result("https://example.com/x.png", b"\x89PNG", "image/png"))


def test_missing_content_type_falls_back_to_suffix():
    assert not is_html_response(_result("https://example.com/photo.jpg", b"<html>"))
    assert is_html_response(_result("https://example.com/page.html", b"hello"))


def test_missing_content_type_sniffs_body():
    assert is_html_response(_result("https://example.com/page", b"  <!DOCTYPE html><html></html>"))
    assert not is_html_response(_result("https://example.com/data", b'{"a": 1}'))

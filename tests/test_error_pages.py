import json

from sandbox_proxy.models import FetchResult
from sandbox_proxy.services.error_pages import (
    internal_error_page,
    unreachable_page,
    upstream_error_page,
)
from sandbox_proxy.services.response_emitter import emit_asset, emit_html, emit_invalid_input


def _assert_sandboxed(response):
    assert response.headers["x-frame-options"] == "SAMEORIGIN"
    assert response.headers["content-security-policy"] == "frame-ancestors 'self'"
    assert response.headers["x-content-type-options"] == "nosniff"


def test_upstream_error_page_reports_status_and_host():
    result = FetchResult(
        final_url="https://shop.example.com/missing",
        status_code=503,
        body=b"",
        reason_phrase="Service Unavailable",
    )
    page = upstream_error_page(result, "/proxy")

    assert "503 Service Unavailable" in page
    assert "shop.example.com" in page
    assert 'href="/proxy?url=https%3A%2F%2Fshop.example.com"' in page
    assert "Try Homepage" in page
    assert "javascript:history.back()" in page


def test_error_pages_escape_interpolated_values():
    page = unreachable_page("https://example.com/<script>alert(1)</script>", "<b>refused</b>")
    assert "<script>" not in page
    assert "&lt;script&gt;" in page
    assert "&lt;b&gt;refused&lt;/b&gt;" in page


def test_internal_error_page_hides_details():
    page = internal_error_page("https://example.com/")
    assert "Something Went Wrong" in page
    assert "Traceback" not in page


def test_emit_html_headers():
    response = emit_html("<html></html>")

    assert response.status_code == 200
    assert response.headers["content-type"] == "text/html; charset=utf-8"
    assert response.headers["cache-control"] == "no-cache, no-store, must-revalidate"
    assert response.headers["access-control-allow-origin"] == "*"
    _assert_sandboxed(response)


def test_emit_asset_passes_body_through():
    body = b"\x89PNG\r\n\x1a\n" + bytes(range(256))
    result = FetchResult(
        final_url="https://example.com/logo.png",
        status_code=200,
        body=body,
        headers={"content-type": "image/png"},
    )
    response = emit_asset(result, cache_ttl=3600)

    assert response.body == body
    assert response.headers["content-type"] == "image/png"
    assert response.headers["cache-control"] == "public, max-age=3600"
    assert response.headers["access-control-allow-methods"] == "GET, HEAD, OPTIONS"
    _assert_sandboxed(response)


def test_emit_asset_defaults_content_type():
    result = FetchResult(final_url="https://example.com/blob", status_code=200, body=b"\x00\x01")
    assert emit_asset(result, cache_ttl=60).headers["content-type"] == "application/octet-stream"


def test_emit_invalid_input():
    response = emit_invalid_input("Invalid URL")

    assert response.status_code == 400
    assert json.loads(response.body) == {"error": "Invalid URL"}
    _assert_sandboxed(response)


def test_emit_asset_keeps_text_content_type_verbatim():
    result = FetchResult(
        final_url="https://example.com/site.css",
        status_code=200,
        body=b"body{}",
        headers={"content-type": "text/css"},
    )
    assert emit_asset(result, cache_ttl=60).headers["content-type"] == "text/css"

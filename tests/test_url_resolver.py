from urllib.parse import parse_qs, urlparse

import pytest

from sandbox_proxy.core.exceptions import InvalidUrl
from sandbox_proxy.services.site_shims import GOOGLE_SEARCH_FORM
from sandbox_proxy.services.url_resolver import (
    normalize_address,
    parse_absolute_url,
    resolve_target,
    unwrap_redirector,
)

SEARCH = "https://www.google.com/search"


def test_parse_absolute_url_accepts_http_and_https():
    assert parse_absolute_url("https://example.com/a?b=1") == "https://example.com/a?b=1"
    assert parse_absolute_url("http://example.com") == "http://example.com"


def test_parse_absolute_url_strips_surrounding_whitespace():
    assert parse_absolute_url("  https://example.com/  ") == "https://example.com/"


@pytest.mark.parametrize(
    "raw",
    [
        None,
        "",
        "not-a-url",
        "example.com",
        "ftp://example.com/file",
        "javascript:alert(1)",
        "https://",
        "http://exa mple.com",
        "http://example.com:99999/",
    ],
)
def test_parse_absolute_url_rejects_invalid_input(raw):
    with pytest.raises(InvalidUrl) as exc_info:
        parse_absolute_url(raw)
    assert exc_info.value.message == "Invalid URL"


def test_unwrap_redirector_uses_q_parameter():
    wrapped = "https://www.google.com/url?q=https://example.com/page&sa=U&ved=abc"
    assert unwrap_redirector(wrapped, ["google.com"]) == "https://example.com/page"


def test_unwrap_redirector_prefers_url_parameter():
    wrapped = "https://google.com/url?url=https%3A%2F%2Fa.example%2F&q=https://b.example/"
    assert unwrap_redirector(wrapped, ["google.com"]) == "https://a.example/"


def test_unwrap_redirector_keeps_url_without_usable_parameter():
    wrapped = "https://www.google.com/url?sa=t&q=hello"
    assert unwrap_redirector(wrapped, ["google.com"]) == wrapped


def test_unwrap_redirector_ignores_other_hosts_and_paths():
    other_host = "https://example.com/url?q=https://a.example/"
    search_page = "https://www.google.com/search?q=https://a.example/"
    assert unwrap_redirector(other_host, ["google.com"]) == other_host
    assert unwrap_redirector(search_page, ["google.com"]) == search_page


def test_unwrap_redirector_does_not_match_lookalike_hosts():
    lookalike = "https://notgoogle.com/url?q=https://a.example/"
    assert unwrap_redirector(lookalike, ["google.com"]) == lookalike


def test_resolve_target_validates_before_unwrapping():
    assert resolve_target("https://www.google.com/url?q=https://a.example/", ["google.com"]) == "https://a.example/"
    with pytest.raises(InvalidUrl):
        resolve_target("google.com/url?q=https://a.example/", ["google.com"])


def test_normalize_address_turns_bare_words_into_search():
    url = normalize_address("cute cats", SEARCH)
    parsed = urlparse(url)
    assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == SEARCH
    assert parse_qs(parsed.query) == {"q": ["cute cats"]}


def test_normalize_address_adds_search_shim_parameters():
    url = normalize_address("cats", SEARCH, [GOOGLE_SEARCH_FORM])
    params = parse_qs(urlparse(url).query)
    assert params["q"] == ["cats"]
    assert params["oq"] == ["cats"]
    assert params["sclient"] == ["gws-wiz"]


def test_normalize_address_defaults_to_https():
    assert normalize_address("example.com/path", SEARCH) == "https://example.com/path"
    assert normalize_address("http://example.com", SEARCH) == "http://example.com"


def test_normalize_address_rejects_blank_input():
    with pytest.raises(InvalidUrl):
        normalize_address("   ", SEARCH)

from types import SimpleNamespace
from urllib.parse import urlparse

import pytest

from sandbox_proxy.api.proxy_routes import resolve_identity
from sandbox_proxy.models import SecurityPolicy
from sandbox_proxy.services.settings_store import SecuritySettingsStore
from sandbox_proxy.services.url_validator import validate_url

SEARCH = "https://www.google.com/search"


@pytest.mark.asyncio
async def test_store_returns_default_policy_for_unknown_identity():
    store = SecuritySettingsStore()
    policy = await store.get("nobody")
    assert policy == SecurityPolicy()
    assert policy.ad_blocker and policy.tracker_protection and policy.malware_protection
    assert policy.user_agent is None


@pytest.mark.asyncio
async def test_store_keeps_policies_per_identity():
    store = SecuritySettingsStore()
    await store.update("alice", SecurityPolicy(ad_blocker=False))

    assert (await store.get("alice")).ad_blocker is False
    assert (await store.get("bob")).ad_blocker is True
    assert store.get_identity_count() == 1

    await store.reset("alice")
    assert (await store.get("alice")).ad_blocker is True


def test_policy_uses_camel_case_on_the_wire():
    policy = SecurityPolicy.model_validate({"adBlocker": False, "userAgent": "X/1"})
    assert policy.ad_blocker is False
    assert policy.model_dump(by_alias=True) == {
        "adBlocker": False,
        "trackerProtection": True,
        "malwareProtection": True,
        "userAgent": "X/1",
    }


def _request(headers=None, cookies=None):
    state = SimpleNamespace(settings=SimpleNamespace(default_identity="default"))
    return SimpleNamespace(headers=headers or {}, cookies=cookies or {}, app=SimpleNamespace(state=state))


def test_identity_resolution_order():
    assert resolve_identity(_request({"X-Session-ID": "h"}, {"session_id": "c"})) == "h"
    assert resolve_identity(_request(cookies={"session_id": "c"})) == "c"
    assert resolve_identity(_request()) == "default"


def test_validate_safe_https_url():
    verdict = validate_url("https://example.com/", SEARCH)
    assert verdict.to_dict() == {
        "isValid": True,
        "isSafe": True,
        "isHttps": True,
        "reason": "URL appears safe",
        "sanitizedUrl": "https://example.com/",
    }


def test_validate_flags_suspicious_keywords_before_http():
    verdict = validate_url("http://free-virus-scan.example/", SEARCH)
    assert verdict.isValid
    assert not verdict.isSafe
    assert not verdict.isHttps
    assert verdict.reason == "URL contains suspicious content"


def test_validate_warns_about_plain_http():
    verdict = validate_url("http://example.com/", SEARCH)
    assert verdict.isSafe
    assert verdict.reason == "URL is not using secure HTTPS protocol"


def test_validate_normalizes_address_bar_input():
    assert validate_url("example.com", SEARCH).sanitizedUrl == "https://example.com"
    search = validate_url("weather", SEARCH).sanitizedUrl
    assert urlparse(search).path == "/search"


def test_validate_rejects_unparseable_input():
    verdict = validate_url("https://exa mple.com", SEARCH)
    assert verdict.isValid is False
    assert verdict.isSafe is False
    assert verdict.reason == "Invalid URL format"

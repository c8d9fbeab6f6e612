"""
Data Models
Per-request values that flow through the proxy pipeline
"""

from dataclasses import dataclass, field
from typing import Dict, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class SecurityPolicy(BaseModel):
    """Per-identity content filtering and header spoofing policy"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    ad_blocker: bool = True
    tracker_protection: bool = True
    # Declared but intentionally not enforced yet
    malware_protection: bool = True
    user_agent: Optional[str] = None


@dataclass(frozen=True)
class FetchRequest:
    """A single proxied call"""

    target_url: str
    method: str = "GET"
    form_body: Optional[bytes] = None
    form_content_type: Optional[str] = None


@dataclass
class FetchResult:
    """Upstream response owned by the request that produced it"""

    final_url: str
    status_code: int
    body: bytes
    headers: Dict[str, str] = field(default_factory=dict)
    reason_phrase: str = ""
    encoding: Optional[str] = None

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "")

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def host(self) -> str:
        return urlparse(self.final_url).hostname or ""

    @property
    def origin(self) -> str:
        parsed = urlparse(self.final_url)
        return f"{parsed.scheme}://{parsed.netloc}"

    @property
    def text(self) -> str:
        try:
            return self.body.decode(self.encoding or "utf-8", errors="replace")
        except LookupError:
            # Unknown charset label from upstream
            return self.body.decode("utf-8", errors="replace")


@dataclass
class FetchOutcome:
    """Terminal state of the fetch plus fallback chain"""

    result: FetchResult
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return self.result.ok


@dataclass(frozen=True)
class RewriteContext:
    """Everything the rewrite rules need to know about the current page"""

    base_origin: str
    proxy_prefix: str
    page_url: str

    @classmethod
    def from_result(cls, result: FetchResult, proxy_prefix: str) -> "RewriteContext":
        return cls(
            base_origin=result.origin,
            proxy_prefix=proxy_prefix,
            page_url=result.final_url,
        )

"""
Error Pages
HTML documents shown inside the sandbox frame when a page cannot be served
"""

import html
from typing import Optional

from sandbox_proxy.models import FetchResult
from sandbox_proxy.services.content_rewriter import encode_uri_component


_PAGE_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{title}</title>
    <style>
        body {{
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Arial, sans-serif;
            background-color: #f0f0f0;
            display: flex;
            justify-content: center;
            align-items: center;
            min-height: 100vh;
            margin: 0;
        }}
        .error-container {{
            background-color: white;
            padding: 40px;
            border-radius: 10px;
            box-shadow: 0 2px 10px rgba(0,0,0,0.1);
            text-align: center;
            max-width: 500px;
        }}
        h1 {{
            color: #d32f2f;
            margin-bottom: 20px;
            font-size: 22px;
        }}
        p {{
            color: #666;
            margin: 10px 0;
        }}
        .url {{
            background-color: #f5f5f5;
            padding: 10px;
            border-radius: 5px;
            word-break: break-all;
            margin: 20px 0;
        }}
        .error-details {{
            background-color: #fee;
            padding: 15px;
            border-radius: 5px;
            margin: 20px 0;
            color: #c33;
        }}
        .actions a {{
            display: inline-block;
            background-color: #1976d2;
            color: white;
            text-decoration: none;
            padding: 10px 20px;
            border-radius: 5px;
            margin: 20px 5px 0;
        }}
        .actions a:hover {{
            background-color: #1565c0;
        }}
    </style>
</head>
<body>
    <div class="error-container">
        <h1>{title}</h1>
        {body}
        <div class="actions">
            {actions}
        </div>
    </div>
</body>
</html>
"""

_GO_BACK = '<a href="javascript:history.back()">Go Back</a>'


def _render(title: str, body: str, actions: str = _GO_BACK) -> str:
    return _PAGE_TEMPLATE.format(title=html.escape(title), body=body, actions=actions)


def _details(label: str, value: str, css_class: str = "error-details") -> str:
    return f'<div class="{css_class}"><strong>{label}:</strong> {html.escape(value)}</div>'


def upstream_error_page(result: FetchResult, proxy_prefix: str) -> str:
    """Page for a non-2xx status left after the fallback chain"""

    status = f"{result.status_code} {result.reason_phrase}".strip()
    homepage = f"{proxy_prefix}?url={encode_uri_component(result.origin)}"
    body = (
        "<p>The website returned an error and could not be displayed.</p>"
        + _details("Site", result.host, css_class="url")
        + _details("Status", status)
    )
    actions = f'<a href="{html.escape(homepage)}">Try Homepage</a>{_GO_BACK}'
    return _render("Page Unavailable", body, actions)


def unreachable_page(url: str, reason: Optional[str] = None) -> str:
    """Page for an upstream that could not be contacted at all"""

    body = "<p>We could not connect to the requested website.</p>" + _details("URL", url, css_class="url")
    if reason:
        body += _details("Error", reason)
    body += (
        "<p>This could be due to:</p>"
        '<ul style="text-align: left; display: inline-block;">'
        "<li>Network connectivity issues</li>"
        "<li>The website being temporarily unavailable</li>"
        "<li>The website refusing automated connections</li>"
        "</ul>"
    )
    return _render("Error Loading Page", body)


def internal_error_page(url: Optional[str] = None) -> str:
    """Page for an unexpected failure inside the proxy"""

    body = "<p>Something went wrong while loading this page. Please try again.</p>"
    if url:
        body += _details("URL", url, css_class="url")
    return _render("Something Went Wrong", body)

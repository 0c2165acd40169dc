"""
Assertions about HTTP responses (httpx).

Synchronous checks inspect an `httpx.Response`. The asynchronous
"to respond with status" check accepts a request function or awaitable
producing a response, or an http(s) URL that is fetched once with `fetch()`.
"""
import re
from typing import Dict, Optional

import httpx
from typing_extensions import Literal

from phrasal.phrasal_assertion import create_assertion, create_async_assertion
from phrasal.phrasal_async import SETTLEABLE, settle
from phrasal.phrasal_builtins import satisfies
from phrasal.phrasal_datatypes import UNSET, AssertionFailure
from phrasal.phrasal_errors import verbatim
from phrasal.phrasal_serialize import deserialize
from phrasal.phrasal_validators import ANY, INTEGER, MAPPING, PATTERN, STRING, instance_of, predicate, schema

RESPONSE = instance_of(httpx.Response, "response")
HTTP_URL = predicate(lambda v: isinstance(v, str) and v.startswith(("http://", "https://")), "http url")

STATUS_RANGES = {
    "ok": (200, 299),
    "redirect": (300, 399),
    "client error": (400, 499),
    "server error": (500, 599),
}
STATUS_CATEGORY = schema(Literal["ok", "redirect", "client error", "server error"], "status category")


async def fetch(url: str, *, method: str = "GET", config: Optional[Dict] = None) -> httpx.Response:
    """
    Requests `url` once and returns the response without raising on non-2xx.

    Config keys: timeout (seconds), headers, params, follow_redirects, transport.
    """
    cfg = dict(config or {})
    timeout = float(cfg.pop('timeout', 5.0))
    headers = dict(cfg.pop('headers', {}))
    params = dict(cfg.pop('params', {}))
    follow = bool(cfg.pop('follow_redirects', False))
    transport = cfg.pop('transport', None)

    async with httpx.AsyncClient(timeout=timeout, follow_redirects=follow, transport=transport) as client:
        return await client.request(method.upper(), url, headers=headers, params=params)


def _headers(resp: httpx.Response) -> Dict[str, str]:
    # Lower-case header keys for consistent lookups
    return {str(k).lower(): v for k, v in resp.headers.items()}


def _body_preview(resp: httpx.Response, limit: int = 200) -> str:
    return (resp.text or "")[:limit]


def status_category(status: int) -> str:
    for name, (low, high) in STATUS_RANGES.items():
        if low <= status <= high:
            return f"{name} ({status // 100}xx)"
    return f"unknown ({status})"


# =================================================================
# Synchronous checks
# =================================================================

def _has_status(resp, status):
    if resp.status_code == status:
        return True
    return AssertionFailure(actual=resp.status_code, expected=status, diff="",
                            message="Expected status {{expected}}, got {{actual}}: "
                                    + verbatim(_body_preview(resp)))


def _has_status_category(resp, category):
    low, high = STATUS_RANGES[category]
    if low <= resp.status_code <= high:
        return True
    return AssertionFailure(actual=f"{resp.status_code} ({status_category(resp.status_code)})",
                            expected=f"{category} ({low}-{high})", diff="",
                            message=f"Expected response to have {category} status, got {{{{actual}}}}")


def _has_header(resp, name, value=UNSET):
    headers = _headers(resp)
    key = name.lower()
    shown = verbatim(repr(name))
    if key not in headers:
        return AssertionFailure(actual=headers, message=f"Expected response to have header {shown}")
    if value is UNSET:
        return True
    actual = headers[key]
    if isinstance(value, re.Pattern):
        if value.search(actual):
            return True
        return AssertionFailure(actual=actual,
                                message=f"Expected header {shown} to match {verbatim(repr(value.pattern))}")
    if actual == value:
        return True
    return AssertionFailure(actual=actual, expected=value,
                            message=f"Expected header {shown} to be {{{{expected}}}}")


def _json_body(resp):
    try:
        return True, resp.json()
    except ValueError as e:
        return False, e


def _has_json_body(resp):
    ok, _ = _json_body(resp)
    if ok:
        return True
    return AssertionFailure(actual=_body_preview(resp), message="Expected response to have a JSON body")


def _has_json_body_satisfying(resp, shape):
    ok, body = _json_body(resp)
    if not ok:
        return AssertionFailure(actual=_body_preview(resp), message="Expected response to have a JSON body")
    return satisfies(body, shape)


def _has_body_satisfying(resp, shape):
    body = deserialize(resp.text, content_type=resp.headers.get("content-type"))
    return satisfies(body, shape)


def _has_body(resp, text):
    if resp.text == text:
        return True
    return AssertionFailure(actual=resp.text, expected=text, message="Expected response body to match")


def _is_redirect(resp) -> bool:
    return 300 <= resp.status_code < 400


def _not_a_redirect(resp):
    return AssertionFailure(actual=resp.status_code, message="Expected a redirect, got status {{actual}}")


def _redirects(resp):
    if _is_redirect(resp):
        return True
    return _not_a_redirect(resp)


def _redirects_to(resp, location):
    if not _is_redirect(resp):
        return _not_a_redirect(resp)
    actual = resp.headers.get("location")
    if actual is None:
        return AssertionFailure(message="Expected redirect response to have a Location header")
    if isinstance(location, re.Pattern):
        if location.search(actual):
            return True
        shown = verbatim(repr(location.pattern))
        return AssertionFailure(actual=actual, message=f"Expected redirect Location to match {shown}")
    if actual == location:
        return True
    return AssertionFailure(actual=actual, expected=location, message="Expected redirect to {{expected}}")


# =================================================================
# Asynchronous checks
# =================================================================

async def _responds_with_status(subject, status):
    ok, value = await settle(subject)
    if not ok:
        return AssertionFailure(
            message=f"Expected a response, but the request failed with {verbatim(repr(value))}"
        )
    if not isinstance(value, httpx.Response):
        return AssertionFailure(actual=value, message="Expected an httpx.Response, got {{actual}}")
    return _has_status(value, status)


async def _url_responds_with_status(url, status, config=None):
    try:
        resp = await fetch(url, config=config)
    except httpx.HTTPError as e:
        return AssertionFailure(
            message=verbatim(f"Expected a response from {url}, but the request failed with {e!r}")
        )
    return _has_status(resp, status)


_STATUS = ("to have status", "to respond with status")
_HEADER = ("to have header", "to include header")

HTTP_ASSERTIONS = [
    create_assertion([RESPONSE, _STATUS, INTEGER], _has_status),
    create_assertion([RESPONSE, _STATUS, STATUS_CATEGORY], _has_status_category),
    create_assertion([RESPONSE, _HEADER, STRING], _has_header),
    create_assertion([RESPONSE, _HEADER, STRING, STRING], _has_header),
    create_assertion([RESPONSE, _HEADER, STRING, PATTERN], _has_header),
    create_assertion([RESPONSE, "to have JSON body"], _has_json_body),
    create_assertion([RESPONSE, "to have JSON body satisfying", ANY], _has_json_body_satisfying),
    create_assertion([RESPONSE, "to have body satisfying", ANY], _has_body_satisfying),
    create_assertion([RESPONSE, "to have body", STRING], _has_body),
    create_assertion([RESPONSE, "to redirect"], _redirects),
    create_assertion([RESPONSE, "to redirect to", STRING], _redirects_to),
    create_assertion([RESPONSE, "to redirect to", PATTERN], _redirects_to),
    create_async_assertion([SETTLEABLE, "to respond with status", INTEGER], _responds_with_status),
    create_async_assertion([HTTP_URL, "to respond with status", INTEGER], _url_responds_with_status),
    create_async_assertion([HTTP_URL, "to respond with status", INTEGER, MAPPING], _url_responds_with_status),
]

__all__ = ["HTTP_ASSERTIONS", "RESPONSE", "HTTP_URL", "STATUS_CATEGORY", "fetch", "status_category"]

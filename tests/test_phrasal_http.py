import re

import httpx
import pytest

from phrasal import expect, expect_async
from phrasal.phrasal_errors import AssertionFailureError, NoMatchingAssertionError
from phrasal.phrasal_http import fetch


def make_response(status=200, json=None, text=None, headers=None):
    request = httpx.Request("GET", "https://example.test/items")
    if json is not None:
        return httpx.Response(status, json=json, headers=headers, request=request)
    return httpx.Response(status, text=text or "", headers=headers, request=request)


def test_status():
    expect(make_response(201), "to have status", 201)
    with pytest.raises(AssertionFailureError) as info:
        expect(make_response(404, text="missing"), "to have status", 200)
    assert info.value.message == "Expected status 200, got 404: missing"
    assert info.value.diff == ""


@pytest.mark.parametrize(
    "status,category",
    [(204, "ok"), (301, "redirect"), (404, "client error"), (503, "server error")],
)
def test_status_category(status, category):
    expect(make_response(status), "to have status", category)
    expect(make_response(status), "to respond with status", category)


def test_status_category_failure_names_both_categories():
    with pytest.raises(AssertionFailureError) as info:
        expect(make_response(404), "to have status", "ok")
    assert info.value.actual == "404 (client error (4xx))"
    assert info.value.expected == "ok (200-299)"
    assert info.value.message == "Expected response to have ok status, got '404 (client error (4xx))'"


def test_unknown_status_category_does_not_match():
    with pytest.raises(NoMatchingAssertionError):
        expect(make_response(200), "to have status", "fine")


def test_status_failure_shows_the_body_as_written():
    with pytest.raises(AssertionFailureError) as info:
        expect(make_response(500, text="{{expected}} broke"), "to have status", 200)
    assert info.value.message == "Expected status 200, got 500: {{expected}} broke"


def test_headers():
    resp = make_response(headers={"Content-Type": "text/plain; charset=utf-8", "X-Id": "42"})
    expect(resp, "to have header", "x-id")
    expect(resp, "to include header", "X-Id", "42")
    expect(resp, "to have header", "content-type", re.compile("^text/"))
    expect(resp, "not to have header", "x-missing")
    with pytest.raises(AssertionFailureError):
        expect(resp, "to have header", "x-id", "43")


def test_json_body():
    resp = make_response(json={"items": [1, 2], "total": 2})
    expect(resp, "to have JSON body")
    expect(resp, "to have JSON body satisfying", {"total": 2})
    with pytest.raises(AssertionFailureError) as info:
        expect(resp, "to have JSON body satisfying", {"total": 3})
    assert "-  'total': 3," in info.value.diff
    expect(make_response(text="not json"), "not to have JSON body")


def test_body_satisfying_decodes_json_by_content_type():
    resp = make_response(json={"name": "bob", "age": 3})
    expect(resp, "to have body satisfying", {"name": "bob"})
    yaml_resp = make_response(text="name: bob\n", headers={"Content-Type": "application/yaml"})
    expect(yaml_resp, "to have body satisfying", "name: bob\n")
    expect(yaml_resp, "not to have body satisfying", {"name": "bob"})


def test_body_text():
    expect(make_response(text="hello"), "to have body", "hello")
    with pytest.raises(AssertionFailureError):
        expect(make_response(text="hello"), "to have body", "bye")


def test_redirects():
    resp = make_response(302, headers={"Location": "https://example.test/login"})
    expect(resp, "to redirect")
    expect(resp, "to redirect to", "https://example.test/login")
    expect(make_response(200), "not to redirect")
    with pytest.raises(AssertionFailureError):
        expect(resp, "to redirect to", "https://example.test/home")


def test_redirect_to_pattern():
    resp = make_response(302, headers={"Location": "https://example.test/login?next=/home"})
    expect(resp, "to redirect to", re.compile(r"/login\?next="))
    with pytest.raises(AssertionFailureError) as info:
        expect(resp, "to redirect to", re.compile("/auth"))
    assert info.value.message == "Expected redirect Location to match '/auth'"
    with pytest.raises(AssertionFailureError, match="Expected a redirect"):
        expect(make_response(200), "to redirect to", re.compile("/login"))
    with pytest.raises(AssertionFailureError, match="Location header"):
        expect(make_response(302), "to redirect to", re.compile("/login"))


# --- asynchronous checks ---

def _transport(status=200):
    def handler(request):
        return httpx.Response(status, text=f"{request.method} {request.url.path}")
    return httpx.MockTransport(handler)


@pytest.mark.asyncio
async def test_request_function_responds_with_status():
    async def call():
        async with httpx.AsyncClient(transport=_transport(204)) as client:
            return await client.get("https://example.test/ping")

    await expect_async(call, "to respond with status", 204)
    with pytest.raises(AssertionFailureError):
        await expect_async(call, "to respond with status", 200)


@pytest.mark.asyncio
async def test_request_function_that_raises():
    async def call():
        raise httpx.ConnectError("refused")

    with pytest.raises(AssertionFailureError, match="request failed"):
        await expect_async(call, "to respond with status", 200)


@pytest.mark.asyncio
async def test_url_with_config():
    await expect_async("https://example.test/a", "to respond with status", 200, {"transport": _transport()})
    await expect_async("https://example.test/a", "not to respond with status", 500, {"transport": _transport()})


@pytest.mark.asyncio
async def test_fetch_is_attempted_once():
    attempts = []

    def handler(request):
        attempts.append(request)
        raise httpx.ConnectError("refused", request=request)

    config = {"transport": httpx.MockTransport(handler)}
    with pytest.raises(httpx.ConnectError):
        await fetch("https://example.test/", config=config)
    assert len(attempts) == 1

    with pytest.raises(AssertionFailureError, match="request failed"):
        await expect_async("https://example.test/", "to respond with status", 200, config)
    assert len(attempts) == 2


@pytest.mark.asyncio
async def test_fetch_passes_params_and_method():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200)

    resp = await fetch("https://example.test/q", method="post",
                       config={"transport": httpx.MockTransport(handler), "params": {"a": "1"}})
    assert resp.status_code == 200
    assert seen[0].method == "POST"
    assert seen[0].url.params["a"] == "1"

"""Tests for the LinkedIn document posting flow, against a mocked API."""

import json

import httpx
import pytest

from postdeck.services.linkedin_poster import (
    post_carousel_to_linkedin,
    post_url_for,
    person_urn,
)

UPLOAD_URL = "https://upload.example.com/doc-123"
AUTHOR = person_urn("abc123")
PDF = b"%PDF-1.4 fake"


class FakeLinkedIn:
    """Records requests and answers from a route table of (method, path) -> response."""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"message": "not found"})
        return handler(request) if callable(handler) else handler

    def paths(self):
        return [(r.method, r.url.path) for r in self.requests]

    def body(self, index):
        return json.loads(self.requests[index].content)


def _client(fake):
    return httpx.AsyncClient(transport=httpx.MockTransport(fake))


REST_REGISTER = httpx.Response(
    200, json={"value": {"uploadUrl": UPLOAD_URL, "document": "urn:li:document:D1"}}
)
V2_REGISTER = httpx.Response(200, json={
    "value": {
        "asset": "urn:li:digitalmediaAsset:A1",
        "uploadMechanism": {
            "com.linkedin.digitalmedia.uploading.MediaUploadHttpRequest": {"uploadUrl": UPLOAD_URL}
        },
    }
})


@pytest.mark.asyncio
async def test_rest_happy_path():
    fake = FakeLinkedIn({
        ("POST", "/rest/documents"): REST_REGISTER,
        ("PUT", "/doc-123"): httpx.Response(201),
        ("POST", "/rest/posts"): httpx.Response(201, headers={"x-restli-id": "urn:li:share:1"}),
    })
    async with _client(fake) as client:
        result = await post_carousel_to_linkedin("token", AUTHOR, PDF, "Deck", "Read this", client=client)

    assert result.success
    assert result.post_id == "urn:li:share:1"
    assert result.post_url == post_url_for("urn:li:share:1")
    assert fake.paths() == [("POST", "/rest/documents"), ("PUT", "/doc-123"), ("POST", "/rest/posts")]

    register, upload, post = fake.requests
    assert register.headers["Authorization"] == "Bearer token"
    assert "LinkedIn-Version" in register.headers
    assert upload.content == PDF
    assert upload.headers["Content-Type"] == "application/pdf"
    body = fake.body(2)
    assert body["author"] == AUTHOR
    assert body["commentary"] == "Read this"
    assert body["content"]["media"] == {"title": "Deck", "id": "urn:li:document:D1"}


@pytest.mark.asyncio
async def test_legacy_upload_and_ugc_fallback():
    fake = FakeLinkedIn({
        ("POST", "/rest/documents"): httpx.Response(426, json={"message": "upgrade"}),
        ("POST", "/v2/assets"): V2_REGISTER,
        ("PUT", "/doc-123"): httpx.Response(201),
        ("POST", "/rest/posts"): httpx.Response(400, json={"message": "bad request"}),
        ("POST", "/v2/ugcPosts"): httpx.Response(201, json={"id": "urn:li:ugcPost:9"}),
    })
    async with _client(fake) as client:
        result = await post_carousel_to_linkedin("token", AUTHOR, PDF, "Deck", "Caption", client=client)

    assert result.success
    assert result.post_id == "urn:li:ugcPost:9"
    assert fake.paths()[-1] == ("POST", "/v2/ugcPosts")
    share = fake.body(-1)["specificContent"]["com.linkedin.ugc.ShareContent"]
    assert share["shareMediaCategory"] == "DOCUMENT"
    assert share["media"][0]["media"] == "urn:li:digitalmediaAsset:A1"


@pytest.mark.asyncio
async def test_text_post_when_upload_cannot_be_registered():
    fake = FakeLinkedIn({
        ("POST", "/rest/documents"): httpx.Response(403, json={"message": "forbidden"}),
        ("POST", "/v2/assets"): httpx.Response(403, json={"message": "forbidden"}),
        ("POST", "/v2/ugcPosts"): httpx.Response(201, headers={"x-restli-id": "urn:li:share:7"}),
    })
    async with _client(fake) as client:
        result = await post_carousel_to_linkedin("token", AUTHOR, PDF, "Deck", "Just text", client=client)

    assert result.success
    assert result.post_id == "urn:li:share:7"
    share = fake.body(-1)["specificContent"]["com.linkedin.ugc.ShareContent"]
    assert share["shareMediaCategory"] == "NONE"
    assert share["shareCommentary"]["text"] == "Just text"
    assert not any(method == "PUT" for method, _ in fake.paths())


@pytest.mark.asyncio
async def test_text_post_falls_back_to_title_without_caption():
    fake = FakeLinkedIn({
        ("POST", "/rest/documents"): REST_REGISTER,
        ("PUT", "/doc-123"): httpx.Response(500),
        ("POST", "/v2/ugcPosts"): httpx.Response(201, json={"id": "urn:li:share:8"}),
    })
    async with _client(fake) as client:
        result = await post_carousel_to_linkedin("token", AUTHOR, PDF, "Deck title", "", client=client)

    assert result.success
    share = fake.body(-1)["specificContent"]["com.linkedin.ugc.ShareContent"]
    assert share["shareCommentary"]["text"] == "Deck title"


@pytest.mark.asyncio
async def test_failure_is_reported_not_raised():
    fake = FakeLinkedIn({
        ("POST", "/rest/documents"): REST_REGISTER,
        ("PUT", "/doc-123"): httpx.Response(201),
        ("POST", "/rest/posts"): httpx.Response(401, json={"message": "expired"}),
        ("POST", "/v2/ugcPosts"): httpx.Response(401, json={"message": "expired"}),
    })
    async with _client(fake) as client:
        result = await post_carousel_to_linkedin("token", AUTHOR, PDF, "Deck", "Caption", client=client)

    assert not result.success
    assert result.post_id is None
    assert "401" in result.error


@pytest.mark.asyncio
async def test_network_error_is_reported():
    def explode(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(explode)) as client:
        result = await post_carousel_to_linkedin("token", AUTHOR, PDF, "Deck", "Caption", client=client)

    assert not result.success
    assert "connection refused" in result.error


@pytest.mark.asyncio
async def test_non_json_success_body_is_reported():
    fake = FakeLinkedIn({
        ("POST", "/rest/documents"): httpx.Response(200, text="<html>ok</html>"),
        ("POST", "/v2/ugcPosts"): httpx.Response(200, text="<html>ok</html>"),
    })
    async with _client(fake) as client:
        result = await post_carousel_to_linkedin("token", AUTHOR, PDF, "Deck", "Caption", client=client)

    assert not result.success
    assert result.error
    assert fake.paths()[-1] == ("POST", "/v2/ugcPosts")


@pytest.mark.asyncio
async def test_non_json_legacy_registration_falls_back_to_text():
    fake = FakeLinkedIn({
        ("POST", "/rest/documents"): httpx.Response(404),
        ("POST", "/v2/assets"): httpx.Response(200, text="not json"),
        ("POST", "/v2/ugcPosts"): httpx.Response(201, headers={"x-restli-id": "urn:li:share:5"}),
    })
    async with _client(fake) as client:
        result = await post_carousel_to_linkedin("token", AUTHOR, PDF, "Deck", "Caption", client=client)

    assert result.success
    assert result.post_id == "urn:li:share:5"


@pytest.mark.asyncio
async def test_non_json_posts_body_without_id_header():
    fake = FakeLinkedIn({
        ("POST", "/rest/documents"): REST_REGISTER,
        ("PUT", "/doc-123"): httpx.Response(201),
        ("POST", "/rest/posts"): httpx.Response(201, text="<html>created</html>"),
    })
    async with _client(fake) as client:
        result = await post_carousel_to_linkedin("token", AUTHOR, PDF, "Deck", "Caption", client=client)

    assert not result.success
    assert result.error == "LinkedIn did not return a post ID"

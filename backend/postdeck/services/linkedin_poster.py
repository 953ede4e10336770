"""
LinkedIn API service for posting carousels as document posts.

Three steps: register a document upload, PUT the PDF bytes, create the post.
Each step tries the versioned REST API first and falls back to the legacy v2
API. If the document cannot be uploaded at all, the caption goes out as a
plain text post instead.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx
from postdeck.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

REST_API_BASE = "https://api.linkedin.com/rest"
V2_API_BASE = "https://api.linkedin.com/v2"
FEED_URL = "https://www.linkedin.com/feed/update"


@dataclass
class LinkedInPostResult:
    success: bool
    post_id: Optional[str] = None
    post_url: Optional[str] = None
    error: Optional[str] = None


@dataclass
class UploadRegistration:
    success: bool
    upload_url: Optional[str] = None
    asset: Optional[str] = None
    error: Optional[str] = None


def person_urn(profile_id: str) -> str:
    return f"urn:li:person:{profile_id}"


def post_url_for(post_id: str) -> str:
    return f"{FEED_URL}/{post_id}"


def _rest_headers(access_token: str) -> dict:
    return {
        "Authorization": f"Bearer {access_token}",
        "Content-Type": "application/json",
        "LinkedIn-Version": settings.linkedin_api_version,
        "X-Restli-Protocol-Version": "2.0.0",
    }


def _v2_headers(access_token: str) -> dict:
    return {
        "Authorization": f"Bearer {access_token}",
        "Content-Type": "application/json",
        "X-Restli-Protocol-Version": "2.0.0",
    }


def _error_body(response: httpx.Response) -> str:
    try:
        return str(response.json())
    except ValueError:
        return response.text


def _json_body(response: httpx.Response) -> Optional[dict]:
    """Parsed JSON object, or None for an empty or non-JSON body."""
    if not response.content:
        return None
    try:
        data = response.json()
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


async def register_document_upload(
    client: httpx.AsyncClient,
    access_token: str,
    author_urn: str
) -> UploadRegistration:
    """Step 1: ask LinkedIn for an upload URL for a document."""
    try:
        response = await client.post(
            f"{REST_API_BASE}/documents",
            params={"action": "initializeUpload"},
            headers=_rest_headers(access_token),
            json={"initializeUploadRequest": {"owner": author_urn}},
        )
    except httpx.HTTPError as e:
        return UploadRegistration(success=False, error=str(e))

    if not response.is_success:
        logger.info("[LinkedIn] Documents API returned %s, trying legacy assets API", response.status_code)
        return await _register_document_upload_legacy(client, access_token, author_urn)

    data = _json_body(response)
    if data is None:
        return UploadRegistration(success=False, error="Unreadable response from LinkedIn documents API")
    value = data.get("value") or {}
    upload_url = value.get("uploadUrl")
    document = value.get("document")
    if not upload_url or not document:
        return UploadRegistration(success=False, error="No upload URL or document ID returned from LinkedIn")

    return UploadRegistration(success=True, upload_url=upload_url, asset=document)


async def _register_document_upload_legacy(
    client: httpx.AsyncClient,
    access_token: str,
    author_urn: str
) -> UploadRegistration:
    try:
        response = await client.post(
            f"{V2_API_BASE}/assets",
            params={"action": "registerUpload"},
            headers=_v2_headers(access_token),
            json={
                "registerUploadRequest": {
                    "recipes": ["urn:li:digitalmediaRecipe:feedshare-document"],
                    "owner": author_urn,
                    "serviceRelationships": [
                        {
                            "relationshipType": "OWNER",
                            "identifier": "urn:li:userGeneratedContent",
                        }
                    ],
                }
            },
        )
    except httpx.HTTPError as e:
        return UploadRegistration(success=False, error=str(e))

    if not response.is_success:
        return UploadRegistration(
            success=False,
            error=f"Failed to register upload: {response.status_code} - {_error_body(response)}"
        )

    data = _json_body(response)
    if data is None:
        return UploadRegistration(success=False, error="Unreadable response from LinkedIn assets API")
    value = data.get("value") or {}
    mechanism = value.get("uploadMechanism") or {}
    upload_url = (mechanism.get("com.linkedin.digitalmedia.uploading.MediaUploadHttpRequest") or {}).get("uploadUrl")
    asset = value.get("asset")
    if not upload_url or not asset:
        return UploadRegistration(success=False, error="No upload URL or asset returned from LinkedIn")

    return UploadRegistration(success=True, upload_url=upload_url, asset=asset)


async def upload_document_binary(
    client: httpx.AsyncClient,
    upload_url: str,
    access_token: str,
    document: bytes
) -> Optional[str]:
    """Step 2: PUT the PDF. Returns an error message, or None on success."""
    try:
        response = await client.put(
            upload_url,
            headers={
                "Authorization": f"Bearer {access_token}",
                "Content-Type": "application/pdf",
            },
            content=document,
        )
    except httpx.HTTPError as e:
        return str(e)

    if not response.is_success:
        return f"Failed to upload document: {response.status_code} - {response.text}"
    return None


async def post_document(
    client: httpx.AsyncClient,
    access_token: str,
    author_urn: str,
    asset: str,
    title: str,
    commentary: str
) -> LinkedInPostResult:
    """Step 3: create the post that carries the uploaded document."""
    try:
        response = await client.post(
            f"{REST_API_BASE}/posts",
            headers=_rest_headers(access_token),
            json={
                "author": author_urn,
                "commentary": commentary,
                "visibility": "PUBLIC",
                "distribution": {
                    "feedDistribution": "MAIN_FEED",
                    "targetEntities": [],
                    "thirdPartyDistributionChannels": [],
                },
                "content": {"media": {"title": title, "id": asset}},
                "lifecycleState": "PUBLISHED",
                "isReshareDisabledByAuthor": False,
            },
        )
    except httpx.HTTPError as e:
        return LinkedInPostResult(success=False, error=str(e))

    if not response.is_success:
        logger.info("[LinkedIn] Posts API failed: %s %s", response.status_code, _error_body(response))
        return await _post_document_legacy(client, access_token, author_urn, asset, title, commentary)

    # The Posts API returns the new URN in a header and an empty body
    post_id = response.headers.get("x-restli-id") or response.headers.get("x-linkedin-id")
    if not post_id:
        data = _json_body(response) or {}
        post_id = data.get("id") or (data.get("value") or {}).get("id")
    if not post_id:
        return LinkedInPostResult(success=False, error="LinkedIn did not return a post ID")

    return LinkedInPostResult(success=True, post_id=post_id, post_url=post_url_for(post_id))


async def _post_document_legacy(
    client: httpx.AsyncClient,
    access_token: str,
    author_urn: str,
    asset: str,
    title: str,
    commentary: str
) -> LinkedInPostResult:
    return await _create_ugc_post(client, access_token, author_urn, {
        "shareCommentary": {"text": commentary},
        "shareMediaCategory": "DOCUMENT",
        "media": [
            {
                "status": "READY",
                "media": asset,
                "title": {"text": title},
            }
        ],
    })


async def post_text(
    client: httpx.AsyncClient,
    access_token: str,
    author_urn: str,
    text: str
) -> LinkedInPostResult:
    """Post plain text (used when the document could not be uploaded)."""
    return await _create_ugc_post(client, access_token, author_urn, {
        "shareCommentary": {"text": text},
        "shareMediaCategory": "NONE",
    })


async def _create_ugc_post(
    client: httpx.AsyncClient,
    access_token: str,
    author_urn: str,
    share_content: dict
) -> LinkedInPostResult:
    try:
        response = await client.post(
            f"{V2_API_BASE}/ugcPosts",
            headers=_v2_headers(access_token),
            json={
                "author": author_urn,
                "lifecycleState": "PUBLISHED",
                "specificContent": {"com.linkedin.ugc.ShareContent": share_content},
                "visibility": {"com.linkedin.ugc.MemberNetworkVisibility": "PUBLIC"},
            },
        )
    except httpx.HTTPError as e:
        return LinkedInPostResult(success=False, error=str(e))

    if not response.is_success:
        return LinkedInPostResult(
            success=False,
            error=f"Failed to post: {response.status_code} - {_error_body(response)}"
        )

    post_id = response.headers.get("x-restli-id")
    if not post_id:
        post_id = (_json_body(response) or {}).get("id")
    if not post_id:
        return LinkedInPostResult(success=False, error="LinkedIn did not return a post ID")
    return LinkedInPostResult(success=True, post_id=post_id, post_url=post_url_for(post_id))


async def post_carousel_to_linkedin(
    access_token: str,
    author_urn: str,
    document: bytes,
    title: str,
    caption: str,
    client: Optional[httpx.AsyncClient] = None
) -> LinkedInPostResult:
    """
    Post a carousel PDF to LinkedIn.

    Args:
        access_token: LinkedIn OAuth access token
        author_urn: urn:li:person:... of the posting member
        document: Rendered PDF bytes
        title: Document title shown on the post
        caption: Post commentary
        client: Optional shared httpx client (one is created otherwise)

    Returns:
        LinkedInPostResult; failures are reported, never raised
    """
    if client is None:
        async with httpx.AsyncClient(timeout=settings.linkedin_timeout) as own_client:
            return await post_carousel_to_linkedin(
                access_token, author_urn, document, title, caption, client=own_client
            )

    logger.info("[LinkedIn] Starting carousel upload for %s", author_urn)

    registration = await register_document_upload(client, access_token, author_urn)
    if not registration.success:
        logger.warning("[LinkedIn] Document upload not available (%s), posting text instead", registration.error)
        return await post_text(client, access_token, author_urn, caption or title)

    upload_error = await upload_document_binary(client, registration.upload_url, access_token, document)
    if upload_error:
        logger.warning("[LinkedIn] Upload failed (%s), posting text instead", upload_error)
        return await post_text(client, access_token, author_urn, caption or title)

    result = await post_document(client, access_token, author_urn, registration.asset, title, caption)
    if result.success:
        logger.info("[LinkedIn] Carousel posted: %s", result.post_id)
    else:
        logger.error("[LinkedIn] Carousel post failed: %s", result.error)
    return result

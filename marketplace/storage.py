"""
Object storage client for listing photos.

Photos go to the hosted storage bucket under
`<owner auth id>/<listing id>/<random>.<ext>`; the listing row keeps only the
public URLs.
"""
import logging
import uuid
from urllib.parse import quote

import httpx
from django.conf import settings

from .constants import LISTING_MAX_PHOTOS
from .exceptions import UpstreamError

logger = logging.getLogger(__name__)

_client = None


def _get_client():
    global _client
    if _client is None:
        _client = httpx.Client(
            base_url=f"{settings.AUTH_SERVICE_URL}/storage/v1",
            timeout=settings.AUTH_SERVICE_TIMEOUT,
            headers={"apikey": settings.AUTH_SERVICE_KEY},
        )
    return _client


def photo_path(listing, filename):
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else "jpg"
    owner_key = listing.owner.auth_id or listing.owner_id
    return f"{owner_key}/{listing.pk}/{uuid.uuid4()}.{ext}"


def public_url(path):
    return (
        f"{settings.AUTH_SERVICE_URL}/storage/v1/object/public/"
        f"{settings.STORAGE_BUCKET}/{quote(path)}"
    )


def upload(path, content, content_type, access_token):
    """Store one object in the listings bucket. Returns the stored path."""
    try:
        response = _get_client().post(
            f"/object/{settings.STORAGE_BUCKET}/{quote(path)}",
            content=content,
            headers={
                "Authorization": f"Bearer {access_token}",
                "Content-Type": content_type or "application/octet-stream",
                "x-upsert": "false",
            },
        )
    except httpx.HTTPError as exc:
        logger.exception("Photo upload failed for %s", path)
        raise UpstreamError(str(exc)) from exc
    if response.is_error:
        logger.warning("Storage returned %s for %s", response.status_code, path)
        try:
            data = response.json()
        except ValueError:
            data = {}
        detail = data.get("message") if isinstance(data, dict) else None
        detail = detail or response.text
        raise UpstreamError(detail or f"HTTP {response.status_code}")
    return path


def upload_listing_photos(listing, files, access_token):
    """Upload up to LISTING_MAX_PHOTOS files, returning their public URLs in order."""
    urls = []
    for uploaded in files[:LISTING_MAX_PHOTOS]:
        path = photo_path(listing, uploaded.name)
        upload(path, uploaded.read(), uploaded.content_type, access_token)
        urls.append(public_url(path))
    return urls

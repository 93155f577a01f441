"""CSRF and rate-limit behaviour of the browser-facing endpoints."""
import re

import pytest
from django.core.cache import cache
from django.test import Client

from marketplace.models import Message, MessageThread

CSRF_META = re.compile(rb'<meta name="csrf-token" content="([^"]+)">')


@pytest.fixture
def csrf_client(db):
    """A test client that enforces CSRF like a real browser session."""
    return Client(enforce_csrf_checks=True)


def _page_token(client, path="/browse/"):
    """Read the CSRF token the way page scripts do, from the meta tag."""
    match = CSRF_META.search(client.get(path).content)
    assert match, "page does not expose a CSRF token"
    return match.group(1).decode()


# =============================================================================
# CSRF
# =============================================================================

class TestCsrf:

    def test_set_session_needs_no_csrf_token(self, csrf_client, hosted):
        tokens = hosted.issue(hosted.add_user("driver@example.com"))

        response = csrf_client.post(
            "/auth/set-session",
            data={"accessToken": tokens["access_token"], "refreshToken": tokens["refresh_token"]},
            content_type="application/json",
        )

        assert response.status_code == 204

    def test_api_without_token_gets_json_403(self, csrf_client, buyer, listing):
        csrf_client.force_login(buyer)

        response = csrf_client.post(
            "/api/threads",
            data={"listingId": str(listing.pk), "message": "Hi"},
            content_type="application/json",
        )

        assert response.status_code == 403
        assert response["Content-Type"] == "application/json"
        assert response.json() == {
            "error": "CSRF verification failed. Reload the page and try again.",
        }
        assert not MessageThread.objects.exists()

    def test_api_threads_with_page_token(self, csrf_client, buyer, listing):
        csrf_client.force_login(buyer)
        token = _page_token(csrf_client, f"/listings/{listing.pk}/")

        response = csrf_client.post(
            "/api/threads",
            data={"listingId": str(listing.pk), "message": "Hi"},
            content_type="application/json",
            HTTP_X_CSRFTOKEN=token,
        )

        assert response.status_code == 201

    def test_api_messages_with_page_token(self, csrf_client, buyer, thread):
        csrf_client.force_login(buyer)
        token = _page_token(csrf_client)

        response = csrf_client.post(
            "/api/messages",
            data={"threadId": str(thread.pk), "body": "Hello"},
            content_type="application/json",
            HTTP_X_CSRFTOKEN=token,
        )

        assert response.status_code == 201
        assert Message.objects.filter(thread=thread).count() == 1

    def test_page_forms_keep_django_failure_page(self, csrf_client, buyer, listing):
        csrf_client.force_login(buyer)
        response = csrf_client.post(f"/listings/{listing.pk}/contact/", {"body": "Hi"})
        assert response.status_code == 403
        assert response["Content-Type"].startswith("text/html")


# =============================================================================
# Rate limiting
# =============================================================================

@pytest.fixture
def rate_limits(settings):
    settings.RATELIMIT_ENABLE = True
    cache.clear()
    yield
    cache.clear()


@pytest.mark.usefixtures("rate_limits")
class TestRateLimits:

    def test_message_sending_throttled_with_json_error(self, buyer_client, post_json, thread):
        payload = {"threadId": str(thread.pk), "body": "ping"}
        statuses = [post_json("/api/messages", payload).status_code for _ in range(30)]

        response = post_json("/api/messages", payload)

        assert statuses == [201] * 30
        assert response.status_code == 429
        assert response.json() == {
            "error": "Too many requests. Please wait a moment and try again.",
        }
        assert Message.objects.count() == 30

    def test_thread_creation_throttled_with_json_error(self, buyer_client, post_json, listing):
        payload = {"listingId": str(listing.pk), "message": "Still there?"}
        for _ in range(30):
            assert post_json("/api/threads", payload).status_code in (200, 201)

        response = post_json("/api/threads", payload)

        assert response.status_code == 429
        assert "error" in response.json()

    def test_login_throttled_per_ip(self, client, hosted, db):
        hosted.add_user("driver@example.com", password="hunter22")
        form = {"mode": "signin", "email": "driver@example.com", "password": "wrong"}
        for _ in range(10):
            assert client.post("/login/", form).status_code == 200

        assert client.post("/login/", form).status_code == 403

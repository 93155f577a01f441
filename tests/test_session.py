import httpx
import pytest
from django.contrib.auth import SESSION_KEY

from marketplace.auth_client import AuthUser
from marketplace.backends import HostedAuthBackend
from marketplace.constants import SESSION_ACCESS_TOKEN_KEY, SESSION_REFRESH_TOKEN_KEY
from marketplace.models import User
from marketplace.session import sessions

SET_SESSION_URL = "/auth/set-session"


@pytest.fixture
def remote_user(hosted):
    return hosted.add_user("driver@example.com")


class TestSetSession:

    def test_valid_tokens_install_session(self, db, client, post_json, hosted, remote_user):
        tokens = hosted.issue(remote_user)

        response = post_json(SET_SESSION_URL, {
            "accessToken": tokens["access_token"],
            "refreshToken": tokens["refresh_token"],
        })

        assert response.status_code == 204
        assert response.content == b""
        user = User.objects.get(auth_id=remote_user["id"])
        assert user.email == "driver@example.com"
        assert client.session[SESSION_KEY] == str(user.pk)
        assert client.session[SESSION_ACCESS_TOKEN_KEY] == tokens["access_token"]

    def test_snake_case_keys_accepted(self, db, post_json, hosted, remote_user):
        tokens = hosted.issue(remote_user)
        response = post_json(SET_SESSION_URL, tokens)
        assert response.status_code == 204

    def test_expired_access_token_falls_back_to_refresh(
        self, db, client, post_json, hosted, remote_user,
    ):
        tokens = hosted.issue(remote_user)
        hosted.access_tokens.clear()

        response = post_json(SET_SESSION_URL, {
            "accessToken": tokens["access_token"],
            "refreshToken": tokens["refresh_token"],
        })

        assert response.status_code == 204
        assert client.session[SESSION_ACCESS_TOKEN_KEY] != tokens["access_token"]
        assert client.session[SESSION_ACCESS_TOKEN_KEY] in hosted.access_tokens
        assert client.session[SESSION_REFRESH_TOKEN_KEY] != tokens["refresh_token"]

    def test_rejected_tokens(self, db, client, post_json):
        response = post_json(SET_SESSION_URL, {
            "accessToken": "bogus", "refreshToken": "also-bogus",
        })
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid Refresh Token"}
        assert SESSION_KEY not in client.session

    @pytest.mark.parametrize("payload", [
        {},
        {"accessToken": "only-access"},
        {"refreshToken": "only-refresh"},
    ])
    def test_missing_tokens(self, db, post_json, payload):
        response = post_json(SET_SESSION_URL, payload)
        assert response.status_code == 400
        assert response.json() == {"error": "Missing tokens"}

    def test_invalid_json(self, db, post_json):
        response = post_json(SET_SESSION_URL, "nope")
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid JSON body."}

    def test_upstream_down(self, db, post_json, hosted, remote_user, monkeypatch):
        tokens = hosted.issue(remote_user)
        monkeypatch.setattr(hosted, "_user", lambda request: httpx.Response(503))

        response = post_json(SET_SESSION_URL, tokens)

        assert response.status_code == 400
        assert response.json() == {"error": "HTTP 503"}

    def test_get_not_allowed(self, client):
        assert client.get(SET_SESSION_URL).status_code == 405


def test_sync_without_tokens_reports_error():
    result = sessions.sync(None, "", "refresh")
    assert not result.ok
    assert result.error == "Missing tokens"


class TestLogout:

    def test_signs_out_upstream_and_locally(self, db, client, post_json, hosted, remote_user):
        tokens = hosted.issue(remote_user)
        post_json(SET_SESSION_URL, tokens)

        response = client.get("/logout")

        assert response.status_code == 302
        assert response["Location"] == "/browse/"
        assert SESSION_KEY not in client.session
        logout_calls = [r for r in hosted.requests if r.url.path == "/auth/v1/logout"]
        assert len(logout_calls) == 1
        assert logout_calls[0].headers["Authorization"] == f"Bearer {tokens['access_token']}"

    def test_upstream_failure_still_logs_out(self, db, client, post_json, hosted, remote_user):
        post_json(SET_SESSION_URL, hosted.issue(remote_user))
        hosted.logout_status = 500

        response = client.post("/logout", {"next": "/account/"})

        assert response["Location"] == "/account/"
        assert SESSION_KEY not in client.session


class TestHostedAuthBackend:

    def test_creates_user_on_first_sight(self, db):
        user = HostedAuthBackend().authenticate(
            None, auth_user=AuthUser(id="0b7e6f55-3f0c-4f2e-9a57-0a9a8d7d2b11", email="new@example.com"),
        )
        assert user.email == "new@example.com"
        assert str(user.auth_id) == "0b7e6f55-3f0c-4f2e-9a57-0a9a8d7d2b11"
        assert not user.has_usable_password()

    def test_refreshes_email(self, buyer):
        user = HostedAuthBackend().authenticate(
            None, auth_user=AuthUser(id=str(buyer.auth_id), email="renamed@example.com"),
        )
        assert user.pk == buyer.pk
        buyer.refresh_from_db()
        assert buyer.email == "renamed@example.com"

    def test_links_existing_account_by_email(self, db):
        admin = User.objects.create_superuser(email="admin@example.com", password="pw")
        user = HostedAuthBackend().authenticate(
            None, auth_user=AuthUser(id="5d0c0b57-8c1f-4b8e-bb7a-2f0f3f4b9d01", email="admin@example.com"),
        )
        assert user.pk == admin.pk
        admin.refresh_from_db()
        assert str(admin.auth_id) == "5d0c0b57-8c1f-4b8e-bb7a-2f0f3f4b9d01"

    def test_inactive_user_rejected(self, buyer):
        buyer.is_active = False
        buyer.save()
        assert HostedAuthBackend().authenticate(
            None, auth_user=AuthUser(id=str(buyer.auth_id), email=buyer.email),
        ) is None

    def test_without_auth_user(self, db):
        assert HostedAuthBackend().authenticate(None, username="x", password="y") is None


def test_identity_without_email_is_refused(db, post_json, hosted):
    tokens = hosted.issue({"id": "9a1f3c2e-52b0-4c6e-8f0a-6d2f9b7e1c44", "email": None})

    response = post_json(SET_SESSION_URL, tokens)

    assert response.status_code == 400
    assert response.json() == {"error": "This account cannot sign in here."}
    assert not User.objects.exists()


def test_backend_rejects_blank_email(db):
    assert HostedAuthBackend().authenticate(
        None, auth_user=AuthUser(id="9a1f3c2e-52b0-4c6e-8f0a-6d2f9b7e1c44", email=""),
    ) is None
    assert not User.objects.exists()

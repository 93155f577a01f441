"""
Shared fixtures.

The hosted auth and storage services are replaced by an in-process fake
served through httpx.MockTransport, so no test ever leaves the process.
"""
import json
import uuid

import httpx
import pytest
from django.conf import settings
from django.utils import timezone

from marketplace import auth_client, storage
from marketplace.models import Listing, MessageThread, User


# =============================================================================
# Fake hosted backend
# =============================================================================

class FakeHostedService:
    """Minimal stand-in for the hosted auth REST API and object store."""

    def __init__(self):
        self.requests = []
        self.access_tokens = {}   # access token -> user dict
        self.refresh_tokens = {}  # refresh token -> user dict
        self.passwords = {}       # email -> (password, user dict)
        self.codes = {}           # one-time callback code -> user dict
        self.confirm_signups = False
        self.logout_status = 204
        self.storage_status = 200
        self.stored = {}

    # -- seeding ---------------------------------------------------------

    def add_user(self, email, password="secret-password", auth_id=None):
        user = {"id": str(auth_id or uuid.uuid4()), "email": email}
        self.passwords[email] = (password, user)
        return user

    def issue(self, user):
        access = f"access-{uuid.uuid4().hex}"
        refresh = f"refresh-{uuid.uuid4().hex}"
        self.access_tokens[access] = user
        self.refresh_tokens[refresh] = user
        return {"access_token": access, "refresh_token": refresh, "user": user}

    def issue_code(self, user):
        code = uuid.uuid4().hex
        self.codes[code] = user
        return code

    # -- transport -------------------------------------------------------

    def __call__(self, request):
        self.requests.append(request)
        path = request.url.path
        if path.startswith("/storage/v1/object/"):
            return self._store(request)
        if path == "/auth/v1/user":
            return self._user(request)
        if path == "/auth/v1/token":
            return self._token(request)
        if path == "/auth/v1/signup":
            return self._signup(request)
        if path == "/auth/v1/logout":
            return httpx.Response(self.logout_status)
        return httpx.Response(404, json={"msg": "not found"})

    def _user(self, request):
        token = request.headers.get("Authorization", "").removeprefix("Bearer ")
        user = self.access_tokens.get(token)
        if user is None:
            return httpx.Response(401, json={"msg": "invalid JWT"})
        return httpx.Response(200, json=user)

    def _token(self, request):
        grant = request.url.params.get("grant_type")
        body = json.loads(request.content or b"{}")
        if grant == "refresh_token":
            user = self.refresh_tokens.pop(body.get("refresh_token"), None)
            if user is None:
                return httpx.Response(400, json={"error_description": "Invalid Refresh Token"})
            return httpx.Response(200, json=self.issue(user))
        if grant == "password":
            password, user = self.passwords.get(body.get("email"), (None, None))
            if user is None or password != body.get("password"):
                return httpx.Response(400, json={"error_description": "Invalid login credentials"})
            return httpx.Response(200, json=self.issue(user))
        if grant == "pkce":
            user = self.codes.pop(body.get("auth_code"), None)
            if user is None:
                return httpx.Response(400, json={"error_description": "invalid flow state"})
            return httpx.Response(200, json=self.issue(user))
        return httpx.Response(400, json={"error": "unsupported_grant_type"})

    def _signup(self, request):
        body = json.loads(request.content)
        if body["email"] in self.passwords:
            return httpx.Response(400, json={"msg": "User already registered"})
        user = self.add_user(body["email"], body["password"])
        if self.confirm_signups:
            return httpx.Response(200, json=user)
        return httpx.Response(200, json=self.issue(user))

    def _store(self, request):
        if self.storage_status >= 400:
            return httpx.Response(self.storage_status, json={"message": "Bucket not found"})
        self.stored[request.url.path] = request.content
        return httpx.Response(200, json={"Key": request.url.path})


@pytest.fixture(autouse=True)
def hosted(monkeypatch):
    """Route the auth and storage clients to a FakeHostedService."""
    fake = FakeHostedService()
    transport = httpx.MockTransport(fake)
    headers = {"apikey": settings.AUTH_SERVICE_KEY}
    monkeypatch.setattr(auth_client, "_client", httpx.Client(
        transport=transport, base_url=f"{settings.AUTH_SERVICE_URL}/auth/v1", headers=headers,
    ))
    monkeypatch.setattr(storage, "_client", httpx.Client(
        transport=transport, base_url=f"{settings.AUTH_SERVICE_URL}/storage/v1", headers=headers,
    ))
    return fake


# =============================================================================
# Users, listings, threads
# =============================================================================

@pytest.fixture
def seller(db):
    return User.objects.create_user(email="seller@example.com", auth_id=uuid.uuid4())


@pytest.fixture
def buyer(db):
    return User.objects.create_user(email="buyer@example.com", auth_id=uuid.uuid4())


@pytest.fixture
def stranger(db):
    return User.objects.create_user(email="stranger@example.com", auth_id=uuid.uuid4())


@pytest.fixture
def listing(seller):
    return Listing.objects.create(
        owner=seller,
        title="2002 Honda S2000 AP1",
        price_eur=29500,
        category="car",
        location="Dublin",
        condition="Used",
        description="Full service history.",
    )


@pytest.fixture
def orphan_listing(db):
    return Listing.objects.create(owner=None, title="Vintage rally poster", category="memorabilia")


@pytest.fixture
def thread(listing, buyer, seller):
    return MessageThread.objects.create(
        listing=listing, buyer=buyer, seller=seller, last_message_at=timezone.now(),
    )


@pytest.fixture
def buyer_client(client, buyer):
    client.force_login(buyer)
    return client


@pytest.fixture
def seller_client(client, seller):
    client.force_login(seller)
    return client


@pytest.fixture
def stranger_client(client, stranger):
    client.force_login(stranger)
    return client


@pytest.fixture
def post_json(client):
    """POST a JSON document with the test client."""
    def _post(url, payload):
        body = payload if isinstance(payload, (str, bytes)) else json.dumps(payload)
        return client.post(url, data=body, content_type="application/json")
    return _post

"""
Session bridge between the client-held auth session and the server cookie
session.

Both sides go through one SessionProvider. A browser holding an access /
refresh token pair hands it to `sync()`, which validates it upstream and
installs it as the Django session; server-rendered pages then read identity
from `current_user()`. Nothing here refreshes in the background: if `sync()`
fails the caller must treat the request as unauthenticated.
"""
import logging
from dataclasses import dataclass

from django.contrib.auth import authenticate, login, logout
from django.utils.translation import gettext as _

from . import auth_client
from .constants import SESSION_ACCESS_TOKEN_KEY, SESSION_REFRESH_TOKEN_KEY
from .exceptions import MarketplaceError, Unauthenticated

logger = logging.getLogger(__name__)

BACKEND_PATH = "marketplace.backends.HostedAuthBackend"


@dataclass(frozen=True)
class SyncResult:
    user: object = None
    error: str = ""

    @property
    def ok(self):
        return self.user is not None


class SessionProvider:

    def sync(self, request, access_token, refresh_token):
        """Install a client-held token pair as the server session."""
        if not access_token or not refresh_token:
            logger.debug("Session sync skipped: missing tokens")
            return SyncResult(error="Missing tokens")
        try:
            auth_session = auth_client.set_session(access_token, refresh_token)
            user = self.establish(request, auth_session)
        except MarketplaceError as exc:
            logger.info("Session sync rejected: %s", exc.message)
            return SyncResult(error=exc.message)
        logger.debug("Session synced for user %s", user.pk)
        return SyncResult(user=user)

    def establish(self, request, auth_session):
        """Log in the local user behind an already validated AuthSession."""
        user = authenticate(request, auth_user=auth_session.user)
        if user is None:
            # No e-mail upstream, or the local account was deactivated.
            raise Unauthenticated(_("This account cannot sign in here."))
        login(request, user, backend=BACKEND_PATH)
        request.session[SESSION_ACCESS_TOKEN_KEY] = auth_session.access_token
        request.session[SESSION_REFRESH_TOKEN_KEY] = auth_session.refresh_token
        return user

    def current_user(self, request):
        user = getattr(request, "user", None)
        if user is not None and user.is_authenticated:
            return user
        return None

    def access_token(self, request):
        return request.session.get(SESSION_ACCESS_TOKEN_KEY, "")

    def clear(self, request):
        """Sign out upstream and drop the server session."""
        access_token = self.access_token(request)
        if access_token:
            try:
                auth_client.sign_out(access_token)
            except MarketplaceError as exc:
                logger.warning("Upstream sign-out failed: %s", exc.message)
        logout(request)


sessions = SessionProvider()

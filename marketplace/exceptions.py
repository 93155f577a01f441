"""
Error taxonomy shared by the messaging core, the hosted-service clients and
the JSON endpoints. Each error knows the HTTP status it maps to and carries a
message that is safe to show to the user.
"""

from django.utils.translation import gettext_lazy as _


class MarketplaceError(Exception):
    status_code = 400
    default_message = _("Something went wrong.")

    def __init__(self, message=None):
        self.message = str(message or self.default_message)
        super().__init__(self.message)


# Unauthenticated: no session, or the session was rejected upstream.

class Unauthenticated(MarketplaceError):
    status_code = 401
    default_message = _("You must be signed in.")


class SessionExpired(Unauthenticated):
    default_message = _("Your session expired. Please sign in again.")


# Forbidden: authenticated, but not allowed to touch the target.

class Forbidden(MarketplaceError):
    status_code = 403
    default_message = _("You are not allowed to do that.")


class SelfMessageRejected(Forbidden):
    default_message = _("You cannot message your own listing.")


class NotFound(MarketplaceError):
    status_code = 404
    default_message = _("Not found.")


# Validation

class InvalidInput(MarketplaceError):
    status_code = 400
    default_message = _("Invalid input.")


class EmptyBody(InvalidInput):
    default_message = _("Message cannot be empty.")


class InvalidOwner(InvalidInput):
    default_message = _("Listing is missing an owner.")


class UpstreamError(MarketplaceError):
    """The hosted auth/storage service failed; its message is passed through."""

    status_code = 502
    default_message = _("The backend service is unavailable.")


class RateLimited(MarketplaceError):
    status_code = 429
    default_message = _("Too many requests. Please wait a moment and try again.")

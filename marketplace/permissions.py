"""
Ownership guard: capability checks over listings and threads.

Everything here is a pure function of its arguments. Views and the messaging
core call these before any read or write that depends on who the user is.
"""
import enum


class Viewer(enum.Enum):
    """How the current user relates to a listing, decided once per request."""

    UNAUTHENTICATED = "unauthenticated"
    OWNER = "owner"
    PARTICIPANT = "participant"
    ELIGIBLE = "eligible"
    UNAVAILABLE = "unavailable"


def _is_authenticated(user):
    return user is not None and getattr(user, "is_authenticated", False)


def is_owner(listing, user):
    return (
        _is_authenticated(user)
        and listing.owner_id is not None
        and listing.owner_id == user.pk
    )


def can_edit(listing, user):
    return is_owner(listing, user)


def can_delete(listing, user):
    return is_owner(listing, user)


def can_message(listing, user):
    return (
        _is_authenticated(user)
        and listing.owner_id is not None
        and listing.owner_id != user.pk
    )


def is_participant(thread, user):
    return _is_authenticated(user) and user.pk in (thread.buyer_id, thread.seller_id)


def can_view_thread(thread, user):
    return is_participant(thread, user)


def listing_viewer(listing, user, thread=None):
    """
    Classify the user against a listing.

    `thread` is the user's existing buyer thread on this listing, if any.
    """
    if listing.owner_id is None:
        return Viewer.UNAVAILABLE
    if not _is_authenticated(user):
        return Viewer.UNAUTHENTICATED
    if is_owner(listing, user):
        return Viewer.OWNER
    if thread is not None and is_participant(thread, user):
        return Viewer.PARTICIPANT
    return Viewer.ELIGIBLE

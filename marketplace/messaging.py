"""
Buyer/seller messaging: thread resolution and message appends.

A thread links one buyer and the listing's owner around a single listing.
There is at most one thread per (listing, buyer); the database enforces it
with a unique constraint, and `get_or_create` falls back to the existing row
when two requests race to create it.
"""
import logging

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from .constants import MESSAGE_MAX_LENGTH
from .exceptions import (
    EmptyBody,
    Forbidden,
    InvalidOwner,
    NotFound,
    SelfMessageRejected,
    Unauthenticated,
)
from .models import Listing, Message, MessageThread
from .permissions import can_view_thread, is_owner

logger = logging.getLogger(__name__)


def _require_user(user):
    if user is None or not user.is_authenticated:
        raise Unauthenticated()


def _lookup(queryset, pk, message):
    """Fetch by primary key; malformed ids count as missing."""
    try:
        return queryset.get(pk=pk)
    except (queryset.model.DoesNotExist, ValidationError, ValueError):
        raise NotFound(message)


def clean_body(body):
    """Trim and cap a message body. Raises EmptyBody if nothing is left."""
    body = (body or "").strip()
    if not body:
        raise EmptyBody()
    return body[:MESSAGE_MAX_LENGTH]


# ---------------------------------------------------------------------------
# Threads
# ---------------------------------------------------------------------------

def find_thread(listing, user):
    """The user's existing buyer thread on a listing, or None."""
    if user is None or not user.is_authenticated:
        return None
    return MessageThread.objects.filter(listing=listing, buyer=user).first()


def resolve_thread(listing_id, user):
    """
    Find or create the thread between `user` (buyer) and the listing owner.

    Returns (thread, created).
    """
    _require_user(user)
    listing = _lookup(Listing.objects.all(), listing_id, "Listing not found.")
    if listing.owner_id is None:
        raise InvalidOwner()
    if is_owner(listing, user):
        raise SelfMessageRejected()

    thread, created = MessageThread.objects.get_or_create(
        listing=listing,
        buyer=user,
        defaults={
            "seller_id": listing.owner_id,
            "last_message_at": timezone.now(),
        },
    )
    if created:
        logger.info("Created thread %s on listing %s", thread.pk, listing.pk)
    return thread, created


def start_thread(listing_id, user, body):
    """
    Open (or reuse) a conversation on a listing and post the first message.

    The body is validated before anything is written, and a new thread is
    rolled back if its opening message cannot be stored. Returns (thread, created).
    """
    _require_user(user)
    body = clean_body(body)
    with transaction.atomic():
        thread, created = resolve_thread(listing_id, user)
        append_message(thread, user, body)
    return thread, created


def inbox_threads(user):
    """Every thread the user takes part in, most recent activity first."""
    return (
        MessageThread.objects.for_user(user)
        .select_related("listing", "buyer", "seller")
        .order_by("-last_message_at")
    )


def get_thread_for(thread_id, user):
    """Load a thread the user may read. Raises NotFound / Forbidden."""
    _require_user(user)
    thread = _lookup(
        MessageThread.objects.select_related("listing", "buyer", "seller"),
        thread_id,
        "Thread not found.",
    )
    if not can_view_thread(thread, user):
        raise Forbidden("You are not part of this conversation.")
    return thread


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------

def append_message(thread, user, body):
    """
    Append a message from `user` to a thread.

    `thread` may be a MessageThread or its id. The thread's last_message_at
    moves to the new message's timestamp in the same transaction.
    """
    _require_user(user)
    body = clean_body(body)
    if not isinstance(thread, MessageThread):
        thread = _lookup(MessageThread.objects.all(), thread, "Thread not found.")
    if not can_view_thread(thread, user):
        raise Forbidden("You are not part of this conversation.")

    with transaction.atomic():
        message = Message.objects.create(thread=thread, sender=user, body=body)
        thread.last_message_at = message.created_at
        thread.save(update_fields=["last_message_at"])
    return message


def thread_messages(thread):
    """Messages of a thread in the order they were sent."""
    return thread.messages.select_related("sender").order_by("created_at", "id")

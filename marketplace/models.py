import uuid

from django.conf import settings
from django.contrib.auth.models import AbstractUser, BaseUserManager
from django.db import models
from django.utils.translation import gettext_lazy as _

from .constants import MESSAGE_MAX_LENGTH
from .managers import ListingQuerySet, MessageThreadQuerySet


# ---------------------------------------------------------------------------
# Custom User Manager (email-based auth)
# ---------------------------------------------------------------------------

class UserManager(BaseUserManager):
    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError("Email is required")
        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        if password:
            user.set_password(password)
        else:
            # Marketplace users authenticate upstream; no local credential.
            user.set_unusable_password()
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        return self.create_user(email, password, **extra_fields)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Category(models.TextChoices):
    CAR = "car", _("Car")
    PART = "part", _("Part")
    MEMORABILIA = "memorabilia", _("Memorabilia")


class Condition(models.TextChoices):
    NEW = "New", _("New")
    USED = "Used", _("Used")
    REFURBISHED = "Refurbished", _("Refurbished")


class ListingStatus(models.TextChoices):
    ACTIVE = "active", _("Active")
    SOLD = "sold", _("Sold")


# ---------------------------------------------------------------------------
# User
# ---------------------------------------------------------------------------

class User(AbstractUser):
    """Local shadow of an identity owned by the hosted auth service."""

    username = None
    email = models.EmailField(_("email address"), unique=True)
    auth_id = models.UUIDField(
        _("auth service id"), unique=True, null=True, blank=True,
    )
    display_name = models.CharField(_("display name"), max_length=100, default="", blank=True)

    objects = UserManager()

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    class Meta:
        ordering = ["-date_joined"]

    def __str__(self):
        return self.display_name or self.email

    @property
    def public_id(self):
        """Identifier exposed to API clients: the auth service id when known."""
        return str(self.auth_id) if self.auth_id else str(self.pk)


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------

class Listing(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    # Nullable: rows imported without an owner cannot be messaged.
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="listings",
    )
    title = models.CharField(_("title"), max_length=200)
    price_eur = models.PositiveIntegerField(_("price (EUR)"), null=True, blank=True)
    category = models.CharField(
        _("category"), max_length=20, choices=Category.choices, default=Category.CAR,
    )
    location = models.CharField(_("location"), max_length=200, blank=True)
    condition = models.CharField(
        _("condition"), max_length=20, choices=Condition.choices, blank=True,
    )
    description = models.TextField(_("description"), blank=True)
    photo_urls = models.JSONField(_("photo URLs"), default=list, blank=True)
    status = models.CharField(
        max_length=10,
        choices=ListingStatus.choices,
        default=ListingStatus.ACTIVE,
    )
    sold_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ListingQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["owner", "status"], name="listing_owner_status_idx"),
        ]

    def __str__(self):
        return self.title

    @property
    def is_sold(self):
        return self.status == ListingStatus.SOLD


# ---------------------------------------------------------------------------
# MessageThread & Message
# ---------------------------------------------------------------------------

class MessageThread(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    listing = models.ForeignKey(
        Listing, on_delete=models.CASCADE, related_name="threads",
    )
    buyer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="buyer_threads",
    )
    seller = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="seller_threads",
    )
    last_message_at = models.DateTimeField()
    created_at = models.DateTimeField(auto_now_add=True)

    objects = MessageThreadQuerySet.as_manager()

    class Meta:
        ordering = ["-last_message_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["listing", "buyer"],
                name="unique_thread_per_listing_buyer",
            ),
            models.CheckConstraint(
                condition=~models.Q(buyer=models.F("seller")),
                name="thread_buyer_is_not_seller",
            ),
        ]

    def __str__(self):
        return f"Thread {self.pk}"

    def counterparty_of(self, user):
        return self.seller if user.pk == self.buyer_id else self.buyer


class Message(models.Model):
    thread = models.ForeignKey(
        MessageThread, on_delete=models.CASCADE, related_name="messages",
    )
    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE,
        related_name="sent_messages",
    )
    body = models.TextField(max_length=MESSAGE_MAX_LENGTH)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=["thread", "created_at"], name="message_thread_created_idx"),
        ]

    def __str__(self):
        return f"Message #{self.pk}"

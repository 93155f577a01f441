import json
import logging
import uuid
from functools import wraps
from urllib.parse import urlencode

from django.contrib import messages as django_messages
from django.contrib.auth.decorators import login_required
from django.core.exceptions import PermissionDenied
from django.core.paginator import Paginator
from django.http import Http404, HttpResponse, JsonResponse
from django.shortcuts import get_object_or_404, redirect, render
from django.urls import reverse
from django.utils import timezone
from django.utils.http import url_has_allowed_host_and_scheme
from django.utils.translation import gettext as _
from django.views.csrf import csrf_failure as default_csrf_failure
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from django_ratelimit.decorators import ratelimit

from . import auth_client, storage
from .constants import LOGIN_NEXT_DEFAULT, LOGIN_NEXT_DISALLOWED
from .exceptions import (
    Forbidden,
    InvalidInput,
    MarketplaceError,
    NotFound,
    RateLimited,
    Unauthenticated,
)
from .forms import ListingEditForm, ListingForm, LoginForm, MessageForm
from .messaging import (
    append_message,
    find_thread,
    get_thread_for,
    inbox_threads,
    start_thread,
    thread_messages,
)
from .models import Category, Listing, ListingStatus, MessageThread
from .permissions import Viewer, can_delete, can_edit, listing_viewer
from .session import sessions

logger = logging.getLogger(__name__)

PAGE_SIZE = 24


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _parse_uuid(value):
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def _get_listing_or_404(pk):
    listing_id = _parse_uuid(pk)
    if listing_id is None:
        raise Http404
    return get_object_or_404(Listing.objects.select_related("owner"), pk=listing_id)


def _safe_next(request, candidate, default=LOGIN_NEXT_DEFAULT):
    """Local path to continue to after sign-in, never a login page itself."""
    if not candidate:
        return default
    if not candidate.startswith("/"):
        candidate = f"/{candidate}"
    if not url_has_allowed_host_and_scheme(
        candidate,
        allowed_hosts={request.get_host()},
        require_https=request.is_secure(),
    ):
        return default
    path = candidate.split("?", 1)[0]
    if path in LOGIN_NEXT_DISALLOWED or path == request.path:
        return default
    return candidate


def _login_url(next_path):
    return f"{reverse('marketplace:login')}?{urlencode({'next': next_path})}"


def _json_payload(request):
    try:
        payload = json.loads(request.body or b"")
    except (ValueError, UnicodeDecodeError):
        raise InvalidInput(_("Invalid JSON body."))
    if not isinstance(payload, dict):
        raise InvalidInput(_("Invalid JSON body."))
    return payload


def _json_string(payload, key):
    """A string field of a JSON body; missing counts as empty."""
    value = payload.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise InvalidInput(_("%(field)s must be a string.") % {"field": key})
    return value


def json_errors(view):
    """
    Render MarketplaceError as {"error": message} with its status code.

    Requests over the rate limit (see `ratelimit(block=False)`) are refused
    here with a 429 before the view runs.
    """
    @wraps(view)
    def wrapper(request, *args, **kwargs):
        try:
            if getattr(request, "limited", False):
                raise RateLimited()
            return view(request, *args, **kwargs)
        except MarketplaceError as exc:
            return JsonResponse({"error": exc.message}, status=exc.status_code)
    return wrapper


def csrf_failure(request, reason=""):
    """JSON 403 for the API; Django's page everywhere else."""
    if request.path.startswith("/api/"):
        return JsonResponse(
            {"error": _("CSRF verification failed. Reload the page and try again.")},
            status=403,
        )
    return default_csrf_failure(request, reason=reason)


def _message_json(message):
    return {
        "id": message.pk,
        "threadId": str(message.thread_id),
        "senderId": message.sender.public_id,
        "body": message.body,
        "createdAt": message.created_at.isoformat(),
    }


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------

@ratelimit(key="ip", rate="10/m", method="POST", block=True)
def login_view(request):
    next_url = _safe_next(request, request.POST.get("next") or request.GET.get("next"))
    if sessions.current_user(request):
        return redirect(next_url)

    notice = None
    if request.method == "POST":
        form = LoginForm(request.POST)
        if form.is_valid():
            email = form.cleaned_data["email"]
            password = form.cleaned_data["password"]
            try:
                if form.cleaned_data["mode"] == LoginForm.MODE_SIGNUP:
                    auth_session = auth_client.sign_up(email, password)
                else:
                    auth_session = auth_client.sign_in_with_password(email, password)
                if auth_session is not None:
                    sessions.establish(request, auth_session)
            except MarketplaceError as exc:
                form.add_error(None, exc.message)
            else:
                if auth_session is not None:
                    return redirect(next_url)
                notice = _("Check your email to confirm, then sign in with your password.")
                form = LoginForm(initial={"mode": LoginForm.MODE_SIGNIN, "email": email})
    else:
        form = LoginForm()
    return render(request, "registration/login.html", {
        "form": form,
        "next": next_url,
        "notice": notice,
        "error": request.GET.get("error", ""),
    })


def signin_redirect(request):
    query = request.META.get("QUERY_STRING", "")
    target = reverse("marketplace:login")
    return redirect(f"{target}?{query}" if query else target)


@require_GET
def auth_callback(request):
    """Finish a magic-link / OAuth sign-in by exchanging the one-time code."""
    code = request.GET.get("code")
    next_url = _safe_next(request, request.GET.get("next"), default=reverse("marketplace:account"))
    login_url = reverse("marketplace:login")
    if not code:
        return redirect(f"{login_url}?error=missing_code")
    try:
        auth_session = auth_client.exchange_code(
            code, request.session.pop("auth_code_verifier", ""),
        )
        sessions.establish(request, auth_session)
    except MarketplaceError:
        logger.exception("Auth callback failed")
        return redirect(f"{login_url}?{urlencode({'error': 'Sign-in failed'})}")
    return redirect(next_url)


@require_http_methods(["GET", "POST"])
def logout_view(request):
    sessions.clear(request)
    return redirect(_safe_next(request, request.GET.get("next") or request.POST.get("next")))


@csrf_exempt
@require_POST
@json_errors
def set_session(request):
    """
    Session bridge: install a browser-held token pair as the cookie session.

    CSRF-exempt: the token pair in the body is the credential, and there is
    no cookie session to protect until it has been validated upstream.
    """
    payload = _json_payload(request)
    access_token = payload.get("accessToken") or payload.get("access_token")
    refresh_token = payload.get("refreshToken") or payload.get("refresh_token")
    if not access_token or not refresh_token:
        raise InvalidInput(_("Missing tokens"))
    result = sessions.sync(request, access_token, refresh_token)
    if not result.ok:
        return JsonResponse({"error": result.error}, status=400)
    return HttpResponse(status=204)


# ---------------------------------------------------------------------------
# Home / browse
# ---------------------------------------------------------------------------

def home_view(request):
    return render(request, "marketplace/home.html", {"categories": Category.choices})


def browse_view(request):
    qs = Listing.objects.active().order_by("-created_at")
    category = request.GET.get("category", "")
    if category in Category.values:
        qs = qs.filter(category=category)
    else:
        category = ""
    paginator = Paginator(qs, PAGE_SIZE)
    page_obj = paginator.get_page(request.GET.get("page"))
    return render(request, "marketplace/browse.html", {
        "page_obj": page_obj,
        "category": category,
        "categories": Category.choices,
    })


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------

def _render_listing(request, listing, form=None, error="", session_expired=False, status=200):
    user = sessions.current_user(request)
    thread = find_thread(listing, user)
    viewer = listing_viewer(listing, user, thread)
    logger.debug("Listing %s viewer state: %s", listing.pk, viewer.value)
    if form is None and viewer in (Viewer.ELIGIBLE, Viewer.PARTICIPANT):
        form = MessageForm(initial={
            "body": _('Hi! Is "%(title)s" still available?') % {"title": listing.title},
        })
    return render(request, "marketplace/listing_detail.html", {
        "listing": listing,
        "viewer": viewer.value,
        "thread": thread,
        "form": form,
        "error": error,
        "session_expired": session_expired,
        "login_url": _login_url(request.path),
    }, status=status)


def listing_detail(request, pk):
    listing_id = _parse_uuid(pk)
    if listing_id is None:
        return render(request, "marketplace/listing_missing.html", {
            "title": _("Invalid listing ID"),
            "detail": _("This doesn't look like a valid listing link."),
        }, status=404)
    listing = Listing.objects.select_related("owner").filter(pk=listing_id).first()
    if listing is None:
        return render(request, "marketplace/listing_missing.html", {
            "title": _("Listing not found"),
            "detail": _("It may have been removed, or the link is wrong."),
        }, status=404)
    return _render_listing(request, listing)


@require_POST
@ratelimit(key="user_or_ip", rate="30/10m", method="POST", block=True)
def listing_contact(request, pk):
    """Start (or continue) a conversation with the seller from the listing page."""
    listing = _get_listing_or_404(pk)
    form = MessageForm(request.POST)
    if not form.is_valid():
        return _render_listing(request, listing, form=form, status=400)
    try:
        thread, created = start_thread(
            listing.pk, sessions.current_user(request), form.cleaned_data["body"],
        )
    except MarketplaceError as exc:
        return _render_listing(
            request, listing,
            form=form,
            error=exc.message,
            session_expired=isinstance(exc, Unauthenticated),
            status=exc.status_code,
        )
    return redirect("marketplace:thread_detail", pk=thread.pk)


@login_required
def sell_view(request):
    if request.method == "POST":
        form = ListingForm(request.POST, request.FILES)
        if form.is_valid():
            listing = form.save(commit=False)
            listing.owner = request.user
            listing.save()
            photos = form.cleaned_data["photos"]
            if photos:
                try:
                    listing.photo_urls = storage.upload_listing_photos(
                        listing, photos, sessions.access_token(request),
                    )
                except MarketplaceError as exc:
                    logger.warning("Photo upload failed for listing %s: %s", listing.pk, exc.message)
                    django_messages.error(request, _("Listing created, but image upload failed."))
                    return redirect("marketplace:listing_detail", pk=listing.pk)
                listing.save(update_fields=["photo_urls", "updated_at"])
            django_messages.success(request, _("Listing posted."))
            return redirect("marketplace:listing_detail", pk=listing.pk)
    else:
        form = ListingForm()
    return render(request, "marketplace/sell.html", {"form": form})


@login_required
def listing_edit(request, pk):
    listing = _get_listing_or_404(pk)
    if not can_edit(listing, request.user):
        return render(request, "marketplace/listing_not_allowed.html", status=403)
    if request.method == "POST":
        form = ListingEditForm(request.POST, instance=listing)
        if form.is_valid():
            form.save()
            django_messages.success(request, _("Listing updated"))
            return redirect("marketplace:listing_detail", pk=listing.pk)
    else:
        form = ListingEditForm(instance=listing)
    return render(request, "marketplace/listing_edit.html", {
        "form": form,
        "listing": listing,
    })


@login_required
@require_POST
def listing_status(request, pk):
    listing = _get_listing_or_404(pk)
    if not can_edit(listing, request.user):
        raise PermissionDenied
    target = request.POST.get("status")
    if target == ListingStatus.SOLD:
        listing.status = ListingStatus.SOLD
        listing.sold_at = timezone.now()
        django_messages.success(request, _("Marked as sold"))
    elif target == ListingStatus.ACTIVE:
        listing.status = ListingStatus.ACTIVE
        listing.sold_at = None
        django_messages.success(request, _("Marked as active"))
    else:
        django_messages.error(request, _("Unknown listing status."))
        return redirect("marketplace:account_listings")
    listing.save(update_fields=["status", "sold_at", "updated_at"])
    return redirect(_safe_next(
        request, request.POST.get("next"), default=reverse("marketplace:account_listings"),
    ))


@login_required
def listing_delete(request, pk):
    listing = _get_listing_or_404(pk)
    if not can_delete(listing, request.user):
        raise PermissionDenied
    if request.method == "POST":
        listing.delete()
        django_messages.success(request, _("Listing deleted"))
        return redirect("marketplace:account_listings")
    return render(request, "marketplace/listing_delete_confirm.html", {
        "listing": listing,
        "cancel_url": reverse("marketplace:listing_detail", kwargs={"pk": listing.pk}),
    })


# ---------------------------------------------------------------------------
# Account
# ---------------------------------------------------------------------------

def _listing_counts(user):
    owned = Listing.objects.owned_by(user)
    return {
        "active": owned.active().count(),
        "sold": owned.sold().count(),
        "total": owned.count(),
    }


@login_required
def account_view(request):
    return render(request, "marketplace/account.html", {
        "counts": _listing_counts(request.user),
        "thread_count": MessageThread.objects.for_user(request.user).count(),
    })


@login_required
def account_listings(request):
    active_tab = "sold" if request.GET.get("status") == "sold" else "active"
    listings = (
        Listing.objects.owned_by(request.user)
        .filter(status=active_tab)
        .order_by("-updated_at")
    )
    return render(request, "marketplace/account_listings.html", {
        "active_tab": active_tab,
        "listings": listings,
        "counts": _listing_counts(request.user),
    })


# ---------------------------------------------------------------------------
# Messaging
# ---------------------------------------------------------------------------

@login_required
def inbox_view(request):
    threads = list(inbox_threads(request.user))
    for thread in threads:
        thread.talking_to = _("Seller") if thread.buyer_id == request.user.pk else _("Buyer")
    return render(request, "marketplace/inbox.html", {"threads": threads})


@login_required
@ratelimit(key="user", rate="30/10m", method="POST", block=True)
def thread_detail(request, pk):
    try:
        thread = get_thread_for(pk, request.user)
    except (NotFound, Forbidden):
        raise Http404
    error = ""
    session_expired = False
    if request.method == "POST":
        form = MessageForm(request.POST)
        if form.is_valid():
            try:
                append_message(thread, request.user, form.cleaned_data["body"])
            except MarketplaceError as exc:
                error = exc.message
                session_expired = isinstance(exc, Unauthenticated)
            else:
                django_messages.success(request, _("Message sent"))
                return redirect("marketplace:thread_detail", pk=thread.pk)
    else:
        form = MessageForm()
    talking_to = _("seller") if thread.buyer_id == request.user.pk else _("buyer")
    return render(request, "marketplace/thread_detail.html", {
        "thread": thread,
        "messages_list": thread_messages(thread),
        "form": form,
        "talking_to": talking_to,
        "error": error,
        "session_expired": session_expired,
        "login_url": _login_url(request.path),
    })


# ---------------------------------------------------------------------------
# JSON API
# ---------------------------------------------------------------------------

def _api_user(request):
    user = sessions.current_user(request)
    if user is None:
        raise Unauthenticated()
    return user


@require_POST
@ratelimit(key="user_or_ip", rate="30/10m", method="POST", block=False)
@json_errors
def api_threads(request):
    """Find-or-create a thread on a listing and post the opening message."""
    user = _api_user(request)
    payload = _json_payload(request)
    listing_id = _json_string(payload, "listingId").strip()
    if not listing_id:
        raise InvalidInput(_("listingId is required."))
    thread, created = start_thread(listing_id, user, _json_string(payload, "message"))
    return JsonResponse({"threadId": str(thread.pk)}, status=201 if created else 200)


@require_POST
@ratelimit(key="user_or_ip", rate="30/10m", method="POST", block=False)
@json_errors
def api_messages(request):
    user = _api_user(request)
    payload = _json_payload(request)
    thread_id = _json_string(payload, "threadId").strip()
    if not thread_id:
        raise InvalidInput(_("threadId is required."))
    message = append_message(thread_id, user, _json_string(payload, "body"))
    return JsonResponse({"message": _message_json(message)}, status=201)


@require_GET
@json_errors
def api_thread_messages(request, pk):
    thread = get_thread_for(pk, _api_user(request))
    return JsonResponse({
        "threadId": str(thread.pk),
        "messages": [_message_json(m) for m in thread_messages(thread)],
    })

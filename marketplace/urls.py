from django.urls import path

from . import views

app_name = "marketplace"

urlpatterns = [
    # Auth
    path("login/", views.login_view, name="login"),
    path("signin/", views.signin_redirect, name="signin"),
    path("logout", views.logout_view, name="logout"),
    path("auth/callback", views.auth_callback, name="auth_callback"),
    path("auth/set-session", views.set_session, name="set_session"),
    # Browse
    path("", views.home_view, name="home"),
    path("browse/", views.browse_view, name="browse"),
    # Listings
    path("sell/", views.sell_view, name="sell"),
    path("listings/<str:pk>/", views.listing_detail, name="listing_detail"),
    path("listings/<str:pk>/contact/", views.listing_contact, name="listing_contact"),
    path("listings/<str:pk>/edit/", views.listing_edit, name="listing_edit"),
    path("listings/<str:pk>/status/", views.listing_status, name="listing_status"),
    path("listings/<str:pk>/delete/", views.listing_delete, name="listing_delete"),
    # Account
    path("account/", views.account_view, name="account"),
    path("account/listings/", views.account_listings, name="account_listings"),
    # Messaging
    path("messages/", views.inbox_view, name="inbox"),
    path("messages/<uuid:pk>/", views.thread_detail, name="thread_detail"),
    # JSON API
    path("api/threads", views.api_threads, name="api_threads"),
    path("api/threads/<str:pk>/messages", views.api_thread_messages, name="api_thread_messages"),
    path("api/messages", views.api_messages, name="api_messages"),
]

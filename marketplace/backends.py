import logging

from django.contrib.auth import get_user_model
from django.contrib.auth.backends import BaseBackend

logger = logging.getLogger(__name__)


class HostedAuthBackend(BaseBackend):
    """
    Authenticate an identity already verified by the hosted auth service.

    The local User row is keyed by `auth_id` and created on first sight; an
    existing account with the same e-mail and no `auth_id` (e.g. one made
    with createsuperuser) is linked instead. The e-mail is refreshed from
    upstream on every sign-in.
    """

    def authenticate(self, request, auth_user=None, **kwargs):
        if auth_user is None:
            return None
        User = get_user_model()
        email = User.objects.normalize_email(auth_user.email)
        if not email:
            # Phone and anonymous sign-ins carry no e-mail; accounts here are keyed by it.
            logger.info("Rejected upstream identity %s without an e-mail", auth_user.id)
            return None
        user = User.objects.filter(auth_id=auth_user.id).first()
        if user is None:
            user = User.objects.filter(email__iexact=email, auth_id__isnull=True).first()
            if user is not None:
                user.auth_id = auth_user.id
                user.save(update_fields=["auth_id"])
        if user is None:
            user = User.objects.create_user(email=email, auth_id=auth_user.id)
        elif user.email != email:
            user.email = email
            user.save(update_fields=["email"])
        if not user.is_active:
            return None
        return user

    def get_user(self, user_id):
        User = get_user_model()
        try:
            return User.objects.get(pk=user_id)
        except User.DoesNotExist:
            return None

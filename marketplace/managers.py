from django.db import models


class ListingQuerySet(models.QuerySet):
    def active(self):
        return self.filter(status="active")

    def sold(self):
        return self.filter(status="sold")

    def owned_by(self, user):
        return self.filter(owner=user)


class MessageThreadQuerySet(models.QuerySet):
    def for_user(self, user):
        """Threads where the user is either participant."""
        return self.filter(models.Q(buyer=user) | models.Q(seller=user))

import math

from django.db import models
from django.utils import timezone


class AccessTokenQuerySet(models.QuerySet):
    def active(self, now=None):
        return self.filter(expires__gt=now or timezone.now(), revoked__isnull=True)

    def dead(self, before):
        """
        Tokens that expired or were revoked before `before`
        """
        return self.filter(
            models.Q(expires__lt=before) | models.Q(revoked__lt=before)
        )


class AccessToken(models.Model):
    """
    A bearer token to call the protected API with, tied to the client that
    asked for it and the user who authorized it.
    """

    client = models.ForeignKey(
        "api.Client",
        on_delete=models.CASCADE,
        related_name="access_tokens",
    )

    user = models.ForeignKey(
        "users.User",
        on_delete=models.CASCADE,
        related_name="access_tokens",
    )

    token = models.CharField(max_length=128, unique=True)

    expires = models.DateTimeField()
    revoked = models.DateTimeField(blank=True, null=True)

    created = models.DateTimeField(auto_now_add=True)

    objects = AccessTokenQuerySet.as_manager()

    def __str__(self):
        return f"Token for {self.client_id} / {self.user_id}"

    def is_valid(self, now=None) -> bool:
        return self.revoked is None and (now or timezone.now()) < self.expires

    def expires_in(self, now=None) -> int:
        """
        Seconds left before this token stops working, rounded up
        """
        remaining = self.expires - (now or timezone.now())
        return max(0, math.ceil(remaining.total_seconds()))

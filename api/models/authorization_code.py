from django.db import models
from django.utils import timezone


class AuthorizationCodeQuerySet(models.QuerySet):
    def dead(self, before):
        """
        Codes that can never be exchanged again and are older than `before`
        """
        return self.filter(
            models.Q(expires__lt=before) | models.Q(consumed__lt=before)
        )


class AuthorizationCode(models.Model):
    """
    A single-use authorization code, bound to the client, user, redirect
    URI and PKCE challenge it was issued with.
    """

    client = models.ForeignKey(
        "api.Client",
        on_delete=models.CASCADE,
        related_name="authorization_codes",
    )

    user = models.ForeignKey(
        "users.User",
        on_delete=models.CASCADE,
        related_name="authorization_codes",
    )

    code = models.CharField(max_length=128, unique=True)
    redirect_uri = models.TextField()
    code_challenge = models.CharField(max_length=128, blank=True, null=True)
    code_challenge_method = models.CharField(max_length=10, blank=True, null=True)

    expires = models.DateTimeField()
    # Set exactly once, by the exchange that wins
    consumed = models.DateTimeField(blank=True, null=True)

    created = models.DateTimeField(auto_now_add=True)

    objects = AuthorizationCodeQuerySet.as_manager()

    def __str__(self):
        return f"Code for {self.client_id} / {self.user_id}"

    def is_expired(self, now=None) -> bool:
        return (now or timezone.now()) >= self.expires

from django.contrib.auth.hashers import check_password, make_password
from django.db import models

from core.tokens import generate_secret


class Client(models.Model):
    """
    A dynamically registered OAuth client.

    The client secret is only ever stored hashed; the plaintext is handed
    back once, by create(), and can't be recovered after that.
    """

    client_id = models.CharField(max_length=100, unique=True)
    client_secret_hash = models.CharField(max_length=200)

    name = models.CharField(max_length=500)
    redirect_uris = models.JSONField()

    # Null for registrations made without anyone being signed in
    user = models.ForeignKey(
        "users.User",
        blank=True,
        null=True,
        on_delete=models.CASCADE,
        related_name="clients",
    )

    created = models.DateTimeField(auto_now_add=True)
    updated = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name} ({self.client_id})"

    @classmethod
    def create(
        cls,
        name: str,
        redirect_uris: list[str],
        user=None,
    ) -> tuple["Client", str]:
        """
        Makes a new client, returning it and its plaintext secret
        """
        client_id = "gh-" + generate_secret(16)
        client_secret = generate_secret()
        client = cls.objects.create(
            name=name,
            client_id=client_id,
            client_secret_hash=make_password(client_secret),
            redirect_uris=redirect_uris,
            user=user,
        )
        return client, client_secret

    def check_secret(self, client_secret: str) -> bool:
        # check_password compares in constant time
        return check_password(client_secret, self.client_secret_hash)

    def has_redirect_uri(self, redirect_uri: str | None) -> bool:
        """
        Exact string match only - no prefixes, no normalisation.
        """
        if not redirect_uri:
            return False
        return any(redirect_uri == uri for uri in self.redirect_uris)

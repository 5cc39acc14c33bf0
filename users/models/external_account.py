from django.db import models


class ExternalAccount(models.Model):
    """
    An account at an upstream identity provider (Google, GitHub, Discord...)
    that signs in as one of our users.
    """

    user = models.ForeignKey(
        "users.User",
        on_delete=models.CASCADE,
        related_name="external_accounts",
    )

    provider = models.CharField(max_length=100)
    account_id = models.CharField(max_length=500)

    created = models.DateTimeField(auto_now_add=True)
    last_used = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["provider", "account_id"],
                name="unique_external_account",
            )
        ]

    def __str__(self):
        return f"{self.provider}:{self.account_id}"

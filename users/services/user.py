import logging

from django.db import IntegrityError, transaction

from users.models import ExternalAccount, User
from users.providers import ExternalIdentity

logger = logging.getLogger(__name__)


class UserService:
    """
    High-level user handling methods
    """

    @classmethod
    def create(cls, email: str, password: str | None = None) -> User:
        """
        Creates a new user
        """
        return User.objects.create_user(email=email.lower(), password=password)

    @classmethod
    def for_identity(cls, identity: ExternalIdentity) -> User | None:
        """
        Finds the local user an identity signs in as, linking a new
        external account to a user (new or existing, by email) the first
        time we see it.
        """
        if identity.provider == "session":
            return User.objects.filter(pk=identity.account_id).first()
        account = (
            ExternalAccount.objects.select_related("user")
            .filter(provider=identity.provider, account_id=identity.account_id)
            .first()
        )
        if account is not None:
            account.save(update_fields=["last_used"])
            return account.user
        if not identity.email:
            logger.warning(
                "Cannot link %s account without an email address", identity.provider
            )
            return None
        try:
            with transaction.atomic():
                user = User.objects.filter(email=identity.email.lower()).first()
                if user is None:
                    user = cls.create(email=identity.email)
                ExternalAccount.objects.create(
                    user=user,
                    provider=identity.provider,
                    account_id=identity.account_id,
                )
        except IntegrityError:
            # Someone else linked it at the same time
            account = (
                ExternalAccount.objects.select_related("user")
                .filter(provider=identity.provider, account_id=identity.account_id)
                .first()
            )
            return account.user if account else None
        logger.info("Linked %s account to user %s", identity.provider, user.pk)
        return user

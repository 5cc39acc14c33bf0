import datetime
import logging

from django.conf import settings
from django.utils import timezone

from api.exceptions import InvalidToken
from api.models import AccessToken, Client
from core.tokens import generate_secret

logger = logging.getLogger(__name__)


class AccessTokenService:
    """
    Issues, validates and revokes bearer tokens. Tokens live for a fixed
    time from issue; using them never extends that.
    """

    @classmethod
    def issue(
        cls,
        client: Client,
        user_id: int,
        now: datetime.datetime | None = None,
    ) -> AccessToken:
        now = now or timezone.now()
        access_token = AccessToken.objects.create(
            client=client,
            user_id=user_id,
            token=generate_secret(),
            expires=now + datetime.timedelta(seconds=settings.OAUTH_TOKEN_LIFETIME),
        )
        logger.info("Issued access token to %s for user %s", client.client_id, user_id)
        return access_token

    @classmethod
    def validate(
        cls,
        token: str,
        now: datetime.datetime | None = None,
    ) -> AccessToken:
        """
        Returns the token's record if it's usable right now, and raises
        InvalidToken if it is unknown, revoked or expired.
        """
        if not isinstance(token, str) or not token:
            raise InvalidToken()
        access_token = (
            AccessToken.objects.select_related("client", "user")
            .filter(token=token)
            .first()
        )
        if access_token is None or not access_token.is_valid(now):
            raise InvalidToken()
        return access_token

    @classmethod
    def revoke(
        cls,
        token: str,
        client: Client | None = None,
        now: datetime.datetime | None = None,
    ) -> bool:
        """
        Revokes a token straight away. If a client is given, only that
        client's tokens can be revoked. Returns if anything was revoked.
        """
        if not isinstance(token, str) or not token:
            return False
        tokens = AccessToken.objects.filter(token=token, revoked__isnull=True)
        if client is not None:
            tokens = tokens.filter(client=client)
        revoked = tokens.update(revoked=now or timezone.now()) > 0
        if revoked:
            logger.info("Revoked an access token")
        return revoked

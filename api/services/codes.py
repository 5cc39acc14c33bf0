import datetime
import logging

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from api import pkce
from api.exceptions import (
    ExpiredGrant,
    InvalidGrant,
    InvalidRedirectUri,
    InvalidRequest,
)
from api.models import AuthorizationCode, Client
from core.tokens import generate_secret

logger = logging.getLogger(__name__)


class AuthorizationCodeService:
    """
    Issues authorization codes and exchanges them, exactly once, for the
    user that authorized them.

    A code is ISSUED until it is CONSUMED (consumed is set) or EXPIRED
    (expires has passed when someone tries to use it).
    """

    @classmethod
    def check_challenge(
        cls,
        code_challenge: str | None,
        code_challenge_method: str | None,
    ) -> str | None:
        """
        Validates the PKCE parameters of an authorization request and
        returns the method to record for them.
        """
        if code_challenge:
            code_challenge_method = code_challenge_method or pkce.S256
            if not pkce.is_supported_method(code_challenge_method):
                raise InvalidRequest("Unsupported code_challenge_method")
            if not pkce.VERIFIER_RE.match(code_challenge):
                raise InvalidRequest("Malformed code_challenge")
            return code_challenge_method
        if code_challenge_method:
            raise InvalidRequest("code_challenge_method given without code_challenge")
        if settings.OAUTH_REQUIRE_PKCE:
            raise InvalidRequest("code_challenge is required")
        return None

    @classmethod
    def issue(
        cls,
        client: Client,
        user_id: int,
        redirect_uri: str,
        code_challenge: str | None = None,
        code_challenge_method: str | None = None,
    ) -> AuthorizationCode:
        if not client.has_redirect_uri(redirect_uri):
            raise InvalidRedirectUri()
        code_challenge_method = cls.check_challenge(
            code_challenge, code_challenge_method
        )
        authorization_code = AuthorizationCode.objects.create(
            client=client,
            user_id=user_id,
            code=generate_secret(),
            redirect_uri=redirect_uri,
            code_challenge=code_challenge or None,
            code_challenge_method=code_challenge_method,
            expires=timezone.now()
            + datetime.timedelta(seconds=settings.OAUTH_CODE_LIFETIME),
        )
        logger.info(
            "Issued authorization code to %s for user %s", client.client_id, user_id
        )
        return authorization_code

    @classmethod
    def failure_reason(
        cls,
        authorization_code: AuthorizationCode,
        client_id: str,
        redirect_uri: str | None,
        code_verifier: str | None,
        confidential: bool,
        now: datetime.datetime,
    ) -> str | None:
        """
        Returns why this exchange should fail, or None if it's allowed.
        The reason is for logs only; callers all see the same error.
        """
        if authorization_code.is_expired(now):
            return "expired"
        if authorization_code.client.client_id != client_id:
            return "client mismatch"
        if authorization_code.redirect_uri != redirect_uri:
            return "redirect_uri mismatch"
        if authorization_code.code_challenge:
            if not pkce.verify(
                authorization_code.code_challenge,
                authorization_code.code_challenge_method,
                code_verifier,
            ):
                return "PKCE verification failed"
        elif settings.OAUTH_REQUIRE_PKCE or not confidential:
            return "PKCE required"
        return None

    @classmethod
    def claim(cls, authorization_code: AuthorizationCode, now) -> bool:
        """
        Marks the code consumed if nothing else has. Returns whether we did.
        """
        return (
            AuthorizationCode.objects.filter(
                pk=authorization_code.pk,
                consumed__isnull=True,
            ).update(consumed=now)
            == 1
        )

    @classmethod
    def consume(
        cls,
        code: str,
        client_id: str,
        redirect_uri: str | None,
        code_verifier: str | None = None,
        confidential: bool = False,
        now: datetime.datetime | None = None,
    ) -> int:
        """
        Exchanges a code for the id of the user who authorized it.

        Two concurrent exchanges of one code can't both succeed: the row is
        locked for the check, and the claim only matches while it's still
        unconsumed. Whether a failed exchange also burns the code is
        controlled by OAUTH_BURN_CODE_ON_FAILURE.
        """
        now = now or timezone.now()
        if not isinstance(code, str) or not code:
            raise InvalidGrant()
        with transaction.atomic():
            authorization_code = (
                AuthorizationCode.objects.select_for_update(of=("self",))
                .select_related("client")
                .filter(code=code, consumed__isnull=True)
                .first()
            )
            if authorization_code is None:
                raise InvalidGrant()
            reason = cls.failure_reason(
                authorization_code,
                client_id=client_id,
                redirect_uri=redirect_uri,
                code_verifier=code_verifier,
                confidential=confidential,
                now=now,
            )
            claimed = False
            if reason is None or settings.OAUTH_BURN_CODE_ON_FAILURE:
                claimed = cls.claim(authorization_code, now)
        if reason is not None:
            logger.info(
                "Rejected code exchange by %s: %s",
                client_id,
                reason,
            )
            if reason == "expired":
                raise ExpiredGrant()
            raise InvalidGrant()
        if not claimed:
            raise InvalidGrant()
        logger.info(
            "Code exchanged by %s for user %s",
            client_id,
            authorization_code.user_id,
        )
        return authorization_code.user_id

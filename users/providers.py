"""
Identity providers: the pluggable ways we find out who is signing in.

Each provider is an object with an `authenticate(request)` method that
returns the ExternalIdentity behind the request, or None if nobody is
signed in, and a `login_redirect(next_url)` method that sends the user
somewhere they can sign in with it. Which one is used is picked at request time by key from
PROVIDERS.
"""
import logging
from dataclasses import dataclass
from typing import Protocol

from django.conf import settings
from django.contrib.auth.views import redirect_to_login
from django.core.exceptions import ImproperlyConfigured
from django.http import HttpRequest, HttpResponseRedirect

logger = logging.getLogger(__name__)

#: Upstream providers the trusted header provider will accept
SOCIAL_PROVIDERS = {"google", "github", "discord"}


@dataclass(frozen=True)
class ExternalIdentity:
    provider: str
    account_id: str
    email: str | None = None


class IdentityProvider(Protocol):
    def authenticate(self, request: HttpRequest) -> ExternalIdentity | None:
        ...

    def login_redirect(self, next_url: str) -> HttpResponseRedirect:
        ...


class SessionProvider:
    """
    Users who signed in with a local account through our own login page.
    """

    provider = "session"

    def authenticate(self, request: HttpRequest) -> ExternalIdentity | None:
        # A bearer token stands for a client, not a signed-in browser
        if getattr(request, "token", None) is not None:
            return None
        user = getattr(request, "user", None)
        if user is None or not user.is_authenticated:
            return None
        return ExternalIdentity(
            provider=self.provider,
            account_id=str(user.pk),
            email=user.email,
        )

    def login_redirect(self, next_url: str) -> HttpResponseRedirect:
        return redirect_to_login(next_url)


class TrustedHeaderProvider:
    """
    Users who signed in with a social login run by a reverse proxy in
    front of us, which passes the result along in request headers.

    Only use this if that proxy strips these headers from incoming
    requests; otherwise anyone can claim to be anyone.
    """

    def authenticate(self, request: HttpRequest) -> ExternalIdentity | None:
        account_id = request.headers.get(settings.IDENTITY_ACCOUNT_HEADER)
        provider = request.headers.get(settings.IDENTITY_PROVIDER_HEADER, "")
        if not account_id:
            return None
        provider = provider.lower()
        if provider not in SOCIAL_PROVIDERS:
            logger.warning("Ignoring identity from unknown provider %r", provider)
            return None
        return ExternalIdentity(
            provider=provider,
            account_id=account_id,
            email=request.headers.get(settings.IDENTITY_EMAIL_HEADER),
        )

    def login_redirect(self, next_url: str) -> HttpResponseRedirect:
        # Our own login page can never produce these headers
        if not settings.IDENTITY_LOGIN_URL:
            raise ImproperlyConfigured(
                "IDENTITY_LOGIN_URL must be set for the header identity provider"
            )
        return redirect_to_login(
            next_url,
            login_url=settings.IDENTITY_LOGIN_URL,
            redirect_field_name=settings.IDENTITY_LOGIN_REDIRECT_FIELD,
        )


PROVIDERS: dict[str, IdentityProvider] = {
    "session": SessionProvider(),
    "header": TrustedHeaderProvider(),
}


def get_provider(key: str | None = None) -> IdentityProvider:
    key = key or settings.IDENTITY_PROVIDER
    try:
        return PROVIDERS[key]
    except KeyError:
        raise ImproperlyConfigured(f"Unknown identity provider {key!r}")

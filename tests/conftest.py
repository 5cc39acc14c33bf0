import datetime

import pytest
from django.test import Client as TestClient
from django.utils import timezone

from api import pkce
from api.models import AccessToken, AuthorizationCode, Client
from api.services import AuthorizationCodeService, ClientService, RegisteredClient
from users.models import User

REDIRECT_URI = "https://app.example/cb"

# The example from RFC 7636 appendix B
RFC_VERIFIER = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"
RFC_CHALLENGE = "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"


@pytest.fixture(autouse=True)
def _test_settings(settings):
    # Real hashers are slow on purpose; tests don't need that
    settings.PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]
    settings.OAUTH_CODE_LIFETIME = 600
    settings.OAUTH_TOKEN_LIFETIME = 3600
    settings.OAUTH_REQUIRE_PKCE = True
    settings.OAUTH_ALLOW_PLAIN_PKCE = False
    settings.OAUTH_BURN_CODE_ON_FAILURE = True
    settings.OAUTH_ALLOW_INSECURE_REDIRECTS = False
    settings.OAUTH_ISSUER = "https://auth.example.com"
    settings.IDENTITY_PROVIDER = "session"
    settings.IDENTITY_LOGIN_URL = None
    settings.IDENTITY_LOGIN_REDIRECT_FIELD = "next"


@pytest.fixture
def user(db) -> User:
    return User.objects.create(email="test@example.com")


@pytest.fixture
def other_user(db) -> User:
    return User.objects.create(email="other@example.com")


@pytest.fixture
def client_with_user(client, user):
    """
    Provides a logged-in test client
    """
    client.force_login(user)
    return client


@pytest.fixture
def registered_client(db) -> RegisteredClient:
    """
    A freshly registered OAuth client, with its one-time plaintext secret
    """
    return ClientService.register(name="Test App", redirect_uris=[REDIRECT_URI])


@pytest.fixture
def oauth_client(registered_client) -> Client:
    return registered_client.client


@pytest.fixture
def other_oauth_client(db) -> Client:
    return ClientService.register(
        name="Other App", redirect_uris=[REDIRECT_URI]
    ).client


@pytest.fixture
def verifier() -> str:
    return RFC_VERIFIER


@pytest.fixture
def authorization_code(oauth_client, user) -> AuthorizationCode:
    """
    An unconsumed code issued with the RFC 7636 example challenge
    """
    return AuthorizationCodeService.issue(
        client=oauth_client,
        user_id=user.pk,
        redirect_uri=REDIRECT_URI,
        code_challenge=RFC_CHALLENGE,
        code_challenge_method=pkce.S256,
    )


@pytest.fixture
def api_token(oauth_client, user) -> AccessToken:
    return AccessToken.objects.create(
        client=oauth_client,
        user=user,
        token="mytestapitoken",
        expires=timezone.now() + datetime.timedelta(hours=1),
    )


@pytest.fixture
def api_client(api_token):
    return TestClient(
        HTTP_AUTHORIZATION=f"Bearer {api_token.token}",
        HTTP_ACCEPT="application/json",
    )

import base64
from unittest import mock
from urllib.parse import parse_qs, quote, urlsplit

import pytest
from django.core.exceptions import ImproperlyConfigured
from django.db import DatabaseError

from api.models import AccessToken, AuthorizationCode
from api.services import AccessTokenService, ClientService
from tests.conftest import RFC_CHALLENGE, RFC_VERIFIER, REDIRECT_URI


def authorize_params(client_id, **overrides):
    params = {
        "response_type": "code",
        "client_id": client_id,
        "redirect_uri": REDIRECT_URI,
        "code_challenge": RFC_CHALLENGE,
        "code_challenge_method": "S256",
        "state": "xyz",
    }
    params.update(overrides)
    return {key: value for key, value in params.items() if value is not None}


def query_of(location):
    return {key: values[0] for key, values in parse_qs(urlsplit(location).query).items()}


def basic_auth(client_id, client_secret):
    credentials = f"{quote(client_id)}:{quote(client_secret)}".encode("utf8")
    return "Basic " + base64.b64encode(credentials).decode("ascii")


@pytest.mark.django_db
def test_authorize_unknown_client(client_with_user):
    """
    Tests a bad client_id is shown to the user, not redirected
    """
    response = client_with_user.get(
        "/oauth/authorize", authorize_params("gh-doesnotexist")
    )
    assert response.status_code == 400
    assert "Location" not in response.headers
    assert b"Invalid client_id" in response.content
    assert not AuthorizationCode.objects.exists()


@pytest.mark.django_db
def test_authorize_unregistered_redirect(client_with_user, oauth_client):
    """
    Tests we never redirect to a URI the client didn't register
    """
    response = client_with_user.get(
        "/oauth/authorize",
        authorize_params(oauth_client.client_id, redirect_uri="https://evil.example/"),
    )
    assert response.status_code == 400
    assert "Location" not in response.headers
    assert b"Invalid redirect URI" in response.content


@pytest.mark.django_db
def test_authorize_anonymous(client, oauth_client):
    """
    Tests signed out users are sent to log in, and back here afterwards
    """
    response = client.get("/oauth/authorize", authorize_params(oauth_client.client_id))
    assert response.status_code == 302
    location = response.headers["Location"]
    assert location.startswith("/auth/login/?next=")
    assert query_of(location)["next"].startswith("/oauth/authorize?")
    assert not AuthorizationCode.objects.exists()


@pytest.mark.django_db
def test_authorize(client_with_user, oauth_client, user):
    response = client_with_user.get(
        "/oauth/authorize", authorize_params(oauth_client.client_id)
    )
    assert response.status_code == 302
    location = response.headers["Location"]
    assert location.startswith(REDIRECT_URI + "?")
    params = query_of(location)
    assert params["state"] == "xyz"
    authorization_code = AuthorizationCode.objects.get(code=params["code"])
    assert authorization_code.user == user
    assert authorization_code.client == oauth_client
    assert authorization_code.code_challenge == RFC_CHALLENGE


@pytest.mark.django_db
def test_authorize_native_scheme(client_with_user, user):
    native = ClientService.register(
        name="Native", redirect_uris=["cursor://anysphere.cursor-retrieval/cb"]
    ).client
    response = client_with_user.get(
        "/oauth/authorize",
        authorize_params(
            native.client_id, redirect_uri="cursor://anysphere.cursor-retrieval/cb"
        ),
    )
    assert response.status_code == 302
    assert response.headers["Location"].startswith(
        "cursor://anysphere.cursor-retrieval/cb?code="
    )


@pytest.mark.django_db
@pytest.mark.parametrize(
    "overrides,error",
    [
        ({"response_type": "token"}, "unsupported_response_type"),
        ({"response_type": None}, "unsupported_response_type"),
        ({"code_challenge": None, "code_challenge_method": None}, "invalid_request"),
        ({"code_challenge_method": "plain"}, "invalid_request"),
    ],
)
def test_authorize_bad_request(client_with_user, oauth_client, overrides, error):
    """
    Tests errors after the client checks out are sent back to it
    """
    response = client_with_user.get(
        "/oauth/authorize", authorize_params(oauth_client.client_id, **overrides)
    )
    assert response.status_code == 302
    location = response.headers["Location"]
    assert location.startswith(REDIRECT_URI + "?")
    params = query_of(location)
    assert params["error"] == error
    assert params["state"] == "xyz"
    assert "code" not in params
    assert not AuthorizationCode.objects.exists()


@pytest.mark.django_db
def test_authorize_inactive_user(client, oauth_client, user):
    user.banned = True
    user.save()
    client.force_login(user)
    response = client.get("/oauth/authorize", authorize_params(oauth_client.client_id))
    assert response.status_code == 302
    assert response.headers["Location"].startswith("/auth/login/")


@pytest.mark.django_db
def test_token(client, authorization_code, oauth_client, user):
    response = client.post(
        "/oauth/token",
        {
            "grant_type": "authorization_code",
            "code": authorization_code.code,
            "redirect_uri": REDIRECT_URI,
            "client_id": oauth_client.client_id,
            "code_verifier": RFC_VERIFIER,
        },
    )
    assert response.status_code == 200
    assert response.headers["Cache-Control"] == "no-store"
    assert response.headers["Pragma"] == "no-cache"
    data = response.json()
    assert data["token_type"] == "bearer"
    assert data["expires_in"] == 3600
    access_token = AccessToken.objects.get(token=data["access_token"])
    assert access_token.user == user
    assert access_token.client == oauth_client


@pytest.mark.django_db
def test_token_json(client, authorization_code, oauth_client):
    response = client.post(
        "/oauth/token",
        {
            "grant_type": "authorization_code",
            "code": authorization_code.code,
            "redirect_uri": REDIRECT_URI,
            "client_id": oauth_client.client_id,
            "code_verifier": RFC_VERIFIER,
        },
        content_type="application/json",
    )
    assert response.status_code == 200
    assert "access_token" in response.json()


@pytest.mark.django_db
def test_token_replay(client, authorization_code, oauth_client):
    """
    Tests the second exchange of a code gets nothing
    """
    data = {
        "grant_type": "authorization_code",
        "code": authorization_code.code,
        "redirect_uri": REDIRECT_URI,
        "client_id": oauth_client.client_id,
        "code_verifier": RFC_VERIFIER,
    }
    assert client.post("/oauth/token", data).status_code == 200
    response = client.post("/oauth/token", data)
    assert response.status_code == 400
    assert response.json()["error"] == "invalid_grant"
    assert AccessToken.objects.count() == 1


@pytest.mark.django_db
def test_token_confidential_body(client, authorization_code, registered_client):
    response = client.post(
        "/oauth/token",
        {
            "grant_type": "authorization_code",
            "code": authorization_code.code,
            "redirect_uri": REDIRECT_URI,
            "client_id": registered_client.client.client_id,
            "client_secret": registered_client.client_secret,
            "code_verifier": RFC_VERIFIER,
        },
    )
    assert response.status_code == 200


@pytest.mark.django_db
def test_token_confidential_basic(client, authorization_code, registered_client):
    response = client.post(
        "/oauth/token",
        {
            "grant_type": "authorization_code",
            "code": authorization_code.code,
            "redirect_uri": REDIRECT_URI,
            "code_verifier": RFC_VERIFIER,
        },
        HTTP_AUTHORIZATION=basic_auth(
            registered_client.client.client_id, registered_client.client_secret
        ),
    )
    assert response.status_code == 200


@pytest.mark.django_db
def test_token_bad_secret(client, authorization_code, registered_client):
    response = client.post(
        "/oauth/token",
        {
            "grant_type": "authorization_code",
            "code": authorization_code.code,
            "redirect_uri": REDIRECT_URI,
            "code_verifier": RFC_VERIFIER,
        },
        HTTP_AUTHORIZATION=basic_auth(registered_client.client.client_id, "nope"),
    )
    assert response.status_code == 401
    assert response.json()["error"] == "invalid_client"
    assert response.headers["WWW-Authenticate"].startswith("Basic")
    # Failing client auth doesn't touch the code
    authorization_code.refresh_from_db()
    assert authorization_code.consumed is None


@pytest.mark.django_db
def test_token_unknown_client(client, authorization_code):
    response = client.post(
        "/oauth/token",
        {
            "grant_type": "authorization_code",
            "code": authorization_code.code,
            "redirect_uri": REDIRECT_URI,
            "client_id": "gh-doesnotexist",
            "code_verifier": RFC_VERIFIER,
        },
    )
    assert response.status_code == 401
    assert response.json()["error"] == "invalid_client"


@pytest.mark.django_db
def test_token_conflicting_client_ids(client, authorization_code, registered_client):
    response = client.post(
        "/oauth/token",
        {
            "grant_type": "authorization_code",
            "code": authorization_code.code,
            "redirect_uri": REDIRECT_URI,
            "client_id": "gh-someoneelse",
            "code_verifier": RFC_VERIFIER,
        },
        HTTP_AUTHORIZATION=basic_auth(
            registered_client.client.client_id, registered_client.client_secret
        ),
    )
    assert response.status_code == 400
    assert response.json()["error"] == "invalid_request"


@pytest.mark.django_db
@pytest.mark.parametrize(
    "overrides,status,error",
    [
        ({"grant_type": None}, 400, "invalid_request"),
        ({"grant_type": "refresh_token"}, 400, "unsupported_grant_type"),
        ({"grant_type": "client_credentials"}, 400, "unauthorized_client"),
        ({"grant_type": "password"}, 400, "unauthorized_client"),
        ({"code": None}, 400, "invalid_request"),
        ({"redirect_uri": None}, 400, "invalid_request"),
        ({"client_id": None}, 400, "invalid_request"),
        ({"code": "nosuchcode"}, 400, "invalid_grant"),
        ({"code_verifier": None}, 400, "invalid_grant"),
        ({"code_verifier": "x" * 43}, 400, "invalid_grant"),
        ({"redirect_uri": "https://app.example/other"}, 400, "invalid_grant"),
    ],
)
def test_token_errors(
    client, authorization_code, oauth_client, overrides, status, error
):
    data = {
        "grant_type": "authorization_code",
        "code": authorization_code.code,
        "redirect_uri": REDIRECT_URI,
        "client_id": oauth_client.client_id,
        "code_verifier": RFC_VERIFIER,
    }
    data.update(overrides)
    data = {key: value for key, value in data.items() if value is not None}
    response = client.post("/oauth/token", data)
    assert response.status_code == status
    assert response.json()["error"] == error
    assert not AccessToken.objects.exists()


@pytest.mark.django_db
def test_token_repeated_param(client, authorization_code, oauth_client):
    response = client.post(
        "/oauth/token",
        {
            "grant_type": "authorization_code",
            "code": [authorization_code.code, "another"],
            "redirect_uri": REDIRECT_URI,
            "client_id": oauth_client.client_id,
            "code_verifier": RFC_VERIFIER,
        },
    )
    assert response.status_code == 400
    assert response.json()["error"] == "invalid_request"


@pytest.mark.django_db
def test_token_bad_json(client):
    response = client.post(
        "/oauth/token", "[1, 2, 3]", content_type="application/json"
    )
    assert response.status_code == 400
    assert response.json()["error"] == "invalid_request"


@pytest.mark.django_db
def test_token_database_error(client, authorization_code, oauth_client):
    """
    Tests storage failures come back as a retryable error
    """
    with mock.patch(
        "api.services.flow.AuthorizationCodeService.consume",
        side_effect=DatabaseError("database is locked"),
    ):
        response = client.post(
            "/oauth/token",
            {
                "grant_type": "authorization_code",
                "code": authorization_code.code,
                "redirect_uri": REDIRECT_URI,
                "client_id": oauth_client.client_id,
                "code_verifier": RFC_VERIFIER,
            },
        )
    assert response.status_code == 503
    assert response.json()["error"] == "temporarily_unavailable"


@pytest.mark.django_db
def test_revoke(client, api_token):
    response = client.post("/oauth/revoke", {"token": api_token.token})
    assert response.status_code == 200
    api_token.refresh_from_db()
    assert api_token.revoked is not None


@pytest.mark.django_db
def test_revoke_unknown_token(client):
    response = client.post("/oauth/revoke", {"token": "not-a-token"})
    assert response.status_code == 200


@pytest.mark.django_db
def test_revoke_other_client(client, api_token, other_oauth_client):
    """
    Tests a client can't revoke another client's token, and can't tell
    that it failed
    """
    response = client.post(
        "/oauth/revoke",
        {"token": api_token.token, "client_id": other_oauth_client.client_id},
    )
    assert response.status_code == 200
    api_token.refresh_from_db()
    assert api_token.revoked is None


@pytest.mark.django_db
def test_revoke_missing_token(client):
    response = client.post("/oauth/revoke", {})
    assert response.status_code == 400
    assert response.json()["error"] == "invalid_request"


@pytest.mark.django_db
def test_me(api_client, api_token, oauth_client, user):
    response = api_client.get("/api/v1/me")
    assert response.status_code == 200
    data = response.json()
    assert data["client_id"] == oauth_client.client_id
    assert data["user_id"] == user.pk


@pytest.mark.django_db
def test_me_without_token(client):
    response = client.get("/api/v1/me", HTTP_ACCEPT="application/json")
    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == 'Bearer realm="gatehouse"'


@pytest.mark.django_db
def test_me_bad_token(client, api_token):
    response = client.get("/api/v1/me", HTTP_AUTHORIZATION="Bearer nope")
    assert response.status_code == 401
    assert 'error="invalid_token"' in response.headers["WWW-Authenticate"]
    assert response.json()["error"] == "invalid_token"


@pytest.mark.django_db
def test_me_revoked_token(api_client, api_token):
    AccessTokenService.revoke(api_token.token)
    assert api_client.get("/api/v1/me").status_code == 401


@pytest.mark.django_db
def test_full_flow(client, user):
    """
    Registers a client and takes it from authorization request, through
    login, to a working access token
    """
    user.set_password("hunter2hunter2")
    user.save()
    response = client.post(
        "/register",
        {"client_name": "Flow App", "redirect_uris": [REDIRECT_URI]},
        content_type="application/json",
    )
    assert response.status_code == 200
    client_id = response.json()["client_id"]

    # Not signed in yet, so we get sent to log in
    response = client.get("/oauth/authorize", authorize_params(client_id))
    assert response.status_code == 302
    next_url = query_of(response.headers["Location"])["next"]
    response = client.post(
        "/auth/login/",
        {"username": user.email, "password": "hunter2hunter2", "next": next_url},
    )
    assert response.status_code == 302
    assert response.headers["Location"] == next_url

    # Back at the authorization endpoint, now signed in
    response = client.get(next_url)
    assert response.status_code == 302
    params = query_of(response.headers["Location"])
    assert params["state"] == "xyz"

    response = client.post(
        "/oauth/token",
        {
            "grant_type": "authorization_code",
            "code": params["code"],
            "redirect_uri": REDIRECT_URI,
            "client_id": client_id,
            "code_verifier": RFC_VERIFIER,
        },
    )
    assert response.status_code == 200
    access_token = response.json()["access_token"]

    response = client.get("/api/v1/me", HTTP_AUTHORIZATION=f"Bearer {access_token}")
    assert response.status_code == 200
    assert response.json()["user_id"] == user.pk


@pytest.mark.django_db
def test_authorize_error_as_json(client):
    response = client.get(
        "/oauth/authorize",
        authorize_params("gh-doesnotexist"),
        HTTP_ACCEPT="application/json",
    )
    assert response.status_code == 400
    assert response.json()["error"] == "invalid_request"


@pytest.mark.django_db
def test_authorize_ignores_bearer_token(api_client, other_oauth_client):
    """
    Tests an access token can't stand in for a signed-in user to get codes
    for another client
    """
    response = api_client.get(
        "/oauth/authorize", authorize_params(other_oauth_client.client_id)
    )
    assert response.status_code == 302
    assert response.headers["Location"].startswith("/auth/login/?next=")
    assert not AuthorizationCode.objects.filter(client=other_oauth_client).exists()


@pytest.mark.django_db
def test_login_page_with_bearer_token(api_client):
    """
    Tests bearer tokens don't disturb the session outside the API
    """
    assert api_client.get("/auth/login/").status_code == 200


@pytest.mark.django_db
def test_authorize_anonymous_header_provider(client, oauth_client, settings):
    """
    Tests users behind a social login proxy are sent to the proxy to sign
    in, not to the local login page
    """
    settings.IDENTITY_PROVIDER = "header"
    settings.IDENTITY_LOGIN_URL = "https://proxy.example/oauth2/start"
    settings.IDENTITY_LOGIN_REDIRECT_FIELD = "rd"
    response = client.get("/oauth/authorize", authorize_params(oauth_client.client_id))
    assert response.status_code == 302
    location = response.headers["Location"]
    assert location.startswith("https://proxy.example/oauth2/start?rd=")
    assert query_of(location)["rd"].startswith("/oauth/authorize?")


@pytest.mark.django_db
def test_authorize_header_provider_signed_in(client, oauth_client, settings):
    settings.IDENTITY_PROVIDER = "header"
    settings.IDENTITY_LOGIN_URL = "https://proxy.example/oauth2/start"
    response = client.get(
        "/oauth/authorize",
        authorize_params(oauth_client.client_id),
        HTTP_X_AUTHENTICATED_ACCOUNT="1234",
        HTTP_X_AUTHENTICATED_PROVIDER="github",
        HTTP_X_AUTHENTICATED_EMAIL="gh@example.com",
    )
    assert response.status_code == 302
    assert "code" in query_of(response.headers["Location"])


@pytest.mark.django_db
def test_authorize_header_provider_needs_login_url(client, oauth_client, settings):
    settings.IDENTITY_PROVIDER = "header"
    with pytest.raises(ImproperlyConfigured):
        client.get("/oauth/authorize", authorize_params(oauth_client.client_id))

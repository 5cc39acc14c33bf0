import enum
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from api.exceptions import (
    ClientNotFound,
    InvalidClient,
    InvalidRedirectUri,
    InvalidRequest,
    UnauthorizedClient,
    UnsupportedGrantType,
    UnsupportedResponseType,
)
from api.models import AccessToken, AuthorizationCode, Client
from api.services.clients import ClientService
from api.services.codes import AuthorizationCodeService
from api.services.tokens import AccessTokenService

logger = logging.getLogger(__name__)

# Grants that exist, but that no client here may use
REFUSED_GRANT_TYPES = {"client_credentials", "password", "implicit"}


def add_query_params(uri: str, **params: str | None) -> str:
    """
    Appends parameters to a URI's query string, keeping anything already
    there. None values are skipped.
    """
    parts = urlsplit(uri)
    query = parse_qsl(parts.query, keep_blank_values=True)
    query.extend((key, value) for key, value in params.items() if value is not None)
    return urlunsplit(parts._replace(query=urlencode(query)))


@dataclass
class AuthorizationRequest:
    """
    The parameters a client sends to the authorization endpoint
    """

    client_id: str | None = None
    redirect_uri: str | None = None
    response_type: str | None = None
    code_challenge: str | None = None
    code_challenge_method: str | None = None
    state: str | None = None

    @classmethod
    def from_params(cls, params: Mapping) -> "AuthorizationRequest":
        return cls(
            client_id=params.get("client_id") or None,
            redirect_uri=params.get("redirect_uri") or None,
            response_type=params.get("response_type") or None,
            code_challenge=params.get("code_challenge") or None,
            code_challenge_method=params.get("code_challenge_method") or None,
            state=params.get("state"),
        )


class AuthorizationFlow:
    """
    Walks one authorization request through to an issued code:

    START -> (AWAITING_LOGIN) -> AUTHENTICATED -> CODE_ISSUED

    Waiting for login stores nothing; if the user never comes back there
    is nothing to clean up.
    """

    class States(str, enum.Enum):
        start = "start"
        awaiting_login = "awaiting_login"
        authenticated = "authenticated"
        code_issued = "code_issued"

    def __init__(self, request: AuthorizationRequest):
        self.request = request
        self.state = self.States.start
        self.client: Client | None = None

    def check_client(self) -> Client:
        """
        Makes sure the client exists and the redirect URI is one it
        registered. Until this passes, errors must be shown to the user
        directly rather than redirected anywhere.
        """
        self.client = ClientService.lookup(self.request.client_id)
        if not self.client.has_redirect_uri(self.request.redirect_uri):
            logger.info(
                "Unregistered redirect URI in request from %s", self.client.client_id
            )
            raise InvalidRedirectUri()
        return self.client

    def check_request(self):
        """
        Validates the rest of the request. Errors from here can be sent back
        to the (now trusted) redirect URI.
        """
        if self.request.response_type != "code":
            raise UnsupportedResponseType()
        AuthorizationCodeService.check_challenge(
            self.request.code_challenge,
            self.request.code_challenge_method,
        )

    def authorize(self, user_id: int | None) -> AuthorizationCode | None:
        """
        Issues a code for the signed-in user, or returns None (and moves to
        AWAITING_LOGIN) if nobody is signed in yet.
        """
        if self.client is None:
            self.check_client()
        self.check_request()
        if user_id is None:
            self.state = self.States.awaiting_login
            return None
        self.state = self.States.authenticated
        authorization_code = AuthorizationCodeService.issue(
            client=self.client,
            user_id=user_id,
            redirect_uri=self.request.redirect_uri,
            code_challenge=self.request.code_challenge,
            code_challenge_method=self.request.code_challenge_method,
        )
        self.state = self.States.code_issued
        return authorization_code

    def success_uri(self, authorization_code: AuthorizationCode) -> str:
        return add_query_params(
            authorization_code.redirect_uri,
            code=authorization_code.code,
            state=self.request.state,
        )

    def error_uri(self, error) -> str:
        if self.client is None:
            raise ValueError("Cannot redirect an error before the client is checked")
        return add_query_params(
            self.request.redirect_uri,
            error=error.error,
            error_description=error.description,
            state=self.request.state,
        )

    @classmethod
    def exchange(
        cls,
        grant_type: str | None,
        code: str | None,
        redirect_uri: str | None,
        client_id: str | None,
        client_secret: str | None = None,
        code_verifier: str | None = None,
    ) -> AccessToken:
        """
        The token endpoint: turns a code into an access token.
        """
        if not grant_type:
            raise InvalidRequest("Required param : grant_type")
        if grant_type in REFUSED_GRANT_TYPES:
            raise UnauthorizedClient()
        if grant_type != "authorization_code":
            raise UnsupportedGrantType()
        for name, value in [
            ("code", code),
            ("redirect_uri", redirect_uri),
            ("client_id", client_id),
        ]:
            if not value:
                raise InvalidRequest(f"Required param : {name}")
        # Confidential clients prove who they are; public ones rely on PKCE
        if client_secret:
            client = ClientService.authenticate(client_id, client_secret)
            confidential = True
        else:
            try:
                client = ClientService.lookup(client_id)
            except ClientNotFound:
                raise InvalidClient()
            confidential = False
        user_id = AuthorizationCodeService.consume(
            code,
            client_id=client.client_id,
            redirect_uri=redirect_uri,
            code_verifier=code_verifier,
            confidential=confidential,
        )
        return AccessTokenService.issue(client, user_id)

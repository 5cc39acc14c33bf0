class OAuthError(Exception):
    """
    A problem with an OAuth request that should be shown to the caller.

    `error` is the RFC 6749 error code; `description` is safe to show to
    the caller and never contains secrets.
    """

    error = "server_error"
    status = 400
    description = "The request could not be processed"

    def __init__(self, description: str | None = None):
        if description is not None:
            self.description = description
        super().__init__(self.description)

    def to_json(self) -> dict[str, str]:
        return {"error": self.error, "error_description": self.description}


class ValidationError(OAuthError):
    """
    Registration input is missing or malformed
    """

    error = "invalid_client_metadata"
    description = "Invalid client metadata"


class InvalidRequest(OAuthError):
    error = "invalid_request"
    description = "The request is missing a parameter or is malformed"


class InvalidRedirectUri(OAuthError):
    """
    The redirect URI isn't one the client registered. This must never be
    delivered by redirecting to that URI.
    """

    error = "invalid_request"
    description = "Invalid redirect URI"


class ClientNotFound(OAuthError):
    """
    There's no client with that client_id. Like InvalidRedirectUri, this is
    shown directly as we have no trusted place to redirect to.
    """

    error = "invalid_request"
    description = "Invalid client_id"


class InvalidGrant(OAuthError):
    """
    The authorization code is unknown, consumed, expired, issued to
    someone else, or failed PKCE. Deliberately one opaque message for all
    of them.
    """

    error = "invalid_grant"
    description = "The authorization code is invalid"


class ExpiredGrant(InvalidGrant):
    pass


class InvalidClient(OAuthError):
    error = "invalid_client"
    status = 401
    description = "Client authentication failed"


class UnauthorizedClient(OAuthError):
    error = "unauthorized_client"
    description = "The client is not allowed to use this grant"


class UnsupportedGrantType(OAuthError):
    error = "unsupported_grant_type"
    description = "Only the authorization_code grant is supported"


class UnsupportedResponseType(OAuthError):
    error = "unsupported_response_type"
    description = "Only the code response type is supported"


class InvalidToken(OAuthError):
    error = "invalid_token"
    status = 401
    description = "The access token is invalid or has expired"


class PersistenceFailure(OAuthError):
    """
    The database was unavailable or too slow. Nothing was written.
    """

    error = "temporarily_unavailable"
    status = 503
    description = "The server is temporarily unavailable, please retry"

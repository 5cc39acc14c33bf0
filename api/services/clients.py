import logging
from typing import NamedTuple
from urllib.parse import urlsplit

from django.conf import settings
from django.contrib.auth.hashers import make_password

from api.exceptions import ClientNotFound, InvalidClient, ValidationError
from api.models import Client

logger = logging.getLogger(__name__)

LOOPBACK_HOSTS = {"localhost", "127.0.0.1", "::1"}

# Schemes that can run code or read local files in the user agent
FORBIDDEN_SCHEMES = {"javascript", "data", "file", "vbscript", "about", "blob"}


class RegisteredClient(NamedTuple):
    client: Client
    client_secret: str


def validate_redirect_uri(uri) -> str:
    """
    Checks a redirect URI is absolute and somewhere it's safe to send
    codes to: https, http to a loopback address, or a native app's own
    scheme. Raises ValidationError otherwise.
    """
    if not isinstance(uri, str) or not uri:
        raise ValidationError("Redirect URIs must be non-empty strings")
    if any(char.isspace() for char in uri):
        raise ValidationError("Redirect URIs must not contain whitespace")
    try:
        parts = urlsplit(uri)
        # Accessing port validates it
        parts.port
    except ValueError:
        raise ValidationError("Malformed redirect URI")
    scheme = parts.scheme.lower()
    if not scheme:
        raise ValidationError("Redirect URIs must be absolute")
    if "#" in uri:
        raise ValidationError("Redirect URIs must not contain a fragment")
    if scheme in ("http", "https"):
        if not parts.hostname:
            raise ValidationError("Redirect URIs must have a host")
        if (
            scheme == "http"
            and parts.hostname not in LOOPBACK_HOSTS
            and not settings.OAUTH_ALLOW_INSECURE_REDIRECTS
        ):
            raise ValidationError("Redirect URIs must use https unless on localhost")
    elif scheme in FORBIDDEN_SCHEMES:
        raise ValidationError(f"Redirect URIs cannot use the {scheme} scheme")
    elif not (parts.netloc or parts.path):
        raise ValidationError("Malformed redirect URI")
    return uri


class ClientService:
    """
    Registration, lookup and authentication of OAuth clients
    """

    @classmethod
    def register(
        cls,
        name,
        redirect_uris,
        user=None,
    ) -> RegisteredClient:
        """
        Registers a new client. The returned secret is the only copy of it
        that will ever exist in plaintext.
        """
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("client_name is required")
        if len(name) > 500:
            raise ValidationError("client_name is too long")
        if not isinstance(redirect_uris, (list, tuple)) or not redirect_uris:
            raise ValidationError("redirect_uris must be a non-empty list")
        uris: list[str] = []
        for uri in redirect_uris:
            validate_redirect_uri(uri)
            if uri not in uris:
                uris.append(uri)
        client, client_secret = Client.create(
            name=name.strip(),
            redirect_uris=uris,
            user=user,
        )
        logger.info(
            "Registered client %s (%s) for %s",
            client.client_id,
            client.name,
            f"user {user.pk}" if user else "anonymous",
        )
        return RegisteredClient(client, client_secret)

    @classmethod
    def lookup(cls, client_id) -> Client:
        if not isinstance(client_id, str) or not client_id:
            raise ClientNotFound()
        try:
            return Client.objects.get(client_id=client_id)
        except Client.DoesNotExist:
            raise ClientNotFound()

    @classmethod
    def authenticate(cls, client_id, client_secret) -> Client:
        """
        Checks a client's credentials, for confidential clients.
        """
        if not isinstance(client_secret, str) or not client_secret:
            raise InvalidClient()
        try:
            client = cls.lookup(client_id)
        except ClientNotFound:
            # Hash anyway so the response time doesn't say whether the
            # client exists
            make_password(client_secret)
            raise InvalidClient()
        if not client.check_secret(client_secret):
            logger.info("Bad client secret for %s", client.client_id)
            raise InvalidClient()
        return client

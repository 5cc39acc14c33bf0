import base64
import hashlib
import hmac
import re

from django.conf import settings

S256 = "S256"
PLAIN = "plain"

# RFC 7636 section 4.1
VERIFIER_RE = re.compile(r"^[A-Za-z0-9\-._~]{43,128}$")


def s256_challenge(code_verifier: str) -> str:
    """
    BASE64URL(SHA256(ASCII(code_verifier))), without padding
    """
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def supported_methods() -> list[str]:
    if settings.OAUTH_ALLOW_PLAIN_PKCE:
        return [S256, PLAIN]
    return [S256]


def is_supported_method(method: str | None) -> bool:
    return method in supported_methods()


def verify(
    code_challenge: str | None,
    code_challenge_method: str | None,
    code_verifier: str | None,
) -> bool:
    """
    Checks a code_verifier against the challenge stored at authorization
    time. Fails closed: anything odd (unknown method, malformed verifier,
    wrong types) is just False.
    """
    if not isinstance(code_challenge, str) or not isinstance(code_verifier, str):
        return False
    if not code_challenge or not VERIFIER_RE.match(code_verifier):
        return False
    if code_challenge_method == S256:
        expected = s256_challenge(code_verifier)
    elif code_challenge_method == PLAIN and settings.OAUTH_ALLOW_PLAIN_PKCE:
        expected = code_verifier
    else:
        return False
    return hmac.compare_digest(
        expected.encode("ascii"), code_challenge.encode("utf8", "replace")
    )

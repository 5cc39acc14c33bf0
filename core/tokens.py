import secrets

#: 256 bits, enough that two values never collide in practice.
DEFAULT_SECRET_BYTES = 32


def generate_secret(byte_length: int = DEFAULT_SECRET_BYTES) -> str:
    """
    Returns a new unguessable, URL- and header-safe random string drawn
    from the OS's cryptographic random source. Used for client
    credentials, authorization codes and access tokens.
    """
    if byte_length < 16:
        raise ValueError("Secrets need at least 16 bytes of entropy")
    return secrets.token_urlsafe(byte_length)

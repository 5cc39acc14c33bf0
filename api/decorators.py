from functools import wraps

from django.http import JsonResponse

from api.exceptions import InvalidToken


def invalid_token_response(error: InvalidToken | None = None) -> JsonResponse:
    """
    A 401 with the WWW-Authenticate challenge RFC 6750 asks for. With no
    error, the request simply didn't try to authenticate.
    """
    if error is None:
        response = JsonResponse(
            {"error": "invalid_token", "error_description": "Token required"},
            status=401,
        )
        response.headers["WWW-Authenticate"] = 'Bearer realm="gatehouse"'
    else:
        response = JsonResponse(error.to_json(), status=401)
        response.headers["WWW-Authenticate"] = (
            f'Bearer realm="gatehouse", error="{error.error}"'
        )
    return response


def token_required(function):
    """
    Makes sure the request came with a valid access token.
    """

    @wraps(function)
    def inner(request, *args, **kwargs):
        if not getattr(request, "token", None):
            return invalid_token_response(getattr(request, "token_error", None))
        return function(request, *args, **kwargs)

    # This is for the API only
    inner.csrf_exempt = True  # type:ignore

    return inner

from django.db import DatabaseError
from django.http import JsonResponse

from api.exceptions import InvalidToken, PersistenceFailure
from api.services import AccessTokenService
from core.exceptions import capture_exception

# Only the resource API accepts bearer tokens; browser-facing pages
# (authorize, login) must never treat one as a signed-in user.
API_PATH_PREFIX = "/api/"


class ApiTokenMiddleware:
    """
    Adds request.user and request.token if a valid bearer token appears on
    an API request. Also nukes request.session so it can't be used
    accidentally.

    Invalid tokens don't fail the request here; they leave request.token
    empty and request.token_error set, and endpoints that need a token
    refuse it.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request.token = None
        request.token_error = None
        if not request.path.startswith(API_PATH_PREFIX):
            return self.get_response(request)
        auth_header = request.headers.get("authorization", None)
        if auth_header and auth_header[:7].lower() == "bearer ":
            try:
                token = AccessTokenService.validate(auth_header[7:].strip())
            except InvalidToken as error:
                request.token_error = error
            except DatabaseError as error:
                capture_exception(error)
                failure = PersistenceFailure()
                return JsonResponse(failure.to_json(), status=failure.status)
            else:
                request.user = token.user
                request.token = token
                request.session = None
        response = self.get_response(request)
        return response

import base64
import binascii
import logging
from urllib.parse import unquote, urlparse

from django.db import DatabaseError
from django.http import HttpResponse, HttpResponseRedirect, JsonResponse
from django.shortcuts import render
from django.utils.decorators import method_decorator
from django.views.decorators.csrf import csrf_exempt
from django.views.generic import View

from api.exceptions import (
    ClientNotFound,
    InvalidClient,
    InvalidRequest,
    OAuthError,
    PersistenceFailure,
)
from api.parser import FormOrJsonParser, single_value
from api.services import (
    AccessTokenService,
    AuthorizationFlow,
    AuthorizationRequest,
    ClientService,
)
from core.exceptions import capture_exception
from users.services import get_authenticated_user_id, login_redirect

logger = logging.getLogger(__name__)


class OauthRedirect(HttpResponseRedirect):
    def __init__(self, redirect_uri: str):
        # Native apps register their own schemes
        self.allowed_schemes = [urlparse(redirect_uri).scheme]
        super().__init__(redirect_uri)


def oauth_error_response(error: OAuthError) -> JsonResponse:
    response = JsonResponse(error.to_json(), status=error.status)
    if isinstance(error, InvalidClient):
        response.headers["WWW-Authenticate"] = 'Basic realm="gatehouse"'
    return response


def extract_client_info_from_basic_auth(request) -> tuple[str | None, str | None]:
    if "authorization" in request.headers:
        auth = request.headers["authorization"].split()
        if len(auth) == 2 and auth[0].lower() == "basic":
            try:
                decoded = base64.b64decode(auth[1], validate=True).decode("utf8")
            except (binascii.Error, UnicodeDecodeError):
                raise InvalidClient()
            if ":" not in decoded:
                raise InvalidClient()
            client_id, client_secret = decoded.split(":", 1)
            # RFC 6749 section 2.3.1 form-encodes both before joining
            return unquote(client_id), unquote(client_secret)
    return None, None


def client_credentials(request, post_data: dict) -> tuple[str | None, str | None]:
    """
    Works out the client id and (optional) secret from HTTP Basic auth or
    the request body.
    """
    auth_client_id, auth_client_secret = extract_client_info_from_basic_auth(request)
    client_id = single_value(post_data, "client_id")
    client_secret = single_value(post_data, "client_secret")
    if auth_client_id is not None:
        if client_id and client_id != auth_client_id:
            raise InvalidRequest("client_id does not match the authenticated client")
        if client_secret:
            raise InvalidRequest("Only one client authentication method may be used")
        return auth_client_id, auth_client_secret
    return client_id, client_secret


def authorization_error_page(request, error: OAuthError):
    if getattr(request, "wants_json", False):
        return JsonResponse(error.to_json(), status=error.status)
    return render(
        request,
        "api/oauth_error.html",
        {"error": error.description},
        status=error.status,
    )


class AuthorizationView(View):
    """
    Starts (or resumes, after login) an authorization request, and sends
    the user back to the client with a code.

    Until the client and redirect URI check out, errors are shown here
    rather than redirected, so this can't be used as an open redirect.
    """

    def get(self, request):
        flow = AuthorizationFlow(AuthorizationRequest.from_params(request.GET))
        try:
            flow.check_client()
        except OAuthError as error:
            return authorization_error_page(request, error)
        except DatabaseError as error:
            capture_exception(error)
            return authorization_error_page(request, PersistenceFailure())
        try:
            authorization_code = flow.authorize(get_authenticated_user_id(request))
        except OAuthError as error:
            return OauthRedirect(flow.error_uri(error))
        except DatabaseError as error:
            capture_exception(error)
            return OauthRedirect(flow.error_uri(PersistenceFailure()))
        if authorization_code is None:
            # Come back here once they've signed in
            return login_redirect(request)
        return OauthRedirect(flow.success_uri(authorization_code))


@method_decorator(csrf_exempt, name="dispatch")
class TokenView(View):
    def post(self, request):
        try:
            post_data = FormOrJsonParser().parse_body(request)
            client_id, client_secret = client_credentials(request, post_data)
            access_token = AuthorizationFlow.exchange(
                grant_type=single_value(post_data, "grant_type"),
                code=single_value(post_data, "code"),
                redirect_uri=single_value(post_data, "redirect_uri"),
                client_id=client_id,
                client_secret=client_secret,
                code_verifier=single_value(post_data, "code_verifier"),
            )
        except OAuthError as error:
            return oauth_error_response(error)
        except DatabaseError as error:
            capture_exception(error)
            return oauth_error_response(PersistenceFailure())
        return JsonResponse(
            {
                "access_token": access_token.token,
                "token_type": "bearer",
                "expires_in": access_token.expires_in(),
            },
            headers={"Cache-Control": "no-store", "Pragma": "no-cache"},
        )


@method_decorator(csrf_exempt, name="dispatch")
class RevokeTokenView(View):
    """
    Token revocation (RFC 7009). Unknown tokens are not an error, so this
    can't be used to probe for valid ones.
    """

    def post(self, request):
        try:
            post_data = FormOrJsonParser().parse_body(request)
            token = single_value(post_data, "token")
            if not token:
                raise InvalidRequest("Required param : token")
            client_id, client_secret = client_credentials(request, post_data)
            client = None
            if client_secret:
                client = ClientService.authenticate(client_id, client_secret)
            elif client_id:
                try:
                    client = ClientService.lookup(client_id)
                except ClientNotFound:
                    raise InvalidClient()
            AccessTokenService.revoke(token, client=client)
        except OAuthError as error:
            return oauth_error_response(error)
        except DatabaseError as error:
            capture_exception(error)
            return oauth_error_response(PersistenceFailure())
        return HttpResponse("")

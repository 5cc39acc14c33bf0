import logging

from django.db import DatabaseError
from django.http import JsonResponse
from django.utils.decorators import method_decorator
from django.views.decorators.csrf import csrf_exempt
from django.views.generic import View
from hatchway import api_view

from api import schemas
from api.decorators import token_required
from api.exceptions import InvalidRequest, OAuthError, ValidationError
from api.parser import FormOrJsonParser
from api.services import ClientService
from core.exceptions import capture_exception

logger = logging.getLogger(__name__)


@method_decorator(csrf_exempt, name="dispatch")
class RegisterView(View):
    """
    Dynamic client registration. Anyone may register; if they happen to be
    signed in, the client is recorded as theirs.
    """

    http_method_names = ["post", "options"]

    def post(self, request):
        try:
            try:
                post_data = FormOrJsonParser().parse_body(request)
            except InvalidRequest as error:
                raise ValidationError(error.description)
            redirect_uris = post_data.get("redirect_uris")
            # Form posts with a single URI give us a bare string
            if isinstance(redirect_uris, str):
                redirect_uris = [redirect_uris]
            user = getattr(request, "user", None)
            registered = ClientService.register(
                name=post_data.get("client_name"),
                redirect_uris=redirect_uris,
                user=user if user is not None and user.is_authenticated else None,
            )
        except OAuthError as error:
            return JsonResponse(error.to_json(), status=error.status)
        except DatabaseError as error:
            capture_exception(error)
            return JsonResponse(
                {"error": "server_error", "error_description": "Error creating client"},
                status=500,
            )
        return JsonResponse(
            schemas.RegisteredClient.from_registered(registered).dict(),
            headers={"Cache-Control": "no-store"},
        )


@token_required
@api_view.get
def verify_credentials(request) -> schemas.Client:
    return schemas.Client.from_orm(request.token.client)

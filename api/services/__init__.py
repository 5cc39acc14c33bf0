from .clients import ClientService, RegisteredClient, validate_redirect_uri  # noqa
from .codes import AuthorizationCodeService  # noqa
from .flow import AuthorizationFlow, AuthorizationRequest, add_query_params  # noqa
from .tokens import AccessTokenService  # noqa

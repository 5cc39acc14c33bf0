from django.conf import settings
from django.http import JsonResponse
from django.views.generic import View

from api import pkce

CLIENT_AUTH_METHODS = ["client_secret_post", "client_secret_basic", "none"]


class AuthorizationServerMetadata(View):
    """
    OAuth 2.0 Authorization Server Metadata (RFC 8414), which MCP clients
    use to find everything else.
    """

    def get(self, request):
        issuer = (settings.OAUTH_ISSUER or request.build_absolute_uri("/")).rstrip("/")
        return JsonResponse(
            {
                "issuer": issuer,
                "authorization_endpoint": f"{issuer}/oauth/authorize",
                "token_endpoint": f"{issuer}/oauth/token",
                "registration_endpoint": f"{issuer}/oauth/register",
                "revocation_endpoint": f"{issuer}/oauth/revoke",
                "response_types_supported": ["code"],
                "grant_types_supported": ["authorization_code"],
                "token_endpoint_auth_methods_supported": CLIENT_AUTH_METHODS,
                "revocation_endpoint_auth_methods_supported": CLIENT_AUTH_METHODS,
                "code_challenge_methods_supported": pkce.supported_methods(),
            }
        )

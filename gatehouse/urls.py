from django.contrib import admin as djadmin
from django.urls import include, path

from api.views import apps, metadata, oauth
from users.views import auth

urlpatterns = [
    # Authentication
    path("auth/login/", auth.Login.as_view(), name="login"),
    path("auth/logout/", auth.Logout.as_view(), name="logout"),
    # API/Oauth
    path("api/", include("api.urls")),
    path("oauth/authorize", oauth.AuthorizationView.as_view()),
    path("oauth/token", oauth.TokenView.as_view()),
    path("oauth/revoke", oauth.RevokeTokenView.as_view()),
    path("oauth/register", apps.RegisterView.as_view()),
    # MCP clients register against /register by default
    path("register", apps.RegisterView.as_view()),
    # Well-known endpoints
    path(
        ".well-known/oauth-authorization-server",
        metadata.AuthorizationServerMetadata.as_view(),
    ),
    # Django admin
    path("djadmin/", djadmin.site.urls),
]

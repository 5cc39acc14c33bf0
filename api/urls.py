from django.urls import path

from api.views import accounts, apps

urlpatterns = [
    # Accounts
    path("v1/me", accounts.me),
    # Apps
    path("v1/apps/verify_credentials", apps.verify_credentials),
]

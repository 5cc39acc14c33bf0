from django.contrib import admin

from api.models import AccessToken, AuthorizationCode, Client


@admin.register(Client)
class ClientAdmin(admin.ModelAdmin):
    list_display = ["id", "name", "client_id", "user", "created"]
    search_fields = ["name", "client_id"]
    raw_id_fields = ["user"]
    exclude = ["client_secret_hash"]
    readonly_fields = ["client_id"]


@admin.register(AuthorizationCode)
class AuthorizationCodeAdmin(admin.ModelAdmin):
    list_display = ["id", "client", "user", "created", "expires", "consumed"]
    raw_id_fields = ["client", "user"]
    exclude = ["code"]

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(AccessToken)
class AccessTokenAdmin(admin.ModelAdmin):
    list_display = ["id", "client", "user", "created", "expires", "revoked"]
    raw_id_fields = ["client", "user"]
    exclude = ["token"]

    def has_add_permission(self, request, obj=None):
        return False

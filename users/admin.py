from django.contrib import admin

from users.models import ExternalAccount, User


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ["email", "created", "last_seen", "admin", "banned"]
    search_fields = ["email"]
    list_filter = ("admin", "banned")


@admin.register(ExternalAccount)
class ExternalAccountAdmin(admin.ModelAdmin):
    list_display = ["id", "provider", "account_id", "user", "last_used"]
    list_filter = ("provider",)
    search_fields = ["account_id", "user__email"]
    raw_id_fields = ["user"]

from django.contrib.auth.forms import AuthenticationForm
from django.contrib.auth.views import LoginView, LogoutView
from django.utils.translation import gettext_lazy as _


class Login(LoginView):
    """
    Local email/password sign in. Authorization requests that need a user
    land here with ?next= pointing back at them.
    """

    class form_class(AuthenticationForm):
        error_messages = {
            "invalid_login": _("No account was found with that email and password."),
            "inactive": _("This account is inactive."),
        }

    template_name = "auth/login.html"
    redirect_authenticated_user = True


class Logout(LogoutView):
    pass

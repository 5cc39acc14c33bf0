from django.http import HttpRequest, HttpResponseRedirect

from users.providers import get_provider
from users.services.user import UserService


def get_authenticated_user_id(request: HttpRequest) -> int | None:
    """
    Returns the id of the user signed in on this request, or None if
    nobody is (in which case the caller should send them to log in).
    """
    identity = get_provider().authenticate(request)
    if identity is None:
        return None
    user = UserService.for_identity(identity)
    if user is None or not user.is_active:
        return None
    return user.pk


def login_redirect(request: HttpRequest) -> HttpResponseRedirect:
    """
    Sends the user off to sign in with the configured provider, coming
    back to this same URL afterwards.
    """
    return get_provider().login_redirect(request.get_full_path())

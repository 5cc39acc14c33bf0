from .identity import get_authenticated_user_id, login_redirect  # noqa
from .user import UserService  # noqa

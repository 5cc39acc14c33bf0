from .external_account import ExternalAccount  # noqa
from .user import User, UserManager  # noqa

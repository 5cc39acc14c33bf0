from .access_token import AccessToken  # noqa
from .authorization_code import AuthorizationCode  # noqa
from .client import Client  # noqa

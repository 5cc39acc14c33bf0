import datetime

from hatchway import Field, Schema

from api import models as api_models
from api.services import RegisteredClient as RegisteredClientResult


class Client(Schema):
    client_id: str
    client_name: str = Field(alias="name")
    redirect_uris: list[str]


class RegisteredClient(Client):
    client_secret: str
    client_id_issued_at: int
    client_secret_expires_at: int = 0
    grant_types: list[str] = ["authorization_code"]
    response_types: list[str] = ["code"]
    token_endpoint_auth_method: str = "client_secret_post"

    @classmethod
    def from_registered(cls, registered: RegisteredClientResult) -> "RegisteredClient":
        client = registered.client
        return cls(
            client_id=client.client_id,
            name=client.name,
            redirect_uris=client.redirect_uris,
            client_secret=registered.client_secret,
            client_id_issued_at=int(client.created.timestamp()),
        )


class TokenInfo(Schema):
    client_id: str
    user_id: int
    expires: datetime.datetime

    @classmethod
    def from_token(cls, token: api_models.AccessToken) -> "TokenInfo":
        return cls(
            client_id=token.client.client_id,
            user_id=token.user_id,
            expires=token.expires,
        )

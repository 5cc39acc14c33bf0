from hatchway import api_view

from api import schemas
from api.decorators import token_required


@token_required
@api_view.get
def me(request) -> schemas.TokenInfo:
    """
    The protected resource: who the presented token acts for.
    """
    return schemas.TokenInfo.from_token(request.token)

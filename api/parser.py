import json

from api.exceptions import InvalidRequest


class FormOrJsonParser:
    """
    If there's form data in a request, makes it into a JSON dict.
    This is needed as OAuth clients send form data (as the RFCs say) OR a
    JSON body.
    """

    def parse_body(self, request) -> dict:
        # Did they submit JSON?
        if request.content_type == "application/json" and request.body.strip():
            try:
                value = json.loads(request.body)
            except ValueError:
                raise InvalidRequest("Malformed JSON body")
            if not isinstance(value, dict):
                raise InvalidRequest("JSON body must be an object")
            return value
        # Fall back to form data, keeping repeated keys as lists
        value = {}
        for key, items in request.POST.lists():
            value[key] = items if len(items) > 1 else items[0]
        return value


def single_value(data: dict, name: str) -> str | None:
    """
    Pulls out a parameter that must appear at most once, as a string.
    """
    value = data.get(name)
    if value is None or isinstance(value, str):
        return value
    raise InvalidRequest(f"Invalid param : {name}")

from flask import request


def json_object():
    """
    Request body as a dict. An empty or unparseable body reads as {};
    any other JSON value (list, string, number) returns None.
    """
    data = request.get_json(force=True, silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        return None
    return data


def text_field(data: dict, key: str):
    """
    Stripped string value of `key` ("" when missing or null).
    Returns None when the value is present but not a string.
    """
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        return None
    return value.strip()

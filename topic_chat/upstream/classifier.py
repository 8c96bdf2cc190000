import json
import re

DECOMMISSIONED_CODE = re.compile(r"model_decommissioned", re.IGNORECASE)
DECOMMISSIONED_PHRASE = re.compile(r"decommissioned", re.IGNORECASE)


def is_decommissioned_payload(payload_text) -> bool:
    """
    Decide whether an upstream error body says the model was retired.

    A body that parses as JSON is judged only by its ``error.code`` and
    ``error.message`` fields; any other shape is not a decommission. Only a
    body that fails to parse falls back to a raw substring match. Never
    raises.
    """
    text = "" if payload_text is None else str(payload_text)
    try:
        payload = json.loads(text)
    except (ValueError, TypeError, RecursionError):
        return bool(DECOMMISSIONED_PHRASE.search(text))

    if not isinstance(payload, dict):
        return False
    error = payload.get("error")
    if not isinstance(error, dict):
        return False

    code = error.get("code") or ""
    message = error.get("message") or ""
    return bool(
        DECOMMISSIONED_CODE.search(str(code))
        or DECOMMISSIONED_PHRASE.search(str(message))
    )

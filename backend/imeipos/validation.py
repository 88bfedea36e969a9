from __future__ import annotations
from datetime import datetime
from imeipos.time_utils import parse_iso_datetime

from typing import Any

from .errors import PayloadError


# Upper bound for any single money amount (VND); guards against overflow
# and obviously wrong input.
MAX_AMOUNT = 999_999_999_999


def coerce_int(value: Any, field: str) -> int:
    """
    Strict integer coercion for JSON input.

    Rejects bools, floats, decimals and scientific notation so that money
    amounts never lose precision on the way in.
    """
    if isinstance(value, bool):
        raise PayloadError(f"{field} must be an integer", {"field": field})
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise PayloadError(f"{field} must be an integer", {"field": field})
        if "e" in stripped.lower():
            raise PayloadError(f"{field} must be a plain integer (scientific notation not allowed)", {"field": field})
        if "." in stripped:
            raise PayloadError(f"{field} must be an integer (no decimals)", {"field": field})
        try:
            return int(stripped)
        except ValueError:
            raise PayloadError(f"{field} must be an integer", {"field": field})
    if isinstance(value, float):
        raise PayloadError(f"{field} must be an integer, not a decimal", {"field": field})
    raise PayloadError(f"{field} must be an integer", {"field": field})


def require_field(payload: dict, field: str) -> Any:
    if field not in payload or payload[field] is None:
        raise PayloadError(f"{field} is required", {"field": field})
    return payload[field]


def require_int(payload: dict, field: str) -> int:
    return coerce_int(require_field(payload, field), field)


def optional_int(payload: dict, field: str, default: int | None = None) -> int | None:
    value = payload.get(field)
    if value is None or value == "":
        return default
    return coerce_int(value, field)


def optional_str(payload: dict, field: str, default: str | None = None) -> str | None:
    value = payload.get(field)
    if value is None:
        return default
    if not isinstance(value, str):
        raise PayloadError(f"{field} must be a string", {"field": field})
    stripped = value.strip()
    return stripped or default


def require_str(payload: dict, field: str) -> str:
    value = optional_str(payload, field)
    if not value:
        raise PayloadError(f"{field} is required", {"field": field})
    return value


def optional_datetime(payload: dict, field: str) -> datetime | None:
    value = payload.get(field)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise PayloadError(f"{field} must be an ISO-8601 datetime", {"field": field})
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise PayloadError(f"{field} must be an ISO-8601 datetime", {"field": field})


def require_list(payload: dict, field: str) -> list:
    value = require_field(payload, field)
    if not isinstance(value, list):
        raise PayloadError(f"{field} must be a list", {"field": field})
    return value


def json_object(payload: Any) -> dict:
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise PayloadError("Invalid JSON payload")
    return payload

"""Opaque keyset cursors, decoded against the current ranking mode."""
import base64
import binascii
import json
from datetime import datetime
from typing import Any

from .db import as_utc
from .errors import invalid_cursor
from .models import MAX_ID
from .ranking import FLAG, IDENTITY, TIER, TIMESTAMP, KeyTuple, RankKey, RankingMode
from .trust import TRUST_TIERS


def _dump_value(key: RankKey, value: Any) -> Any:
    if key.kind == TIMESTAMP:
        return as_utc(value).isoformat()
    if key.kind == FLAG:
        return bool(value)
    return int(value)


def _load_value(key: RankKey, raw: Any) -> Any:
    if key.kind == TIER:
        if type(raw) is not int or raw not in TRUST_TIERS:
            raise invalid_cursor(f"{key.name} must be one of {TRUST_TIERS}")
        return raw
    if key.kind == FLAG:
        if type(raw) is not bool:
            raise invalid_cursor(f"{key.name} must be a boolean")
        return raw
    if key.kind == TIMESTAMP:
        if not isinstance(raw, str):
            raise invalid_cursor(f"{key.name} must be an ISO-8601 timestamp")
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError:
            raise invalid_cursor(f"{key.name} must be an ISO-8601 timestamp")
        if parsed.tzinfo is None:
            raise invalid_cursor(f"{key.name} must carry a UTC offset")
        try:
            return as_utc(parsed)
        except OverflowError:
            raise invalid_cursor(f"{key.name} is out of range")
    if key.kind == IDENTITY:
        if type(raw) is not int or not 1 <= raw <= MAX_ID:
            raise invalid_cursor(f"{key.name} must be a positive integer")
        return raw
    raise invalid_cursor(f"unknown key {key.name}")


def encode_cursor(mode: RankingMode, key_tuple: KeyTuple) -> str:
    if len(key_tuple) != len(mode.keys):
        raise ValueError(f"{mode.name} cursors carry {len(mode.keys)} values, got {len(key_tuple)}")
    payload = [_dump_value(key, value) for key, value in zip(mode.keys, key_tuple)]
    blob = json.dumps(payload, separators=(",", ":"))
    return base64.urlsafe_b64encode(blob.encode("utf-8")).decode("ascii")


def decode_cursor(mode: RankingMode, token: str) -> KeyTuple:
    try:
        blob = base64.b64decode(token.encode("ascii"), altchars=b"-_", validate=True)
        payload = json.loads(blob.decode("utf-8"))
    except (UnicodeError, binascii.Error, ValueError):
        raise invalid_cursor("not base64-encoded JSON")

    if not isinstance(payload, list):
        raise invalid_cursor("expected a key array")
    if len(payload) != len(mode.keys):
        # also the emergency-mode toggle between pages
        raise invalid_cursor(f"expected {len(mode.keys)} keys for {mode.name} ranking, got {len(payload)}")
    return tuple(_load_value(key, raw) for key, raw in zip(mode.keys, payload))

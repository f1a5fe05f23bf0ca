"""
Canonicalization of loosely typed gate pass records.

Gate pass data reaches the PDF pipeline from request bodies, database
snapshots, and tests, each with its own idea of types: dates as strings or
datetimes, quantities as strings, ``returnable`` as 0/1, "0"/"1" or a bool.
``normalize_gate_pass`` folds all of them into a ``NormalizedGatePass`` whose
serialized form only changes when something visible on the document changes.

The normalizer is pure and never raises: anything it cannot interpret becomes
the empty value for its field.
"""

from __future__ import annotations

import math
import unicodedata
from collections.abc import Mapping
from datetime import date, datetime, timezone
from decimal import Decimal
from email.utils import parsedate_to_datetime
from typing import Any, Dict, Optional, Tuple, Union

from dateutil import parser as date_parser
from pydantic import BaseModel

from .models import NormalizedGatePass, NormalizedLineItem

Number = Union[int, float]


def _as_mapping(record: Any) -> Mapping:
    if isinstance(record, BaseModel):
        return record.model_dump(by_alias=True)
    if isinstance(record, Mapping):
        return record
    return {}


def _to_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _to_number(value: Any) -> Number:
    """Coerce to int/float; anything non-numeric becomes 0."""
    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, (float, Decimal)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        try:
            return int(text)
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            return 0
    else:
        return 0

    if math.isnan(number) or math.isinf(number):
        return 0
    # 3.0 and "3" must serialize the same way
    return int(number) if number.is_integer() else number


def _format_iso(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def _parse_date_text(text: str) -> datetime:
    iso_text = text[:-1] + "+00:00" if text.endswith(("Z", "z")) else text
    try:
        return datetime.fromisoformat(iso_text)
    except ValueError:
        pass
    try:
        # RFC 2822, e.g. "Tue, 05 Mar 2024 09:30:00 GMT"
        return parsedate_to_datetime(text)
    except (TypeError, ValueError):
        pass
    return date_parser.parse(text)


def normalize_date(value: Any) -> Optional[str]:
    """
    Render a date-like value as an ISO-8601 UTC string.

    Strings are tried as ISO-8601, then RFC 2822, then free-form
    ("March 5, 2024"). Naive values are taken as UTC and numbers are epoch
    milliseconds. Falsy or unparseable values give None.
    """
    if isinstance(value, bool) or not value:
        return None
    try:
        if isinstance(value, datetime):
            return _format_iso(value)
        if isinstance(value, date):
            return _format_iso(datetime(value.year, value.month, value.day, tzinfo=timezone.utc))
        if isinstance(value, (int, float)):
            return _format_iso(datetime.fromtimestamp(value / 1000, tz=timezone.utc))
        if isinstance(value, str):
            text = value.strip()
            return _format_iso(_parse_date_text(text)) if text else None
    except (ValueError, OverflowError, OSError):
        return None
    return None


def is_returnable(value: Any) -> bool:
    """
    Liberal truthiness for the ``returnable`` flag.

    Numbers are true when non-zero and strings are true unless empty or "0".
    None is false; anything else follows Python truthiness.
    """
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float, Decimal)):
        return value != 0
    if isinstance(value, str):
        return value not in ("", "0")
    return bool(value)


def collation_key(text: str) -> Tuple[str, str]:
    # Case and accents only decide ties; the raw string keeps the order total
    folded = unicodedata.normalize("NFKD", text)
    folded = "".join(char for char in folded if not unicodedata.combining(char)).casefold()
    return folded, text


def _normalize_item(item: Any) -> NormalizedLineItem:
    data = _as_mapping(item)
    return NormalizedLineItem(
        sl_no=_to_number(data.get("slNo")),
        description=_to_text(data.get("description")),
        make_item=_to_text(data.get("makeItem")),
        model=_to_text(data.get("model")),
        serial_no=_to_text(data.get("serialNo")),
        qty=_to_number(data.get("qty")),
    )


def normalize_gate_pass(record: Any) -> NormalizedGatePass:
    data = _as_mapping(record)

    raw_items = data.get("items")
    items = [_normalize_item(item) for item in raw_items] if isinstance(raw_items, (list, tuple)) else []
    items.sort(key=lambda item: (item.sl_no, collation_key(item.description)))

    gatepass_no = data.get("gatepassNo")
    if gatepass_no is None:
        gatepass_no = data.get("gatePassNo")

    return NormalizedGatePass(
        gatepass_no=_to_text(gatepass_no),
        date=normalize_date(data.get("date")),
        destination=_to_text(data.get("destination")),
        carried_by=_to_text(data.get("carriedBy")),
        through=_to_text(data.get("through")),
        mobile_no=_to_text(data.get("mobileNo")),
        created_by=_to_text(data.get("createdBy")),
        modified_by=_to_text(data.get("modifiedBy")),
        modified_at=normalize_date(data.get("modifiedAt")),
        returnable=is_returnable(data.get("returnable")),
        items=items,
    )


def to_canonical_dict(normalized: NormalizedGatePass) -> Dict[str, Any]:
    return normalized.model_dump(by_alias=True)

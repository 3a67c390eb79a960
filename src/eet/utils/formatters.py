from __future__ import annotations

import base64
import binascii
import re
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from eet.services.exceptions import FormatError

_CENT = Decimal("0.01")
_BKP_RE = re.compile(r"^[A-F0-9]{40}$")


def format_date(value: datetime) -> str:
    """Format a timestamp as YYYY-MM-DDTHH:MM:SS+HH:MM.

    Aware values keep their own offset; naive values are taken as local time.
    """
    if value.tzinfo is None:
        value = value.astimezone()
    return value.replace(microsecond=0).isoformat(timespec="seconds")


def parse_date(text: str) -> datetime:
    try:
        return datetime.fromisoformat(text.strip())
    except (AttributeError, ValueError) as exc:
        raise FormatError(f"Invalid date: {text!r}") from exc


def parse_amount(value: Decimal | int | float | str) -> Decimal:
    """Convert a native number or its text form to Decimal."""
    if isinstance(value, bool):
        raise FormatError(f"Invalid amount: {value!r}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(repr(value))
    else:
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise FormatError(f"Invalid amount: {value!r}") from exc
    if not result.is_finite():
        raise FormatError(f"Invalid amount: {value!r}")
    try:
        result.quantize(_CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        raise FormatError(f"Amount out of range: {value!r}") from exc
    return result


def format_amount(value: Decimal | int | float | str) -> str:
    """Format an amount with exactly two decimals, e.g. 1234.5 -> 1234.50."""
    d = parse_amount(value).quantize(_CENT, rounding=ROUND_HALF_UP)
    if d == 0:
        d = abs(d)
    return f"{d:f}"


def byte2hex(data: bytes) -> str:
    return data.hex().upper()


def format_bkp(data: bytes) -> str:
    """Format a 20-byte BKP as five dash-separated groups of 8 hex digits."""
    hexed = byte2hex(data)
    if len(hexed) != 40:
        raise FormatError(f"BKP must be 20 bytes, got {len(data)}")
    return "-".join(hexed[i : i + 8] for i in range(0, 40, 8))


def parse_bkp(text: str) -> bytes:
    """Parse a BKP, e.g. 17796128-AED2BB9E-2301FF97-0A75656A-DF2B011D."""
    val = text.replace("-", "")
    if len(val) != 40:
        raise FormatError(f"Wrong length (!=40) of BKP string after dash removal: {text!r}")
    if not _BKP_RE.match(val.upper()):
        raise FormatError(f"Wrong BKP format, hexdump expected: {text!r}")
    return bytes.fromhex(val)


def format_pkp(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def parse_pkp(text: str) -> bytes:
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise FormatError(f"Invalid Base64 PKP: {text[:20]!r}…") from exc


def format_bool(value: bool) -> str:
    return "true" if value else "false"


def format_rezim(simplified: bool) -> str:
    """0 = standard regime, 1 = simplified regime."""
    return "1" if simplified else "0"

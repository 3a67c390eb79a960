from __future__ import annotations

import uuid
from collections.abc import Callable
from dataclasses import dataclass, field, fields
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from uuid import UUID

from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey
from cryptography.x509 import Certificate

from eet.services.codes import complete_codes, signing_payload
from eet.services.exceptions import CredentialError, FormatError
from eet.utils.certificate import load_pkcs12
from eet.utils.formatters import (
    format_bkp,
    format_pkp,
    parse_amount,
    parse_bkp,
    parse_date,
    parse_pkp,
)

AMOUNT_FIELDS = (
    "celk_trzba",
    "zakl_nepodl_dph",
    "zakl_dan1",
    "dan1",
    "zakl_dan2",
    "dan2",
    "zakl_dan3",
    "dan3",
    "cest_sluz",
    "pouzit_zboz1",
    "pouzit_zboz2",
    "pouzit_zboz3",
    "urceno_cerp_zuct",
    "cerp_zuct",
)

TEXT_FIELDS = ("dic_popl", "dic_poverujiciho", "id_provoz", "id_pokl", "porad_cis")

FLAG_FIELDS = ("prvni_zaslani", "overeni", "rezim")

_TRUE = {"true", "1"}
_FALSE = {"false", "0"}


def _local_now() -> datetime:
    return datetime.now().astimezone()


@dataclass(frozen=True)
class Sale:
    """A finalized sale (trzba) ready for code derivation and assembly."""

    uuid_zpravy: UUID
    dat_odesl: datetime

    prvni_zaslani: bool = True  # False = repeated submission
    overeni: bool = False  # True = verification mode, nothing is registered
    rezim: bool = False  # True = simplified regime

    dic_popl: str | None = None
    dic_poverujiciho: str | None = None
    id_provoz: str | None = None
    id_pokl: str | None = None
    porad_cis: str | None = None
    dat_trzby: datetime | None = None

    celk_trzba: Decimal | None = None
    zakl_nepodl_dph: Decimal | None = None
    zakl_dan1: Decimal | None = None
    dan1: Decimal | None = None
    zakl_dan2: Decimal | None = None
    dan2: Decimal | None = None
    zakl_dan3: Decimal | None = None
    dan3: Decimal | None = None
    cest_sluz: Decimal | None = None
    pouzit_zboz1: Decimal | None = None
    pouzit_zboz2: Decimal | None = None
    pouzit_zboz3: Decimal | None = None
    urceno_cerp_zuct: Decimal | None = None
    cerp_zuct: Decimal | None = None

    pkp: bytes | None = None
    bkp: bytes | None = None

    key: RSAPrivateKey | None = field(default=None, repr=False, compare=False)
    certificate: Certificate | None = field(default=None, repr=False, compare=False)

    @staticmethod
    def builder(**kwargs) -> SaleBuilder:
        return SaleBuilder(**kwargs)

    def to_be_signed(self) -> str:
        return signing_payload(self)

    def format_pkp(self) -> str | None:
        return format_pkp(self.pkp) if self.pkp is not None else None

    def format_bkp(self) -> str | None:
        return format_bkp(self.bkp) if self.bkp is not None else None


@dataclass
class SaleBuilder:
    """Mutable field bag that produces a :class:`Sale`.

    ``clock`` and ``new_uuid`` supply the defaults for ``dat_odesl`` and
    ``uuid_zpravy``; pass fixed callables to make builds reproducible.
    Amounts are parsed as soon as they are set. Dates, the UUID and the
    codes may be given as text and are parsed by :meth:`build`.
    """

    clock: Callable[[], datetime] = field(default=_local_now, repr=False)
    new_uuid: Callable[[], UUID] = field(default=uuid.uuid4, repr=False)

    uuid_zpravy: UUID | str | None = None
    dat_odesl: datetime | str | None = None
    prvni_zaslani: bool | int | str = True
    overeni: bool | int | str = False
    rezim: bool | int | str = False

    dic_popl: str | None = None
    dic_poverujiciho: str | None = None
    id_provoz: str | None = None
    id_pokl: str | None = None
    porad_cis: str | None = None
    dat_trzby: datetime | str | None = None

    celk_trzba: Decimal | None = None
    zakl_nepodl_dph: Decimal | None = None
    zakl_dan1: Decimal | None = None
    dan1: Decimal | None = None
    zakl_dan2: Decimal | None = None
    dan2: Decimal | None = None
    zakl_dan3: Decimal | None = None
    dan3: Decimal | None = None
    cest_sluz: Decimal | None = None
    pouzit_zboz1: Decimal | None = None
    pouzit_zboz2: Decimal | None = None
    pouzit_zboz3: Decimal | None = None
    urceno_cerp_zuct: Decimal | None = None
    cerp_zuct: Decimal | None = None

    pkp: bytes | str | None = None
    bkp: bytes | str | None = None

    key: RSAPrivateKey | None = field(default=None, repr=False)
    certificate: Certificate | None = field(default=None, repr=False)
    pkcs12: bytes | None = field(default=None, repr=False)
    pkcs12_password: str | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self.uuid_zpravy is None:
            self.uuid_zpravy = self.new_uuid()
        if self.dat_odesl is None:
            self.dat_odesl = self.clock()
        for name in AMOUNT_FIELDS:
            value = getattr(self, name)
            if value is not None:
                setattr(self, name, parse_amount(value))

    def set(self, **values) -> SaleBuilder:
        """Set one or more fields and return the builder for chaining."""
        for name, value in values.items():
            if name not in _SETTABLE:
                raise TypeError(f"Unknown sale field: {name}")
            if name in AMOUNT_FIELDS and value is not None:
                value = parse_amount(value)
            setattr(self, name, value)
        return self

    def set_pkcs12_file(self, path: str | Path, password: str | None = None) -> SaleBuilder:
        """Read a .p12/.pfx container; it is opened during :meth:`build`."""
        self.pkcs12 = Path(path).read_bytes()
        if password is not None:
            self.pkcs12_password = password
        return self

    def _import_pkcs12(self) -> None:
        if self.pkcs12_password is None:
            raise CredentialError(
                "Found PKCS#12 data but no password; set pkcs12_password before build()"
            )
        self.key, self.certificate = load_pkcs12(self.pkcs12, self.pkcs12_password)
        self.pkcs12 = None
        self.pkcs12_password = None

    def build(self) -> Sale:
        """Validate, import credentials and return a finalized Sale with codes."""
        if self.pkcs12 is not None:
            self._import_pkcs12()

        values: dict = {
            "uuid_zpravy": _as_uuid(self.uuid_zpravy),
            "dat_odesl": _as_date(self.dat_odesl),
            "dat_trzby": _as_date(self.dat_trzby) if self.dat_trzby is not None else None,
            "pkp": _as_code(self.pkp, parse_pkp),
            "bkp": _as_code(self.bkp, parse_bkp),
            "key": self.key,
            "certificate": self.certificate,
        }
        for name in FLAG_FIELDS:
            values[name] = _as_flag(name, getattr(self, name))
        for name in TEXT_FIELDS:
            value = getattr(self, name)
            values[name] = str(value) if value is not None else None
        for name in AMOUNT_FIELDS:
            values[name] = getattr(self, name)

        return complete_codes(Sale(**values))


_SETTABLE = frozenset(f.name for f in fields(SaleBuilder)) - {"clock", "new_uuid"}


def _as_uuid(value: UUID | str) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError as exc:
        raise FormatError(f"Invalid message UUID: {value!r}") from exc


def _as_date(value: datetime | str) -> datetime:
    if isinstance(value, datetime):
        return value
    return parse_date(value)


def _as_code(value: bytes | str | None, parser: Callable[[str], bytes]) -> bytes | None:
    if value is None or isinstance(value, bytes):
        return value
    return parser(value)


def _as_flag(name: str, value: bool | int | str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
    raise FormatError(f"{name}: only true/false or 0/1 are allowed, got {value!r}")

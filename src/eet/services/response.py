from __future__ import annotations

from dataclasses import dataclass, field

from lxml import etree

from eet.config import EET_NS
from eet.services.exceptions import FormatError

_NS = {"eet": EET_NS}


@dataclass(frozen=True)
class RegistrationResponse:
    """What the caller usually needs from an Odpoved (reply) message."""

    uuid_zpravy: str | None = None
    bkp: str | None = None
    fik: str | None = None
    dat_prij: str | None = None
    dat_odmit: str | None = None
    test: bool = False
    error_code: int | None = None
    error_message: str | None = None
    warnings: list[tuple[int, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error_code is None and self.fik is not None


def _code(element: etree._Element, attr: str) -> int:
    value = element.get(attr, "0")
    try:
        return int(value)
    except ValueError as exc:
        raise FormatError(f"Non-numeric {attr} in response: {value!r}") from exc


def parse_response(text: str) -> RegistrationResponse:
    """Extract FIK, error and warnings from the server's SOAP reply."""
    try:
        root = etree.fromstring(text.encode("utf-8"))
    except etree.XMLSyntaxError as exc:
        raise FormatError(f"Response is not XML: {text[:200]!r}") from exc

    odpoved = root.find(".//eet:Odpoved", _NS)
    if odpoved is None:
        raise FormatError("Response has no Odpoved element")

    hlavicka = odpoved.find("eet:Hlavicka", _NS)
    potvrzeni = odpoved.find("eet:Potvrzeni", _NS)
    chyba = odpoved.find("eet:Chyba", _NS)

    header = hlavicka.attrib if hlavicka is not None else {}
    warnings = [
        (_code(v, "kod_varov"), (v.text or "").strip())
        for v in odpoved.findall("eet:Varovani", _NS)
    ]

    error_code = None
    error_message = None
    test = False
    fik = None
    if chyba is not None:
        error_code = _code(chyba, "kod")
        error_message = (chyba.text or "").strip()
        test = chyba.get("test") == "true"
        # kod 0 only confirms a verification-mode request
        if error_code == 0:
            error_code = None
    if potvrzeni is not None:
        fik = potvrzeni.get("fik")
        test = potvrzeni.get("test") == "true"

    return RegistrationResponse(
        uuid_zpravy=header.get("uuid_zpravy"),
        bkp=header.get("bkp"),
        fik=fik,
        dat_prij=header.get("dat_prij"),
        dat_odmit=header.get("dat_odmit"),
        test=test,
        error_code=error_code,
        error_message=error_message,
        warnings=warnings,
    )

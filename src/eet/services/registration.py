from __future__ import annotations

import dataclasses
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from eet.config import (
    SEND_TIMEOUT,
    get_cert_password,
    get_cert_path,
    get_endpoint,
    get_sent_dir,
    load_taxpayer,
)
from eet.models.sale import Sale
from eet.services.assembler import generate_document
from eet.services.response import RegistrationResponse, parse_response
from eet.services.transport import send_request
from eet.utils.certificate import load_pkcs12_file
from eet.utils.sequence import next_porad_cis

logger = logging.getLogger(__name__)


@dataclass
class PreparedSale:
    """A finalized sale and the signed request built from it."""

    sale: Sale
    document: str
    env: str
    url: str


def prepare(
    celk_trzba: Decimal | str,
    env: str = "playground",
    dat_trzby: datetime | str | None = None,
    porad_cis: str | None = None,
    amounts: dict[str, Decimal | str] | None = None,
    overeni: bool = False,
) -> PreparedSale:
    """Build and sign a sale for the configured taxpayer and register.

    The receipt number is reserved from the local sequence unless given.
    Credentials are loaded first so a bad password does not burn a number.
    """
    taxpayer = load_taxpayer()
    key, certificate = load_pkcs12_file(get_cert_path(), get_cert_password())

    if porad_cis is None:
        porad_cis = str(next_porad_cis(taxpayer["id_pokl"], env))

    builder = Sale.builder(key=key, certificate=certificate).set(
        dic_popl=taxpayer.get("dic_popl"),
        dic_poverujiciho=taxpayer.get("dic_poverujiciho"),
        id_provoz=taxpayer.get("id_provoz"),
        id_pokl=taxpayer.get("id_pokl"),
        rezim=taxpayer.get("rezim", False),
        porad_cis=porad_cis,
        dat_trzby=dat_trzby if dat_trzby is not None else datetime.now().astimezone(),
        celk_trzba=celk_trzba,
        overeni=overeni,
    )
    if amounts:
        builder.set(**amounts)
    sale = builder.build()

    return PreparedSale(
        sale=sale,
        document=generate_document(sale),
        env=env,
        url=get_endpoint(env),
    )


def resend(prepared: PreparedSale) -> PreparedSale:
    """Rebuild a request for a sale the server never confirmed.

    The repeated message gets a new UUID and send time; the sale data and
    therefore its PKP/BKP stay the same.
    """
    sale = dataclasses.replace(
        prepared.sale,
        prvni_zaslani=False,
        uuid_zpravy=uuid.uuid4(),
        dat_odesl=datetime.now().astimezone(),
    )
    return dataclasses.replace(prepared, sale=sale, document=generate_document(sale))


def _archive(prepared: PreparedSale, response_text: str) -> str | None:
    out_dir = get_sent_dir(prepared.env)
    stem = str(prepared.sale.uuid_zpravy)
    try:
        out_dir.mkdir(parents=True, exist_ok=True)
        (out_dir / f"{stem}.request.xml").write_text(prepared.document, encoding="utf-8")
        (out_dir / f"{stem}.response.xml").write_text(response_text, encoding="utf-8")
    except OSError:
        logger.warning("Failed to archive request/response for %s", stem, exc_info=True)
        return None
    return str(out_dir / f"{stem}.response.xml")


def submit(prepared: PreparedSale, timeout: float | None = SEND_TIMEOUT) -> dict:
    """Send the prepared request and parse the reply.

    Returns a dict with the parsed ``response`` and, when archiving worked,
    ``saved_to``. Transport failures propagate as TransportError.
    """
    text = send_request(prepared.document, prepared.url, timeout=timeout)
    response: RegistrationResponse = parse_response(text)

    if response.error_code is not None:
        logger.warning(
            "EET rejected %s: %s %s",
            prepared.sale.uuid_zpravy,
            response.error_code,
            response.error_message,
        )
    for code, message in response.warnings:
        logger.warning("EET warning %s: %s", code, message)

    result: dict = {
        "porad_cis": prepared.sale.porad_cis,
        "uuid_zpravy": str(prepared.sale.uuid_zpravy),
        "response": response,
    }
    saved_to = _archive(prepared, text)
    if saved_to:
        result["saved_to"] = saved_to
    return result


def save_xml(prepared: PreparedSale) -> str:
    """Save the request to disk without sending it."""
    out_path = get_sent_dir(prepared.env) / f"dry_run_{prepared.sale.uuid_zpravy}.xml"
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(prepared.document, encoding="utf-8")
    return str(out_path)

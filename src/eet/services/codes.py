from __future__ import annotations

import dataclasses
import hashlib
import logging
from typing import TYPE_CHECKING

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey
from cryptography.hazmat.primitives.asymmetric.utils import Prehashed

from eet.services.exceptions import MissingFieldError, SigningError
from eet.utils.formatters import format_amount, format_date

if TYPE_CHECKING:
    from eet.models.sale import Sale

logger = logging.getLogger(__name__)

# Order of the pipe-joined PKP payload.
SIGNED_FIELDS = ("dic_popl", "id_provoz", "id_pokl", "porad_cis", "dat_trzby", "celk_trzba")


def signing_payload(sale: Sale) -> str:
    """Build the text signed into the PKP.

    Format: dic_popl|id_provoz|id_pokl|porad_cis|dat_trzby|celk_trzba
    Example: CZ00000019|181|1|1|2023-01-01T12:00:00+01:00|100.00
    """
    missing = [name for name in SIGNED_FIELDS if getattr(sale, name) is None]
    if missing:
        raise MissingFieldError(missing)
    return "|".join(
        [
            sale.dic_popl,
            sale.id_provoz,
            sale.id_pokl,
            sale.porad_cis,
            format_date(sale.dat_trzby),
            format_amount(sale.celk_trzba),
        ]
    )


def rsa_sign(data: bytes, key: RSAPrivateKey) -> bytes:
    """SHA-256 the data and sign the digest with RSA PKCS#1 v1.5."""
    try:
        digest = hashlib.sha256(data).digest()
        return key.sign(digest, padding.PKCS1v15(), Prehashed(hashes.SHA256()))
    except Exception as exc:
        raise SigningError(f"Error while signing: {exc}") from exc


def compute_pkp(sale: Sale, key: RSAPrivateKey) -> bytes:
    payload = signing_payload(sale)
    return rsa_sign(payload.encode("utf-8"), key)


def compute_bkp(pkp: bytes) -> bytes:
    """BKP is the SHA-1 of the raw PKP bytes."""
    try:
        return hashlib.sha1(pkp).digest()
    except Exception as exc:
        raise SigningError(f"Error while computing BKP: {exc}") from exc


def complete_codes(sale: Sale) -> Sale:
    """Return *sale* with missing PKP/BKP filled in.

    PKP needs the signing key; BKP needs a PKP. Codes already present are
    kept as they are.
    """
    pkp = sale.pkp
    bkp = sale.bkp
    if pkp is None and sale.key is not None:
        pkp = compute_pkp(sale, sale.key)
        logger.debug("Computed PKP for porad_cis=%s", sale.porad_cis)
    if bkp is None and pkp is not None:
        bkp = compute_bkp(pkp)
    if pkp is sale.pkp and bkp is sale.bkp:
        return sale
    return dataclasses.replace(sale, pkp=pkp, bkp=bkp)

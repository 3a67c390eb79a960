from __future__ import annotations

import base64
import hashlib
import logging
import re

from cryptography.hazmat.primitives.serialization import Encoding

from eet.models.sale import AMOUNT_FIELDS, TEXT_FIELDS, Sale
from eet.services.codes import rsa_sign
from eet.services.exceptions import DocumentAssemblyError, SigningError
from eet.services.templates import TemplateSet, load_templates, verify_templates
from eet.utils.formatters import (
    format_amount,
    format_bkp,
    format_bool,
    format_date,
    format_pkp,
    format_rezim,
)

logger = logging.getLogger(__name__)

_UNUSED_ATTRIBUTE_RE = re.compile(r' [a-z_0-9]+="\$\{[0-9_a-z]+\}"')
_UNUSED_TOKEN_RE = re.compile(r"\$\{[a-z_0-9]+\}")


def placeholder_values(
    sale: Sale,
    digest: str | None = None,
    signature: str | None = None,
) -> dict[str, str]:
    """Map template tokens to their text for every field present on *sale*.

    Absent fields get no entry so their tokens survive until stripping.
    """
    values: dict[str, str] = {}
    if sale.certificate is not None:
        values["certb64"] = base64.b64encode(sale.certificate.public_bytes(Encoding.DER)).decode("ascii")
    values["prvni_zaslani"] = format_bool(sale.prvni_zaslani)
    values["dat_odesl"] = format_date(sale.dat_odesl)
    values["uuid_zpravy"] = str(sale.uuid_zpravy)
    values["overeni"] = format_bool(sale.overeni)
    for name in TEXT_FIELDS:
        value = getattr(sale, name)
        if value is not None:
            values[name] = value
    if sale.dat_trzby is not None:
        values["dat_trzby"] = format_date(sale.dat_trzby)
    for name in AMOUNT_FIELDS:
        value = getattr(sale, name)
        if value is not None:
            values[name] = format_amount(value)
    values["rezim"] = format_rezim(sale.rezim)
    if sale.bkp is not None:
        values["bkp"] = format_bkp(sale.bkp)
    if sale.pkp is not None:
        values["pkp"] = format_pkp(sale.pkp)
    if digest is not None:
        values["digest"] = digest
    if signature is not None:
        values["signature"] = signature
    return values


def replace_placeholders(src: str, values: dict[str, str]) -> str:
    """Replace each ``${name}`` token literally with its value."""
    try:
        for name, value in values.items():
            src = src.replace("${" + name + "}", value)
        return src
    except Exception as exc:
        raise DocumentAssemblyError("Placeholder replacement failed") from exc


def remove_unused_placeholders(src: str) -> str:
    """Drop ``name="${token}"`` attributes, then any bare ``${token}`` left."""
    try:
        src = _UNUSED_ATTRIBUTE_RE.sub("", src)
        return _UNUSED_TOKEN_RE.sub("", src)
    except Exception as exc:
        raise DocumentAssemblyError("Removing unused placeholders failed") from exc


def _fill(template: bytes, sale: Sale, digest: str | None = None, signature: str | None = None) -> str:
    try:
        src = template.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DocumentAssemblyError("Template is not valid UTF-8") from exc
    try:
        values = placeholder_values(sale, digest, signature)
    except Exception as exc:
        raise DocumentAssemblyError(f"Cannot format placeholder values: {exc}") from exc
    return remove_unused_placeholders(replace_placeholders(src, values))


def compute_digest(fragment: str) -> str:
    """Base64 SHA-256 of the filled digest fragment."""
    return base64.b64encode(hashlib.sha256(fragment.encode("utf-8")).digest()).decode("ascii")


def compute_signature(fragment: str, sale: Sale) -> str:
    """Base64 RSA/SHA-256 signature of the filled signature fragment."""
    if sale.key is None:
        raise SigningError("No signing key attached to the sale")
    return base64.b64encode(rsa_sign(fragment.encode("utf-8"), sale.key)).decode("ascii")


def generate_document(sale: Sale, templates: TemplateSet | None = None) -> str:
    """Assemble the signed SOAP request for *sale*.

    Steps: verify template checksums, fill and hash the digest fragment,
    fill (with the digest) and sign the signature fragment, then fill the
    full template with digest and signature and strip unused tokens.
    """
    if templates is None:
        templates = load_templates()
    verify_templates(templates)

    digest_fragment = _fill(templates.digest_template, sale)
    digest = compute_digest(digest_fragment)
    logger.debug("Body digest %s", digest)

    signature_fragment = _fill(templates.signature_template, sale, digest=digest)
    signature = compute_signature(signature_fragment, sale)

    document = _fill(templates.template, sale, digest=digest, signature=signature)
    logger.debug("Assembled request uuid_zpravy=%s (%d chars)", sale.uuid_zpravy, len(document))
    return document

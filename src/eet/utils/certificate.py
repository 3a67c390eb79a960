from __future__ import annotations

from pathlib import Path

from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509 import Certificate

from eet.services.exceptions import CredentialError


def load_pkcs12(data: bytes, password: str) -> tuple[RSAPrivateKey, Certificate]:
    """Extract the RSA signing key and its certificate from PKCS#12 bytes.

    Raises CredentialError when the password is wrong or the container lacks
    a usable RSA key or certificate.
    """
    try:
        private_key, certificate, _ = pkcs12.load_key_and_certificates(data, password.encode())
    except ValueError as exc:
        raise CredentialError("Cannot open PKCS#12 container (wrong password or corrupt data)") from exc

    if private_key is None or certificate is None:
        raise CredentialError("Key and/or certificate still missing after PKCS#12 processing")
    if not isinstance(private_key, RSAPrivateKey):
        raise CredentialError(f"RSA key expected, got {type(private_key).__name__}")
    return private_key, certificate


def load_pkcs12_file(path: str | Path, password: str) -> tuple[RSAPrivateKey, Certificate]:
    return load_pkcs12(Path(path).read_bytes(), password)


def validate_certificate(path: str | Path, password: str) -> dict:
    """Validate certificate and return info."""
    from datetime import UTC, datetime

    _, certificate = load_pkcs12_file(path, password)

    now = datetime.now(UTC)
    return {
        "subject": certificate.subject.rfc4514_string(),
        "issuer": certificate.issuer.rfc4514_string(),
        "not_before": certificate.not_valid_before_utc,
        "not_after": certificate.not_valid_after_utc,
        "valid": certificate.not_valid_before_utc <= now <= certificate.not_valid_after_utc,
        "serial": certificate.serial_number,
    }

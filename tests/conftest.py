from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from uuid import UUID

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import NameOID

from eet.models.sale import Sale, SaleBuilder

DATA_DIR = Path(__file__).parent / "data"

CET = timezone(timedelta(hours=1))

FIXED_UUID = UUID("5fc0f9b3-0a0e-4c7e-9d51-3b3c8e1a2f40")
FIXED_NOW = datetime(2023, 1, 1, 12, 0, 5, tzinfo=CET)

# Known answer for the fixed key in tests/data/test_key.pem and the payload
# CZ00000019|181|1|1|2023-01-01T12:00:00+01:00|100.00
KNOWN_PKP_B64 = (
    "Ks1UgJXcMeDsvUqM9JUroy2kfGjZfUvvUbwiHIjN7AKS/1DPD5r5A/HhbDBfpToTTZVbDOL8OPU17sdSYfqgDy/N"
    "6fjUh/pZCoiQOBymFCobRxs0AAdFaaiu8WIRmrBijiZYECeuY7bWx0QOj+XNldHVkMpg8xVIfSCtxpLVEp1YPuPN"
    "JNqPlkJK7geAmTwIJtN/aNUV7poADIgRZGWCmQs66bVlCf2I94Yjia/aUhrz2UIr7gNGwRkwiXkwL3JjSTno1XVO"
    "GQbTgZeWwUy4xADbHghOxDhFQl8wJJ9EYJuufL7OCN9SvqPMTBsVA22c6ACoq7cEY7J7I7PxHN9ObQ=="
)
KNOWN_BKP = "5EDBA902-987EF8B9-D1F299E4-8323DE9F-E5103E14"


@pytest.fixture(scope="session")
def fixed_key() -> rsa.RSAPrivateKey:
    return serialization.load_pem_private_key((DATA_DIR / "test_key.pem").read_bytes(), password=None)


@pytest.fixture(scope="session")
def test_key_and_cert():
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    subject = issuer = x509.Name(
        [
            x509.NameAttribute(NameOID.COMMON_NAME, "CZ00000019"),
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Test Org"),
        ]
    )
    cert = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(datetime.now(UTC) - timedelta(days=1))
        .not_valid_after(datetime.now(UTC) + timedelta(days=365))
        .sign(key, hashes.SHA256())
    )
    return key, cert


@pytest.fixture(scope="session")
def pkcs12_bytes(test_key_and_cert) -> bytes:
    key, cert = test_key_and_cert
    return pkcs12.serialize_key_and_certificates(
        name=b"test",
        key=key,
        cert=cert,
        cas=None,
        encryption_algorithm=serialization.BestAvailableEncryption(b"testpass"),
    )


@pytest.fixture
def test_pfx(tmp_path, pkcs12_bytes):
    pfx_path = tmp_path / "test.p12"
    pfx_path.write_bytes(pkcs12_bytes)
    return str(pfx_path), "testpass"


def _builder(**kwargs) -> SaleBuilder:
    return Sale.builder(clock=lambda: FIXED_NOW, new_uuid=lambda: FIXED_UUID, **kwargs)


@pytest.fixture
def sale_builder() -> SaleBuilder:
    """Builder with the six signed fields set and deterministic defaults."""
    return _builder().set(
        dic_popl="CZ00000019",
        id_provoz="181",
        id_pokl="1",
        porad_cis="1",
        dat_trzby=datetime(2023, 1, 1, 12, 0, 0, tzinfo=CET),
        celk_trzba=Decimal("100.00"),
    )


@pytest.fixture
def signed_sale(sale_builder, test_key_and_cert) -> Sale:
    key, cert = test_key_and_cert
    return sale_builder.set(key=key, certificate=cert).build()


@pytest.fixture
def config_dir(tmp_path):
    import yaml

    cfg = tmp_path / "config"
    cfg.mkdir()
    (cfg / "taxpayer.yaml").write_text(
        yaml.dump({"dic_popl": "CZ00000019", "id_provoz": 181, "id_pokl": "POKL-1"})
    )
    return cfg

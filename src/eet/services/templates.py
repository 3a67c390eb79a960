from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from importlib.resources import files
from pathlib import Path

from eet.services.exceptions import TemplateIntegrityError

logger = logging.getLogger(__name__)

TEMPLATE_NAME = "template.xml"
DIGEST_TEMPLATE_NAME = "digest-template"
SIGNATURE_TEMPLATE_NAME = "signature-template"
CHECKSUM_FILE = "sha1sum.txt"


@dataclass(frozen=True)
class TemplateSet:
    """Raw template blobs plus the SHA-1 checksums they must match."""

    template: bytes
    digest_template: bytes
    signature_template: bytes
    checksums: dict[str, str]

    def blobs(self) -> dict[str, bytes]:
        return {
            TEMPLATE_NAME: self.template,
            DIGEST_TEMPLATE_NAME: self.digest_template,
            SIGNATURE_TEMPLATE_NAME: self.signature_template,
        }


def parse_checksums(text: str) -> dict[str, str]:
    """Parse ``sha1sum`` output: one ``<hex>  <name>`` pair per line."""
    checksums: dict[str, str] = {}
    for line in text.splitlines():
        parts = line.split()
        if len(parts) < 2:
            continue
        checksums[parts[1].lstrip("*")] = parts[0]
    return checksums


def load_templates(directory: str | Path | None = None) -> TemplateSet:
    """Load the templates bundled with the package, or from *directory*."""
    root = Path(directory) if directory is not None else files("eet") / "templates"
    return TemplateSet(
        template=(root / TEMPLATE_NAME).read_bytes(),
        digest_template=(root / DIGEST_TEMPLATE_NAME).read_bytes(),
        signature_template=(root / SIGNATURE_TEMPLATE_NAME).read_bytes(),
        checksums=parse_checksums((root / CHECKSUM_FILE).read_text(encoding="utf-8")),
    )


def verify_templates(templates: TemplateSet) -> None:
    """Raise TemplateIntegrityError unless every blob matches its checksum."""
    for name, blob in templates.blobs().items():
        actual = hashlib.sha1(blob).hexdigest()
        expected = templates.checksums.get(name)
        if expected is None or expected.lower() != actual:
            raise TemplateIntegrityError(name, expected, actual)
    logger.debug("Template checksums verified")

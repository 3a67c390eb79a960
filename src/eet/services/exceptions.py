from __future__ import annotations


class EETError(Exception):
    """Base class for every error raised by the eet package."""


class FormatError(EETError, ValueError):
    """Malformed textual input handed to one of the parsers."""


class MissingFieldError(EETError):
    """Fields required for code derivation are not set on the sale."""

    def __init__(self, fields: list[str]) -> None:
        super().__init__(f"Missing required field(s): {', '.join(fields)}")
        self.fields = list(fields)


class SigningError(EETError):
    """Hashing or RSA signing failed; the original error is the __cause__."""


class TemplateIntegrityError(EETError):
    """A template blob does not match its expected SHA-1 checksum."""

    def __init__(self, name: str, expected: str | None, actual: str) -> None:
        if expected is None:
            message = f"{name}: no checksum listed for this template"
        else:
            message = f"{name} checksum verification failed (expected {expected}, got {actual})"
        super().__init__(message)
        self.name = name
        self.expected = expected
        self.actual = actual


class DocumentAssemblyError(EETError):
    """Placeholder substitution or stripping failed."""


class CredentialError(EETError):
    """The PKCS#12 container gave no usable key/certificate, or no password was supplied."""


class TransportError(EETError):
    """The request could not be delivered or the server answered with an HTTP error."""

    def __init__(self, message: str, response_text: str | None = None) -> None:
        super().__init__(message)
        self.response_text = response_text

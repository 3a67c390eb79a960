from __future__ import annotations

import logging
import ssl

import requests
import requests.exceptions
from requests.adapters import HTTPAdapter
from urllib3.util.ssl_ import create_urllib3_context

from eet.config import CONTENT_TYPE, SOAP_ACTION
from eet.services.exceptions import TransportError

logger = logging.getLogger(__name__)


class TLSAdapter(HTTPAdapter):
    """HTTPS adapter that only offers TLS 1.2 and TLS 1.3."""

    def init_poolmanager(self, *args, **kwargs):
        kwargs["ssl_context"] = self._context()
        return super().init_poolmanager(*args, **kwargs)

    def proxy_manager_for(self, *args, **kwargs):
        kwargs["ssl_context"] = self._context()
        return super().proxy_manager_for(*args, **kwargs)

    @staticmethod
    def _context() -> ssl.SSLContext:
        context = create_urllib3_context()
        context.minimum_version = ssl.TLSVersion.TLSv1_2
        context.maximum_version = ssl.TLSVersion.TLSv1_3
        context.load_default_certs()
        return context


def _session() -> requests.Session:
    session = requests.Session()
    session.mount("https://", TLSAdapter())
    return session


def send_request(document: str, url: str, timeout: float | None = None) -> str:
    """POST the assembled document to *url* and return the response body.

    One attempt only. Any connection, TLS or HTTP status failure is raised
    as TransportError with the original exception chained.
    """
    headers = {
        "Content-Type": CONTENT_TYPE,
        "SOAPAction": SOAP_ACTION,
    }
    body = document.encode("utf-8")
    logger.debug("POST %s (%d bytes)", url, len(body))

    with _session() as session:
        try:
            resp = session.post(url, data=body, headers=headers, timeout=timeout)
        except requests.exceptions.RequestException as exc:
            raise TransportError(f"Request to {url} failed: {exc}") from exc

        text = resp.content.decode("utf-8", errors="replace")
        try:
            resp.raise_for_status()
        except requests.exceptions.HTTPError as exc:
            raise TransportError(
                f"EET server error ({resp.status_code}): {text[:500]}",
                response_text=text,
            ) from exc

    logger.debug("Response %d (%d chars)", resp.status_code, len(text))
    return text

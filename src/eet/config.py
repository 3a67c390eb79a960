from __future__ import annotations

import os
from pathlib import Path

import platformdirs
import yaml
from dotenv import load_dotenv

APP_NAME = "eet-trzby"
KEYRING_SERVICE = APP_NAME
KEYRING_USERNAME = "cert-pfx-password"


def _resolve_config_dir_for_dotenv() -> Path | None:
    """Resolve config dir for .env loading without depending on env vars from .env itself.

    Returns None if only platformdirs would resolve and that dir does not exist yet.
    """
    from_env = os.environ.get("EET_CONFIG_DIR")
    if from_env:
        return Path(from_env)
    project_root = Path(__file__).resolve().parent.parent.parent
    candidate = project_root / "config"
    if candidate.is_dir():
        return candidate
    pd = Path(platformdirs.user_config_dir(APP_NAME))
    if pd.is_dir():
        return pd
    return None


# Load .env: cwd first (highest priority), then config dir (won't override)
load_dotenv()
_cfg_dir = _resolve_config_dir_for_dotenv()
if _cfg_dir is not None:
    load_dotenv(_cfg_dir / ".env")


def _resolve_dir(env_var: str, default_subdir: str, kind: str) -> Path:
    """Resolve a directory from env var, repo layout, or platform default."""
    from_env = os.environ.get(env_var)
    if from_env:
        return Path(from_env)
    # Development layout: src/eet/config.py -> ../../.. = project root
    project_root = Path(__file__).resolve().parent.parent.parent
    candidate = project_root / default_subdir
    if candidate.is_dir():
        return candidate
    if kind == "config":
        return Path(platformdirs.user_config_dir(APP_NAME))
    return Path(platformdirs.user_data_dir(APP_NAME))


def get_config_dir() -> Path:
    """Resolve config directory. Re-evaluated on each call to pick up env changes."""
    return _resolve_dir("EET_CONFIG_DIR", "config", kind="config")


def get_data_dir() -> Path:
    """Resolve data directory. Re-evaluated on each call to pick up env changes."""
    return _resolve_dir("EET_DATA_DIR", "data", kind="data")


ENDPOINTS = {
    "playground": "https://pg.eet.cz:443/eet/services/EETServiceSOAP/v3",
    "production": "https://prod.eet.cz:443/eet/services/EETServiceSOAP/v3",
}

SOAP_ACTION = "http://fs.mfcr.cz/eet/OdeslaniTrzby"
CONTENT_TYPE = "text/xml;charset=UTF-8"

EET_NS = "http://fs.mfcr.cz/eet/schema/v3"

# Timeout handed to the transport by the CLI workflow; the transport itself has none.
SEND_TIMEOUT = 10


# --- Keyring helpers ---


def _get_keyring_password() -> str | None:
    """Try to get the certificate password from the OS keyring.

    Returns None on any failure (no backend, not stored, dbus errors, etc.).
    """
    try:
        import keyring

        return keyring.get_password(KEYRING_SERVICE, KEYRING_USERNAME)
    except Exception:
        return None


def _set_keyring_password(password: str) -> bool:
    """Store the certificate password in the OS keyring. Returns True on success."""
    try:
        import keyring

        keyring.set_password(KEYRING_SERVICE, KEYRING_USERNAME, password)
        return True
    except Exception:
        return False


def _delete_keyring_password() -> bool:
    try:
        import keyring

        keyring.delete_password(KEYRING_SERVICE, KEYRING_USERNAME)
        return True
    except Exception:
        return False


# --- Certificate access ---


def get_cert_path() -> str:
    """Return the path to the .p12 container from CERT_PFX_PATH.

    Raises KeyError if the variable is not set.
    """
    return os.environ["CERT_PFX_PATH"]


def get_cert_password() -> str:
    """Return the certificate password.

    Priority: 1) CERT_PFX_PASSWORD env var, 2) OS keyring.
    Raises KeyError if neither source has the password.
    """
    pwd = os.environ.get("CERT_PFX_PASSWORD")
    if pwd is not None:
        return pwd
    pwd = _get_keyring_password()
    if pwd is not None:
        return pwd
    raise KeyError("CERT_PFX_PASSWORD")


# --- YAML config ---


def load_yaml(path: Path) -> dict:
    return yaml.safe_load(path.read_text()) or {}


def load_taxpayer() -> dict:
    """Load taxpayer/register identification from config/taxpayer.yaml.

    Identifiers are returned as strings since YAML reads ``181`` as an int.
    """
    data = load_yaml(get_config_dir() / "taxpayer.yaml")
    for key in ("dic_popl", "dic_poverujiciho", "id_provoz", "id_pokl"):
        if data.get(key) is not None:
            data[key] = str(data[key])
    return data


def get_endpoint(env: str) -> str:
    """Return the service URL for *env*; EET_ENDPOINT overrides both."""
    return os.environ.get("EET_ENDPOINT") or ENDPOINTS[env]


def get_sent_dir(env: str) -> Path:
    return get_data_dir() / env / "sent"

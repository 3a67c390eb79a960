from __future__ import annotations

import argparse
import getpass
import stat
import sys
from importlib.resources import files
from pathlib import Path

from eet.services.exceptions import EETError


def _check_keyring_available() -> bool:
    """Check if keyring is installed with a usable backend."""
    try:
        import keyring
        from keyring.backends.fail import Keyring as FailKeyring

        return not isinstance(keyring.get_keyring(), FailKeyring)
    except Exception:
        return False


def _upsert_env_var(env_file: Path, key: str, value: str) -> None:
    """Set or update a key=value pair in a .env file, creating it if needed."""
    from dotenv import set_key

    env_file.parent.mkdir(parents=True, exist_ok=True)
    if not env_file.exists():
        env_file.touch()
    set_key(str(env_file), key, value)


def _remove_env_var(env_file: Path, key: str) -> None:
    from dotenv import unset_key

    if env_file.exists():
        unset_key(str(env_file), key)


def _warn_open_permissions(env_file: Path) -> None:
    """Warn if .env file has group/other read permissions (Unix only)."""
    try:
        mode = env_file.stat().st_mode
        if mode & (stat.S_IRGRP | stat.S_IROTH):
            print(f"\n  VAROVÁNÍ: {env_file} má otevřená oprávnění.")
            print("  Doporučení: chmod 600", env_file)
    except OSError:
        pass


def _setup_certificate(config_dir: Path) -> bool:
    """Interactive certificate setup. Returns True if the certificate was configured."""
    print()
    print("Nastavení certifikátu pro EET")
    print("─────────────────────────────")
    print()

    while True:
        pfx_path = input("Cesta k certifikátu .p12 (prázdné = přeskočit): ").strip()
        if not pfx_path:
            print("  Nastavení certifikátu přeskočeno.")
            return False
        if Path(pfx_path).is_file():
            break
        print(f"  Soubor nenalezen: {pfx_path}")

    pfx_password = getpass.getpass("Heslo k certifikátu: ")

    print()
    print("Ověřuji certifikát…")
    try:
        from eet.utils.certificate import validate_certificate

        info = validate_certificate(pfx_path, pfx_password)
    except EETError as e:
        print(f"  CHYBA: Neplatný certifikát nebo heslo: {e}")
        return False

    print(f"  Subjekt: {info['subject']}")
    print(f"  Platný do: {info['not_after']}")
    if not info["valid"]:
        print("  VAROVÁNÍ: Certifikát není platný")

    env_file = config_dir / ".env"
    _upsert_env_var(env_file, "CERT_PFX_PATH", pfx_path)

    from eet.config import _delete_keyring_password, _set_keyring_password

    if _check_keyring_available() and _set_keyring_password(pfx_password):
        print("  Heslo uloženo do systémové klíčenky.")
        _remove_env_var(env_file, "CERT_PFX_PASSWORD")
    else:
        _upsert_env_var(env_file, "CERT_PFX_PASSWORD", pfx_password)
        print(f"  Heslo uloženo do {env_file}")
        _warn_open_permissions(env_file)
        _delete_keyring_password()
    return True


def _init_config() -> None:
    """Copy the bundled example configuration to the user's config directory."""
    from eet.config import get_config_dir, get_data_dir

    config_dir = get_config_dir()
    data_dir = get_data_dir()
    config_dir.mkdir(parents=True, exist_ok=True)
    data_dir.mkdir(parents=True, exist_ok=True)

    dest = config_dir / "taxpayer.yaml.example"
    if dest.exists():
        print(f"  již existuje: {dest}")
    else:
        src = files("eet") / "templates" / "taxpayer.yaml.example"
        dest.write_bytes(src.read_bytes())
        print(f"  vytvořeno: {dest}")

    print()
    print(f"Konfigurace: {config_dir}")
    print(f"Data:        {data_dir}")
    print()

    try:
        answer = input("Nastavit certifikát nyní? [A/n]: ").strip().lower()
        if answer in ("", "a", "ano", "y", "yes"):
            _setup_certificate(config_dir)
    except (EOFError, KeyboardInterrupt):
        print()

    print()
    print("Další kroky:")
    print(f"  1. cp {dest} {config_dir / 'taxpayer.yaml'}")
    print("  2. Doplňte DIČ, provozovnu a pokladnu do taxpayer.yaml")
    print("  3. Spusťte: eet send 100.00 --dry-run")


def _preflight() -> bool:
    from eet.config import get_config_dir

    config_dir = get_config_dir()
    if not (config_dir / "taxpayer.yaml").is_file():
        print(f"Chyba: taxpayer.yaml nenalezen v {config_dir}")
        print("Spusťte 'eet init' a doplňte údaje poplatníka.")
        return False
    return True


def _cmd_send(args: argparse.Namespace) -> int:
    from eet.services.registration import prepare, save_xml, submit

    prepared = prepare(
        args.amount,
        env=args.env,
        dat_trzby=args.date,
        porad_cis=args.porad_cis,
        overeni=args.verify,
    )
    print(f"Účtenka {prepared.sale.porad_cis}  BKP {prepared.sale.format_bkp()}")

    if args.dry_run:
        print(f"Uloženo (neodesláno): {save_xml(prepared)}")
        return 0

    result = submit(prepared)
    response = result["response"]
    if response.fik:
        print(f"FIK: {response.fik}")
    if response.error_message:
        print(f"Odpověď: {response.error_code or 0} {response.error_message}")
    for code, message in response.warnings:
        print(f"Varování {code}: {message}")
    return 0 if response.error_code is None else 2


def _cmd_codes(args: argparse.Namespace) -> int:
    from eet.config import get_cert_password, get_cert_path, load_taxpayer
    from eet.models.sale import Sale

    taxpayer = load_taxpayer()
    sale = (
        Sale.builder()
        .set_pkcs12_file(get_cert_path(), get_cert_password())
        .set(
            dic_popl=taxpayer.get("dic_popl"),
            id_provoz=taxpayer.get("id_provoz"),
            id_pokl=taxpayer.get("id_pokl"),
            porad_cis=args.porad_cis,
            dat_trzby=args.date,
            celk_trzba=args.amount,
        )
        .build()
    )
    print(f"Data:  {sale.to_be_signed()}")
    print(f"PKP:   {sale.format_pkp()}")
    print(f"BKP:   {sale.format_bkp()}")
    return 0


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="eet", description="Evidence tržeb (EET)")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init", help="vytvořit ukázkovou konfiguraci")

    send = sub.add_parser("send", help="evidovat tržbu")
    send.add_argument("amount", help="celková částka tržby, např. 100.00")
    send.add_argument("--env", choices=["playground", "production"], default="playground")
    send.add_argument("--date", help="datum tržby (ISO 8601), výchozí = nyní")
    send.add_argument("--porad-cis", help="pořadové číslo účtenky, výchozí = další v řadě")
    send.add_argument("--verify", action="store_true", help="ověřovací režim")
    send.add_argument("--dry-run", action="store_true", help="pouze uložit XML, neodesílat")

    codes = sub.add_parser("codes", help="spočítat PKP a BKP")
    codes.add_argument("amount")
    codes.add_argument("porad_cis")
    codes.add_argument("date", help="datum tržby (ISO 8601)")
    return parser


def main(argv: list[str] | None = None) -> None:
    """Entry point for the eet command."""
    args = _parser().parse_args(argv)

    if args.command == "init":
        _init_config()
        return

    if not _preflight():
        sys.exit(1)

    handler = _cmd_send if args.command == "send" else _cmd_codes
    try:
        code = handler(args)
    except KeyError as e:
        print(f"Chyba: chybí nastavení {e}")
        sys.exit(1)
    except EETError as e:
        print(f"Chyba: {e}")
        sys.exit(1)
    sys.exit(code)


if __name__ == "__main__":
    main()

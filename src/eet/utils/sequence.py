from __future__ import annotations

import json
import os
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from filelock import FileLock

from eet import config as _config


def _sequence_file() -> Path:
    return _config.get_data_dir() / "sequence.json"


def _key(env: str, id_pokl: str) -> str:
    return f"{env}/{id_pokl}"


@contextmanager
def _locked() -> Iterator[None]:
    """Hold an exclusive file lock during sequence read-modify-write."""
    sf = _sequence_file()
    sf.parent.mkdir(parents=True, exist_ok=True)
    lock = FileLock(sf.with_suffix(".lock"))
    with lock:
        yield


def _load() -> dict[str, int]:
    sf = _sequence_file()
    if not sf.exists():
        return {}
    return json.loads(sf.read_text())


def _save(data: dict[str, int]) -> None:
    sf = _sequence_file()
    sf.parent.mkdir(parents=True, exist_ok=True)
    tmp = sf.with_suffix(".tmp")
    tmp.write_text(json.dumps(data, indent=2, sort_keys=True))
    os.replace(tmp, sf)


def current_porad_cis(id_pokl: str, env: str = "playground") -> int:
    with _locked():
        return _load().get(_key(env, id_pokl), 0)


def next_porad_cis(id_pokl: str, env: str = "playground") -> int:
    """Reserve and return the next receipt number for a cash register."""
    with _locked():
        data = _load()
        key = _key(env, id_pokl)
        data[key] = data.get(key, 0) + 1
        _save(data)
        return data[key]


def peek_next_porad_cis(id_pokl: str, env: str = "playground") -> int:
    """Return the next receipt number without persisting it."""
    with _locked():
        return _load().get(_key(env, id_pokl), 0) + 1


def set_porad_cis(value: int, id_pokl: str, env: str = "playground") -> None:
    with _locked():
        data = _load()
        data[_key(env, id_pokl)] = value
        _save(data)

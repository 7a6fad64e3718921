"""Local persistence for the staff profile and per-scope goal drafts."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Protocol, Sequence

from src.app_config import DEFAULT_STORAGE_ROOT, expand_env_path, storage_root_from_env


PROFILE_KEY = "mgw.profile"
DRAFT_KEY_PREFIX = "mgw.draft"
DRAFT_SCOPE_SEPARATOR = "|"

STORE_DIR = DEFAULT_STORAGE_ROOT
LOCAL_STORE_FILE = STORE_DIR / "local_storage.json"


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryStore:
    """In-process store; nothing survives the process."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = str(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._data)


class JsonFileStore:
    """String values kept in one JSON object file, rewritten whole on each write."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError, UnicodeDecodeError):
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _save(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(f"{self.path.suffix}.tmp")
        tmp.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
        tmp.replace(self.path)

    def get(self, key: str) -> str | None:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = str(value)
        self._save(data)

    def delete(self, key: str) -> None:
        data = self._load()
        if key not in data:
            return
        del data[key]
        self._save(data)

    def keys(self) -> list[str]:
        return sorted(self._load())


def configure_storage_root(path_value: str | Path | None) -> Path:
    """Point the default store at a new root directory."""

    global STORE_DIR, LOCAL_STORE_FILE
    STORE_DIR = expand_env_path(path_value, DEFAULT_STORAGE_ROOT)
    LOCAL_STORE_FILE = STORE_DIR / "local_storage.json"
    return STORE_DIR


def storage_root_path() -> str:
    return str(STORE_DIR.resolve())


def default_store() -> JsonFileStore:
    return JsonFileStore(LOCAL_STORE_FILE)


@dataclass
class Profile:
    staff_name: str = ""
    last_region: str = ""
    last_chapter: str = ""


def _read_json(store: KeyValueStore, key: str):
    raw = store.get(key)
    if not raw:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return None


def load_profile(store: KeyValueStore) -> Profile:
    parsed = _read_json(store, PROFILE_KEY)
    if not isinstance(parsed, dict):
        return Profile()
    return Profile(
        staff_name=str(parsed.get("staff_name") or ""),
        last_region=str(parsed.get("last_region") or ""),
        last_chapter=str(parsed.get("last_chapter") or ""),
    )


def save_profile(store: KeyValueStore, profile: Profile) -> None:
    store.set(PROFILE_KEY, json.dumps(asdict(profile)))


def build_draft_key(region: str, chapter: str, staff: str, month_keys: Sequence[str]) -> str:
    scope = DRAFT_SCOPE_SEPARATOR.join([region.strip(), chapter.strip(), staff.strip(), *month_keys])
    return f"{DRAFT_KEY_PREFIX}:{scope}"


def load_draft(store: KeyValueStore, key: str) -> dict | None:
    parsed = _read_json(store, key)
    if not isinstance(parsed, dict):
        return None
    return parsed


def save_draft(store: KeyValueStore, key: str, draft: dict) -> None:
    store.set(key, json.dumps(draft))


def clear_draft(store: KeyValueStore, key: str) -> None:
    store.delete(key)


configure_storage_root(storage_root_from_env())

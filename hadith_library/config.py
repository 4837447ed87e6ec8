"""
Config: .hadith_library.json (provider choice, Supabase connection, cache tuning) plus
environment overrides. A .env in cwd or repo root is loaded first.
data_path is relative to the config file directory.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict

from dotenv import load_dotenv
from pydantic import ValidationError

from hadith_library.models import LibrarySettings

log = logging.getLogger(__name__)

CONFIG_FILENAME = ".hadith_library.json"

# (env var, settings key) in increasing priority; env wins over the config file.
ENV_OVERRIDES = [
    ("NEXT_PUBLIC_SUPABASE_URL", "supabase_url"),
    ("NEXT_PUBLIC_SUPABASE_ANON_KEY", "supabase_key"),
    ("SUPABASE_URL", "supabase_url"),
    ("SUPABASE_ANON_KEY", "supabase_key"),
    ("HADITH_LIBRARY_PROVIDER", "provider"),
    ("HADITH_LIBRARY_DATA", "data_path"),
]

SETTING_KEYS = tuple(LibrarySettings.model_fields)


def _find_repo_root() -> Path | None:
    """Walk up from package dir to find a directory containing pyproject.toml or .hadith_library.json."""
    try:
        start = Path(__file__).resolve().parent
    except NameError:
        return None
    for parent in [start, *start.parents]:
        if (parent / "pyproject.toml").exists() or (parent / CONFIG_FILENAME).exists():
            return parent
    return None


def load_env() -> None:
    """Load .env from cwd, else repo root. Existing environment variables are kept."""
    candidates = [Path.cwd() / ".env"]
    repo = _find_repo_root()
    if repo is not None:
        candidates.append(repo / ".env")
    for path in candidates:
        if path.is_file():
            load_dotenv(path)
            break


def get_config_path() -> Path:
    """Path to the config file. Env HADITH_LIBRARY_CONFIG wins; else cwd; else repo root; else cwd for create."""
    env_path = os.environ.get("HADITH_LIBRARY_CONFIG")
    if env_path:
        return Path(env_path).resolve()
    cwd_file = (Path.cwd() / CONFIG_FILENAME).resolve()
    if cwd_file.exists():
        return cwd_file
    repo = _find_repo_root()
    if repo is not None and (repo / CONFIG_FILENAME).exists():
        return (repo / CONFIG_FILENAME).resolve()
    return cwd_file


def load_config() -> Dict[str, Any]:
    """Load raw config dict from file; {} plus _no_file/_load_error markers when missing or unreadable."""
    path = get_config_path()
    out: Dict[str, Any] = {}
    if not path.exists():
        out["_no_file"] = True
    else:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            if isinstance(data, dict):
                out.update(data)
            else:
                out["_load_error"] = True
        except (json.JSONDecodeError, OSError) as e:
            log.warning("Could not read config %s: %s", path, e)
            out["_load_error"] = True
    out["_config_file"] = str(path)
    return out


def save_config(data: Dict[str, Any]) -> None:
    """Save config. Only known setting keys are written."""
    path = Path(data.get("_config_file") or get_config_path())
    to_save = {k: v for k, v in data.items() if k in SETTING_KEYS and v is not None}
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(to_save, f, indent=2, ensure_ascii=False)


def load_settings(overrides: Dict[str, Any] | None = None) -> LibrarySettings:
    """
    Resolve settings: defaults < config file < environment < overrides.
    Raises ValueError listing invalid values.
    """
    load_env()
    data = load_config()
    values = {k: v for k, v in data.items() if k in SETTING_KEYS}
    if values.get("data_path"):
        base = Path(data["_config_file"]).parent
        values["data_path"] = (base / str(values["data_path"])).resolve()
    for env_name, key in ENV_OVERRIDES:
        value = os.environ.get(env_name)
        if value:
            values[key] = value
    if overrides:
        values.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return LibrarySettings(**values)
    except ValidationError as e:
        errors = "\n".join(
            f"  - {'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ValueError(f"Invalid configuration:\n{errors}") from e


def set_value(key: str, value: str) -> Dict[str, Any]:
    """Validate and persist a single setting. Returns {"ok", "error"?, "config"}."""
    if key not in SETTING_KEYS:
        return {"ok": False, "error": f"Unknown setting '{key}'. Known: {', '.join(SETTING_KEYS)}", "config": load_config()}
    data = load_config()
    if data.get("_load_error"):
        return {"ok": False, "error": f"Config file {data['_config_file']} is not valid JSON.", "config": data}
    candidate = {k: v for k, v in data.items() if k in SETTING_KEYS}
    candidate[key] = value
    try:
        validated = LibrarySettings(**candidate)
    except ValidationError as e:
        return {"ok": False, "error": e.errors()[0]["msg"], "config": data}
    field_value = getattr(validated, key)
    data[key] = str(field_value) if isinstance(field_value, Path) else field_value
    save_config(data)
    return {"ok": True, "config": load_config()}

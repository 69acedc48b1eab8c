"""Settings for the ``taverna`` command.

Every setting resolves from the first source that supplies a valid value:

1. the command-line flag,
2. the ``TAVERNA_<NAME>`` environment variable,
3. the active profile's table in ``~/.taverna/config.toml``,
4. the built-in default.

The profile is chosen with ``--profile`` or ``TAVERNA_PROFILE``. Values that
fail to parse are skipped with a warning so a later source can supply one.
"""

from __future__ import annotations

import json
import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from taverna_server_sdk.types import DEFAULT_POLL_INTERVAL

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

CONFIG_PATH = Path.home() / ".taverna" / "config.toml"
DEFAULT_PROFILE = "default"
DEFAULT_REQUEST_TIMEOUT = 30.0


def parse_seconds(text: str) -> float:
    """A strictly positive number of seconds."""
    seconds = float(text)
    if not seconds > 0:
        raise ValueError(f"'{text}' is not a positive number of seconds")
    return seconds


# Setting name -> parser applied to the raw text of every source.
SETTINGS: dict[str, Callable[[str], Any]] = {
    "username": str,
    "password": str,
    "timeout": parse_seconds,
    "poll_interval": parse_seconds,
}
SECRET_SETTINGS = frozenset({"password"})


@dataclass(frozen=True)
class CliConfig:
    """Settings a command runs with, and where each one came from."""

    username: str = ""
    password: str = field(default="", repr=False)
    timeout: float = DEFAULT_REQUEST_TIMEOUT
    poll_interval: float = DEFAULT_POLL_INTERVAL
    profile: str = DEFAULT_PROFILE
    sources: dict[str, str] = field(default_factory=dict, compare=False, repr=False)

    def source_of(self, name: str) -> str:
        return self.sources.get(name, "default")


def load_config(
    *,
    username: str | None = None,
    password: str | None = None,
    timeout: float | None = None,
    poll_interval: float | None = None,
    profile: str | None = None,
    config_path: Path | None = None,
) -> CliConfig:
    """Resolve every setting for *profile* from flags, environment and file."""
    active = profile or os.environ.get("TAVERNA_PROFILE") or DEFAULT_PROFILE
    path = config_path or CONFIG_PATH
    stored = read_document(path).get(active)
    if not isinstance(stored, dict):
        stored = {}

    flags = {
        "username": username,
        "password": password,
        "timeout": timeout,
        "poll_interval": poll_interval,
    }
    values: dict[str, Any] = {}
    sources: dict[str, str] = {}
    for name, parse in SETTINGS.items():
        env_var = f"TAVERNA_{name.upper()}"
        candidates = (
            ("flag", flags[name]),
            (env_var, os.environ.get(env_var)),
            (f"{path} [{active}]", stored.get(name)),
        )
        for origin, raw in candidates:
            if raw is None:
                continue
            try:
                values[name] = parse(str(raw))
            except ValueError:
                logger.warning("Ignoring invalid %s from %s: %r", name, origin, raw)
                continue
            sources[name] = origin
            break

    return CliConfig(profile=active, sources=sources, **values)


def read_document(path: Path) -> dict[str, Any]:
    """Parse the config file; a missing or unreadable file reads as empty."""
    try:
        with path.open("rb") as fh:
            return tomllib.load(fh)
    except FileNotFoundError:
        return {}
    except (tomllib.TOMLDecodeError, OSError) as exc:
        logger.warning("Failed to parse %s: %s", path, exc)
        return {}


def save_config_value(
    key: str,
    value: str,
    *,
    profile: str = DEFAULT_PROFILE,
    config_path: Path | None = None,
) -> Path:
    """Store *key* under ``[profile]``, leaving every other entry as it was.

    Raises:
        KeyError: *key* is not a known setting.
        ValueError: *value* does not parse for *key*.
    """
    if key not in SETTINGS:
        raise KeyError(key)
    SETTINGS[key](value)

    path = config_path or CONFIG_PATH
    document = read_document(path)
    section = document.get(profile)
    if not isinstance(section, dict):
        section = document[profile] = {}
    section[key] = value

    if not path.parent.exists():
        path.parent.mkdir(parents=True)
        if os.name == "posix":
            path.parent.chmod(0o700)
    path.write_text(_dump(document), encoding="utf-8")
    return path


def _dump(document: dict[str, Any]) -> str:
    # Only profile tables of scalar settings are written back.
    tables = []
    for name, section in document.items():
        if not isinstance(section, dict):
            continue
        rows = "".join(f"{key} = {json.dumps(str(val))}\n" for key, val in section.items())
        tables.append(f"[{json.dumps(name)}]\n{rows}")
    return "\n".join(tables)

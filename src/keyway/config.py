"""Configuration management with XDG paths, atomic writes, and credential resolution.

This module handles all persistent configuration for keyway:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.keyway/`` on macOS and Windows.  See :func:`get_config_dir` and
  :func:`get_profiles_dir`.
* **Profiles** -- One JSON file per backend target, each deserialised into a
  :class:`~keyway.models.ClientProfile`.  Managed via :func:`load_profile`,
  :func:`save_profile`, :func:`delete_profile`.
* **Environment overrides** -- :func:`apply_env_overrides` lets
  ``KEYWAY_BASE_URL`` and ``KEYWAY_VERIFY_SSL`` override a loaded profile.
* **Credential resolution** -- :func:`resolve_credential` reads secrets
  from env vars, files or interactive prompts, and
  :func:`build_login_credentials` assembles them for an authenticator.

Profiles never contain secrets, only credential *sources*.
"""

from __future__ import annotations

import json
import os
import platform
import sys
import tempfile
from pathlib import Path

from keyway.exceptions import ConfigError
from keyway.models import AuthConfig, ClientProfile, LoginCredentials

_APP_NAME = "keyway"


# --- XDG path resolution ---


def _ensure_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def _is_xdg_platform() -> bool:
    system = platform.system()
    return system == "Linux" or system.endswith("BSD")


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/keyway/`` (default ``~/.config/keyway/``).
    On macOS/Windows: ``~/.keyway/``.
    """
    if not _is_xdg_platform():
        return _ensure_dir(Path.home() / f".{_APP_NAME}")
    xdg_home = os.environ.get("XDG_CONFIG_HOME")
    root = Path(xdg_home) if xdg_home else Path.home() / ".config"
    return _ensure_dir(root / _APP_NAME)


def get_profiles_dir() -> Path:
    """Return the profiles directory (``<config_dir>/profiles/``), creating it if necessary."""
    return _ensure_dir(get_config_dir() / "profiles")


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Replace *path* with *data* so readers never see a partial file.

    The text goes to a sibling temp file which is fsynced and renamed over
    *path*.  The temp file is removed if anything fails.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    handle, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(handle, "w", encoding="utf-8") as tmp:
            tmp.write(data)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


# --- Profiles ---


def _profile_path(name: str) -> Path:
    return get_profiles_dir() / f"{name}.json"


def list_profiles() -> list[str]:
    """Return all profile names in the profiles directory, sorted alphabetically."""
    return sorted(p.stem for p in get_profiles_dir().glob("*.json") if p.is_file())


def load_profile(name: str) -> ClientProfile:
    """Load and validate a profile from disk.

    Raises:
        ConfigError: If the profile file does not exist, contains invalid
            JSON, or fails validation.
    """
    path = _profile_path(name)
    if not path.is_file():
        raise ConfigError(f"Profile '{name}' not found at {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return ClientProfile.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid profile '{name}' at {path}: {exc}") from exc


def save_profile(profile: ClientProfile) -> None:
    """Persist a profile atomically; the file name is derived from ``profile.name``."""
    data = profile.model_dump(mode="json")
    _atomic_write(_profile_path(profile.name), json.dumps(data, indent=2) + "\n")


def delete_profile(name: str) -> None:
    """Delete a profile's JSON file.

    Raises:
        ConfigError: If the profile does not exist.
    """
    path = _profile_path(name)
    if not path.is_file():
        raise ConfigError(f"Profile '{name}' not found at {path}")
    path.unlink()


def apply_env_overrides(profile: ClientProfile) -> ClientProfile:
    """Return *profile* with environment overrides applied.

    ``KEYWAY_BASE_URL`` replaces the base URL and ``KEYWAY_VERIFY_SSL``
    (``0``/``false``/``no`` to disable) replaces TLS verification.
    """
    updated = profile.model_copy(deep=True)
    env_base_url = os.environ.get("KEYWAY_BASE_URL")
    if env_base_url:
        updated.base_url = env_base_url
    env_verify = os.environ.get("KEYWAY_VERIFY_SSL")
    if env_verify:
        updated.request.verify_ssl = env_verify.strip().lower() not in ("0", "false", "no")
    return updated


# --- Credential source resolution ---


def _from_env(name: str) -> str:
    value = os.environ.get(name)
    if value is None:
        raise ConfigError(f"Environment variable '{name}' is not set (source: env:{name})")
    return value


def _from_file(location: str) -> str:
    path = Path(location).expanduser()
    try:
        return path.read_text(encoding="utf-8").strip()
    except FileNotFoundError as exc:
        raise ConfigError(f"Credential file not found: {path} (source: file:{location})") from exc
    except OSError as exc:
        raise ConfigError(f"Cannot read credential file {path}: {exc}") from exc


def resolve_credential(source: str, label: str = "credential") -> str:
    """Resolve a secret from its source descriptor.

    Supported formats:
        - ``"env:VAR_NAME"`` -- the value of an environment variable
        - ``"file:/path/to/file"`` -- file content, stripped of whitespace
        - ``"prompt"`` -- typed without echo (requires a TTY)

    Args:
        source: The source descriptor string.
        label: What is being asked for, used in the interactive prompt.

    Raises:
        ConfigError: If the source can't be resolved.
    """
    scheme, sep, rest = source.partition(":")
    if sep and scheme == "env":
        return _from_env(rest)
    if sep and scheme == "file":
        return _from_file(rest)
    if source == "prompt":
        if not sys.stdin.isatty():
            raise ConfigError("Cannot prompt for credentials: stdin is not a TTY (source: prompt)")
        from keyway.interactive import obtain_secret

        return obtain_secret(f"{label.capitalize()}: ")
    raise ConfigError(f"Unknown credential source format: {source}")


def build_login_credentials(auth: AuthConfig) -> LoginCredentials:
    """Resolve every configured source of *auth* into :class:`~keyway.models.LoginCredentials`."""
    return LoginCredentials(
        username=auth.username,
        password=resolve_credential(auth.password_source, "password")
        if auth.password_source
        else None,
        passcode=resolve_credential(auth.passcode_source, "passcode")
        if auth.passcode_source
        else None,
        api_key=resolve_credential(auth.api_key_source, "api key")
        if auth.api_key_source
        else None,
    )

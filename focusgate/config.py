"""Config loading for focusgate.

Reads `.focusgate/config.yaml` (or `~/.focusgate/config.yaml`).
Raises SystemExit on parse errors or a missing `version` field.
If no config file is found, returns default values (safe to run without config).

Config search order:
  1. `config_path` argument (explicit override, e.g. the --config flag)
  2. FOCUSGATE_CONFIG environment variable (if set)
  3. `.focusgate/config.yaml` (working directory)
  4. `~/.focusgate/config.yaml` (home directory)

Example file:

    version: 1
    proxy_addr: ":8080"
    web_addr: ":8081"
    policy:
      blacklist: ~/.focusgate/blacklist
      orgdir: ~/org
      blockmode: false
      hours: "8-11,13-17"

Environment variable overrides (applied after the file):
  FOCUSGATE_PROXY_ADDR, FOCUSGATE_WEB_ADDR, FOCUSGATE_BLACKLIST,
  FOCUSGATE_ORGDIR, FOCUSGATE_BLOCKMODE, FOCUSGATE_HOURS

Command-line flags (focusgate.run) are applied last and win over both.
"""

from __future__ import annotations

import os
import pathlib
import sys
from dataclasses import dataclass, field
from typing import NoReturn, Optional

import yaml

from focusgate.constants import (
    CLOCK_POLL_INTERVAL_S,
    DEFAULT_BLACKLIST_PATH,
    DEFAULT_PROXY_ADDR,
    DEFAULT_WEB_ADDR,
)
from focusgate.utils.logger import get_logger

logger = get_logger(__name__)

# ─── Version constants ────────────────────────────────────────────────────────

SUPPORTED_CONFIG_VERSION = 1

SUPPORTED_VERSIONS: frozenset[int] = frozenset({1})

DEFAULT_CONFIG_PATHS = [
    ".focusgate/config.yaml",
    os.path.expanduser("~/.focusgate/config.yaml"),
]

# Redirect page shipped with the package; used when web_root is not configured.
DEFAULT_WEB_ROOT: str = str(pathlib.Path(__file__).parent / "web" / "static")

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


# ─── Dataclasses ─────────────────────────────────────────────────────────────


@dataclass
class PolicyConfig:
    """Static access policy, loaded once at startup.

    blacklist:       Path of the blacklist file (one host pattern per line).
    orgdir:          Time-tracking directory; empty disables the clock watcher.
    blockmode:       Deny blacklisted hosts at all times.
    hours:           Blocked hour windows, e.g. "8-11,13-17".
    poll_interval:   Seconds between clock-state scans.
    watch_blacklist: Hot-reload the blacklist when the file is created, changed
                     or removed (its parent directory is watched).
    """

    blacklist: str = DEFAULT_BLACKLIST_PATH
    orgdir: str = ""
    blockmode: bool = False
    hours: str = ""
    poll_interval: float = CLOCK_POLL_INTERVAL_S
    watch_blacklist: bool = True


@dataclass
class Config:
    """Root configuration object.

    All fields have safe defaults — focusgate can start without any config file.
    """

    version: int = SUPPORTED_CONFIG_VERSION
    proxy_addr: str = DEFAULT_PROXY_ADDR
    web_addr: str = DEFAULT_WEB_ADDR
    web_root: str = DEFAULT_WEB_ROOT
    policy: PolicyConfig = field(default_factory=PolicyConfig)
    path: Optional[str] = None  # Path to the loaded config file

    @classmethod
    def defaults(cls) -> "Config":
        return cls()

    @classmethod
    def from_dict(cls, raw: dict, path: Optional[str] = None) -> "Config":
        """Construct Config from a parsed YAML dict.

        Merges user-supplied values onto defaults; unknown keys are silently ignored.

        Raises:
            SystemExit(1): On a non-positive policy.poll_interval, or a
                           policy.blockmode / policy.watch_blacklist value
                           that is not a boolean.
        """
        policy_raw = raw.get("policy") or {}
        poll_interval = policy_raw.get("poll_interval", CLOCK_POLL_INTERVAL_S)
        if (
            isinstance(poll_interval, bool)
            or not isinstance(poll_interval, (int, float))
            or poll_interval <= 0
        ):
            _config_error(
                f"CONFIG ERROR: Invalid policy.poll_interval: '{poll_interval}'. "
                "Must be a positive number of seconds."
            )

        policy = PolicyConfig(
            blacklist=os.path.expanduser(
                str(policy_raw.get("blacklist", DEFAULT_BLACKLIST_PATH))
            ),
            orgdir=os.path.expanduser(str(policy_raw.get("orgdir") or "")),
            blockmode=_policy_bool(policy_raw, "blockmode", False),
            hours=str(policy_raw.get("hours") or ""),
            poll_interval=float(poll_interval),
            watch_blacklist=_policy_bool(policy_raw, "watch_blacklist", True),
        )

        return cls(
            version=raw.get("version", SUPPORTED_CONFIG_VERSION),
            proxy_addr=str(raw.get("proxy_addr", DEFAULT_PROXY_ADDR)),
            web_addr=str(raw.get("web_addr", DEFAULT_WEB_ADDR)),
            web_root=os.path.expanduser(str(raw.get("web_root") or DEFAULT_WEB_ROOT)),
            policy=policy,
            path=path,
        )


# ─── Address helpers ──────────────────────────────────────────────────────────


def split_listen_addr(addr: str) -> tuple[str, int]:
    """Split a ``host:port`` listen address.

    An empty host (``":8080"``) binds all interfaces.

    Raises:
        ValueError: If the port is missing or not an integer in 1-65535.
    """
    host, sep, port_text = addr.rpartition(":")
    if not sep:
        raise ValueError(f"listen address '{addr}' has no port")
    port = int(port_text)
    if not 0 < port < 65536:
        raise ValueError(f"listen address '{addr}' has an invalid port")
    return host.strip("[]") or "0.0.0.0", port


# ─── Config loading ───────────────────────────────────────────────────────────


def load_config(config_path: Optional[str] = None) -> Config:
    """Load and validate focusgate configuration.

    If no file is found at any search path, returns default Config (not an error).
    If a file is found but invalid, writes the error to stderr and raises SystemExit(1).
    Environment overrides are applied in both cases.

    Raises:
        SystemExit(1): On YAML parse error, missing ``version`` field, unsupported
                       version, invalid poll interval, or an invalid env override.
    """
    search_paths: list[str] = []
    if config_path:
        search_paths.append(config_path)
    env_config = os.environ.get("FOCUSGATE_CONFIG")
    if env_config:
        search_paths.append(env_config)
    search_paths.extend(DEFAULT_CONFIG_PATHS)

    found_path: Optional[str] = None
    for candidate in search_paths:
        expanded = os.path.expanduser(candidate)
        if os.path.isfile(expanded):
            found_path = expanded
            break

    if found_path is None:
        logger.info("No config file found — using defaults", searched=search_paths)
        config = Config.defaults()
        _apply_env_overrides(config)
        return config

    logger.info("Loading config", path=found_path)

    try:
        with open(found_path) as fh:
            raw = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        _config_error(
            f"CONFIG ERROR: Failed to parse {found_path}: {exc}\n"
            "focusgate refuses to start with an invalid config. "
            "Check the YAML syntax and try again."
        )
    except OSError as exc:
        _config_error(f"CONFIG ERROR: Could not read {found_path}: {exc}")

    if not isinstance(raw, dict):
        if raw is None:
            _config_error(
                f"CONFIG ERROR: {found_path} is missing the required 'version' field.\n"
                "Add 'version: 1' to the top of your config file."
            )
        _config_error(
            f"CONFIG ERROR: {found_path} is not a valid YAML mapping.\n"
            "The config file must be a YAML dictionary at the top level."
        )

    version = raw.get("version")
    if version is None:
        _config_error(
            f"CONFIG ERROR: {found_path} is missing the required 'version' field.\n"
            "Add 'version: 1' to the top of your config file."
        )
    if version not in SUPPORTED_VERSIONS:
        _config_error(
            f"CONFIG ERROR: Unsupported config version: {version}. "
            f"Supported versions: {sorted(SUPPORTED_VERSIONS)}."
        )

    config = Config.from_dict(raw, path=found_path)
    _apply_env_overrides(config)

    logger.info(
        "Config loaded",
        path=found_path,
        version=config.version,
        blockmode=config.policy.blockmode,
        hours=config.policy.hours,
    )
    return config


def parse_bool(value: str) -> bool:
    """Parse a boolean flag value such as ``true``/``false``/``1``/``0``.

    Raises:
        ValueError: For any other value.
    """
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"not a boolean: '{value}'")


def _policy_bool(policy_raw: dict, key: str, default: bool) -> bool:
    """Read a boolean policy key from the parsed YAML.

    YAML booleans are used as-is and quoted strings go through parse_bool, so
    ``blockmode: "false"`` means False.

    Raises:
        SystemExit(1): For any other value.
    """
    value = policy_raw.get(key, default)
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        try:
            return parse_bool(value)
        except ValueError:
            pass
    _config_error(
        f"CONFIG ERROR: Invalid policy.{key}: '{value}'. "
        "Must be true or false."
    )


def _apply_env_overrides(config: Config) -> None:
    """Apply FOCUSGATE_* environment overrides to a Config in-place.

    Raises:
        SystemExit(1): If FOCUSGATE_BLOCKMODE is set but not a boolean.
    """
    env = os.environ

    if "FOCUSGATE_PROXY_ADDR" in env:
        config.proxy_addr = env["FOCUSGATE_PROXY_ADDR"]
    if "FOCUSGATE_WEB_ADDR" in env:
        config.web_addr = env["FOCUSGATE_WEB_ADDR"]
    if "FOCUSGATE_BLACKLIST" in env:
        config.policy.blacklist = os.path.expanduser(env["FOCUSGATE_BLACKLIST"])
    if "FOCUSGATE_ORGDIR" in env:
        config.policy.orgdir = os.path.expanduser(env["FOCUSGATE_ORGDIR"])
    if "FOCUSGATE_HOURS" in env:
        config.policy.hours = env["FOCUSGATE_HOURS"]

    env_blockmode = env.get("FOCUSGATE_BLOCKMODE")
    if env_blockmode is not None:
        try:
            config.policy.blockmode = parse_bool(env_blockmode)
        except ValueError:
            _config_error(
                "CONFIG ERROR: FOCUSGATE_BLOCKMODE environment variable is not a "
                f"valid boolean: '{env_blockmode}'"
            )


def _config_error(msg: str) -> NoReturn:
    print(msg, file=sys.stderr)
    raise SystemExit(1)

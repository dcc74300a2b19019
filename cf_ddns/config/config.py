"""
Configuration module for CF-DDNS.
"""

import argparse
import os
import re
import tomllib
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from cf_ddns import __version__
from cf_ddns.errors import ConfigError

DEFAULT_RELOAD_INTERVAL = 300

LOGO = r"""
  ____ _____   ____  ____  _   _ ____
 / ___|  ___| |  _ \|  _ \| \ | / ___|
| |   | |_    | | | | | | |  \| \___ \
| |___|  _|   | |_| | |_| | |\  |___) |
 \____|_|     |____/|____/|_| \_|____/
"""

# Config field -> CLI flag, in the order they are checked
REQUIRED_FIELDS = (
    ("auth_email", "auth-email"),
    ("auth_credential", "auth-key"),
    ("zone_id", "zone-id"),
    ("records", "records"),
)


class Config(BaseModel):
    """Configuration for CF-DDNS. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    # Provider configuration
    auth_email: str
    auth_credential: str
    zone_id: str

    # Records to keep in sync
    records: Tuple[str, ...]

    # Controller configuration
    reload_interval: int = DEFAULT_RELOAD_INTERVAL
    once: bool = False
    dry_run: bool = False

    # Health check server; disabled when None
    health_port: Optional[int] = None

    # Logging configuration
    debug: bool = False

    @field_validator("auth_email", "auth_credential", "zone_id")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    @field_validator("records")
    @classmethod
    def _records_present(cls, value: Tuple[str, ...]) -> Tuple[str, ...]:
        names = tuple(name.strip() for name in value)
        if not names:
            raise ValueError("at least one record is required")
        if any(not name for name in names):
            raise ValueError("record names must not be empty")
        return names

    @field_validator("reload_interval")
    @classmethod
    def _positive_interval(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be greater than 0")
        return value

    @field_validator("health_port")
    @classmethod
    def _valid_port(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and not 0 <= value <= 65535:
            raise ValueError("must be between 0 and 65535")
        return value


FILE_KEYS = {
    "auth_email": "auth_email",
    "auth_key": "auth_credential",
    "zone_id": "zone_id",
    "records": "records",
    "reload_interval": "reload_interval",
    "once": "once",
    "dry_run": "dry_run",
    "health_port": "health_port",
    "debug": "debug",
}


def read_config_file(config_path: Union[str, Path]) -> Dict[str, Any]:
    """
    Read raw settings from a YAML or TOML configuration file.

    Args:
        config_path: Path to the configuration file

    Returns:
        Dict[str, Any]: Settings keyed by config field name

    Raises:
        ConfigError: If the file cannot be read or parsed
    """
    path = Path(config_path)
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"IO error: {e}") from e

    content = _substitute_env_vars(content)

    try:
        if path.suffix.lower() == ".toml":
            data = tomllib.loads(content)
        else:
            data = yaml.safe_load(content)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"TOML parsing error: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"YAML parsing error: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return _flatten_config(data)


def _substitute_env_vars(content: str) -> str:
    """
    Substitute environment variables in the configuration content.

    Args:
        content: Configuration content

    Returns:
        str: Configuration content with environment variables substituted
    """
    # Pattern for ${ENV_VAR} or ${ENV_VAR:-default}
    pattern = r"\${([^}]+)}"

    def replace_env_var(match):
        env_var = match.group(1)
        if ":-" in env_var:
            env_var, default = env_var.split(":-", 1)
            return os.environ.get(env_var, default)
        return os.environ.get(env_var, "")

    return re.sub(pattern, replace_env_var, content)


def _flatten_config(config_data: dict) -> dict:
    """Map file keys onto config fields, dropping keys that are absent."""
    flat_config = {}
    for file_key, field_name in FILE_KEYS.items():
        if config_data.get(file_key) is not None:
            flat_config[field_name] = config_data[file_key]

    if isinstance(flat_config.get("records"), str):
        flat_config["records"] = [flat_config["records"]]
    return flat_config


def build_parser() -> argparse.ArgumentParser:
    """
    Build the command line parser.

    Returns:
        argparse.ArgumentParser: Parser for CF-DDNS options
    """
    parser = argparse.ArgumentParser(
        prog="cf-ddns",
        description=f"{LOGO}\nAutomatically update Cloudflare A records when your IP changes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-c", "--config", type=Path, help="Path to config file (YAML or TOML)"
    )
    parser.add_argument("-e", "--auth-email", help="Cloudflare account email")
    parser.add_argument("-k", "--auth-key", help="Cloudflare API key or API token")
    parser.add_argument(
        "-z", "--zone-id", help="Cloudflare zone ID from domain overview page"
    )
    parser.add_argument(
        "-i",
        "--reload-interval",
        type=int,
        help=f"Update interval in seconds (default: {DEFAULT_RELOAD_INTERVAL})",
    )
    parser.add_argument(
        "-r",
        "--records",
        action="append",
        help="DNS record to update (can be specified multiple times)",
    )
    parser.add_argument(
        "-d", "--debug", action="store_true", default=None, help="Enable debug logging"
    )
    parser.add_argument(
        "--once", action="store_true", default=None, help="Run a single cycle and exit"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=None,
        help="Log record updates without applying them",
    )
    parser.add_argument(
        "--health-port", type=int, help="Serve /health and /metrics on this port"
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    return parser


def load_config(argv: Optional[Sequence[str]] = None) -> Config:
    """
    Build the run configuration from command line arguments and an optional
    config file. Command line values take precedence over file values.

    Args:
        argv: Arguments to parse; defaults to ``sys.argv[1:]``

    Returns:
        Config: Validated configuration

    Raises:
        ConfigError: If a required field is missing or a value is invalid
    """
    args = build_parser().parse_args(argv)

    settings: Dict[str, Any] = {}
    if args.config is not None:
        settings.update(read_config_file(args.config))

    cli_values = {
        "auth_email": args.auth_email,
        "auth_credential": args.auth_key,
        "zone_id": args.zone_id,
        "records": args.records,
        "reload_interval": args.reload_interval,
        "debug": args.debug,
        "once": args.once,
        "dry_run": args.dry_run,
        "health_port": args.health_port,
    }
    for field_name, value in cli_values.items():
        if value is not None:
            settings[field_name] = value

    for field_name, flag in REQUIRED_FIELDS:
        if not settings.get(field_name):
            name = "auth_key" if field_name == "auth_credential" else field_name
            raise ConfigError(f"{name} is required (use --{flag} or config file)")

    try:
        return Config(**settings)
    except ValidationError as e:
        raise ConfigError(_format_validation_error(e)) from e


def _format_validation_error(error: ValidationError) -> str:
    problems: List[str] = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"])
        problems.append(f"{location}: {item['msg']}")
    return "Invalid configuration: " + "; ".join(problems)

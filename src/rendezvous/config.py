"""Configuration management for Rendezvous."""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

RENDEZVOUS_HOME = Path(os.environ.get("RENDEZVOUS_HOME", Path.home() / "rendezvous"))
CONFIG_FILE = RENDEZVOUS_HOME / "config" / "rendezvous.conf"
TOKEN_FILE = RENDEZVOUS_HOME / "config" / ".tokens.json"


@dataclass
class Config:
    """Rendezvous configuration."""

    api_url: str = "http://localhost:5001/api"
    socket_url: str = "http://localhost:5001"
    user_id: str = ""
    timezone: str = "Asia/Manila"
    request_timeout: float = 10
    # Reminder / completion sweep
    reminder_minutes: int = 5
    sweep_interval_seconds: int = 30


@dataclass
class Tokens:
    """Session token issued at login (sent back as the `jwt` cookie)."""

    jwt: str = ""
    user_id: str = ""

    def save(self, path: Path | None = None) -> None:
        """Save tokens to file."""
        path = path or TOKEN_FILE
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps({"jwt": self.jwt, "user_id": self.user_id}))
        path.chmod(0o600)

    @classmethod
    def load(cls, path: Path | None = None) -> "Tokens":
        """Load tokens from file."""
        path = path or TOKEN_FILE
        if not path.exists():
            return cls()
        try:
            data = json.loads(path.read_text())
            return cls(jwt=data.get("jwt", ""), user_id=data.get("user_id", ""))
        except (json.JSONDecodeError, AttributeError):
            return cls()


def _parse_number(key: str, value: str, current, cast):
    try:
        return cast(value)
    except ValueError:
        logger.warning(f"Invalid number for {key.upper()}: {value!r}, keeping {current}")
        return current


def load_config(path: Path | None = None) -> Config:
    """Load configuration from rendezvous.conf."""
    config = Config()
    path = path or CONFIG_FILE

    if not path.exists():
        return config

    for line in path.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue

        if "=" not in line:
            continue

        key, _, value = line.partition("=")
        key = key.strip().lower()
        value = value.strip()

        # Handle quoted values with inline comments: "value" # comment
        if value.startswith('"') or value.startswith("'"):
            quote = value[0]
            end_quote = value.find(quote, 1)
            value = value[1:end_quote] if end_quote != -1 else value[1:]
        elif "#" in value:
            value = value.split("#")[0].strip()

        match key:
            case "api_url":
                config.api_url = value.rstrip("/")
            case "socket_url":
                config.socket_url = value.rstrip("/")
            case "user_id":
                config.user_id = value
            case "timezone":
                config.timezone = value
            case "request_timeout":
                config.request_timeout = _parse_number(key, value, config.request_timeout, float)
            case "reminder_minutes":
                config.reminder_minutes = _parse_number(key, value, config.reminder_minutes, int)
            case "sweep_interval_seconds":
                config.sweep_interval_seconds = _parse_number(key, value, config.sweep_interval_seconds, int)
            case _:
                logger.debug(f"Ignoring unknown config key: {key}")

    return config

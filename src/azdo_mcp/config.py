"""Configuration loading.

Sources, lowest to highest precedence:

1. built-in defaults
2. environment variables (a ``.env`` file in the working directory is loaded first)
3. VS Code / Cursor ``settings.json`` (user and workspace)
4. explicit overrides (CLI options)
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from dataclasses import asdict, dataclass, replace
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from dotenv import load_dotenv

from azdo_mcp import __version__
from azdo_mcp.errors import ConfigurationError

logger = logging.getLogger(__name__)

VALID_LOG_LEVELS: frozenset[str] = frozenset({"error", "warn", "warning", "info", "debug"})

# Key holding this server's own block inside an IDE settings.json.
IDE_SETTINGS_KEY = "azdo-mcp"

ENV_VARS: dict[str, str] = {
    "AZURE_DEVOPS_ORG_URL": "organization_url",
    "AZURE_DEVOPS_TOKEN": "token",
    "AZURE_DEVOPS_PROJECT": "project",
    "HOST": "host",
    "PORT": "port",
    "LOG_LEVEL": "log_level",
    "AZDO_MCP_LOG_FILE": "log_file",
}


@dataclass(frozen=True)
class Settings:
    organization_url: str | None = None
    token: str | None = None
    project: str | None = None
    host: str = "localhost"
    port: int = 3000
    log_level: str = "info"
    log_file: str | None = None
    version: str = __version__

    def validate(self) -> None:
        """Raise ConfigurationError unless the upstream connection can be attempted."""
        if not self.organization_url or not self.token:
            msg = (
                "Azure DevOps organization URL and token are required. Provide them via "
                "--org-url/--token, IDE settings, or AZURE_DEVOPS_ORG_URL/AZURE_DEVOPS_TOKEN."
            )
            raise ConfigurationError(msg)
        parsed = urlparse(self.organization_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            msg = f"Invalid organization URL: {self.organization_url}"
            raise ConfigurationError(msg)
        if not 0 < self.port < 65536:
            msg = f"Invalid port: {self.port}"
            raise ConfigurationError(msg)
        if self.log_level not in VALID_LOG_LEVELS:
            msg = f"Invalid log level: {self.log_level}"
            raise ConfigurationError(msg)

    def redacted(self) -> dict[str, Any]:
        data = asdict(self)
        if data["token"]:
            data["token"] = "*****"
        return data


def _coerce(field_name: str, value: Any) -> Any:
    if field_name == "port":
        try:
            return int(value)
        except (TypeError, ValueError):
            msg = f"Invalid port: {value!r}"
            raise ConfigurationError(msg) from None
    if field_name == "log_level":
        return str(value).lower()
    return value


def _from_env(environ: Mapping[str, str]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for var, field_name in ENV_VARS.items():
        raw = environ.get(var)
        if raw:
            values[field_name] = _coerce(field_name, raw)
    return values


def ide_settings_paths(home: Path | None = None, cwd: Path | None = None) -> list[Path]:
    home = home or Path.home()
    cwd = cwd or Path.cwd()
    return [
        home / ".vscode" / "settings.json",
        cwd / ".vscode" / "settings.json",
        home / ".cursor" / "settings.json",
        cwd / ".cursor" / "settings.json",
    ]


def _from_ide_settings(paths: list[Path]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for path in paths:
        if not path.is_file():
            continue
        try:
            settings = json.loads(path.read_text())
        except (json.JSONDecodeError, OSError, UnicodeDecodeError) as exc:
            logger.debug("Skipping unreadable settings file %s: %s", path, exc)
            continue
        if not isinstance(settings, dict):
            continue

        if settings.get("azureDevOps.organization"):
            values["organization_url"] = f"https://dev.azure.com/{settings['azureDevOps.organization']}"
        if settings.get("azureDevOps.orgUrl"):
            values["organization_url"] = settings["azureDevOps.orgUrl"]
        if settings.get("azureDevOps.token"):
            values["token"] = settings["azureDevOps.token"]
        if settings.get("azureDevOps.project"):
            values["project"] = settings["azureDevOps.project"]

        own = settings.get(IDE_SETTINGS_KEY)
        if isinstance(own, dict):
            for key, field_name in (
                ("organizationUrl", "organization_url"),
                ("token", "token"),
                ("project", "project"),
                ("host", "host"),
                ("port", "port"),
                ("logLevel", "log_level"),
                ("logFile", "log_file"),
            ):
                if own.get(key) is not None:
                    values[field_name] = _coerce(field_name, own[key])
    return values


def load_settings(
    overrides: dict[str, Any] | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    settings_paths: list[Path] | None = None,
    load_env_file: bool = True,
) -> Settings:
    """Merge every configuration source into a :class:`Settings`.

    ``overrides`` entries that are ``None`` are ignored, so unset CLI options
    never mask lower-precedence values.
    """
    if load_env_file and environ is None:
        load_dotenv(Path.cwd() / ".env", override=False)

    merged: dict[str, Any] = {}
    merged.update(_from_env(os.environ if environ is None else environ))
    merged.update(_from_ide_settings(ide_settings_paths() if settings_paths is None else settings_paths))
    for key, value in (overrides or {}).items():
        if value is not None:
            merged[key] = _coerce(key, value)
    return replace(Settings(), **merged)

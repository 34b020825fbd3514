"""Configuration loading from YAML files with environment variable support."""

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml
from dotenv import dotenv_values

from .core.exceptions import ConfigurationError

logger = logging.getLogger("claude-proxy")

# Default path to the config file (relative to project root)
DEFAULT_CONFIG_PATH = "configs/config_default.yaml"

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3000
DEFAULT_TIMEOUT = 60.0

_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}|\$([A-Za-z_][A-Za-z0-9_]*)")


@dataclass
class ProxySettings:
    """Process-wide settings; every field has a default."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    timeout: float = DEFAULT_TIMEOUT
    debug: bool = False
    proxy_url: Optional[str] = None
    openai_stream_usage: bool = True


def resolve_config_path(path: str) -> Path:
    """Anchor a relative config path at the repository root."""
    candidate = Path(path)
    if candidate.is_absolute():
        return candidate
    return Path(__file__).resolve().parent.parent / candidate


def resolve_env_path(config_path: Path, env_path: str | None = None) -> Path:
    """Pick the .env file paired with ``config_path``.

    ``config_<name>.yaml`` pairs with ``.env_<name>``; any other name pairs
    with a plain ``.env`` in the same directory.
    """
    if env_path:
        return resolve_config_path(env_path)
    prefix, _, name = config_path.stem.partition("config_")
    if not prefix and name:
        return config_path.with_name(".env_" + name)
    return config_path.with_name(".env")


def load_env_values(env_path: Path) -> dict[str, str]:
    """Read a .env file into a dict; os.environ is left alone."""
    if not env_path.exists():
        return {}
    values = dotenv_values(env_path)
    return {name: value for name, value in values.items() if value is not None}


def load_config(
    path: str | None = None,
    env_path: str | None = None,
    substitute_env: bool = True,
) -> dict:
    """Load configuration from a YAML file.

    Args:
        path: Path to the config file. Defaults to CLAUDE_PROXY_CONFIG,
              or configs/config_default.yaml in the project root.
        env_path: Optional .env path override for env substitution.
        substitute_env: Whether to substitute environment variables in the config.

    Returns:
        Parsed configuration dictionary, empty when the file does not exist.

    Raises:
        ConfigurationError: The file exists but is not a YAML mapping.
    """
    if path is None:
        path = os.getenv("CLAUDE_PROXY_CONFIG") or DEFAULT_CONFIG_PATH

    config_path = resolve_config_path(path)

    if not config_path.exists():
        logger.info("No config file at %s, using built-in defaults", config_path)
        return {}

    logger.info("Reading configuration from %s", config_path)

    env_values: dict[str, str] = {}
    if substitute_env:
        env_file = resolve_env_path(config_path, env_path)
        if env_file.exists():
            logger.info("Using variables from %s", env_file)
            env_values = load_env_values(env_file)

    with config_path.open("r", encoding="utf-8") as fh:
        try:
            data = yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {config_path} must contain a mapping")

    if substitute_env:
        data = _substitute_env_vars(data, env_values)

    logger.debug("Configuration ready: %s", config_path)
    return data


def _lookup_env(name: str, env_values: Mapping[str, str]) -> Optional[str]:
    if name in env_values:
        return env_values[name]
    return os.getenv(name)


def _substitute_env_vars(
    obj: Any, env_values: Mapping[str, str] | None = None
) -> Any:
    """Expand ``${NAME}`` and ``$NAME`` placeholders in every string of ``obj``.

    Values from ``env_values`` win over the process environment. An unset
    variable keeps its literal placeholder and logs a warning.
    """
    values = env_values or {}

    def expand(match: re.Match) -> str:
        name = match.group(1) or match.group(2)
        value = _lookup_env(name, values)
        if value is None:
            logger.warning("Config references unset variable '%s', keeping placeholder", name)
            return match.group(0)
        return value

    def walk(node: Any) -> Any:
        if isinstance(node, str):
            return _ENV_PATTERN.sub(expand, node)
        if isinstance(node, dict):
            return {key: walk(item) for key, item in node.items()}
        if isinstance(node, list):
            return [walk(item) for item in node]
        return node

    return walk(obj)


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() == "true"


def load_settings(
    config: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> ProxySettings:
    """Build :class:`ProxySettings` from the ``proxy_settings`` config section.

    Environment variables take priority over the config file:
    CLAUDE_PROXY_HOST, CLAUDE_PROXY_PORT, CLAUDE_PROXY_TIMEOUT, DEBUG and
    HTTPS_PROXY / HTTP_PROXY / PROXY_URL (first one set wins).
    ``openai.stream_usage`` (env CLAUDE_PROXY_OPENAI_STREAM_USAGE) controls
    whether streamed OpenAI requests carry ``stream_options``.
    """
    env = os.environ if environ is None else environ
    if config is None:
        config = load_config()

    proxy_settings = config.get("proxy_settings") or {}
    server_cfg = proxy_settings.get("server") or {}

    host = env.get("CLAUDE_PROXY_HOST") or str(server_cfg.get("host", DEFAULT_HOST))

    raw_port = env.get("CLAUDE_PROXY_PORT") or server_cfg.get("port", DEFAULT_PORT)
    try:
        port = int(raw_port)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid port: {raw_port!r}") from exc

    raw_timeout = env.get("CLAUDE_PROXY_TIMEOUT") or proxy_settings.get("timeout", DEFAULT_TIMEOUT)
    try:
        timeout = float(raw_timeout)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid timeout: {raw_timeout!r}") from exc
    if timeout <= 0:
        raise ConfigurationError(f"Timeout must be positive, got {timeout}")

    if "DEBUG" in env:
        debug = _as_bool(env["DEBUG"])
    else:
        debug = _as_bool(proxy_settings.get("debug", False))

    openai_cfg = proxy_settings.get("openai") or {}
    if "CLAUDE_PROXY_OPENAI_STREAM_USAGE" in env:
        openai_stream_usage = _as_bool(env["CLAUDE_PROXY_OPENAI_STREAM_USAGE"])
    else:
        openai_stream_usage = _as_bool(openai_cfg.get("stream_usage", True))

    proxy_url = (
        env.get("HTTPS_PROXY")
        or env.get("HTTP_PROXY")
        or env.get("PROXY_URL")
        or proxy_settings.get("proxy_url")
        or None
    )

    return ProxySettings(
        host=host,
        port=port,
        timeout=timeout,
        debug=debug,
        proxy_url=proxy_url,
        openai_stream_usage=openai_stream_usage,
    )

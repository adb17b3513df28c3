import os
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlsplit

import toml

from .errors import ConfigWriteError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "qwen2.5-coder:7b"
DEFAULT_SERVER_PORT = 11434
DEFAULT_SERVER_URL = f"http://localhost:{DEFAULT_SERVER_PORT}"

MODEL_ENV = "SHLAMA_MODEL"
SERVER_ENV = "OLLAMA_HOST"
CONFIG_DIR_ENV = "SHLAMA_CONFIG_DIR"

MODEL_FILE_NAME = "model"
SETTINGS_FILE_NAME = "config.toml"

DEFAULT_REQUEST_TIMEOUT = 120.0
DEFAULT_PROBE_TIMEOUT = 3.0
DEFAULT_POLL_INTERVAL = 0.5
DEFAULT_MAX_POLL_ATTEMPTS = 30


@dataclass(frozen=True)
class Configuration:
    """Process-wide settings, resolved once at startup and passed to every component."""

    model: str
    server_url: str
    config_dir: str
    model_file: str
    log_dir: str
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    probe_timeout: float = DEFAULT_PROBE_TIMEOUT
    poll_interval: float = DEFAULT_POLL_INTERVAL
    max_poll_attempts: int = DEFAULT_MAX_POLL_ATTEMPTS
    verbose: bool = False
    # SHLAMA_MODEL overrode the saved model for this run
    model_from_env: bool = False


def default_config_dir(env: Optional[Mapping[str, str]] = None) -> str:
    """Return the per-user configuration directory."""
    env = os.environ if env is None else env
    override = env.get(CONFIG_DIR_ENV, "").strip()
    if override:
        return os.path.expanduser(override)
    return os.path.join(os.path.expanduser("~"), ".config", "shlama")


def read_saved_model(path: str) -> Optional[str]:
    """Return the trimmed model name stored at `path`, or None when there is none."""
    if not os.path.exists(path):
        return None
    try:
        with open(path, "r", encoding="utf-8") as f:
            saved = f.read().strip()
    except (IOError, UnicodeDecodeError) as e:
        logger.warning(f"Could not read saved model from {path}: {e}")
        return None
    return saved or None


def resolve_model(
    model_file: str,
    env: Optional[Mapping[str, str]] = None,
    default: str = DEFAULT_MODEL,
) -> str:
    """
    Resolve the active model name.

    The environment variable wins when it is non-empty, then the persisted
    model file, and finally the built-in default.
    """
    env = os.environ if env is None else env
    from_env = env.get(MODEL_ENV, "").strip()
    if from_env:
        return from_env

    saved = read_saved_model(model_file)
    if saved:
        return saved

    return default


def resolve_server_url(env: Optional[Mapping[str, str]] = None, default: str = DEFAULT_SERVER_URL) -> str:
    """Resolve the inference server base URL from the environment or the default."""
    env = os.environ if env is None else env
    url = env.get(SERVER_ENV, "").strip() or default
    # OLLAMA_HOST is commonly given as a bare host or host:port; like the
    # Ollama CLI, only a value without a scheme gets the default port
    if "://" not in url:
        try:
            parts = urlsplit(f"http://{url}")
            has_port = parts.port is not None
        except ValueError:
            logger.warning(f"Could not parse {SERVER_ENV}={url!r}, using it as given")
            return f"http://{url}".rstrip("/")
        netloc = parts.netloc if has_port else f"{parts.netloc}:{DEFAULT_SERVER_PORT}"
        url = f"http://{netloc}{parts.path}"
    return url.rstrip("/")


def persist_model(name: str, path: str) -> None:
    """
    Write the model name as the single line of the model file.

    Args:
        name: The model identifier to persist
        path: Location of the model file; its directory is created if missing

    Raises:
        ConfigWriteError: If the directory or the file could not be written
    """
    try:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(name.strip() + "\n")
    except OSError as e:
        logger.error(f"Failed to save model to {path}: {e}")
        raise ConfigWriteError(f"Could not save model choice to {path}: {e}") from e
    logger.info(f"Saved model '{name}' to {path}")


def load_settings(path: str) -> Dict[str, Any]:
    """Loads the optional TOML settings file, returning an empty mapping when absent or unreadable."""
    if not os.path.exists(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            return toml.load(f)
    except (toml.TomlDecodeError, IOError) as e:
        logger.warning(f"Could not read settings file at {path}. Error: {e}")
        return {}


def _get_setting(settings: Dict[str, Any], section: str, key: str, default: Any, cast: type) -> Any:
    table = settings.get(section) or {}
    if key not in table:
        return default
    if cast is bool:
        # bool("false") is True, so only a real TOML boolean counts
        if isinstance(table[key], bool):
            return table[key]
        logger.warning(f"Ignoring non-boolean value for [{section}] {key}: {table[key]!r}")
        return default
    try:
        return cast(table[key])
    except (TypeError, ValueError):
        logger.warning(f"Ignoring invalid value for [{section}] {key}: {table[key]!r}")
        return default


def load_configuration(env: Optional[Mapping[str, str]] = None, verbose: bool = False) -> Configuration:
    """Build the immutable configuration for this run."""
    env = os.environ if env is None else env
    config_dir = default_config_dir(env)
    model_file = os.path.join(config_dir, MODEL_FILE_NAME)
    settings = load_settings(os.path.join(config_dir, SETTINGS_FILE_NAME))

    log_dir = _get_setting(settings, "logging", "log_dir", os.path.join(config_dir, "logs"), str)

    return Configuration(
        model=resolve_model(model_file, env),
        server_url=resolve_server_url(env),
        config_dir=config_dir,
        model_file=model_file,
        log_dir=os.path.expanduser(log_dir),
        request_timeout=_get_setting(settings, "server", "request_timeout", DEFAULT_REQUEST_TIMEOUT, float),
        probe_timeout=_get_setting(settings, "server", "probe_timeout", DEFAULT_PROBE_TIMEOUT, float),
        poll_interval=_get_setting(settings, "server", "poll_interval", DEFAULT_POLL_INTERVAL, float),
        max_poll_attempts=_get_setting(settings, "server", "max_poll_attempts", DEFAULT_MAX_POLL_ATTEMPTS, int),
        verbose=verbose or _get_setting(settings, "logging", "verbose", False, bool),
        model_from_env=bool(env.get(MODEL_ENV, "").strip()),
    )

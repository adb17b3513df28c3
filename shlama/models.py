import logging
import shutil
import subprocess
from enum import Enum
from typing import Iterable, List, Optional, Union

logger = logging.getLogger(__name__)


class CuratedModel(Enum):
    """Models offered in the selection menu, keyed by their menu number."""

    QWEN_CODER = ("1", "qwen2.5-coder:7b", "Qwen 2.5 Coder 7B - strong at shell and code (default)")
    LLAMA = ("2", "llama3.2:3b", "Llama 3.2 3B - small and fast")
    CODELLAMA = ("3", "codellama:7b", "Code Llama 7B - code-focused")
    MISTRAL = ("4", "mistral:7b", "Mistral 7B - general purpose")

    def __init__(self, key: str, identifier: str, description: str):
        self.key = key
        self.identifier = identifier
        self.description = description


class MenuAction(Enum):
    CUSTOM = "5"
    CANCEL = "0"


MenuChoice = Union[CuratedModel, MenuAction]


def parse_menu_choice(raw: str) -> MenuChoice:
    """Map raw menu input to a curated model, the custom option, or cancel."""
    choice = raw.strip()
    for model in CuratedModel:
        if model.key == choice:
            return model
    if choice == MenuAction.CUSTOM.value:
        return MenuAction.CUSTOM
    return MenuAction.CANCEL


def parse_model_list(output: str) -> List[str]:
    """Extract model names from `ollama list` output."""
    names = []
    for line in output.splitlines()[1:]:
        parts = line.split()
        if parts:
            names.append(parts[0])
    return names


def installed_models() -> Optional[List[str]]:
    """
    Ask the Ollama CLI which models are present locally.

    Returns:
        The model names, or None when the CLI is unavailable or fails
    """
    ollama = shutil.which("ollama")
    if not ollama:
        logger.warning("ollama executable not found on PATH")
        return None
    try:
        result = subprocess.run([ollama, "list"], capture_output=True, text=True, timeout=30)
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.warning(f"'ollama list' failed: {e}")
        return None
    if result.returncode != 0:
        logger.warning(f"'ollama list' exited with {result.returncode}: {result.stderr.strip()}")
        return None
    return parse_model_list(result.stdout)


def is_model_installed(name: str, installed: Iterable[str]) -> bool:
    """Untagged names match their `:latest` tag, as Ollama resolves them."""
    wanted = name if ":" in name else f"{name}:latest"
    return any(model == wanted or model == name for model in installed)


def pull_model(name: str) -> bool:
    """Download a model through the Ollama CLI, passing its progress output through."""
    ollama = shutil.which("ollama")
    if not ollama:
        logger.warning("ollama executable not found on PATH")
        return False
    logger.info(f"Pulling model {name}")
    try:
        result = subprocess.run([ollama, "pull", name])
    except OSError as e:
        logger.error(f"'ollama pull {name}' failed: {e}")
        return False
    return result.returncode == 0

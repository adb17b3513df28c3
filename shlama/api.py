import logging
import re
from typing import Any, Dict, Optional

import requests

from .errors import EmptySuggestionError, InferenceError
from .executor import detect_host_shell

# Configure logging
logger = logging.getLogger(__name__)

FALLBACK_COMMAND = 'echo "Sorry, I cannot produce a safe command for that request."'

_LEADING_FENCE = re.compile(r"^```(?:[\w+#.-]*[ \t]*\r?\n)?")
_TRAILING_FENCE = re.compile(r"\r?\n?```$")


def _error_detail(response: Optional[requests.Response]) -> Optional[str]:
    """Pull Ollama's JSON `error` message out of a failed response, if it has one."""
    if response is None:
        return None
    try:
        body = response.json()
    except ValueError:
        return None
    detail = body.get("error") if isinstance(body, dict) else None
    return detail if isinstance(detail, str) and detail.strip() else None


def build_system_prompt(shell_name: str) -> str:
    """Constructs the fixed system instruction sent with every request."""
    return f"""
You are a command-line assistant. Convert the user's request into exactly one {shell_name} command.

**Rules:**
- Output only the command itself, on a single line.
- Do not add explanations, comments, prose or markdown. Never wrap the command in code fences or backticks.
- Prefer safe, read-only and non-destructive operations whenever they achieve the goal.
- If the request is unclear, or it would be dangerous or destructive, output exactly: {FALLBACK_COMMAND}
""".strip()


def clean_suggestion(text: str) -> str:
    """
    Strip formatting the model sometimes adds around a command.

    Removes at most one leading fence marker (with an optional language tag),
    at most one trailing fence marker, and then a single pair of inline
    backticks. Nested or repeated blocks are not handled.

    Args:
        text: Raw text returned by the model

    Returns:
        The command with surrounding whitespace removed
    """
    cleaned = text.strip()
    cleaned = _LEADING_FENCE.sub("", cleaned, count=1)
    cleaned = _TRAILING_FENCE.sub("", cleaned, count=1).strip()
    if cleaned.startswith("`"):
        cleaned = cleaned[1:]
    if cleaned.endswith("`"):
        cleaned = cleaned[:-1]
    return cleaned.strip()


class OllamaClient:
    """A client for the generation endpoint of an Ollama server."""

    def __init__(self, server_url: str, timeout: float = 120.0, shell_name: Optional[str] = None):
        """
        Initializes the OllamaClient.

        Args:
            server_url: Base URL of the server, without a trailing slash.
            timeout: Seconds to wait for a generation, covering model load time.
            shell_name: Shell named in the system prompt; detected when omitted.
        """
        self.server_url = server_url.rstrip("/")
        self.timeout = timeout
        self.system_prompt = build_system_prompt(shell_name or detect_host_shell().name)

    def _build_payload(self, prompt: str, model: str) -> Dict[str, Any]:
        return {
            "model": model,
            "prompt": prompt,
            "system": self.system_prompt,
            "stream": False,
        }

    def generate_command(self, prompt: str, model: str) -> str:
        """
        Ask the model for a single shell command.

        Raises:
            InferenceError: On timeout, transport failure, an error status or a malformed body
            EmptySuggestionError: If nothing is left after cleanup
        """
        url = f"{self.server_url}/api/generate"
        logger.info(f"Requesting command from {url} with model {model}")
        try:
            response = requests.post(url, json=self._build_payload(prompt, model), timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.Timeout as e:
            logger.error(f"Generation timed out after {self.timeout}s: {e}")
            raise InferenceError(f"The model did not answer within {self.timeout:g} seconds.") from e
        except requests.HTTPError as e:
            detail = _error_detail(e.response)
            logger.error(f"Ollama returned an error status: {e} ({detail})")
            if detail:
                raise InferenceError(f"The inference server returned an error: {detail}") from e
            raise InferenceError(f"Request to the inference server failed: {e}") from e
        except requests.RequestException as e:
            logger.error(f"Error calling Ollama API: {e}")
            raise InferenceError(f"Request to the inference server failed: {e}") from e
        except ValueError as e:
            logger.error(f"Failed to parse response from Ollama: {e}")
            raise InferenceError("Invalid response from the inference server.") from e

        raw = data.get("response") if isinstance(data, dict) else None
        if not isinstance(raw, str):
            logger.error(f"Response is missing the 'response' field: {data!r}")
            raise InferenceError("Invalid response from the inference server.")

        logger.debug(f"Raw model response: {raw!r}")
        suggestion = clean_suggestion(raw)
        if not suggestion:
            raise EmptySuggestionError("The model returned an empty command.")
        return suggestion


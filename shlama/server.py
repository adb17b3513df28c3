import ipaddress
import logging
import os
import platform
import shutil
import subprocess
import time
from typing import Any, Dict, List
from urllib.parse import urlparse

import requests

logger = logging.getLogger(__name__)

WINDOWS_APP_PATH = os.path.join("Programs", "Ollama", "ollama app.exe")
MACOS_APP_PATH = "/Applications/Ollama.app"


def is_loopback_url(url: str) -> bool:
    """Return True when the URL points at this machine."""
    host = urlparse(url).hostname
    if not host:
        return False
    if host == "localhost":
        return True
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        return False
    return address.is_loopback or address.is_unspecified


def _detach_kwargs() -> Dict[str, Any]:
    """Popen options that let the server outlive this process."""
    if platform.system() == "Windows":
        return {"creationflags": subprocess.DETACHED_PROCESS | subprocess.CREATE_NEW_PROCESS_GROUP}
    return {"start_new_session": True}


class OllamaServer:
    """Checks whether the inference server is up and starts a local one when it is not."""

    def __init__(
        self,
        server_url: str,
        probe_timeout: float = 3.0,
        poll_interval: float = 0.5,
        max_attempts: int = 30,
    ):
        self.server_url = server_url.rstrip("/")
        self.probe_timeout = probe_timeout
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts

    @property
    def is_local(self) -> bool:
        return is_loopback_url(self.server_url)

    def is_alive(self) -> bool:
        """Probe the model-listing endpoint; any HTTP response means the server is up."""
        try:
            requests.get(f"{self.server_url}/api/tags", timeout=self.probe_timeout)
        except requests.RequestException as e:
            logger.debug(f"Liveness probe to {self.server_url} failed: {e}")
            return False
        return True

    def _launch_candidates(self) -> List[List[str]]:
        """Commands that may start the server, the installed desktop app first."""
        candidates = []
        system = platform.system()
        if system == "Windows":
            local_app_data = os.environ.get("LOCALAPPDATA")
            if local_app_data:
                app = os.path.join(local_app_data, WINDOWS_APP_PATH)
                if os.path.exists(app):
                    candidates.append([app])
        elif system == "Darwin" and os.path.exists(MACOS_APP_PATH):
            candidates.append(["open", "-a", "Ollama"])

        ollama = shutil.which("ollama")
        if ollama:
            candidates.append([ollama, "serve"])
        return candidates

    def launch(self) -> bool:
        """
        Start the server as a detached background process.

        Returns:
            True if a launch command was started, False if none could be
        """
        for argv in self._launch_candidates():
            try:
                subprocess.Popen(
                    argv,
                    stdin=subprocess.DEVNULL,
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.DEVNULL,
                    **_detach_kwargs(),
                )
            except OSError as e:
                logger.warning(f"Could not start Ollama with {argv}: {e}")
                continue
            logger.info(f"Started Ollama with {argv}")
            return True
        logger.warning("No way to start Ollama was found")
        return False

    def ensure_ready(self) -> bool:
        """
        Make sure the server answers, starting it locally if needed.

        A remote server is never started; the check fails straight away.
        After a launch the server is polled every `poll_interval` seconds,
        at most `max_attempts` times.
        """
        if self.is_alive():
            return True

        if not self.is_local:
            logger.warning(f"Server at {self.server_url} is unreachable and is not local")
            return False

        if not self.launch():
            return False

        for attempt in range(1, self.max_attempts + 1):
            time.sleep(self.poll_interval)
            if self.is_alive():
                logger.info(f"Ollama became ready after {attempt} attempt(s)")
                return True

        logger.error(f"Ollama did not become ready after {self.max_attempts} attempts")
        return False

import logging
import os
import platform
import shutil
import subprocess
from typing import List, Mapping, NamedTuple, Optional

from rich.console import Console
from rich.markup import escape

from .errors import ExecutionError

# Configure logging
logger = logging.getLogger(__name__)

FALLBACK_SHELL = "/bin/sh"


class HostShell(NamedTuple):
    """The shell a suggestion is written for and run by."""

    name: str
    executable: str


def detect_host_shell(env: Optional[Mapping[str, str]] = None) -> HostShell:
    """
    Resolve the user's shell once, so the prompt and the executor agree on it.

    PowerShell on Windows. Elsewhere the program named by $SHELL when it can be
    found, then bash from PATH, then /bin/sh.
    """
    if platform.system() == "Windows":
        return HostShell("PowerShell", "powershell")

    env = os.environ if env is None else env
    shell = env.get("SHELL", "").strip()
    if shell:
        path = shell if os.path.isabs(shell) else shutil.which(shell)
        if path and os.path.isfile(path) and os.access(path, os.X_OK):
            return HostShell(os.path.basename(path), path)
        logger.warning(f"SHELL={shell} not found, falling back")

    bash = shutil.which("bash")
    if bash:
        return HostShell("bash", bash)
    return HostShell(os.path.basename(FALLBACK_SHELL), FALLBACK_SHELL)


class ShellExecutor:
    """Hands a confirmed command to the host shell."""

    def __init__(self, shell: Optional[HostShell] = None):
        self.shell = shell or detect_host_shell()

    def execute(self, command: str) -> int:
        """
        Execute a single shell command, streaming its output to the terminal.

        Args:
            command: The exact command string to run

        Returns:
            The exit status of the command

        Raises:
            ExecutionError: If the shell could not be started or the command failed
        """
        logger.info(f"Executing command with {self.shell.name}: {command}")

        try:
            if platform.system() == "Windows":
                result = subprocess.run([self.shell.executable, "-NoProfile", "-Command", command])
            else:
                result = subprocess.run(command, shell=True, executable=self.shell.executable)
        except OSError as e:
            logger.exception(f"Error executing command '{command}': {e}")
            raise ExecutionError(f"Could not run the command: {e}", command) from e

        if result.returncode != 0:
            logger.error(f"Command failed with return code {result.returncode}: {command}")
            raise ExecutionError(
                f"The command exited with status {result.returncode}.", command, result.returncode
            )

        logger.info(f"Command executed successfully: {command}")
        return result.returncode


class DryRunExecutor:
    """Records commands instead of running them."""

    def __init__(self, console: Console):
        self.console = console
        self.commands: List[str] = []

    def execute(self, command: str) -> int:
        self.commands.append(command)
        self.console.print(f"[dim](dry run) would execute:[/dim] {escape(command)}", highlight=False)
        return 0

import logging
from enum import Enum
from typing import List, Optional, Sequence

from rich.console import Console

from .api import OllamaClient
from .config import Configuration, persist_model
from .errors import (
    ConfigWriteError,
    EmptySuggestionError,
    ExecutionError,
    InferenceError,
    ServerUnavailableError,
    ShlamaError,
    UsageError,
)
from .executor import ShellExecutor, detect_host_shell
from .models import CuratedModel, MenuAction, installed_models, is_model_installed, parse_menu_choice, pull_model
from .server import OllamaServer
from .ui import (
    Ask,
    confirm_execution,
    console_ask,
    display_error,
    display_model_menu,
    display_notice,
    display_success,
    display_suggestion,
)

logger = logging.getLogger(__name__)

INSTALL_HINT = "Install Ollama from https://ollama.com/download, then start it with 'ollama serve'."


class BrokerState(Enum):
    IDLE = "idle"
    VALIDATING_INPUT = "validating_input"
    ENSURING_SERVER = "ensuring_server"
    GENERATING = "generating"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    EXECUTING = "executing"
    DONE = "done"
    FAILED = "failed"


class CommandBroker:
    """Runs one request through suggest, confirm and execute."""

    def __init__(
        self,
        config: Configuration,
        client: Optional[OllamaClient] = None,
        server: Optional[OllamaServer] = None,
        executor=None,
        console: Optional[Console] = None,
        ask: Optional[Ask] = None,
    ):
        self.config = config
        # the prompt and the executor must name the same shell
        host_shell = detect_host_shell()
        self.client = client or OllamaClient(
            config.server_url, timeout=config.request_timeout, shell_name=host_shell.name
        )
        self.server = server or OllamaServer(
            config.server_url,
            probe_timeout=config.probe_timeout,
            poll_interval=config.poll_interval,
            max_attempts=config.max_poll_attempts,
        )
        self.executor = executor or ShellExecutor(host_shell)
        self.console = console or Console()
        self.ask = ask or console_ask(self.console)
        self.state = BrokerState.IDLE
        self.suggestion: Optional[str] = None
        self.execution_failed = False

    def _transition(self, state: BrokerState):
        logger.debug(f"Broker state {self.state.value} -> {state.value}")
        self.state = state

    def _validate(self, words: Sequence[str]) -> str:
        self._transition(BrokerState.VALIDATING_INPUT)
        request = " ".join(words).strip()
        if not request:
            raise UsageError("Please describe what you want to do, e.g. shlama list all files including hidden")
        return request

    def _ensure_server(self):
        self._transition(BrokerState.ENSURING_SERVER)
        with self.console.status("[yellow]Checking Ollama server...[/yellow]"):
            ready = self.server.ensure_ready()
        if not ready:
            if self.server.is_local:
                raise ServerUnavailableError(f"Ollama is not running at {self.config.server_url} and could not be started.")
            raise ServerUnavailableError(f"Cannot reach the Ollama server at {self.config.server_url}.")

    def _generate(self, request: str) -> str:
        self._transition(BrokerState.GENERATING)
        with self.console.status(f"[yellow]Asking {self.config.model}...[/yellow]"):
            return self.client.generate_command(request, self.config.model)

    def _execute(self, command: str):
        self._transition(BrokerState.EXECUTING)
        try:
            self.executor.execute(command)
        except ExecutionError as e:
            self.execution_failed = True
            display_error(
                self.console,
                str(e),
                "The command was started, so some of its effects may already have taken place.",
            )

    def run(self, words: Sequence[str]) -> BrokerState:
        """
        Turn the request words into a command and run it if the user agrees.

        Every error is reported here; the returned state is DONE or FAILED.
        """
        try:
            request = self._validate(words)
            self._ensure_server()
            self.suggestion = self._generate(request)

            self._transition(BrokerState.AWAITING_CONFIRMATION)
            display_suggestion(self.console, self.suggestion)
            if not confirm_execution(self.ask):
                display_notice(self.console, "Command not executed.")
                self._transition(BrokerState.DONE)
                return self.state

            self._execute(self.suggestion)
            self._transition(BrokerState.DONE)
        except UsageError as e:
            display_error(self.console, str(e))
            self._transition(BrokerState.FAILED)
        except ServerUnavailableError as e:
            display_error(self.console, str(e), INSTALL_HINT)
            self._transition(BrokerState.FAILED)
        except (InferenceError, EmptySuggestionError) as e:
            logger.error(f"Generation failed: {e}")
            display_error(self.console, "Failed to generate command.", str(e))
            self._transition(BrokerState.FAILED)
        except ShlamaError as e:
            logger.error(f"Request failed: {e}")
            display_error(self.console, str(e))
            self._transition(BrokerState.FAILED)
        return self.state


class ModelSelector:
    """Interactive menu for choosing and saving the model."""

    def __init__(self, config: Configuration, console: Optional[Console] = None, ask: Optional[Ask] = None):
        self.config = config
        self.console = console or Console()
        self.ask = ask or console_ask(self.console)
        self.failed = False

    def _choose(self) -> Optional[str]:
        display_model_menu(self.console, self.config.model)
        choice = parse_menu_choice(self.ask("\n[bold]Select a model [0-5]:[/bold] "))

        if isinstance(choice, CuratedModel):
            return choice.identifier
        if choice is MenuAction.CUSTOM:
            custom = self.ask("[bold]Model name (e.g. phi3:mini):[/bold] ").strip()
            return custom or None
        return None

    def _offer_download(self, model: str):
        installed: Optional[List[str]] = installed_models()
        if installed is None:
            display_notice(self.console, "Could not check installed models; is the ollama command on your PATH?")
            return
        if is_model_installed(model, installed):
            return

        display_notice(self.console, f"Model '{model}' is not downloaded yet.")
        answer = self.ask("[bold yellow]Download it now?[/bold yellow] \\[y/N]: ")
        if answer.strip().lower() != "y":
            display_notice(self.console, f"Skipped. Run 'ollama pull {model}' before using it.")
            return
        if pull_model(model):
            display_success(self.console, f"Downloaded {model}.")
        else:
            display_error(self.console, f"Download of {model} failed.", f"Try 'ollama pull {model}' manually.")

    def run(self) -> Optional[str]:
        """
        Show the menu, save the chosen model and offer to download it.

        Returns:
            The newly selected model, or None if the selection was cancelled or could not be saved
        """
        model = self._choose()
        if not model:
            display_notice(self.console, "Cancelled. Model unchanged.")
            return None

        try:
            persist_model(model, self.config.model_file)
        except ConfigWriteError as e:
            display_error(self.console, str(e))
            self.failed = True
            return None

        display_success(self.console, f"Model set to {model}.")
        if self.config.model_from_env:
            display_notice(self.console, "Note: SHLAMA_MODEL is set and still takes precedence over the saved choice.")
        self._offer_download(model)
        return model


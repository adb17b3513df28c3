import argparse
import logging
from typing import List, Optional

from rich.console import Console

from . import __version__
from .config import load_configuration
from .errors import UsageError
from .executor import DryRunExecutor
from .handlers import BrokerState, CommandBroker, ModelSelector
from .logger import setup_logging
from .ui import display_error, display_help

logger = logging.getLogger(__name__)

console = Console()


class RequestParser(argparse.ArgumentParser):
    """Argument parser that reports problems as UsageError instead of exiting."""

    def error(self, message):
        raise UsageError(message)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser; help and version are plain flags so their precedence is decided in run_cli."""
    parser = RequestParser(
        prog="shlama",
        description="Turn a natural-language request into a shell command using a local Ollama model.",
        add_help=False,
        allow_abbrev=False,
    )
    parser.add_argument("-h", "--help", action="store_true", help="Show help and exit.")
    parser.add_argument("-v", "--version", action="store_true", help="Show the version and exit.")
    parser.add_argument("-m", "--model", action="store_true", help="Choose the model to use.")
    parser.add_argument("--dry-run", action="store_true", help="Show the command instead of running it.")
    parser.add_argument("--verbose", action="store_true", help="Log progress to the terminal.")
    parser.add_argument("request", nargs="*", help="What you want to do, in plain language.")
    return parser


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse the command line, keeping every word that is not one of our flags.

    Requests such as "explain ls -la" carry their own dashes, and flags may come
    after request words, so unknown options and late words join the request in order.
    """
    args, extra = build_parser().parse_known_args(argv)
    args.request = list(args.request) + extra
    return args


def run_cli(argv: Optional[List[str]] = None) -> int:
    """Parse arguments, dispatch to the requested flow and return the exit code."""
    try:
        args = parse_arguments(argv)
    except UsageError as e:
        display_error(console, str(e), "Run 'shlama --help' for usage.")
        return 1

    if args.help:
        display_help(console, __version__)
        return 0

    if args.version:
        console.print(f"shlama {__version__}")
        return 0

    config = load_configuration(verbose=args.verbose)
    setup_logging(config)
    logger.info(f"Using model {config.model} at {config.server_url}")

    if args.model:
        selector = ModelSelector(config, console=console)
        selector.run()
        return 1 if selector.failed else 0

    executor = DryRunExecutor(console) if args.dry_run else None
    broker = CommandBroker(config, executor=executor, console=console)
    state = broker.run(args.request)
    if state is BrokerState.FAILED or broker.execution_failed:
        return 1
    return 0

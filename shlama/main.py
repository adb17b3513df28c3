import logging
import sys

from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape

from .cli import run_cli

# Configure logging
logger = logging.getLogger(__name__)

error_console = Console(stderr=True)


def main():
    """Main entry point for the application."""
    load_dotenv()
    try:
        exit_code = run_cli()
        sys.exit(exit_code)
    except KeyboardInterrupt:
        logger.info("Operation cancelled by user")
        error_console.print("\n[yellow]Operation cancelled by user[/yellow]")
        sys.exit(130)  # 128 + SIGINT
    except Exception as e:
        logger.exception(f"Unhandled exception: {str(e)}")
        error_console.print(f"[bold red]Error: {escape(str(e))}[/bold red]")
        sys.exit(1)


if __name__ == "__main__":
    main()

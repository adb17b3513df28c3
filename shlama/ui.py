from typing import Callable, Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .models import CuratedModel, MenuAction

Ask = Callable[[str], str]


def console_ask(target: Console) -> Ask:
    """Build a single-line prompt reader bound to a console; end of input reads as empty."""
    def ask(prompt: str) -> str:
        try:
            return target.input(prompt)
        except EOFError:
            target.print()
            return ""
    return ask


def display_help(console: Console, version: str):
    """Displays the usage page."""
    console.print(Panel(
        Text(f"shlama {version} - natural language to shell commands, powered by Ollama", justify="center"),
        border_style="blue"
    ))

    table = Table.grid(padding=(0, 2))
    table.add_column(style="cyan", justify="right")
    table.add_column(style="white")
    table.add_row("-h, --help", "Show this help and exit.")
    table.add_row("-v, --version", "Show the version and exit.")
    table.add_row("-m, --model", "Choose the model to use and save it.")
    table.add_row("--dry-run", "Show the command that would run instead of running it.")
    table.add_row("--verbose", "Log progress to the terminal.")

    console.print("\n[bold]Usage:[/bold] shlama <request...>\n")
    console.print("[bold]Options:[/bold]")
    console.print(table)

    console.print("\n[bold]Environment:[/bold]")
    console.print("  SHLAMA_MODEL   Model to use, overriding the saved choice")
    console.print("  OLLAMA_HOST    Ollama server URL (default http://localhost:11434)")

    console.print("\n[bold]Example Usage:[/bold]")
    console.print("  shlama list all files including hidden")
    console.print("  shlama find files larger than 100MB in this folder")
    console.print("  shlama -m")


def display_suggestion(console: Console, command: str):
    """Displays the suggested command."""
    console.print(Panel(Text(command), title="Suggested Command", border_style="cyan"))


def confirm_execution(ask: Ask) -> bool:
    """Ask the user to confirm; only an exact 'y' or 'Y' counts as yes."""
    answer = ask("[bold yellow]Execute this command?[/bold yellow] \\[y/N]: ")
    return answer.lower() == "y"


def display_error(console: Console, message: str, hint: Optional[str] = None):
    console.print(f"[bold red]Error: {escape(message)}[/bold red]")
    if hint:
        console.print(f"[yellow]{escape(hint)}[/yellow]")


def display_notice(console: Console, message: str):
    console.print(f"[yellow]{escape(message)}[/yellow]")


def display_success(console: Console, message: str):
    console.print(f"[bold green]{escape(message)}[/bold green]")


def display_model_menu(console: Console, current_model: str):
    """Displays the current model and the numbered selection menu."""
    console.print(f"\n[bold]Current model:[/bold] [cyan]{escape(current_model)}[/cyan]\n")

    table = Table(title="Available Models", show_header=True, header_style="bold magenta")
    table.add_column("#", style="cyan", justify="right")
    table.add_column("Model", style="green")
    table.add_column("Description")
    for model in CuratedModel:
        table.add_row(model.key, model.identifier, model.description)
    table.add_row(MenuAction.CUSTOM.value, "custom", "Enter any model name")
    table.add_row(MenuAction.CANCEL.value, "cancel", "Keep the current model")

    console.print(table)

"""
Terminal prompter for Kubehop sessions.

Implements the session Prompter interface with InquirerPy prompts and rich
console output. Ctrl-C or the skip key at a prompt cancels the session.
"""

from typing import Optional, Sequence

from InquirerPy import inquirer
from InquirerPy.base.control import Choice
from rich.console import Console


class TerminalPrompter:
    """Session prompter for an interactive terminal."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console(stderr=True)

    async def choose(self, message: str, options: Sequence[str]) -> Optional[str]:
        try:
            return await inquirer.fuzzy(
                message=f"{message}:",
                choices=[Choice(o, o) for o in options],
                mandatory=False,
            ).execute_async()
        except KeyboardInterrupt:
            return None

    async def ask(self, message: str, default: str) -> Optional[str]:
        try:
            return await inquirer.text(message=f"{message}:", default=default, mandatory=False).execute_async()
        except KeyboardInterrupt:
            return None

    async def confirm(self, message: str, default: bool = False) -> bool:
        try:
            return bool(await inquirer.confirm(message=message, default=default, mandatory=False).execute_async())
        except KeyboardInterrupt:
            return False

    def info(self, message: str) -> None:
        self.console.print(f"[green]{message}[/green]")

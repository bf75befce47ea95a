"""Terminal output and interactive prompts.

Informational messages go to stdout, errors to stderr. Prompts are behind the
:class:`Prompt` protocol so the pipeline can be driven by a scripted provider
in tests instead of a real terminal.
"""

from __future__ import annotations

import sys
from typing import Iterable, Protocol


def info(message: str) -> None:
    print(f"==> {message}", flush=True)


def plain(message: str = "") -> None:
    print(message, flush=True)


def lines(items: Iterable[str]) -> None:
    for item in items:
        print(item, flush=True)


def error(message: str) -> None:
    print(f"Error: {message}", file=sys.stderr, flush=True)


class Prompt(Protocol):
    """Source of operator answers."""

    def ask(self, question: str) -> str:
        """Return the raw line typed in answer to ``question``."""
        ...

    def confirm(self, question: str) -> bool:
        """Ask a yes/no question, defaulting to no."""
        ...


class TerminalPrompt:
    """Prompt backed by blocking reads from standard input."""

    def ask(self, question: str) -> str:
        try:
            return input(question)
        except EOFError:
            return ""

    def confirm(self, question: str) -> bool:
        answer = self.ask(f"{question} [y/N]: ").strip().lower()
        return answer in ("y", "yes")

"""Status notifier implementations.

This module provides a concrete implementation of the StatusNotifier
protocol that renders status updates to a terminal.
"""

from typing import Literal, final

from rich.console import Console
from rich.style import Style
from rich.text import Text


@final
class ConsoleNotifier:
    """Notifier that writes status updates to the console.

    Formats updates as ``[kind] message`` with color coding:
    - ready: Bold green
    - not ready: Yellow
    - errors: Bold red
    - info, chain and RPC URL: Default styling
    """

    __slots__ = ("_console", "_label_style", "_status_styles")

    def __init__(self, console: Console | None = None) -> None:
        """Initialize the notifier.

        Args:
            console: Rich Console instance for output. If None, creates a new one.
        """
        self._console = console or Console()
        self._label_style = Style(color="blue", bold=True)
        self._status_styles: dict[str, Style] = {
            "ready": Style(color="green", bold=True),
            "not ready": Style(color="yellow"),
        }

    def _print(self, label: str, message: str, style: Style | None = None) -> None:
        text = Text()
        _ = text.append(f"[{label}]", style=self._label_style)
        _ = text.append(" ")
        _ = text.append(message, style=style or Style())
        self._console.print(text)

    def status(self, service_name: str, status: Literal["ready", "not ready"]) -> None:
        self._print(service_name, status, self._status_styles.get(status))

    def info(self, message: str) -> None:
        self._print("info", message)

    def error(self, message: str) -> None:
        self._print("error", message, Style(color="red", bold=True))

    def chain(self, rpc_type: str, chain: str, chain_id: int) -> None:
        self._print("chain", f"{chain} (id={chain_id}, rpc={rpc_type})")

    def rpc_url(self, url: str) -> None:
        self._print("rpc", url, Style(dim=True))

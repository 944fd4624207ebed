"""
Status reporting for the movie pipeline.

One Reporter is built per run and handed to every component that talks to
the user. Lines go to the rich console and, when a log directory is given,
are appended as JSON to logs/YYYY-MM-DD.log.
"""

import json
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markup import escape

_STYLES = {
    "info": "cyan",
    "success": "green",
    "warning": "yellow",
    "error": "bold red",
    "stage": "bold",
}


class Reporter:
    """Prints human-readable status lines and keeps a run log."""

    def __init__(self, console: Console | None = None, log_dir: Path | None = None):
        self.console = console or Console()
        self.log_dir = Path(log_dir) if log_dir else None

    def info(self, message: str) -> None:
        self._emit("info", message)

    def success(self, message: str) -> None:
        self._emit("success", message)

    def warn(self, message: str) -> None:
        self._emit("warning", message)

    def error(self, message: str) -> None:
        self._emit("error", message)

    def stage(self, message: str) -> None:
        self._emit("stage", message)

    def record(self, action: str, results: dict) -> None:
        """Append a structured entry (e.g. a batch summary) to the run log."""
        self._append({
            "timestamp": datetime.now().isoformat(),
            "action": action,
            "results": results,
        })

    def _emit(self, level: str, message: str) -> None:
        style = _STYLES[level]
        self.console.print(f"[{style}]{escape(message)}[/{style}]")
        self._append({
            "timestamp": datetime.now().isoformat(),
            "level": level,
            "message": message,
        })

    def _append(self, entry: dict) -> None:
        if self.log_dir is None:
            return
        self.log_dir.mkdir(parents=True, exist_ok=True)
        log_file = self.log_dir / f"{datetime.now().strftime('%Y-%m-%d')}.log"
        with open(log_file, "a") as f:
            f.write(json.dumps(entry) + "\n")

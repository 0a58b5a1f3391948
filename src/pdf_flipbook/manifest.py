"""
Run log and build manifest.

A build renders source pages, splits spreads, writes page images and a
layout file. Each of those steps reports here: human-readable messages go to
the console (filtered by --quiet/--verbose) and into the log list, while
per-page results go into the action list. At the end everything is written
as manifest.json next to the pages.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import json
from pathlib import Path
import sys
from typing import Any, Callable, Dict, List, TextIO

from .utils import ensure_dir


# Console levels shown per verbosity; every level is always kept in the log.
LEVELS_BY_VERBOSITY = {
    "quiet": {"error"},
    "normal": {"info", "warning", "error"},
    "verbose": {"debug", "info", "warning", "error"},
}


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class ManifestRecorder:
    """
    Shared sink for one build's messages and page results.

    The pipeline and the exporter take it as an optional argument; callers
    that only want the rendered pages can leave it out.
    """

    tool_name: str
    tool_version: str
    command: str
    options: Dict[str, Any]
    inputs: Dict[str, Any]
    outputs: Dict[str, Any]
    dry_run: bool
    verbosity: str = "normal"
    console_stream: TextIO = field(default_factory=lambda: sys.stderr)
    started_at: str = field(default_factory=_utc_timestamp)
    logs: List[Dict[str, Any]] = field(default_factory=list)
    actions: List[Dict[str, Any]] = field(default_factory=list)

    def log(self, message: str, level: str = "info") -> None:
        self.logs.append({"timestamp": _utc_timestamp(), "level": level, "message": message})

        visible = LEVELS_BY_VERBOSITY.get(self.verbosity, LEVELS_BY_VERBOSITY["normal"])
        if level in visible:
            line = f"[{level}] {message}" if self.verbosity == "verbose" else message
            print(line, file=self.console_stream)

    def add_action(self, action: str, status: str, **details: Any) -> None:
        """
        Record one step result.

        action is what happened to which item (render_page, split_page,
        write_page, write_layout, build); status is the outcome (rendered,
        split, placeholder, written, skipped, dry-run, error). Extra keyword
        details such as source_page or output are stored as-is.
        """

        self.actions.append(
            {"timestamp": _utc_timestamp(), "action": action, "status": status, **details}
        )

    def progress_callback(self) -> Callable[[float], None]:
        """Adapt process_document's on_progress to debug log lines."""

        def _on_progress(fraction: float) -> None:
            self.log(f"Progress: {fraction * 100:.0f}%", level="debug")

        return _on_progress

    def _count_by(self, key: str) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for entry in self.actions:
            value = entry.get(key, "unknown")
            counts[value] = counts.get(value, 0) + 1
        return counts

    def _summarize_actions(self) -> Dict[str, int]:
        return self._count_by("status")

    def build_manifest(self, summary: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "tool": self.tool_name,
            "version": self.tool_version,
            "command": self.command,
            "started_at": self.started_at,
            "ended_at": _utc_timestamp(),
            "options": self.options,
            "inputs": self.inputs,
            "outputs": self.outputs,
            "summary": summary,
            "action_counts": self._summarize_actions(),
            "actions_by_type": self._count_by("action"),
            "actions": self.actions,
            "logs": self.logs,
        }

    def write_manifest(self, path: Path, summary: Dict[str, Any]) -> None:
        """Write manifest.json; a dry-run build only logs where it would go."""

        if self.dry_run:
            self.log(f"[dry-run] Would write manifest to {path}")
            return

        ensure_dir(path.parent, dry_run=False)
        with path.open("w", encoding="utf-8") as handle:
            json.dump(self.build_manifest(summary), handle, indent=2, ensure_ascii=True)

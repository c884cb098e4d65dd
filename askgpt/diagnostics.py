"""
Diagnostics — the error log.

Two parts:
  1. ErrorLog: appends one structured JSONL entry per failed (or degraded)
     request, capped at 1 MiB by trimming the oldest bytes
  2. show_errors(): reads the log back and renders a color-coded view

The error log is separate from the debug log. It's a structured record of
what went wrong, against which model and endpoint, so a bad configuration
can be diagnosed after the fact.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

ERROR_LOG_MAX_BYTES = 1024 * 1024

# ANSI colors
C_RESET = "\033[0m"
C_BOLD = "\033[1m"
C_DIM = "\033[2m"
C_MODEL = "\033[95m"      # magenta
C_TIME = "\033[90m"       # gray
C_BORDER = "\033[90m"     # gray
C_WARN = "\033[93m"       # yellow
C_ERROR = "\033[91m"      # red

WARNING_KINDS = {"unsupported_parameter"}


class ErrorLog:
    """
    Append-only JSONL log for request failures.
    Each line is one event.

    Format:
        {"timestamp": "2026-01-01T00:00:00Z", "kind": "http_error",
         "model": "...", "endpoint": "...", "detail": {...}}
    """

    def __init__(self, log_path: str | Path, max_bytes: int = ERROR_LOG_MAX_BYTES):
        self.log_path = Path(log_path)
        self.max_bytes = max_bytes

    def record(self, kind: Any, model: str = "", endpoint: str = "", detail: dict | None = None) -> None:
        """Write one entry. Never raises."""
        try:
            entry = {
                "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
                "kind": getattr(kind, "value", kind),
                "model": model,
                "endpoint": endpoint,
                "detail": detail or {},
            }
            line = json.dumps(entry, ensure_ascii=False, default=str)
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.log_path, "a", encoding="utf-8") as f:
                f.write(line + "\n")
            self._trim()
        except Exception as e:
            logger.debug("Error log write failed (%s): %s", self.log_path, e)

    def _trim(self) -> None:
        """Drop the oldest bytes once the file is over the cap."""
        size = self.log_path.stat().st_size
        if size <= self.max_bytes:
            return
        overflow = size - self.max_bytes
        data = self.log_path.read_bytes()
        self.log_path.write_bytes(data[overflow:])

    def read_entries(self, last_n: int | None = None) -> list[dict]:
        """Parse intact lines. A line cut at the trim boundary is skipped."""
        if not self.log_path.exists():
            return []
        entries = []
        with open(self.log_path, encoding="utf-8", errors="replace") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    entries.append(json.loads(line))
                except json.JSONDecodeError:
                    continue
        if last_n is not None:
            entries = entries[-last_n:] if last_n > 0 else []
        return entries


def _format_entry(entry: dict, raw: bool = False) -> str:
    """Format a single error log entry for display."""
    if raw:
        return json.dumps(entry, ensure_ascii=False)

    ts = entry.get("timestamp", "")
    try:
        dt = datetime.fromisoformat(ts.replace("Z", "+00:00"))
        time_str = dt.strftime("%Y-%m-%d %H:%M:%S")
    except (ValueError, TypeError, AttributeError):
        time_str = ts or "????-??-?? ??:??:??"

    kind = entry.get("kind", "?")
    model = entry.get("model", "")
    endpoint = entry.get("endpoint", "")
    detail = entry.get("detail", {}) or {}

    color = C_WARN if kind in WARNING_KINDS else C_ERROR

    lines = []
    header = f"  {C_TIME}{time_str}{C_RESET} {color}{C_BOLD}{kind.upper()}{C_RESET}"
    if model:
        header += f"  {C_MODEL}[{model}]{C_RESET}"
    lines.append(header)
    if endpoint:
        lines.append(f"      {C_DIM}{endpoint}{C_RESET}")

    for key, value in detail.items():
        text = value if isinstance(value, str) else json.dumps(value, ensure_ascii=False)
        if len(text) > 300:
            text = text[:300] + f" {C_DIM}[... truncated]{C_RESET}"
        lines.append(f"      {key}: {text}")

    lines.append(f"  {C_BORDER}{'─' * 60}{C_RESET}")
    return "\n".join(lines)


def show_errors(log_path: str | Path, last_n: int = 20, kind_filter: str | None = None, raw: bool = False) -> int:
    """Print the last N entries of the error log. Returns how many were shown."""
    error_log = ErrorLog(log_path)
    if not error_log.log_path.exists():
        print(f"  ✓  No error log at {error_log.log_path}")
        return 0

    entries = error_log.read_entries()
    if kind_filter:
        entries = [e for e in entries if e.get("kind") == kind_filter]
    entries = entries[-last_n:] if last_n > 0 else []

    if not raw:
        print(f"  ⚠  {len(entries)} entries from {error_log.log_path}")
        print(f"  {C_BORDER}{'═' * 60}{C_RESET}")
    for entry in entries:
        print(_format_entry(entry, raw=raw))
    return len(entries)

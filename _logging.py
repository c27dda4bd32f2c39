# _logging.py
# ViewBridge - module-tagged console logger with optional JSON-lines file
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

import datetime
import json
import os
import sys
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, TextIO

RESET = "\033[0m"
DIM = "\033[90m"
RED = "\033[91m"
GREEN = "\033[92m"
YELLOW = "\033[33m"
BLUE = "\033[94m"

LEVELS = {"silent": 60, "error": 40, "warn": 30, "info": 20, "debug": 10}

# label -> (severity, colour)
LABELS: Dict[str, tuple[str, str]] = {
    "DEBUG": ("debug", DIM),
    "INFO": ("info", BLUE),
    "SUCCESS": ("info", GREEN),
    "WARN": ("warn", YELLOW),
    "ERROR": ("error", RED),
}


def _color_default(stream: TextIO) -> bool:
    if os.getenv("NO_COLOR") is not None:
        return False
    mode = (os.getenv("VB_LOG_COLOR") or "auto").strip().lower()
    if mode in ("0", "false", "no", "off"):
        return False
    if mode in ("1", "true", "yes", "on"):
        return True
    return bool(getattr(stream, "isatty", lambda: False)())


@dataclass
class _Sinks:
    """Output state shared by a logger and every child derived from it."""

    level_no: int = LEVELS["info"]
    stream: Optional[TextIO] = None
    json_file: Optional[TextIO] = None
    color: Optional[bool] = None
    time_fmt: str = "%Y-%m-%d %H:%M:%S"
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def out(self) -> TextIO:
        # resolved per write so pytest's capsys / redirected stdout are honoured
        return self.stream or sys.stdout

    def colour(self) -> bool:
        return _color_default(self.out) if self.color is None else self.color


class Logger:
    def __init__(
        self,
        module: str = "",
        *,
        context: Optional[Mapping[str, Any]] = None,
        sinks: Optional[_Sinks] = None,
    ):
        self.module = module
        self.context: Dict[str, Any] = dict(context or {})
        self.sinks = sinks or _Sinks()

    # Configuration (applies to all children)
    def set_level(self, level: str) -> None:
        self.sinks.level_no = LEVELS.get(str(level or "").strip().lower(), self.sinks.level_no)

    def enable_json(self, file_path: str) -> None:
        with self.sinks.lock:
            if self.sinks.json_file is None:
                self.sinks.json_file = open(file_path, "a", encoding="utf-8")

    def configure(self, runtime: Mapping[str, Any]) -> None:
        rt = dict(runtime or {})
        self.set_level("debug" if rt.get("debug") else str(rt.get("log_level") or "info"))
        path = str(rt.get("log_json") or "").strip()
        if path:
            self.enable_json(path)

    def enabled(self, severity: str) -> bool:
        return LEVELS.get(severity, LEVELS["info"]) >= self.sinks.level_no

    # Derived loggers
    def child(self, module: str) -> "Logger":
        return Logger(module, context=self.context, sinks=self.sinks)

    def bind(self, **ctx: Any) -> "Logger":
        return Logger(self.module, context={**self.context, **ctx}, sinks=self.sinks)

    # Output
    def _line(self, label: str, msg: str, colour: bool) -> str:
        ts = datetime.datetime.now().strftime(self.sinks.time_fmt)
        tag = f"[{self.module}] " if self.module else ""
        if colour:
            return f"{DIM}[{ts}]{RESET} {tag}{LABELS[label][1]}{label}{RESET} {msg}"
        return f"[{ts}] {tag}{label} {msg}"

    def emit(self, label: str, *parts: Any, extra: Optional[Mapping[str, Any]] = None) -> None:
        label = str(label or "INFO").upper()
        if label == "WARNING":
            label = "WARN"
        if label not in LABELS:
            label = "INFO"
        if not self.enabled(LABELS[label][0]):
            return

        msg = " ".join(str(p) for p in parts)
        s = self.sinks
        with s.lock:
            s.out.write(self._line(label, msg, s.colour()) + "\n")
            s.out.flush()
            if s.json_file is None:
                return
            rec: Dict[str, Any] = {
                "ts": datetime.datetime.now(datetime.timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
                "level": label,
                "module": self.module or None,
                "msg": msg,
            }
            if self.context:
                rec["ctx"] = self.context
            if extra:
                rec["extra"] = dict(extra)
            s.json_file.write(json.dumps(rec, ensure_ascii=False, default=str) + "\n")
            s.json_file.flush()

    def debug(self, *parts: Any, extra: Optional[Mapping[str, Any]] = None) -> None:
        self.emit("DEBUG", *parts, extra=extra)

    def info(self, *parts: Any, extra: Optional[Mapping[str, Any]] = None) -> None:
        self.emit("INFO", *parts, extra=extra)

    def success(self, *parts: Any, extra: Optional[Mapping[str, Any]] = None) -> None:
        self.emit("SUCCESS", *parts, extra=extra)

    def warn(self, *parts: Any, extra: Optional[Mapping[str, Any]] = None) -> None:
        self.emit("WARN", *parts, extra=extra)

    warning = warn

    def error(self, *parts: Any, extra: Optional[Mapping[str, Any]] = None) -> None:
        self.emit("ERROR", *parts, extra=extra)

    # logger("text", level="WARN", module="SYNC")
    def __call__(
        self,
        message: str,
        *,
        level: str = "INFO",
        module: Optional[str] = None,
        extra: Optional[Mapping[str, Any]] = None,
    ) -> None:
        (self.child(module) if module else self).emit(level, message, extra=extra)


log = Logger()

__all__ = ["Logger", "log", "LEVELS"]

# _logging.py
# CineTrack - console logger with colored level labels and an optional JSON-lines sink.
from __future__ import annotations
import sys, datetime, json, threading, time
from typing import Any, Optional, TextIO, Mapping, Dict

RESET = "\033[0m"
DIM = "\033[90m"
RED = "\033[91m"
GREEN = "\033[92m"
YELLOW = "\033[33m"
BLUE = "\033[94m"

LEVELS = {"silent": 60, "error": 40, "warn": 30, "info": 20, "debug": 10}

# ── runtime debug gate (runtime.debug in config.json, cached briefly) ─────
_DEBUG_CACHE: Optional[bool] = None
_DEBUG_TS: float = 0.0
_DEBUG_FORCED: Optional[bool] = None

def force_debug(on: Optional[bool]) -> None:
    """Pin the debug gate (None returns control to config.json)."""
    global _DEBUG_FORCED
    _DEBUG_FORCED = on

def _debug_enabled() -> bool:
    global _DEBUG_CACHE, _DEBUG_TS
    if _DEBUG_FORCED is not None:
        return _DEBUG_FORCED
    now = time.time()
    if _DEBUG_CACHE is None or (now - _DEBUG_TS) > 5.0:
        try:
            from ct_platform.config_base import config_path
            with open(config_path(), "r", encoding="utf-8") as f:
                rt = (json.load(f) or {}).get("runtime") or {}
            _DEBUG_CACHE = bool(rt.get("debug"))
        except (OSError, ValueError):
            _DEBUG_CACHE = False
        _DEBUG_TS = now
    return bool(_DEBUG_CACHE)

class Logger:
    def __init__(
        self,
        stream: TextIO = sys.stdout,
        level: str = "info",
        use_color: bool = True,
        show_time: bool = True,
        time_fmt: str = "%Y-%m-%d %H:%M:%S",
        tag_color_map: Optional[dict[str, str]] = None,
        *,
        _context: Optional[Dict[str, Any]] = None,
        _name: Optional[str] = None,
        _json_stream: Optional[TextIO] = None,
        _lock: Optional[threading.Lock] = None,
    ):
        self.stream = stream
        self.level_no = LEVELS.get(level, 20)
        self.use_color = use_color
        self.show_time = show_time
        self.time_fmt = time_fmt
        self.tag_color_map = tag_color_map or {
            "DEBUG": YELLOW,
            "INFO": BLUE,
            "WARN": YELLOW,
            "ERROR": RED,
            "SUCCESS": GREEN,
        }
        self._context: Dict[str, Any] = dict(_context or {})
        if _name:
            self._context.setdefault("module", _name)
        self._json_stream: Optional[TextIO] = _json_stream
        self._lock = _lock or threading.Lock()

    def set_level(self, level: str) -> None:
        self.level_no = LEVELS.get(level, self.level_no)

    def enable_color(self, on: bool = True) -> None:
        self.use_color = on

    def enable_json(self, file_path: str) -> None:
        self._json_stream = open(file_path, "a", encoding="utf-8")

    def bind(self, **ctx: Any) -> "Logger":
        new_ctx = dict(self._context); new_ctx.update(ctx)
        return Logger(
            stream=self.stream,
            level=self.level_name,
            use_color=self.use_color,
            show_time=self.show_time,
            time_fmt=self.time_fmt,
            tag_color_map=dict(self.tag_color_map),
            _context=new_ctx,
            _name=new_ctx.get("module"),
            _json_stream=self._json_stream,
            _lock=self._lock,
        )

    def child(self, name: str) -> "Logger":
        return self.bind(module=name)

    @property
    def level_name(self) -> str:
        for k, v in LEVELS.items():
            if v == self.level_no:
                return k
        return "info"

    def _fmt_text(self, label: str, msg: str) -> str:
        # "[MODULE] LEVEL message", optionally time-prefixed
        mod = (self._context.get("module") or "").strip()
        col = self.tag_color_map.get(label) if self.use_color else None
        lvl = f"{col}{label}{RESET}" if col else label
        head = f"[{mod}]" if mod else ""
        line = f"{head} {lvl} {msg}".strip()
        if not self.show_time:
            return line
        ts = datetime.datetime.now().strftime(self.time_fmt)
        prefix = f"{DIM}[{ts}]{RESET}" if self.use_color else f"[{ts}]"
        return f"{prefix} {line}"

    def _write(self, label: str, msg: str, extra: Optional[Mapping[str, Any]]) -> None:
        text = self._fmt_text(label, msg)
        with self._lock:
            self.stream.write(text + "\n")
            self.stream.flush()
            if self._json_stream:
                payload: Dict[str, Any] = {
                    "ts": datetime.datetime.now(datetime.timezone.utc).isoformat(timespec="milliseconds"),
                    "level": label,
                    "msg": msg,
                    "ctx": self._context,
                }
                if extra:
                    payload["extra"] = dict(extra)
                self._json_stream.write(json.dumps(payload, ensure_ascii=False, default=str) + "\n")
                self._json_stream.flush()

    def _emit(self, severity: str, label: str, *parts: Any, extra: Optional[Mapping[str, Any]] = None) -> None:
        if severity == "debug":
            if not _debug_enabled():
                return
        elif self.level_no > LEVELS.get(severity, 20):
            return
        self._write(label, " ".join(str(p) for p in parts), extra)

    def debug(self, *parts: Any, extra: Optional[Mapping[str, Any]] = None) -> None:
        self._emit("debug", "DEBUG", *parts, extra=extra)

    def info(self, *parts: Any, extra: Optional[Mapping[str, Any]] = None) -> None:
        self._emit("info", "INFO", *parts, extra=extra)

    def warn(self, *parts: Any, extra: Optional[Mapping[str, Any]] = None) -> None:
        self._emit("warn", "WARN", *parts, extra=extra)

    def error(self, *parts: Any, extra: Optional[Mapping[str, Any]] = None) -> None:
        self._emit("error", "ERROR", *parts, extra=extra)

    def success(self, *parts: Any, extra: Optional[Mapping[str, Any]] = None) -> None:
        self._emit("info", "SUCCESS", *parts, extra=extra)

    # log("text", level="WARN", module="SYNC")
    def __call__(
        self,
        message: str,
        *,
        level: str = "INFO",
        module: Optional[str] = None,
        extra: Optional[Mapping[str, Any]] = None,
    ) -> None:
        target = self.bind(module=module) if module else self
        lvl = (level or "INFO").lower()
        if lvl == "debug":
            target.debug(message, extra=extra)
        elif lvl in ("warn", "warning"):
            target.warn(message, extra=extra)
        elif lvl == "error":
            target.error(message, extra=extra)
        elif lvl == "success":
            target.success(message, extra=extra)
        else:
            target.info(message, extra=extra)

# default instance
log = Logger()

__all__ = ["Logger", "log", "force_debug", "LEVELS"]

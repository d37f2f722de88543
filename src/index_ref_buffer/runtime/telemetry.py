"""Telemetry services built directly on telelog.

The buffer layer only talks to this module:

``configure(...)`` -- adopt explicit settings or a named preset
``get_logger()`` -- the configured package logger
``record_event(name, ...)`` -- emit structured events at a chosen level
``span(name, ...)`` -- profile a block and track it under a component
``mutations_traced()`` -- whether buffer mutations should open spans

Settings come from ``INDEX_REF_BUFFER_*`` environment variables unless
``configure`` is given something else.
"""

from __future__ import annotations

import os
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterator, Optional, Tuple, cast

import telelog  # type: ignore[import]

tl = cast(Any, telelog)

ENV_PREFIX = "INDEX_REF_BUFFER_"
LOGGER_NAME = "index_ref_buffer"


def _env(name: str) -> Optional[str]:
    return os.getenv(f"{ENV_PREFIX}{name}")


def _env_flag(name: str, default: bool) -> bool:
    raw = _env(name)
    if raw is None:
        return default
    return raw.lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True, slots=True)
class TelemetrySettings:
    level: str = "INFO"
    console: bool = True
    colored: bool = True
    json: bool = False
    log_file: str = ""
    buffer_size: Optional[int] = None
    trace_mutations: bool = True

    @classmethod
    def from_env(cls) -> "TelemetrySettings":
        buffer_size = None
        if _env_flag("LOG_BUFFERED", False):
            buffer_size = int(_env("LOG_BUFFER_SIZE") or "2048")
        return cls(
            level=(_env("LOG_LEVEL") or "INFO").upper(),
            console=not _env_flag("DISABLE_CONSOLE", False),
            colored=not _env_flag("NO_COLOR", False),
            json=_env_flag("LOG_JSON", False),
            log_file=_env("LOG_FILE") or "",
            buffer_size=buffer_size,
            trace_mutations=_env_flag("TRACE_MUTATIONS", True),
        )


PRESETS: Dict[str, TelemetrySettings] = {
    "development": TelemetrySettings(level="DEBUG"),
    "quiet": TelemetrySettings(console=False, trace_mutations=False),
}

_SETTINGS: Optional[TelemetrySettings] = None
_LOGGER: Optional[Any] = None


def build_config(settings: TelemetrySettings) -> Any:
    """Translate settings into a ``tl.Config``; spans need profiling on."""

    config = tl.Config()
    config.with_min_level(settings.level)
    config.with_console_output(settings.console)
    if settings.console:
        config.with_colored_output(settings.colored)
    if settings.json:
        config.with_json_format(True)
    if settings.log_file:
        config.with_file_output(settings.log_file)
    if settings.buffer_size is not None:
        config.with_buffering(True)
        config.with_buffer_size(settings.buffer_size)
    config.with_profiling(True)
    return config


def configure(
    *,
    settings: Optional[TelemetrySettings] = None,
    preset: Optional[str] = None,
    trace_mutations: Optional[bool] = None,
) -> TelemetrySettings:
    """Swap the active settings and drop the cached logger.

    ``settings`` and ``preset`` are mutually exclusive; with neither, the
    environment is read again. ``trace_mutations`` overrides whichever
    settings were chosen.
    """

    global _SETTINGS, _LOGGER
    if settings is not None and preset is not None:
        raise ValueError("Provide either `settings` or `preset`, not both.")

    if preset is not None:
        try:
            settings = PRESETS[preset.lower()]
        except KeyError as exc:
            raise ValueError(
                f"Unknown preset '{preset}', expected one of {sorted(PRESETS)}."
            ) from exc
    elif settings is None:
        settings = TelemetrySettings.from_env()

    if trace_mutations is not None:
        settings = replace(settings, trace_mutations=trace_mutations)

    _SETTINGS = settings
    _LOGGER = None
    return settings


def _current_settings() -> TelemetrySettings:
    if _SETTINGS is None:
        return configure()
    return _SETTINGS


def mutations_traced() -> bool:
    return _current_settings().trace_mutations


def get_logger() -> Any:
    global _LOGGER
    if _LOGGER is None:
        _LOGGER = tl.Logger.with_config(
            LOGGER_NAME, build_config(_current_settings())
        )
    return _LOGGER


def _stringify(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (bytes, bytearray)):
        return value.hex()
    return repr(value) if isinstance(value, (dict, list, tuple, set)) else str(value)


def _format_pairs(data: Dict[str, Any]) -> list[tuple[str, str]]:
    return [(str(key), _stringify(value)) for key, value in data.items()]


def _resolve_level_method(logger: Any, level: str) -> Tuple[Any, bool]:
    name = level.lower()
    with_attr = getattr(logger, f"{name}_with", None)
    if with_attr is not None:
        return with_attr, True

    attr = getattr(logger, name, None)
    if attr is None:
        raise ValueError(f"Unsupported log level '{level}'.")
    return attr, False


def _log(logger: Any, level: str, message: str, payload: Dict[str, Any]) -> None:
    method, accepts_data = _resolve_level_method(logger, level)
    if accepts_data:
        method(message, _format_pairs(payload))
    else:
        method(f"{message} {payload}")


def record_event(
    name: str, *, level: str = "info", data: Optional[Dict[str, Any]] = None
) -> None:
    """Emit a structured ``event::<name>`` record."""

    _log(get_logger(), level, f"event::{name}", {"event": name, **(data or {})})


@dataclass
class SpanHandle:
    """Handle returned from ``span`` for metadata added while it runs."""

    logger: Any
    span_name: str
    component_name: str
    metadata: Dict[str, str] = field(default_factory=dict)
    failed: bool = False

    def add_metadata(self, key: str, value: Any) -> None:
        self.metadata[key] = _stringify(value)

    def fail(self, reason: str) -> None:
        if self.failed:
            return
        self.failed = True
        payload = {
            "span": self.span_name,
            "component": self.component_name,
            **self.metadata,
            "reason": reason,
        }
        _log(self.logger, "error", "span::fail", payload)


@contextmanager
def span(
    name: str,
    *,
    component: str,
    metadata: Optional[Dict[str, Any]] = None,
) -> Iterator[SpanHandle]:
    """Profile a block under ``component``.

    ``metadata`` is attached as logger context while the block runs and is
    repeated on the failure record if the block raises.
    """

    log = get_logger()
    handle = SpanHandle(logger=log, span_name=name, component_name=component)
    for key, value in (metadata or {}).items():
        handle.add_metadata(key, value)

    with ExitStack() as stack:
        for key, value in handle.metadata.items():
            log.add_context(key, value)
            stack.callback(log.remove_context, key)
        stack.enter_context(log.track_component(component))
        stack.enter_context(log.profile(name))

        try:
            yield handle
        except Exception as exc:
            handle.fail(str(exc))
            raise


__all__ = [
    "PRESETS",
    "SpanHandle",
    "TelemetrySettings",
    "build_config",
    "configure",
    "get_logger",
    "mutations_traced",
    "record_event",
    "span",
]

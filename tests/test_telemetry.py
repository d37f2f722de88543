from __future__ import annotations

from contextlib import contextmanager
from types import SimpleNamespace
from typing import Any, Dict, Iterator, List

import pytest

from index_ref_buffer.buffer import (
    IndexOutOfRangeError,
    IndexRefBuffer,
    ShrinkingReplacementError,
)
from index_ref_buffer.runtime import telemetry
from index_ref_buffer.runtime.telemetry import TelemetrySettings


class RecordingLogger:
    def __init__(self) -> None:
        self.records: List[tuple[str, str, Any]] = []
        self.context: Dict[str, str] = {}
        self.profiles: List[str] = []
        self.components: List[str] = []

    def error_with(self, message: str, pairs: Any) -> None:
        self.records.append(("error", message, dict(pairs)))

    def debug(self, message: str) -> None:
        self.records.append(("debug", message, None))

    def add_context(self, key: str, value: str) -> None:
        self.context[key] = value

    def remove_context(self, key: str) -> None:
        del self.context[key]

    @contextmanager
    def track_component(self, name: str) -> Iterator[None]:
        self.components.append(name)
        yield

    @contextmanager
    def profile(self, name: str) -> Iterator[None]:
        self.profiles.append(name)
        yield


class RecordingConfig:
    def __init__(self) -> None:
        self.calls: List[tuple[str, Any]] = []

    def __getattr__(self, name: str) -> Any:
        return lambda value: self.calls.append((name, value))


@pytest.fixture(autouse=True)
def restore_telemetry() -> Iterator[None]:
    yield
    telemetry.configure()


@pytest.fixture
def recording_logger(monkeypatch: pytest.MonkeyPatch) -> RecordingLogger:
    logger = RecordingLogger()
    monkeypatch.setattr(telemetry, "get_logger", lambda: logger)
    return logger


def test_configure_rejects_settings_and_preset() -> None:
    with pytest.raises(ValueError):
        telemetry.configure(settings=TelemetrySettings(), preset="quiet")


def test_configure_rejects_unknown_preset() -> None:
    with pytest.raises(ValueError):
        telemetry.configure(preset="verbose")


def test_quiet_preset_disables_mutation_spans() -> None:
    settings = telemetry.configure(preset="quiet")

    assert settings.console is False
    assert telemetry.mutations_traced() is False


def test_development_preset_logs_debug() -> None:
    settings = telemetry.configure(preset="Development")

    assert settings.level == "DEBUG"
    assert telemetry.mutations_traced() is True


def test_trace_mutations_flag(monkeypatch: pytest.MonkeyPatch) -> None:
    telemetry.configure(trace_mutations=False)
    assert telemetry.mutations_traced() is False

    monkeypatch.setenv("INDEX_REF_BUFFER_TRACE_MUTATIONS", "off")
    telemetry.configure()
    assert telemetry.mutations_traced() is False

    monkeypatch.setenv("INDEX_REF_BUFFER_TRACE_MUTATIONS", "yes")
    telemetry.configure()
    assert telemetry.mutations_traced() is True


def test_settings_read_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("INDEX_REF_BUFFER_LOG_LEVEL", "debug")
    monkeypatch.setenv("INDEX_REF_BUFFER_DISABLE_CONSOLE", "1")
    monkeypatch.setenv("INDEX_REF_BUFFER_LOG_BUFFERED", "yes")
    monkeypatch.setenv("INDEX_REF_BUFFER_LOG_BUFFER_SIZE", "64")

    settings = telemetry.configure()

    assert settings == TelemetrySettings.from_env()
    assert settings.level == "DEBUG"
    assert settings.console is False
    assert settings.buffer_size == 64
    assert settings.trace_mutations is True


def test_build_config_applies_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(telemetry, "tl", SimpleNamespace(Config=RecordingConfig))

    config = telemetry.build_config(
        TelemetrySettings(level="DEBUG", console=False, buffer_size=64)
    )

    assert config.calls == [
        ("with_min_level", "DEBUG"),
        ("with_console_output", False),
        ("with_buffering", True),
        ("with_buffer_size", 64),
        ("with_profiling", True),
    ]


def test_build_config_with_console_and_file(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(telemetry, "tl", SimpleNamespace(Config=RecordingConfig))

    config = telemetry.build_config(
        TelemetrySettings(colored=False, json=True, log_file="buffer.log")
    )

    assert ("with_colored_output", False) in config.calls
    assert ("with_json_format", True) in config.calls
    assert ("with_file_output", "buffer.log") in config.calls


def test_buffer_works_without_mutation_spans() -> None:
    telemetry.configure(preset="quiet")
    buf = IndexRefBuffer.from_bytes(b"\x01\x02")
    ref = buf.create_reference(1)

    buf.insert(0, 0)
    buf.replace((0, 1), b"ab")

    assert buf.read(ref) == 2
    with pytest.raises(ShrinkingReplacementError):
        buf.replace((0, 3), b"")


def test_rejected_mutations_log_span_failure(recording_logger: RecordingLogger) -> None:
    telemetry.configure(trace_mutations=True)
    buf = IndexRefBuffer.from_bytes(b"abc", name="frame")

    with pytest.raises(ShrinkingReplacementError):
        buf.replace((0, 3), b"")
    with pytest.raises(IndexOutOfRangeError):
        buf.insert(99, 0)

    failures = [
        payload
        for level, message, payload in recording_logger.records
        if message == "span::fail"
    ]
    assert len(failures) == 2
    replace_failure, insert_failure = failures

    assert replace_failure["span"] == "buffer::replace"
    assert replace_failure["component"] == "buffer"
    assert replace_failure["buffer"] == "frame"
    assert replace_failure["bounds"] == "0..3"
    assert "shrinking is not allowed" in replace_failure["reason"]

    assert insert_failure["span"] == "buffer::insert"
    assert insert_failure["index"] == "99"

    assert recording_logger.profiles == ["buffer::replace", "buffer::insert"]
    assert recording_logger.components == ["buffer", "buffer"]
    assert recording_logger.context == {}
    assert buf.content == b"abc"


def test_successful_mutation_logs_no_failure(recording_logger: RecordingLogger) -> None:
    telemetry.configure(trace_mutations=True)
    buf = IndexRefBuffer.from_bytes(b"abc")

    buf.insert_slice(1, b"xy")

    assert recording_logger.profiles == ["buffer::insert_slice"]
    assert recording_logger.records == []


def test_span_handle_reports_failure_once() -> None:
    logger = RecordingLogger()
    handle = telemetry.SpanHandle(
        logger=logger, span_name="buffer::replace", component_name="buffer"
    )
    handle.add_metadata("bounds", (0, 3))

    handle.fail("shrinking")
    handle.fail("shrinking again")

    assert len(logger.records) == 1
    level, message, payload = logger.records[0]
    assert (level, message) == ("error", "span::fail")
    assert payload["reason"] == "shrinking"
    assert payload["bounds"] == "(0, 3)"
    assert payload["component"] == "buffer"


def test_record_event_falls_back_to_plain_method(
    recording_logger: RecordingLogger,
) -> None:
    telemetry.record_event("buffer.reference", level="debug", data={"slot": 0})

    assert recording_logger.records == [
        (
            "debug",
            "event::buffer.reference {'event': 'buffer.reference', 'slot': 0}",
            None,
        )
    ]


def test_record_event_rejects_unknown_level(recording_logger: RecordingLogger) -> None:
    with pytest.raises(ValueError):
        telemetry.record_event("buffer.reference", level="trace")

"""Bitácora append-only en archivos JSONL."""

import json
import logging
import threading

import pytest

from callbridge.core.config import Settings
from callbridge.services.event_log import (
    CALL_LOG,
    TRANSCRIPT_LOG,
    JsonlEventLog,
    MemoryEventLog,
    serialize_record,
)


@pytest.fixture(name="paths")
def fixture_paths(tmp_path):
    return {CALL_LOG: tmp_path / "logs" / "call_log.jsonl", TRANSCRIPT_LOG: tmp_path / "t.jsonl"}


def test_serialize_record_is_single_line() -> None:
    line = serialize_record({"text": "línea\ncon salto", "n": 1})

    assert line.endswith("\n")
    assert line.count("\n") == 1
    assert json.loads(line) == {"text": "línea\ncon salto", "n": 1}


def test_append_writes_one_line_per_record_and_creates_parents(paths) -> None:
    log = JsonlEventLog(paths, fsync=False)
    log.open()
    log.append(CALL_LOG, {"type": "status", "n": 1})
    log.append(CALL_LOG, {"type": "status", "n": 2})
    log.append(TRANSCRIPT_LOG, {"text": "hola"})
    log.close()

    call_lines = paths[CALL_LOG].read_text(encoding="utf-8").splitlines()
    assert [json.loads(line)["n"] for line in call_lines] == [1, 2]
    assert json.loads(paths[TRANSCRIPT_LOG].read_text(encoding="utf-8")) == {"text": "hola"}


def test_append_never_truncates_existing_records(paths) -> None:
    paths[CALL_LOG].parent.mkdir(parents=True)
    paths[CALL_LOG].write_text('{"type":"old"}\n', encoding="utf-8")

    log = JsonlEventLog(paths, fsync=True)
    log.append(CALL_LOG, {"type": "new"})
    log.close()

    lines = paths[CALL_LOG].read_text(encoding="utf-8").splitlines()
    assert [json.loads(line)["type"] for line in lines] == ["old", "new"]


def test_append_reopens_after_close(paths) -> None:
    log = JsonlEventLog(paths, fsync=False)
    log.append(CALL_LOG, {"n": 1})
    log.close()
    log.append(CALL_LOG, {"n": 2})
    log.close()

    assert len(paths[CALL_LOG].read_text(encoding="utf-8").splitlines()) == 2


def test_unserializable_records_are_reported_not_raised(
    paths, caplog: pytest.LogCaptureFixture
) -> None:
    log = JsonlEventLog(paths, fsync=False)

    with caplog.at_level(logging.ERROR, logger="callbridge.storage"):
        log.append(CALL_LOG, {"bad": object()})
        log.append("unknown", {"n": 1})
    log.close()

    messages = [record.getMessage() for record in caplog.records]
    assert "storage.serialize_failed" in messages
    assert "storage.unknown_stream" in messages
    assert not paths[CALL_LOG].exists()


def test_non_finite_numbers_are_rejected_before_writing(
    paths, caplog: pytest.LogCaptureFixture
) -> None:
    log = JsonlEventLog(paths, fsync=False)

    with caplog.at_level(logging.ERROR, logger="callbridge.storage"):
        log.append(TRANSCRIPT_LOG, {"text": "hi", "confidence": float("nan")})
        log.append(TRANSCRIPT_LOG, {"text": "hi", "confidence": 0.5})
    log.close()

    assert [record.getMessage() for record in caplog.records] == ["storage.serialize_failed"]
    lines = paths[TRANSCRIPT_LOG].read_text(encoding="utf-8").splitlines()
    assert lines == ['{"text":"hi","confidence":0.5}']


def test_write_errors_are_reported_not_raised(tmp_path, caplog: pytest.LogCaptureFixture) -> None:
    log = JsonlEventLog({CALL_LOG: tmp_path}, fsync=False)

    with caplog.at_level(logging.ERROR, logger="callbridge.storage"):
        log.open()
        log.append(CALL_LOG, {"n": 1})

    messages = [record.getMessage() for record in caplog.records]
    assert "storage.open_failed" in messages
    assert "storage.append_failed" in messages


def test_concurrent_appends_do_not_interleave(paths) -> None:
    log = JsonlEventLog(paths, fsync=False)
    payload = "x" * 8192

    def writer(worker: int) -> None:
        for n in range(50):
            stream = CALL_LOG if n % 2 else TRANSCRIPT_LOG
            log.append(stream, {"worker": worker, "n": n, "payload": payload})

    threads = [threading.Thread(target=writer, args=(worker,)) for worker in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    log.close()

    total = 0
    for path in paths.values():
        for line in path.read_text(encoding="utf-8").splitlines():
            record = json.loads(line)
            assert record["payload"] == payload
            total += 1
    assert total == 8 * 50


def test_from_settings_uses_configured_paths(tmp_path) -> None:
    settings = Settings(
        call_log_path=str(tmp_path / "a.jsonl"),
        transcript_log_path=str(tmp_path / "b.jsonl"),
        event_log_fsync=False,
    )

    log = JsonlEventLog.from_settings(settings)
    log.append(TRANSCRIPT_LOG, {"text": "x"})
    log.close()

    assert log.streams == (CALL_LOG, TRANSCRIPT_LOG)
    assert (tmp_path / "b.jsonl").exists()


def test_memory_event_log_round_trips_records() -> None:
    log = MemoryEventLog()
    log.open()
    log.append(CALL_LOG, {"type": "status"})
    log.append("missing", {"type": "status"})

    assert log.is_open
    assert log.records(CALL_LOG) == [{"type": "status"}]
    assert log.records(TRANSCRIPT_LOG) == []
    log.close()
    assert not log.is_open

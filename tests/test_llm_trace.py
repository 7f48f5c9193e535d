"""Tests for llm_trace structured event logging."""

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

import llm_trace


@pytest.fixture(autouse=True)
def reset_prune_state():
    llm_trace._last_prune_by_root.clear()


def test_write_trace_creates_partitioned_file(tmp_path):
    data_dir = tmp_path / "data"
    now = datetime(2026, 2, 28, 12, 34, 56, 789000, tzinfo=timezone.utc)

    out = llm_trace.write_trace(
        data_dir=str(data_dir),
        request_id="req_abc123",
        stage="page1_request",
        payload={"k": "v"},
        provider="anthropic",
        tags={"attempts": 3},
        now_utc=now,
    )

    assert out is not None
    out_path = Path(out)
    assert out_path.exists()
    assert "llm_traces/2026-02-28/req_abc123/" in out
    assert out_path.name.startswith("123456.789_page1_request_")

    data = json.loads(out_path.read_text(encoding="utf-8"))
    assert data["schema_version"] == 1
    assert data["request_id"] == "req_abc123"
    assert data["stage"] == "page1_request"
    assert data["provider"] == "anthropic"
    assert data["payload"] == {"k": "v"}
    assert data["tags"] == {"attempts": 3}


def test_unsafe_request_id_sanitised(tmp_path):
    out = llm_trace.write_trace(
        data_dir=str(tmp_path), request_id="../../etc", stage="intro_request", payload={},
    )
    assert out is not None
    assert Path(out).resolve().is_relative_to((tmp_path / "llm_traces").resolve())


def test_missing_identifiers_skip_write(tmp_path):
    assert llm_trace.write_trace(data_dir=str(tmp_path), request_id="", stage="x", payload={}) is None
    assert llm_trace.write_trace(data_dir="", request_id="r", stage="x", payload={}) is None
    assert not (tmp_path / "llm_traces").exists()


def test_write_trace_prunes_old_date_directories(tmp_path):
    data_dir = tmp_path / "data"
    root = data_dir / "llm_traces"
    old_day = root / "2026-01-01"
    old_day.mkdir(parents=True, exist_ok=True)
    (old_day / "stale.json").write_text("{}", encoding="utf-8")
    recent_day = root / "2026-02-20"
    recent_day.mkdir(parents=True, exist_ok=True)

    now = datetime(2026, 2, 28, 12, 0, 0, tzinfo=timezone.utc)
    out = llm_trace.write_trace(
        data_dir=str(data_dir),
        request_id="req1",
        stage="intro_response",
        payload={"text": "x"},
        retention_days=14,
        now_utc=now,
    )

    assert out is not None
    assert not old_day.exists()
    assert recent_day.exists()
    assert (root / "2026-02-28").exists()


def test_prune_ignores_foreign_entries(tmp_path):
    root = tmp_path / "llm_traces"
    (root / "2025-12-31").mkdir(parents=True)
    (root / "notes").mkdir()
    (root / "README.txt").write_text("x", encoding="utf-8")

    now = datetime(2026, 2, 28, tzinfo=timezone.utc)
    assert llm_trace.prune(str(root), retention_days=14, now=now) == 1
    assert sorted(p.name for p in root.iterdir()) == ["README.txt", "notes"]


def test_prune_disabled_with_zero_retention(tmp_path):
    root = tmp_path / "llm_traces"
    (root / "2020-01-01").mkdir(parents=True)
    assert llm_trace.prune(str(root), retention_days=0, now=datetime.now(timezone.utc)) == 0
    assert (root / "2020-01-01").exists()


def test_prune_failure_does_not_block_write(tmp_path, monkeypatch):
    def unreadable(root, retention_days, now):
        raise PermissionError(13, "Permission denied", root)

    monkeypatch.setattr(llm_trace, "prune", unreadable)
    out = llm_trace.write_trace(data_dir=str(tmp_path), request_id="r1", stage="intro_request", payload={})
    assert out is not None
    assert Path(out).exists()


def test_unserialisable_payload_dropped(tmp_path):
    out = llm_trace.write_trace(data_dir=str(tmp_path), request_id="r1", stage="intro_response", payload={"x": object()})
    assert out is None


def test_new_request_id_unique():
    ids = {llm_trace.new_request_id() for _ in range(50)}
    assert len(ids) == 50
    assert all(len(i) == 12 for i in ids)

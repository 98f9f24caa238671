"""
Tests for JSON and in-memory error statistics stores.
"""

import json
import logging
from pathlib import Path

import pytest

from typing_tutor import ErrorModel, JsonErrorStore, MemoryErrorStore


def test_missing_file_loads_empty(json_store: JsonErrorStore) -> None:
    model = json_store.load()
    assert model.error_score == {}
    assert model.pair_stats == {}
    assert model.store is json_store


def test_account_writes_file(json_store: JsonErrorStore) -> None:
    model = json_store.load()
    model.account("a", "b")
    data = json.loads(json_store.path.read_text(encoding="utf-8"))
    assert data == {"error_score": {"a": 10, "b": 1}, "error_stats": {"a -> b": 50}}


def test_round_trip(json_store: JsonErrorStore) -> None:
    model = json_store.load()
    model.account("{", "}")
    model.account("-", ">")
    model.account("{", "{")

    reloaded = json_store.load()
    assert reloaded.error_score == model.error_score
    assert reloaded.pair_stats == model.pair_stats


def test_corrupt_file_loads_empty(json_store: JsonErrorStore, caplog: pytest.LogCaptureFixture) -> None:
    json_store.path.write_text("{not json", encoding="utf-8")
    with caplog.at_level(logging.WARNING):
        model = json_store.load()
    assert model.error_score == {}
    assert "Discarding" in caplog.text


def test_wrong_shape_loads_empty(json_store: JsonErrorStore) -> None:
    json_store.path.write_text(json.dumps({"error_stats": {"bad": 1}}), encoding="utf-8")
    assert json_store.load().pair_stats == {}


def test_save_failure_keeps_memory_state(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    store = JsonErrorStore(blocker / "typing_errors.json")
    model = store.load()
    with caplog.at_level(logging.ERROR):
        model.account("a", "b")
    assert model.score_for("a") == 10
    assert "Could not save" in caplog.text


def test_memory_store_round_trip() -> None:
    store = MemoryErrorStore()
    store.load().account("x", "y")
    reloaded = store.load()
    assert reloaded.pair_count("x", "y") == 50
    assert reloaded.store is store


def test_memory_store_bad_data_loads_empty() -> None:
    store = MemoryErrorStore({"error_score": {"a": -5}})
    assert store.load().error_score == {}


def test_in_dir_file_name(tmp_path: Path) -> None:
    assert JsonErrorStore.in_dir(tmp_path).path == tmp_path / "typing_errors.json"


def test_unbound_model_does_not_save() -> None:
    model = ErrorModel()
    model.account("a", "b")
    assert model.store is None


def test_save_leaves_no_temp_file(json_store: JsonErrorStore) -> None:
    json_store.load().account("a", "b")
    assert json_store.path.exists()
    assert list(json_store.path.parent.iterdir()) == [json_store.path]


def test_failed_write_keeps_previous_file(
    json_store: JsonErrorStore, monkeypatch: pytest.MonkeyPatch
) -> None:
    model = json_store.load()
    model.account("a", "b")
    before = json_store.path.read_text(encoding="utf-8")

    def broken_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr("typing_tutor.os.replace", broken_replace)
    model.account("c", "d")
    assert json_store.path.read_text(encoding="utf-8") == before
    assert json_store.load().pair_count("a", "b") == 50

# tests/test_config.py
import logging
from dataclasses import replace
from datetime import datetime, timedelta

import pytest

from memory_flow.config import (
    ConfigError, INTERVALS_KEY, get_intervals, get_log_level, get_setting,
    set_intervals, set_setting,
)
from memory_flow.db import init_db
from memory_flow.notes import create_note, get_note, load_items, save_item
from memory_flow.scheduler import (
    DEFAULT_INTERVALS, MASTERED_HORIZON, MASTERED_STAGE, Status, classify,
    partition_and_sort,
)

NOW = datetime(2024, 3, 15, 14, 30)


def _note_at(db_path, stage, next_review_at):
    item = create_note(db_path, f"stage {stage}", NOW - timedelta(days=200))
    item = replace(item, review_stage=stage, next_review_at=next_review_at)
    save_item(db_path, item)
    return item


def test_get_setting_default(tmp_db):
    init_db(tmp_db)
    assert get_setting(tmp_db, "missing") is None
    assert get_setting(tmp_db, "missing", "fallback") == "fallback"


def test_set_setting_overwrites(tmp_db):
    init_db(tmp_db)
    set_setting(tmp_db, "theme", "dark")
    set_setting(tmp_db, "theme", "light")
    assert get_setting(tmp_db, "theme") == "light"


def test_intervals_default(tmp_db):
    init_db(tmp_db)
    assert get_intervals(tmp_db) == DEFAULT_INTERVALS


def test_intervals_override(tmp_db):
    init_db(tmp_db)
    set_intervals(tmp_db, [1, 3, 9], NOW)
    assert get_intervals(tmp_db) == (1, 3, 9)


@pytest.mark.parametrize("raw", ["not json", "[]", "{}", "[1, 0]", "[1, -4]", "[1.5]", "[true]"])
def test_invalid_stored_intervals(tmp_db, raw):
    init_db(tmp_db)
    set_setting(tmp_db, INTERVALS_KEY, raw)
    with pytest.raises(ConfigError):
        get_intervals(tmp_db)


def test_set_intervals_rejects_invalid(tmp_db):
    init_db(tmp_db)
    with pytest.raises(ConfigError):
        set_intervals(tmp_db, [2, 0], NOW)
    assert get_setting(tmp_db, INTERVALS_KEY) is None


def test_set_intervals_rejects_table_too_short_for_learning_note(tmp_db):
    init_db(tmp_db)
    item = _note_at(tmp_db, 4, NOW + timedelta(days=3))
    with pytest.raises(ConfigError, match="stage 4"):
        set_intervals(tmp_db, [1, 2], NOW)
    assert get_intervals(tmp_db) == DEFAULT_INTERVALS
    assert get_note(tmp_db, item.id).review_stage == 4


def test_set_intervals_longer_table_keeps_mastered_notes(tmp_db):
    init_db(tmp_db)
    item = _note_at(tmp_db, MASTERED_STAGE, NOW + MASTERED_HORIZON)
    set_intervals(tmp_db, DEFAULT_INTERVALS + (60, 120), NOW)
    stored = get_note(tmp_db, item.id)
    assert stored.review_stage == 9
    assert stored.next_review_at == NOW + MASTERED_HORIZON
    assert classify(stored, NOW, get_intervals(tmp_db)).status is Status.MASTERED


def test_set_intervals_shorter_table_moves_mastered_to_new_top(tmp_db):
    init_db(tmp_db)
    mastered = _note_at(tmp_db, MASTERED_STAGE, NOW + MASTERED_HORIZON)
    learning = _note_at(tmp_db, 2, NOW + timedelta(days=1))
    set_intervals(tmp_db, [3, 10], NOW)
    assert get_note(tmp_db, mastered.id).review_stage == 3
    assert get_note(tmp_db, learning.id).review_stage == 2

    partition = partition_and_sort(load_items(tmp_db), NOW, get_intervals(tmp_db))
    assert [i.id for i in partition.mastered] == [mastered.id]
    assert [i.id for i in partition.upcoming[1]] == [learning.id]


def test_log_level_default(monkeypatch):
    monkeypatch.delenv("MEMORY_FLOW_LOG_LEVEL", raising=False)
    assert get_log_level() == logging.WARNING


def test_log_level_from_env(monkeypatch):
    monkeypatch.setenv("MEMORY_FLOW_LOG_LEVEL", "debug")
    assert get_log_level() == logging.DEBUG


def test_log_level_unknown(monkeypatch):
    monkeypatch.setenv("MEMORY_FLOW_LOG_LEVEL", "chatty")
    with pytest.raises(ConfigError):
        get_log_level()

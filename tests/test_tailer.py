import asyncio
import logging

import pytest

from scoutmap.buildings import BuildingStateStore
from scoutmap.models import BuildingClear, BuildingDamage, BuildingRemove, Coords, PlayerPosition
from scoutmap.tailer import MAX_PARTIAL_BYTES, Cursor, LogTailer

from conftest import FakeClock, RecordingBroadcaster


PLAYER = "Разведчики засекли игрока Alice на координатах world,100,64,200\n"
TOWER_45 = "Здание Башня лучников (45%) на координатах world,10,5,20 повреждено!\n"
TOWER_65 = "Здание Башня лучников (65%) на координатах world,10,5,20 повреждено!\n"


def append(path, text):
    with open(path, "a", encoding="utf-8") as f:
        f.write(text)


@pytest.fixture
async def tailer(recorder, clock):
    t = LogTailer(recorder, BuildingStateStore(), clock=clock, poll_interval=3600)
    yield t
    await t.stop()


async def started(tailer, path):
    assert await tailer.start(path)
    # let the loop run its first (empty) tick so later polls are ours alone
    await asyncio.sleep(0)


def test_cursor_buffers_trailing_fragment():
    c = Cursor()
    assert c.advance(5, b"ab\ncd") == ["ab"]
    assert c.partial == b"cd"
    assert c.advance(9, b"e\r\nf") == ["cde"]
    assert c.offset == 9


def test_cursor_keeps_split_multibyte_characters():
    data = "игрок\n".encode("utf-8")
    c = Cursor()
    assert c.advance(3, data[:3]) == []
    assert c.advance(len(data), data[3:]) == ["игрок"]


async def test_start_missing_file_fails(tailer, tmp_path, recorder):
    assert await tailer.start(tmp_path / "nope.log") is False
    assert not tailer.watching
    assert recorder.events == []


async def test_existing_content_is_not_replayed(tailer, tmp_path, recorder):
    log_file = tmp_path / "latest.log"
    log_file.write_text(PLAYER + TOWER_45, encoding="utf-8")
    await started(tailer, log_file)
    assert tailer.cursor == log_file.stat().st_size
    assert tailer.poll() == []
    assert recorder.events == []


async def test_appended_lines_become_events(tailer, tmp_path, recorder, clock):
    log_file = tmp_path / "latest.log"
    log_file.write_text("old line\n", encoding="utf-8")
    await started(tailer, log_file)

    append(log_file, "noise\n" + PLAYER + TOWER_45)
    events = tailer.poll()

    assert events == [
        PlayerPosition("Alice", 100.0, 200.0, 64.0),
        BuildingDamage("Башня лучников", 45, Coords(10, 5, 20), int(clock() * 1000)),
    ]
    assert recorder.events == events
    assert tailer.store.get("10_5_20").percent == 45
    assert tailer.cursor == log_file.stat().st_size


async def test_cursor_advances_even_without_matches(tailer, tmp_path):
    log_file = tmp_path / "latest.log"
    log_file.write_text("", encoding="utf-8")
    await started(tailer, log_file)
    append(log_file, "nothing to see\n")
    assert tailer.poll() == []
    assert tailer.cursor == log_file.stat().st_size


async def test_line_split_across_polls_is_recovered(tailer, tmp_path, recorder):
    log_file = tmp_path / "latest.log"
    log_file.write_text("", encoding="utf-8")
    await started(tailer, log_file)

    append(log_file, PLAYER[:40])
    assert tailer.poll() == []
    append(log_file, PLAYER[40:])
    assert tailer.poll() == [PlayerPosition("Alice", 100.0, 200.0, 64.0)]


async def test_restart_on_same_file_skips_history_and_clears(tailer, tmp_path, recorder):
    log_file = tmp_path / "latest.log"
    log_file.write_text("", encoding="utf-8")
    await started(tailer, log_file)
    append(log_file, TOWER_45)
    tailer.poll()
    assert len(tailer.store) == 1

    append(log_file, PLAYER)
    await started(tailer, log_file)

    assert len(tailer.store) == 0
    assert recorder.events[-1] == BuildingClear()
    assert tailer.poll() == []
    assert tailer.cursor == log_file.stat().st_size


async def test_healthy_building_removed_after_dormancy(tailer, tmp_path, recorder, clock):
    log_file = tmp_path / "latest.log"
    log_file.write_text("", encoding="utf-8")
    await started(tailer, log_file)

    append(log_file, TOWER_45)
    tailer.poll()
    clock.advance(10)
    append(log_file, TOWER_65)
    tailer.poll()

    clock.advance(180)
    assert tailer.poll() == []
    clock.advance(1)
    assert tailer.poll() == [BuildingRemove(Coords(10, 5, 20))]
    clock.advance(600)
    assert tailer.poll() == []
    assert recorder.events.count(BuildingRemove(Coords(10, 5, 20))) == 1


async def test_damaged_building_survives_any_silence(tailer, tmp_path, clock):
    log_file = tmp_path / "latest.log"
    log_file.write_text("", encoding="utf-8")
    await started(tailer, log_file)
    append(log_file, TOWER_45)
    tailer.poll()
    clock.advance(24 * 3600)
    assert tailer.poll() == []
    assert "10_5_20" in tailer.store


async def test_read_errors_skip_the_poll(tailer, tmp_path, clock):
    log_file = tmp_path / "latest.log"
    log_file.write_text("", encoding="utf-8")
    await started(tailer, log_file)
    append(log_file, TOWER_65)
    tailer.poll()
    cursor = tailer.cursor

    log_file.unlink()
    clock.advance(181)
    # stat fails, but the time-based sweep still runs
    assert tailer.poll() == [BuildingRemove(Coords(10, 5, 20))]
    assert tailer.cursor == cursor
    assert tailer.watching


async def test_stop_is_idempotent_and_clears_once(tailer, tmp_path, recorder):
    log_file = tmp_path / "latest.log"
    log_file.write_text("", encoding="utf-8")
    await tailer.stop()
    assert recorder.events == []

    await started(tailer, log_file)
    await tailer.stop()
    await tailer.stop()
    assert not tailer.watching
    assert tailer.path is None
    assert recorder.events == [BuildingClear()]


async def test_no_events_after_stop(tmp_path, recorder, clock):
    tailer = LogTailer(recorder, clock=clock, poll_interval=0.01)
    log_file = tmp_path / "latest.log"
    log_file.write_text("", encoding="utf-8")
    assert await tailer.start(log_file)
    await tailer.stop()
    append(log_file, PLAYER)
    await asyncio.sleep(0.05)
    assert recorder.events == [BuildingClear()]


async def test_poll_loop_picks_up_new_lines(tmp_path, recorder, clock):
    tailer = LogTailer(recorder, clock=clock, poll_interval=0.01)
    log_file = tmp_path / "latest.log"
    log_file.write_text("", encoding="utf-8")
    assert await tailer.start(log_file)
    try:
        append(log_file, PLAYER)
        for _ in range(200):
            if recorder.events:
                break
            await asyncio.sleep(0.01)
        assert recorder.events == [PlayerPosition("Alice", 100.0, 200.0, 64.0)]
    finally:
        await tailer.stop()


async def test_switching_files_only_follows_the_new_one(tailer, tmp_path, recorder):
    first = tmp_path / "a.log"
    second = tmp_path / "b.log"
    first.write_text("", encoding="utf-8")
    second.write_text("", encoding="utf-8")
    await started(tailer, first)
    await started(tailer, second)
    append(first, PLAYER)
    assert tailer.poll() == []
    assert tailer.path == second


def test_cursor_flushes_oversized_fragment():
    c = Cursor()
    blob = b"x" * (MAX_PARTIAL_BYTES + 1)
    assert c.advance(len(blob), blob) == ["x" * (MAX_PARTIAL_BYTES + 1)]
    assert c.partial == b""
    # a fragment at the limit is still held for the next read
    held = b"y" * MAX_PARTIAL_BYTES
    assert c.advance(len(blob) + len(held), held) == []
    assert c.partial == held


async def test_missing_file_warning_is_rate_limited(tailer, tmp_path, clock, caplog):
    log_file = tmp_path / "latest.log"
    log_file.write_text("", encoding="utf-8")
    await started(tailer, log_file)
    log_file.unlink()

    with caplog.at_level(logging.WARNING, logger="scoutmap.tailer"):
        for _ in range(20):
            tailer.poll()
            clock.advance(0.05)
        assert len(caplog.records) == 1
        clock.advance(5)
        tailer.poll()
        assert len(caplog.records) == 2

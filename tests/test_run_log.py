import pytest

from argthread.run_log import (
    LOG_HEADER,
    append_entry,
    read_last_line,
    retract_log,
    start_log,
)


def _entry(path, iteration, last_pos=1.5, seed=7, counter=3, kind="rethread"):
    append_entry(path, "12:00:00", iteration, kind, 4, 0, last_pos, seed, counter)


def test_start_log_writes_header(tmp_path):
    log = tmp_path / "run.log"
    start_log(log)
    assert log.read_text() == "\t".join(LOG_HEADER) + "\n"
    assert LOG_HEADER[0] == "Time"
    assert LOG_HEADER[-1] == "Counter"


def test_start_log_truncates(tmp_path):
    log = tmp_path / "run.log"
    log.write_text("old content\nmore\n")
    start_log(log)
    assert log.read_text().splitlines() == ["\t".join(LOG_HEADER)]


def test_header_only_has_no_last_line(tmp_path):
    log = tmp_path / "run.log"
    start_log(log)
    assert read_last_line(log) == []


def test_append_and_read_last_line(tmp_path):
    log = tmp_path / "run.log"
    start_log(log)
    _entry(log, 0, kind="initial_thread")
    _entry(log, 1, last_pos=250.25, seed=42, counter=99)
    words = read_last_line(log)
    assert words == ["12:00:00", "1", "rethread", "4", "0", "250.25", "42", "99"]


def test_last_pos_round_trips_exactly(tmp_path):
    log = tmp_path / "run.log"
    start_log(log)
    value = 0.1 + 0.2
    _entry(log, 0, last_pos=value)
    words = read_last_line(log)
    assert float(words[5]) == value


def test_read_last_line_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_last_line(tmp_path / "absent.log")


def test_read_last_line_empty_file(tmp_path):
    log = tmp_path / "run.log"
    log.write_text("")
    assert read_last_line(log) == []


def test_read_last_line_ignores_unterminated_tail(tmp_path):
    log = tmp_path / "run.log"
    log.write_text("a\nb c\nd")
    assert read_last_line(log) == ["b", "c"]


def test_retract_keeps_content_before_kth_newline(tmp_path):
    log = tmp_path / "run.log"
    start_log(log)
    for i in range(5):
        _entry(log, i)
    retract_log(log, 5)
    lines = log.read_text().splitlines()
    assert lines[0] == "\t".join(LOG_HEADER)
    assert len(lines) == 2
    assert read_last_line(log)[1] == "0"


def test_retract_restores_first_two_lines_when_too_short(tmp_path):
    log = tmp_path / "run.log"
    start_log(log)
    _entry(log, 0)
    before = log.read_text()
    retract_log(log, 5)
    assert log.read_text() == before


def test_retract_header_only(tmp_path):
    log = tmp_path / "run.log"
    start_log(log)
    retract_log(log, 5)
    assert log.read_text() == "\t".join(LOG_HEADER) + "\n"
    assert read_last_line(log) == []


def test_retract_zero_keeps_file(tmp_path):
    log = tmp_path / "run.log"
    start_log(log)
    for i in range(3):
        _entry(log, i)
    before = log.read_text()
    retract_log(log, 0)
    assert log.read_text() == before


def test_retract_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        retract_log(tmp_path / "absent.log", 3)


def test_retract_then_append_continues(tmp_path):
    log = tmp_path / "run.log"
    start_log(log)
    for i in range(6):
        _entry(log, i)
    retract_log(log, 3)
    last_kept = int(read_last_line(log)[1])
    _entry(log, last_kept + 1)
    assert int(read_last_line(log)[1]) == last_kept + 1
    assert len(log.read_text().splitlines()) == last_kept + 3
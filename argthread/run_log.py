"""Tab-separated progress log for sampling runs.

The log starts with a header row and gets one row per threading or
rethreading step. A run can be resumed from its last complete row.
"""

from __future__ import annotations

from os import PathLike
from pathlib import Path

LOG_HEADER = (
    "Time",
    "Iteration:",
    "Threading_type",
    "#Recombinations",
    "#Mutations_not_uniquely_mapped",
    "Last_updated_pos",
    "Random_seed",
    "Counter",
)

_PathArg = str | PathLike[str]


def _read(path: _PathArg) -> str:
    with open(path, encoding="utf-8", newline="") as handle:
        return handle.read()


def _write(path: _PathArg, text: str, mode: str) -> None:
    with open(path, mode, encoding="utf-8", newline="") as handle:
        handle.write(text)


def start_log(path: _PathArg) -> None:
    """Create or truncate the log and write its header row."""
    _write(path, "\t".join(LOG_HEADER) + "\n", "w")


def append_entry(
    path: _PathArg,
    time_stamp: str,
    iteration: int,
    threading_type: str,
    num_recombinations: int,
    num_unmapped: int,
    last_pos: float,
    random_seed: int,
    counter: int,
) -> None:
    """Append one row to the log.

    ``last_pos`` is written with enough digits to be read back exactly.
    """
    fields = (
        str(time_stamp),
        str(iteration),
        str(threading_type),
        str(num_recombinations),
        str(num_unmapped),
        format(float(last_pos), ".17g"),
        str(random_seed),
        str(counter),
    )
    _write(path, "\t".join(fields) + "\n", "a")


def read_last_line(path: _PathArg) -> list[str]:
    """Words of the last line that is followed by a newline.

    The line looked at is the one after the second newline counted back from
    the end of the file. With fewer than two newlines there is none, and an
    empty list is returned.
    """
    if not Path(path).is_file():
        raise FileNotFoundError(f"Error opening the file: {path}")
    text = _read(path)
    last = text.rfind("\n")
    if last < 0:
        return []
    previous = text.rfind("\n", 0, last)
    if previous < 0:
        return []
    start = previous + 1
    end = text.find("\n", start)
    line = text[start:] if end < 0 else text[start:end]
    return line.split()


def retract_log(path: _PathArg, k: int) -> None:
    """Cut the log back by ``k`` newlines from its end.

    If fewer than two lines would remain, the original first two lines are
    written back instead.
    """
    if not Path(path).is_file():
        raise FileNotFoundError(f"Unable to open log file: {path}")
    text = _read(path)

    head = text.split("\n", 2)
    first_line = head[0]
    second_line = head[1] if len(head) > 1 else ""

    pos = len(text)
    line_count = 0
    while pos > 0 and line_count < k:
        pos -= 1
        if text[pos] == "\n":
            line_count += 1
    pos = 0 if line_count < k else pos + 1

    content = text[:pos]
    remaining_lines = content.count("\n") + (1 if content else 0)

    if remaining_lines >= 2:
        _write(path, content, "w")
    else:
        restored = first_line + "\n"
        if second_line:
            restored += second_line + "\n"
        _write(path, restored, "w")
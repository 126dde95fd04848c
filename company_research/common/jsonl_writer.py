"""
JSONL writer.

Appends one JSON object per line, flushed immediately for crash safety.
Used for batch-run summaries, which are written once per run.

Usage:
    with JSONLWriter("batch_runs.jsonl") as writer:
        writer.write({"batch_id": "BATCH_...", "successful": 4})
        print(writer.lines_written)  # 1
"""

import json
from pathlib import Path
from typing import Union


class JSONLWriter:
    """
    JSONL file writer with flush-after-write.

    The file is opened in append mode, so earlier runs are kept.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._file = None
        self._lines_written = 0

    def __enter__(self) -> "JSONLWriter":
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self.path, "a", encoding="utf-8")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._file:
            self._file.close()
            self._file = None

    def write(self, record: dict) -> None:
        """Write a single JSON record as one line, flushed immediately."""
        if self._file is None:
            raise RuntimeError("Writer not open. Use 'with JSONLWriter(...)' context.")
        self._file.write(json.dumps(record, ensure_ascii=False, default=str) + "\n")
        self._file.flush()
        self._lines_written += 1

    @property
    def lines_written(self) -> int:
        """Total lines written during this session."""
        return self._lines_written


def read_jsonl(path: Union[str, Path]) -> list[dict]:
    """Read every valid JSON line; malformed lines are skipped."""
    path = Path(path)
    records = []
    if not path.exists():
        return records
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                records.append(json.loads(line))
            except json.JSONDecodeError:
                continue
    return records

"""JSONL file operations for item sources, event logs and result exports."""
import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator

logger = logging.getLogger(__name__)


def read_entries(path: Path) -> Iterator[Dict[str, Any]]:
    """Yield entries from a JSONL file.

    Skips malformed lines with a warning.
    """
    if not path.exists():
        return
    with open(path, encoding='utf-8') as f:
        for line_no, line in enumerate(f, 1):
            line = line.strip()
            if line:
                try:
                    yield json.loads(line)
                except json.JSONDecodeError:
                    logger.warning(f"Skipping malformed line {line_no} in {path}")
                    continue


def append_entry(path: Path, entry: Dict[str, Any]) -> None:
    """Append a single entry to JSONL file."""
    with open(path, "a", encoding='utf-8') as f:
        f.write(json.dumps(entry, ensure_ascii=False, default=str) + "\n")
        f.flush()


def write_entries(path: Path, entries: Iterable[Dict[str, Any]]) -> int:
    """Write entries to a JSONL file, replacing its contents.

    Returns number of entries written.
    """
    count = 0
    with open(path, "w", encoding='utf-8') as f:
        for entry in entries:
            f.write(json.dumps(entry, ensure_ascii=False, default=str) + "\n")
            count += 1
    return count

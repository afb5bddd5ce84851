"""Append-only JSONL record store shared by every pipeline stage.

Each stage writes its output one record per line and reads its input with a full
scan, so the files double as the durable hand-off between stages and as the
resumability mechanism: a stage loads the keys already present, once, at start, and
skips that work.

Key Operations:
    append: write one record as a single newline-terminated JSON line
    scan: lazy, restartable iteration that skips blank and malformed lines
    existing_keys: one scan collecting a key per record into a set

Only single-process sequential access is supported. Two concurrent writers to the
same file may interleave lines.
"""

import json
from pathlib import Path
from typing import Any, Callable, Dict, Generic, Iterator, Optional, Set, TypeVar, Union

import structlog

logger = structlog.get_logger()

T = TypeVar("T")

KeyFunc = Union[str, Callable[[Any], Any]]


def _serialize(record: Any) -> Dict[str, Any]:
    if hasattr(record, "to_record"):
        return record.to_record()
    if isinstance(record, dict):
        return record
    raise TypeError(f"Cannot serialize {type(record).__name__} as a record")


class JsonlStore(Generic[T]):
    """A line-delimited JSON file of records.

    Args:
        path: File location; parent directories are created on first append
        decoder: Optional callable turning a decoded dict into a typed record.
            Lines for which it raises KeyError, TypeError or ValueError are
            treated as malformed and skipped.

    Example:
        >>> store = JsonlStore("discovered_urls.jsonl", DiscoveredReference.from_record)
        >>> store.append(reference)
        >>> known = store.existing_keys(lambda ref: ref.url)
    """

    def __init__(self, path: Union[str, Path], decoder: Optional[Callable[[Dict[str, Any]], T]] = None):
        self.path = Path(path)
        self.decoder = decoder
        self.skipped_lines = 0

    def exists(self) -> bool:
        return self.path.exists()

    def append(self, record: Any) -> None:
        """Append one record as a single line.

        The whole line, newline included, is handed to one write() call on a file
        opened in append mode, so a record is either fully present or absent.
        """
        line = json.dumps(_serialize(record), ensure_ascii=False) + "\n"
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(line)

    def scan(self) -> Iterator[T]:
        """Yield every well-formed record, re-reading the file on each call.

        Blank lines are ignored. Lines that are not JSON objects, or that the
        decoder rejects, are skipped and counted in ``skipped_lines``. A missing
        file yields nothing.
        """
        self.skipped_lines = 0
        if not self.path.exists():
            return

        with open(self.path, "r", encoding="utf-8") as f:
            for line_number, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue

                try:
                    data = json.loads(line)
                    if not isinstance(data, dict):
                        raise TypeError(f"expected JSON object, got {type(data).__name__}")
                    record = self.decoder(data) if self.decoder else data
                except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
                    self.skipped_lines += 1
                    logger.debug(
                        "malformed_record_skipped",
                        path=str(self.path),
                        line_number=line_number,
                        error=str(e),
                    )
                    continue

                yield record

    def __iter__(self) -> Iterator[T]:
        return self.scan()

    def existing_keys(self, key: KeyFunc) -> Set[Any]:
        """Collect the key of every record into a set with a single scan.

        Args:
            key: Field name (for undecoded dict records) or callable applied to each record

        Returns:
            Set of keys present in the store (empty for a missing file)
        """
        if isinstance(key, str):
            field_name = key
            key = lambda record: record.get(field_name) if isinstance(record, dict) else getattr(record, field_name)

        keys = set()
        for record in self.scan():
            value = key(record)
            if value is not None:
                keys.add(value)
        return keys

    def count(self) -> int:
        return sum(1 for _ in self.scan())

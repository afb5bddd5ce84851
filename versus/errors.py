"""Error taxonomy and per-run error collection.

Failure classes handled by the pipeline:

- Transient I/O failure (network, rate limit): logged, the unit of work is skipped,
  the stage continues. Recorded in a StageErrors collector.
- Malformed persisted record: skipped silently by the record store, never fatal.
- Malformed classifier response: MalformedResponseError / ClassificationValidationError,
  counted as a per-candidate failure.
- Configuration / precondition failure: PreconditionError, raised before any work starts.

There is no retry logic: a later invocation of the same stage picks
up whatever was skipped.
"""

import json
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


class VersusError(Exception):
    """Base class for pipeline errors."""
    pass


class PreconditionError(VersusError):
    """A stage cannot start: missing upstream file or credential."""
    pass


class SourceError(VersusError):
    """Reddit API failure while listing or fetching a thread."""
    pass


class MalformedResponseError(VersusError):
    """Classifier response contains no decodable JSON object."""
    pass


class ClassificationValidationError(ValueError):
    """Classifier JSON decoded but a field is missing or outside its vocabulary."""
    pass


STAGE_DISCOVERY = "discovery"
STAGE_SCRAPE = "scrape"
STAGE_CLASSIFY = "classify"
STAGE_CLEAN = "clean"

VALID_STAGES = {STAGE_DISCOVERY, STAGE_SCRAPE, STAGE_CLASSIFY, STAGE_CLEAN}


class StageErrors:
    """Collector for per-unit failures during one stage invocation.

    Each entry records which unit of work failed (subreddit, thread URL, reply id),
    the exception type and message, and a UTC timestamp. The collector backs the
    final error summary every stage prints.

    Example:
        >>> errors = StageErrors("scrape")
        >>> errors.append("https://reddit.com/r/codex/comments/abc/", ValueError("boom"))
        >>> errors.count
        1
        >>> errors.by_type()
        {'ValueError': 1}
    """

    def __init__(self, stage: str):
        if stage not in VALID_STAGES:
            raise ValueError(
                f"Invalid stage '{stage}'. "
                f"Must be one of: {', '.join(sorted(VALID_STAGES))}"
            )
        self.stage = stage
        self._errors: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    def append(self, unit: str, error: BaseException, context: Optional[Dict[str, Any]] = None) -> None:
        """Record one failed unit of work.

        Args:
            unit: Identifier of the unit (subreddit name, URL, comment id)
            error: The exception that made the unit fail
            context: Additional structured data
        """
        entry = {
            "stage": self.stage,
            "unit": unit,
            "error_type": type(error).__name__,
            "message": str(error),
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "context": context or {},
        }
        with self._lock:
            self._errors.append(entry)

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._errors)

    @property
    def entries(self) -> List[Dict[str, Any]]:
        with self._lock:
            return list(self._errors)

    def by_type(self) -> Dict[str, int]:
        """Count failures per exception type name."""
        counts: Dict[str, int] = {}
        with self._lock:
            for entry in self._errors:
                counts[entry["error_type"]] = counts.get(entry["error_type"], 0) + 1
        return counts

    def to_json(self) -> Optional[str]:
        """Serialize entries to a JSON array string, or None when nothing failed."""
        with self._lock:
            if not self._errors:
                return None
            return json.dumps(self._errors)

    def __len__(self) -> int:
        return self.count

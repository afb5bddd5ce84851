"""Runtime configuration for the pipeline stages and the dashboard API.

Settings are read from environment variables (optionally seeded from a .env file
at the project root). Credentials are not part of Settings: the Reddit and OpenAI
client constructors read and validate their own variables.

Environment variables:
    VERSUS_DATA_DIR         Directory holding the JSONL files (default: ".")
    VERSUS_SUBREDDITS       Comma-separated subreddits to discover from
    VERSUS_LOOKBACK_DAYS    Discovery lookback window in days (default: 76, about 2.5 months)
    VERSUS_BATCH_SIZE       Replies classified per run (default: 500)
    VERSUS_REQUEST_DELAY    Seconds to wait after each Reddit request (default: 1.0)
    VERSUS_CLASSIFY_DELAY   Seconds to wait after each classifier call (default: 0.1)
    ANALYSIS_MODEL          Classifier model (default: gpt-4o-mini)
    VERSUS_ADMIN_MODE       Expose ignore controls in the dashboard API (default: false)
    VERSUS_LOG_DIR          Directory for logs and the run log (default: "logs")
    VERSUS_IGNORE_FILE      JSON file persisting the dashboard ignore set
    CORS_ORIGINS            Comma-separated origins allowed by the dashboard API
"""

import os
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple

from versus.tools import DEFAULT_TOOL_PAIR, ToolPair


PROJECT_ROOT = Path(__file__).resolve().parent.parent

DISCOVERED_URLS_FILE = "discovered_urls.jsonl"
THREADS_FILE = "reddit_data.jsonl"
CLEAN_THREADS_FILE = "reddit_data_clean.jsonl"
RESULTS_FILE = "sentiment_analysis.jsonl"
RUN_LOG_FILE = "runs.jsonl"
IGNORE_FILE = "dashboard_ignored.json"

DEFAULT_SUBREDDITS: Tuple[str, ...] = ("ClaudeCode", "codex", "ChatGPTCoding")

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


def load_dotenv(env_path: Optional[Path] = None) -> None:
    """Load a .env file into os.environ if it exists.

    Existing environment variables win over values in the file.
    """
    env_path = Path(env_path) if env_path else PROJECT_ROOT / ".env"
    if env_path.exists():
        with open(env_path, encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith("#") and "=" in line:
                    key, _, value = line.partition("=")
                    os.environ.setdefault(key.strip(), value.strip().strip('"').strip("'"))


def _get_int(env: Mapping[str, str], name: str, default: int, minimum: int = 0) -> int:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    return value


def _get_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")
    if value < 0:
        raise ValueError(f"{name} must be >= 0, got {value}")
    return value


def _get_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None:
        return default
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean (true/false), got {raw!r}")


def _get_list(env: Mapping[str, str], name: str, default: Tuple[str, ...]) -> List[str]:
    raw = env.get(name, "").strip()
    if not raw:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class Settings:
    """Resolved configuration shared by the CLI scripts and the dashboard API."""
    data_dir: Path = Path(".")
    log_dir: Path = Path("logs")
    subreddits: List[str] = field(default_factory=lambda: list(DEFAULT_SUBREDDITS))
    lookback_days: int = 76
    page_size: int = 100
    batch_size: int = 500
    request_delay: float = 1.0
    classify_delay: float = 0.1
    model: str = "gpt-4o-mini"
    admin_mode: bool = False
    ignore_file: Optional[Path] = None
    cors_origins: List[str] = field(default_factory=lambda: ["http://localhost:3000"])
    tool_pair: ToolPair = DEFAULT_TOOL_PAIR

    @property
    def lookback(self) -> timedelta:
        return timedelta(days=self.lookback_days)

    @property
    def discovered_path(self) -> Path:
        return self.data_dir / DISCOVERED_URLS_FILE

    @property
    def threads_path(self) -> Path:
        return self.data_dir / THREADS_FILE

    @property
    def clean_threads_path(self) -> Path:
        return self.data_dir / CLEAN_THREADS_FILE

    @property
    def results_path(self) -> Path:
        return self.data_dir / RESULTS_FILE

    @property
    def run_log_path(self) -> Path:
        return self.log_dir / RUN_LOG_FILE

    @property
    def ignore_path(self) -> Path:
        return self.ignore_file or self.data_dir / IGNORE_FILE

    def as_log_context(self) -> Dict[str, object]:
        return {
            "data_dir": str(self.data_dir),
            "subreddits": self.subreddits,
            "lookback_days": self.lookback_days,
            "batch_size": self.batch_size,
            "model": self.model,
            "admin_mode": self.admin_mode,
        }


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from environment variables.

    Args:
        env: Mapping to read from (default: os.environ)

    Raises:
        ValueError: If a numeric or boolean variable cannot be parsed; the
            message names the variable
    """
    env = os.environ if env is None else env

    ignore_file = env.get("VERSUS_IGNORE_FILE", "").strip()

    return Settings(
        data_dir=Path(env.get("VERSUS_DATA_DIR", "").strip() or "."),
        log_dir=Path(env.get("VERSUS_LOG_DIR", "").strip() or "logs"),
        subreddits=_get_list(env, "VERSUS_SUBREDDITS", DEFAULT_SUBREDDITS),
        lookback_days=_get_int(env, "VERSUS_LOOKBACK_DAYS", 76, minimum=1),
        batch_size=_get_int(env, "VERSUS_BATCH_SIZE", 500, minimum=1),
        request_delay=_get_float(env, "VERSUS_REQUEST_DELAY", 1.0),
        classify_delay=_get_float(env, "VERSUS_CLASSIFY_DELAY", 0.1),
        model=env.get("ANALYSIS_MODEL", "").strip() or "gpt-4o-mini",
        admin_mode=_get_bool(env, "VERSUS_ADMIN_MODE", False),
        ignore_file=Path(ignore_file) if ignore_file else None,
        cors_origins=_get_list(env, "CORS_ORIGINS", ("http://localhost:3000",)),
    )

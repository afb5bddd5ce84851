"""Loading of dashboard state from the results and ignore files."""

from versus.aggregation import DashboardEngine, IgnoreSet, JsonFileKeyValueStore
from versus.config import Settings
from versus.models.thread_models import ClassificationResult
from versus.storage import JsonlStore
from versus.utils.logging_config import get_logger


def results_store(settings: Settings) -> JsonlStore:
    pair = settings.tool_pair
    return JsonlStore(settings.results_path, lambda record: ClassificationResult.from_record(record, pair))


def load_engine(settings: Settings) -> DashboardEngine:
    """Scan the results file and the ignore file into a fresh engine."""
    store = results_store(settings)
    results = list(store.scan())
    ignore_set = IgnoreSet(JsonFileKeyValueStore(settings.ignore_path))

    get_logger(__name__).info(
        "dashboard_results_loaded",
        path=str(settings.results_path),
        results=len(results),
        skipped_lines=store.skipped_lines,
        ignored_comments=len(ignore_set.comments),
        ignored_threads=len(ignore_set.threads),
    )
    return DashboardEngine(results, ignore_set, settings.tool_pair)

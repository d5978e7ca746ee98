import logging
import time
from contextlib import contextmanager
from typing import Any, Iterator

perf_log = logging.getLogger("cinecircle.perf")


@contextmanager
def stage_timer(stage: str, **fields: Any) -> Iterator[dict]:
    """Log how long a pipeline stage took. Extra fields can be added to the yielded dict."""
    info: dict[str, Any] = dict(fields)
    start = time.perf_counter()
    try:
        yield info
    finally:
        elapsed_ms = (time.perf_counter() - start) * 1000
        extras = " ".join(f"{k}={v}" for k, v in info.items())
        perf_log.info("stage=%s ms=%.1f %s", stage, elapsed_ms, extras)

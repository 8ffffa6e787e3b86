# core/orchestrator.py
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Iterable, List, Optional

from .errors import ExtractionError, ExtractionTimeout, InvalidURL, NoExtractorAvailable
from .logger import get_logger
from .models import ExtractionOutcome, ExtractionRecord
from .quality import is_acceptable, score
from .urls import canonicalize

logger = get_logger(__name__)


class Deadline:
    """Monotonic deadline shared by every strategy attempt of one request."""

    def __init__(self, seconds: float):
        self.seconds = seconds
        self._expires_at = time.monotonic() + seconds

    def remaining(self) -> float:
        return max(0.0, self._expires_at - time.monotonic())

    def expired(self) -> bool:
        return self.remaining() <= 0


class ExtractionOrchestrator:
    """
    Runs the registered strategies against one URL in priority order and
    returns the first result that passes the quality gate.

    Strategies run one at a time; the cheap structural pass goes first so
    the expensive AI pass only runs when it has to. Each attempt is bounded
    by the request deadline; once it elapses no further strategy is tried.
    """

    def __init__(self, extractors: Iterable, request_timeout: float = 20.0):
        # sorted() is stable: equal priorities keep registration order
        self.extractors: List = sorted(extractors, key=lambda e: e.priority())
        self.request_timeout = request_timeout

    def extract(
        self,
        url: str,
        raw_html: Optional[str] = None,
        force_method: Optional[str] = None,
        deadline: Optional[Deadline] = None,
    ) -> ExtractionOutcome:
        canonical_url = canonicalize(url)
        deadline = deadline or Deadline(self.request_timeout)
        started = time.monotonic()

        logger.debug("Starting extraction for %s (canonical %s).", url, canonical_url)

        last_error: Optional[BaseException] = None
        attempted = 0

        for extractor in self.extractors:
            name = type(extractor).__name__

            if force_method and extractor.tag.value != force_method:
                continue

            if not extractor.can_extract(canonical_url):
                logger.debug("Skipping %s: cannot extract %s.", name, canonical_url)
                continue

            if deadline.expired():
                raise ExtractionTimeout(
                    f"Request deadline of {deadline.seconds:.1f}s exceeded before {name} ran"
                )

            attempted += 1
            logger.debug("Trying %s for %s.", name, canonical_url)

            try:
                record = self._run_bounded(extractor, canonical_url, raw_html, deadline)
            except (ExtractionTimeout, InvalidURL):
                # a disallowed target must not be retried by another strategy
                raise
            except ExtractionError as exc:
                last_error = exc
                logger.debug("%s failed for %s: %s", name, canonical_url, exc)
                continue
            except Exception as exc:
                last_error = exc
                logger.exception("%s raised unexpectedly for %s: %s", name, canonical_url, exc)
                continue

            if extractor.gated and not is_acceptable(record):
                logger.debug(
                    "%s returned poor data for %s (title=%r); trying next strategy.",
                    name, canonical_url, record.title,
                )
                continue

            confidence = score(record, extractor.tag)
            logger.info(
                "Extraction succeeded for %s: method=%s confidence=%.2f fields=%d (%.0fms).",
                canonical_url,
                extractor.tag.extraction_method,
                confidence,
                record.field_count(),
                (time.monotonic() - started) * 1000,
            )
            return ExtractionOutcome(
                record=record,
                strategy=extractor.tag,
                confidence=confidence,
                canonical_url=canonical_url,
            )

        if last_error is not None:
            logger.warning("All strategies failed for %s; last error: %s", canonical_url, last_error)
            raise last_error
        if attempted:
            raise NoExtractorAvailable(f"No strategy produced acceptable data for {canonical_url}")
        raise NoExtractorAvailable("No extractors available")

    def _run_bounded(
        self, extractor, url: str, raw_html: Optional[str], deadline: Deadline
    ) -> ExtractionRecord:
        """Run one strategy on a worker thread and abandon it at the deadline."""
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="extract")
        try:
            future = executor.submit(extractor.extract, url, raw_html)
            try:
                return future.result(timeout=deadline.remaining())
            except FutureTimeout:
                if future.done():
                    # the strategy itself raised a TimeoutError
                    raise
                future.cancel()
                raise ExtractionTimeout(
                    f"Request deadline of {deadline.seconds:.1f}s exceeded during "
                    f"{type(extractor).__name__}"
                )
        finally:
            executor.shutdown(wait=False)

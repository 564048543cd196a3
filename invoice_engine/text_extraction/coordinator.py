"""
Extraction Coordinator Module.

Chooses which text-extraction backends to run for a document and which
result to trust. The policy is an explicit loop over an ordered backend
list selected by DocumentKind:

    DIGITAL -> [fast_structured, layout_preserving]
    SCANNED -> [ocr]
    HYBRID  -> [fast_structured, layout_preserving, ocr]

The first attempt that succeeded with confidence >= 0.5 is accepted and
the loop stops. When nothing is acceptable the highest-confidence attempt
is returned with status REQUIRES_MANUAL_EXTRACTION; backend failure is
data, never an exception. Every call is bounded by a per-backend timeout.

Usage:
    from invoice_engine.text_extraction import ExtractionCoordinator

    coordinator = ExtractionCoordinator()
    result = coordinator.extract(document, DocumentKind.DIGITAL)
    print(result.method, result.confidence, len(result.attempts))

Author: ML Engineering Team
"""

import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from typing import Dict, List, Mapping, Optional

from config import get_config
from invoice_engine.input_handler.classifier import DocumentKind
from invoice_engine.input_handler.document import RawDocument
from invoice_engine.utils.logger import get_logger
from invoice_engine.utils.exceptions import ClassificationFailure, ConfigurationError
from .base import (
    BackendOutput,
    ExtractionAttempt,
    ExtractionMethod,
    ExtractionResult,
    ExtractionStatus,
    TextExtractor,
)

# Initialize module logger
logger = get_logger(__name__)


DEFAULT_ORDERS = {
    DocumentKind.DIGITAL: [ExtractionMethod.FAST_STRUCTURED, ExtractionMethod.LAYOUT_PRESERVING],
    DocumentKind.SCANNED: [ExtractionMethod.OCR],
    DocumentKind.HYBRID: [
        ExtractionMethod.FAST_STRUCTURED,
        ExtractionMethod.LAYOUT_PRESERVING,
        ExtractionMethod.OCR,
    ],
}

DEFAULT_TIMEOUTS = {
    ExtractionMethod.FAST_STRUCTURED: 30.0,
    ExtractionMethod.LAYOUT_PRESERVING: 60.0,
    ExtractionMethod.OCR: 120.0,
}


def build_default_backends() -> Dict[ExtractionMethod, TextExtractor]:
    """Instantiate the three production backends."""
    from .layout_backend import LayoutPreservingExtractor
    from .pdfplumber_backend import FastStructuredExtractor
    from .tesseract_backend import OcrExtractor

    backends = [FastStructuredExtractor(), LayoutPreservingExtractor(), OcrExtractor()]
    return {backend.method: backend for backend in backends}


class ExtractionCoordinator:
    """
    Runs extraction backends in fallback order and picks one result.

    Attributes:
        backends: Mapping of method -> TextExtractor
        orders: Mapping of DocumentKind -> ordered list of methods
        acceptance_threshold: Minimum confidence to accept an attempt
        timeouts: Mapping of method -> timeout in seconds; overrides
            are merged over the configured values

    Example:
        >>> coordinator = ExtractionCoordinator(backends={
        ...     ExtractionMethod.OCR: my_ocr_backend,
        ... })
        >>> result = coordinator.extract(document, DocumentKind.SCANNED)
        >>> result.status
        <ExtractionStatus.ACCEPTED: 'accepted'>
    """

    def __init__(
        self,
        backends: Optional[Mapping[ExtractionMethod, TextExtractor]] = None,
        orders: Optional[Mapping[DocumentKind, List[ExtractionMethod]]] = None,
        acceptance_threshold: Optional[float] = None,
        timeouts: Optional[Mapping[ExtractionMethod, float]] = None
    ) -> None:
        self.backends = dict(backends) if backends is not None else build_default_backends()
        self.orders = dict(orders) if orders is not None else self._load_orders()
        self.acceptance_threshold = (
            acceptance_threshold if acceptance_threshold is not None
            else get_config("coordinator.acceptance_threshold", 0.5)
        )
        self.timeouts = self._load_timeouts()
        if timeouts is not None:
            self.timeouts.update(timeouts)

        if not 0.0 <= self.acceptance_threshold <= 1.0:
            raise ConfigurationError(
                f"acceptance_threshold must be within [0, 1], got {self.acceptance_threshold}"
            )

        logger.debug(
            f"ExtractionCoordinator initialized with backends "
            f"{[m.value for m in self.backends]} (accept >= {self.acceptance_threshold})"
        )

    @staticmethod
    def _load_orders() -> Dict[DocumentKind, List[ExtractionMethod]]:
        orders = {}
        for kind, default in DEFAULT_ORDERS.items():
            names = get_config(f"coordinator.orders.{kind.value}", [m.value for m in default])
            try:
                orders[kind] = [ExtractionMethod(name) for name in names]
            except ValueError as e:
                raise ConfigurationError(f"Unknown backend in {kind.value} order: {e}")
        return orders

    @staticmethod
    def _load_timeouts() -> Dict[ExtractionMethod, float]:
        return {
            method: float(get_config(f"coordinator.timeouts.{method.value}", default))
            for method, default in DEFAULT_TIMEOUTS.items()
        }

    def order_for(self, kind: DocumentKind) -> List[ExtractionMethod]:
        """Ordered backend methods for a document kind."""
        if kind == DocumentKind.UNREADABLE:
            return []
        return list(self.orders.get(kind, []))

    def extract(self, document: RawDocument, kind: DocumentKind) -> ExtractionResult:
        """
        Extract text from a document using the fallback order for its kind.

        Args:
            document: The raw document.
            kind: Classification of the document.

        Returns:
            ExtractionResult holding the chosen text and every attempt.

        Raises:
            ClassificationFailure: If kind is UNREADABLE (no backend runs).
        """
        if kind == DocumentKind.UNREADABLE:
            raise ClassificationFailure(document.filename, "document classified as unreadable")

        attempts: List[ExtractionAttempt] = []

        for method in self.order_for(kind):
            backend = self.backends.get(method)
            if backend is None:
                logger.warning(f"No backend registered for {method.value}; skipping")
                continue

            attempt = self._run_backend(backend, method, document)
            attempts.append(attempt)

            if attempt.is_acceptable(self.acceptance_threshold):
                logger.info(
                    f"Accepted {method.value} for {document.filename} "
                    f"(confidence={attempt.confidence:.2f}, {attempt.elapsed_ms:.0f} ms)"
                )
                return self._result(attempt, ExtractionStatus.ACCEPTED, attempts)

            logger.warning(
                f"Backend {method.value} not accepted for {document.filename} "
                f"(succeeded={attempt.succeeded}, confidence={attempt.confidence:.2f}"
                f"{', ' + attempt.error if attempt.error else ''})"
            )

        return self._fallback_result(document, attempts)

    def _run_backend(
        self,
        backend: TextExtractor,
        method: ExtractionMethod,
        document: RawDocument
    ) -> ExtractionAttempt:
        """
        Invoke one backend under its timeout.

        The call runs on a single-use worker thread. On timeout the
        attempt is recorded as failed and the worker is abandoned; its
        eventual output is ignored.
        """
        timeout = self.timeouts.get(method, DEFAULT_TIMEOUTS[method])
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"extract-{method.value}")
        start = time.perf_counter()

        try:
            future = executor.submit(backend.extract, document)
            output: BackendOutput = future.result(timeout=timeout)
            error = output.error
        except FutureTimeoutError:
            output = BackendOutput.failure(f"timed out after {timeout:.1f}s")
            error = output.error
        except Exception as e:
            logger.error(f"Backend {method.value} raised {type(e).__name__}: {e}")
            output = BackendOutput.failure(f"{type(e).__name__}: {e}")
            error = output.error
        finally:
            executor.shutdown(wait=False)

        elapsed_ms = (time.perf_counter() - start) * 1000.0

        return ExtractionAttempt(
            backend_name=backend.name,
            method=method,
            extracted_text=output.text,
            confidence=output.confidence,
            succeeded=output.succeeded,
            elapsed_ms=elapsed_ms,
            error=error
        )

    def _fallback_result(
        self,
        document: RawDocument,
        attempts: List[ExtractionAttempt]
    ) -> ExtractionResult:
        """Best failed attempt, flagged for manual extraction."""
        if not attempts:
            logger.error(f"No extraction backend could run for {document.filename}")
            return ExtractionResult(
                text="",
                method=None,
                confidence=0.0,
                status=ExtractionStatus.REQUIRES_MANUAL_EXTRACTION,
                attempts=()
            )

        # max() keeps the earliest attempt among equal confidences
        best = max(attempts, key=lambda a: a.confidence)
        logger.warning(
            f"No acceptable extraction for {document.filename}; "
            f"best was {best.method.value} at {best.confidence:.2f}, requires manual extraction"
        )
        return self._result(best, ExtractionStatus.REQUIRES_MANUAL_EXTRACTION, attempts)

    @staticmethod
    def _result(
        attempt: ExtractionAttempt,
        status: ExtractionStatus,
        attempts: List[ExtractionAttempt]
    ) -> ExtractionResult:
        return ExtractionResult(
            text=attempt.extracted_text or "",
            method=attempt.method,
            confidence=attempt.confidence,
            status=status,
            attempts=tuple(attempts)
        )

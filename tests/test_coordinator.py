"""Tests for the extraction coordinator's fallback policy."""

import pytest

from conftest import FakeBackend
from invoice_engine.input_handler import DocumentKind
from invoice_engine.text_extraction import (
    ExtractionCoordinator,
    ExtractionMethod,
    ExtractionStatus,
    FastStructuredExtractor,
    LayoutPreservingExtractor,
)
from invoice_engine.utils.exceptions import ClassificationFailure, ConfigurationError

FAST = ExtractionMethod.FAST_STRUCTURED
LAYOUT = ExtractionMethod.LAYOUT_PRESERVING
OCR = ExtractionMethod.OCR


def coordinator_for(*backends, **kwargs):
    return ExtractionCoordinator(backends={b.method: b for b in backends}, **kwargs)


class TestFallbackOrder:

    def test_first_acceptable_backend_wins(self, document):
        fast = FakeBackend(FAST, "fast text", confidence=0.8)
        layout = FakeBackend(LAYOUT, "layout text", confidence=0.95)
        result = coordinator_for(fast, layout).extract(document, DocumentKind.DIGITAL)

        assert result.status == ExtractionStatus.ACCEPTED
        assert result.method == FAST
        assert result.text == "fast text"
        assert len(result.attempts) == 1
        assert layout.calls == 0

    def test_low_confidence_falls_through(self, document):
        fast = FakeBackend(FAST, "garbled", confidence=0.3)
        layout = FakeBackend(LAYOUT, "clean text", confidence=0.7)
        result = coordinator_for(fast, layout).extract(document, DocumentKind.DIGITAL)

        assert result.method == LAYOUT
        assert [a.method for a in result.attempts] == [FAST, LAYOUT]

    def test_scanned_documents_only_use_ocr(self, document):
        fast = FakeBackend(FAST, "never", confidence=1.0)
        ocr = FakeBackend(OCR, "ocr text", confidence=0.6)
        result = coordinator_for(fast, ocr).extract(document, DocumentKind.SCANNED)

        assert result.method == OCR
        assert fast.calls == 0

    def test_hybrid_tries_all_three_in_order(self, document):
        backends = [
            FakeBackend(FAST, "", succeeded=False),
            FakeBackend(LAYOUT, "", succeeded=False),
            FakeBackend(OCR, "ocr text", confidence=0.55),
        ]
        result = coordinator_for(*backends).extract(document, DocumentKind.HYBRID)

        assert [a.method for a in result.attempts] == [FAST, LAYOUT, OCR]
        assert result.status == ExtractionStatus.ACCEPTED

    def test_failed_backend_with_high_confidence_is_not_accepted(self, document):
        fast = FakeBackend(FAST, "text", confidence=0.9, succeeded=False)
        layout = FakeBackend(LAYOUT, "other", confidence=0.6)
        result = coordinator_for(fast, layout).extract(document, DocumentKind.DIGITAL)
        assert result.method == LAYOUT


class TestFailureHandling:

    def test_nothing_acceptable_returns_best_attempt(self, document):
        fast = FakeBackend(FAST, "poor", confidence=0.2)
        layout = FakeBackend(LAYOUT, "less poor", confidence=0.4)
        result = coordinator_for(fast, layout).extract(document, DocumentKind.DIGITAL)

        assert result.status == ExtractionStatus.REQUIRES_MANUAL_EXTRACTION
        assert result.method == LAYOUT
        assert result.text == "less poor"
        assert result.confidence == pytest.approx(0.4)
        assert len(result.attempts) == 2

    def test_equal_confidences_keep_earliest_attempt(self, document):
        fast = FakeBackend(FAST, "first", confidence=0.3)
        layout = FakeBackend(LAYOUT, "second", confidence=0.3)
        result = coordinator_for(fast, layout).extract(document, DocumentKind.DIGITAL)
        assert result.text == "first"

    def test_raising_backend_becomes_failed_attempt(self, document):
        fast = FakeBackend(FAST, raises=RuntimeError("boom"))
        layout = FakeBackend(LAYOUT, "fine", confidence=0.9)
        result = coordinator_for(fast, layout).extract(document, DocumentKind.DIGITAL)

        assert result.method == LAYOUT
        first = result.attempts[0]
        assert not first.succeeded
        assert "boom" in first.error

    def test_timeout_is_recorded_and_fallback_continues(self, document):
        slow = FakeBackend(FAST, "late", confidence=1.0, delay=1.0)
        layout = FakeBackend(LAYOUT, "on time", confidence=0.8)
        coordinator = coordinator_for(slow, layout, timeouts={FAST: 0.05, LAYOUT: 5.0})

        result = coordinator.extract(document, DocumentKind.DIGITAL)

        assert result.method == LAYOUT
        timed_out = result.attempts[0]
        assert not timed_out.succeeded
        assert "timed out" in timed_out.error
        assert timed_out.extracted_text is None

    def test_partial_timeout_override_keeps_other_limits(self):
        coordinator = coordinator_for(FakeBackend(FAST, "x"), timeouts={FAST: 0.05})
        assert coordinator.timeouts[FAST] == 0.05
        assert coordinator.timeouts[LAYOUT] == 60.0
        assert coordinator.timeouts[OCR] == 120.0

    def test_no_registered_backend_yields_empty_manual_result(self, document):
        result = coordinator_for(FakeBackend(OCR, "x")).extract(document, DocumentKind.DIGITAL)

        assert result.status == ExtractionStatus.REQUIRES_MANUAL_EXTRACTION
        assert result.text == ""
        assert result.method is None
        assert result.attempts == ()

    def test_unreadable_raises_without_running_backends(self, document):
        fast = FakeBackend(FAST, "x")
        with pytest.raises(ClassificationFailure):
            coordinator_for(fast).extract(document, DocumentKind.UNREADABLE)
        assert fast.calls == 0

    def test_threshold_out_of_range_is_rejected(self):
        with pytest.raises(ConfigurationError):
            coordinator_for(FakeBackend(FAST), acceptance_threshold=1.5)


class TestPdfBackends:

    def test_pdfplumber_reads_text_layer(self, word_pdf):
        from invoice_engine.input_handler import RawDocument

        output = FastStructuredExtractor().extract(RawDocument(word_pdf, "words.pdf"))
        assert output.succeeded
        assert "word0" in output.text
        assert output.confidence >= 0.5

    def test_pdfplumber_reports_missing_text_layer(self, blank_pdf):
        from invoice_engine.input_handler import RawDocument

        output = FastStructuredExtractor().extract(RawDocument(blank_pdf, "blank.pdf"))
        assert not output.succeeded

    def test_layout_backend_keeps_words(self, word_pdf):
        from invoice_engine.input_handler import RawDocument

        output = LayoutPreservingExtractor().extract(RawDocument(word_pdf, "words.pdf"))
        assert output.succeeded
        assert "word149" in output.text

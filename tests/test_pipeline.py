"""End-to-end tests of the processing pipeline with fake backends."""

import json
from datetime import date
from decimal import Decimal

import pytest

from conftest import SAMPLE_INVOICE, SLICED_INVOICE, FakeBackend, FixedClassifier
from invoice_engine import InvoiceProcessor, RawDocument
from invoice_engine.input_handler import ClassificationResult, DocumentKind
from invoice_engine.postprocessor import DuplicateCheckResult, IssueCode, ProcessingDecision, Validator
from invoice_engine.text_extraction import (
    ExtractionCoordinator,
    ExtractionMethod,
    ExtractionStatus,
)
from invoice_engine.utils.exceptions import ClassificationFailure

FAST = ExtractionMethod.FAST_STRUCTURED
OCR = ExtractionMethod.OCR


def build_processor(library, today, *backends, kind=DocumentKind.DIGITAL, classifier=None):
    return InvoiceProcessor(
        pattern_library=library,
        classifier=classifier or FixedClassifier(kind),
        coordinator=ExtractionCoordinator(backends={b.method: b for b in backends}),
        validator=Validator(today=today),
        max_workers=2,
    )


class ByNameClassifier:
    """Unreadable for files named bad*, digital otherwise."""

    def classify(self, document):
        if document.filename.startswith("bad"):
            return ClassificationResult(DocumentKind.UNREADABLE, 0.0, 0, reason="corrupt")
        return ClassificationResult(DocumentKind.DIGITAL, 1.0, 1, reason="text layer")


class TestSingleDocument:

    def test_clean_digital_invoice_is_auto_approved(self, library, today, document):
        processor = build_processor(library, today, FakeBackend(FAST, SAMPLE_INVOICE, confidence=0.95))
        result = processor.process(document)
        record = result.extraction

        assert result.decision == ProcessingDecision.AUTO_APPROVE
        assert record.value("invoice_number") == "INV-2024-001"
        assert record.value("total_amount") == Decimal("2700.00")
        assert record.value("invoice_date") == date(2024, 1, 15)
        assert len(record.line_items) == 2
        assert record.line_items_total == Decimal("2500.00")
        assert record.overall_confidence >= 0.9
        assert not record.has_errors
        assert record.template_id is None
        assert record.pattern_version == library.version

    def test_template_vendor_is_used(self, library, document):
        processor = build_processor(
            library, lambda: date(2016, 2, 1), FakeBackend(FAST, SLICED_INVOICE, confidence=0.95)
        )
        result = processor.process(document)

        assert result.extraction.template_id == "sliced_invoices"
        assert result.extraction.value("vendor_name") == "Sliced Invoices"
        assert result.extraction.value("total_amount") == Decimal("93.50")
        assert result.extraction.confidence_breakdown.template == pytest.approx(1.0)
        assert result.trace.template_id == "sliced_invoices"

    def test_low_ocr_confidence_needs_manual_correction(self, library, today, document):
        processor = build_processor(
            library, today, FakeBackend(OCR, SAMPLE_INVOICE, confidence=0.4), kind=DocumentKind.SCANNED
        )
        result = processor.process(document)
        record = result.extraction

        assert record.extraction.status == ExtractionStatus.REQUIRES_MANUAL_EXTRACTION
        assert record.value("total_amount") is not None
        assert record.overall_confidence < 0.7
        assert record.overall_confidence <= 0.4
        assert result.decision == ProcessingDecision.MANUAL_CORRECTION

    def test_missing_total_forces_manual_correction(self, library, today, document):
        text = SAMPLE_INVOICE.replace("Total: $2,700.00\n", "")
        processor = build_processor(library, today, FakeBackend(FAST, text, confidence=0.95))
        result = processor.process(document)

        codes = [(i.field, i.code) for i in result.extraction.errors]
        assert ('total_amount', IssueCode.MISSING_REQUIRED) in codes
        assert 'total_amount' in result.extraction.missing_fields
        assert result.decision == ProcessingDecision.MANUAL_CORRECTION

    def test_unreadable_document_raises_before_extraction(self, library, today, document):
        backend = FakeBackend(FAST, SAMPLE_INVOICE)
        processor = build_processor(library, today, backend, kind=DocumentKind.UNREADABLE)

        with pytest.raises(ClassificationFailure):
            processor.process(document)
        assert backend.calls == 0

    def test_duplicate_checker_is_consulted(self, library, today, document):
        processor = build_processor(library, today, FakeBackend(FAST, SAMPLE_INVOICE, confidence=0.95))
        result = processor.process(document, duplicate_checker=lambda key: DuplicateCheckResult(True, "earlier"))

        assert IssueCode.DUPLICATE_INVOICE in [i.code for i in result.extraction.errors]
        assert result.decision == ProcessingDecision.MANUAL_CORRECTION

    def test_pattern_update_during_a_run_is_not_seen(self, library, today, document):
        before = library.version

        class UpdatingBackend(FakeBackend):
            def extract(self, doc):
                library.deactivate_pattern("total_plain")
                return super().extract(doc)

        processor = build_processor(library, today, UpdatingBackend(FAST, SAMPLE_INVOICE, confidence=0.95))
        result = processor.process(document)

        assert result.extraction.pattern_version == before
        assert result.trace.field_provenance["total_amount"]["pattern_id"] == "total_plain"
        assert library.version != before


class TestDiagnosticTrace:

    @pytest.fixture
    def result(self, library, today, document):
        backends = [
            FakeBackend(FAST, "garbled", confidence=0.2),
            FakeBackend(ExtractionMethod.LAYOUT_PRESERVING, SAMPLE_INVOICE, confidence=0.9),
        ]
        return build_processor(library, today, *backends).process(document)

    def test_attempts_and_regions(self, result):
        trace = result.trace
        assert [a.method for a in trace.attempts] == [FAST, ExtractionMethod.LAYOUT_PRESERVING]
        assert len(trace.regions) == 4
        assert trace.document_id == result.extraction.document_id

    def test_field_provenance(self, result):
        provenance = result.trace.field_provenance
        assert provenance["invoice_number"]["pattern_id"] == "invoice_number_labeled"
        assert provenance["invoice_number"]["source_line"] == 5
        assert provenance["invoice_number"]["region"] == "metadata"
        assert provenance["purchase_order_number"] is None

    def test_trace_is_json(self, result):
        data = json.loads(result.trace.to_json())
        assert data["classification"]["kind"] == "digital"
        assert len(data["attempts"]) == 2

    def test_result_dict_carries_decision(self, result):
        data = result.to_dict()
        assert data["decision"] == result.decision.value
        assert data["fields"]["total_amount"]["value"] == "2700.00"
        json.dumps(data)

    def test_attempt_texts_only_with_include_text(self, result):
        plain = result.extraction.to_dict()['extraction']
        assert 'text' not in plain
        assert all('text' not in attempt for attempt in plain['attempts'])

        full = result.extraction.to_dict(include_text=True)['extraction']
        assert [a['text'] for a in full['attempts']] == ["garbled", SAMPLE_INVOICE]
        assert full['text'] == SAMPLE_INVOICE


class TestBatch:

    def test_outcomes_keep_input_order_and_capture_errors(self, library, today):
        documents = [
            RawDocument(b"%PDF-1.4 first", "first.pdf"),
            RawDocument(b"%PDF-1.4 broken", "bad.pdf"),
            RawDocument(b"%PDF-1.4 third", "third.pdf"),
        ]
        processor = build_processor(
            library, today, FakeBackend(FAST, SAMPLE_INVOICE, confidence=0.95),
            classifier=ByNameClassifier(),
        )

        outcomes = processor.process_many(documents)

        assert [o.filename for o in outcomes] == ["first.pdf", "bad.pdf", "third.pdf"]
        assert [o.succeeded for o in outcomes] == [True, False, True]
        assert isinstance(outcomes[1].error, ClassificationFailure)
        assert outcomes[0].result.extraction.filename == "first.pdf"

    def test_unexpected_errors_propagate(self, library, today, document):
        class BrokenClassifier:
            def classify(self, doc):
                raise RuntimeError("classifier bug")

        processor = build_processor(library, today, FakeBackend(FAST, SAMPLE_INVOICE), classifier=BrokenClassifier())
        with pytest.raises(RuntimeError):
            processor.process_many([document])

    def test_empty_batch(self, library, today):
        processor = build_processor(library, today, FakeBackend(FAST, SAMPLE_INVOICE))
        assert processor.process_many([]) == []

"""
Invoice Processing Pipeline.

Wires the engine's components for one document:

    Classifier -> Coordinator -> Spatial Analyzer -> Field Extractor
    -> Template Matcher -> Line-Item Extractor -> Confidence Calculator
    -> Validator -> Review Router

Each run reads the pattern library snapshot exactly once, so a pattern
update published mid-run is not seen until the next document. Runs share
no mutable state; process_many runs independent pipelines on a thread
pool.

Usage:
    from invoice_engine import InvoiceProcessor, RawDocument

    processor = InvoiceProcessor()
    result = processor.process(RawDocument.from_path("invoice.pdf"))
    print(result.decision, result.extraction.overall_confidence)

Author: ML Engineering Team
"""

import json
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from config import get_config
from invoice_engine.field_extraction import (
    FieldExtractor,
    InvoiceExtraction,
    LineItemTableExtractor,
    SpatialContextAnalyzer,
    TextRegion,
    VendorTemplateMatcher,
)
from invoice_engine.input_handler import ClassificationResult, DocumentClassifier, DocumentKind, RawDocument
from invoice_engine.patterns import PatternLibrary
from invoice_engine.postprocessor import (
    ConfidenceBreakdown,
    ConfidenceCalculator,
    DuplicateChecker,
    ProcessingDecision,
    ReviewRouter,
    Validator,
)
from invoice_engine.text_extraction import ExtractionAttempt, ExtractionCoordinator
from invoice_engine.utils.exceptions import ClassificationFailure, InvoiceEngineError
from invoice_engine.utils.logger import get_logger, log_duration

# Initialize module logger
logger = get_logger(__name__)


@dataclass(frozen=True)
class DiagnosticTrace:
    """
    Everything needed to explain a result to an operator.

    Attributes:
        document_id: Content hash of the document
        filename: Source filename
        classification: Classifier output
        attempts: Every extraction attempt, in order
        regions: Spatial segmentation of the chosen text
        field_provenance: Field -> pattern id, source line, region, strategy
        confidence_breakdown: Confidence components
        pattern_version: Snapshot version used
        template_id: Matched template, if any
    """
    document_id: str
    filename: str
    classification: ClassificationResult
    attempts: Tuple[ExtractionAttempt, ...]
    regions: Tuple[TextRegion, ...]
    field_provenance: Mapping[str, Optional[Dict[str, Any]]]
    confidence_breakdown: ConfidenceBreakdown
    pattern_version: str
    template_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'document_id': self.document_id,
            'filename': self.filename,
            'classification': self.classification.to_dict(),
            'attempts': [a.to_dict() for a in self.attempts],
            'regions': [r.to_dict() for r in self.regions],
            'field_provenance': dict(self.field_provenance),
            'confidence_breakdown': self.confidence_breakdown.to_dict(),
            'pattern_version': self.pattern_version,
            'template_id': self.template_id,
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)


@dataclass(frozen=True)
class PipelineResult:
    """Record, routing decision and diagnostic trace for one document."""
    extraction: InvoiceExtraction
    decision: ProcessingDecision
    trace: DiagnosticTrace

    def to_dict(self) -> Dict[str, Any]:
        data = self.extraction.to_dict()
        data['decision'] = self.decision.value
        return data


@dataclass(frozen=True)
class BatchOutcome:
    """Result of one document in a batch; exactly one of result/error is set."""
    filename: str
    result: Optional[PipelineResult] = None
    error: Optional[InvoiceEngineError] = None

    @property
    def succeeded(self) -> bool:
        return self.result is not None


class InvoiceProcessor:
    """
    End-to-end processing of invoice documents.

    Every component can be injected; omitted ones are built from
    configuration.

    Attributes:
        library: PatternLibrary whose snapshot each run reads
        classifier, coordinator, analyzer, field_extractor,
        template_matcher, table_extractor, calculator, validator, router:
            The pipeline stages
        max_workers: Default pool size for process_many

    Example:
        >>> processor = InvoiceProcessor()
        >>> result = processor.process(document)
        >>> result.decision
        <ProcessingDecision.AUTO_APPROVE: 'auto_approve'>
        >>> outcomes = processor.process_many(documents, max_workers=4)
    """

    def __init__(
        self,
        pattern_library: Optional[PatternLibrary] = None,
        classifier: Optional[DocumentClassifier] = None,
        coordinator: Optional[ExtractionCoordinator] = None,
        analyzer: Optional[SpatialContextAnalyzer] = None,
        field_extractor: Optional[FieldExtractor] = None,
        template_matcher: Optional[VendorTemplateMatcher] = None,
        table_extractor: Optional[LineItemTableExtractor] = None,
        calculator: Optional[ConfidenceCalculator] = None,
        validator: Optional[Validator] = None,
        router: Optional[ReviewRouter] = None,
        max_workers: Optional[int] = None
    ) -> None:
        self.library = pattern_library or PatternLibrary.default()
        self.classifier = classifier or DocumentClassifier()
        self.coordinator = coordinator or ExtractionCoordinator()
        self.analyzer = analyzer or SpatialContextAnalyzer()
        self.field_extractor = field_extractor or FieldExtractor()
        self.template_matcher = template_matcher or VendorTemplateMatcher(
            field_extractor=self.field_extractor, analyzer=self.analyzer
        )
        self.table_extractor = table_extractor or LineItemTableExtractor(table_detector=self.analyzer.table)
        self.calculator = calculator or ConfidenceCalculator()
        self.validator = validator or Validator()
        self.router = router or ReviewRouter()
        self.max_workers = max_workers or get_config("processing.max_workers", 4)

        logger.info(f"InvoiceProcessor ready (patterns {self.library.version})")

    def process(
        self,
        document: RawDocument,
        duplicate_checker: Optional[DuplicateChecker] = None
    ) -> PipelineResult:
        """
        Process one document.

        Args:
            document: The raw document.
            duplicate_checker: Optional persistence lookup for duplicates.

        Returns:
            PipelineResult with the record, decision and trace.

        Raises:
            ClassificationFailure: If the document is unreadable; no
                extraction backend is invoked.
        """
        snapshot = self.library.snapshot
        logger.info(f"Processing {document.filename} ({document.size} bytes)")

        with log_duration(logger, f"{document.filename}: classification"):
            classification = self.classifier.classify(document)

        if classification.kind == DocumentKind.UNREADABLE:
            logger.error(f"{document.filename} is unreadable: {classification.reason}")
            raise ClassificationFailure(document.filename, classification.reason)

        logger.info(
            f"{document.filename}: {classification.kind.value} "
            f"(coverage {classification.text_coverage:.2f}, {classification.page_count} pages)"
        )

        with log_duration(logger, f"{document.filename}: text extraction"):
            extraction = self.coordinator.extract(document, classification.kind)

        text = extraction.text

        with log_duration(logger, f"{document.filename}: field extraction"):
            regions = self.analyzer.segment(text)
            generic_fields = self.field_extractor.extract_all(text, regions, snapshot)
            template_match = self.template_matcher.match(text, snapshot.active_templates, regions)
            fields = self.template_matcher.apply(generic_fields, template_match)
            line_items = self.table_extractor.extract_line_items(text)

        breakdown = self.calculator.calculate(
            extraction,
            fields,
            line_items,
            template_score=template_match.score if template_match else None,
        )
        issues = self.validator.validate(fields, duplicate_checker)

        record = InvoiceExtraction(
            document_id=document.document_id,
            filename=document.filename,
            fields=fields,
            line_items=tuple(line_items),
            extraction=extraction,
            overall_confidence=breakdown.overall,
            confidence_breakdown=breakdown,
            validation_issues=tuple(issues),
            template_id=template_match.template_id if template_match else None,
            pattern_version=snapshot.version,
            classification=classification,
        )
        decision = self.router.decide(record)

        trace = DiagnosticTrace(
            document_id=document.document_id,
            filename=document.filename,
            classification=classification,
            attempts=extraction.attempts,
            regions=tuple(regions),
            field_provenance={
                name: _provenance(result) for name, result in fields.items()
            },
            confidence_breakdown=breakdown,
            pattern_version=snapshot.version,
            template_id=record.template_id,
        )

        return PipelineResult(extraction=record, decision=decision, trace=trace)

    def process_many(
        self,
        documents: Sequence[RawDocument],
        duplicate_checker: Optional[DuplicateChecker] = None,
        max_workers: Optional[int] = None
    ) -> List[BatchOutcome]:
        """
        Process independent documents concurrently.

        Engine errors (unreadable documents) are captured per document;
        unexpected exceptions propagate.

        Returns:
            One BatchOutcome per document, in input order.
        """
        workers = max(1, min(max_workers or self.max_workers, len(documents) or 1))
        logger.info(f"Processing {len(documents)} documents with {workers} workers")

        def run(document: RawDocument) -> BatchOutcome:
            try:
                return BatchOutcome(document.filename, result=self.process(document, duplicate_checker))
            except InvoiceEngineError as e:
                logger.error(f"{document.filename}: {e}")
                return BatchOutcome(document.filename, error=e)

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="invoice") as executor:
            outcomes = list(executor.map(run, documents))

        succeeded = sum(1 for o in outcomes if o.succeeded)
        logger.info(f"Batch complete: {succeeded}/{len(outcomes)} documents processed")
        return outcomes


def _provenance(result: Any) -> Optional[Dict[str, Any]]:
    if not result.found:
        return None
    return {
        'pattern_id': result.pattern_id,
        'source_line': result.source_line,
        'region': result.region.value if result.region else None,
        'strategy': result.strategy.value,
        'template_id': result.template_id,
        'confidence': result.confidence,
    }

"""
Extraction Backend Contracts.

Types shared by every text-extraction backend and by the coordinator:

    TextExtractor      - the capability each backend implements
    BackendOutput      - what a backend returns for one document
    ExtractionAttempt  - one timed backend invocation, kept for diagnostics
    ExtractionResult   - the single text result the coordinator hands on

Author: ML Engineering Team
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from invoice_engine.input_handler.document import RawDocument
from invoice_engine.utils.helpers import clamp_confidence


class ExtractionMethod(Enum):
    """The three interchangeable ways of turning a document into text."""
    FAST_STRUCTURED = "fast_structured"
    LAYOUT_PRESERVING = "layout_preserving"
    OCR = "ocr"


class ExtractionStatus(Enum):
    """Whether the coordinator accepted a backend's output."""
    ACCEPTED = "accepted"
    REQUIRES_MANUAL_EXTRACTION = "requires_manual_extraction"


@dataclass
class BackendOutput:
    """
    Raw output of one backend call.

    Attributes:
        text: Extracted text (None when nothing could be read)
        confidence: Backend's intrinsic confidence in [0, 1]
        succeeded: Whether the backend considers the call successful
        error: Failure reason when not succeeded
        details: Backend-specific statistics (word count, pages, ...)
    """
    text: Optional[str]
    confidence: float
    succeeded: bool
    error: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.confidence = clamp_confidence(self.confidence)

    @classmethod
    def failure(cls, error: str, confidence: float = 0.0, text: Optional[str] = None) -> 'BackendOutput':
        """Build a failed output."""
        return cls(text=text, confidence=confidence, succeeded=False, error=error)


class TextExtractor(ABC):
    """
    Capability implemented by every extraction backend.

    Implementations must not raise for problems with the document itself;
    they return BackendOutput.failure(...) instead. The coordinator still
    guards against unexpected exceptions.
    """

    #: Method identifier used in backend orders and diagnostics
    method: ExtractionMethod

    @property
    def name(self) -> str:
        return self.method.value

    @abstractmethod
    def extract(self, document: RawDocument) -> BackendOutput:
        """Extract text from a document."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(method={self.method.value})"


@dataclass(frozen=True)
class ExtractionAttempt:
    """
    One backend invocation as seen by the coordinator.

    Attributes:
        backend_name: Backend identifier
        method: Extraction method of the backend
        extracted_text: Text returned (None on failure or timeout)
        confidence: Backend confidence in [0, 1]
        succeeded: Backend success flag
        elapsed_ms: Wall-clock time spent waiting for the backend
        error: Failure reason, including timeouts
    """
    backend_name: str
    method: ExtractionMethod
    extracted_text: Optional[str]
    confidence: float
    succeeded: bool
    elapsed_ms: float
    error: Optional[str] = None

    def is_acceptable(self, threshold: float) -> bool:
        """The coordinator's acceptance rule."""
        return self.succeeded and self.confidence >= threshold

    def to_dict(self, include_text: bool = False) -> Dict[str, Any]:
        data = {
            'backend_name': self.backend_name,
            'method': self.method.value,
            'confidence': self.confidence,
            'succeeded': self.succeeded,
            'elapsed_ms': round(self.elapsed_ms, 2),
            'error': self.error,
            'text_length': len(self.extracted_text or ''),
        }
        if include_text:
            data['text'] = self.extracted_text
        return data


@dataclass(frozen=True)
class ExtractionResult:
    """
    The single text result handed downstream.

    Attributes:
        text: Chosen text ('' when every backend failed without text)
        method: Method of the chosen attempt
        confidence: Confidence of the chosen attempt
        status: ACCEPTED or REQUIRES_MANUAL_EXTRACTION
        attempts: Every attempt made, in invocation order (diagnostics)
    """
    text: str
    method: Optional[ExtractionMethod]
    confidence: float
    status: ExtractionStatus
    attempts: Tuple[ExtractionAttempt, ...] = ()

    @property
    def accepted(self) -> bool:
        return self.status == ExtractionStatus.ACCEPTED

    @property
    def lines(self) -> List[str]:
        return self.text.splitlines()

    def to_dict(self, include_text: bool = False) -> Dict[str, Any]:
        data = {
            'method': self.method.value if self.method else None,
            'confidence': self.confidence,
            'status': self.status.value,
            'attempts': [a.to_dict(include_text=include_text) for a in self.attempts],
        }
        if include_text:
            data['text'] = self.text
        return data

    def __repr__(self) -> str:
        method = self.method.value if self.method else None
        return (
            f"ExtractionResult(method={method}, confidence={self.confidence:.2f}, "
            f"status={self.status.value}, attempts={len(self.attempts)})"
        )

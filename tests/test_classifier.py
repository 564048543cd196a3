"""Tests for RawDocument and DocumentClassifier."""

import pytest

from conftest import make_pdf
from invoice_engine.input_handler import DocumentClassifier, DocumentKind, RawDocument
from invoice_engine.utils.exceptions import EmptyDocumentError


class TestRawDocument:

    def test_empty_content_is_rejected(self):
        with pytest.raises(EmptyDocumentError):
            RawDocument(b"", "empty.pdf")

    def test_document_id_is_stable_content_hash(self):
        a = RawDocument(b"%PDF-1.4 same", "a.pdf")
        b = RawDocument(b"%PDF-1.4 same", "b.pdf")
        assert a.document_id == b.document_id
        assert len(a.document_id) == 16

    def test_sniffs_png_regardless_of_declared_type(self, png_bytes):
        doc = RawDocument(png_bytes, "scan.pdf", "application/pdf")
        assert doc.sniffed_image_type() == "image/png"

    def test_from_path(self, tmp_path, word_pdf):
        path = tmp_path / "invoice.pdf"
        path.write_bytes(word_pdf)
        doc = RawDocument.from_path(path)
        assert doc.filename == "invoice.pdf"
        assert doc.declared_content_type == "application/pdf"
        assert doc.size == len(word_pdf)


class TestDocumentClassifier:

    @pytest.fixture
    def classifier(self):
        return DocumentClassifier()

    def test_text_rich_pdf_is_digital(self, classifier, word_pdf):
        result = classifier.classify(RawDocument(word_pdf, "digital.pdf"))
        assert result.kind == DocumentKind.DIGITAL
        assert result.text_coverage == pytest.approx(1.0)
        assert result.page_count == 1

    def test_blank_pdf_goes_to_ocr(self, classifier, blank_pdf):
        result = classifier.classify(RawDocument(blank_pdf, "blank.pdf"))
        assert result.kind == DocumentKind.SCANNED
        assert result.text_coverage == 0.0

    def test_sparse_text_is_hybrid(self, classifier):
        pdf = make_pdf(["Invoice 42 total due soon please pay"])
        result = classifier.classify(RawDocument(pdf, "sparse.pdf"))
        assert result.kind == DocumentKind.HYBRID
        assert 0.0 < result.text_coverage < 0.8

    def test_image_is_scanned(self, classifier, png_bytes):
        result = classifier.classify(RawDocument(png_bytes, "scan.png", "image/png"))
        assert result.kind == DocumentKind.SCANNED
        assert result.page_count == 1

    def test_missing_pdf_header_is_unreadable(self, classifier):
        result = classifier.classify(RawDocument(b"just some bytes", "notes.pdf"))
        assert result.kind == DocumentKind.UNREADABLE
        assert not result.is_readable
        assert "header" in result.reason

    def test_corrupt_pdf_is_unreadable(self, classifier):
        result = classifier.classify(RawDocument(b"%PDF-1.7\n garbage without objects", "broken.pdf"))
        assert result.kind == DocumentKind.UNREADABLE

    def test_undecodable_image_is_unreadable(self, classifier):
        result = classifier.classify(RawDocument(b"\x89PNG\r\n\x1a\nnot really", "bad.png", "image/png"))
        assert result.kind == DocumentKind.UNREADABLE

    @pytest.mark.parametrize("words, expected", [(0, 0.0), (1, 0.2), (11, 0.5), (31, 0.8), (101, 1.0)])
    def test_coverage_tiers(self, classifier, words, expected):
        assert classifier.coverage_for_word_count(words) == expected

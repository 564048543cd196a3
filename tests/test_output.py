"""Tests for Excel/JSON output and the command-line entry point."""

import json

import pytest
from openpyxl import load_workbook

from conftest import SAMPLE_INVOICE, FakeBackend, FixedClassifier, make_pdf
from invoice_engine import InvoiceProcessor, RawDocument
from invoice_engine.output_handler import ExcelExporter, JSONExporter, OutputHandler
from invoice_engine.postprocessor import Validator
from invoice_engine.text_extraction import ExtractionCoordinator, ExtractionMethod
from invoice_engine.utils.exceptions import ConfigurationError, ExcelExportError, JSONExportError
from main import main, run_extraction, summarize


@pytest.fixture
def results(library, today):
    backend = FakeBackend(ExtractionMethod.FAST_STRUCTURED, SAMPLE_INVOICE, confidence=0.95)
    processor = InvoiceProcessor(
        pattern_library=library,
        classifier=FixedClassifier(),
        coordinator=ExtractionCoordinator(backends={backend.method: backend}),
        validator=Validator(today=today),
    )
    documents = [
        RawDocument(b"%PDF-1.4 one", "one.pdf"),
        RawDocument(b"%PDF-1.4 two", "two.pdf"),
    ]
    return [processor.process(document) for document in documents]


class TestExcelExporter:

    def test_workbook_sheets(self, tmp_path, results):
        path = ExcelExporter(output_dir=tmp_path).export(results, "batch.xlsx")
        workbook = load_workbook(path)
        assert workbook.sheetnames == ['Invoices', 'Line Items', 'Validation', 'Diagnostics']

    def test_invoice_rows(self, tmp_path, results):
        path = ExcelExporter(output_dir=tmp_path).export(results, "batch.xlsx")
        sheet = load_workbook(path)['Invoices']

        headers = [cell.value for cell in sheet[1]]
        assert headers[:3] == ['Source File', 'Document ID', 'Invoice Number']
        assert sheet.max_row == 3

        row = {header: cell.value for header, cell in zip(headers, sheet[2])}
        assert row['Source File'] == 'one.pdf'
        assert row['Invoice Number'] == 'INV-2024-001'
        assert row['Decision'] == 'auto_approve'
        assert row['Line Items'] == 2

    def test_line_item_and_diagnostic_rows(self, tmp_path, results):
        workbook = load_workbook(ExcelExporter(output_dir=tmp_path).export(results, "batch.xlsx"))
        assert workbook['Line Items'].max_row == 1 + 4
        assert workbook['Line Items']['D2'].value == 'Office Chairs'
        diagnostics = workbook['Diagnostics']
        assert diagnostics.max_row == 1 + 2
        assert diagnostics['E2'].value == 'fast_structured'

    def test_optional_sheets_can_be_disabled(self, tmp_path, results):
        exporter = ExcelExporter(
            output_dir=tmp_path, include_line_items=False, include_validation=False, include_diagnostics=False
        )
        assert load_workbook(exporter.export(results, "lean.xlsx")).sheetnames == ['Invoices']

    def test_nothing_to_export(self, tmp_path):
        with pytest.raises(ExcelExportError):
            ExcelExporter(output_dir=tmp_path).export([])


class TestJSONExporter:

    def test_document_structure(self, tmp_path, results):
        path = JSONExporter(output_dir=tmp_path).export(results, "batch.json")
        with open(path, encoding='utf-8') as f:
            data = json.load(f)

        assert data['summary'] == {'documents': 2, 'decisions': {'auto_approve': 2}}
        first = data['invoices'][0]
        assert first['filename'] == 'one.pdf'
        assert first['decision'] == 'auto_approve'
        assert first['fields']['total_amount']['value'] == '2700.00'
        assert 'trace' not in first

    def test_trace_and_text_are_optional(self, results):
        document = JSONExporter(include_trace=True, include_text=True).build_document(results)
        entry = document['invoices'][0]
        assert entry['trace']['pattern_version'] == results[0].extraction.pattern_version
        assert 'Acme Corporation' in json.dumps(entry['extraction'])

    def test_default_filename(self):
        name = JSONExporter().get_default_filename()
        assert name.startswith('invoice_extractions_')
        assert name.endswith('.json')

    def test_nothing_to_export(self, tmp_path):
        with pytest.raises(JSONExportError):
            JSONExporter(output_dir=tmp_path).export([])


class TestOutputHandler:

    def test_both_formats(self, tmp_path, results):
        written = OutputHandler(output_format='both', output_dir=tmp_path).save(results, 'batch')
        assert set(written) == {'excel', 'json'}
        assert (tmp_path / 'batch.xlsx').exists()
        assert (tmp_path / 'batch.json').exists()

    def test_single_result(self, tmp_path, results):
        written = OutputHandler(output_format='json', output_dir=tmp_path).save(results[0])
        assert list(written) == ['json']

    def test_unknown_format(self, tmp_path):
        with pytest.raises(ConfigurationError):
            OutputHandler(output_format='csv', output_dir=tmp_path)

    def test_summarize(self, results):
        assert summarize(results) == {'processed': 2, 'auto_approve': 2}


class TestCommandLine:

    @pytest.fixture
    def invoice_dir(self, tmp_path):
        folder = tmp_path / 'invoices'
        folder.mkdir()
        (folder / 'acme.pdf').write_bytes(make_pdf(SAMPLE_INVOICE.splitlines()))
        (folder / 'broken.pdf').write_bytes(b'not a pdf at all')
        (folder / 'notes.txt').write_text('ignored', encoding='utf-8')
        return folder

    def test_run_extraction_skips_unreadable_files(self, tmp_path, invoice_dir):
        out = tmp_path / 'out'
        results = run_extraction(str(invoice_dir), str(out), 'json', workers=1)

        assert [r.extraction.filename for r in results] == ['acme.pdf']
        assert len(list(out.glob('*.json'))) == 1

    def test_main_writes_outputs(self, tmp_path, invoice_dir):
        out = tmp_path / 'out'
        code = main(['--input', str(invoice_dir), '--output-dir', str(out), '--format', 'both',
                     '--workers', '1', '--quiet'])
        assert code == 0
        assert len(list(out.glob('*.xlsx'))) == 1
        assert len(list(out.glob('*.json'))) == 1

    def test_main_missing_input(self, tmp_path):
        assert main(['--input', str(tmp_path / 'missing'), '--quiet']) == 1

    def test_main_rejects_unknown_format(self):
        with pytest.raises(SystemExit):
            main(['--input', 'x', '--format', 'csv'])

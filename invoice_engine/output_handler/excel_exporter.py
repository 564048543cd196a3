"""
Excel Exporter Module.

Writes processed invoices to an Excel workbook with openpyxl.

Sheets:
    - Invoices: one row per document with typed field values, the
      overall confidence and the routing decision
    - Line Items: one row per parsed table row
    - Validation: one row per validation issue
    - Diagnostics: every text extraction attempt per document

Author: ML Engineering Team
"""

from pathlib import Path
from typing import Any, List, Optional, Sequence, Union

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from config import get_config
from invoice_engine.patterns.models import SUPPORTED_FIELDS
from invoice_engine.pipeline import PipelineResult
from invoice_engine.utils.exceptions import ExcelExportError
from invoice_engine.utils.helpers import ensure_directory, generate_timestamp
from invoice_engine.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)


def _title(name: str) -> str:
    return name.replace('_', ' ').title()


class ExcelExporter:
    """
    Exports pipeline results to Excel format.

    Attributes:
        output_dir: Directory for output files
        include_line_items: Whether to add the Line Items sheet
        include_validation: Whether to add the Validation sheet
        include_diagnostics: Whether to add the Diagnostics sheet

    Example:
        >>> exporter = ExcelExporter()
        >>> filepath = exporter.export(results, "extractions.xlsx")
        >>> print(f"Saved to: {filepath}")
    """

    HEADER_FILLS = {
        'Invoices': "4472C4",
        'Line Items': "548235",
        'Validation': "C65911",
        'Diagnostics': "7F7F7F",
    }

    LINE_ITEM_COLUMNS = ['Source File', 'Invoice Number', 'Row', 'Description',
                         'Quantity', 'Unit Price', 'Line Total']
    VALIDATION_COLUMNS = ['Source File', 'Invoice Number', 'Field', 'Kind',
                          'Code', 'Message', 'Suggested Value']
    DIAGNOSTIC_COLUMNS = ['Source File', 'Document Kind', 'Text Coverage', 'Attempt',
                          'Backend', 'Method', 'Succeeded', 'Confidence', 'Elapsed (ms)', 'Error']

    def __init__(
        self,
        output_dir: Optional[Union[str, Path]] = None,
        include_line_items: Optional[bool] = None,
        include_validation: Optional[bool] = None,
        include_diagnostics: Optional[bool] = None
    ) -> None:
        self.output_dir = Path(output_dir or get_config("paths.output_dir", "outputs"))
        self.include_line_items = self._option(include_line_items, "include_line_items")
        self.include_validation = self._option(include_validation, "include_validation")
        self.include_diagnostics = self._option(include_diagnostics, "include_diagnostics")

        logger.debug(f"ExcelExporter initialized (output_dir: {self.output_dir})")

    @staticmethod
    def _option(value: Optional[bool], key: str) -> bool:
        return value if value is not None else get_config(f"output.excel.{key}", True)

    def export(
        self,
        results: Union[PipelineResult, Sequence[PipelineResult]],
        filename: Optional[str] = None,
        output_dir: Optional[Union[str, Path]] = None
    ) -> str:
        """
        Export pipeline results to an Excel file.

        Args:
            results: Single result or list of results to export.
            filename: Output filename. If None, auto-generated.
            output_dir: Output directory. If None, uses configured dir.

        Returns:
            Path to the created Excel file.

        Raises:
            ExcelExportError: If there is nothing to export or saving fails.
        """
        if isinstance(results, PipelineResult):
            results = [results]
        results = list(results)

        out_dir = ensure_directory(output_dir or self.output_dir)
        filepath = out_dir / (filename or self.get_default_filename())

        if not results:
            raise ExcelExportError(str(filepath), "No results to export")

        try:
            workbook = Workbook()
            self._write_sheet(workbook.active, 'Invoices', *self._invoice_rows(results))
            if self.include_line_items:
                self._write_sheet(workbook.create_sheet(), 'Line Items',
                                  self.LINE_ITEM_COLUMNS, self._line_item_rows(results))
            if self.include_validation:
                self._write_sheet(workbook.create_sheet(), 'Validation',
                                  self.VALIDATION_COLUMNS, self._validation_rows(results))
            if self.include_diagnostics:
                self._write_sheet(workbook.create_sheet(), 'Diagnostics',
                                  self.DIAGNOSTIC_COLUMNS, self._diagnostic_rows(results))
            workbook.save(filepath)
        except (OSError, ValueError) as e:
            logger.error(f"Excel export failed: {e}")
            raise ExcelExportError(str(filepath), str(e)) from e

        logger.info(f"Excel file saved: {filepath} ({len(results)} records)")
        return str(filepath)

    # =========================================================================
    # ROW BUILDERS
    # =========================================================================

    @staticmethod
    def _invoice_rows(results: List[PipelineResult]):
        headers = (
            ['Source File', 'Document ID']
            + [_title(name) for name in SUPPORTED_FIELDS]
            + ['Line Items', 'Line Items Total', 'Overall Confidence', 'Decision',
               'Errors', 'Warnings', 'Template', 'Pattern Version', 'Extraction Method']
        )
        rows = []
        for result in results:
            record = result.extraction
            rows.append(
                [record.filename, record.document_id]
                + [record.value(name) for name in SUPPORTED_FIELDS]
                + [
                    len(record.line_items),
                    record.line_items_total,
                    round(record.overall_confidence, 4),
                    result.decision.value,
                    len(record.errors),
                    len(record.warnings),
                    record.template_id,
                    record.pattern_version,
                    record.extraction.method.value if record.extraction.method else None,
                ]
            )
        return headers, rows

    @staticmethod
    def _line_item_rows(results: List[PipelineResult]) -> List[List[Any]]:
        rows = []
        for result in results:
            record = result.extraction
            for index, item in enumerate(record.line_items, 1):
                rows.append([
                    record.filename, record.value('invoice_number'), index,
                    item.description, item.quantity, item.unit_price, item.line_total,
                ])
        return rows

    @staticmethod
    def _validation_rows(results: List[PipelineResult]) -> List[List[Any]]:
        rows = []
        for result in results:
            record = result.extraction
            for issue in record.validation_issues:
                suggested = issue.suggested_value
                rows.append([
                    record.filename, record.value('invoice_number'), issue.field,
                    issue.kind.value, issue.code, issue.message,
                    str(suggested) if suggested is not None else None,
                ])
        return rows

    @staticmethod
    def _diagnostic_rows(results: List[PipelineResult]) -> List[List[Any]]:
        rows = []
        for result in results:
            trace = result.trace
            for index, attempt in enumerate(trace.attempts, 1):
                rows.append([
                    trace.filename,
                    trace.classification.kind.value,
                    trace.classification.text_coverage,
                    index,
                    attempt.backend_name,
                    attempt.method.value,
                    attempt.succeeded,
                    attempt.confidence,
                    round(attempt.elapsed_ms, 2),
                    attempt.error,
                ])
        return rows

    # =========================================================================
    # SHEET WRITER
    # =========================================================================

    def _write_sheet(self, sheet, title: str, headers: List[str], rows: List[List[Any]]) -> None:
        """Write a header row plus data rows, then size the columns."""
        sheet.title = title

        color = self.HEADER_FILLS.get(title, "4472C4")
        header_font = Font(bold=True, color="FFFFFF")
        header_fill = PatternFill(start_color=color, end_color=color, fill_type="solid")
        header_alignment = Alignment(horizontal="center", vertical="center")
        thin = Side(style='thin')
        thin_border = Border(left=thin, right=thin, top=thin, bottom=thin)

        for col, header in enumerate(headers, 1):
            cell = sheet.cell(row=1, column=col, value=header)
            cell.font = header_font
            cell.fill = header_fill
            cell.alignment = header_alignment
            cell.border = thin_border

        for row_num, row in enumerate(rows, 2):
            for col, value in enumerate(row, 1):
                cell = sheet.cell(row=row_num, column=col, value=value)
                cell.border = thin_border

        for col, header in enumerate(headers, 1):
            max_length = len(header)
            for row in rows:
                if col <= len(row) and row[col - 1] is not None:
                    max_length = max(max_length, len(str(row[col - 1])))
            sheet.column_dimensions[get_column_letter(col)].width = min(max_length + 2, 50)

        sheet.freeze_panes = 'A2'

    def get_default_filename(self) -> str:
        """Filename from output.excel.filename_pattern with a timestamp."""
        pattern = get_config(
            "output.excel.filename_pattern",
            "invoice_extractions_{timestamp}.xlsx"
        )
        return pattern.format(timestamp=generate_timestamp())

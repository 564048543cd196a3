"""
Output Handler Module for the Invoice Engine.

This module provides functionality for:
    - Excel workbook generation (invoices, line items, validation, diagnostics)
    - JSON export with optional diagnostic traces

Author: ML Engineering Team
"""

from .handler import OUTPUT_FORMATS, OutputHandler
from .excel_exporter import ExcelExporter
from .json_exporter import JSONExporter

__all__ = ['OUTPUT_FORMATS', 'OutputHandler', 'ExcelExporter', 'JSONExporter']

"""
Main Output Handler Module.

This module provides the unified OutputHandler class that coordinates
all output operations (Excel and JSON).

Author: ML Engineering Team
"""

from pathlib import Path
from typing import Dict, Optional, Sequence, Union

from config import get_config
from invoice_engine.pipeline import PipelineResult
from invoice_engine.utils.exceptions import ConfigurationError
from invoice_engine.utils.logger import get_logger
from .excel_exporter import ExcelExporter
from .json_exporter import JSONExporter

# Initialize module logger
logger = get_logger(__name__)

OUTPUT_FORMATS = ('excel', 'json', 'both')


class OutputHandler:
    """
    Unified output handler for pipeline results.

    Attributes:
        output_format: 'excel', 'json' or 'both'
        output_dir: Directory all files are written to
        include_trace: Whether JSON output carries diagnostic traces

    Example:
        >>> handler = OutputHandler(output_format="both")
        >>> paths = handler.save(results)
        >>> paths['excel'], paths['json']
    """

    def __init__(
        self,
        output_format: Optional[str] = None,
        output_dir: Optional[Union[str, Path]] = None,
        include_trace: bool = False
    ) -> None:
        """
        Initialize the output handler.

        Args:
            output_format: Override for output.format.
            output_dir: Override for paths.output_dir.
            include_trace: Include diagnostic traces in JSON output.

        Raises:
            ConfigurationError: If the format is unknown.
        """
        self.output_format = (output_format or get_config("output.format", "excel")).lower()
        if self.output_format not in OUTPUT_FORMATS:
            raise ConfigurationError(
                f"Unknown output format '{self.output_format}'",
                {"supported": list(OUTPUT_FORMATS)}
            )

        self.output_dir = Path(output_dir or get_config("paths.output_dir", "outputs"))
        self.include_trace = include_trace

        # Lazily created exporters
        self._excel_exporter: Optional[ExcelExporter] = None
        self._json_exporter: Optional[JSONExporter] = None

        logger.info(f"OutputHandler initialized (format={self.output_format}, dir={self.output_dir})")

    @property
    def excel_exporter(self) -> ExcelExporter:
        """Get or create the Excel exporter."""
        if self._excel_exporter is None:
            self._excel_exporter = ExcelExporter(output_dir=self.output_dir)
        return self._excel_exporter

    @property
    def json_exporter(self) -> JSONExporter:
        """Get or create the JSON exporter."""
        if self._json_exporter is None:
            self._json_exporter = JSONExporter(output_dir=self.output_dir, include_trace=self.include_trace)
        return self._json_exporter

    def save(
        self,
        results: Union[PipelineResult, Sequence[PipelineResult]],
        filename_stem: Optional[str] = None
    ) -> Dict[str, str]:
        """
        Save results to every configured format.

        Args:
            results: Single result or list of results.
            filename_stem: Custom base filename (extension added per format).

        Returns:
            Mapping of format name to written file path.
        """
        if isinstance(results, PipelineResult):
            results = [results]

        written: Dict[str, str] = {}
        if self.output_format in ('excel', 'both'):
            written['excel'] = self.to_excel(results, f"{filename_stem}.xlsx" if filename_stem else None)
        if self.output_format in ('json', 'both'):
            written['json'] = self.to_json(results, f"{filename_stem}.json" if filename_stem else None)
        return written

    def to_excel(
        self,
        results: Union[PipelineResult, Sequence[PipelineResult]],
        filename: Optional[str] = None
    ) -> str:
        return self.excel_exporter.export(results, filename)

    def to_json(
        self,
        results: Union[PipelineResult, Sequence[PipelineResult]],
        filename: Optional[str] = None
    ) -> str:
        return self.json_exporter.export(results, filename)

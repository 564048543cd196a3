"""
JSON Exporter Module.

Writes processed invoices as a single JSON document: a summary block
followed by one entry per invoice carrying the record, the routing
decision and, optionally, the diagnostic trace.

Author: ML Engineering Team
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Union

from config import get_config
from invoice_engine.pipeline import PipelineResult
from invoice_engine.utils.exceptions import JSONExportError
from invoice_engine.utils.helpers import ensure_directory, generate_timestamp
from invoice_engine.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)


class JSONExporter:
    """
    Exports pipeline results to JSON.

    Example:
        >>> exporter = JSONExporter(include_trace=True)
        >>> exporter.export(results, "batch.json")
    """

    def __init__(
        self,
        output_dir: Optional[Union[str, Path]] = None,
        indent: Optional[int] = None,
        include_text: Optional[bool] = None,
        include_trace: bool = False
    ) -> None:
        self.output_dir = Path(output_dir or get_config("paths.output_dir", "outputs"))
        self.indent = indent if indent is not None else get_config("output.json.indent", 2)
        self.include_text = include_text if include_text is not None else \
            get_config("output.json.include_text", False)
        self.include_trace = include_trace

    def build_document(self, results: Sequence[PipelineResult]) -> Dict[str, Any]:
        """Assemble the JSON-ready structure for a batch."""
        decisions: Dict[str, int] = {}
        for result in results:
            decisions[result.decision.value] = decisions.get(result.decision.value, 0) + 1

        invoices = []
        for result in results:
            entry = result.extraction.to_dict(include_text=self.include_text)
            entry['decision'] = result.decision.value
            if self.include_trace:
                entry['trace'] = result.trace.to_dict()
            invoices.append(entry)

        return {
            'generated_at': datetime.now().isoformat(),
            'summary': {
                'documents': len(results),
                'decisions': decisions,
            },
            'invoices': invoices,
        }

    def export(
        self,
        results: Union[PipelineResult, Sequence[PipelineResult]],
        filename: Optional[str] = None,
        output_dir: Optional[Union[str, Path]] = None
    ) -> str:
        """
        Export pipeline results to a JSON file.

        Returns:
            Path to the created file.

        Raises:
            JSONExportError: If there is nothing to export or writing fails.
        """
        if isinstance(results, PipelineResult):
            results = [results]
        results = list(results)

        out_dir = ensure_directory(output_dir or self.output_dir)
        filepath = out_dir / (filename or self.get_default_filename())

        if not results:
            raise JSONExportError(str(filepath), "No results to export")

        try:
            with open(filepath, 'w', encoding='utf-8') as f:
                json.dump(self.build_document(results), f, indent=self.indent, ensure_ascii=False)
        except OSError as e:
            logger.error(f"JSON export failed: {e}")
            raise JSONExportError(str(filepath), str(e)) from e

        logger.info(f"JSON file saved: {filepath} ({len(results)} records)")
        return str(filepath)

    def get_default_filename(self) -> str:
        pattern = get_config(
            "output.json.filename_pattern",
            "invoice_extractions_{timestamp}.json"
        )
        return pattern.format(timestamp=generate_timestamp())

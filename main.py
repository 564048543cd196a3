#!/usr/bin/env python3
"""
Invoice Extraction & Confidence Engine - Main Entry Point.

Command-line interface and programmatic access to the processing
pipeline.

Usage:
    Command Line:
        python main.py --input invoice.pdf
        python main.py --input ./invoices/ --output-dir ./results/ --format both
        python main.py --input ./invoices/ --patterns my_patterns.yaml --workers 8 --trace

    Python:
        from main import run_extraction
        results = run_extraction("invoices/")

Author: ML Engineering Team
Version: 1.0.0
"""

import argparse
import sys
from typing import Any, Dict, List, Optional

from config import configure
from invoice_engine import __version__
from invoice_engine.input_handler import InputHandler
from invoice_engine.output_handler import OUTPUT_FORMATS, OutputHandler
from invoice_engine.patterns import PatternLibrary
from invoice_engine.pipeline import InvoiceProcessor, PipelineResult
from invoice_engine.utils.exceptions import InvoiceEngineError
from invoice_engine.utils.logger import get_logger, setup_logger_from_config


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed argument namespace.
    """
    parser = argparse.ArgumentParser(
        description="Invoice Extraction & Confidence Engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    Process single invoice:
        python main.py --input invoice.pdf

    Process directory to Excel and JSON:
        python main.py --input ./invoices/ --output-dir ./results/ --format both

    Custom pattern set with diagnostic traces:
        python main.py --input ./invoices/ --patterns patterns.yaml --trace
        """
    )

    # Input/Output arguments
    parser.add_argument(
        "--input", "-i",
        type=str,
        required=True,
        help="Input file or directory containing invoices"
    )

    parser.add_argument(
        "--output-dir", "-o",
        type=str,
        default=None,
        help="Output directory (default: paths.output_dir)"
    )

    parser.add_argument(
        "--format", "-f",
        choices=OUTPUT_FORMATS,
        default=None,
        help="Output format (default: output.format)"
    )

    # Processing options
    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help="Path to custom configuration file"
    )

    parser.add_argument(
        "--patterns", "-p",
        type=str,
        default=None,
        help="Pattern set YAML (default: paths.patterns_file)"
    )

    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=None,
        help="Documents processed in parallel (default: processing.max_workers)"
    )

    parser.add_argument(
        "--trace",
        action="store_true",
        help="Include diagnostic traces in JSON output"
    )

    # Logging options
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )

    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Only log warnings and errors"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    return parser.parse_args(argv)


def initialize_system(args: argparse.Namespace) -> None:
    """Load configuration and set up logging."""
    configure(args.config)

    level = None
    if args.debug:
        level = "DEBUG"
    elif args.quiet:
        level = "WARNING"
    logger = setup_logger_from_config(level_override=level)

    logger.info("=" * 60)
    logger.info("INVOICE EXTRACTION & CONFIDENCE ENGINE")
    logger.info("=" * 60)
    logger.info(f"Version: {__version__}")
    logger.info(f"Input: {args.input}")


def run_extraction(
    input_path: str,
    output_dir: Optional[str] = None,
    output_format: Optional[str] = None,
    patterns_path: Optional[str] = None,
    workers: Optional[int] = None,
    include_trace: bool = False
) -> List[PipelineResult]:
    """
    Run the processing pipeline over a file or directory and write outputs.

    Documents that fail (unreadable, unsupported) are logged and skipped;
    they do not stop the batch.

    Args:
        input_path: Path to input file or directory.
        output_dir: Directory for output files.
        output_format: 'excel', 'json' or 'both'.
        patterns_path: Pattern set to load instead of the configured one.
        workers: Parallel documents.
        include_trace: Include diagnostic traces in JSON output.

    Returns:
        Pipeline results of the successfully processed documents.

    Example:
        >>> results = run_extraction("invoices/", "outputs/", "json")
        >>> for r in results:
        ...     print(r.extraction.value('invoice_number'), r.decision.value)
    """
    logger = get_logger(__name__)

    input_handler = InputHandler()
    documents = []
    for path in input_handler.collect(input_path):
        try:
            documents.append(input_handler.load(path))
        except InvoiceEngineError as e:
            logger.error(f"Skipping {path.name}: {e}")

    if not documents:
        logger.error("No documents to process")
        return []

    library = PatternLibrary.from_file(patterns_path) if patterns_path else PatternLibrary.default()
    processor = InvoiceProcessor(pattern_library=library, max_workers=workers)

    outcomes = processor.process_many(documents)
    results = [outcome.result for outcome in outcomes if outcome.succeeded]

    for result in results:
        record = result.extraction
        logger.info(
            f"  {record.filename}: invoice #{record.value('invoice_number') or 'N/A'}, "
            f"confidence {record.overall_confidence:.2f}, {result.decision.value}"
        )

    if results:
        output_handler = OutputHandler(
            output_format=output_format,
            output_dir=output_dir,
            include_trace=include_trace
        )
        for fmt, path in output_handler.save(results).items():
            logger.info(f"{fmt.upper()} output: {path}")

    return results


def summarize(results: List[PipelineResult]) -> Dict[str, Any]:
    """Count documents per routing decision."""
    summary: Dict[str, Any] = {'processed': len(results)}
    for result in results:
        summary[result.decision.value] = summary.get(result.decision.value, 0) + 1
    return summary


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main function - entry point for command-line execution.

    Returns:
        Exit code (0 for success, 1 for errors, 130 when interrupted).
    """
    args = parse_arguments(argv)

    try:
        initialize_system(args)
        logger = get_logger(__name__)

        results = run_extraction(
            input_path=args.input,
            output_dir=args.output_dir,
            output_format=args.format,
            patterns_path=args.patterns,
            workers=args.workers,
            include_trace=args.trace
        )

        if not results:
            return 1

        logger.info("=" * 60)
        logger.info(f"Processing complete: {summarize(results)}")
        logger.info("=" * 60)
        return 0

    except InvoiceEngineError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    except KeyboardInterrupt:
        print("\nOperation cancelled by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())

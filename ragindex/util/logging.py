"""
Structured operation logging for index build, archive, search and validation events.
"""

import logging
from typing import Any, Dict, List, Optional

from ..core.config import debug_enabled


class StructuredLogger:
    """Structured logger for index lifecycle operations."""

    def __init__(self, name: str = "ragindex"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.DEBUG if debug_enabled() else logging.INFO)

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        if status in ("failed", "error", "rejected"):
            self.logger.error(message)
        else:
            self.logger.info(message)

    def log_index_operation(self, operation: str, document_id: str, details: Dict[str, Any] = None, status: str = "success"):
        """Log a document store operation."""
        log_details = {"document_id": document_id}
        if details:
            log_details.update(details)

        self.log_operation(f"index.{operation}", status, log_details)

    def log_build(self, stage: str, status: str = "success", details: Dict[str, Any] = None):
        """Log an index build stage (start, insert progress, serialize, write)."""
        self.log_operation(f"build.{stage}", status, details)

    def log_archive_operation(self, operation: str, codec: str, input_size: int, output_size: Optional[int] = None, status: str = "success"):
        """Log archive compression or decompression."""
        log_details = {"codec": codec, "input_bytes": input_size}
        if output_size is not None:
            log_details["output_bytes"] = output_size

        self.log_operation(f"archive.{operation}", status, log_details)

    def log_restore(self, source: str, document_count: int, details: Dict[str, Any] = None, status: str = "success"):
        """Log an index restore."""
        log_details = {"source": source, "document_count": document_count}
        if details:
            log_details.update(details)

        self.log_operation("restore", status, log_details)

    def log_search(self, mode: str, query: str, hit_count: int, elapsed_ms: float, status: str = "success"):
        """Log a search execution with a truncated query preview."""
        log_details = {
            "mode": mode,
            "query": query[:50] + "..." if len(query) > 50 else query,
            "hits": hit_count,
            "elapsed_ms": round(elapsed_ms, 2),
        }
        self.log_operation("search", status, log_details)

    def log_validation_case(self, query: str, expected: str, passed: bool, candidates: List[str] = None):
        """Log a single validation case outcome."""
        log_details = {
            "query": query[:50] + "..." if len(query) > 50 else query,
            "expected": expected,
        }
        if candidates:
            log_details["candidates"] = candidates[:10]

        self.log_operation("validation.case", "passed" if passed else "failed", log_details)

    def log_validation_summary(self, total: int, failed: int):
        """Log the aggregate outcome of a validation run."""
        log_details = {"total": total, "passed": total - failed, "failed": failed}
        self.log_operation("validation.run", "success" if failed == 0 else "failed", log_details)

    # Standard logging methods for compatibility
    def info(self, message: str) -> None:
        """Log an info message."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log an error message."""
        self.logger.error(message)

    def debug(self, message: str) -> None:
        """Log a debug message."""
        self.logger.debug(message)


# Global logger instance
logger = StructuredLogger()

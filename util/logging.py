"""
Structured operation logging for the semantic search core.
"""

import logging
from typing import Any, Dict


class StructuredLogger:
    """Structured logger for semantic index operations."""

    def __init__(self, name: str = "semantic_index"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)

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

        if status == "failed":
            self.logger.warning(message)
        else:
            self.logger.info(message)

    def log_vector_operation(self, operation: str, record_id: str, details: Dict[str, Any] = None, status: str = "success"):
        """Log a vector operation."""
        log_details = {"record_id": record_id}
        if details:
            log_details.update(details)

        self.log_operation(f"vector.{operation}", status, log_details)

    def log_search(self, query: str, requested: int, returned: int, details: Dict[str, Any] = None, status: str = "success"):
        """Log a search with the query text truncated."""
        log_details = {
            "query": query[:50] + "..." if len(query) > 50 else query,
            "requested": requested,
            "returned": returned,
        }
        if details:
            log_details.update(details)

        self.log_operation("vector.search", status, log_details)


# Global logger instance
logger = StructuredLogger()

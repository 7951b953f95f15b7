"""
Structured logging for SolAgg.

JSON logs with timestamp, level and event_type. Use get_logger() in all
modules for aggregation-friendly output.
"""

from solagg.solagg_logging.logger import configure_structlog, get_logger

__all__ = ["configure_structlog", "get_logger"]

"""
Structured logging for Backend SecAgg.

JSON logs with timestamp, bank_id, event_type. Use get_logger() in all
protocol modules.
"""

from backend_secagg.secagg_logging.logger import bind_bank, get_logger, short_identity

__all__ = ["bind_bank", "get_logger", "short_identity"]

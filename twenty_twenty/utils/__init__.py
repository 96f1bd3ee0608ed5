"""Cross-cutting utilities (lowest dependency layer).

This package provides shared primitives for:
    - Similarity metrics (metrics)
    - Atomic I/O (fs)
    - Hashing for artifact provenance (hashing)
    - Logging setup and context (logging_config)

No module in utils/ may import from the rest of twenty_twenty.

Convenience imports:
    from twenty_twenty.utils import fs, metrics
    from twenty_twenty.utils.logging_config import setup_logging, log_context
"""

from . import fs
from . import hashing
from . import logging_config
from . import metrics

from .logging_config import get_logger, log_context, setup_logging

__all__ = [
    # Modules
    'fs',
    'hashing',
    'logging_config',
    'metrics',
    # Direct exports
    'setup_logging',
    'get_logger',
    'log_context',
]

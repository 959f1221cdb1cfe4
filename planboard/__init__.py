"""
Planboard - workflow and board engine for project planning.

Statuses and transition rules, work item hierarchy, per-project keys and
one Kanban board per project.
"""

import logging
import sys

__version__ = "1.0.0"


def configure_logging(level=None):
    """Configure root logging the way the application runs it."""
    from config import settings

    if level is None:
        level = logging.DEBUG if settings.debug else logging.INFO

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)],
    )

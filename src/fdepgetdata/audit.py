"""
Run-level step summaries.

Each pipeline step appends one AuditEntry (rows loaded, values nulled,
samples pivoted) and logs it. Data-quality issues do not go here: they are
recorded on the run's stairval notepad and printed by the CLI.
"""

import logging
from collections import namedtuple

AuditEntry = namedtuple("AuditEntry", ["step", "table", "message", "level"])

_LOG_LEVELS = {"info": logging.INFO, "warning": logging.WARNING, "error": logging.ERROR}


def add_entry(
    entries: list, step: str, table: str, message: str, level: str = "info", logger: logging.Logger | None = None
) -> AuditEntry:
    entry = AuditEntry(step=step, table=table, message=message, level=level)
    entries.append(entry)
    (logger or logging.getLogger(__name__)).log(_LOG_LEVELS.get(level, logging.INFO), f"{step} [{table}] {message}")
    return entry

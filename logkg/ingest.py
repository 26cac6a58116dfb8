"""
Readers for structured log CSVs and their template tables.

The expected layout is the one produced by loghub-style parsers, e.g.::

    LineId,Date,Day,Time,Component,Pid,Content,EventId,EventTemplate,ParameterList
    1,Dec,10,06:55:46,LabSZ,24200,"reverse mapping checking ...",E27,"...","['173.234.31.186']"
"""

import csv
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from dateutil import parser as dtp

from .log_utils import get_logger
from .models import LogRecord, TemplateDefinition


@dataclass
class ColumnMap:
    """Column names of a structured log CSV."""
    line_id: str = "LineId"
    month: str = "Date"
    day: str = "Day"
    time: str = "Time"
    level: str = "Level"
    component: str = "Component"
    content: str = "Content"
    event_id: str = "EventId"
    event_template: str = "EventTemplate"
    parameter_list: str = "ParameterList"


def normalize_timestamp(month: str, day: str, time: str,
                        year: Optional[int] = None) -> Optional[str]:
    """
    Build an ISO-8601 timestamp from syslog-style month/day/time fields.

    Syslog lines carry no year, so ``year`` (default: the current year) is
    filled in. Returns None when the fields cannot be parsed.
    """
    if not month or not day:
        return None
    default = datetime(year or datetime.now().year, 1, 1)
    text = f"{month} {day.zfill(2)} {time or '00:00:00'}"
    try:
        return dtp.parse(text, default=default).isoformat(timespec="seconds")
    except (ValueError, OverflowError) as e:
        get_logger().warning("Could not parse timestamp '%s': %s", text, e)
        return None


def _strip_brackets(component: str) -> str:
    return re.sub(r"[\[\]]", "", component)


def record_from_row(row: Dict[str, str], columns: ColumnMap,
                    year: Optional[int] = None) -> LogRecord:
    def get(column: str) -> str:
        return (row.get(column) or "").strip()

    month, day, time = get(columns.month), get(columns.day), get(columns.time)
    return LogRecord(
        line_id=get(columns.line_id),
        content=row.get(columns.content) or "",
        event_id=get(columns.event_id),
        parameter_list=get(columns.parameter_list) or "[]",
        event_template=row.get(columns.event_template) or "",
        month=month,
        day=day,
        time=time,
        timestamp=normalize_timestamp(month, day, time, year),
        level=get(columns.level),
        component=_strip_brackets(get(columns.component)),
    )


def iter_log_records(path: str, columns: Optional[ColumnMap] = None,
                     year: Optional[int] = None) -> Iterator[LogRecord]:
    columns = columns or ColumnMap()
    with open(Path(path), 'r', newline='', encoding='utf-8', errors='replace') as f:
        reader = csv.DictReader(f)
        for required in (columns.line_id, columns.content, columns.event_id):
            if reader.fieldnames is None or required not in reader.fieldnames:
                raise ValueError(f"{path}: missing required column '{required}'")
        for row in reader:
            yield record_from_row(row, columns, year)


def read_log_records(path: str, columns: Optional[ColumnMap] = None,
                     year: Optional[int] = None) -> List[LogRecord]:
    """Read every record of a structured log CSV."""
    return list(iter_log_records(path, columns, year))


def read_template_definitions(path: str, id_column: str = "EventId",
                              text_column: str = "EventTemplate") -> List[TemplateDefinition]:
    """Read a template table; rows without an id are skipped."""
    definitions = []
    with open(Path(path), 'r', newline='', encoding='utf-8', errors='replace') as f:
        reader = csv.DictReader(f)
        if reader.fieldnames is None or id_column not in reader.fieldnames \
                or text_column not in reader.fieldnames:
            raise ValueError(f"{path}: expected columns '{id_column}' and '{text_column}'")
        for row in reader:
            template_id = (row.get(id_column) or "").strip()
            if not template_id:
                continue
            definitions.append(TemplateDefinition(template_id, row.get(text_column) or ""))
    return definitions

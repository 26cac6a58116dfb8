"""
JSONL persistence for annotated templates.
"""

import json
from pathlib import Path
from typing import Iterable, Iterator, List

from .errors import StoreIOFailure
from .log_utils import get_logger
from .models import AnnotatedTemplate, TemplateRecord
from .patterns import PatternRegistry


class JSONLWriter:
    """
    Writer for JSONL (JSON Lines) format.
    """

    def __init__(self, file_path: str):
        self.file_path = Path(file_path)
        self.file_handle = None

    def __enter__(self):
        self.file_handle = open(self.file_path, 'w', encoding='utf-8')
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.file_handle:
            self.file_handle.close()

    def write_record(self, record: TemplateRecord) -> None:
        """Write a single template record to the JSONL file."""
        if not self.file_handle:
            raise ValueError("JSONLWriter not opened")

        json.dump(record.to_dict(), self.file_handle, ensure_ascii=False)
        self.file_handle.write('\n')

    def write_records(self, records: Iterable[TemplateRecord]) -> None:
        for record in records:
            self.write_record(record)


class JSONLReader:
    """
    Reader for JSONL (JSON Lines) format.

    Lines that are not valid template records are skipped with a warning.
    """

    def __init__(self, file_path: str):
        self.file_path = Path(file_path)

    def read_records(self) -> List[TemplateRecord]:
        return list(self)

    def __iter__(self) -> Iterator[TemplateRecord]:
        if not self.file_path.exists():
            return

        with open(self.file_path, 'r', encoding='utf-8') as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue

                try:
                    yield TemplateRecord.from_dict(json.loads(line))
                except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
                    get_logger().warning("Skipping invalid template at line %d: %s", line_num, e)


class TemplateRepository:
    """
    Persisted annotated templates in a JSONL file.

    A missing file is an empty repository. Writes go to a temporary file
    that replaces the old one only once complete, so a failed run leaves
    the previous state in place.
    """

    def __init__(self, file_path: str):
        self.file_path = Path(file_path)

    def load(self, registry: PatternRegistry) -> List[AnnotatedTemplate]:
        """
        Raises:
            StoreIOFailure: if the file exists but cannot be read
        """
        try:
            records = JSONLReader(str(self.file_path)).read_records()
        except (OSError, UnicodeDecodeError) as e:
            raise StoreIOFailure(self.file_path, e) from e
        return [AnnotatedTemplate.from_record(record, registry) for record in records]

    def persist(self, templates: Iterable[AnnotatedTemplate]) -> None:
        """
        Raises:
            StoreIOFailure: if the file cannot be written
        """
        tmp_path = self.file_path.with_name(self.file_path.name + ".tmp")
        try:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
            with JSONLWriter(str(tmp_path)) as writer:
                writer.write_records(t.to_record() for t in
                                     sorted(templates, key=lambda t: t.fingerprint))
            tmp_path.replace(self.file_path)
        except OSError as e:
            raise StoreIOFailure(self.file_path, e) from e

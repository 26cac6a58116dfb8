"""
Fingerprint-keyed store of annotated templates.

Event ids are only stable within one run of the upstream parser, so
templates are identified by a hash of their text. The store keeps the
annotated templates, both loaded from earlier runs and created in this one,
plus the index from the current run's event ids to fingerprints.
"""

import hashlib
import threading
from collections import defaultdict
from typing import Dict, Iterable, List, Optional

from .annotator import TemplateAnnotator
from .log_utils import get_logger
from .models import AnnotatedTemplate, LogRecord, TemplateDefinition
from .patterns import PatternRegistry


def fingerprint(template_text: str) -> str:
    """SHA-256 hex digest of the template text."""
    return hashlib.sha256(template_text.encode("utf-8")).hexdigest()


class TemplateStore:
    """
    Annotated templates plus the event-id index of the current run.

    Lifecycle is ``load`` -> ``resolve`` for every definition -> ``persist``.
    ``resolve`` is safe to call from several threads: check-and-insert is
    serialized per fingerprint so no template text is annotated twice.
    """

    def __init__(self, registry: Optional[PatternRegistry] = None,
                 annotator: Optional[TemplateAnnotator] = None):
        self.annotator = annotator or TemplateAnnotator(registry)
        self.registry = self.annotator.registry
        self.templates: Dict[str, AnnotatedTemplate] = {}
        self.index: Dict[str, str] = {}

        self.created = 0
        self.reused = 0

        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = defaultdict(threading.Lock)

    def load(self, templates: Iterable[AnnotatedTemplate]) -> int:
        """Add previously persisted templates; returns how many were new."""
        count = 0
        with self._guard:
            for template in templates:
                if template.fingerprint not in self.templates:
                    self.templates[template.fingerprint] = template
                    count += 1
        get_logger().info("Loaded %d persisted templates", count)
        return count

    def _lock_for(self, key: str) -> threading.Lock:
        with self._guard:
            return self._locks[key]

    def resolve(self, definition: TemplateDefinition,
                exemplar: Optional[LogRecord] = None) -> str:
        """
        Map ``definition`` to its annotated template, annotating if needed.

        A known fingerprint is reused as is; the annotator only runs for
        new template texts, or to replace a template that was annotated
        without an exemplar once an exemplar is available.

        Returns:
            The fingerprint now indexed under ``definition.template_id``
        """
        key = fingerprint(definition.template_text)

        with self._lock_for(key):
            existing = self.templates.get(key)
            if existing is not None and (existing.has_exemplar or exemplar is None):
                with self._guard:
                    self.reused += 1
                get_logger().debug("Template %s already annotated as %s",
                                   definition.template_id, key[:12])
            else:
                type_vector = self.annotator.annotate(definition, exemplar)
                self.templates[key] = AnnotatedTemplate(
                    fingerprint=key,
                    template_text=definition.template_text,
                    type_vector=type_vector,
                    has_exemplar=exemplar is not None,
                )
                with self._guard:
                    self.created += 1

            self.index[definition.template_id] = key

        return key

    def lookup(self, template_id: str) -> Optional[AnnotatedTemplate]:
        """Annotated template for an event id of the current run."""
        key = self.index.get(template_id)
        if key is None:
            return None
        return self.templates.get(key)

    def persistable(self) -> List[AnnotatedTemplate]:
        """Templates worth keeping across runs (those backed by an exemplar)."""
        return [t for t in self.templates.values() if t.has_exemplar]

    def persist(self, repository) -> int:
        """
        Write persistable templates through ``repository``.

        Raises:
            StoreIOFailure: propagated from the repository
        """
        templates = self.persistable()
        repository.persist(templates)
        get_logger().info("Persisted %d templates", len(templates))
        return len(templates)

    def __len__(self) -> int:
        return len(self.templates)

    def __contains__(self, key: str) -> bool:
        return key in self.templates

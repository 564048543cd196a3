"""
Pattern Library Module.

Holds the active set of field patterns and vendor templates as an
immutable, versioned PatternSnapshot. Readers take the current snapshot
reference without locking and use it for the whole of one document, so
an update published mid-document is never half-seen. Writers build a
complete replacement snapshot under a lock and swap the reference.

Pattern sets are stored as YAML (see config/patterns.yaml):

    patterns:
      - id: total_due
        field_name: total_amount
        category: amount
        regex: '(?:total|amount)\\s+due\\s*:?\\s*\\$?([0-9][0-9,.]*)'
        priority: 10
        confidence_weight: 1.0
    templates:
      - template_id: acme
        vendor_name: Acme Corporation
        patterns: [...]

Usage:
    from invoice_engine.patterns import PatternLibrary

    library = PatternLibrary.default()
    snapshot = library.snapshot
    for pattern in snapshot.for_field("total_amount"):
        print(pattern.id, pattern.priority)

Author: ML Engineering Team
"""

import hashlib
import json
import threading
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import yaml

from config import DEFAULT_PATTERNS, get_config
from invoice_engine.utils.logger import get_logger
from invoice_engine.utils.exceptions import (
    InvalidPatternError,
    PatternLibraryError,
    PatternSetLoadError,
)
from .models import FieldPattern, PatternCategory, VendorTemplate

# Initialize module logger
logger = get_logger(__name__)


def _ordered(patterns: Iterable[FieldPattern]) -> Tuple[FieldPattern, ...]:
    # sorted() is stable, so equal priorities keep registration order
    return tuple(sorted(patterns, key=lambda p: p.priority))


@dataclass(frozen=True)
class PatternSnapshot:
    """
    Immutable view of the pattern library at one version.

    Attributes:
        version: Version label, unique per publication
        patterns: Generic patterns in registration order
        templates: Vendor templates in registration order
        created_at: Publication timestamp
    """
    version: str
    patterns: Tuple[FieldPattern, ...]
    templates: Tuple[VendorTemplate, ...] = ()
    created_at: datetime = field(default_factory=datetime.now)
    _by_field: Mapping[str, Tuple[FieldPattern, ...]] = field(
        init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, 'patterns', tuple(self.patterns))
        object.__setattr__(self, 'templates', tuple(self.templates))

        _ensure_unique((p.id for p in self.patterns), "pattern")
        _ensure_unique((t.template_id for t in self.templates), "template")

        grouped: Dict[str, List[FieldPattern]] = {}
        for pattern in self.patterns:
            grouped.setdefault(pattern.field_name, []).append(pattern)

        object.__setattr__(
            self, '_by_field',
            MappingProxyType({name: _ordered(group) for name, group in grouped.items()})
        )

    def for_field(self, field_name: str, include_inactive: bool = False) -> Tuple[FieldPattern, ...]:
        """
        Patterns for one field, ordered by priority then registration.

        Args:
            field_name: Target field.
            include_inactive: Also return deactivated patterns.
        """
        patterns = self._by_field.get(field_name, ())
        if include_inactive:
            return patterns
        return tuple(p for p in patterns if p.is_active)

    def by_category(self, category: PatternCategory) -> Tuple[FieldPattern, ...]:
        return tuple(p for p in self.patterns if p.category == category)

    def field_names(self) -> Tuple[str, ...]:
        """Fields with at least one pattern, in first-registration order."""
        return tuple(self._by_field)

    def get(self, pattern_id: str) -> Optional[FieldPattern]:
        for pattern in self.patterns:
            if pattern.id == pattern_id:
                return pattern
        return None

    def template(self, template_id: str) -> Optional[VendorTemplate]:
        for template in self.templates:
            if template.template_id == template_id:
                return template
        return None

    @property
    def active_templates(self) -> Tuple[VendorTemplate, ...]:
        return tuple(t for t in self.templates if t.is_active)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'version': self.version,
            'created_at': self.created_at.isoformat(),
            'patterns': [p.to_dict() for p in self.patterns],
            'templates': [t.to_dict() for t in self.templates],
        }


def _ensure_unique(ids: Iterable[str], kind: str) -> None:
    seen = set()
    for item in ids:
        if item in seen:
            raise InvalidPatternError(item, f"duplicate {kind} id")
        seen.add(item)


def parse_pattern_set(data: Mapping[str, Any]) -> Tuple[List[FieldPattern], List[VendorTemplate]]:
    """
    Parse a pattern-set mapping (as loaded from YAML).

    Raises:
        InvalidPatternError: If any entry is invalid; nothing is returned
            for partially valid input.
    """
    if not isinstance(data, Mapping):
        raise PatternSetLoadError("<mapping>", "pattern set must be a mapping")

    patterns = [
        FieldPattern.from_dict(entry, default_id=f"{entry.get('field_name')}.{index}")
        for index, entry in enumerate(data.get('patterns') or [])
    ]
    templates = [VendorTemplate.from_dict(entry) for entry in data.get('templates') or []]
    return patterns, templates


class PatternLibrary:
    """
    Versioned, thread-safe store of field patterns and vendor templates.

    Every mutation builds a new PatternSnapshot and replaces the current
    one in a single reference assignment; snapshots already handed out
    are unaffected.

    Attributes:
        snapshot: The currently published PatternSnapshot

    Example:
        >>> library = PatternLibrary.default()
        >>> before = library.snapshot
        >>> library.deactivate_pattern("total_plain")
        >>> before.get("total_plain").is_active
        True
    """

    def __init__(
        self,
        patterns: Sequence[FieldPattern] = (),
        templates: Sequence[VendorTemplate] = ()
    ) -> None:
        self._write_lock = threading.Lock()
        self._counter = 0
        self._history: List[Tuple[str, datetime]] = []
        self._snapshot = self._build(patterns, templates)

    # ========================================================================
    # Construction
    # ========================================================================

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> 'PatternLibrary':
        patterns, templates = parse_pattern_set(_read_yaml(path))
        library = cls(patterns, templates)
        logger.info(
            f"Loaded {len(patterns)} patterns and {len(templates)} templates from {path} "
            f"(version {library.snapshot.version})"
        )
        return library

    @classmethod
    def default(cls) -> 'PatternLibrary':
        """Library loaded from paths.patterns_file, or the bundled default set."""
        configured = get_config("paths.patterns_file")
        return cls.from_file(configured or DEFAULT_PATTERNS)

    # ========================================================================
    # Reads
    # ========================================================================

    @property
    def snapshot(self) -> PatternSnapshot:
        return self._snapshot

    @property
    def version(self) -> str:
        return self._snapshot.version

    def history(self) -> List[Tuple[str, datetime]]:
        """Published versions with their timestamps, oldest first."""
        return list(self._history)

    # ========================================================================
    # Writes
    # ========================================================================

    def publish(
        self,
        patterns: Sequence[FieldPattern],
        templates: Optional[Sequence[VendorTemplate]] = None
    ) -> PatternSnapshot:
        """
        Replace the whole pattern set.

        Args:
            patterns: New generic patterns.
            templates: New templates (None keeps the current ones).

        Returns:
            The newly published snapshot.
        """
        with self._write_lock:
            if templates is None:
                templates = self._snapshot.templates
            self._snapshot = self._build(patterns, templates)
            logger.info(f"Published pattern set {self._snapshot.version}")
            return self._snapshot

    def load_dict(self, data: Mapping[str, Any]) -> PatternSnapshot:
        patterns, templates = parse_pattern_set(data)
        return self.publish(patterns, templates)

    def load_file(self, path: Union[str, Path]) -> PatternSnapshot:
        return self.load_dict(_read_yaml(path))

    def upsert_pattern(self, pattern: FieldPattern) -> PatternSnapshot:
        """Add a pattern, or replace the one with the same id in place."""
        return self._modify(lambda patterns, templates: (
            _replace_or_append(patterns, pattern, key=lambda p: p.id),
            templates,
        ))

    def deactivate_pattern(self, pattern_id: str) -> PatternSnapshot:
        """
        Mark a pattern inactive.

        Raises:
            PatternLibraryError: If no pattern has that id.
        """
        def change(patterns, templates):
            if not any(p.id == pattern_id for p in patterns):
                raise PatternLibraryError(f"Unknown pattern: {pattern_id}")
            return (
                [p.replace(is_active=False) if p.id == pattern_id else p for p in patterns],
                templates,
            )

        return self._modify(change)

    def register_template(self, template: VendorTemplate) -> PatternSnapshot:
        """Add a template, or replace the one with the same id."""
        return self._modify(lambda patterns, templates: (
            patterns,
            _replace_or_append(templates, template, key=lambda t: t.template_id),
        ))

    def remove_template(self, template_id: str) -> PatternSnapshot:
        return self._modify(lambda patterns, templates: (
            patterns,
            [t for t in templates if t.template_id != template_id],
        ))

    def _modify(self, change) -> PatternSnapshot:
        with self._write_lock:
            current = self._snapshot
            patterns, templates = change(list(current.patterns), list(current.templates))
            self._snapshot = self._build(patterns, templates)
            logger.info(f"Pattern library updated: {current.version} -> {self._snapshot.version}")
            return self._snapshot

    def _build(
        self,
        patterns: Sequence[FieldPattern],
        templates: Sequence[VendorTemplate]
    ) -> PatternSnapshot:
        # Caller holds the write lock (or is __init__)
        self._counter += 1
        snapshot = PatternSnapshot(
            version=f"v{self._counter}-{_content_digest(patterns, templates)}",
            patterns=tuple(patterns),
            templates=tuple(templates),
        )
        self._history.append((snapshot.version, snapshot.created_at))
        return snapshot


def _replace_or_append(items: List[Any], item: Any, key) -> List[Any]:
    item_key = key(item)
    for index, existing in enumerate(items):
        if key(existing) == item_key:
            items[index] = item
            return items
    items.append(item)
    return items


def _content_digest(patterns: Sequence[FieldPattern], templates: Sequence[VendorTemplate]) -> str:
    payload = json.dumps(
        {
            'patterns': [p.to_dict() for p in patterns],
            'templates': [t.to_dict() for t in templates],
        },
        sort_keys=True,
    )
    return hashlib.sha1(payload.encode('utf-8')).hexdigest()[:8]


def _read_yaml(path: Union[str, Path]) -> Mapping[str, Any]:
    path = Path(path)
    if not path.exists():
        raise PatternSetLoadError(str(path), "file not found")
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise PatternSetLoadError(str(path), f"invalid YAML: {e}")
    if not isinstance(data, Mapping):
        raise PatternSetLoadError(str(path), "top level must be a mapping")
    return data

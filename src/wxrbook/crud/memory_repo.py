"""In-memory stores for embedding and tests"""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterable, Optional

from wxrbook.core.models import METADATA, PART
from wxrbook.crud.repo import ContentStore, TermStore


@dataclass
class MemoryRecord:
    id:         int
    type:       str
    title:      str
    content:    str
    parent:     Optional[int]
    status:     str
    menu_order: int = 0
    meta:       dict[str, list[str]] = field(default_factory=lambda: defaultdict(list))
    terms:      dict[str, list[str]] = field(default_factory=lambda: defaultdict(list))


@dataclass
class MemoryContentStore(ContentStore):
    records: dict[int, MemoryRecord] = field(default_factory=dict)

    def create_record(self, type: str, title: str, content: str, parent: Optional[int], status: str) -> int:
        record_id = len(self.records) + 1
        self.records[record_id] = MemoryRecord(record_id, type, title, content, parent, status)
        return record_id

    def of_type(self, type: str) -> list[MemoryRecord]:
        return [r for r in self.records.values() if r.type == type]

    def get_or_create_metadata_record(self) -> int:
        existing = self.of_type(METADATA)
        if existing:
            return existing[0].id
        return self.create_record(METADATA, "Book Info", "", None, "publish")

    def set_record_meta(self, record_id: int, key: str, value: str, multivalued: bool = False) -> None:
        values = self.records[record_id].meta[key]
        if multivalued:
            values.append(value)
        else:
            values[:] = [value]

    def clear_meta_by_prefix(self, record_id: int, prefix: str) -> None:
        meta = self.records[record_id].meta
        for key in [k for k in meta if k.startswith(prefix)]:
            del meta[key]

    def associate_terms(self, record_id: int, slugs: Iterable[str], taxonomy: str) -> None:
        current = self.records[record_id].terms[taxonomy]
        current.extend(s for s in slugs if s not in current)

    def reorder_record(self, record_id: int) -> None:
        record = self.records[record_id]
        siblings = [
            r.menu_order for r in self.records.values()
            if r.id != record_id and r.type == record.type and r.parent == record.parent
        ]
        record.menu_order = max(siblings, default=0) + 1

    def get_default_parent(self) -> Optional[int]:
        parts = sorted(self.of_type(PART), key=lambda r: (r.menu_order, r.id))
        return parts[0].id if parts else None


@dataclass
class MemoryTermStore(TermStore):
    terms: dict[tuple[str, str], dict] = field(default_factory=dict)     # (taxonomy, slug) -> term
    created: list[tuple[str, str]] = field(default_factory=list)          # (taxonomy, name) per create call

    def term_exists(self, name: str, taxonomy: str, slug: str = "") -> bool:
        return any(
            tax == taxonomy and (t["name"] == name or s in (name, slug))
            for (tax, s), t in self.terms.items()
        )

    def create_term(self, name: str, taxonomy: str, description: str = "", slug: str = "") -> None:
        key = (taxonomy, slug or name)
        if key in self.terms:
            return
        self.created.append((taxonomy, name))
        self.terms[key] = {"name": name, "description": description}

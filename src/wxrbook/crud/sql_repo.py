"""SQLModel-backed content and term stores"""

from __future__ import annotations
from typing import Iterable, Optional

from sqlalchemy import func
from sqlmodel import Session, select

from wxrbook.core.models import METADATA, PART
from wxrbook.crud.models import Record, RecordMeta, RecordTerm, Term
from wxrbook.crud.repo import ContentStore, TermStore


METADATA_TITLE = "Book Info"


class SQLContentStore(ContentStore):
    """Writes records through one session; flushes but leaves commit to the caller."""

    def __init__(self, session: Session):
        self.session = session

    def create_record(self, type: str, title: str, content: str, parent: Optional[int], status: str) -> int:
        record = Record(type=type, title=title, content=content, parent_id=parent, status=status)
        self.session.add(record)
        self.session.flush()
        return record.id

    def get_metadata_record(self) -> Record | None:
        return self.session.exec(
            select(Record).where(Record.type == METADATA).order_by(Record.id)
        ).first()

    def get_or_create_metadata_record(self) -> int:
        record = self.get_metadata_record()
        if record is None:
            return self.create_record(METADATA, METADATA_TITLE, "", None, "publish")
        return record.id

    def get_meta(self, record_id: int, key: str) -> list[str]:
        rows = self.session.exec(
            select(RecordMeta).where(RecordMeta.record_id == record_id, RecordMeta.key == key)
            .order_by(RecordMeta.id)
        ).all()
        return [r.value for r in rows]

    def set_record_meta(self, record_id: int, key: str, value: str, multivalued: bool = False) -> None:
        if not multivalued:
            existing = self.session.exec(
                select(RecordMeta).where(RecordMeta.record_id == record_id, RecordMeta.key == key)
                .order_by(RecordMeta.id)
            ).all()
            if existing:
                existing[0].value = value
                self.session.add(existing[0])
                for extra in existing[1:]:
                    self.session.delete(extra)
                self.session.flush()
                return
        self.session.add(RecordMeta(record_id=record_id, key=key, value=value))
        self.session.flush()

    def clear_meta_by_prefix(self, record_id: int, prefix: str) -> None:
        rows = self.session.exec(
            select(RecordMeta).where(RecordMeta.record_id == record_id, RecordMeta.key.startswith(prefix, autoescape=True))
        ).all()
        for row in rows:
            self.session.delete(row)
        self.session.flush()

    def associate_terms(self, record_id: int, slugs: Iterable[str], taxonomy: str) -> None:
        for slug in slugs:
            term = self.session.exec(
                select(Term).where(Term.taxonomy == taxonomy, Term.slug == slug)
            ).first()
            if term is None or self.session.get(RecordTerm, (record_id, term.id)):
                continue
            self.session.add(RecordTerm(record_id=record_id, term_id=term.id))
        self.session.flush()

    def reorder_record(self, record_id: int) -> None:
        record = self.session.get(Record, record_id)
        if record is None:
            return
        same_parent = (
            Record.parent_id.is_(None) if record.parent_id is None
            else Record.parent_id == record.parent_id
        )
        highest = self.session.exec(
            select(func.max(Record.menu_order)).where(
                Record.type == record.type, same_parent, Record.id != record.id,
            )
        ).one()
        record.menu_order = (highest or 0) + 1
        self.session.add(record)
        self.session.flush()

    def get_default_parent(self) -> Optional[int]:
        first = self.session.exec(
            select(Record).where(Record.type == PART).order_by(Record.menu_order, Record.id)
        ).first()
        return first.id if first else None


class SQLTermStore(TermStore):

    def __init__(self, session: Session):
        self.session = session

    def _by_slug(self, taxonomy: str, slug: str) -> Term | None:
        return self.session.exec(
            select(Term).where(Term.taxonomy == taxonomy, Term.slug == slug)
        ).first()

    def term_exists(self, name: str, taxonomy: str, slug: str = "") -> bool:
        found = self.session.exec(
            select(Term).where(Term.taxonomy == taxonomy, (Term.name == name) | Term.slug.in_([name, slug or name]))
        ).first()
        return found is not None

    def create_term(self, name: str, taxonomy: str, description: str = "", slug: str = "") -> None:
        # (taxonomy, slug) is unique; an existing row is reused
        if self._by_slug(taxonomy, slug or name) is not None:
            return
        self.session.add(Term(name=name, taxonomy=taxonomy, description=description, slug=slug or name))
        self.session.flush()

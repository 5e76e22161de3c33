"""Database table definitions for book records, record meta and terms"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import Column, DateTime, String, Text, UniqueConstraint
from sqlmodel import Field, Relationship, SQLModel


class RecordTerm(SQLModel, table=True):
    """Many-to-many relationship between records and taxonomy terms"""
    __tablename__ = "record_terms"
    record_id: int = Field(foreign_key="records.id", primary_key=True)
    term_id:   int = Field(foreign_key="terms.id", primary_key=True)


class Record(SQLModel, table=True):
    """A book content record: front matter, part, chapter, back matter, metadata or custom type"""
    __tablename__ = "records"
    id: Optional[int] = Field(default=None, primary_key=True)
    type: str = Field(..., sa_column=Column(String(32), nullable=False, index=True))
    title: str = Field(default="", sa_column=Column(Text, nullable=False))
    content: str = Field(default="", sa_column=Column(Text, nullable=False))
    status: str = Field(default="draft", sa_column=Column(String(20), nullable=False))
    parent_id: Optional[int] = Field(default=None, foreign_key="records.id", index=True)
    menu_order: int = Field(default=0, nullable=False, description="Position among siblings of the same type and parent")
    created_at: datetime = Field(default_factory=datetime.now, sa_column=Column(DateTime(timezone=False), nullable=False))
    meta: List["RecordMeta"] = Relationship(back_populates="record")
    terms: List["Term"] = Relationship(back_populates="records", link_model=RecordTerm)


class RecordMeta(SQLModel, table=True):
    """Key-value pairs attached to a record; a key may repeat for multi-valued fields"""
    __tablename__ = "record_meta"
    id: Optional[int] = Field(default=None, primary_key=True)
    record_id: int = Field(foreign_key="records.id", index=True, nullable=False)
    key: str = Field(..., sa_column=Column(String(255), nullable=False, index=True))
    value: str = Field(default="", sa_column=Column(Text, nullable=False))
    record: Optional[Record] = Relationship(back_populates="meta")


class Term(SQLModel, table=True):
    """A taxonomy term (e.g. a chapter-type); slug is unique within its taxonomy"""
    __tablename__ = "terms"
    __table_args__ = (UniqueConstraint("taxonomy", "slug", name="uq_term_taxonomy_slug"),)
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(..., sa_column=Column(String(200), nullable=False))
    taxonomy: str = Field(..., sa_column=Column(String(64), nullable=False, index=True))
    slug: str = Field(..., sa_column=Column(String(200), nullable=False))
    description: str = Field(default="", sa_column=Column(Text, nullable=False))
    records: List[Record] = Relationship(back_populates="terms", link_model=RecordTerm)

"""Collaborator interfaces the importer writes through"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Iterable, Optional


class ContentStore(ABC):
    @abstractmethod
    def create_record(self, type: str, title: str, content: str, parent: Optional[int], status: str) -> int:
        """Insert a record and return its id."""
        raise NotImplementedError

    @abstractmethod
    def get_or_create_metadata_record(self) -> int:
        """Return the id of the single book metadata record, creating it on first use."""
        raise NotImplementedError

    @abstractmethod
    def set_record_meta(self, record_id: int, key: str, value: str, multivalued: bool = False) -> None:
        """Add (multivalued) or replace (single-valued) a meta value."""
        raise NotImplementedError

    @abstractmethod
    def clear_meta_by_prefix(self, record_id: int, prefix: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def associate_terms(self, record_id: int, slugs: Iterable[str], taxonomy: str) -> None:
        """Append terms to a record; unknown slugs are ignored."""
        raise NotImplementedError

    @abstractmethod
    def reorder_record(self, record_id: int) -> None:
        """Post-insert consolidation: place the record after its existing siblings."""
        raise NotImplementedError

    @abstractmethod
    def get_default_parent(self) -> Optional[int]:
        """Parent for chapters imported before any part: the first existing part, if any."""
        raise NotImplementedError


class TermStore(ABC):
    @abstractmethod
    def term_exists(self, name: str, taxonomy: str, slug: str = "") -> bool:
        """True if a term in taxonomy has this name, or this name or slug as its slug."""
        raise NotImplementedError

    @abstractmethod
    def create_term(self, name: str, taxonomy: str, description: str = "", slug: str = "") -> None:
        """Create a term; a term already holding (taxonomy, slug) is kept as is."""
        raise NotImplementedError


class AssetStore(ABC):
    @abstractmethod
    def persist(self, temp_path: str, filename: str) -> str:
        """Copy a downloaded file into durable storage and return its public reference."""
        raise NotImplementedError

"""Memory bank store: documents, sections and append-only entries.

Each document renders to markdown-ish text: section titles in creation order,
each followed by its entries as ``- `` lines and a blank line. Documents and
sections are created lazily by ``append_entry`` or explicitly up front.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TypeVar

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from membank.bank.database import Database
from membank.bank.models import Document, Entry, Section, utcnow
from membank.errors import DuplicateName, StorageUnavailable

logger = logging.getLogger(__name__)

ENTRY_MARKER = "- "

T = TypeVar("T")


# ── Handles returned to callers ───────────────────────────────


@dataclass(frozen=True)
class DocumentHandle:
    id: int
    name: str
    created_at: datetime | None = None


@dataclass(frozen=True)
class SectionHandle:
    id: int
    document_id: int
    title: str
    created_at: datetime | None = None


@dataclass(frozen=True)
class EntryHandle:
    id: int
    section_id: int
    content: str
    created_at: datetime | None = None


@dataclass(frozen=True)
class Created:
    """ensure_document() inserted a new row."""

    document: DocumentHandle


@dataclass(frozen=True)
class AlreadyExists:
    """ensure_document() found the row already in place."""

    document: DocumentHandle


EnsureResult = Created | AlreadyExists


class MemoryBankStore:
    """Read/write access to the memory bank database."""

    def __init__(self, db_path: Path, echo: bool = False) -> None:
        self.db = Database(db_path, echo=echo)

    @property
    def db_path(self) -> Path:
        return self.db.db_path

    def exists(self) -> bool:
        """Whether the storage location is present, regardless of its rows."""
        return self.db.exists()

    def close(self) -> None:
        self.db.dispose()

    def __enter__(self) -> MemoryBankStore:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ── Error translation ─────────────────────────────────────

    @contextmanager
    def _storage_errors(self) -> Iterator[None]:
        try:
            yield
        except (SQLAlchemyError, OSError) as e:
            logger.error("Storage failure on %s: %s", self.db_path, e)
            raise StorageUnavailable(str(e)) from e

    def _readable(self) -> bool:
        """Prepare for a read. False means there is nothing to read yet."""
        if not self.exists():
            return False
        self.db.ensure_schema()
        return True

    # ── Row lookups and inserts (within a session) ────────────

    def _find_document(self, session: Session, name: str) -> DocumentHandle | None:
        row = session.execute(
            select(Document).where(Document.name == name)
        ).scalar_one_or_none()
        return _document_handle(row) if row else None

    def _insert_document(self, session: Session, name: str) -> DocumentHandle:
        row = Document(name=name)
        session.add(row)
        session.flush()
        return _document_handle(row)

    def _find_section(self, session: Session, document_id: int, title: str) -> SectionHandle | None:
        row = session.execute(
            select(Section).where(Section.document_id == document_id, Section.title == title)
        ).scalar_one_or_none()
        return _section_handle(row) if row else None

    def _insert_section(self, session: Session, document_id: int, title: str) -> SectionHandle:
        row = Section(document_id=document_id, title=title)
        session.add(row)
        session.flush()
        return _section_handle(row)

    def _get_or_create(
        self,
        lookup: Callable[[Session], T | None],
        create: Callable[[Session], T],
    ) -> tuple[T, bool]:
        """Look up; on a miss insert; if the insert loses a race, look up again.

        A unique-key violation is recognised by the row being present on the
        re-lookup, so no backend-specific error codes are inspected.
        """
        with self.db.session_scope() as session:
            found = lookup(session)
        if found is not None:
            return found, False

        try:
            with self.db.session_scope() as session:
                return create(session), True
        except IntegrityError:
            with self.db.session_scope() as session:
                found = lookup(session)
            if found is None:
                raise
            logger.debug("Lost create race, reusing existing row: %s", found)
            return found, False

    # ── Documents ─────────────────────────────────────────────

    def create_document(self, name: str) -> DocumentHandle:
        """Insert a new document. Raises DuplicateName if the name is taken."""
        with self._storage_errors():
            self.db.ensure_schema()
            try:
                with self.db.session_scope() as session:
                    handle = self._insert_document(session, name)
            except IntegrityError:
                with self.db.session_scope() as session:
                    existing = self._find_document(session, name)
                if existing is None:
                    raise
                raise DuplicateName(name) from None
        logger.info("Created document: %s (id=%d)", name, handle.id)
        return handle

    def ensure_document(self, name: str) -> EnsureResult:
        """Create the document unless it exists. Never raises DuplicateName."""
        with self._storage_errors():
            self.db.ensure_schema()
            handle, created = self._get_or_create(
                lambda s: self._find_document(s, name),
                lambda s: self._insert_document(s, name),
            )
        if created:
            logger.info("Created document: %s (id=%d)", name, handle.id)
            return Created(handle)
        return AlreadyExists(handle)

    def get_document(self, name: str) -> DocumentHandle | None:
        with self._storage_errors():
            if not self._readable():
                return None
            with self.db.session_scope() as session:
                return self._find_document(session, name)

    def list_documents(self) -> list[str]:
        """All document names, ascending."""
        with self._storage_errors():
            if not self._readable():
                return []
            with self.db.session_scope() as session:
                return list(session.execute(select(Document.name).order_by(Document.name)).scalars())

    # ── Sections & entries ────────────────────────────────────

    def append_entry(self, document_name: str, section_title: str, content: str) -> EntryHandle:
        """Append one entry, creating the document and section on first use."""
        with self._storage_errors():
            self.db.ensure_schema()
            document, created = self._get_or_create(
                lambda s: self._find_document(s, document_name),
                lambda s: self._insert_document(s, document_name),
            )
            if created:
                logger.info("Created document: %s (id=%d)", document_name, document.id)

            section, created = self._get_or_create(
                lambda s: self._find_section(s, document.id, section_title),
                lambda s: self._insert_section(s, document.id, section_title),
            )
            if created:
                logger.debug("Created section %r in %s", section_title, document_name)

            with self.db.session_scope() as session:
                row = Entry(section_id=section.id, content=content)
                session.add(row)
                now = utcnow()
                session.execute(update(Section).where(Section.id == section.id).values(updated_at=now))
                session.execute(update(Document).where(Document.id == document.id).values(updated_at=now))
                session.flush()
                entry = _entry_handle(row)

        logger.debug("Appended entry %d to %s / %s", entry.id, document_name, section_title)
        return entry

    def list_sections(self, document_name: str) -> list[SectionHandle] | None:
        """Sections of a document in creation order. None if the document is missing."""
        with self._storage_errors():
            if not self._readable():
                return None
            with self.db.session_scope() as session:
                document = self._find_document(session, document_name)
                if document is None:
                    return None
                rows = session.execute(
                    select(Section)
                    .where(Section.document_id == document.id)
                    .order_by(Section.id)
                ).scalars()
                return [_section_handle(row) for row in rows]

    def list_entries(self, section_id: int) -> list[EntryHandle]:
        """Entries of one section in creation order."""
        with self._storage_errors():
            if not self._readable():
                return []
            with self.db.session_scope() as session:
                rows = session.execute(
                    select(Entry)
                    .where(Entry.section_id == section_id)
                    .order_by(Entry.id)
                ).scalars()
                return [_entry_handle(row) for row in rows]

    def get_document_content(self, document_name: str) -> str | None:
        """Render a document. None if it does not exist, "" if it has no sections."""
        sections = self.list_sections(document_name)
        if sections is None:
            return None

        parts: list[str] = []
        for section in sections:
            parts.append(f"{section.title}\n")
            for entry in self.list_entries(section.id):
                parts.append(f"{ENTRY_MARKER}{entry.content}\n")
            parts.append("\n")
        return "".join(parts)


def _document_handle(row: Document) -> DocumentHandle:
    return DocumentHandle(id=row.id, name=row.name, created_at=row.created_at)


def _section_handle(row: Section) -> SectionHandle:
    return SectionHandle(
        id=row.id, document_id=row.document_id, title=row.title, created_at=row.created_at
    )


def _entry_handle(row: Entry) -> EntryHandle:
    return EntryHandle(
        id=row.id, section_id=row.section_id, content=row.content, created_at=row.created_at
    )

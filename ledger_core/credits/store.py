# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Numisma Ledger.
#
# Numisma Ledger is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.


"""Persistence contracts consumed by the ledger services."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Tuple, TypeVar, runtime_checkable

from ledger_core.credits.entries import LedgerEntry

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class DocRef:
    """Path of a document: alternating collection / document id segments."""
    segments: Tuple[str, ...]

    def __post_init__(self) -> None:
        if len(self.segments) < 2 or len(self.segments) % 2:
            raise ValueError(f"Invalid document path: {self.segments!r}")
        if any(not s or "/" in s for s in self.segments):
            raise ValueError(f"Invalid document path segment in {self.segments!r}")

    @classmethod
    def of(cls, *segments: str) -> "DocRef":
        return cls(tuple(segments))

    @property
    def id(self) -> str:
        return self.segments[-1]

    @property
    def path(self) -> str:
        return "/".join(self.segments)

    def child(self, collection: str, doc_id: str) -> "DocRef":
        return DocRef(self.segments + (collection, doc_id))


@runtime_checkable
class Transaction(Protocol):
    """
    One optimistic read-modify-write unit.

    All reads must happen before the first write. Writes become visible
    only when the enclosing `run_transaction` call commits. `update` and
    `create` stamp `updatedAt` (and `createdAt` for `create`).
    """

    def get(self, ref: DocRef) -> Optional[Dict[str, Any]]:
        ...

    def create(self, ref: DocRef, data: Mapping[str, Any]) -> None:
        ...

    def update(self, ref: DocRef, data: Mapping[str, Any]) -> None:
        ...


@runtime_checkable
class LedgerStore(Protocol):
    def get_document(self, ref: DocRef) -> Optional[Dict[str, Any]]:
        ...

    def run_transaction(self, fn: Callable[[Transaction], T]) -> T:
        """
        Run `fn` against the latest committed state and commit its writes.
        Conflicting commits re-run `fn`; exhausting the attempts raises
        TransactionAbortedError. Exceptions raised by `fn` abort without writes.
        """
        ...

    def append_entry(self, entry: LedgerEntry) -> str:
        """Append to the user's ledger collection; returns the new entry id."""
        ...

    def list_entries(self, user_id: str, *, limit: int) -> List[LedgerEntry]:
        """Newest-first page of the user's ledger."""
        ...

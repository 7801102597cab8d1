"""
In-memory repository adapters - Implement the domain repository protocols.

Records live in process-local dictionaries. Every read-modify-write runs
under a lock dedicated to its key, so concurrent requests against the same
email (or email + purpose) are serialized while unrelated keys proceed in
parallel.

Records are copied on the way in and out: callers never hold a reference
to stored state, and a mutator's changes only land when modify() writes
them back.
"""

import dataclasses
import threading
from collections.abc import Callable, Hashable
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, TypeVar

from src.domain.ports import Credential, OneTimeCode, OtpPurpose

T = TypeVar("T")


class _KeyedLocks:
    """
    Lock per key, alive only while some thread holds or waits on it.

    Each entry carries a count of its current users. The last user to
    release removes the entry, so the table is bounded by concurrency
    rather than by the number of keys ever seen.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[Hashable, tuple[threading.Lock, int]] = {}

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._guard:
            lock, users = self._locks.get(key, (None, 0))
            if lock is None:
                lock = threading.Lock()
            self._locks[key] = (lock, users + 1)
        try:
            with lock:
                yield
        finally:
            with self._guard:
                _, users = self._locks[key]
                if users == 1:
                    del self._locks[key]
                else:
                    self._locks[key] = (lock, users - 1)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


class InMemoryCredentialRepository:
    """
    Implements CredentialRepository protocol with per-email locking.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self) -> None:
        self._by_email: dict[str, Credential] = {}
        self._locks = _KeyedLocks()

    def find_by_email(self, email: str) -> Credential | None:
        credential = self._by_email.get(email)
        return dataclasses.replace(credential) if credential is not None else None

    def find_by_id(self, credential_id: str) -> Credential | None:
        for credential in list(self._by_email.values()):
            if credential.id == credential_id:
                return dataclasses.replace(credential)
        return None

    def add(self, credential: Credential) -> bool:
        with self._locks.hold(credential.email):
            if credential.email in self._by_email:
                return False
            self._by_email[credential.email] = dataclasses.replace(credential)
            return True

    def modify(
        self,
        email: str,
        mutator: Callable[[Credential | None], tuple[Credential | None, T]],
    ) -> T:
        with self._locks.hold(email):
            current = self._by_email.get(email)
            snapshot = dataclasses.replace(current) if current is not None else None
            record, result = mutator(snapshot)
            if record is not None:
                self._by_email[email] = dataclasses.replace(record)
            return result


class InMemoryOtpRepository:
    """
    Implements OtpRepository protocol with per-(email, purpose) locking.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self) -> None:
        self._codes: dict[tuple[str, OtpPurpose], OneTimeCode] = {}
        self._locks = _KeyedLocks()

    def replace(self, code: OneTimeCode) -> None:
        key = (code.email, code.purpose)
        with self._locks.hold(key):
            self._codes[key] = dataclasses.replace(code)

    def modify(
        self,
        email: str,
        purpose: OtpPurpose,
        mutator: Callable[[OneTimeCode | None], tuple[OneTimeCode | None, T]],
    ) -> T:
        key = (email, purpose)
        with self._locks.hold(key):
            current = self._codes.get(key)
            snapshot = dataclasses.replace(current) if current is not None else None
            record, result = mutator(snapshot)
            if record is None:
                self._codes.pop(key, None)
            else:
                self._codes[key] = dataclasses.replace(record)
            return result

    def purge_expired(self, now: datetime) -> int:
        removed = 0
        for key in list(self._codes):
            with self._locks.hold(key):
                code = self._codes.get(key)
                if code is not None and code.expires_at < now:
                    del self._codes[key]
                    removed += 1
        return removed

    def get(self, email: str, purpose: OtpPurpose) -> OneTimeCode | None:
        """Snapshot of the live code for a key (inspection helper)."""
        code = self._codes.get((email, purpose))
        return dataclasses.replace(code) if code is not None else None

    def __len__(self) -> int:
        return len(self._codes)

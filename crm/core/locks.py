"""
In-process mutual exclusion for membership changes.

Sync endpoints run in the threadpool, so plain threading locks are enough
inside one process. Across processes the (group_id, category_key) unique
constraint is the backstop.

Lock order is always: member lock, then group locks in ascending id.
Entries are never dropped, so every caller for an id shares one lock object
even across deletes.
"""

import threading
from contextlib import contextmanager, ExitStack
from typing import Iterable, Iterator

_registry_lock = threading.Lock()
_group_locks: dict[int, threading.Lock] = {}
_member_locks: dict[int, threading.Lock] = {}


def _lock_for(registry: dict[int, threading.Lock], key: int) -> threading.Lock:
    with _registry_lock:
        lock = registry.get(key)
        if lock is None:
            lock = threading.Lock()
            registry[key] = lock
        return lock


@contextmanager
def group_lock(group_id: int) -> Iterator[None]:
    with _lock_for(_group_locks, group_id):
        yield


@contextmanager
def group_locks(group_ids: Iterable[int]) -> Iterator[None]:
    # ascending order so two multi-group callers can't deadlock
    with ExitStack() as stack:
        for group_id in sorted(set(group_ids)):
            stack.enter_context(_lock_for(_group_locks, group_id))
        yield


@contextmanager
def member_lock(member_id: int) -> Iterator[None]:
    """Held while a member's set of groups or category can change."""
    with _lock_for(_member_locks, member_id):
        yield

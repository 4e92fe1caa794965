"""Optimistic mutations: speculative cache patches reconciled with the server.

Lifecycle of one user action:

1. ``MutationExecutor.execute`` runs synchronously: it cancels in-flight
   fetches for the affected keys, snapshots them, applies the speculative
   patch and registers a ``PendingMutation``.
2. Exactly one request is scheduled on the running loop.
3. When it settles, ``reconcile`` (a pure reducer) turns the outcome into new
   cache values: server data on ``Committed``, the snapshot on ``RolledBack``.
   The executor writes them, invalidates the affected keys and emits the
   fixed toast for the mutation.

Only the most recent pending mutation on a key owns its snapshot. Commits are
applied in completion order, so an older mutation finishing last wins.
"""

from __future__ import annotations

import asyncio
import copy
import itertools
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Sequence, Tuple, Union

from dashboard.data import patching
from dashboard.data.cache_store import CacheStore, QueryKey
from dashboard.data.queries import QueryClient
from dashboard.errors import failure_message
from dashboard.notify import Notifier

logger = logging.getLogger(__name__)


class PatchPolicy(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    REPLACE = "replace"
    NONE = "none"


class MutationStatus(str, Enum):
    PENDING = "pending"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()

KeysOrBuilder = Union[Sequence[QueryKey], Callable[[Any], Sequence[QueryKey]]]


@dataclass(frozen=True)
class MutationSpec:
    """Declarative description of one mutation type.

    ``speculative`` builds the optimistic value: for creates it receives
    ``(variables, temporary_id)`` and returns the new record; for replaces it
    receives ``(variables, current_detail_value)`` and returns the new detail.
    ``changes`` returns the field updates merged into the record matching
    ``target_id``, or into every listed record when ``target_id`` is unset.
    """

    name: str
    request: Callable[[Any, Any], Awaitable[Any]]
    failure_message: str
    success_message: Optional[str] = None
    policy: PatchPolicy = PatchPolicy.NONE
    list_prefixes: Tuple[QueryKey, ...] = ()
    detail_key: Optional[Callable[[Any], Optional[QueryKey]]] = None
    target_id: Optional[Callable[[Any], Any]] = None
    speculative: Optional[Callable[[Any, Any], Any]] = None
    changes: Optional[Callable[[Any], Dict[str, Any]]] = None
    invalidates: KeysOrBuilder = ()
    removes: KeysOrBuilder = ()


def _resolve_keys(value: KeysOrBuilder, variables: Any) -> Tuple[QueryKey, ...]:
    if callable(value):
        value = value(variables)
    return tuple(value or ())


@dataclass(frozen=True)
class SnapshotEntry:
    key: QueryKey
    present: bool
    data: Any = None


@dataclass(frozen=True)
class Snapshot:
    entries: Tuple[SnapshotEntry, ...] = ()

    @classmethod
    def capture(cls, store: CacheStore, keys: Sequence[QueryKey]) -> "Snapshot":
        entries = []
        for key in keys:
            entry = store.read(key)
            if entry is None:
                entries.append(SnapshotEntry(key=key, present=False))
            else:
                entries.append(SnapshotEntry(key=key, present=True, data=copy.deepcopy(entry.data)))
        return cls(tuple(entries))

    def keys(self) -> Tuple[QueryKey, ...]:
        return tuple(entry.key for entry in self.entries)

    def get(self, key: QueryKey) -> Optional[SnapshotEntry]:
        for entry in self.entries:
            if entry.key == key:
                return entry
        return None


@dataclass
class PendingMutation:
    mutation_id: str
    name: str
    policy: PatchPolicy
    variables: Any
    snapshot: Snapshot
    list_keys: Tuple[QueryKey, ...] = ()
    detail_keys: Tuple[QueryKey, ...] = ()
    patched_keys: Tuple[QueryKey, ...] = ()
    speculative_id: Optional[str] = None
    target_id: Any = None
    owned_keys: set = field(default_factory=set)
    status: MutationStatus = MutationStatus.PENDING
    created_at: float = field(default_factory=time.time)

    @property
    def target_keys(self) -> Tuple[QueryKey, ...]:
        return self.list_keys + self.detail_keys


@dataclass(frozen=True)
class Committed:
    mutation_id: str
    resource: Any = None
    ok = True


@dataclass(frozen=True)
class RolledBack:
    mutation_id: str
    snapshot: Snapshot
    error: BaseException
    message: str
    ok = False


MutationOutcome = Union[Committed, RolledBack]


def reconcile(
    current: Mapping[QueryKey, Any],
    pending: PendingMutation,
    outcome: MutationOutcome,
    restorable: Optional[frozenset] = None,
) -> Dict[QueryKey, Any]:
    """Return the new cache value per key; ``MISSING`` means drop the entry.

    ``current`` holds the present cache data of the mutation's target keys
    (absent keys are simply left out). ``restorable`` limits which keys a
    rollback may restore; by default every snapshotted key.
    """
    updates: Dict[QueryKey, Any] = {}

    if isinstance(outcome, RolledBack):
        allowed = set(outcome.snapshot.keys()) if restorable is None else set(restorable)
        for entry in outcome.snapshot.entries:
            if entry.key not in allowed:
                continue
            updates[entry.key] = copy.deepcopy(entry.data) if entry.present else MISSING
        return updates

    resource = outcome.resource
    if resource is None:
        return updates

    if pending.policy is PatchPolicy.CREATE:
        for key in pending.patched_keys:
            if key in current:
                updates[key] = patching.commit_created(current[key], pending.speculative_id, resource)
    elif pending.policy is PatchPolicy.UPDATE:
        for key in pending.list_keys:
            if key in current and pending.target_id is not None:
                updates[key] = patching.replace_by_id(current[key], pending.target_id, resource)
        for key in pending.detail_keys:
            if key in current:
                updates[key] = resource
    elif pending.policy is PatchPolicy.REPLACE:
        for key in pending.detail_keys:
            updates[key] = resource
    return updates


class MutationHandle:
    def __init__(self, pending: PendingMutation, task: asyncio.Task):
        self.pending = pending
        self.task = task

    @property
    def mutation_id(self) -> str:
        return self.pending.mutation_id

    def done(self) -> bool:
        return self.task.done()

    def __await__(self):
        return self.task.__await__()


class MutationExecutor:
    def __init__(self, queries: QueryClient, api: Any, notifier: Notifier):
        self.queries = queries
        self.store = queries.store
        self.api = api
        self.notifier = notifier
        self._owners: Dict[QueryKey, str] = {}
        self._pending: Dict[str, PendingMutation] = {}
        self._sequence = itertools.count(1)

    def pending(self) -> list[PendingMutation]:
        return list(self._pending.values())

    def owner_of(self, key: QueryKey) -> Optional[str]:
        return self._owners.get(key)

    def execute(self, spec: MutationSpec, variables: Any) -> MutationHandle:
        loop = asyncio.get_running_loop()
        pending = self._prepare(spec, variables)
        task = loop.create_task(self._run(spec, pending))
        task.add_done_callback(lambda done: self._release_cancelled(done, pending))
        return MutationHandle(pending, task)

    async def mutate(self, spec: MutationSpec, variables: Any) -> MutationOutcome:
        return await self.execute(spec, variables)

    # ---- synchronous patch step ----

    def _prepare(self, spec: MutationSpec, variables: Any) -> PendingMutation:
        mutation_id = f"{spec.name}-{next(self._sequence)}"
        target_id = spec.target_id(variables) if spec.target_id else None
        detail_key = spec.detail_key(variables) if spec.detail_key else None

        for prefix in spec.list_prefixes:
            self.queries.cancel(prefix)
        if detail_key is not None:
            self.queries.cancel(detail_key)

        list_keys: list[QueryKey] = []
        for prefix in spec.list_prefixes:
            for key in self.store.keys(prefix):
                if key != detail_key and key not in list_keys:
                    list_keys.append(key)
        detail_keys: Tuple[QueryKey, ...] = ()
        if detail_key is not None and (spec.policy is PatchPolicy.REPLACE or detail_key in self.store):
            detail_keys = (detail_key,)
        if spec.policy in (PatchPolicy.NONE, PatchPolicy.REPLACE):
            list_keys = []

        target_keys = tuple(list_keys) + detail_keys
        snapshot = Snapshot.capture(self.store, target_keys)

        speculative_id = None
        patches: Dict[QueryKey, Any] = {}
        if spec.policy is PatchPolicy.CREATE:
            speculative_id = patching.new_temporary_id()
            record = spec.speculative(variables, speculative_id)
            for key in list_keys:
                patches[key] = patching.insert_head(self.store.peek(key), record)
        elif spec.policy is PatchPolicy.UPDATE:
            changes = spec.changes(variables) if spec.changes else {}
            for key in list_keys:
                if spec.target_id is None:
                    patches[key] = patching.merge_all(self.store.peek(key), changes)
                else:
                    patches[key] = patching.merge_by_id(self.store.peek(key), target_id, changes)
            for key in detail_keys:
                patches[key] = patching.merge(self.store.peek(key), changes)
        elif spec.policy is PatchPolicy.DELETE:
            for key in list_keys:
                patches[key] = patching.remove_by_id(self.store.peek(key), target_id)
        elif spec.policy is PatchPolicy.REPLACE:
            for key in detail_keys:
                patches[key] = spec.speculative(variables, self.store.peek(key))

        for key, value in patches.items():
            self.store.write(key, value)

        pending = PendingMutation(
            mutation_id=mutation_id,
            name=spec.name,
            policy=spec.policy,
            variables=variables,
            snapshot=snapshot,
            list_keys=tuple(list_keys),
            detail_keys=detail_keys,
            patched_keys=tuple(patches),
            speculative_id=speculative_id,
            target_id=target_id,
        )
        for key in target_keys:
            previous = self._owners.get(key)
            if previous is not None and previous in self._pending:
                self._pending[previous].owned_keys.discard(key)
            self._owners[key] = mutation_id
            pending.owned_keys.add(key)
        self._pending[mutation_id] = pending
        logger.debug("Mutation %s patched %s cache entries", mutation_id, len(patches))
        return pending

    # ---- network step ----

    async def _run(self, spec: MutationSpec, pending: PendingMutation) -> MutationOutcome:
        try:
            resource = await spec.request(self.api, pending.variables)
        except asyncio.CancelledError:
            logger.warning("Mutation %s cancelled before it settled", pending.mutation_id)
            self._release(pending)
            raise
        except Exception as exc:
            outcome: MutationOutcome = RolledBack(
                mutation_id=pending.mutation_id,
                snapshot=pending.snapshot,
                error=exc,
                message=failure_message(exc, spec.failure_message),
            )
        else:
            outcome = Committed(mutation_id=pending.mutation_id, resource=resource)
        self.settle(spec, pending, outcome)
        return outcome

    def _release(self, pending: PendingMutation) -> None:
        for key in pending.owned_keys:
            if self._owners.get(key) == pending.mutation_id:
                del self._owners[key]
        pending.owned_keys.clear()
        self._pending.pop(pending.mutation_id, None)

    def _release_cancelled(self, task: asyncio.Task, pending: PendingMutation) -> None:
        # cancelled before the request started, so _run never saw it
        if task.cancelled():
            self._release(pending)

    def settle(self, spec: MutationSpec, pending: PendingMutation, outcome: MutationOutcome) -> None:
        current = {}
        for key in pending.target_keys:
            entry = self.store.read(key)
            if entry is not None:
                current[key] = entry.data
        updates = reconcile(current, pending, outcome, restorable=frozenset(pending.owned_keys))
        for key, value in updates.items():
            if value is MISSING:
                self.store.remove(key)
            else:
                self.store.write(key, value)

        self._release(pending)

        for key in _resolve_keys(spec.removes, pending.variables):
            self.queries.remove(key)
        stale = list(spec.list_prefixes) + list(pending.detail_keys)
        stale.extend(_resolve_keys(spec.invalidates, pending.variables))
        for prefix in stale:
            self.queries.invalidate(prefix)

        if isinstance(outcome, Committed):
            pending.status = MutationStatus.COMMITTED
            logger.info("Mutation %s committed", pending.mutation_id)
            if spec.success_message:
                self.notifier.success(spec.success_message)
        else:
            pending.status = MutationStatus.ROLLED_BACK
            logger.warning("Mutation %s rolled back: %s", pending.mutation_id, outcome.error)
            self.notifier.error(outcome.message)

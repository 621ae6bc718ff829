"""
Persisted registry state.

Three tables and a counter live in one database:

    AssetStore          token id -> AssetRecord
    OwnershipStore      token id -> owner identity
    UnlockHistoryStore  (identity, token id) -> True
    IdAllocator         last_token_id

Stores perform no validation. Lookups with an id or identity that cannot
form a key find nothing. All writes go through a StateView, an
overlay that collects puts and deletes and flushes them as a single
atomic batch on commit. AssetRepository.transaction() wraps that in a
context manager so an operation either applies every write or none.
"""
import logging
from contextlib import contextmanager
from typing import Optional

from geostake.db import DB
from geostake.models import AssetRecord
from geostake.utils.encoding import (
    asset_key, owner_key, unlock_key, pack, unpack,
    is_valid_token_id, is_valid_identity,
    ASSET_PREFIX, LAST_TOKEN_ID_KEY,
)

logger = logging.getLogger(__name__)


class StateView:
    """Read-through overlay of pending writes on top of the database."""

    def __init__(self, db: DB):
        self.db = db
        self._puts: dict[bytes, bytes] = {}
        self._deletes: set[bytes] = set()

    def get(self, key: bytes) -> Optional[bytes]:
        if key in self._deletes:
            return None
        if key in self._puts:
            return self._puts[key]
        return self.db.get(key)

    def set(self, key: bytes, value: bytes):
        self._deletes.discard(key)
        self._puts[key] = value

    def delete(self, key: bytes):
        self._puts.pop(key, None)
        self._deletes.add(key)

    @property
    def has_changes(self) -> bool:
        return bool(self._puts or self._deletes)

    def commit(self):
        """Flush pending writes atomically."""
        if not self.has_changes:
            return
        self.db.apply(self._puts, self._deletes)
        logger.debug(f"Committed {len(self._puts)} puts, {len(self._deletes)} deletes")
        self.discard()

    def discard(self):
        self._puts.clear()
        self._deletes.clear()


class AssetStore:
    def __init__(self, state: StateView):
        self.state = state

    def get(self, token_id: int) -> Optional[AssetRecord]:
        """Returns None if no record exists for token_id."""
        if not is_valid_token_id(token_id):
            return None
        raw = self.state.get(asset_key(token_id))
        if raw is None:
            return None
        return AssetRecord(unpack(raw))

    def set(self, record: AssetRecord):
        self.state.set(asset_key(record.id), pack(record.to_dict()))

    def delete(self, token_id: int):
        self.state.delete(asset_key(token_id))


class OwnershipStore:
    def __init__(self, state: StateView):
        self.state = state

    def get(self, token_id: int) -> Optional[bytes]:
        if not is_valid_token_id(token_id):
            return None
        raw = self.state.get(owner_key(token_id))
        if raw is None:
            return None
        return unpack(raw)

    def set(self, token_id: int, owner: bytes):
        self.state.set(owner_key(token_id), pack(owner))

    def delete(self, token_id: int):
        self.state.delete(owner_key(token_id))


class UnlockHistoryStore:
    """Append-only audit markers. Entries outlive the token they refer to."""

    def __init__(self, state: StateView):
        self.state = state

    def get(self, identity: bytes, token_id: int) -> Optional[bool]:
        if not (is_valid_identity(identity) and is_valid_token_id(token_id)):
            return None
        raw = self.state.get(unlock_key(identity, token_id))
        if raw is None:
            return None
        return unpack(raw)

    def set(self, identity: bytes, token_id: int, value: bool = True):
        self.state.set(unlock_key(identity, token_id), pack(value))


class IdAllocator:
    """Sole source of token ids: 1, 2, 3, ... never reused."""

    def __init__(self, state: StateView):
        self.state = state

    def current(self) -> int:
        raw = self.state.get(LAST_TOKEN_ID_KEY)
        return unpack(raw) if raw is not None else 0

    def next_id(self) -> int:
        new_id = self.current() + 1
        self.state.set(LAST_TOKEN_ID_KEY, pack(new_id))
        return new_id


class RepositoryView:
    """The four stores bound to one StateView."""

    def __init__(self, state: StateView):
        self.state = state
        self.assets = AssetStore(state)
        self.owners = OwnershipStore(state)
        self.unlocks = UnlockHistoryStore(state)
        self.ids = IdAllocator(state)

    def create_asset(self, record: AssetRecord, owner: bytes):
        """Record and ownership entry are always written together."""
        self.assets.set(record)
        self.owners.set(record.id, owner)

    def destroy_asset(self, token_id: int):
        """Record and ownership entry are always removed together."""
        self.assets.delete(token_id)
        self.owners.delete(token_id)


class AssetRepository:
    def __init__(self, db: DB):
        self.db = db

    def reader(self) -> RepositoryView:
        """A view for queries. Writes made through it are never committed."""
        return RepositoryView(StateView(self.db))

    @contextmanager
    def transaction(self):
        """
        Yield a RepositoryView whose writes are committed on normal exit
        and discarded if the block raises.
        """
        view = RepositoryView(StateView(self.db))
        try:
            yield view
        except Exception:
            view.state.discard()
            raise
        view.state.commit()

    def live_token_count(self) -> int:
        return self.db.count_prefix(ASSET_PREFIX)

"""
Asset lifecycle: mint, unlock, transfer, restake and burn.

Every operation takes an ExecutionContext carrying the caller identity and
the current sequence number. Preconditions are checked before any write;
a failing check raises a RegistryError and the surrounding transaction is
discarded, so a failed operation never changes state.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from geostake.errors import (
    NotFound,
    NotTokenOwner,
    AlreadyUnlocked,
    LocationMismatch,
    NotEligibleForTransfer,
)
from geostake.geo import validate_coordinates, verify_proximity, PROXIMITY_TOLERANCE
from geostake.models import (
    AssetRecord,
    validate_name,
    validate_description,
    MAX_NAME_BYTES,
    MAX_DESCRIPTION_CHARS,
)
from geostake.state import AssetRepository, RepositoryView

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExecutionContext:
    """Who is calling, and at which sequence number (block height)."""
    caller: bytes
    sequence: int


class AssetLifecycle:
    def __init__(self, repository: AssetRepository,
                 tolerance: int = PROXIMITY_TOLERANCE,
                 max_name_bytes: int = MAX_NAME_BYTES,
                 max_description_chars: int = MAX_DESCRIPTION_CHARS):
        self.repository = repository
        self.tolerance = tolerance
        self.max_name_bytes = max_name_bytes
        self.max_description_chars = max_description_chars

    # ==========================================================================
    # OPERATIONS
    # ==========================================================================

    def mint(self, ctx: ExecutionContext, latitude: int, longitude: int,
             name: str, description: str) -> int:
        """Create a locked asset at the given location, owned by the caller."""
        validate_coordinates(latitude, longitude)
        validate_name(name, self.max_name_bytes)
        validate_description(description, self.max_description_chars)

        with self.repository.transaction() as repo:
            token_id = repo.ids.next_id()
            record = AssetRecord.new(token_id, latitude, longitude,
                                     name, description, ctx.sequence)
            repo.create_asset(record, ctx.caller)

        logger.info(f"Minted token {token_id} for {ctx.caller.hex()[:8]} at sequence {ctx.sequence}")
        return token_id

    def unlock(self, ctx: ExecutionContext, token_id: int,
               latitude: int, longitude: int) -> bool:
        """Prove presence near the staked location to make the asset transferable."""
        with self.repository.transaction() as repo:
            record, owner = self._load(repo, token_id)
            self._require_owner(ctx, owner, token_id)

            if not record.locked:
                raise AlreadyUnlocked(f"Token {token_id} is already unlocked")

            if not verify_proximity(record.latitude, record.longitude,
                                    latitude, longitude, self.tolerance):
                raise LocationMismatch(
                    f"Submitted location is not within tolerance of token {token_id}"
                )

            record.locked = False
            repo.assets.set(record)
            repo.unlocks.set(ctx.caller, token_id, True)

        logger.info(f"Token {token_id} unlocked by {ctx.caller.hex()[:8]}")
        return True

    def transfer(self, ctx: ExecutionContext, token_id: int,
                 sender: bytes, recipient: bytes) -> bool:
        """Reassign an unlocked asset. The lock flag is left as it is."""
        with self.repository.transaction() as repo:
            record = repo.assets.get(token_id)
            if record is None:
                raise NotFound(f"Token {token_id} not found")

            if ctx.caller != sender:
                raise NotTokenOwner(f"Caller is not the sender of token {token_id}")

            if record.locked:
                raise NotEligibleForTransfer(
                    f"Token {token_id} must be unlocked before transfer"
                )

            # the sender must actually hold the token for the reassignment to happen
            owner = repo.owners.get(token_id)
            if owner != sender:
                raise NotTokenOwner(f"Sender does not own token {token_id}")

            repo.owners.set(token_id, recipient)

        logger.info(f"Token {token_id} transferred {sender.hex()[:8]} -> {recipient.hex()[:8]}")
        return True

    def restake(self, ctx: ExecutionContext, token_id: int,
                latitude: int, longitude: int) -> bool:
        """Bind the asset to a new location. Always re-locks it."""
        with self.repository.transaction() as repo:
            record, owner = self._load(repo, token_id)
            self._require_owner(ctx, owner, token_id)
            validate_coordinates(latitude, longitude)

            record.latitude = latitude
            record.longitude = longitude
            record.locked = True
            record.stake_sequence = ctx.sequence
            repo.assets.set(record)

        logger.info(f"Token {token_id} restaked at sequence {ctx.sequence}")
        return True

    def burn(self, ctx: ExecutionContext, token_id: int) -> bool:
        """Destroy the asset. Unlock history for it is kept."""
        with self.repository.transaction() as repo:
            owner = repo.owners.get(token_id)
            if owner is None:
                raise NotFound(f"Token {token_id} not found")
            self._require_owner(ctx, owner, token_id)

            repo.destroy_asset(token_id)

        logger.info(f"Token {token_id} burned by {ctx.caller.hex()[:8]}")
        return True

    # ==========================================================================
    # QUERIES
    # ==========================================================================

    def get_location(self, token_id: int) -> Optional[AssetRecord]:
        return self.repository.reader().assets.get(token_id)

    def get_owner(self, token_id: int) -> Optional[bytes]:
        return self.repository.reader().owners.get(token_id)

    def is_unlocked(self, token_id: int) -> bool:
        record = self.repository.reader().assets.get(token_id)
        if record is None:
            raise NotFound(f"Token {token_id} not found")
        return not record.locked

    def get_last_token_id(self) -> int:
        return self.repository.reader().ids.current()

    def has_user_unlocked(self, identity: bytes, token_id: int) -> bool:
        return bool(self.repository.reader().unlocks.get(identity, token_id))

    def get_token_uri(self, token_id: int) -> Optional[str]:
        """The asset's name, standing in for token metadata."""
        record = self.repository.reader().assets.get(token_id)
        if record is None:
            raise NotFound(f"Token {token_id} not found")
        return record.name

    # ==========================================================================
    # HELPERS
    # ==========================================================================

    def _load(self, repo: RepositoryView, token_id: int) -> tuple[AssetRecord, bytes]:
        record = repo.assets.get(token_id)
        owner = repo.owners.get(token_id)
        if record is None or owner is None:
            raise NotFound(f"Token {token_id} not found")
        return record, owner

    def _require_owner(self, ctx: ExecutionContext, owner: bytes, token_id: int):
        if ctx.caller != owner:
            raise NotTokenOwner(f"Caller does not own token {token_id}")

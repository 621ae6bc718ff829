"""
Execution host for the asset lifecycle.

The Registry owns the database and the current sequence number (height).
It authenticates signed calls, derives the caller identity, and dispatches
each call to AssetLifecycle. Every applied call produces a Receipt: either
the operation's value or the named failure.
"""
import logging
import time
from dataclasses import dataclass
from typing import Any, Optional

from geostake.config import Config
from geostake.core import Call, MINT, UNLOCK, TRANSFER, RESTAKE, BURN
from geostake.db import DB
from geostake.errors import GeoStakeError, RegistryError, ValidationError
from geostake.lifecycle import AssetLifecycle, ExecutionContext
from geostake.monitoring import Monitor
from geostake.state import AssetRepository
from geostake.utils.encoding import HEIGHT_KEY, nonce_key, pack, unpack

logger = logging.getLogger(__name__)


@dataclass
class Receipt:
    """Outcome of one call."""
    call_id: bytes
    op: str
    success: bool
    value: Any = None
    error: Optional[str] = None
    code: Optional[int] = None
    message: str = ""

    @classmethod
    def ok(cls, call: Call, value) -> 'Receipt':
        return cls(call_id=call.id, op=call.op, success=True, value=value)

    @classmethod
    def failed(cls, call: Call, exc: GeoStakeError) -> 'Receipt':
        if isinstance(exc, RegistryError):
            return cls(call_id=call.id, op=call.op, success=False,
                       error=exc.tag, code=exc.code, message=str(exc))
        return cls(call_id=call.id, op=call.op, success=False,
                   error=type(exc).__name__, message=str(exc))


class Registry:
    def __init__(self, db_path: str = None, db: DB = None, config: Config = None,
                 create_if_missing: bool = True):
        self.config = config or Config.default()

        if db:
            self.db = db
        else:
            db_config = self.config.database
            self.db = DB(db_path or db_config.path,
                         create_if_missing=create_if_missing,
                         write_buffer_size=db_config.write_buffer_size,
                         max_open_files=db_config.max_open_files)

        registry_config = self.config.registry
        self.chain_id = registry_config.chain_id
        self.repository = AssetRepository(self.db)
        self.lifecycle = AssetLifecycle(
            self.repository,
            tolerance=registry_config.proximity_tolerance,
            max_name_bytes=registry_config.max_name_bytes,
            max_description_chars=registry_config.max_description_chars,
        )

        raw_height = self.db.get(HEIGHT_KEY)
        self.height = unpack(raw_height) if raw_height is not None else 0

        self.monitor = None
        if self.config.monitoring.enabled:
            self.monitor = Monitor(self, self.config.monitoring.host, self.config.monitoring.port)
            self._refresh_metrics()

    # ==========================================================================
    # SEQUENCE AND NONCES
    # ==========================================================================

    def advance(self, blocks: int = 1) -> int:
        """Move the sequence number forward. It never goes back."""
        if blocks < 0:
            raise ValueError("Height cannot decrease")
        self.height += blocks
        self.db.put(HEIGHT_KEY, pack(self.height))
        self._refresh_metrics()
        return self.height

    def get_nonce(self, identity: bytes) -> int:
        raw = self.db.get(nonce_key(identity))
        return unpack(raw) if raw is not None else 0

    def _consume_nonce(self, identity: bytes, nonce: int):
        self.db.put(nonce_key(identity), pack(nonce + 1))

    def context_for(self, identity: bytes) -> ExecutionContext:
        return ExecutionContext(caller=identity, sequence=self.height)

    # ==========================================================================
    # CALL PROCESSING
    # ==========================================================================

    def apply_call(self, call: Call) -> Receipt:
        """
        Authenticate and apply one call.

        Calls rejected before execution (signature, chain id, nonce, shape)
        leave the caller's nonce untouched. Once accepted the nonce is
        consumed even if the operation itself fails.
        """
        start = time.perf_counter()
        try:
            caller = self._authenticate(call)
        except ValidationError as e:
            logger.warning(f"Rejected call {call.id.hex()[:8]}: {e}")
            self._record(call.op, 'rejected', start)
            return Receipt.failed(call, e)

        self._consume_nonce(caller, call.nonce)
        ctx = self.context_for(caller)

        try:
            value = self._dispatch(ctx, call.op, call.data)
        except GeoStakeError as e:
            logger.warning(f"Call {call.id.hex()[:8]} ({call.op}) failed: {e}")
            self._record(call.op, 'failed', start)
            self._refresh_metrics()
            return Receipt.failed(call, e)

        logger.debug(f"Call {call.id.hex()[:8]} ({call.op}) applied at height {self.height}")
        self._record(call.op, 'success', start)
        self._refresh_metrics()
        return Receipt.ok(call, value)

    def _authenticate(self, call: Call) -> bytes:
        if call.chain_id != self.chain_id:
            raise ValidationError(f"Wrong chain ID. Expected {self.chain_id}, got {call.chain_id}")

        valid, reason = call.validate_basic()
        if not valid:
            raise ValidationError(reason)

        caller = call.caller
        expected = self.get_nonce(caller)
        if call.nonce != expected:
            raise ValidationError(f"Invalid nonce. Expected {expected}, got {call.nonce}")
        return caller

    def _dispatch(self, ctx: ExecutionContext, op: str, data: dict):
        if op == MINT:
            return self.lifecycle.mint(ctx, data['lat'], data['lon'],
                                       data['name'], data['description'])
        elif op == UNLOCK:
            return self.lifecycle.unlock(ctx, data['token_id'], data['lat'], data['lon'])
        elif op == TRANSFER:
            return self.lifecycle.transfer(ctx, data['token_id'],
                                           data['sender'], data['recipient'])
        elif op == RESTAKE:
            return self.lifecycle.restake(ctx, data['token_id'], data['lat'], data['lon'])
        elif op == BURN:
            return self.lifecycle.burn(ctx, data['token_id'])
        raise ValidationError(f"Unknown operation: {op}")

    def _record(self, op: str, status: str, start: float):
        if self.monitor:
            self.monitor.record_operation(op, status, time.perf_counter() - start)

    def _refresh_metrics(self):
        if self.monitor:
            self.monitor.update()

    # ==========================================================================
    # STATS
    # ==========================================================================

    def stats(self) -> dict:
        return {
            'height': self.height,
            'last_token_id': self.lifecycle.get_last_token_id(),
            'live_tokens': self.repository.live_token_count(),
        }

    def close(self):
        if self.monitor:
            self.monitor.stop_server()
        self.db.close()

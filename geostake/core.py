"""
Signed call envelope submitted to the registry.
"""
import time
import msgpack
from typing import Optional
from .crypto import generate_hash, public_key_to_identity, sign, verify_signature

MINT = "MINT"
UNLOCK = "UNLOCK"
TRANSFER = "TRANSFER"
RESTAKE = "RESTAKE"
BURN = "BURN"

OPERATIONS = (MINT, UNLOCK, TRANSFER, RESTAKE, BURN)


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_token_id(value) -> bool:
    return _is_int(value) and value >= 0


class Call:
    def __init__(self,
                 sender_public_key: str,
                 op: str,
                 data: dict,
                 nonce: int,
                 signature: Optional[bytes] = None,
                 timestamp: Optional[float] = None,
                 chain_id: Optional[int] = 1):
        self.sender_public_key = sender_public_key
        self.op = op
        self.data = data
        self.nonce = nonce
        self.timestamp = timestamp or time.time()
        self.signature = signature
        self.chain_id = chain_id

    @classmethod
    def from_dict(cls, data: dict):
        """Creates a Call from a dictionary."""
        signature = data.get("signature")
        if isinstance(signature, str):
            signature = bytes.fromhex(signature)
        return cls(
            sender_public_key=data["sender_public_key"],
            op=data["op"],
            data=data["data"],
            nonce=data["nonce"],
            signature=signature,
            timestamp=data.get("timestamp"),
            chain_id=data.get("chain_id"),
        )

    def to_dict(self, include_signature=True):
        data = {
            "sender_public_key": self.sender_public_key,
            "op": self.op,
            "data": self.data,
            "nonce": self.nonce,
            "timestamp": self.timestamp,
            "chain_id": self.chain_id,
        }
        if include_signature and self.signature:
            data["signature"] = self.signature
        return data

    def get_signing_data(self) -> bytes:
        """Returns the canonical byte representation for signing."""
        return msgpack.packb(self.to_dict(include_signature=False), use_bin_type=True)

    def sign(self, private_key):
        self.signature = sign(private_key, self.get_signing_data())

    def verify_signature(self) -> bool:
        if not self.signature:
            return False
        return verify_signature(
            self.sender_public_key,
            self.signature,
            self.get_signing_data()
        )

    @property
    def id(self) -> bytes:
        """The unique hash identifier of the call."""
        return generate_hash(self.get_signing_data())

    @property
    def caller(self) -> bytes:
        """Identity of the signer."""
        return public_key_to_identity(self.sender_public_key)

    def validate_basic(self) -> tuple[bool, str]:
        """
        Checks the signature and the shape of the operation arguments.
        Returns (is_valid, error_message)
        """
        if not self.verify_signature():
            return False, "Invalid signature"

        if not _is_int(self.nonce) or self.nonce < 0:
            return False, "Nonce must be a non-negative integer"

        current_time = time.time()
        if self.timestamp > current_time + 300:  # 5 minutes tolerance
            return False, "Timestamp too far in future"

        if not isinstance(self.data, dict):
            return False, "Call data must be a mapping"

        if self.op == MINT:
            for field in ('lat', 'lon', 'name', 'description'):
                if field not in self.data:
                    return False, "MINT requires 'lat', 'lon', 'name' and 'description'"
            if not _is_int(self.data['lat']) or not _is_int(self.data['lon']):
                return False, "Coordinates must be integers"
            if not isinstance(self.data['name'], str) or not isinstance(self.data['description'], str):
                return False, "Name and description must be strings"

        elif self.op in (UNLOCK, RESTAKE):
            for field in ('token_id', 'lat', 'lon'):
                if field not in self.data:
                    return False, f"{self.op} requires 'token_id', 'lat' and 'lon'"
            if not _is_token_id(self.data['token_id']):
                return False, "Token id must be a non-negative integer"
            if not _is_int(self.data['lat']) or not _is_int(self.data['lon']):
                return False, "Coordinates must be integers"

        elif self.op == TRANSFER:
            for field in ('token_id', 'sender', 'recipient'):
                if field not in self.data:
                    return False, "TRANSFER requires 'token_id', 'sender' and 'recipient'"
            if not _is_token_id(self.data['token_id']):
                return False, "Token id must be a non-negative integer"
            if not isinstance(self.data['sender'], bytes) or not isinstance(self.data['recipient'], bytes):
                return False, "Sender and recipient must be identity bytes"

        elif self.op == BURN:
            if 'token_id' not in self.data:
                return False, "BURN requires 'token_id'"
            if not _is_token_id(self.data['token_id']):
                return False, "Token id must be a non-negative integer"

        else:
            return False, f"Unknown operation: {self.op}"

        return True, ""

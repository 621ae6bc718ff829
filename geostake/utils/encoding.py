"""
Key layout and value codec for the persisted registry tables.
"""
import msgpack

ASSET_PREFIX = b'asset:'
OWNER_PREFIX = b'owner:'
UNLOCK_PREFIX = b'unlocked:'
NONCE_PREFIX = b'nonce:'

LAST_TOKEN_ID_KEY = b'meta:last_token_id'
HEIGHT_KEY = b'meta:height'

TOKEN_ID_BYTES = 8
MAX_TOKEN_ID = 2 ** (8 * TOKEN_ID_BYTES) - 1


def is_valid_token_id(token_id) -> bool:
    """True if token_id fits the fixed-width key encoding."""
    return (isinstance(token_id, int) and not isinstance(token_id, bool)
            and 0 <= token_id <= MAX_TOKEN_ID)


def is_valid_identity(identity) -> bool:
    return isinstance(identity, bytes) and 0 < len(identity) < 256


def encode_token_id(token_id: int) -> bytes:
    """Fixed-width big-endian so keys sort in id order."""
    if token_id < 0:
        raise ValueError("Token id must be non-negative")
    return token_id.to_bytes(TOKEN_ID_BYTES, 'big')


def asset_key(token_id: int) -> bytes:
    return ASSET_PREFIX + encode_token_id(token_id)


def owner_key(token_id: int) -> bytes:
    return OWNER_PREFIX + encode_token_id(token_id)


def unlock_key(identity: bytes, token_id: int) -> bytes:
    # identity is length-prefixed so variable-length identities cannot collide
    if not is_valid_identity(identity):
        raise ValueError("Identity must be 1..255 bytes")
    return UNLOCK_PREFIX + len(identity).to_bytes(1, 'big') + identity + encode_token_id(token_id)


def nonce_key(identity: bytes) -> bytes:
    return NONCE_PREFIX + identity


def pack(value) -> bytes:
    return msgpack.packb(value, use_bin_type=True)


def unpack(raw: bytes):
    return msgpack.unpackb(raw, raw=False)

"""
Asset record stored for every live token.
"""
from geostake.errors import ValidationError
from geostake.geo import is_valid_coordinates, from_scaled

MAX_NAME_BYTES = 50
MAX_DESCRIPTION_CHARS = 256


def validate_name(name: str, max_bytes: int = MAX_NAME_BYTES):
    """Names are ASCII text of at most max_bytes bytes."""
    if not isinstance(name, str):
        raise ValidationError("Name must be a string")
    try:
        encoded = name.encode('ascii')
    except UnicodeEncodeError:
        raise ValidationError("Name must be ASCII text")
    if len(encoded) > max_bytes:
        raise ValidationError(f"Name exceeds {max_bytes} bytes")


def validate_description(description: str, max_chars: int = MAX_DESCRIPTION_CHARS):
    """Descriptions are UTF-8 text of at most max_chars code points."""
    if not isinstance(description, str):
        raise ValidationError("Description must be a string")
    if len(description) > max_chars:
        raise ValidationError(f"Description exceeds {max_chars} characters")


class AssetRecord:
    """
    A token bound to a location.

    `locked` is True after mint and after every restake; only a successful
    unlock clears it. `stake_sequence` is the execution-context sequence
    number (block height) at mint or last restake.
    """

    def __init__(self, data: dict):
        """
        Initialize from a stored dict.

        Args:
            data: Dict with id, latitude, longitude, name, description,
                  locked and stake_sequence
        """
        self.id = int(data['id'])
        self.latitude = int(data['latitude'])
        self.longitude = int(data['longitude'])
        self.name = data['name']
        self.description = data['description']
        self.locked = bool(data['locked'])
        self.stake_sequence = int(data['stake_sequence'])
        self._validate()

    @classmethod
    def new(cls, token_id: int, latitude: int, longitude: int,
            name: str, description: str, sequence: int) -> 'AssetRecord':
        """Build a freshly staked (locked) record."""
        return cls({
            'id': token_id,
            'latitude': latitude,
            'longitude': longitude,
            'name': name,
            'description': description,
            'locked': True,
            'stake_sequence': sequence,
        })

    def to_dict(self) -> dict:
        """
        Convert to dict for storage.
        """
        return {
            'id': self.id,
            'latitude': self.latitude,
            'longitude': self.longitude,
            'name': self.name,
            'description': self.description,
            'locked': self.locked,
            'stake_sequence': self.stake_sequence,
        }

    @property
    def unlocked(self) -> bool:
        return not self.locked

    @property
    def location(self) -> tuple[int, int]:
        return self.latitude, self.longitude

    @property
    def location_degrees(self) -> tuple[float, float]:
        """Location as decimal degrees, for display only."""
        return from_scaled(self.latitude), from_scaled(self.longitude)

    def _validate(self):
        """Reject records that could never have been written by the lifecycle."""
        if self.id < 1:
            raise ValueError(f"Invalid token id: {self.id}")
        if not is_valid_coordinates(self.latitude, self.longitude):
            raise ValueError(
                f"Stored coordinates out of range for token {self.id}"
            )
        if self.stake_sequence < 0:
            raise ValueError(f"Negative stake sequence for token {self.id}")

    def __eq__(self, other):
        if not isinstance(other, AssetRecord):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self):
        return (f"AssetRecord(id={self.id}, lat={self.latitude}, lon={self.longitude}, "
                f"locked={self.locked}, stake_sequence={self.stake_sequence})")

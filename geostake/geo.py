"""
Coordinate validation and proximity verification.

Coordinates are signed fixed-point integers: degrees scaled by COORD_SCALE.
Proximity is a per-axis delta check on the scaled values. It is NOT a
geodesic distance and does not wrap at the antimeridian or the poles.
"""
from geostake.errors import InvalidCoordinates

COORD_SCALE = 1_000_000

MIN_LATITUDE = -90 * COORD_SCALE
MAX_LATITUDE = 90 * COORD_SCALE
MIN_LONGITUDE = -180 * COORD_SCALE
MAX_LONGITUDE = 180 * COORD_SCALE

# Historically documented as "meters"; it is a raw scaled-degree delta.
PROXIMITY_TOLERANCE = 100


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def is_valid_coordinates(latitude: int, longitude: int) -> bool:
    """Check both axes are integers within their inclusive legal range."""
    if not _is_int(latitude) or not _is_int(longitude):
        return False
    return (MIN_LATITUDE <= latitude <= MAX_LATITUDE
            and MIN_LONGITUDE <= longitude <= MAX_LONGITUDE)


def validate_coordinates(latitude: int, longitude: int):
    """Raise InvalidCoordinates unless both axes are integers in range."""
    if not _is_int(latitude) or not _is_int(longitude):
        raise InvalidCoordinates(
            f"Coordinates must be integers: lat={latitude!r}, lon={longitude!r}"
        )
    if not is_valid_coordinates(latitude, longitude):
        raise InvalidCoordinates(
            f"Coordinates out of range: lat={latitude}, lon={longitude}"
        )


def axis_deltas(staked_lat: int, staked_lon: int,
                submitted_lat: int, submitted_lon: int) -> tuple[int, int]:
    """Absolute per-axis difference between two scaled coordinates."""
    return abs(staked_lat - submitted_lat), abs(staked_lon - submitted_lon)


def verify_proximity(staked_lat: int, staked_lon: int,
                     submitted_lat: int, submitted_lon: int,
                     tolerance: int = PROXIMITY_TOLERANCE) -> bool:
    """
    Return True iff both axis deltas are strictly below the tolerance.

    A delta exactly equal to the tolerance does not match.
    """
    lat_diff, lon_diff = axis_deltas(staked_lat, staked_lon, submitted_lat, submitted_lon)
    return lat_diff < tolerance and lon_diff < tolerance


def to_scaled(degrees: float) -> int:
    """Convert decimal degrees to the scaled integer representation."""
    return int(round(degrees * COORD_SCALE))


def from_scaled(value: int) -> float:
    """Convert a scaled integer back to decimal degrees."""
    return value / COORD_SCALE

"""
Error taxonomy for the asset registry.

Every RegistryError is a precondition violation: the operation that raised
it made no state change and is never retried internally.
"""


class GeoStakeError(Exception):
    """Base exception for all geostake errors."""


class ValidationError(GeoStakeError):
    """Raised when a call or its arguments are malformed."""
    pass


class RegistryError(GeoStakeError):
    """A named, expected failure of a lifecycle operation."""

    code = 0
    tag = "RegistryError"

    def __init__(self, message: str = ""):
        super().__init__(message or self.tag)


class OwnerOnly(RegistryError):
    """Reserved for administrative actions. Not raised by any operation."""
    code = 100
    tag = "OwnerOnly"


class NotFound(RegistryError):
    code = 101
    tag = "NotFound"


class NotTokenOwner(RegistryError):
    code = 102
    tag = "NotTokenOwner"


class InvalidCoordinates(RegistryError):
    code = 103
    tag = "InvalidCoordinates"


class AlreadyUnlocked(RegistryError):
    code = 104
    tag = "AlreadyUnlocked"


class LocationMismatch(RegistryError):
    code = 105
    tag = "LocationMismatch"


class NotEligibleForTransfer(RegistryError):
    """
    Transfer attempted while the asset is still locked.

    Older deployments reported this condition as "not staked".
    """
    code = 106
    tag = "NotEligibleForTransfer"


class AlreadyExists(RegistryError):
    """Reserved. Ids come from the allocator, so no operation raises this."""
    code = 107
    tag = "AlreadyExists"


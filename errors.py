class IdentifyError(Exception):
    """Base class for failures raised by the identify operation."""


class MissingIdentifierError(IdentifyError):
    """Neither an email nor a phone number was supplied."""

    def __init__(self, message: str = "Either email or phoneNumber must be provided"):
        super().__init__(message)


class StorageError(IdentifyError):
    """A query or connection against the contact store failed."""


class MissingGeneratedIdError(StorageError):
    """An insert completed without storage handing back the new row id."""

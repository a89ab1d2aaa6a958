class PasteError(Exception):
    """Base class for every error raised by the paste core."""


class ValidationFailed(PasteError):
    pass


class ContentTooLarge(ValidationFailed):
    pass


class InvalidExpiry(ValidationFailed):
    pass


class StorageUnavailable(PasteError):
    """A backend failed or timed out. Callers may retry."""


class NotFound(PasteError):
    pass


class BlobNotFound(NotFound):
    pass


class DuplicateId(PasteError):
    pass


class BlobExists(DuplicateId):
    pass

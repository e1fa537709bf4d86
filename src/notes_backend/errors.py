from __future__ import annotations


# PUBLIC_INTERFACE
class NoteStoreError(Exception):
    """Base class for every failure raised by the note store and its backends."""


class BackendUnavailableError(NoteStoreError):
    """No persistence backend is present in the current environment."""


class BackendOperationError(NoteStoreError):
    """The persistence backend reported a failure for get/set/remove."""


class StructuralValidationError(NoteStoreError):
    """A note or collection does not have the expected shape."""


class CorruptCollectionError(StructuralValidationError):
    """The persisted collection itself is malformed; it is never repaired automatically."""


class InputValidationError(NoteStoreError, ValueError):
    """Caller supplied arguments are malformed."""


class EmptyContentError(InputValidationError):
    """Note content is empty or whitespace only."""


class DuplicateIdError(NoteStoreError):
    """A note with the same id already exists."""


class NoteNotFoundError(NoteStoreError, LookupError):
    """No note has the requested id."""

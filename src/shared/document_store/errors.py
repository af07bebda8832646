"""Document store errors."""


class DocumentStoreError(Exception):
    """Base class for document store failures."""

    pass


class DocumentNotFoundError(DocumentStoreError):
    """Raised when a backing secret or an entity within it does not exist."""

    pass


class DocumentConflictError(DocumentStoreError):
    """Raised when inserting an entity whose key already exists."""

    pass


class StoreVersionConflictError(DocumentStoreError):
    """Raised when concurrent writers keep invalidating our resourceVersion."""

    pass

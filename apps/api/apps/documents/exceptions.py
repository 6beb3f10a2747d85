"""
Document storage and signing errors.

Validation-type failures subclass Django's ValidationError so they read
like the rest of the service layer; storage failures get their own base.
"""
from django.core.exceptions import ObjectDoesNotExist, ValidationError


class DocumentLifecycleError(Exception):
    """Base class for object store and migration failures."""


class DocumentNotFoundError(ObjectDoesNotExist):
    """Raised when a document record does not exist."""


class ObjectNotFoundError(DocumentLifecycleError):
    """Raised when the payload object is missing from the object store."""

    def __init__(self, bucket, object_key):
        self.bucket = bucket
        self.object_key = object_key
        super().__init__(f"Object {bucket}/{object_key} not found")


class ObjectStoreUnavailableError(DocumentLifecycleError):
    """Raised on transient object store failures (timeouts, 5xx, network)."""


class MigrationInProgressError(DocumentLifecycleError):
    """Raised when another worker holds the document's migration lock."""

    def __init__(self, document_id, retry_after=None):
        self.document_id = document_id
        self.retry_after = retry_after
        super().__init__(f"Migration in progress for document {document_id}")


class InvalidTransitionError(ValidationError):
    """Raised for a status change the state machine does not allow."""


class InvalidTierMigrationError(ValidationError):
    """Raised for a tier move that is neither a demotion nor a promotion to STANDARD."""


class DeletionConflictError(ValidationError):
    """Raised when a document cannot be deleted (status or contractor references)."""

class MediaResourceError(Exception):
    """Base error for all user-facing mediaresource exceptions."""


class ConfigurationError(MediaResourceError):
    """Raised when configuration is invalid or incomplete."""


class ProjectNotInitializedError(MediaResourceError):
    """Raised when .mediares metadata is missing."""


class ValidationError(MediaResourceError):
    """Raised when model invariants fail."""


class TagFormatError(ValidationError):
    """Raised when a tag identifier is not of the form field:value(!)."""


class TagNamespaceViolationError(ValidationError):
    """Raised when a group tag is assigned to a file or vice versa."""


class ManagedFieldLockedError(ValidationError):
    """Raised when a managed field of a managed file is edited manually."""


class ResourceNotFoundError(MediaResourceError):
    """Raised when no resource matches an id or label."""


class ResourceFileNotFoundError(ResourceNotFoundError):
    """Raised when a resource file id is absent."""


class ResourceGroupNotFoundError(ResourceNotFoundError):
    """Raised when a resource group id is absent."""


class EpisodeNotFoundError(MediaResourceError):
    """Raised when an episode id is absent from the registry."""


class AlreadyRemovedError(MediaResourceError):
    """Raised when an operation targets a soft-deleted resource."""


class ResolutionError(MediaResourceError):
    """Raised when a resolution request cannot produce a file."""


class RedirectCycleError(ResolutionError):
    """Raised when a redirectTo chain loops back on itself."""


class NoEligibleResourceError(ResolutionError):
    """Raised when a group has no non-removed member file."""


class ConsistencyViolationError(RuntimeError):
    """Raised when the file/group relationship is found asymmetric.

    Signals a defect in a write path, never bad user input.
    """

from typing import Any, Optional


class ResourceError(Exception):
    pass


class ConfigurationError(ResourceError):
    pass


class ImplementationRemoved(ConfigurationError):
    def __init__(self, option: str, replacement: str) -> None:
        super().__init__(f"The '{option}' option is no longer supported, {replacement}")
        self.option = option
        self.replacement = replacement


class ClassResolutionError(ResourceError):
    pass


class RecordNotFound(ResourceError):
    pass


class AccessDenied(ResourceError):
    """Raised when the authorization policy refuses an action on a subject. ``action`` and ``subject`` record what
    was being authorized so that the error can be reported or logged by the caller.
    """

    DEFAULT_MESSAGE = "You are not authorized to access this page."

    def __init__(self, message: Optional[str] = None, action: Optional[str] = None, subject: Any = None) -> None:
        super().__init__(message or self.DEFAULT_MESSAGE)
        self.message = message or self.DEFAULT_MESSAGE
        self.action = action
        self.subject = subject

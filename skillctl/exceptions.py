"""Custom exceptions for skillctl."""

from enum import StrEnum


class UrlRejection(StrEnum):
    """Rule that rejected a URL."""

    INVALID_FORMAT = "invalid_format"
    SCHEME_NOT_ALLOWED = "scheme_not_allowed"
    LOCALHOST_BLOCKED = "localhost_blocked"
    PRIVATE_ADDRESS_BLOCKED = "private_address_blocked"
    METADATA_BLOCKED = "metadata_blocked"
    HOST_NOT_ALLOWED = "host_not_allowed"


class ContentRejection(StrEnum):
    """Rule that rejected downloaded content."""

    TOO_LARGE = "too_large"
    BINARY_CONTENT = "binary_content"
    SUSPICIOUS_PATTERN = "suspicious_pattern"


class SkillctlError(Exception):
    """Base exception for skillctl."""

    pass


class ConfigurationError(SkillctlError):
    """Configuration-related errors."""

    pass


class ValidationError(SkillctlError):
    """Validation errors (names, URLs, content)."""

    pass


class InvalidSkillNameError(ValidationError):
    """Skill name failed validation."""

    def __init__(self, name: str, reason: str):
        super().__init__(f"Invalid skill name '{name}': {reason}")
        self.name = name
        self.reason = reason


class UrlValidationError(ValidationError):
    """URL rejected before any network access."""

    def __init__(self, url: str, reason: UrlRejection, message: str):
        super().__init__(f"{message} ({url})")
        self.url = url
        self.reason = reason


class ContentValidationError(ValidationError):
    """Downloaded content rejected."""

    def __init__(self, reason: ContentRejection, message: str):
        super().__init__(message)
        self.reason = reason


class NetworkError(SkillctlError):
    """Network-related errors."""

    def __init__(self, message: str, url: str | None = None):
        super().__init__(message)
        self.url = url


class HttpStatusError(NetworkError):
    """Non-success HTTP status."""

    def __init__(self, url: str, status_code: int):
        super().__init__(f"HTTP request failed with status: {status_code}", url=url)
        self.status_code = status_code


class UnexpectedContentTypeError(NetworkError):
    """Response is not text/markdown."""

    def __init__(self, url: str, content_type: str):
        super().__init__(
            f"Unexpected content type: {content_type}. Expected text/markdown.",
            url=url,
        )
        self.content_type = content_type


class ResponseTooLargeError(NetworkError):
    """Response exceeds the size limit."""

    def __init__(self, url: str, size: int, limit: int):
        super().__init__(f"Content too large: {size} bytes (max {limit})", url=url)
        self.size = size
        self.limit = limit


class SkillNotFoundError(NetworkError):
    """No candidate path yielded the skill."""

    def __init__(self, skill_name: str, last_url: str | None, last_error: str):
        super().__init__(
            f"Could not find skill '{skill_name}' in repository. Last error: {last_url} ({last_error})",
            url=last_url,
        )
        self.skill_name = skill_name
        self.last_url = last_url
        self.last_error = last_error


class IntegrityError(SkillctlError):
    """Stored content does not match the recorded hash."""

    def __init__(self, skill_name: str, expected: str, actual: str | None):
        if actual is None:
            message = f"Skill '{skill_name}' is missing from the store"
        else:
            message = (
                f"Skill '{skill_name}' hash mismatch: expected {expected[:12]}, found {actual[:12]}"
            )
        super().__init__(message)
        self.skill_name = skill_name
        self.expected = expected
        self.actual = actual


class StorageError(SkillctlError):
    """Filesystem errors in the store or editor configuration."""

    pass


class PathContainmentError(StorageError):
    """Path resolved outside its allowed root."""

    def __init__(self, base: str, target: str):
        super().__init__(
            f"Path traversal detected: {target} is outside the allowed directory {base}"
        )
        self.base = base
        self.target = target

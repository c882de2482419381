"""Validation of skill names, remote URLs, downloaded content and store paths."""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

from skillctl.exceptions import (
    ContentRejection,
    ContentValidationError,
    InvalidSkillNameError,
    PathContainmentError,
    UrlRejection,
    UrlValidationError,
)

MAX_SKILL_NAME_LENGTH = 100
MAX_CONTENT_BYTES = 1_000_000

_RESERVED_NAMES = frozenset(
    {"CON", "PRN", "AUX", "NUL"}
    | {f"COM{i}" for i in range(1, 10)}
    | {f"LPT{i}" for i in range(1, 10)}
)

_DEV_HOSTS = frozenset({"localhost", "127.0.0.1"})

ALLOWED_HOSTS: tuple[str, ...] = (
    "github.com",
    "raw.githubusercontent.com",
    "gitlab.com",
    "localhost",
    "127.0.0.1",
)

METADATA_HOSTS = frozenset(
    {
        "169.254.169.254",  # AWS
        "metadata.google.internal",  # GCP
        "169.254.169.253",  # Azure (old)
        "metadata.azure.com",  # Azure
    }
)

_PRIVATE_V4_NETWORKS = tuple(
    ipaddress.IPv4Network(cidr)
    for cidr in ("10.0.0.0/8", "172.16.0.0/12", "192.168.0.0/16", "127.0.0.0/8")
)
_PRIVATE_V6_NETWORKS = tuple(ipaddress.IPv6Network(cidr) for cidr in ("fc00::/7", "fe80::/10"))

# Front-matter tags that trigger object deserialization or file inclusion.
SUSPICIOUS_FRONTMATTER_PATTERNS: tuple[str, ...] = (
    "!!python",
    "!!ruby",
    "!!java",
    "!include",
    "!tag",
)


@dataclass(frozen=True)
class ValidatedUrl:
    """A URL that passed every rule of :func:`validate_url`."""

    url: str
    scheme: str
    host: str
    port: int | None
    path: str

    def __str__(self) -> str:
        return self.url


def validate_skill_name(name: str) -> str:
    """Validate a skill name and return it unchanged.

    Raises:
        InvalidSkillNameError: naming the first rule the name violates.
    """
    raw = name if isinstance(name, str) else str(name or "")
    if not raw.strip():
        raise InvalidSkillNameError(raw, "name cannot be empty")
    if ".." in raw or "/" in raw or "\\" in raw:
        raise InvalidSkillNameError(raw, "path traversal characters are not allowed")
    if raw.startswith("."):
        raise InvalidSkillNameError(raw, "name cannot start with a dot")
    if raw.upper() in _RESERVED_NAMES:
        raise InvalidSkillNameError(raw, "name is a reserved system name")
    if len(raw.encode("utf-8")) > MAX_SKILL_NAME_LENGTH:
        raise InvalidSkillNameError(raw, f"name is too long (max {MAX_SKILL_NAME_LENGTH} bytes)")
    if not all(ch.isalnum() or ch in "-_" for ch in raw):
        raise InvalidSkillNameError(
            raw, "only letters, numbers, hyphens, and underscores are allowed"
        )
    return raw


def is_valid_skill_name(name: str) -> bool:
    try:
        validate_skill_name(name)
    except InvalidSkillNameError:
        return False
    return True


def _parse_ip(host: str) -> ipaddress.IPv4Address | ipaddress.IPv6Address | None:
    try:
        return ipaddress.ip_address(host)
    except ValueError:
        return None


def is_private_ip(host: str) -> bool:
    """Return True when ``host`` is a literal private, loopback or link-local address."""
    ip = _parse_ip(str(host or "").strip("[]"))
    if ip is None:
        return False
    if isinstance(ip, ipaddress.IPv6Address):
        if ip.ipv4_mapped is not None:
            ip = ip.ipv4_mapped
        else:
            return ip.is_loopback or any(ip in net for net in _PRIVATE_V6_NETWORKS)
    return any(ip in net for net in _PRIVATE_V4_NETWORKS)


def _is_allowed_host(host: str) -> bool:
    return any(host == allowed or host.endswith(f".{allowed}") for allowed in ALLOWED_HOSTS)


def validate_url(raw_url: str) -> ValidatedUrl:
    """Validate a URL before any network access (SSRF protection).

    Rules run in order and the first violation wins: format, scheme,
    localhost over https, literal private addresses, cloud metadata
    endpoints, host allowlist. Validation happens before DNS resolution,
    so it does not protect against DNS rebinding.
    """
    url = str(raw_url or "").strip()
    try:
        parsed = urlparse(url)
        host = (parsed.hostname or "").lower()
        port = parsed.port
    except ValueError as exc:
        raise UrlValidationError(url, UrlRejection.INVALID_FORMAT, f"Invalid URL format: {exc}") from exc
    scheme = parsed.scheme.lower()
    if not scheme or not host:
        raise UrlValidationError(url, UrlRejection.INVALID_FORMAT, "Invalid URL format")

    if scheme == "http":
        if host not in _DEV_HOSTS:
            raise UrlValidationError(
                url,
                UrlRejection.SCHEME_NOT_ALLOWED,
                "Only HTTPS URLs are allowed (HTTP only permitted for localhost)",
            )
    elif scheme != "https":
        raise UrlValidationError(url, UrlRejection.SCHEME_NOT_ALLOWED, "Only HTTP(S) URLs are allowed")

    if scheme == "https" and (host in _DEV_HOSTS or host.startswith("127.")):
        raise UrlValidationError(url, UrlRejection.LOCALHOST_BLOCKED, "Localhost URLs are not allowed with HTTPS")

    if is_private_ip(host):
        raise UrlValidationError(
            url,
            UrlRejection.PRIVATE_ADDRESS_BLOCKED,
            "Private IP addresses are not allowed (SSRF protection)",
        )

    if host in METADATA_HOSTS:
        raise UrlValidationError(url, UrlRejection.METADATA_BLOCKED, "Access to cloud metadata services is blocked")

    if not _is_allowed_host(host):
        raise UrlValidationError(url, UrlRejection.HOST_NOT_ALLOWED, "Only GitHub and GitLab URLs are allowed")

    return ValidatedUrl(url=url, scheme=scheme, host=host, port=port, path=parsed.path)


def validate_skill_content(content: str, max_bytes: int = MAX_CONTENT_BYTES) -> None:
    """Reject oversized, binary or suspicious SKILL.md content.

    Only the YAML front matter is scanned for unsafe tags; the markdown body
    is plain instructional text.
    """
    size = len(content.encode("utf-8"))
    if size > max_bytes:
        raise ContentValidationError(
            ContentRejection.TOO_LARGE,
            f"Skill content is too large: {size} bytes (max {max_bytes})",
        )
    if "\0" in content:
        raise ContentValidationError(
            ContentRejection.BINARY_CONTENT,
            "Skill content contains null bytes (binary content not allowed)",
        )
    if content.startswith("---"):
        parts = content.split("---", 2)
        if len(parts) >= 3:
            frontmatter = parts[1]
            for pattern in SUSPICIOUS_FRONTMATTER_PATTERNS:
                if pattern in frontmatter:
                    raise ContentValidationError(
                        ContentRejection.SUSPICIOUS_PATTERN,
                        f"Skill content contains suspicious YAML pattern: {pattern}",
                    )


def ensure_within(base_dir: Path, target: Path) -> Path:
    """Resolve ``target`` and make sure it stays under ``base_dir``."""
    base = Path(base_dir).resolve()
    candidate = Path(target)
    if not candidate.is_absolute():
        candidate = base / candidate
    resolved = candidate.resolve()
    try:
        resolved.relative_to(base)
    except ValueError as exc:
        raise PathContainmentError(str(base), str(resolved)) from exc
    return resolved

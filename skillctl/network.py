"""Hardened HTTP client for downloading SKILL.md files."""

from __future__ import annotations

import time

import httpx

from skillctl import __version__
from skillctl.config import NetworkConfig, get_settings
from skillctl.exceptions import (
    HttpStatusError,
    NetworkError,
    ResponseTooLargeError,
    UnexpectedContentTypeError,
)
from skillctl.logging import get_logger
from skillctl.security import validate_skill_content, validate_url

log = get_logger(__name__)

USER_AGENT = f"skillctl/{__version__}"
_TEXT_CONTENT_MARKERS = ("text", "markdown", "plain")


def _validate_request_url(request: httpx.Request) -> None:
    """Request event hook: every hop, redirects included, must pass the URL guard."""
    validate_url(str(request.url))


class SecureHttpClient:
    """Download text content with URL, size, type and content checks."""

    def __init__(
        self,
        network: NetworkConfig | None = None,
        client: httpx.Client | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self._network = network or get_settings().network
        self.client = client or httpx.Client(
            transport=transport,
            timeout=self._network.timeout,
            follow_redirects=True,
            max_redirects=self._network.max_redirects,
            headers={"User-Agent": USER_AGENT},
            event_hooks={"request": [_validate_request_url]},
        )

    def __enter__(self) -> "SecureHttpClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the HTTP client."""
        self.client.close()

    def download(self, url: str) -> str:
        """Download content from a URL with security validations.

        Raises:
            UrlValidationError: the URL (or a redirect target) is not allowed.
            NetworkError: transport failure, bad status, type or size.
            ContentValidationError: the body failed the content checks.
        """
        validated = validate_url(url)
        log.debug("Downloading", url=validated.url)
        try:
            with self.client.stream("GET", validated.url) as response:
                return self._read_response(validated.url, response)
        except httpx.HTTPError as exc:
            raise NetworkError(f"Failed to send HTTP request: {exc}", url=validated.url) from exc

    def _read_response(self, url: str, response: httpx.Response) -> str:
        limit = self._network.max_content_bytes

        if not response.is_success:
            raise HttpStatusError(url, response.status_code)

        content_type = response.headers.get("content-type")
        if content_type is not None and not any(
            marker in content_type for marker in _TEXT_CONTENT_MARKERS
        ):
            raise UnexpectedContentTypeError(url, content_type)

        content_length = response.headers.get("content-length")
        if content_length is not None:
            try:
                declared = int(content_length)
            except ValueError:
                declared = None
            if declared is not None and declared > limit:
                raise ResponseTooLargeError(url, declared, limit)

        deadline = time.monotonic() + self._network.timeout
        body = bytearray()
        for chunk in response.iter_bytes():
            body.extend(chunk)
            if len(body) > limit:
                raise ResponseTooLargeError(url, len(body), limit)
            if time.monotonic() > deadline:
                raise NetworkError(
                    f"Download exceeded {self._network.timeout:g}s timeout", url=url
                )

        content = bytes(body).decode(response.encoding or "utf-8", errors="replace")
        validate_skill_content(content, limit)
        log.debug("Downloaded", url=url, size=len(body))
        return content

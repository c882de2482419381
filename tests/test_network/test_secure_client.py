from contextlib import contextmanager

import httpx
import pytest

from skillctl.config import NetworkConfig
from skillctl.exceptions import (
    ContentRejection,
    ContentValidationError,
    HttpStatusError,
    NetworkError,
    ResponseTooLargeError,
    UnexpectedContentTypeError,
    UrlRejection,
    UrlValidationError,
)
from skillctl.network import USER_AGENT, SecureHttpClient, _validate_request_url


class _FakeResponse:
    def __init__(
        self,
        body: bytes = b"",
        status_code: int = 200,
        headers: dict[str, str] | None = None,
        encoding: str = "utf-8",
    ):
        self.status_code = status_code
        self.headers = headers if headers is not None else {"content-type": "text/plain; charset=utf-8"}
        self.encoding = encoding
        self._body = body
        self.body_read = False

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    def iter_bytes(self):
        self.body_read = True
        for start in range(0, len(self._body), 65536):
            yield self._body[start : start + 65536]


class _FakeClient:
    def __init__(self, response: _FakeResponse | None = None, error: Exception | None = None):
        self._response = response
        self._error = error
        self.requested: list[tuple[str, str]] = []
        self.closed = False

    @contextmanager
    def stream(self, method: str, url: str):
        self.requested.append((method, url))
        if self._error is not None:
            raise self._error
        yield self._response

    def close(self) -> None:
        self.closed = True


def _client(response: _FakeResponse | None = None, error: Exception | None = None) -> tuple[SecureHttpClient, _FakeClient]:
    fake = _FakeClient(response, error)
    return SecureHttpClient(NetworkConfig(), client=fake), fake


def test_download_returns_text_body():
    client, fake = _client(_FakeResponse(b"# Skill\n\nDo things.\n"))

    content = client.download("https://raw.githubusercontent.com/acme/skills/main/skills/x/SKILL.md")

    assert content == "# Skill\n\nDo things.\n"
    assert fake.requested == [("GET", "https://raw.githubusercontent.com/acme/skills/main/skills/x/SKILL.md")]


def test_metadata_url_is_rejected_before_any_request():
    client, fake = _client(_FakeResponse(b"secret"))

    with pytest.raises(UrlValidationError) as exc_info:
        client.download("https://169.254.169.254/latest/meta-data/")

    assert exc_info.value.reason is UrlRejection.METADATA_BLOCKED
    assert fake.requested == []


def test_non_success_status_raises_http_status_error():
    client, _ = _client(_FakeResponse(b"Not Found", status_code=404))

    with pytest.raises(HttpStatusError) as exc_info:
        client.download("https://raw.githubusercontent.com/a/b/main/SKILL.md")

    assert exc_info.value.status_code == 404
    assert isinstance(exc_info.value, NetworkError)


@pytest.mark.parametrize("content_type", ["text/markdown", "text/plain", "application/markdown", "text/x-plain"])
def test_text_content_types_are_accepted(content_type: str):
    client, _ = _client(_FakeResponse(b"ok", headers={"content-type": content_type}))
    assert client.download("https://raw.githubusercontent.com/a/b/main/SKILL.md") == "ok"


def test_missing_content_type_is_accepted():
    client, _ = _client(_FakeResponse(b"ok", headers={}))
    assert client.download("https://raw.githubusercontent.com/a/b/main/SKILL.md") == "ok"


@pytest.mark.parametrize("content_type", ["application/octet-stream", "image/png", "application/json"])
def test_binary_content_types_are_rejected(content_type: str):
    client, _ = _client(_FakeResponse(b"\x89PNG", headers={"content-type": content_type}))

    with pytest.raises(UnexpectedContentTypeError) as exc_info:
        client.download("https://raw.githubusercontent.com/a/b/main/SKILL.md")

    assert exc_info.value.content_type == content_type


def test_declared_oversized_length_fails_before_body_is_read():
    response = _FakeResponse(b"small", headers={"content-type": "text/plain", "content-length": "1000001"})
    client, _ = _client(response)

    with pytest.raises(ResponseTooLargeError) as exc_info:
        client.download("https://raw.githubusercontent.com/a/b/main/SKILL.md")

    assert exc_info.value.size == 1_000_001
    assert response.body_read is False


def test_oversized_body_without_length_header_is_rejected():
    client, _ = _client(_FakeResponse(b"A" * 1_000_001, headers={"content-type": "text/plain"}))

    with pytest.raises(ResponseTooLargeError) as exc_info:
        client.download("https://raw.githubusercontent.com/a/b/main/SKILL.md")

    assert exc_info.value.size > exc_info.value.limit


def test_oversized_body_is_rejected_regardless_of_content_type():
    client, _ = _client(_FakeResponse(b"A" * 1_000_001, headers={}))

    with pytest.raises(ResponseTooLargeError):
        client.download("https://raw.githubusercontent.com/a/b/main/SKILL.md")


def test_wide_charset_body_over_the_limit_is_never_truncated():
    # Two bytes per character: half the byte limit decodes to a "small" text.
    body = ("A" * 800_000 + "TAIL").encode("utf-16-le")

    def chunks():
        for start in range(0, len(body), 65536):
            yield body[start : start + 65536]

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            headers={"content-type": "text/plain; charset=utf-16-le"},
            content=chunks(),
        )

    with SecureHttpClient(NetworkConfig(), transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(ResponseTooLargeError) as exc_info:
            client.download("https://raw.githubusercontent.com/a/b/main/SKILL.md")

    assert exc_info.value.size > 1_000_000
    assert exc_info.value.limit == 1_000_000


def test_wide_charset_body_within_the_limit_is_decoded():
    body = "# Skill\n\nTAIL".encode("utf-16-le")

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, headers={"content-type": "text/plain; charset=utf-16-le"}, content=body)

    with SecureHttpClient(NetworkConfig(), transport=httpx.MockTransport(handler)) as client:
        assert client.download("https://raw.githubusercontent.com/a/b/main/SKILL.md") == "# Skill\n\nTAIL"


def test_suspicious_frontmatter_is_rejected_after_download():
    body = b"---\nx: !!python/object/apply:os.system ['id']\n---\n# hi\n"
    client, _ = _client(_FakeResponse(body))

    with pytest.raises(ContentValidationError) as exc_info:
        client.download("https://raw.githubusercontent.com/a/b/main/SKILL.md")

    assert exc_info.value.reason is ContentRejection.SUSPICIOUS_PATTERN


def test_transport_errors_become_network_errors():
    client, _ = _client(error=httpx.ConnectTimeout("timed out"))

    with pytest.raises(NetworkError) as exc_info:
        client.download("https://raw.githubusercontent.com/a/b/main/SKILL.md")

    assert exc_info.value.url == "https://raw.githubusercontent.com/a/b/main/SKILL.md"
    assert isinstance(exc_info.value.__cause__, httpx.ConnectTimeout)


def test_close_closes_underlying_client():
    client, fake = _client(_FakeResponse(b"ok"))
    with client:
        pass
    assert fake.closed is True


def test_request_hook_rejects_disallowed_hosts():
    with pytest.raises(UrlValidationError):
        _validate_request_url(httpx.Request("GET", "https://evil.example.com/SKILL.md"))
    _validate_request_url(httpx.Request("GET", "https://raw.githubusercontent.com/a/b/main/SKILL.md"))


def test_real_client_sends_user_agent_and_reads_body():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, headers={"content-type": "text/plain; charset=utf-8"}, content=b"# Skill\n")

    with SecureHttpClient(NetworkConfig(), transport=httpx.MockTransport(handler)) as client:
        content = client.download("https://raw.githubusercontent.com/a/b/main/SKILL.md")

    assert content == "# Skill\n"
    assert seen[0].headers["user-agent"] == USER_AGENT


def test_redirect_to_metadata_endpoint_is_blocked():
    requested: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(str(request.url))
        if request.url.host == "raw.githubusercontent.com":
            return httpx.Response(302, headers={"location": "https://169.254.169.254/latest/meta-data/"})
        return httpx.Response(200, headers={"content-type": "text/plain"}, content=b"secret")

    with SecureHttpClient(NetworkConfig(), transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(UrlValidationError) as exc_info:
            client.download("https://raw.githubusercontent.com/a/b/main/SKILL.md")

    assert exc_info.value.reason is UrlRejection.METADATA_BLOCKED
    assert requested == ["https://raw.githubusercontent.com/a/b/main/SKILL.md"]


def test_redirect_within_allowlist_is_followed():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "github.com":
            return httpx.Response(301, headers={"location": "https://raw.githubusercontent.com/a/b/main/SKILL.md"})
        return httpx.Response(200, headers={"content-type": "text/plain"}, content=b"moved")

    with SecureHttpClient(NetworkConfig(), transport=httpx.MockTransport(handler)) as client:
        assert client.download("https://github.com/a/b/raw/main/SKILL.md") == "moved"


def test_too_many_redirects_is_a_network_error():
    def handler(request: httpx.Request) -> httpx.Response:
        hop = int(request.url.params.get("hop", "0"))
        return httpx.Response(302, headers={"location": f"https://github.com/loop?hop={hop + 1}"})

    with SecureHttpClient(NetworkConfig(max_redirects=2), transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(NetworkError):
            client.download("https://github.com/loop")

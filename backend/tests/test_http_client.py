import httpx
import pytest

from edgescore.workers.errors import FetchError, TransientFetchError
from edgescore.workers.http_client import HttpClient


def _client(handler) -> HttpClient:
    return HttpClient(timeout_seconds=5.0, user_agent="test-agent/1.0", transport=httpx.MockTransport(handler))


async def test_successful_fetch_returns_markup() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text="<html>picks</html>")

    client = _client(handler)
    result = await client.fetch("https://picks.example.com/nba/picks", source="fake-picks")
    await client.close()

    assert result.html == "<html>picks</html>"
    assert result.status_code == 200
    assert result.final_url == "https://picks.example.com/nba/picks"
    assert seen[0].headers["User-Agent"] == "test-agent/1.0"


@pytest.mark.parametrize("status_code", [429, 500, 503])
async def test_server_errors_are_transient(status_code: int) -> None:
    client = _client(lambda request: httpx.Response(status_code))

    with pytest.raises(TransientFetchError) as exc_info:
        await client.fetch("https://picks.example.com/nba/picks", source="fake-picks")
    await client.close()

    assert exc_info.value.status_code == status_code
    assert exc_info.value.retryable is True


async def test_client_errors_are_not_retried() -> None:
    client = _client(lambda request: httpx.Response(404))

    with pytest.raises(FetchError) as exc_info:
        await client.fetch("https://picks.example.com/missing", source="fake-picks")
    await client.close()

    assert not isinstance(exc_info.value, TransientFetchError)
    assert exc_info.value.retryable is False
    assert exc_info.value.source == "fake-picks"


async def test_connection_failure_is_transient() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = _client(handler)

    with pytest.raises(TransientFetchError):
        await client.fetch("https://picks.example.com/nba/picks", source="fake-picks")
    await client.close()

import time
from types import SimpleNamespace
from unittest.mock import MagicMock

import httpx
import pytest
from selenium.common.exceptions import TimeoutException, WebDriverException

from crawlers.core.exceptions import FetchError, FetchTimeoutError
from crawlers.core.fetcher import BrowserFetcher, FetchConfig, HttpFetcher, PageFetcher


HTTP_CONFIG = FetchConfig(use_browser=False, timeout_ms=5000, wait_time_ms=0)
BROWSER_CONFIG = FetchConfig(use_browser=True, timeout_ms=5000, wait_time_ms=0)


def http_fetcher(handler) -> HttpFetcher:
    return HttpFetcher(transport=httpx.MockTransport(handler))


def mock_driver(page_source="<html><h1>Rendered</h1></html>"):
    driver = MagicMock()
    driver.execute_script.return_value = "complete"
    driver.page_source = page_source
    return driver


def test_config_from_operation_defaults():
    operation = SimpleNamespace(use_browser=False, timeout=None, wait_time=2000)

    config = FetchConfig.from_operation(operation)

    assert config.use_browser is False
    assert config.timeout_ms == 30000
    assert config.wait_time == 2.0


async def test_http_fetch_returns_body_with_browser_headers():
    seen = {}

    def handler(request):
        seen["user_agent"] = request.headers["user-agent"]
        return httpx.Response(200, text="<html>ok</html>")

    content = await http_fetcher(handler).fetch("https://www.nykaa.com/p/1", HTTP_CONFIG)

    assert content == "<html>ok</html>"
    assert "Chrome" in seen["user_agent"]


async def test_http_error_status_is_fetch_error():
    fetcher = http_fetcher(lambda request: httpx.Response(503, text="busy"))

    with pytest.raises(FetchError) as exc_info:
        await fetcher.fetch("https://www.nykaa.com/p/1", HTTP_CONFIG)

    assert exc_info.value.details["statusCode"] == 503
    assert not isinstance(exc_info.value, FetchTimeoutError)


async def test_http_timeout_is_fetch_timeout():
    def handler(request):
        raise httpx.ReadTimeout("read timed out", request=request)

    with pytest.raises(FetchTimeoutError) as exc_info:
        await http_fetcher(handler).fetch("https://www.nykaa.com/p/1", HTTP_CONFIG)

    assert exc_info.value.details["timeout"] == 5000


async def test_http_connection_failure_is_fetch_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(FetchError):
        await http_fetcher(handler).fetch("https://www.nykaa.com/p/1", HTTP_CONFIG)


async def test_browser_fetch_renders_and_quits_session():
    driver = mock_driver()
    fetcher = BrowserFetcher(driver_factory=lambda: driver, max_sessions=1)

    content = await fetcher.fetch("https://www.myntra.com/p/1", BROWSER_CONFIG)

    assert content == "<html><h1>Rendered</h1></html>"
    driver.set_page_load_timeout.assert_called_once_with(5.0)
    driver.get.assert_called_once_with("https://www.myntra.com/p/1")
    driver.quit.assert_called_once()
    assert fetcher.active_sessions == 0


async def test_browser_session_quit_after_navigation_error():
    driver = mock_driver()
    driver.get.side_effect = WebDriverException("net::ERR_NAME_NOT_RESOLVED")
    fetcher = BrowserFetcher(driver_factory=lambda: driver)

    with pytest.raises(FetchError):
        await fetcher.fetch("https://www.myntra.com/p/1", BROWSER_CONFIG)

    driver.quit.assert_called_once()
    assert fetcher.active_sessions == 0


async def test_browser_page_load_timeout():
    driver = mock_driver()
    driver.get.side_effect = TimeoutException("page load timeout")
    fetcher = BrowserFetcher(driver_factory=lambda: driver)

    with pytest.raises(FetchTimeoutError):
        await fetcher.fetch("https://www.myntra.com/p/1", BROWSER_CONFIG)

    driver.quit.assert_called_once()


async def test_browser_ready_state_waits_share_one_timeout():
    driver = mock_driver()
    driver.execute_script.return_value = "loading"
    fetcher = BrowserFetcher(driver_factory=lambda: driver)
    config = FetchConfig(use_browser=True, timeout_ms=1000, wait_time_ms=0)

    started = time.monotonic()
    with pytest.raises(FetchTimeoutError):
        await fetcher.fetch("https://www.myntra.com/p/1", config)

    # complete 대기와 interactive 대기를 합쳐도 timeout을 크게 넘지 않음
    assert time.monotonic() - started < 1.8
    driver.quit.assert_called_once()


async def test_page_fetcher_picks_strategy_per_config():
    driver = mock_driver("<html>browser</html>")
    fetcher = PageFetcher(
        http=http_fetcher(lambda request: httpx.Response(200, text="<html>http</html>")),
        browser=BrowserFetcher(driver_factory=lambda: driver),
    )

    assert await fetcher.fetch("https://www.ajio.com/p/1", HTTP_CONFIG) == "<html>http</html>"
    assert await fetcher.fetch("https://www.ajio.com/p/1", BROWSER_CONFIG) == "<html>browser</html>"

    await fetcher.close()

"""
Page acquisition for scraping operations.

Two strategies share one contract, ``fetch(url, config) -> str``:

* ``HttpFetcher`` issues a plain GET with httpx.
* ``BrowserFetcher`` renders the page in an isolated headless Chrome session
  driven by selenium. The blocking webdriver calls run in a worker thread so
  the event loop keeps serving other operations, and every session is quit
  on the way out.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Optional, Set

import httpx
from selenium import webdriver
from selenium.common.exceptions import TimeoutException, WebDriverException
from selenium.webdriver.chrome.service import Service as ChromeService
from selenium.webdriver.support.ui import WebDriverWait

from config.settings import settings
from crawlers.core.exceptions import FetchError, FetchTimeoutError
from utils.anti_detection import UserAgentRotator, build_chrome_options
from utils.logging import get_logger

# readyState 폴링 간격 (초)
READY_STATE_POLL = 0.2


@dataclass
class FetchConfig:
    """작업별 수집 설정"""
    use_browser: bool = True
    timeout_ms: int = 30000
    wait_time_ms: int = 3000

    @property
    def timeout(self) -> float:
        return self.timeout_ms / 1000

    @property
    def wait_time(self) -> float:
        return self.wait_time_ms / 1000

    @classmethod
    def from_operation(cls, operation) -> "FetchConfig":
        return cls(
            use_browser=bool(operation.use_browser),
            timeout_ms=operation.timeout or settings.fetch.timeout_ms,
            wait_time_ms=operation.wait_time or settings.fetch.wait_time_ms
        )


class HttpFetcher:
    """httpx 기반 단순 GET 수집기"""

    def __init__(self, user_agents: Optional[UserAgentRotator] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.user_agents = user_agents or UserAgentRotator(
            settings.fetch.custom_user_agents, settings.fetch.user_agent_rotation
        )
        self.transport = transport
        self.logger = get_logger("fetcher.http")

    def _headers(self) -> dict:
        return {
            "User-Agent": self.user_agents.get_chrome_agent(),
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-IN,en;q=0.9",
        }

    async def fetch(self, url: str, config: FetchConfig) -> str:
        """URL 본문 반환

        Raises:
            FetchTimeoutError: config.timeout 초과
            FetchError: 네트워크 오류 또는 4xx/5xx 응답
        """
        try:
            async with httpx.AsyncClient(
                headers=self._headers(),
                timeout=config.timeout,
                follow_redirects=True,
                transport=self.transport
            ) as client:
                response = await client.get(url)
                response.raise_for_status()
                self.logger.debug(f"Fetched {url} ({response.status_code}, {len(response.text)} chars)")
                return response.text

        except httpx.TimeoutException as e:
            raise FetchTimeoutError(
                f"Request timed out after {config.timeout_ms}ms: {url}",
                {"url": url, "timeout": config.timeout_ms}
            ) from e
        except httpx.HTTPStatusError as e:
            raise FetchError(
                f"HTTP {e.response.status_code} while fetching {url}",
                {"url": url, "statusCode": e.response.status_code}
            ) from e
        except httpx.HTTPError as e:
            raise FetchError(f"Request failed for {url}: {e}", {"url": url}) from e

    async def close(self) -> None:
        return None


class BrowserFetcher:
    """selenium headless Chrome 렌더링 수집기"""

    def __init__(self, driver_factory: Optional[Callable[[], webdriver.Chrome]] = None,
                 max_sessions: Optional[int] = None,
                 user_agents: Optional[UserAgentRotator] = None):
        self.user_agents = user_agents or UserAgentRotator(
            settings.fetch.custom_user_agents, settings.fetch.user_agent_rotation
        )
        self._driver_factory = driver_factory or self._create_driver
        self._semaphore = asyncio.Semaphore(max_sessions or settings.fetch.max_browser_sessions)
        self._active_drivers: Set[webdriver.Chrome] = set()
        self.logger = get_logger("fetcher.browser")

    @property
    def active_sessions(self) -> int:
        return len(self._active_drivers)

    def _create_driver(self) -> webdriver.Chrome:
        """Selenium WebDriver 초기화"""
        options = build_chrome_options(
            self.user_agents.get_chrome_agent(),
            headless=settings.fetch.headless_mode,
            disable_images=settings.fetch.disable_images
        )

        if settings.fetch.chrome_driver_path:
            service = ChromeService(executable_path=settings.fetch.chrome_driver_path)
            return webdriver.Chrome(service=service, options=options)
        return webdriver.Chrome(options=options)

    async def fetch(self, url: str, config: FetchConfig) -> str:
        """렌더링된 문서 반환"""
        async with self._semaphore:
            return await asyncio.to_thread(self._render, url, config)

    def _render(self, url: str, config: FetchConfig) -> str:
        driver = None
        try:
            driver = self._driver_factory()
            self._active_drivers.add(driver)

            # 페이지 로드와 readyState 대기가 하나의 timeout을 나눠 씀
            deadline = time.monotonic() + config.timeout
            driver.set_page_load_timeout(config.timeout)
            driver.get(url)

            # 엄격한 대기(complete) 실패 시 interactive 상태로 완화
            try:
                WebDriverWait(driver, self._remaining(deadline), poll_frequency=READY_STATE_POLL).until(
                    lambda d: d.execute_script("return document.readyState") == "complete"
                )
            except TimeoutException:
                self.logger.warning(f"Page did not reach 'complete' state, falling back: {url}")
                WebDriverWait(driver, self._remaining(deadline), poll_frequency=READY_STATE_POLL).until(
                    lambda d: d.execute_script("return document.readyState") in ("interactive", "complete")
                )

            # 클라이언트 렌더링 대기
            if config.wait_time > 0:
                time.sleep(config.wait_time)

            content = driver.page_source
            self.logger.debug(f"Rendered {url} ({len(content)} chars)")
            return content

        except TimeoutException as e:
            raise FetchTimeoutError(
                f"Page load timed out after {config.timeout_ms}ms: {url}",
                {"url": url, "timeout": config.timeout_ms}
            ) from e
        except WebDriverException as e:
            raise FetchError(f"Browser rendering failed for {url}: {e.msg or e}", {"url": url}) from e

        finally:
            if driver is not None:
                self._quit(driver)

    @staticmethod
    def _remaining(deadline: float) -> float:
        return max(deadline - time.monotonic(), 0.0)

    def _quit(self, driver) -> None:
        try:
            driver.quit()
        except WebDriverException as e:
            self.logger.warning(f"Error closing browser session: {e}")
        finally:
            self._active_drivers.discard(driver)

    async def close(self) -> None:
        """남아있는 브라우저 세션 모두 종료"""
        drivers = list(self._active_drivers)
        for driver in drivers:
            await asyncio.to_thread(self._quit, driver)
        if drivers:
            self.logger.info(f"Closed {len(drivers)} open browser session(s)")


class PageFetcher:
    """작업 설정에 따라 수집 전략을 선택하는 파사드"""

    def __init__(self, http: Optional[HttpFetcher] = None,
                 browser: Optional[BrowserFetcher] = None):
        self.http = http or HttpFetcher()
        self._browser = browser

    @property
    def browser(self) -> BrowserFetcher:
        if self._browser is None:
            self._browser = BrowserFetcher()
        return self._browser

    async def fetch(self, url: str, config: FetchConfig) -> str:
        if config.use_browser:
            return await self.browser.fetch(url, config)
        return await self.http.fetch(url, config)

    async def close(self) -> None:
        await self.http.close()
        if self._browser is not None:
            await self._browser.close()

"""
Browser identity helpers for page fetching.

Provides user-agent rotation and the headless Chrome options used by the
browser fetcher.
"""

import random
from typing import List, Optional

from fake_useragent import UserAgent
from selenium.webdriver.chrome.options import Options as ChromeOptions

from utils.logging import get_logger


DEFAULT_BROWSER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class UserAgentRotator:
    """User-Agent 로테이션 관리"""

    def __init__(self, custom_agents: Optional[List[str]] = None, rotate: bool = True):
        self.logger = get_logger("user_agent_rotator")
        self.rotate = rotate
        self._ua_generator: Optional[UserAgent] = None

        # 데스크톱 브라우저 User-Agent 풀
        self.default_agents = [
            DEFAULT_BROWSER_AGENT,
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36",
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36 Edg/120.0.0.0",
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
        ]

        # 커스텀 에이전트가 있으면 추가
        if custom_agents:
            self.default_agents.extend(custom_agents)

    def _generator(self) -> UserAgent:
        if self._ua_generator is None:
            self._ua_generator = UserAgent()
        return self._ua_generator

    def get_random_agent(self) -> str:
        """랜덤 User-Agent 반환"""
        if not self.rotate:
            return DEFAULT_BROWSER_AGENT

        # 80% 확률로 미리 정의된 User-Agent 사용
        if random.random() < 0.8:
            return random.choice(self.default_agents)

        try:
            return self._generator().random
        except Exception as e:
            self.logger.debug(f"fake-useragent unavailable, using default agent: {e}")
            return DEFAULT_BROWSER_AGENT

    def get_chrome_agent(self) -> str:
        """Chrome User-Agent 반환"""
        if not self.rotate:
            return DEFAULT_BROWSER_AGENT
        chrome_agents = [ua for ua in self.default_agents if 'Chrome' in ua and 'Edg' not in ua]
        return random.choice(chrome_agents)


def build_chrome_options(user_agent: str, headless: bool = True,
                         disable_images: bool = True) -> ChromeOptions:
    """격리된 headless Chrome 세션용 옵션"""
    options = ChromeOptions()

    if headless:
        options.add_argument("--headless=new")

    options.add_argument("--no-sandbox")
    options.add_argument("--disable-dev-shm-usage")
    options.add_argument("--disable-gpu")
    options.add_argument("--disable-extensions")
    options.add_argument("--window-size=1920,1080")
    options.add_argument(f"--user-agent={user_agent}")
    options.add_argument("--disable-blink-features=AutomationControlled")
    options.add_experimental_option("excludeSwitches", ["enable-automation"])

    prefs = {
        "profile.default_content_setting_values": {
            "notifications": 2,  # 알림 차단
            "popups": 2,  # 팝업 차단
        },
    }
    if disable_images:
        prefs["profile.managed_default_content_settings.images"] = 2
    options.add_experimental_option("prefs", prefs)

    # 네트워크 유휴까지 기다리지 않고 DOM 준비 후 제어 반환
    options.page_load_strategy = "eager"

    return options

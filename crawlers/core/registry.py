"""
Seller to scraper adapter resolution.

Adapters live in modules under ``crawlers.platforms`` and expose their
implementation as the module attribute ``scraper`` (a class, a ready-made
instance or a factory) or as a ``create_scraper`` factory function.
"""

import importlib
import inspect
import re
from typing import Any, Callable, Dict, List, Optional

from crawlers.core.exceptions import AdapterNotFoundError
from utils.logging import get_logger


async def _maybe_await(value):
    if inspect.isawaitable(value):
        return await value
    return value


class ScraperAdapter:
    """판매처 스크래퍼를 단일 인터페이스로 감싼 래퍼"""

    def __init__(self, seller: str, implementation: Any):
        self.seller = seller
        self.implementation = implementation

        product = getattr(implementation, "scrape_product", None)
        if not callable(product):
            raise TypeError(f"Adapter for {seller} does not expose scrape_product()")
        self._scrape_product = product

        category = getattr(implementation, "scrape_category", None)
        self._scrape_category = category if callable(category) else None

    @property
    def supports_category(self) -> bool:
        return self._scrape_category is not None

    async def scrape_product(self, page_content: str):
        return await _maybe_await(self._scrape_product(page_content))

    async def scrape_category(self, page_content: str) -> Dict[str, Any]:
        if self._scrape_category is None:
            raise NotImplementedError(f"Adapter for {self.seller} has no category support")
        return await _maybe_await(self._scrape_category(page_content))

    async def close(self) -> None:
        close = getattr(self.implementation, "close", None)
        if callable(close):
            await _maybe_await(close())

    def __repr__(self) -> str:
        return f"<ScraperAdapter(seller={self.seller}, impl={type(self.implementation).__name__})>"


class AdapterRegistry:
    """판매처 식별자를 스크래퍼 어댑터로 해석하는 레지스트리"""

    # 명명 규칙과 맞지 않는 판매처
    ALIASES = {
        "1mg": "one_mg",
        "swiggy-instamart": "swiggy_instamart",
    }

    def __init__(self, package: str = "crawlers.platforms",
                 aliases: Optional[Dict[str, str]] = None):
        self.package = package
        self.aliases = dict(self.ALIASES)
        if aliases:
            self.aliases.update(aliases)

        self._sources: Dict[str, Any] = {}
        self.logger = get_logger("registry")

    def register(self, seller: str, source: Any) -> None:
        """판매처에 어댑터 소스(클래스, 인스턴스, 팩토리) 등록"""
        self._sources[seller] = source
        self.logger.debug(f"Registered scraper source for {seller}")

    def register_scraper(self, seller: str) -> Callable:
        """클래스/팩토리 등록용 데코레이터"""
        def decorator(source):
            self.register(seller, source)
            return source
        return decorator

    def candidates(self, seller: str) -> List[str]:
        """판매처 식별자에서 파생한 모듈 이름 후보"""
        names: List[str] = []
        alias = self.aliases.get(seller)
        if alias:
            names.append(alias)

        lowered = seller.lower()
        parts = [p for p in re.split(r'[^a-z0-9]+', lowered) if p]
        if parts:
            stripped = "".join(parts)
            snake = "_".join(parts)
            camel = parts[0] + "".join(p.capitalize() for p in parts[1:])
            for name in (stripped, snake, camel):
                if name not in names:
                    names.append(name)

        return names

    def resolve(self, seller: str) -> ScraperAdapter:
        """판매처에 해당하는 어댑터 반환

        Raises:
            AdapterNotFoundError: 적재 가능한 후보가 없거나 어댑터 생성에 실패한 경우
        """
        source = self._sources.get(seller)
        tried: List[str] = []
        loaded = source is None

        if loaded:
            source, tried = self._load(seller)
            if source is None:
                self.logger.warning(f"No scraper adapter found for {seller} (tried: {tried})")
                raise AdapterNotFoundError(seller, tried)

        try:
            adapter = ScraperAdapter(seller, self._instantiate(source))
        except Exception as e:
            self.logger.error(f"Failed to build scraper adapter for {seller}: {e}")
            raise AdapterNotFoundError(seller, tried) from e

        # 어댑터 생성에 성공한 모듈만 캐시
        if loaded:
            self._sources[seller] = source
        return adapter

    def _load(self, seller: str):
        tried: List[str] = []
        for name in self.candidates(seller):
            module_name = f"{self.package}.{name}"
            tried.append(module_name)

            try:
                module = importlib.import_module(module_name)
            except ModuleNotFoundError as e:
                if e.name != module_name:
                    self.logger.error(f"Scraper module {module_name} has a missing dependency: {e}")
                continue
            except Exception as e:
                self.logger.error(f"Failed to import scraper module {module_name}: {e}")
                continue

            source = getattr(module, "scraper", None) or getattr(module, "create_scraper", None)
            if source is None:
                self.logger.warning(f"Module {module_name} exposes no scraper")
                continue

            self.logger.info(f"Loaded scraper for {seller} from {module_name}")
            return source, tried

        return None, tried

    @staticmethod
    def _instantiate(source: Any) -> Any:
        # 클래스: 매번 새 인스턴스
        if inspect.isclass(source):
            return source()
        # 이미 메서드를 가진 단일 객체
        if callable(getattr(source, "scrape_product", None)):
            return source
        # 팩토리 함수
        if callable(source):
            return source()
        raise TypeError(f"Unsupported scraper source: {source!r}")

    def list_sellers(self) -> List[str]:
        """등록 또는 캐시된 판매처 목록"""
        return sorted(self._sources)

    def clear(self) -> None:
        """캐시 초기화"""
        self._sources.clear()
        self.logger.debug("Scraper registry cache cleared")

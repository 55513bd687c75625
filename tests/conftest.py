import asyncio
from datetime import timedelta

import pytest
from sqlalchemy import update

from crawlers.core.registry import AdapterRegistry
from crawlers.core.service import build_service
from models.base import utc_now
from models.scraping_operation import ScrapingOperation
from storage.connection import DatabaseManager
from storage.log_store import LogStore
from storage.operation_store import OperationStore
from storage.result_files import ResultFileStore


PRODUCT_URL = "https://www.flipkart.com/item/p/itm001"
CATEGORY_URL = "https://www.flipkart.com/mobiles"


class EchoScraper:
    """페이지 본문을 그대로 상품명으로 돌려주는 테스트용 스크래퍼"""

    def scrape_product(self, page_content):
        if "broken" in page_content:
            raise ValueError("cannot parse product block")
        return {"productName": page_content.strip(), "sellingPrice": 100.0}


class ListingScraper(EchoScraper):
    """카테고리 추출을 지원하는 테스트용 스크래퍼"""

    def scrape_category(self, page_content):
        names = [line.strip() for line in page_content.splitlines() if line.strip()]
        return {
            "products": [{"productName": name} for name in names],
            "totalProducts": len(names),
        }


class FakeFetcher:
    """URL별 응답/예외를 미리 지정하는 수집기"""

    def __init__(self, delay: float = 0):
        self.pages = {}
        self.errors = {}
        self.delay = delay
        self.calls = []
        self.active = 0
        self.max_active = 0
        self.closed = False

    async def fetch(self, url, config):
        self.calls.append(url)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if url in self.errors:
                raise self.errors[url]
            return self.pages.get(url, f"product at {url}")
        finally:
            self.active -= 1

    async def close(self):
        self.closed = True


@pytest.fixture
async def database(tmp_path):
    db = DatabaseManager(f"sqlite+aiosqlite:///{tmp_path / 'scrape_hub.db'}")
    await db.create_tables()
    yield db
    await db.close()


@pytest.fixture
def operations(database):
    return OperationStore(database)


@pytest.fixture
def logs(database):
    return LogStore(database)


@pytest.fixture
def result_files(tmp_path):
    return ResultFileStore(tmp_path / "results")


@pytest.fixture
def registry():
    registry = AdapterRegistry()
    registry.register("flipkart", EchoScraper)
    registry.register("amazon", ListingScraper)
    return registry


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
async def service(database, registry, fetcher, result_files):
    service = build_service(
        database=database,
        registry=registry,
        fetcher=fetcher,
        result_files=result_files,
        request_delay=0,
        category_link_limit=10,
        store_inline=True,
        interval_ms=1000,
        concurrency=3,
        min_interval_ms=1000,
    )
    yield service
    await service.shutdown()


def operation_payload(url=PRODUCT_URL, seller="flipkart", **overrides):
    payload = {"url": url, "seller": seller, "type": "product"}
    payload.update(overrides)
    return payload


async def age_operation(database, operation_id, days):
    """작업 생성 시각을 days일 전으로 이동"""
    async with database.get_session() as session:
        await session.execute(
            update(ScrapingOperation)
            .where(ScrapingOperation.id == operation_id)
            .values(created_at=utc_now() - timedelta(days=days))
        )

"""
Single-operation execution engine.

``ScrapingOrchestrator.execute_operation`` drives one operation end to end:
claim it, resolve the seller adapter, fetch the page, extract the products,
persist the result and record the outcome on both the operation and its
scrape log. Execution-phase failures are recorded before being re-raised so
the operation never stays dangling in ``in_progress``.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from config.settings import settings
from crawlers.core.exceptions import (
    ExtractionError,
    ScrapeHubError,
    error_details,
)
from crawlers.core.fetcher import FetchConfig, PageFetcher
from crawlers.core.registry import AdapterRegistry, ScraperAdapter
from models.base import OperationStatus, OperationType, isoformat, utc_now
from models.scraping_operation import ScrapingOperation
from storage.log_store import LogStore
from storage.operation_store import OperationStore
from storage.result_files import ResultFileStore
from utils.logging import (
    get_logger,
    log_operation_error,
    log_operation_start,
    log_operation_success,
)


# 카테고리 폴백 시 상품 링크 셀렉터
PRODUCT_LINK_SELECTORS = [
    'a[href*="/product/"]',
    'a[href*="/p/"]',
    'a[href*="/dp/"]',
    '.product-link',
    '.product-item a',
]


@dataclass
class OperationResult:
    """작업 실행 결과"""
    operation: ScrapingOperation
    scraped_data: Any
    total_products: int


def extract_product_links(page_content: str, base_url: str, limit: int) -> List[str]:
    """카테고리 페이지에서 상품 링크 추출 (절대 URL, 중복 제거, 최대 limit개)"""
    soup = BeautifulSoup(page_content or "", "html.parser")
    links: List[str] = []

    for selector in PRODUCT_LINK_SELECTORS:
        for element in soup.select(selector):
            href = element.get("href")
            if not href:
                continue
            full_url = urljoin(base_url, href.strip())
            if full_url not in links:
                links.append(full_url)

    return links[:limit]


def as_product_dict(record: Any, url: str) -> Dict[str, Any]:
    """어댑터 결과를 딕셔너리로 정규화"""
    if hasattr(record, "to_dict"):
        data = record.to_dict()
    elif isinstance(record, dict):
        data = dict(record)
    else:
        raise ExtractionError(
            f"Adapter returned an unsupported result type: {type(record).__name__}",
            {"url": url}
        )
    data["url"] = url
    return data


class ScrapingOrchestrator:
    """단일 스크래핑 작업 실행기"""

    def __init__(self, operations: OperationStore, logs: LogStore,
                 registry: AdapterRegistry, fetcher: PageFetcher,
                 result_files: ResultFileStore,
                 category_link_limit: Optional[int] = None,
                 request_delay: Optional[float] = None,
                 store_inline: Optional[bool] = None):
        self.operations = operations
        self.logs = logs
        self.registry = registry
        self.fetcher = fetcher
        self.result_files = result_files

        self.category_link_limit = (
            category_link_limit if category_link_limit is not None
            else settings.processor.category_link_limit
        )
        self.request_delay = (
            request_delay if request_delay is not None
            else settings.processor.request_delay
        )
        self.store_inline = (
            store_inline if store_inline is not None
            else settings.storage.store_inline_results
        )

        self.logger = get_logger("orchestrator")

    async def execute_operation(self, operation_id: str) -> OperationResult:
        """작업 실행

        Raises:
            NotFoundError: 작업이 없는 경우 (기록 없이 전파)
            ConflictError: pending 상태가 아닌 경우 (기록 없이 전파)
            ScrapeHubError: 실행 단계 실패 (failed로 기록한 뒤 전파)
        """
        await self.operations.get(operation_id)
        operation = await self.operations.mark_started(operation_id)

        start_time = time.time()
        log_operation_start(operation.to_dict(include_payload=False))

        try:
            await self.logs.update_for_operation(
                operation, OperationStatus.IN_PROGRESS.value, "System"
            )

            adapter = self.registry.resolve(operation.seller)
            config = FetchConfig.from_operation(operation)

            if operation.type == OperationType.CATEGORY.value:
                scraped_data, total_products, failed_products = await self._scrape_category(
                    operation, adapter, config
                )
            else:
                scraped_data = await self._scrape_product(operation.url, adapter, config)
                total_products, failed_products = 1, 0

            data_file = self.result_files.write(operation.seller, operation.type, scraped_data)

            try:
                operation = await self.operations.mark_completed(
                    operation.id,
                    scraped_data,
                    total_products,
                    data_file=data_file,
                    failed_products=failed_products,
                    store_inline=self.store_inline
                )
            except ScrapeHubError:
                # 완료 기록에 실패하면 가리키는 작업이 없는 결과 파일을 남기지 않음
                self.result_files.delete(data_file)
                raise

        except ScrapeHubError as e:
            await self._record_failure(operation, e)
            log_operation_error(operation.id, e, operation.retry_count)
            raise

        except Exception as e:
            # 어댑터 내부의 예상치 못한 예외는 추출 실패로 취급
            error = ExtractionError(str(e) or type(e).__name__, {"exception": type(e).__name__})
            await self._record_failure(operation, error, e)
            log_operation_error(operation.id, error, operation.retry_count)
            raise error from e

        await self.logs.update_for_operation(operation, OperationStatus.SUCCESS.value, "System")
        log_operation_success(operation.id, total_products, time.time() - start_time)

        return OperationResult(
            operation=operation,
            scraped_data=scraped_data,
            total_products=total_products
        )

    async def _record_failure(self, operation: ScrapingOperation, error: ScrapeHubError,
                              original: Optional[BaseException] = None) -> None:
        """실패를 작업과 로그에 기록 (기록 실패는 로그만 남김)"""
        details = error_details(original or error)
        details["code"] = error.code

        try:
            failed = await self.operations.mark_failed(operation.id, error.message, details)
        except ScrapeHubError as record_error:
            self.logger.error(
                f"Could not record failure of operation {operation.id}: {record_error}"
            )
            return

        await self.logs.update_for_operation(failed, OperationStatus.FAILED.value, "System")

    async def _scrape_product(self, url: str, adapter: ScraperAdapter,
                              config: FetchConfig) -> Dict[str, Any]:
        """단일 상품 수집 및 추출"""
        content = await self.fetcher.fetch(url, config)
        record = await adapter.scrape_product(content)
        return as_product_dict(record, url)

    async def _scrape_category(self, operation: ScrapingOperation, adapter: ScraperAdapter,
                               config: FetchConfig) -> Tuple[Dict[str, Any], int, int]:
        """카테고리 수집: (결과, 상품 수, 실패한 링크 수)"""
        content = await self.fetcher.fetch(operation.url, config)

        if adapter.supports_category:
            result = await adapter.scrape_category(content)
            if not isinstance(result, dict):
                raise ExtractionError(
                    f"Category adapter for {operation.seller} returned {type(result).__name__}",
                    {"url": operation.url}
                )
            products = result.get("products")
            return result, len(products) if isinstance(products, list) else 0, 0

        # 범용 폴백: 상품 링크를 하나씩 수집
        links = extract_product_links(content, operation.url, self.category_link_limit)
        self.logger.info(
            f"Adapter for {operation.seller} has no category support, "
            f"falling back to {len(links)} product link(s)"
        )

        products = []
        failed = 0
        for index, link in enumerate(links):
            if index > 0 and self.request_delay > 0:
                await asyncio.sleep(self.request_delay)

            try:
                products.append(await self._scrape_product(link, adapter, config))
            except Exception as e:
                failed += 1
                self.logger.warning(f"Error scraping product {link}: {e}")

        result = {
            "categoryUrl": operation.url,
            "scrapedAt": isoformat(utc_now()),
            "totalProducts": len(products),
            "products": products,
        }
        return result, len(products), failed

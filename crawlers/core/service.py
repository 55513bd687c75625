"""
Service container for the scraping engine.

Wires the stores, the adapter registry, the fetch layer, the orchestrator
and the job processor together, and owns the submission and manual
lifecycle contract used by the HTTP API and the CLI.
"""

from typing import Any, Dict, List, Optional

from crawlers.core.exceptions import NotFoundError, ScrapeHubError, ValidationError
from crawlers.core.fetcher import PageFetcher
from crawlers.core.orchestrator import ScrapingOrchestrator
from crawlers.core.processor import JobProcessor
from crawlers.core.registry import AdapterRegistry
from models.base import OperationStatus
from models.scraping_operation import ScrapingOperation
from storage.connection import DatabaseManager, db_manager
from storage.log_store import LogStore
from storage.operation_store import OperationFilters, OperationStore
from storage.result_files import ResultFileStore
from utils.logging import get_logger


MANUAL_ACTION = "Manual"


class ScrapingService:
    """작업 제출/수동 상태 전이/결과 조회를 담당하는 서비스"""

    def __init__(self, operations: OperationStore, logs: LogStore, registry: AdapterRegistry,
                 fetcher: PageFetcher, result_files: ResultFileStore,
                 orchestrator: ScrapingOrchestrator, processor: JobProcessor,
                 database: Optional[DatabaseManager] = None):
        self.operations = operations
        self.logs = logs
        self.registry = registry
        self.fetcher = fetcher
        self.result_files = result_files
        self.orchestrator = orchestrator
        self.processor = processor
        self.database = database or operations.db
        self.logger = get_logger("service")

    # 제출

    async def submit(self, payload: Dict[str, Any],
                     request_meta: Optional[Dict[str, Any]] = None) -> ScrapingOperation:
        """작업 생성 후 pending 로그 기록"""
        operation = await self.operations.create(payload, request_meta)
        await self.logs.append(operation, OperationStatus.PENDING.value, MANUAL_ACTION)
        return operation

    async def submit_many(self, payloads: List[Dict[str, Any]],
                          request_meta: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """여러 작업을 개별적으로 제출하고 항목별 결과 반환"""
        results = []
        for index, payload in enumerate(payloads):
            try:
                operation = await self.submit(payload, request_meta)
                results.append({
                    "index": index,
                    "success": True,
                    "operation": operation.to_dict(include_payload=False),
                })
            except ScrapeHubError as e:
                results.append({
                    "index": index,
                    "success": False,
                    "url": payload.get("url") if isinstance(payload, dict) else None,
                    "error": e.to_dict(),
                })
        return results

    # 수동 상태 전이

    async def start(self, operation_id: str) -> ScrapingOperation:
        operation = await self.operations.mark_started(operation_id)
        await self.logs.update_for_operation(operation, OperationStatus.IN_PROGRESS.value, MANUAL_ACTION)
        return operation

    async def complete(self, operation_id: str, scraped_data: Any = None,
                       total_products: Optional[int] = None,
                       data_file: Optional[str] = None) -> ScrapingOperation:
        """외부에서 수집한 결과로 작업 완료 처리"""
        if total_products is None:
            products = scraped_data.get("products") if isinstance(scraped_data, dict) else None
            total_products = len(products) if isinstance(products, list) else (1 if scraped_data else 0)

        if isinstance(total_products, bool) or not isinstance(total_products, int) or total_products < 0:
            raise ValidationError(
                "totalProducts must be a non-negative integer",
                {"errors": [{"field": "totalProducts", "message": "must be >= 0"}]}
            )

        operation = await self.operations.mark_completed(
            operation_id, scraped_data, total_products, data_file=data_file
        )
        await self.logs.update_for_operation(operation, OperationStatus.SUCCESS.value, MANUAL_ACTION)
        return operation

    async def fail(self, operation_id: str, message: Optional[str],
                   details: Optional[Dict[str, Any]] = None) -> ScrapingOperation:
        operation = await self.operations.mark_failed(
            operation_id, message or "Marked as failed", details
        )
        await self.logs.update_for_operation(operation, OperationStatus.FAILED.value, MANUAL_ACTION)
        return operation

    async def retry(self, operation_id: str) -> ScrapingOperation:
        """failed 작업을 다시 pending으로 (다음 처리 주기에 실행됨)"""
        operation = await self.operations.increment_retry(operation_id)
        await self.logs.update_for_operation(operation, OperationStatus.PENDING.value, MANUAL_ACTION)
        return operation

    async def cancel(self, operation_id: str) -> ScrapingOperation:
        operation = await self.operations.cancel(operation_id)
        await self.logs.update_for_operation(operation, OperationStatus.CANCELLED.value, MANUAL_ACTION)
        return operation

    async def update_operation(self, operation_id: str, changes: Dict[str, Any]) -> ScrapingOperation:
        """메모/태그/진행률 수정, status=cancelled이면 취소 로그도 기록"""
        operation = await self.operations.update(operation_id, changes)
        if changes.get("status") == OperationStatus.CANCELLED.value:
            await self.logs.update_for_operation(operation, OperationStatus.CANCELLED.value, MANUAL_ACTION)
        return operation

    # 조회/삭제

    async def get_operation_data(self, operation_id: str) -> Any:
        """완료된 작업의 결과 (인라인 우선, 없으면 결과 파일)

        Raises:
            NotFoundError: 작업이 없거나 success가 아니거나 결과가 없는 경우
        """
        operation = await self.operations.get(operation_id)

        if operation.status != OperationStatus.SUCCESS.value:
            raise NotFoundError(
                "Operation has not completed successfully",
                {"operationId": operation_id, "status": operation.status}
            )

        if operation.scraped_data is not None:
            return operation.scraped_data

        if operation.data_file:
            try:
                return self.result_files.read(operation.data_file)
            except ScrapeHubError as e:
                self.logger.error(f"Error reading data file for operation {operation_id}: {e}")

        raise NotFoundError("No scraped data available", {"operationId": operation_id})

    async def delete_operation(self, operation_id: str) -> ScrapingOperation:
        """작업과 결과 파일 삭제"""
        operation = await self.operations.delete(operation_id)
        self.result_files.delete(operation.data_file)
        return operation

    async def get_stats(self, filters: Optional[OperationFilters] = None,
                        recent_limit: int = 5) -> Dict[str, Any]:
        """상태별/판매처별 집계와 최근 작업"""
        recent = await self.operations.get_recent_operations(recent_limit)
        return {
            "statusStats": await self.operations.get_status_stats(filters),
            "sellerStats": await self.operations.get_seller_stats(),
            "recentOperations": [op.to_dict(include_payload=False) for op in recent],
            "summary": await self.operations.get_summary(filters),
        }

    async def shutdown(self) -> None:
        """프로세서 종료, 수집 세션과 어댑터 캐시 정리"""
        await self.processor.shutdown()
        self.registry.clear()


def build_service(database: Optional[DatabaseManager] = None,
                  registry: Optional[AdapterRegistry] = None,
                  fetcher: Optional[PageFetcher] = None,
                  result_files: Optional[ResultFileStore] = None,
                  **processor_options) -> ScrapingService:
    """설정값으로 서비스 구성"""
    database = database or db_manager
    operations = OperationStore(database)
    logs = LogStore(database)
    registry = registry or AdapterRegistry()
    fetcher = fetcher or PageFetcher()
    result_files = result_files or ResultFileStore()

    orchestrator = ScrapingOrchestrator(
        operations, logs, registry, fetcher, result_files,
        category_link_limit=processor_options.pop("category_link_limit", None),
        request_delay=processor_options.pop("request_delay", None),
        store_inline=processor_options.pop("store_inline", None),
    )
    processor = JobProcessor(
        operations, orchestrator, result_files, fetcher=fetcher, **processor_options
    )

    return ScrapingService(
        operations, logs, registry, fetcher, result_files, orchestrator, processor,
        database=database
    )

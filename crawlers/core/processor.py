"""
Background job processor.

Polls the operation store for pending operations and runs them through the
orchestrator in fixed-size chunks: every operation of a chunk runs
concurrently and the next chunk only starts once the previous one has fully
settled. Processing passes never overlap; a scheduled tick that finds a pass
still running is skipped, and a manual trigger waits for it to finish.
"""

import asyncio
import time
from datetime import timedelta
from typing import Any, Dict, List, Optional

from config.settings import settings
from crawlers.core.exceptions import ProcessorNotRunningError, ScrapeHubError, ValidationError
from crawlers.core.fetcher import PageFetcher
from crawlers.core.orchestrator import ScrapingOrchestrator
from models.base import isoformat, utc_now
from models.scraping_operation import ScrapingOperation
from storage.operation_store import OperationStore
from storage.result_files import ResultFileStore
from utils.logging import get_logger, log_processor_metrics


def chunked(items: List[Any], size: int) -> List[List[Any]]:
    """리스트를 size 크기의 청크로 분할"""
    return [items[i:i + size] for i in range(0, len(items), size)]


class JobProcessor:
    """pending 작업을 주기적으로 실행하는 프로세서"""

    def __init__(self, operations: OperationStore, orchestrator: ScrapingOrchestrator,
                 result_files: ResultFileStore, fetcher: Optional[PageFetcher] = None,
                 interval_ms: Optional[int] = None, concurrency: Optional[int] = None,
                 min_interval_ms: Optional[int] = None):
        self.operations = operations
        self.orchestrator = orchestrator
        self.result_files = result_files
        self.fetcher = fetcher

        self.processing_interval_ms = interval_ms or settings.processor.interval_ms
        self.min_interval_ms = min_interval_ms or settings.processor.min_interval_ms
        self.concurrency = concurrency or settings.processor.concurrency
        self._validate_interval(self.processing_interval_ms)

        self.is_processing = False
        self._schedule_task: Optional[asyncio.Task] = None
        self._pass_lock = asyncio.Lock()

        self.logger = get_logger("processor")

        # 성능 메트릭
        self.stats = {
            'passes': 0,
            'processed_operations': 0,
            'successful_operations': 0,
            'failed_operations': 0,
            'last_pass_at': None,
            'start_time': time.time()
        }

    # 스케줄 제어

    def start(self) -> None:
        """프로세서 시작 (즉시 1회 처리 후 주기 실행), 이미 실행 중이면 무시"""
        if self.is_processing:
            self.logger.info("Job processor is already running")
            return

        self.logger.info(f"Starting job processor (interval: {self.processing_interval_ms}ms)")
        self.is_processing = True
        self._schedule_task = asyncio.create_task(self._run_schedule())

    def stop(self) -> None:
        """주기 실행 중지 (진행 중인 처리는 끝까지 실행됨)"""
        if not self.is_processing:
            self.logger.info("Job processor is not running")
            return

        self.logger.info("Stopping job processor...")
        self.is_processing = False

        if self._schedule_task is not None:
            self._schedule_task.cancel()
            self._schedule_task = None

    def _validate_interval(self, interval_ms: int) -> None:
        if interval_ms < self.min_interval_ms:
            raise ValidationError(
                f"Processing interval must be at least {self.min_interval_ms}ms",
                {"errors": [{"field": "intervalMs", "message": f"must be >= {self.min_interval_ms}"}]}
            )

    def set_interval(self, interval_ms: int) -> None:
        """처리 주기 변경, 실행 중이면 새 주기로 재시작"""
        self._validate_interval(interval_ms)

        self.processing_interval_ms = interval_ms
        self.logger.info(f"Processing interval updated to {interval_ms}ms")

        if self.is_processing:
            self.stop()
            self.start()

    async def shutdown(self) -> None:
        """중지 후 진행 중인 처리를 기다리고 수집 세션 정리"""
        self.stop()

        async with self._pass_lock:
            pass

        if self.fetcher is not None:
            await self.fetcher.close()

        runtime = time.time() - self.stats['start_time']
        self.logger.info(f"Job processor shut down after {runtime:.1f} seconds")

    async def _run_schedule(self) -> None:
        while True:
            if self._pass_lock.locked():
                self.logger.debug("Previous processing pass still running, skipping tick")
            else:
                # 스케줄 취소가 진행 중인 처리로 전파되지 않도록 분리
                current = asyncio.create_task(self.process_pending())
                try:
                    await asyncio.shield(current)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    self.logger.error(f"Error in processing schedule: {e}")

            await asyncio.sleep(self.processing_interval_ms / 1000)

    # 처리

    async def trigger_processing(self) -> Dict[str, Any]:
        """스케줄과 별개로 즉시 1회 처리

        Raises:
            ProcessorNotRunningError: 프로세서가 시작되지 않은 경우
        """
        if not self.is_processing:
            raise ProcessorNotRunningError()
        return await self.process_pending()

    async def process_pending(self) -> Dict[str, Any]:
        """pending 작업 1회 처리 (오래된 순, 청크 단위)"""
        async with self._pass_lock:
            summary = {'pending': 0, 'processed': 0, 'successful': 0, 'failed': 0}
            started = time.time()

            try:
                pending = await self.operations.find_pending()
                summary['pending'] = len(pending)
                if not pending:
                    return summary

                self.logger.info(f"Processing {len(pending)} pending operations...")

                for chunk in chunked(pending, self.concurrency):
                    results = await asyncio.gather(
                        *(self._process_operation(operation) for operation in chunk),
                        return_exceptions=True
                    )
                    for succeeded in results:
                        summary['processed'] += 1
                        if succeeded is True:
                            summary['successful'] += 1
                        else:
                            summary['failed'] += 1

            except Exception as e:
                # 처리 전체가 실패해도 다음 주기는 계속된다
                self.logger.error(f"Error processing jobs: {e}")

            finally:
                self._record_pass(summary, time.time() - started)

            return summary

    async def _process_operation(self, operation: ScrapingOperation) -> bool:
        try:
            self.logger.info(
                f"Processing operation {operation.id} for {operation.seller} - {operation.url}"
            )
            result = await self.orchestrator.execute_operation(operation.id)
            self.logger.info(
                f"Operation {operation.id} completed successfully. "
                f"Products scraped: {result.total_products}"
            )
            return True

        except ScrapeHubError as e:
            self.logger.error(f"Error processing operation {operation.id}: {e.message}")
            return False
        except Exception as e:
            self.logger.error(f"Unexpected error processing operation {operation.id}: {e}")
            return False

    def _record_pass(self, summary: Dict[str, Any], elapsed: float) -> None:
        self.stats['passes'] += 1
        self.stats['processed_operations'] += summary['processed']
        self.stats['successful_operations'] += summary['successful']
        self.stats['failed_operations'] += summary['failed']
        self.stats['last_pass_at'] = utc_now()

        if summary['processed']:
            log_processor_metrics({
                **summary,
                'elapsed_seconds': round(elapsed, 3),
                'concurrency': self.concurrency,
            })

    # 유지보수

    async def retry_failed_operations(self) -> List[Dict[str, Any]]:
        """재시도 가능한 failed 작업을 pending으로 되돌리고 동시에 실행"""
        async with self._pass_lock:
            failed = await self.operations.find_retryable()
            self.logger.info(f"Retrying {len(failed)} failed operations...")

            results = await asyncio.gather(
                *(self._retry_operation(operation) for operation in failed),
                return_exceptions=True
            )

        entries = []
        for operation, result in zip(failed, results):
            if isinstance(result, BaseException):
                error = result.to_dict() if isinstance(result, ScrapeHubError) else {
                    "code": "EXECUTION_FAILED",
                    "message": str(result),
                    "details": {},
                }
                entries.append({"operationId": operation.id, "status": "rejected", "error": error})
            else:
                entries.append({
                    "operationId": operation.id,
                    "status": "fulfilled",
                    "totalProducts": result.total_products,
                })

        self.logger.info(f"Retried {len(entries)} operations")
        return entries

    async def _retry_operation(self, operation: ScrapingOperation):
        await self.operations.increment_retry(operation.id)
        return await self.orchestrator.execute_operation(operation.id)

    async def cleanup_old_operations(self, days_old: Optional[int] = None) -> List[str]:
        """days_old일보다 오래된 success/failed 작업과 결과 파일 삭제"""
        days_old = settings.processor.cleanup_days if days_old is None else days_old
        if days_old < 0:
            raise ValidationError(
                "daysOld must be non-negative",
                {"errors": [{"field": "daysOld", "message": "must be >= 0"}]}
            )

        cutoff = utc_now() - timedelta(days=days_old)
        self.logger.info(f"Cleaning up operations older than {days_old} days...")

        deleted_ids = []
        for operation in await self.operations.find_cleanup_candidates(cutoff):
            self.result_files.delete(operation.data_file)
            try:
                await self.operations.delete(operation.id)
            except ScrapeHubError as e:
                self.logger.warning(f"Skipping cleanup of operation {operation.id}: {e}")
                continue
            deleted_ids.append(operation.id)

        self.logger.info(f"Cleaned up {len(deleted_ids)} old operations")
        return deleted_ids

    async def get_status(self) -> Dict[str, Any]:
        """실행 여부, 주기, 대기/진행 개수, 집계 통계"""
        counts = await self.operations.get_active_counts()
        return {
            "isProcessing": self.is_processing,
            "processingIntervalMs": self.processing_interval_ms,
            "concurrency": self.concurrency,
            "passInProgress": self._pass_lock.locked(),
            "pendingOperations": counts["pending"],
            "inProgressOperations": counts["inProgress"],
            "stats": await self.operations.get_status_stats(),
            "sellerStats": await self.operations.get_seller_stats(),
            "metrics": {
                "passes": self.stats['passes'],
                "processedOperations": self.stats['processed_operations'],
                "successfulOperations": self.stats['successful_operations'],
                "failedOperations": self.stats['failed_operations'],
                "lastPassAt": isoformat(self.stats['last_pass_at']) if self.stats['last_pass_at'] else None,
            },
        }

"""
Main worker process for the Scrape Hub operation processing system.

Runs the job processor loop until interrupted, serves the HTTP API, or
performs one-shot maintenance and single-adapter test runs.
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
import time
from typing import Any, Dict

from config.settings import settings
from crawlers.core.exceptions import ScrapeHubError
from crawlers.core.fetcher import FetchConfig, PageFetcher
from crawlers.core.orchestrator import as_product_dict, extract_product_links
from crawlers.core.registry import AdapterRegistry
from crawlers.core.service import build_service
from models.base import OperationType, SELLER_VALUES
from storage.connection import close_db, init_db
from utils.logging import get_logger, setup_logging


class ProcessorRunner:
    """프로세서 루프를 실행하고 시그널에 따라 정상 종료"""

    def __init__(self):
        self.logger = get_logger("worker")
        self.start_time = time.time()
        self._stop_event = asyncio.Event()

    def _signal_handler(self, signum: int):
        """시그널 핸들러 - Graceful shutdown"""
        self.logger.info(f"Received signal {signum}, shutting down processor...")
        self._stop_event.set()

    async def run(self):
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(signum, self._signal_handler, signum)

        await init_db()
        service = build_service()

        try:
            service.processor.start()
            await self._stop_event.wait()
        finally:
            # 진행 중인 처리와 브라우저 세션이 정리될 때까지 대기
            await service.shutdown()
            await close_db()

            runtime = time.time() - self.start_time
            self.logger.info(f"Worker ran for {runtime:.1f} seconds")


class SingleScraperTester:
    """개별 어댑터 테스트용 클래스 (저장소를 사용하지 않음)"""

    def __init__(self, seller: str, use_browser: bool = True):
        self.seller = seller
        self.config = FetchConfig(
            use_browser=use_browser,
            timeout_ms=settings.fetch.timeout_ms,
            wait_time_ms=settings.fetch.wait_time_ms
        )
        self.registry = AdapterRegistry()
        self.fetcher = PageFetcher()
        self.logger = get_logger("scraper_tester")

    async def test_url(self, url: str, op_type: str = OperationType.PRODUCT.value) -> Dict[str, Any]:
        """특정 URL로 어댑터 테스트"""
        adapter = self.registry.resolve(self.seller)
        self.logger.info(f"Testing {self.seller} adapter ({op_type}) with URL: {url}")

        try:
            content = await self.fetcher.fetch(url, self.config)

            if op_type == OperationType.PRODUCT.value:
                return as_product_dict(await adapter.scrape_product(content), url)

            if adapter.supports_category:
                return await adapter.scrape_category(content)

            links = extract_product_links(
                content, url, settings.processor.category_link_limit
            )
            self.logger.info(f"No category support, found {len(links)} product link(s)")
            return {"categoryUrl": url, "productLinks": links}

        finally:
            await adapter.close()
            await self.fetcher.close()


async def run_maintenance(retry_failed: bool, cleanup_days):
    """일회성 유지보수 작업 실행"""
    logger = get_logger("worker")
    await init_db()
    service = build_service()

    try:
        if retry_failed:
            results = await service.processor.retry_failed_operations()
            fulfilled = sum(1 for item in results if item["status"] == "fulfilled")
            logger.info(f"Retry finished: {fulfilled}/{len(results)} operations succeeded")

        if cleanup_days is not None:
            deleted = await service.processor.cleanup_old_operations(cleanup_days)
            logger.info(f"Cleanup finished: {len(deleted)} operations deleted")
    finally:
        await service.shutdown()
        await close_db()


def create_argument_parser():
    """CLI 인자 파서 생성"""
    parser = argparse.ArgumentParser(
        description='Scrape Hub Worker',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                          # 프로세서 루프 실행
  %(prog)s --serve                  # HTTP API + 프로세서 실행
  %(prog)s --test flipkart --url "https://..."  # 플립카트 어댑터 테스트
  %(prog)s --cleanup 30             # 30일 지난 작업 정리
        """
    )

    parser.add_argument(
        '--serve',
        action='store_true',
        help='Run the HTTP API with the processor in its lifespan'
    )

    parser.add_argument(
        '--test',
        type=str,
        choices=sorted(SELLER_VALUES),
        metavar='SELLER',
        help='Test a single seller adapter without touching the store'
    )

    parser.add_argument(
        '--url',
        type=str,
        help='URL for testing (required with --test)'
    )

    parser.add_argument(
        '--type',
        type=str,
        choices=[t.value for t in OperationType],
        default=OperationType.PRODUCT.value,
        help='Operation type for testing (default: product)'
    )

    parser.add_argument(
        '--no-browser',
        action='store_true',
        help='Use plain HTTP instead of browser rendering for testing'
    )

    parser.add_argument(
        '--retry-failed',
        action='store_true',
        help='Retry failed operations once and exit'
    )

    parser.add_argument(
        '--cleanup',
        type=int,
        metavar='DAYS',
        help='Delete success/failed operations older than DAYS and exit'
    )

    parser.add_argument(
        '--log-level',
        type=str,
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        default=None,
        help=f'Log level (default: {settings.logging.level})'
    )

    return parser


def main():
    """메인 함수"""
    parser = create_argument_parser()
    args = parser.parse_args()

    setup_logging()
    if args.log_level:
        logging.getLogger().setLevel(getattr(logging, args.log_level))

    try:
        if args.test:
            # 테스트 모드
            if not args.url:
                parser.error("--url is required when using --test")

            tester = SingleScraperTester(args.test, use_browser=not args.no_browser)
            result = asyncio.run(tester.test_url(args.url, args.type))
            print(json.dumps(result, ensure_ascii=False, indent=2, default=str))

        elif args.serve:
            import uvicorn
            from api.main import create_app

            uvicorn.run(create_app(), host=settings.api.host, port=settings.api.port)

        elif args.retry_failed or args.cleanup is not None:
            if args.cleanup is not None and args.cleanup < 0:
                parser.error("--cleanup DAYS must be non-negative")
            asyncio.run(run_maintenance(args.retry_failed, args.cleanup))

        else:
            # 일반 프로세서 모드
            asyncio.run(ProcessorRunner().run())

    except KeyboardInterrupt:
        print("\nShutdown complete")
    except ScrapeHubError as e:
        print(f"Error [{e.code}]: {e.message}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()

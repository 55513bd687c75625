"""
Scrape log store: audit trail of operation status transitions.

``append`` and ``update_for_operation`` are observability writes. They never
raise to the caller; failures are logged and reported as ``None``. The
remaining methods back the log API and propagate errors normally.
"""

from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, Union

from sqlalchemy import func, or_, select

from crawlers.core.exceptions import NotFoundError, ValidationError
from models.base import OperationStatus, as_utc, isoformat, utc_now
from models.scrape_logs import ScrapeLog
from models.scraping_operation import ScrapingOperation
from storage.connection import DatabaseManager, db_manager
from utils.logging import get_logger
from utils.validation import validate_log_payload


STATUS_KEYS = [status.value for status in OperationStatus]

SORT_COLUMNS = {
    "createdAt": ScrapeLog.created_at,
    "updatedAt": ScrapeLog.updated_at,
    "when": ScrapeLog.when,
    "platform": ScrapeLog.platform,
    "status": ScrapeLog.status,
    "type": ScrapeLog.type,
}


def _rate(part: int, total: int) -> float:
    """백분율 (소수 둘째 자리), total이 0이면 0"""
    return round(part / total * 100, 2) if total else 0


def product_stats(total: int, scraped: int, failed: int) -> Dict[str, Any]:
    """작업의 상품 수집 통계 요약"""
    return {
        "total": total,
        "successful": scraped,
        "failed": failed,
        "successRate": _rate(scraped, total),
        "remaining": max(0, total - scraped - failed),
    }


@dataclass
class LogFilters:
    """로그 목록 필터"""
    platform: Optional[str] = None
    type: Optional[str] = None
    status: Optional[str] = None
    category: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    search: Optional[str] = None

    def clauses(self) -> list:
        conditions = []
        if self.platform:
            conditions.append(ScrapeLog.platform == self.platform)
        if self.type:
            conditions.append(ScrapeLog.type == self.type)
        if self.status:
            conditions.append(ScrapeLog.status == self.status)
        if self.category:
            conditions.append(ScrapeLog.category.ilike(f"%{self.category}%"))
        if self.start_date:
            conditions.append(ScrapeLog.when >= self.start_date)
        if self.end_date:
            conditions.append(ScrapeLog.when <= self.end_date)
        if self.search:
            pattern = f"%{self.search}%"
            conditions.append(or_(
                ScrapeLog.url.ilike(pattern),
                ScrapeLog.platform.ilike(pattern),
                ScrapeLog.action.ilike(pattern),
            ))
        return conditions


class LogStore:
    """스크래핑 로그 저장소"""

    def __init__(self, database: Optional[DatabaseManager] = None):
        self.db = database or db_manager
        self.logger = get_logger("store.logs")

    # 최선 노력(best-effort) 기록

    async def append(self, entry: Union[ScrapingOperation, Dict[str, Any]],
                     status: Optional[str] = None, action: str = "System") -> Optional[ScrapeLog]:
        """작업(또는 필드 딕셔너리)에 대한 로그 추가, 실패 시 None"""
        try:
            if isinstance(entry, ScrapingOperation):
                fields = {
                    "platform": entry.seller,
                    "type": entry.type,
                    "url": entry.url,
                    "category": entry.category or "",
                    "status": status or entry.status,
                    "operation_id": entry.id,
                }
            else:
                fields = dict(entry)
                if status:
                    fields["status"] = status

            async with self.db.get_session() as session:
                log = ScrapeLog(when=utc_now(), action=action, **fields)
                session.add(log)
                await session.flush()
            return log

        except Exception as e:
            self.logger.error(f"Error creating scrape log: {e}")
            return None

    async def update_for_operation(self, operation: ScrapingOperation, status: str,
                                   action: str = "System") -> Optional[ScrapeLog]:
        """작업의 최신 로그를 진행시킴 (없으면 새로 추가), 실패 시 None"""
        try:
            async with self.db.get_session() as session:
                log = (await session.execute(
                    select(ScrapeLog)
                    .where(ScrapeLog.operation_id == operation.id)
                    .order_by(ScrapeLog.when.desc(), ScrapeLog.created_at.desc())
                    .limit(1)
                )).scalar_one_or_none()

                if log is not None:
                    log.status = status
                    log.action = action
                    log.when = utc_now()
                    await session.flush()
                    return log

        except Exception as e:
            self.logger.error(f"Error updating scrape log for operation {operation.id}: {e}")
            return None

        return await self.append(operation, status, action)

    # API 호출

    async def create(self, payload: Dict[str, Any]) -> ScrapeLog:
        """로그 생성 (검증 실패 시 ValidationError)"""
        values = validate_log_payload(payload)
        async with self.db.get_session() as session:
            log = ScrapeLog(
                when=as_utc(values.get("when")) or utc_now(),
                platform=values["platform"],
                type=values["type"],
                url=values["url"],
                category=values.get("category"),
                status=values["status"],
                action=values.get("action") or "Manual",
                operation_id=values.get("operationId"),
            )
            session.add(log)
            await session.flush()
        return log

    async def get(self, log_id: str) -> ScrapeLog:
        async with self.db.get_session() as session:
            log = await session.get(ScrapeLog, log_id)
            if log is None:
                raise NotFoundError(f"Scrape log not found: {log_id}", {"logId": log_id})
            return log

    async def update(self, log_id: str, changes: Dict[str, Any], partial: bool = True) -> ScrapeLog:
        """로그 수정 (명시적 정정용)"""
        values = validate_log_payload(changes, partial=partial)
        columns = {"operationId": "operation_id"}

        async with self.db.get_session() as session:
            log = await session.get(ScrapeLog, log_id)
            if log is None:
                raise NotFoundError(f"Scrape log not found: {log_id}", {"logId": log_id})

            for key, value in values.items():
                if key == "when":
                    value = as_utc(value)
                setattr(log, columns.get(key, key), value)
            await session.flush()
            return log

    async def list(self, filters: Optional[LogFilters] = None, page: int = 1, limit: int = 20,
                   sort_by: str = "createdAt", sort_order: str = "desc",
                   include_details: bool = True) -> Tuple[List[Dict[str, Any]], int]:
        """필터/정렬/페이지네이션 조회, include_details면 작업 통계 포함"""
        if sort_by not in SORT_COLUMNS:
            raise ValidationError(
                f"Unsupported sort field: {sort_by}",
                {"errors": [{"field": "sortBy", "message": f"must be one of {sorted(SORT_COLUMNS)}"}]}
            )

        conditions = (filters or LogFilters()).clauses()
        column = SORT_COLUMNS[sort_by]
        order = column.asc() if sort_order == "asc" else column.desc()

        async with self.db.get_session() as session:
            total = (await session.execute(
                select(func.count()).select_from(ScrapeLog).where(*conditions)
            )).scalar_one()

            rows = (await session.execute(
                select(ScrapeLog, ScrapingOperation)
                .outerjoin(ScrapingOperation, ScrapingOperation.id == ScrapeLog.operation_id)
                .where(*conditions)
                .order_by(order, ScrapeLog.id)
                .offset((page - 1) * limit)
                .limit(limit)
            )).all()

        items = []
        for log, operation in rows:
            item = log.to_dict()
            if include_details:
                item.update(self._operation_summary(operation))
            items.append(item)
        return items, total

    @staticmethod
    def _operation_summary(operation: Optional[ScrapingOperation]) -> Dict[str, Any]:
        if operation is None:
            return {
                "totalProducts": 0,
                "scrapedProducts": 0,
                "failedProducts": 0,
                "duration": 0,
                "progress": {"current": 0, "total": 0, "percentage": 0},
                "errorMessage": None,
                "retryCount": 0,
                "productSuccessRate": 0,
                "productStats": product_stats(0, 0, 0),
            }

        total = operation.total_products or 0
        scraped = operation.scraped_products or 0
        failed = operation.failed_products or 0
        return {
            "totalProducts": total,
            "scrapedProducts": scraped,
            "failedProducts": failed,
            "duration": operation.duration or 0,
            "progress": {
                "current": operation.progress_current or 0,
                "total": operation.progress_total or 0,
                "percentage": operation.progress_percentage or 0,
            },
            "errorMessage": operation.error_message,
            "retryCount": operation.retry_count or 0,
            "productSuccessRate": _rate(scraped, total),
            "productStats": product_stats(total, scraped, failed),
        }

    async def report(self, log_id: str) -> Dict[str, Any]:
        """로그 상세 + 작업 상세 + 상품 통계 요약"""
        log = await self.get(log_id)

        operation = None
        if log.operation_id:
            async with self.db.get_session() as session:
                operation = await session.get(ScrapingOperation, log.operation_id)

        summary = self._operation_summary(operation)
        report = {
            "logDetails": log.to_dict(),
            "operationDetails": None,
            "summary": {
                "totalProducts": summary["totalProducts"],
                "scrapedProducts": summary["scrapedProducts"],
                "failedProducts": summary["failedProducts"],
                "successRate": summary["productSuccessRate"],
                "duration": summary["duration"],
                "progress": summary["progress"],
                "productStats": summary["productStats"],
            },
        }

        if operation is not None:
            details = operation.to_dict()
            report["operationDetails"] = {
                key: details[key] for key in (
                    "id", "seller", "attemptTime", "startTime", "endTime", "duration",
                    "totalProducts", "scrapedProducts", "failedProducts", "errorMessage",
                    "errorDetails", "retryCount", "maxRetries", "config", "progress",
                    "notes", "tags",
                )
            }

        return report

    async def stats(self, start_date: Optional[datetime] = None, end_date: Optional[datetime] = None,
                    platform: Optional[str] = None) -> Dict[str, Any]:
        """상태별 개수, 성공률, 일별 차트 시계열"""
        conditions = LogFilters(platform=platform, start_date=start_date, end_date=end_date).clauses()

        async with self.db.get_session() as session:
            rows = (await session.execute(
                select(ScrapeLog.when, ScrapeLog.status)
                .where(*conditions)
                .order_by(ScrapeLog.when.asc())
            )).all()

        counts = {status: 0 for status in STATUS_KEYS}
        series: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()

        for when, status in rows:
            counts[status] = counts.get(status, 0) + 1

            day = as_utc(when).date().isoformat()
            point = series.get(day)
            if point is None:
                point = {"date": day, "total": 0, **{key: 0 for key in STATUS_KEYS}}
                series[day] = point
            point["total"] += 1
            point[status] = point.get(status, 0) + 1

        total = sum(counts.values())
        return {
            "counts": counts,
            "total": total,
            "successRate": _rate(counts[OperationStatus.SUCCESS.value], total),
            "chart": [series[day] for day in sorted(series)],
        }

    async def comprehensive_stats(self, start_date: Optional[datetime] = None,
                                  end_date: Optional[datetime] = None,
                                  platform: Optional[str] = None,
                                  op_type: Optional[str] = None) -> Dict[str, Any]:
        """전체/판매처별 통계 (연결된 작업의 상품 수 포함)"""
        conditions = LogFilters(
            platform=platform, type=op_type, start_date=start_date, end_date=end_date
        ).clauses()

        async with self.db.get_session() as session:
            rows = (await session.execute(
                select(
                    ScrapeLog.platform,
                    ScrapeLog.type,
                    ScrapeLog.status,
                    ScrapingOperation.total_products,
                    ScrapingOperation.scraped_products,
                    ScrapingOperation.failed_products,
                    ScrapingOperation.duration,
                )
                .outerjoin(ScrapingOperation, ScrapingOperation.id == ScrapeLog.operation_id)
                .where(*conditions)
            )).all()

        def empty_bucket() -> Dict[str, Any]:
            return {
                "totalOperations": 0,
                "totalProducts": 0,
                "scrapedProducts": 0,
                "failedProducts": 0,
                "totalDuration": 0,
                **{f"{_camel(status)}Count": 0 for status in STATUS_KEYS},
            }

        overall = empty_bucket()
        by_platform: Dict[str, Dict[str, Any]] = {}
        detailed: Dict[Tuple[str, str, str], Dict[str, Any]] = {}

        for platform_name, log_type, status, total, scraped, failed, duration in rows:
            buckets = [
                overall,
                by_platform.setdefault(platform_name, empty_bucket()),
                detailed.setdefault((status, platform_name, log_type), empty_bucket()),
            ]
            for bucket in buckets:
                bucket["totalOperations"] += 1
                bucket["totalProducts"] += total or 0
                bucket["scrapedProducts"] += scraped or 0
                bucket["failedProducts"] += failed or 0
                bucket["totalDuration"] += duration or 0
                bucket[f"{_camel(status)}Count"] += 1

        def finish(bucket: Dict[str, Any]) -> Dict[str, Any]:
            count = bucket["totalOperations"]
            bucket["avgDuration"] = round(bucket["totalDuration"] / count, 2) if count else 0
            bucket["successRate"] = _rate(bucket["successCount"], count)
            bucket["productSuccessRate"] = _rate(bucket["scrapedProducts"], bucket["totalProducts"])
            return bucket

        return {
            "overall": finish(overall),
            "byPlatform": [
                {"platform": name, **finish(bucket)} for name, bucket in sorted(by_platform.items())
            ],
            "detailed": [
                {"status": status, "platform": name, "type": log_type, **finish(bucket)}
                for (status, name, log_type), bucket in sorted(detailed.items())
            ],
            "generatedAt": isoformat(utc_now()),
        }


def _camel(status: str) -> str:
    """in_progress → inProgress"""
    head, *rest = status.split("_")
    return head + "".join(part.capitalize() for part in rest)

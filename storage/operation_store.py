"""
Durable store for scraping operations and their lifecycle transitions.

Every lifecycle helper enforces the operation state machine:

    pending -> in_progress -> success | failed
    failed -> pending                (retry, bounded by max_retries)
    any -> cancelled                 (explicit administrative action)
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import case, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from crawlers.core.exceptions import (
    ConflictError,
    DuplicateOperationError,
    InvalidTransitionError,
    OperationNotFoundError,
    RetryLimitExceededError,
    ValidationError,
)
from models.base import ACTIVE_STATUSES, CLEANUP_STATUSES, OperationStatus, utc_now
from models.scraping_operation import ScrapingOperation, compute_duration, compute_percentage
from storage.connection import DatabaseManager, db_manager
from utils.logging import get_logger
from utils.validation import validate_operation_payload


# API 정렬 키 → 컬럼
SORT_COLUMNS = {
    "createdAt": ScrapingOperation.created_at,
    "updatedAt": ScrapingOperation.updated_at,
    "attemptTime": ScrapingOperation.attempt_time,
    "startTime": ScrapingOperation.start_time,
    "endTime": ScrapingOperation.end_time,
    "duration": ScrapingOperation.duration,
    "status": ScrapingOperation.status,
    "seller": ScrapingOperation.seller,
    "type": ScrapingOperation.type,
    "totalProducts": ScrapingOperation.total_products,
    "retryCount": ScrapingOperation.retry_count,
}


@dataclass
class OperationFilters:
    """작업 목록 필터"""
    status: Optional[str] = None
    seller: Optional[str] = None
    type: Optional[str] = None
    category: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    search: Optional[str] = None

    def clauses(self) -> list:
        conditions = []
        if self.status:
            conditions.append(ScrapingOperation.status == self.status)
        if self.seller:
            conditions.append(ScrapingOperation.seller == self.seller)
        if self.type:
            conditions.append(ScrapingOperation.type == self.type)
        if self.category:
            conditions.append(ScrapingOperation.category.ilike(f"%{self.category}%"))
        if self.start_date:
            conditions.append(ScrapingOperation.created_at >= self.start_date)
        if self.end_date:
            conditions.append(ScrapingOperation.created_at <= self.end_date)
        if self.search:
            pattern = f"%{self.search}%"
            conditions.append(or_(
                ScrapingOperation.url.ilike(pattern),
                ScrapingOperation.category.ilike(pattern),
                ScrapingOperation.notes.ilike(pattern),
            ))
        return conditions


class OperationStore:
    """스크래핑 작업 저장소"""

    def __init__(self, database: Optional[DatabaseManager] = None):
        self.db = database or db_manager
        self.logger = get_logger("store.operations")

    async def _load(self, session: AsyncSession, operation_id: str,
                    refresh: bool = False) -> ScrapingOperation:
        operation = await session.get(
            ScrapingOperation, operation_id, populate_existing=refresh
        )
        if operation is None:
            raise OperationNotFoundError(operation_id)
        return operation

    async def _ensure_no_active(self, session: AsyncSession, url: str,
                                exclude_id: Optional[str] = None) -> None:
        """같은 URL의 pending/in_progress 작업이 있으면 DuplicateOperationError"""
        query = (
            select(ScrapingOperation)
            .where(ScrapingOperation.url == url)
            .where(ScrapingOperation.status.in_(ACTIVE_STATUSES))
        )
        if exclude_id is not None:
            query = query.where(ScrapingOperation.id != exclude_id)

        existing = (await session.execute(query.limit(1))).scalar_one_or_none()
        if existing is not None:
            raise DuplicateOperationError(url, existing.id, existing.status)

    # 생성/조회

    async def create(self, payload: Dict[str, Any],
                     request_meta: Optional[Dict[str, Any]] = None) -> ScrapingOperation:
        """새 작업을 pending 상태로 생성

        Raises:
            ValidationError: 입력값 오류
            DuplicateOperationError: 같은 URL의 활성 작업 존재
        """
        fields = validate_operation_payload(payload)
        request_meta = request_meta or {}

        async with self.db.get_session() as session:
            # 조회 후 삽입: 동시 요청 사이의 짧은 경쟁 구간은 허용한다
            await self._ensure_no_active(session, fields["url"])

            operation = ScrapingOperation(
                **fields,
                status=OperationStatus.PENDING.value,
                attempt_time=utc_now(),
                ip_address=request_meta.get("ip_address"),
                user_agent=request_meta.get("user_agent"),
                request_headers=request_meta.get("request_headers"),
            )
            session.add(operation)
            await session.flush()

        self.logger.info(f"Created scraping operation {operation.id} for {operation.seller}: {operation.url}")
        return operation

    async def get(self, operation_id: str) -> ScrapingOperation:
        """ID로 작업 조회"""
        async with self.db.get_session() as session:
            return await self._load(session, operation_id)

    async def find(self, filters: Optional[OperationFilters] = None, page: int = 1, limit: int = 20,
                   sort_by: str = "createdAt", sort_order: str = "desc") -> Tuple[List[ScrapingOperation], int]:
        """필터/정렬/페이지네이션 조회, (항목, 전체 개수) 반환"""
        if sort_by not in SORT_COLUMNS:
            raise ValidationError(
                f"Unsupported sort field: {sort_by}",
                {"errors": [{"field": "sortBy", "message": f"must be one of {sorted(SORT_COLUMNS)}"}]}
            )
        if page < 1 or limit < 1:
            raise ValidationError(
                "page and limit must be positive",
                {"errors": [{"field": "page/limit", "message": "must be >= 1"}]}
            )

        conditions = (filters or OperationFilters()).clauses()
        column = SORT_COLUMNS[sort_by]
        order = column.asc() if sort_order == "asc" else column.desc()

        async with self.db.get_session() as session:
            total = (await session.execute(
                select(func.count()).select_from(ScrapingOperation).where(*conditions)
            )).scalar_one()

            items = (await session.execute(
                select(ScrapingOperation)
                .where(*conditions)
                .order_by(order, ScrapingOperation.id)
                .offset((page - 1) * limit)
                .limit(limit)
            )).scalars().all()

        return list(items), total

    async def count(self, status: Optional[str] = None) -> int:
        """상태별 작업 수"""
        query = select(func.count()).select_from(ScrapingOperation)
        if status:
            query = query.where(ScrapingOperation.status == status)
        async with self.db.get_session() as session:
            return (await session.execute(query)).scalar_one()

    # 수정/삭제

    async def update(self, operation_id: str, changes: Dict[str, Any]) -> ScrapingOperation:
        """메모/태그/진행률/에러 필드 수정

        상태 변경은 cancelled만 허용된다.
        """
        status = changes.get("status")
        if status is not None:
            if status == OperationStatus.CANCELLED.value:
                await self.cancel(operation_id)
            else:
                current = await self.get(operation_id)
                if status != current.status:
                    raise ConflictError(
                        f"Status can only be changed through lifecycle actions (requested '{status}')",
                        {"operationId": operation_id, "currentStatus": current.status}
                    )

        async with self.db.get_session() as session:
            operation = await self._load(session, operation_id, refresh=True)

            if "notes" in changes:
                operation.notes = changes["notes"]
            if "tags" in changes:
                operation.tags = list(changes["tags"] or [])
            if "errorMessage" in changes:
                operation.error_message = changes["errorMessage"]
            if "errorDetails" in changes:
                operation.error_details = changes["errorDetails"]

            progress = changes.get("progress")
            if progress:
                current = progress.get("current", operation.progress_current)
                total = progress.get("total", operation.progress_total)
                if current < 0 or total < 0:
                    raise ValidationError(
                        "Progress values must be non-negative",
                        {"errors": [{"field": "progress", "message": "must be >= 0"}]}
                    )
                operation.progress_current = current
                operation.progress_total = total
                operation.progress_percentage = compute_percentage(current, total)

            await session.flush()
            return operation

    async def delete(self, operation_id: str) -> ScrapingOperation:
        """작업 레코드 삭제 (결과 파일 정리는 호출자 책임)"""
        async with self.db.get_session() as session:
            operation = await self._load(session, operation_id)
            await session.delete(operation)

        self.logger.info(f"Deleted scraping operation {operation_id}")
        return operation

    # 상태 전이

    async def mark_started(self, operation_id: str) -> ScrapingOperation:
        """pending → in_progress (조건부 UPDATE로 원자적으로 선점)"""
        now = utc_now()
        async with self.db.get_session() as session:
            result = await session.execute(
                update(ScrapingOperation)
                .where(ScrapingOperation.id == operation_id)
                .where(ScrapingOperation.status == OperationStatus.PENDING.value)
                .values(
                    status=OperationStatus.IN_PROGRESS.value,
                    start_time=now,
                    end_time=None,
                    duration=0,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )

            if result.rowcount == 0:
                operation = await self._load(session, operation_id)
                raise InvalidTransitionError(operation_id, operation.status, "start", "pending")

            return await self._load(session, operation_id, refresh=True)

    async def mark_completed(self, operation_id: str, result: Any, total_products: int,
                             data_file: Optional[str] = None, failed_products: int = 0,
                             store_inline: bool = True) -> ScrapingOperation:
        """in_progress → success"""
        async with self.db.get_session() as session:
            operation = await self._load(session, operation_id, refresh=True)
            if operation.status != OperationStatus.IN_PROGRESS.value:
                raise InvalidTransitionError(operation_id, operation.status, "complete", "in_progress")

            operation.status = OperationStatus.SUCCESS.value
            operation.end_time = utc_now()
            operation.duration = compute_duration(operation.start_time, operation.end_time)
            operation.total_products = total_products
            operation.scraped_products = total_products
            operation.failed_products = failed_products
            # 0/0 완료도 100%로 기록한다
            operation.progress_current = total_products
            operation.progress_total = total_products
            operation.progress_percentage = 100
            if store_inline or not data_file:
                operation.scraped_data = result
            if data_file:
                operation.data_file = data_file

            await session.flush()
            return operation

    async def mark_failed(self, operation_id: str, message: str,
                          details: Optional[Dict[str, Any]] = None) -> ScrapingOperation:
        """비종료 상태 → failed"""
        async with self.db.get_session() as session:
            operation = await self._load(session, operation_id, refresh=True)
            if operation.is_terminal:
                raise InvalidTransitionError(operation_id, operation.status, "fail", "pending|in_progress")

            operation.status = OperationStatus.FAILED.value
            operation.end_time = utc_now()
            operation.duration = compute_duration(operation.start_time, operation.end_time)
            operation.error_message = message
            operation.error_details = details

            await session.flush()
            return operation

    async def increment_retry(self, operation_id: str) -> ScrapingOperation:
        """failed → pending (retry_count 증가)"""
        async with self.db.get_session() as session:
            operation = await self._load(session, operation_id, refresh=True)
            if operation.status != OperationStatus.FAILED.value:
                raise InvalidTransitionError(operation_id, operation.status, "retry", "failed")
            if operation.retry_count >= operation.max_retries:
                raise RetryLimitExceededError(operation_id, operation.retry_count, operation.max_retries)
            await self._ensure_no_active(session, operation.url, exclude_id=operation.id)

            operation.retry_count += 1
            operation.status = OperationStatus.PENDING.value
            operation.attempt_time = utc_now()

            await session.flush()
            return operation

    async def cancel(self, operation_id: str) -> ScrapingOperation:
        """어느 상태에서든 cancelled로 전환"""
        async with self.db.get_session() as session:
            operation = await self._load(session, operation_id, refresh=True)
            if operation.status != OperationStatus.CANCELLED.value:
                operation.status = OperationStatus.CANCELLED.value
                if operation.end_time is None:
                    operation.end_time = utc_now()
                    operation.duration = compute_duration(operation.start_time, operation.end_time)
                await session.flush()

        self.logger.info(f"Cancelled scraping operation {operation_id}")
        return operation

    # 프로세서 조회

    async def find_pending(self) -> List[ScrapingOperation]:
        """pending 작업 (attempt_time 오름차순)"""
        async with self.db.get_session() as session:
            result = await session.execute(
                select(ScrapingOperation)
                .where(ScrapingOperation.status == OperationStatus.PENDING.value)
                .order_by(ScrapingOperation.attempt_time.asc(), ScrapingOperation.created_at.asc())
            )
            return list(result.scalars().all())

    async def find_retryable(self) -> List[ScrapingOperation]:
        """재시도 가능한 failed 작업"""
        async with self.db.get_session() as session:
            result = await session.execute(
                select(ScrapingOperation)
                .where(ScrapingOperation.status == OperationStatus.FAILED.value)
                .where(ScrapingOperation.retry_count < ScrapingOperation.max_retries)
                .order_by(ScrapingOperation.attempt_time.asc())
            )
            return list(result.scalars().all())

    async def find_cleanup_candidates(self, cutoff: datetime) -> List[ScrapingOperation]:
        """cutoff 이전에 생성된 success/failed 작업"""
        async with self.db.get_session() as session:
            result = await session.execute(
                select(ScrapingOperation)
                .where(ScrapingOperation.status.in_(CLEANUP_STATUSES))
                .where(ScrapingOperation.created_at < cutoff)
            )
            return list(result.scalars().all())

    # 집계

    async def get_status_stats(self, filters: Optional[OperationFilters] = None) -> List[Dict[str, Any]]:
        """상태별 개수/상품 수/평균 소요 시간"""
        conditions = (filters or OperationFilters()).clauses()
        async with self.db.get_session() as session:
            rows = (await session.execute(
                select(
                    ScrapingOperation.status,
                    func.count(),
                    func.coalesce(func.sum(ScrapingOperation.total_products), 0),
                    func.avg(ScrapingOperation.duration),
                )
                .where(*conditions)
                .group_by(ScrapingOperation.status)
            )).all()

        return [
            {
                "status": status,
                "count": count,
                "totalProducts": int(total_products),
                "avgDuration": float(avg_duration) if avg_duration is not None else 0,
            }
            for status, count, total_products, avg_duration in rows
        ]

    async def get_seller_stats(self) -> List[Dict[str, Any]]:
        """판매처별 성공/실패/대기 개수와 성공률"""
        def status_count(status: OperationStatus):
            return func.sum(case((ScrapingOperation.status == status.value, 1), else_=0))

        async with self.db.get_session() as session:
            rows = (await session.execute(
                select(
                    ScrapingOperation.seller,
                    func.count(),
                    status_count(OperationStatus.SUCCESS),
                    status_count(OperationStatus.FAILED),
                    status_count(OperationStatus.PENDING),
                    func.coalesce(func.sum(ScrapingOperation.total_products), 0),
                )
                .group_by(ScrapingOperation.seller)
                .order_by(ScrapingOperation.seller)
            )).all()

        stats = []
        for seller, total, success, failed, pending, total_products in rows:
            success = int(success or 0)
            stats.append({
                "seller": seller,
                "totalOperations": total,
                "successCount": success,
                "failedCount": int(failed or 0),
                "pendingCount": int(pending or 0),
                "totalProducts": int(total_products),
                "successRate": round(success / total * 100, 2) if total else 0,
            })
        return stats

    async def get_recent_operations(self, limit: int = 10) -> List[ScrapingOperation]:
        """최근 생성된 작업"""
        async with self.db.get_session() as session:
            result = await session.execute(
                select(ScrapingOperation)
                .order_by(ScrapingOperation.created_at.desc())
                .limit(limit)
            )
            return list(result.scalars().all())

    async def get_summary(self, filters: Optional[OperationFilters] = None) -> Dict[str, int]:
        """전체 작업 수와 상품 수"""
        conditions = (filters or OperationFilters()).clauses()
        async with self.db.get_session() as session:
            total, total_products = (await session.execute(
                select(func.count(), func.coalesce(func.sum(ScrapingOperation.total_products), 0))
                .select_from(ScrapingOperation)
                .where(*conditions)
            )).one()

        return {"totalOperations": total, "totalProducts": int(total_products)}

    async def get_active_counts(self) -> Dict[str, int]:
        """pending / in_progress 개수"""
        async with self.db.get_session() as session:
            rows = (await session.execute(
                select(ScrapingOperation.status, func.count())
                .where(ScrapingOperation.status.in_(ACTIVE_STATUSES))
                .group_by(ScrapingOperation.status)
            )).all()

        counts = dict(rows)
        return {
            "pending": counts.get(OperationStatus.PENDING.value, 0),
            "inProgress": counts.get(OperationStatus.IN_PROGRESS.value, 0),
        }

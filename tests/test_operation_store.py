from datetime import timedelta

import pytest

from conftest import PRODUCT_URL, age_operation, operation_payload
from crawlers.core.exceptions import (
    ConflictError,
    DuplicateOperationError,
    InvalidTransitionError,
    OperationNotFoundError,
    RetryLimitExceededError,
    ValidationError,
)
from models.base import utc_now
from models.scraping_operation import compute_duration, compute_percentage
from storage.operation_store import OperationFilters


async def test_create_applies_defaults(operations):
    operation = await operations.create(
        operation_payload(tags=["mobiles"]),
        {"ip_address": "10.0.0.1", "user_agent": "pytest"},
    )

    assert operation.status == "pending"
    assert operation.retry_count == 0
    assert operation.max_retries == 3
    assert operation.use_browser is True
    assert operation.timeout == 30000
    assert operation.wait_time == 3000
    assert operation.attempt_time is not None
    assert operation.ip_address == "10.0.0.1"

    data = operation.to_dict()
    assert data["config"] == {"usePuppeteer": True, "timeout": 30000, "waitTime": 3000}
    assert data["progress"] == {"current": 0, "total": 0, "percentage": 0}
    assert data["tags"] == ["mobiles"]


async def test_create_reports_every_invalid_field(operations):
    with pytest.raises(ValidationError) as exc_info:
        await operations.create({
            "url": "ftp://example.com/file",
            "seller": "ebay",
            "type": "listing",
            "config": {"timeout": 1000, "waitTime": 60000},
        })

    fields = {error["field"] for error in exc_info.value.details["errors"]}
    assert fields == {"url", "seller", "type", "config.timeout", "config.waitTime"}
    assert await operations.count() == 0


async def test_duplicate_active_url_is_rejected(operations):
    first = await operations.create(operation_payload())

    with pytest.raises(DuplicateOperationError) as exc_info:
        await operations.create(operation_payload())

    assert exc_info.value.http_status == 409
    assert exc_info.value.details["existingOperationId"] == first.id


async def test_same_url_allowed_after_previous_operation_finishes(operations):
    first = await operations.create(operation_payload())
    await operations.mark_started(first.id)
    await operations.mark_completed(first.id, {"productName": "Phone"}, 1)

    second = await operations.create(operation_payload())

    assert second.id != first.id
    assert second.status == "pending"


async def test_mark_started_claims_only_once(operations):
    operation = await operations.create(operation_payload())

    started = await operations.mark_started(operation.id)
    assert started.status == "in_progress"
    assert started.start_time is not None

    with pytest.raises(InvalidTransitionError) as exc_info:
        await operations.mark_started(operation.id)
    assert exc_info.value.details["currentStatus"] == "in_progress"


async def test_mark_started_unknown_operation(operations):
    with pytest.raises(OperationNotFoundError):
        await operations.mark_started("missing-id")


async def test_mark_completed_records_counts_and_progress(operations):
    operation = await operations.create(operation_payload())
    await operations.mark_started(operation.id)

    completed = await operations.mark_completed(
        operation.id, {"products": [1, 2, 3, 4]}, 4, failed_products=1
    )

    assert completed.status == "success"
    assert completed.total_products == 4
    assert completed.scraped_products == 4
    assert completed.failed_products == 1
    assert completed.progress_percentage == 100
    assert completed.duration >= 0
    assert completed.scraped_data == {"products": [1, 2, 3, 4]}


async def test_zero_product_completion_is_full_progress(operations):
    operation = await operations.create(operation_payload())
    await operations.mark_started(operation.id)

    completed = await operations.mark_completed(operation.id, {"products": []}, 0)

    assert completed.to_dict()["progress"] == {"current": 0, "total": 0, "percentage": 100}


async def test_mark_completed_requires_in_progress(operations):
    operation = await operations.create(operation_payload())

    with pytest.raises(InvalidTransitionError):
        await operations.mark_completed(operation.id, {}, 0)


async def test_result_kept_out_of_record_when_file_only(operations):
    operation = await operations.create(operation_payload())
    await operations.mark_started(operation.id)

    completed = await operations.mark_completed(
        operation.id, {"productName": "Phone"}, 1,
        data_file="/tmp/result.json", store_inline=False
    )

    assert completed.scraped_data is None
    assert completed.data_file == "/tmp/result.json"


async def test_mark_failed_from_pending_and_in_progress(operations):
    pending = await operations.create(operation_payload(url="https://www.flipkart.com/a/p/1"))
    running = await operations.create(operation_payload(url="https://www.flipkart.com/b/p/2"))
    await operations.mark_started(running.id)

    failed_pending = await operations.mark_failed(pending.id, "network down", {"code": "FETCH_FAILED"})
    failed_running = await operations.mark_failed(running.id, "timeout")

    assert failed_pending.status == "failed"
    assert failed_pending.error_details == {"code": "FETCH_FAILED"}
    assert failed_running.status == "failed"
    assert failed_running.error_message == "timeout"
    assert failed_running.end_time is not None


async def test_mark_failed_rejected_for_terminal_operation(operations):
    operation = await operations.create(operation_payload())
    await operations.mark_started(operation.id)
    await operations.mark_completed(operation.id, {}, 0)

    with pytest.raises(InvalidTransitionError):
        await operations.mark_failed(operation.id, "too late")


async def test_retry_until_limit(operations):
    operation = await operations.create(operation_payload(maxRetries=1))
    await operations.mark_failed(operation.id, "first failure")

    retried = await operations.increment_retry(operation.id)
    assert retried.status == "pending"
    assert retried.retry_count == 1

    await operations.mark_started(operation.id)
    exhausted = await operations.mark_failed(operation.id, "second failure")
    assert exhausted.retries_exhausted is True
    assert exhausted.to_dict()["retriesExhausted"] is True

    with pytest.raises(RetryLimitExceededError):
        await operations.increment_retry(operation.id)

    assert (await operations.get(operation.id)).status == "failed"


async def test_retry_rejected_while_url_has_active_operation(operations):
    first = await operations.create(operation_payload())
    await operations.mark_started(first.id)
    await operations.mark_failed(first.id, "timeout")
    second = await operations.create(operation_payload())

    with pytest.raises(DuplicateOperationError) as excinfo:
        await operations.increment_retry(first.id)

    assert excinfo.value.http_status == 409
    assert (await operations.get(first.id)).status == "failed"
    assert await operations.count("pending") == 1

    await operations.cancel(second.id)
    assert (await operations.increment_retry(first.id)).status == "pending"


async def test_retry_requires_failed_status(operations):
    operation = await operations.create(operation_payload())

    with pytest.raises(InvalidTransitionError):
        await operations.increment_retry(operation.id)


@pytest.mark.parametrize("finish", ["pending", "in_progress", "success", "failed"])
async def test_cancel_from_any_state(operations, finish):
    operation = await operations.create(operation_payload())
    if finish != "pending":
        await operations.mark_started(operation.id)
    if finish == "success":
        await operations.mark_completed(operation.id, {}, 0)
    if finish == "failed":
        await operations.mark_failed(operation.id, "boom")

    cancelled = await operations.cancel(operation.id)

    assert cancelled.status == "cancelled"
    assert cancelled.end_time is not None


async def test_update_progress_and_notes(operations):
    operation = await operations.create(operation_payload())

    updated = await operations.update(operation.id, {
        "notes": "priority",
        "tags": ["sale"],
        "progress": {"current": 1, "total": 3},
    })

    assert updated.notes == "priority"
    assert updated.tags == ["sale"]
    assert updated.progress_percentage == 33


async def test_update_refuses_non_cancel_status_change(operations):
    operation = await operations.create(operation_payload())

    with pytest.raises(ConflictError):
        await operations.update(operation.id, {"status": "success"})

    cancelled = await operations.update(operation.id, {"status": "cancelled"})
    assert cancelled.status == "cancelled"


async def test_find_filters_and_paginates(operations):
    for index in range(5):
        await operations.create(operation_payload(url=f"https://www.flipkart.com/item/p/{index}"))
    await operations.create(operation_payload(url="https://www.amazon.in/dp/B01", seller="amazon"))

    items, total = await operations.find(OperationFilters(seller="flipkart"), page=2, limit=2)
    assert total == 5
    assert len(items) == 2

    items, total = await operations.find(OperationFilters(search="amazon.in"))
    assert total == 1
    assert items[0].seller == "amazon"

    with pytest.raises(ValidationError):
        await operations.find(sort_by="password")


async def test_find_pending_oldest_attempt_first(operations):
    first = await operations.create(operation_payload(url="https://www.flipkart.com/x/p/1"))
    second = await operations.create(operation_payload(url="https://www.flipkart.com/x/p/2"))
    await operations.mark_failed(first.id, "boom")
    await operations.increment_retry(first.id)

    pending = await operations.find_pending()

    assert [op.id for op in pending] == [second.id, first.id]


async def test_cleanup_candidates_by_age_and_status(database, operations):
    old_success = await operations.create(operation_payload(url="https://www.flipkart.com/o/p/1"))
    await operations.mark_started(old_success.id)
    await operations.mark_completed(old_success.id, {}, 0)
    old_pending = await operations.create(operation_payload(url="https://www.flipkart.com/o/p/2"))
    recent_failed = await operations.create(operation_payload(url="https://www.flipkart.com/o/p/3"))
    await operations.mark_failed(recent_failed.id, "boom")

    await age_operation(database, old_success.id, 31)
    await age_operation(database, old_pending.id, 31)
    await age_operation(database, recent_failed.id, 29)

    candidates = await operations.find_cleanup_candidates(utc_now() - timedelta(days=30))

    assert [op.id for op in candidates] == [old_success.id]


async def test_seller_stats_and_summary(operations):
    success = await operations.create(operation_payload(url="https://www.flipkart.com/s/p/1"))
    await operations.mark_started(success.id)
    await operations.mark_completed(success.id, {}, 2)
    failed = await operations.create(operation_payload(url="https://www.flipkart.com/s/p/2"))
    await operations.mark_failed(failed.id, "boom")
    await operations.create(operation_payload(url="https://www.flipkart.com/s/p/3"))

    stats = await operations.get_seller_stats()
    assert stats == [{
        "seller": "flipkart",
        "totalOperations": 3,
        "successCount": 1,
        "failedCount": 1,
        "pendingCount": 1,
        "totalProducts": 2,
        "successRate": 33.33,
    }]

    assert await operations.get_summary() == {"totalOperations": 3, "totalProducts": 2}
    assert await operations.get_active_counts() == {"pending": 1, "inProgress": 0}

    by_status = {row["status"]: row for row in await operations.get_status_stats()}
    assert by_status["success"]["totalProducts"] == 2
    assert by_status["pending"]["count"] == 1


async def test_delete_unknown_operation(operations):
    with pytest.raises(OperationNotFoundError):
        await operations.delete("missing-id")


def test_compute_percentage():
    assert compute_percentage(0, 0) == 0
    assert compute_percentage(1, 3) == 33
    assert compute_percentage(2, 3) == 67
    assert compute_percentage(5, 5) == 100
    assert compute_percentage(1, 8) == 13
    assert compute_percentage(5, 200) == 3
    assert compute_percentage(1, 200) == 1


def test_compute_duration_needs_both_ends():
    now = utc_now()
    assert compute_duration(None, now) == 0
    assert compute_duration(now - timedelta(seconds=2), now) == 2000


async def test_url_is_stored_trimmed(operations):
    operation = await operations.create(operation_payload(url=f"  {PRODUCT_URL} "))
    assert operation.url == PRODUCT_URL

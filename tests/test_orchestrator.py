import asyncio
import json

import pytest

from conftest import CATEGORY_URL, PRODUCT_URL, operation_payload
from crawlers.core.exceptions import (
    AdapterNotFoundError,
    ExtractionError,
    FetchError,
    FetchTimeoutError,
    InvalidTransitionError,
    OperationNotFoundError,
)
from crawlers.core.orchestrator import as_product_dict, extract_product_links


CATEGORY_PAGE = "\n".join(
    [f'<a class="product-link" href="/item-{i}/p/itm{i:03d}">Item {i}</a>' for i in range(12)]
)


async def test_product_operation_succeeds(service, fetcher):
    fetcher.pages[PRODUCT_URL] = "Redmi Note 13"
    operation = await service.submit(operation_payload())

    result = await service.orchestrator.execute_operation(operation.id)

    assert result.total_products == 1
    assert result.scraped_data["productName"] == "Redmi Note 13"
    assert result.scraped_data["url"] == PRODUCT_URL

    stored = await service.operations.get(operation.id)
    assert stored.status == "success"
    assert stored.to_dict()["progress"] == {"current": 1, "total": 1, "percentage": 100}
    assert stored.start_time is not None and stored.end_time is not None
    assert stored.scraped_data["productName"] == "Redmi Note 13"

    with open(stored.data_file, encoding="utf-8") as f:
        assert json.load(f) == stored.scraped_data

    items, total = await service.logs.list()
    assert total == 1
    assert items[0]["status"] == "success"
    assert items[0]["action"] == "System"


async def test_category_with_adapter_support(service, fetcher):
    url = "https://www.amazon.in/s?k=earbuds"
    fetcher.pages[url] = "boAt Airdopes\nNoise Buds\nRealme Buds"
    operation = await service.submit(operation_payload(url=url, seller="amazon", type="category"))

    result = await service.orchestrator.execute_operation(operation.id)

    assert result.total_products == 3
    assert fetcher.calls == [url]
    stored = await service.operations.get(operation.id)
    assert stored.total_products == 3


async def test_category_fallback_caps_links_and_skips_failures(service, fetcher):
    fetcher.pages[CATEGORY_URL] = CATEGORY_PAGE
    broken_link = "https://www.flipkart.com/item-3/p/itm003"
    fetcher.errors[broken_link] = FetchError("HTTP 500", {"url": broken_link})
    operation = await service.submit(
        operation_payload(url=CATEGORY_URL, type="category", category="mobiles")
    )

    result = await service.orchestrator.execute_operation(operation.id)

    # 카테고리 페이지 1회 + 상한 10개 링크
    assert len(fetcher.calls) == 11
    assert result.total_products == 9
    assert result.scraped_data["categoryUrl"] == CATEGORY_URL
    assert broken_link not in [p["url"] for p in result.scraped_data["products"]]

    stored = await service.operations.get(operation.id)
    assert stored.status == "success"
    assert stored.total_products == 9
    assert stored.failed_products == 1


async def test_category_fallback_with_no_links(service, fetcher):
    fetcher.pages[CATEGORY_URL] = "<html><p>No products</p></html>"
    operation = await service.submit(operation_payload(url=CATEGORY_URL, type="category"))

    result = await service.orchestrator.execute_operation(operation.id)

    assert result.total_products == 0
    stored = await service.operations.get(operation.id)
    assert stored.to_dict()["progress"]["percentage"] == 100


async def test_missing_adapter_marks_operation_failed(service):
    operation = await service.submit(
        operation_payload(url="https://www.zeptonow.com/pn/milk", seller="zepto")
    )

    with pytest.raises(AdapterNotFoundError):
        await service.orchestrator.execute_operation(operation.id)

    stored = await service.operations.get(operation.id)
    assert stored.status == "failed"
    assert "zepto" in stored.error_message
    assert stored.error_details["name"] == "AdapterNotFoundError"
    assert stored.error_details["code"] == "ADAPTER_NOT_FOUND"
    assert "Traceback" in stored.error_details["stack"]

    items, _ = await service.logs.list()
    assert items[0]["status"] == "failed"


async def test_fetch_timeout_marks_operation_failed(service, fetcher):
    fetcher.errors[PRODUCT_URL] = FetchTimeoutError("timed out", {"url": PRODUCT_URL})
    operation = await service.submit(operation_payload())

    with pytest.raises(FetchTimeoutError):
        await service.orchestrator.execute_operation(operation.id)

    stored = await service.operations.get(operation.id)
    assert stored.status == "failed"
    assert stored.error_details["code"] == "FETCH_TIMEOUT"
    assert stored.data_file is None


async def test_adapter_exception_becomes_extraction_error(service, fetcher):
    fetcher.pages[PRODUCT_URL] = "broken markup"
    operation = await service.submit(operation_payload())

    with pytest.raises(ExtractionError) as exc_info:
        await service.orchestrator.execute_operation(operation.id)

    assert isinstance(exc_info.value.__cause__, ValueError)
    stored = await service.operations.get(operation.id)
    assert stored.status == "failed"
    assert stored.error_details["name"] == "ValueError"
    assert stored.error_details["code"] == "EXTRACTION_FAILED"


async def test_cancel_during_run_leaves_no_result_file(service, fetcher):
    fetcher.delay = 0.2
    operation = await service.submit(operation_payload())

    task = asyncio.create_task(service.orchestrator.execute_operation(operation.id))
    while not fetcher.calls:
        await asyncio.sleep(0.01)
    await service.operations.cancel(operation.id)

    with pytest.raises(InvalidTransitionError):
        await task

    assert (await service.operations.get(operation.id)).status == "cancelled"
    assert list(service.result_files.results_dir.glob("*.json")) == []


async def test_non_pending_operation_is_left_untouched(service):
    operation = await service.submit(operation_payload())
    await service.cancel(operation.id)

    with pytest.raises(InvalidTransitionError):
        await service.orchestrator.execute_operation(operation.id)

    stored = await service.operations.get(operation.id)
    assert stored.status == "cancelled"
    assert stored.error_message is None


async def test_unknown_operation(service):
    with pytest.raises(OperationNotFoundError):
        await service.orchestrator.execute_operation("missing-id")


def test_extract_product_links_resolves_and_dedupes():
    page = (
        '<a href="/dp/B01">A</a>'
        '<a href="https://www.amazon.in/dp/B01">A again</a>'
        '<a href="/dp/B02">B</a>'
        '<a href="/help">Help</a>'
    )

    links = extract_product_links(page, "https://www.amazon.in/s?k=phone", 10)

    assert links == ["https://www.amazon.in/dp/B01", "https://www.amazon.in/dp/B02"]
    assert extract_product_links(page, "https://www.amazon.in/", 1) == ["https://www.amazon.in/dp/B01"]


def test_as_product_dict_rejects_unknown_result():
    assert as_product_dict({"productName": "x"}, "https://a.in/p/1")["url"] == "https://a.in/p/1"

    with pytest.raises(ExtractionError):
        as_product_dict("plain text", "https://a.in/p/1")

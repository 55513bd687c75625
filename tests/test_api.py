import httpx
import pytest

from api.main import create_app
from conftest import PRODUCT_URL


@pytest.fixture
async def client(service):
    app = create_app(service, auto_start=False)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


async def create(client, url=PRODUCT_URL, seller="flipkart", **extra):
    response = await client.post(
        "/api/scraping-operations", json={"url": url, "seller": seller, **extra}
    )
    return response


async def test_health(client):
    response = await client.get("/health")

    body = response.json()
    assert response.status_code == 200
    assert body["status"] == "healthy"
    assert body["checks"]["processor"]["running"] is False


async def test_create_operation_and_duplicate(client):
    response = await create(client, config={"usePuppeteer": False, "timeout": 15000})

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["data"]["status"] == "pending"
    assert body["data"]["config"] == {"usePuppeteer": False, "timeout": 15000, "waitTime": 3000}
    assert body["data"]["userAgent"]

    duplicate = await create(client)
    assert duplicate.status_code == 409
    assert duplicate.json()["error"]["code"] == "DUPLICATE_OPERATION"
    assert duplicate.json()["error"]["details"]["existingOperationId"] == body["data"]["id"]


async def test_create_validation_errors(client):
    response = await create(client, url="not-a-url", seller="unknown-shop")

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert {item["field"] for item in error["details"]["errors"]} == {"url", "seller"}

    missing = await client.post("/api/scraping-operations", json={"seller": "flipkart"})
    assert missing.status_code == 400
    assert missing.json()["success"] is False
    assert missing.json()["error"]["details"]["errors"][0]["field"] == "url"


async def test_batch_create_reports_per_item(client):
    response = await client.post("/api/scraping-operations/batch", json={"operations": [
        {"url": "https://www.nykaa.com/p/1", "seller": "nykaa"},
        {"url": "https://www.nykaa.com/p/1", "seller": "nykaa"},
        {"url": "https://www.nykaa.com/p/2", "seller": "nowhere"},
    ]})

    body = response.json()
    assert response.status_code == 200
    assert body["summary"] == {"total": 3, "created": 1, "failed": 2}
    assert [item["success"] for item in body["data"]] == [True, False, False]
    assert body["data"][1]["error"]["code"] == "DUPLICATE_OPERATION"
    assert body["data"][2]["error"]["code"] == "VALIDATION_ERROR"


async def test_manual_lifecycle(client):
    operation_id = (await create(client)).json()["data"]["id"]

    pending_data = await client.get(f"/api/scraping-operations/{operation_id}/data")
    assert pending_data.status_code == 404

    started = await client.post(f"/api/scraping-operations/{operation_id}/start")
    assert started.json()["data"]["status"] == "in_progress"

    again = await client.post(f"/api/scraping-operations/{operation_id}/start")
    assert again.status_code == 400
    assert again.json()["error"]["code"] == "INVALID_TRANSITION"

    completed = await client.post(
        f"/api/scraping-operations/{operation_id}/complete",
        json={"scrapedData": {"products": [{"productName": "A"}, {"productName": "B"}]}},
    )
    assert completed.status_code == 200
    assert completed.json()["data"]["totalProducts"] == 2
    assert completed.json()["data"]["progress"]["percentage"] == 100

    data = await client.get(f"/api/scraping-operations/{operation_id}/data")
    assert data.json()["data"]["products"][1]["productName"] == "B"

    logs = (await client.get("/api/scrape-logs")).json()
    assert logs["pagination"]["totalItems"] == 1
    assert logs["data"][0]["status"] == "success"
    assert logs["data"][0]["action"] == "Manual"


async def test_fail_retry_and_cancel(client):
    operation_id = (await create(client, maxRetries=1)).json()["data"]["id"]

    failed = await client.post(
        f"/api/scraping-operations/{operation_id}/fail", json={"errorMessage": "Blocked by captcha"}
    )
    assert failed.json()["data"]["status"] == "failed"
    assert failed.json()["data"]["errorMessage"] == "Blocked by captcha"

    retried = await client.post(f"/api/scraping-operations/{operation_id}/retry")
    assert retried.json()["data"]["status"] == "pending"
    assert retried.json()["data"]["retryCount"] == 1

    await client.post(f"/api/scraping-operations/{operation_id}/fail", json={})
    exhausted = await client.post(f"/api/scraping-operations/{operation_id}/retry")
    assert exhausted.status_code == 400
    assert exhausted.json()["error"]["code"] == "RETRY_LIMIT_EXCEEDED"

    cancelled = await client.post(f"/api/scraping-operations/{operation_id}/cancel")
    assert cancelled.json()["data"]["status"] == "cancelled"


async def test_update_and_delete(client):
    operation_id = (await create(client)).json()["data"]["id"]

    updated = await client.put(
        f"/api/scraping-operations/{operation_id}",
        json={"notes": "recheck", "progress": {"current": 1, "total": 4}},
    )
    assert updated.json()["data"]["notes"] == "recheck"
    assert updated.json()["data"]["progress"]["percentage"] == 25

    rejected = await client.put(f"/api/scraping-operations/{operation_id}", json={"status": "success"})
    assert rejected.status_code == 400

    deleted = await client.delete(f"/api/scraping-operations/{operation_id}")
    assert deleted.status_code == 200
    missing = await client.get(f"/api/scraping-operations/{operation_id}")
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "NOT_FOUND"


async def test_list_and_stats(client):
    await create(client)
    await create(client, url="https://www.myntra.com/shirts/1", seller="myntra")

    listed = (await client.get(
        "/api/scraping-operations", params={"seller": "myntra", "limit": 5}
    )).json()
    assert listed["pagination"] == {
        "currentPage": 1, "totalPages": 1, "totalItems": 1, "itemsPerPage": 5,
    }
    assert "scrapedData" not in listed["data"][0]

    bad_sort = await client.get("/api/scraping-operations", params={"sortBy": "secret"})
    assert bad_sort.status_code == 400

    stats = (await client.get("/api/scraping-operations/stats")).json()["data"]
    assert stats["summary"]["totalOperations"] == 2
    assert len(stats["recentOperations"]) == 2


async def test_processor_endpoints(client, fetcher):
    operation_id = (await create(client)).json()["data"]["id"]

    not_running = await client.post("/api/job-processor/trigger")
    assert not_running.status_code == 400
    assert not_running.json()["error"]["code"] == "PROCESSOR_NOT_RUNNING"

    too_fast = await client.put("/api/job-processor/interval", json={"intervalMs": 100})
    assert too_fast.status_code == 400

    interval = await client.put("/api/job-processor/interval", json={"intervalMs": 60000})
    assert interval.json()["data"]["processingIntervalMs"] == 60000

    assert (await client.post("/api/job-processor/start")).status_code == 200
    triggered = await client.post("/api/job-processor/trigger")
    assert triggered.status_code == 200
    assert (await client.post("/api/job-processor/stop")).status_code == 200

    status = (await client.get("/api/job-processor/status")).json()["data"]
    assert status["isProcessing"] is False
    assert status["processingIntervalMs"] == 60000

    operation = (await client.get(f"/api/scraping-operations/{operation_id}")).json()["data"]
    assert operation["status"] == "success"
    assert fetcher.calls == [PRODUCT_URL]

    cleanup = await client.post("/api/job-processor/cleanup", json={"daysOld": 0})
    assert cleanup.json()["data"] == [operation_id]

    retried = await client.post("/api/job-processor/retry-failed")
    assert retried.json()["data"] == []


async def test_scrape_log_endpoints(client):
    created = await client.post("/api/scrape-logs", json={
        "when": "2024-05-01T08:30:00Z",
        "platform": "ajio",
        "type": "category",
        "url": "https://www.ajio.com/men-shirts/c/830216001",
        "status": "failed",
    })
    assert created.status_code == 201
    log = created.json()["data"]
    assert log["action"] == "Manual"
    assert log["when"] == "2024-05-01T08:30:00.000Z"

    invalid = await client.post("/api/scrape-logs", json={"platform": "ajio"})
    assert invalid.status_code == 400

    patched = await client.patch(f"/api/scrape-logs/{log['id']}", json={"status": "success"})
    assert patched.json()["data"]["status"] == "success"

    replaced = await client.put(f"/api/scrape-logs/{log['id']}", json={"status": "failed"})
    assert replaced.status_code == 400

    report = (await client.get(f"/api/scrape-logs/{log['id']}/report")).json()["data"]
    assert report["operationDetails"] is None

    stats = (await client.get("/api/scrape-logs/stats")).json()["data"]
    assert stats["counts"]["success"] == 1
    assert stats["chart"][0]["date"] == "2024-05-01"

    comprehensive = (await client.get(
        "/api/scrape-logs/stats/comprehensive", params={"platform": "ajio"}
    )).json()["data"]
    assert comprehensive["overall"]["totalOperations"] == 1

    missing = await client.get("/api/scrape-logs/missing-id")
    assert missing.status_code == 404

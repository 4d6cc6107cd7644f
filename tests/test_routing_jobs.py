import pytest

from fulfillment_router.jobs.routing_jobs import route_batch_message, route_order_message
from tests.conftest import LYON, ORG_ID, PARIS


def _payload(order_id, quantity=1, **extra):
    return {
        "id": order_id,
        "org_id": ORG_ID,
        "items": [{"sku": "SKU-A", "quantity": quantity}],
        "delivery_address": {"country": "fr", "postal_code": "75008"},
        **extra,
    }


@pytest.mark.asyncio
async def test_route_order_message(routing_service, data_source, stock_rows):
    data_source.stock = stock_rows({PARIS: {"SKU-A": 5}})

    result = await route_order_message(_payload("msg-1"), service=routing_service)

    assert result["status"] == "routed"
    assert result["decision"]["type"] == "single"
    assert result["decision"]["shipments"][0]["warehouse_id"] == PARIS
    assert isinstance(result["decision"]["created_at"], str)
    assert len(data_source.decisions) == 1


@pytest.mark.asyncio
async def test_route_order_message_dry_run(routing_service, data_source, stock_rows):
    data_source.stock = stock_rows({PARIS: {"SKU-A": 5}})

    result = await route_order_message(_payload("msg-2", dry_run=True), service=routing_service)

    assert result["decision"]["is_dry_run"] is True
    assert data_source.decisions == []


@pytest.mark.asyncio
async def test_routing_error_becomes_failed_result(routing_service, data_source, stock_rows):
    data_source.stock = stock_rows({PARIS: {"SKU-A": 2}, LYON: {"SKU-A": 1}})

    result = await route_order_message(_payload("msg-3", quantity=5), service=routing_service)

    assert result["status"] == "failed"
    assert result["error_type"] == "InsufficientStockError"
    assert result["shortfall"] == [{"sku": "SKU-A", "requested": 5, "available": 3, "shortage": 2}]


@pytest.mark.asyncio
async def test_invalid_payload(routing_service):
    result = await route_order_message({"id": "msg-4", "org_id": ORG_ID, "items": []},
                                       service=routing_service)

    assert result["status"] == "failed"
    assert result["error_type"] == "ValidationError"


@pytest.mark.asyncio
async def test_infrastructure_errors_propagate(routing_service, data_source, monkeypatch):
    async def broken(org_id):
        raise ConnectionError("database unavailable")

    monkeypatch.setattr(data_source, "get_active_warehouses", broken)

    with pytest.raises(ConnectionError):
        await route_order_message(_payload("msg-5"), service=routing_service)


@pytest.mark.asyncio
async def test_route_batch_message(routing_service, data_source, stock_rows):
    data_source.stock = stock_rows({PARIS: {"SKU-A": 5}})
    payload = {
        "orders": [
            _payload("batch-1"),
            {"id": "batch-3", "items": "not-a-list"},
            _payload("batch-2", quantity=99),
        ],
        "concurrency": 2,
    }

    result = await route_batch_message(payload, service=routing_service)

    assert (result["total"], result["routed"], result["failed"]) == (3, 1, 2)
    statuses = {r["order_id"]: r["status"] for r in result["results"]}
    assert statuses == {"batch-1": "routed", "batch-2": "failed", "batch-3": "failed"}
    assert [r["order_id"] for r in result["results"]] == ["batch-1", "batch-3", "batch-2"]
    assert result["results"][1]["error_type"] == "ValidationError"
    assert result["results"][2]["error_type"] == "InsufficientStockError"

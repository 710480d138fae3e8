from decimal import Decimal

import pytest

from stockq.core.errors import ValidationError
from stockq.models.enums import Lane
from stockq.services.task_intake import TaskIntake


def _body(**kw):
    base = {
        "tenant_id": 1,
        "order_id": 10,
        "order_number": "SO-10",
        "warehouse_id": 2,
        "items": [{"product_id": 5, "quantity": "1.5"}],
    }
    base.update(kw)
    return base


def test_validate_normalizes_quantities_to_decimal():
    task = TaskIntake().validate(_body())
    assert task.items[0].quantity == Decimal("1.5")
    assert task.priority == Lane.DEFAULT


def test_query_tenant_overrides_body():
    body = _body()
    body.pop("tenant_id")
    task = TaskIntake().validate(body, tenant_id="7")
    assert task.tenant_id == 7


def test_empty_items_rejected():
    with pytest.raises(ValidationError) as ei:
        TaskIntake().validate(_body(items=[]))
    assert ei.value.field == "items"
    assert ei.value.http_status == 422


def test_reports_first_bad_line():
    items = [{"product_id": 5, "quantity": "1"}, {"product_id": 6, "quantity": "0"}]
    with pytest.raises(ValidationError) as ei:
        TaskIntake().validate(_body(items=items))
    assert ei.value.field == "items[1].quantity"
    assert ei.value.details[0]["path"] == "items[1].quantity"


@pytest.mark.parametrize("key", ["tenant_id", "order_id", "warehouse_id"])
def test_zero_ids_rejected(key):
    with pytest.raises(ValidationError) as ei:
        TaskIntake().validate(_body(**{key: 0}))
    assert ei.value.field == key


def test_zero_product_rejected():
    with pytest.raises(ValidationError) as ei:
        TaskIntake().validate(_body(items=[{"product_id": 0, "quantity": "1"}]))
    assert ei.value.field == "items[0].product_id"


@pytest.mark.parametrize("raw", [None, [], "x"])
def test_non_object_body_rejected(raw):
    with pytest.raises(ValidationError) as ei:
        TaskIntake().validate(raw)
    assert ei.value.field == "body"


def test_lane_for():
    intake = TaskIntake()
    assert intake.lane_for(intake.validate(_body(priority="critical"))) == Lane.CRITICAL
    assert intake.lane_for(intake.validate(_body())) == Lane.DEFAULT


def test_payload_carries_quantities_as_strings():
    task = TaskIntake().validate(_body())
    payload = task.to_payload()
    assert payload["items"][0]["quantity"] == "1.5"
    assert TaskIntake().validate(payload) == task


@pytest.mark.parametrize("qty", ["1.00005", "0.00001"])
def test_quantity_beyond_four_decimals_rejected(qty):
    with pytest.raises(ValidationError) as ei:
        TaskIntake().validate(_body(items=[{"product_id": 5, "quantity": qty}]))
    assert ei.value.field == "items[0].quantity"


def test_quantity_overflowing_ledger_column_rejected():
    with pytest.raises(ValidationError) as ei:
        TaskIntake().validate(_body(items=[{"product_id": 5, "quantity": "100000000000000"}]))
    assert ei.value.field == "items[0].quantity"


@pytest.mark.parametrize("qty", ["0.0001", "1.0001", "99999999999999.9999"])
def test_quantity_within_ledger_precision_accepted(qty):
    task = TaskIntake().validate(_body(items=[{"product_id": 5, "quantity": qty}]))
    assert task.items[0].quantity == Decimal(qty)

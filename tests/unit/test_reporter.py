from __future__ import annotations

import pytest

from tests.helpers.fakes import ExplodingSink, RecordingSink

from stockq.observability.events import STATUS_FAILED, TYPE_DEBUG, LedgerEvent
from stockq.observability.reporter import ResultReporter
from stockq.services.task_intake import TaskIntake


def _task():
    return TaskIntake().validate(
        {
            "tenant_id": 3,
            "order_id": 44,
            "order_number": "",
            "warehouse_id": 1,
            "items": [{"product_id": 8, "quantity": "2"}],
        }
    )


@pytest.mark.asyncio
async def test_sink_failure_does_not_propagate():
    recording = RecordingSink()
    reporter = ResultReporter([ExplodingSink(), recording])

    outcomes = await reporter.report(LedgerEvent(type="order", message="x"))

    assert [o.ok for o in outcomes] == [False, True]
    assert "RuntimeError" in (outcomes[0].error or "")
    assert len(recording.events) == 1


@pytest.mark.asyncio
async def test_debug_event_uses_explicit_fields():
    recording = RecordingSink()
    reporter = ResultReporter([recording])

    await reporter.debug("alice", "pipeline check", order_id=12, tenant_id=3)

    (ev,) = recording.events
    assert ev.type == TYPE_DEBUG
    assert ev.level == "DEBUG"
    assert ev.dev_name == "alice"
    assert (ev.order_id, ev.tenant_id) == (12, 3)


def test_event_for_task_omits_empty_optionals():
    ev = LedgerEvent.for_task(_task(), status=STATUS_FAILED, message="stock deduction failed")
    body = ev.to_dict()

    assert body["level"] == "ERROR"
    assert body["items"] == [{"product_id": 8, "quantity": "2"}]
    assert "order_number" not in body
    assert "error" not in body
    assert "dev_name" not in body


def test_describe_lists_sinks():
    reporter = ResultReporter([RecordingSink()])
    assert reporter.describe() == {"recording": "RecordingSink"}

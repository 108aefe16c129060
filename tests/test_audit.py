from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from app.services import audit
from app.services.audit import publish_audit_log, record_audit_log, serialize_for_audit
from conftest import FakeAsyncSession


def test_serialize_for_audit_handles_money_and_dates():
    value = serialize_for_audit(
        {"amount": Decimal("10.50"), "at": datetime(2026, 3, 5, 9, 0, tzinfo=timezone.utc)}
    )
    assert value == {"amount": "10.50", "at": "2026-03-05T09:00:00+00:00"}


def test_record_audit_log_computes_changes():
    db = FakeAsyncSession()
    actor = uuid4()

    entry = record_audit_log(
        db,
        actor_id=actor,
        action="transaction.approved",
        resource_type="transaction",
        resource_id="tx-1",
        old_value={"status": "pending", "approved_by": None},
        new_value={"status": "approved", "approved_by": actor},
    )

    assert db.added == [entry]
    assert entry.changes == {
        "approved_by": {"from": None, "to": str(actor)},
        "status": {"from": "pending", "to": "approved"},
    }
    assert entry.summary == "transaction.approved: approved_by, status"


def test_record_audit_log_without_values():
    entry = record_audit_log(
        FakeAsyncSession(),
        actor_id=None,
        action="report.generated",
        resource_type="report",
        resource_id="2026-03-05",
    )
    assert entry.changes is None
    assert entry.summary == "report.generated"


class _RecordingLogger:
    def __init__(self):
        self.records = []

    def info(self, message, *args, extra=None):
        self.records.append((message, extra))


def test_staging_does_not_log_until_published(monkeypatch):
    recorder = _RecordingLogger()
    monkeypatch.setattr(audit, "audit_logger", recorder)

    entry = record_audit_log(
        FakeAsyncSession(),
        actor_id=uuid4(),
        action="transaction.denied",
        resource_type="transaction",
        resource_id="tx-9",
        old_value={"status": "pending"},
        new_value={"status": "denied"},
    )
    assert recorder.records == []

    publish_audit_log(entry)

    assert recorder.records == [
        (
            "transaction.denied: status",
            {"event": "transaction.denied", "transaction_id": "tx-9"},
        )
    ]

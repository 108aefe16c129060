"""Daily FX report bundle.

The bundle is assembled entirely in memory; storage writes happen only after
every part of it was built, so a failure never leaves a partial artifact.
"""

from __future__ import annotations

import csv
import logging
import zipfile
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from io import BytesIO, StringIO
from pathlib import PurePosixPath
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import Forbidden, NotFound, UpstreamError
from app.core.permissions import REPORT_ROLES, Role
from app.core.settings import settings
from app.schemas.reports import ReportRequest
from app.services import transactions
from app.services.audit import publish_audit_log, record_audit_log
from app.services.authz import ActorContext
from app.services.storage.adapter import StorageAdapter
from app.services.storage.key_generator import KeyGenerator

logger = logging.getLogger(__name__)

RATE_FILENAME = "Rate.csv"
RATE_HEADERS = ["INDICATIVE BUYING", "INDICATIVE SELLING"]
TRANSACTION_HEADERS = [
    "CustomerName",
    "Sector",
    "NatureofBusiness",
    "CustomerAddress",
    "ContactName",
    "ContactNumber",
    "Amount",
    "CustomerBalance",
    "FundingStatus",
    "Tenure",
]
RUN_MACRO_FILENAME = "RunMacro.bat"
RUN_MACRO_SCRIPT = (
    "@echo off\r\n"
    'powershell -ExecutionPolicy Bypass -File "%~dp0runMacro.ps1"\r\n'
    "pause\r\n"
)


def format_report_date(as_of: date) -> str:
    return as_of.strftime("%d %b %Y")


def bundle_filename(as_of: date) -> str:
    return f"FX_Report_Package_{format_report_date(as_of)}.zip"


def _stringify(value) -> str:
    if isinstance(value, Decimal):
        return str(value)
    if value is None:
        return ""
    return str(value)


def _write_csv(headers: list[str], rows: list[list[str]]) -> str:
    buffer = StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(headers)
    for row in rows:
        writer.writerow(row)
    return buffer.getvalue()


def rates_to_csv(request: ReportRequest) -> str:
    return _write_csv(
        RATE_HEADERS,
        [[_stringify(request.indicative_buying), _stringify(request.indicative_selling)]],
    )


def transactions_to_csv(rows: list[Any]) -> str:
    return _write_csv(
        TRANSACTION_HEADERS,
        [
            [
                _stringify(tx.customer_name),
                _stringify(tx.sector),
                _stringify(tx.nature_of_business),
                _stringify(tx.customer_address),
                _stringify(tx.contact_name),
                _stringify(tx.contact_number),
                _stringify(tx.amount),
                _stringify(tx.cedi_balance),
                _stringify(tx.funding_status),
                _stringify(tx.tenor),
            ]
            for tx in rows
        ],
    )


def _day_window(as_of: date) -> tuple[datetime, datetime]:
    start = datetime.combine(as_of, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


def _load_templates(adapter: StorageAdapter, keys: list[str]) -> dict[str, bytes]:
    templates: dict[str, bytes] = {}
    for key in keys:
        try:
            templates[PurePosixPath(key).name] = adapter.read_bytes(key)
        except (FileNotFoundError, ValueError) as exc:
            raise UpstreamError(
                "Report template is missing from storage", details={"key": key}
            ) from exc
        except OSError as exc:
            raise UpstreamError("File storage unavailable", details={"key": key}) from exc
    return templates


def build_bundle(
    *,
    rate_csv: str,
    transactions_csv: str,
    as_of: date,
    templates: dict[str, bytes],
) -> bytes:
    buffer = BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for name, content in templates.items():
            archive.writestr(name, content)
        archive.writestr(f"{format_report_date(as_of)}.csv", transactions_csv)
        archive.writestr(RATE_FILENAME, rate_csv)
        archive.writestr(RUN_MACRO_FILENAME, RUN_MACRO_SCRIPT)
    return buffer.getvalue()


async def generate_report(
    db: AsyncSession,
    actor: ActorContext,
    request: ReportRequest,
    adapter: StorageAdapter,
) -> tuple[str, bytes]:
    """Return ``(filename, zip_bytes)`` for the day's approved transactions."""
    if Role(actor.role) not in REPORT_ROLES:
        raise Forbidden("role not permitted", reason="role_not_permitted")

    as_of = request.as_of_date or datetime.now(timezone.utc).date()
    day_start, day_end = _day_window(as_of)
    approved = await transactions.list_approved_for_date(db, day_start=day_start, day_end=day_end)
    if not approved:
        raise NotFound(
            "No approved transactions found for the report date",
            details={"as_of_date": as_of.isoformat()},
        )

    rate_csv = rates_to_csv(request)
    transactions_csv = transactions_to_csv(approved)
    templates = _load_templates(adapter, list(settings.report_template_keys))
    bundle = build_bundle(
        rate_csv=rate_csv,
        transactions_csv=transactions_csv,
        as_of=as_of,
        templates=templates,
    )

    inputs = {
        RATE_FILENAME: rate_csv,
        f"{format_report_date(as_of)}.csv": transactions_csv,
    }
    try:
        for name, content in inputs.items():
            adapter.write_bytes(
                KeyGenerator.report_input_key(as_of, name), content.encode("utf-8"), "text/csv"
            )
    except OSError as exc:
        raise UpstreamError("Failed to persist report inputs") from exc

    audit_entry = record_audit_log(
        db,
        actor_id=actor.user_id,
        action="report.generated",
        resource_type="report",
        resource_id=as_of.isoformat(),
        new_value={
            "transactions": len(approved),
            "indicative_buying": request.indicative_buying,
            "indicative_selling": request.indicative_selling,
        },
    )
    await db.commit()
    publish_audit_log(audit_entry)
    logger.info("Report bundle for %s built with %s transaction(s)", as_of, len(approved))
    return bundle_filename(as_of), bundle

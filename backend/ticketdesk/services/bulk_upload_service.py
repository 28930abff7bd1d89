# Overview: All-or-nothing CSV uploads for stock, distributions and legacy sales.

"""
Bulk uploads.

Formats (comma separated, one record per line, blank lines ignored, an
optional header row is skipped):

- stock:          price,color,startSerial,endSerial
- distributions:  date,staffName,rideName,startSerial
- legacy sales:   date,rideName,rate,ticketsSold[,electronic]

Every line runs through the same service call a single request would use,
inside one enclosing transaction. The first failing line aborts the batch and
nothing is written.
"""

from __future__ import annotations

import csv
import io
import logging

from flask import current_app

from ..extensions import db
from ..models import TicketStock, TicketDistribution, StockStatus
from ..errors import TicketingError, BulkImportError, StaffOrRateNotFound, NotFound
from ..validation import ValidationError, parse_int, parse_money_cents, parse_date
from .concurrency import transaction
from .scope_service import require_writable_scope
from .staff_service import find_staff_by_name
from .rate_service import find_ride_by_name, find_or_create_ride
from . import stock_service, distribution_service, settlement_service

logger = logging.getLogger(__name__)

_HEADER_MARKERS = {"price", "date"}


def _read_rows(text: str, *, min_fields: int, max_fields: int) -> list[tuple[int, list[str]]]:
    """Split upload text into (row_number, fields); row numbers count non-blank lines from 1."""
    if text is None:
        raise ValidationError("No file content was uploaded")

    reader = csv.reader(io.StringIO(text))
    rows: list[tuple[int, list[str]]] = []
    for fields in reader:
        fields = [f.strip() for f in fields]
        if not any(fields):
            continue
        if not rows and fields[0].lower() in _HEADER_MARKERS:
            continue
        row_number = len(rows) + 1
        if len(fields) < min_fields or len(fields) > max_fields or not all(fields[:min_fields]):
            raise BulkImportError(row_number, f"Incomplete data. Expected {min_fields} fields, got {len(fields)}")
        rows.append((row_number, fields))

    if not rows:
        raise ValidationError("Upload contains no records")

    limit = current_app.config.get("BULK_UPLOAD_MAX_ROWS", 5000)
    if len(rows) > limit:
        raise ValidationError(f"Upload has {len(rows)} rows; the limit is {limit}")
    return rows


def _run_batch(rows, handler, *, kind: str, scope_id: int) -> list:
    results = []
    with transaction():
        require_writable_scope(scope_id)
        for row_number, fields in rows:
            try:
                results.append(handler(fields))
            except BulkImportError:
                raise
            except (TicketingError, ValueError) as exc:
                raise BulkImportError(row_number, str(exc)) from exc
    logger.info("Bulk %s upload committed %d rows for session #%s", kind, len(results), scope_id)
    return results


def bulk_create_stock(scope_id: int, text: str, *, user_id: int | None = None) -> list[TicketStock]:
    rows = _read_rows(text, min_fields=4, max_fields=4)

    def _handle(fields: list[str]) -> TicketStock:
        price, color, start, end = fields
        return stock_service.create_bundle(
            scope_id,
            parse_money_cents(price, "price"),
            color,
            parse_int(start, "startSerial"),
            parse_int(end, "endSerial"),
            user_id=user_id,
        )

    return _run_batch(rows, _handle, kind="stock", scope_id=scope_id)


def bulk_distribute(scope_id: int, text: str, *, user_id: int | None = None) -> list[TicketDistribution]:
    rows = _read_rows(text, min_fields=4, max_fields=4)

    def _handle(fields: list[str]) -> TicketDistribution:
        raw_date, staff_name, ride_name, raw_start = fields
        distribution_date = parse_date(raw_date, "date")
        start_number = parse_int(raw_start, "startSerial")

        staff = find_staff_by_name(staff_name)
        if not staff:
            raise StaffOrRateNotFound(f'Staff member "{staff_name}" not found')
        ride = find_ride_by_name(ride_name)
        if not ride:
            raise StaffOrRateNotFound(f'Ride "{ride_name}" not found')

        candidates = db.session.query(TicketStock).filter(
            TicketStock.event_session_id == scope_id,
            TicketStock.start_number == start_number,
            TicketStock.status == StockStatus.AVAILABLE,
            TicketStock.price_cents == ride.rate_cents,
        ).order_by(TicketStock.id).all()
        if not candidates:
            raise NotFound(
                f'Available stock bundle starting with "{start_number}" for rate {ride.rate_cents / 100:.2f} not found'
            )
        if len(candidates) > 1:
            colors = ", ".join(b.color for b in candidates)
            raise ValidationError(
                f'Start serial "{start_number}" matches {len(candidates)} available bundles ({colors}); '
                "distribute this one individually"
            )
        bundle = candidates[0]

        return distribution_service.distribute(
            scope_id, staff.id, ride.id, bundle.id, distribution_date, user_id=user_id,
        )

    return _run_batch(rows, _handle, kind="distribution", scope_id=scope_id)


def bulk_import_sales(scope_id: int, text: str, *, user_id: int | None = None) -> list[TicketDistribution]:
    rows = _read_rows(text, min_fields=4, max_fields=5)

    def _handle(fields: list[str]) -> TicketDistribution:
        raw_date, ride_name, raw_rate, raw_sold = fields[:4]
        raw_electronic = fields[4] if len(fields) > 4 and fields[4] else "0"

        rate_cents = parse_money_cents(raw_rate, "rate")
        ride = find_or_create_ride(ride_name, rate_cents)
        return settlement_service.import_sale(
            scope_id,
            parse_date(raw_date, "date"),
            ride.id,
            parse_int(raw_sold, "ticketsSold"),
            electronic_cents=parse_money_cents(raw_electronic, "electronic"),
            rate_cents=rate_cents,
            user_id=user_id,
        )

    return _run_batch(rows, _handle, kind="sales", scope_id=scope_id)

from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pos_portal.errors import ConflictError
from pos_portal.models import InvoiceSequence, Transaction
from pos_portal.timeutils import as_utc, now_utc, store_zone

INVOICE_PREFIX = 'INV'
SEQUENCE_WIDTH = 4
MAX_SEQUENCE = 10**SEQUENCE_WIDTH - 1

# Constraint and table names that identify a lost numbering race.
_INVOICE_CONFLICT_MARKERS = (
    'transactions_store_invoice_uniq',
    'transactions.invoice_number',
    'invoice_sequences',
)


def invoice_prefix(moment: datetime | None = None) -> str:
    local = as_utc(moment or now_utc()).astimezone(store_zone())
    return f'{INVOICE_PREFIX}-{local:%Y%m%d}'


def format_invoice_number(prefix: str, sequence: int) -> str:
    return f'{prefix}-{sequence:0{SEQUENCE_WIDTH}d}'


def parse_sequence(invoice_number: str) -> int:
    tail = invoice_number.rsplit('-', 1)[-1]
    return int(tail) if tail.isdigit() else 0


def _last_issued_sequence(db: Session, *, store_id: str, prefix: str) -> int:
    # Fixed-width zero padding makes lexicographic order equal numeric order.
    last_invoice = db.execute(
        select(Transaction.invoice_number)
        .where(
            Transaction.store_id == store_id,
            Transaction.invoice_number.startswith(f'{prefix}-'),
        )
        .order_by(Transaction.invoice_number.desc())
        .limit(1)
    ).scalar_one_or_none()
    from_transactions = parse_sequence(last_invoice) if last_invoice else 0

    high_water = db.execute(
        select(InvoiceSequence.last_sequence).where(
            InvoiceSequence.store_id == store_id,
            InvoiceSequence.prefix == prefix,
        )
    ).scalar_one_or_none()
    return max(from_transactions, high_water or 0)


def next_invoice_number(db: Session, *, store_id: str, moment: datetime | None = None) -> str:
    """Compute the next invoice number for the store's current day.

    Not safe on its own under concurrent writers: two callers can read the same
    last sequence. Callers insert under the (store_id, invoice_number) unique
    constraint and retry via ``is_invoice_conflict``.
    """
    prefix = invoice_prefix(moment)
    sequence = _last_issued_sequence(db, store_id=store_id, prefix=prefix) + 1
    if sequence > MAX_SEQUENCE:
        raise ConflictError(f'Invoice sequence for {prefix} is exhausted')
    return format_invoice_number(prefix, sequence)


def record_issued(db: Session, *, store_id: str, invoice_number: str) -> None:
    prefix, _, _ = invoice_number.rpartition('-')
    sequence = parse_sequence(invoice_number)
    row = db.execute(
        select(InvoiceSequence).where(
            InvoiceSequence.store_id == store_id,
            InvoiceSequence.prefix == prefix,
        )
    ).scalar_one_or_none()
    if not row:
        db.add(InvoiceSequence(store_id=store_id, prefix=prefix, last_sequence=sequence, updated_at=now_utc()))
        return
    if sequence > row.last_sequence:
        row.last_sequence = sequence
        row.updated_at = now_utc()


def is_invoice_conflict(exc: IntegrityError) -> bool:
    message = str(exc.orig) if exc.orig is not None else str(exc)
    return any(marker in message for marker in _INVOICE_CONFLICT_MARKERS)

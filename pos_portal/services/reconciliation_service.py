from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from pos_portal.cache import TTLCache
from pos_portal.models import PaymentMethod, Transaction, User
from pos_portal.services.payment_config import channel_name, method_name, resolve_channel_id
from pos_portal.timeutils import isoformat_utc, store_day_bounds

ZERO = Decimal('0.00')
RECONCILED_METHODS = (PaymentMethod.CASH, PaymentMethod.TRANSFER, PaymentMethod.CARD, PaymentMethod.QRIS)


@dataclass
class ChannelSummary:
    channel_id: str
    channel_name: str
    method_id: str
    method_name: str
    count: int = 0
    total: Decimal = ZERO

    def as_dict(self) -> dict:
        return {
            'channelId': self.channel_id,
            'channelName': self.channel_name,
            'methodId': self.method_id,
            'methodName': self.method_name,
            'count': self.count,
            'total': str(self.total),
        }


def _method_value(method: PaymentMethod | str) -> str:
    return method.value if isinstance(method, PaymentMethod) else str(method)


def summarize_by_channel(transactions: list[Transaction]) -> list[ChannelSummary]:
    summary: dict[str, ChannelSummary] = {}
    for trx in transactions:
        channel_id = resolve_channel_id(trx.payment_method, trx.payment_channel)
        row = summary.get(channel_id)
        if row is None:
            row = ChannelSummary(
                channel_id=channel_id,
                channel_name=channel_name(trx.payment_method, channel_id),
                method_id=_method_value(trx.payment_method),
                method_name=method_name(trx.payment_method),
            )
            summary[channel_id] = row
        row.count += 1
        row.total += trx.total

    rows = [row for row in summary.values() if row.count > 0]
    rows.sort(key=lambda row: row.total, reverse=True)
    return rows


def _totals_by_method(transactions: list[Transaction]) -> dict[str, Decimal]:
    by_method = {method.value: ZERO for method in RECONCILED_METHODS}
    for trx in transactions:
        key = _method_value(trx.payment_method)
        if key in by_method:
            by_method[key] += trx.total
    return by_method


def _serialize_row(trx: Transaction, cashier_name: str | None) -> dict:
    return {
        'id': trx.id,
        'invoiceNumber': trx.invoice_number,
        'total': str(trx.total),
        'paymentMethod': _method_value(trx.payment_method),
        'paymentChannel': trx.payment_channel,
        'paymentReference': trx.payment_reference,
        'isSynced': trx.is_synced,
        'createdAt': isoformat_utc(trx.created_at),
        'cashier': {'id': trx.cashier_id, 'fullName': cashier_name},
    }


def reconcile(
    db: Session,
    *,
    store_id: str,
    day: date,
    summary_only: bool,
    transaction_cap: int,
) -> dict:
    """Aggregate one store-local day of committed sales by payment method and channel."""
    start, end = store_day_bounds(day)
    rows = db.execute(
        select(Transaction, User.full_name)
        .outerjoin(User, User.id == Transaction.cashier_id)
        .where(
            Transaction.store_id == store_id,
            Transaction.created_at >= start,
            Transaction.created_at < end,
        )
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
    ).all()
    transactions = [trx for trx, _ in rows]

    total_revenue = sum((trx.total for trx in transactions), ZERO)
    report = {
        'date': day.isoformat(),
        'storeId': store_id,
        'totalRevenue': str(total_revenue),
        'totalTransactions': len(transactions),
        'byMethod': {key: str(value) for key, value in _totals_by_method(transactions).items()},
        'paymentSummary': [row.as_dict() for row in summarize_by_channel(transactions)],
    }
    if not summary_only:
        report['transactions'] = [_serialize_row(trx, cashier_name) for trx, cashier_name in rows[:transaction_cap]]
    return report


def report_cache_key(store_id: str, day: date) -> str:
    return f'reconciliation:{store_id}:{day.isoformat()}'


def invalidate_cached_reports(cache: TTLCache, store_id: str) -> None:
    cache.delete_prefix(f'reconciliation:{store_id}:')

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pos_portal.config import settings
from pos_portal.errors import ConflictError, NotFoundError
from pos_portal.models import Product, Store, Transaction, TransactionItem, User
from pos_portal.schemas import TransactionIn
from pos_portal.services.audit_service import log_audit
from pos_portal.services.invoice_service import is_invoice_conflict, next_invoice_number, record_issued
from pos_portal.timeutils import as_utc, isoformat_utc, now_utc

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')


@dataclass
class CommitResult:
    transaction: Transaction
    items: list[TransactionItem]
    oversold_product_ids: list[int] = field(default_factory=list)


def _money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT)


def _ensure_store(db: Session, store_id: str) -> None:
    exists = db.execute(select(Store.id).where(Store.id == store_id, Store.active.is_(True))).scalar_one_or_none()
    if not exists:
        raise NotFoundError(f'Store {store_id} not found')


def _ensure_cashier(db: Session, *, store_id: str, cashier_id: int) -> None:
    exists = db.execute(
        select(User.id).where(User.id == cashier_id, User.store_id == store_id, User.active.is_(True))
    ).scalar_one_or_none()
    if not exists:
        raise NotFoundError(f'Cashier {cashier_id} not found or inactive for store {store_id}')


def _ensure_products(db: Session, *, store_id: str, product_ids: set[int]) -> None:
    found = set(
        db.execute(select(Product.id).where(Product.store_id == store_id, Product.id.in_(product_ids))).scalars().all()
    )
    missing = sorted(product_ids - found)
    if missing:
        raise NotFoundError(f'Product {", ".join(str(pid) for pid in missing)} not found')


def _insert_transaction(
    db: Session,
    *,
    store_id: str,
    cashier_id: int,
    payload: TransactionIn,
    is_synced: bool,
    committed_at: datetime,
) -> CommitResult:
    invoice_number = next_invoice_number(db, store_id=store_id, moment=committed_at)
    transaction = Transaction(
        store_id=store_id,
        cashier_id=cashier_id,
        invoice_number=invoice_number,
        subtotal=_money(payload.subtotal),
        tax=_money(payload.tax),
        discount=_money(payload.discount),
        total=_money(payload.total),
        payment_method=payload.payment_method,
        payment_channel=payload.payment_channel or None,
        payment_reference=payload.payment_reference or None,
        amount_paid=_money(payload.amount_paid),
        change=_money(payload.change),
        customer_name=payload.customer_name or None,
        customer_phone=payload.customer_phone or None,
        notes=payload.notes or None,
        is_synced=is_synced,
        # Offline sales keep the till's clock; only the invoice uses commit time.
        created_at=as_utc(payload.created_at) if payload.created_at else committed_at,
        committed_at=committed_at,
    )
    db.add(transaction)
    record_issued(db, store_id=store_id, invoice_number=invoice_number)
    db.flush()

    items = [
        TransactionItem(
            transaction_id=transaction.id,
            product_id=item.product_id,
            position=position,
            product_name=item.name,
            quantity=item.quantity,
            price=_money(item.unit_price),
            discount=_money(item.line_discount),
            subtotal=_money(item.line_subtotal),
            notes=item.notes,
        )
        for position, item in enumerate(payload.items)
    ]
    db.add_all(items)

    oversold: list[int] = []
    for item in payload.items:
        remaining = db.execute(
            update(Product)
            .where(Product.id == item.product_id)
            .values(stock=Product.stock - item.quantity, updated_at=committed_at)
            .returning(Product.stock)
        ).scalar_one()
        if remaining < 0 and item.product_id not in oversold:
            oversold.append(item.product_id)
    db.flush()
    return CommitResult(transaction=transaction, items=items, oversold_product_ids=oversold)


def commit_transaction(
    db: Session,
    *,
    store_id: str,
    cashier_id: int,
    payload: TransactionIn,
    is_synced: bool,
) -> CommitResult:
    """Durably record one sale: assign an invoice number, write it with its items, decrement stock.

    The sale is its own unit of work and is committed here. A lost invoice
    numbering race rolls back and renumbers up to
    ``settings.invoice_retry_attempts`` times before surfacing ConflictError.
    """
    attempts = max(1, settings.invoice_retry_attempts)
    attempt = 0
    while True:
        attempt += 1
        try:
            _ensure_store(db, store_id)
            _ensure_cashier(db, store_id=store_id, cashier_id=cashier_id)
            _ensure_products(db, store_id=store_id, product_ids={item.product_id for item in payload.items})
            result = _insert_transaction(
                db,
                store_id=store_id,
                cashier_id=cashier_id,
                payload=payload,
                is_synced=is_synced,
                committed_at=now_utc(),
            )
            log_audit(
                db,
                store_id=store_id,
                actor_user_id=cashier_id,
                action='TRANSACTION_SYNCED' if is_synced else 'TRANSACTION_COMMITTED',
                transaction_id=result.transaction.id,
                metadata={
                    'invoice_number': result.transaction.invoice_number,
                    'total': str(result.transaction.total),
                    'payment_method': result.transaction.payment_method.value,
                    'oversold_product_ids': result.oversold_product_ids,
                },
            )
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            if not is_invoice_conflict(exc):
                raise ConflictError(f'Transaction conflicts with existing data: {exc.orig}') from exc
            if attempt == attempts:
                raise ConflictError('Could not assign a unique invoice number') from exc
            logger.info('Invoice number race for store %s, retrying (attempt %d/%d)', store_id, attempt, attempts)
            continue
        except Exception:
            db.rollback()
            raise

        if result.oversold_product_ids:
            logger.warning(
                'Invoice %s oversold products %s', result.transaction.invoice_number, result.oversold_product_ids
            )
        return result


def get_transaction(db: Session, *, transaction_id: int) -> tuple[Transaction, list[TransactionItem]]:
    transaction = db.execute(select(Transaction).where(Transaction.id == transaction_id)).scalar_one_or_none()
    if not transaction:
        raise NotFoundError('Transaction not found')
    items = db.execute(
        select(TransactionItem)
        .where(TransactionItem.transaction_id == transaction_id)
        .order_by(TransactionItem.position.asc(), TransactionItem.id.asc())
    ).scalars().all()
    return transaction, list(items)


def delete_transaction(db: Session, *, transaction_id: int, actor_user_id: int | None) -> Transaction:
    """Delete a sale and put its quantities back on the shelf.

    The invoice number stays burned: the per-day high-water mark is untouched.
    """
    transaction, items = get_transaction(db, transaction_id=transaction_id)
    restored_at = now_utc()
    for item in items:
        db.execute(
            update(Product)
            .where(Product.id == item.product_id)
            .values(stock=Product.stock + item.quantity, updated_at=restored_at)
        )
    db.execute(delete(TransactionItem).where(TransactionItem.transaction_id == transaction.id))
    log_audit(
        db,
        store_id=transaction.store_id,
        actor_user_id=actor_user_id,
        action='TRANSACTION_DELETED',
        transaction_id=transaction.id,
        metadata={
            'invoice_number': transaction.invoice_number,
            'restored_items': [{'product_id': item.product_id, 'quantity': item.quantity} for item in items],
        },
    )
    db.delete(transaction)
    db.flush()
    return transaction


def serialize_item(item: TransactionItem) -> dict:
    return {
        'id': item.id,
        'productId': item.product_id,
        'name': item.product_name,
        'quantity': item.quantity,
        'unitPrice': str(item.price),
        'lineDiscount': str(item.discount),
        'lineSubtotal': str(item.subtotal),
        'notes': item.notes,
    }


def serialize_transaction(transaction: Transaction, items: list[TransactionItem] | None = None) -> dict:
    payload = {
        'id': transaction.id,
        'invoiceNumber': transaction.invoice_number,
        'storeId': transaction.store_id,
        'cashierId': transaction.cashier_id,
        'subtotal': str(transaction.subtotal),
        'tax': str(transaction.tax),
        'discount': str(transaction.discount),
        'total': str(transaction.total),
        'amountPaid': str(transaction.amount_paid),
        'change': str(transaction.change),
        'paymentMethod': transaction.payment_method.value,
        'paymentChannel': transaction.payment_channel,
        'paymentReference': transaction.payment_reference,
        'customerName': transaction.customer_name,
        'customerPhone': transaction.customer_phone,
        'notes': transaction.notes,
        'isSynced': transaction.is_synced,
        'createdAt': isoformat_utc(transaction.created_at),
        'committedAt': isoformat_utc(transaction.committed_at),
    }
    if items is not None:
        payload['items'] = [serialize_item(item) for item in items]
    return payload

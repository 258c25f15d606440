from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Integer,
    Numeric,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# SQLite only autoincrements INTEGER primary keys.
BigIntPK = BigInteger().with_variant(Integer(), 'sqlite')
Money = Numeric(14, 2)


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class Base(DeclarativeBase):
    pass


class UserRole(str, Enum):
    OWNER = 'OWNER'
    CASHIER = 'CASHIER'


class PaymentMethod(str, Enum):
    CASH = 'CASH'
    CARD = 'CARD'
    QRIS = 'QRIS'
    TRANSFER = 'TRANSFER'


class Store(Base):
    __tablename__ = 'stores'

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default='true')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class User(Base):
    __tablename__ = 'users'
    __table_args__ = (UniqueConstraint('store_id', 'username', name='users_store_username_uniq'),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    store_id: Mapped[str] = mapped_column(Text, ForeignKey('stores.id'), nullable=False)
    username: Mapped[str] = mapped_column(Text, nullable=False)
    full_name: Mapped[str] = mapped_column(Text, nullable=False)
    role: Mapped[UserRole] = mapped_column(SQLEnum(UserRole, name='user_role'), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default='true')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class Product(Base):
    __tablename__ = 'products'
    __table_args__ = (UniqueConstraint('store_id', 'sku', name='products_store_sku_uniq'),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    store_id: Mapped[str] = mapped_column(Text, ForeignKey('stores.id'), nullable=False)
    sku: Mapped[str | None] = mapped_column(Text)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    price: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal('0.00'))
    # Not constrained to >= 0: concurrent commits may oversell.
    stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default='0')
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default='true')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class Transaction(Base):
    __tablename__ = 'transactions'
    __table_args__ = (
        UniqueConstraint('store_id', 'invoice_number', name='transactions_store_invoice_uniq'),
        CheckConstraint(
            'subtotal >= 0 AND tax >= 0 AND discount >= 0 AND total >= 0 AND amount_paid >= 0',
            name='transactions_amounts_non_negative_ck',
        ),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    store_id: Mapped[str] = mapped_column(Text, ForeignKey('stores.id'), nullable=False)
    cashier_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('users.id'), nullable=False)
    invoice_number: Mapped[str] = mapped_column(Text, nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(Money, nullable=False)
    tax: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal('0.00'))
    discount: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal('0.00'))
    total: Mapped[Decimal] = mapped_column(Money, nullable=False)
    payment_method: Mapped[PaymentMethod] = mapped_column(SQLEnum(PaymentMethod, name='payment_method'), nullable=False)
    payment_channel: Mapped[str | None] = mapped_column(Text)
    payment_reference: Mapped[str | None] = mapped_column(Text)
    amount_paid: Mapped[Decimal] = mapped_column(Money, nullable=False)
    change: Mapped[Decimal] = mapped_column('change_amount', Money, nullable=False, default=Decimal('0.00'))
    customer_name: Mapped[str | None] = mapped_column(Text)
    customer_phone: Mapped[str | None] = mapped_column(Text)
    notes: Mapped[str | None] = mapped_column(Text)
    is_synced: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default='false')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    committed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class TransactionItem(Base):
    __tablename__ = 'transaction_items'
    __table_args__ = (CheckConstraint('quantity > 0', name='transaction_items_quantity_positive_ck'),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    transaction_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey('transactions.id', ondelete='CASCADE'), nullable=False
    )
    product_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('products.id'), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    product_name: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    discount: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal('0.00'))
    subtotal: Mapped[Decimal] = mapped_column(Money, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)


class AuditLog(Base):
    __tablename__ = 'audit_log'

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    store_id: Mapped[str] = mapped_column(Text, nullable=False)
    actor_user_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('users.id'))
    action: Mapped[str] = mapped_column(Text, nullable=False)
    # Plain column: the audited transaction may be deleted later.
    transaction_id: Mapped[int | None] = mapped_column(BigInteger)
    meta: Mapped[dict] = mapped_column('metadata', JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class InvoiceSequence(Base):
    """Highest invoice sequence ever issued per store and day, kept so deleted invoices are not reissued."""

    __tablename__ = 'invoice_sequences'

    store_id: Mapped[str] = mapped_column(Text, ForeignKey('stores.id'), primary_key=True)
    prefix: Mapped[str] = mapped_column(Text, primary_key=True)
    last_sequence: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

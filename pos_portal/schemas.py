from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, TypeVar

import pydantic
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from pos_portal.errors import ValidationError
from pos_portal.models import PaymentMethod

MONEY_TOLERANCE = Decimal('0.01')
ZERO = Decimal('0')

ModelT = TypeVar('ModelT', bound=BaseModel)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra='ignore')


class LineItemIn(_CamelModel):
    product_id: int
    name: str = Field(min_length=1)
    quantity: int = Field(gt=0)
    unit_price: Decimal = Field(ge=0, validation_alias=AliasChoices('unitPrice', 'price', 'unit_price'))
    line_discount: Decimal = Field(
        default=ZERO, ge=0, validation_alias=AliasChoices('lineDiscount', 'discount', 'line_discount')
    )
    line_subtotal: Decimal = Field(ge=0, validation_alias=AliasChoices('lineSubtotal', 'subtotal', 'line_subtotal'))
    notes: str | None = None


class TransactionIn(_CamelModel):
    items: list[LineItemIn] = Field(min_length=1)
    subtotal: Decimal = Field(ge=0)
    tax: Decimal = Field(default=ZERO, ge=0)
    discount: Decimal = Field(default=ZERO, ge=0)
    total: Decimal = Field(ge=0)
    amount_paid: Decimal = Field(ge=0)
    change: Decimal = Field(default=ZERO, ge=0)
    payment_method: PaymentMethod
    payment_channel: str | None = None
    payment_reference: str | None = None
    customer_name: str | None = None
    customer_phone: str | None = None
    notes: str | None = None
    created_at: datetime | None = None

    @model_validator(mode='after')
    def _check_totals(self) -> TransactionIn:
        expected_total = self.subtotal - self.discount + self.tax
        if abs(expected_total - self.total) > MONEY_TOLERANCE:
            raise ValueError('total must equal subtotal - discount + tax')
        if self.payment_method == PaymentMethod.CASH:
            if self.amount_paid < self.total:
                raise ValueError('amount paid is less than total for a cash payment')
            if abs((self.amount_paid - self.total) - self.change) > MONEY_TOLERANCE:
                raise ValueError('change must equal amount paid - total')
        return self


class QueuedTransactionIn(TransactionIn):
    local_id: str | None = Field(default=None, validation_alias=AliasChoices('localId', 'id', 'local_id'))


def _format_errors(exc: pydantic.ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = '.'.join(str(part) for part in error.get('loc', ()))
        message = error.get('msg', 'invalid value')
        parts.append(f'{location}: {message}' if location else message)
    return '; '.join(parts)


def parse_payload(model: type[ModelT], raw: Any) -> ModelT:
    if not isinstance(raw, dict):
        raise ValidationError('Transaction payload must be an object')
    try:
        return model.model_validate(raw)
    except pydantic.ValidationError as exc:
        raise ValidationError(_format_errors(exc)) from exc

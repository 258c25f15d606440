from __future__ import annotations

from dataclasses import dataclass

from pos_portal.models import PaymentMethod


@dataclass(frozen=True)
class PaymentChannel:
    id: str
    name: str


@dataclass(frozen=True)
class PaymentMethodConfig:
    id: PaymentMethod
    name: str
    channels: tuple[PaymentChannel, ...]
    requires_cash_count: bool = False


PAYMENT_METHODS: dict[PaymentMethod, PaymentMethodConfig] = {
    PaymentMethod.CASH: PaymentMethodConfig(
        id=PaymentMethod.CASH,
        name='Tunai',
        requires_cash_count=True,
        channels=(PaymentChannel('CASH_IDR', 'Cash - IDR'),),
    ),
    PaymentMethod.TRANSFER: PaymentMethodConfig(
        id=PaymentMethod.TRANSFER,
        name='Transfer Bank',
        channels=(
            PaymentChannel('TRANSFER_BCA', 'Transfer - Bank BCA'),
            PaymentChannel('TRANSFER_MANDIRI', 'Transfer - Bank Mandiri'),
            PaymentChannel('TRANSFER_BNI', 'Transfer - Bank BNI'),
            PaymentChannel('TRANSFER_BRI', 'Transfer - Bank BRI'),
            PaymentChannel('TRANSFER_PERMATA', 'Transfer - Bank Permata'),
            PaymentChannel('TRANSFER_BSI', 'Transfer - Bank BSI'),
            PaymentChannel('TRANSFER_CIMB', 'Transfer - Bank CIMB Niaga'),
            PaymentChannel('TRANSFER_OTHER', 'Transfer - Bank Lainnya'),
        ),
    ),
    PaymentMethod.CARD: PaymentMethodConfig(
        id=PaymentMethod.CARD,
        name='Kartu Debit/Kredit',
        channels=(
            PaymentChannel('DEBIT_BCA', 'Debit - BCA'),
            PaymentChannel('DEBIT_MANDIRI', 'Debit - Mandiri'),
            PaymentChannel('DEBIT_BNI', 'Debit - BNI'),
            PaymentChannel('DEBIT_BRI', 'Debit - BRI'),
            PaymentChannel('CREDIT_VISA', 'Credit Card - Visa'),
            PaymentChannel('CREDIT_MASTERCARD', 'Credit Card - Mastercard'),
            PaymentChannel('CREDIT_JCB', 'Credit Card - JCB'),
            PaymentChannel('DEBIT_OTHER', 'Debit - Lainnya'),
        ),
    ),
    PaymentMethod.QRIS: PaymentMethodConfig(
        id=PaymentMethod.QRIS,
        name='QRIS',
        channels=(PaymentChannel('QRIS', 'QRIS'),),
    ),
}


def _method_key(method: PaymentMethod | str) -> str:
    return method.value if isinstance(method, PaymentMethod) else str(method)


def get_method_config(method: PaymentMethod | str) -> PaymentMethodConfig | None:
    try:
        return PAYMENT_METHODS.get(PaymentMethod(_method_key(method)))
    except ValueError:
        return None


def get_channel_config(method: PaymentMethod | str, channel_id: str | None) -> PaymentChannel | None:
    config = get_method_config(method)
    if not config or not channel_id:
        return None
    return next((channel for channel in config.channels if channel.id == channel_id), None)


def default_channel_id(method: PaymentMethod | str) -> str:
    return f'{_method_key(method)}_IDR'


def resolve_channel_id(method: PaymentMethod | str, channel_id: str | None) -> str:
    """Reconciliation bucket for a sale.

    A missing channel lands on the method's first configured channel; an
    unrecognised one lands on ``{METHOD}_IDR``.
    """
    if not channel_id:
        config = get_method_config(method)
        if config and config.channels:
            return config.channels[0].id
        return default_channel_id(method)
    channel = get_channel_config(method, channel_id)
    if channel:
        return channel.id
    return default_channel_id(method)


def channel_name(method: PaymentMethod | str, channel_id: str) -> str:
    channel = get_channel_config(method, channel_id)
    if channel:
        return channel.name
    if channel_id == default_channel_id(method):
        return f'{method_name(method)} - IDR'
    return channel_id


def method_name(method: PaymentMethod | str) -> str:
    config = get_method_config(method)
    return config.name if config else _method_key(method)

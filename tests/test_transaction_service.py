from __future__ import annotations

import unittest
from datetime import datetime, timezone

from sqlalchemy import func, select

from pos_portal.errors import NotFoundError
from pos_portal.models import AuditLog, Transaction, TransactionItem, User
from pos_portal.schemas import TransactionIn, parse_payload
from pos_portal.services.transaction_service import (
    commit_transaction,
    delete_transaction,
    get_transaction,
    serialize_transaction,
)
from pos_portal.timeutils import as_utc
from sqlite_support import make_session_factory, sale_payload, seed_store, stock_of


class TransactionServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.Session = make_session_factory()
        self.db = self.Session()
        self.ids = seed_store(self.db)

    def tearDown(self) -> None:
        self.db.close()

    def _commit(self, raw: dict, *, is_synced: bool = False, cashier_id: int | None = None):
        return commit_transaction(
            self.db,
            store_id=self.ids['store_id'],
            cashier_id=cashier_id or self.ids['cashier_id'],
            payload=parse_payload(TransactionIn, raw),
            is_synced=is_synced,
        )

    def _transaction_count(self) -> int:
        return self.db.execute(select(func.count()).select_from(Transaction)).scalar_one()

    def test_commit_then_delete_conserves_stock(self) -> None:
        kopi = self.ids['kopi_id']
        self.assertEqual(stock_of(self.db, kopi), 20)

        result = self._commit(sale_payload(kopi, quantity=3))
        self.assertEqual(stock_of(self.db, kopi), 17)

        delete_transaction(self.db, transaction_id=result.transaction.id, actor_user_id=self.ids['cashier_id'])
        self.db.commit()
        self.assertEqual(stock_of(self.db, kopi), 20)
        self.assertEqual(self._transaction_count(), 0)
        remaining_items = self.db.execute(select(func.count()).select_from(TransactionItem)).scalar_one()
        self.assertEqual(remaining_items, 0)

    def test_commit_records_items_in_cart_order(self) -> None:
        raw = sale_payload(self.ids['kopi_id'], quantity=2)
        raw['items'].append(
            {'productId': self.ids['roti_id'], 'name': 'Roti Bakar', 'quantity': 1, 'unitPrice': '0', 'lineSubtotal': '0'}
        )
        result = self._commit(raw)

        _, items = get_transaction(self.db, transaction_id=result.transaction.id)
        self.assertEqual([item.product_id for item in items], [self.ids['kopi_id'], self.ids['roti_id']])
        self.assertEqual(stock_of(self.db, self.ids['roti_id']), 4)

    def test_missing_product_aborts_without_side_effects(self) -> None:
        raw = sale_payload(self.ids['kopi_id'], quantity=2)
        raw['items'].append({'productId': 999, 'name': 'Ghost', 'quantity': 1, 'unitPrice': '0', 'lineSubtotal': '0'})

        with self.assertRaises(NotFoundError):
            self._commit(raw)
        self.assertEqual(stock_of(self.db, self.ids['kopi_id']), 20)
        self.assertEqual(self._transaction_count(), 0)

    def test_inactive_cashier_is_rejected(self) -> None:
        cashier = self.db.get(User, self.ids['cashier_id'])
        cashier.active = False
        self.db.commit()
        with self.assertRaises(NotFoundError):
            self._commit(sale_payload(self.ids['kopi_id']))

    def test_oversell_is_committed_and_reported(self) -> None:
        result = self._commit(sale_payload(self.ids['roti_id'], quantity=7, unit_price='12500'))
        self.assertEqual(result.oversold_product_ids, [self.ids['roti_id']])
        self.assertEqual(stock_of(self.db, self.ids['roti_id']), -2)

    def test_client_created_at_is_preserved(self) -> None:
        sold_at = datetime(2026, 10, 18, 2, 30, tzinfo=timezone.utc)
        result = self._commit(sale_payload(self.ids['kopi_id'], created_at=sold_at), is_synced=True)

        stored, _ = get_transaction(self.db, transaction_id=result.transaction.id)
        self.assertEqual(as_utc(stored.created_at), sold_at)
        self.assertTrue(stored.is_synced)
        self.assertNotEqual(as_utc(stored.committed_at), sold_at)

    def test_commit_and_delete_are_audited(self) -> None:
        result = self._commit(sale_payload(self.ids['kopi_id']), is_synced=True)
        delete_transaction(self.db, transaction_id=result.transaction.id, actor_user_id=None)
        self.db.commit()

        actions = self.db.execute(select(AuditLog.action).order_by(AuditLog.id.asc())).scalars().all()
        self.assertEqual(actions, ['TRANSACTION_SYNCED', 'TRANSACTION_DELETED'])

    def test_get_missing_transaction_raises(self) -> None:
        with self.assertRaises(NotFoundError):
            get_transaction(self.db, transaction_id=12345)
        with self.assertRaises(NotFoundError):
            delete_transaction(self.db, transaction_id=12345, actor_user_id=None)

    def test_serialize_transaction_uses_wire_names(self) -> None:
        result = self._commit(sale_payload(self.ids['kopi_id'], amount_paid='20000'))
        body = serialize_transaction(result.transaction, result.items)
        self.assertEqual(body['invoiceNumber'], result.transaction.invoice_number)
        self.assertEqual(body['paymentMethod'], 'CASH')
        self.assertEqual(body['change'], '10000.00')
        self.assertFalse(body['isSynced'])
        self.assertEqual(body['items'][0]['quantity'], 1)


if __name__ == '__main__':
    unittest.main()

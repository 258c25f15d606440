from decimal import Decimal

from sqlalchemy import select

from pos_portal.config import settings
from pos_portal.db import SessionLocal, engine
from pos_portal.models import Base, Product, Store, User, UserRole

DEMO_PRODUCTS = [
    ('KOPI-001', 'Kopi Susu', Decimal('18000.00'), 100),
    ('KOPI-002', 'Americano', Decimal('15000.00'), 100),
    ('TEH-001', 'Es Teh Manis', Decimal('8000.00'), 200),
    ('ROTI-001', 'Roti Bakar', Decimal('22000.00'), 40),
]


def seed() -> None:
    Base.metadata.create_all(engine)
    with SessionLocal() as db:
        store = db.execute(select(Store).where(Store.id == settings.store_id)).scalar_one_or_none()
        if not store:
            store = Store(id=settings.store_id, name='Demo Store', active=True)
            db.add(store)
            db.flush()

        for username, full_name, role in (('owner', 'Store Owner', UserRole.OWNER), ('kasir1', 'Kasir Satu', UserRole.CASHIER)):
            user = db.execute(
                select(User).where(User.store_id == store.id, User.username == username)
            ).scalar_one_or_none()
            if not user:
                db.add(User(store_id=store.id, username=username, full_name=full_name, role=role, active=True))

        existing_skus = set(
            db.execute(select(Product.sku).where(Product.store_id == store.id)).scalars().all()
        )
        for sku, name, price, stock in DEMO_PRODUCTS:
            if sku in existing_skus:
                continue
            db.add(Product(store_id=store.id, sku=sku, name=name, price=price, stock=stock, active=True))

        db.commit()


if __name__ == '__main__':
    seed()
    print('Seed data inserted/verified.')

import os

# Keep the module-level engine off PostgreSQL; tests bind their own SQLite sessions.
os.environ.setdefault('DATABASE_URL', 'sqlite://')

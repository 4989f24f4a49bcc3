import os
from dotenv import load_dotenv
from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker


load_dotenv()
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./agenda.db")

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, connect_args=connect_args)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_checked_tables: set[str] = set()


def _ensure_table_schema(
    table_name: str,
    migration_steps: list[tuple[str, str]],
    index_statements: list[str],
) -> None:
    if table_name in _checked_tables:
        return

    with _schema_lock:
        if table_name in _checked_tables:
            return

        inspector = inspect(engine)

        if table_name not in inspector.get_table_names():
            _checked_tables.add(table_name)
            return

        existing_columns = {column['name'] for column in inspector.get_columns(table_name)}

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            for statement in index_statements:
                connection.execute(text(statement))

        _checked_tables.add(table_name)


def ensure_appointment_schema() -> None:
    _ensure_table_schema(
        'appointments',
        [
            ('client_phone', 'ALTER TABLE appointments ADD COLUMN client_phone VARCHAR'),
            ('service_price', 'ALTER TABLE appointments ADD COLUMN service_price NUMERIC(10, 2)'),
            ('notes', 'ALTER TABLE appointments ADD COLUMN notes VARCHAR'),
            ('updated_at', 'ALTER TABLE appointments ADD COLUMN updated_at TIMESTAMP'),
            ('deleted_at', 'ALTER TABLE appointments ADD COLUMN deleted_at TIMESTAMP'),
        ],
        [
            'CREATE INDEX IF NOT EXISTS idx_appointments_owner_range ON appointments(owner_id, start_time, end_time)',
            'CREATE INDEX IF NOT EXISTS idx_appointments_owner_status ON appointments(owner_id, status)',
        ],
    )


def ensure_client_schema() -> None:
    _ensure_table_schema(
        'clients',
        [
            ('notes', 'ALTER TABLE clients ADD COLUMN notes VARCHAR'),
            ('deleted_at', 'ALTER TABLE clients ADD COLUMN deleted_at TIMESTAMP'),
        ],
        [
            'CREATE INDEX IF NOT EXISTS idx_clients_owner ON clients(owner_id, deleted_at)',
        ],
    )

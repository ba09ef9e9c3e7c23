import logging
from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import declarative_base, sessionmaker

from careguardian.core import config

logger = logging.getLogger(__name__)

DATABASE_URL = config.DATABASE_URL

engine = create_engine(DATABASE_URL)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

# Live appointments are the ones still holding their slot.
LIVE_SLOT_INDEX_NAME = 'uq_appointments_live_slot'
LIVE_SLOT_INDEX_WHERE = "status NOT IN ('cancelled', 'rejected')"

_schema_lock = Lock()
_scheduling_schema_checked = False

_MIGRATION_STEPS = {
    'doctors': [
        ('user_id', 'ALTER TABLE doctors ADD COLUMN user_id INTEGER'),
        ('available_days', 'ALTER TABLE doctors ADD COLUMN available_days JSON'),
        ('available_time_ranges', 'ALTER TABLE doctors ADD COLUMN available_time_ranges JSON'),
        ('consulting_fee', 'ALTER TABLE doctors ADD COLUMN consulting_fee INTEGER'),
    ],
    'appointments': [
        ('symptoms', 'ALTER TABLE appointments ADD COLUMN symptoms VARCHAR'),
        ('doctor_notes', 'ALTER TABLE appointments ADD COLUMN doctor_notes VARCHAR'),
        ('prescription', 'ALTER TABLE appointments ADD COLUMN prescription VARCHAR'),
        ('cancellation_reason', 'ALTER TABLE appointments ADD COLUMN cancellation_reason VARCHAR'),
        ('payment_status', "ALTER TABLE appointments ADD COLUMN payment_status VARCHAR DEFAULT 'pending'"),
        ('idempotency_key', 'ALTER TABLE appointments ADD COLUMN idempotency_key VARCHAR'),
        ('updated_at', 'ALTER TABLE appointments ADD COLUMN updated_at TIMESTAMP'),
    ],
}


def ensure_scheduling_schema(target_engine=None) -> None:
    """Bring tables created by older releases up to the current schema.

    ``create_all`` never alters an existing table, so missing columns and the
    partial unique index that prevents double booking are added here.
    """
    global _scheduling_schema_checked

    if _scheduling_schema_checked and target_engine is None:
        return

    target = target_engine or engine

    with _schema_lock:
        if _scheduling_schema_checked and target_engine is None:
            return

        inspector = inspect(target)
        table_names = set(inspector.get_table_names())
        existing_columns_by_table = {
            table_name: {column['name'] for column in inspector.get_columns(table_name)}
            for table_name in _MIGRATION_STEPS
            if table_name in table_names
        }

        with target.begin() as connection:
            for table_name, existing_columns in existing_columns_by_table.items():
                migration_steps = _MIGRATION_STEPS[table_name]
                for column_name, statement in migration_steps:
                    if column_name not in existing_columns:
                        connection.execute(text(statement))

            if 'appointments' in table_names:
                try:
                    connection.execute(
                        text(
                            f'CREATE UNIQUE INDEX IF NOT EXISTS {LIVE_SLOT_INDEX_NAME} '
                            f'ON appointments(doctor_id, date, time) WHERE {LIVE_SLOT_INDEX_WHERE}'
                        )
                    )
                except IntegrityError:
                    logger.exception(
                        'Cannot create %s: appointments already holds more than one live booking for the same '
                        'doctor, date and time. Cancel or reject the duplicates, then restart.',
                        LIVE_SLOT_INDEX_NAME,
                    )
                    raise
                connection.execute(
                    text(
                        'CREATE UNIQUE INDEX IF NOT EXISTS uq_appointments_patient_idempotency_key '
                        'ON appointments(patient_id, idempotency_key)'
                    )
                )
                connection.execute(
                    text('CREATE INDEX IF NOT EXISTS idx_appointments_patient_date ON appointments(patient_id, date)')
                )

        if target_engine is None:
            _scheduling_schema_checked = True

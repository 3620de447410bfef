import logging
from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from clinic_agenda.core import config


logger = logging.getLogger(__name__)

_connect_args = {'check_same_thread': False} if config.DATABASE_URL.startswith('sqlite') else {}

engine = create_engine(config.DATABASE_URL, echo=config.DATABASE_ECHO, connect_args=_connect_args)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_availability_schema_checked = False
_appointment_schema_checked = False

APPOINTMENT_OVERLAP_CONSTRAINT = 'appointments_no_overlap'


def ensure_availability_schema(bind: Engine | None = None) -> None:
    global _availability_schema_checked

    if _availability_schema_checked:
        return

    target = bind or engine

    with _schema_lock:
        if _availability_schema_checked:
            return

        inspector = inspect(target)

        if 'availability_slots' not in inspector.get_table_names():
            _availability_schema_checked = True
            return

        with target.begin() as connection:
            connection.execute(
                text(
                    'CREATE INDEX IF NOT EXISTS idx_availability_slots_professional_day '
                    'ON availability_slots(professional_id, weekday, start_time)'
                )
            )

        _availability_schema_checked = True


def ensure_appointment_schema(bind: Engine | None = None) -> None:
    """Install the range exclusion constraint on Postgres.

    The partial unique index on (professional_id, starts_at) is declared on the
    model and works everywhere; Postgres also gets an EXCLUDE constraint so that
    overlapping ranges with different start times are rejected too. A failed
    constraint install is logged once and not retried on every request.
    """
    global _appointment_schema_checked

    if _appointment_schema_checked:
        return

    target = bind or engine

    with _schema_lock:
        if _appointment_schema_checked:
            return

        inspector = inspect(target)

        if 'appointments' not in inspector.get_table_names():
            _appointment_schema_checked = True
            return

        with target.begin() as connection:
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_professional_range ON appointments(professional_id, starts_at, ends_at)')
            )

        try:
            install_overlap_constraint(target)
        except SQLAlchemyError:
            logger.exception(
                'Could not install %s. Only the unique start index guards against double booking.',
                APPOINTMENT_OVERLAP_CONSTRAINT,
            )

        _appointment_schema_checked = True


def install_overlap_constraint(target: Engine) -> None:
    if target.dialect.name != 'postgresql':
        return

    with target.begin() as connection:
        existing = connection.execute(
            text('SELECT 1 FROM pg_constraint WHERE conname = :name'),
            {'name': APPOINTMENT_OVERLAP_CONSTRAINT},
        ).first()
        if existing is not None:
            return

        logger.info('Installing %s exclusion constraint', APPOINTMENT_OVERLAP_CONSTRAINT)
        connection.execute(text('CREATE EXTENSION IF NOT EXISTS btree_gist'))
        connection.execute(
            text(
                f'ALTER TABLE appointments ADD CONSTRAINT {APPOINTMENT_OVERLAP_CONSTRAINT} '
                'EXCLUDE USING gist (professional_id WITH =, tstzrange(starts_at, ends_at) WITH &&) '
                "WHERE (status <> 'cancelled')"
            )
        )

import os

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///:memory:')
os.environ.setdefault('JWT_SECRET_KEY', 'test-secret-key-for-clinic-agenda-suite')

from clinic_agenda.database import Base  # noqa: E402
from clinic_agenda.models.appointment import Appointment  # noqa: E402
from clinic_agenda.models.availability import AvailabilitySlot  # noqa: E402
from clinic_agenda.models.clinic import Clinic  # noqa: E402
from clinic_agenda.scheduling.resolver import AvailabilityResolver  # noqa: E402
from clinic_agenda.scheduling.stores import AppointmentStore, WeeklyAvailabilityStore  # noqa: E402

TABLES = [Clinic.__table__, AvailabilitySlot.__table__, Appointment.__table__]


@pytest.fixture
def db_session():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine, tables=TABLES)

    db = testing_session_local()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine, tables=list(reversed(TABLES)))
        engine.dispose()


@pytest.fixture
def resolver(db_session) -> AvailabilityResolver:
    return AvailabilityResolver(WeeklyAvailabilityStore(db_session), AppointmentStore(db_session))


@pytest.fixture
def clinic(db_session) -> Clinic:
    clinic = Clinic(id='clinic-1', name='Clinica Centro', slot_duration_minutes=30, timezone='America/Sao_Paulo')
    db_session.add(clinic)
    db_session.commit()
    db_session.refresh(clinic)
    return clinic

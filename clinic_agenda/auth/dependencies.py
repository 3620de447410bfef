import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from clinic_agenda.auth import jwt_handler

security = HTTPBearer()

ROLE_ADMIN = "admin"
ROLE_PROFESSIONAL = "professional"
ROLE_RECEPTIONIST = "receptionist"
ROLE_PATIENT = "patient"

STAFF_ROLES = {ROLE_ADMIN, ROLE_PROFESSIONAL, ROLE_RECEPTIONIST}


class Caller(BaseModel):
    """Identity of the request's caller, taken from verified token claims."""
    user_id: str
    role: str
    clinic_id: str | None = None
    professional_id: str | None = None
    patient_id: str | None = None

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES


def caller_from_claims(payload: dict) -> Caller:
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token subject")

    role = payload.get("user_role") or ROLE_PATIENT
    return Caller(
        user_id=user_id,
        role=role,
        clinic_id=payload.get("clinic_id"),
        professional_id=payload.get("professional_id"),
        patient_id=payload.get("patient_id"),
    )


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Caller:
    token = credentials.credentials
    try:
        payload = jwt_handler.decode_access_token(token)
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc

    return caller_from_claims(payload)


def ensure_clinic_member(caller: Caller, clinic_id: str) -> None:
    if caller.clinic_id != clinic_id:
        raise HTTPException(status_code=403, detail="You do not belong to this clinic.")


def ensure_can_edit_schedule(caller: Caller, professional_id: str) -> None:
    if caller.role == ROLE_ADMIN:
        return
    if caller.role == ROLE_PROFESSIONAL and caller.professional_id == professional_id:
        return
    raise HTTPException(status_code=403, detail="Only admins or the professional can change this schedule.")


def ensure_can_book_for(caller: Caller, patient_id: str) -> None:
    if caller.is_staff:
        return
    if caller.patient_id and caller.patient_id == patient_id:
        return
    raise HTTPException(status_code=403, detail="Patients can only manage their own appointments.")

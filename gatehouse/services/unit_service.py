from sqlalchemy.orm import Session

from gatehouse.core.exceptions import AppException, NotFound
from gatehouse.db.models import Unit
from gatehouse.services.address_service import digits_only

DEFAULT_FLAT_MAPPING = {
    "101": "917781943246",
    "102": "919812345678",
    "201": "918888888888",
}


def list_unit_numbers(db: Session) -> list[str]:
    return [row[0] for row in db.query(Unit.unit_number).order_by(Unit.unit_number.asc()).all()]


def get_unit(db: Session, unit_number: str) -> Unit:
    unit = db.query(Unit).filter(Unit.unit_number == unit_number.strip()).first()
    if not unit:
        raise NotFound("Flat number not found in the system")
    return unit


def get_flat_mapping(db: Session) -> dict[str, str]:
    rows = db.query(Unit).order_by(Unit.unit_number.asc()).all()
    return {row.unit_number: row.resident_phone for row in rows}


def replace_flat_mapping(db: Session, mapping: dict[str, str]) -> dict[str, str]:
    cleaned: dict[str, str] = {}
    for unit_number, phone in mapping.items():
        key = str(unit_number).strip()
        digits = digits_only(str(phone))
        if not key or not digits:
            raise AppException("Invalid flat mapping data", status_code=400)
        cleaned[key] = digits

    existing = {row.unit_number: row for row in db.query(Unit).all()}
    for unit_number, row in existing.items():
        if unit_number not in cleaned:
            db.delete(row)
    for unit_number, phone in cleaned.items():
        row = existing.get(unit_number)
        if row:
            row.resident_phone = phone
        else:
            db.add(Unit(unit_number=unit_number, resident_phone=phone))
    db.commit()
    return cleaned


def seed_default_units(db: Session) -> None:
    if db.query(Unit).count() > 0:
        return
    db.add_all(
        [Unit(unit_number=unit_number, resident_phone=phone) for unit_number, phone in DEFAULT_FLAT_MAPPING.items()]
    )
    db.commit()

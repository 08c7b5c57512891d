from gatehouse.db.models.audit import AuditLog
from gatehouse.db.models.unit import Unit

__all__ = [
    "AuditLog",
    "Unit",
]

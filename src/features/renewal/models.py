from dataclasses import dataclass
from enum import Enum
from typing import Optional


# Los valores se persisten tal cual; filtros y feed comparan contra estos literales.

class Priority(str, Enum):
    BAJA = "baja"
    NORMAL = "normal"
    ALTA = "alta"
    URGENTE = "urgente"


class RequirementStatus(str, Enum):
    PENDIENTE = "pendiente"
    SUBIDO = "subido"
    APROBADO = "aprobado"
    RECHAZADO = "rechazado"
    VENCIDO = "vencido"


class DocumentStatus(str, Enum):
    """Estado de una versión concreta de archivo"""
    PENDIENTE = "pendiente"
    APROBADO = "aprobado"
    RECHAZADO = "rechazado"


class RenewalUnit(str, Enum):
    DAYS = "days"
    WEEKS = "weeks"
    MONTHS = "months"
    YEARS = "years"


class UrgencyTier(str, Enum):
    EXPIRED = "expired"
    URGENT = "urgent"
    HIGH = "high"
    MEDIUM = "medium"
    OK = "ok"


# Orden de atención: lo vencido primero
TIER_RANK = {
    UrgencyTier.EXPIRED: 0,
    UrgencyTier.URGENT: 1,
    UrgencyTier.HIGH: 2,
    UrgencyTier.MEDIUM: 3,
    UrgencyTier.OK: 4,
}

# Prioridad más alta primero al ordenar listados
PRIORITY_RANK = {
    Priority.URGENTE: 0,
    Priority.ALTA: 1,
    Priority.NORMAL: 2,
    Priority.BAJA: 3,
}


@dataclass(frozen=True)
class Urgency:
    tier: UrgencyTier
    days_until: int
    days_expired: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "tier": self.tier.value,
            "days_until": self.days_until,
            "days_expired": self.days_expired,
        }


@dataclass(frozen=True)
class EffectiveRenewal:
    period: int
    unit: RenewalUnit

    def to_fields(self) -> dict:
        """Forma persistida en el requerimiento (columnas custom_renewal_*)"""
        return {
            "has_custom_renewal": True,
            "custom_renewal_period": self.period,
            "custom_renewal_unit": self.unit.value,
        }

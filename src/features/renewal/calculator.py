"""
Cálculo de fechas de renovación y clasificación de urgencia.

Funciones puras: la fecha de referencia ("hoy") siempre se recibe como
parámetro para que dashboards, feed y pruebas usen el mismo reloj.
"""
import calendar
import math
from datetime import date, datetime, timedelta
from typing import Any, Mapping, Optional, Union

from src.core.errors import InvalidRenewalSpec
from .models import EffectiveRenewal, RenewalUnit, Urgency, UrgencyTier

DateLike = Union[date, datetime]

URGENT_MAX_DAYS = 7
HIGH_MAX_DAYS = 15
MEDIUM_MAX_DAYS = 30


def parse_unit(unit: Any) -> RenewalUnit:
    if isinstance(unit, RenewalUnit):
        return unit
    try:
        return RenewalUnit(unit)
    except ValueError:
        raise InvalidRenewalSpec(None, unit)


def validate_renewal(period: Any, unit: Any) -> EffectiveRenewal:
    """Valida periodo/unidad y devuelve la renovación normalizada."""
    if isinstance(period, bool) or not isinstance(period, int) or period <= 0:
        raise InvalidRenewalSpec(period, unit)
    try:
        parsed_unit = parse_unit(unit)
    except InvalidRenewalSpec:
        raise InvalidRenewalSpec(period, unit)
    return EffectiveRenewal(period=period, unit=parsed_unit)


def _add_months(base: DateLike, months: int) -> DateLike:
    month_index = base.month - 1 + months
    year = base.year + month_index // 12
    month = month_index % 12 + 1
    # Si el día no existe en el mes destino se ajusta al último día (31 ene + 1 mes -> 28/29 feb)
    day = min(base.day, calendar.monthrange(year, month)[1])
    return base.replace(year=year, month=month, day=day)


def compute_next_date(base: DateLike, period: int, unit: Any) -> DateLike:
    """
    Suma `period` unidades a `base`.

    - days: días calendario
    - weeks: period * 7 días
    - months: meses calendario, conservando el día y ajustando a fin de mes
    - years: años calendario, con el mismo ajuste (29 feb -> 28 feb)

    Para renovaciones repetidas calcular siempre desde la fecha ancla
    (ancla + k * periodo) en lugar de encadenar resultados.
    """
    renewal = validate_renewal(period, unit)

    if renewal.unit is RenewalUnit.DAYS:
        return base + timedelta(days=renewal.period)
    if renewal.unit is RenewalUnit.WEEKS:
        return base + timedelta(days=renewal.period * 7)
    if renewal.unit is RenewalUnit.MONTHS:
        return _add_months(base, renewal.period)
    if renewal.unit is RenewalUnit.YEARS:
        return _add_months(base, renewal.period * 12)

    raise InvalidRenewalSpec(period, unit)


def _as_datetime(value: DateLike) -> datetime:
    if isinstance(value, datetime):
        return value.replace(tzinfo=None) if value.tzinfo else value
    return datetime(value.year, value.month, value.day)


def days_until(reference_date: DateLike, target_date: DateLike) -> int:
    """ceil((target - reference) / 1 día)"""
    if not isinstance(reference_date, datetime) and not isinstance(target_date, datetime):
        return (target_date - reference_date).days

    delta = _as_datetime(target_date) - _as_datetime(reference_date)
    return math.ceil(delta.total_seconds() / 86400)


def classify_urgency(reference_date: DateLike, target_date: DateLike) -> Urgency:
    """
    Clasifica la urgencia de una fecha objetivo respecto a la fecha de referencia.

    < 0 -> expired | 0..7 -> urgent | 8..15 -> high | 16..30 -> medium | > 30 -> ok
    """
    remaining = days_until(reference_date, target_date)

    if remaining < 0:
        return Urgency(tier=UrgencyTier.EXPIRED, days_until=remaining, days_expired=-remaining)
    if remaining <= URGENT_MAX_DAYS:
        return Urgency(tier=UrgencyTier.URGENT, days_until=remaining)
    if remaining <= HIGH_MAX_DAYS:
        return Urgency(tier=UrgencyTier.HIGH, days_until=remaining)
    if remaining <= MEDIUM_MAX_DAYS:
        return Urgency(tier=UrgencyTier.MEDIUM, days_until=remaining)
    return Urgency(tier=UrgencyTier.OK, days_until=remaining)


def _field(source: Any, name: str) -> Any:
    if isinstance(source, Mapping):
        return source.get(name)
    return getattr(source, name, None)


def resolve_renewal(override: Optional[Any], document_type: Optional[Any]) -> Optional[EffectiveRenewal]:
    """
    Renovación efectiva con precedencia de tres niveles:

    1. Renovación personalizada del item de plantilla / requerimiento (`has_custom_renewal`)
    2. Renovación propia del tipo de documento (`has_expiration`)
    3. Sin vencimiento (None)
    """
    if override is not None and _field(override, "has_custom_renewal"):
        return validate_renewal(
            _field(override, "custom_renewal_period"),
            _field(override, "custom_renewal_unit"),
        )

    if document_type is not None and _field(document_type, "has_expiration"):
        return validate_renewal(
            _field(document_type, "renewal_period"),
            _field(document_type, "renewal_unit"),
        )

    return None

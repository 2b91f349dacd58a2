"""
Máquina de estados del requerimiento.

Estados persistidos: pendiente -> subido -> aprobado | rechazado.
`vencido` nunca se guarda: se deriva al leer comparando la fecha relevante
con la fecha de referencia.
"""
from dataclasses import dataclass
from datetime import date
from typing import FrozenSet, Optional

from src.core.errors import InvalidTransitionError
from src.features.renewal.calculator import classify_urgency
from src.features.renewal.models import RequirementStatus, Urgency, UrgencyTier

SUBMIT = "submit"
APPROVE = "approve"
REJECT = "reject"

_S = RequirementStatus


@dataclass(frozen=True)
class Transition:
    # Estados guardados desde los que la acción es legal
    from_stored: FrozenSet[RequirementStatus]
    # Estados guardados que, estando vencidos, también la admiten
    from_expired: FrozenSet[RequirementStatus]
    target: RequirementStatus


TRANSITIONS = {
    # Primera entrega, reenvío tras rechazo o renovación de lo vencido
    SUBMIT: Transition(
        from_stored=frozenset({_S.PENDIENTE, _S.RECHAZADO}),
        from_expired=frozenset({_S.PENDIENTE, _S.SUBIDO, _S.APROBADO}),
        target=_S.SUBIDO,
    ),
    # Una entrega tardía se puede revisar igual
    APPROVE: Transition(
        from_stored=frozenset({_S.SUBIDO}),
        from_expired=frozenset({_S.SUBIDO}),
        target=_S.APROBADO,
    ),
    REJECT: Transition(
        from_stored=frozenset({_S.SUBIDO}),
        from_expired=frozenset({_S.SUBIDO}),
        target=_S.RECHAZADO,
    ),
}

# Estados que pueden derivar en vencido
_EXPIRABLE = frozenset({_S.PENDIENTE, _S.SUBIDO, _S.APROBADO})


def relevant_date(requirement, document_type, current_document) -> Optional[date]:
    """
    Reloj único del requerimiento (expiration_date ?? due_date):

    - aprobado con fecha de expiración -> expiration_date
    - aún no aprobado, y el tipo vence o es obligatorio -> due_date
    - en otro caso no hay reloj
    """
    status = RequirementStatus(requirement.status)

    if status is _S.APROBADO:
        if current_document is not None and current_document.expiration_date:
            return current_document.expiration_date
        return None

    if status in (_S.PENDIENTE, _S.SUBIDO, _S.RECHAZADO):
        has_clock = (
            document_type is None
            or document_type.has_expiration
            or document_type.is_mandatory
            or requirement.has_custom_renewal
        )
        return requirement.due_date if has_clock else None

    return None


def urgency_of(requirement, document_type, current_document, today: date) -> Optional[Urgency]:
    target = relevant_date(requirement, document_type, current_document)
    if target is None:
        return None
    return classify_urgency(today, target)


def effective_status(requirement, document_type, current_document, today: date) -> RequirementStatus:
    stored = RequirementStatus(requirement.status)
    if stored not in _EXPIRABLE:
        return stored

    urgency = urgency_of(requirement, document_type, current_document, today)
    if urgency is not None and urgency.tier is UrgencyTier.EXPIRED:
        return _S.VENCIDO
    return stored


def check_transition(
    requirement_id: str,
    action: str,
    stored: RequirementStatus,
    effective: RequirementStatus,
) -> RequirementStatus:
    """Retorna el estado destino o lanza InvalidTransitionError"""
    transition = TRANSITIONS.get(action)
    if transition is None:
        raise InvalidTransitionError(requirement_id, action, effective.value)

    stored = RequirementStatus(stored)
    if stored in transition.from_stored:
        return transition.target
    if effective is _S.VENCIDO and stored in transition.from_expired:
        return transition.target

    raise InvalidTransitionError(requirement_id, action, effective.value)

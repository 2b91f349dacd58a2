from datetime import date, datetime

import pytest

from src.core.errors import InvalidRenewalSpec, ValidationError
from src.features.catalog.models import DocumentType, TemplateItem
from src.features.renewal.calculator import classify_urgency, compute_next_date, resolve_renewal
from src.features.renewal.models import RenewalUnit, UrgencyTier


def test_months_clamp_to_end_of_month():
    assert compute_next_date(date(2024, 1, 31), 1, "months") == date(2024, 2, 29)
    assert compute_next_date(date(2023, 1, 31), 1, "months") == date(2023, 2, 28)
    assert compute_next_date(date(2024, 8, 31), 1, RenewalUnit.MONTHS) == date(2024, 9, 30)


def test_years_clamp_leap_day():
    assert compute_next_date(date(2024, 2, 29), 1, "years") == date(2025, 2, 28)
    assert compute_next_date(date(2024, 2, 29), 4, "years") == date(2028, 2, 29)


def test_days_and_weeks():
    assert compute_next_date(date(2024, 12, 25), 10, "days") == date(2025, 1, 4)
    assert compute_next_date(date(2024, 1, 1), 2, "weeks") == compute_next_date(date(2024, 1, 1), 14, "days")


def test_repeated_renewals_from_anchor_do_not_drift():
    anchor = date(2024, 1, 31)

    # Encadenar arrastra el ajuste de febrero; desde el ancla no
    chained = compute_next_date(compute_next_date(anchor, 1, "months"), 1, "months")
    assert chained == date(2024, 3, 29)
    assert compute_next_date(anchor, 2, "months") == date(2024, 3, 31)

    for k in range(1, 13):
        result = compute_next_date(anchor, k, "months")
        assert result.day in (28, 29, 30, 31)
        assert result.month == (anchor.month - 1 + k) % 12 + 1


def test_datetime_base_is_supported():
    assert compute_next_date(datetime(2024, 1, 31, 9, 30), 1, "months") == datetime(2024, 2, 29, 9, 30)


@pytest.mark.parametrize("period, unit", [
    (0, "months"),
    (-3, "days"),
    (True, "days"),
    ("3", "days"),
    (None, "years"),
    (3, "fortnights"),
    (3, None),
])
def test_invalid_renewal_spec(period, unit):
    with pytest.raises(InvalidRenewalSpec) as exc:
        compute_next_date(date(2024, 1, 1), period, unit)
    assert isinstance(exc.value, ValidationError)
    assert exc.value.code == "INVALID_RENEWAL_SPEC"
    assert exc.value.status_code == 422


@pytest.mark.parametrize("offset, tier", [
    (-30, UrgencyTier.EXPIRED),
    (-1, UrgencyTier.EXPIRED),
    (0, UrgencyTier.URGENT),
    (7, UrgencyTier.URGENT),
    (8, UrgencyTier.HIGH),
    (15, UrgencyTier.HIGH),
    (16, UrgencyTier.MEDIUM),
    (30, UrgencyTier.MEDIUM),
    (31, UrgencyTier.OK),
    (400, UrgencyTier.OK),
])
def test_urgency_boundaries(offset, tier):
    today = date(2024, 3, 1)
    target = date.fromordinal(today.toordinal() + offset)

    urgency = classify_urgency(today, target)

    assert urgency.tier is tier
    assert urgency.days_until == offset


def test_expired_reports_days_expired():
    urgency = classify_urgency(date(2024, 3, 10), date(2024, 3, 7))
    assert urgency.days_expired == 3
    assert urgency.to_dict() == {"tier": "expired", "days_until": -3, "days_expired": 3}


def test_partial_days_round_up():
    # 12 horas restantes cuentan como 1 día
    urgency = classify_urgency(datetime(2024, 1, 1, 12, 0), datetime(2024, 1, 2, 0, 0))
    assert urgency.days_until == 1
    assert urgency.tier is UrgencyTier.URGENT

    # 7 días y una hora -> 8 días -> high
    urgency = classify_urgency(datetime(2024, 1, 1, 0, 0), datetime(2024, 1, 8, 1, 0))
    assert urgency.days_until == 8
    assert urgency.tier is UrgencyTier.HIGH


def _medico(**overrides):
    fields = {
        "id": "medico",
        "name": "Certificado Médico",
        "category": "Salud",
        "is_mandatory": True,
        "has_expiration": True,
        "renewal_period": 12,
        "renewal_unit": "months",
    }
    fields.update(overrides)
    return DocumentType(**fields)


def test_resolve_renewal_prefers_custom_override():
    item = TemplateItem(
        document_type_id="medico", has_custom_renewal=True, custom_renewal_period=6, custom_renewal_unit="months"
    )
    renewal = resolve_renewal(item, _medico())
    assert (renewal.period, renewal.unit) == (6, RenewalUnit.MONTHS)


def test_resolve_renewal_falls_back_to_document_type():
    item = TemplateItem(document_type_id="medico")
    renewal = resolve_renewal(item, _medico())
    assert (renewal.period, renewal.unit) == (12, RenewalUnit.MONTHS)
    assert resolve_renewal(None, _medico()) == renewal


def test_resolve_renewal_without_expiration_is_none():
    dpi = _medico(name="DPI", has_expiration=False, renewal_period=None, renewal_unit=None)
    assert resolve_renewal(TemplateItem(document_type_id="dpi"), dpi) is None
    assert resolve_renewal(None, None) is None


def test_resolve_renewal_accepts_plain_records():
    item = {"has_custom_renewal": True, "custom_renewal_period": 2, "custom_renewal_unit": "years"}
    renewal = resolve_renewal(item, {"has_expiration": False})
    assert renewal.to_fields() == {
        "has_custom_renewal": True,
        "custom_renewal_period": 2,
        "custom_renewal_unit": "years",
    }


def test_resolve_renewal_rejects_broken_override():
    item = {"has_custom_renewal": True, "custom_renewal_period": 0, "custom_renewal_unit": "months"}
    with pytest.raises(InvalidRenewalSpec):
        resolve_renewal(item, _medico())

"""
Canadian sales tax table.

Four mutually exclusive regimes, selected by province:
    HST only   ON, NB, NL, NS, PE
    GST + PST  BC, MB, SK
    GST + QST  QC
    GST only   AB, NT, NU, YT
"""
from dataclasses import dataclass
from decimal import Decimal

from django.conf import settings
from django.db import models

from .exceptions import UnsupportedProvince
from .money import ZERO, round_money


class Province(models.TextChoices):
    AB = "AB", "Alberta"
    BC = "BC", "British Columbia"
    MB = "MB", "Manitoba"
    NB = "NB", "New Brunswick"
    NL = "NL", "Newfoundland and Labrador"
    NS = "NS", "Nova Scotia"
    NT = "NT", "Northwest Territories"
    NU = "NU", "Nunavut"
    ON = "ON", "Ontario"
    PE = "PE", "Prince Edward Island"
    QC = "QC", "Quebec"
    SK = "SK", "Saskatchewan"
    YT = "YT", "Yukon"


@dataclass(frozen=True)
class TaxRates:
    gst: Decimal = ZERO
    pst: Decimal = ZERO
    hst: Decimal = ZERO
    qst: Decimal = ZERO


_GST = Decimal("0.05")

TAX_RATES = {
    # HST provinces
    Province.ON: TaxRates(hst=Decimal("0.13")),
    Province.NB: TaxRates(hst=Decimal("0.15")),
    Province.NL: TaxRates(hst=Decimal("0.15")),
    Province.NS: TaxRates(hst=Decimal("0.15")),
    Province.PE: TaxRates(hst=Decimal("0.15")),
    # GST + PST
    Province.BC: TaxRates(gst=_GST, pst=Decimal("0.07")),
    Province.MB: TaxRates(gst=_GST, pst=Decimal("0.07")),
    Province.SK: TaxRates(gst=_GST, pst=Decimal("0.06")),
    # GST + QST, QST charged on the pre-GST amount
    Province.QC: TaxRates(gst=_GST, qst=Decimal("0.09975")),
    # GST only
    Province.AB: TaxRates(gst=_GST),
    Province.NT: TaxRates(gst=_GST),
    Province.NU: TaxRates(gst=_GST),
    Province.YT: TaxRates(gst=_GST),
}


@dataclass(frozen=True)
class TaxCalculation:
    taxable_base: Decimal
    gst: Decimal
    pst: Decimal
    hst: Decimal
    qst: Decimal

    @property
    def total_tax(self) -> Decimal:
        return round_money(self.gst + self.pst + self.hst + self.qst)


def normalize_province(code) -> str:
    normalized = (code or "").strip().upper()
    if normalized not in TAX_RATES:
        raise UnsupportedProvince(f"Unsupported province: {code!r}")
    return normalized


def get_tax_rates(province) -> TaxRates:
    return TAX_RATES[normalize_province(province)]


def calculate_taxes(taxable_base, province) -> TaxCalculation:
    """Apply the province's rates, rounding each component half-up to cents."""
    rates = get_tax_rates(province)
    base = round_money(taxable_base)
    return TaxCalculation(
        taxable_base=base,
        gst=round_money(base * rates.gst),
        pst=round_money(base * rates.pst),
        hst=round_money(base * rates.hst),
        qst=round_money(base * rates.qst),
    )


def resolve_province(override=None, firm=None) -> str:
    """Explicit override, then the firm's home province, then the default."""
    if override:
        return normalize_province(override)
    if firm is not None and getattr(firm, "province", None):
        return normalize_province(firm.province)
    return normalize_province(
        getattr(settings, "BILLING_DEFAULT_PROVINCE", Province.ON))


def _percent(rate: Decimal) -> str:
    # 0.09975 -> "9.975", 0.13 -> "13"
    return f"{(rate * 100).normalize():f}"


def tax_breakdown(*, province, gst, pst, hst, qst=ZERO):
    """Display rows for the non-zero tax components of an invoice.

    A Quebec invoice stored with QST in the PST slot is labelled as QST.
    """
    province = normalize_province(province)
    rates = TAX_RATES[province]
    rows = []
    if hst > 0:
        rows.append({"label": f"HST ({_percent(rates.hst)}%)", "amount": hst})
    if gst > 0:
        rows.append({"label": f"GST ({_percent(rates.gst)}%)", "amount": gst})
    if pst > 0:
        if province == Province.QC:
            rows.append({"label": f"QST ({_percent(rates.qst)}%)", "amount": pst})
        else:
            rows.append({"label": f"PST ({_percent(rates.pst)}%)", "amount": pst})
    if qst > 0:
        rows.append({"label": f"QST ({_percent(rates.qst)}%)", "amount": qst})
    return rows

"""
TaxPlanner AI - Tax Constants
=============================
Old-regime Indian income tax slabs, deduction caps, rebate and cess.

CRITICAL: These are the ONLY source of truth for tax calculations.
The LLM prompt quotes these values - recommendations must never invent limits.
"""

from datetime import date
from enum import Enum
from typing import Dict, List, Optional, Tuple

# =============================================================================
# AGE BANDS
# =============================================================================

class AgeBand(str, Enum):
    NORMAL = "normal"
    SENIOR_CITIZEN = "senior_citizen"              # 60 to 79
    SUPER_SENIOR_CITIZEN = "super_senior_citizen"  # 80 and above


SENIOR_CITIZEN_AGE = 60
SUPER_SENIOR_CITIZEN_AGE = 80
DEFAULT_AGE = 30  # used when no date of birth is on record


# =============================================================================
# INCOME TAX SLABS (old regime)
# Format: List of (upper_limit, marginal_rate) tuples
# The last tuple uses float('inf') for unlimited income
# =============================================================================

TAX_SLABS: Dict[AgeBand, List[Tuple[float, float]]] = {
    AgeBand.NORMAL: [
        (250000, 0.0),
        (500000, 0.10),
        (1000000, 0.20),
        (float('inf'), 0.30),
    ],
    AgeBand.SENIOR_CITIZEN: [
        (300000, 0.0),
        (500000, 0.10),
        (1000000, 0.20),
        (float('inf'), 0.30),
    ],
    AgeBand.SUPER_SENIOR_CITIZEN: [
        (500000, 0.0),
        (1000000, 0.20),
        (float('inf'), 0.30),
    ],
}


# =============================================================================
# DEDUCTION CAPS
# =============================================================================

SECTION_80C = "80C"
SECTION_80D = "80D"
SECTION_80CCD_1B = "80CCD1B"

SECTION_CAPS: Dict[str, float] = {
    SECTION_80C: 150000,
    SECTION_80D: 25000,
    SECTION_80CCD_1B: 50000,
}

# Combined ceiling of the three capped sections
TOTAL_DEDUCTION_CEILING = sum(SECTION_CAPS.values())

SECTION_LABELS: Dict[str, str] = {
    SECTION_80C: "80C",
    SECTION_80D: "80D",
    SECTION_80CCD_1B: "80CCD(1B)",
}


# =============================================================================
# REBATE & CESS
# =============================================================================

REBATE_87A_THRESHOLD = 500000
REBATE_87A_MAX = 12500
CESS_RATE = 0.04


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def get_age(date_of_birth: Optional[date], today: Optional[date] = None) -> int:
    """Age by calendar year only; month and day are ignored."""
    if date_of_birth is None:
        return DEFAULT_AGE
    today = today or date.today()
    return today.year - date_of_birth.year


def get_age_band(age: int) -> AgeBand:
    if age >= SUPER_SENIOR_CITIZEN_AGE:
        return AgeBand.SUPER_SENIOR_CITIZEN
    if age >= SENIOR_CITIZEN_AGE:
        return AgeBand.SENIOR_CITIZEN
    return AgeBand.NORMAL


def calculate_slab_breakdown(taxable_income: float, age_band: AgeBand) -> List[Dict[str, float]]:
    """
    Split taxable income across the slabs of an age band.

    Returns:
        One row per slab touched: lower, upper, amount taxed and tax.
    """
    rows = []
    prev_limit = 0.0

    for limit, rate in TAX_SLABS[age_band]:
        if taxable_income <= prev_limit:
            break
        taxed = min(taxable_income, limit) - prev_limit
        rows.append({
            "lower": prev_limit,
            "upper": limit,
            "rate": rate,
            "amount": taxed,
            "tax": taxed * rate,
        })
        prev_limit = limit

    return rows


def calculate_slab_tax(taxable_income: float, age_band: AgeBand) -> float:
    """Slab tax before rebate and cess."""
    return sum(row["tax"] for row in calculate_slab_breakdown(taxable_income, age_band))


def get_marginal_rate(taxable_income: float, age_band: AgeBand) -> float:
    """Get the marginal slab rate for a given income level."""
    slabs = TAX_SLABS[age_band]

    for limit, rate in slabs:
        if taxable_income <= limit:
            return rate

    return slabs[-1][1]


def get_financial_year(today: Optional[date] = None) -> Tuple[date, date]:
    """Indian financial year (April 1 to March 31) containing `today`."""
    today = today or date.today()
    start_year = today.year if today.month >= 4 else today.year - 1
    return date(start_year, 4, 1), date(start_year + 1, 3, 31)


def get_financial_year_label(today: Optional[date] = None) -> str:
    start, end = get_financial_year(today)
    return f"FY {start.year}-{str(end.year)[-2:]}"


def get_assessment_year_label(today: Optional[date] = None) -> str:
    start, end = get_financial_year(today)
    return f"AY {end.year}-{str(end.year + 1)[-2:]}"


def format_inr(amount: float) -> str:
    return f"Rs. {amount:,.0f}"


# =============================================================================
# EXPORT CONSTANTS FOR LLM PROMPTS
# =============================================================================

def get_all_constants_for_llm() -> str:
    """
    Render every slab, cap and rebate value as plain text for the
    recommendation prompt so the model never guesses limits.
    """
    output = []
    output.append("=" * 60)
    output.append("AUTHORITATIVE INDIAN INCOME TAX REFERENCE (OLD REGIME)")
    output.append("Use ONLY these values - do not estimate or guess.")
    output.append("=" * 60)

    output.append("\n--- DEDUCTION LIMITS ---")
    for section, cap in SECTION_CAPS.items():
        output.append(f"Section {SECTION_LABELS[section]}: {format_inr(cap)}")

    output.append("\n--- TAX SLABS ---")
    for band, slabs in TAX_SLABS.items():
        output.append(f"{band.value}:")
        prev_limit = 0
        for limit, rate in slabs:
            upper = "and above" if limit == float('inf') else f"to {format_inr(limit)}"
            output.append(f"  {format_inr(prev_limit)} {upper}: {rate * 100:.0f}%")
            prev_limit = limit

    output.append("\n--- REBATE & CESS ---")
    output.append(
        f"Section 87A rebate up to {format_inr(REBATE_87A_MAX)} "
        f"when taxable income <= {format_inr(REBATE_87A_THRESHOLD)}"
    )
    output.append(f"Health & education cess: {CESS_RATE * 100:.0f}% of tax")

    return "\n".join(output)

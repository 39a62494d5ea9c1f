"""
TaxPlanner AI - Tax Simulator
=============================
Core tax calculation and scenario comparison engine.

This module performs all tax math locally - the LLM is NOT used for calculations.
The LLM only proposes recommendations; their rupee effect on the client's
liability is worked out here with the hardcoded slab tables.
"""

import math
from datetime import date
from typing import Dict, List, Optional, Tuple

from tax_constants import (
    AgeBand,
    CESS_RATE,
    REBATE_87A_MAX,
    REBATE_87A_THRESHOLD,
    SECTION_80C,
    SECTION_80CCD_1B,
    SECTION_80D,
    SECTION_CAPS,
    calculate_slab_breakdown,
    calculate_slab_tax,
    get_marginal_rate,
)
from models import (
    ClientTaxProfile,
    ComparisonResult,
    DeductionBundle,
    Recommendation,
    RecommendationCategory,
    SlabBreakdown,
    TaxLiabilityBreakdown,
    TaxScenario,
)


# Title keywords that map a deduction recommendation onto a section.
# Checked in order; the first rule that matches wins.
SECTION_KEYWORDS: List[Tuple[str, Tuple[str, ...]]] = [
    (SECTION_80C, ("80c", "ppf", "elss")),
    (SECTION_80D, ("80d", "health")),
    (SECTION_80CCD_1B, ("nps", "80ccd")),
]


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


# =============================================================================
# DEDUCTION AGGREGATION
# =============================================================================

class DeductionAggregator:
    """Turns raw investment amounts into capped section deductions."""

    @staticmethod
    def cap(raw_by_section: Dict[str, float]) -> DeductionBundle:
        capped = {
            section: min(raw_by_section.get(section, 0.0), limit)
            for section, limit in SECTION_CAPS.items()
        }
        return DeductionBundle(
            section_80c=capped[SECTION_80C],
            section_80d=capped[SECTION_80D],
            section_80ccd_1b=capped[SECTION_80CCD_1B],
            total=sum(capped.values()),
        )

    @classmethod
    def aggregate(cls, profile: ClientTaxProfile) -> DeductionBundle:
        investments = profile.tax_saving_investments
        return cls.cap({
            SECTION_80C: investments.section_80c.total,
            SECTION_80D: investments.section_80d.total,
            SECTION_80CCD_1B: investments.section_80ccd_1b.nps_additional,
        })


# =============================================================================
# TAX CALCULATION ENGINE
# =============================================================================

class TaxCalculator:
    """
    Old-regime liability engine.
    All calculations use the hardcoded slab tables - NO LLM involvement.
    """

    def calculate_breakdown(self, taxable_income: float, age_band: AgeBand) -> TaxLiabilityBreakdown:
        """
        Full liability calculation with per-slab detail.

        Negative incomes are not rejected; they simply fall in no slab.
        """
        # Step 1: Slab tax
        rows = calculate_slab_breakdown(taxable_income, age_band)
        tax = calculate_slab_tax(taxable_income, age_band)

        # Step 2: Section 87A rebate, same threshold for every age band
        rebate = 0.0
        if taxable_income <= REBATE_87A_THRESHOLD:
            rebate = min(tax, REBATE_87A_MAX)
        tax_after_rebate = tax - rebate

        # Step 3: Health & education cess
        cess = tax_after_rebate * CESS_RATE
        total = round_half_up(tax_after_rebate + cess)

        return TaxLiabilityBreakdown(
            taxable_income=taxable_income,
            age_band=age_band,
            slabs=[
                SlabBreakdown(
                    slab_start=row["lower"],
                    slab_end=row["upper"],
                    rate=row["rate"],
                    income_in_slab=row["amount"],
                    tax_in_slab=round(row["tax"], 2),
                )
                for row in rows
            ],
            tax_before_rebate=round(tax, 2),
            rebate_87a=round(rebate, 2),
            tax_after_rebate=round(tax_after_rebate, 2),
            cess=round(cess, 2),
            total_tax_liability=total,
            marginal_rate=get_marginal_rate(taxable_income, age_band),
        )

    def calculate_tax_liability(self, taxable_income: float, age_band: AgeBand) -> int:
        """Final liability in whole rupees, cess included."""
        return self.calculate_breakdown(taxable_income, age_band).total_tax_liability

    def calculate_scenario(
        self,
        name: str,
        annual_income: float,
        deductions: DeductionBundle,
        age_band: AgeBand,
        additional_deductions: Optional[DeductionBundle] = None,
    ) -> TaxScenario:
        taxable_income = max(0.0, annual_income - deductions.total)
        liability = self.calculate_tax_liability(taxable_income, age_band)
        effective_rate = round(liability / annual_income * 100, 2) if annual_income > 0 else 0.0

        return TaxScenario(
            name=name,
            annual_income=annual_income,
            age_band=age_band,
            deductions=deductions,
            additional_deductions=additional_deductions,
            taxable_income=taxable_income,
            total_tax_liability=liability,
            effective_tax_rate=effective_rate,
            marginal_rate=get_marginal_rate(taxable_income, age_band),
        )


# =============================================================================
# SCENARIO COMPARISON
# =============================================================================

class TaxSimulator:
    """
    Compare the client's current position with the position after the
    deduction recommendations are carried out.

    Example:
        simulator = TaxSimulator()
        result = simulator.compare(profile, recommendations)
    """

    def __init__(self, calculator: Optional[TaxCalculator] = None, today: Optional[date] = None):
        self.calculator = calculator or TaxCalculator()
        self.today = today

    @staticmethod
    def section_for(recommendation: Recommendation) -> Optional[str]:
        """Section a deduction recommendation adds to, or None if it maps to none."""
        if recommendation.deduction_section:
            return recommendation.deduction_section

        title = recommendation.title.lower()
        for section, keywords in SECTION_KEYWORDS:
            if any(keyword in title for keyword in keywords):
                return section
        return None

    def calculate_additional_deductions(
        self,
        recommendations: List[Recommendation],
    ) -> Tuple[DeductionBundle, float]:
        """
        Sum potential savings of deduction recommendations per section.

        Returns:
            Tuple of (uncapped additional deductions, savings that matched no section)
        """
        additional = {section: 0.0 for section in SECTION_CAPS}
        unallocated = 0.0

        for rec in recommendations:
            if rec.category != RecommendationCategory.DEDUCTION_OPTIMIZATION:
                continue
            section = self.section_for(rec)
            if section is None:
                unallocated += rec.potential_savings
            else:
                additional[section] += rec.potential_savings

        bundle = DeductionBundle(
            section_80c=additional[SECTION_80C],
            section_80d=additional[SECTION_80D],
            section_80ccd_1b=additional[SECTION_80CCD_1B],
            total=sum(additional.values()),
        )
        return bundle, unallocated

    def current_scenario(self, profile: ClientTaxProfile) -> TaxScenario:
        return self.calculator.calculate_scenario(
            name="current",
            annual_income=profile.income_analysis.annual_income,
            deductions=DeductionAggregator.aggregate(profile),
            age_band=profile.age_band(self.today),
        )

    def optimized_scenario(
        self,
        profile: ClientTaxProfile,
        recommendations: List[Recommendation],
    ) -> Tuple[TaxScenario, float]:
        current = DeductionAggregator.aggregate(profile)
        additional, unallocated = self.calculate_additional_deductions(recommendations)

        # Re-cap each section after adding; total is the sum of capped sections
        current_by_section = current.by_section()
        optimized = DeductionAggregator.cap({
            section: current_by_section[section] + amount
            for section, amount in additional.by_section().items()
        })

        scenario = self.calculator.calculate_scenario(
            name="optimized",
            annual_income=profile.income_analysis.annual_income,
            deductions=optimized,
            age_band=profile.age_band(self.today),
            additional_deductions=additional,
        )
        return scenario, unallocated

    def compare(
        self,
        profile: ClientTaxProfile,
        recommendations: List[Recommendation],
    ) -> ComparisonResult:
        """Run both scenarios and report the savings between them."""
        current = self.current_scenario(profile)
        optimized, unallocated = self.optimized_scenario(profile, recommendations)

        total_savings = current.total_tax_liability - optimized.total_tax_liability

        if current.total_tax_liability > 0:
            savings_percentage = round(total_savings / current.total_tax_liability * 100, 1)
        else:
            savings_percentage = 0.0

        return ComparisonResult(
            current=current,
            optimized=optimized,
            total_savings=total_savings,
            savings_percentage=savings_percentage,
            unallocated_savings=unallocated,
        )


# =============================================================================
# DEMO / TESTING
# =============================================================================

def demo():
    """Demonstrate the calculator and the scenario comparison."""

    print("=" * 60)
    print("TAX SIMULATOR DEMO")
    print("=" * 60)

    calculator = TaxCalculator()
    for income in (400000, 500000, 500001, 1200000):
        breakdown = calculator.calculate_breakdown(income, AgeBand.NORMAL)
        print(f"Taxable Rs. {income:,}: tax Rs. {breakdown.total_tax_liability:,} "
              f"(rebate {breakdown.rebate_87a:,.0f}, cess {breakdown.cess:,.0f})")

    profile = ClientTaxProfile.model_validate({
        "clientId": "demo",
        "incomeAnalysis": {"totalMonthlyIncome": 100000},
        "taxSavingInvestments": {"section80C": {"ppf": 50000, "epf": 30000}},
    })
    recommendations = [
        Recommendation(
            category=RecommendationCategory.DEDUCTION_OPTIMIZATION,
            title="Maximize Section 80C Deductions",
            potential_savings=70000,
        ),
    ]

    result = TaxSimulator().compare(profile, recommendations)

    print("\n--- COMPARISON ---")
    print(f"Current Tax: Rs. {result.current.total_tax_liability:,}")
    print(f"Optimized Tax: Rs. {result.optimized.total_tax_liability:,}")
    print(f"Savings: Rs. {result.total_savings:,.0f} ({result.savings_percentage}%)")


if __name__ == "__main__":
    demo()

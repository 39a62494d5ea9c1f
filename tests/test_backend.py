"""
TaxPlanner AI - Test Suite
==========================
Tests for the calculation engine, recommendation pipeline and supporting modules.
"""

import json
import pytest
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timedelta
from types import SimpleNamespace

import httpx
from openai import (
    APIResponseValidationError,
    APIStatusError,
    APITimeoutError,
    AuthenticationError,
    RateLimitError,
)

# Import modules to test
import os
import sys
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'backend'))

from tax_constants import (
    AgeBand,
    SECTION_80C,
    SECTION_80D,
    SECTION_80CCD_1B,
    TAX_SLABS,
    TOTAL_DEDUCTION_CEILING,
    calculate_slab_tax,
    get_age,
    get_age_band,
    get_financial_year,
    get_marginal_rate,
)
from models import (
    AIRecommendationSet,
    ClientRecords,
    ClientTaxProfile,
    ManualAdvisorInputs,
    ManualRecommendation,
    Recommendation,
    RecommendationCategory,
    RecommendationPriority,
    RecommendationSource,
    RiskLevel,
    calculate_data_completeness,
)
from pii_redaction import PIIRedactor, redact_sensitive_data
from llm_prompts import (
    build_client_summary,
    extract_json_payload,
    get_financial_year_context,
    validate_recommendation_response,
)
from recommendations import (
    FALLBACK_TOTAL_SAVINGS,
    RecommendationNormalizer,
    get_fallback_recommendations,
    normalize_recommendation_set,
)
from tax_simulator import DeductionAggregator, TaxCalculator, TaxSimulator, round_half_up
from visualization import VisualizationBuilder
from openai_client import (
    AIClientConfig,
    AIConfigurationError,
    AICreditExhaustedError,
    AIRecommendationError,
    TaxAIClient,
)
from tax_planning_store import ClientNotFoundError, TaxPlanningStore
from tax_planner import TaxPlanningService
from diagnostics import HealthStatus, run_diagnostics
from dashboard_data import chart_to_frame, scenario_frame, timeline_to_frame


TODAY = date(2026, 10, 18)
OPENAI_URL = "https://api.openai.com/v1/chat/completions"


def make_profile(monthly_income=100000, dob=None, **investments):
    return ClientTaxProfile.model_validate({
        "clientId": "client-1",
        "personalInfo": {"dateOfBirth": dob},
        "incomeAnalysis": {"totalMonthlyIncome": monthly_income},
        "taxSavingInvestments": investments,
    })


def make_records(client_id="64f1c2a9e4b0a1b2c3d4e5f6", advisor_id="adv-1", **client):
    base = {
        "dateOfBirth": "1985-06-15",
        "maritalStatus": "married",
        "numberOfDependents": 2,
        "occupation": "Engineer",
        "totalMonthlyIncome": 100000,
        "investments": {
            "fixedIncome": {"ppf": 50000, "epf": 30000},
            "equity": {"elss": {"currentValue": 20000}},
        },
        "lifeInsurance": {"annualPremium": 12000},
        "healthInsurance": {"annualPremium": 15000},
    }
    base.update(client)
    return ClientRecords(client_id=client_id, advisor_id=advisor_id, client=base)


def deduction_rec(title, savings, section=None):
    return Recommendation(
        category=RecommendationCategory.DEDUCTION_OPTIMIZATION,
        title=title,
        potential_savings=savings,
        deduction_section=section,
    )


def fake_openai(content=None, error=None, calls=None):
    """Stand-in for openai.OpenAI exposing chat.completions.create."""
    def create(**kwargs):
        if calls is not None:
            calls.append(kwargs)
        if error is not None:
            raise error
        return SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
            usage=SimpleNamespace(total_tokens=321),
        )
    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))


def status_error(cls, status, body=None):
    request = httpx.Request("POST", OPENAI_URL)
    return cls("error", response=httpx.Response(status, request=request), body=body)


AI_PAYLOAD = {
    "recommendations": [
        {
            "category": "deduction_optimization",
            "priority": "high",
            "title": "Top up PPF",
            "description": "Fill the remaining 80C room",
            "potentialSavings": 70000,
            "deadline": "2027-03-15",
            "riskLevel": "low",
        },
        {
            "category": "health_insurance",
            "priority": "critical",
            "title": "Parents' mediclaim",
            "potentialSavings": "10,000",
            "deductionSection": "80D",
        },
        {
            "category": "retirement_planning",
            "priority": "low",
            "title": "Open NPS tier 1",
            "potentialSavings": 50000,
            "riskLevel": "medium",
        },
    ],
    "summary": "Use the unused deduction room",
    "totalPotentialSavings": 130000,
    "confidenceScore": 82,
}


# =============================================================================
# TAX CONSTANTS TESTS
# =============================================================================

class TestTaxConstants:
    """Test slab tables and date helpers."""

    def test_slabs_exist_for_all_age_bands(self):
        """Every age band should have an ascending slab table ending at infinity."""
        for band in AgeBand:
            slabs = TAX_SLABS[band]
            limits = [limit for limit, _ in slabs]
            assert limits == sorted(limits)
            assert limits[-1] == float('inf')

    def test_total_deduction_ceiling(self):
        assert TOTAL_DEDUCTION_CEILING == 225000

    def test_age_ignores_month_and_day(self):
        """Age is the difference in calendar years."""
        assert get_age(date(1990, 12, 31), date(2026, 1, 1)) == 36

    def test_missing_date_of_birth_defaults_to_30(self):
        assert get_age(None, TODAY) == 30

    def test_age_band_boundaries(self):
        assert get_age_band(59) == AgeBand.NORMAL
        assert get_age_band(60) == AgeBand.SENIOR_CITIZEN
        assert get_age_band(79) == AgeBand.SENIOR_CITIZEN
        assert get_age_band(80) == AgeBand.SUPER_SENIOR_CITIZEN

    def test_marginal_rate(self):
        assert get_marginal_rate(200000, AgeBand.NORMAL) == 0.0
        assert get_marginal_rate(750000, AgeBand.NORMAL) == 0.20
        assert get_marginal_rate(2000000, AgeBand.NORMAL) == 0.30

    def test_financial_year_spans_april_to_march(self):
        assert get_financial_year(TODAY) == (date(2026, 4, 1), date(2027, 3, 31))
        assert get_financial_year(date(2027, 2, 1)) == (date(2026, 4, 1), date(2027, 3, 31))


# =============================================================================
# TAX CALCULATOR TESTS
# =============================================================================

class TestTaxCalculator:
    """Test the liability engine."""

    @pytest.fixture
    def calculator(self):
        return TaxCalculator()

    def test_zero_income_no_tax(self, calculator):
        assert calculator.calculate_tax_liability(0, AgeBand.NORMAL) == 0

    def test_high_income_normal_band(self, calculator):
        """1.2M: 25,000 + 100,000 + 60,000 slab tax plus 4% cess."""
        assert calculator.calculate_tax_liability(1200000, AgeBand.NORMAL) == 192400

    def test_rebate_applied_below_threshold(self, calculator):
        """400k: 15,000 slab tax less 12,500 rebate, plus cess."""
        breakdown = calculator.calculate_breakdown(400000, AgeBand.NORMAL)
        assert breakdown.rebate_87a == 12500
        assert breakdown.total_tax_liability == 2600

    def test_rebate_boundary(self, calculator):
        """Rebate applies at exactly 500,000 and not one rupee above."""
        at_threshold = calculator.calculate_breakdown(500000, AgeBand.NORMAL)
        above = calculator.calculate_breakdown(500001, AgeBand.NORMAL)

        assert at_threshold.rebate_87a == 12500
        assert at_threshold.total_tax_liability == 13000
        assert above.rebate_87a == 0
        assert above.total_tax_liability == 26000

    def test_senior_citizen_band(self, calculator):
        assert calculator.calculate_tax_liability(1200000, AgeBand.SENIOR_CITIZEN) == 187200

    def test_super_senior_citizen_band(self, calculator):
        assert calculator.calculate_tax_liability(1200000, AgeBand.SUPER_SENIOR_CITIZEN) == 166400

    @pytest.mark.parametrize("income", [250001, 400000, 500000])
    def test_super_senior_exempt_up_to_500k(self, calculator, income):
        breakdown = calculator.calculate_breakdown(income, AgeBand.SUPER_SENIOR_CITIZEN)
        assert breakdown.tax_before_rebate == 0
        assert breakdown.total_tax_liability == 0

    def test_repeated_calls_give_same_result(self, calculator):
        first = calculator.calculate_breakdown(875000, AgeBand.SENIOR_CITIZEN)
        second = calculator.calculate_breakdown(875000, AgeBand.SENIOR_CITIZEN)
        assert first == second
        assert calculator.calculate_tax_liability(875000, AgeBand.SENIOR_CITIZEN) == first.total_tax_liability

    def test_slab_tax_matches_breakdown(self, calculator):
        """Slab tax is the sum of the per-slab rows, before rebate and cess."""
        breakdown = calculator.calculate_breakdown(1200000, AgeBand.NORMAL)
        assert calculate_slab_tax(1200000, AgeBand.NORMAL) == pytest.approx(185000)
        assert sum(slab.tax_in_slab for slab in breakdown.slabs) == breakdown.tax_before_rebate == 185000

    def test_liability_never_negative(self, calculator):
        """Rebate is limited to the tax itself."""
        assert calculator.calculate_tax_liability(260000, AgeBand.NORMAL) == 0

    def test_breakdown_rows(self, calculator):
        breakdown = calculator.calculate_breakdown(600000, AgeBand.NORMAL)
        assert [slab.rate for slab in breakdown.slabs] == [0.0, 0.10, 0.20]
        assert breakdown.slabs[-1].income_in_slab == 100000
        assert breakdown.marginal_rate == 0.20

    def test_round_half_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(3.5) == 4
        assert round_half_up(2.49) == 2

    def test_scenario_effective_rate(self, calculator):
        bundle = DeductionAggregator.cap({SECTION_80C: 0})
        scenario = calculator.calculate_scenario("current", 1200000, bundle, AgeBand.NORMAL)
        assert scenario.taxable_income == 1200000
        assert scenario.effective_tax_rate == 16.03

    def test_scenario_zero_income(self, calculator):
        bundle = DeductionAggregator.cap({SECTION_80C: 150000})
        scenario = calculator.calculate_scenario("current", 0, bundle, AgeBand.NORMAL)
        assert scenario.taxable_income == 0
        assert scenario.effective_tax_rate == 0.0


# =============================================================================
# DEDUCTION & SIMULATOR TESTS
# =============================================================================

class TestTaxSimulator:
    """Test deduction capping and current-vs-optimized comparison."""

    @pytest.fixture
    def simulator(self):
        return TaxSimulator(today=TODAY)

    def test_sections_capped_individually(self):
        bundle = DeductionAggregator.cap({SECTION_80C: 200000, SECTION_80D: 40000, SECTION_80CCD_1B: 60000})
        assert bundle.section_80c == 150000
        assert bundle.section_80d == 25000
        assert bundle.section_80ccd_1b == 50000
        assert bundle.total == 225000

    def test_aggregate_from_profile(self):
        profile = make_profile(section80C={"ppf": 50000, "epf": 30000}, section80D={"selfFamily": 15000})
        bundle = DeductionAggregator.aggregate(profile)
        assert bundle.section_80c == 80000
        assert bundle.section_80d == 15000
        assert bundle.total == 95000

    def test_keyword_section_matching(self):
        assert TaxSimulator.section_for(deduction_rec("Invest in ELSS", 1)) == SECTION_80C
        assert TaxSimulator.section_for(deduction_rec("Health cover for parents", 1)) == SECTION_80D
        assert TaxSimulator.section_for(deduction_rec("Extra NPS contribution", 1)) == SECTION_80CCD_1B
        assert TaxSimulator.section_for(deduction_rec("Claim HRA", 1)) is None

    def test_explicit_section_overrides_title(self):
        rec = deduction_rec("Section 80CCD(1B) top-up", 1, section=SECTION_80CCD_1B)
        assert TaxSimulator.section_for(rec) == SECTION_80CCD_1B

    def test_only_deduction_recommendations_count(self, simulator):
        recs = [
            deduction_rec("Top up PPF", 10000),
            Recommendation(category=RecommendationCategory.INVESTMENT_STRATEGY, title="PPF", potential_savings=99999),
            deduction_rec("Claim HRA", 5000),
        ]
        additional, unallocated = simulator.calculate_additional_deductions(recs)
        assert additional.section_80c == 10000
        assert additional.total == 10000
        assert unallocated == 5000

    def test_compare_fills_80c(self, simulator):
        """80k in 80C plus 70k recommended reaches the cap and lowers liability."""
        profile = make_profile(section80C={"ppf": 50000, "epf": 30000})
        result = simulator.compare(profile, [deduction_rec("Maximize Section 80C Deductions", 70000)])

        assert result.current.taxable_income == 1120000
        assert result.current.total_tax_liability == 167440
        assert result.optimized.taxable_income == 1050000
        assert result.optimized.total_tax_liability == 145600
        assert result.total_savings == 21840
        assert result.savings_percentage == 13.0

    def test_optimized_sections_recapped(self, simulator):
        profile = make_profile(section80C={"ppf": 150000})
        result = simulator.compare(profile, [deduction_rec("More PPF", 50000)])
        assert result.optimized.deductions.section_80c == 150000
        assert result.optimized.additional_deductions.section_80c == 50000
        assert result.total_savings == 0

    def test_zero_current_liability_gives_zero_percentage(self, simulator):
        profile = make_profile(monthly_income=20000)
        result = simulator.compare(profile, [deduction_rec("PPF", 10000)])
        assert result.current.total_tax_liability == 0
        assert result.savings_percentage == 0.0

    def test_age_band_from_date_of_birth(self, simulator):
        profile = make_profile(dob="1950-01-01")
        assert simulator.current_scenario(profile).age_band == AgeBand.SENIOR_CITIZEN


# =============================================================================
# DATA MODEL TESTS
# =============================================================================

class TestDataModels:
    """Test profile aggregation from raw client records."""

    def test_profile_from_records(self):
        records = make_records(
            panNumber="ABCDE1234F",
            monthlyExpenses={"education": 4000, "housingRent": 25000},
            debtsAndLiabilities={"homeLoan": {"principalAmount": 60000, "annualInterest": 180000}},
        )
        profile = ClientTaxProfile.from_client_records(records)

        assert profile.income_analysis.annual_income == 1200000
        c80 = profile.tax_saving_investments.section_80c
        assert (c80.ppf, c80.epf, c80.elss, c80.life_insurance) == (50000, 30000, 20000, 12000)
        assert c80.tuition_fees == 4000
        assert c80.principal_repayment == 60000
        assert profile.tax_saving_investments.section_80d.self_family == 15000
        assert profile.tax_saving_investments.section_24b.home_loan_interest == 180000
        assert profile.tax_saving_investments.hra_exemption.rent_paid == 25000

    def test_missing_values_default(self):
        profile = ClientTaxProfile.from_client_records(ClientRecords(client_id="empty"))
        assert profile.income_analysis.annual_income == 0
        assert profile.personal_info.marital_status.value == "single"
        assert profile.income_analysis.income_type.value == "salaried"
        assert profile.tax_saving_investments.section_80c.total == 0

    def test_junk_amounts_become_zero(self):
        profile = make_profile(monthly_income="not a number", section80C={"ppf": None, "epf": "12000"})
        assert profile.income_analysis.total_monthly_income == 0
        assert profile.tax_saving_investments.section_80c.ppf == 0
        assert profile.tax_saving_investments.section_80c.epf == 12000

    def test_business_income_follows_income_type(self):
        records = make_records(incomeType="business")
        profile = ClientTaxProfile.from_client_records(records)
        assert profile.business_tax_considerations.business_income == 1200000
        assert profile.business_tax_considerations.professional_income == 0

    def test_data_completeness(self):
        client = make_records().client
        # 5 personal + 5 investment of 8 + 5 + 10 + 5
        assert calculate_data_completeness(client) == 36
        assert calculate_data_completeness(client, {"casParsedData": {"summary": {}}}, {"x": 1}) == 89

    def test_serializes_camel_case(self):
        data = make_profile().model_dump(by_alias=True)
        assert "incomeAnalysis" in data
        assert "totalMonthlyIncome" in data["incomeAnalysis"]
        assert "section80C" in data["taxSavingInvestments"]


# =============================================================================
# RECOMMENDATION NORMALIZER TESTS
# =============================================================================

class TestRecommendationNormalizer:
    """Normalization never raises and always yields valid models."""

    @pytest.fixture
    def normalizer(self):
        return RecommendationNormalizer()

    def test_unknown_values_mapped(self, normalizer):
        rec = normalizer.normalize_one({
            "category": "health_insurance",
            "priority": "critical",
            "potentialSavings": "₹1,500",
            "deadline": "2026-12-31T00:00:00Z",
            "riskLevel": "extreme",
        })
        assert rec.category == RecommendationCategory.DEDUCTION_OPTIMIZATION
        assert rec.priority == RecommendationPriority.HIGH
        assert rec.potential_savings == 1500
        assert rec.deadline == date(2026, 12, 31)
        assert rec.risk_level == RiskLevel.LOW

    def test_garbage_item_gets_defaults(self, normalizer):
        rec = normalizer.normalize_one("garbage")
        assert rec.category == RecommendationCategory.COMPLIANCE
        assert rec.priority == RecommendationPriority.MEDIUM
        assert rec.potential_savings == 0
        assert rec.deadline is None

    def test_bad_deadline_and_negative_savings(self, normalizer):
        rec = normalizer.normalize_one({"deadline": "next march", "potentialSavings": -500})
        assert rec.deadline is None
        assert rec.potential_savings == 0

    def test_snake_case_keys(self, normalizer):
        rec = normalizer.normalize_one({"potential_savings": 900, "implementation_steps": ["a", None, 3]})
        assert rec.potential_savings == 900
        assert rec.implementation_steps == ["a", "3"]

    def test_non_list_recommendations(self, normalizer):
        assert normalizer.normalize(None) == []
        assert normalizer.normalize({"title": "x"}) == []

    def test_one_output_per_input(self, normalizer):
        assert len(normalizer.normalize([{}, None, 5, {"title": "x"}])) == 4

    def test_set_total_falls_back_to_sum(self):
        result = normalize_recommendation_set({
            "recommendations": [{"potentialSavings": 1000}, {"potentialSavings": 2500}],
            "confidenceScore": 150,
        })
        assert result.total_potential_savings == 3500
        assert result.confidence_score == 100
        assert result.source == RecommendationSource.AI

    def test_set_from_non_dict(self):
        result = normalize_recommendation_set("oops")
        assert result.recommendations == []
        assert result.total_potential_savings == 0

    def test_fallback_set(self):
        result = get_fallback_recommendations(TODAY)
        assert result.source == RecommendationSource.FALLBACK
        assert len(result.recommendations) == 3
        assert result.total_potential_savings == FALLBACK_TOTAL_SAVINGS
        assert [rec.deadline for rec in result.recommendations] == [
            TODAY + timedelta(days=90), TODAY + timedelta(days=60), TODAY + timedelta(days=75),
        ]


# =============================================================================
# PII REDACTION TESTS
# =============================================================================

class TestPIIRedaction:
    """Test PII redaction functionality."""

    def test_pan_redaction(self):
        result = redact_sensitive_data("PAN: ABCDE1234F")
        assert "ABCDE1234F" not in result
        assert "[PAN_1]" in result

    def test_lowercase_pan_not_matched(self):
        assert "abcde1234f" in redact_sensitive_data("ref abcde1234f")

    def test_aadhaar_redaction(self):
        result = redact_sensitive_data("Aadhaar 1234 5678 9012")
        assert "5678" not in result
        assert "[AADHAAR" in result

    def test_phone_redaction(self):
        result = redact_sensitive_data("Call +91 98765 43210 or 9876543210")
        assert "98765" not in result
        assert "9876543210" not in result

    def test_email_and_ifsc_redaction(self):
        result = PIIRedactor().redact_sensitive_data("Mail asha@example.com, IFSC HDFC0001234")
        assert "asha@example.com" not in result.redacted_text
        assert "HDFC0001234" not in result.redacted_text
        assert {"EMAIL", "IFSC"} <= result.pii_types_found

    def test_labeled_bank_account(self):
        result = redact_sensitive_data("account number 123456789012345")
        assert "123456789012345" not in result

    def test_financial_data_preserved(self):
        text = "Annual Income: Rs. 1,200,000 and PPF Rs. 50,000"
        assert redact_sensitive_data(text) == text

    def test_empty_text(self):
        result = PIIRedactor().redact_sensitive_data("   ")
        assert result.redacted_text == ""
        assert result.warnings == ["Empty input text"]

    def test_token_map_stores_types_only(self):
        result = PIIRedactor().redact_sensitive_data("PAN ABCDE1234F and PQRST6789Z")
        assert result.redaction_count == 2
        assert set(result.token_map.values()) == {"PAN"}
        assert "ABCDE1234F" not in result.token_map

    def test_leakage_check(self):
        redactor = PIIRedactor()
        assert redactor.validate_no_pii_leakage("Income Rs. 1,200,000")[0]
        is_safe, issues = redactor.validate_no_pii_leakage("PAN ABCDE1234F")
        assert not is_safe
        assert issues

    def test_shared_redactor_across_threads(self):
        """Concurrent calls on one redactor keep their own token numbering."""
        redactor = PIIRedactor()
        text = " ".join(["PAN ABCDE1234F"] * 300)

        def redact(_):
            return redactor.redact_sensitive_data(text)

        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(redact, range(120)))

        assert [r.redaction_count for r in results] == [300] * 120
        assert all("[PAN_300]" in r.redacted_text for r in results)
        assert all("[PAN_301]" not in r.redacted_text for r in results)


# =============================================================================
# PROMPT TESTS
# =============================================================================

class TestPrompts:
    """Test prompt context and response parsing."""

    def test_financial_year_context(self):
        fy = get_financial_year_context(TODAY)
        assert fy["financial_year"] == "2026-2027"
        assert fy["financial_year_end"] == date(2027, 3, 31)
        assert fy["next_financial_year_end"] == date(2028, 3, 31)
        assert fy["days_remaining"] == 164
        assert fy["months_remaining"] == 6
        assert fy["current_month_name"] == "October"

    def test_client_summary_hides_pan(self):
        profile = ClientTaxProfile.model_validate({
            "clientId": "c", "personalInfo": {"panNumber": "ABCDE1234F"},
        })
        summary = build_client_summary(profile, TODAY)
        assert "ABCDE1234F" not in summary
        assert "PAN on record: Yes" in summary

    def test_extract_fenced_json(self):
        content = 'Here you go:\n```json\n{"summary": "ok"}\n```'
        assert extract_json_payload(content) == {"summary": "ok"}

    def test_extract_bare_json(self):
        assert extract_json_payload('Result {"a": {"b": 1}} done') == {"a": {"b": 1}}

    def test_extract_no_json(self):
        with pytest.raises(ValueError, match="No valid JSON"):
            extract_json_payload("no braces here")

    def test_extract_invalid_json(self):
        with pytest.raises(ValueError, match="Failed to parse"):
            extract_json_payload("{not json}")

    def test_validate_response(self):
        assert validate_recommendation_response(AI_PAYLOAD)[0]
        is_valid, issues = validate_recommendation_response({"recommendations": []})
        assert not is_valid
        assert "Missing summary" in issues


# =============================================================================
# VISUALIZATION TESTS
# =============================================================================

class TestVisualization:
    """Test timeline, summary and chart payloads."""

    @pytest.fixture
    def builder(self):
        return VisualizationBuilder(TODAY)

    @pytest.fixture
    def recommendations(self):
        return [
            Recommendation(title="A", potential_savings=1000, deadline=date(2027, 3, 1)),
            Recommendation(title="B", potential_savings=2000, risk_level=RiskLevel.MEDIUM),
            Recommendation(title="C", potential_savings=4000, deadline=date(2027, 1, 1),
                           priority=RecommendationPriority.HIGH),
        ]

    def test_timeline_sorted_with_stable_ids(self, builder, recommendations):
        timeline = builder.build_implementation_timeline(recommendations)
        assert [item.id for item in timeline] == [2, 3, 1]
        assert timeline[0].deadline == TODAY + timedelta(days=60)
        assert all(item.status.value == "pending" for item in timeline)

    def test_summary_figures(self, builder, recommendations):
        assert builder.calculate_implementation_time(recommendations) == "5 months"
        assert builder.calculate_implementation_time([]) == "0 months"
        assert builder.calculate_implementation_time([Recommendation()]) == "3-6 months"
        assert builder.calculate_overall_risk_level(recommendations) == RiskLevel.MEDIUM

    def test_charts(self, builder, recommendations):
        profile = make_profile(section80C={"ppf": 100000})
        comparison = TaxSimulator(today=TODAY).compare(profile, recommendations)
        payload = builder.build(comparison, recommendations)

        assert set(payload.charts) == {
            "taxLiabilityComparison", "deductionUtilization", "savingsBreakdown", "implementationTimeline",
        }
        unused = payload.charts["deductionUtilization"].data.datasets[0].data[-1]
        assert unused == TOTAL_DEDUCTION_CEILING - 100000
        cumulative = payload.charts["implementationTimeline"].data.datasets[0].data
        assert cumulative == [0, 2000, 6000, 7000, 7000]
        assert payload.summary.high_priority_recommendations == 1

    def test_dashboard_frames(self, builder, recommendations):
        comparison = TaxSimulator(today=TODAY).compare(make_profile(), recommendations)
        payload = builder.build(comparison, recommendations)

        frame = chart_to_frame(payload.charts["taxLiabilityComparison"])
        assert list(frame.index) == ["Current Tax", "Optimized Tax", "Savings"]
        assert list(scenario_frame(comparison).index) == ["current", "optimized"]
        assert list(timeline_to_frame(payload.implementation_timeline)["Title"]) == ["B", "C", "A"]


# =============================================================================
# AI CLIENT TESTS
# =============================================================================

class TestTaxAIClient:
    """Test the OpenAI client against a fake transport."""

    def test_not_configured(self):
        client = TaxAIClient(AIClientConfig(api_key=None))
        assert not client.is_connected
        with pytest.raises(AIConfigurationError):
            client.generate_recommendations(make_profile(), TODAY)

    def test_successful_response(self):
        calls = []
        content = "```json\n" + json.dumps(AI_PAYLOAD) + "\n```"
        client = TaxAIClient(AIClientConfig(model="gpt-test"), client=fake_openai(content, calls=calls))

        profile = make_profile()
        profile.personal_info.pan_number = "ABCDE1234F"
        payload = client.generate_recommendations(profile, TODAY)

        assert isinstance(payload["generatedAt"], datetime)
        assert len(payload["recommendations"]) == 3
        assert calls[0]["model"] == "gpt-test"
        assert all("ABCDE1234F" not in message["content"] for message in calls[0]["messages"])

    def test_unparseable_response(self):
        client = TaxAIClient(AIClientConfig(), client=fake_openai("I cannot help with that"))
        with pytest.raises(AIRecommendationError, match="No valid JSON"):
            client.generate_recommendations(make_profile(), TODAY)

    def test_missing_content(self):
        client = TaxAIClient(AIClientConfig(), client=fake_openai(None))
        with pytest.raises(AIRecommendationError, match="Invalid OpenAI API response"):
            client.generate_recommendations(make_profile(), TODAY)

    def test_insufficient_quota_is_credit_exhaustion(self):
        error = status_error(RateLimitError, 429, body={"code": "insufficient_quota", "message": "quota"})
        client = TaxAIClient(AIClientConfig(), client=fake_openai(error=error))
        with pytest.raises(AICreditExhaustedError):
            client.generate_recommendations(make_profile(), TODAY)

    def test_rate_limit(self):
        error = status_error(RateLimitError, 429, body={"code": "rate_limit_exceeded"})
        client = TaxAIClient(AIClientConfig(), client=fake_openai(error=error))
        with pytest.raises(AIRecommendationError, match="rate limit") as exc_info:
            client.generate_recommendations(make_profile(), TODAY)
        assert not isinstance(exc_info.value, AICreditExhaustedError)

    def test_payment_required(self):
        client = TaxAIClient(AIClientConfig(), client=fake_openai(error=status_error(APIStatusError, 402)))
        with pytest.raises(AICreditExhaustedError):
            client.generate_recommendations(make_profile(), TODAY)

    def test_authentication_and_timeout(self):
        auth = TaxAIClient(AIClientConfig(), client=fake_openai(error=status_error(AuthenticationError, 401)))
        with pytest.raises(AIRecommendationError, match="authentication failed"):
            auth.generate_recommendations(make_profile(), TODAY)

        timeout = APITimeoutError(request=httpx.Request("POST", OPENAI_URL))
        slow = TaxAIClient(AIClientConfig(), client=fake_openai(error=timeout))
        with pytest.raises(AIRecommendationError, match="timed out"):
            slow.generate_recommendations(make_profile(), TODAY)

    def test_server_errors(self):
        unavailable = TaxAIClient(AIClientConfig(), client=fake_openai(error=status_error(APIStatusError, 503)))
        with pytest.raises(AIRecommendationError, match="unavailable"):
            unavailable.generate_recommendations(make_profile(), TODAY)

        teapot = TaxAIClient(AIClientConfig(), client=fake_openai(error=status_error(APIStatusError, 418)))
        with pytest.raises(AIRecommendationError, match=r"\(418\)"):
            teapot.generate_recommendations(make_profile(), TODAY)

    def test_unexpected_api_error(self):
        response = httpx.Response(200, request=httpx.Request("POST", OPENAI_URL))
        error = APIResponseValidationError(response=response, body=None)
        client = TaxAIClient(AIClientConfig(), client=fake_openai(error=error))
        with pytest.raises(AIRecommendationError, match="OpenAI API error"):
            client.generate_recommendations(make_profile(), TODAY)


# =============================================================================
# STORE TESTS
# =============================================================================

class TestTaxPlanningStore:
    """Test client lookup and planning document upserts."""

    @pytest.fixture
    def store(self):
        store = TaxPlanningStore()
        store.register_client(make_records())
        return store

    def test_unknown_client(self, store):
        with pytest.raises(ClientNotFoundError):
            store.get_client_records("missing")

    def test_advisor_mismatch(self, store):
        client_id = make_records().client_id
        assert store.get_client_records(client_id, "adv-1")
        with pytest.raises(ClientNotFoundError):
            store.get_client_records(client_id, "adv-2")

    def test_owner_can_replace_records(self, store):
        updated = make_records(totalMonthlyIncome=150000)
        store.register_client(updated, "adv-1")

        assert store.has_client(updated.client_id)
        assert store.get_client_records(updated.client_id).client["totalMonthlyIncome"] == 150000

    def test_other_advisor_cannot_replace_records(self, store):
        client_id = make_records().client_id
        with pytest.raises(ClientNotFoundError):
            store.register_client(make_records(advisor_id="adv-2", totalMonthlyIncome=1), "adv-2")
        with pytest.raises(ClientNotFoundError):
            store.register_client(make_records(advisor_id="adv-2", totalMonthlyIncome=1))

        assert store.get_client_records(client_id).advisor_id == "adv-1"
        assert store.get_client_records(client_id).client["totalMonthlyIncome"] == 100000

    def test_upsert_per_tax_year(self, store):
        profile = make_profile()
        first = store.save_ai_recommendations("c1", "2026", "adv-1", profile, AIRecommendationSet())
        second = store.save_ai_recommendations("c1", "2026", "adv-1", profile, get_fallback_recommendations(TODAY))
        assert first.id == second.id
        assert len(store.plans) == 1
        assert store.get_plan("c1", "2026") is second
        assert store.get_plan("c1", "2027") is None

    def test_manual_inputs_preserved_by_ai_save(self, store):
        inputs = ManualAdvisorInputs(recommendations=[ManualRecommendation(title="Rent receipts", potential_savings=5000)])
        store.save_manual_inputs("c1", "2026", "adv-1", inputs)
        record = store.save_ai_recommendations("c1", "2026", "adv-1", make_profile(), get_fallback_recommendations(TODAY))

        assert record.manual_advisor_inputs.recommendations[0].title == "Rent receipts"
        assert record.total_potential_savings == FALLBACK_TOTAL_SAVINGS + 5000

    def test_history_newest_year_first(self, store):
        for year in ("2025", "2027", "2026"):
            store.save_ai_recommendations("c1", year, "adv-1", make_profile(), AIRecommendationSet())
        store.plans[("c1", "2025")].is_active = False

        assert [r.tax_year for r in store.get_history("c1")] == ["2027", "2026"]
        assert store.latest_plan("c1").tax_year == "2027"
        assert store.get_history("other") == []


# =============================================================================
# SERVICE TESTS
# =============================================================================

class TestTaxPlanningService:
    """Test the end-to-end planning run."""

    def make_service(self, openai_client=None):
        store = TaxPlanningStore()
        store.register_client(make_records())
        ai_client = TaxAIClient(AIClientConfig(api_key=None), client=openai_client)
        return TaxPlanningService(store=store, ai_client=ai_client, today=TODAY)

    def test_ai_recommendations(self):
        content = json.dumps(AI_PAYLOAD)
        service = self.make_service(fake_openai(content))
        result = service.generate_recommendations(make_records().client_id, "adv-1", "2026")

        ai_set = result.tax_planning.ai_recommendations
        assert ai_set.source == RecommendationSource.AI
        assert result.warning is None
        assert [rec.category for rec in ai_set.recommendations] == [
            RecommendationCategory.DEDUCTION_OPTIMIZATION,
            RecommendationCategory.DEDUCTION_OPTIMIZATION,
            RecommendationCategory.INVESTMENT_STRATEGY,
        ]
        comparison = result.visualization_data.before_after_comparison
        assert comparison.optimized.deductions.section_80c == 150000
        assert comparison.optimized.deductions.section_80d == 25000
        assert comparison.total_savings > 0

    def test_fallback_when_not_configured(self):
        service = self.make_service()
        result = service.generate_recommendations(make_records().client_id)

        ai_set = result.tax_planning.ai_recommendations
        assert ai_set.source == RecommendationSource.FALLBACK
        assert ai_set.api_error
        assert "OPENAI_API_KEY" in ai_set.api_error_message
        assert result.warning.type == "api_error"
        assert result.tax_planning.tax_year == "2026"

    def test_fallback_on_credit_exhaustion(self):
        error = status_error(RateLimitError, 429, body={"code": "insufficient_quota"})
        service = self.make_service(fake_openai(error=error))
        result = service.generate_recommendations(make_records().client_id)

        assert result.tax_planning.ai_recommendations.credit_exhausted
        assert not result.tax_planning.ai_recommendations.api_error
        assert result.warning.type == "credit_exhausted"
        assert result.warning.show_fallback

    def test_fallback_on_unexpected_api_error(self):
        response = httpx.Response(200, request=httpx.Request("POST", OPENAI_URL))
        error = APIResponseValidationError(response=response, body=None)
        service = self.make_service(fake_openai(error=error))
        result = service.generate_recommendations(make_records().client_id)

        assert result.tax_planning.ai_recommendations.source == RecommendationSource.FALLBACK
        assert result.tax_planning.ai_recommendations.api_error
        assert result.warning.type == "api_error"

    def test_unknown_client_raises(self):
        with pytest.raises(ClientNotFoundError):
            self.make_service().generate_recommendations("missing")

    def test_manual_inputs_and_history(self):
        service = self.make_service()
        client_id = make_records().client_id
        service.generate_recommendations(client_id, tax_year="2025")
        service.save_manual_inputs(client_id, ManualAdvisorInputs(notes="Review in Jan"), tax_year="2026")

        history = service.get_history(client_id)
        assert [r.tax_year for r in history] == ["2026", "2025"]
        assert history[0].manual_advisor_inputs.notes == "Review in Jan"


# =============================================================================
# DIAGNOSTICS TESTS
# =============================================================================

class TestDiagnostics:
    """Test the client data-quality report."""

    def test_unknown_client(self):
        report = run_diagnostics("unknown-client", None)
        assert not report.client_found
        assert report.summary.health_score == 0
        assert report.summary.overall_health == HealthStatus.CRITICAL
        assert report.summary.critical_issues == 1

    def test_registered_client(self):
        records = make_records()
        report = run_diagnostics(records.client_id, records)

        assert report.client_found
        assert report.client_id_analysis["actualFormat"] == "24-character hexadecimal ObjectId"
        assert report.data_completeness == 36
        assert "panNumber" in report.missing_fields
        assert report.summary.health_score == 70
        assert report.summary.overall_health == HealthStatus.GOOD

    def test_profile_issues(self):
        records = make_records(
            client_id="12345",
            panNumber="bad",
            dateOfBirth=None,
            investments={"fixedIncome": {"ppf": 200000}},
        )
        report = run_diagnostics(records.client_id, records)

        assert report.client_id_analysis["actualFormat"] == "Numeric string"
        issues = " ".join(report.profile_issues)
        assert "Date of birth missing" in issues
        assert "PAN" in issues
        assert "80C" in issues

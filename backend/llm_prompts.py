"""
TaxPlanner AI - LLM Prompts
===========================
Prompts and response parsing for the AI recommendation step.

CRITICAL RULES FOR LLM USAGE:
1. LLM ONLY proposes recommendations in natural language + JSON
2. LLM NEVER calculates the final liability - that's done in tax_simulator
3. LLM receives REDACTED text only - no PAN, Aadhaar, contact details
4. LLM must output a single JSON object in the documented format
5. Slabs and limits are PROVIDED to the LLM - it cannot use its training data
"""

import json
import math
import re
from datetime import date
from typing import Any, Dict, Optional

from tax_constants import get_all_constants_for_llm, get_financial_year
from models import ClientTaxProfile


# =============================================================================
# SYSTEM PROMPT
# =============================================================================

TAX_PLANNING_SYSTEM_PROMPT = """You are a tax planning expert assistant for Indian resident individuals under the old tax regime.

## CRITICAL RULES:
1. All client data you receive has been anonymized
2. Use ONLY the slabs and deduction limits provided below - never your own figures
3. Give specific, actionable recommendations with realistic savings estimates
4. Never recommend deadlines in the past
5. Respond with ONLY a valid JSON object - no text before or after it

""" + get_all_constants_for_llm()


RESPONSE_FORMAT_EXAMPLE = """{
  "recommendations": [
    {
      "category": "deduction_optimization",
      "priority": "high",
      "title": "Maximize Section 80C Deductions",
      "description": "Detailed explanation of the recommendation with specific steps and benefits",
      "potentialSavings": 15000,
      "implementationSteps": ["Step 1: Review current investments", "Step 2: Calculate shortfall", "Step 3: Invest in suitable instruments"],
      "deadline": "YYYY-MM-DD",
      "riskLevel": "low"
    }
  ],
  "summary": "Overall tax planning strategy summary focusing on key opportunities",
  "totalPotentialSavings": 15000,
  "confidenceScore": 85
}"""


# =============================================================================
# FINANCIAL YEAR CONTEXT
# =============================================================================

def get_financial_year_context(today: Optional[date] = None) -> Dict[str, Any]:
    """Dates the model needs to set realistic deadlines."""
    today = today or date.today()
    fy_start, fy_end = get_financial_year(today)
    next_fy_end = date(fy_end.year + 1, 3, 31)

    days_remaining = (fy_end - today).days
    return {
        "today": today,
        "financial_year": f"{fy_start.year}-{fy_end.year}",
        "financial_year_end": fy_end,
        "next_financial_year_end": next_fy_end,
        "current_month": today.month,
        "current_month_name": today.strftime("%B"),
        "days_remaining": days_remaining,
        "months_remaining": math.ceil(days_remaining / 30),
    }


# =============================================================================
# PROMPT BUILDERS
# =============================================================================

def build_client_summary(profile: ClientTaxProfile, today: Optional[date] = None) -> str:
    """Build an anonymized summary of a client profile for LLM prompts."""
    personal = profile.personal_info
    income = profile.income_analysis
    investments = profile.tax_saving_investments
    gains = profile.capital_gains_analysis
    business = profile.business_tax_considerations

    lines = [
        "Personal Information:",
        f"- PAN on record: {'Yes' if personal.pan_number else 'No'}",
        f"- Age: {profile.age(today)} ({profile.age_band(today).value})",
        f"- Marital Status: {personal.marital_status.value}",
        f"- Dependents: {personal.number_of_dependents}",
        f"- Occupation: {personal.occupation or 'Not provided'}",
        "",
        "Income Analysis:",
        f"- Annual Income: Rs. {income.annual_income:,.0f}",
        f"- Monthly Income: Rs. {income.total_monthly_income:,.0f}",
        f"- Income Type: {income.income_type.value}",
        f"- Additional Income: Rs. {income.additional_income:,.0f}",
        "",
        "Tax-Saving Investments (Current):",
        f"- PPF: Rs. {investments.section_80c.ppf:,.0f}",
        f"- EPF: Rs. {investments.section_80c.epf:,.0f}",
        f"- ELSS: Rs. {investments.section_80c.elss:,.0f}",
        f"- NSC: Rs. {investments.section_80c.nsc:,.0f}",
        f"- Life Insurance: Rs. {investments.section_80c.life_insurance:,.0f}",
        f"- NPS Additional: Rs. {investments.section_80ccd_1b.nps_additional:,.0f}",
        f"- Health Insurance: Rs. {investments.section_80d.self_family:,.0f}",
        "",
        "Capital Gains:",
        f"- Equity Investments: Rs. {gains.equity_value:,.0f}",
        f"- Debt Investments: Rs. {gains.bonds_debentures.current_value:,.0f}",
        f"- Real Estate Properties: {len(gains.properties)} properties",
        "",
        f"Business/Professional Income: Rs. "
        f"{business.business_income + business.professional_income:,.0f}",
        "",
        f"Data Completeness: {profile.data_completeness}%",
    ]

    return "\n".join(lines)


def get_tax_planning_prompt(profile: ClientTaxProfile, today: Optional[date] = None) -> str:
    """
    Generate the user prompt for recommendation generation.

    Embeds the financial-year timing so deadlines land inside the right FY.
    """
    fy = get_financial_year_context(today)
    today_iso = fy["today"].isoformat()

    return f"""Analyze the following client data and provide comprehensive tax planning recommendations.

IMPORTANT: Current Date Information (Auto-calculated):
- Today's Date: {today_iso} ({fy["today"].strftime("%A, %d %B %Y")})
- Current Financial Year: {fy["financial_year"]}
- Financial Year End: {fy["financial_year_end"].isoformat()}
- Next Financial Year End: {fy["next_financial_year_end"].isoformat()}
- Current Month: {fy["current_month"]} ({fy["current_month_name"]})
- Days Remaining in Current FY: {fy["days_remaining"]} days
- Months Remaining in Current FY: {fy["months_remaining"]} months

CLIENT DATA:
{build_client_summary(profile, fy["today"])}

Provide tax planning recommendations in this exact JSON format:

{RESPONSE_FORMAT_EXAMPLE}

Allowed values:
- category: deduction_optimization, investment_strategy, capital_gains, business_tax, estate_planning, compliance
- priority: high, medium, low
- riskLevel: low, medium, high

Deadlines:
- For the current financial year ({fy["financial_year"]}): before {fy["financial_year_end"].isoformat()}
- For next financial year: before {fy["next_financial_year_end"].isoformat()}
- NEVER before {today_iso}
- If {fy["months_remaining"]} months or less remain, urgent tax-saving investments should be due within 1-2 months from today

Focus on:
1. Maximizing deductions under 80C, 80D, 80CCD(1B), 80E, 24(b) and HRA
2. Capital gains timing and tax-loss harvesting
3. Business tax optimization if applicable
4. Estate planning
5. Compliance requirements and deadlines
6. Risk assessment for each recommendation

Provide 3-5 specific, actionable recommendations. Return ONLY the JSON object."""


# =============================================================================
# RESPONSE PARSING
# =============================================================================

JSON_PATTERNS = [
    re.compile(r'```json\s*(\{[\s\S]*?\})\s*```'),
    re.compile(r'```\s*(\{[\s\S]*?\})\s*```'),
    re.compile(r'(\{[\s\S]*\})'),
]


def extract_json_payload(content: str) -> Dict[str, Any]:
    """
    Pull the JSON object out of a model reply.

    Fenced ```json blocks are tried first, then any fenced block, then the
    outermost brace span of the raw text.

    Raises:
        ValueError: no JSON object found, or none of the candidates parse
    """
    candidates = []
    for pattern in JSON_PATTERNS:
        match = pattern.search(content or "")
        if match:
            candidates.append(match.group(1))

    if not candidates:
        raise ValueError("No valid JSON found in AI response")

    last_error = None
    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError as e:
            last_error = e
            continue
        if isinstance(parsed, dict):
            return parsed

    raise ValueError(f"Failed to parse AI response: {last_error}. Response: {content[:500]}")


def validate_recommendation_response(response: dict) -> tuple[bool, list[str]]:
    """
    Check an AI response against the documented format.

    Issues are reported, not fatal: the normalizer repairs what it can.

    Returns:
        Tuple of (is_valid, list of issues)
    """
    issues = []

    recommendations = response.get('recommendations')
    if not isinstance(recommendations, list):
        issues.append("Missing recommendations list")
    else:
        if not 3 <= len(recommendations) <= 5:
            issues.append(f"Expected 3-5 recommendations, got {len(recommendations)}")
        for index, rec in enumerate(recommendations):
            if not isinstance(rec, dict):
                issues.append(f"Recommendation {index} is not an object")
                continue
            for key in ('category', 'priority', 'title', 'potentialSavings'):
                if key not in rec:
                    issues.append(f"Recommendation {index} missing {key}")

    if not response.get('summary'):
        issues.append("Missing summary")

    if not isinstance(response.get('totalPotentialSavings'), (int, float)):
        issues.append("Invalid totalPotentialSavings")

    confidence = response.get('confidenceScore')
    if not isinstance(confidence, (int, float)) or confidence < 0 or confidence > 100:
        issues.append("Invalid confidenceScore")

    return len(issues) == 0, issues


# =============================================================================
# EXPORTS
# =============================================================================

__all__ = [
    'TAX_PLANNING_SYSTEM_PROMPT',
    'RESPONSE_FORMAT_EXAMPLE',
    'get_financial_year_context',
    'build_client_summary',
    'get_tax_planning_prompt',
    'extract_json_payload',
    'validate_recommendation_response',
]

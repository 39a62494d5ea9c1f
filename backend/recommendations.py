"""
TaxPlanner AI - Recommendation Normalizer
=========================================
Maps free-form AI output onto the persisted recommendation schema.

The model may invent categories ("health_insurance"), priorities ("critical"),
malformed dates or string amounts. Normalization is total: every input item
yields exactly one valid Recommendation and nothing here raises.
"""

import logging
import math
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from tax_constants import SECTION_80C, SECTION_80CCD_1B, SECTION_80D
from models import (
    AIRecommendationSet,
    Recommendation,
    RecommendationCategory,
    RecommendationPriority,
    RecommendationSource,
    RiskLevel,
    coerce_amount,
)

logger = logging.getLogger(__name__)


# =============================================================================
# ENUM MAPPINGS
# =============================================================================

CATEGORY_MAPPING: Dict[str, RecommendationCategory] = {
    "data_completion": RecommendationCategory.COMPLIANCE,
    "health_insurance": RecommendationCategory.DEDUCTION_OPTIMIZATION,
    "retirement_planning": RecommendationCategory.INVESTMENT_STRATEGY,
    **{category.value: category for category in RecommendationCategory},
}

PRIORITY_MAPPING: Dict[str, RecommendationPriority] = {
    "critical": RecommendationPriority.HIGH,
    "high": RecommendationPriority.HIGH,
    "medium": RecommendationPriority.MEDIUM,
    "low": RecommendationPriority.LOW,
}

RISK_LEVEL_MAPPING: Dict[str, RiskLevel] = {level.value: level for level in RiskLevel}

SECTION_MAPPING: Dict[str, str] = {
    "80c": SECTION_80C,
    "section_80c": SECTION_80C,
    "80d": SECTION_80D,
    "section_80d": SECTION_80D,
    "80ccd1b": SECTION_80CCD_1B,
    "80ccd(1b)": SECTION_80CCD_1B,
    "80ccd_1b": SECTION_80CCD_1B,
    "section_80ccd1b": SECTION_80CCD_1B,
    "section_80ccd(1b)": SECTION_80CCD_1B,
}


def _mapping_key(value: Any) -> str:
    return str(value or "").strip().lower().replace("-", "_").replace(" ", "_")


def normalize_category(value: Any) -> RecommendationCategory:
    return CATEGORY_MAPPING.get(_mapping_key(value), RecommendationCategory.COMPLIANCE)


def normalize_priority(value: Any) -> RecommendationPriority:
    return PRIORITY_MAPPING.get(_mapping_key(value), RecommendationPriority.MEDIUM)


def normalize_risk_level(value: Any) -> RiskLevel:
    return RISK_LEVEL_MAPPING.get(_mapping_key(value), RiskLevel.LOW)


def normalize_section(value: Any) -> Optional[str]:
    return SECTION_MAPPING.get(_mapping_key(value))


# =============================================================================
# FIELD CLEANERS
# =============================================================================

def normalize_deadline(value: Any) -> Optional[date]:
    """Dates, datetimes and ISO strings are kept; anything else is dropped."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


def normalize_savings(value: Any) -> float:
    if isinstance(value, str):
        value = value.replace(",", "").replace("₹", "").strip()
    amount = coerce_amount(value)
    if math.isnan(amount) or math.isinf(amount) or amount < 0:
        return 0.0
    return amount


def normalize_steps(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(step) for step in value if step is not None]


def _pick(raw: Dict[str, Any], camel_key: str, snake_key: str) -> Any:
    value = raw.get(camel_key)
    return raw.get(snake_key) if value is None else value


# =============================================================================
# NORMALIZER
# =============================================================================

class RecommendationNormalizer:
    """
    Converts raw recommendation dicts (camelCase or snake_case keys)
    into validated Recommendation models.
    """

    def normalize_one(self, raw: Any) -> Recommendation:
        if not isinstance(raw, dict):
            raw = {}

        return Recommendation(
            category=normalize_category(raw.get("category")),
            priority=normalize_priority(raw.get("priority")),
            title=str(raw.get("title") or ""),
            description=str(raw.get("description") or ""),
            potential_savings=normalize_savings(_pick(raw, "potentialSavings", "potential_savings")),
            implementation_steps=normalize_steps(_pick(raw, "implementationSteps", "implementation_steps")),
            deadline=normalize_deadline(raw.get("deadline")),
            risk_level=normalize_risk_level(_pick(raw, "riskLevel", "risk_level")),
            deduction_section=normalize_section(_pick(raw, "deductionSection", "deduction_section")),
        )

    def normalize(self, raw_recommendations: Any) -> List[Recommendation]:
        if not isinstance(raw_recommendations, list):
            return []
        return [self.normalize_one(raw) for raw in raw_recommendations]

    def normalize_set(
        self,
        payload: Any,
        source: RecommendationSource = RecommendationSource.AI,
    ) -> AIRecommendationSet:
        """
        Normalize a whole AI response object.

        `totalPotentialSavings` falls back to the sum of item savings when the
        model leaves it out; `confidenceScore` is clamped to 0-100.
        """
        if not isinstance(payload, dict):
            payload = {}

        raw_recommendations = payload.get("recommendations")
        recommendations = self.normalize(raw_recommendations)

        total = _pick(payload, "totalPotentialSavings", "total_potential_savings")
        if total is None:
            total_savings = sum(rec.potential_savings for rec in recommendations)
        else:
            total_savings = normalize_savings(total)

        confidence = normalize_savings(_pick(payload, "confidenceScore", "confidence_score"))

        generated_at = _pick(payload, "generatedAt", "generated_at")
        if not isinstance(generated_at, datetime):
            generated_at = datetime.now()

        logger.info(
            f"[Tax Planning AI] Recommendations normalized: "
            f"{len(raw_recommendations) if isinstance(raw_recommendations, list) else 0} in, "
            f"{len(recommendations)} out"
        )

        return AIRecommendationSet(
            generated_at=generated_at,
            recommendations=recommendations,
            summary=str(payload.get("summary") or ""),
            total_potential_savings=total_savings,
            confidence_score=min(confidence, 100.0),
            source=source,
        )


def normalize_recommendation_set(
    payload: Any,
    source: RecommendationSource = RecommendationSource.AI,
) -> AIRecommendationSet:
    """Convenience wrapper around RecommendationNormalizer.normalize_set."""
    return RecommendationNormalizer().normalize_set(payload, source)


# =============================================================================
# FALLBACK RECOMMENDATIONS
# =============================================================================

FALLBACK_SUMMARY = (
    "Basic tax planning recommendations based on available data. Focus on "
    "maximizing tax deductions and optimizing investment strategy for better "
    "tax efficiency."
)
FALLBACK_TOTAL_SAVINGS = 28000
FALLBACK_CONFIDENCE = 75


def get_fallback_recommendations(today: Optional[date] = None) -> AIRecommendationSet:
    """Static set served whenever the AI provider cannot be used."""
    today = today or date.today()

    recommendations = [
        Recommendation(
            category=RecommendationCategory.DEDUCTION_OPTIMIZATION,
            priority=RecommendationPriority.HIGH,
            title="Maximize Section 80C Deductions",
            description=(
                "Consider increasing PPF, EPF, or ELSS investments to reach the "
                "Rs. 1.5L limit for maximum tax savings."
            ),
            potential_savings=15000,
            implementation_steps=[
                "Review current 80C investments",
                "Calculate shortfall to reach Rs. 1.5L limit",
                "Invest in suitable instruments (PPF, EPF, ELSS)",
                "Complete investments before March 31st",
            ],
            deadline=today + timedelta(days=90),
            risk_level=RiskLevel.LOW,
        ),
        Recommendation(
            category=RecommendationCategory.DEDUCTION_OPTIMIZATION,
            priority=RecommendationPriority.MEDIUM,
            title="Optimize Health Insurance Deductions",
            description=(
                "Review and potentially increase health insurance coverage to "
                "maximize Section 80D deductions."
            ),
            potential_savings=8000,
            implementation_steps=[
                "Review current health insurance coverage",
                "Check if parents are covered under senior citizen category",
                "Consider additional coverage if needed",
                "Ensure timely premium payments",
            ],
            deadline=today + timedelta(days=60),
            risk_level=RiskLevel.LOW,
        ),
        Recommendation(
            category=RecommendationCategory.INVESTMENT_STRATEGY,
            priority=RecommendationPriority.MEDIUM,
            title="Consider NPS Additional Contribution",
            description=(
                "Evaluate additional NPS contribution under Section 80CCD(1B) "
                "for additional Rs. 50,000 deduction."
            ),
            potential_savings=5000,
            implementation_steps=[
                "Check current NPS contribution",
                "Evaluate additional Rs. 50,000 contribution",
                "Consider long-term retirement planning benefits",
                "Complete contribution before financial year end",
            ],
            deadline=today + timedelta(days=75),
            risk_level=RiskLevel.MEDIUM,
        ),
    ]

    return AIRecommendationSet(
        recommendations=recommendations,
        summary=FALLBACK_SUMMARY,
        total_potential_savings=FALLBACK_TOTAL_SAVINGS,
        confidence_score=FALLBACK_CONFIDENCE,
        source=RecommendationSource.FALLBACK,
    )

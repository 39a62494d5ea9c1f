"""
TaxPlanner AI - Tax Planning Service
====================================
Orchestrates one planning run:

1. Aggregate client records into a ClientTaxProfile
2. Fetch AI recommendations (static fallback on any AI failure)
3. Normalize them to the persisted schema
4. Upsert the tax planning document for (client, tax year)
5. Compare current vs optimized scenarios and build chart data
"""

import logging
from datetime import date
from typing import List, Optional, Tuple

from models import (
    AIRecommendationSet,
    ClientTaxProfile,
    ManualAdvisorInputs,
    PlanningWarning,
    RecommendationSource,
    TaxPlanningRecord,
    TaxPlanningResult,
)
from openai_client import AICreditExhaustedError, AIRecommendationError, TaxAIClient
from recommendations import get_fallback_recommendations, normalize_recommendation_set
from tax_planning_store import ClientNotFoundError, TaxPlanningStore
from tax_simulator import TaxSimulator
from visualization import VisualizationBuilder
from diagnostics import DiagnosticReport, run_diagnostics

logger = logging.getLogger(__name__)


CREDIT_EXHAUSTED_MESSAGE = "OpenAI API credits exhausted. Showing fallback recommendations."


def build_warning(recommendations: AIRecommendationSet) -> Optional[PlanningWarning]:
    """Warning for the client UI when fallback recommendations were served."""
    if recommendations.credit_exhausted:
        return PlanningWarning(type="credit_exhausted", message=recommendations.credit_exhausted_message)
    if recommendations.api_error:
        return PlanningWarning(type="api_error", message=recommendations.api_error_message)
    return None


class TaxPlanningService:
    """
    Entry point used by the API and the dashboard.

    `today` pins the date for deadlines, ages and the default tax year;
    leave it None in production.
    """

    def __init__(
        self,
        store: Optional[TaxPlanningStore] = None,
        ai_client: Optional[TaxAIClient] = None,
        today: Optional[date] = None,
    ):
        self.store = store or TaxPlanningStore()
        self.ai_client = ai_client or TaxAIClient()
        self.today = today

    def _today(self) -> date:
        return self.today or date.today()

    def default_tax_year(self) -> str:
        return str(self._today().year)

    def get_profile(self, client_id: str, advisor_id: Optional[str] = None) -> ClientTaxProfile:
        records = self.store.get_client_records(client_id, advisor_id)
        return ClientTaxProfile.from_client_records(records)

    def get_planning_data(
        self,
        client_id: str,
        advisor_id: Optional[str] = None,
    ) -> Tuple[ClientTaxProfile, Optional[TaxPlanningRecord]]:
        """Aggregated profile plus the most recent existing plan, if any."""
        profile = self.get_profile(client_id, advisor_id)
        return profile, self.store.latest_plan(client_id, advisor_id)

    def fetch_recommendations(self, profile: ClientTaxProfile) -> AIRecommendationSet:
        """AI recommendations, or the tagged fallback set when the AI call fails."""
        try:
            raw = self.ai_client.generate_recommendations(profile, self._today())
            return normalize_recommendation_set(raw, RecommendationSource.AI)
        except AICreditExhaustedError as e:
            logger.warning(f"[{profile.client_id}] {e} Using fallback recommendations")
            fallback = get_fallback_recommendations(self._today())
            fallback.credit_exhausted = True
            fallback.credit_exhausted_message = CREDIT_EXHAUSTED_MESSAGE
            return fallback
        except AIRecommendationError as e:
            logger.warning(f"[{profile.client_id}] AI recommendations failed, using fallback: {e}")
            fallback = get_fallback_recommendations(self._today())
            fallback.api_error = True
            fallback.api_error_message = str(e)
            return fallback

    def generate_recommendations(
        self,
        client_id: str,
        advisor_id: Optional[str] = None,
        tax_year: Optional[str] = None,
    ) -> TaxPlanningResult:
        """
        Run the full planning pipeline for one client.

        Raises:
            ClientNotFoundError: unknown client or advisor mismatch
        """
        tax_year = tax_year or self.default_tax_year()
        logger.info(f"[{client_id}] Generating recommendations for tax year {tax_year}")

        profile = self.get_profile(client_id, advisor_id)
        logger.info(f"[{client_id}] Profile aggregated, data completeness {profile.data_completeness}%")

        recommendations = self.fetch_recommendations(profile)

        record = self.store.save_ai_recommendations(
            client_id, tax_year, advisor_id, profile, recommendations
        )

        comparison = TaxSimulator(today=self._today()).compare(profile, recommendations.recommendations)
        visualization = VisualizationBuilder(self._today()).build(comparison, recommendations.recommendations)

        logger.info(
            f"[{client_id}] Plan ready: {len(recommendations.recommendations)} recommendations "
            f"({recommendations.source.value}), savings {comparison.total_savings:,.0f}"
        )

        return TaxPlanningResult(
            tax_planning=record,
            visualization_data=visualization,
            warning=build_warning(recommendations),
        )

    def save_manual_inputs(
        self,
        client_id: str,
        manual_inputs: ManualAdvisorInputs,
        advisor_id: Optional[str] = None,
        tax_year: Optional[str] = None,
    ) -> TaxPlanningRecord:
        self.store.get_client_records(client_id, advisor_id)
        return self.store.save_manual_inputs(
            client_id, tax_year or self.default_tax_year(), advisor_id, manual_inputs
        )

    def get_history(self, client_id: str, advisor_id: Optional[str] = None) -> List[TaxPlanningRecord]:
        self.store.get_client_records(client_id, advisor_id)
        return self.store.get_history(client_id, advisor_id)

    def run_diagnostics(self, client_id: str, advisor_id: Optional[str] = None) -> DiagnosticReport:
        """Diagnostics never raise for unknown clients; the report says so instead."""
        try:
            records = self.store.get_client_records(client_id, advisor_id)
        except ClientNotFoundError:
            records = None
        return run_diagnostics(client_id, records)

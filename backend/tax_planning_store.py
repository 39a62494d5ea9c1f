"""
TaxPlanner AI - Tax Planning Store
==================================
In-memory persistence for client records and tax planning documents
(replace with a database in production).

Planning documents are unique per (client_id, tax_year); saves upsert.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from models import (
    AIRecommendationSet,
    ClientRecords,
    ClientTaxProfile,
    ManualAdvisorInputs,
    TaxPlanningRecord,
)

logger = logging.getLogger(__name__)


class ClientNotFoundError(LookupError):
    """Unknown client, or client owned by another advisor."""


class TaxPlanningStore:

    def __init__(self):
        self.clients: Dict[str, ClientRecords] = {}
        self.plans: Dict[Tuple[str, str], TaxPlanningRecord] = {}

    # -------------------------------------------------------------------------
    # Client records
    # -------------------------------------------------------------------------

    def register_client(self, records: ClientRecords, advisor_id: Optional[str] = None) -> ClientRecords:
        """
        Register or replace a client's records.

        Raises:
            ClientNotFoundError: the client exists and belongs to another advisor
        """
        replacing = self.has_client(records.client_id)
        if replacing:
            self.get_client_records(records.client_id, advisor_id or records.advisor_id)

        self.clients[records.client_id] = records
        logger.info(f"[{records.client_id}] Client records {'replaced' if replacing else 'registered'}")
        return records

    def has_client(self, client_id: str) -> bool:
        return client_id in self.clients

    def get_client_records(self, client_id: str, advisor_id: Optional[str] = None) -> ClientRecords:
        """
        Raises:
            ClientNotFoundError: no such client, or `advisor_id` does not own it
        """
        records = self.clients.get(client_id)
        if records is None:
            raise ClientNotFoundError(f"Client {client_id} not found")
        if advisor_id and records.advisor_id and records.advisor_id != advisor_id:
            raise ClientNotFoundError(f"Client {client_id} not found or access denied")
        return records

    # -------------------------------------------------------------------------
    # Tax planning documents
    # -------------------------------------------------------------------------

    def get_plan(self, client_id: str, tax_year: str) -> Optional[TaxPlanningRecord]:
        return self.plans.get((client_id, tax_year))

    def _get_or_create(self, client_id: str, tax_year: str, advisor_id: Optional[str]) -> TaxPlanningRecord:
        record = self.get_plan(client_id, tax_year)
        if record is None:
            record = TaxPlanningRecord(
                client_id=client_id,
                advisor_id=advisor_id,
                tax_year=tax_year,
                created_by=advisor_id,
            )
            self.plans[(client_id, tax_year)] = record
        return record

    def save_ai_recommendations(
        self,
        client_id: str,
        tax_year: str,
        advisor_id: Optional[str],
        profile: ClientTaxProfile,
        recommendations: AIRecommendationSet,
    ) -> TaxPlanningRecord:
        """Upsert the profile snapshot and AI recommendations; manual inputs are kept."""
        record = self._get_or_create(client_id, tax_year, advisor_id)
        record.profile = profile
        record.ai_recommendations = recommendations
        record.updated_by = advisor_id
        record.updated_at = datetime.now()

        logger.info(
            f"[{client_id}] Tax planning {record.id} saved for {tax_year}: "
            f"{len(recommendations.recommendations)} recommendations"
        )
        return record

    def save_manual_inputs(
        self,
        client_id: str,
        tax_year: str,
        advisor_id: Optional[str],
        manual_inputs: ManualAdvisorInputs,
    ) -> TaxPlanningRecord:
        """Replace manual inputs, stamping every recommendation as updated now."""
        now = datetime.now()
        stamped = manual_inputs.model_copy(deep=True)
        for rec in stamped.recommendations:
            rec.updated_at = now

        record = self._get_or_create(client_id, tax_year, advisor_id)
        record.manual_advisor_inputs = stamped
        record.updated_by = advisor_id
        record.updated_at = now
        record.last_reviewed = now

        logger.info(
            f"[{client_id}] Manual advisor inputs saved for {tax_year}: "
            f"{len(stamped.recommendations)} recommendations"
        )
        return record

    def get_history(self, client_id: str, advisor_id: Optional[str] = None) -> List[TaxPlanningRecord]:
        """Active documents, newest tax year first, then newest created first."""
        records = [
            record for (plan_client, _), record in self.plans.items()
            if plan_client == client_id
            and record.is_active
            and (advisor_id is None or record.advisor_id in (None, advisor_id))
        ]
        return sorted(records, key=lambda r: (r.tax_year, r.created_at), reverse=True)

    def latest_plan(self, client_id: str, advisor_id: Optional[str] = None) -> Optional[TaxPlanningRecord]:
        history = self.get_history(client_id, advisor_id)
        return history[0] if history else None

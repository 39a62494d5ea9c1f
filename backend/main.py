"""
TaxPlanner AI - FastAPI Backend
===============================
Tax planning API for financial advisors.

Security Architecture:
1. Prompts are PII-redacted BEFORE any LLM call
2. Tax calculations are done locally in Python - the LLM only proposes recommendations
3. PAN, Aadhaar and contact details are NEVER logged
"""

import os
import logging
from datetime import datetime
from typing import Optional
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Header, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Local imports
from tax_constants import (
    AgeBand,
    CESS_RATE,
    REBATE_87A_MAX,
    REBATE_87A_THRESHOLD,
    SECTION_CAPS,
    SECTION_LABELS,
    TAX_SLABS,
    TOTAL_DEDUCTION_CEILING,
)
from models import (
    AIRecommendationRequest,
    ClientRecords,
    ManualInputsRequest,
    TaxCalculationRequest,
    TaxLiabilityBreakdown,
    TaxPlanningResult,
)
from tax_planner import TaxPlanningService
from tax_planning_store import ClientNotFoundError
from tax_simulator import TaxCalculator

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


# =============================================================================
# APPLICATION SETUP
# =============================================================================

# In-memory storage lives in the service's store (replace with database in production)
planning_service = TaxPlanningService()


def get_service() -> TaxPlanningService:
    return planning_service


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("TaxPlanner AI starting up...")
    yield
    logger.info("TaxPlanner AI shutting down...")


app = FastAPI(
    title="TaxPlanner AI",
    description="Tax planning recommendations for Indian resident individuals",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:5173"],  # React dev servers
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def client_not_found(error: ClientNotFoundError) -> HTTPException:
    return HTTPException(status_code=404, detail=str(error))


# =============================================================================
# API ENDPOINTS
# =============================================================================

@app.get("/")
async def root():
    """API root - basic info."""
    return {
        "name": "TaxPlanner AI",
        "version": "1.0.0",
        "status": "running",
        "docs": "/docs"
    }


@app.get("/api/health")
async def health_check(service: TaxPlanningService = Depends(get_service)):
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "ai_connected": service.ai_client.is_connected,
        "clients_registered": len(service.store.clients),
    }


# --- CLIENT RECORDS ---

@app.post("/api/clients", status_code=201)
async def register_client(
    records: ClientRecords,
    x_advisor_id: Optional[str] = Header(default=None),
    service: TaxPlanningService = Depends(get_service),
):
    """Register or replace the raw CRM records for a client."""
    if records.advisor_id is None and x_advisor_id:
        records = records.model_copy(update={"advisor_id": x_advisor_id})
    try:
        service.store.register_client(records, x_advisor_id)
    except ClientNotFoundError as e:
        raise client_not_found(e)
    return {"clientId": records.client_id, "registered": True}


# --- TAX PLANNING ---

@app.get("/api/tax-planning/client/{client_id}")
async def get_client_tax_planning_data(
    client_id: str,
    x_advisor_id: Optional[str] = Header(default=None),
    service: TaxPlanningService = Depends(get_service),
):
    """Aggregated tax planning data plus the latest saved plan."""
    try:
        records = service.store.get_client_records(client_id, x_advisor_id)
        profile, existing = service.get_planning_data(client_id, x_advisor_id)
    except ClientNotFoundError as e:
        raise client_not_found(e)

    client = records.client
    name = " ".join(part for part in (client.get("firstName"), client.get("lastName")) if part)
    return {
        "clientInfo": {
            "id": client_id,
            "name": name,
            "email": client.get("email"),
            "phone": client.get("phone"),
            "dateOfBirth": client.get("dateOfBirth"),
            "maritalStatus": client.get("maritalStatus"),
            "address": client.get("address"),
        },
        "taxPlanningData": profile,
        "existingTaxPlanning": existing,
    }


# Sync endpoint: the OpenAI call blocks, so FastAPI runs it in a worker thread
@app.post("/api/tax-planning/client/{client_id}/ai-recommendations", response_model=TaxPlanningResult)
def generate_ai_recommendations(
    client_id: str,
    request: Optional[AIRecommendationRequest] = None,
    x_advisor_id: Optional[str] = Header(default=None),
    service: TaxPlanningService = Depends(get_service),
):
    """Generate, persist and visualize recommendations (fallback set on AI failure)."""
    tax_year = request.tax_year if request else None
    try:
        return service.generate_recommendations(client_id, x_advisor_id, tax_year)
    except ClientNotFoundError as e:
        raise client_not_found(e)


@app.post("/api/tax-planning/client/{client_id}/manual-inputs")
async def save_manual_advisor_inputs(
    client_id: str,
    request: ManualInputsRequest,
    x_advisor_id: Optional[str] = Header(default=None),
    service: TaxPlanningService = Depends(get_service),
):
    """Save the advisor's own recommendations and notes alongside the AI ones."""
    if request.manual_inputs is None:
        raise HTTPException(status_code=400, detail="Manual inputs are required")

    try:
        record = service.save_manual_inputs(
            client_id, request.manual_inputs, x_advisor_id, request.tax_year
        )
    except ClientNotFoundError as e:
        raise client_not_found(e)

    return {"taxPlanning": record}


@app.get("/api/tax-planning/client/{client_id}/history")
async def get_tax_planning_history(
    client_id: str,
    x_advisor_id: Optional[str] = Header(default=None),
    service: TaxPlanningService = Depends(get_service),
):
    try:
        history = service.get_history(client_id, x_advisor_id)
    except ClientNotFoundError as e:
        raise client_not_found(e)
    return {"taxPlanningHistory": history}


@app.get("/api/tax-planning/client/{client_id}/diagnostics")
async def get_client_diagnostics(
    client_id: str,
    x_advisor_id: Optional[str] = Header(default=None),
    service: TaxPlanningService = Depends(get_service),
):
    """Data-quality report for a client; unknown clients get a report, not a 404."""
    return service.run_diagnostics(client_id, x_advisor_id)


# --- REFERENCE DATA ---

@app.get("/api/reference/slabs")
async def get_tax_slabs(age_band: Optional[str] = None):
    """Get old-regime slabs, for one age band or all of them."""
    def render(band: AgeBand):
        rows = []
        prev_limit = 0
        for limit, rate in TAX_SLABS[band]:
            rows.append({
                "from": prev_limit,
                "to": limit if limit != float('inf') else "unlimited",
                "rate": rate,
            })
            prev_limit = limit
        return rows

    if age_band:
        try:
            band = AgeBand(age_band)
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid age band")
        return {"age_band": band.value, "slabs": render(band)}

    return {band.value: render(band) for band in AgeBand}


@app.get("/api/reference/deduction-limits")
async def get_deduction_limits():
    """Section caps, rebate and cess."""
    return {
        "sections": {SECTION_LABELS[section]: cap for section, cap in SECTION_CAPS.items()},
        "total_ceiling": TOTAL_DEDUCTION_CEILING,
        "rebate_87a": {"threshold": REBATE_87A_THRESHOLD, "max": REBATE_87A_MAX},
        "cess_rate": CESS_RATE,
    }


@app.post("/api/reference/calculate", response_model=TaxLiabilityBreakdown)
async def calculate_liability(request: TaxCalculationRequest):
    """Liability for a taxable income, with per-slab breakdown."""
    return TaxCalculator().calculate_breakdown(request.taxable_income, request.age_band)


# --- ERROR HANDLERS ---

@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    logger.error(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "detail": str(exc) if os.getenv("DEBUG") else "An error occurred"
        }
    )


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)

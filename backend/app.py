"""
TaxPlanner AI - Advisor Dashboard
=================================
Streamlit front end over the tax planning service.

Flow:
1. Load client records (sample client or pasted JSON)
2. Review the aggregated tax profile
3. Generate recommendations and compare current vs optimized tax
4. Add manual advisor recommendations, review history and diagnostics
"""

import sys
import os

# Path setup for Streamlit Cloud
_current_file = os.path.abspath(__file__)
_backend_dir = os.path.dirname(_current_file)
if _backend_dir not in sys.path:
    sys.path.insert(0, _backend_dir)

import json
import logging
from typing import Optional

import streamlit as st
from pydantic import ValidationError

from tax_constants import format_inr, get_financial_year_label, get_assessment_year_label
from models import (
    ClientRecords,
    ManualAdvisorInputs,
    ManualRecommendation,
    RecommendationPriority,
)
from openai_client import AIClientConfig, TaxAIClient
from tax_planner import TaxPlanningService
from tax_planning_store import ClientNotFoundError
from dashboard_data import (
    chart_to_frame,
    history_frame,
    recommendations_frame,
    scenario_frame,
    timeline_to_frame,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


SAMPLE_CLIENT = {
    "clientId": "64f1c2a9e4b0a1b2c3d4e5f6",
    "advisorId": "advisor-demo",
    "client": {
        "firstName": "Asha",
        "lastName": "Menon",
        "email": "asha@example.com",
        "dateOfBirth": "1985-06-15",
        "maritalStatus": "married",
        "numberOfDependents": 2,
        "occupation": "Engineer",
        "employerBusinessName": "Acme Systems",
        "totalMonthlyIncome": 100000,
        "incomeType": "salaried",
        "investments": {
            "fixedIncome": {"ppf": 50000, "epf": 30000},
            "equity": {"elss": {"currentValue": 20000}},
        },
        "healthInsurance": {"annualPremium": 15000},
        "lifeInsurance": {"annualPremium": 12000},
        "monthlyExpenses": {"housingRent": 25000},
    },
}


# =============================================================================
# SESSION HELPERS
# =============================================================================

def get_api_key() -> Optional[str]:
    """Get API key from Streamlit secrets, falling back to the environment."""
    try:
        if 'OPENAI_API_KEY' in st.secrets:
            return st.secrets['OPENAI_API_KEY']
    except Exception:
        # No secrets file configured
        pass
    return os.environ.get('OPENAI_API_KEY')


def get_service() -> TaxPlanningService:
    """Get or create the planning service for this session."""
    if 'service' not in st.session_state:
        config = AIClientConfig.from_env()
        config.api_key = get_api_key()
        st.session_state.service = TaxPlanningService(ai_client=TaxAIClient(config))
    return st.session_state.service


def init_session_state():
    if 'client_id' not in st.session_state:
        st.session_state.client_id = None
    if 'result' not in st.session_state:
        st.session_state.result = None
    if 'manual_recommendations' not in st.session_state:
        st.session_state.manual_recommendations = []


# =============================================================================
# PAGE CONFIGURATION
# =============================================================================

st.set_page_config(
    page_title="TaxPlanner AI - Advisor Dashboard",
    page_icon="🧾",
    layout="wide",
)

init_session_state()
service = get_service()

st.title("🧾 TaxPlanner AI")
st.caption(
    f"Old-regime tax planning for {get_financial_year_label()} ({get_assessment_year_label()})"
)

st.markdown("""
<div style="padding: 0.75rem 1rem; border-radius: 8px; background: #eef6ff;">
    🔒 <strong>Privacy Protected</strong> • PAN, Aadhaar, account numbers and contact details
    are redacted before any AI processing.
</div>
""", unsafe_allow_html=True)

if service.ai_client.is_connected:
    st.success(f"🟢 **{service.ai_client.model} connected**")
else:
    st.warning("🔴 **AI Offline** - Add `OPENAI_API_KEY` in Streamlit secrets. Fallback recommendations will be shown.")


# =============================================================================
# SIDEBAR: CLIENT RECORDS
# =============================================================================

with st.sidebar:
    st.header("Client Records")

    if st.button("Load sample client"):
        records = ClientRecords.model_validate(SAMPLE_CLIENT)
        service.store.register_client(records)
        st.session_state.client_id = records.client_id
        st.session_state.result = None

    raw_json = st.text_area("Or paste client records JSON", height=200)
    if st.button("Register client") and raw_json.strip():
        try:
            records = ClientRecords.model_validate(json.loads(raw_json))
            service.store.register_client(records)
        except (json.JSONDecodeError, ValidationError) as e:
            st.error(f"Invalid client records: {e}")
        except ClientNotFoundError as e:
            st.error(str(e))
        else:
            st.session_state.client_id = records.client_id
            st.session_state.result = None
            st.success(f"Registered {records.client_id}")

    tax_year = st.text_input("Tax year", value=service.default_tax_year())


client_id = st.session_state.client_id
if not client_id:
    st.info("Load or register a client from the sidebar to begin.")
    st.stop()


# =============================================================================
# NAVIGATION TABS
# =============================================================================

tab1, tab2, tab3, tab4 = st.tabs([
    "👤 Tax Profile",
    "🎯 Recommendations",
    "✍️ Advisor Inputs",
    "🩺 History & Diagnostics",
])


# =============================================================================
# TAB 1: TAX PROFILE
# =============================================================================

with tab1:
    profile, existing = service.get_planning_data(client_id)
    income = profile.income_analysis
    investments = profile.tax_saving_investments

    col1, col2, col3, col4 = st.columns(4)
    with col1:
        st.metric("Annual Income", format_inr(income.annual_income))
    with col2:
        st.metric("Age Band", profile.age_band().value.replace("_", " ").title())
    with col3:
        st.metric("Section 80C", format_inr(investments.section_80c.total))
    with col4:
        st.metric("Data Completeness", f"{profile.data_completeness}%")

    with st.expander("Full profile"):
        st.json(profile.model_dump(mode="json", by_alias=True))

    if existing:
        st.caption(f"Last plan for {existing.tax_year} reviewed {existing.last_reviewed:%d %b %Y}")


# =============================================================================
# TAB 2: RECOMMENDATIONS
# =============================================================================

with tab2:
    if st.button("Generate recommendations", type="primary"):
        with st.spinner("Analyzing tax position..."):
            st.session_state.result = service.generate_recommendations(client_id, tax_year=tax_year)

    result = st.session_state.result
    if result is None:
        st.info("Generate recommendations to see the optimized scenario.")
    else:
        if result.warning:
            st.warning(f"⚠️ {result.warning.message}")

        viz = result.visualization_data
        comparison = viz.before_after_comparison

        col1, col2, col3 = st.columns(3)
        with col1:
            st.metric("Current Tax", format_inr(comparison.current.total_tax_liability))
        with col2:
            st.metric(
                "Optimized Tax",
                format_inr(comparison.optimized.total_tax_liability),
                f"-{format_inr(comparison.total_savings)}",
                delta_color="inverse",
            )
        with col3:
            st.metric("Savings", f"{comparison.savings_percentage:.1f}%")

        st.dataframe(scenario_frame(comparison), use_container_width=True)

        chart_col1, chart_col2 = st.columns(2)
        with chart_col1:
            st.markdown(f"**{viz.charts['taxLiabilityComparison'].title}**")
            st.bar_chart(chart_to_frame(viz.charts['taxLiabilityComparison']))
            st.markdown(f"**{viz.charts['savingsBreakdown'].title}**")
            st.bar_chart(chart_to_frame(viz.charts['savingsBreakdown']))
        with chart_col2:
            st.markdown(f"**{viz.charts['deductionUtilization'].title}**")
            st.bar_chart(chart_to_frame(viz.charts['deductionUtilization']))
            st.markdown(f"**{viz.charts['implementationTimeline'].title}**")
            st.line_chart(chart_to_frame(viz.charts['implementationTimeline']))

        ai_set = result.tax_planning.ai_recommendations
        st.markdown(f"### Recommendations ({ai_set.source.value})")
        st.markdown(ai_set.summary)
        st.dataframe(recommendations_frame(ai_set.recommendations), use_container_width=True)

        for rec in ai_set.recommendations:
            with st.expander(f"{rec.title} - {format_inr(rec.potential_savings)}"):
                st.markdown(rec.description)
                for step in rec.implementation_steps:
                    st.markdown(f"- {step}")

        st.markdown("### Implementation Timeline")
        st.caption(
            f"{viz.summary.estimated_implementation_time} • "
            f"overall risk {viz.summary.risk_level.value}"
        )
        st.dataframe(timeline_to_frame(viz.implementation_timeline), use_container_width=True)


# =============================================================================
# TAB 3: ADVISOR INPUTS
# =============================================================================

with tab3:
    with st.form("manual_recommendation"):
        title = st.text_input("Title")
        description = st.text_area("Description")
        col1, col2 = st.columns(2)
        with col1:
            priority = st.selectbox("Priority", [p.value for p in RecommendationPriority], index=1)
        with col2:
            savings = st.number_input("Potential savings (Rs.)", min_value=0.0, step=1000.0)
        if st.form_submit_button("Add recommendation") and title:
            st.session_state.manual_recommendations.append(ManualRecommendation(
                title=title,
                description=description,
                priority=priority,
                potential_savings=savings,
            ))

    for rec in st.session_state.manual_recommendations:
        st.markdown(f"- **{rec.title}** ({rec.priority.value}) - {format_inr(rec.potential_savings)}")

    notes = st.text_area("Notes")
    instructions = st.text_area("Client instructions")

    if st.button("Save advisor inputs"):
        record = service.save_manual_inputs(
            client_id,
            ManualAdvisorInputs(
                recommendations=st.session_state.manual_recommendations,
                notes=notes,
                client_instructions=instructions,
            ),
            tax_year=tax_year,
        )
        st.success(f"Saved. Total potential savings: {format_inr(record.total_potential_savings)}")


# =============================================================================
# TAB 4: HISTORY & DIAGNOSTICS
# =============================================================================

with tab4:
    st.markdown("### Planning History")
    st.dataframe(history_frame(service.get_history(client_id)), use_container_width=True)

    st.markdown("### Diagnostics")
    report = service.run_diagnostics(client_id)
    col1, col2 = st.columns(2)
    with col1:
        st.metric("Health", report.summary.overall_health.value.title())
    with col2:
        st.metric("Health Score", report.summary.health_score)

    for finding in report.recommendations:
        st.markdown(f"- **[{finding.priority.value}] {finding.category}:** {finding.issue} → {finding.solution}")

"""
TaxPlanner AI - Dashboard Data
==============================
Turns planning results into pandas DataFrames for the Streamlit dashboard.
"""

from typing import List

import pandas as pd

from models import Chart, ComparisonResult, Recommendation, TimelineItem, TaxPlanningRecord


def chart_to_frame(chart: Chart) -> pd.DataFrame:
    """One row per label, one column per dataset (unlabelled datasets become 'Value')."""
    columns = {}
    for i, dataset in enumerate(chart.data.datasets):
        name = dataset.label or ("Value" if i == 0 else f"Value {i + 1}")
        columns[name] = dataset.data
    return pd.DataFrame(columns, index=pd.Index(chart.data.labels, name="Label"))


def scenario_frame(comparison: ComparisonResult) -> pd.DataFrame:
    rows = []
    for scenario in (comparison.current, comparison.optimized):
        rows.append({
            "Scenario": scenario.name,
            "Annual Income": scenario.annual_income,
            "80C": scenario.deductions.section_80c,
            "80D": scenario.deductions.section_80d,
            "80CCD(1B)": scenario.deductions.section_80ccd_1b,
            "Total Deductions": scenario.deductions.total,
            "Taxable Income": scenario.taxable_income,
            "Tax Liability": scenario.total_tax_liability,
            "Effective Rate (%)": scenario.effective_tax_rate,
        })
    return pd.DataFrame(rows).set_index("Scenario")


def timeline_to_frame(timeline: List[TimelineItem]) -> pd.DataFrame:
    frame = pd.DataFrame([
        {
            "Deadline": item.deadline,
            "Title": item.title,
            "Priority": item.priority.value,
            "Category": item.category.value.replace("_", " ").title(),
            "Risk": item.risk_level.value,
            "Potential Savings": item.potential_savings,
            "Status": item.status.value,
        }
        for item in timeline
    ], columns=["Deadline", "Title", "Priority", "Category", "Risk", "Potential Savings", "Status"])
    return frame


def recommendations_frame(recommendations: List[Recommendation]) -> pd.DataFrame:
    return pd.DataFrame([
        {
            "Title": rec.title,
            "Category": rec.category.value,
            "Priority": rec.priority.value,
            "Section": rec.deduction_section or "",
            "Potential Savings": rec.potential_savings,
            "Deadline": rec.deadline,
        }
        for rec in recommendations
    ], columns=["Title", "Category", "Priority", "Section", "Potential Savings", "Deadline"])


def history_frame(history: List[TaxPlanningRecord]) -> pd.DataFrame:
    return pd.DataFrame([
        {
            "Tax Year": record.tax_year,
            "AI Recommendations": len(record.ai_recommendations.recommendations) if record.ai_recommendations else 0,
            "Manual Recommendations": (
                len(record.manual_advisor_inputs.recommendations) if record.manual_advisor_inputs else 0
            ),
            "Total Potential Savings": record.total_potential_savings,
            "Last Reviewed": record.last_reviewed,
        }
        for record in history
    ], columns=["Tax Year", "AI Recommendations", "Manual Recommendations",
                "Total Potential Savings", "Last Reviewed"])

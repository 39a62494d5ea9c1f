"""
TaxPlanner AI - Visualization Builder
=====================================
Chart, timeline and summary payloads for the before/after planning view.

Chart objects follow the Chart.js shape ({type, title, data: {labels,
datasets}}) so the web frontend can render them unchanged; the Streamlit
dashboard converts them to DataFrames via dashboard_data.
"""

from datetime import date, timedelta
from typing import Dict, List, Optional

from tax_constants import SECTION_LABELS, TOTAL_DEDUCTION_CEILING
from models import (
    Chart,
    ChartData,
    ChartDataset,
    ComparisonResult,
    Recommendation,
    RecommendationPriority,
    RiskLevel,
    TimelineItem,
    TimelineStatus,
    VisualizationPayload,
    VisualizationSummary,
)


# =============================================================================
# CHART STYLING
# =============================================================================

COMPARISON_COLORS = ['#ef4444', '#10b981', '#3b82f6']
COMPARISON_BORDERS = ['#dc2626', '#059669', '#2563eb']
UTILIZATION_COLORS = ['#8b5cf6', '#06b6d4', '#f59e0b', '#e5e7eb']
SAVINGS_PALETTE = [
    '#ef4444', '#f97316', '#eab308', '#22c55e', '#06b6d4',
    '#3b82f6', '#8b5cf6', '#ec4899', '#84cc16', '#f59e0b',
]
TIMELINE_LINE_COLOR = '#10b981'
TIMELINE_FILL_COLOR = 'rgba(16, 185, 129, 0.1)'

TIMELINE_MONTHS = [1, 2, 3, 6, 12]
DEFAULT_DEADLINE_SPACING_DAYS = 30


def month_offset(later: date, earlier: date) -> int:
    """Calendar-month distance, ignoring days."""
    return (later.year - earlier.year) * 12 + (later.month - earlier.month)


class VisualizationBuilder:
    """
    Builds the visualization payload for one comparison and recommendation set.

    `today` anchors default deadlines and month offsets; it defaults to the
    current date.
    """

    def __init__(self, today: Optional[date] = None):
        self.today = today or date.today()

    def build(
        self,
        comparison: ComparisonResult,
        recommendations: List[Recommendation],
    ) -> VisualizationPayload:
        timeline = self.build_implementation_timeline(recommendations)

        return VisualizationPayload(
            before_after_comparison=comparison,
            charts=self.build_charts(comparison, recommendations, timeline),
            implementation_timeline=timeline,
            summary=VisualizationSummary(
                total_recommendations=len(recommendations),
                high_priority_recommendations=sum(
                    1 for rec in recommendations if rec.priority == RecommendationPriority.HIGH
                ),
                estimated_implementation_time=self.calculate_implementation_time(recommendations),
                risk_level=self.calculate_overall_risk_level(recommendations),
            ),
        )

    # -------------------------------------------------------------------------
    # Timeline
    # -------------------------------------------------------------------------

    def build_implementation_timeline(self, recommendations: List[Recommendation]) -> List[TimelineItem]:
        """
        One pending item per recommendation, ordered by deadline.

        Ids follow input order and are assigned before sorting. A missing
        deadline is spread out at 30-day steps from today.
        """
        timeline = []

        for index, rec in enumerate(recommendations):
            deadline = rec.deadline or self.today + timedelta(
                days=DEFAULT_DEADLINE_SPACING_DAYS * (index + 1)
            )
            timeline.append(TimelineItem(
                id=index + 1,
                title=rec.title,
                description=rec.description,
                priority=rec.priority,
                deadline=deadline,
                potential_savings=rec.potential_savings,
                status=TimelineStatus.PENDING,
                category=rec.category,
                risk_level=rec.risk_level,
            ))

        # sorted() is stable, so equal deadlines keep input order
        return sorted(timeline, key=lambda item: item.deadline)

    # -------------------------------------------------------------------------
    # Summary figures
    # -------------------------------------------------------------------------

    @staticmethod
    def calculate_overall_risk_level(recommendations: List[Recommendation]) -> RiskLevel:
        levels = {rec.risk_level for rec in recommendations}
        if RiskLevel.HIGH in levels:
            return RiskLevel.HIGH
        if RiskLevel.MEDIUM in levels:
            return RiskLevel.MEDIUM
        return RiskLevel.LOW

    def calculate_implementation_time(self, recommendations: List[Recommendation]) -> str:
        if not recommendations:
            return "0 months"

        deadlines = [rec.deadline for rec in recommendations if rec.deadline]
        if not deadlines:
            return "3-6 months"

        months = month_offset(max(deadlines), self.today)
        return f"{max(1, months)} months"

    # -------------------------------------------------------------------------
    # Charts
    # -------------------------------------------------------------------------

    def build_charts(
        self,
        comparison: ComparisonResult,
        recommendations: List[Recommendation],
        timeline: List[TimelineItem],
    ) -> Dict[str, Chart]:
        return {
            "taxLiabilityComparison": self._liability_chart(comparison),
            "deductionUtilization": self._utilization_chart(comparison),
            "savingsBreakdown": self._savings_chart(recommendations),
            "implementationTimeline": self._cumulative_savings_chart(timeline),
        }

    def _liability_chart(self, comparison: ComparisonResult) -> Chart:
        current = comparison.current.total_tax_liability
        optimized = comparison.optimized.total_tax_liability

        return Chart(
            type="bar",
            title="Tax Liability: Before vs After",
            data=ChartData(
                labels=["Current Tax", "Optimized Tax", "Savings"],
                datasets=[ChartDataset(
                    label="Amount (Rs.)",
                    data=[current, optimized, current - optimized],
                    background_color=COMPARISON_COLORS,
                    border_color=COMPARISON_BORDERS,
                )],
            ),
        )

    def _utilization_chart(self, comparison: ComparisonResult) -> Chart:
        deductions = comparison.optimized.deductions
        sections = deductions.by_section()

        return Chart(
            type="doughnut",
            title="Deduction Utilization",
            data=ChartData(
                labels=[f"Section {SECTION_LABELS[section]}" for section in sections] + ["Unused"],
                datasets=[ChartDataset(
                    data=list(sections.values()) + [max(0.0, TOTAL_DEDUCTION_CEILING - deductions.total)],
                    background_color=UTILIZATION_COLORS,
                )],
            ),
        )

    def _savings_chart(self, recommendations: List[Recommendation]) -> Chart:
        return Chart(
            type="pie",
            title="Savings by Category",
            data=ChartData(
                labels=[rec.title for rec in recommendations],
                datasets=[ChartDataset(
                    data=[rec.potential_savings for rec in recommendations],
                    background_color=SAVINGS_PALETTE,
                )],
            ),
        )

    def _cumulative_savings_chart(self, timeline: List[TimelineItem]) -> Chart:
        """Savings realised by each checkpoint month, counted at item deadlines."""
        cumulative = [
            sum(
                item.potential_savings
                for item in timeline
                if month_offset(item.deadline, self.today) <= month
            )
            for month in TIMELINE_MONTHS
        ]

        return Chart(
            type="line",
            title="Implementation Timeline",
            data=ChartData(
                labels=[f"Month {month}" for month in TIMELINE_MONTHS],
                datasets=[ChartDataset(
                    label="Cumulative Savings (Rs.)",
                    data=cumulative,
                    background_color=TIMELINE_FILL_COLOR,
                    border_color=TIMELINE_LINE_COLOR,
                    fill=True,
                    tension=0.4,
                )],
            ),
        )

"""
TaxPlanner AI - Client Data Diagnostics
=======================================
Explains why a client's plan may be thin or wrong: malformed client id,
missing source records, low data completeness, profile values that waste
deduction room.

Each step takes the DiagnosticReport, adds its findings and returns it, so a
run is just the steps applied in order to a fresh report.
"""

import logging
import re
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import Field

from tax_constants import SECTION_80C, SECTION_80D, SECTION_80CCD_1B, SECTION_CAPS
from models import (
    CamelModel,
    ClientRecords,
    ClientTaxProfile,
    INVESTMENT_COMPLETENESS_FIELDS,
    PERSONAL_COMPLETENESS_FIELDS,
    coerce_amount,
    dig,
)

logger = logging.getLogger(__name__)


OBJECT_ID_PATTERN = re.compile(r'^[0-9a-fA-F]{24}$')
UUID_PATTERN = re.compile(r'^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$')
PAN_PATTERN = re.compile(r'^[A-Z]{5}\d{4}[A-Z]$')

LOW_COMPLETENESS_THRESHOLD = 50


class HealthStatus(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    CRITICAL = "critical"


class FindingPriority(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class DiagnosticFinding(CamelModel):
    priority: FindingPriority
    category: str
    issue: str
    solution: str


class DiagnosticSummary(CamelModel):
    overall_health: HealthStatus
    health_score: int
    critical_issues: int
    warnings: int
    data_completeness: int


class DiagnosticReport(CamelModel):
    client_id: str
    run_at: date = Field(default_factory=date.today)
    client_id_analysis: Dict[str, Any] = Field(default_factory=dict)
    record_sources: Dict[str, bool] = Field(default_factory=dict)
    client_found: bool = False
    data_completeness: int = 0
    missing_fields: List[str] = Field(default_factory=list)
    profile_issues: List[str] = Field(default_factory=list)
    recommendations: List[DiagnosticFinding] = Field(default_factory=list)
    summary: Optional[DiagnosticSummary] = None


# =============================================================================
# DIAGNOSTIC STEPS
# =============================================================================

def analyze_client_id(report: DiagnosticReport) -> DiagnosticReport:
    client_id = report.client_id
    issues = []

    if OBJECT_ID_PATTERN.match(client_id):
        actual_format = "24-character hexadecimal ObjectId"
    elif UUID_PATTERN.match(client_id):
        actual_format = "UUID"
    elif client_id.isdigit():
        actual_format = "Numeric string"
        issues.append("ID is numeric, not a hexadecimal ObjectId or UUID")
    elif not client_id.strip():
        actual_format = "Empty"
        issues.append("ID is empty")
    else:
        actual_format = "Custom string"
        issues.append("ID format could not be determined")

    report.client_id_analysis = {
        "idLength": len(client_id),
        "actualFormat": actual_format,
        "issues": issues,
    }
    return report


def check_record_sources(report: DiagnosticReport, records: Optional[ClientRecords]) -> DiagnosticReport:
    report.client_found = records is not None
    report.record_sources = {
        "client": records is not None,
        "financialPlans": bool(records and records.financial_plans),
        "casData": bool(records and dig(records.client_invitation, 'casParsedData')),
        "estateInformation": bool(records and records.estate_information),
    }
    return report


def validate_data_completeness(report: DiagnosticReport, profile: Optional[ClientTaxProfile],
                               records: Optional[ClientRecords]) -> DiagnosticReport:
    if records is None or profile is None:
        report.data_completeness = 0
        return report

    report.data_completeness = profile.data_completeness
    report.missing_fields = [
        name for name in PERSONAL_COMPLETENESS_FIELDS if not records.client.get(name)
    ] + [
        path for path in INVESTMENT_COMPLETENESS_FIELDS if coerce_amount(dig(records.client, path)) <= 0
    ]
    return report


def validate_tax_profile(report: DiagnosticReport, profile: Optional[ClientTaxProfile]) -> DiagnosticReport:
    """Flag values that make the calculation default or leave deductions unused."""
    if profile is None:
        return report

    personal = profile.personal_info
    investments = profile.tax_saving_investments
    issues = report.profile_issues

    if profile.income_analysis.annual_income <= 0:
        issues.append("Annual income is zero; liability will be zero")
    if personal.date_of_birth is None:
        issues.append("Date of birth missing; age defaults to 30 (normal slab band)")
    if personal.pan_number and not PAN_PATTERN.match(personal.pan_number.upper()):
        issues.append("PAN on record does not match the AAAAA9999A format")

    raw_by_section = {
        SECTION_80C: investments.section_80c.total,
        SECTION_80D: investments.section_80d.total,
        SECTION_80CCD_1B: investments.section_80ccd_1b.nps_additional,
    }
    for section, raw in raw_by_section.items():
        if raw > SECTION_CAPS[section]:
            issues.append(
                f"Section {section} investments of {raw:,.0f} exceed the "
                f"{SECTION_CAPS[section]:,.0f} cap; the excess earns no deduction"
            )
    return report


def generate_recommendations(report: DiagnosticReport) -> DiagnosticReport:
    findings = report.recommendations

    if not report.client_found:
        findings.append(DiagnosticFinding(
            priority=FindingPriority.CRITICAL,
            category="Client Records",
            issue="No client records registered for this id",
            solution="Register the client's CRM records before planning",
        ))

    if report.client_id_analysis.get("issues"):
        findings.append(DiagnosticFinding(
            priority=FindingPriority.MEDIUM,
            category="Client ID Format",
            issue="; ".join(report.client_id_analysis["issues"]),
            solution="Use the CRM's ObjectId or a UUID as the client id",
        ))

    if report.client_found and report.data_completeness < LOW_COMPLETENESS_THRESHOLD:
        findings.append(DiagnosticFinding(
            priority=FindingPriority.HIGH,
            category="Data Completeness",
            issue=f"Only {report.data_completeness}% of tax-relevant data is filled in",
            solution="Collect missing fields: " + ", ".join(report.missing_fields[:5]),
        ))

    for issue in report.profile_issues:
        findings.append(DiagnosticFinding(
            priority=FindingPriority.LOW,
            category="Tax Profile",
            issue=issue,
            solution="Review the client's figures with them before relying on the plan",
        ))

    return report


def calculate_overall_health(report: DiagnosticReport) -> DiagnosticReport:
    health_score = 100
    critical_issues = 0
    warnings = 0

    if not report.client_found:
        health_score -= 50
        critical_issues += 1

    if report.client_id_analysis.get("issues"):
        health_score -= 20
        warnings += 1

    if report.data_completeness < LOW_COMPLETENESS_THRESHOLD:
        health_score -= 30
        warnings += 1

    warnings += len(report.profile_issues)
    health_score -= 5 * len(report.profile_issues)

    if health_score >= 90:
        overall_health = HealthStatus.EXCELLENT
    elif health_score >= 70:
        overall_health = HealthStatus.GOOD
    elif health_score >= 50:
        overall_health = HealthStatus.FAIR
    elif health_score >= 30:
        overall_health = HealthStatus.POOR
    else:
        overall_health = HealthStatus.CRITICAL

    report.summary = DiagnosticSummary(
        overall_health=overall_health,
        health_score=max(0, health_score),
        critical_issues=critical_issues,
        warnings=warnings,
        data_completeness=report.data_completeness,
    )
    return report


def run_diagnostics(client_id: str, records: Optional[ClientRecords]) -> DiagnosticReport:
    """Run every diagnostic step for one client and return the finished report."""
    profile = ClientTaxProfile.from_client_records(records) if records is not None else None

    report = DiagnosticReport(client_id=client_id)
    report = analyze_client_id(report)
    report = check_record_sources(report, records)
    report = validate_data_completeness(report, profile, records)
    report = validate_tax_profile(report, profile)
    report = generate_recommendations(report)
    report = calculate_overall_health(report)

    logger.info(
        f"[{client_id}] Diagnostics complete: {report.summary.overall_health.value} "
        f"({report.summary.health_score}), {len(report.recommendations)} findings"
    )
    return report

"""
TaxPlanner AI - Data Models
===========================
Pydantic models for client tax profiles, scenarios, recommendations and
visualization payloads.

These models serve as the contract between:
- Raw client records (CRM, CAS, estate data)
- The AI recommendation pipeline
- Tax calculation engine
- API responses and the advisor dashboard

Every payload serialises with camelCase keys; snake_case input validates too.
"""

from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional
import uuid

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator
from pydantic.alias_generators import to_camel

from tax_constants import (
    AgeBand,
    SECTION_80C,
    SECTION_80D,
    SECTION_80CCD_1B,
    get_age,
    get_age_band,
)


# =============================================================================
# ENUMS
# =============================================================================

class IncomeType(str, Enum):
    SALARIED = "salaried"
    BUSINESS = "business"
    PROFESSIONAL = "professional"
    MIXED = "mixed"


class MaritalStatus(str, Enum):
    SINGLE = "single"
    MARRIED = "married"
    DIVORCED = "divorced"
    WIDOWED = "widowed"


class RecommendationCategory(str, Enum):
    DEDUCTION_OPTIMIZATION = "deduction_optimization"
    INVESTMENT_STRATEGY = "investment_strategy"
    CAPITAL_GAINS = "capital_gains"
    BUSINESS_TAX = "business_tax"
    ESTATE_PLANNING = "estate_planning"
    COMPLIANCE = "compliance"


class RecommendationPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RecommendationSource(str, Enum):
    AI = "ai"
    FALLBACK = "fallback"


class TimelineStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class ManualRecommendationStatus(str, Enum):
    DRAFT = "draft"
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# =============================================================================
# BASE MODELS
# =============================================================================

def coerce_amount(value: Any) -> float:
    """Absent or unreadable amounts count as zero."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AmountsModel(CamelModel):
    """Float fields accept None, blanks and junk, which all become 0.0."""

    @field_validator('*', mode='before')
    @classmethod
    def zero_missing_amounts(cls, v, info):
        if cls.model_fields[info.field_name].annotation is float:
            return coerce_amount(v)
        return v


# =============================================================================
# CLIENT PROFILE MODELS
# =============================================================================

class PersonalInfo(CamelModel):
    pan_number: str = ""
    aadhaar_number: str = Field(default="", alias="aadharNumber")
    address: Dict[str, Any] = Field(default_factory=dict)
    date_of_birth: Optional[date] = None
    marital_status: MaritalStatus = MaritalStatus.SINGLE
    number_of_dependents: int = 0
    occupation: str = ""
    employer_business_name: str = ""

    @field_validator('pan_number', 'aadhaar_number', 'occupation', 'employer_business_name', mode='before')
    @classmethod
    def blank_strings(cls, v):
        return "" if v is None else str(v)

    @field_validator('address', mode='before')
    @classmethod
    def blank_address(cls, v):
        return v if isinstance(v, dict) else {}

    @field_validator('number_of_dependents', mode='before')
    @classmethod
    def zero_dependents(cls, v):
        return int(coerce_amount(v))

    @field_validator('date_of_birth', mode='before')
    @classmethod
    def parse_date_of_birth(cls, v):
        """Accept dates, datetimes and ISO strings; anything else is unknown."""
        if v is None or isinstance(v, date):
            return v.date() if isinstance(v, datetime) else v
        try:
            return date.fromisoformat(str(v)[:10])
        except ValueError:
            return None

    @field_validator('marital_status', mode='before')
    @classmethod
    def normalize_marital_status(cls, v):
        if isinstance(v, MaritalStatus):
            return v
        mapping = {status.value: status for status in MaritalStatus}
        return mapping.get(str(v or "").strip().lower(), MaritalStatus.SINGLE)


class IncomeAnalysis(AmountsModel):
    total_monthly_income: float = 0.0
    income_type: IncomeType = IncomeType.SALARIED
    additional_income: float = 0.0
    employer_business_name: str = ""

    @field_validator('income_type', mode='before')
    @classmethod
    def normalize_income_type(cls, v):
        if isinstance(v, IncomeType):
            return v
        mapping = {income_type.value: income_type for income_type in IncomeType}
        return mapping.get(str(v or "").strip().lower(), IncomeType.SALARIED)

    @computed_field
    @property
    def annual_income(self) -> float:
        return self.total_monthly_income * 12


class Section80CInvestments(AmountsModel):
    ppf: float = 0.0
    epf: float = 0.0
    elss: float = 0.0
    nsc: float = 0.0
    life_insurance: float = 0.0
    tuition_fees: float = 0.0
    principal_repayment: float = 0.0

    @computed_field
    @property
    def total(self) -> float:
        return (self.ppf + self.epf + self.elss + self.nsc + self.life_insurance
                + self.tuition_fees + self.principal_repayment)


class Section80DInvestments(AmountsModel):
    self_family: float = 0.0
    parents: float = 0.0
    senior_citizen: float = 0.0

    @computed_field
    @property
    def total(self) -> float:
        return self.self_family + self.parents + self.senior_citizen


class Section80CCD1BInvestments(AmountsModel):
    nps_additional: float = 0.0


class Section80EInvestments(AmountsModel):
    education_loan_interest: float = 0.0


class Section24BInvestments(AmountsModel):
    home_loan_interest: float = 0.0
    self_occupied: float = 0.0
    let_out: float = 0.0


class HRAExemption(AmountsModel):
    rent_paid: float = 0.0
    hra_received: float = 0.0
    exemption_amount: float = 0.0


class TaxSavingInvestments(CamelModel):
    section_80c: Section80CInvestments = Field(default_factory=Section80CInvestments, alias="section80C")
    section_80ccd_1b: Section80CCD1BInvestments = Field(
        default_factory=Section80CCD1BInvestments, alias="section80CCD1B"
    )
    section_80d: Section80DInvestments = Field(default_factory=Section80DInvestments, alias="section80D")
    section_80e: Section80EInvestments = Field(default_factory=Section80EInvestments, alias="section80E")
    section_24b: Section24BInvestments = Field(default_factory=Section24BInvestments, alias="section24B")
    hra_exemption: HRAExemption = Field(default_factory=HRAExemption)


class AssetHolding(AmountsModel):
    current_value: float = 0.0
    purchase_value: float = 0.0

    @computed_field
    @property
    def unrealized_gain(self) -> float:
        return self.current_value - self.purchase_value


class PropertyHolding(AmountsModel):
    property_type: str = "residential"
    current_value: float = 0.0
    purchase_value: float = 0.0
    improvement_cost: float = 0.0
    holding_period: str = "long_term"


class CapitalGainsAnalysis(CamelModel):
    direct_stocks: AssetHolding = Field(default_factory=AssetHolding)
    mutual_funds: AssetHolding = Field(default_factory=AssetHolding)
    bonds_debentures: AssetHolding = Field(default_factory=AssetHolding)
    properties: List[PropertyHolding] = Field(default_factory=list)

    @computed_field
    @property
    def equity_value(self) -> float:
        return self.direct_stocks.current_value + self.mutual_funds.current_value


class BusinessTaxConsiderations(AmountsModel):
    business_income: float = 0.0
    business_expenses: float = 0.0
    professional_income: float = 0.0
    professional_expenses: float = 0.0


class CASSummary(AmountsModel):
    """Consolidated Account Statement figures parsed from the client's CAS upload."""
    total_value: float = 0.0
    asset_allocation: Dict[str, Any] = Field(default_factory=dict)
    mutual_funds: List[Dict[str, Any]] = Field(default_factory=list)
    demat_accounts: List[Dict[str, Any]] = Field(default_factory=list)


class FinancialPlanSummary(AmountsModel):
    latest_plan_id: Optional[str] = None
    total_plans: int = 0
    net_worth: float = 0.0
    savings_rate: float = 0.0


class EstateSummary(AmountsModel):
    estimated_net_estate: float = 0.0
    real_estate_properties: List[Dict[str, Any]] = Field(default_factory=list)
    personal_assets: Dict[str, Any] = Field(default_factory=dict)
    business_assets: Dict[str, Any] = Field(default_factory=dict)


class ClientRecords(CamelModel):
    """
    Raw records for one client as they arrive from the CRM.

    `client` is the client document; `financial_plans` are newest first;
    `client_invitation` may carry parsed CAS data under `casParsedData`.
    """
    client_id: str
    advisor_id: Optional[str] = None
    client: Dict[str, Any] = Field(default_factory=dict)
    financial_plans: List[Dict[str, Any]] = Field(default_factory=list)
    client_invitation: Optional[Dict[str, Any]] = None
    estate_information: Optional[Dict[str, Any]] = None


# =============================================================================
# AGGREGATION HELPERS
# =============================================================================

PERSONAL_COMPLETENESS_FIELDS = [
    'panNumber', 'aadharNumber', 'dateOfBirth', 'maritalStatus',
    'numberOfDependents', 'occupation', 'totalMonthlyIncome', 'address',
]

INVESTMENT_COMPLETENESS_FIELDS = [
    'investments.fixedIncome.ppf',
    'investments.fixedIncome.epf',
    'investments.equity.elss.currentValue',
    'lifeInsurance.annualPremium',
    'healthInsurance.annualPremium',
]

CAS_COMPLETENESS_WEIGHT = 10
ESTATE_COMPLETENESS_WEIGHT = 5


def dig(source: Optional[Dict[str, Any]], path: str) -> Any:
    """Follow a dotted path through nested dicts; None when any hop is missing."""
    value: Any = source
    for key in path.split('.'):
        if not isinstance(value, dict):
            return None
        value = value.get(key)
    return value


def calculate_data_completeness(
    client: Dict[str, Any],
    client_invitation: Optional[Dict[str, Any]] = None,
    estate_information: Optional[Dict[str, Any]] = None,
) -> int:
    """Percentage of the tax-relevant record that is filled in."""
    total_fields = (
        len(PERSONAL_COMPLETENESS_FIELDS)
        + len(INVESTMENT_COMPLETENESS_FIELDS)
        + CAS_COMPLETENESS_WEIGHT
        + ESTATE_COMPLETENESS_WEIGHT
    )

    completed = sum(1 for field in PERSONAL_COMPLETENESS_FIELDS if client.get(field))
    completed += sum(
        1 for path in INVESTMENT_COMPLETENESS_FIELDS if coerce_amount(dig(client, path)) > 0
    )
    if dig(client_invitation, 'casParsedData'):
        completed += CAS_COMPLETENESS_WEIGHT
    if estate_information:
        completed += ESTATE_COMPLETENESS_WEIGHT

    return round(completed / total_fields * 100)


# =============================================================================
# CLIENT TAX PROFILE
# =============================================================================

class ClientTaxProfile(CamelModel):
    """Everything the planner knows about one client's tax position."""

    client_id: str
    personal_info: PersonalInfo = Field(default_factory=PersonalInfo)
    income_analysis: IncomeAnalysis = Field(default_factory=IncomeAnalysis)
    tax_saving_investments: TaxSavingInvestments = Field(default_factory=TaxSavingInvestments)
    capital_gains_analysis: CapitalGainsAnalysis = Field(default_factory=CapitalGainsAnalysis)
    business_tax_considerations: BusinessTaxConsiderations = Field(
        default_factory=BusinessTaxConsiderations
    )
    cas_data: Optional[CASSummary] = None
    financial_plan_analysis: Optional[FinancialPlanSummary] = None
    estate_tax_planning: Optional[EstateSummary] = None
    data_completeness: int = Field(default=0, ge=0, le=100)
    last_updated: datetime = Field(default_factory=datetime.now)

    def age(self, today: Optional[date] = None) -> int:
        return get_age(self.personal_info.date_of_birth, today)

    def age_band(self, today: Optional[date] = None) -> AgeBand:
        return get_age_band(self.age(today))

    @classmethod
    def from_client_records(cls, records: ClientRecords) -> "ClientTaxProfile":
        """
        Build a profile from raw CRM records.

        Missing values default here (amounts to 0, marital status to single,
        income type to salaried) so the calculation engine never sees None.
        """
        client = records.client
        income_type = dig(client, 'incomeType')
        annual_income = coerce_amount(dig(client, 'totalMonthlyIncome')) * 12

        personal_info = PersonalInfo(
            pan_number=dig(client, 'panNumber'),
            aadhaar_number=dig(client, 'aadharNumber'),
            address=dig(client, 'address'),
            date_of_birth=dig(client, 'dateOfBirth'),
            marital_status=dig(client, 'maritalStatus'),
            number_of_dependents=dig(client, 'numberOfDependents'),
            occupation=dig(client, 'occupation'),
            employer_business_name=dig(client, 'employerBusinessName'),
        )

        income_analysis = IncomeAnalysis(
            total_monthly_income=dig(client, 'totalMonthlyIncome'),
            income_type=income_type,
            additional_income=dig(client, 'additionalIncome'),
            employer_business_name=dig(client, 'employerBusinessName') or "",
        )

        investments = TaxSavingInvestments(
            section_80c=Section80CInvestments(
                ppf=dig(client, 'investments.fixedIncome.ppf'),
                epf=dig(client, 'investments.fixedIncome.epf'),
                elss=dig(client, 'investments.equity.elss.currentValue'),
                nsc=dig(client, 'investments.fixedIncome.nsc'),
                life_insurance=dig(client, 'lifeInsurance.annualPremium'),
                tuition_fees=dig(client, 'monthlyExpenses.education'),
                principal_repayment=dig(client, 'debtsAndLiabilities.homeLoan.principalAmount'),
            ),
            section_80ccd_1b=Section80CCD1BInvestments(
                nps_additional=dig(client, 'investments.fixedIncome.nps'),
            ),
            # Parent and senior-citizen premiums are not captured by the CRM
            section_80d=Section80DInvestments(
                self_family=dig(client, 'healthInsurance.annualPremium'),
            ),
            section_80e=Section80EInvestments(
                education_loan_interest=dig(client, 'debtsAndLiabilities.educationLoan.annualInterest'),
            ),
            section_24b=Section24BInvestments(
                home_loan_interest=dig(client, 'debtsAndLiabilities.homeLoan.annualInterest'),
            ),
            hra_exemption=HRAExemption(
                rent_paid=dig(client, 'monthlyExpenses.housingRent'),
            ),
        )

        estate = records.estate_information
        capital_gains = CapitalGainsAnalysis(
            direct_stocks=AssetHolding(
                current_value=dig(client, 'investments.equity.directStocks.currentValue'),
                purchase_value=dig(client, 'investments.equity.directStocks.purchaseValue'),
            ),
            mutual_funds=AssetHolding(
                current_value=dig(client, 'investments.equity.mutualFunds.currentValue'),
                purchase_value=dig(client, 'investments.equity.mutualFunds.purchaseValue'),
            ),
            bonds_debentures=AssetHolding(
                current_value=dig(client, 'investments.fixedIncome.bondsDebentures.currentValue'),
                purchase_value=dig(client, 'investments.fixedIncome.bondsDebentures.purchaseValue'),
            ),
            properties=[
                PropertyHolding(
                    property_type=prop.get('propertyType') or "residential",
                    current_value=dig(prop, 'financialDetails.currentMarketValue'),
                    purchase_value=dig(prop, 'financialDetails.purchasePrice'),
                    improvement_cost=dig(prop, 'financialDetails.improvementCost'),
                )
                for prop in (dig(estate, 'realEstateProperties') or [])
                if isinstance(prop, dict)
            ],
        )

        business = BusinessTaxConsiderations(
            business_income=annual_income if income_analysis.income_type == IncomeType.BUSINESS else 0,
            professional_income=annual_income if income_analysis.income_type == IncomeType.PROFESSIONAL else 0,
        )

        cas_data = None
        cas = dig(records.client_invitation, 'casParsedData')
        if cas:
            cas_data = CASSummary(
                total_value=dig(cas, 'summary.total_value'),
                asset_allocation=dig(cas, 'summary.asset_allocation') or {},
                mutual_funds=cas.get('mutual_funds') or [],
                demat_accounts=cas.get('demat_accounts') or [],
            )

        plan_summary = None
        if records.financial_plans:
            latest = records.financial_plans[0]
            latest_id = latest.get('_id') or latest.get('id')
            plan_summary = FinancialPlanSummary(
                latest_plan_id=str(latest_id) if latest_id else None,
                total_plans=len(records.financial_plans),
                net_worth=dig(latest, 'clientDataSnapshot.calculatedMetrics.netWorth'),
                savings_rate=dig(latest, 'clientDataSnapshot.calculatedMetrics.savingsRate'),
            )

        estate_summary = None
        if estate:
            estate_summary = EstateSummary(
                estimated_net_estate=dig(estate, 'estateMetadata.estimatedNetEstate'),
                real_estate_properties=estate.get('realEstateProperties') or [],
                personal_assets=estate.get('personalAssets') or {},
                business_assets=dig(estate, 'estatePreferences.businessSuccession.businessDetails') or {},
            )

        return cls(
            client_id=records.client_id,
            personal_info=personal_info,
            income_analysis=income_analysis,
            tax_saving_investments=investments,
            capital_gains_analysis=capital_gains,
            business_tax_considerations=business,
            cas_data=cas_data,
            financial_plan_analysis=plan_summary,
            estate_tax_planning=estate_summary,
            data_completeness=calculate_data_completeness(
                client, records.client_invitation, estate
            ),
        )


# =============================================================================
# TAX CALCULATION RESULTS
# =============================================================================

class DeductionBundle(CamelModel):
    """Capped deductions per section; `total` is the sum of the capped values."""
    section_80c: float = Field(default=0.0, alias="section80C")
    section_80d: float = Field(default=0.0, alias="section80D")
    section_80ccd_1b: float = Field(default=0.0, alias="section80CCD1B")
    total: float = 0.0

    def by_section(self) -> Dict[str, float]:
        return {
            SECTION_80C: self.section_80c,
            SECTION_80D: self.section_80d,
            SECTION_80CCD_1B: self.section_80ccd_1b,
        }


class SlabBreakdown(CamelModel):
    """Details of tax calculation per slab."""
    slab_start: float
    slab_end: float
    rate: float
    income_in_slab: float
    tax_in_slab: float


class TaxLiabilityBreakdown(CamelModel):
    taxable_income: float
    age_band: AgeBand
    slabs: List[SlabBreakdown]
    tax_before_rebate: float
    rebate_87a: float = Field(alias="rebate87A")
    tax_after_rebate: float
    cess: float
    total_tax_liability: int
    marginal_rate: float


class TaxScenario(CamelModel):
    """Tax position under one set of deductions."""

    name: str
    annual_income: float
    age_band: AgeBand
    deductions: DeductionBundle
    additional_deductions: Optional[DeductionBundle] = None
    taxable_income: float
    total_tax_liability: int
    effective_tax_rate: float = Field(description="Percent of annual income, 2 dp")
    marginal_rate: float


class ComparisonResult(CamelModel):
    current: TaxScenario
    optimized: TaxScenario
    total_savings: float
    savings_percentage: float
    unallocated_savings: float = Field(
        default=0.0,
        description="Savings on deduction recommendations that map to no capped section"
    )


# =============================================================================
# RECOMMENDATION MODELS
# =============================================================================

class Recommendation(CamelModel):
    """A single normalized tax planning recommendation."""

    category: RecommendationCategory = RecommendationCategory.COMPLIANCE
    priority: RecommendationPriority = RecommendationPriority.MEDIUM
    title: str = ""
    description: str = ""
    potential_savings: float = Field(default=0.0, ge=0)
    implementation_steps: List[str] = Field(default_factory=list)
    deadline: Optional[date] = None
    risk_level: RiskLevel = RiskLevel.LOW
    deduction_section: Optional[str] = Field(
        default=None,
        pattern=f"^({SECTION_80C}|{SECTION_80D}|{SECTION_80CCD_1B})$",
        description="Explicit section tag; overrides title keyword matching"
    )


class AIRecommendationSet(CamelModel):
    """Recommendation set as persisted on the tax planning record."""

    generated_at: datetime = Field(default_factory=datetime.now)
    recommendations: List[Recommendation] = Field(default_factory=list)
    summary: str = ""
    total_potential_savings: float = 0.0
    confidence_score: float = Field(default=0.0, ge=0, le=100)
    source: RecommendationSource = RecommendationSource.AI

    # Fallback diagnostics
    api_error: bool = False
    api_error_message: Optional[str] = None
    credit_exhausted: bool = False
    credit_exhausted_message: Optional[str] = None


class ManualRecommendation(AmountsModel):
    category: str = ""
    priority: RecommendationPriority = RecommendationPriority.MEDIUM
    title: str = ""
    description: str = ""
    rationale: str = ""
    implementation_notes: str = ""
    expected_outcome: str = ""
    timeline: str = ""
    responsible: str = ""
    potential_savings: float = 0.0
    status: ManualRecommendationStatus = ManualRecommendationStatus.DRAFT
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)


class ManualAdvisorInputs(CamelModel):
    recommendations: List[ManualRecommendation] = Field(default_factory=list)
    notes: str = ""
    follow_up_actions: List[str] = Field(default_factory=list)
    client_instructions: str = ""


# =============================================================================
# VISUALIZATION MODELS
# =============================================================================

class ChartDataset(CamelModel):
    label: Optional[str] = None
    data: List[float]
    background_color: Any = None
    border_color: Any = None
    border_width: int = 2
    fill: Optional[bool] = None
    tension: Optional[float] = None


class ChartData(CamelModel):
    labels: List[str]
    datasets: List[ChartDataset]


class Chart(CamelModel):
    type: str = Field(pattern="^(bar|doughnut|pie|line)$")
    title: str
    data: ChartData


class TimelineItem(CamelModel):
    id: int
    title: str
    description: str
    priority: RecommendationPriority
    deadline: date
    potential_savings: float
    status: TimelineStatus = TimelineStatus.PENDING
    category: RecommendationCategory
    risk_level: RiskLevel


class VisualizationSummary(CamelModel):
    total_recommendations: int
    high_priority_recommendations: int
    estimated_implementation_time: str
    risk_level: RiskLevel


class VisualizationPayload(CamelModel):
    before_after_comparison: ComparisonResult
    charts: Dict[str, Chart]
    implementation_timeline: List[TimelineItem]
    summary: VisualizationSummary


# =============================================================================
# PERSISTENCE MODELS
# =============================================================================

class TaxPlanningRecord(CamelModel):
    """One tax planning document per (client, tax year)."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    client_id: str
    advisor_id: Optional[str] = None
    tax_year: str
    profile: Optional[ClientTaxProfile] = None
    ai_recommendations: Optional[AIRecommendationSet] = None
    manual_advisor_inputs: Optional[ManualAdvisorInputs] = None
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    is_active: bool = True
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)
    last_reviewed: datetime = Field(default_factory=datetime.now)

    @computed_field
    @property
    def total_potential_savings(self) -> float:
        """AI savings plus savings claimed on manual recommendations."""
        ai_savings = self.ai_recommendations.total_potential_savings if self.ai_recommendations else 0.0
        manual_savings = 0.0
        if self.manual_advisor_inputs:
            manual_savings = sum(rec.potential_savings for rec in self.manual_advisor_inputs.recommendations)
        return ai_savings + manual_savings


# =============================================================================
# API REQUEST/RESPONSE MODELS
# =============================================================================

class AIRecommendationRequest(CamelModel):
    tax_year: Optional[str] = None


class ManualInputsRequest(CamelModel):
    tax_year: Optional[str] = None
    manual_inputs: Optional[ManualAdvisorInputs] = None


class TaxCalculationRequest(CamelModel):
    taxable_income: float = Field(ge=0)
    age_band: AgeBand = AgeBand.NORMAL


class PlanningWarning(CamelModel):
    type: str = Field(pattern="^(credit_exhausted|api_error)$")
    message: Optional[str] = None
    show_fallback: bool = True


class TaxPlanningResult(CamelModel):
    """What a planning run returns: the saved record plus chart data."""
    tax_planning: TaxPlanningRecord
    visualization_data: VisualizationPayload
    warning: Optional[PlanningWarning] = None

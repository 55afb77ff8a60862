"""
Aggregation over the transaction store: business summary and
Schedule C line totals. Everything is recomputed on each call.
"""
from datetime import date
from typing import Any, Dict, Optional

from core.config import get_settings
from core.logger import setup_logger
from core.schema import BusinessSummary
from core.store import TransactionStore

logger = setup_logger(__name__)

# Summary fields the aggregation does not compute yet
NOT_COMPUTED_FIELDS = (
    "income_transactions",
    "uncategorized_transactions",
    "net_profit_loss",
    "gross_receipts",
)

# Category -> Schedule C line. Illustrative, not tax advice.
CATEGORY_LINES = {
    "advertising": "line8_advertising",
    "insurance": "line15_insurance",
    "interest": "line16_interest",
    "professional_services": "line17_legal_professional",
    "office_supplies": "line18_office_expense",
    "software": "line18_office_expense",
    "rent": "line20_rent_lease",
    "taxes_licenses": "line23_taxes_licenses",
    "travel": "line24_travel_meals",
    "meals": "line24_travel_meals",
    "utilities": "line25_utilities",
}
OTHER_EXPENSES_LINE = "line27_other_expenses"

SCHEDULE_C_LINES = (
    "line1_gross_receipts",
    "line8_advertising",
    "line9_car_truck",
    "line10_commissions_fees",
    "line11_contract_labor",
    "line12_depletion",
    "line13_depreciation",
    "line14_employee_benefits",
    "line15_insurance",
    "line16_interest",
    "line17_legal_professional",
    "line18_office_expense",
    "line19_pension_profit",
    "line20_rent_lease",
    "line21_repairs_maintenance",
    "line22_supplies",
    "line23_taxes_licenses",
    "line24_travel_meals",
    "line25_utilities",
    "line26_wages",
    "line27_other_expenses",
    "line28_total_expenses",
    "line30_home_office",
    "line31_net_profit_loss",
)

# Lines 8 through 27 make up total expenses
_EXPENSE_LINES = SCHEDULE_C_LINES[1:SCHEDULE_C_LINES.index("line28_total_expenses")]


def summarize(store: TransactionStore) -> BusinessSummary:
    """
    Partition stored transactions by business flag and total them.
    
    Business total = sum of business amounts + mileage deduction +
    home office deduction. An empty store yields an all-zero summary.
    """
    transactions = store.get_all()
    deductions = store.get_deductions()
    
    business = [t for t in transactions if t.is_business]
    business_total = sum(t.amount for t in business)
    
    mileage_amount = deductions.mileage.deduction_amount if deductions.mileage else 0.0
    home_office_amount = deductions.home_office.deduction_amount if deductions.home_office else 0.0
    
    return BusinessSummary(
        total_business_expenses=round(business_total + mileage_amount + home_office_amount, 2),
        business_count=len(business),
        personal_count=len(transactions) - len(business),
        total_count=len(transactions),
    )


def build_summary_response(store: TransactionStore) -> Dict[str, Any]:
    """
    Dashboard summary shape.
    
    income_transactions, uncategorized_transactions, net_profit_loss and
    gross_receipts are placeholders reported as 0 and listed in
    ``not_computed``.
    """
    summary = summarize(store)
    return {
        "success": True,
        "summary": {
            "total_expenses": summary.total_business_expenses,
            "expense_transactions": summary.total_count,
            "income_transactions": 0,
            "uncategorized_transactions": 0,
            "net_profit_loss": 0,
            "gross_receipts": 0,
        },
        "not_computed": list(NOT_COMPUTED_FIELDS),
    }


def schedule_c_line(category: Optional[str]) -> str:
    """Schedule C line key for a category; unknown categories go to line 27."""
    return CATEGORY_LINES.get(category or "", OTHER_EXPENSES_LINE)


def generate_schedule_c(store: TransactionStore, tax_year: Optional[int] = None) -> Dict[str, Any]:
    """
    Build Schedule C line totals from business transactions and deductions.
    
    Args:
        store: Transaction store
        tax_year: Reported tax year (defaults to the configured year)
    
    Returns:
        Dictionary with tax_year, schedule_c lines, summary and calculation_date
    """
    transactions = store.get_all()
    deductions = store.get_deductions()
    
    business = [t for t in transactions if t.is_business]
    business_expenses = [t for t in business if t.amount > 0]
    
    schedule_c = {line: 0.0 for line in SCHEDULE_C_LINES}
    schedule_c["line9_car_truck"] = deductions.mileage.deduction_amount if deductions.mileage else 0.0
    schedule_c["line30_home_office"] = deductions.home_office.deduction_amount if deductions.home_office else 0.0
    
    for transaction in business_expenses:
        schedule_c[schedule_c_line(transaction.category)] += transaction.amount
    
    schedule_c["line28_total_expenses"] = sum(schedule_c[line] for line in _EXPENSE_LINES)
    schedule_c["line31_net_profit_loss"] = (
        schedule_c["line1_gross_receipts"]
        - schedule_c["line28_total_expenses"]
        - schedule_c["line30_home_office"]
    )
    schedule_c = {line: round(value, 2) for line, value in schedule_c.items()}
    
    logger.info(
        f"Schedule C computed from {len(business_expenses)} business expenses: "
        f"total expenses {schedule_c['line28_total_expenses']:,.2f}"
    )
    
    return {
        "tax_year": tax_year or get_settings().effective_tax_year,
        "schedule_c": schedule_c,
        "summary": {
            "total_transactions": len(transactions),
            "business_transactions": len(business),
            "total_deductions": round(schedule_c["line28_total_expenses"] + schedule_c["line30_home_office"], 2),
            "income_transactions": 0,
            "expense_transactions": len(business_expenses),
            "vehicle_miles": deductions.mileage.business_miles if deductions.mileage else 0,
            "home_office_sqft": deductions.home_office.square_feet if deductions.home_office else 0,
        },
        "calculation_date": date.today().isoformat(),
    }

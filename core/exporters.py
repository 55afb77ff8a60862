"""
Exports: transaction detail CSV, plain-text Schedule C report, and an
Excel workbook with Schedule C lines and the underlying transactions.
"""
import io
from datetime import date
from typing import Any, Dict, List, Sequence

import pandas as pd

from core.exceptions import ExportError
from core.logger import setup_logger
from core.schema import DeductionData, Transaction

logger = setup_logger(__name__)

CSV_COLUMNS = ["Date", "Vendor", "Amount", "Card", "Category", "Purpose", "Is Business", "Type"]

# (line key, label) in report order
REPORT_EXPENSE_LINES = [
    ("line8_advertising", "Line 8 - Advertising"),
    ("line9_car_truck", "Line 9 - Car and truck expenses"),
    ("line10_commissions_fees", "Line 10 - Commissions and fees"),
    ("line11_contract_labor", "Line 11 - Contract labor"),
    ("line12_depletion", "Line 12 - Depletion"),
    ("line13_depreciation", "Line 13 - Depreciation"),
    ("line14_employee_benefits", "Line 14 - Employee benefit programs"),
    ("line15_insurance", "Line 15 - Insurance"),
    ("line16_interest", "Line 16 - Interest"),
    ("line17_legal_professional", "Line 17 - Legal and professional services"),
    ("line18_office_expense", "Line 18 - Office expense"),
    ("line19_pension_profit", "Line 19 - Pension and profit-sharing plans"),
    ("line20_rent_lease", "Line 20 - Rent or lease"),
    ("line21_repairs_maintenance", "Line 21 - Repairs and maintenance"),
    ("line22_supplies", "Line 22 - Supplies"),
    ("line23_taxes_licenses", "Line 23 - Taxes and licenses"),
    ("line24_travel_meals", "Line 24 - Travel and meals"),
    ("line25_utilities", "Line 25 - Utilities"),
    ("line26_wages", "Line 26 - Wages"),
    ("line27_other_expenses", "Line 27 - Other expenses"),
]
REPORT_TOTAL_LINES = [
    ("line28_total_expenses", "Line 28 - Total expenses"),
    ("line30_home_office", "Line 30 - Home office deduction"),
    ("line31_net_profit_loss", "Line 31 - Net profit or (loss)"),
]


def _transactions_frame(transactions: Sequence[Transaction]) -> pd.DataFrame:
    rows = [
        {
            "Date": t.date,
            "Vendor": t.vendor,
            "Amount": t.amount,
            "Card": t.source,
            "Category": t.category or "",
            "Purpose": t.purpose or "",
            "Is Business": "Yes" if t.is_business else "No",
            "Type": "Expense" if t.amount > 0 else "Credit",
        }
        for t in transactions
    ]
    return pd.DataFrame(rows, columns=CSV_COLUMNS)


def _deduction_rows(deductions: DeductionData) -> List[Dict[str, Any]]:
    rows = []
    if deductions.mileage and deductions.mileage.business_miles:
        rows.append({
            "Type": "Mileage",
            "Description": f"{deductions.mileage.business_miles:g} business miles",
            "Amount": deductions.mileage.deduction_amount,
        })
    if deductions.home_office and deductions.home_office.square_feet:
        rows.append({
            "Type": "Home Office",
            "Description": f"{deductions.home_office.square_feet:g} sq ft ({deductions.home_office.method})",
            "Amount": deductions.home_office.deduction_amount,
        })
    return rows


def export_transactions_csv(transactions: Sequence[Transaction], deductions: DeductionData) -> str:
    """
    Render transaction detail CSV followed by a DEDUCTIONS section.

    Args:
        transactions: Stored transactions
        deductions: Standing deductions

    Returns:
        CSV text

    Raises:
        ExportError: If rendering fails
    """
    logger.info(f"Exporting {len(transactions)} transactions to CSV")
    try:
        content = _transactions_frame(transactions).to_csv(index=False, lineterminator="\n")
        deductions_df = pd.DataFrame(_deduction_rows(deductions), columns=["Type", "Description", "Amount"])
        content += "\n\nDEDUCTIONS\n"
        content += deductions_df.to_csv(index=False, lineterminator="\n")
        return content
    except Exception as e:
        logger.error(f"Failed to export CSV: {e}")
        raise ExportError("Failed to export transactions CSV", details={"error": str(e)})


def format_schedule_c_report(schedule_data: Dict[str, Any]) -> str:
    """
    Plain-text Schedule C report.

    Args:
        schedule_data: Output of core.summary.generate_schedule_c

    Returns:
        Report text
    """
    schedule_c = schedule_data["schedule_c"]
    tax_year = schedule_data["tax_year"]

    lines = [
        f"SCHEDULE C (Form 1040) - {tax_year}",
        "Profit or Loss From Business",
        "",
        "PART I - INCOME",
        f"Line 1 - Gross receipts or sales: ${schedule_c['line1_gross_receipts']:.2f}",
        "",
        "PART II - EXPENSES",
    ]
    lines.extend(f"{label}: ${schedule_c[key]:.2f}" for key, label in REPORT_EXPENSE_LINES)
    lines.append("")
    lines.extend(f"{label}: ${schedule_c[key]:.2f}" for key, label in REPORT_TOTAL_LINES)
    lines.append("")
    lines.append(f"Generated by Schedule C Calculator - {schedule_data.get('calculation_date', date.today().isoformat())}")

    return "\n".join(lines) + "\n"


def export_schedule_c_excel(schedule_data: Dict[str, Any], transactions: Sequence[Transaction]) -> bytes:
    """
    Build an xlsx workbook with "Schedule C" and "Transactions" sheets.

    Args:
        schedule_data: Output of core.summary.generate_schedule_c
        transactions: Stored transactions

    Returns:
        Workbook bytes

    Raises:
        ExportError: If the workbook cannot be written
    """
    schedule_c = schedule_data["schedule_c"]
    line_rows = [{"Line": "Line 1 - Gross receipts or sales", "Amount": schedule_c["line1_gross_receipts"]}]
    line_rows += [
        {"Line": label, "Amount": schedule_c[key]}
        for key, label in REPORT_EXPENSE_LINES + REPORT_TOTAL_LINES
    ]
    lines_df = pd.DataFrame(line_rows, columns=["Line", "Amount"])
    transactions_df = _transactions_frame(transactions)

    logger.info(f"Exporting Schedule C workbook with {len(transactions_df)} transactions")

    buffer = io.BytesIO()
    try:
        with pd.ExcelWriter(buffer, engine="xlsxwriter") as writer:
            lines_df.to_excel(writer, sheet_name="Schedule C", index=False)
            transactions_df.to_excel(writer, sheet_name="Transactions", index=False)

            workbook = writer.book
            money_format = workbook.add_format({"num_format": "$#,##0.00"})

            lines_sheet = writer.sheets["Schedule C"]
            lines_sheet.set_column(0, 0, 45)
            lines_sheet.set_column(1, 1, 16, money_format)

            # Auto-fit transaction columns (approximate)
            txn_sheet = writer.sheets["Transactions"]
            for idx, col in enumerate(transactions_df.columns):
                max_len = max(
                    transactions_df[col].astype(str).map(len).max() if len(transactions_df) else 0,
                    len(str(col))
                )
                txn_sheet.set_column(idx, idx, min(max_len + 2, 50))
            txn_sheet.set_column(2, 2, 14, money_format)

        return buffer.getvalue()
    except Exception as e:
        logger.error(f"Failed to export Excel: {e}")
        raise ExportError("Failed to export Schedule C workbook", details={"error": str(e)})


def create_export_filename(kind: str, tax_year: int, extension: str) -> str:
    """
    Build a download filename, e.g. Schedule_C_Details_2024.csv.

    Args:
        kind: Export kind ("Schedule_C", "Schedule_C_Details")
        tax_year: Tax year
        extension: File extension without the dot

    Returns:
        Filename
    """
    return f"{kind}_{tax_year}.{extension}"

"""
Unit tests for business summary and Schedule C aggregation.
"""
from core.schema import BusinessSummary, DeductionData, HomeOfficeDeduction, MileageDeduction
from core.summary import (
    NOT_COMPUTED_FIELDS,
    build_summary_response,
    generate_schedule_c,
    schedule_c_line,
    summarize,
)


def test_empty_store_summary_is_zero(store):
    assert summarize(store) == BusinessSummary()


def test_summarize_is_idempotent(store, make_transaction):
    store.save_all([make_transaction("1", is_business=True), make_transaction("2")])
    assert summarize(store) == summarize(store)


def test_summarize_partitions_and_adds_deductions(store, make_transaction):
    store.save_all([
        make_transaction("1", amount=100.0, is_business=True),
        make_transaction("2", amount=50.25, is_business=True),
        make_transaction("3", amount=999.0),
    ])
    store.save_deductions(DeductionData(
        mileage=MileageDeduction(business_miles=1000, deduction_amount=670.0),
        home_office=HomeOfficeDeduction(square_feet=200, deduction_amount=1000.0),
    ))
    
    summary = summarize(store)
    
    assert summary.total_business_expenses == 1820.25
    assert summary.business_count == 2
    assert summary.personal_count == 1
    assert summary.total_count == 3


def test_summary_response_reports_placeholders(store, make_transaction):
    store.save_all([make_transaction("1", amount=10.0, is_business=True), make_transaction("2")])
    
    response = build_summary_response(store)
    
    assert response["success"] is True
    assert response["summary"]["total_expenses"] == 10.0
    assert response["summary"]["expense_transactions"] == 2
    for field in NOT_COMPUTED_FIELDS:
        assert response["summary"][field] == 0
    assert response["not_computed"] == list(NOT_COMPUTED_FIELDS)


def test_schedule_c_line_mapping():
    assert schedule_c_line("software") == "line18_office_expense"
    assert schedule_c_line("meals") == "line24_travel_meals"
    assert schedule_c_line("other") == "line27_other_expenses"
    assert schedule_c_line(None) == "line27_other_expenses"
    assert schedule_c_line("groceries") == "line27_other_expenses"


def test_generate_schedule_c(store, make_transaction):
    store.save_all([
        make_transaction("1", amount=100.0, is_business=True, category="advertising"),
        make_transaction("2", amount=40.0, is_business=True, category="software"),
        make_transaction("3", amount=60.0, is_business=True, category="office_supplies"),
        make_transaction("4", amount=25.0, is_business=True),
        make_transaction("5", amount=500.0, category="travel"),
    ])
    store.save_deductions(DeductionData(
        mileage=MileageDeduction(business_miles=100, deduction_amount=67.0),
        home_office=HomeOfficeDeduction(square_feet=200, deduction_amount=1000.0),
    ))
    
    data = generate_schedule_c(store, tax_year=2024)
    lines = data["schedule_c"]
    
    assert data["tax_year"] == 2024
    assert lines["line1_gross_receipts"] == 0
    assert lines["line8_advertising"] == 100.0
    assert lines["line9_car_truck"] == 67.0
    assert lines["line18_office_expense"] == 100.0
    assert lines["line24_travel_meals"] == 0
    assert lines["line27_other_expenses"] == 25.0
    assert lines["line28_total_expenses"] == 292.0
    assert lines["line30_home_office"] == 1000.0
    assert lines["line31_net_profit_loss"] == -1292.0
    assert data["summary"]["total_transactions"] == 5
    assert data["summary"]["business_transactions"] == 4
    assert data["summary"]["expense_transactions"] == 4
    assert data["summary"]["total_deductions"] == 1292.0
    assert data["summary"]["vehicle_miles"] == 100
    assert data["summary"]["home_office_sqft"] == 200


def test_generate_schedule_c_empty_store(store):
    data = generate_schedule_c(store, tax_year=2024)
    assert all(value == 0 for value in data["schedule_c"].values())
    assert data["summary"]["total_transactions"] == 0

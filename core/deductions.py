"""
Mileage and home office deduction calculations.
Rates come from settings so they can be updated per tax year.
"""
from typing import Optional

from core.config import get_settings
from core.exceptions import ValidationError

HOME_OFFICE_METHODS = ("simplified", "actual")


def _require_non_negative(name: str, value: float) -> float:
    if value is None:
        raise ValidationError(f"{name} is required", details={name: value})
    if value < 0:
        raise ValidationError(f"{name} must not be negative", details={name: value})
    return float(value)


def mileage_deduction(business_miles: float, rate: Optional[float] = None) -> float:
    """
    Standard mileage deduction.
    
    Args:
        business_miles: Miles driven for business
        rate: Per-mile rate (defaults to configured mileage_rate)
    
    Returns:
        Deduction amount rounded to cents
    
    Raises:
        ValidationError: If miles are negative
    """
    miles = _require_non_negative("business_miles", business_miles)
    if rate is None:
        rate = get_settings().mileage_rate
    return round(miles * rate, 2)


def home_office_deduction(
    square_feet: float,
    method: str = "simplified",
    actual_amount: Optional[float] = None,
    rate: Optional[float] = None,
    cap: Optional[float] = None,
) -> float:
    """
    Home office deduction.
    
    The simplified method is square_feet * rate, capped. The actual
    method passes the caller's actual expense amount through unchanged.
    
    Args:
        square_feet: Office area
        method: "simplified" or "actual"
        actual_amount: Actual expenses (actual method only; missing means 0)
        rate: Per-square-foot rate (defaults to configured home_office_rate)
        cap: Maximum simplified deduction (defaults to configured home_office_cap)
    
    Returns:
        Deduction amount rounded to cents
    
    Raises:
        ValidationError: On negative inputs or an unknown method
    """
    area = _require_non_negative("square_feet", square_feet)
    
    if method not in HOME_OFFICE_METHODS:
        raise ValidationError(
            f"Unknown home office method: {method}",
            details={"method": method, "allowed": list(HOME_OFFICE_METHODS)}
        )
    
    if method == "actual":
        if actual_amount is None:
            return 0.0
        return round(_require_non_negative("actual_amount", actual_amount), 2)
    
    settings = get_settings()
    if rate is None:
        rate = settings.home_office_rate
    if cap is None:
        cap = settings.home_office_cap
    return round(min(area * rate, cap), 2)

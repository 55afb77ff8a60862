"""
Prompt builder for Schedule C transaction categorization.
"""
from core.schema import CATEGORIES, Transaction


def build_categorization_prompt(transaction: Transaction) -> str:
    """
    Build the user message for one transaction.
    
    Args:
        transaction: Transaction to categorize
    
    Returns:
        Prompt carrying vendor, amount and date plus the expected JSON shape
    """
    categories = ", ".join(CATEGORIES)
    
    return f"""Categorize this transaction for Schedule C tax purposes:
Vendor: {transaction.vendor}
Amount: ${transaction.amount:.2f}
Date: {transaction.date}

Respond with JSON only:
{{
  "category": "one of: {categories}",
  "purpose": "brief business purpose description",
  "is_business": boolean (true if clearly business expense)
}}"""

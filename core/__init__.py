"""
Core processing modules for the Schedule C expense tracker.

This package contains:
- config: Application configuration and settings
- db: SQLite key-value storage
- deductions: Mileage and home office deduction calculations
- exceptions: Custom exception classes
- exporters: CSV, text and Excel exports
- logger: Logging configuration
- normalize: CSV row format detection and normalization
- parsing: CSV file reading
- schema: Pydantic models for data validation
- store: Transaction store
- summary: Business summary and Schedule C aggregation
"""

"""
Service layer for business logic.

This package contains service classes that orchestrate the
expense pipeline: CSV ingestion into the transaction store,
business-flag and deduction commands, and LLM categorization.
"""

"""
LLM integration for transaction categorization.

This package contains:
- classify: Per-transaction categorization and result merging
- client: Chat-completions REST client wrapper
- prompts: Categorization prompt builder
"""

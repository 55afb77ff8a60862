"""
Per-transaction categorization using the LLM.
Each call yields Classified or Failed; failures never raise.
"""
from pydantic import ValidationError

from core.exceptions import LLMError
from core.logger import setup_logger
from core.schema import (
    CategorizationResult,
    Classified,
    ClassificationOutcome,
    Failed,
    Transaction,
)
from llm.client import LLMClientWrapper
from llm.prompts import build_categorization_prompt

logger = setup_logger(__name__)


def classify_transaction(
    client: LLMClientWrapper,
    transaction: Transaction,
    temperature: float = 0.1
) -> ClassificationOutcome:
    """
    Categorize a single transaction.
    
    Args:
        client: LLM client bound to the caller's credential
        transaction: Transaction to categorize
        temperature: LLM temperature (0.0-1.0)
    
    Returns:
        Classified with the validated fields, or Failed with a reason
    """
    try:
        llm_response = client.call_chat_completion(
            build_categorization_prompt(transaction),
            temperature=temperature,
        )
        result = CategorizationResult(**llm_response)
        
        logger.info(
            f"Categorized: {transaction.vendor} -> "
            f"{'Business' if result.is_business else 'Personal'} ({result.category or 'uncategorized'})"
        )
        return Classified(result=result)
    
    except ValidationError as e:
        logger.warning(f"Invalid categorization for transaction {transaction.id}: {e}")
        return Failed(reason=f"Validation error: {e}")
    
    except LLMError as e:
        logger.warning(f"Categorization failed for transaction {transaction.id}: {e.message}")
        return Failed(reason=f"LLM error: {e.message}")
    
    except Exception as e:
        logger.error(f"Unexpected error categorizing transaction {transaction.id}: {e}")
        return Failed(reason=f"Unexpected error: {e}")


def merge_classification(transaction: Transaction, outcome: ClassificationOutcome) -> Transaction:
    """
    Apply a classification outcome.
    
    Only fields the service returned are merged; a Failed outcome leaves
    the transaction untouched.
    """
    if isinstance(outcome, Classified):
        return transaction.model_copy(update=outcome.result.merge_fields())
    return transaction

"""
Categorization orchestrator.
Sends transactions to the classification service one request per item,
bounded by a semaphore, and merges successful results back.
"""
import asyncio
from typing import Any, Callable, Dict, List, Optional, Sequence

from core.config import Settings, get_settings
from core.exceptions import ConfigurationError
from core.logger import setup_logger
from core.schema import ClassificationOutcome, Failed, Transaction
from core.store import TransactionStore
from llm.classify import classify_transaction, merge_classification
from llm.client import LLMClientWrapper

logger = setup_logger(__name__)

UNCATEGORIZED_VALUES = (None, "", "uncategorized")


def is_uncategorized(transaction: Transaction) -> bool:
    return transaction.category in UNCATEGORIZED_VALUES


class CategorizationService:
    """Runs LLM categorization over batches of transactions."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client_factory: Callable[[str], LLMClientWrapper] = LLMClientWrapper,
    ):
        """
        Initialize categorization service.

        Args:
            settings: Settings (defaults to the global settings)
            client_factory: Builds a client from a credential
        """
        self.settings = settings or get_settings()
        self.client_factory = client_factory

    async def classify_all(
        self,
        transactions: Sequence[Transaction],
        client: LLMClientWrapper,
    ) -> List[ClassificationOutcome]:
        """
        Classify transactions with at most max_concurrent_llm_calls in flight.

        Returns:
            One outcome per input, in input order
        """
        semaphore = asyncio.Semaphore(self.settings.max_concurrent_llm_calls)
        total = len(transactions)
        completed = [0]  # Use list to allow modification in nested function

        async def process_single(txn: Transaction) -> ClassificationOutcome:
            async with semaphore:
                # Blocking HTTP call runs in the default thread pool
                loop = asyncio.get_running_loop()
                outcome = await loop.run_in_executor(None, classify_transaction, client, txn)
                completed[0] += 1
                if completed[0] % 10 == 0 or completed[0] == total:
                    logger.info(f"Progress: {completed[0]}/{total} transactions processed")
                return outcome

        results = await asyncio.gather(
            *(process_single(txn) for txn in transactions),
            return_exceptions=True
        )

        outcomes: List[ClassificationOutcome] = []
        for txn, result in zip(transactions, results):
            if isinstance(result, BaseException):
                logger.error(f"Transaction {txn.id} failed: {result}")
                outcomes.append(Failed(reason=str(result)))
            else:
                outcomes.append(result)
        return outcomes

    async def categorize(
        self,
        transactions: Sequence[Transaction],
        credential: Optional[str],
    ) -> List[Transaction]:
        """
        Categorize transactions, leaving failed items unchanged.

        Args:
            transactions: Transactions to categorize
            credential: API key for the classification service

        Returns:
            Same length and order as the input

        Raises:
            ConfigurationError: If no credential is given
        """
        if not credential:
            raise ConfigurationError(
                "API key required for categorization",
                details={"required_key": "api_key"}
            )

        client = self.client_factory(credential)

        logger.info(f"Starting AI categorization for {len(transactions)} transactions...")
        outcomes = await self.classify_all(transactions, client)

        failed = sum(1 for outcome in outcomes if isinstance(outcome, Failed))
        logger.info(f"Completed AI categorization: {len(outcomes) - failed} classified, {failed} failed")

        return [merge_classification(txn, outcome) for txn, outcome in zip(transactions, outcomes)]

    def _pending(self, store: TransactionStore) -> List[Transaction]:
        return [t for t in store.get_all() if t.is_business and is_uncategorized(t)]

    def _apply_outcomes(
        self,
        store: TransactionStore,
        outcomes: Dict[str, ClassificationOutcome],
    ) -> List[Transaction]:
        """
        Merge outcomes into the current stored records under the store lock.

        Fields changed by other requests while the batch ran are kept; only
        the fields the service returned are written over them.

        Returns:
            The merged records for the classified ids
        """
        with store.locked():
            current = store.get_all()
            merged = [
                merge_classification(t, outcomes[t.id]) if t.id in outcomes else t
                for t in current
            ]
            store.save_all(merged)
        return [t for t in merged if t.id in outcomes]

    async def categorize_uncategorized(
        self,
        store: TransactionStore,
        credential: Optional[str],
    ) -> Dict[str, Any]:
        """
        Categorize stored business transactions that have no category yet.

        Store reads and writes run in the default executor so the event loop
        never blocks on sqlite or the store lock.

        Args:
            store: Transaction store
            credential: API key for the classification service

        Returns:
            Dictionary with processed (now categorized) and total counts

        Raises:
            ConfigurationError: If no credential is given
        """
        if not credential:
            raise ConfigurationError(
                "API key required for categorization",
                details={"required_key": "api_key"}
            )

        loop = asyncio.get_running_loop()
        pending = await loop.run_in_executor(None, self._pending, store)
        if not pending:
            return {
                "success": True,
                "processed": 0,
                "total": 0,
                "message": "No uncategorized business transactions found",
            }

        client = self.client_factory(credential)

        logger.info(f"Starting AI categorization for {len(pending)} transactions...")
        outcomes = await self.classify_all(pending, client)

        classified = {
            txn.id: outcome
            for txn, outcome in zip(pending, outcomes)
            if not isinstance(outcome, Failed)
        }
        updated = await loop.run_in_executor(None, self._apply_outcomes, store, classified)

        processed = sum(1 for t in updated if not is_uncategorized(t))
        logger.info(f"AI categorization complete: {processed} of {len(pending)} transactions categorized")

        return {"success": True, "processed": processed, "total": len(pending)}

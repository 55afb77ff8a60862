"""
Transaction processing service.
Encapsulates ingestion, querying, business-flag and deduction commands.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from core.deductions import home_office_deduction, mileage_deduction
from core.exceptions import FileProcessingError, ParsingError, StorageError, ValidationError
from core.logger import setup_logger
from core.normalize import parse_rows
from core.parsing import CSVSource, read_csv_rows
from core.schema import (
    BatchUploadResult,
    DeductionData,
    FileUploadEntry,
    HomeOfficeDeduction,
    MileageDeduction,
    Transaction,
    UploadResult,
)
from core.store import TransactionStore

logger = setup_logger(__name__)

SORT_FIELDS = ("date", "amount", "vendor", "category", "business")
TYPE_FILTERS = ("all", "business", "personal")

# Date formats seen in bank and card exports
DATE_FORMATS = ("%m/%d/%Y", "%m/%d/%y", "%Y-%m-%d", "%Y-%m-%dT%H:%M:%SZ", "%d %b %Y")


def validate_file_extension(filename: Optional[str]) -> None:
    """
    Validate file has correct extension.

    Raises:
        FileProcessingError: If the file is not a .csv
    """
    if not filename or not filename.lower().endswith(".csv"):
        raise FileProcessingError(
            f"Invalid file type: {filename}. Only .csv is supported.",
            details={"file": filename}
        )


def parse_date_key(value: str) -> datetime:
    """Sort key for free-text dates; unparseable dates sort first."""
    text = (value or "").strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return datetime.min


def _sort_key(sort_by: str):
    if sort_by == "amount":
        return lambda t: t.amount
    if sort_by == "vendor":
        return lambda t: t.vendor.lower()
    if sort_by == "category":
        return lambda t: (t.category or "").lower()
    if sort_by == "business":
        return lambda t: 1 if t.is_business else 0
    return lambda t: parse_date_key(t.date)


class TransactionService:
    """Service for ingesting and managing stored transactions."""

    def __init__(self, store: TransactionStore):
        """
        Initialize transaction service.

        Args:
            store: Transaction store handle shared with the rest of the app
        """
        self.store = store

    def ingest_file(self, source: CSVSource, filename: str, source_label: str) -> UploadResult:
        """
        Parse one CSV file and append its transactions to the store.

        A file whose rows are all unrecognized still succeeds with
        zero transactions added.

        Args:
            source: File path, bytes, or binary file object
            filename: Original file name
            source_label: Import batch label stored on every transaction

        Returns:
            UploadResult with parsed/total counts

        Raises:
            FileProcessingError: If the file is not a .csv or cannot be read or stored
        """
        logger.info(f"Starting CSV upload: {filename}, source: {source_label}")
        validate_file_extension(filename)

        try:
            rows = read_csv_rows(source, filename)
            parsed = parse_rows(rows, source_label)
            self.store.append(parsed.transactions)
        except (ParsingError, StorageError) as e:
            logger.error(f"CSV upload failed for {filename}: {e.message}")
            raise FileProcessingError(
                f"Failed to process CSV: {e.message}",
                details={"file": filename, **e.details}
            )

        logger.info(f"CSV parsed: {parsed.parsed} transactions from {parsed.total} rows in {filename}")

        return UploadResult(
            success=True,
            transactions_added=parsed.parsed,
            total_rows=parsed.total,
            parsed=parsed.parsed,
            total=parsed.total,
            message=f"Successfully processed {parsed.parsed} transactions from {filename}",
        )

    def ingest_files(
        self,
        files: Sequence[Tuple[str, CSVSource]],
        source_label: str
    ) -> BatchUploadResult:
        """
        Ingest several files; a failing file is reported and skipped.

        Args:
            files: (filename, source) pairs
            source_label: Import batch label

        Returns:
            BatchUploadResult with one entry per file
        """
        batch = BatchUploadResult()

        for filename, source in files:
            try:
                result = self.ingest_file(source, filename, source_label)
                batch.results.append(FileUploadEntry(file=filename, success=True, result=result))
                batch.totalUploaded += 1
            except FileProcessingError as e:
                batch.results.append(FileUploadEntry(file=filename, success=False, error=e.message))
                batch.totalFailed += 1

        logger.info(f"Batch upload finished: {batch.totalUploaded} uploaded, {batch.totalFailed} failed")
        return batch

    def list_transactions(
        self,
        search: Optional[str] = None,
        card: Optional[str] = None,
        type_filter: Optional[str] = None,
        category: Optional[str] = None,
        sort_by: str = "date",
        sort_order: str = "desc",
        page: int = 1,
        page_size: int = 50,
    ) -> Dict[str, Any]:
        """
        Filter, sort and paginate stored transactions.

        Args:
            search: Case-insensitive substring of vendor or category
            card: Source label, or "all"
            type_filter: "all", "business" or "personal"
            category: Exact category, or "all"
            sort_by: date, amount, vendor, category or business
            sort_order: "asc" or "desc"
            page: 1-based page number
            page_size: Page size

        Returns:
            Dictionary with the page of transactions and the filtered total
        """
        if sort_by not in SORT_FIELDS:
            raise ValidationError(f"Unknown sort field: {sort_by}", details={"allowed": list(SORT_FIELDS)})
        if sort_order not in ("asc", "desc"):
            raise ValidationError(f"Unknown sort order: {sort_order}", details={"allowed": ["asc", "desc"]})
        if page < 1 or page_size < 1:
            raise ValidationError("page and page_size must be positive", details={"page": page, "page_size": page_size})

        transactions = self.store.get_all()
        filtered = list(transactions)

        if search:
            needle = search.lower()
            filtered = [
                t for t in filtered
                if needle in t.vendor.lower() or (t.category and needle in t.category.lower())
            ]

        if card and card != "all":
            filtered = [t for t in filtered if t.source == card]

        if type_filter and type_filter != "all":
            if type_filter not in TYPE_FILTERS:
                raise ValidationError(f"Unknown type filter: {type_filter}", details={"allowed": list(TYPE_FILTERS)})
            want_business = type_filter == "business"
            filtered = [t for t in filtered if t.is_business == want_business]

        if category and category != "all":
            filtered = [t for t in filtered if t.category == category]

        filtered.sort(key=_sort_key(sort_by), reverse=(sort_order == "desc"))

        start = (page - 1) * page_size
        page_items = filtered[start:start + page_size]

        logger.debug(
            f"Transactions query: {len(transactions)} total, {len(filtered)} filtered, "
            f"{len(page_items)} on page {page}"
        )

        return {
            "transactions": [t.model_dump(mode="json") for t in page_items],
            "total": len(filtered),
            "success": True,
        }

    def toggle_business(self, transaction_id: str, is_business: bool) -> bool:
        """Set the business flag on one transaction; unknown ids are ignored."""
        return self.store.update_one(transaction_id, {"is_business": is_business})

    def toggle_all_business(
        self,
        is_business: bool,
        card_filter: Optional[str] = None,
        type_filter: Optional[str] = None,
        id_list: Optional[List[str]] = None,
    ) -> int:
        """
        Set the business flag on every transaction matching the filters.

        Returns:
            Number of transactions updated
        """
        with self.store.locked():
            matching: List[Transaction] = self.store.get_all()

            if card_filter and card_filter != "all":
                matching = [t for t in matching if t.source == card_filter]
            if type_filter and type_filter != "all":
                want_business = type_filter == "business"
                matching = [t for t in matching if t.is_business == want_business]
            if id_list is not None:
                wanted = set(id_list)
                matching = [t for t in matching if t.id in wanted]

            for transaction in matching:
                self.store.update_one(transaction.id, {"is_business": is_business})

        logger.info(f"Set is_business={is_business} on {len(matching)} transactions")
        return len(matching)

    def save_mileage(self, business_miles: float) -> MileageDeduction:
        """Compute and store the mileage deduction, keeping the home office entry."""
        mileage = MileageDeduction(
            business_miles=business_miles,
            deduction_amount=mileage_deduction(business_miles),
        )
        with self.store.locked():
            deductions = self.store.get_deductions()
            self.store.save_deductions(DeductionData(mileage=mileage, home_office=deductions.home_office))
        logger.info(f"Saved mileage deduction: {mileage.business_miles} miles -> {mileage.deduction_amount:.2f}")
        return mileage

    def save_home_office(
        self,
        square_feet: float,
        method: str = "simplified",
        actual_amount: Optional[float] = None
    ) -> HomeOfficeDeduction:
        """Compute and store the home office deduction, keeping the mileage entry."""
        home_office = HomeOfficeDeduction(
            square_feet=square_feet,
            method=method,
            deduction_amount=home_office_deduction(square_feet, method, actual_amount),
        )
        with self.store.locked():
            deductions = self.store.get_deductions()
            self.store.save_deductions(DeductionData(mileage=deductions.mileage, home_office=home_office))
        logger.info(f"Saved home office deduction ({method}): {home_office.deduction_amount:.2f}")
        return home_office

    def delete_transactions(self) -> None:
        self.store.delete_all()

    def clear_all_data(self) -> None:
        """Remove all transactions and deductions."""
        with self.store.locked():
            self.store.delete_all()
            self.store.save_deductions(DeductionData())
        logger.info("Cleared all transactions and deductions")

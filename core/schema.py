"""
Pydantic schemas for transactions, deductions, summaries and LLM output.
"""
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, BeforeValidator, Field


# Allowed categories for the classification service
CATEGORIES = (
    "office_supplies",
    "travel",
    "meals",
    "advertising",
    "utilities",
    "software",
    "professional_services",
    "other",
)

Category = Literal[
    "office_supplies",
    "travel",
    "meals",
    "advertising",
    "utilities",
    "software",
    "professional_services",
    "other",
]

HomeOfficeMethod = Literal["simplified", "actual"]


def normalize_category(v):
    """Normalize category labels: 'Office Supplies' -> 'office_supplies'."""
    if v is None:
        return None
    if isinstance(v, str):
        cleaned = "_".join(v.strip().lower().replace("-", " ").split())
        return cleaned or None
    return v


def normalize_purpose(v):
    """Treat blank purpose text as absent."""
    if isinstance(v, str) and not v.strip():
        return None
    return v


class Transaction(BaseModel):
    """A normalized expense row, always stored as a positive amount spent."""
    id: str
    vendor: str = ""
    date: str = ""
    amount: float = Field(..., gt=0, description="Money spent, always positive")
    is_business: bool = False
    category: Optional[str] = None
    purpose: Optional[str] = None
    source: str = ""
    raw_data: Dict[str, Any] = Field(default_factory=dict)


class MileageDeduction(BaseModel):
    business_miles: float = Field(..., ge=0)
    deduction_amount: float = Field(..., ge=0)


class HomeOfficeDeduction(BaseModel):
    square_feet: float = Field(..., ge=0)
    method: HomeOfficeMethod = "simplified"
    deduction_amount: float = Field(..., ge=0)


class DeductionData(BaseModel):
    """Standing deductions; at most one mileage and one home office entry."""
    mileage: Optional[MileageDeduction] = None
    home_office: Optional[HomeOfficeDeduction] = None


class BusinessSummary(BaseModel):
    """Totals derived from the store on every read, never persisted."""
    total_business_expenses: float = 0.0
    business_count: int = 0
    personal_count: int = 0
    total_count: int = 0


# CSV row formats recognized by the detector

class BankLedgerRow(BaseModel):
    """Row with Description/Date and Debit/Credit columns."""
    kind: Literal["bank_ledger"] = "bank_ledger"
    vendor: str
    date: str
    debit: float = 0.0
    credit: float = 0.0

    @property
    def amount(self) -> float:
        if self.debit > 0:
            return self.debit
        if self.credit > 0:
            # Credits reduce the outflow: refunds become negative expense rows
            return -self.credit
        return 0.0


class SingleColumnRow(BaseModel):
    """Row with a single signed Amount column."""
    kind: Literal["single_column"] = "single_column"
    vendor: str
    date: str
    raw_amount: float = 0.0

    @property
    def amount(self) -> float:
        return abs(self.raw_amount)


class UnrecognizedRow(BaseModel):
    kind: Literal["unrecognized"] = "unrecognized"


DetectedRow = Union[BankLedgerRow, SingleColumnRow, UnrecognizedRow]


class ParsedCSVData(BaseModel):
    """Result of normalizing all rows of one file."""
    transactions: List[Transaction] = Field(default_factory=list)
    total: int = 0
    parsed: int = 0


class UploadResult(BaseModel):
    success: bool = True
    transactions_added: int
    total_rows: int
    parsed: int
    total: int
    message: str


class FileUploadEntry(BaseModel):
    file: str
    success: bool
    result: Optional[UploadResult] = None
    error: Optional[str] = None


class BatchUploadResult(BaseModel):
    results: List[FileUploadEntry] = Field(default_factory=list)
    totalUploaded: int = 0
    totalFailed: int = 0


# Classification service output

class CategorizationResult(BaseModel):
    """
    Structured output expected from the classification service.
    Fields the service leaves out stay None and are not merged.
    """
    category: Annotated[Optional[Category], BeforeValidator(normalize_category)] = None
    purpose: Annotated[Optional[str], BeforeValidator(normalize_purpose)] = None
    is_business: Optional[bool] = None

    def merge_fields(self) -> Dict[str, Any]:
        """Fields to merge into the transaction."""
        return self.model_dump(exclude_none=True)


class Classified(BaseModel):
    status: Literal["classified"] = "classified"
    result: CategorizationResult


class Failed(BaseModel):
    status: Literal["failed"] = "failed"
    reason: str


ClassificationOutcome = Union[Classified, Failed]

"""
FastAPI routes for the Schedule C expense tracker.
The dashboard calls these; all state lives in the transaction store.
"""
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from core.config import get_settings
from core.db import Database
from core.exceptions import ConfigurationError, ExportError, StorageError, ValidationError
from core.exporters import (
    create_export_filename,
    export_schedule_c_excel,
    export_transactions_csv,
    format_schedule_c_report,
)
from core.logger import setup_logger
from core.store import TransactionStore
from core.summary import build_summary_response, generate_schedule_c
from services.categorization_service import CategorizationService
from services.transaction_service import TransactionService

logger = setup_logger(__name__)
settings = get_settings()

VERSION = "1.0.0"


class ToggleBusinessRequest(BaseModel):
    transaction_id: str
    is_business: bool


class ToggleAllBusinessRequest(BaseModel):
    is_business: bool
    card_filter: Optional[str] = None
    type_filter: Optional[str] = None
    id_list: Optional[List[str]] = None


class MileageRequest(BaseModel):
    business_miles: float


class HomeOfficeRequest(BaseModel):
    square_feet: float
    method: str = "simplified"
    actual_amount: Optional[float] = None


class CategorizeRequest(BaseModel):
    api_key: Optional[str] = Field(default=None, description="Classification service credential")


def build_default_store() -> TransactionStore:
    """Create the store from settings."""
    database = Database(settings.database_path)
    database.init_db()
    return TransactionStore(database)


def get_store(request: Request) -> TransactionStore:
    return request.app.state.store


def get_transaction_service(store: TransactionStore = Depends(get_store)) -> TransactionService:
    return TransactionService(store)


def get_categorization_service(request: Request) -> CategorizationService:
    return request.app.state.categorization_service


def attachment(content, filename: str, media_type: str) -> Response:
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )


def create_app(
    store: Optional[TransactionStore] = None,
    categorization_service: Optional[CategorizationService] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        store: Transaction store handle (built from settings on startup if omitted)
        categorization_service: Categorization orchestrator (default if omitted)

    Returns:
        FastAPI application
    """
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.store is None:
            app.state.store = build_default_store()
        yield

    app = FastAPI(
        title="Schedule C Expense Tracker",
        description="Classify bank and card transactions for Schedule C reporting",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.store = store
    app.state.categorization_service = categorization_service or CategorizationService(settings)

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return JSONResponse(status_code=400, content={"detail": exc.message, "details": exc.details})

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(request: Request, exc: ConfigurationError):
        return JSONResponse(status_code=400, content={"detail": exc.message})

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        logger.error(f"Storage error on {request.url.path}: {exc.message}")
        return JSONResponse(status_code=500, content={"detail": exc.message})

    @app.exception_handler(ExportError)
    async def export_error_handler(request: Request, exc: ExportError):
        return JSONResponse(status_code=500, content={"detail": exc.message})

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "service": "schedule_c_tracker",
            "version": VERSION
        }

    @app.get("/transactions")
    def list_transactions(
        search: Optional[str] = None,
        card: Optional[str] = None,
        type: Optional[str] = None,
        category: Optional[str] = None,
        sortBy: str = "date",
        sortOrder: str = "desc",
        page: int = 1,
        pageSize: int = 50,
        service: TransactionService = Depends(get_transaction_service),
    ):
        return service.list_transactions(
            search=search,
            card=card,
            type_filter=type,
            category=category,
            sort_by=sortBy,
            sort_order=sortOrder,
            page=page,
            page_size=pageSize,
        )

    @app.delete("/transactions")
    def delete_transactions(service: TransactionService = Depends(get_transaction_service)):
        service.delete_transactions()
        return {"success": True}

    @app.get("/summary")
    def get_summary(store: TransactionStore = Depends(get_store)):
        return build_summary_response(store)

    @app.get("/deductions")
    def get_deductions(store: TransactionStore = Depends(get_store)):
        return store.get_deductions().model_dump(exclude_none=True)

    @app.get("/schedule-c")
    def get_schedule_c(store: TransactionStore = Depends(get_store)):
        return {"success": True, **generate_schedule_c(store)}

    @app.post("/upload-csv")
    async def upload_csv(
        files: List[UploadFile] = File(...),
        source: str = Form("upload"),
        service: TransactionService = Depends(get_transaction_service),
    ):
        """
        Ingest one or more CSV files.

        Returns:
            Per-file results plus totalUploaded/totalFailed counts
        """
        logger.info(f"Received {len(files)} file(s) for source '{source}'")

        try:
            contents = [(upload.filename, await upload.read()) for upload in files]
            result = service.ingest_files(contents, source)
        except Exception as e:
            logger.error(f"Failed to process upload: {e}", exc_info=True)
            raise HTTPException(
                status_code=500,
                detail=f"Failed to process upload: {str(e)}"
            )

        return result.model_dump(exclude_none=True)

    @app.post("/toggle-business")
    def toggle_business(
        body: ToggleBusinessRequest,
        service: TransactionService = Depends(get_transaction_service),
    ):
        service.toggle_business(body.transaction_id, body.is_business)
        return {"success": True}

    @app.post("/toggle-all-business")
    def toggle_all_business(
        body: ToggleAllBusinessRequest,
        service: TransactionService = Depends(get_transaction_service),
    ):
        updated = service.toggle_all_business(
            body.is_business,
            card_filter=body.card_filter,
            type_filter=body.type_filter,
            id_list=body.id_list,
        )
        return {"success": True, "updated": updated}

    @app.post("/save-mileage")
    def save_mileage(
        body: MileageRequest,
        service: TransactionService = Depends(get_transaction_service),
    ):
        mileage = service.save_mileage(body.business_miles)
        return {"success": True, "deduction_amount": mileage.deduction_amount}

    @app.post("/save-home-office")
    def save_home_office(
        body: HomeOfficeRequest,
        service: TransactionService = Depends(get_transaction_service),
    ):
        home_office = service.save_home_office(body.square_feet, body.method, body.actual_amount)
        return {"success": True, "deduction_amount": home_office.deduction_amount}

    @app.post("/categorize")
    async def categorize(
        body: CategorizeRequest,
        store: TransactionStore = Depends(get_store),
        categorizer: CategorizationService = Depends(get_categorization_service),
    ):
        credential = body.api_key or settings.llm_api_key
        try:
            return await categorizer.categorize_uncategorized(store, credential)
        except (ConfigurationError, StorageError):
            raise
        except Exception as e:
            logger.error(f"Categorization failed: {e}", exc_info=True)
            raise HTTPException(
                status_code=500,
                detail=f"Categorization failed: {str(e)}"
            )

    @app.delete("/clear-all-data")
    def clear_all_data(service: TransactionService = Depends(get_transaction_service)):
        service.clear_all_data()
        return {"success": True}

    @app.get("/export/csv")
    def export_csv(store: TransactionStore = Depends(get_store)):
        content = export_transactions_csv(store.get_all(), store.get_deductions())
        filename = create_export_filename("Schedule_C_Details", settings.effective_tax_year, "csv")
        return attachment(content, filename, "text/csv")

    @app.get("/export/schedule-c")
    def export_schedule_c(store: TransactionStore = Depends(get_store)):
        schedule_data = generate_schedule_c(store)
        filename = create_export_filename("Schedule_C", schedule_data["tax_year"], "txt")
        return attachment(format_schedule_c_report(schedule_data), filename, "text/plain")

    @app.get("/export/excel")
    def export_excel(store: TransactionStore = Depends(get_store)):
        schedule_data = generate_schedule_c(store)
        content = export_schedule_c_excel(schedule_data, store.get_all())
        filename = create_export_filename("Schedule_C", schedule_data["tax_year"], "xlsx")
        return attachment(
            content,
            filename,
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.host, port=settings.port)

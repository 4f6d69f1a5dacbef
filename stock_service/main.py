"""
    Stock Service API

    This module implements a FastAPI-based microservice for managing stock items,
    the quantity of each SKU held by each store, with database persistence.

    The service exposes:
    - POST   /api/items                 Batch upsert of one or many stock items
    - GET    /api/items                 List every stock item
    - PUT    /api/items/{store}/{sku}   Partial update of quantity and/or description
    - DELETE /api/items/{store}/{sku}   Delete a stock item
    - POST   /api/items/import/csv      Batch upsert from an uploaded CSV file
    - GET    /api/items/export/csv      Download every stock item as CSV
    - GET    /healthz                   Service health status for monitoring and orchestration

    Validation failures answer 400 with a JSON body describing every problem,
    unknown keys answer 404, and unexpected faults answer 500 with no body.
"""
from contextlib import asynccontextmanager
from typing import List
import logging
from fastapi import APIRouter, FastAPI, Depends, Request, status, UploadFile, File
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response, StreamingResponse
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import crud, csv_io, models, schemas, validators
from .config import API_PREFIX, LOG_LEVEL
from .database import engine, get_db

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create database tables
    models.Base.metadata.create_all(bind=engine)
    yield


app = FastAPI(title="stock-service", lifespan=lifespan)
router = APIRouter(prefix=API_PREFIX)


def _message(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message, **extra})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Unknown routes and unsupported methods are both plain 404s with no body."""
    if exc.status_code in (status.HTTP_404_NOT_FOUND, status.HTTP_405_METHOD_NOT_ALLOWED):
        return Response(status_code=status.HTTP_404_NOT_FOUND)
    return JSONResponse(status_code=exc.status_code, content={"message": exc.detail}, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return _message(
        status.HTTP_400_BAD_REQUEST,
        "Invalid request",
        details=jsonable_encoder(exc.errors()),
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    """Storage failures, unparseable bodies and any other fault: log it, answer 500 without details."""
    logger.exception(f"Error processing {request.method} {request.url.path}: {exc}")
    return Response(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


@app.get("/healthz", response_model=dict)
def health():
    """
    Health check endpoint for the stock service.

    Returns:
        dict: {"status": "healthy"} when the service is operational.
    """
    return {"status": "healthy"}


@router.get("/items", response_model=List[schemas.StockItem])
def list_stock_items(db: Session = Depends(get_db)):
    """
    List every stock item.

    Args:
        db: Database session (injected)

    Returns:
        List of stock item objects, possibly empty
    """
    return crud.get_items(db)


@router.post("/items", status_code=status.HTTP_201_CREATED)
async def insert_stock_items(request: Request, db: Session = Depends(get_db)):
    """
    Upsert one or many stock items.

    The body is a JSON array of stock items, or a single stock item object.
    The batch is all-or-nothing: if any record is invalid, nothing is written
    and every invalid record is reported.

    Args:
        request: Incoming request carrying the JSON body
        db: Database session (injected)

    Returns:
        Empty 201 response

    Raises:
        json.JSONDecodeError: if the body is not JSON (answered as 500)
    """
    body = await request.json()
    records = body if isinstance(body, list) else [body]

    if not records:
        return _message(status.HTTP_400_BAD_REQUEST, "No items were provided for creation")

    validated, errors = validators.validate_many(records)
    if errors:
        failure = schemas.ValidationFailure(message="Validation failed", details=errors)
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=jsonable_encoder(failure))

    crud.batch_upsert(db, validated)
    return Response(status_code=status.HTTP_201_CREATED)


@router.get("/items/export/csv")
def export_stock_items_csv(db: Session = Depends(get_db)):
    """
    Export all stock items to CSV.

    Returns:
        CSV file with columns: sku, store, quantity, description
    """
    content = csv_io.render_csv(crud.get_items(db))
    return StreamingResponse(
        iter([content]),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=stock_items.csv"}
    )


@router.post("/items/import/csv", status_code=status.HTTP_201_CREATED)
def import_stock_items_csv(
    file: UploadFile = File(...),
    db: Session = Depends(get_db)
):
    """
    Import stock items from CSV with upsert logic.

    Expected CSV columns: sku, store, quantity and optionally description.
    Rows follow the same all-or-nothing validation as a JSON batch.

    Args:
        file: CSV file upload
        db: Database session (injected)

    Returns:
        dict: {"imported": number of rows written}
    """
    if not file.filename or not file.filename.lower().endswith(".csv"):
        return _message(status.HTTP_400_BAD_REQUEST, "File must be a CSV")

    try:
        content = file.file.read().decode("utf-8-sig")
    except UnicodeDecodeError:
        return _message(status.HTTP_400_BAD_REQUEST, "File must be UTF-8 encoded")

    try:
        records = csv_io.parse_csv(content)
    except csv_io.CsvFormatError as exc:
        return _message(status.HTTP_400_BAD_REQUEST, str(exc))

    validated, errors = validators.validate_many(records)
    if errors:
        failure = schemas.ValidationFailure(message="Validation failed", details=errors)
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=jsonable_encoder(failure))

    crud.batch_upsert(db, validated)
    return JSONResponse(status_code=status.HTTP_201_CREATED, content={"imported": len(validated)})


@router.put("/items/{item_path:path}", status_code=status.HTTP_204_NO_CONTENT)
async def update_stock_item(item_path: str, request: Request, db: Session = Depends(get_db)):
    """
    Update quantity and/or description of an existing stock item.

    Only the fields present in the body are changed; ``"description": null``
    clears the description.

    Args:
        item_path: "{store}/{sku}" part of the URL
        request: Incoming request carrying the JSON body
        db: Database session (injected)

    Returns:
        Empty 204 response, 400 for a malformed path, invalid or empty patch,
        404 if the item does not exist
    """
    try:
        store, sku = validators.parse_item_path(item_path)
    except validators.MalformedItemPath as exc:
        return _message(status.HTTP_400_BAD_REQUEST, str(exc))

    body = await request.json()
    patch, issues = validators.validate_update(body)
    if issues is not None:
        return _message(status.HTTP_400_BAD_REQUEST, "Invalid item data for update", details=issues)

    outcome = crud.update_item(db, store, sku, patch)
    if outcome is crud.UpdateOutcome.NO_FIELDS_PROVIDED:
        return _message(status.HTTP_400_BAD_REQUEST, "No fields to update")
    if outcome is crud.UpdateOutcome.NOT_FOUND:
        return Response(status_code=status.HTTP_404_NOT_FOUND)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/items/{item_path:path}", status_code=status.HTTP_204_NO_CONTENT)
def delete_stock_item(item_path: str, db: Session = Depends(get_db)):
    """
    Delete a stock item.

    Args:
        item_path: "{store}/{sku}" part of the URL
        db: Database session (injected)

    Returns:
        Empty 204 response, 400 for a malformed path, 404 if not found
    """
    try:
        store, sku = validators.parse_item_path(item_path)
    except validators.MalformedItemPath as exc:
        return _message(status.HTTP_400_BAD_REQUEST, str(exc))

    if not crud.delete_item(db, store, sku):
        return Response(status_code=status.HTTP_404_NOT_FOUND)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


app.include_router(router)

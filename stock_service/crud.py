"""
CRUD (Create, Read, Update, Delete) operations for the Stock service.

This module contains all database operations for stock item management.
"""
import enum
import logging
from typing import Dict, List, Optional, Sequence, Tuple
from sqlalchemy import delete as sqla_delete, update as sqla_update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from . import models, schemas

# Set up logging
logger = logging.getLogger(__name__)

# Rows per INSERT statement; 4 bound parameters per row stays under SQLite's 999 default
UPSERT_CHUNK_SIZE = 200

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class UpdateOutcome(enum.Enum):
    """Result of a partial update."""
    NO_FIELDS_PROVIDED = "no_fields_provided"
    NOT_FOUND = "not_found"
    UPDATED = "updated"


def _dialect_insert(db: Session):
    dialect = db.get_bind().dialect.name
    try:
        return _INSERT_BY_DIALECT[dialect]
    except KeyError:
        raise RuntimeError(f"Upsert is not supported on the '{dialect}' dialect")


def get_items(db: Session) -> List[models.StockItem]:
    """
    Retrieve every stock item, in the database's default order.

    Args:
        db: Database session

    Returns:
        List of StockItem objects (possibly empty)
    """
    items = db.query(models.StockItem).all()
    logger.debug(f"Fetched {len(items)} stock items")
    return items


def get_item(db: Session, store: str, sku: str) -> Optional[models.StockItem]:
    """
    Retrieve a single stock item by its (store, sku) key.

    Returns:
        StockItem object or None if not found
    """
    item = db.query(models.StockItem).filter(
        models.StockItem.store == store,
        models.StockItem.sku == sku
    ).first()
    if item is None:
        logger.debug(f"No stock item for store '{store}', SKU '{sku}'")
    return item


def batch_upsert(db: Session, items: Sequence[schemas.StockItemCreate]) -> None:
    """
    Insert stock items, overwriting quantity and description of existing keys.

    The whole batch is committed in one transaction. If the same key appears
    more than once, the last occurrence wins. An omitted description is
    stored as NULL, replacing any previous value.

    Args:
        db: Database session
        items: Validated stock items; an empty sequence is a no-op

    Raises:
        SQLAlchemyError: if the database rejects the batch (nothing is applied)
    """
    if not items:
        return

    rows: Dict[Tuple[str, str], dict] = {}
    for item in items:
        rows[(item.store, item.sku)] = {
            "sku": item.sku,
            "store": item.store,
            "quantity": item.quantity,
            "description": item.description,
        }
    values = list(rows.values())

    insert = _dialect_insert(db)
    table = models.StockItem.__table__
    try:
        for start in range(0, len(values), UPSERT_CHUNK_SIZE):
            stmt = insert(table).values(values[start:start + UPSERT_CHUNK_SIZE])
            stmt = stmt.on_conflict_do_update(
                index_elements=[table.c.sku, table.c.store],
                set_={
                    "quantity": stmt.excluded.quantity,
                    "description": stmt.excluded.description,
                },
            )
            db.execute(stmt)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info(f"Upserted {len(values)} stock items")


def update_item(db: Session, store: str, sku: str, patch: schemas.StockItemUpdate) -> UpdateOutcome:
    """
    Apply a partial update to one stock item.

    Only the fields present in the patch are written: an explicit null
    description clears it, an omitted one is left alone.

    Args:
        db: Database session
        store: Store of the item to update
        sku: SKU of the item to update
        patch: Validated partial update

    Returns:
        UpdateOutcome.NO_FIELDS_PROVIDED if the patch is empty (nothing is
        executed), NOT_FOUND if no row has that key, UPDATED otherwise
    """
    update_data = patch.model_dump(exclude_unset=True)
    if not update_data:
        return UpdateOutcome.NO_FIELDS_PROVIDED

    stmt = (
        sqla_update(models.StockItem)
        .where(models.StockItem.store == store, models.StockItem.sku == sku)
        .values(**update_data)
        .execution_options(synchronize_session=False)
    )
    try:
        result = db.execute(stmt)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    if result.rowcount == 0:
        logger.info(f"No stock item to update for store '{store}', SKU '{sku}'")
        return UpdateOutcome.NOT_FOUND

    logger.info(f"Updated {sorted(update_data)} of stock item store '{store}', SKU '{sku}'")
    return UpdateOutcome.UPDATED


def delete_item(db: Session, store: str, sku: str) -> bool:
    """
    Delete a stock item from the database.

    Args:
        db: Database session
        store: Store of the item to delete
        sku: SKU of the item to delete

    Returns:
        True if item was deleted, False if not found
    """
    stmt = (
        sqla_delete(models.StockItem)
        .where(models.StockItem.store == store, models.StockItem.sku == sku)
        .execution_options(synchronize_session=False)
    )
    try:
        result = db.execute(stmt)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    deleted = result.rowcount > 0
    if deleted:
        logger.info(f"Deleted stock item store '{store}', SKU '{sku}'")
    return deleted

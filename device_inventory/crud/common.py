"""Helpers shared by the order and device stores."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import InventoryError, PersistenceError, ValidationError

logger = logging.getLogger(__name__)

VIEW_ACTIVE = "active"
VIEW_DELETED = "deleted"
VIEW_ALL = "all"
VIEWS = (VIEW_ACTIVE, VIEW_DELETED, VIEW_ALL)


def normalize_view(view: str | None) -> str:
    value = (view or VIEW_ACTIVE).strip().lower()
    if value not in VIEWS:
        raise ValidationError(f"view must be one of {', '.join(VIEWS)}", details={"view": view})
    return value


def apply_view(stmt, model, view: str | None):
    """Restrict a select to live rows, archived rows, or leave it untouched."""

    view = normalize_view(view)
    if view == VIEW_ACTIVE:
        return stmt.where(model.is_deleted == 0)
    if view == VIEW_DELETED:
        return stmt.where(model.is_deleted == 1)
    return stmt


def clean_text(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@contextmanager
def write_transaction(db: Session, action: str) -> Iterator[None]:
    """Commit the enclosed writes as one unit; roll back and translate on failure."""

    try:
        yield
        db.commit()
    except InventoryError:
        db.rollback()
        raise
    except IntegrityError as exc:
        db.rollback()
        logger.warning(
            "store.integrity_error",
            extra={"extra_data": {"action": action, "error": str(exc.orig)}},
        )
        raise PersistenceError(f"{action} violated a uniqueness constraint", conflict=True) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("store.write_failed", exc_info=exc, extra={"extra_data": {"action": action}})
        raise PersistenceError(f"{action} failed: {exc.__class__.__name__}") from exc
    except Exception:
        # Nothing staged in this block may reach a later commit on the same session.
        db.rollback()
        raise


__all__ = [
    "VIEWS",
    "VIEW_ACTIVE",
    "VIEW_ALL",
    "VIEW_DELETED",
    "apply_view",
    "clean_text",
    "normalize_view",
    "write_transaction",
]

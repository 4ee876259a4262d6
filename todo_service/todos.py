"""
Todo CRUD. Every query is scoped to the account_id from the verified access token;
client-supplied owner fields are never read. Records the caller does not own are reported as 404.
"""
import logging
from contextlib import contextmanager

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from session_auth.verification import Authorized, require_identity
from todo_service.config import DEFAULT_STATUS, DELETED_STATUS, MAX_STATUS_LENGTH, MAX_TITLE_LENGTH
from todo_service.database import get_db
from todo_service.models import Todo

logger = logging.getLogger(__name__)
router = APIRouter()


class TodoCreate(BaseModel):
    title: str | None = None
    description: str | None = None
    status: str | None = None


class TodoUpdate(BaseModel):
    title: str | None = None
    description: str | None = None
    status: str | None = None


def _invalid(description: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"error": "invalid_input", "error_description": description},
    )


def _not_found() -> HTTPException:
    # Same answer for "missing" and "someone else's"
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"error": "not_found", "error_description": "Todo not found"},
    )


def _clean_title(title: str | None) -> str:
    if title is None or not title.strip():
        raise _invalid("title is required")
    title = title.strip()
    if len(title) > MAX_TITLE_LENGTH:
        raise _invalid(f"title must be at most {MAX_TITLE_LENGTH} characters")
    return title


def _clean_status(value: str) -> str:
    value = value.strip()
    if not value or len(value) > MAX_STATUS_LENGTH:
        raise _invalid(f"status must be 1-{MAX_STATUS_LENGTH} characters")
    return value


@contextmanager
def _storage_errors(db: Session, operation: str):
    try:
        yield
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Todo storage %s failed", operation)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "storage_failure", "error_description": "Internal server error"},
        )


def _owned(db: Session, todo_id: int, identity: Authorized) -> Todo:
    todo = (
        db.query(Todo)
        .filter(Todo.id == todo_id, Todo.account_id == identity.account_id)
        .first()
    )
    if todo is None:
        raise _not_found()
    return todo


@router.get("/")
def list_todos(
    identity: Authorized = Depends(require_identity),
    db: Session = Depends(get_db),
):
    """All of the caller's todos, oldest first."""
    with _storage_errors(db, "list"):
        rows = (
            db.query(Todo)
            .filter(Todo.account_id == identity.account_id)
            .order_by(Todo.id.asc())
            .all()
        )
        return [t.to_dict() for t in rows]


@router.get("/{todo_id}")
def get_todo(
    todo_id: int,
    identity: Authorized = Depends(require_identity),
    db: Session = Depends(get_db),
):
    with _storage_errors(db, "get"):
        return _owned(db, todo_id, identity).to_dict()


@router.post("/", status_code=201)
def create_todo(
    payload: TodoCreate,
    identity: Authorized = Depends(require_identity),
    db: Session = Depends(get_db),
):
    """Owner comes from the token; status defaults to Todo."""
    todo = Todo(
        account_id=identity.account_id,
        title=_clean_title(payload.title),
        description=payload.description,
        status=_clean_status(payload.status) if payload.status is not None else DEFAULT_STATUS,
    )
    with _storage_errors(db, "create"):
        db.add(todo)
        db.commit()
        db.refresh(todo)
        logger.debug("Created todo id=%s for account_id=%s", todo.id, identity.account_id)
        return todo.to_dict()


@router.put("/{todo_id}")
def update_todo(
    todo_id: int,
    payload: TodoUpdate,
    identity: Authorized = Depends(require_identity),
    db: Session = Depends(get_db),
):
    """Partial update: only fields present in the body change."""
    fields = payload.model_dump(exclude_unset=True)
    with _storage_errors(db, "update"):
        todo = _owned(db, todo_id, identity)
        if "title" in fields:
            todo.title = _clean_title(fields["title"])
        if "description" in fields:
            todo.description = fields["description"]
        if "status" in fields:
            if fields["status"] is None:
                raise _invalid("status cannot be null")
            todo.status = _clean_status(fields["status"])
        db.commit()
        db.refresh(todo)
        return todo.to_dict()


@router.delete("/{todo_id}")
def soft_delete_todo(
    todo_id: int,
    identity: Authorized = Depends(require_identity),
    db: Session = Depends(get_db),
):
    """Mark as Deleted; the row stays."""
    with _storage_errors(db, "soft_delete"):
        todo = _owned(db, todo_id, identity)
        todo.status = DELETED_STATUS
        db.commit()
        db.refresh(todo)
        return todo.to_dict()


@router.delete("/{todo_id}/permanent")
def delete_todo_permanently(
    todo_id: int,
    identity: Authorized = Depends(require_identity),
    db: Session = Depends(get_db),
):
    with _storage_errors(db, "delete"):
        todo = _owned(db, todo_id, identity)
        db.delete(todo)
        db.commit()
        return {"success": True, "message": "Todo permanently deleted"}

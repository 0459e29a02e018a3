"""API dependencies for dependency injection."""

from collections.abc import Iterator
from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from rfp_workflow.db.session import get_session_factory
from rfp_workflow.utils.logging import bind_request_context
from rfp_workflow.vectorstore import ChromaVectorStore, EmbeddingService


def get_db() -> Iterator[Session]:
    """Request-scoped session: commit on success, roll back on error."""
    session = get_session_factory()()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_current_user_id(x_user_id: Annotated[str | None, Header()] = None) -> str:
    """Caller identity from the trusted ``X-User-Id`` header."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="X-User-Id header is required")
    user_id = x_user_id.strip()
    bind_request_context(user_id=user_id)
    return user_id


@lru_cache()
def get_embedding_service() -> EmbeddingService:
    """Get or create embedding service instance."""
    return EmbeddingService()


@lru_cache()
def get_vector_store() -> ChromaVectorStore:
    """Get or create vector store instance."""
    return ChromaVectorStore(embedding_service=get_embedding_service())


# Type aliases for dependency injection
SessionDep = Annotated[Session, Depends(get_db)]
UserIdDep = Annotated[str, Depends(get_current_user_id)]
VectorStoreDep = Annotated[ChromaVectorStore, Depends(get_vector_store)]

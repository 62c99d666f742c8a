from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import AsyncGenerator
from .db_manager import DbManager

# Note: No import from main.py here!


def get_db_manager(request: Request) -> DbManager:
    """
    Pulls the manager from app.state to support multiple app instances.
    """
    manager = getattr(request.app.state, "db_manager", None)

    if not manager:
        # The dependency is called but lifespan didn't run
        raise RuntimeError(
            "DbManager not found in app.state. Ensure lifespan is configured."
        )
    return manager


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    Request-scoped session that commits when the handler returns.
    """
    async with get_db_manager(request).session() as session:
        yield session


get_session = get_db

__all__ = ["get_session", "get_db", "get_db_manager"]

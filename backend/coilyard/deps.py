"""FastAPI dependencies shared by the routers."""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from coilyard.database import get_db
from coilyard.store.base import YardStores
from coilyard.store.sql import sql_stores


async def get_stores(db: AsyncSession = Depends(get_db)) -> YardStores:
    """Entity stores bound to the request's session.

    Tests override this dependency with in-memory stores.
    """
    return sql_stores(db)

"""
Shared FastAPI dependencies for the booking routes.
"""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from entertainment_hub.core.config import Settings, get_settings
from entertainment_hub.core.locks import InventoryLockManager, get_lock_manager
from entertainment_hub.core.security import CallerIdentity, get_current_caller
from entertainment_hub.db.session import get_session_factory

SessionFactory = Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)]
LockManager = Annotated[InventoryLockManager, Depends(get_lock_manager)]
Caller = Annotated[CallerIdentity, Depends(get_current_caller)]
AppSettings = Annotated[Settings, Depends(get_settings)]

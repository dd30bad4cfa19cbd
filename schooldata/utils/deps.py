"""
Dependency utilities for FastAPI endpoints.
"""

from typing import Annotated, Any, Dict

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from schooldata.database import get_db
from schooldata.services.auth import get_current_user

# Create a type annotation for a current user
CurrentUser = Annotated[Dict[str, Any], Depends(get_current_user)]

DbSession = Annotated[AsyncSession, Depends(get_db)]

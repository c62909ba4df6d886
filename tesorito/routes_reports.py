# tesorito/routes_reports.py
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from .auth import ManagerUser
from .db import get_session_dep
from .reports import sales_report

router = APIRouter(prefix="/api/reports", tags=["reports"])


@router.get("")
def get_report(
    session: Annotated[Session, Depends(get_session_dep)],
    user: ManagerUser,
    days: int = Query(7, ge=1, le=366),
):
    return sales_report(session, days)

# app/api/deps.py
from fastapi import Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.services.ledger_facade import LedgerFacade


def get_ledger(db: Session = Depends(get_db)) -> LedgerFacade:
    """Dependency trả về LedgerFacade gắn với phiên DB của request."""
    return LedgerFacade(db)

"""
repository — storage boundary for the ledger.

Routes obtain a repository per request with get_repository() and hand it to
services as a plain argument. Services never import this package's
implementations, only the ExpenseRepository contract and record types.
"""

from __future__ import annotations

from flask import current_app

from spendshare.app.repository.base import ExpenseRepository

MEMORY_EXTENSION_KEY = "ledger_memory_repository"


def get_repository() -> ExpenseRepository:
    """
    Returns the repository selected by LEDGER_REPOSITORY.

    "memory"     → the process-wide InMemoryRepository built by the app factory
    "sqlalchemy" → a SqlAlchemyRepository over the request-scoped db.session
    """
    if current_app.config.get("LEDGER_REPOSITORY") == "memory":
        return current_app.extensions[MEMORY_EXTENSION_KEY]

    # Local imports: the SQL backend pulls in the models and db extension.
    from spendshare.app.extensions import db
    from spendshare.app.repository.sql import SqlAlchemyRepository

    return SqlAlchemyRepository(db.session)

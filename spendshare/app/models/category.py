"""
models/category.py — Category table definition.

Categories are global spending buckets, seeded once (see app/seed.py and
migration 001) and read-only to the ledger.
"""

from __future__ import annotations

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from spendshare.app.extensions import db


class Category(db.Model):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(primary_key=True)

    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)

    # Remix icon class name, e.g. "ri-restaurant-2-line".
    icon: Mapped[str] = mapped_column(String(50), nullable=False)

    # Hex display color, e.g. "#FF9800".
    color: Mapped[str] = mapped_column(String(7), nullable=False)

    expenses: Mapped[list["Expense"]] = relationship(  # noqa: F821
        "Expense",
        back_populates="category",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Category id={self.id} name={self.name!r}>"

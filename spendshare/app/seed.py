"""
app/seed.py — Default expense categories.

Categories are global and read-only to the ledger. The SQL schema seeds
them in migration 001; this module seeds any repository that was created
without migrations (the in-memory backend, SQLite test databases, or
`flask seed-categories` on a fresh db.create_all()).
"""

from __future__ import annotations

import logging

from spendshare.app.repository.base import CategoryRecord, ExpenseRepository

logger = logging.getLogger(__name__)

# (name, icon, color); icon names are Remix Icon classes used by the web client.
DEFAULT_CATEGORIES: tuple[tuple[str, str, str], ...] = (
    ("Food & Drinks",     "ri-restaurant-2-line",    "#FF9800"),
    ("Shopping",          "ri-shopping-bag-3-line",  "#03A9F4"),
    ("Housing",           "ri-home-4-line",          "#4CAF50"),
    ("Transportation",    "ri-car-line",             "#607D8B"),
    ("Entertainment",     "ri-movie-2-line",         "#9C27B0"),
    ("Health",            "ri-heart-pulse-line",     "#F44336"),
    ("Education",         "ri-book-open-line",       "#3F51B5"),
    ("Bills & Utilities", "ri-lightbulb-line",       "#FFC107"),
    ("Travel",            "ri-plane-line",           "#00BCD4"),
    ("Other",             "ri-more-line",            "#9E9E9E"),
)


def seed_categories(repository: ExpenseRepository) -> list[CategoryRecord]:
    """Creates any default category missing by name. Safe to run repeatedly."""
    existing = {c.name for c in repository.list_categories()}
    created = [
        repository.create_category(name, icon, color)
        for name, icon, color in DEFAULT_CATEGORIES
        if name not in existing
    ]
    if created:
        logger.info("Seeded %d categories", len(created))
    return created

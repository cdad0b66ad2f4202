"""Initial schema — all tables, constraints, indexes and the category seed.

Revision: 001_initial_schema
Created:  2026-10-12

Append-only:
  This file must NEVER be edited after it has been applied to any database.
  If a schema change is required, create a NEW migration file.

Creation order (FK dependency order):
  users → categories → groups → group_members → expenses → expense_splits

ON DELETE policies:
  group_members.*             → RESTRICT  (cannot delete user/group with members)
  expenses.*                  → RESTRICT  (cannot delete user/group/category with expenses)
  expense_splits.expense_id   → CASCADE   (splits are owned by their expense)
  expense_splits.user_id      → RESTRICT  (cannot delete user with splits)
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# ── Alembic revision identifiers ──────────────────────────────────────────
revision: str = "001_initial_schema"
down_revision: str | None = None      # first migration
branch_labels: tuple | None = None
depends_on: tuple | None = None

# Frozen copy of app/seed.py DEFAULT_CATEGORIES as of this revision.
_CATEGORIES = [
    {"name": "Food & Drinks",     "icon": "ri-restaurant-2-line",   "color": "#FF9800"},
    {"name": "Shopping",          "icon": "ri-shopping-bag-3-line", "color": "#03A9F4"},
    {"name": "Housing",           "icon": "ri-home-4-line",         "color": "#4CAF50"},
    {"name": "Transportation",    "icon": "ri-car-line",            "color": "#607D8B"},
    {"name": "Entertainment",     "icon": "ri-movie-2-line",        "color": "#9C27B0"},
    {"name": "Health",            "icon": "ri-heart-pulse-line",    "color": "#F44336"},
    {"name": "Education",         "icon": "ri-book-open-line",      "color": "#3F51B5"},
    {"name": "Bills & Utilities", "icon": "ri-lightbulb-line",      "color": "#FFC107"},
    {"name": "Travel",            "icon": "ri-plane-line",          "color": "#00BCD4"},
    {"name": "Other",             "icon": "ri-more-line",           "color": "#9E9E9E"},
]


def upgrade() -> None:

    # ── users ──────────────────────────────────────────────────────────────

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("username", sa.String(50), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("username", name="uq_users_username"),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.CheckConstraint(
            "LENGTH(TRIM(username)) > 0",
            name="ck_users_username_nonempty",
        ),
        sa.CheckConstraint(
            "email LIKE '%@%'",
            name="ck_users_email_format",
        ),
    )

    # ── categories ─────────────────────────────────────────────────────────

    categories = op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(50), nullable=False),
        sa.Column("icon", sa.String(50), nullable=False),
        sa.Column("color", sa.String(7), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_categories"),
        sa.UniqueConstraint("name", name="uq_categories_name"),
    )

    # ── groups ─────────────────────────────────────────────────────────────

    op.create_table(
        "groups",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column(
            "created_by",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT", name="fk_groups_creator"),
            nullable=False,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.Column(
            "is_active",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("TRUE"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_groups"),
        sa.CheckConstraint(
            "LENGTH(TRIM(name)) > 0",
            name="ck_groups_name_nonempty",
        ),
    )

    # ── group_members ──────────────────────────────────────────────────────
    # UNIQUE(group_id, user_id): the repository turns a violation into
    # AlreadyMember (409).

    op.create_table(
        "group_members",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "group_id",
            sa.Integer(),
            sa.ForeignKey("groups.id", ondelete="RESTRICT", name="fk_group_members_group"),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT", name="fk_group_members_user"),
            nullable=False,
        ),
        sa.Column(
            "joined_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_group_members"),
        sa.UniqueConstraint("group_id", "user_id", name="uq_group_members_group_user"),
    )

    op.create_index("idx_group_members_group_id", "group_members", ["group_id"])
    op.create_index("idx_group_members_user_id", "group_members", ["user_id"])

    # ── expenses ───────────────────────────────────────────────────────────

    op.create_table(
        "expenses",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column(
            "category_id",
            sa.Integer(),
            sa.ForeignKey("categories.id", ondelete="RESTRICT", name="fk_expenses_category"),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT", name="fk_expenses_owner"),
            nullable=False,
        ),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column(
            "is_split",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("FALSE"),
        ),
        sa.Column(
            "group_id",
            sa.Integer(),
            sa.ForeignKey("groups.id", ondelete="RESTRICT", name="fk_expenses_group"),
            nullable=True,
        ),
        sa.PrimaryKeyConstraint("id", name="pk_expenses"),
        sa.CheckConstraint("amount > 0", name="ck_expenses_amount_positive"),
        sa.CheckConstraint(
            "LENGTH(TRIM(title)) > 0",
            name="ck_expenses_title_nonempty",
        ),
    )

    op.create_index("idx_expenses_owner_date", "expenses", ["user_id", "date"])
    op.create_index("idx_expenses_group_id", "expenses", ["group_id"])

    # ── expense_splits ─────────────────────────────────────────────────────

    op.create_table(
        "expense_splits",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "expense_id",
            sa.Integer(),
            sa.ForeignKey("expenses.id", ondelete="CASCADE", name="fk_expense_splits_expense"),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT", name="fk_expense_splits_user"),
            nullable=False,
        ),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column(
            "paid",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("FALSE"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_expense_splits"),
        sa.UniqueConstraint("expense_id", "user_id", name="uq_expense_splits_expense_user"),
        sa.CheckConstraint("amount >= 0", name="ck_expense_splits_amount_nonnegative"),
    )

    op.create_index("idx_expense_splits_expense_id", "expense_splits", ["expense_id"])
    op.create_index("idx_expense_splits_user_id", "expense_splits", ["user_id"])

    # ── Seed ───────────────────────────────────────────────────────────────

    op.bulk_insert(categories, _CATEGORIES)


def downgrade() -> None:
    """Drops everything in reverse dependency order."""
    op.drop_index("idx_expense_splits_user_id", table_name="expense_splits")
    op.drop_index("idx_expense_splits_expense_id", table_name="expense_splits")
    op.drop_table("expense_splits")

    op.drop_index("idx_expenses_group_id", table_name="expenses")
    op.drop_index("idx_expenses_owner_date", table_name="expenses")
    op.drop_table("expenses")

    op.drop_index("idx_group_members_user_id", table_name="group_members")
    op.drop_index("idx_group_members_group_id", table_name="group_members")
    op.drop_table("group_members")
    op.drop_table("groups")
    op.drop_table("categories")
    op.drop_table("users")

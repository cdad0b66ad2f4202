"""Add split sum integrity trigger on expense_splits.

Revision: 002_add_split_sum_trigger
Created:  2026-10-12

The repository already rejects split lists whose sum differs from the
expense amount (check_splits). This trigger is the database-side backstop
for writes that bypass the application.

Why a trigger and not a CHECK constraint:
  CHECK constraints are evaluated per row and cannot aggregate sibling rows
  against a parent column.

Trigger design:
  Function : fn_check_expense_split_sum()
    - Resolves the affected expense_id from NEW (INSERT/UPDATE) or OLD (DELETE).
    - Compares SUM(expense_splits.amount) with expenses.amount.
    - Skips the check when the expense row is gone (cascade delete of the
      whole expense) or has no splits left.
    - Raises SQLSTATE 23514 (check_violation) when they differ.

  Trigger  : trg_expense_splits_sum_check
    - CONSTRAINT TRIGGER, DEFERRABLE INITIALLY DEFERRED, so it fires at
      COMMIT: the expense and its splits are flushed together inside one
      transaction, and intermediate states never match.

PostgreSQL only. SQLite test databases are created with db.create_all()
and rely on the repository check.

Append-only: never edit after it has been applied; add a corrective migration.
"""

from __future__ import annotations

from alembic import op

# ── Alembic revision identifiers ──────────────────────────────────────────
revision: str = "002_add_split_sum_trigger"
down_revision: str | None = "001_initial_schema"
branch_labels: tuple | None = None
depends_on: tuple | None = None


_CREATE_FUNCTION = """
CREATE OR REPLACE FUNCTION fn_check_expense_split_sum()
RETURNS TRIGGER
LANGUAGE plpgsql
AS $$
DECLARE
    v_expense_id  INTEGER;
    v_split_count INTEGER;
    v_split_sum   NUMERIC(12, 2);
    v_expense_amt NUMERIC(12, 2);
BEGIN
    IF TG_OP = 'DELETE' THEN
        v_expense_id := OLD.expense_id;
    ELSE
        v_expense_id := NEW.expense_id;
    END IF;

    SELECT amount
      INTO v_expense_amt
      FROM expenses
     WHERE id = v_expense_id;

    SELECT COUNT(*), COALESCE(SUM(amount), 0)
      INTO v_split_count, v_split_sum
      FROM expense_splits
     WHERE expense_id = v_expense_id;

    IF v_expense_amt IS NOT NULL
       AND v_split_count > 0
       AND v_split_sum <> v_expense_amt THEN
        RAISE EXCEPTION
            'split sum (%) does not equal expense amount (%) for expense id=%',
            v_split_sum, v_expense_amt, v_expense_id
            USING ERRCODE = '23514';  -- check_violation
    END IF;

    IF TG_OP = 'DELETE' THEN
        RETURN OLD;
    ELSE
        RETURN NEW;
    END IF;
END;
$$;
"""

_CREATE_TRIGGER = """
CREATE CONSTRAINT TRIGGER trg_expense_splits_sum_check
    AFTER INSERT OR UPDATE OR DELETE
    ON expense_splits
    DEFERRABLE INITIALLY DEFERRED
    FOR EACH ROW
    EXECUTE FUNCTION fn_check_expense_split_sum();
"""

_DROP_TRIGGER = "DROP TRIGGER IF EXISTS trg_expense_splits_sum_check ON expense_splits;"
_DROP_FUNCTION = "DROP FUNCTION IF EXISTS fn_check_expense_split_sum();"


def upgrade() -> None:
    # Function first: the trigger references it.
    op.execute(_CREATE_FUNCTION)
    op.execute(_CREATE_TRIGGER)


def downgrade() -> None:
    op.execute(_DROP_TRIGGER)
    op.execute(_DROP_FUNCTION)

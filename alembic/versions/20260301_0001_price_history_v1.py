"""Create price history daily prices and ingestion job queue tables."""

from __future__ import annotations

from alembic import op

# revision identifiers, used by Alembic.
revision = "20260301_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """
    Apply price history v1 storage schema.

    Args:
        None.
    Returns:
        None.
    Assumptions:
        `UNIQUE (series_key, day)` is the idempotency guard for `ON CONFLICT DO NOTHING`.
    Raises:
        Exception: Postgres execution errors from Alembic runtime.
    Side Effects:
        Creates series and queue tables, constraints, and claim indexes.
    """
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS price_history_daily_prices (
            id BIGSERIAL PRIMARY KEY,
            series_key VARCHAR(42) NOT NULL,
            day DATE NOT NULL,
            price NUMERIC NOT NULL,
            CONSTRAINT price_history_daily_prices_series_day_key
                UNIQUE (series_key, day),
            CONSTRAINT price_history_daily_prices_price_chk
                CHECK (price >= 0)
        )
        """
    )

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS price_history_ingestion_jobs (
            job_id UUID PRIMARY KEY,
            payload_json JSONB NOT NULL,
            state TEXT NOT NULL,
            attempt INTEGER NOT NULL DEFAULT 0,
            max_attempts INTEGER NOT NULL,
            available_at TIMESTAMPTZ NOT NULL,
            locked_by TEXT NULL,
            lease_expires_at TIMESTAMPTZ NULL,
            last_error TEXT NULL,
            result_json JSONB NULL,
            created_at TIMESTAMPTZ NOT NULL,
            updated_at TIMESTAMPTZ NOT NULL,
            finished_at TIMESTAMPTZ NULL,
            CONSTRAINT price_history_ingestion_jobs_state_chk
                CHECK (state IN ('queued', 'running', 'succeeded', 'failed')),
            CONSTRAINT price_history_ingestion_jobs_attempt_chk
                CHECK (attempt >= 0),
            CONSTRAINT price_history_ingestion_jobs_max_attempts_chk
                CHECK (max_attempts > 0),
            CONSTRAINT price_history_ingestion_jobs_payload_shape_chk
                CHECK (jsonb_typeof(payload_json) = 'object'),
            CONSTRAINT price_history_ingestion_jobs_running_lease_chk
                CHECK (
                    (state = 'running'
                        AND locked_by IS NOT NULL
                        AND lease_expires_at IS NOT NULL)
                    OR (state <> 'running'
                        AND locked_by IS NULL
                        AND lease_expires_at IS NULL)
                ),
            CONSTRAINT price_history_ingestion_jobs_finished_chk
                CHECK (
                    (state IN ('succeeded', 'failed') AND finished_at IS NOT NULL)
                    OR (state IN ('queued', 'running') AND finished_at IS NULL)
                )
        )
        """
    )

    op.execute(
        """
        CREATE INDEX IF NOT EXISTS idx_price_history_ingestion_jobs_claim_fifo
            ON price_history_ingestion_jobs
                (state, available_at ASC, created_at ASC, job_id ASC)
        """
    )
    op.execute(
        """
        CREATE INDEX IF NOT EXISTS idx_price_history_ingestion_jobs_reclaim
            ON price_history_ingestion_jobs
                (state, lease_expires_at ASC, created_at ASC, job_id ASC)
        """
    )


def downgrade() -> None:
    """
    Drop price history v1 storage schema.

    Args:
        None.
    Returns:
        None.
    Assumptions:
        Downgrade is used only in disposable environments.
    Raises:
        Exception: Postgres execution errors from Alembic runtime.
    Side Effects:
        Drops queue and series tables with all rows.
    """
    op.execute("DROP TABLE IF EXISTS price_history_ingestion_jobs")
    op.execute("DROP TABLE IF EXISTS price_history_daily_prices")

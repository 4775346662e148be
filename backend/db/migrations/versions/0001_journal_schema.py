"""Initial schema for the trading journal: profiles, trades, RLS and hooks."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from alembic import op

logger = logging.getLogger(__name__)

# revision identifiers, used by Alembic.
revision: str = "0001_journal_schema"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


ROLE_DDL: tuple[str, ...] = (
    """
    DO $$
    BEGIN
        IF NOT EXISTS (SELECT 1 FROM pg_roles WHERE rolname = 'anon') THEN
            CREATE ROLE anon NOLOGIN;
        END IF;
        IF NOT EXISTS (SELECT 1 FROM pg_roles WHERE rolname = 'authenticated') THEN
            CREATE ROLE authenticated NOLOGIN;
        END IF;
    END;
    $$;
    """,
)

# Managed backends ship auth.users and auth.uid(); these only fill the gap on plain Postgres.
AUTH_DDL: tuple[str, ...] = (
    "CREATE SCHEMA IF NOT EXISTS auth;",
    """
    CREATE TABLE IF NOT EXISTS auth.users (
        id UUID NOT NULL DEFAULT gen_random_uuid(),
        email TEXT,
        raw_user_meta_data JSONB NOT NULL DEFAULT '{}'::jsonb,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        CONSTRAINT users_pkey PRIMARY KEY (id)
    );
    """,
    """
    DO $$
    BEGIN
        IF NOT EXISTS (
            SELECT 1
            FROM pg_proc p
            JOIN pg_namespace n ON n.oid = p.pronamespace
            WHERE n.nspname = 'auth' AND p.proname = 'uid'
        ) THEN
            CREATE FUNCTION auth.uid()
            RETURNS UUID
            LANGUAGE sql
            STABLE
            AS 'SELECT nullif(current_setting(''request.jwt.claim.sub'', true), '''')::uuid';
        END IF;
    END;
    $$;
    """,
)

TABLE_DDL: tuple[str, ...] = (
    """
    CREATE TABLE public.profiles (
        id UUID NOT NULL,
        email TEXT NOT NULL,
        username TEXT NOT NULL,
        country TEXT,
        date_of_birth DATE,
        avatar_url TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        CONSTRAINT pk_profiles PRIMARY KEY (id),
        CONSTRAINT fk_profiles_auth_user FOREIGN KEY (id) REFERENCES auth.users (id) ON DELETE CASCADE,
        CONSTRAINT ck_profiles_username_format CHECK (username ~ '^[a-zA-Z0-9_]{3,20}$')
    );
    """,
    """
    CREATE TABLE public.trades (
        id BIGINT GENERATED ALWAYS AS IDENTITY,
        user_id UUID NOT NULL,
        asset_class TEXT NOT NULL DEFAULT 'stocks',
        instrument TEXT NOT NULL,
        direction TEXT,
        entry_price NUMERIC,
        exit_price NUMERIC,
        shares NUMERIC,
        lots NUMERIC,
        pip_value NUMERIC,
        contracts NUMERIC,
        contract_size NUMERIC,
        point_value NUMERIC,
        tick_size NUMERIC,
        tick_value NUMERIC,
        option_type TEXT,
        strike NUMERIC,
        expiry DATE,
        premium NUMERIC,
        exit_premium NUMERIC,
        investment_amount NUMERIC,
        equity_pct NUMERIC,
        valuation NUMERIC,
        exit_valuation NUMERIC,
        deal_status TEXT,
        property_type TEXT,
        purchase_price NUMERIC,
        current_value NUMERIC,
        generates_rent BOOLEAN NOT NULL DEFAULT FALSE,
        monthly_rent NUMERIC,
        monthly_expenses NUMERIC,
        date_opened TIMESTAMPTZ NOT NULL DEFAULT now(),
        date_closed TIMESTAMPTZ,
        pnl NUMERIC DEFAULT 0,
        notes TEXT DEFAULT '',
        tags TEXT[] NOT NULL DEFAULT '{}',
        emotion TEXT DEFAULT '',
        rating INTEGER NOT NULL DEFAULT 0,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        CONSTRAINT pk_trades PRIMARY KEY (id),
        CONSTRAINT fk_trades_auth_user FOREIGN KEY (user_id) REFERENCES auth.users (id) ON DELETE CASCADE,
        CONSTRAINT ck_trades_asset_class CHECK (asset_class IN ('stocks', 'options', 'forex', 'futures', 'commodities', 'indices', 'angel', 'realestate')),
        CONSTRAINT ck_trades_instrument_not_blank CHECK (length(btrim(instrument)) > 0),
        CONSTRAINT ck_trades_direction CHECK (direction IS NULL OR direction IN ('LONG', 'SHORT')),
        CONSTRAINT ck_trades_option_type CHECK (option_type IS NULL OR option_type IN ('CALL', 'PUT')),
        CONSTRAINT ck_trades_deal_status CHECK (deal_status IS NULL OR deal_status IN ('active', 'exited', 'written-off')),
        CONSTRAINT ck_trades_rating_non_negative CHECK (rating >= 0),
        CONSTRAINT ck_trades_closed_after_opened CHECK (date_closed IS NULL OR date_closed >= date_opened)
    );
    """,
)

INDEX_DDL: tuple[str, ...] = (
    "CREATE UNIQUE INDEX uqix_profiles_username_lower ON public.profiles USING btree (lower(username));",
    "CREATE INDEX idx_trades_user_id ON public.trades USING btree (user_id);",
    "CREATE INDEX idx_trades_user_date_opened_desc ON public.trades USING btree (user_id, date_opened DESC);",
    "CREATE INDEX idx_trades_user_asset_class ON public.trades USING btree (user_id, asset_class);",
)

FUNCTION_DDL: tuple[str, ...] = (
    """
    CREATE OR REPLACE FUNCTION public.check_username(uname TEXT)
    RETURNS BOOLEAN
    LANGUAGE plpgsql
    STABLE
    SECURITY DEFINER
    SET search_path = public
    AS $$
    BEGIN
        RETURN NOT EXISTS (
            SELECT 1 FROM public.profiles
            WHERE lower(username) = lower(uname)
        );
    END;
    $$;
    """,
    """
    CREATE OR REPLACE FUNCTION public.normalize_username(raw TEXT)
    RETURNS TEXT
    LANGUAGE sql
    IMMUTABLE
    AS $$
        SELECT left(rpad(cleaned, greatest(length(cleaned), 3), '_'), 20)
        FROM (SELECT regexp_replace(COALESCE(raw, ''), '[^A-Za-z0-9_]', '_', 'g') AS cleaned) AS s;
    $$;
    """,
    """
    CREATE OR REPLACE FUNCTION public.handle_updated_at()
    RETURNS TRIGGER
    LANGUAGE plpgsql
    AS $$
    BEGIN
        IF TG_OP = 'INSERT' THEN
            NEW.created_at = clock_timestamp();
            NEW.updated_at = NEW.created_at;
        ELSE
            NEW.created_at = OLD.created_at;
            NEW.updated_at = GREATEST(clock_timestamp(), OLD.updated_at + INTERVAL '1 microsecond');
        END IF;
        RETURN NEW;
    END;
    $$;
    """,
    """
    CREATE OR REPLACE FUNCTION public.handle_new_user()
    RETURNS TRIGGER
    LANGUAGE plpgsql
    SECURITY DEFINER
    SET search_path = public
    AS $$
    DECLARE
        base TEXT;
    BEGIN
        base := public.normalize_username(
            COALESCE(
                NULLIF(btrim(NEW.raw_user_meta_data->>'username', ' '), ''),
                split_part(NEW.email, '@', 1)
            )
        );
        BEGIN
            INSERT INTO public.profiles (id, email, username)
            VALUES (NEW.id, NEW.email, base)
            ON CONFLICT (id) DO NOTHING;
        EXCEPTION WHEN unique_violation THEN
            -- Name already claimed case-insensitively: suffix with the subject id.
            INSERT INTO public.profiles (id, email, username)
            VALUES (NEW.id, NEW.email, left(base, 11) || '_' || left(replace(NEW.id::text, '-', ''), 8))
            ON CONFLICT (id) DO NOTHING;
        END;
        RETURN NEW;
    END;
    $$;
    """,
)

TRIGGER_DDL: tuple[str, ...] = (
    """
    CREATE TRIGGER profiles_updated_at
    BEFORE INSERT OR UPDATE ON public.profiles
    FOR EACH ROW EXECUTE FUNCTION public.handle_updated_at();
    """,
    """
    CREATE TRIGGER trades_updated_at
    BEFORE INSERT OR UPDATE ON public.trades
    FOR EACH ROW EXECUTE FUNCTION public.handle_updated_at();
    """,
    """
    CREATE TRIGGER on_auth_user_created
    AFTER INSERT ON auth.users
    FOR EACH ROW EXECUTE FUNCTION public.handle_new_user();
    """,
)

RLS_DDL: tuple[str, ...] = (
    "ALTER TABLE public.profiles ENABLE ROW LEVEL SECURITY;",
    "ALTER TABLE public.trades ENABLE ROW LEVEL SECURITY;",
    """
    CREATE POLICY "Users can read own profile" ON public.profiles
    FOR SELECT USING (auth.uid() = id);
    """,
    """
    CREATE POLICY "Users can insert own profile" ON public.profiles
    FOR INSERT WITH CHECK (auth.uid() = id);
    """,
    """
    CREATE POLICY "Users can update own profile" ON public.profiles
    FOR UPDATE USING (auth.uid() = id) WITH CHECK (auth.uid() = id);
    """,
    """
    CREATE POLICY "Users can read own trades" ON public.trades
    FOR SELECT USING (auth.uid() = user_id);
    """,
    """
    CREATE POLICY "Users can insert own trades" ON public.trades
    FOR INSERT WITH CHECK (auth.uid() = user_id);
    """,
    """
    CREATE POLICY "Users can update own trades" ON public.trades
    FOR UPDATE USING (auth.uid() = user_id) WITH CHECK (auth.uid() = user_id);
    """,
    """
    CREATE POLICY "Users can delete own trades" ON public.trades
    FOR DELETE USING (auth.uid() = user_id);
    """,
)

GRANT_DDL: tuple[str, ...] = (
    "GRANT USAGE ON SCHEMA public TO anon, authenticated;",
    "GRANT USAGE ON SCHEMA auth TO anon, authenticated;",
    "GRANT EXECUTE ON FUNCTION auth.uid() TO anon, authenticated;",
    "GRANT SELECT, INSERT, UPDATE ON public.profiles TO authenticated;",
    "GRANT SELECT, INSERT, UPDATE, DELETE ON public.trades TO authenticated;",
    "GRANT USAGE, SELECT ON SEQUENCE public.trades_id_seq TO authenticated;",
    "GRANT EXECUTE ON FUNCTION public.check_username(TEXT) TO anon, authenticated;",
)


def _execute_all(statements: Sequence[str]) -> None:
    """Execute an ordered sequence of SQL statements."""

    for statement in statements:
        try:
            op.execute(statement)
        except Exception:
            logger.exception("Migration statement failed.")
            raise


def upgrade() -> None:
    """Apply the journal schema migration."""

    logger.info("Starting journal schema migration upgrade.")
    _execute_all(ROLE_DDL)
    _execute_all(AUTH_DDL)
    _execute_all(TABLE_DDL)
    _execute_all(INDEX_DDL)
    _execute_all(FUNCTION_DDL)
    _execute_all(TRIGGER_DDL)
    _execute_all(RLS_DDL)
    _execute_all(GRANT_DDL)
    logger.info("Completed journal schema migration upgrade.")


def downgrade() -> None:
    """Revert the journal schema migration.

    ``auth.users``, ``auth.uid()`` and the roles are left in place since a
    managed backend owns them.
    """

    logger.info("Starting journal schema migration downgrade.")
    _execute_all(
        (
            "DROP TRIGGER IF EXISTS on_auth_user_created ON auth.users;",
            "DROP TRIGGER IF EXISTS trades_updated_at ON public.trades;",
            "DROP TRIGGER IF EXISTS profiles_updated_at ON public.profiles;",
            "DROP TABLE IF EXISTS public.trades;",
            "DROP TABLE IF EXISTS public.profiles;",
            "DROP FUNCTION IF EXISTS public.handle_new_user();",
            "DROP FUNCTION IF EXISTS public.handle_updated_at();",
            "DROP FUNCTION IF EXISTS public.check_username(TEXT);",
            "DROP FUNCTION IF EXISTS public.normalize_username(TEXT);",
        )
    )
    logger.info("Completed journal schema migration downgrade.")

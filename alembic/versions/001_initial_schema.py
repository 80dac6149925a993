"""001 – Initial schema: organizations, users, policies, holidays, balances,
leave requests, notifications, audit trail.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000+00:00
"""

from alembic import op

# Revision identifiers
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

# SQLAlchemy persists enum member names, so the labels are the names.
ENUM_TYPES: list[tuple[str, list[str]]] = [
    ("user_role", ["ADMIN", "HR", "MANAGER", "EMPLOYEE"]),
    ("leave_status", ["PENDING", "APPROVED", "REJECTED", "CANCELLED"]),
    ("holiday_type", ["PUBLIC", "COMPANY"]),
    ("notification_type", ["info", "action_required", "approval", "alert"]),
]


def _create_enum(name: str, values: list[str]) -> None:
    vals = ", ".join(f"'{v}'" for v in values)
    op.execute(f"CREATE TYPE {name} AS ENUM ({vals})")


def _drop_enum(name: str) -> None:
    op.execute(f"DROP TYPE IF EXISTS {name}")


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')

    for name, values in ENUM_TYPES:
        _create_enum(name, values)

    # ── 1. organizations ──────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE organizations (
            id          UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            name        VARCHAR(200) NOT NULL,
            code        VARCHAR(50)  NOT NULL UNIQUE,
            created_at  TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 2. users ──────────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE users (
            id               UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id  UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            email            VARCHAR(255) NOT NULL UNIQUE,
            username         VARCHAR(100) NOT NULL,
            role             user_role NOT NULL DEFAULT 'EMPLOYEE',
            manager_id       UUID REFERENCES users(id) ON DELETE SET NULL,
            is_active        BOOLEAN DEFAULT TRUE,
            created_at       TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_users_organization_id ON users(organization_id)")
    op.execute("CREATE INDEX ix_users_manager_id ON users(manager_id)")

    # ── 3. leave_policies ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_policies (
            id                 UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id    UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            name               VARCHAR(100) NOT NULL,
            description        TEXT,
            max_days           INTEGER NOT NULL,
            carry_forward      INTEGER DEFAULT 0,
            requires_approval  BOOLEAN DEFAULT TRUE,
            min_notice         INTEGER DEFAULT 0,
            active             BOOLEAN DEFAULT TRUE,
            created_at         TIMESTAMPTZ DEFAULT NOW(),
            updated_at         TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_leave_policy_org_name UNIQUE (organization_id, name),
            CONSTRAINT ck_leave_policy_max_days CHECK (max_days >= 0),
            CONSTRAINT ck_leave_policy_carry_forward CHECK (carry_forward >= 0),
            CONSTRAINT ck_leave_policy_min_notice CHECK (min_notice >= 0)
        )
    """)

    # ── 4. holidays ───────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE holidays (
            id               UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id  UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            name             VARCHAR(200) NOT NULL,
            date             DATE NOT NULL,
            type             holiday_type NOT NULL DEFAULT 'PUBLIC',
            recurring        BOOLEAN DEFAULT FALSE,
            created_at       TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_holiday_org_date UNIQUE (organization_id, date)
        )
    """)
    op.execute("CREATE INDEX ix_holidays_organization_id ON holidays(organization_id)")

    # ── 5. leave_balances ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_balances (
            id               UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id  UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            employee_id      UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            leave_policy_id  UUID NOT NULL REFERENCES leave_policies(id) ON DELETE RESTRICT,
            total_days       INTEGER NOT NULL,
            carry_forward    INTEGER DEFAULT 0,
            used_days        INTEGER NOT NULL DEFAULT 0,
            created_at       TIMESTAMPTZ DEFAULT NOW(),
            updated_at       TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_leave_balance_employee_policy UNIQUE (employee_id, leave_policy_id),
            CONSTRAINT ck_leave_balance_used_non_negative CHECK (used_days >= 0),
            CONSTRAINT ck_leave_balance_used_within_total CHECK (used_days <= total_days)
        )
    """)
    op.execute("CREATE INDEX ix_leave_balances_employee_id ON leave_balances(employee_id)")

    # ── 6. leave_requests ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_requests (
            id               UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            employee_id      UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            organization_id  UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            type             VARCHAR(100) NOT NULL,
            start_date       DATE NOT NULL,
            end_date         DATE NOT NULL,
            days             INTEGER NOT NULL,
            reason           TEXT,
            status           leave_status NOT NULL DEFAULT 'PENDING',
            approver_id      UUID REFERENCES users(id) ON DELETE SET NULL,
            remarks          TEXT,
            notify_users     JSONB DEFAULT '[]'::jsonb,
            created_at       TIMESTAMPTZ DEFAULT NOW(),
            updated_at       TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_leave_request_date_order CHECK (end_date >= start_date),
            CONSTRAINT ck_leave_request_days_positive CHECK (days > 0)
        )
    """)
    op.execute(
        "CREATE INDEX ix_leave_requests_employee_status "
        "ON leave_requests(employee_id, status)"
    )
    op.execute(
        "CREATE INDEX ix_leave_requests_organization_status "
        "ON leave_requests(organization_id, status)"
    )

    # ── 7. notifications ──────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE notifications (
            id            UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            recipient_id  UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            type          notification_type DEFAULT 'info',
            title         VARCHAR(200) NOT NULL,
            message       TEXT NOT NULL,
            entity_type   VARCHAR(50),
            entity_id     UUID,
            is_read       BOOLEAN DEFAULT FALSE,
            created_at    TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute(
        "CREATE INDEX ix_notifications_recipient_unread "
        "ON notifications(recipient_id, is_read)"
    )

    # ── 8. audit_trail ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE audit_trail (
            id              UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            actor_id        UUID REFERENCES users(id) ON DELETE SET NULL,
            action          VARCHAR(50) NOT NULL,
            entity_type     VARCHAR(50) NOT NULL,
            entity_id       UUID NOT NULL,
            prior_state     JSONB,
            new_state       JSONB,
            created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_audit_trail_org_created ON audit_trail(organization_id, created_at)")
    op.execute("CREATE INDEX ix_audit_trail_entity ON audit_trail(entity_type, entity_id)")


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    # Drop tables in reverse dependency order
    tables = [
        "audit_trail",
        "notifications",
        "leave_requests",
        "leave_balances",
        "holidays",
        "leave_policies",
        "users",
        "organizations",
    ]
    for t in tables:
        op.execute(f"DROP TABLE IF EXISTS {t} CASCADE")

    for name, _ in reversed(ENUM_TYPES):
        _drop_enum(name)

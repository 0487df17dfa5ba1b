"""001 – Initial schema: employees, holidays, leave workflow, notifications, audit.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 09:30:00.000000+05:30
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

ENUM_TYPES: list[tuple[str, list[str]]] = [
    ("user_role", ["EMPLOYEE", "ADMIN"]),
    ("admin_type", ["HR_HEAD", "MANAGING_DIRECTOR", "HR_OFFICER"]),
    ("leave_type", ["ANNUAL", "CASUAL", "MEDICAL", "OFFICIAL"]),
    (
        "leave_status",
        [
            "PENDING_COVER",
            "PENDING_ADMIN",
            "APPROVED",
            "DECLINED",
            "COVER_DECLINED",
            "CANCELLED",
        ],
    ),
    ("half_day_type", ["FIRST_HALF", "SECOND_HALF"]),
    ("cover_request_status", ["PENDING", "ACCEPTED", "DECLINED", "EXPIRED"]),
    ("reassignment_status", ["PENDING", "ASSIGNED"]),
    (
        "notification_type",
        [
            "COVER_REQUEST",
            "COVER_ACCEPTED",
            "COVER_DECLINED",
            "LEAVE_REQUEST",
            "LEAVE_APPROVED",
            "LEAVE_DECLINED",
            "LEAVE_CANCELLED",
            "COVER_REASSIGNMENT",
            "SYSTEM_ALERT",
        ],
    ),
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
    # ── Extensions ────────────────────────────────────────────────────────
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    # ── Enum types ────────────────────────────────────────────────────────
    for name, values in ENUM_TYPES:
        _create_enum(name, values)

    # ── 1. employees ──────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE employees (
            id             UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_code  VARCHAR(20)  NOT NULL UNIQUE,
            first_name     VARCHAR(100) NOT NULL,
            last_name      VARCHAR(100) NOT NULL,
            email          VARCHAR(255) NOT NULL UNIQUE,
            department     VARCHAR(150),
            role           user_role NOT NULL DEFAULT 'EMPLOYEE',
            admin_type     admin_type,
            is_active      BOOLEAN NOT NULL DEFAULT TRUE,
            is_probation   BOOLEAN NOT NULL DEFAULT FALSE,
            confirmed_at   DATE,
            created_at     TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at     TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX idx_employees_role_active ON employees(role, is_active)")

    # ── 2. public_holidays ────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE public_holidays (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            date        DATE NOT NULL,
            name        VARCHAR(200) NOT NULL,
            description TEXT,
            CONSTRAINT uq_public_holiday_date_name UNIQUE (date, name)
        )
    """)
    op.execute("CREATE INDEX ix_public_holidays_date ON public_holidays(date)")

    # ── 3. leaves ─────────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leaves (
            id                UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id       UUID NOT NULL REFERENCES employees(id),
            leave_type        leave_type NOT NULL,
            start_date        DATE NOT NULL,
            end_date          DATE NOT NULL,
            total_days        NUMERIC(5,1) NOT NULL,
            half_day_type     half_day_type,
            reason            TEXT NOT NULL DEFAULT '',
            cover_employee_id UUID REFERENCES employees(id),
            medical_cert_path VARCHAR(500),
            status            leave_status NOT NULL DEFAULT 'PENDING_COVER',
            is_no_pay         BOOLEAN NOT NULL DEFAULT FALSE,
            cover_response    TEXT,
            admin_response    TEXT,
            reviewed_by       UUID REFERENCES employees(id),
            reviewed_at       TIMESTAMPTZ,
            created_at        TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at        TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_leave_date_order CHECK (start_date <= end_date),
            CONSTRAINT ck_leave_total_days_positive CHECK (total_days > 0)
        )
    """)
    op.execute("CREATE INDEX ix_leaves_employee_status ON leaves(employee_id, status)")
    op.execute("CREATE INDEX ix_leaves_cover_status    ON leaves(cover_employee_id, status)")
    op.execute("CREATE INDEX idx_leaves_dates          ON leaves(start_date, end_date)")

    # ── 4. leave_balances ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_balances (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id UUID NOT NULL UNIQUE REFERENCES employees(id),
            year        INTEGER NOT NULL,
            annual      NUMERIC(5,1) NOT NULL DEFAULT 0,
            casual      NUMERIC(5,1) NOT NULL DEFAULT 0,
            medical     NUMERIC(5,1) NOT NULL DEFAULT 0,
            official    NUMERIC(5,1) NOT NULL DEFAULT 0,
            updated_at  TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 5. cover_requests ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE cover_requests (
            id                UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            leave_id          UUID NOT NULL UNIQUE REFERENCES leaves(id) ON DELETE CASCADE,
            cover_employee_id UUID NOT NULL REFERENCES employees(id),
            status            cover_request_status NOT NULL DEFAULT 'PENDING',
            created_at        TIMESTAMPTZ NOT NULL,
            expires_at        TIMESTAMPTZ NOT NULL,
            responded_at      TIMESTAMPTZ
        )
    """)
    op.execute(
        "CREATE INDEX ix_cover_requests_cover_status ON cover_requests(cover_employee_id, status)"
    )
    op.execute(
        "CREATE INDEX ix_cover_requests_status_expires ON cover_requests(status, expires_at)"
    )

    # ── 6. cover_duty_reassignments ───────────────────────────────────────
    op.execute("""
        CREATE TABLE cover_duty_reassignments (
            id                         UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            original_leave_id          UUID NOT NULL REFERENCES leaves(id),
            cover_employee_leave_id    UUID NOT NULL REFERENCES leaves(id),
            original_cover_employee_id UUID NOT NULL REFERENCES employees(id),
            new_cover_employee_id      UUID REFERENCES employees(id),
            status                     reassignment_status NOT NULL DEFAULT 'PENDING',
            assigned_by                UUID REFERENCES employees(id),
            assigned_at                TIMESTAMPTZ,
            created_at                 TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at                 TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_reassignment_leaves UNIQUE (original_leave_id, cover_employee_leave_id)
        )
    """)
    op.execute("CREATE INDEX ix_reassignments_status ON cover_duty_reassignments(status)")

    # ── 7. notifications ──────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE notifications (
            id           UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            recipient_id UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            sender_id    UUID REFERENCES employees(id) ON DELETE SET NULL,
            type         notification_type NOT NULL,
            title        VARCHAR(200) NOT NULL,
            message      TEXT NOT NULL,
            related_id   UUID,
            is_pinned    BOOLEAN NOT NULL DEFAULT FALSE,
            is_read      BOOLEAN NOT NULL DEFAULT FALSE,
            read_at      TIMESTAMPTZ,
            created_at   TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute(
        "CREATE INDEX ix_notifications_recipient_read ON notifications(recipient_id, is_read)"
    )

    # ── 8. audit_trail ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE audit_trail (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            actor_id    UUID REFERENCES employees(id),
            action      VARCHAR(50) NOT NULL,
            entity_type VARCHAR(50) NOT NULL,
            entity_id   UUID NOT NULL,
            old_values  JSONB,
            new_values  JSONB,
            created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_audit_trail_actor_id ON audit_trail(actor_id)")
    op.execute("CREATE INDEX ix_audit_trail_entity   ON audit_trail(entity_type, entity_id)")
    op.execute("CREATE INDEX ix_audit_trail_action   ON audit_trail(action)")


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    # Drop tables in reverse dependency order
    tables = [
        "audit_trail",
        "notifications",
        "cover_duty_reassignments",
        "cover_requests",
        "leave_balances",
        "leaves",
        "public_holidays",
        "employees",
    ]
    for t in tables:
        op.execute(f"DROP TABLE IF EXISTS {t} CASCADE")

    for name, _ in reversed(ENUM_TYPES):
        _drop_enum(name)

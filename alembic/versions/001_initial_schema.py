"""001 – Initial schema: all tables, indexes and constraints.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-18 10:00:00.000000+00:00
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

# Enum columns are stored as VARCHAR(32) holding the member value
ENUM_VALUES: dict[str, list[str]] = {
    "user_role": ["employee", "manager", "admin"],
    "department_status": ["active", "inactive"],
    "attendance_status": ["In Progress", "Completed"],
    "arrival_status": ["on_time", "late", "very_late"],
    "leave_status": ["Pending", "Approved", "Rejected", "Cancelled"],
    "shift_status": ["active", "inactive"],
    "task_status": ["pending", "in_progress", "completed", "cancelled"],
    "task_priority": ["low", "medium", "high", "urgent"],
    "notification_type": ["info", "action_required", "approval", "announcement", "task"],
}


def _enum(column: str, enum_name: str) -> str:
    vals = ", ".join(f"'{v}'" for v in ENUM_VALUES[enum_name])
    return f"VARCHAR(32) CHECK ({column} IN ({vals}))"


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    # ── Extensions ────────────────────────────────────────────────────────
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    # ── 1. departments (manager FK added after employees) ─────────────────
    op.execute(f"""
        CREATE TABLE departments (
            id           UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name         VARCHAR(150) NOT NULL UNIQUE,
            description  TEXT,
            manager_id   UUID,
            budget       NUMERIC(14, 2),
            location     VARCHAR(150),
            status       {_enum("status", "department_status")} NOT NULL DEFAULT 'active',
            created_at   TIMESTAMPTZ DEFAULT NOW(),
            updated_at   TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 2. employees ──────────────────────────────────────────────────────
    op.execute(f"""
        CREATE TABLE employees (
            id                 UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            email              VARCHAR(255) NOT NULL UNIQUE,
            password_hash      VARCHAR(255) NOT NULL,
            role               {_enum("role", "user_role")} NOT NULL DEFAULT 'employee',
            first_name         VARCHAR(100) NOT NULL,
            last_name          VARCHAR(100) NOT NULL,
            phone              VARCHAR(20),
            position           VARCHAR(150),
            department_id      UUID REFERENCES departments(id) ON DELETE SET NULL,
            manager_id         UUID,
            date_of_joining    DATE,
            profile_photo_url  TEXT,
            is_active          BOOLEAN NOT NULL DEFAULT TRUE,
            last_login_at      TIMESTAMPTZ,
            created_at         TIMESTAMPTZ DEFAULT NOW(),
            updated_at         TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_employees_department_id ON employees(department_id)")
    op.execute("CREATE INDEX ix_employees_role          ON employees(role)")

    # Deferred self / cross references
    op.execute("""
        ALTER TABLE employees
            ADD CONSTRAINT fk_employee_manager
            FOREIGN KEY (manager_id) REFERENCES employees(id) ON DELETE SET NULL
    """)
    op.execute("""
        ALTER TABLE departments
            ADD CONSTRAINT fk_dept_manager
            FOREIGN KEY (manager_id) REFERENCES employees(id) ON DELETE SET NULL
    """)

    # ── 3. user_sessions ──────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE user_sessions (
            id                  UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id         UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            token_hash          VARCHAR(128) NOT NULL,
            refresh_token_hash  VARCHAR(128),
            ip_address          INET,
            user_agent          TEXT,
            expires_at          TIMESTAMPTZ NOT NULL,
            is_revoked          BOOLEAN NOT NULL DEFAULT FALSE,
            created_at          TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_user_sessions_token_hash         ON user_sessions(token_hash)")
    op.execute("CREATE INDEX ix_user_sessions_refresh_token_hash ON user_sessions(refresh_token_hash)")

    # ── 4. shifts / schedules ─────────────────────────────────────────────
    op.execute(f"""
        CREATE TABLE shifts (
            id             UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name           VARCHAR(100) NOT NULL,
            start_time     TIME NOT NULL,
            end_time       TIME NOT NULL,
            description    TEXT,
            department_id  UUID NOT NULL REFERENCES departments(id) ON DELETE CASCADE,
            max_employees  INTEGER,
            grace_minutes  INTEGER NOT NULL DEFAULT 15,
            status         {_enum("status", "shift_status")} NOT NULL DEFAULT 'active',
            created_by     UUID REFERENCES employees(id) ON DELETE SET NULL,
            created_at     TIMESTAMPTZ DEFAULT NOW(),
            updated_at     TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_shift_department_name UNIQUE (department_id, name),
            CONSTRAINT ck_shift_max_employees CHECK (max_employees IS NULL OR max_employees > 0)
        )
    """)
    op.execute("""
        CREATE TABLE schedules (
            id                UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            shift_id          UUID NOT NULL REFERENCES shifts(id) ON DELETE CASCADE,
            start_date        DATE NOT NULL,
            end_date          DATE NOT NULL,
            recurrence_group  UUID,
            created_by        UUID REFERENCES employees(id) ON DELETE SET NULL,
            created_at        TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_schedule_dates CHECK (end_date >= start_date)
        )
    """)
    op.execute("CREATE INDEX ix_schedules_dates ON schedules(start_date, end_date)")
    op.execute("""
        CREATE TABLE schedule_employees (
            schedule_id  UUID NOT NULL REFERENCES schedules(id) ON DELETE CASCADE,
            employee_id  UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            PRIMARY KEY (schedule_id, employee_id)
        )
    """)

    # ── 5. attendance_records ─────────────────────────────────────────────
    op.execute(f"""
        CREATE TABLE attendance_records (
            id               UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id      UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            session_date     DATE NOT NULL,
            clock_in         TIMESTAMPTZ NOT NULL,
            clock_out        TIMESTAMPTZ,
            duration         INTEGER,
            status           {_enum("status", "attendance_status")} NOT NULL DEFAULT 'In Progress',
            arrival_status   {_enum("arrival_status", "arrival_status")},
            late_by_minutes  INTEGER NOT NULL DEFAULT 0,
            shift_id         UUID REFERENCES shifts(id) ON DELETE SET NULL,
            notes            TEXT,
            ip_address       INET,
            edited_by        UUID REFERENCES employees(id) ON DELETE SET NULL,
            created_at       TIMESTAMPTZ DEFAULT NOW(),
            updated_at       TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_attendance_clock_order CHECK (clock_out IS NULL OR clock_out >= clock_in)
        )
    """)
    op.execute(
        "CREATE INDEX ix_attendance_employee_date ON attendance_records(employee_id, session_date)"
    )
    op.execute("CREATE INDEX ix_attendance_session_date ON attendance_records(session_date)")
    # At most one open session per employee
    op.execute("""
        CREATE UNIQUE INDEX uq_attendance_open_session
            ON attendance_records(employee_id)
            WHERE status = 'In Progress'
    """)

    # ── 6. leave_types / leave_requests ───────────────────────────────────
    op.execute("""
        CREATE TABLE leave_types (
            id                 UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name               VARCHAR(100) NOT NULL UNIQUE,
            description        TEXT,
            days_allowed       INTEGER NOT NULL,
            carry_forward      BOOLEAN NOT NULL DEFAULT FALSE,
            requires_approval  BOOLEAN NOT NULL DEFAULT TRUE,
            is_active          BOOLEAN NOT NULL DEFAULT TRUE,
            created_at         TIMESTAMPTZ DEFAULT NOW(),
            updated_at         TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_leave_type_days_allowed CHECK (days_allowed >= 0)
        )
    """)
    op.execute(f"""
        CREATE TABLE leave_requests (
            id              UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id     UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            leave_type_id   UUID NOT NULL REFERENCES leave_types(id),
            start_date      DATE NOT NULL,
            end_date        DATE NOT NULL,
            number_of_days  INTEGER NOT NULL,
            reason          TEXT,
            status          {_enum("status", "leave_status")} NOT NULL DEFAULT 'Pending',
            action_by       UUID REFERENCES employees(id) ON DELETE SET NULL,
            action_at       TIMESTAMPTZ,
            comments        TEXT,
            cancelled_at    TIMESTAMPTZ,
            created_at      TIMESTAMPTZ DEFAULT NOW(),
            updated_at      TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_leave_request_dates CHECK (end_date >= start_date),
            CONSTRAINT ck_leave_request_days  CHECK (number_of_days > 0)
        )
    """)
    op.execute(
        "CREATE INDEX ix_leave_requests_employee_status ON leave_requests(employee_id, status)"
    )
    op.execute("CREATE INDEX ix_leave_requests_dates ON leave_requests(start_date, end_date)")

    # ── 7. tasks ──────────────────────────────────────────────────────────
    op.execute(f"""
        CREATE TABLE tasks (
            id             UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            title          VARCHAR(200) NOT NULL,
            description    TEXT,
            assigned_to    UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            department_id  UUID REFERENCES departments(id) ON DELETE SET NULL,
            deadline       DATE,
            status         {_enum("status", "task_status")} NOT NULL DEFAULT 'pending',
            priority       {_enum("priority", "task_priority")} NOT NULL DEFAULT 'medium',
            created_by     UUID REFERENCES employees(id) ON DELETE SET NULL,
            completed_at   TIMESTAMPTZ,
            created_at     TIMESTAMPTZ DEFAULT NOW(),
            updated_at     TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_tasks_assigned_status ON tasks(assigned_to, status)")
    op.execute("CREATE INDEX ix_tasks_department_id   ON tasks(department_id)")

    # ── 8. notifications ──────────────────────────────────────────────────
    op.execute(f"""
        CREATE TABLE notifications (
            id            UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            recipient_id  UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            type          {_enum("type", "notification_type")} NOT NULL DEFAULT 'info',
            title         VARCHAR(200) NOT NULL,
            message       TEXT NOT NULL,
            action_url    VARCHAR(500),
            entity_type   VARCHAR(50),
            entity_id     UUID,
            is_read       BOOLEAN NOT NULL DEFAULT FALSE,
            read_at       TIMESTAMPTZ,
            created_at    TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute(
        "CREATE INDEX ix_notifications_recipient_read ON notifications(recipient_id, is_read)"
    )

    # ── 9. audit_trail ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE audit_trail (
            id           UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            actor_id     UUID REFERENCES employees(id) ON DELETE SET NULL,
            action       VARCHAR(50) NOT NULL,
            entity_type  VARCHAR(50) NOT NULL,
            entity_id    UUID NOT NULL,
            old_values   JSONB,
            new_values   JSONB,
            ip_address   INET,
            user_agent   TEXT,
            created_at   TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_audit_trail_actor_id   ON audit_trail(actor_id)")
    op.execute("CREATE INDEX ix_audit_trail_entity     ON audit_trail(entity_type, entity_id)")
    op.execute("CREATE INDEX ix_audit_trail_created_at ON audit_trail(created_at)")
    op.execute("CREATE INDEX ix_audit_trail_action     ON audit_trail(action)")

    # ── Seed data ─────────────────────────────────────────────────────────
    op.execute("""
        INSERT INTO leave_types (name, description, days_allowed, carry_forward, requires_approval) VALUES
        ('Annual Leave',   'Paid annual vacation',          20, TRUE,  TRUE),
        ('Sick Leave',     'Illness or medical appointments', 10, FALSE, TRUE),
        ('Personal Leave', 'Personal matters',               3, FALSE, TRUE)
    """)


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    # Drop tables in reverse dependency order
    tables = [
        "audit_trail",
        "notifications",
        "tasks",
        "leave_requests",
        "leave_types",
        "attendance_records",
        "schedule_employees",
        "schedules",
        "shifts",
        "user_sessions",
    ]
    for t in tables:
        op.execute(f"DROP TABLE IF EXISTS {t} CASCADE")

    # Drop deferred FKs before dropping employees / departments
    op.execute("ALTER TABLE departments DROP CONSTRAINT IF EXISTS fk_dept_manager")
    op.execute("DROP TABLE IF EXISTS employees CASCADE")
    op.execute("DROP TABLE IF EXISTS departments CASCADE")

    op.execute('DROP EXTENSION IF EXISTS "uuid-ossp"')

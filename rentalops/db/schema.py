"""Booking schema definition and initialization.

Reference tables (clients, employees, equipment) are owned elsewhere; they are
created here only when missing so the engine can run standalone.
"""

import structlog

from rentalops.db.gateway import StorageGateway

logger = structlog.get_logger(__name__)

SCHEMA_VERSION = 1

# Each statement is a separate string so they run one at a time
_SCHEMA_STATEMENTS = [
    # Reference entities
    """CREATE TABLE IF NOT EXISTS clients (
        id BIGSERIAL PRIMARY KEY,
        name TEXT NOT NULL,
        document TEXT
    )""",
    """CREATE TABLE IF NOT EXISTS employees (
        id BIGSERIAL PRIMARY KEY,
        name TEXT NOT NULL,
        position TEXT,
        is_active BOOLEAN NOT NULL DEFAULT TRUE
    )""",
    """CREATE TABLE IF NOT EXISTS equipment (
        id BIGSERIAL PRIMARY KEY,
        name TEXT NOT NULL
    )""",

    # Key/value settings (order number counter)
    """CREATE TABLE IF NOT EXISTS system_settings (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL
    )""",

    # Jobs (work orders)
    """CREATE TABLE IF NOT EXISTS jobs (
        id BIGSERIAL PRIMARY KEY,
        order_number TEXT NOT NULL UNIQUE,
        description TEXT,
        value NUMERIC(12, 2) NOT NULL DEFAULT 0 CHECK (value >= 0),
        start_date DATE,
        end_date DATE,
        arrival_time TIME,
        event_start_time TIME,
        event_end_time TIME,
        status TEXT NOT NULL DEFAULT 'scheduled'
            CHECK (status IN ('scheduled', 'confirmed', 'in_progress',
                              'finished', 'cancelled')),
        payment_status TEXT NOT NULL DEFAULT 'pending'
            CHECK (payment_status IN ('pending', 'paid')),
        client_id BIGINT REFERENCES clients(id) ON DELETE CASCADE,
        operator_id BIGINT REFERENCES employees(id) ON DELETE SET NULL,
        street TEXT,
        street_number TEXT,
        district TEXT,
        city TEXT,
        state TEXT,
        postal_code TEXT,
        requester_name TEXT,
        requester_email TEXT,
        requester_phone TEXT,
        payer_name TEXT,
        payer_tax_id TEXT,
        payer_email TEXT,
        payer_postal_code TEXT,
        payer_street TEXT,
        payer_number TEXT,
        payer_district TEXT,
        payer_city TEXT,
        payer_state TEXT,
        payer_address TEXT,
        payment_method TEXT,
        payment_terms TEXT,
        payment_term_days INTEGER CHECK (payment_term_days >= 0),
        due_date DATE,
        discount_percentage NUMERIC(7, 4) CHECK (discount_percentage >= 0),
        discount_amount NUMERIC(12, 2) NOT NULL DEFAULT 0 CHECK (discount_amount >= 0),
        discount_reason TEXT,
        notes TEXT,
        version INTEGER NOT NULL DEFAULT 1,
        created_by TEXT,
        updated_by TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )""",

    # Billable line items, owned by one job
    """CREATE TABLE IF NOT EXISTS job_line_items (
        id BIGSERIAL PRIMARY KEY,
        job_id BIGINT NOT NULL REFERENCES jobs(id) ON DELETE CASCADE,
        position INTEGER NOT NULL DEFAULT 0,
        description TEXT NOT NULL,
        quantity INTEGER NOT NULL CHECK (quantity > 0),
        unit_price NUMERIC(12, 2) NOT NULL CHECK (unit_price >= 0),
        line_discount NUMERIC(12, 2) NOT NULL DEFAULT 0 CHECK (line_discount >= 0),
        equipment_id BIGINT REFERENCES equipment(id) ON DELETE SET NULL
    )""",

    # Crew assignments, owned by one job
    """CREATE TABLE IF NOT EXISTS job_crew (
        id BIGSERIAL PRIMARY KEY,
        job_id BIGINT NOT NULL REFERENCES jobs(id) ON DELETE CASCADE,
        position INTEGER NOT NULL DEFAULT 0,
        employee_id BIGINT NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
        role TEXT NOT NULL
    )""",

    # Crew schedule entries derived from crew assignments
    """CREATE TABLE IF NOT EXISTS crew_schedule (
        id BIGSERIAL PRIMARY KEY,
        job_id BIGINT REFERENCES jobs(id) ON DELETE CASCADE,
        employee_id BIGINT NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
        start_date DATE NOT NULL,
        end_date DATE NOT NULL,
        kind TEXT NOT NULL DEFAULT 'work',
        note TEXT
    )""",

    # Indexes
    "CREATE INDEX IF NOT EXISTS idx_jobs_start_date ON jobs(start_date)",
    "CREATE INDEX IF NOT EXISTS idx_jobs_revenue ON jobs(status, payment_status, start_date)",
    "CREATE INDEX IF NOT EXISTS idx_job_line_items_job ON job_line_items(job_id)",
    "CREATE INDEX IF NOT EXISTS idx_job_crew_job ON job_crew(job_id)",
    "CREATE INDEX IF NOT EXISTS idx_crew_schedule_job ON crew_schedule(job_id)",
    "CREATE INDEX IF NOT EXISTS idx_crew_schedule_employee ON crew_schedule(employee_id, start_date)",
]


async def apply_schema(gateway: StorageGateway) -> None:
    """Create all booking tables and indexes. Safe to run repeatedly."""
    async with gateway.transaction() as tx:
        for stmt in _SCHEMA_STATEMENTS:
            await tx.execute(stmt)
    logger.info(
        "booking_schema_applied",
        schema_version=SCHEMA_VERSION,
        statements=len(_SCHEMA_STATEMENTS),
    )

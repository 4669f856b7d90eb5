"""Initial schema: users, events, bookings, QR codes and the scan log.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

LIVE_BOOKING = sa.text("status <> 'cancelled' AND deleted_at IS NULL")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Users table
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("role", sa.String(50), nullable=False, server_default=sa.text("'student'")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    # Events table
    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ends_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("organizer_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("booking_enabled", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("booking_capacity", sa.Integer(), nullable=True),
        sa.Column("allow_waitlist", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("approval_mode", sa.String(20), nullable=False, server_default=sa.text("'auto'")),
        sa.Column("booking_deadline_hours", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("cancellation_deadline_hours", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("booking_button_label", sa.String(100), nullable=True),
        sa.Column("confirmation_checkbox_1_text", sa.String(500), nullable=True),
        sa.Column("confirmation_checkbox_1_required", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("confirmation_checkbox_2_text", sa.String(500), nullable=True),
        sa.Column("confirmation_checkbox_2_required", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("qr_attendance_enabled", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("feedback_enabled", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("auto_generate_certificate", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column(
            "feedback_required_for_certificate", sa.Boolean(), nullable=False, server_default=sa.text("false")
        ),
        sa.Column("confirmed_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.CheckConstraint("confirmed_count >= 0", name="check_confirmed_count_non_negative"),
        sa.CheckConstraint(
            "booking_capacity IS NULL OR booking_capacity > 0", name="check_booking_capacity_positive"
        ),
        # Last line of defence against overbooking if a code path skips the
        # conditional UPDATE
        sa.CheckConstraint(
            "booking_capacity IS NULL OR confirmed_count <= booking_capacity",
            name="check_confirmed_lte_capacity",
        ),
        sa.CheckConstraint("ends_at >= starts_at", name="check_event_ends_after_start"),
        sa.CheckConstraint("approval_mode IN ('auto', 'manual')", name="check_event_approval_mode"),
    )
    op.create_index("ix_events_id", "events", ["id"])
    # Listings filter on upcoming events and sort by start
    op.create_index("ix_events_starts_at", "events", ["starts_at"])

    # Bookings table
    op.create_table(
        "event_bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'confirmed'")),
        sa.Column("booked_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("checked_in", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("checked_in_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("confirmation_checkbox_1_checked", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("confirmation_checkbox_2_checked", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("certificates_generated", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("certificate_email_sent", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deleted_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'waitlist', 'cancelled', 'attended', 'no_show')",
            name="check_booking_status",
        ),
    )
    op.create_index("ix_event_bookings_id", "event_bookings", ["id"])
    op.create_index("ix_event_bookings_event_id", "event_bookings", ["event_id"])
    op.create_index("ix_event_bookings_user_id", "event_bookings", ["user_id"])
    # One live booking per user and event; cancelled or deleted rows free the slot
    op.create_index(
        "uq_live_booking_per_user_event",
        "event_bookings",
        ["event_id", "user_id"],
        unique=True,
        postgresql_where=LIVE_BOOKING,
        sqlite_where=LIVE_BOOKING,
    )
    # Waitlist promotion reads (event_id, status='waitlist') ordered by booked_at
    op.create_index("ix_event_bookings_queue", "event_bookings", ["event_id", "status", "booked_at"])

    # QR codes
    op.create_table(
        "event_qr_codes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
        sa.Column("qr_code_data", sa.Text(), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("scan_window_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("scan_window_end", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_event_qr_codes_id", "event_qr_codes", ["id"])
    op.create_index("ix_event_qr_codes_event_id", "event_qr_codes", ["event_id"])

    # Scan log
    op.create_table(
        "qr_code_scans",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "qr_code_id", sa.Integer(), sa.ForeignKey("event_qr_codes.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column(
            "booking_id", sa.Integer(), sa.ForeignKey("event_bookings.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column("scanned_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("scan_success", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("failure_reason", sa.String(255), nullable=True),
    )
    op.create_index("ix_qr_code_scans_id", "qr_code_scans", ["id"])
    op.create_index("ix_qr_code_scans_lookup", "qr_code_scans", ["qr_code_id", "user_id", "scan_success"])


def downgrade() -> None:
    op.drop_table("qr_code_scans")
    op.drop_table("event_qr_codes")
    op.drop_table("event_bookings")
    op.drop_table("events")
    op.drop_table("users")

"""initial schema: users, meetings, payments, loans, activity log

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = 'a1b2c3d4e5f6'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    user_role = op.create_table(
        "user_role",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(50), nullable=False, unique=True),
        sa.Column("description", sa.String(200), nullable=True),
    )
    op.create_index("ix_user_role_name", "user_role", ["name"])
    op.bulk_insert(user_role, [
        {"id": 1, "name": "Secretary", "description": "Secretary with full access"},
        {"id": 2, "name": "Member", "description": "Regular member with limited access"},
        {"id": 3, "name": "President", "description": "President of the association"},
        {"id": 4, "name": "Treasurer", "description": "Treasurer of the association"},
    ])

    op.create_table(
        "user",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("address", sa.String(200), nullable=False, server_default=""),
        sa.Column("email", sa.String(100), nullable=False),
        sa.Column("phone", sa.String(20), nullable=False, server_default=""),
        sa.Column("user_role_id", sa.Integer(), sa.ForeignKey("user_role.id"), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("joining_date", sa.Date(), nullable=True),
        sa.Column("inactive_date", sa.Date(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index("ix_user_email", "user", ["email"], unique=True)
    op.create_index("ix_user_user_role_id", "user", ["user_role_id"])

    op.create_table(
        "user_login",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
    )
    op.create_index("ix_user_login_user_id", "user_login", ["user_id"], unique=True)
    op.create_index("ix_user_login_username", "user_login", ["username"], unique=True)

    op.create_table(
        "meeting",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("time", sa.Time(), nullable=False),
        sa.Column("description", sa.String(200), nullable=True),
        sa.Column("location", sa.String(100), nullable=True),
        sa.Column("meeting_minutes", sa.Text(), nullable=True),
    )
    op.create_index("ix_meeting_date", "meeting", ["date"])

    op.create_table(
        "attendance",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("meeting_id", sa.Integer(), sa.ForeignKey("meeting.id"), nullable=False),
        sa.Column("is_present", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.UniqueConstraint("user_id", "meeting_id", name="uq_attendance_user_meeting"),
    )
    op.create_index("ix_attendance_user_id", "attendance", ["user_id"])
    op.create_index("ix_attendance_meeting_id", "attendance", ["meeting_id"])

    op.create_table(
        "meeting_payment",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("meeting_id", sa.Integer(), sa.ForeignKey("meeting.id"), nullable=False),
        sa.Column("main_payment", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("weekly_payment", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index("ix_meeting_payment_user_id", "meeting_payment", ["user_id"])
    op.create_index("ix_meeting_payment_meeting_id", "meeting_payment", ["meeting_id"])

    loan_type = op.create_table(
        "loan_type",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("loan_type_name", sa.String(50), nullable=False, unique=True),
        sa.Column("interest_rate", sa.Numeric(5, 2), nullable=False),
    )
    op.bulk_insert(loan_type, [
        {"id": 1, "loan_type_name": "Marriage Loan", "interest_rate": 1.5},
        {"id": 2, "loan_type_name": "Personal Loan", "interest_rate": 2.5},
    ])

    op.create_table(
        "loan",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("loan_type_id", sa.Integer(), sa.ForeignKey("loan_type.id"), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("closed_date", sa.Date(), nullable=True),
        sa.Column("interest_received", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("loan_term", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("status", sa.String(10), nullable=False, server_default="active"),
        sa.Column("cheque_number", sa.String(50), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index("ix_loan_user_id", "loan", ["user_id"])
    op.create_index("ix_loan_due_date", "loan", ["due_date"])

    op.create_table(
        "loan_request",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("loan_type_id", sa.Integer(), sa.ForeignKey("loan_type.id"), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("loan_term", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("cheque_number", sa.String(50), nullable=True),
        sa.Column("status", sa.String(9), nullable=False, server_default="Requested"),
        sa.Column("request_date", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("processed_date", sa.DateTime(), nullable=True),
        sa.Column("processed_by_user_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=True),
    )
    op.create_index("ix_loan_request_user_id", "loan_request", ["user_id"])
    op.create_index("ix_loan_request_status", "loan_request", ["status"])

    op.create_table(
        "user_activity",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("user_name", sa.String(100), nullable=True),
        sa.Column("user_role", sa.String(50), nullable=True),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("http_method", sa.String(10), nullable=True),
        sa.Column("endpoint", sa.String(255), nullable=True),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("user_agent", sa.String(500), nullable=True),
        sa.Column("status_code", sa.Integer(), nullable=False, server_default="200"),
        sa.Column("is_success", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
        sa.Column("duration", sa.Integer(), nullable=True),
    )
    op.create_index("ix_user_activity_user_id", "user_activity", ["user_id"])
    op.create_index("ix_user_activity_action", "user_activity", ["action"])
    op.create_index("ix_user_activity_entity_type", "user_activity", ["entity_type"])
    op.create_index("ix_user_activity_timestamp", "user_activity", ["timestamp"])
    op.create_index("ix_user_activity_user_timestamp", "user_activity", ["user_id", "timestamp"])


def downgrade():
    op.drop_table("user_activity")
    op.drop_table("loan_request")
    op.drop_table("loan")
    op.drop_table("loan_type")
    op.drop_table("meeting_payment")
    op.drop_table("attendance")
    op.drop_table("meeting")
    op.drop_table("user_login")
    op.drop_table("user")
    op.drop_table("user_role")

"""initial ledger schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


role_enum = postgresql.ENUM("admin", "member", name="roleenum", create_type=False)
member_status_enum = postgresql.ENUM("pending", "active", "inactive", name="memberstatusenum", create_type=False)
split_type_enum = postgresql.ENUM("equal", "percentage", "manual", name="splittypeenum", create_type=False)
transaction_type_enum = postgresql.ENUM(
    "settlement_sent",
    "settlement_received",
    "expense_paid",
    "expense_owed",
    name="transactiontypeenum",
    create_type=False,
)


def upgrade() -> None:
    bind = op.get_bind()
    role_enum.create(bind, checkfirst=True)
    member_status_enum.create(bind, checkfirst=True)
    split_type_enum.create(bind, checkfirst=True)
    transaction_type_enum.create(bind, checkfirst=True)

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("avatar_url", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "families",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("created_by_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "family_members",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("family_id", sa.Integer(), sa.ForeignKey("families.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("role", role_enum, nullable=False, server_default="member"),
        sa.Column("status", member_status_enum, nullable=False, server_default="pending"),
        sa.Column("invited_by_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("joined_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("family_id", "user_id", name="uq_family_members_family_user"),
    )
    op.create_index("ix_family_members_family_status", "family_members", ["family_id", "status"], unique=False)

    op.create_table(
        "wallets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "family_member_id",
            sa.Integer(),
            sa.ForeignKey("family_members.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("balance", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "projects",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("family_id", sa.Integer(), sa.ForeignKey("families.id"), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("budget", sa.Numeric(12, 2), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("budget IS NULL OR budget >= 0", name="ck_projects_budget_non_negative"),
    )
    op.create_index("ix_projects_family", "projects", ["family_id"], unique=False)

    op.create_table(
        "expenses",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("family_id", sa.Integer(), sa.ForeignKey("families.id"), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("category", sa.String(length=100), nullable=False, server_default="other"),
        sa.Column("paid_by_member_id", sa.Integer(), sa.ForeignKey("family_members.id"), nullable=False),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("amount > 0", name="ck_expenses_amount_positive"),
    )
    op.create_index("ix_expenses_family_date", "expenses", ["family_id", "date"], unique=False)

    op.create_table(
        "expense_splits",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("expense_id", sa.Integer(), sa.ForeignKey("expenses.id", ondelete="CASCADE"), nullable=False),
        sa.Column("member_id", sa.Integer(), sa.ForeignKey("family_members.id"), nullable=False),
        sa.Column("amount_owed", sa.Numeric(12, 2), nullable=False),
        sa.Column("split_type", split_type_enum, nullable=False),
        sa.Column("percentage", sa.Numeric(7, 4), nullable=True),
        sa.UniqueConstraint("expense_id", "member_id", name="uq_expense_splits_expense_member"),
    )
    op.create_index("ix_expense_splits_expense", "expense_splits", ["expense_id"], unique=False)

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("wallet_id", sa.Integer(), sa.ForeignKey("wallets.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", transaction_type_enum, nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column(
            "related_expense_id",
            sa.Integer(),
            sa.ForeignKey("expenses.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column(
            "related_member_id",
            sa.Integer(),
            sa.ForeignKey("family_members.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),
    )
    op.create_index("ix_transactions_wallet_created", "transactions", ["wallet_id", "created_at"], unique=False)
    op.create_index("ix_transactions_related_expense", "transactions", ["related_expense_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_transactions_related_expense", table_name="transactions")
    op.drop_index("ix_transactions_wallet_created", table_name="transactions")
    op.drop_table("transactions")
    op.drop_index("ix_expense_splits_expense", table_name="expense_splits")
    op.drop_table("expense_splits")
    op.drop_index("ix_expenses_family_date", table_name="expenses")
    op.drop_table("expenses")
    op.drop_index("ix_projects_family", table_name="projects")
    op.drop_table("projects")
    op.drop_table("wallets")
    op.drop_index("ix_family_members_family_status", table_name="family_members")
    op.drop_table("family_members")
    op.drop_table("families")
    op.drop_table("users")

    bind = op.get_bind()
    transaction_type_enum.drop(bind, checkfirst=True)
    split_type_enum.drop(bind, checkfirst=True)
    member_status_enum.drop(bind, checkfirst=True)
    role_enum.drop(bind, checkfirst=True)

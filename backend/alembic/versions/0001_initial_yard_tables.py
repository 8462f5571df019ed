"""Initial yard schema: locations, stacking positions, coils, movements, stock takes.

Revision ID: 0001
Revises: (none)
Create Date: 2026-10-19

Run with:
    alembic upgrade head
"""

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

from alembic import op
import sqlalchemy as sa


def upgrade() -> None:
    # ── Yard layout ──────────────────────────────────────────

    op.create_table(
        "storage_locations",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("location_code", sa.String(50), nullable=False, unique=True),
        sa.Column("bay", sa.String(100), nullable=False),
        sa.Column("zone", sa.String(100), nullable=False),
        sa.Column("row_num", sa.Integer()),
        sa.Column("col_num", sa.Integer()),
        sa.Column("capacity_tons", sa.Float(), server_default="0"),
        sa.Column("location_type", sa.String(30), server_default="ground"),
        sa.Column("is_active", sa.Boolean(), server_default="true"),
        sa.Column("is_visible", sa.Boolean(), server_default="true"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_storage_locations_location_code", "storage_locations", ["location_code"])
    op.create_index("ix_storage_locations_bay", "storage_locations", ["bay"])
    op.create_index("ix_storage_locations_zone", "storage_locations", ["zone"])

    op.create_table(
        "stacking_positions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("placeholder_id", sa.String(100), nullable=False, unique=True),
        sa.Column("layer", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("type", sa.String(20), nullable=False, server_default="ground"),
        sa.Column("primary_ground_location_id", sa.String(36),
                  sa.ForeignKey("storage_locations.id"), nullable=False),
        sa.Column("primary_ground_location_code", sa.String(50)),
        sa.Column("supported_by_ground_location_ids", sa.JSON(), server_default="[]"),
        sa.Column("supported_by_ground_location_codes", sa.JSON(), server_default="[]"),
        sa.Column("bay", sa.String(100)),
        sa.Column("zone", sa.String(100)),
        sa.Column("coil_barcode", sa.String(100)),
        sa.Column("is_active", sa.Boolean(), server_default="true"),
        sa.Column("is_visible", sa.Boolean(), server_default="true"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_stacking_positions_placeholder_id", "stacking_positions", ["placeholder_id"])
    op.create_index("ix_stacking_positions_primary_ground_location_id", "stacking_positions",
                    ["primary_ground_location_id"])
    op.create_index("ix_stacking_positions_bay", "stacking_positions", ["bay"])
    op.create_index("ix_stacking_positions_zone", "stacking_positions", ["zone"])
    op.create_index("ix_stacking_positions_coil_barcode", "stacking_positions", ["coil_barcode"])

    # ── Coils ────────────────────────────────────────────────

    op.create_table(
        "coils",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("barcode", sa.String(100), nullable=False, unique=True),
        sa.Column("coil_type", sa.String(100)),
        sa.Column("weight_tons", sa.Float()),
        sa.Column("width_mm", sa.Float()),
        sa.Column("thickness_mm", sa.Float()),
        sa.Column("outer_diameter_mm", sa.Float()),
        sa.Column("supplier", sa.String(255)),
        sa.Column("status", sa.String(20), server_default="incoming"),
        sa.Column("priority", sa.String(20), server_default="low"),
        sa.Column("current_stacking_position_id", sa.String(36),
                  sa.ForeignKey("stacking_positions.id")),
        sa.Column("storage_location", sa.String(50)),
        sa.Column("received_date", sa.DateTime()),
        sa.Column("last_moved_date", sa.DateTime()),
        sa.Column("notes", sa.Text()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_coils_barcode", "coils", ["barcode"])
    op.create_index("ix_coils_status", "coils", ["status"])
    op.create_index("ix_coils_current_stacking_position_id", "coils", ["current_stacking_position_id"])

    op.create_table(
        "coil_movements",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("coil_barcode", sa.String(100), nullable=False),
        sa.Column("from_location", sa.String(100)),
        sa.Column("to_location", sa.String(100)),
        sa.Column("movement_type", sa.String(20), nullable=False),
        sa.Column("movement_date", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("moved_by", sa.String(200)),
        sa.Column("reason", sa.Text()),
        sa.Column("remarks", sa.Text()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_coil_movements_coil_barcode", "coil_movements", ["coil_barcode"])
    op.create_index("ix_coil_movements_movement_type", "coil_movements", ["movement_type"])
    op.create_index("ix_coil_movements_movement_date", "coil_movements", ["movement_date"])

    # ── Stock takes ──────────────────────────────────────────

    op.create_table(
        "stock_takes",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("stock_take_date", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("location", sa.String(255), nullable=False),
        sa.Column("bay", sa.String(100), nullable=False),
        sa.Column("zone", sa.String(100)),
        sa.Column("coils_found", sa.JSON(), server_default="[]"),
        sa.Column("non_traceable_coils", sa.JSON(), server_default="[]"),
        sa.Column("empty_placeholders", sa.JSON(), server_default="[]"),
        sa.Column("physical_count", sa.Integer(), server_default="0"),
        sa.Column("system_count", sa.Integer(), server_default="0"),
        sa.Column("variance", sa.Integer(), server_default="0"),
        sa.Column("remarks", sa.Text()),
        sa.Column("status", sa.String(20), server_default="completed"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_stock_takes_stock_take_date", "stock_takes", ["stock_take_date"])
    op.create_index("ix_stock_takes_bay", "stock_takes", ["bay"])
    op.create_index("ix_stock_takes_status", "stock_takes", ["status"])


def downgrade() -> None:
    op.drop_table("stock_takes")
    op.drop_table("coil_movements")
    op.drop_table("coils")
    op.drop_table("stacking_positions")
    op.drop_table("storage_locations")

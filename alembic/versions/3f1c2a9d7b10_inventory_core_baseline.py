"""inventory_core_baseline

Revision ID: 3f1c2a9d7b10
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3f1c2a9d7b10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _ts(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def _money(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.Numeric(14, 2), nullable=nullable)


def upgrade() -> None:
    # ---------- 主数据（只读） ----------
    op.create_table(
        "products",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("sku", sa.String(64), nullable=False, unique=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("safety_stock", sa.Integer, nullable=False, server_default="0"),
        sa.Column("min_order_qty", sa.Integer, nullable=False, server_default="1"),
        _money("cost_price", nullable=True),
        sa.Column("tax_rate", sa.Numeric(5, 4), nullable=False, server_default="0.05"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
    )
    op.create_table(
        "warehouses",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("is_default", sa.Boolean, nullable=False, server_default=sa.false()),
    )
    op.create_table(
        "suppliers",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
    )
    op.create_table(
        "supplier_prices",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("supplier_id", sa.Integer, sa.ForeignKey("suppliers.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("product_id", sa.Integer, sa.ForeignKey("products.id", ondelete="RESTRICT"), nullable=False),
        _money("unit_price"),
        sa.Column("is_primary", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("effective_date", sa.Date, nullable=False),
        sa.Column("expiry_date", sa.Date, nullable=True),
        sa.Column("min_order_qty", sa.Integer, nullable=False, server_default="1"),
        sa.Column("lead_time_days", sa.Integer, nullable=False, server_default="7"),
    )
    op.create_index("ix_supplier_prices_supplier_id", "supplier_prices", ["supplier_id"])
    op.create_index("ix_supplier_prices_product_id", "supplier_prices", ["product_id"])

    # ---------- 余额 + 台账 ----------
    op.create_table(
        "inventories",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("product_id", sa.Integer, sa.ForeignKey("products.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("warehouse_id", sa.Integer, sa.ForeignKey("warehouses.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("quantity", sa.Integer, nullable=False, server_default="0"),
        sa.Column("version", sa.Integer, nullable=False, server_default="0"),
        _ts("created_at"),
        _ts("updated_at"),
        sa.UniqueConstraint("product_id", "warehouse_id", name="uq_inventories_product_wh"),
        sa.CheckConstraint("quantity >= 0", name="ck_inventories_quantity_non_negative"),
    )
    op.create_index("ix_inventories_product_id", "inventories", ["product_id"])
    op.create_index("ix_inventories_warehouse_id", "inventories", ["warehouse_id"])

    op.create_table(
        "inventory_movements",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("product_id", sa.Integer, nullable=False),
        sa.Column("warehouse_id", sa.Integer, nullable=False),
        sa.Column("movement_type", sa.String(32), nullable=False),
        sa.Column("quantity", sa.Integer, nullable=False),
        sa.Column("before_qty", sa.Integer, nullable=False),
        sa.Column("after_qty", sa.Integer, nullable=False),
        sa.Column("reference_type", sa.String(32), nullable=False),
        sa.Column("reference_no", sa.String(64), nullable=False),
        _money("unit_cost", nullable=True),
        sa.Column("notes", sa.String(255), nullable=True),
        sa.Column("actor", sa.String(64), nullable=False),
        _ts("created_at"),
        sa.CheckConstraint("after_qty = before_qty + quantity", name="ck_movements_arithmetic"),
    )
    op.create_index("ix_movements_dims", "inventory_movements", ["product_id", "warehouse_id"])
    op.create_index("ix_inventory_movements_reference_no", "inventory_movements", ["reference_no"])

    op.create_table(
        "document_sequences",
        sa.Column("document_type", sa.String(8), primary_key=True),
        sa.Column("seq_date", sa.Date, primary_key=True),
        sa.Column("current_value", sa.Integer, nullable=False, server_default="0"),
    )

    # ---------- 调整单 ----------
    op.create_table(
        "stock_adjustments",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("adjustment_no", sa.String(32), nullable=False, unique=True),
        sa.Column("warehouse_id", sa.Integer, nullable=False),
        sa.Column("product_id", sa.Integer, nullable=False),
        sa.Column("adjustment_date", sa.Date, nullable=False),
        sa.Column("before_qty", sa.Integer, nullable=False),
        sa.Column("after_qty", sa.Integer, nullable=False),
        sa.Column("delta", sa.Integer, nullable=False),
        sa.Column("reason", sa.String(16), nullable=False),
        sa.Column("notes", sa.String(255), nullable=True),
        sa.Column("source_ref", sa.String(64), nullable=True),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("created_by", sa.String(64), nullable=False),
        _ts("created_at"),
    )
    op.create_index("ix_stock_adjustments_warehouse_id", "stock_adjustments", ["warehouse_id"])
    op.create_index("ix_stock_adjustments_product_id", "stock_adjustments", ["product_id"])
    op.create_index("ix_stock_adjustments_source_ref", "stock_adjustments", ["source_ref"])

    # ---------- 调拨 ----------
    op.create_table(
        "stock_transfers",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("transfer_no", sa.String(32), nullable=False, unique=True),
        sa.Column("from_warehouse_id", sa.Integer, nullable=False),
        sa.Column("to_warehouse_id", sa.Integer, nullable=False),
        sa.Column("request_date", sa.Date, nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("notes", sa.String(255), nullable=True),
        sa.Column("requested_by", sa.String(64), nullable=False),
        sa.Column("approved_by", sa.String(64), nullable=True),
        sa.Column("shipped_by", sa.String(64), nullable=True),
        sa.Column("received_by", sa.String(64), nullable=True),
        _ts("shipped_at", nullable=True),
        _ts("received_at", nullable=True),
        _ts("cancelled_at", nullable=True),
        _ts("created_at"),
        _ts("updated_at"),
        sa.CheckConstraint("from_warehouse_id <> to_warehouse_id", name="ck_transfers_distinct_wh"),
    )
    op.create_index("ix_stock_transfers_from_warehouse_id", "stock_transfers", ["from_warehouse_id"])
    op.create_index("ix_stock_transfers_to_warehouse_id", "stock_transfers", ["to_warehouse_id"])
    op.create_table(
        "stock_transfer_lines",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "transfer_id", sa.Integer, sa.ForeignKey("stock_transfers.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("product_id", sa.Integer, nullable=False),
        sa.Column("requested_qty", sa.Integer, nullable=False),
        sa.Column("notes", sa.String(255), nullable=True),
        sa.CheckConstraint("requested_qty > 0", name="ck_transfer_lines_qty_positive"),
    )
    op.create_index("ix_stock_transfer_lines_transfer_id", "stock_transfer_lines", ["transfer_id"])

    # ---------- 采购 ----------
    op.create_table(
        "purchase_orders",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("po_no", sa.String(32), nullable=False, unique=True),
        sa.Column("supplier_id", sa.Integer, nullable=False),
        sa.Column("warehouse_id", sa.Integer, nullable=False),
        sa.Column("order_date", sa.Date, nullable=False),
        sa.Column("expected_date", sa.Date, nullable=True),
        sa.Column("status", sa.String(16), nullable=False),
        _money("subtotal"),
        _money("tax_amount"),
        _money("total_amount"),
        sa.Column("notes", sa.String(255), nullable=True),
        sa.Column("buyer", sa.String(64), nullable=False),
        sa.Column("approved_by", sa.String(64), nullable=True),
        _ts("approved_at", nullable=True),
        _ts("last_received_at", nullable=True),
        _ts("closed_at", nullable=True),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("ix_purchase_orders_supplier_id", "purchase_orders", ["supplier_id"])
    op.create_index("ix_purchase_orders_warehouse_id", "purchase_orders", ["warehouse_id"])
    op.create_index("ix_purchase_orders_wh_status", "purchase_orders", ["warehouse_id", "status"])
    op.create_table(
        "purchase_order_lines",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("po_id", sa.Integer, sa.ForeignKey("purchase_orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("product_id", sa.Integer, nullable=False),
        sa.Column("ordered_qty", sa.Integer, nullable=False),
        sa.Column("received_qty", sa.Integer, nullable=False, server_default="0"),
        _money("unit_price"),
        _money("tax_amount"),
        _money("subtotal"),
        sa.Column("notes", sa.String(255), nullable=True),
        sa.CheckConstraint("ordered_qty > 0", name="ck_po_lines_ordered_positive"),
        sa.CheckConstraint("received_qty >= 0 AND received_qty <= ordered_qty", name="ck_po_lines_received_range"),
    )
    op.create_index("ix_purchase_order_lines_po_id", "purchase_order_lines", ["po_id"])

    op.create_table(
        "purchase_receipts",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("receipt_no", sa.String(32), nullable=False, unique=True),
        sa.Column("po_id", sa.Integer, sa.ForeignKey("purchase_orders.id"), nullable=False),
        sa.Column("po_no", sa.String(32), nullable=False),
        sa.Column("supplier_id", sa.Integer, nullable=False),
        sa.Column("warehouse_id", sa.Integer, nullable=False),
        sa.Column("receipt_date", sa.Date, nullable=False),
        sa.Column("total_arrived", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_received", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_rejected", sa.Integer, nullable=False, server_default="0"),
        _money("total_amount"),
        sa.Column("notes", sa.String(255), nullable=True),
        sa.Column("received_by", sa.String(64), nullable=False),
        _ts("created_at"),
    )
    op.create_index("ix_purchase_receipts_po_id", "purchase_receipts", ["po_id"])
    op.create_index("ix_purchase_receipts_warehouse_id", "purchase_receipts", ["warehouse_id"])
    op.create_table(
        "purchase_receipt_lines",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "receipt_id", sa.Integer, sa.ForeignKey("purchase_receipts.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("po_item_id", sa.Integer, sa.ForeignKey("purchase_order_lines.id"), nullable=False),
        sa.Column("product_id", sa.Integer, nullable=False),
        sa.Column("ordered_qty", sa.Integer, nullable=False),
        sa.Column("previously_received_qty", sa.Integer, nullable=False),
        sa.Column("pending_qty", sa.Integer, nullable=False),
        sa.Column("arrived_qty", sa.Integer, nullable=False),
        sa.Column("received_qty", sa.Integer, nullable=False),
        sa.Column("rejected_qty", sa.Integer, nullable=False, server_default="0"),
        sa.Column("reject_reason", sa.String(255), nullable=True),
        _money("unit_price"),
        sa.CheckConstraint(
            "arrived_qty >= 0 AND received_qty >= 0 AND rejected_qty >= 0",
            name="ck_receipt_lines_non_negative",
        ),
    )
    op.create_index("ix_purchase_receipt_lines_receipt_id", "purchase_receipt_lines", ["receipt_id"])
    op.create_index("ix_purchase_receipt_lines_po_item_id", "purchase_receipt_lines", ["po_item_id"])

    op.create_table(
        "purchase_returns",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("return_no", sa.String(32), nullable=False, unique=True),
        sa.Column("supplier_id", sa.Integer, nullable=False),
        sa.Column("warehouse_id", sa.Integer, nullable=False),
        sa.Column("return_date", sa.Date, nullable=False),
        sa.Column("po_no", sa.String(32), nullable=True),
        sa.Column("receipt_no", sa.String(32), nullable=True),
        sa.Column("reason", sa.String(16), nullable=False),
        sa.Column("handling", sa.String(16), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("total_qty", sa.Integer, nullable=False, server_default="0"),
        _money("total_amount"),
        sa.Column("notes", sa.String(255), nullable=True),
        sa.Column("created_by", sa.String(64), nullable=False),
        sa.Column("approved_by", sa.String(64), nullable=True),
        sa.Column("completed_by", sa.String(64), nullable=True),
        _ts("completed_at", nullable=True),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("ix_purchase_returns_supplier_id", "purchase_returns", ["supplier_id"])
    op.create_index("ix_purchase_returns_warehouse_id", "purchase_returns", ["warehouse_id"])
    op.create_table(
        "purchase_return_lines",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "return_id", sa.Integer, sa.ForeignKey("purchase_returns.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("product_id", sa.Integer, nullable=False),
        sa.Column("qty", sa.Integer, nullable=False),
        _money("unit_price"),
        _money("amount"),
        sa.Column("notes", sa.String(255), nullable=True),
        sa.CheckConstraint("qty > 0", name="ck_return_lines_qty_positive"),
    )
    op.create_index("ix_purchase_return_lines_return_id", "purchase_return_lines", ["return_id"])

    # ---------- 盘点 ----------
    op.create_table(
        "stock_counts",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("count_no", sa.String(32), nullable=False, unique=True),
        sa.Column("warehouse_id", sa.Integer, nullable=False),
        sa.Column("count_date", sa.Date, nullable=False),
        sa.Column("count_type", sa.String(16), nullable=False),
        sa.Column("scope", sa.String(255), nullable=True),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("total_items", sa.Integer, nullable=False, server_default="0"),
        sa.Column("counted_items", sa.Integer, nullable=False, server_default="0"),
        sa.Column("variance_items", sa.Integer, nullable=False, server_default="0"),
        _money("variance_amount"),
        sa.Column("notes", sa.String(255), nullable=True),
        sa.Column("created_by", sa.String(64), nullable=False),
        _ts("started_at", nullable=True),
        sa.Column("completed_by", sa.String(64), nullable=True),
        _ts("completed_at", nullable=True),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("ix_stock_counts_warehouse_id", "stock_counts", ["warehouse_id"])
    op.create_table(
        "stock_count_items",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("count_id", sa.Integer, sa.ForeignKey("stock_counts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("product_id", sa.Integer, nullable=False),
        sa.Column("system_qty", sa.Integer, nullable=False),
        sa.Column("counted_qty", sa.Integer, nullable=True),
        sa.Column("variance_qty", sa.Integer, nullable=False, server_default="0"),
        _money("unit_cost"),
        _money("variance_amount"),
        sa.Column("reason", sa.String(16), nullable=True),
        sa.Column("notes", sa.String(255), nullable=True),
        sa.Column("counted_by", sa.String(64), nullable=True),
        _ts("counted_at", nullable=True),
        sa.UniqueConstraint("count_id", "product_id", name="uq_stock_count_items_product"),
        sa.CheckConstraint("counted_qty IS NULL OR counted_qty >= 0", name="ck_count_items_counted"),
    )
    op.create_index("ix_stock_count_items_count_id", "stock_count_items", ["count_id"])

    # ---------- 审计 ----------
    op.create_table(
        "audit_events",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("category", sa.String(32), nullable=False),
        sa.Column("ref", sa.String(64), nullable=False),
        sa.Column("meta", sa.JSON, nullable=True),
        _ts("created_at"),
    )
    op.create_index("ix_audit_events_category", "audit_events", ["category"])
    op.create_index("ix_audit_events_ref", "audit_events", ["ref"])


def downgrade() -> None:
    for table in (
        "audit_events",
        "stock_count_items",
        "stock_counts",
        "purchase_return_lines",
        "purchase_returns",
        "purchase_receipt_lines",
        "purchase_receipts",
        "purchase_order_lines",
        "purchase_orders",
        "stock_transfer_lines",
        "stock_transfers",
        "stock_adjustments",
        "document_sequences",
        "inventory_movements",
        "inventories",
        "supplier_prices",
        "suppliers",
        "warehouses",
        "products",
    ):
        op.drop_table(table)

from __future__ import annotations

from ..extensions import db
from .catalog import MONEY, QUANTITY, as_number
from stationpos.time_utils import to_utc_z


ORDER_STATUSES = ("pending", "completed", "cancelled", "refunded")
PAYMENT_STATUSES = ("pending", "paid", "partially_paid", "failed")
ITEM_TYPES = ("standard", "fuel")


class Order(db.Model):
    """
    Sales ticket produced by checkout.

    Written exactly once, together with its lines and stock decrements.
    Lines are immutable afterwards; only status and payment_status may
    change (cancellation / refunds are handled elsewhere).

    Reporting reads status, total, created_at and lines[].product_id /
    lines[].quantity; keep those semantics stable.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_store_status", "store_id", "status"),
        db.Index("ix_orders_cashier_created", "cashier_id", "created_at"),
        db.Index("ix_orders_store_created", "store_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable reference (e.g., "ORD-20261019-48213")
    ref_code = db.Column(db.String(32), nullable=False, unique=True, index=True)

    cashier_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    updated_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    payment_status = db.Column(db.String(16), nullable=False, default="pending")
    total = db.Column(MONEY, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    version_id = db.Column(db.Integer, nullable=False, default=1)

    cashier = db.relationship("User", foreign_keys=[cashier_id])
    store = db.relationship("Store", backref=db.backref("orders", lazy=True))
    lines = db.relationship(
        "OrderLine",
        back_populates="order",
        order_by="OrderLine.position",
        cascade="all, delete-orphan",
        lazy="select",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Order id={self.id} ref_code={self.ref_code!r} total={self.total}>"

    def to_summary_dict(self) -> dict:
        return {
            "id": self.id,
            "ref_code": self.ref_code,
            "total": as_number(self.total),
            "status": self.status,
            "date": to_utc_z(self.created_at),
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "ref_code": self.ref_code,
            "store": {
                "id": self.store_id,
                "name": self.store.name if self.store else None,
            },
            "cashier": {
                "id": self.cashier_id,
                "name": self.cashier.full_name if self.cashier else None,
            },
            "status": self.status,
            "total": as_number(self.total),
            "payment_status": self.payment_status,
            "items": [line.to_dict() for line in self.lines],
            "items_count": len(self.lines),
            "created_at": to_utc_z(self.created_at),
        }


class OrderLine(db.Model):
    """
    One priced cart line.

    product_name / variant_name are snapshots taken at checkout so later
    catalog renames never rewrite history. variant_id is kept without a
    foreign key for the same reason.
    """
    __tablename__ = "order_lines"
    __table_args__ = (
        db.UniqueConstraint("order_id", "position", name="uq_order_lines_order_position"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)
    item_type = db.Column(db.String(16), nullable=False, default="standard")

    quantity = db.Column(QUANTITY, nullable=False)
    unit_price = db.Column(MONEY, nullable=False)
    total = db.Column(MONEY, nullable=False)
    unit = db.Column(db.String(16), nullable=True)

    variant_id = db.Column(db.Integer, nullable=True)
    variant_name = db.Column(db.String(120), nullable=True)

    order = db.relationship("Order", back_populates="lines")

    def to_dict(self) -> dict:
        data = {
            "product": {
                "id": self.product_id,
                "name": self.product_name,
                "type": self.item_type,
            },
            "quantity": as_number(self.quantity),
            "unit_price": as_number(self.unit_price),
            "total": as_number(self.total),
        }
        if self.unit:
            data["unit"] = self.unit
        if self.variant_id is not None:
            data["variant"] = self.variant_id
            data["variant_name"] = self.variant_name
        return data

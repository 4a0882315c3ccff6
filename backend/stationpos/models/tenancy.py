from __future__ import annotations

from ..extensions import db


# Cashiers assigned to a store. Checkout only accepts orders from these users
# (or the store supervisor).
store_employees = db.Table(
    "store_employees",
    db.Column("store_id", db.Integer, db.ForeignKey("stores.id"), primary_key=True),
    db.Column("user_id", db.Integer, db.ForeignKey("users.id"), primary_key=True),
)


class Company(db.Model):
    """
    Multi-tenant root: every owner manages one or more companies.

    DESIGN:
    - Stores belong to companies (company_id FK)
    - Products and users are scoped to a company
    - No catalog or order data may cross company boundaries
    """
    __tablename__ = "companies"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Company id={self.id} name={self.name!r}>"


class Store(db.Model):
    """
    Store (point of sale location) within a company.

    ACCESS: a cashier may transact against a store only while the store is
    active and the cashier is listed in `employees` or is the supervisor.
    """
    __tablename__ = "stores"
    __table_args__ = (
        db.UniqueConstraint("company_id", "name", name="uq_stores_company_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    city = db.Column(db.String(120), nullable=True)
    country = db.Column(db.String(120), nullable=True)

    supervisor_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    company = db.relationship("Company", backref=db.backref("stores", lazy=True))
    supervisor = db.relationship("User", foreign_keys=[supervisor_id])
    employees = db.relationship(
        "User",
        secondary=store_employees,
        lazy="select",
        backref=db.backref("stores", lazy="select"),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Store id={self.id} name={self.name!r} company_id={self.company_id}>"

from __future__ import annotations

from ..extensions import db
from ..models import User, Store
from ..errors import AuthorizationError


def user_can_transact(store: Store | None, user_id: int) -> bool:
    """Active store, and the user is an employee or the supervisor."""
    if store is None or not store.is_active:
        return False
    if store.supervisor_id == user_id:
        return True
    return any(employee.id == user_id for employee in store.employees)


def get_store_for_cashier(store_id: int, user_id: int) -> Store:
    """
    Load a store the cashier may order against.

    Missing, inactive and not-assigned stores all raise the same
    AuthorizationError so the response does not leak which stores exist.
    """
    store = db.session.query(Store).filter_by(id=store_id).first()
    if not user_can_transact(store, user_id):
        raise AuthorizationError(
            "Access to this store is not allowed",
            code="STORE_ACCESS_DENIED",
        )
    return store


def get_cashier_store_ids(user_id: int) -> set[int]:
    """Ids of active stores where the user is an employee or supervisor."""
    user = db.session.query(User).filter_by(id=user_id).first()
    if user is None:
        return set()

    store_ids = {store.id for store in user.stores if store.is_active}
    rows = (
        db.session.query(Store.id)
        .filter(Store.supervisor_id == user_id, Store.is_active.is_(True))
        .all()
    )
    store_ids.update(row[0] for row in rows)
    return store_ids


def add_employee(*, store_id: int, user_id: int) -> Store:
    user = db.session.query(User).filter_by(id=user_id).first()
    if not user:
        raise ValueError("User not found")

    store = db.session.query(Store).filter_by(id=store_id).first()
    if not store:
        raise ValueError("Store not found")

    if user.company_id is not None and user.company_id != store.company_id:
        raise ValueError("Store does not belong to user's company")

    if user not in store.employees:
        store.employees.append(user)
        db.session.commit()
    return store


def remove_employee(*, store_id: int, user_id: int) -> bool:
    store = db.session.query(Store).filter_by(id=store_id).first()
    if not store:
        return False

    for employee in list(store.employees):
        if employee.id == user_id:
            store.employees.remove(employee)
            db.session.commit()
            return True
    return False

"""Database helpers and CRUD operations."""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import create_engine, inspect, or_, text
from sqlalchemy.orm import Session, sessionmaker

from config import DATABASE_URL
from database.models import Account, Base, Log, Setting

engine = create_engine(DATABASE_URL, future=True)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, future=True)

_ACCOUNT_FIELDS = {
    "name",
    "address",
    "private_key",
    "is_active",
    "type",
    "status",
    "amount_in",
    "unit",
    "token_address",
    "bnb_balance",
    "token_balance",
    "sort_order",
    "cycle",
    "current_cycle",
    "wait_from",
    "wait_to",
}


def configure(database_url: str) -> None:
    """Rebind the module engine, used by tests and the headless runner."""
    global engine, SessionLocal
    engine.dispose()
    engine = create_engine(database_url, future=True)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, future=True)


def init_db() -> None:
    Base.metadata.create_all(bind=engine)
    _apply_runtime_migrations()


def _apply_runtime_migrations() -> None:
    inspector = inspect(engine)
    table_names = set(inspector.get_table_names())
    if "accounts" not in table_names:
        return

    account_columns = {col["name"] for col in inspector.get_columns("accounts")}
    with engine.begin() as conn:
        if "wait_from" not in account_columns:
            conn.execute(text("ALTER TABLE accounts ADD COLUMN wait_from INTEGER"))
        if "wait_to" not in account_columns:
            conn.execute(text("ALTER TABLE accounts ADD COLUMN wait_to INTEGER"))


def get_db() -> Session:
    return SessionLocal()


def _check_fields(changes: dict[str, Any]) -> None:
    unknown = set(changes) - _ACCOUNT_FIELDS
    if unknown:
        raise ValueError(f"unknown account fields: {', '.join(sorted(unknown))}")


def get_account(account_id: int) -> Optional[Account]:
    db = get_db()
    try:
        return db.query(Account).filter(Account.id == account_id).first()
    finally:
        db.close()


def get_account_by_address(address: str) -> Optional[Account]:
    db = get_db()
    try:
        return db.query(Account).filter(Account.address.ilike(str(address or "").strip())).first()
    finally:
        db.close()


def list_accounts() -> list[Account]:
    db = get_db()
    try:
        return db.query(Account).order_by(Account.sort_order.asc(), Account.id.asc()).all()
    finally:
        db.close()


def list_eligible_accounts() -> list[Account]:
    db = get_db()
    try:
        return (
            db.query(Account)
            .filter(
                Account.is_active.is_(True),
                or_(Account.cycle == 0, Account.current_cycle < Account.cycle),
            )
            .order_by(Account.sort_order.asc(), Account.id.asc())
            .all()
        )
    finally:
        db.close()


def next_sort_order() -> int:
    db = get_db()
    try:
        last = db.query(Account).order_by(Account.sort_order.desc()).first()
        return int(last.sort_order) + 1 if last else 0
    finally:
        db.close()


def create_account(address: str, private_key: str, name: str | None = None, **fields: Any) -> Account:
    _check_fields(fields)
    db = get_db()
    try:
        account = Account(address=address, private_key=private_key, name=name, **fields)
        db.add(account)
        db.commit()
        db.refresh(account)
        return account
    finally:
        db.close()


def update_account(account_id: int, **changes: Any) -> Optional[Account]:
    _check_fields(changes)
    db = get_db()
    try:
        account = db.query(Account).filter(Account.id == account_id).first()
        if not account:
            return None

        for key, value in changes.items():
            setattr(account, key, value)
        account.updated_at = datetime.utcnow()
        db.commit()
        db.refresh(account)
        return account
    finally:
        db.close()


def bulk_update_accounts(changes_by_id: dict[int, dict[str, Any]]) -> int:
    for changes in changes_by_id.values():
        _check_fields(changes)
    if not changes_by_id:
        return 0

    db = get_db()
    try:
        accounts = db.query(Account).filter(Account.id.in_(list(changes_by_id))).all()
        now = datetime.utcnow()
        for account in accounts:
            for key, value in changes_by_id[account.id].items():
                setattr(account, key, value)
            account.updated_at = now
        db.commit()
        return len(accounts)
    finally:
        db.close()


def update_all_accounts(only_active: bool = False, **changes: Any) -> int:
    _check_fields(changes)
    db = get_db()
    try:
        query = db.query(Account)
        if only_active:
            query = query.filter(Account.is_active.is_(True))
        accounts = query.all()
        now = datetime.utcnow()
        for account in accounts:
            for key, value in changes.items():
                setattr(account, key, value)
            account.updated_at = now
        db.commit()
        return len(accounts)
    finally:
        db.close()


def delete_account(account_id: int) -> bool:
    db = get_db()
    try:
        account = db.query(Account).filter(Account.id == account_id).first()
        if not account:
            return False
        db.delete(account)
        db.commit()
        return True
    finally:
        db.close()


def delete_all_accounts() -> int:
    db = get_db()
    try:
        removed = db.query(Account).delete()
        db.commit()
        return int(removed)
    finally:
        db.close()


def add_log(message: str) -> Log:
    db = get_db()
    try:
        row = Log(message=str(message))
        db.add(row)
        db.commit()
        db.refresh(row)
        return row
    finally:
        db.close()


def list_logs(limit: int = 30) -> list[Log]:
    db = get_db()
    try:
        rows = db.query(Log).order_by(Log.created_at.desc(), Log.id.desc()).limit(limit).all()
        return list(reversed(rows))
    finally:
        db.close()


def clear_logs() -> int:
    db = get_db()
    try:
        removed = db.query(Log).delete()
        db.commit()
        return int(removed)
    finally:
        db.close()


def get_setting(key: str, default: Any = None) -> Any:
    db = get_db()
    try:
        row = db.query(Setting).filter(Setting.key == key).first()
        if row is None or row.value is None:
            return default
        return row.value
    finally:
        db.close()


def get_settings() -> dict[str, Any]:
    db = get_db()
    try:
        return {row.key: row.value for row in db.query(Setting).all()}
    finally:
        db.close()


def put_setting(key: str, value: Any) -> None:
    db = get_db()
    try:
        row = db.query(Setting).filter(Setting.key == key).first()
        if row is None:
            db.add(Setting(key=key, value=value))
        else:
            row.value = value
        db.commit()
    finally:
        db.close()

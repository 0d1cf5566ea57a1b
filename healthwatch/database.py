"""
Database engine initialisation, table definitions and the record store.
"""

import sys
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    JSON,
    Column,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    func,
    insert,
    select,
    text,
    update,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from healthwatch.config import DB_URI
from healthwatch.errors import UpstreamError
from healthwatch.models import (
    STATUS_DRAFT,
    STATUS_REGISTERED,
    DiseaseRecord,
    HealthReport,
    SupplyItem,
)

metadata = MetaData()

health_reports = Table(
    "health_reports", metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("created_by", String(255), nullable=False),
    Column("created_by_role", String(32), nullable=False),
    Column("disease", String(255), nullable=False),
    Column("description", Text, nullable=False),
    Column("symptoms", JSON, nullable=False),
    Column("village", String(255), nullable=False),
    Column("location", String(255), nullable=False),
    Column("date", String(64), nullable=False),
    Column("image", Text),
    Column("item_name", String(255), nullable=False),
    Column("item_quantity", Integer, nullable=False),
    Column("created_at", String(40), nullable=False),
    Index("ix_health_reports_village", "village"),
)

disease_records = Table(
    "disease_records", metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("created_by", String(255), nullable=False),
    Column("created_by_role", String(32), nullable=False),
    Column("disease_name", String(255), nullable=False),
    Column("description", Text, nullable=False),
    Column("image_url", Text),
    Column("location", String(255)),
    Column("medical_supplies", JSON, nullable=False),
    Column("status", String(16), nullable=False, default=STATUS_DRAFT),
    Column("created_at", String(40), nullable=False),
    Column("updated_at", String(40)),
    Index("ix_disease_records_created_by", "created_by"),
    Index("ix_disease_records_status", "status"),
)

portal_users = Table(
    "portal_users", metadata,
    Column("user_id", String(255), primary_key=True),
    Column("email", String(255)),
    Column("role", String(32), nullable=False, default="citizen"),
    Column("created_at", String(40), nullable=False),
    Column("updated_at", String(40)),
)


def make_engine(db_uri: str):
    """Create an engine; in-memory SQLite shares one connection across threads."""
    if db_uri in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(
            db_uri,
            echo=False,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(db_uri, echo=False, future=True)


def init_engine(db_uri: Optional[str] = None):
    """Create a SQLAlchemy engine, verify the connection and create missing tables."""
    engine = make_engine(db_uri or DB_URI)
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        metadata.create_all(engine)
    except Exception as e:
        print("ERROR: could not connect to DB:", e, file=sys.stderr)
        sys.exit(1)
    print("[init] Connected to DB.")
    return engine


@contextmanager
def storage_errors(operation: str):
    """Re-raise storage-engine failures as UpstreamError, keeping the message."""
    try:
        yield
    except SQLAlchemyError as e:
        raise UpstreamError(f"Storage failure during {operation}: {e}") from e


# ── Row mapping ──────────────────────────────────────────────────────

def _report_from_row(row) -> HealthReport:
    return HealthReport(
        id=int(row["id"]),
        disease=row["disease"],
        description=row["description"],
        symptoms=list(row["symptoms"] or []),
        village=row["village"],
        location=row["location"],
        date=row["date"],
        image=row["image"],
        item_name=row["item_name"],
        item_quantity=int(row["item_quantity"]),
        created_by=row["created_by"],
        created_by_role=row["created_by_role"],
        created_at=row["created_at"],
    )


def _record_from_row(row) -> DiseaseRecord:
    return DiseaseRecord(
        id=int(row["id"]),
        disease_name=row["disease_name"],
        description=row["description"],
        image_url=row["image_url"],
        location=row["location"],
        medical_supplies=[
            SupplyItem(name=s["name"], quantity=int(s["quantity"]))
            for s in (row["medical_supplies"] or [])
        ],
        status=row["status"],
        created_by=row["created_by"],
        created_by_role=row["created_by_role"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _supplies_to_json(supplies: List[SupplyItem]) -> List[Dict[str, Any]]:
    return [s.to_dict() for s in supplies]


class RecordStore:
    """Persistence for health reports and disease records. No authorization here."""

    def __init__(self, engine):
        self.engine = engine

    # ── Health reports ───────────────────────────────────────────────

    def insert_report(self, values: Dict[str, Any]) -> HealthReport:
        with storage_errors("insert_report"), self.engine.begin() as conn:
            result = conn.execute(insert(health_reports).values(**values))
            report_id = result.inserted_primary_key[0]
            row = conn.execute(
                select(health_reports).where(health_reports.c.id == report_id)
            ).mappings().first()
        return _report_from_row(row)

    def list_reports_by_village(self, village: str) -> List[HealthReport]:
        sql = (
            select(health_reports)
            .where(health_reports.c.village == village)
            .order_by(health_reports.c.id)
        )
        with storage_errors("list_reports_by_village"), self.engine.connect() as conn:
            rows = conn.execute(sql).mappings().all()
        return [_report_from_row(r) for r in rows]

    # ── Disease records ──────────────────────────────────────────────

    def insert_record(self, values: Dict[str, Any]) -> DiseaseRecord:
        values = dict(values)
        values["medical_supplies"] = _supplies_to_json(values["medical_supplies"])
        with storage_errors("insert_record"), self.engine.begin() as conn:
            result = conn.execute(insert(disease_records).values(**values))
            record_id = result.inserted_primary_key[0]
            row = conn.execute(
                select(disease_records).where(disease_records.c.id == record_id)
            ).mappings().first()
        return _record_from_row(row)

    def get_record(self, record_id: int) -> Optional[DiseaseRecord]:
        with storage_errors("get_record"), self.engine.connect() as conn:
            row = conn.execute(
                select(disease_records).where(disease_records.c.id == record_id)
            ).mappings().first()
        return _record_from_row(row) if row else None

    def list_records_by_owner(self, subject: str) -> List[DiseaseRecord]:
        sql = (
            select(disease_records)
            .where(disease_records.c.created_by == subject)
            .order_by(disease_records.c.created_at.desc(), disease_records.c.id.desc())
        )
        with storage_errors("list_records_by_owner"), self.engine.connect() as conn:
            rows = conn.execute(sql).mappings().all()
        return [_record_from_row(r) for r in rows]

    def list_records_by_status(self, status: str) -> List[DiseaseRecord]:
        last_change = func.coalesce(disease_records.c.updated_at, disease_records.c.created_at)
        sql = (
            select(disease_records)
            .where(disease_records.c.status == status)
            .order_by(last_change.desc(), disease_records.c.id.desc())
        )
        with storage_errors("list_records_by_status"), self.engine.connect() as conn:
            rows = conn.execute(sql).mappings().all()
        return [_record_from_row(r) for r in rows]

    def update_record_fields(self, record_id: int, fields: Dict[str, Any],
                             updated_at: str) -> Optional[DiseaseRecord]:
        """Patch mutable fields; returns None if the record no longer exists."""
        values = dict(fields)
        if "medical_supplies" in values:
            values["medical_supplies"] = _supplies_to_json(values["medical_supplies"])
        values["updated_at"] = updated_at
        with storage_errors("update_record_fields"), self.engine.begin() as conn:
            result = conn.execute(
                update(disease_records)
                .where(disease_records.c.id == record_id)
                .values(**values)
            )
            if result.rowcount == 0:
                return None
            row = conn.execute(
                select(disease_records).where(disease_records.c.id == record_id)
            ).mappings().first()
        return _record_from_row(row)

    def mark_registered(self, record_id: int, updated_at: str) -> bool:
        """
        Move a draft record to registered in one conditional UPDATE.
        Returns False when no draft row matched (already registered or gone).
        """
        with storage_errors("mark_registered"), self.engine.begin() as conn:
            result = conn.execute(
                update(disease_records)
                .where(disease_records.c.id == record_id)
                .where(disease_records.c.status == STATUS_DRAFT)
                .values(status=STATUS_REGISTERED, updated_at=updated_at)
            )
        return result.rowcount == 1

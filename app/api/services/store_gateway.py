"""Backing store gateway for customers, assessments and assessment history.

The gateway owns its engine and session factory but does no caching and no
retrying. Every operation requires a successful ``initialize()`` first;
a table that disappears after initialization is reported as
``StoreTableMissing`` so the caller can re-initialize and retry once.
"""

import logging
import secrets
import string
import time
from collections.abc import Callable, Generator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, TypeVar

from sqlalchemy import Engine, inspect, select, text, update
from sqlalchemy.exc import IntegrityError, OperationalError, ProgrammingError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.database import Base, build_session_factory
from app.core.exceptions import (
    RECOVERABLE_STORE_ERRORS,
    InvalidDomainFormat,
    NotInitialized,
    RecordExists,
    StoreTableMissing,
    StoreUnavailable,
)
from app.core.init_guard import InitializeOnce
from app.models.assessment import Assessment, AssessmentHistory
from app.models.customer import Customer
from app.schemas.customer import AppCredentialRef, is_valid_domain

logger = logging.getLogger(__name__)

T = TypeVar("T")

REQUIRED_TABLES = ("customers", "assessments", "assessment_history")

_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_id(prefix: str) -> str:
    """Time + random composite ID, e.g. 'assessment-1718000000000-k3j9x0a2b'."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"{prefix}-{int(time.time() * 1000)}-{suffix}"


def _is_missing_table(error: SQLAlchemyError) -> bool:
    message = str(getattr(error, "orig", error)).lower()
    return "no such table" in message or ("relation" in message and "does not exist" in message)


@dataclass
class CustomerFilter:
    status: str | None = None
    include_deleted: bool = False
    limit: int = 100


@dataclass
class AssessmentFilter:
    status: str | None = None
    tenant_id: str | None = None
    limit: int = 50


@dataclass
class HistoryFilter:
    tenant_id: str | None = None
    customer_id: str | None = None
    limit: int = 10


class StoreGateway:
    """Gateway to the durable store (SQLAlchemy)."""

    def __init__(self, engine: Engine):
        self._engine = engine
        self._session_factory = build_session_factory(engine)
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    # =============================================================================
    # Lifecycle
    # =============================================================================

    def initialize(self) -> None:
        """Create missing tables and verify they exist. Idempotent."""
        # Import models to register them with Base
        from app import models  # noqa: F401

        try:
            Base.metadata.create_all(bind=self._engine)
            existing = set(inspect(self._engine).get_table_names())
        except SQLAlchemyError as e:
            self._initialized = False
            logger.error(f"Backing store unreachable: {e}")
            raise StoreUnavailable(f"Backing store unreachable: {e}") from e

        missing = [t for t in REQUIRED_TABLES if t not in existing]
        if missing:
            self._initialized = False
            raise StoreUnavailable(f"Tables could not be created: {', '.join(missing)}")

        self._initialized = True
        logger.info("Backing store initialized")

    def ping(self) -> None:
        """Round-trip a trivial query; raises StoreUnavailable on failure."""
        try:
            with self._engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"Backing store unreachable: {e}") from e

    def drop_all(self) -> None:
        """Drop every table (maintenance and tests)."""
        Base.metadata.drop_all(bind=self._engine)

    @contextmanager
    def _session(self) -> Generator[Session, None, None]:
        if not self._initialized:
            raise NotInitialized("Backing store has not been initialized")

        db = self._session_factory()
        try:
            yield db
            db.commit()
        except (OperationalError, ProgrammingError) as e:
            db.rollback()
            if _is_missing_table(e):
                logger.warning(f"Backing store table missing: {e}")
                raise StoreTableMissing(str(getattr(e, "orig", e))) from e
            raise StoreUnavailable(str(e)) from e
        except IntegrityError as e:
            db.rollback()
            logger.warning(f"Backing store constraint violation: {e}")
            raise RecordExists("A record with the same key already exists") from e
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreUnavailable(str(e)) from e
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def _run(self, fn: Callable[[Session], T]) -> T:
        with self._session() as db:
            return fn(db)

    # =============================================================================
    # Customers
    # =============================================================================

    def get_customer(self, customer_id: str) -> Customer | None:
        return self._run(lambda db: db.get(Customer, customer_id))

    def get_customer_by_domain(self, domain: str) -> Customer | None:
        if not is_valid_domain(domain):
            raise InvalidDomainFormat(f"'{domain}' is not a valid domain")
        domain = domain.lower()
        return self._run(
            lambda db: db.scalars(
                select(Customer).where(Customer.tenant_domain == domain).limit(1)
            ).first()
        )

    def list_customers(self, filter: CustomerFilter | None = None) -> list[Customer]:
        filter = filter or CustomerFilter()

        def query(db: Session) -> list[Customer]:
            stmt = select(Customer)
            if filter.status:
                stmt = stmt.where(Customer.status == filter.status)
            elif not filter.include_deleted:
                stmt = stmt.where(Customer.status != "deleted")
            stmt = stmt.order_by(Customer.created_date.desc()).limit(filter.limit)
            return list(db.scalars(stmt))

        return self._run(query)

    def create_customer(self, data: dict[str, Any], cred_ref: AppCredentialRef | None) -> Customer:
        customer = Customer(
            id=generate_id("customer"),
            tenant_id=data.get("tenant_id") or data["tenant_domain"],
            tenant_domain=data["tenant_domain"],
            tenant_name=data["tenant_name"],
            contact_email=data.get("contact_email"),
            notes=data.get("notes"),
            status="active" if cred_ref else "pending",
            created_date=datetime.utcnow(),
            total_assessments=0,
            app_registration=cred_ref.model_dump(by_alias=True) if cred_ref else None,
        )

        def insert(db: Session) -> Customer:
            db.add(customer)
            return customer

        created = self._run(insert)
        logger.info(f"Customer {created.id} created for {created.tenant_domain}")
        return created

    def update_customer(self, customer_id: str, patch: dict[str, Any]) -> Customer | None:
        def apply(db: Session) -> Customer | None:
            customer = db.get(Customer, customer_id)
            if customer is None:
                return None
            for field, value in patch.items():
                if field == "app_registration" and isinstance(value, AppCredentialRef):
                    value = value.model_dump(by_alias=True)
                setattr(customer, field, value)
            return customer

        return self._run(apply)

    def increment_assessment_count(self, customer_id: str, assessed_at: datetime) -> bool:
        """Bump the running counter in a single UPDATE (no read-modify-write)."""
        def bump(db: Session) -> bool:
            result = db.execute(
                update(Customer)
                .where(Customer.id == customer_id)
                .values(
                    total_assessments=Customer.total_assessments + 1,
                    last_assessment_date=assessed_at,
                )
            )
            return result.rowcount > 0

        return self._run(bump)

    def delete_customer(self, customer_id: str) -> bool:
        """Physically remove a customer row."""
        def remove(db: Session) -> bool:
            customer = db.get(Customer, customer_id)
            if customer is None:
                return False
            db.delete(customer)
            return True

        return self._run(remove)

    # =============================================================================
    # Assessments
    # =============================================================================

    def create_assessment(self, assessment: Assessment) -> Assessment:
        if not assessment.id:
            assessment.id = generate_id("assessment")

        def insert(db: Session) -> Assessment:
            db.add(assessment)
            return assessment

        return self._run(insert)

    def persist_assessment(
        self,
        assessment: Assessment,
        history: AssessmentHistory,
    ) -> Assessment:
        """Write an assessment and its history row in one transaction."""
        if not assessment.id:
            assessment.id = generate_id("assessment")
        history.assessment_id = assessment.id

        def insert(db: Session) -> Assessment:
            db.add(assessment)
            db.flush()  # assessment row before history row
            db.add(history)
            return assessment

        return self._run(insert)

    def get_assessment(self, assessment_id: str) -> Assessment | None:
        return self._run(lambda db: db.get(Assessment, assessment_id))

    def update_assessment(
        self,
        assessment_id: str,
        customer_id: str,
        patch: dict[str, Any],
        history: AssessmentHistory | None = None,
    ) -> Assessment | None:
        """Update an assessment in place, optionally appending history atomically."""
        def apply(db: Session) -> Assessment | None:
            assessment = db.get(Assessment, assessment_id)
            if assessment is None or assessment.customer_id != customer_id:
                return None
            for field, value in patch.items():
                setattr(assessment, field, value)
            assessment.last_modified = datetime.utcnow()
            if history is not None:
                history.assessment_id = assessment.id
                history.tenant_id = history.tenant_id or assessment.tenant_id
                history.customer_id = history.customer_id or assessment.customer_id
                if history.overall_score is None:
                    history.overall_score = assessment.overall_score
                db.flush()
                db.add(history)
            return assessment

        return self._run(apply)

    def list_assessments(self, filter: AssessmentFilter | None = None) -> list[Assessment]:
        filter = filter or AssessmentFilter()

        def query(db: Session) -> list[Assessment]:
            stmt = select(Assessment)
            if filter.status:
                stmt = stmt.where(Assessment.status == filter.status)
            if filter.tenant_id:
                stmt = stmt.where(Assessment.tenant_id == filter.tenant_id)
            stmt = stmt.order_by(Assessment.assessment_date.desc()).limit(filter.limit)
            return list(db.scalars(stmt))

        return self._run(query)

    def list_customer_assessments(
        self,
        customer_id: str,
        filter: AssessmentFilter | None = None,
    ) -> list[Assessment]:
        filter = filter or AssessmentFilter()

        def query(db: Session) -> list[Assessment]:
            stmt = select(Assessment).where(Assessment.customer_id == customer_id)
            if filter.status:
                stmt = stmt.where(Assessment.status == filter.status)
            stmt = stmt.order_by(Assessment.assessment_date.desc()).limit(filter.limit)
            return list(db.scalars(stmt))

        return self._run(query)

    def latest_assessment_for_tenant(self, tenant_id: str) -> Assessment | None:
        found = self.list_assessments(AssessmentFilter(tenant_id=tenant_id, limit=1))
        return found[0] if found else None

    # =============================================================================
    # History
    # =============================================================================

    def append_assessment_history(self, entry: AssessmentHistory) -> AssessmentHistory:
        def insert(db: Session) -> AssessmentHistory:
            db.add(entry)
            return entry

        return self._run(insert)

    def list_assessment_history(self, filter: HistoryFilter | None = None) -> list[AssessmentHistory]:
        """Most recent first; tenant filter wins over customer filter."""
        filter = filter or HistoryFilter()

        def query(db: Session) -> list[AssessmentHistory]:
            stmt = select(AssessmentHistory)
            if filter.tenant_id:
                stmt = stmt.where(AssessmentHistory.tenant_id == filter.tenant_id)
            elif filter.customer_id:
                stmt = stmt.where(AssessmentHistory.customer_id == filter.customer_id)
            stmt = stmt.order_by(
                AssessmentHistory.date.desc(), AssessmentHistory.row_id.desc()
            ).limit(filter.limit)
            return list(db.scalars(stmt))

        return self._run(query)


class GuardedStore:
    """Gateway calls behind the initialization guard.

    A ``NotInitialized`` or ``StoreTableMissing`` failure triggers exactly one
    re-initialize and one retry; anything else (or a second failure) is
    raised to the caller.
    """

    def __init__(self, gateway: StoreGateway, guard: InitializeOnce):
        self.gateway = gateway
        self.guard = guard

    async def call(self, fn: Callable[..., T], *args, **kwargs) -> T:
        await self.guard.ensure()
        try:
            return fn(*args, **kwargs)
        except RECOVERABLE_STORE_ERRORS as e:
            logger.warning(f"Backing store not ready ({e.kind.value}); re-initializing and retrying once")
            await self.guard.reinitialize()
            return fn(*args, **kwargs)

"""
Client enrolment state machine and the commissions it produces.

A client moves freely between "pending", "enrolled" and "not_enrolled" at an
administrator's request. Entering "enrolled" from any other state raises one
commission for the current calendar month, owned by the client's agency.
Leaving "enrolled" never touches commissions already raised.
"""
import logging
from datetime import date
from decimal import Decimal
from typing import Optional, Tuple

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.sql import func

from app.core import access
from app.core.config import COMMISSION_RATE, COMMISSION_BASE_AMOUNT
from app.core.exceptions import ConcurrentModification, InvalidTransition, NotFound, StoreUnavailable
from app.crud import crud_commission
from app.db.session import atomic
from app.models.client import ReferredClient, CLIENT_STATUSES, STATUS_ENROLLED
from app.models.commission import Commission, PAYMENT_PENDING, PAYMENT_PAID
from app.models.user import User

logger = logging.getLogger(__name__)

def current_month(today: Optional[date] = None) -> str:
    return (today or date.today()).strftime("%Y-%m")

def commission_amount() -> Decimal:
    amount = (COMMISSION_RATE * COMMISSION_BASE_AMOUNT).quantize(Decimal("0.01"))
    if amount < 0:
        raise ValueError(f"Configured commission amount is negative: {amount}")
    return amount

def _lock_client(db: Session, client_id: int) -> Optional[ReferredClient]:
    # Row lock where the backend supports it; the version column catches the rest
    return (
        db.query(ReferredClient)
        .filter(ReferredClient.id == client_id)
        .populate_existing()
        .with_for_update()
        .first()
    )

def _record_commission(db: Session, client: ReferredClient, today: date) -> Optional[Commission]:
    month = current_month(today)
    existing = crud_commission.get_commission_by_client_month(db, client_id=client.id, month=month)
    if existing is not None:
        logger.info(f"Client ID: {client.id} re-enrolled in {month}; commission ID: {existing.id} already covers it")
        return None

    commission = Commission(
        amount=commission_amount(),
        month=month,
        payment_status=PAYMENT_PENDING,
        client_id=client.id,
        agency_id=client.agency_id,
    )
    db.add(commission)
    return commission

def transition_client_status(
    db: Session,
    *,
    actor: User,
    client_id: int,
    new_status: str,
    today: Optional[date] = None
) -> Tuple[ReferredClient, Optional[Commission]]:
    """
    Move a client to `new_status` and raise its commission when it enters
    "enrolled". Runs as one transaction. Returns the client and the commission
    created by this call, or None when no commission was due.

    A transition that loses a race with another one on the same client fails
    with ConcurrentModification; nothing from it is kept.
    """
    access.require_admin(actor, "change client status")
    if new_status not in CLIENT_STATUSES:
        raise InvalidTransition(f"Invalid status '{new_status}'; expected one of {', '.join(CLIENT_STATUSES)}")
    today = today or date.today()

    commission = None
    try:
        with atomic(db):
            client = _lock_client(db, client_id)
            if client is None:
                raise NotFound("Client not found")
            access.ensure_access(db, actor, client.agency_id, label="Client")

            previous_status = client.status
            client.status = new_status
            if new_status == STATUS_ENROLLED:
                if previous_status != STATUS_ENROLLED:
                    client.enrollment_date = today
                    commission = _record_commission(db, client, today)
            else:
                client.enrollment_date = None
            db.flush()
    except (StaleDataError, IntegrityError) as exc:
        logger.warning(f"Concurrent status change detected for client ID: {client_id} (target '{new_status}')")
        raise ConcurrentModification(f"Client {client_id} was modified concurrently, retry the status change") from exc
    except OperationalError as exc:
        logger.error(f"Store aborted status change for client ID: {client_id}: {exc}")
        raise StoreUnavailable("The database aborted the operation, retry later") from exc

    db.refresh(client)
    logger.info(f"Client ID: {client_id} moved from '{previous_status}' to '{new_status}' by user ID: {actor.id}")
    if commission is not None:
        db.refresh(commission)
        logger.info(
            f"Created commission ID: {commission.id} for client ID: {client_id}, agency ID: {commission.agency_id}, "
            f"month: {commission.month}, amount: {commission.amount}"
        )
    return client, commission

def pay_commission(
    db: Session, *, actor: User, commission_id: int, payment_notes: Optional[str] = None
) -> Commission:
    """
    Mark a commission as paid. Paying it again returns it unchanged.
    """
    access.require_admin(actor, "mark commissions as paid")
    try:
        with atomic(db):
            commission = (
                db.query(Commission)
                .filter(Commission.id == commission_id)
                .populate_existing()
                .with_for_update()
                .first()
            )
            if commission is None:
                raise NotFound("Commission not found")
            access.ensure_access(db, actor, commission.agency_id, label="Commission")

            if commission.payment_status == PAYMENT_PAID:
                logger.info(f"Commission ID: {commission_id} is already paid; leaving it unchanged")
                return commission

            commission.payment_status = PAYMENT_PAID
            commission.paid_at = func.now()
            commission.payment_notes = payment_notes
    except OperationalError as exc:
        logger.error(f"Store aborted payment of commission ID: {commission_id}: {exc}")
        raise StoreUnavailable("The database aborted the operation, retry later") from exc

    db.refresh(commission)
    logger.info(f"Commission ID: {commission_id} marked as paid by user ID: {actor.id}")
    return commission

import os
import tempfile
import zlib
from datetime import datetime, timedelta, timezone
from decimal import InvalidOperation
from typing import Dict, List, Optional
from urllib.parse import urlencode

from filelock import FileLock, Timeout
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.adapters.esewa_payment import EsewaAdapter
from storefront.config import settings
from storefront.errors import (
    ForbiddenError,
    InvalidCallbackError,
    InvalidSignatureError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from storefront.models.order import Order, OrderStatus
from storefront.models.payment import ESEWA, Payment, PaymentStatus
from storefront.repositories.order_repo import OrderRepository
from storefront.repositories.payment_repo import PaymentRepository
from storefront.services.order_status_service import OrderStatusService
from storefront.utils.logging import get_logger
from storefront.utils.money import quantize
from storefront.utils.transactions import smart_transaction

log = get_logger(__name__)

SUCCESS_PATH = "/payment/success"
FAILURE_PATH = "/payment/failed"
LOCK_BUCKETS = 64


def success_redirect(order: Optional[Order] = None) -> str:
    target = settings.FRONTEND_BASE_URL + SUCCESS_PATH
    if order is None:
        return target
    return target + "?" + urlencode({"orderNumber": order.order_number, "orderId": order.id})


def failure_redirect(reason: Optional[str] = None) -> str:
    target = settings.FRONTEND_BASE_URL + FAILURE_PATH
    if reason is None:
        return target
    return target + "?" + urlencode({"error": reason})


class PaymentService:
    def __init__(
        self,
        db: Session,
        gateway: Optional[EsewaAdapter] = None,
        lock_dir: Optional[str] = None,
        lock_timeout: float = 10,
    ):
        self.db = db
        self.gateway = gateway or EsewaAdapter()
        self.payments = PaymentRepository(db)
        self.orders = OrderRepository(db)
        self.status = OrderStatusService(db)
        self.lock_dir = lock_dir or settings.LOCK_DIR or os.path.join(tempfile.gettempdir(), "storefront_locks")
        self.lock_timeout = lock_timeout

    def initiate_payment(self, order_id: int, user_id: int, base_url: str) -> Dict:
        """Record a PENDING payment attempt and return the signed gateway form."""
        order = self.orders.get(order_id)
        if not order:
            raise NotFoundError("Order not found")
        if order.user_id != user_id:
            raise ForbiddenError("Access denied")
        if order.status != OrderStatus.PENDING:
            raise ValidationError("Order is not awaiting payment")
        if order.shipping_address_id is None:
            raise ValidationError("A shipping address is required before payment")

        try:
            with smart_transaction(self.db):
                payment = self.payments.create(
                    Payment(order_id=order.id, method=ESEWA, amount=order.total, status=PaymentStatus.PENDING)
                )
        except SQLAlchemyError:
            log.exception("could not record payment attempt for order %s", order.order_number)
            raise PersistenceError("Failed to initiate payment")

        base = base_url.rstrip("/")
        form = self.gateway.build_form(
            transaction_uuid=payment.id,
            total=quantize(order.total),
            tax=quantize(order.tax),
            shipping=quantize(order.shipping_cost),
            success_url=f"{base}/api/payments/esewa/success",
            failure_url=f"{base}/api/payments/esewa/failure",
        )
        log.info("payment %s initiated for order %s amount=%s", payment.id, order.order_number, order.total)
        return form

    def handle_callback(self, encoded: Optional[str]) -> str:
        """
        Verify the gateway's success redirect and reconcile it into payment and
        order state. Always returns a browser redirect target; integrity
        failures map to a generic failure page with a reason code.
        """
        try:
            return self._handle_callback(encoded)
        except Exception:
            self.db.rollback()
            log.exception("ALERT: unexpected error while handling payment callback")
            return failure_redirect("processing_error")

    def _handle_callback(self, encoded: Optional[str]) -> str:
        if not encoded:
            return failure_redirect("missing_data")
        try:
            payload = self.gateway.decode_callback(encoded)
        except InvalidCallbackError as e:
            log.warning("rejected payment callback: %s", e.message)
            return failure_redirect("invalid_payload")

        if payload.get("status") != "COMPLETE":
            log.info("payment %s reported status %s", payload.get("transaction_uuid"), payload.get("status"))
            return failure_redirect("payment_incomplete")

        try:
            self.gateway.verify_signature(payload)
        except InvalidSignatureError:
            log.warning("payment callback signature mismatch for transaction %s", payload.get("transaction_uuid"))
            return failure_redirect("invalid_signature")

        transaction_uuid = str(payload["transaction_uuid"])
        try:
            with self._lock(transaction_uuid):
                return self._reconcile(transaction_uuid, payload)
        except Timeout:
            log.error("timed out waiting for callback lock of transaction %s", transaction_uuid)
            return failure_redirect("processing_error")
        except SQLAlchemyError:
            self.db.rollback()
            log.exception("ALERT: failed to record verified payment %s", transaction_uuid)
            return failure_redirect("processing_error")

    def handle_failure(self) -> str:
        return failure_redirect()

    def _lock(self, transaction_uuid: str) -> FileLock:
        # a fixed set of lock files; filelock leaves them on disk after release
        os.makedirs(self.lock_dir, exist_ok=True)
        bucket = zlib.crc32(transaction_uuid.encode("utf-8")) % LOCK_BUCKETS
        return FileLock(os.path.join(self.lock_dir, f"esewa_{bucket:02d}.lock"), timeout=self.lock_timeout)

    def _reconcile(self, transaction_uuid: str, payload: Dict) -> str:
        # read fresh state; a concurrent retry may have committed while we waited on the lock
        self.db.expire_all()
        payment = self.payments.get_for_update(transaction_uuid)
        if not payment:
            log.error("ALERT: verified callback for unknown payment %s", transaction_uuid)
            return success_redirect()

        try:
            amount = self.gateway.callback_amount(payload)
        except InvalidOperation:
            amount = None
        if amount is None or quantize(amount) != quantize(payment.amount):
            log.error(
                "ALERT: payment %s amount mismatch: gateway=%s recorded=%s",
                transaction_uuid,
                payload.get("total_amount"),
                payment.amount,
            )
            return failure_redirect("amount_mismatch")

        order = self.orders.get(payment.order_id)

        if payment.status == PaymentStatus.COMPLETED:
            log.info("duplicate callback for completed payment %s ignored", transaction_uuid)
            return success_redirect(order)

        with smart_transaction(self.db):
            payment.status = PaymentStatus.COMPLETED
            payment.transaction_id = payload.get("transaction_code")
            payment.response_data = dict(payload)
            if order is not None and not self.status.mark_paid(order):
                if order.status == OrderStatus.CANCELLED:
                    log.warning("ALERT: payment %s completed for cancelled order %s", transaction_uuid, order.order_number)

        if order is None:
            log.error("ALERT: payment %s completed but order %s is missing", transaction_uuid, payment.order_id)
            return success_redirect()

        log.info("payment %s completed; order %s is %s", transaction_uuid, order.order_number, order.status.value)
        return success_redirect(order)

    def expire_stale_payments(self, now: Optional[datetime] = None) -> List[str]:
        """
        Mark PENDING payment attempts older than PAYMENT_TTL_SECONDS as FAILED.
        Their orders stay PENDING so the buyer can start a new attempt.
        """
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(seconds=settings.PAYMENT_TTL_SECONDS)
        with smart_transaction(self.db):
            ids = []
            for p in self.payments.pending_before(cutoff):
                p.status = PaymentStatus.FAILED
                ids.append(p.id)
        if ids:
            log.info("expired %d stale payment attempts", len(ids))
        return ids

"""Order service layer (Use Cases).

Owns the order lifecycle state machine and orchestrates the checklist,
verification code, loyalty ledger and stock collaborators.  Every command
is atomic: the service defines the unit-of-work boundary and locks the
order row before validating a transition.

Lifecycle::

    Received -> Pending -> Processing -> Out for Delivery -> Delivered
    (Received | Pending | Processing | Out for Delivery) -> Cancel

Business rules enforced:
- Customer and products must exist and be active to place an order.
- Stock is untouched until delivery; redeemed points are debited at once.
- ``Processing`` needs a driver; ``Out for Delivery`` needs a fully
  collected checklist; ``Delivered`` needs the unused verification code.
- Every transition records history and emits ``OrderStatusChanged``.
- Secondary effects (sales counters, stock, awarding points) are best
  effort: their failure is logged and never undoes the transition.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional
from uuid import UUID

import structlog
from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.utils import timezone

from modules.customers.exceptions import CustomerNotFound, InactiveCustomer
from modules.orders import checklist, verification
from modules.orders.constants import DRIVERS_GROUP, TERMINAL_STATES, OrderStatus
from modules.orders.events import OrderCreated, OrderStatusChanged
from modules.orders.exceptions import (
    ChecklistIncomplete,
    CodeAlreadyUsed,
    DriverNotFound,
    InvalidOrderState,
    InvalidOrderStatus,
    InvalidVerificationCode,
    MalformedVerificationCode,
    OrderNotFound,
    PreconditionFailed,
    TransitionFieldMissing,
)
from modules.products.exceptions import ProductNotFound, ProductUnavailable

if TYPE_CHECKING:
    from modules.customers.repositories.interfaces import ICustomerRepository
    from modules.loyalty.services import LoyaltyService
    from modules.orders.compensation import CancellationCompensator
    from modules.orders.dtos import CreateOrderDTO, TransitionDTO
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository
    from modules.products.repositories.interfaces import IProductRepository
    from modules.products.services import StockService

logger = structlog.get_logger(__name__)


class OrderService:
    """Application service for Order use-cases.

    Receives repositories and collaborating services via constructor
    injection (DIP).
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        customer_repository: ICustomerRepository,
        product_repository: IProductRepository,
        loyalty_service: LoyaltyService,
        stock_service: StockService,
        compensator: CancellationCompensator,
    ) -> None:
        self._order_repo = order_repository
        self._customer_repo = customer_repository
        self._product_repo = product_repository
        self._loyalty = loyalty_service
        self._stock = stock_service
        self._compensator = compensator

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    @transaction.atomic
    def create_order(self, dto: CreateOrderDTO, actor: Any = None) -> Order:
        """Place a new cash-on-delivery order in ``Received``.

        Steps:
        1. Return the existing order when the idempotency key was seen.
        2. Validate customer and products; snapshot title and price.
        3. Persist order + lines with a fresh invoice and verification code.
        4. Redeem the requested loyalty points against the order.
        5. Generate the checklist, record history, emit ``OrderCreated``.

        Raises:
            CustomerNotFound: customer does not exist.
            InactiveCustomer: customer is inactive.
            ProductNotFound: a product does not exist.
            ProductUnavailable: a product is inactive.
            BelowMinimumRedemption / InsufficientPoints: invalid redemption.
        """
        log = logger.bind(customer_id=str(dto.customer_id))
        log.info("order.creation_started")

        if dto.idempotency_key:
            existing = self._order_repo.get_by_idempotency_key(
                dto.customer_id, dto.idempotency_key
            )
            if existing:
                log.info(
                    "order.idempotency_hit",
                    order_id=str(existing.id),
                    key=dto.idempotency_key,
                )
                return existing

        customer = self._customer_repo.get_by_id(str(dto.customer_id))
        if not customer:
            raise CustomerNotFound(f"Customer {dto.customer_id} not found.")
        if not customer.is_active:
            raise InactiveCustomer(f"Customer {dto.customer_id} is inactive.")

        products = self._product_repo.in_bulk(item.product_id for item in dto.items)
        lines = []
        for item_dto in dto.items:
            product = products.get(item_dto.product_id)
            if not product:
                raise ProductNotFound(f"Product {item_dto.product_id} not found.")
            if not product.is_active:
                raise ProductUnavailable(f"Product {product.sku} is inactive.")
            lines.append(
                {
                    "product_id": product.id,
                    "title": product.name,
                    "quantity": item_dto.quantity,
                    "unit_price": product.price,
                    "pack_qty": product.pack_qty,
                    "unit_name": product.unit_name,
                }
            )

        points = dto.loyalty_points_used
        try:
            order = self._order_repo.create(
                {
                    "customer_id": customer.id,
                    "items": lines,
                    "shipping_cost": dto.shipping_cost,
                    "discount": dto.discount,
                    "loyalty_points_used": points,
                    "loyalty_discount": self._loyalty.redemption_value(points),
                    "payment_method": dto.payment_method,
                    "verification_code": verification.issue_code(),
                    "notes": dto.notes or "",
                    "idempotency_key": dto.idempotency_key,
                }
            )
        except IntegrityError:
            # A concurrent request with the same key committed first.
            if not dto.idempotency_key:
                raise
            existing = self._order_repo.get_by_idempotency_key(
                customer.id, dto.idempotency_key
            )
            if not existing:
                raise
            log.info("order.idempotency_race", order_id=str(existing.id))
            return existing
        log = log.bind(order_id=str(order.id), invoice=order.invoice)

        if points:
            self._loyalty.redeem_points(customer.id, points, order_id=order.id)

        items = list(order.items.all())
        checklist.generate_checklist(order, items)
        self._order_repo.add_history(
            order_id=order.id,
            status=OrderStatus.RECEIVED,
            notes="Order placed",
            user=actor,
        )
        order.add_domain_event(
            OrderCreated(
                aggregate_id=order.id,
                customer_id=str(customer.id),
                invoice=order.invoice,
                verification_code=order.verification_code,
            )
        )
        self._order_repo.save(order)

        self._best_effort(
            "increment_sales", log, lambda: self._stock.increment_sales(items)
        )

        log.info("order.created", total=str(order.total), points_used=points)
        return self._order_repo.get_by_id(str(order.id)) or order

    @transaction.atomic
    def confirm_order(self, order_id: UUID, actor: Any = None, notes: str = "") -> Order:
        """``Received -> Pending``.

        Raises:
            OrderNotFound: order does not exist.
            InvalidOrderStatus: the order is not ``Received``.
        """
        order = self._lock(order_id)
        self._ensure_transition(order, OrderStatus.PENDING)
        self._apply_transition(order, OrderStatus.PENDING, actor, notes)
        return self._reload(order)

    @transaction.atomic
    def start_processing(
        self, order_id: UUID, driver_id: Any, actor: Any = None, notes: str = ""
    ) -> Order:
        """``Pending -> Processing``: assign a driver and build the checklist.

        Raises:
            OrderNotFound: order does not exist.
            InvalidOrderStatus: the order is not ``Pending``.
            DriverNotFound: ``driver_id`` is not an active driver.
        """
        order = self._lock(order_id)
        self._ensure_transition(order, OrderStatus.PROCESSING)

        driver = self._get_driver(driver_id)
        order.assigned_driver = driver
        order.assigned_at = timezone.now()
        self._apply_transition(order, OrderStatus.PROCESSING, actor, notes)

        log = logger.bind(order_id=str(order.id), invoice=order.invoice)
        self._best_effort(
            "generate_checklist",
            log,
            lambda: checklist.generate_checklist(order, order.items.all()),
        )
        return self._reload(order)

    @transaction.atomic
    def set_item_collected(
        self,
        order_id: UUID,
        product_id: Any,
        collected: bool,
        actor: Any = None,
        notes: Optional[str] = None,
    ) -> Order:
        """Tick or untick one checklist entry.

        Raises:
            OrderNotFound: order does not exist.
            InvalidOrderState: the order is not ``Processing``.
            ProductNotInChecklist: no entry for ``product_id``.
        """
        order = self._lock(order_id)
        checklist.set_item_collected(order, product_id, collected, actor, notes)
        order.save(
            update_fields=[
                "all_items_collected",
                "collection_completed_at",
                "updated_at",
            ]
        )
        logger.info(
            "order.item_collection_set",
            order_id=str(order.id),
            product_id=str(product_id),
            collected=collected,
            all_items_collected=order.all_items_collected,
        )
        return self._reload(order)

    @transaction.atomic
    def regenerate_checklist(self, order_id: UUID, actor: Any = None) -> Order:
        """Build the checklist of a ``Processing`` order that has none.

        Does nothing when the checklist already exists.

        Raises:
            OrderNotFound: order does not exist.
            InvalidOrderState: the order is not ``Processing``.
        """
        order = self._lock(order_id)
        if order.status != OrderStatus.PROCESSING:
            raise InvalidOrderState(
                "Checklist can only be generated while Processing "
                f"(order is {order.status})."
            )
        checklist.generate_checklist(order, order.items.all())
        if checklist.refresh_collection_state(order):
            order.save(
                update_fields=[
                    "all_items_collected",
                    "collection_completed_at",
                    "updated_at",
                ]
            )
        return self._reload(order)

    @transaction.atomic
    def mark_out_for_delivery(
        self, order_id: UUID, actor: Any = None, notes: str = ""
    ) -> Order:
        """``Processing -> Out for Delivery`` once every item is collected.

        Raises:
            OrderNotFound: order does not exist.
            InvalidOrderStatus: the order is not ``Processing``.
            ChecklistIncomplete: some items are not collected yet.
        """
        order = self._lock(order_id)
        self._ensure_transition(order, OrderStatus.OUT_FOR_DELIVERY)

        if not order.all_items_collected:
            missing = checklist.uncollected_titles(order)
            logger.warning(
                "order.checklist_incomplete", order_id=str(order.id), missing=missing
            )
            if not missing:
                raise PreconditionFailed("The order has no product checklist.")
            raise ChecklistIncomplete(missing)

        order.out_for_delivery_at = timezone.now()
        self._apply_transition(order, OrderStatus.OUT_FOR_DELIVERY, actor, notes)
        return self._reload(order)

    @transaction.atomic
    def mark_delivered(
        self,
        order_id: UUID,
        verification_code: str,
        actor: Any = None,
        notes: str = "",
        recipient_name: str = "",
    ) -> Order:
        """``Out for Delivery -> Delivered`` with the customer's code.

        Consumes the verification code, then adjusts stock and awards
        loyalty points on ``sub_total + shipping_cost - discount``.

        Raises:
            OrderNotFound: order does not exist.
            CodeAlreadyUsed: the code was consumed by an earlier delivery.
            InvalidOrderStatus: the order is not ``Out for Delivery``.
            MalformedVerificationCode: the code is not six digits.
            InvalidVerificationCode: the code does not match.
        """
        order = self._lock(order_id)
        log = logger.bind(order_id=str(order.id), invoice=order.invoice)

        if order.verification_code_used:
            log.warning("order.verification_code_reused")
            raise CodeAlreadyUsed()
        self._ensure_transition(order, OrderStatus.DELIVERED)
        try:
            verification.check_code(order, verification_code)
        except (InvalidVerificationCode, MalformedVerificationCode):
            log.warning("order.verification_code_rejected")
            raise

        now = timezone.now()
        verification.consume_code(order, now)
        order.delivered_at = now
        order.delivery_notes = notes
        order.recipient_name = recipient_name
        self._apply_transition(order, OrderStatus.DELIVERED, actor, notes)

        items = list(order.items.all())
        self._best_effort(
            "adjust_stock", log, lambda: self._stock.adjust_stock(items, order)
        )
        self._best_effort(
            "award_points",
            log,
            lambda: self._loyalty.award_points(
                order.customer_id, order.id, order.loyalty_base_amount
            ),
        )
        return self._reload(order)

    @transaction.atomic
    def cancel_order(
        self,
        order_id: UUID,
        reason: str,
        cancelled_by: str,
        actor: Any = None,
    ) -> Order:
        """Cancel an order and compensate its stock and loyalty effects.

        Raises:
            OrderNotFound: order does not exist.
            InvalidOrderStatus: the order is already ``Delivered`` or ``Cancel``.
        """
        order = self._lock(order_id)
        self._ensure_transition(order, OrderStatus.CANCELLED)

        order.cancel_reason = reason
        order.cancelled_by = cancelled_by
        order.cancelled_at = timezone.now()
        previous = self._apply_transition(order, OrderStatus.CANCELLED, actor, reason)

        result = self._compensator.compensate(order, previous)
        if not result.succeeded:
            logger.error(
                "order.compensation_incomplete",
                order_id=str(order.id),
                failed_steps=result.failed_steps,
            )
        return self._reload(order)

    def update_status(
        self, order_id: UUID, dto: TransitionDTO, actor: Any = None
    ) -> Order:
        """Route a generic status change to the matching command.

        Transition legality is checked before the target's required
        fields, so an illegal edge is a conflict even when fields are missing.

        Raises:
            InvalidOrderStatus: ``dto.status`` is not reachable from the
                current status or by any command.
            TransitionFieldMissing: the target needs a field the DTO lacks.
        """
        handlers: Dict[str, Callable[[], Order]] = {
            OrderStatus.PENDING: lambda: self.confirm_order(order_id, actor, dto.notes),
            OrderStatus.PROCESSING: lambda: self.start_processing(
                order_id, dto.driver_id, actor, dto.notes
            ),
            OrderStatus.OUT_FOR_DELIVERY: lambda: self.mark_out_for_delivery(
                order_id, actor, dto.notes
            ),
            OrderStatus.DELIVERED: lambda: self.mark_delivered(
                order_id, dto.verification_code, actor, dto.notes, dto.recipient_name
            ),
            OrderStatus.CANCELLED: lambda: self.cancel_order(
                order_id, dto.cancel_reason, dto.cancelled_by, actor
            ),
        }
        handler = handlers.get(dto.status)
        if handler is None:
            raise InvalidOrderStatus(f"Cannot transition an order to {dto.status}.")

        missing = dto.missing_requirement()
        if missing:
            self._ensure_transition(self.get_order(order_id), dto.status)
            raise TransitionFieldMissing(missing)
        return handler()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(self, order_id: str) -> Order:
        """Retrieve a single order by ID.

        Raises:
            OrderNotFound: if the order does not exist.
        """
        order = self._order_repo.get_by_id(str(order_id))
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        return order

    def list_orders(self, filters: Optional[Dict[str, Any]] = None):
        """Return orders, optionally filtered."""
        return self._order_repo.list(filters)

    def list_driver_orders(self, driver: Any, active_only: bool = True) -> List[Order]:
        """Orders assigned to ``driver``; by default only those not yet finished."""
        return self._order_repo.list_for_driver(driver.pk, active_only=active_only)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _lock(self, order_id: Any) -> Order:
        order = self._order_repo.get_for_update(str(order_id))
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        return order

    def _reload(self, order: Order) -> Order:
        return self._order_repo.get_by_id(str(order.id)) or order

    @staticmethod
    def _ensure_transition(order: Order, new_status: str) -> None:
        if order.can_transition_to(new_status):
            return
        logger.warning(
            "order.invalid_transition",
            order_id=str(order.id),
            current_status=order.status,
            new_status=new_status,
        )
        if order.status in TERMINAL_STATES:
            message = f"Order is already {order.status}."
        else:
            message = f"Cannot transition from {order.status} to {new_status}."
        raise InvalidOrderStatus(message)

    def _apply_transition(
        self, order: Order, new_status: str, actor: Any, notes: str
    ) -> str:
        """Persist the new status with its history row and outbox event.

        Returns the previous status.
        """
        old_status = order.status
        order.status = new_status
        order.add_domain_event(
            OrderStatusChanged(
                aggregate_id=order.id,
                customer_id=str(order.customer_id),
                invoice=order.invoice,
                old_status=old_status,
                new_status=new_status,
            )
        )
        self._order_repo.save(order)
        self._order_repo.add_history(
            order_id=order.id,
            status=new_status,
            notes=notes,
            old_status=old_status,
            user=actor,
        )
        logger.info(
            "order.status_updated",
            order_id=str(order.id),
            invoice=order.invoice,
            old_status=old_status,
            new_status=new_status,
        )
        return old_status

    @staticmethod
    def _get_driver(driver_id: Any):
        try:
            driver = (
                get_user_model()
                .objects.filter(
                    pk=driver_id, is_active=True, groups__name=DRIVERS_GROUP
                )
                .first()
            )
        except (TypeError, ValueError):
            driver = None
        if not driver:
            raise DriverNotFound(f"Driver {driver_id} not found.")
        return driver

    @staticmethod
    def _best_effort(step: str, log: Any, fn: Callable[[], Any]) -> None:
        """Run a secondary effect in a savepoint; log and swallow its failure."""
        try:
            with transaction.atomic():
                fn()
        except Exception:
            log.exception("order.side_effect_failed", step=step)

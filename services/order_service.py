import base64
import binascii
import mimetypes
import re
import uuid
from decimal import Decimal
from typing import Optional
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from core.config import settings
from core.exceptions import (ValidationError, MissingProofError, EmptyCartError, ProductNotFoundError,
                             ProductUnavailableError, InsufficientStockError, OrderNotFoundError,
                             InvalidStateError, UnauthorizedError, InfrastructureError)
from models.inventory import Inventory
from models.inventory_changes import InventoryChange
from models.order_items import OrderItem
from models.orders import Order
from models.products import Product
from schemas.order_schemas import (CreateOrderRequest, CreateOrderResponse, Identity, ShippingQuote,
                                   TrackOrderResponse, TrackedItem, UploadProofRequest)
from services.blob_store import BlobStore, BlobExistsError
from services.shipping_service import ShippingService
from utils.logger import get_logger, sanitize_log_data
from utils.tracking import generate_tracking_code, normalize_tracking_code

logger = get_logger(__name__)

CENT = Decimal("0.01")
TRACKING_CODE_ATTEMPTS = 5
PROOF_PATH_ATTEMPTS = 50


class _StockConflict(Exception):
    """A conditional decrement matched no row: stock moved since validation."""


class OrderService:

    # ------------------------------------------------------------------ create

    @staticmethod
    def create_order(db: Session, request: CreateOrderRequest, identity: Optional[Identity] = None) -> CreateOrderResponse:
        """
        Validates the cart, reserves stock and writes the order with its items.

        Validation (in this order, first failure wins):
        1. Required customer fields
        2. Payment proof, when the storefront requires it up front
        3. Non-empty cart
        4. Every product exists
        5. Every product is active
        6. Enough stock for every line
        Then the shipping cost is resolved; a region without a rule ships
        "to be confirmed" at cost 0.

        Reservation, order row, item rows and the inventory audit rows are
        written in one transaction. A failure anywhere rolls all of it back,
        stock included.
        """
        OrderService._validate_customer(request)

        if settings.REQUIRE_PROOF_BEFORE_ORDER and not request.payment_proof_url:
            raise MissingProofError()

        cart = OrderService._merge_cart(request)
        if not cart:
            raise EmptyCartError()

        products = OrderService._load_products(db, cart)
        OrderService._check_stock(db, cart, products)

        quote = ShippingService.quote(db, request.country, request.state, request.city)

        lines = []
        subtotal = Decimal("0.00")
        for product_id, quantity in cart.items():
            product = products[product_id]
            unit_price = Decimal(product.price).quantize(CENT)
            line_subtotal = (unit_price * quantity).quantize(CENT)
            subtotal += line_subtotal
            lines.append({
                "product_id": product.id,
                "product_name": product.name,
                "product_sku": product.sku,
                "product_price": unit_price,
                "quantity": quantity,
                "subtotal": line_subtotal,
            })

        shipping_cost = quote.cost
        total_amount = subtotal + shipping_cost
        user_id = identity.id if identity else None

        for attempt in range(1, TRACKING_CODE_ATTEMPTS + 1):
            order = Order(
                id=str(uuid.uuid4()),
                tracking_code=OrderService._new_tracking_code(db),
                user_id=user_id,
                customer_name=request.customer_name,
                customer_email=str(request.customer_email),
                customer_phone=request.customer_phone,
                cedula=request.cedula,
                shipping_notes=OrderService._compose_shipping_notes(request, quote),
                payment_method="transfer",
                payment_proof_url=request.payment_proof_url,
                subtotal=subtotal,
                shipping_cost=shipping_cost,
                total_amount=total_amount,
                status="pending"
            )

            try:
                OrderService._reserve_stock(db, cart, order.id)
                db.add(order)
                db.flush()
                db.add_all([OrderItem(order_id=order.id, **line) for line in lines])
                db.flush()
                db.commit()
                break

            except _StockConflict as conflict:
                db.rollback()
                product_id = conflict.args[0]
                logger.warning(
                    "Stock changed during checkout, order rejected",
                    extra={"product_id": product_id}
                )
                # Re-runs the check against the committed stock and raises with fresh numbers
                OrderService._check_stock(db, cart, products)
                # Refilled since the failed decrement: still report the line that lost the race
                available = db.query(Inventory.quantity).filter(Inventory.product_id == product_id).scalar()
                raise InsufficientStockError(details=[{
                    "product": products[product_id].name,
                    "product_id": product_id,
                    "requested": cart[product_id],
                    "available": available or 0,
                }])

            except IntegrityError:
                db.rollback()
                if attempt < TRACKING_CODE_ATTEMPTS and OrderService._tracking_code_taken(db, order.tracking_code):
                    logger.warning("Tracking code collision, retrying", extra={"attempt": attempt})
                    continue
                logger.error("Error creating order", extra={"order_id": order.id}, exc_info=True)
                raise InfrastructureError("Error creating order")

            except SQLAlchemyError:
                db.rollback()
                logger.error("Error creating order", extra={"order_id": order.id}, exc_info=True)
                raise InfrastructureError("Error creating order")

        logger.info(
            "Order created",
            extra=sanitize_log_data({
                "order_id": order.id,
                "tracking_code": order.tracking_code,
                "user_id": user_id,
                "cedula": request.cedula,
                "items": len(lines),
                "total_amount": str(total_amount),
                "shipping_confirmed": quote.confirmed,
            })
        )

        return CreateOrderResponse(
            order_id=order.id,
            tracking_code=order.tracking_code,
            subtotal=float(subtotal),
            shipping_cost=float(shipping_cost),
            total_amount=float(total_amount)
        )

    @staticmethod
    def _validate_customer(request: CreateOrderRequest):
        required = {
            "customer_name": request.customer_name,
            "customer_email": request.customer_email,
            "country": request.country,
            "state": request.state,
            "city": request.city,
            "cedula": request.cedula,
        }
        missing = [field for field, value in required.items() if not value]
        if missing:
            raise ValidationError(details={"missing_fields": missing})

    @staticmethod
    def _merge_cart(request: CreateOrderRequest) -> dict[str, int]:
        """product_id -> quantity, duplicates summed, ordered by product id."""
        cart: dict[str, int] = {}
        for item in request.items:
            cart[item.product_id] = cart.get(item.product_id, 0) + item.quantity
        # Fixed order keeps row locks from deadlocking between checkouts
        return dict(sorted(cart.items()))

    @staticmethod
    def _load_products(db: Session, cart: dict[str, int]) -> dict[str, Product]:
        products = {
            product.id: product
            for product in db.query(Product).filter(Product.id.in_(list(cart))).all()
        }

        missing = [product_id for product_id in cart if product_id not in products]
        if missing:
            raise ProductNotFoundError(details=missing)

        inactive = [products[product_id].name for product_id in cart if not products[product_id].is_active]
        if inactive:
            raise ProductUnavailableError(details=inactive)

        return products

    @staticmethod
    def _check_stock(db: Session, cart: dict[str, int], products: dict[str, Product]):
        available = {
            row.product_id: row.quantity
            for row in db.query(Inventory).filter(Inventory.product_id.in_(list(cart))).all()
        }

        shortages = []
        for product_id, requested in cart.items():
            in_stock = available.get(product_id, 0)
            if in_stock < requested:
                shortages.append({
                    "product": products[product_id].name,
                    "product_id": product_id,
                    "requested": requested,
                    "available": in_stock,
                })

        if shortages:
            raise InsufficientStockError(details=shortages)

    @staticmethod
    def _reserve_stock(db: Session, cart: dict[str, int], order_id: str):
        for product_id, quantity in cart.items():
            result = db.execute(
                update(Inventory)
                .where(Inventory.product_id == product_id, Inventory.quantity >= quantity)
                .values(quantity=Inventory.quantity - quantity)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise _StockConflict(product_id)

            db.add(InventoryChange(product_id=product_id, order_id=order_id,
                                   change_amount=quantity, reason="decrement"))

    @staticmethod
    def _new_tracking_code(db: Session) -> str:
        for _ in range(TRACKING_CODE_ATTEMPTS):
            code = generate_tracking_code(settings.TRACKING_CODE_PREFIX, settings.TRACKING_CODE_LENGTH)
            if not OrderService._tracking_code_taken(db, code):
                return code
        raise InfrastructureError("Could not allocate a tracking code")

    @staticmethod
    def _tracking_code_taken(db: Session, code: str) -> bool:
        return db.query(Order.id).filter(Order.tracking_code == code).first() is not None

    @staticmethod
    def _compose_shipping_notes(request: CreateOrderRequest, quote: ShippingQuote) -> str:
        lines = [
            f"National ID: {request.cedula}",
            f"Country: {request.country}",
            f"State: {request.state}",
            f"City: {request.city}",
        ]
        if request.address:
            lines.append(f"Address: {request.address}")
        lines.append(quote.message)
        return "\n".join(lines)

    # ------------------------------------------------------------ payment proof

    @staticmethod
    def submit_payment_proof(db: Session, blob_store: BlobStore, request: UploadProofRequest) -> str:
        """Uploads ``file_data`` when present, otherwise attaches ``payment_proof_url``."""
        if request.file_data and request.file_name:
            return OrderService.upload_payment_proof(db, blob_store, request.order_id,
                                                     request.file_name, request.file_data)

        if request.payment_proof_url:
            return OrderService.attach_payment_proof(db, blob_store, request.order_id, request.payment_proof_url)

        raise ValidationError("Missing file_data and file_name, or payment_proof_url")

    @staticmethod
    def upload_payment_proof(db: Session, blob_store: BlobStore, order_id: str, file_name: str, file_data: str) -> str:
        """
        Stores a base64 encoded proof under ``transferencias/{tracking_code}.{ext}``
        and points the order at its public URL.

        An occupied path is never overwritten: the first free ``-2``, ``-3``, ...
        suffix is used instead, so a doubled retry leaves two files and the
        order references the last one written.
        """
        order = OrderService._get_pending_order(db, order_id, "Payment proof can only be attached to pending orders")

        extension = OrderService._proof_extension(file_name)
        data = OrderService._decode_proof(file_data)
        content_type = mimetypes.guess_type(f"proof.{extension}")[0] or f"image/{extension}"

        try:
            path = OrderService._store_proof(blob_store, order.tracking_code, extension, data, content_type)
        except OSError:
            logger.error("Error uploading payment proof", extra={"order_id": order_id}, exc_info=True)
            raise InfrastructureError("Error uploading file")

        url = blob_store.public_url(path)

        try:
            order.payment_proof_url = url
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.error("Error updating order with payment proof", extra={"order_id": order_id}, exc_info=True)
            OrderService._remove_blob(blob_store, path, order_id)
            raise InfrastructureError("Error updating order")

        logger.info(
            "Payment proof uploaded",
            extra={"order_id": order_id, "path": path, "size": len(data)}
        )
        return url

    @staticmethod
    def attach_payment_proof(db: Session, blob_store: BlobStore, order_id: str, payment_proof_url: str) -> str:
        """
        Records a proof the client already uploaded. A URL inside the proof
        store must point at one of this order's own proof paths.
        """
        order = OrderService._get_pending_order(db, order_id, "Payment proof can only be attached to pending orders")

        path = blob_store.path_from_url(payment_proof_url)
        if path is not None and not OrderService._is_proof_path(path, order.tracking_code):
            logger.warning(
                "Payment proof URL belongs to another order",
                extra={"order_id": order_id, "path": path}
            )
            raise ValidationError("Payment proof does not belong to this order")

        try:
            order.payment_proof_url = payment_proof_url
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.error("Error updating order with payment proof", extra={"order_id": order_id}, exc_info=True)
            raise InfrastructureError("Error updating order")

        logger.info("Payment proof attached", extra={"order_id": order_id})
        return payment_proof_url

    @staticmethod
    def _proof_extension(file_name: str) -> str:
        extension = file_name.rsplit(".", 1)[-1].lower() if "." in file_name else "jpg"
        if extension not in settings.PROOF_ALLOWED_EXTENSIONS:
            raise ValidationError(
                "Unsupported payment proof file type",
                details={"allowed": settings.PROOF_ALLOWED_EXTENSIONS}
            )
        return extension

    @staticmethod
    def _decode_proof(file_data: str) -> bytes:
        # Browsers' FileReader gives "data:image/png;base64,...."
        if file_data.startswith("data:") and "," in file_data:
            file_data = file_data.split(",", 1)[1]

        try:
            data = base64.b64decode(file_data, validate=True)
        except (binascii.Error, ValueError):
            raise ValidationError("file_data is not valid base64")

        if not data:
            raise ValidationError("Payment proof file is empty")

        if len(data) > settings.PROOF_MAX_BYTES:
            raise ValidationError(
                "Payment proof file is too large",
                details={"max_bytes": settings.PROOF_MAX_BYTES}
            )
        return data

    @staticmethod
    def _store_proof(blob_store: BlobStore, tracking_code: str, extension: str, data: bytes, content_type: str) -> str:
        folder = settings.PROOF_FOLDER
        for n in range(1, PROOF_PATH_ATTEMPTS + 1):
            suffix = "" if n == 1 else f"-{n}"
            path = f"{folder}/{tracking_code}{suffix}.{extension}"
            try:
                blob_store.upload(path, data, content_type=content_type, upsert=False)
                return path
            except BlobExistsError:
                continue
        raise InfrastructureError("Error uploading file")

    @staticmethod
    def _is_proof_path(path: str, tracking_code: str) -> bool:
        """True for ``{folder}/{tracking_code}.{ext}`` and its ``-N`` variants."""
        pattern = rf"{re.escape(settings.PROOF_FOLDER)}/{re.escape(tracking_code)}(-\d+)?\.[A-Za-z0-9]+"
        return re.fullmatch(pattern, path) is not None

    @staticmethod
    def _remove_proofs(blob_store: BlobStore, tracking_code: str, order_id: str) -> int:
        """Deletes every proof file stored for the order. Returns how many were found."""
        try:
            paths = [
                path for path in blob_store.list_folder(settings.PROOF_FOLDER)
                if OrderService._is_proof_path(path, tracking_code)
            ]
        except Exception:
            logger.warning(
                "Error listing payment proof files",
                extra={"order_id": order_id, "tracking_code": tracking_code},
                exc_info=True
            )
            return 0

        for path in paths:
            OrderService._remove_blob(blob_store, path, order_id)
        return len(paths)

    @staticmethod
    def _remove_blob(blob_store: BlobStore, path: str, order_id: str):
        # Storage cleanup never decides the outcome of the request
        try:
            blob_store.remove(path)
        except Exception:
            logger.warning(
                "Error deleting payment proof file",
                extra={"order_id": order_id, "path": path},
                exc_info=True
            )

    # ------------------------------------------------------------------ cancel

    @staticmethod
    def cancel_order(db: Session, blob_store: BlobStore, order_id: str, identity: Optional[Identity] = None):
        """
        Cancels a pending order: stock goes back, items and order are deleted,
        then every payment proof file stored for it is removed.

        Guest orders can be cancelled by anyone who knows the order id. Orders
        placed by a signed-in customer only by that customer.

        The stock restoration and both deletes commit together, and the order
        delete only matches while the order is still pending, so two racing
        cancellations restore the stock once.
        """
        order = db.query(Order).filter(Order.id == order_id).with_for_update().one_or_none()

        if order is None:
            raise OrderNotFoundError()

        if order.status != "pending":
            logger.warning(
                "Cancel refused, order not pending",
                extra={"order_id": order_id, "status": order.status}
            )
            raise InvalidStateError()

        if order.user_id is not None and (identity is None or identity.id != order.user_id):
            logger.warning(
                "Cancel refused, order belongs to another identity",
                extra={"order_id": order_id, "caller": identity.id if identity else None}
            )
            raise UnauthorizedError()

        reserved = {}
        for item in order.items:
            reserved[item.product_id] = reserved.get(item.product_id, 0) + item.quantity
        tracking_code = order.tracking_code

        try:
            for product_id, quantity in sorted(reserved.items()):
                OrderService._restore_stock(db, product_id, quantity, order_id)

            db.query(OrderItem).filter(OrderItem.order_id == order_id).delete(synchronize_session=False)
            deleted = db.query(Order).filter(
                Order.id == order_id,
                Order.status == "pending"
            ).delete(synchronize_session=False)

            if deleted != 1:
                db.rollback()
                current = db.get(Order, order_id)
                if current is None:
                    raise OrderNotFoundError()
                raise InvalidStateError()

            db.commit()

        except SQLAlchemyError:
            db.rollback()
            logger.error("Error cancelling order", extra={"order_id": order_id}, exc_info=True)
            raise InfrastructureError("Error cancelling order")

        removed_proofs = OrderService._remove_proofs(blob_store, tracking_code, order_id)

        logger.info(
            "Order cancelled",
            extra={"order_id": order_id, "restored_items": len(reserved), "removed_proofs": removed_proofs}
        )

    @staticmethod
    def _restore_stock(db: Session, product_id: str, quantity: int, order_id: str):
        result = db.execute(
            update(Inventory)
            .where(Inventory.product_id == product_id)
            .values(quantity=Inventory.quantity + quantity)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            if db.get(Product, product_id) is None:
                logger.warning(
                    "Product no longer in catalog, stock not restored",
                    extra={"order_id": order_id, "product_id": product_id, "quantity": quantity}
                )
                return
            db.add(Inventory(product_id=product_id, quantity=quantity))

        db.add(InventoryChange(product_id=product_id, order_id=order_id,
                               change_amount=quantity, reason="increment"))

    # ------------------------------------------------------------------- track

    @staticmethod
    def track_order(db: Session, tracking_code: str) -> TrackOrderResponse:
        code = normalize_tracking_code(tracking_code)
        order = db.query(Order).filter(Order.tracking_code == code).one_or_none()

        if order is None:
            logger.info("Tracking code not found", extra={"tracking_code": code})
            raise OrderNotFoundError()

        return TrackOrderResponse(
            tracking_code=order.tracking_code,
            status=order.status,
            created_at=order.created_at,
            total_amount=float(order.total_amount),
            items=[
                TrackedItem(name=item.product_name, quantity=item.quantity, price=float(item.product_price))
                for item in order.items
            ]
        )

    @staticmethod
    def _get_pending_order(db: Session, order_id: str, not_pending_message: str) -> Order:
        order = db.get(Order, order_id)
        if order is None:
            logger.warning("Order not found", extra={"order_id": order_id})
            raise OrderNotFoundError()
        if order.status != "pending":
            raise InvalidStateError(not_pending_message)
        return order

"""
Typed exception hierarchy for the store kernel.

Every error has a typed exception class (catch by type, not by message),
a machine-readable ``code`` class attribute, and structured attributes
carrying the data a caller needs to react (which lot, by how much).

    StoreKernelError (base)
    |
    +-- ValidationError
    |   +-- InvalidAmountError
    |   +-- InvalidQuantityError
    |   +-- InvalidPinError
    |   +-- InvalidRoleError
    |   +-- InvalidTransactionTypeError
    |   +-- StockLotMismatchError
    |
    +-- IdentityError
    |   +-- UserNotFoundError
    |   +-- DuplicatePinError
    |   +-- InvalidCredentialsError
    |
    +-- InventoryError
    |   +-- ProductNotFoundError
    |   +-- StockLotNotFoundError
    |   +-- InsufficientStockError
    |
    +-- ClientError
    |   +-- ClientNotFoundError
    |   +-- CreditLimitExceededError
    |
    +-- TransactionError
    |   +-- TransactionNotFoundError
    |   +-- EmptyTransactionError
    |
    +-- PaymentError
    |   +-- OverpaymentError
    |   +-- TransactionAlreadyPaidError
    |
    +-- StorageUnavailableError

Lookups that find nothing are not errors: ``find_*`` / ``get_*`` read
methods return ``None``.  The NotFound exceptions are raised only when a
write operation references a row that does not exist.

Business-rule failures (insufficient stock, credit limit exceeded,
overpayment) are raised before anything is committed; the caller's unit of
work rolls back, so they are never partially applied.
"""

from decimal import Decimal


class StoreKernelError(Exception):
    """
    Base exception for all store kernel errors.

    All subclasses have a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "STORE_KERNEL_ERROR"


# Validation exceptions


class ValidationError(StoreKernelError):
    """Input rejected before any data was touched."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"{field}: {message}")


class InvalidAmountError(ValidationError):
    """Price, cost, payment or credit limit is not an acceptable amount."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, field: str, value: object, reason: str):
        self.value = str(value)
        self.reason = reason
        super().__init__(field, f"invalid amount {value!r} ({reason})")


class InvalidQuantityError(ValidationError):
    """Stock or item quantity is not an acceptable quantity."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, field: str, value: object, reason: str):
        self.value = str(value)
        self.reason = reason
        super().__init__(field, f"invalid quantity {value!r} ({reason})")


class InvalidPinError(ValidationError):
    """PIN is empty or contains non-digit characters."""

    code: str = "INVALID_PIN"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__("pin", reason)


class InvalidRoleError(ValidationError):
    """Role is not one of the known user roles."""

    code: str = "INVALID_ROLE"

    def __init__(self, role: str):
        self.role = role
        super().__init__("role", f"unknown role {role!r}")


class InvalidTransactionTypeError(ValidationError):
    """Transaction type is not sale, purchase or adjustment."""

    code: str = "INVALID_TRANSACTION_TYPE"

    def __init__(self, transaction_type: str):
        self.transaction_type = transaction_type
        super().__init__(
            "transaction_type", f"unknown transaction type {transaction_type!r}"
        )


class StockLotMismatchError(ValidationError):
    """An item names a stock lot that belongs to a different product."""

    code: str = "STOCK_LOT_MISMATCH"

    def __init__(self, stock_id: int, product_id: int, lot_product_id: int):
        self.stock_id = stock_id
        self.product_id = product_id
        self.lot_product_id = lot_product_id
        super().__init__(
            "stock_id",
            f"stock lot {stock_id} belongs to product {lot_product_id}, "
            f"not product {product_id}",
        )


# Identity exceptions


class IdentityError(StoreKernelError):
    """Base exception for user and credential errors."""

    code: str = "IDENTITY_ERROR"


class UserNotFoundError(IdentityError):
    """User with the given id does not exist."""

    code: str = "USER_NOT_FOUND"

    def __init__(self, user_id: int):
        self.user_id = user_id
        super().__init__(f"User not found: {user_id}")


class DuplicatePinError(IdentityError):
    """Another user already holds this PIN credential."""

    code: str = "DUPLICATE_PIN"

    def __init__(self):
        super().__init__("PIN is already assigned to another user")


class InvalidCredentialsError(IdentityError):
    """Presented PIN does not match the user's stored credential."""

    code: str = "INVALID_CREDENTIALS"

    def __init__(self, user_id: int):
        self.user_id = user_id
        super().__init__(f"Invalid PIN for user {user_id}")


# Inventory exceptions


class InventoryError(StoreKernelError):
    """Base exception for product and stock errors."""

    code: str = "INVENTORY_ERROR"


class ProductNotFoundError(InventoryError):
    """Product with the given id does not exist."""

    code: str = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: int):
        self.product_id = product_id
        super().__init__(f"Product not found: {product_id}")


class StockLotNotFoundError(InventoryError):
    """Stock lot with the given id does not exist."""

    code: str = "STOCK_LOT_NOT_FOUND"

    def __init__(self, stock_id: int):
        self.stock_id = stock_id
        super().__init__(f"Stock lot not found: {stock_id}")


class InsufficientStockError(InventoryError):
    """
    A deduction would drive stock negative.

    Raised for a single lot (``stock_id`` set) by reserve_and_deduct, or for
    a whole product (``product_id`` set) by FIFO allocation.
    """

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        requested: Decimal,
        available: Decimal,
        stock_id: int | None = None,
        product_id: int | None = None,
    ):
        self.stock_id = stock_id
        self.product_id = product_id
        self.requested = requested
        self.available = available
        target = (
            f"stock lot {stock_id}" if stock_id is not None else f"product {product_id}"
        )
        super().__init__(
            f"Insufficient stock in {target}: requested {requested}, "
            f"available {available}, short by {self.shortfall}"
        )

    @property
    def shortfall(self) -> Decimal:
        return self.requested - self.available


# Client exceptions


class ClientError(StoreKernelError):
    """Base exception for client errors."""

    code: str = "CLIENT_ERROR"


class ClientNotFoundError(ClientError):
    """Client with the given id does not exist."""

    code: str = "CLIENT_NOT_FOUND"

    def __init__(self, client_id: int):
        self.client_id = client_id
        super().__init__(f"Client not found: {client_id}")


class CreditLimitExceededError(ClientError):
    """Leaving the transaction unpaid would push the client past its limit."""

    code: str = "CREDIT_LIMIT_EXCEEDED"

    def __init__(
        self,
        client_id: int,
        credit_limit: Decimal,
        outstanding: Decimal,
        requested: Decimal,
    ):
        self.client_id = client_id
        self.credit_limit = credit_limit
        self.outstanding = outstanding
        self.requested = requested
        super().__init__(
            f"Credit limit exceeded for client {client_id}: outstanding "
            f"{outstanding} + {requested} > limit {credit_limit} "
            f"(over by {self.excess})"
        )

    @property
    def excess(self) -> Decimal:
        return self.outstanding + self.requested - self.credit_limit


# Transaction exceptions


class TransactionError(StoreKernelError):
    """Base exception for transaction errors."""

    code: str = "TRANSACTION_ERROR"


class TransactionNotFoundError(TransactionError):
    """Transaction with the given id does not exist."""

    code: str = "TRANSACTION_NOT_FOUND"

    def __init__(self, transaction_id: int):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction not found: {transaction_id}")


class EmptyTransactionError(TransactionError):
    """A transaction must carry at least one item."""

    code: str = "EMPTY_TRANSACTION"

    def __init__(self):
        super().__init__("Transaction has no items")


# Payment exceptions


class PaymentError(StoreKernelError):
    """Base exception for payment errors."""

    code: str = "PAYMENT_ERROR"


class OverpaymentError(PaymentError):
    """Cumulative payments would exceed the transaction total."""

    code: str = "OVERPAYMENT"

    def __init__(
        self,
        transaction_id: int | None,
        total_amount: Decimal,
        already_paid: Decimal,
        amount: Decimal,
    ):
        self.transaction_id = transaction_id
        self.total_amount = total_amount
        self.already_paid = already_paid
        self.amount = amount
        super().__init__(
            f"Payment of {amount} on transaction {transaction_id} would exceed "
            f"total {total_amount} (already paid {already_paid})"
        )


class TransactionAlreadyPaidError(PaymentError):
    """Transaction is already settled; ``paid`` is terminal."""

    code: str = "TRANSACTION_ALREADY_PAID"

    def __init__(self, transaction_id: int):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction {transaction_id} is already paid")


# Storage exceptions


class StorageUnavailableError(StoreKernelError):
    """
    The store could not be reached or failed mid-operation.

    Fatal to the current call.  The driver's message is preserved verbatim;
    the original exception is chained as ``__cause__``.
    """

    code: str = "STORAGE_UNAVAILABLE"

    def __init__(self, message: str):
        self.detail = message
        super().__init__(message)

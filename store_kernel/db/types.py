"""
Module: store_kernel.db.types
Responsibility: Exact decimal column type and the canonical precision
    constants for quantities and monetary amounts.  Every model and service
    uses these definitions so that amounts are stored identically
    system-wide.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - No floats anywhere in the kernel.  All quantities and monetary amounts
      are Decimal, stored at STORAGE_DECIMAL_PLACES.
    - Input size and precision are bounded (QUANTITY_* and MONEY_*) so that
      quantity x price always fits Numeric(38, 9) exactly.
    - Store arithmetic runs under exact_arithmetic(), so transaction totals
      and balances never round.

Failure modes:
    - ValueError from ExactDecimal.process_bind_param if a value carries
      more fractional digits than the storage scale, or more integer
      digits than Numeric(38, 9) holds.
"""

from decimal import Decimal, localcontext

from sqlalchemy import Numeric, String
from sqlalchemy.types import TypeDecorator

# Storage precision and scale for every decimal column
STORAGE_PRECISION = 38
STORAGE_DECIMAL_PLACES = 9
STORAGE_INTEGER_DIGITS = STORAGE_PRECISION - STORAGE_DECIMAL_PLACES

# Input precision accepted at the service boundary.  A line amount
# (quantity x price) has at most 12 + 13 integer digits, so transaction
# totals stay inside STORAGE_INTEGER_DIGITS.
QUANTITY_DECIMAL_PLACES = 3
QUANTITY_INTEGER_DIGITS = 12
MONEY_DECIMAL_PLACES = 4
MONEY_INTEGER_DIGITS = 13

# Working precision for store arithmetic: enough for the product of two
# storage-sized values, so nothing is ever rounded
ARITHMETIC_PRECISION = 2 * STORAGE_PRECISION


class ExactDecimal(TypeDecorator):
    """
    Decimal column that round-trips without loss on every backend.

    Contract:
        PostgreSQL stores the value as Numeric(38, 9).  SQLite has no exact
        numeric type (NUMERIC affinity is a float), so the value is stored
        as its canonical text form instead.

    Guarantees:
        - process_bind_param: Decimal -> Decimal (native) or str (SQLite).
        - process_result_value: always returns a normalized Decimal.
        - cache_ok=True enables SQLAlchemy statement caching.
    """

    impl = Numeric(STORAGE_PRECISION, STORAGE_DECIMAL_PLACES)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "sqlite":
            return dialect.type_descriptor(String(64))
        return dialect.type_descriptor(
            Numeric(STORAGE_PRECISION, STORAGE_DECIMAL_PLACES, asdecimal=True)
        )

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        value = Decimal(value)
        if integer_digits(value) > STORAGE_INTEGER_DIGITS:
            raise ValueError(
                f"{value} exceeds storage range of "
                f"{STORAGE_INTEGER_DIGITS} integer digits"
            )
        if decimal_places(value) > STORAGE_DECIMAL_PLACES:
            raise ValueError(
                f"{value} exceeds storage precision of "
                f"{STORAGE_DECIMAL_PLACES} decimal places"
            )
        if dialect.name == "sqlite":
            return format(normalize_decimal(value), "f")
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return normalize_decimal(Decimal(value))


def exact_arithmetic():
    """
    Decimal context for store arithmetic.

    The default context keeps 28 significant digits and silently rounds
    beyond that; totals and balances are computed under this one instead.
    """
    return localcontext(prec=ARITHMETIC_PRECISION)


def normalize_decimal(value: Decimal) -> Decimal:
    """
    Strip trailing zeros without switching to exponent notation.

    Decimal("6.000000000") and Decimal("6") compare equal already; this keeps
    values read back from storage visually identical to what was written.
    """
    with exact_arithmetic():
        if value == value.to_integral_value():
            return value.quantize(Decimal(1))
        return value.normalize()


def decimal_places(value: Decimal) -> int:
    """Number of significant fractional digits in value."""
    _, digits, exponent = value.as_tuple()
    if not isinstance(exponent, int) or value.is_zero():
        return 0
    # trailing zeros of the coefficient are not significant
    while digits and digits[-1] == 0 and exponent < 0:
        digits = digits[:-1]
        exponent += 1
    return max(0, -exponent)


def integer_digits(value: Decimal) -> int:
    """Number of digits before the decimal point (0 for |value| < 1)."""
    if not value.is_finite() or value.is_zero():
        return 0
    return max(0, value.adjusted() + 1)

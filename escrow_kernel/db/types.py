"""
Module: escrow_kernel.db.types
Responsibility: Column types and currency validation shared by every model.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - No floats anywhere in the escrow kernel.  DecimalAmount stores money as
      NUMERIC(14, 2) where the dialect supports exact decimals, and as a
      canonical decimal string elsewhere (SQLite), so a stored amount always
      reads back as the same Decimal.
    - ISO 4217 enforcement: validate_currency() rejects any string that is not
      a recognized 3-character currency code.
"""

from datetime import timezone
from decimal import Decimal

from sqlalchemy import DateTime, Numeric, String
from sqlalchemy.types import TypeDecorator

# Original precision of the custody columns: 14 digits, 2 decimal places.
AMOUNT_PRECISION = 14
AMOUNT_SCALE = 2


class DecimalAmount(TypeDecorator):
    """
    Exact 2-decimal money column.

    Contract:
        PostgreSQL (and any dialect with native decimals) gets Numeric(14, 2)
        with asdecimal=True.  SQLite has no exact decimal storage, so the value
        is bound as its string form and parsed back with Decimal().

    Guarantees:
        - process_result_value always returns a Decimal quantized to 2 places.
        - Floats are rejected at bind time.
    """

    impl = Numeric(AMOUNT_PRECISION, AMOUNT_SCALE)
    cache_ok = True

    _QUANTUM = Decimal(1).scaleb(-AMOUNT_SCALE)

    def load_dialect_impl(self, dialect):
        if dialect.name == "sqlite":
            return dialect.type_descriptor(String(AMOUNT_PRECISION + 2))
        return dialect.type_descriptor(
            Numeric(AMOUNT_PRECISION, AMOUNT_SCALE, asdecimal=True)
        )

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, float):
            raise TypeError("DecimalAmount refuses float values; use Decimal")
        value = Decimal(value).quantize(self._QUANTUM)
        if dialect.name == "sqlite":
            return str(value)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(str(value)).quantize(self._QUANTUM)


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware timestamp column, always read back in UTC.

    SQLite keeps no offset, so aware values are converted to UTC before
    binding and naive values coming back are stamped UTC.  Naive values
    bound by callers are taken to be UTC already.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            return value.astimezone(timezone.utc)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


# ISO 4217 Currency Codes
# Source: https://www.iso.org/iso-4217-currency-codes.html
ISO_4217_CURRENCIES: frozenset[str] = frozenset({
    "USD", "EUR", "GBP", "JPY", "CHF", "CAD", "AUD", "NZD",
    "AED", "AFN", "ALL", "AMD", "ANG", "AOA", "ARS", "AWG", "AZN",
    "BAM", "BBD", "BDT", "BGN", "BHD", "BIF", "BMD", "BND", "BOB", "BOV", "BRL", "BSD", "BTN", "BWP", "BYN", "BZD",
    "CDF", "CHE", "CHW", "CLF", "CLP", "CNY", "COP", "COU", "CRC", "CUC", "CUP", "CVE", "CZK",
    "DJF", "DKK", "DOP", "DZD",
    "EGP", "ERN", "ETB",
    "FJD", "FKP",
    "GEL", "GHS", "GIP", "GMD", "GNF", "GTQ", "GYD",
    "HKD", "HNL", "HTG", "HUF",
    "IDR", "ILS", "INR", "IQD", "IRR", "ISK",
    "JMD", "JOD",
    "KES", "KGS", "KHR", "KMF", "KPW", "KRW", "KWD", "KYD", "KZT",
    "LAK", "LBP", "LKR", "LRD", "LSL", "LYD",
    "MAD", "MDL", "MGA", "MKD", "MMK", "MNT", "MOP", "MRU", "MUR", "MVR", "MWK", "MXN", "MXV", "MYR", "MZN",
    "NAD", "NGN", "NIO", "NOK", "NPR",
    "OMR",
    "PAB", "PEN", "PGK", "PHP", "PKR", "PLN", "PYG",
    "QAR",
    "RON", "RSD", "RUB", "RWF",
    "SAR", "SBD", "SCR", "SDG", "SEK", "SGD", "SHP", "SLE", "SOS", "SRD", "SSP", "STN", "SVC", "SYP", "SZL",
    "THB", "TJS", "TMT", "TND", "TOP", "TRY", "TTD", "TWD", "TZS",
    "UAH", "UGX", "USN", "UYI", "UYU", "UYW", "UZS",
    "VED", "VES", "VND", "VUV",
    "WST",
    "XAF", "XCD", "XDR", "XOF", "XPF",
    "YER",
    "ZAR", "ZMW", "ZWL",
})


def validate_currency(currency: str) -> str:
    """
    Validate that a currency code is a valid ISO 4217 code.

    Returns:
        The validated currency code (uppercase, trimmed).

    Raises:
        ValueError: If the currency code is not valid.
    """
    if not currency or not isinstance(currency, str):
        raise ValueError(f"Invalid ISO 4217 currency code: {currency!r}")

    normalized = currency.upper().strip()
    if normalized not in ISO_4217_CURRENCIES:
        raise ValueError(f"Invalid ISO 4217 currency code: {currency!r}")
    return normalized

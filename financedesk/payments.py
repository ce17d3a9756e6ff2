from dataclasses import dataclass
from enum import Enum
from typing import Optional


class PaymentMethod(str, Enum):
    CASH = 'cash'
    BANK_TRANSFER = 'bank_transfer'
    CREDIT_CARD = 'credit_card'
    DEBIT_CARD = 'debit_card'
    UPI = 'upi'
    CHEQUE = 'cheque'
    CRYPTO = 'crypto'
    OTHER = 'other'


class PaymentStatus(str, Enum):
    PENDING = 'pending'
    PAID = 'paid'
    OVERDUE = 'overdue'
    CANCELLED = 'cancelled'
    PARTIALLY_PAID = 'partially_paid'


# statuses that still need money to move
OPEN_STATUSES = (PaymentStatus.PENDING, PaymentStatus.OVERDUE, PaymentStatus.PARTIALLY_PAID)


@dataclass(frozen=True)
class CatalogEntry:
    key: str
    name: str
    description: str


PAYMENT_METHODS = [
    CatalogEntry(PaymentMethod.CASH.value, "Cash", "Physical currency payment"),
    CatalogEntry(PaymentMethod.BANK_TRANSFER.value, "Bank Transfer", "NEFT / RTGS / IMPS transfer"),
    CatalogEntry(PaymentMethod.CREDIT_CARD.value, "Credit Card", "Payment via credit card"),
    CatalogEntry(PaymentMethod.DEBIT_CARD.value, "Debit Card", "Payment via debit card"),
    CatalogEntry(PaymentMethod.UPI.value, "UPI", "GPay, PhonePe, Paytm, etc."),
    CatalogEntry(PaymentMethod.CHEQUE.value, "Cheque", "Payment by cheque"),
    CatalogEntry(PaymentMethod.CRYPTO.value, "Crypto", "Cryptocurrency payment"),
    CatalogEntry(PaymentMethod.OTHER.value, "Other", "Any other payment method"),
]

PAYMENT_STATUSES = [
    CatalogEntry(PaymentStatus.PENDING.value, "Pending", "Payment is due but not yet made"),
    CatalogEntry(PaymentStatus.PAID.value, "Paid", "Payment has been completed"),
    CatalogEntry(PaymentStatus.OVERDUE.value, "Overdue", "Payment is past its due date"),
    CatalogEntry(PaymentStatus.CANCELLED.value, "Cancelled", "Transaction has been cancelled"),
    CatalogEntry(PaymentStatus.PARTIALLY_PAID.value, "Partially Paid", "A portion of the payment has been made"),
]

PAYMENT_METHOD_MAP = {m.key: m for m in PAYMENT_METHODS}
PAYMENT_STATUS_MAP = {s.key: s for s in PAYMENT_STATUSES}


def get_method(key) -> Optional[CatalogEntry]:
    return PAYMENT_METHOD_MAP.get(getattr(key, 'value', key))


def get_status(key) -> Optional[CatalogEntry]:
    return PAYMENT_STATUS_MAP.get(getattr(key, 'value', key))


def status_note(status) -> str:
    status = getattr(status, 'value', status)
    if status == PaymentStatus.OVERDUE.value:
        return "This payment is overdue"
    if status == PaymentStatus.PARTIALLY_PAID.value:
        return "This payment is partially settled"
    return "This payment is outstanding"

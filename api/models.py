"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
Monetary amounts are Decimals and serialize as strings.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from domain.customer import Customer
from domain.medicine import Medicine
from domain.transaction import PaymentMethod, Transaction


# ============================================================================
# Shared Models
# ============================================================================

class CartItemRequest(BaseModel):
    """One medicine and quantity in a quote or checkout request."""
    medicine_id: str = Field(..., min_length=1)
    quantity: int = Field(..., gt=0)


class CustomerResponse(BaseModel):
    """Customer or patient record as shown at the counter."""
    customer_id: str
    name: str
    kind: str  # "customer" or "patient"
    national_id: Optional[str] = None
    phone: Optional[str] = None
    total_purchases: Decimal
    last_visit: Optional[datetime] = None
    walk_in: bool

    @classmethod
    def from_domain(cls, customer: Customer) -> "CustomerResponse":
        return cls(
            customer_id=customer.customer_id,
            name=customer.name,
            kind=customer.kind.value,
            national_id=customer.national_id,
            phone=customer.phone,
            total_purchases=customer.total_purchases,
            last_visit=customer.last_visit,
            walk_in=customer.walk_in,
        )


class TransactionLineResponse(BaseModel):
    medicine_id: str
    medicine_name: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal


class TransactionResponse(BaseModel):
    """Committed sale or refund."""
    transaction_id: str
    receipt_number: str
    transaction_type: str  # "sale" or "refund"
    items: List[TransactionLineResponse]
    subtotal: Decimal
    discount_rate: Decimal
    discount_amount: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    net_total: Decimal
    tendered_amount: Decimal
    balance: Decimal
    payment_method: str
    staff_id: str
    committed_at: datetime
    credential: Optional[str] = None
    customer_id: Optional[str] = None
    original_transaction_id: Optional[str] = None
    note: Optional[str] = None

    @classmethod
    def from_domain(cls, tx: Transaction) -> "TransactionResponse":
        return cls(
            transaction_id=tx.transaction_id,
            receipt_number=tx.receipt_number,
            transaction_type=tx.transaction_type.value,
            items=[
                TransactionLineResponse(
                    medicine_id=line.medicine_id,
                    medicine_name=line.medicine_name,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    line_total=line.line_total,
                )
                for line in tx.lines
            ],
            subtotal=tx.subtotal,
            discount_rate=tx.discount_rate,
            discount_amount=tx.discount_amount,
            tax_rate=tx.tax_rate,
            tax_amount=tx.tax_amount,
            net_total=tx.net_total,
            tendered_amount=tx.tendered_amount,
            balance=tx.balance,
            payment_method=tx.payment_method.value,
            staff_id=tx.staff_id,
            committed_at=tx.committed_at,
            credential=tx.credential,
            customer_id=tx.customer_id,
            original_transaction_id=tx.original_transaction_id,
            note=tx.note,
        )


# ============================================================================
# Quote Models
# ============================================================================

class QuoteRequest(BaseModel):
    """Request to price a cart without committing it."""
    items: List[CartItemRequest] = Field(..., min_length=1)
    discount_rate: Decimal = Field(Decimal("0"), description="Percentage; clamped to 0-100")
    payment_method: PaymentMethod = PaymentMethod.CASH
    tendered_amount: Decimal = Decimal("0")

    class Config:
        json_schema_extra = {
            "example": {
                "items": [{"medicine_id": "MED001", "quantity": 2}],
                "discount_rate": "10",
                "payment_method": "cash",
                "tendered_amount": "50.00"
            }
        }


class QuoteLineItem(BaseModel):
    medicine_id: str
    medicine_name: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal
    prescription_required: bool


class QuoteResponse(BaseModel):
    """Priced cart."""
    items: List[QuoteLineItem]
    subtotal: Decimal
    discount_rate: Decimal
    discount_amount: Decimal
    tax_rate: Decimal
    tax: Decimal
    net_total: Decimal
    tendered_amount: Decimal
    balance: Decimal
    item_count: int
    currency: str
    prescription_required: bool

    class Config:
        json_schema_extra = {
            "example": {
                "items": [],
                "subtotal": "36.00",
                "discount_rate": "10",
                "discount_amount": "3.60",
                "tax_rate": "0",
                "tax": "0.00",
                "net_total": "32.40",
                "tendered_amount": "50.00",
                "balance": "17.60",
                "item_count": 2,
                "currency": "LKR",
                "prescription_required": False
            }
        }


# ============================================================================
# Checkout Models
# ============================================================================

class CustomerInputRequest(BaseModel):
    """Customer details captured at the counter; all optional."""
    term: Optional[str] = Field(None, description="National ID, or a phone number typed in the ID box")
    name: Optional[str] = None
    phone: Optional[str] = None


class CheckoutRequest(BaseModel):
    """Request to commit a sale."""
    items: List[CartItemRequest] = Field(..., min_length=1)
    staff_id: str = Field(..., description="Employee id of the cashier")
    payment_method: PaymentMethod = PaymentMethod.CASH
    tendered_amount: Decimal = Decimal("0")
    discount_rate: Decimal = Decimal("0")
    credential: Optional[str] = Field(
        None,
        description="Pharmacist registration number (required for prescription medicines)"
    )
    customer: Optional[CustomerInputRequest] = None
    note: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "items": [{"medicine_id": "MED001", "quantity": 2}],
                "staff_id": "EMP001",
                "payment_method": "cash",
                "tendered_amount": "50.00",
                "discount_rate": "10",
                "credential": "123456",
                "customer": {"term": "199012345678", "name": "Nimal Perera", "phone": "0771234567"}
            }
        }


class CheckoutResponse(BaseModel):
    """Receipt-ready result of a committed sale."""
    transaction: TransactionResponse
    customer: Optional[CustomerResponse] = None
    customer_created: bool = False
    currency: str
    warnings: List[str] = []


# ============================================================================
# Customer Models
# ============================================================================

class CustomerCandidateResponse(BaseModel):
    customer: CustomerResponse
    priority: int  # 1 exact ID, 2 exact phone, 3 partial ID, 4 partial phone, 5 name
    match_type: str


class CustomerSearchResponse(BaseModel):
    term: str
    outcome: str  # "auto_matched", "candidates" or "no_match"
    auto_matched: Optional[CustomerResponse] = None
    candidates: List[CustomerCandidateResponse]


class CustomerHistoryResponse(BaseModel):
    customer: CustomerResponse
    transactions: List[TransactionResponse]


# ============================================================================
# Medicine Models
# ============================================================================

class MedicineResponse(BaseModel):
    medicine_id: str
    name: str
    unit_price: Decimal
    stock_quantity: int
    prescription_required: bool
    batch_number: Optional[str] = None
    expiry_date: Optional[date] = None
    generic_name: Optional[str] = None
    category: Optional[str] = None
    manufacturer: Optional[str] = None
    expired: bool = False

    @classmethod
    def from_domain(cls, medicine: Medicine, expired: bool = False) -> "MedicineResponse":
        return cls(
            medicine_id=medicine.medicine_id,
            name=medicine.name,
            unit_price=medicine.unit_price,
            stock_quantity=medicine.stock_quantity,
            prescription_required=medicine.prescription_required,
            batch_number=medicine.batch_number,
            expiry_date=medicine.expiry_date,
            generic_name=medicine.generic_name,
            category=medicine.category,
            manufacturer=medicine.manufacturer,
            expired=expired,
        )


class MedicineSearchResponse(BaseModel):
    items: List[MedicineResponse]
    total_count: int


# ============================================================================
# Refund Models
# ============================================================================

class RefundItemRequest(BaseModel):
    medicine_id: str = Field(..., min_length=1)
    quantity: int = Field(..., gt=0)


class RefundRequest(BaseModel):
    """Request to refund all (items omitted) or part of a sale."""
    staff_id: str
    items: Optional[List[RefundItemRequest]] = None
    reason: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "staff_id": "EMP001",
                "items": [{"medicine_id": "MED001", "quantity": 1}],
                "reason": "Wrong strength dispensed"
            }
        }


class RefundResponse(BaseModel):
    refund: TransactionResponse
    warnings: List[str] = []


# ============================================================================
# Report Models
# ============================================================================

class DailySummaryResponse(BaseModel):
    day: date
    total_sales: Decimal
    transaction_count: int
    currency: str


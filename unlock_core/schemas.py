from datetime import datetime
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from unlock_core.core.utils import SUCCESS_CODE

T = TypeVar("T")


class ConfirmUnlockRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    payment_id: str = Field(alias="paymentId", min_length=1)
    device_no: str = Field(alias="deviceNo", min_length=1)
    cart_no: Optional[str] = Field(None, alias="cartNo")
    cart_index: int = Field(alias="cartIndex", ge=0)
    site_no: Optional[str] = Field(None, alias="siteNo")
    amount_halalas: int = Field(alias="amountHalalas", gt=0)


class VendorOutcome(BaseModel):
    code: str
    msg: str = ""


class PaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    status: str
    mode: Optional[str] = None
    scheme: Optional[str] = None
    amount_halalas: int
    currency: Optional[str] = None
    metadata_json: Optional[str] = None
    created_at: datetime


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    payment_id: str
    site_no: Optional[str] = None
    device_no: str
    cart_no: Optional[str] = None
    cart_index: int
    amount_halalas: int
    status: str
    vendor_code: Optional[str] = None
    vendor_msg: Optional[str] = None
    created_at: datetime
    unlock_requested_at: Optional[datetime] = None
    unlock_confirmed_at: Optional[datetime] = None
    returned_at: Optional[datetime] = None
    payment: Optional[PaymentResponse] = None


class ConfirmUnlockData(BaseModel):
    order: Optional[OrderResponse] = None
    vendor: Optional[VendorOutcome] = None


class ConfirmUnlockResponse(BaseModel):
    code: str
    msg: str = ""
    data: ConfirmUnlockData = Field(default_factory=ConfirmUnlockData)

    @property
    def unlocked(self) -> bool:
        return (
            self.code == SUCCESS_CODE
            and self.data.vendor is not None
            and self.data.vendor.code == SUCCESS_CODE
        )


class Envelope(BaseModel, Generic[T]):
    code: str = SUCCESS_CODE
    msg: str = "ok"
    data: Optional[T] = None


class HealthResponse(BaseModel):
    ok: bool = True


OrderListEnvelope = Envelope[List[OrderResponse]]
OrderEnvelope = Envelope[OrderResponse]
PaymentListEnvelope = Envelope[List[PaymentResponse]]
PaymentEnvelope = Envelope[PaymentResponse]

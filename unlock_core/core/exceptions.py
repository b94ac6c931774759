from fastapi import HTTPException


class UnlockCoreException(Exception):
    pass


class OrderNotFoundException(UnlockCoreException):
    pass


class PaymentNotFoundException(UnlockCoreException):
    pass


class InvalidTransitionException(UnlockCoreException):
    def __init__(self, order_id: str, current: str, target: str):
        self.order_id = order_id
        self.current = current
        self.target = target
        super().__init__(f"Order {order_id} cannot move from {current} to {target}")


class ProviderUnavailableException(UnlockCoreException):
    pass


def order_not_found_exception():
    return HTTPException(status_code=404, detail="Order not found")


def payment_not_found_exception():
    return HTTPException(status_code=404, detail="Payment not found")


def invalid_transition_exception(exc: InvalidTransitionException):
    return HTTPException(status_code=409, detail=str(exc))

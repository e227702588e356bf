from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from slotbook.auth.dependencies import Caller, get_current_caller
from slotbook.routes.common import ensure_database_ready, get_db, to_http_exception
from slotbook.routes.schemas import CreatePaymentOrderRequest, VerifyPaymentRequest, VerifyPaymentResponse
from slotbook.services import payments
from slotbook.services.errors import BookingError
from slotbook.services.payment_authority import get_payment_authority

router = APIRouter(tags=['payments'])


@router.post('/orders')
def create_payment_order(
    data: CreatePaymentOrderRequest,
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db),
    authority=Depends(get_payment_authority),
):
    ensure_database_ready()

    try:
        order = payments.create_payment_intent(
            db,
            authority,
            data.appointment_id,
            actor_id=caller.id,
            is_admin=caller.is_admin,
        )
    except BookingError as exc:
        raise to_http_exception(exc) from exc

    return {'success': True, 'order': order}


@router.post('/verify', response_model=VerifyPaymentResponse)
def verify_payment(
    data: VerifyPaymentRequest,
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db),
    authority=Depends(get_payment_authority),
):
    ensure_database_ready()

    try:
        paid = payments.confirm_payment(db, authority, data.razorpay_order_id)
    except BookingError as exc:
        raise to_http_exception(exc) from exc

    if paid:
        return VerifyPaymentResponse(success=True, paid=True, message='Payment successful.')
    return VerifyPaymentResponse(success=False, paid=False, message='Payment failed.')


@router.post('/webhook')
async def payment_webhook(request: Request, db: Session = Depends(get_db)):
    body = await request.body()
    await run_in_threadpool(ensure_database_ready)

    try:
        paid = await run_in_threadpool(
            payments.handle_webhook, db, body, request.headers.get('X-Razorpay-Signature'),
        )
    except BookingError as exc:
        raise to_http_exception(exc) from exc

    return {'success': True, 'paid': paid}

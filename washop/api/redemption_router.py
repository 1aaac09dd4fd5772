# washop/api/redemption_router.py

from typing import Optional

from fastapi import APIRouter, Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from washop.api.deps import current_user_id, get_db
from washop.api.schemas import CodeRequest, ConfirmReceiptRequest
from washop.errors import InvalidRequest
from washop.services import auth_service, redemption_service

router = APIRouter(prefix="/redemption")

# Подтверждение по ссылке из сообщения, без входа в аккаунт
DIRECT_CONFIRM = "DIRECT_CONFIRM"


# ---------- ПРОСМОТР КОДА ----------
@router.post("/view")
async def view_code(body: CodeRequest, db: AsyncSession = Depends(get_db)):
    details = await redemption_service.view_code(db, body.code)
    return {"success": True, **details}


# ---------- ПРОДАВЕЦ: ЗАКАЗ ПЕРЕДАН ----------
@router.post("/confirm-delivery")
async def confirm_delivery(
    body: CodeRequest,
    user_id: str = Depends(current_user_id),
    db: AsyncSession = Depends(get_db),
):
    await redemption_service.confirm_delivery(db, body.code, user_id)
    return {"success": True, "message": "Delivery confirmed"}


# ---------- ПОКУПАТЕЛЬ: ЗАКАЗ ПОЛУЧЕН ----------
@router.post("/confirm-receipt")
async def confirm_receipt(
    body: ConfirmReceiptRequest,
    authorization: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
):
    """
    Три варианта:
    - {"code": "..."}: по коду, токен не нужен (код знает только покупатель);
    - {"code": "DIRECT_CONFIRM", "order_id": "..."}: анонимно по id заказа;
    - {"order_id": "..."}: по id заказа с токеном, проверяем владельца заказа.
    """
    code = (body.code or "").strip()
    if code == DIRECT_CONFIRM:
        if not body.order_id:
            raise InvalidRequest("order_id is required")
        credited = await redemption_service.confirm_receipt(db, order_id=body.order_id)
    elif code:
        credited = await redemption_service.confirm_receipt(db, code=code)
    elif body.order_id:
        user_id = auth_service.resolve_user_id(authorization)
        credited = await redemption_service.confirm_receipt(
            db, order_id=body.order_id, user_id=user_id, check_customer=True
        )
    else:
        raise InvalidRequest("code or order_id is required")

    return {"success": True, "message": "Order receipt confirmed", "credited": credited}

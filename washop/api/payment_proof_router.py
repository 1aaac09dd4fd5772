# washop/api/payment_proof_router.py

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from washop.api.deps import admin_user_id, get_db
from washop.api.schemas import PaymentProofRequest, ReviewProofRequest
from washop.models.payment_proof import PaymentProof
from washop.services import payment_proof_service

router = APIRouter()


def _proof_payload(proof: PaymentProof) -> dict:
    return {
        "id": proof.id,
        "payment_type": proof.payment_type,
        "reference_id": proof.reference_id,
        "shop_id": proof.shop_id,
        "amount": float(proof.amount),
        "proof_image_url": proof.proof_image_url,
        "customer_name": proof.customer_name,
        "customer_phone": proof.customer_phone,
        "status": proof.status,
        "admin_notes": proof.admin_notes,
        "reviewed_by": proof.reviewed_by,
        "reviewed_at": proof.reviewed_at.isoformat() if proof.reviewed_at else None,
        "created_at": proof.created_at.isoformat() if proof.created_at else None,
    }


# ---------- ЗАГРУЗКА ЧЕКА ----------
@router.post("/payment-proofs")
async def submit_proof(body: PaymentProofRequest, db: AsyncSession = Depends(get_db)):
    proof = await payment_proof_service.submit_proof(
        db,
        payment_type=body.payment_type,
        reference_id=body.reference_id,
        shop_id=body.shop_id,
        amount=body.amount,
        proof_image_url=body.proof_image_url,
        customer_name=body.customer_name,
        customer_phone=body.customer_phone,
    )
    return {"success": True, "proof": _proof_payload(proof)}


# ---------- АДМИНКА ----------
@router.get("/admin/payment-proofs")
async def list_proofs(
    status: Optional[str] = None,
    admin_id: str = Depends(admin_user_id),
    db: AsyncSession = Depends(get_db),
):
    proofs = await payment_proof_service.list_proofs(db, status)
    return {"success": True, "proofs": [_proof_payload(p) for p in proofs]}


@router.post("/admin/payment-proofs/{proof_id}/review")
async def review_proof(
    proof_id: str,
    body: ReviewProofRequest,
    admin_id: str = Depends(admin_user_id),
    db: AsyncSession = Depends(get_db),
):
    proof = await payment_proof_service.review_proof(
        db, proof_id, approve=body.approve, reviewer_id=admin_id, admin_notes=body.admin_notes
    )
    return {"success": True, "proof": _proof_payload(proof)}

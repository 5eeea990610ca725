"""Payment proof upload router."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile

from storefront.auth import Identity, get_current_user
from storefront.dependencies import get_file_storage
from storefront.errors import ValidationError
from storefront.schemas import UploadResponse
from storefront.services.file_storage import FileStorage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/upload", tags=["upload"])


@router.post("", response_model=UploadResponse)
def upload_payment_proof(
    paymentProof: Optional[UploadFile] = File(None),
    identity: Identity = Depends(get_current_user),
    storage: FileStorage = Depends(get_file_storage)
):
    """Store a GCash receipt image (jpeg/jpg/png/gif, max 5MB)."""
    if paymentProof is None:
        raise ValidationError("No file uploaded")

    file_url = storage.save(
        paymentProof.file,
        paymentProof.filename,
        paymentProof.content_type
    )
    logger.info("Payment proof uploaded", extra={
        "user_id": identity.id,
        "file_url": file_url
    })
    return {"file_url": file_url}

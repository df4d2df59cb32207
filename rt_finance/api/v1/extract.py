"""POST /v1/extract-amount - OCR a receipt without recording a payment"""

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile

from rt_finance.api.dependencies import get_ocr, get_request_id
from rt_finance.api.errors import to_http_exception
from rt_finance.api.v1.schemas import ExtractAmountResponse
from rt_finance.domain.amount_extractor import extract_amount
from rt_finance.domain.exceptions import DomainException
from rt_finance.infrastructure.clients.ocr import TesseractOCR

router = APIRouter()


@router.post("/extract-amount", response_model=ExtractAmountResponse)
def extract(request: Request, image: UploadFile = File(...), ocr: TesseractOCR = Depends(get_ocr)):
    """Preview what the amount extractor reads from a receipt photo"""
    content = image.file.read()
    if not content:
        raise HTTPException(status_code=400, detail="No file uploaded")

    try:
        raw = ocr.recognize(content)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request))

    return ExtractAmountResponse(raw=raw, amount=extract_amount(raw))

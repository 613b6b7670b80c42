from fastapi import APIRouter

from . import analyze, receipts, usage

router = APIRouter(prefix="/v1")
router.include_router(analyze.router)
# receipts router applies purchase events to company plans
router.include_router(receipts.router)
router.include_router(usage.router)

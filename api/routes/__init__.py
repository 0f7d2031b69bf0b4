"""API routes package — combines all domain sub-routers into one."""

from fastapi import APIRouter, Depends

from api.middleware import verify_api_key
from api.routes.events import router as events_router
from api.routes.execution import router as execution_router
from api.routes.oracle import router as oracle_router
from api.routes.recommendations import router as recommendations_router

router = APIRouter(dependencies=[Depends(verify_api_key)])

router.include_router(oracle_router)
router.include_router(recommendations_router)
router.include_router(execution_router)
router.include_router(events_router)

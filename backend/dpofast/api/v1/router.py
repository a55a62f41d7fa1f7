"""API v1 router aggregator."""

from fastapi import APIRouter

from dpofast.api.v1 import (
    admin,
    audit,
    auth,
    company,
    dashboard,
    documents,
    notifications,
    questionnaire,
    reports,
    sectors,
    subscription,
    tasks,
)

router = APIRouter(prefix="/api/v1")
router.include_router(auth.router)
router.include_router(company.router)
router.include_router(sectors.router)
router.include_router(questionnaire.router)
router.include_router(documents.router)
router.include_router(tasks.router)
router.include_router(reports.router)
router.include_router(subscription.router)
router.include_router(subscription.webhook_router)
router.include_router(notifications.router)
router.include_router(dashboard.router)
router.include_router(admin.router)
router.include_router(audit.router)

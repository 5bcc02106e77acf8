"""App API Router package. Aggregates the public and customer-facing endpoints
into a single router mounted under ``/api``.

Included routers:
    - users: account management
    - venues / services: catalogue, discovery and venue-owner management
    - reservations: booking lifecycle
    - payments: Stripe checkout, webhook, refunds and history
    - receipts: own receipts and downloads
    - reviews: venue reviews and moderation
    - notifications / settings: per-user inbox and preferences
    - upload: image upload URLs
    - system-config: public configuration values
    - contact: public contact form
"""

from fastapi import APIRouter

from app.api.app.contact import router as contact_router
from app.api.app.notifications import router as notifications_router
from app.api.app.payments import router as payments_router
from app.api.app.receipts import router as receipts_router
from app.api.app.reservations import router as reservations_router
from app.api.app.reviews import router as reviews_router
from app.api.app.services import router as services_router
from app.api.app.settings import router as settings_router
from app.api.app.system_config import router as system_config_router
from app.api.app.upload import router as upload_router
from app.api.app.users import router as users_router
from app.api.app.venues import router as venues_router

app_router: APIRouter = APIRouter()

app_router.include_router(users_router, prefix="/users", tags=["Users"])
app_router.include_router(venues_router, prefix="/venues", tags=["Venues"])
app_router.include_router(services_router, prefix="/services", tags=["Services"])
app_router.include_router(reservations_router, prefix="/reservations", tags=["Reservations"])
app_router.include_router(payments_router, prefix="/payments", tags=["Payments"])
app_router.include_router(receipts_router, prefix="/receipts", tags=["Receipts"])
app_router.include_router(reviews_router, prefix="/reviews", tags=["Reviews"])
app_router.include_router(notifications_router, prefix="/notifications", tags=["Notifications"])
app_router.include_router(settings_router, prefix="/settings", tags=["Settings"])
app_router.include_router(upload_router, prefix="/upload", tags=["Upload"])
app_router.include_router(system_config_router, prefix="/system-config", tags=["System Config"])
app_router.include_router(contact_router, prefix="/contact", tags=["Contact"])

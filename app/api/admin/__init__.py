"""Admin API Router package. Aggregates the back-office endpoints into a
single router mounted under ``/api/admin``.

Included routers:
    - roles / permissions: role hierarchy and permission catalogue
    - payments: listing, actions, bulk operations and invoices
    - receipts: verification and regeneration
    - audit-logs: audit trail and its statistics
    - stats / reports: dashboard figures, range reports and Excel export
    - system-config: key/value platform configuration
    - notifications: venue-scoped view of guest notifications and their stats
    - contact-forms: follow-up of public contact submissions
    - system-logs: operational log, stats, CSV export and retention (SUPER_ADMIN)
"""

from fastapi import APIRouter

from app.api.admin.audit_logs import router as audit_logs_router
from app.api.admin.contact_forms import router as contact_forms_router
from app.api.admin.notifications import router as notifications_router
from app.api.admin.payments import router as payments_router
from app.api.admin.permissions import router as permissions_router
from app.api.admin.receipts import router as receipts_router
from app.api.admin.roles import router as roles_router
from app.api.admin.stats import reports_router, stats_router
from app.api.admin.system_config import router as system_config_router
from app.api.admin.system_logs import router as system_logs_router

admin_router: APIRouter = APIRouter()

admin_router.include_router(roles_router, prefix="/roles", tags=["Admin Roles"])
admin_router.include_router(permissions_router, prefix="/permissions", tags=["Admin Permissions"])
admin_router.include_router(payments_router, prefix="/payments", tags=["Admin Payments"])
admin_router.include_router(receipts_router, prefix="/receipts", tags=["Admin Receipts"])
admin_router.include_router(audit_logs_router, prefix="/audit-logs", tags=["Admin Audit Logs"])
admin_router.include_router(stats_router, prefix="/stats", tags=["Admin Stats"])
admin_router.include_router(reports_router, prefix="/reports", tags=["Admin Reports"])
admin_router.include_router(system_config_router, prefix="/system-config", tags=["Admin System Config"])
admin_router.include_router(notifications_router, prefix="/notifications", tags=["Admin Notifications"])
admin_router.include_router(contact_forms_router, prefix="/contact-forms", tags=["Admin Contact Forms"])
admin_router.include_router(system_logs_router, prefix="/system-logs", tags=["Admin System Logs"])

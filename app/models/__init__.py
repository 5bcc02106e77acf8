"""SQLAlchemy ORM models package. Central import point for all domain models.

Importing from this package ensures all models are registered with the
SQLAlchemy metadata, which is required for Alembic migrations and
relationship resolution.

Modules:
    user: Roles, users and user settings
    permission: Permission catalogue and role grants
    token: Refresh tokens
    venue: Venues and their bookable services
    reservation: Reservations
    payment: Payments and receipts
    review: Guest reviews
    audit_log: Admin audit log
    notification: In-app notifications
    system_config: Runtime configuration entries
    contact: Public contact form submissions
    system_log: Operational system log
"""

from app.models.user import Role, User, UserSettings
from app.models.permission import Permission, RolePermission
from app.models.token import RefreshToken
from app.models.venue import Venue, Service
from app.models.reservation import Reservation
from app.models.payment import Payment, Receipt
from app.models.review import Review
from app.models.audit_log import AdminAuditLog
from app.models.notification import Notification
from app.models.system_config import SystemConfig
from app.models.contact import ContactForm
from app.models.system_log import SystemLog

__all__ = [
    "Role", "User", "UserSettings",
    "Permission", "RolePermission",
    "RefreshToken",
    "Venue", "Service",
    "Reservation",
    "Payment", "Receipt",
    "Review",
    "AdminAuditLog",
    "Notification",
    "SystemConfig",
    "ContactForm",
    "SystemLog",
]

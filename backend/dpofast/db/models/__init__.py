"""Database model registry. Import all models here so Alembic can discover them."""

from dpofast.db.models.audit import AuditEvent
from dpofast.db.models.company import (
    CompanyProfile,
    CompanySector,
    CompanySize,
    EmployeeCountType,
)
from dpofast.db.models.document import Document, DocumentStatus
from dpofast.db.models.notification import Notification, NotificationType
from dpofast.db.models.questionnaire import QuestionnaireAnswer, QuestionnaireResponse
from dpofast.db.models.report import ComplianceReport, ReportStatus, ReportType
from dpofast.db.models.task import (
    OPEN_TASK_STATUSES,
    ComplianceTask,
    TaskPriority,
    TaskSeverity,
    TaskStatus,
    TaskStatusHistory,
)
from dpofast.db.models.user import (
    Role,
    RoleEnum,
    SubscriptionPlan,
    SubscriptionStatus,
    User,
)

__all__ = [
    "OPEN_TASK_STATUSES",
    "AuditEvent",
    "CompanyProfile",
    "CompanySector",
    "CompanySize",
    "ComplianceReport",
    "ComplianceTask",
    "Document",
    "DocumentStatus",
    "EmployeeCountType",
    "Notification",
    "NotificationType",
    "QuestionnaireAnswer",
    "QuestionnaireResponse",
    "ReportStatus",
    "ReportType",
    "Role",
    "RoleEnum",
    "SubscriptionPlan",
    "SubscriptionStatus",
    "TaskPriority",
    "TaskSeverity",
    "TaskStatus",
    "TaskStatusHistory",
    "User",
]

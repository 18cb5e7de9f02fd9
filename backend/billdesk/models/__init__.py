# Import all models so Base.metadata is populated before create_all.
from billdesk.models.user import AdminSeat, User  # noqa: F401
from billdesk.models.session import Session  # noqa: F401
from billdesk.models.report import Report, report_assignments  # noqa: F401
from billdesk.models.bill import Bill, bill_assignments  # noqa: F401
from billdesk.models.attachment import Attachment  # noqa: F401
from billdesk.models.audit import AuditLog  # noqa: F401

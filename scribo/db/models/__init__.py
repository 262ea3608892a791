# Import all models so SQLAlchemy metadata is fully populated on startup.
from scribo.db.models.client import Client, TeamMember, TeamCampaign
from scribo.db.models.campaign import Campaign
from scribo.db.models.field_type import FieldType
from scribo.db.models.form import Form, FormField
from scribo.db.models.model_form import Category, ModelForm, ModelFormField
from scribo.db.models.submission import Submission, Answer
from scribo.db.models.activity import Note, Email, Call, Task, Appointment
from scribo.db.models.export_history import ExportHistory
from scribo.db.models.audit_log import AuditLog


__all__ = [
    "Client",
    "TeamMember",
    "TeamCampaign",
    "Campaign",
    "FieldType",
    "Form",
    "FormField",
    "Category",
    "ModelForm",
    "ModelFormField",
    "Submission",
    "Answer",
    "Note",
    "Email",
    "Call",
    "Task",
    "Appointment",
    "ExportHistory",
    "AuditLog",
]

"""Request forms for the JSON API.

Flask-WTF reads JSON request bodies into these forms. The request-level CSRF
check is done by ``CSRFProtect`` via the ``X-CSRFToken`` header, so the forms
themselves skip the token field.
"""
from flask_wtf import FlaskForm
from wtforms import DateField, PasswordField, SelectField, StringField, TextAreaField
from wtforms.validators import DataRequired, Email, Length, Optional

from seisan.models import ApplicationType, ApprovalAction
from seisan.services.document_service import APPLICATION_DOCUMENT_TYPES, MIME_TYPES


class JsonForm(FlaskForm):
    class Meta:
        csrf = False


class LoginForm(JsonForm):
    email = StringField("Email", validators=[DataRequired(), Email(), Length(max=255)])
    password = PasswordField("Password", validators=[DataRequired()])


class ApplicationForm(JsonForm):
    type = SelectField(
        "Type",
        choices=[(t.value, t.value) for t in ApplicationType],
        validators=[DataRequired()],
    )
    title = StringField("Title", validators=[DataRequired(), Length(max=255)])
    description = TextAreaField("Description", validators=[Optional()])


class DecisionForm(JsonForm):
    action = SelectField(
        "Action",
        choices=[(a.value, a.value) for a in ApprovalAction],
        validators=[DataRequired()],
    )
    comment = TextAreaField("Comment", validators=[Optional(), Length(max=2000)])


class DocumentForm(JsonForm):
    type = SelectField("Type", choices=[(t, t) for t in APPLICATION_DOCUMENT_TYPES], validators=[DataRequired()])
    format = SelectField("Format", choices=[(f, f) for f in MIME_TYPES], default="html")


class AllowanceDocumentForm(JsonForm):
    user_id = StringField("User", validators=[Optional(), Length(max=36)])
    start_date = DateField("Start date", validators=[DataRequired()])
    end_date = DateField("End date", validators=[DataRequired()])
    format = SelectField("Format", choices=[(f, f) for f in MIME_TYPES], default="html")


class RegulationForm(JsonForm):
    name = StringField("Name", validators=[DataRequired(), Length(max=255)])


class RegulationDocumentForm(JsonForm):
    regulation_id = StringField("Regulation", validators=[Optional(), Length(max=36)])
    format = SelectField("Format", choices=[(f, f) for f in MIME_TYPES], default="html")

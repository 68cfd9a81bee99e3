from flask_wtf import FlaskForm
from werkzeug.datastructures import MultiDict
from wtforms import StringField, PasswordField, TextAreaField, DecimalField, DateField
from wtforms.validators import DataRequired, Email, Length, Optional, Regexp, NumberRange, AnyOf, ValidationError

from services.loops.types import ALL_STATUSES

DATE_FORMATS = ['%Y-%m-%d', '%m/%d/%Y']


def to_formdata(payload):
    """
    Convert a JSON or form payload to the MultiDict WTForms expects.

    None values are dropped; everything else is submitted as a string.
    """
    data = MultiDict()
    for key, value in (payload or {}).items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = 'true' if value else 'false'
        data.add(key, str(value))
    return data


class ApiForm(FlaskForm):
    """FlaskForm fed from an explicit payload; the API authenticates with tokens, not CSRF."""

    def __init__(self, payload=None, **kwargs):
        kwargs.setdefault('meta', {'csrf': False})
        super().__init__(formdata=to_formdata(payload), **kwargs)

    def error_map(self, only=None):
        """Field errors as {name: [messages]}, optionally limited to some fields."""
        return {
            name: list(messages)
            for name, messages in self.errors.items()
            if only is None or name in only
        }


class LoginForm(ApiForm):
    email = StringField('Email', validators=[
        DataRequired(message='Email is required'),
        Email(message='Invalid email address')
    ])
    password = PasswordField('Password', validators=[
        DataRequired(message='Password is required')
    ])


class LoopForm(ApiForm):
    type = StringField('Type', validators=[
        DataRequired(message='Type is required'),
        Length(max=100)
    ])
    property_address = StringField('Property Address', validators=[
        DataRequired(message='Property address is required'),
        Length(max=255)
    ])
    sale = DecimalField('Sale', places=2, validators=[
        Optional(),
        NumberRange(min=0, message='Sale must be a non-negative number')
    ])
    status = StringField('Status', validators=[
        Optional(),
        AnyOf(ALL_STATUSES, message='Invalid status')
    ])
    client_name = StringField('Client Name', validators=[Optional(), Length(max=200)])
    client_email = StringField('Client Email', validators=[
        Optional(),
        Email(message='Invalid client email'),
        Length(max=120)
    ])
    client_phone = StringField('Client Phone', validators=[
        Optional(),
        Regexp(r'^[0-9+().\-\s]{7,30}$', message='Invalid client phone')
    ])
    start_date = DateField('Start Date', format=DATE_FORMATS, validators=[Optional()])
    end_date = DateField('End Date', format=DATE_FORMATS, validators=[Optional()])
    tags = StringField('Tags', validators=[Optional()])
    notes = TextAreaField('Notes', validators=[Optional()])

    def validate_end_date(self, field):
        if field.data and self.start_date.data and field.data < self.start_date.data:
            raise ValidationError('End date must be on or after the start date')


class TemplateInfoForm(ApiForm):
    name = StringField('Name', validators=[
        DataRequired(message='Name is required'),
        Length(max=200)
    ])
    description = TextAreaField('Description', validators=[Optional()])
    category = StringField('Category', validators=[DataRequired(message='Category is required')])

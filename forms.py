from flask_wtf import FlaskForm
from werkzeug.datastructures import ImmutableMultiDict
from wtforms import StringField, TextAreaField, PasswordField, IntegerField, DecimalField
from wtforms.validators import DataRequired, Email, Length, NumberRange, Optional


def strip_value(value):
    return value.strip() if isinstance(value, str) else value


class ApiForm(FlaskForm):
    """Form fed from a JSON body; CSRF is not used for the JSON API"""

    class Meta:
        csrf = False

        def wrap_formdata(self, form, formdata):
            formdata = super().wrap_formdata(form, formdata)
            if formdata is None:
                return None
            # JSON numbers and booleans reach the fields as text
            return ImmutableMultiDict([
                (key, value if isinstance(value, str) else str(value))
                for key, value in formdata.items(multi=True)
                if value is not None
            ])

    def first_error(self):
        for name, errors in self.errors.items():
            if errors:
                return f"{name}: {errors[0]}"
        return 'Invalid input'


class RegisterForm(ApiForm):
    username = StringField('Username', filters=[strip_value],
                           validators=[DataRequired(), Length(min=3, max=50)])
    email = StringField('Email', filters=[strip_value],
                        validators=[DataRequired(), Email(), Length(max=255)])
    password = PasswordField('Password', validators=[DataRequired(), Length(min=6)])


class LoginForm(ApiForm):
    username = StringField('Username', filters=[strip_value], validators=[
        DataRequired(), Length(min=3, message='Username must be at least 3 characters')
    ])
    password = PasswordField('Password', validators=[
        DataRequired(), Length(min=6, message='Password must be at least 6 characters')
    ])


class PasswordUpdateForm(ApiForm):
    password = PasswordField('Password', validators=[DataRequired(), Length(min=6)])


class ContactForm(ApiForm):
    name = StringField('Name', filters=[strip_value],
                       validators=[DataRequired(), Length(max=100)])
    email = StringField('Email', filters=[strip_value],
                        validators=[DataRequired(), Email(), Length(max=255)])
    subject = StringField('Subject', filters=[strip_value],
                          validators=[DataRequired(), Length(max=200)])
    message = TextAreaField('Message', validators=[DataRequired()])


class PaletteForm(ApiForm):
    description = StringField('Description', validators=[DataRequired(), Length(max=500)])
    mood = StringField('Mood', validators=[DataRequired(), Length(max=100)])
    numColors = IntegerField('Number of colors', default=5, validators=[
        Optional(), NumberRange(min=2, max=10)
    ])


class PaymentIntentForm(ApiForm):
    amount = DecimalField('Amount', validators=[DataRequired(), NumberRange(min=1)])
    productId = StringField('Product ID', validators=[DataRequired()])
    productName = StringField('Product name', validators=[Optional(), Length(max=200)])

from django import forms
from django.core.validators import RegexValidator
from django.utils import timezone

from .models import PermitApplication

ALNUM = RegexValidator(r'^[A-Za-z0-9]+$', 'Solo debe tener letras y números.')


def form_errors(form):
    """Flatten Django form errors into the ``[{field, message}]`` list returned by the API."""
    errors = []
    for field, messages in form.errors.items():
        for message in messages:
            errors.append({'field': field if field != '__all__' else None, 'message': message})
    return errors


class StrippedCharField(forms.CharField):
    def __init__(self, *args, **kwargs):
        kwargs.setdefault('strip', True)
        super().__init__(*args, **kwargs)


class ApplicationForm(forms.Form):
    nombre_completo = StrippedCharField(
        max_length=255,
        error_messages={'required': 'Falta el nombre completo.',
                        'max_length': 'El nombre completo no debe pasar de 255 caracteres.'},
    )
    curp_rfc = StrippedCharField(
        min_length=10, max_length=50, validators=[ALNUM],
        error_messages={'required': 'Falta el CURP/RFC.',
                        'min_length': 'El CURP/RFC debe tener entre 10 y 50 caracteres.',
                        'max_length': 'El CURP/RFC debe tener entre 10 y 50 caracteres.'},
    )
    domicilio = StrippedCharField(error_messages={'required': 'Falta la dirección.'})
    marca = StrippedCharField(
        max_length=100,
        error_messages={'required': 'Falta la marca.', 'max_length': 'La marca no debe pasar de 100 caracteres.'},
    )
    linea = StrippedCharField(
        max_length=100,
        error_messages={'required': 'Falta el modelo.', 'max_length': 'El modelo no debe pasar de 100 caracteres.'},
    )
    color = StrippedCharField(
        max_length=100,
        error_messages={'required': 'Falta el color.', 'max_length': 'El color no debe pasar de 100 caracteres.'},
    )
    numero_serie = StrippedCharField(
        min_length=5, max_length=50, validators=[ALNUM],
        error_messages={'required': 'Falta el número de serie.',
                        'min_length': 'El número de serie debe tener entre 5 y 50 caracteres.',
                        'max_length': 'El número de serie debe tener entre 5 y 50 caracteres.'},
    )
    numero_motor = StrippedCharField(
        max_length=50,
        error_messages={'required': 'Falta el número de motor.',
                        'max_length': 'El número de motor no debe pasar de 50 caracteres.'},
    )
    ano_modelo = forms.IntegerField(error_messages={'required': 'Falta el año.', 'invalid': 'El año debe ser un número.'})

    def __init__(self, *args, partial=False, **kwargs):
        super().__init__(*args, **kwargs)
        self.partial = partial
        if partial:
            for field in self.fields.values():
                field.required = False

    def clean_curp_rfc(self):
        value = self.cleaned_data.get('curp_rfc')
        return value.upper() if value else value

    def clean_numero_serie(self):
        value = self.cleaned_data.get('numero_serie')
        return value.upper() if value else value

    def clean_ano_modelo(self):
        year = self.cleaned_data.get('ano_modelo')
        if year is None:
            return year
        max_year = timezone.localdate().year + 2
        if year < 1900 or year > max_year:
            raise forms.ValidationError(f'El año debe ser válido entre 1900 y {max_year}.')
        return year

    def changed_data_only(self):
        """For partial updates: only the fields the client actually sent."""
        return {k: v for k, v in self.cleaned_data.items() if k in self.data and v not in (None, '')}


class PaymentProofForm(forms.Form):
    paymentReference = StrippedCharField(max_length=100, required=False)
    desiredStartDate = forms.DateField(
        required=False, input_formats=['%Y-%m-%d'],
        error_messages={'invalid': 'La fecha de inicio debe tener el formato AAAA-MM-DD.'},
    )

    def clean_desiredStartDate(self):
        value = self.cleaned_data.get('desiredStartDate')
        if value and value < timezone.localdate():
            raise forms.ValidationError('La fecha de inicio no puede estar en el pasado.')
        return value


class RegisterForm(forms.Form):
    email = forms.EmailField(max_length=255, error_messages={'required': 'Falta el correo electrónico.',
                                                             'invalid': 'Correo electrónico inválido.'})
    password = forms.CharField(
        min_length=8, max_length=128, strip=False,
        error_messages={'required': 'Falta la contraseña.',
                        'min_length': 'La contraseña debe tener al menos 8 caracteres.'},
    )
    first_name = StrippedCharField(max_length=100, error_messages={'required': 'Falta el nombre.'})
    last_name = StrippedCharField(max_length=100, error_messages={'required': 'Falta el apellido.'})

    def clean_email(self):
        return self.cleaned_data['email'].strip().lower()


class LoginForm(forms.Form):
    email = StrippedCharField(error_messages={'required': 'El correo electrónico es requerido.'})
    password = forms.CharField(strip=False, error_messages={'required': 'La contraseña es requerida.'})


class ChangePasswordForm(forms.Form):
    currentPassword = forms.CharField(strip=False, error_messages={'required': 'Falta la contraseña actual.'})
    newPassword = forms.CharField(
        min_length=8, max_length=128, strip=False,
        error_messages={'required': 'Falta la nueva contraseña.',
                        'min_length': 'La contraseña debe tener al menos 8 caracteres.'},
    )

    def clean(self):
        cleaned = super().clean()
        if cleaned.get('currentPassword') and cleaned.get('currentPassword') == cleaned.get('newPassword'):
            raise forms.ValidationError('La nueva contraseña debe ser diferente a la actual.')
        return cleaned


class ForgotPasswordForm(forms.Form):
    email = forms.EmailField(error_messages={'required': 'Falta el correo electrónico.',
                                             'invalid': 'Correo electrónico inválido.'})


class ResetPasswordForm(forms.Form):
    token = StrippedCharField(max_length=64, error_messages={'required': 'Falta el token.'})
    password = forms.CharField(
        min_length=8, max_length=128, strip=False,
        error_messages={'required': 'Falta la contraseña.',
                        'min_length': 'La contraseña debe tener al menos 8 caracteres.'},
    )


class ProfileForm(forms.Form):
    first_name = StrippedCharField(max_length=100, error_messages={'required': 'Falta el nombre.'})
    last_name = StrippedCharField(max_length=100, error_messages={'required': 'Falta el apellido.'})


class RejectPaymentForm(forms.Form):
    reason = StrippedCharField(max_length=255, error_messages={'required': 'Seleccione un motivo de rechazo.'})
    notes = StrippedCharField(max_length=1000, required=False)


class VerifyPaymentForm(forms.Form):
    notes = StrippedCharField(max_length=1000, required=False)


class StatusChangeForm(forms.Form):
    status = forms.ChoiceField(
        choices=PermitApplication.STATUS_CHOICES,
        error_messages={'required': 'Falta el estado.', 'invalid_choice': 'Estado no válido.'},
    )
    notes = StrippedCharField(max_length=1000, required=False)

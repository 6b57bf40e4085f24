"""
Love Journey - Forms

Input validation for the JSON API. Views feed each form a dict built from
the request body (JSON or form-encoded) and only call into the services
with `cleaned_data`.
"""

from django import forms
from django.contrib.auth.password_validation import validate_password

from .models import AnswerRole


class RegisterForm(forms.Form):
    username = forms.CharField(max_length=150)
    password = forms.CharField(strip=False)

    def clean_password(self):
        password = self.cleaned_data['password']
        validate_password(password)
        return password


class LoginForm(forms.Form):
    username = forms.CharField(max_length=150)
    password = forms.CharField(strip=False)


class PasswordChangeForm(forms.Form):
    password = forms.CharField(strip=False)

    def clean_password(self):
        password = self.cleaned_data['password']
        validate_password(password)
        return password


class RelationshipForm(forms.Form):
    """Creating a relationship: who you're with and since when."""
    partner_name = forms.CharField(max_length=100)
    anniversary = forms.DateField()
    description = forms.CharField(required=False, max_length=1000)


class RelationshipUpdateForm(forms.Form):
    """Every field optional; only the ones present in the payload are changed."""
    partner_name = forms.CharField(required=False, max_length=100)
    anniversary = forms.DateField(required=False)
    description = forms.CharField(required=False, max_length=1000)

    def clean_partner_name(self):
        name = self.cleaned_data['partner_name']
        if 'partner_name' in self.data and not name:
            raise forms.ValidationError('Partner name cannot be blank.')
        return name

    def clean_anniversary(self):
        anniversary = self.cleaned_data['anniversary']
        if 'anniversary' in self.data and anniversary is None:
            raise forms.ValidationError('Anniversary cannot be blank.')
        return anniversary

    def changes(self):
        """cleaned_data limited to submitted fields, keyed for the registry."""
        field_map = {
            'partner_name': 'partner_name',
            'anniversary': 'anniversary_date',
            'description': 'description',
        }
        return {
            target: self.cleaned_data[name]
            for name, target in field_map.items()
            if name in self.data
        }


class LinkPartnerForm(forms.Form):
    partner_code = forms.CharField(max_length=20, error_messages={
        'required': 'Partner code is required',
    })


class QuestionForm(forms.Form):
    """Both fields optional: a random prompt for today by default."""
    question = forms.CharField(required=False, max_length=500)
    date = forms.DateField(required=False)


class AnswerForm(forms.Form):
    answer = forms.CharField(max_length=5000)
    role = forms.ChoiceField(choices=AnswerRole.choices, required=False)
    # Older clients send isUser instead of a role
    is_user = forms.NullBooleanField(required=False)

    def clean(self):
        cleaned_data = super().clean()
        if not cleaned_data.get('role'):
            is_user = cleaned_data.get('is_user')
            if is_user is None:
                cleaned_data['role'] = None
            else:
                cleaned_data['role'] = AnswerRole.SELF if is_user else AnswerRole.PARTNER
        return cleaned_data


class MemoryForm(forms.Form):
    """A memory needs a picture: either a URL or an uploaded file."""
    title = forms.CharField(max_length=200)
    description = forms.CharField(required=False, max_length=2000)
    image_url = forms.URLField(required=False, max_length=1000)
    image = forms.FileField(required=False)
    date = forms.DateTimeField()

    def clean(self):
        cleaned_data = super().clean()
        if not cleaned_data.get('image_url') and not cleaned_data.get('image'):
            raise forms.ValidationError('Provide an image URL or upload an image.')
        return cleaned_data

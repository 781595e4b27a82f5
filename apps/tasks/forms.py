"""
Forms for tasks app.

Used to parse and validate JSON request bodies before they reach the
service layer. Role rules (who may assign to whom) are enforced by
services, not here, so they surface as 403 rather than form errors.

Includes:
- TaskForm: Create and edit tasks
- TaskStatusForm: Change task status
"""

from django import forms
from django.core.exceptions import ValidationError

from .models import Task
from apps.accounts.models import User


class TaskForm(forms.Form):
    """
    Form for creating and editing tasks.

    With partial=True (edits) every field is optional and cleaned_data
    only carries the keys the client actually sent.
    """

    title = forms.CharField(max_length=255)
    description = forms.CharField(required=False)
    start_date = forms.DateTimeField()
    end_date = forms.DateTimeField()
    priority = forms.ChoiceField(choices=Task.Priority.choices, required=False)
    assignee = forms.ModelChoiceField(queryset=User.objects.all(), required=False)

    def __init__(self, *args, partial=False, **kwargs):
        super().__init__(*args, **kwargs)
        self.partial = partial

        if partial:
            for field in self.fields.values():
                field.required = False

    def clean(self):
        cleaned_data = super().clean()

        if self.partial:
            cleaned_data = {
                name: value for name, value in cleaned_data.items()
                if name in self.data
            }
            self.cleaned_data = cleaned_data
        elif not cleaned_data.get('priority'):
            cleaned_data['priority'] = Task.Priority.MEDIUM

        start_date = cleaned_data.get('start_date')
        end_date = cleaned_data.get('end_date')
        if start_date and end_date and end_date <= start_date:
            raise ValidationError({'end_date': 'End date must be after start date.'})

        return cleaned_data


class TaskStatusForm(forms.Form):
    """Form for changing task status."""

    status = forms.ChoiceField(choices=Task.Status.choices)

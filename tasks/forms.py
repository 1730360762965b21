from django import forms

from .models import Task


class TaskForm(forms.Form):
    title = forms.CharField(max_length=255, strip=True)
    due_date = forms.DateField(input_formats=["%Y-%m-%d"])
    priority = forms.ChoiceField(
        choices=Task.Priority.choices,
        initial=Task.Priority.MEDIUM,
        required=False,
    )

    def clean_title(self):
        title = self.cleaned_data["title"]
        if not title:
            raise forms.ValidationError("Please enter a task title.")
        return title

    def clean_priority(self):
        return self.cleaned_data.get("priority") or Task.Priority.MEDIUM

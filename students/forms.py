from django import forms

from .assessment import CHOICES, PERSONALITY_QUESTIONS, STUDY_QUESTIONS
from .models import UserProfile
from .services import MIN_PASSWORD_LENGTH


class ProfileForm(forms.ModelForm):
    class Meta:
        model = UserProfile
        fields = ["display_name", "bio", "photo_url"]
        widgets = {
            "bio": forms.Textarea(attrs={"rows": 3, "placeholder": "Tell us about yourself..."}),
        }


class PasswordChangeForm(forms.Form):
    new_password = forms.CharField(min_length=MIN_PASSWORD_LENGTH, strip=False)
    confirm_password = forms.CharField(strip=False)

    def clean(self):
        cleaned = super().clean()
        if cleaned.get("new_password") != cleaned.get("confirm_password"):
            raise forms.ValidationError("Passwords do not match.")
        return cleaned


class CreateAccountForm(forms.Form):
    email = forms.EmailField()
    password = forms.CharField(min_length=MIN_PASSWORD_LENGTH, strip=False)
    display_name = forms.CharField(max_length=255)
    role = forms.ChoiceField(choices=UserProfile.Role.choices, initial=UserProfile.Role.STUDENT)


class AssessmentForm(forms.Form):
    """One required choice per study-habit and personality question."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        answer_choices = [(c, c) for c in CHOICES]
        for i, question in enumerate(STUDY_QUESTIONS):
            self.fields[f"habit_{i}"] = forms.ChoiceField(
                label=question, choices=answer_choices,
            )
        for i, (label, question) in enumerate(PERSONALITY_QUESTIONS):
            self.fields[f"personality_{i}"] = forms.ChoiceField(
                label=f"{label}: {question}", choices=answer_choices,
            )

    def habit_answers(self):
        return {i: self.cleaned_data[f"habit_{i}"] for i in range(len(STUDY_QUESTIONS))}

    def personality_answers(self):
        return {
            i: self.cleaned_data[f"personality_{i}"]
            for i in range(len(PERSONALITY_QUESTIONS))
        }

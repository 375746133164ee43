from django import forms

from .compatibility import BLOOD_GROUP_CHOICES


class BloodRequestForm(forms.Form):
    bloodgroup = forms.ChoiceField(choices=BLOOD_GROUP_CHOICES)
    description = forms.CharField(max_length=500, required=False)
    units_required = forms.IntegerField(min_value=1)
    contact_phone = forms.CharField(max_length=20)
    hospital_address = forms.CharField(max_length=255)

    def clean_contact_phone(self):
        phone = self.cleaned_data['contact_phone'].strip()
        if not any(ch.isdigit() for ch in phone):
            raise forms.ValidationError("Enter a phone number.")
        return phone

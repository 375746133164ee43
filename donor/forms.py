from django import forms

from .models import Donor


class LocationReportForm(forms.Form):
    latitude = forms.FloatField(min_value=-90, max_value=90)
    longitude = forms.FloatField(min_value=-180, max_value=180)


class TokenRefreshForm(forms.ModelForm):
    notification_token = forms.CharField(max_length=512, required=False)

    class Meta:
        model = Donor
        fields = ['notification_token']

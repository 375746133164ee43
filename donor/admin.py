from django.contrib import admin

from .models import Donor


@admin.register(Donor)
class DonorAdmin(admin.ModelAdmin):
    list_display = ['user', 'bloodgroup', 'is_donor', 'last_donated_at', 'token_updated_at']
    list_filter = ['bloodgroup', 'is_donor']
    search_fields = ['user__username', 'mobile']

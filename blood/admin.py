from django.contrib import admin

from .models import BloodRequest, Donation, NotifiedDonor


class DonationInline(admin.TabularInline):
    model = Donation
    extra = 0


class NotifiedDonorInline(admin.TabularInline):
    model = NotifiedDonor
    extra = 0
    readonly_fields = ['donor', 'position', 'distance_km', 'delivered', 'failure_reason', 'notified_at']


@admin.register(BloodRequest)
class BloodRequestAdmin(admin.ModelAdmin):
    list_display = ['id', 'bloodgroup', 'units_required', 'status', 'notifications_sent', 'notifications_failed', 'created_at', 'expires_at']
    list_filter = ['bloodgroup', 'status']
    search_fields = ['hospital_address', 'contact_phone', 'requester__user__username']
    readonly_fields = ['created_at', 'expires_at', 'version']
    inlines = [DonationInline, NotifiedDonorInline]


@admin.register(Donation)
class DonationAdmin(admin.ModelAdmin):
    list_display = ['request', 'donor', 'units_donated', 'status', 'donated_at']
    list_filter = ['status']

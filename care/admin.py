"""
Django admin registrations.

Accounts are edited through a trimmed ``UserAdmin`` because the account
model logs in by email and has no username.
"""
from django.contrib import admin
from django.contrib.auth.admin import UserAdmin

from .models import (
    Account,
    Admin,
    Appointment,
    AppointmentTransition,
    AuditEvent,
    Doctor,
    MedicalRecord,
    Patient,
)


@admin.register(Account)
class AccountAdmin(UserAdmin):
    ordering = ('id',)
    list_display = ('id', 'email', 'role', 'is_active', 'is_staff')
    list_filter = ('role', 'is_active', 'is_staff')
    search_fields = ('id', 'email')
    fieldsets = (
        (None, {'fields': ('id', 'email', 'password', 'role')}),
        ('Permissions', {'fields': ('is_active', 'is_staff', 'is_superuser', 'groups', 'user_permissions')}),
        ('Dates', {'fields': ('last_login', 'date_joined')}),
    )
    add_fieldsets = (
        (None, {'classes': ('wide',), 'fields': ('id', 'email', 'role', 'password1', 'password2')}),
    )


@admin.register(Doctor)
class DoctorAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'specialty', 'phone', 'account')
    list_filter = ('specialty',)
    search_fields = ('name', 'email', 'account__id')


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'phone', 'account')
    search_fields = ('name', 'email', 'account__id')


@admin.register(Admin)
class AdminAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'phone', 'account')
    search_fields = ('name', 'email', 'account__id')


class AppointmentTransitionInline(admin.TabularInline):
    model = AppointmentTransition
    extra = 0
    readonly_fields = ('from_status', 'to_status', 'operator', 'timestamp', 'reason')


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = ('id', 'doctor', 'patient', 'scheduled_at', 'status')
    list_filter = ('status',)
    date_hierarchy = 'scheduled_at'
    inlines = [AppointmentTransitionInline]


@admin.register(MedicalRecord)
class MedicalRecordAdmin(admin.ModelAdmin):
    list_display = ('id', 'patient', 'doctor', 'recorded_at')
    search_fields = ('diagnosis', 'patient__name', 'doctor__name')


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('id', 'action', 'account', 'object_type', 'object_id', 'created_at')
    list_filter = ('action', 'object_type')
    search_fields = ('object_id', 'account__id')

from django.contrib import admin

from .models import (
    Attendance, AttendanceSession, Group, GroupSchedule, GroupTrainer,
    PreRegistration, Student, StudentGroup, StudentPayment, Trainer,
)


@admin.register(Student)
class StudentAdmin(admin.ModelAdmin):
    list_display = ('student_number', 'first_name', 'last_name', 'dealer', 'parent_phone', 'is_active')
    list_filter = ('is_active', 'gender')
    search_fields = ('student_number', 'first_name', 'last_name', 'parent_name')
    readonly_fields = ('student_number', 'created_at', 'updated_at')
    raw_id_fields = ('dealer',)


@admin.register(Trainer)
class TrainerAdmin(admin.ModelAdmin):
    list_display = ('first_name', 'last_name', 'dealer', 'phone', 'is_active')
    list_filter = ('is_active',)
    search_fields = ('first_name', 'last_name', 'email')
    raw_id_fields = ('dealer', 'user')


class GroupScheduleInline(admin.TabularInline):
    model = GroupSchedule
    extra = 0


class GroupTrainerInline(admin.TabularInline):
    model = GroupTrainer
    extra = 0
    raw_id_fields = ('trainer',)


class StudentGroupInline(admin.TabularInline):
    model = StudentGroup
    extra = 0
    raw_id_fields = ('student',)


@admin.register(Group)
class GroupAdmin(admin.ModelAdmin):
    list_display = ('name', 'dealer', 'max_capacity', 'is_active')
    list_filter = ('is_active',)
    search_fields = ('name',)
    raw_id_fields = ('dealer',)
    inlines = [GroupScheduleInline, GroupTrainerInline, StudentGroupInline]


class AttendanceInline(admin.TabularInline):
    model = Attendance
    extra = 0
    raw_id_fields = ('student',)


@admin.register(AttendanceSession)
class AttendanceSessionAdmin(admin.ModelAdmin):
    list_display = ('group', 'date', 'trainer')
    list_filter = ('date',)
    raw_id_fields = ('group', 'trainer')
    inlines = [AttendanceInline]


@admin.register(StudentPayment)
class StudentPaymentAdmin(admin.ModelAdmin):
    list_display = ('student', 'amount', 'payment_type', 'payment_method', 'status', 'paid_at')
    list_filter = ('status', 'payment_type', 'payment_method')
    raw_id_fields = ('dealer', 'student')


@admin.register(PreRegistration)
class PreRegistrationAdmin(admin.ModelAdmin):
    list_display = ('first_name', 'last_name', 'dealer', 'parent_phone', 'source', 'status', 'created_at')
    list_filter = ('status', 'source')
    search_fields = ('first_name', 'last_name', 'parent_name', 'parent_phone')
    readonly_fields = ('created_at', 'updated_at')
    raw_id_fields = ('dealer', 'student')

from django.utils.translation import gettext_lazy as _
from rest_framework import serializers

from .models import (
    Attendance, AttendanceSession, Group, GroupSchedule, GroupTrainer,
    PreRegistration, Student, StudentPayment, Trainer,
)


class DealerOwnedField(serializers.PrimaryKeyRelatedField):
    """PK-поле, видящее только объекты дилера из context['dealer']."""

    def get_queryset(self):
        dealer = self.context.get('dealer')
        return super().get_queryset().for_dealer(dealer)


class StudentSerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(read_only=True)

    class Meta:
        model = Student
        fields = [
            'id', 'student_number', 'first_name', 'last_name', 'full_name',
            'birth_date', 'gender', 'phone', 'email', 'address', 'photo_url',
            'parent_name', 'parent_phone', 'parent_email',
            'emergency_contact', 'emergency_phone',
            'monthly_fee', 'registration_fee', 'is_active', 'notes',
            'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'student_number', 'created_at', 'updated_at']
        extra_kwargs = {
            'first_name': {'min_length': 2},
            'last_name': {'min_length': 2},
            'parent_name': {'min_length': 2},
        }


class TrainerSerializer(serializers.ModelSerializer):
    class Meta:
        model = Trainer
        fields = ['id', 'first_name', 'last_name', 'phone', 'email', 'salary', 'is_active', 'created_at']
        read_only_fields = ['id', 'created_at']


class GroupScheduleSerializer(serializers.ModelSerializer):
    class Meta:
        model = GroupSchedule
        fields = ['id', 'day_of_week', 'start_time', 'end_time']

    def validate(self, attrs):
        if attrs['start_time'] >= attrs['end_time']:
            raise serializers.ValidationError({'end_time': _('End time must be after start time')})
        return attrs


class GroupTrainerSerializer(serializers.ModelSerializer):
    trainer = DealerOwnedField(queryset=Trainer.objects.all())
    trainer_name = serializers.CharField(source='trainer.__str__', read_only=True)

    class Meta:
        model = GroupTrainer
        fields = ['trainer', 'trainer_name', 'is_primary']


class GroupSerializer(serializers.ModelSerializer):
    schedules = GroupScheduleSerializer(many=True, read_only=True)
    trainers = GroupTrainerSerializer(source='group_trainers', many=True, read_only=True)
    student_count = serializers.SerializerMethodField()

    class Meta:
        model = Group
        fields = [
            'id', 'name', 'description', 'max_capacity', 'is_active',
            'schedules', 'trainers', 'student_count', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'is_active', 'created_at', 'updated_at']
        extra_kwargs = {'name': {'min_length': 2}}

    def get_student_count(self, obj):
        return obj.active_student_count()


class GroupStudentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Student
        fields = ['id', 'first_name', 'last_name', 'photo_url']


class EnrollSerializer(serializers.Serializer):
    student = DealerOwnedField(queryset=Student.objects.all())


# ═══════════════════════════════════════════════════════════════
# ATTENDANCE
# ═══════════════════════════════════════════════════════════════

class AttendanceRecordSerializer(serializers.Serializer):
    student_id = serializers.UUIDField()
    status = serializers.ChoiceField(choices=Attendance.Status.choices)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class AttendanceSessionCreateSerializer(serializers.Serializer):
    group = DealerOwnedField(queryset=Group.objects.all())
    trainer = DealerOwnedField(queryset=Trainer.objects.all())
    date = serializers.DateField()
    attendances = AttendanceRecordSerializer(many=True, allow_empty=False)


class AttendanceSessionUpdateSerializer(serializers.Serializer):
    attendances = AttendanceRecordSerializer(many=True, allow_empty=False)


class AttendanceSerializer(serializers.ModelSerializer):
    student_name = serializers.CharField(source='student.full_name', read_only=True)

    class Meta:
        model = Attendance
        fields = ['id', 'student', 'student_name', 'status', 'notes']


class AttendanceSessionSerializer(serializers.ModelSerializer):
    records = AttendanceSerializer(many=True, read_only=True)
    group_name = serializers.CharField(source='group.name', read_only=True)

    class Meta:
        model = AttendanceSession
        fields = ['id', 'group', 'group_name', 'trainer', 'date', 'records', 'created_at', 'updated_at']


# ═══════════════════════════════════════════════════════════════
# PAYMENTS
# ═══════════════════════════════════════════════════════════════

class StudentPaymentSerializer(serializers.ModelSerializer):
    student = DealerOwnedField(queryset=Student.objects.all())
    student_name = serializers.CharField(source='student.full_name', read_only=True)

    class Meta:
        model = StudentPayment
        fields = [
            'id', 'student', 'student_name', 'amount', 'payment_type',
            'payment_method', 'status', 'paid_at', 'description', 'created_at',
        ]
        read_only_fields = ['id', 'created_at']


# ═══════════════════════════════════════════════════════════════
# PRE-REGISTRATION
# ═══════════════════════════════════════════════════════════════

class PreRegistrationSerializer(serializers.ModelSerializer):
    student_number = serializers.CharField(source='student.student_number', read_only=True, default=None)

    class Meta:
        model = PreRegistration
        fields = [
            'id', 'first_name', 'last_name', 'birth_date', 'gender',
            'parent_name', 'parent_phone', 'parent_email',
            'branch_interest', 'source', 'notes', 'status',
            'student', 'student_number', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'status', 'student', 'created_at', 'updated_at']
        extra_kwargs = {
            'first_name': {'min_length': 2},
            'last_name': {'min_length': 2},
            'parent_name': {'min_length': 2},
        }

    def to_internal_value(self, data):
        # Формы присылают "none" для невыбранного значения
        if hasattr(data, 'copy'):
            data = data.copy()
            for field in ('gender', 'branch_interest', 'source'):
                if data.get(field) == 'none':
                    data[field] = ''
        return super().to_internal_value(data)


class PreRegistrationStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=PreRegistration.Status.choices)


class PreRegistrationConvertSerializer(serializers.Serializer):
    birth_date = serializers.DateField(required=False)
    gender = serializers.ChoiceField(choices=Student.Gender.choices, required=False)
    monthly_fee = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, required=False)
    registration_fee = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, required=False)
    group = DealerOwnedField(queryset=Group.objects.all(), required=False)

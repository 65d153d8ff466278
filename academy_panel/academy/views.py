"""
Academy API views (/api/academy/).
"""
from django.db import transaction
from django.db.models import Q
from django.utils.translation import gettext_lazy as _
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from dealers.mixins import DealerSessionMixin
from dealers.permissions import Permission
from . import services
from .models import (
    AttendanceSession, Group, GroupSchedule, GroupTrainer, PreRegistration,
    Student, StudentPayment, Trainer,
)
from .serializers import (
    AttendanceSessionCreateSerializer, AttendanceSessionSerializer,
    AttendanceSessionUpdateSerializer, EnrollSerializer, GroupScheduleSerializer,
    GroupSerializer, GroupStudentSerializer, GroupTrainerSerializer,
    PreRegistrationConvertSerializer, PreRegistrationSerializer,
    PreRegistrationStatusSerializer, StudentPaymentSerializer,
    StudentSerializer, TrainerSerializer,
)


def validation_error(errors, message=_('Please check the form')):
    return Response({'message': message, 'errors': errors}, status=status.HTTP_400_BAD_REQUEST)


class StudentViewSet(DealerSessionMixin, viewsets.ModelViewSet):
    """/api/academy/students/"""
    queryset = Student.objects.all()
    serializer_class = StudentSerializer
    required_permissions = {
        'list': Permission.STUDENTS_VIEW,
        'retrieve': Permission.STUDENTS_VIEW,
        'create': Permission.STUDENTS_CREATE,
        'update': Permission.STUDENTS_EDIT,
        'partial_update': Permission.STUDENTS_EDIT,
        'destroy': Permission.STUDENTS_DELETE,
        'payments': Permission.PAYMENTS_VIEW,
    }

    def get_queryset(self):
        qs = super().get_queryset()
        search = self.request.query_params.get('search')
        if search:
            qs = qs.filter(
                Q(first_name__icontains=search)
                | Q(last_name__icontains=search)
                | Q(student_number__icontains=search)
            )
        is_active = self.request.query_params.get('is_active')
        if is_active in ('true', 'false'):
            qs = qs.filter(is_active=(is_active == 'true'))
        return qs

    def perform_create(self, serializer):
        serializer.instance = services.create_student(self.get_dealer(), serializer.validated_data)

    def perform_destroy(self, instance):
        # Ученики с историей не удаляются физически
        instance.is_active = False
        instance.save(update_fields=['is_active', 'updated_at'])

    @action(detail=True, methods=['get'])
    def payments(self, request, pk=None):
        student = self.get_object()
        qs = StudentPayment.objects.for_dealer(self.get_dealer()).filter(student=student)
        return Response(StudentPaymentSerializer(qs, many=True, context=self.get_serializer_context()).data)


class TrainerViewSet(DealerSessionMixin, viewsets.ModelViewSet):
    """/api/academy/trainers/"""
    queryset = Trainer.objects.all()
    serializer_class = TrainerSerializer
    required_permissions = {
        'list': Permission.TRAINERS_VIEW,
        'retrieve': Permission.TRAINERS_VIEW,
        'create': Permission.TRAINERS_CREATE,
        'update': Permission.TRAINERS_EDIT,
        'partial_update': Permission.TRAINERS_EDIT,
        'destroy': Permission.TRAINERS_DELETE,
    }

    def perform_destroy(self, instance):
        instance.is_active = False
        instance.save(update_fields=['is_active', 'updated_at'])


class GroupViewSet(DealerSessionMixin, viewsets.ModelViewSet):
    """
    /api/academy/groups/
    Группы дилера; удаление мягкое и запрещено при активных учениках.
    """
    queryset = Group.objects.prefetch_related('schedules', 'group_trainers__trainer')
    serializer_class = GroupSerializer
    required_permissions = {
        'list': Permission.GROUPS_VIEW,
        'retrieve': Permission.GROUPS_VIEW,
        'students': Permission.GROUPS_VIEW,
        'create': Permission.GROUPS_CREATE,
        'copy': Permission.GROUPS_CREATE,
        'destroy': Permission.GROUPS_DELETE,
    }
    required_permission = Permission.GROUPS_EDIT

    def get_queryset(self):
        qs = super().get_queryset()
        if self.action == 'list' and self.request.query_params.get('include_inactive') != 'true':
            qs = qs.filter(is_active=True)
        return qs

    def destroy(self, request, *args, **kwargs):
        try:
            services.delete_group(self.get_object())
        except services.GroupError as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=['post'])
    def copy(self, request, pk=None):
        group = services.copy_group(self.get_object())
        return Response(self.get_serializer(group).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['get'])
    def students(self, request, pk=None):
        students = services.group_students(self.get_object())
        return Response(GroupStudentSerializer(students, many=True).data)

    @action(detail=True, methods=['post'])
    def enroll(self, request, pk=None):
        group = self.get_object()
        serializer = EnrollSerializer(data=request.data, context=self.get_serializer_context())
        serializer.is_valid(raise_exception=True)
        services.enroll_student(group, serializer.validated_data['student'])
        return Response(self.get_serializer(self.get_object()).data)

    @action(detail=True, methods=['post'], url_path='remove-student')
    def remove_student(self, request, pk=None):
        group = self.get_object()
        serializer = EnrollSerializer(data=request.data, context=self.get_serializer_context())
        serializer.is_valid(raise_exception=True)
        services.remove_student(group, serializer.validated_data['student'])
        return Response(self.get_serializer(self.get_object()).data)

    @action(detail=True, methods=['put'])
    def schedules(self, request, pk=None):
        group = self.get_object()
        serializer = GroupScheduleSerializer(data=request.data, many=True)
        serializer.is_valid(raise_exception=True)
        with transaction.atomic():
            group.schedules.all().delete()
            GroupSchedule.objects.bulk_create([GroupSchedule(group=group, **item) for item in serializer.validated_data])
        return Response(self.get_serializer(self.get_object()).data)

    @action(detail=True, methods=['put'])
    def trainers(self, request, pk=None):
        group = self.get_object()
        serializer = GroupTrainerSerializer(data=request.data, many=True, context=self.get_serializer_context())
        serializer.is_valid(raise_exception=True)
        with transaction.atomic():
            group.group_trainers.all().delete()
            GroupTrainer.objects.bulk_create([GroupTrainer(group=group, **item) for item in serializer.validated_data])
        return Response(self.get_serializer(self.get_object()).data)


class AttendanceSessionViewSet(DealerSessionMixin,
                               mixins.ListModelMixin,
                               mixins.RetrieveModelMixin,
                               viewsets.GenericViewSet):
    """
    /api/academy/attendance/
    Сессии посещаемости: одна на группу в день.
    """
    queryset = AttendanceSession.objects.select_related('group', 'trainer').prefetch_related('records__student')
    serializer_class = AttendanceSessionSerializer
    required_permissions = {'list': Permission.ATTENDANCE_VIEW, 'retrieve': Permission.ATTENDANCE_VIEW}
    required_permission = Permission.ATTENDANCE_TAKE

    def get_queryset(self):
        qs = super().get_queryset()
        group = self.request.query_params.get('group')
        if group:
            qs = qs.filter(group_id=group)
        return qs

    def create(self, request):
        serializer = AttendanceSessionCreateSerializer(data=request.data, context=self.get_serializer_context())
        if not serializer.is_valid():
            return validation_error(serializer.errors)
        data = serializer.validated_data
        try:
            session = services.create_attendance_session(
                data['group'], data['trainer'], data['date'], data['attendances'],
            )
        except services.AttendanceError as e:
            return validation_error({e.field: [str(e)]}, message=str(e))
        return Response(self.get_serializer(session).data, status=status.HTTP_201_CREATED)

    def update(self, request, pk=None):
        session = self.get_object()
        serializer = AttendanceSessionUpdateSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error(serializer.errors)
        try:
            session = services.update_attendance_session(session, serializer.validated_data['attendances'])
        except services.AttendanceError as e:
            return validation_error({e.field: [str(e)]}, message=str(e))
        return Response(self.get_serializer(session).data)


class StudentPaymentViewSet(DealerSessionMixin,
                            mixins.ListModelMixin,
                            mixins.RetrieveModelMixin,
                            mixins.CreateModelMixin,
                            viewsets.GenericViewSet):
    """/api/academy/payments/"""
    queryset = StudentPayment.objects.select_related('student')
    serializer_class = StudentPaymentSerializer
    required_permissions = {'list': Permission.PAYMENTS_VIEW, 'retrieve': Permission.PAYMENTS_VIEW}
    required_permission = Permission.PAYMENTS_CREATE

    def get_queryset(self):
        qs = super().get_queryset()
        for param, lookup in (('student', 'student_id'), ('payment_type', 'payment_type'), ('status', 'status')):
            value = self.request.query_params.get(param)
            if value:
                qs = qs.filter(**{lookup: value})
        return qs

    def perform_create(self, serializer):
        data = dict(serializer.validated_data)
        student = data.pop('student')
        serializer.instance = services.record_payment(self.get_dealer(), student, data)


class PreRegistrationViewSet(DealerSessionMixin, viewsets.ModelViewSet):
    """
    /api/academy/pre-registrations/
    Заявки на запись; POST <id>/status/ и POST <id>/convert/ (создаёт ученика).
    """
    queryset = PreRegistration.objects.select_related('student')
    serializer_class = PreRegistrationSerializer
    required_permissions = {
        'list': Permission.PRE_REGISTRATION_VIEW,
        'retrieve': Permission.PRE_REGISTRATION_VIEW,
        'create': Permission.PRE_REGISTRATION_CREATE,
        'update': Permission.PRE_REGISTRATION_EDIT,
        'partial_update': Permission.PRE_REGISTRATION_EDIT,
        'set_status': Permission.PRE_REGISTRATION_EDIT,
        'destroy': Permission.PRE_REGISTRATION_DELETE,
        'convert': Permission.PRE_REGISTRATION_CONVERT,
    }

    def get_queryset(self):
        qs = super().get_queryset()
        status_filter = self.request.query_params.get('status')
        if status_filter:
            qs = qs.filter(status=status_filter)
        search = self.request.query_params.get('search')
        if search:
            qs = qs.filter(
                Q(first_name__icontains=search)
                | Q(last_name__icontains=search)
                | Q(parent_name__icontains=search)
                | Q(parent_phone__icontains=search)
            )
        return qs

    @action(detail=True, methods=['post'], url_path='status')
    def set_status(self, request, pk=None):
        pre_registration = self.get_object()
        serializer = PreRegistrationStatusSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error(serializer.errors)
        try:
            services.set_pre_registration_status(pre_registration, serializer.validated_data['status'])
        except services.PreRegistrationError as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(self.get_serializer(pre_registration).data)

    @action(detail=True, methods=['post'])
    def convert(self, request, pk=None):
        pre_registration = self.get_object()
        serializer = PreRegistrationConvertSerializer(data=request.data, context=self.get_serializer_context())
        if not serializer.is_valid():
            return validation_error(serializer.errors)
        extra = dict(serializer.validated_data)
        group = extra.pop('group', None)
        try:
            with transaction.atomic():
                student = services.convert_pre_registration(pre_registration, extra)
                if group is not None:
                    services.enroll_student(group, student)
        except services.PreRegistrationError as e:
            return Response({'detail': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(StudentSerializer(student).data, status=status.HTTP_201_CREATED)

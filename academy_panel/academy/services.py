"""
Сервисы академии: номера учеников, группы, посещаемость, платежи.
"""
import datetime
import logging

from django.db import IntegrityError, transaction
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from .models import (
    Attendance, AttendanceSession, Group, GroupSchedule, GroupTrainer,
    PreRegistration, Student, StudentGroup, StudentPayment,
)

logger = logging.getLogger(__name__)

STUDENT_NUMBER_MAX_ATTEMPTS = 5


class AttendanceError(Exception):
    """Attendance session cannot be written; ``field`` names the offending input."""

    def __init__(self, message, field=None):
        super().__init__(message)
        self.field = field


class GroupError(Exception):
    pass


class PreRegistrationError(Exception):
    pass


# ═══════════════════════════════════════════════════════════════
# STUDENTS
# ═══════════════════════════════════════════════════════════════

def next_student_number(dealer, year=None):
    """
    Следующий номер ученика дилера: <год><порядковый 4 цифры>, например 20260007.
    """
    year = year or timezone.localdate().year
    prefix = str(year)
    last = (
        Student.objects.for_dealer(dealer)
        .filter(student_number__startswith=prefix)
        .order_by('-student_number')
        .values_list('student_number', flat=True)
        .first()
    )
    sequence = int(last[len(prefix):]) + 1 if last and last[len(prefix):].isdigit() else 1
    return f'{prefix}{sequence:04d}'


def create_student(dealer, data):
    """Создать ученика; номер выдаётся заново при гонке за тот же номер."""
    for attempt in range(1, STUDENT_NUMBER_MAX_ATTEMPTS + 1):
        try:
            with transaction.atomic():
                student = Student.objects.create(
                    dealer=dealer, student_number=next_student_number(dealer), **data,
                )
        except IntegrityError:
            logger.warning(f'Student number collision for dealer {dealer.slug} (attempt {attempt})')
            continue
        logger.info(f'Student created: {student.student_number} ({dealer.slug})')
        return student
    raise IntegrityError('Could not allocate a unique student number')


# ═══════════════════════════════════════════════════════════════
# GROUPS
# ═══════════════════════════════════════════════════════════════

def delete_group(group):
    """Мягкое удаление: группа деактивируется, если в ней нет активных учеников."""
    active = group.active_student_count()
    if active:
        raise GroupError(
            _('This group has %(count)d active students. Move them to other groups first.')
            % {'count': active}
        )
    group.is_active = False
    group.save(update_fields=['is_active', 'updated_at'])
    logger.info(f'Group deactivated: {group.name} ({group.dealer_id})')
    return group


@transaction.atomic
def copy_group(group):
    """Копия группы с расписанием и тренерами; ученики не копируются."""
    copy = Group.objects.create(
        dealer=group.dealer,
        name=f'{group.name} (Copy)',
        description=group.description,
        max_capacity=group.max_capacity,
    )
    GroupSchedule.objects.bulk_create([
        GroupSchedule(group=copy, day_of_week=s.day_of_week, start_time=s.start_time, end_time=s.end_time)
        for s in group.schedules.all()
    ])
    GroupTrainer.objects.bulk_create([
        GroupTrainer(group=copy, trainer_id=gt.trainer_id, is_primary=gt.is_primary)
        for gt in group.group_trainers.all()
    ])
    logger.info(f'Group copied: {group.name} -> {copy.pk}')
    return copy


def enroll_student(group, student):
    if student.dealer_id != group.dealer_id:
        raise GroupError(_('Student not found'))
    membership, created = StudentGroup.objects.get_or_create(student=student, group=group)
    if not created and not membership.is_active:
        membership.is_active = True
        membership.save(update_fields=['is_active'])
    return membership


def remove_student(group, student):
    return StudentGroup.objects.filter(group=group, student=student).update(is_active=False)


def group_students(group):
    """Активные ученики группы, по имени."""
    return (
        Student.objects.for_dealer(group.dealer)
        .filter(
            is_active=True,
            student_groups__group=group,
            student_groups__is_active=True,
        )
        .order_by('first_name', 'last_name')
        .distinct()
    )


# ═══════════════════════════════════════════════════════════════
# ATTENDANCE
# ═══════════════════════════════════════════════════════════════

def normalize_session_date(value):
    """datetime/date → календарный день (в локальной зоне для aware datetime)."""
    if isinstance(value, datetime.datetime):
        if timezone.is_aware(value):
            value = timezone.localtime(value)
        return value.date()
    return value


def _build_records(session, records):
    student_ids = {record['student_id'] for record in records}
    known = set(
        Student.objects.for_dealer(session.group.dealer)
        .filter(pk__in=student_ids)
        .values_list('pk', flat=True)
    )
    if student_ids - known:
        raise AttendanceError(_('Unknown student in attendance list'), field='attendances')
    if len(student_ids) != len(records):
        raise AttendanceError(_('Duplicate student in attendance list'), field='attendances')
    Attendance.objects.bulk_create([
        Attendance(
            session=session,
            student_id=record['student_id'],
            status=record['status'],
            notes=record.get('notes') or '',
        )
        for record in records
    ])


@transaction.atomic
def create_attendance_session(group, trainer, date, records):
    """
    Сохранить посещаемость группы за день.

    Args:
        group: Group
        trainer: Trainer того же дилера
        date: date или datetime (время отбрасывается)
        records: [{'student_id', 'status', 'notes'}]

    Raises:
        AttendanceError: сессия за этот день уже есть (field='date'),
            пустой список или чужой ученик/тренер
    """
    if not records:
        raise AttendanceError(_('Missing information'), field='attendances')
    if trainer.dealer_id != group.dealer_id:
        raise AttendanceError(_('Trainer not found'), field='trainer')

    day = normalize_session_date(date)
    if AttendanceSession.objects.filter(group=group, date=day).exists():
        raise AttendanceError(_('Attendance has already been taken for this date'), field='date')

    try:
        with transaction.atomic():
            session = AttendanceSession.objects.create(group=group, trainer=trainer, date=day)
    except IntegrityError:
        # Параллельный запрос успел создать сессию за тот же день
        raise AttendanceError(_('Attendance has already been taken for this date'), field='date')

    _build_records(session, records)
    logger.info(f'Attendance saved: group={group.pk}, date={day}, records={len(records)}')
    return session


@transaction.atomic
def update_attendance_session(session, records):
    """Заменить все отметки сессии."""
    session.records.all().delete()
    _build_records(session, records)
    session.save(update_fields=['updated_at'])
    logger.info(f'Attendance updated: session={session.pk}, records={len(records)}')
    return session


# ═══════════════════════════════════════════════════════════════
# PAYMENTS
# ═══════════════════════════════════════════════════════════════

def record_payment(dealer, student, data):
    """Записать платёж; COMPLETED без даты получает paid_at = now."""
    payment = StudentPayment.objects.create(dealer=dealer, student=student, **data)
    if payment.status == StudentPayment.Status.COMPLETED and payment.paid_at is None:
        payment.paid_at = timezone.now()
        payment.save(update_fields=['paid_at'])
    logger.info(f'Payment recorded: {student.student_number} {payment.amount} {payment.payment_type}')
    return payment


# ═══════════════════════════════════════════════════════════════
# PRE-REGISTRATION
# ═══════════════════════════════════════════════════════════════

def set_pre_registration_status(pre_registration, status):
    """Сменить статус заявки. CONVERTED ставится только через convert."""
    if status not in PreRegistration.Status.values:
        raise PreRegistrationError(_('Unknown status'))
    if status == PreRegistration.Status.CONVERTED:
        raise PreRegistrationError(_('Use conversion to create a student'))
    if pre_registration.status == PreRegistration.Status.CONVERTED:
        raise PreRegistrationError(_('Pre-registration is already converted'))
    pre_registration.status = status
    pre_registration.save(update_fields=['status', 'updated_at'])
    logger.info(f'Pre-registration {pre_registration.pk}: status -> {status}')
    return pre_registration


@transaction.atomic
def convert_pre_registration(pre_registration, extra=None):
    """
    Создать ученика из заявки.

    Args:
        pre_registration: PreRegistration (не CONVERTED)
        extra: поля Student, которых нет в заявке или которые надо переписать
            (birth_date и gender обязательны, если их нет в заявке)

    Returns:
        Student
    """
    pre_registration = PreRegistration.objects.select_for_update().get(pk=pre_registration.pk)
    if pre_registration.status == PreRegistration.Status.CONVERTED:
        raise PreRegistrationError(_('Pre-registration is already converted'))

    data = {
        'first_name': pre_registration.first_name,
        'last_name': pre_registration.last_name,
        'birth_date': pre_registration.birth_date,
        'gender': pre_registration.gender,
        'parent_name': pre_registration.parent_name,
        'parent_phone': pre_registration.parent_phone,
        'parent_email': pre_registration.parent_email,
        'notes': pre_registration.notes,
    }
    data.update({key: value for key, value in (extra or {}).items() if value not in (None, '')})
    missing = [field for field in ('birth_date', 'gender') if not data.get(field)]
    if missing:
        raise PreRegistrationError(_('Missing information: %(fields)s') % {'fields': ', '.join(missing)})

    student = create_student(pre_registration.dealer, data)
    pre_registration.status = PreRegistration.Status.CONVERTED
    pre_registration.student = student
    pre_registration.save(update_fields=['status', 'student', 'updated_at'])
    logger.info(f'Pre-registration {pre_registration.pk} converted to {student.student_number}')
    return student

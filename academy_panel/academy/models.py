"""
Academy models: students, trainers, groups, attendance and payments.
"""
import uuid
from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _

from dealers.querysets import DealerScopedQuerySet


class Student(models.Model):

    class Gender(models.TextChoices):
        MALE = 'MALE', _('Male')
        FEMALE = 'FEMALE', _('Female')

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    dealer = models.ForeignKey('dealers.Dealer', on_delete=models.CASCADE, related_name='students')
    student_number = models.CharField(_('student number'), max_length=20)

    first_name = models.CharField(_('first name'), max_length=100)
    last_name = models.CharField(_('last name'), max_length=100)
    birth_date = models.DateField(_('birth date'))
    gender = models.CharField(max_length=10, choices=Gender.choices)
    phone = models.CharField(max_length=30, blank=True)
    email = models.EmailField(blank=True)
    address = models.TextField(blank=True)
    photo_url = models.URLField(blank=True)

    # === Родитель ===
    parent_name = models.CharField(max_length=200)
    parent_phone = models.CharField(max_length=30)
    parent_email = models.EmailField(blank=True)
    emergency_contact = models.CharField(max_length=200, blank=True)
    emergency_phone = models.CharField(max_length=30, blank=True)

    monthly_fee = models.DecimalField(
        max_digits=10, decimal_places=2, default=Decimal('0'),
        validators=[MinValueValidator(Decimal('0'))],
    )
    registration_fee = models.DecimalField(
        max_digits=10, decimal_places=2, default=Decimal('0'),
        validators=[MinValueValidator(Decimal('0'))],
    )
    is_active = models.BooleanField(_('active'), default=True)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = DealerScopedQuerySet.as_manager()

    class Meta:
        ordering = ['first_name', 'last_name']
        verbose_name = _('student')
        verbose_name_plural = _('students')
        unique_together = ['dealer', 'student_number']
        indexes = [
            models.Index(fields=['dealer', 'is_active'], name='student_dealer_active_idx'),
        ]

    def __str__(self):
        return self.full_name

    @property
    def full_name(self):
        return f'{self.first_name} {self.last_name}'


class Trainer(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    dealer = models.ForeignKey('dealers.Dealer', on_delete=models.CASCADE, related_name='trainers')
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
        related_name='trainer_profile',
    )
    first_name = models.CharField(_('first name'), max_length=100)
    last_name = models.CharField(_('last name'), max_length=100)
    phone = models.CharField(max_length=30, blank=True)
    email = models.EmailField(blank=True)
    salary = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    is_active = models.BooleanField(_('active'), default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = DealerScopedQuerySet.as_manager()

    class Meta:
        ordering = ['first_name', 'last_name']
        verbose_name = _('trainer')
        verbose_name_plural = _('trainers')

    def __str__(self):
        return f'{self.first_name} {self.last_name}'


class Group(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    dealer = models.ForeignKey('dealers.Dealer', on_delete=models.CASCADE, related_name='groups')
    name = models.CharField(_('name'), max_length=200)
    description = models.TextField(blank=True)
    max_capacity = models.PositiveIntegerField(default=20, validators=[MinValueValidator(1)])
    is_active = models.BooleanField(_('active'), default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = DealerScopedQuerySet.as_manager()

    class Meta:
        ordering = ['name']
        verbose_name = _('group')
        verbose_name_plural = _('groups')

    def __str__(self):
        return self.name

    def active_student_count(self):
        return self.student_groups.filter(is_active=True).count()


class GroupChildQuerySet(DealerScopedQuerySet):
    dealer_field = 'group__dealer'


class GroupSchedule(models.Model):

    class DayOfWeek(models.IntegerChoices):
        MONDAY = 1, _('Monday')
        TUESDAY = 2, _('Tuesday')
        WEDNESDAY = 3, _('Wednesday')
        THURSDAY = 4, _('Thursday')
        FRIDAY = 5, _('Friday')
        SATURDAY = 6, _('Saturday')
        SUNDAY = 7, _('Sunday')

    group = models.ForeignKey(Group, on_delete=models.CASCADE, related_name='schedules')
    day_of_week = models.PositiveSmallIntegerField(choices=DayOfWeek.choices)
    start_time = models.TimeField()
    end_time = models.TimeField()

    objects = GroupChildQuerySet.as_manager()

    class Meta:
        ordering = ['day_of_week', 'start_time']
        verbose_name = _('group schedule')
        verbose_name_plural = _('group schedules')

    def __str__(self):
        return f'{self.group.name}: {self.get_day_of_week_display()} {self.start_time:%H:%M}-{self.end_time:%H:%M}'


class GroupTrainer(models.Model):
    group = models.ForeignKey(Group, on_delete=models.CASCADE, related_name='group_trainers')
    trainer = models.ForeignKey(Trainer, on_delete=models.CASCADE, related_name='group_assignments')
    is_primary = models.BooleanField(default=False)

    objects = GroupChildQuerySet.as_manager()

    class Meta:
        verbose_name = _('group trainer')
        verbose_name_plural = _('group trainers')
        unique_together = ['group', 'trainer']

    def __str__(self):
        return f'{self.trainer} → {self.group}'


class StudentGroup(models.Model):
    student = models.ForeignKey(Student, on_delete=models.CASCADE, related_name='student_groups')
    group = models.ForeignKey(Group, on_delete=models.CASCADE, related_name='student_groups')
    is_active = models.BooleanField(default=True)
    joined_at = models.DateTimeField(auto_now_add=True)

    objects = GroupChildQuerySet.as_manager()

    class Meta:
        verbose_name = _('group membership')
        verbose_name_plural = _('group memberships')
        unique_together = ['student', 'group']

    def __str__(self):
        return f'{self.student} @ {self.group}'


class AttendanceSession(models.Model):
    """Одна тренировка группы за день; дата без времени."""

    group = models.ForeignKey(Group, on_delete=models.CASCADE, related_name='attendance_sessions')
    trainer = models.ForeignKey(Trainer, on_delete=models.PROTECT, related_name='attendance_sessions')
    date = models.DateField()
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = GroupChildQuerySet.as_manager()

    class Meta:
        ordering = ['-date']
        verbose_name = _('attendance session')
        verbose_name_plural = _('attendance sessions')
        unique_together = ['group', 'date']

    def __str__(self):
        return f'{self.group.name} {self.date}'


class AttendanceQuerySet(DealerScopedQuerySet):
    dealer_field = 'session__group__dealer'


class Attendance(models.Model):

    class Status(models.TextChoices):
        PRESENT = 'PRESENT', _('Present')
        ABSENT = 'ABSENT', _('Absent')
        LATE = 'LATE', _('Late')
        EXCUSED = 'EXCUSED', _('Excused')

    session = models.ForeignKey(AttendanceSession, on_delete=models.CASCADE, related_name='records')
    student = models.ForeignKey(Student, on_delete=models.CASCADE, related_name='attendances')
    status = models.CharField(max_length=10, choices=Status.choices)
    notes = models.TextField(blank=True)

    objects = AttendanceQuerySet.as_manager()

    class Meta:
        verbose_name = _('attendance')
        verbose_name_plural = _('attendances')
        unique_together = ['session', 'student']

    def __str__(self):
        return f'{self.student}: {self.status}'


class StudentPayment(models.Model):

    class PaymentType(models.TextChoices):
        REGISTRATION_FEE = 'REGISTRATION_FEE', _('Registration fee')
        MONTHLY_FEE = 'MONTHLY_FEE', _('Monthly fee')
        MATERIAL = 'MATERIAL', _('Material')
        OTHER = 'OTHER', _('Other')

    class PaymentMethod(models.TextChoices):
        CASH = 'CASH', _('Cash')
        CREDIT_CARD = 'CREDIT_CARD', _('Credit card')
        BANK_TRANSFER = 'BANK_TRANSFER', _('Bank transfer')
        ONLINE_PAYTR = 'ONLINE_PAYTR', _('Online (PayTR)')

    class Status(models.TextChoices):
        PENDING = 'PENDING', _('Pending')
        COMPLETED = 'COMPLETED', _('Completed')
        FAILED = 'FAILED', _('Failed')
        REFUNDED = 'REFUNDED', _('Refunded')

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    dealer = models.ForeignKey('dealers.Dealer', on_delete=models.CASCADE, related_name='student_payments')
    student = models.ForeignKey(Student, on_delete=models.PROTECT, related_name='payments')
    amount = models.DecimalField(
        max_digits=10, decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))],
    )
    payment_type = models.CharField(max_length=20, choices=PaymentType.choices)
    payment_method = models.CharField(max_length=20, choices=PaymentMethod.choices)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.COMPLETED)
    paid_at = models.DateTimeField(null=True, blank=True)
    description = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = DealerScopedQuerySet.as_manager()

    class Meta:
        ordering = ['-created_at']
        verbose_name = _('student payment')
        verbose_name_plural = _('student payments')

    def __str__(self):
        return f'{self.student} {self.amount} ({self.payment_type})'


class PreRegistration(models.Model):
    """
    Заявка на запись (ön kayıt) до того, как ребёнок станет учеником.

    После конвертации ссылается на созданного Student.
    """

    class Status(models.TextChoices):
        PENDING = 'PENDING', _('Pending')
        CONTACTED = 'CONTACTED', _('Contacted')
        CONVERTED = 'CONVERTED', _('Converted')
        CANCELLED = 'CANCELLED', _('Cancelled')

    class Source(models.TextChoices):
        WEBSITE = 'website', _('Website')
        PHONE = 'phone', _('Phone')
        WALK_IN = 'walk-in', _('Walk-in')

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    dealer = models.ForeignKey('dealers.Dealer', on_delete=models.CASCADE, related_name='pre_registrations')

    first_name = models.CharField(_('first name'), max_length=100)
    last_name = models.CharField(_('last name'), max_length=100)
    birth_date = models.DateField(_('birth date'), null=True, blank=True)
    gender = models.CharField(max_length=10, choices=Student.Gender.choices, blank=True)

    parent_name = models.CharField(max_length=200)
    parent_phone = models.CharField(max_length=30)
    parent_email = models.EmailField(blank=True)

    branch_interest = models.CharField(max_length=100, blank=True)
    source = models.CharField(max_length=20, choices=Source.choices, blank=True)
    notes = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    student = models.ForeignKey(
        Student, on_delete=models.SET_NULL, null=True, blank=True,
        related_name='pre_registrations',
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = DealerScopedQuerySet.as_manager()

    class Meta:
        ordering = ['-created_at']
        verbose_name = _('pre-registration')
        verbose_name_plural = _('pre-registrations')
        indexes = [
            models.Index(fields=['dealer', 'status'], name='prereg_dealer_status_idx'),
        ]

    def __str__(self):
        return f'{self.first_name} {self.last_name} ({self.status})'

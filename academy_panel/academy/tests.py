"""
Тесты академии: номера учеников, группы, посещаемость, платежи.

Запуск: python manage.py test academy -v2
"""
import datetime
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework.test import APITestCase

from academy import services
from academy.models import (
    Attendance, AttendanceSession, Group, GroupSchedule, GroupTrainer,
    PreRegistration, Student, StudentGroup, StudentPayment, Trainer,
)
from dealers.models import Dealer, DealerMembership
from dealers.querysets import DealerContextRequired

User = get_user_model()


def student_data(first_name='Emre', last_name='Yilmaz'):
    return {
        'first_name': first_name,
        'last_name': last_name,
        'birth_date': datetime.date(2014, 5, 1),
        'gender': Student.Gender.MALE,
        'parent_name': 'Hasan Yilmaz',
        'parent_phone': '+905551234567',
    }


class AcademyFixtureMixin:

    def setUp(self):
        self.dealer = Dealer.objects.create(name='Kartal Spor', slug='kartal-spor')
        self.trainer = Trainer.objects.create(dealer=self.dealer, first_name='Murat', last_name='Kaya')
        self.group = Group.objects.create(dealer=self.dealer, name='U10')
        self.student = services.create_student(self.dealer, student_data())
        StudentGroup.objects.create(student=self.student, group=self.group)


class StudentNumberTests(TestCase):

    def setUp(self):
        self.dealer = Dealer.objects.create(name='Pendik Spor', slug='pendik-spor')

    def test_numbers_are_sequential_per_dealer(self):
        first = services.create_student(self.dealer, student_data())
        second = services.create_student(self.dealer, student_data('Can'))
        year = str(datetime.date.today().year)
        self.assertEqual(first.student_number, f'{year}0001')
        self.assertEqual(second.student_number, f'{year}0002')

    def test_other_dealer_starts_from_one(self):
        services.create_student(self.dealer, student_data())
        other = Dealer.objects.create(name='Maltepe Spor', slug='maltepe-spor')
        student = services.create_student(other, student_data())
        self.assertTrue(student.student_number.endswith('0001'))

    def test_for_dealer_requires_dealer(self):
        with self.assertRaises(DealerContextRequired):
            Student.objects.for_dealer(None)


class GroupServiceTests(AcademyFixtureMixin, TestCase):

    def test_delete_refused_with_active_students(self):
        with self.assertRaises(services.GroupError):
            services.delete_group(self.group)
        self.group.refresh_from_db()
        self.assertTrue(self.group.is_active)

    def test_delete_is_soft(self):
        services.remove_student(self.group, self.student)
        services.delete_group(self.group)
        self.assertTrue(Group.objects.filter(pk=self.group.pk, is_active=False).exists())

    def test_copy_group(self):
        GroupSchedule.objects.create(
            group=self.group, day_of_week=GroupSchedule.DayOfWeek.MONDAY,
            start_time=datetime.time(17, 0), end_time=datetime.time(18, 30),
        )
        GroupTrainer.objects.create(group=self.group, trainer=self.trainer, is_primary=True)

        copy = services.copy_group(self.group)

        self.assertEqual(copy.name, 'U10 (Copy)')
        self.assertEqual(copy.dealer, self.dealer)
        self.assertEqual(copy.schedules.count(), 1)
        self.assertTrue(copy.group_trainers.get().is_primary)
        self.assertEqual(copy.active_student_count(), 0)

    def test_group_students_ordered_and_active_only(self):
        anil = services.create_student(self.dealer, student_data('Anil'))
        services.enroll_student(self.group, anil)
        inactive = services.create_student(self.dealer, student_data('Berk'))
        services.enroll_student(self.group, inactive)
        inactive.is_active = False
        inactive.save()
        names = [s.first_name for s in services.group_students(self.group)]
        self.assertEqual(names, ['Anil', 'Emre'])

    def test_enroll_foreign_student_refused(self):
        other = Dealer.objects.create(name='Other', slug='other')
        stranger = services.create_student(other, student_data())
        with self.assertRaises(services.GroupError):
            services.enroll_student(self.group, stranger)


class AttendanceServiceTests(AcademyFixtureMixin, TestCase):

    def records(self, status=Attendance.Status.PRESENT):
        return [{'student_id': self.student.pk, 'status': status, 'notes': ''}]

    def test_create_session(self):
        session = services.create_attendance_session(
            self.group, self.trainer, datetime.date(2026, 3, 2), self.records(),
        )
        self.assertEqual(session.records.get().status, Attendance.Status.PRESENT)

    def test_datetime_is_normalized_to_day(self):
        session = services.create_attendance_session(
            self.group, self.trainer, datetime.datetime(2026, 3, 2, 18, 45), self.records(),
        )
        self.assertEqual(session.date, datetime.date(2026, 3, 2))

    def test_second_session_same_day_refused(self):
        services.create_attendance_session(self.group, self.trainer, datetime.date(2026, 3, 2), self.records())
        with self.assertRaises(services.AttendanceError) as ctx:
            services.create_attendance_session(
                self.group, self.trainer, datetime.datetime(2026, 3, 2, 9, 0), self.records(),
            )
        self.assertEqual(ctx.exception.field, 'date')
        self.assertEqual(AttendanceSession.objects.count(), 1)

    def test_unknown_student_writes_nothing(self):
        other = Dealer.objects.create(name='Other', slug='other')
        stranger = services.create_student(other, student_data())
        records = self.records() + [{'student_id': stranger.pk, 'status': 'ABSENT'}]
        with self.assertRaises(services.AttendanceError):
            services.create_attendance_session(self.group, self.trainer, datetime.date(2026, 3, 3), records)
        self.assertFalse(AttendanceSession.objects.exists())

    def test_empty_records_refused(self):
        with self.assertRaises(services.AttendanceError):
            services.create_attendance_session(self.group, self.trainer, datetime.date(2026, 3, 3), [])

    def test_update_replaces_records(self):
        session = services.create_attendance_session(
            self.group, self.trainer, datetime.date(2026, 3, 2), self.records(),
        )
        services.update_attendance_session(session, self.records(Attendance.Status.LATE))
        self.assertEqual(list(session.records.values_list('status', flat=True)), ['LATE'])


class PaymentServiceTests(AcademyFixtureMixin, TestCase):

    def test_completed_payment_gets_paid_at(self):
        payment = services.record_payment(self.dealer, self.student, {
            'amount': Decimal('750.00'),
            'payment_type': StudentPayment.PaymentType.MONTHLY_FEE,
            'payment_method': StudentPayment.PaymentMethod.CASH,
        })
        self.assertIsNotNone(payment.paid_at)

    def test_pending_payment_has_no_paid_at(self):
        payment = services.record_payment(self.dealer, self.student, {
            'amount': Decimal('750.00'),
            'payment_type': StudentPayment.PaymentType.MONTHLY_FEE,
            'payment_method': StudentPayment.PaymentMethod.ONLINE_PAYTR,
            'status': StudentPayment.Status.PENDING,
        })
        self.assertIsNone(payment.paid_at)


class AcademyAPITests(AcademyFixtureMixin, APITestCase):

    def setUp(self):
        super().setUp()
        self.admin = User.objects.create_user(username='kartal-admin', password='Test1234')
        DealerMembership.objects.create(dealer=self.dealer, user=self.admin, role=DealerMembership.Role.DEALER_ADMIN)
        self.coach = User.objects.create_user(username='kartal-coach', password='Test1234')
        DealerMembership.objects.create(dealer=self.dealer, user=self.coach, role=DealerMembership.Role.TRAINER)

    def test_anonymous_gets_401(self):
        response = self.client.get('/api/academy/students/')
        self.assertEqual(response.status_code, 401)

    def test_students_scoped_to_dealer(self):
        other = Dealer.objects.create(name='Other', slug='other')
        services.create_student(other, student_data('Foreign'))
        self.client.force_authenticate(self.admin)
        response = self.client.get('/api/academy/students/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual([s['first_name'] for s in response.data], ['Emre'])

    def test_create_student_assigns_number(self):
        self.client.force_authenticate(self.admin)
        payload = dict(student_data('Deniz'), birth_date='2015-01-01')
        response = self.client.post('/api/academy/students/', payload, format='json')
        self.assertEqual(response.status_code, 201)
        self.assertTrue(response.data['student_number'])

    def test_trainer_cannot_create_student(self):
        self.client.force_authenticate(self.coach)
        payload = dict(student_data('Deniz'), birth_date='2015-01-01')
        response = self.client.post('/api/academy/students/', payload, format='json')
        self.assertEqual(response.status_code, 403)

    def test_trainer_takes_attendance(self):
        self.client.force_authenticate(self.coach)
        body = {
            'group': str(self.group.pk),
            'trainer': str(self.trainer.pk),
            'date': '2026-03-02',
            'attendances': [{'student_id': str(self.student.pk), 'status': 'PRESENT'}],
        }
        response = self.client.post('/api/academy/attendance/', body, format='json')
        self.assertEqual(response.status_code, 201)

        duplicate = self.client.post('/api/academy/attendance/', body, format='json')
        self.assertEqual(duplicate.status_code, 400)
        self.assertIn('date', duplicate.data['errors'])

    def test_group_delete_with_students_is_400(self):
        self.client.force_authenticate(self.admin)
        response = self.client.delete(f'/api/academy/groups/{self.group.pk}/')
        self.assertEqual(response.status_code, 400)

    def test_group_copy_endpoint(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post(f'/api/academy/groups/{self.group.pk}/copy/')
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['name'], 'U10 (Copy)')

    def test_group_students_endpoint(self):
        self.client.force_authenticate(self.coach)
        response = self.client.get(f'/api/academy/groups/{self.group.pk}/students/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data[0]['id'], str(self.student.pk))

    def test_record_payment(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post('/api/academy/payments/', {
            'student': str(self.student.pk),
            'amount': '500.00',
            'payment_type': 'REGISTRATION_FEE',
            'payment_method': 'BANK_TRANSFER',
        }, format='json')
        self.assertEqual(response.status_code, 201)
        listed = self.client.get(f'/api/academy/students/{self.student.pk}/payments/')
        self.assertEqual(len(listed.data), 1)


class PreRegistrationServiceTests(TestCase):

    def setUp(self):
        self.dealer = Dealer.objects.create(name='Tuzla Spor', slug='tuzla-spor')
        self.pre_registration = PreRegistration.objects.create(
            dealer=self.dealer, first_name='Kerem', last_name='Aksoy',
            parent_name='Selin Aksoy', parent_phone='+905321112233',
            source=PreRegistration.Source.WEBSITE,
        )

    def test_status_change(self):
        services.set_pre_registration_status(self.pre_registration, PreRegistration.Status.CONTACTED)
        self.pre_registration.refresh_from_db()
        self.assertEqual(self.pre_registration.status, PreRegistration.Status.CONTACTED)

    def test_converted_status_only_through_conversion(self):
        with self.assertRaises(services.PreRegistrationError):
            services.set_pre_registration_status(self.pre_registration, PreRegistration.Status.CONVERTED)

    def test_unknown_status(self):
        with self.assertRaises(services.PreRegistrationError):
            services.set_pre_registration_status(self.pre_registration, 'LOST')

    def test_convert_requires_birth_date_and_gender(self):
        with self.assertRaisesMessage(services.PreRegistrationError, 'birth_date, gender'):
            services.convert_pre_registration(self.pre_registration)
        self.assertFalse(Student.objects.exists())

    def test_convert_creates_student(self):
        student = services.convert_pre_registration(self.pre_registration, {
            'birth_date': datetime.date(2016, 9, 1),
            'gender': Student.Gender.MALE,
        })
        self.assertEqual(student.dealer, self.dealer)
        self.assertEqual(student.parent_phone, '+905321112233')
        self.assertTrue(student.student_number)
        self.pre_registration.refresh_from_db()
        self.assertEqual(self.pre_registration.status, PreRegistration.Status.CONVERTED)
        self.assertEqual(self.pre_registration.student, student)

    def test_converted_cannot_be_converted_again(self):
        extra = {'birth_date': datetime.date(2016, 9, 1), 'gender': Student.Gender.MALE}
        services.convert_pre_registration(self.pre_registration, extra)
        with self.assertRaises(services.PreRegistrationError):
            services.convert_pre_registration(self.pre_registration, extra)
        with self.assertRaises(services.PreRegistrationError):
            services.set_pre_registration_status(self.pre_registration, PreRegistration.Status.CANCELLED)
        self.assertEqual(Student.objects.count(), 1)


class PreRegistrationAPITests(AcademyFixtureMixin, APITestCase):

    def setUp(self):
        super().setUp()
        self.admin = User.objects.create_user(username='kartal-admin', password='Test1234')
        DealerMembership.objects.create(dealer=self.dealer, user=self.admin, role=DealerMembership.Role.DEALER_ADMIN)
        self.coach = User.objects.create_user(username='kartal-coach', password='Test1234')
        DealerMembership.objects.create(dealer=self.dealer, user=self.coach, role=DealerMembership.Role.TRAINER)

    def payload(self, **extra):
        payload = {
            'first_name': 'Arda',
            'last_name': 'Demir',
            'parent_name': 'Ece Demir',
            'parent_phone': '+905301234567',
            'gender': 'none',
            'source': 'phone',
        }
        payload.update(extra)
        return payload

    def test_anonymous_gets_401(self):
        response = self.client.get('/api/academy/pre-registrations/')
        self.assertEqual(response.status_code, 401)

    def test_trainer_cannot_view(self):
        self.client.force_authenticate(self.coach)
        response = self.client.get('/api/academy/pre-registrations/')
        self.assertEqual(response.status_code, 403)

    def test_create_and_list(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post('/api/academy/pre-registrations/', self.payload(), format='json')
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['status'], 'PENDING')
        self.assertEqual(response.data['gender'], '')

        other = Dealer.objects.create(name='Other', slug='other')
        PreRegistration.objects.create(
            dealer=other, first_name='Foreign', last_name='Kid', parent_name='Parent', parent_phone='1',
        )
        listed = self.client.get('/api/academy/pre-registrations/')
        self.assertEqual([p['first_name'] for p in listed.data], ['Arda'])

    def test_short_name_rejected(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post('/api/academy/pre-registrations/', self.payload(first_name='A'), format='json')
        self.assertEqual(response.status_code, 400)

    def test_status_filter_and_update(self):
        self.client.force_authenticate(self.admin)
        created = self.client.post('/api/academy/pre-registrations/', self.payload(), format='json')
        url = f"/api/academy/pre-registrations/{created.data['id']}/status/"

        response = self.client.post(url, {'status': 'CONTACTED'}, format='json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['status'], 'CONTACTED')

        contacted = self.client.get('/api/academy/pre-registrations/', {'status': 'CONTACTED'})
        self.assertEqual(len(contacted.data), 1)
        pending = self.client.get('/api/academy/pre-registrations/', {'status': 'PENDING'})
        self.assertEqual(pending.data, [])

    def test_convert_enrolls_into_group(self):
        self.client.force_authenticate(self.admin)
        created = self.client.post('/api/academy/pre-registrations/', self.payload(), format='json')
        response = self.client.post(
            f"/api/academy/pre-registrations/{created.data['id']}/convert/",
            {'birth_date': '2016-04-12', 'gender': 'FEMALE', 'group': str(self.group.pk)},
            format='json',
        )
        self.assertEqual(response.status_code, 201)
        student = Student.objects.get(pk=response.data['id'])
        self.assertIn(student, services.group_students(self.group))
        detail = self.client.get(f"/api/academy/pre-registrations/{created.data['id']}/")
        self.assertEqual(detail.data['status'], 'CONVERTED')
        self.assertEqual(detail.data['student_number'], student.student_number)

    def test_convert_missing_birth_date_is_400(self):
        self.client.force_authenticate(self.admin)
        created = self.client.post('/api/academy/pre-registrations/', self.payload(), format='json')
        response = self.client.post(
            f"/api/academy/pre-registrations/{created.data['id']}/convert/", {'gender': 'MALE'}, format='json',
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(Student.objects.count(), 1)

    def test_delete(self):
        self.client.force_authenticate(self.admin)
        created = self.client.post('/api/academy/pre-registrations/', self.payload(), format='json')
        response = self.client.delete(f"/api/academy/pre-registrations/{created.data['id']}/")
        self.assertEqual(response.status_code, 204)
        self.assertFalse(PreRegistration.objects.exists())

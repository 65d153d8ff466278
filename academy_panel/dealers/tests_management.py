"""
Тесты кабинета дилера: домены, кастомизация, sub-dealer'ы, пресеты.
"""
from types import SimpleNamespace
from unittest import mock

import dns.resolver
import requests
from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings
from rest_framework.test import APITestCase

from dealers import customization, domains, services, sub_dealers
from dealers.models import Dealer, DealerDomain, DealerMembership, ThemePreset
from dealers.tasks import verify_pending_domains

User = get_user_model()


def txt_answer(*values):
    return [SimpleNamespace(strings=[v.encode() for v in values])]


class DomainServiceTests(TestCase):

    def setUp(self):
        self.dealer = Dealer.objects.create(name='Sisli FK', slug='sisli-fk')

    def test_add_domain_normalizes_and_creates_token(self):
        alias = domains.add_domain(self.dealer, '  SisliFK.com ')
        self.assertEqual(alias.domain, 'sislifk.com')
        self.assertFalse(alias.verified)
        self.assertEqual(len(alias.verification_token), domains.TOKEN_LENGTH)

    def test_add_domain_invalid_format(self):
        with self.assertRaises(domains.DomainServiceError):
            domains.add_domain(self.dealer, '-bad-')

    def test_add_domain_taken_by_other_dealer(self):
        Dealer.objects.create(name='Other', slug='other', custom_domain='taken.com')
        with self.assertRaises(domains.DomainUnavailableError):
            domains.add_domain(self.dealer, 'taken.com')

    def test_add_domain_twice(self):
        domains.add_domain(self.dealer, 'sislifk.com')
        with self.assertRaises(domains.DomainUnavailableError):
            domains.add_domain(self.dealer, 'sislifk.com')

    @override_settings(DOMAIN_VERIFICATION_PREFIX='fo-verify')
    def test_dns_verification(self):
        alias = domains.add_domain(self.dealer, 'sislifk.com')
        record = f'fo-verify={alias.verification_token}'
        with mock.patch('dealers.domains.dns.resolver.resolve', return_value=txt_answer('spf', record)) as resolve:
            self.assertTrue(domains.verify_domain(alias))
        self.assertEqual(resolve.call_args[0][:2], ('_verify.sislifk.com', 'TXT'))
        alias.refresh_from_db()
        self.assertTrue(alias.verified)
        self.assertIsNotNone(alias.verified_at)

    def test_dns_verification_wrong_value(self):
        alias = domains.add_domain(self.dealer, 'sislifk.com')
        with mock.patch('dealers.domains.dns.resolver.resolve', return_value=txt_answer('nope')):
            self.assertFalse(domains.verify_domain(alias))
        alias.refresh_from_db()
        self.assertFalse(alias.verified)

    def test_dns_lookup_error_is_not_verified(self):
        alias = domains.add_domain(self.dealer, 'sislifk.com')
        with mock.patch('dealers.domains.dns.resolver.resolve', side_effect=dns.resolver.NXDOMAIN()):
            self.assertFalse(domains.verify_domain(alias))

    def test_file_verification(self):
        alias = domains.add_domain(
            self.dealer, 'sislifk.com', verification_method=DealerDomain.VerificationMethod.FILE,
        )
        response = SimpleNamespace(ok=True, text=f'{alias.verification_token}\n')
        with mock.patch('dealers.domains.requests.get', return_value=response) as get:
            self.assertTrue(domains.verify_domain(alias))
        self.assertTrue(get.call_args[0][0].startswith('https://sislifk.com/.well-known/'))

    def test_file_verification_network_error(self):
        alias = domains.add_domain(
            self.dealer, 'sislifk.com', verification_method=DealerDomain.VerificationMethod.FILE,
        )
        with mock.patch('dealers.domains.requests.get', side_effect=requests.ConnectionError()):
            self.assertFalse(domains.verify_domain(alias))

    def test_primary_requires_verification(self):
        alias = domains.add_domain(self.dealer, 'sislifk.com')
        with self.assertRaises(domains.DomainNotVerifiedError):
            domains.set_primary_domain(alias)

    def test_primary_updates_dealer_custom_domain(self):
        first = DealerDomain.objects.create(
            dealer=self.dealer, domain='one.com', verification_token='a', verified=True, is_primary=True,
        )
        second = DealerDomain.objects.create(dealer=self.dealer, domain='two.com', verification_token='b', verified=True)
        domains.set_primary_domain(second)
        first.refresh_from_db()
        self.dealer.refresh_from_db()
        self.assertFalse(first.is_primary)
        self.assertEqual(self.dealer.custom_domain, 'two.com')

    def test_remove_primary_clears_custom_domain(self):
        alias = DealerDomain.objects.create(dealer=self.dealer, domain='one.com', verification_token='a', verified=True)
        domains.set_primary_domain(alias)
        domains.remove_domain(alias)
        self.dealer.refresh_from_db()
        self.assertIsNone(self.dealer.custom_domain)

    def test_update_subdomain(self):
        domains.update_subdomain(self.dealer, 'Sisli')
        self.assertEqual(self.dealer.subdomain, 'sisli')
        domains.update_subdomain(self.dealer, '')
        self.assertIsNone(self.dealer.subdomain)

    def test_update_subdomain_reserved_or_taken(self):
        Dealer.objects.create(name='Other', slug='other', subdomain='besiktas')
        with self.assertRaises(domains.DomainUnavailableError):
            domains.update_subdomain(self.dealer, 'www')
        with self.assertRaises(domains.DomainUnavailableError):
            domains.update_subdomain(self.dealer, 'besiktas')


class SubDealerServiceTests(TestCase):

    def setUp(self):
        self.parent = Dealer.objects.create(name='Ana Bayi', slug='ana-bayi')

    def test_create_sets_hierarchy(self):
        child = sub_dealers.create_sub_dealer(self.parent, {'name': 'Alt Bayi', 'slug': 'alt-bayi'})
        self.assertEqual(child.parent_dealer, self.parent)
        self.assertEqual(child.hierarchy_level, 1)
        grandchild = sub_dealers.create_sub_dealer(child, {'name': 'Torun', 'slug': 'torun', 'subdomain': ''})
        self.assertEqual(grandchild.hierarchy_level, 2)
        self.assertIsNone(grandchild.subdomain)

    def test_slug_taken(self):
        with self.assertRaises(sub_dealers.SubDealerSlugTakenError):
            sub_dealers.create_sub_dealer(self.parent, {'name': 'Dup', 'slug': 'ana-bayi'})

    def test_delete_refused_with_children(self):
        child = sub_dealers.create_sub_dealer(self.parent, {'name': 'Alt', 'slug': 'alt'})
        sub_dealers.create_sub_dealer(child, {'name': 'Torun', 'slug': 'torun'})
        with self.assertRaises(sub_dealers.SubDealerHasDependentsError):
            sub_dealers.delete_sub_dealer(child)

    def test_hierarchy_and_stats(self):
        child = sub_dealers.create_sub_dealer(self.parent, {'name': 'B Alt', 'slug': 'b-alt'})
        sub_dealers.create_sub_dealer(self.parent, {'name': 'A Alt', 'slug': 'a-alt'})
        sub_dealers.create_sub_dealer(child, {'name': 'Torun', 'slug': 'torun'})
        sub_dealers.toggle_sub_dealer_status(child, False)

        tree = sub_dealers.get_hierarchy(self.parent)
        self.assertEqual([(n['slug'], n['depth']) for n in tree], [('a-alt', 0), ('b-alt', 0), ('torun', 1)])

        stats = sub_dealers.get_stats(self.parent)
        self.assertEqual(stats['totalSubDealers'], 2)
        self.assertEqual(stats['activeSubDealers'], 1)
        self.assertEqual(stats['totalDescendants'], 3)


class CustomizationServiceTests(TestCase):

    def test_find_dangerous_css(self):
        self.assertIsNone(customization.find_dangerous_css('.a { color: red; }'))
        self.assertTrue(customization.find_dangerous_css('a { background: url("javascript:x") }'))
        self.assertTrue(customization.find_dangerous_css('@IMPORT url(x.css);'))
        self.assertTrue(customization.find_dangerous_css('a { width: expression (1) }'))

    def test_apply_preset_clears_theme_keeps_layout(self):
        preset = ThemePreset.objects.create(name='Test Blue')
        dealer = Dealer.objects.create(
            name='X', slug='x', theme_settings={'primaryColor': '#000000'}, layout_settings={'showGallery': False},
        )
        customization.apply_preset(dealer, preset)
        dealer.refresh_from_db()
        self.assertEqual(dealer.theme_preset, preset)
        self.assertIsNone(dealer.theme_settings)
        self.assertEqual(dealer.layout_settings, {'showGallery': False})

    def test_reset_to_default(self):
        preset = ThemePreset.objects.create(name='Test Blue')
        dealer = Dealer.objects.create(name='X', slug='x', theme_preset=preset, custom_css='a{}')
        customization.reset_to_default(dealer)
        dealer.refresh_from_db()
        self.assertIsNone(dealer.theme_preset)
        self.assertEqual(dealer.custom_css, '')


class DealerPanelAPITestBase(APITestCase):

    def setUp(self):
        self.dealer = Dealer.objects.create(name='Uskudar Spor', slug='uskudar-spor')
        self.admin = User.objects.create_user(username='uskudar-admin', password='Test1234')
        DealerMembership.objects.create(dealer=self.dealer, user=self.admin, role=DealerMembership.Role.DEALER_ADMIN)
        self.coach = User.objects.create_user(username='uskudar-coach', password='Test1234')
        DealerMembership.objects.create(dealer=self.dealer, user=self.coach, role=DealerMembership.Role.TRAINER)
        self.client.force_authenticate(self.admin)


class CustomizationAPITests(DealerPanelAPITestBase):

    def test_anonymous_gets_401(self):
        self.client.force_authenticate(None)
        response = self.client.get('/api/dealer/customization/')
        self.assertEqual(response.status_code, 401)

    def test_user_without_membership_gets_401(self):
        stranger = User.objects.create_user(username='stranger', password='Test1234')
        self.client.force_authenticate(stranger)
        response = self.client.get('/api/dealer/customization/')
        self.assertEqual(response.status_code, 401)

    def test_trainer_forbidden(self):
        self.client.force_authenticate(self.coach)
        response = self.client.get('/api/dealer/customization/')
        self.assertEqual(response.status_code, 403)

    def test_get_returns_effective_theme(self):
        response = self.client.get('/api/dealer/customization/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['effective']['theme']['primaryColor'], '#3B82F6')
        self.assertIn('Inter', response.data['availableFonts'])

    def test_update_layout(self):
        response = self.client.put('/api/dealer/customization/layout/', {'productGridCols': 2}, format='json')
        self.assertEqual(response.status_code, 200)
        self.dealer.refresh_from_db()
        self.assertEqual(self.dealer.layout_settings['productGridCols'], 2)

    def test_invalid_colour_rejected(self):
        body = {
            'primaryColor': 'blue', 'secondaryColor': '#10B981', 'accentColor': '#F59E0B',
            'backgroundColor': '#FFFFFF', 'textColor': '#1F2937', 'mutedColor': '#6B7280',
            'headingFont': 'Inter', 'bodyFont': 'Inter',
        }
        response = self.client.put('/api/dealer/customization/theme/', body, format='json')
        self.assertEqual(response.status_code, 400)
        self.assertIn('primaryColor', response.data['errors'])

    def test_dangerous_css_rejected(self):
        response = self.client.put(
            '/api/dealer/customization/css/', {'customCss': 'body { background: url(javascript:alert(1)) }'},
            format='json',
        )
        self.assertEqual(response.status_code, 400)
        self.dealer.refresh_from_db()
        self.assertEqual(self.dealer.custom_css, '')

    def test_apply_and_clear_preset(self):
        preset = ThemePreset.objects.create(name='Test Green', primary_color='#00AA00')
        response = self.client.post('/api/dealer/customization/preset/', {'themePresetId': preset.pk}, format='json')
        self.assertEqual(response.status_code, 200)
        self.dealer.refresh_from_db()
        self.assertEqual(self.dealer.theme_preset, preset)

        response = self.client.delete('/api/dealer/customization/preset/')
        self.assertEqual(response.status_code, 200)
        self.dealer.refresh_from_db()
        self.assertIsNone(self.dealer.theme_preset)


class DomainAPITests(DealerPanelAPITestBase):

    def test_add_list_and_verify(self):
        response = self.client.post('/api/dealer/domains/', {'domain': 'uskudarspor.com'}, format='json')
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['verification_info']['dnsRecord']['name'], '_verify.uskudarspor.com')
        alias_id = response.data['id']

        with mock.patch('dealers.domains.dns.resolver.resolve', return_value=txt_answer('wrong')):
            failed = self.client.post(f'/api/dealer/domains/{alias_id}/verify/')
        self.assertEqual(failed.status_code, 400)

        listed = self.client.get('/api/dealer/domains/')
        self.assertEqual(len(listed.data), 1)

    def test_primary_unverified_is_400(self):
        alias = DealerDomain.objects.create(dealer=self.dealer, domain='u.com', verification_token='t')
        response = self.client.post(f'/api/dealer/domains/{alias.pk}/primary/')
        self.assertEqual(response.status_code, 400)

    def test_other_dealers_domain_is_404(self):
        other = Dealer.objects.create(name='Other', slug='other')
        alias = DealerDomain.objects.create(dealer=other, domain='o.com', verification_token='t')
        response = self.client.post(f'/api/dealer/domains/{alias.pk}/toggle/', {'is_active': False}, format='json')
        self.assertEqual(response.status_code, 404)

    def test_reserved_subdomain_is_400(self):
        response = self.client.put('/api/dealer/domains/subdomain/', {'subdomain': 'www'}, format='json')
        self.assertEqual(response.status_code, 400)


class SubDealerAPITests(DealerPanelAPITestBase):

    def test_create_and_list(self):
        response = self.client.post('/api/dealer/sub-dealers/', {'name': 'Kuzguncuk', 'slug': 'kuzguncuk'}, format='json')
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['hierarchy_level'], 1)
        listed = self.client.get('/api/dealer/sub-dealers/')
        self.assertEqual([d['slug'] for d in listed.data], ['kuzguncuk'])

    def test_duplicate_slug_is_400(self):
        response = self.client.post('/api/dealer/sub-dealers/', {'name': 'Dup', 'slug': 'uskudar-spor'}, format='json')
        self.assertEqual(response.status_code, 400)

    def test_inheritance_toggle(self):
        child = sub_dealers.create_sub_dealer(self.dealer, {'name': 'Alt', 'slug': 'alt'})
        response = self.client.post(
            f'/api/dealer/sub-dealers/{child.pk}/inheritance/', {'inherit_parent_products': True}, format='json',
        )
        self.assertEqual(response.status_code, 200)
        child.refresh_from_db()
        self.assertTrue(child.inherit_parent_products)

    def test_stats(self):
        sub_dealers.create_sub_dealer(self.dealer, {'name': 'Alt', 'slug': 'alt'})
        response = self.client.get('/api/dealer/sub-dealers/stats/')
        self.assertEqual(response.data['totalSubDealers'], 1)


class ThemePresetAPITests(APITestCase):

    def setUp(self):
        platform = Dealer.objects.create(name='Platform', slug='platform')
        self.superadmin = User.objects.create_user(username='root-admin', password='Test1234')
        DealerMembership.objects.create(
            dealer=platform, user=self.superadmin, role=DealerMembership.Role.SUPER_ADMIN,
        )
        self.client.force_authenticate(self.superadmin)

    def test_system_preset_is_immutable(self):
        system = ThemePreset.objects.filter(is_system=True).first()
        response = self.client.patch(f'/api/themes/presets/{system.pk}/', {'name': 'Hacked'}, format='json')
        self.assertEqual(response.status_code, 400)
        response = self.client.delete(f'/api/themes/presets/{system.pk}/')
        self.assertEqual(response.status_code, 400)
        self.assertTrue(ThemePreset.objects.filter(pk=system.pk).exists())

    def test_custom_preset_crud(self):
        response = self.client.post('/api/themes/presets/', {'name': 'Test Orange', 'primary_color': '#FF8800'}, format='json')
        self.assertEqual(response.status_code, 201)
        self.assertFalse(response.data['is_system'])
        response = self.client.delete(f"/api/themes/presets/{response.data['id']}/")
        self.assertEqual(response.status_code, 204)

    def test_dealer_admin_forbidden(self):
        dealer = Dealer.objects.create(name='D', slug='d')
        user = User.objects.create_user(username='d-admin', password='Test1234')
        DealerMembership.objects.create(dealer=dealer, user=user, role=DealerMembership.Role.DEALER_ADMIN)
        self.client.force_authenticate(user)
        self.assertEqual(self.client.get('/api/themes/presets/').status_code, 403)


class VerifyPendingDomainsTaskTests(TestCase):

    def test_only_unverified_active_aliases_checked(self):
        dealer = Dealer.objects.create(name='Task FK', slug='task-fk')
        pending = DealerDomain.objects.create(dealer=dealer, domain='p.com', verification_token='p')
        DealerDomain.objects.create(dealer=dealer, domain='off.com', verification_token='o', is_active=False)
        DealerDomain.objects.create(dealer=dealer, domain='ok.com', verification_token='k', verified=True)

        with mock.patch('dealers.tasks.verify_domain', return_value=True) as verify:
            self.assertEqual(verify_pending_domains(), 1)
        verify.assert_called_once_with(pending)


class DealerServiceTests(TestCase):

    def test_create_dealer_with_admin(self):
        dealer = services.create_dealer(
            {'name': 'Atasehir FK', 'slug': 'atasehir-fk', 'subdomain': ''},
            admin={'name': 'Burak', 'email': 'Burak@Atasehir.com', 'password': 'gizli123'},
        )
        self.assertEqual(dealer.hierarchy_level, 0)
        self.assertIsNone(dealer.subdomain)
        membership = DealerMembership.objects.get(dealer=dealer)
        self.assertEqual(membership.role, DealerMembership.Role.DEALER_ADMIN)
        self.assertEqual(membership.user.username, 'burak@atasehir.com')
        self.assertTrue(membership.user.check_password('gizli123'))

    def test_slug_taken(self):
        Dealer.objects.create(name='Taken', slug='taken')
        with self.assertRaises(services.DealerSlugTakenError):
            services.create_dealer({'name': 'Other', 'slug': 'taken'})

    def test_admin_email_taken_rolls_back_dealer(self):
        User.objects.create_user(username='dup@example.com', email='dup@example.com', password='x')
        with self.assertRaises(services.DealerUserExistsError):
            services.create_dealer(
                {'name': 'New', 'slug': 'new-dealer'},
                admin={'name': 'Dup', 'email': 'dup@example.com', 'password': 'gizli123'},
            )
        self.assertFalse(Dealer.objects.filter(slug='new-dealer').exists())

    def test_deactivate_user_without_other_memberships(self):
        dealer = Dealer.objects.create(name='A', slug='a')
        membership = services.create_dealer_user(dealer, 'Coach', 'coach@a.com', 'gizli123', DealerMembership.Role.TRAINER)
        services.deactivate_dealer_user(membership)
        membership.user.refresh_from_db()
        self.assertFalse(membership.user.is_active)
        self.assertFalse(services.dealer_users(dealer).exists())

    def test_deactivate_keeps_user_with_other_memberships(self):
        first = Dealer.objects.create(name='A', slug='a')
        second = Dealer.objects.create(name='B', slug='b')
        membership = services.create_dealer_user(first, 'Coach', 'coach@a.com', 'gizli123')
        DealerMembership.objects.create(dealer=second, user=membership.user)
        services.deactivate_dealer_user(membership)
        membership.user.refresh_from_db()
        self.assertTrue(membership.user.is_active)


class DealerAPITests(APITestCase):

    def setUp(self):
        self.platform = Dealer.objects.create(name='Platform', slug='platform')
        self.superadmin = User.objects.create_user(username='root-admin', password='Test1234')
        DealerMembership.objects.create(
            dealer=self.platform, user=self.superadmin, role=DealerMembership.Role.SUPER_ADMIN,
        )
        self.dealer = Dealer.objects.create(name='Beykoz Spor', slug='beykoz-spor')
        self.client.force_authenticate(self.superadmin)

    def test_dealer_admin_forbidden(self):
        user = User.objects.create_user(username='beykoz-admin', password='Test1234')
        DealerMembership.objects.create(dealer=self.dealer, user=user, role=DealerMembership.Role.DEALER_ADMIN)
        self.client.force_authenticate(user)
        self.assertEqual(self.client.get('/api/dealer/dealers/').status_code, 403)
        response = self.client.post('/api/dealer/dealers/', {'name': 'X Spor', 'slug': 'x-spor'}, format='json')
        self.assertEqual(response.status_code, 403)

    def test_list_and_search(self):
        response = self.client.get('/api/dealer/dealers/', {'search': 'beykoz'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual([d['slug'] for d in response.data], ['beykoz-spor'])

    def test_create_with_admin(self):
        response = self.client.post('/api/dealer/dealers/', {
            'name': 'Sariyer Spor',
            'slug': 'sariyer-spor',
            'admin': {'name': 'Oguz', 'email': 'oguz@sariyer.com', 'password': 'gizli123'},
        }, format='json')
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['user_count'], 1)
        self.assertNotIn('admin', response.data)

    def test_create_duplicate_slug_is_400(self):
        response = self.client.post('/api/dealer/dealers/', {'name': 'Dup', 'slug': 'beykoz-spor'}, format='json')
        self.assertEqual(response.status_code, 400)

    def test_short_admin_password_is_400(self):
        response = self.client.post('/api/dealer/dealers/', {
            'name': 'Sariyer Spor', 'slug': 'sariyer-spor',
            'admin': {'name': 'Oguz', 'email': 'oguz@sariyer.com', 'password': '123'},
        }, format='json')
        self.assertEqual(response.status_code, 400)
        self.assertFalse(Dealer.objects.filter(slug='sariyer-spor').exists())

    def test_update(self):
        response = self.client.patch(f'/api/dealer/dealers/{self.dealer.pk}/', {'phone': '+902160000000'}, format='json')
        self.assertEqual(response.status_code, 200)
        self.dealer.refresh_from_db()
        self.assertEqual(self.dealer.phone, '+902160000000')

    def test_delete_is_soft(self):
        response = self.client.delete(f'/api/dealer/dealers/{self.dealer.pk}/')
        self.assertEqual(response.status_code, 204)
        self.dealer.refresh_from_db()
        self.assertFalse(self.dealer.is_active)

    def test_cannot_delete_own_dealer(self):
        response = self.client.delete(f'/api/dealer/dealers/{self.platform.pk}/')
        self.assertEqual(response.status_code, 400)

    def test_user_management(self):
        url = f'/api/dealer/dealers/{self.dealer.pk}/users/'
        response = self.client.post(
            url, {'name': 'Sinan', 'email': 'sinan@beykoz.com', 'password': 'gizli123', 'role': 'TRAINER'}, format='json',
        )
        self.assertEqual(response.status_code, 201)
        membership_id = response.data['id']

        duplicate = self.client.post(
            url, {'name': 'Sinan', 'email': 'sinan@beykoz.com', 'password': 'gizli123'}, format='json',
        )
        self.assertEqual(duplicate.status_code, 400)

        listed = self.client.get(url)
        self.assertEqual([(u['email'], u['role']) for u in listed.data], [('sinan@beykoz.com', 'TRAINER')])

        reset = self.client.post(f'{url}{membership_id}/reset-password/', {'password': 'yeni-sifre'}, format='json')
        self.assertEqual(reset.status_code, 200)
        self.assertTrue(User.objects.get(username='sinan@beykoz.com').check_password('yeni-sifre'))

        removed = self.client.delete(f'{url}{membership_id}/')
        self.assertEqual(removed.status_code, 204)
        self.assertEqual(self.client.get(url).data, [])

    def test_membership_of_other_dealer_is_404(self):
        other = Dealer.objects.create(name='Other', slug='other')
        membership = services.create_dealer_user(other, 'Coach', 'coach@other.com', 'gizli123')
        response = self.client.delete(f'/api/dealer/dealers/{self.dealer.pk}/users/{membership.pk}/')
        self.assertEqual(response.status_code, 404)

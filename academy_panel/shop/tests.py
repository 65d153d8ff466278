"""
Тесты магазина: размещение заказа, остатки, статусы, комиссии, API.

Запуск: python manage.py test shop -v2
"""
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from threading import Barrier
from unittest import mock

from django.contrib.auth import get_user_model
from django.core import mail
from django.db import connection
from django.test import TestCase, TransactionTestCase, override_settings
from rest_framework.test import APITestCase, APITransactionTestCase

from dealers.models import Dealer, DealerMembership
from shop import commissions
from shop.models import (
    CommissionTransaction, DealerCommission, Product, ProductCategory,
    ProductVariant, ShopOrder,
)
from shop.serializers import flatten_errors
from shop.tasks import send_order_notification
from shop.services import (
    InsufficientStockError, OrderService, OrderServiceError,
    OrderValidationError, generate_order_number, to_base36,
)

User = get_user_model()


def make_dealer(slug, **extra):
    defaults = {'name': slug.replace('-', ' ').title(), 'is_public_page_active': True}
    defaults.update(extra)
    return Dealer.objects.create(slug=slug, **defaults)


def make_product(dealer, slug='jersey', price='100.00', stock=5, **extra):
    product = Product.objects.create(dealer=dealer, name=slug.title(), slug=slug, price=Decimal(price), **extra)
    variant = ProductVariant.objects.create(product=product, size='M', color='Red', stock=stock)
    return product, variant


def order_payload(dealer, *lines):
    return {
        'dealer_slug': dealer.slug,
        'customer_name': 'Ali Veli',
        'customer_email': 'ali@example.com',
        'customer_phone': '+905551112233',
        'shipping_address': 'Istanbul',
        'items': [
            {'product_id': product.pk, 'variant_id': variant.pk if variant else None,
             'quantity': quantity, 'unit_price': 1}
            for product, variant, quantity in lines
        ],
    }


class OrderNumberTests(TestCase):

    def test_to_base36(self):
        self.assertEqual(to_base36(0), '0')
        self.assertEqual(to_base36(35), 'Z')
        self.assertEqual(to_base36(36), '10')

    def test_order_number_format(self):
        number = generate_order_number()
        prefix, timestamp, random_part = number.split('-')
        self.assertEqual(prefix, 'ORD')
        self.assertTrue(timestamp.isalnum() and timestamp.isupper())
        self.assertEqual(len(random_part), 4)


class PlaceOrderTests(TestCase):

    def setUp(self):
        self.dealer = make_dealer('kadikoy-spor')
        self.product, self.variant = make_product(self.dealer, stock=5)

    def test_order_uses_server_price(self):
        order = OrderService.place_order(order_payload(self.dealer, (self.product, self.variant, 2)))
        self.assertEqual(order.total, Decimal('200.00'))
        self.assertEqual(order.subtotal, order.total)
        self.assertEqual(order.status, ShopOrder.Status.PENDING)
        item = order.items.get()
        self.assertEqual(item.unit_price, Decimal('100.00'))
        self.assertEqual(item.total, Decimal('200.00'))

    def test_stock_is_decremented(self):
        OrderService.place_order(order_payload(self.dealer, (self.product, self.variant, 3)))
        self.variant.refresh_from_db()
        self.assertEqual(self.variant.stock, 2)

    def test_oversell_is_rejected_and_nothing_written(self):
        with self.assertRaises(InsufficientStockError):
            OrderService.place_order(order_payload(self.dealer, (self.product, self.variant, 6)))
        self.variant.refresh_from_db()
        self.assertEqual(self.variant.stock, 5)
        self.assertFalse(ShopOrder.objects.exists())

    def test_lines_of_same_variant_are_checked_together(self):
        payload = order_payload(
            self.dealer, (self.product, self.variant, 3), (self.product, self.variant, 3),
        )
        with self.assertRaises(InsufficientStockError):
            OrderService.place_order(payload)
        self.variant.refresh_from_db()
        self.assertEqual(self.variant.stock, 5)

    def test_second_order_cannot_take_sold_stock(self):
        OrderService.place_order(order_payload(self.dealer, (self.product, self.variant, 4)))
        with self.assertRaises(InsufficientStockError):
            OrderService.place_order(order_payload(self.dealer, (self.product, self.variant, 2)))
        self.variant.refresh_from_db()
        self.assertEqual(self.variant.stock, 1)
        self.assertEqual(ShopOrder.objects.count(), 1)

    def test_failed_conditional_decrement_rolls_back(self):
        # Остаток ушёл между проверкой и UPDATE
        real_filter = ProductVariant.objects.filter

        def racing_filter(*args, **kwargs):
            if 'stock__gte' in kwargs:
                ProductVariant.objects.update(stock=0)
            return real_filter(*args, **kwargs)

        with mock.patch.object(ProductVariant.objects, 'filter', side_effect=racing_filter):
            with self.assertRaises(InsufficientStockError):
                OrderService.place_order(order_payload(self.dealer, (self.product, self.variant, 1)))
        self.assertFalse(ShopOrder.objects.exists())
        self.variant.refresh_from_db()
        self.assertEqual(self.variant.stock, 5)

    def test_unknown_dealer(self):
        payload = order_payload(self.dealer, (self.product, self.variant, 1))
        payload['dealer_slug'] = 'nope'
        with self.assertRaisesMessage(OrderValidationError, 'Dealer not found'):
            OrderService.place_order(payload)

    def test_inactive_dealer(self):
        self.dealer.is_active = False
        self.dealer.save()
        with self.assertRaises(OrderValidationError):
            OrderService.place_order(order_payload(self.dealer, (self.product, self.variant, 1)))

    def test_product_of_other_dealer_is_not_found(self):
        other = make_dealer('besiktas-spor')
        product, variant = make_product(other, slug='cap')
        with self.assertRaisesMessage(OrderValidationError, 'Some products were not found'):
            OrderService.place_order(order_payload(self.dealer, (product, variant, 1)))

    def test_inactive_product_is_not_found(self):
        self.product.is_active = False
        self.product.save()
        with self.assertRaises(OrderValidationError):
            OrderService.place_order(order_payload(self.dealer, (self.product, self.variant, 1)))

    def test_variant_of_other_product(self):
        other_product, other_variant = make_product(self.dealer, slug='shorts')
        with self.assertRaisesMessage(OrderValidationError, 'Variant not found'):
            OrderService.place_order(order_payload(self.dealer, (self.product, other_variant, 1)))

    def test_item_without_variant_does_not_touch_stock(self):
        order = OrderService.place_order(order_payload(self.dealer, (self.product, None, 2)))
        self.assertEqual(order.total, Decimal('200.00'))
        self.variant.refresh_from_db()
        self.assertEqual(self.variant.stock, 5)

    def test_order_number_collision_is_retried(self):
        taken = ShopOrder.objects.create(
            dealer=self.dealer, order_number='ORD-TAKEN-0000', customer_name='x',
            customer_email='x@example.com', customer_phone='1', subtotal=0, total=0,
        )
        numbers = iter([taken.order_number, 'ORD-FRESH-0001'])
        with mock.patch('shop.services.generate_order_number', side_effect=lambda: next(numbers)):
            order = OrderService.place_order(order_payload(self.dealer, (self.product, self.variant, 1)))
        self.assertEqual(order.order_number, 'ORD-FRESH-0001')

    def test_order_number_attempts_exhausted(self):
        ShopOrder.objects.create(
            dealer=self.dealer, order_number='ORD-SAME-0000', customer_name='x',
            customer_email='x@example.com', customer_phone='1', subtotal=0, total=0,
        )
        with self.settings(ORDER_NUMBER_MAX_ATTEMPTS=3), \
                mock.patch('shop.services.generate_order_number', return_value='ORD-SAME-0000'):
            with self.assertRaises(OrderServiceError):
                OrderService.place_order(order_payload(self.dealer, (self.product, self.variant, 1)))
        self.variant.refresh_from_db()
        self.assertEqual(self.variant.stock, 5)

    def test_notification_queued_after_commit(self):
        with mock.patch('shop.tasks.send_order_notification.delay') as delay:
            with self.captureOnCommitCallbacks(execute=True):
                order = OrderService.place_order(order_payload(self.dealer, (self.product, self.variant, 1)))
        delay.assert_called_once_with(str(order.pk))


class OrderNotificationTaskTests(TestCase):

    def setUp(self):
        self.dealer = make_dealer('moda-spor', contact_email='shop@modaspor.com')
        product, variant = make_product(self.dealer)
        self.order = OrderService.place_order(order_payload(self.dealer, (product, variant, 2)))

    def test_email_sent_to_dealer(self):
        self.assertTrue(send_order_notification(str(self.order.pk)))
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['shop@modaspor.com'])
        self.assertIn(self.order.order_number, mail.outbox[0].subject)
        self.assertIn('Jersey x2', mail.outbox[0].body)

    def test_dealer_without_email(self):
        self.dealer.contact_email = ''
        self.dealer.save()
        self.assertFalse(send_order_notification(str(self.order.pk)))
        self.assertEqual(mail.outbox, [])

    def test_missing_order(self):
        self.assertFalse(send_order_notification('00000000-0000-0000-0000-000000000000'))

class OrderStatusTests(TestCase):

    def setUp(self):
        self.dealer = make_dealer('uskudar-spor')
        self.product, self.variant = make_product(self.dealer, stock=5)
        self.order = OrderService.place_order(order_payload(self.dealer, (self.product, self.variant, 2)))

    def test_cancel_restores_stock_once(self):
        OrderService.update_order_status(self.order, ShopOrder.Status.CANCELLED)
        OrderService.update_order_status(self.order, ShopOrder.Status.CANCELLED)
        self.variant.refresh_from_db()
        self.assertEqual(self.variant.stock, 5)

    def test_cancelled_order_cannot_be_reopened(self):
        OrderService.update_order_status(self.order, ShopOrder.Status.CANCELLED)
        with self.assertRaises(OrderServiceError):
            OrderService.update_order_status(self.order, ShopOrder.Status.CONFIRMED)

    def test_unknown_status(self):
        with self.assertRaises(OrderServiceError):
            OrderService.update_order_status(self.order, 'LOST')

    def test_delete_restores_stock(self):
        OrderService.delete_order(self.order)
        self.variant.refresh_from_db()
        self.assertEqual(self.variant.stock, 5)
        self.assertFalse(ShopOrder.objects.exists())

    def test_delete_cancelled_order_does_not_restore_twice(self):
        OrderService.update_order_status(self.order, ShopOrder.Status.CANCELLED)
        OrderService.delete_order(self.order)
        self.variant.refresh_from_db()
        self.assertEqual(self.variant.stock, 5)


class CommissionTests(TestCase):

    def setUp(self):
        self.parent = make_dealer('ana-bayi')
        self.child = make_dealer('alt-bayi', parent_dealer=self.parent, hierarchy_level=1)
        self.product, self.variant = make_product(self.child, price='200.00', stock=10)
        self.commission = commissions.upsert_commission_settings(self.parent, self.child, {
            'order_commission_rate': Decimal('10'),
            'fixed_order_commission': Decimal('5'),
            'minimum_payout': Decimal('50'),
        })

    def place(self, quantity=1):
        return OrderService.place_order(order_payload(self.child, (self.product, self.variant, quantity)))

    def test_commission_accrued_with_order(self):
        order = self.place()
        txn = CommissionTransaction.objects.get(order=order)
        self.assertEqual(txn.commission_amount, Decimal('25.00'))
        self.assertEqual(txn.status, CommissionTransaction.Status.PENDING)

    def test_no_commission_for_root_dealer(self):
        product, variant = make_product(self.parent, slug='ball')
        OrderService.place_order(order_payload(self.parent, (product, variant, 1)))
        self.assertFalse(CommissionTransaction.objects.exclude(commission=self.commission).exists())

    def test_inactive_commission_accrues_nothing(self):
        commissions.toggle_commission(self.parent, self.child, False)
        self.place()
        self.assertFalse(CommissionTransaction.objects.exists())

    def test_cancel_order_cancels_commission(self):
        order = self.place()
        OrderService.update_order_status(order, ShopOrder.Status.CANCELLED)
        txn = CommissionTransaction.objects.get(order=order)
        self.assertEqual(txn.status, CommissionTransaction.Status.CANCELLED)

    def test_upsert_requires_direct_child(self):
        stranger = make_dealer('yabanci')
        with self.assertRaises(commissions.CommissionError):
            commissions.upsert_commission_settings(self.parent, stranger, {})

    def test_payout_below_minimum(self):
        self.place()
        with self.assertRaisesMessage(commissions.CommissionError, 'minimum payout'):
            commissions.process_payout(self.parent, self.child)

    def test_payout_marks_paid(self):
        self.place()
        self.place()
        amount = commissions.process_payout(self.parent, self.child)
        self.assertEqual(amount, Decimal('50.00'))
        self.assertFalse(CommissionTransaction.objects.filter(status=CommissionTransaction.Status.PENDING).exists())
        report = commissions.commission_report(self.parent)
        self.assertEqual(report['paidCommission'], Decimal('50.00'))
        self.assertEqual(report['transactionCount'], 2)

    def test_delete_refused_with_pending(self):
        self.place()
        with self.assertRaises(commissions.CommissionError):
            commissions.delete_commission(self.parent, self.child)
        self.assertTrue(DealerCommission.objects.filter(pk=self.commission.pk).exists())


class FlattenErrorsTests(TestCase):

    def test_nested_paths(self):
        issues = flatten_errors({'items': [{}, {'quantity': ['Too small']}], 'customerEmail': ['Bad']})
        self.assertIn({'path': 'items.1.quantity', 'message': 'Too small'}, issues)
        self.assertIn({'path': 'customerEmail', 'message': 'Bad'}, issues)


class CreateOrderAPITests(APITestCase):

    def setUp(self):
        self.dealer = make_dealer('sisli-spor')
        self.product, self.variant = make_product(self.dealer, stock=3)

    def body(self, quantity=1, **overrides):
        body = {
            'dealerSlug': self.dealer.slug,
            'customerName': 'Ayse',
            'customerEmail': 'ayse@example.com',
            'customerPhone': '+905550000000',
            'items': [{
                'productId': str(self.product.pk),
                'variantId': str(self.variant.pk),
                'quantity': quantity,
                'unitPrice': 0.01,
            }],
        }
        body.update(overrides)
        return body

    def test_success(self):
        response = self.client.post('/api/shop/orders/', self.body(quantity=2), format='json')
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data['success'])
        self.assertTrue(response.data['orderNumber'].startswith('ORD-'))
        order = ShopOrder.objects.get(pk=response.data['orderId'])
        self.assertEqual(order.total, Decimal('200.00'))

    def test_invalid_payload(self):
        response = self.client.post('/api/shop/orders/', self.body(items=[]), format='json')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['message'], 'Invalid data')
        self.assertTrue(any(issue['path'].startswith('items') for issue in response.data['errors']))

    def test_zero_quantity_rejected(self):
        response = self.client.post('/api/shop/orders/', self.body(quantity=0), format='json')
        self.assertEqual(response.status_code, 400)

    def test_empty_variant_id_means_no_variant(self):
        body = self.body()
        body['items'][0]['variantId'] = ''
        response = self.client.post('/api/shop/orders/', body, format='json')
        self.assertEqual(response.status_code, 200)

    def test_null_optional_fields(self):
        response = self.client.post(
            '/api/shop/orders/', self.body(shippingAddress=None, notes=None), format='json',
        )
        self.assertEqual(response.status_code, 200)
        order = ShopOrder.objects.get(pk=response.data['orderId'])
        self.assertEqual(order.shipping_address, '')
        self.assertEqual(order.notes, '')

    def test_insufficient_stock(self):
        response = self.client.post('/api/shop/orders/', self.body(quantity=4), format='json')
        self.assertEqual(response.status_code, 400)
        self.assertIn('Insufficient stock', response.data['message'])

    def test_unknown_dealer(self):
        response = self.client.post('/api/shop/orders/', self.body(dealerSlug='missing'), format='json')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['message'], 'Dealer not found')

    def test_unexpected_failure_is_500(self):
        with mock.patch('shop.views.OrderService.place_order', side_effect=RuntimeError('boom')):
            response = self.client.post('/api/shop/orders/', self.body(), format='json')
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.data['message'], 'Failed to create order')


class DealerShopAPITests(APITestCase):

    def setUp(self):
        self.dealer = make_dealer('bakirkoy-spor')
        self.user = User.objects.create_user(username='admin1', password='Test1234')
        DealerMembership.objects.create(dealer=self.dealer, user=self.user, role=DealerMembership.Role.DEALER_ADMIN)
        self.category = ProductCategory.objects.create(dealer=self.dealer, name='Kits', slug='kits')
        make_product(self.dealer, category=self.category)
        other = make_dealer('other-spor')
        ProductCategory.objects.create(dealer=other, name='Foreign', slug='foreign')

    def test_categories_require_session(self):
        response = self.client.get('/api/shop/categories/')
        self.assertEqual(response.status_code, 401)

    def test_user_without_membership_is_401(self):
        stranger = User.objects.create_user(username='stranger', password='Test1234')
        self.client.force_authenticate(stranger)
        response = self.client.get('/api/shop/categories/')
        self.assertEqual(response.status_code, 401)

    def test_categories_scoped_to_dealer(self):
        self.client.force_authenticate(self.user)
        response = self.client.get('/api/shop/categories/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual([c['slug'] for c in response.data], ['kits'])
        self.assertEqual(response.data[0]['productCount'], 1)

    def test_trainer_cannot_manage_products(self):
        trainer = User.objects.create_user(username='coach', password='Test1234')
        DealerMembership.objects.create(dealer=self.dealer, user=trainer, role=DealerMembership.Role.TRAINER)
        self.client.force_authenticate(trainer)
        response = self.client.post('/api/shop/admin/products/', {'name': 'Ball', 'slug': 'ball', 'price': '10'}, format='json')
        self.assertEqual(response.status_code, 403)

    def test_create_product_with_variants(self):
        self.client.force_authenticate(self.user)
        response = self.client.post('/api/shop/admin/products/', {
            'name': 'Ball', 'slug': 'ball', 'price': '49.90', 'category': self.category.pk,
            'variants': [{'size': '5', 'stock': 10}, {'size': '4', 'stock': 2}],
        }, format='json')
        self.assertEqual(response.status_code, 201)
        product = Product.objects.get(slug='ball')
        self.assertEqual(product.dealer, self.dealer)
        self.assertEqual(product.variants.count(), 2)

    def test_duplicate_product_slug_rejected(self):
        self.client.force_authenticate(self.user)
        response = self.client.post('/api/shop/admin/products/', {'name': 'X', 'slug': 'jersey', 'price': '1'}, format='json')
        self.assertEqual(response.status_code, 400)

    def test_category_with_products_cannot_be_deleted(self):
        self.client.force_authenticate(self.user)
        response = self.client.delete(f'/api/shop/admin/categories/{self.category.pk}/')
        self.assertEqual(response.status_code, 400)

    def test_order_status_endpoint(self):
        product = Product.objects.get(slug='jersey')
        variant = product.variants.get()
        order = OrderService.place_order(order_payload(self.dealer, (product, variant, 1)))
        self.client.force_authenticate(self.user)
        response = self.client.post(f'/api/shop/admin/orders/{order.pk}/status/', {'status': 'CANCELLED'}, format='json')
        self.assertEqual(response.status_code, 200)
        variant.refresh_from_db()
        self.assertEqual(variant.stock, 5)


class PublicProductAPITests(APITestCase):

    def setUp(self):
        self.parent = make_dealer('merkez')
        self.child = make_dealer('sube', parent_dealer=self.parent, hierarchy_level=1)
        make_product(self.parent, slug='parent-jersey')
        make_product(self.child, slug='child-jersey')

    def test_own_products_only(self):
        response = self.client.get('/api/public/sube/products/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual([p['slug'] for p in response.data['products']], ['child-jersey'])

    def test_inherited_products(self):
        self.child.inherit_parent_products = True
        self.child.save()
        response = self.client.get('/api/public/sube/products/')
        slugs = {p['slug']: p['inherited'] for p in response.data['products']}
        self.assertEqual(slugs, {'child-jersey': False, 'parent-jersey': True})

    def test_product_detail(self):
        response = self.client.get('/api/public/sube/products/child-jersey/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['variants'][0]['stock'], 5)

    def test_unknown_dealer(self):
        response = self.client.get('/api/public/missing/products/')
        self.assertEqual(response.status_code, 404)


# ═══════════════════════════════════════════════════════════════
# REAL TRANSACTIONS
# ═══════════════════════════════════════════════════════════════

class OrderCommitTests(APITransactionTestCase):
    """Заказ закоммичен до постановки уведомления в очередь."""

    def setUp(self):
        self.dealer = make_dealer('fenerbahce-okul')
        self.product, self.variant = make_product(self.dealer, stock=5)

    def test_broker_failure_keeps_successful_response(self):
        body = {
            'dealerSlug': self.dealer.slug,
            'customerName': 'Mehmet',
            'customerEmail': 'mehmet@example.com',
            'customerPhone': '+905551234567',
            'items': [{
                'productId': str(self.product.pk),
                'variantId': str(self.variant.pk),
                'quantity': 1,
                'unitPrice': 100,
            }],
        }
        with mock.patch('shop.tasks.send_order_notification.delay', side_effect=ConnectionError('redis down')) as delay:
            response = self.client.post('/api/shop/orders/', body, format='json')

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data['success'])
        delay.assert_called_once_with(response.data['orderId'])
        self.assertEqual(ShopOrder.objects.count(), 1)
        self.variant.refresh_from_db()
        self.assertEqual(self.variant.stock, 4)


@override_settings(ORDER_NOTIFICATIONS_ENABLED=False)
class ConcurrentOrderTests(TransactionTestCase):
    """
    Два заказа одновременно забирают весь остаток варианта.

    На SQLite нет построчных блокировок: проигравший поток может получить
    ошибку блокировки вместо InsufficientStockError, поэтому там проверяется
    только "не больше одного".
    """

    def setUp(self):
        self.dealer = make_dealer('galatasaray-okul')
        self.product, self.variant = make_product(self.dealer, stock=2)

    def test_full_stock_is_sold_once(self):
        num_threads = 2
        barrier = Barrier(num_threads)
        payload = order_payload(self.dealer, (self.product, self.variant, 2))

        def try_place():
            connection.ensure_connection()
            barrier.wait()
            try:
                OrderService.place_order(payload)
                return 'success'
            except InsufficientStockError:
                return 'insufficient'
            except Exception as e:
                return f'error: {e}'
            finally:
                connection.close()

        with ThreadPoolExecutor(max_workers=num_threads) as executor:
            results = list(executor.map(lambda _: try_place(), range(num_threads)))

        successes = results.count('success')
        if connection.features.has_select_for_update:
            self.assertEqual(successes, 1, results)
            self.assertEqual(results.count('insufficient'), 1, results)
        else:
            self.assertLessEqual(successes, 1, results)

        self.assertEqual(ShopOrder.objects.count(), successes)
        self.variant.refresh_from_db()
        self.assertGreaterEqual(self.variant.stock, 0)
        self.assertEqual(self.variant.stock, 2 - 2 * successes)

"""
Test suite for Orders module
"""
from django.core.cache import cache
from django.test import TestCase
from rest_framework import status
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.orders.views import get_order_stats


class OrderAPITests(TestCase):
    """Test order endpoints"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.customer = TestDataFactory.create_customer(email='piet@example.com')

    def tearDown(self):
        cache.clear()

    def test_create_order(self):
        """Test registering an order"""
        response = self.client.post('/api/v1/orders/', {
            'shopify_order_id': '5550001',
            'order_number': '#2001',
            'customer': self.customer.id,
            'total_amount': 12950,
            'order_data': {'line_items': [{'sku': 'MT-100', 'title': 'Espresso machine', 'quantity': 1}]},
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['line_items'][0]['sku'], 'MT-100')
        self.assertEqual(response.data['currency'], 'EUR')

    def test_line_items_must_be_list(self):
        """Test malformed line items"""
        response = self.client.post('/api/v1/orders/', {
            'shopify_order_id': '5550002',
            'order_number': '#2002',
            'order_data': {'line_items': 'MT-100'},
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('order_data', response.data)

    def test_list_filters(self):
        """Test filtering on status, customer and search"""
        TestDataFactory.create_order(customer=self.customer, order_number='#3001', status='shipped')
        TestDataFactory.create_order(order_number='#3002')

        response = self.client.get('/api/v1/orders/?status=shipped')
        self.assertEqual(response.data['count'], 1)

        response = self.client.get(f'/api/v1/orders/?customer={self.customer.id}')
        self.assertEqual(response.data['results'][0]['order_number'], '#3001')

        response = self.client.get('/api/v1/orders/?search=piet@')
        self.assertEqual(response.data['count'], 1)

    def test_update_status(self):
        """Test changing an order status"""
        order = TestDataFactory.create_order()
        response = self.client.patch(f'/api/v1/orders/{order.id}/', {'status': 'delivered'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'delivered')

    def test_stats(self):
        """Test counts per status and revenue without cancelled orders"""
        TestDataFactory.create_order(status='pending', total_amount=1000)
        TestDataFactory.create_order(status='shipped', total_amount=2500)
        TestDataFactory.create_order(status='cancelled', total_amount=9999)

        response = self.client.get('/api/v1/orders/stats/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total'], 3)
        self.assertEqual(response.data['by_status']['cancelled'], 1)
        self.assertEqual(response.data['by_status']['delivered'], 0)
        self.assertEqual(response.data['total_revenue'], 3500)

    def test_stats_invalidated_on_save(self):
        """Test a new order refreshes the cached stats"""
        self.assertEqual(get_order_stats()['total'], 0)
        TestDataFactory.create_order()
        self.assertEqual(get_order_stats()['total'], 1)

    def test_find_line_item(self):
        """Test line item lookup by SKU and by title"""
        order = TestDataFactory.create_order()
        self.assertEqual(order.find_line_item(sku='MT-200')['title'], 'Milk jug')
        self.assertEqual(order.find_line_item(title='Espresso machine')['sku'], 'MT-100')
        self.assertIsNone(order.find_line_item(sku='NOPE'))

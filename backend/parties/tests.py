"""
Test suite for Parties module
Tests: customers and suppliers
"""
from django.test import TestCase
from rest_framework import status
from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.parties.models import Customer, Supplier


class CustomerAPITests(TestCase):
    """Test customer endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_customer(self):
        """Test creating a customer"""
        response = self.client.post('/api/v1/customers/', {
            'email': 'sanne@example.com',
            'first_name': 'Sanne',
            'last_name': 'de Vries'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['full_name'], 'Sanne de Vries')
        self.assertTrue(AuditLog.objects.filter(model_name='Customer', action='create').exists())

    def test_duplicate_email_rejected(self):
        """Test customer e-mail addresses are unique"""
        TestDataFactory.create_customer(email='dubbel@example.com')
        response = self.client.post('/api/v1/customers/', {'email': 'dubbel@example.com'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('email', response.data)

    def test_search_customers(self):
        """Test searching by name"""
        TestDataFactory.create_customer(first_name='Kees', last_name='Bakker')
        TestDataFactory.create_customer(first_name='Lotte', last_name='Visser')
        response = self.client.get('/api/v1/customers/?search=bakker')
        self.assertEqual(len(response.data), 1)

    def test_customer_orders_and_returns(self):
        """Test a customer's orders and returns"""
        customer = TestDataFactory.create_customer()
        order = TestDataFactory.create_order(customer=customer)
        TestDataFactory.create_return(customer=customer, order=order)

        response = self.client.get(f'/api/v1/customers/{customer.id}/orders/')
        self.assertEqual([o['id'] for o in response.data], [order.id])

        response = self.client.get(f'/api/v1/customers/{customer.id}/returns/')
        self.assertEqual(len(response.data), 1)

    def test_delete_customer_keeps_orders(self):
        """Test deleting a customer detaches their orders"""
        customer = TestDataFactory.create_customer()
        order = TestDataFactory.create_order(customer=customer)
        response = self.client.delete(f'/api/v1/customers/{customer.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Customer.objects.exists())
        order.refresh_from_db()
        self.assertIsNone(order.customer)


class SupplierAPITests(TestCase):
    """Test supplier endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_supplier_normalizes_code(self):
        """Test supplier codes are stored upper-case"""
        response = self.client.post('/api/v1/suppliers/', {
            'supplier_code': ' sup-01 ',
            'name': 'Koffie Onderdelen'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['supplier_code'], 'SUP-01')

    def test_active_filter(self):
        """Test filtering on active suppliers"""
        TestDataFactory.create_supplier(name='Actief')
        inactive = TestDataFactory.create_supplier(name='Slapend')
        inactive.active = False
        inactive.save()

        response = self.client.get('/api/v1/suppliers/?active=false')
        self.assertEqual([s['name'] for s in response.data], ['Slapend'])

    def test_delete_unused_supplier(self):
        """Test a supplier without purchase orders can be deleted"""
        supplier = TestDataFactory.create_supplier()
        response = self.client.delete(f'/api/v1/suppliers/{supplier.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Supplier.objects.exists())

    def test_delete_supplier_in_use(self):
        """Test a supplier referenced by purchase orders is kept"""
        supplier = TestDataFactory.create_supplier()
        TestDataFactory.create_purchase_order(supplier=supplier)
        response = self.client.delete(f'/api/v1/suppliers/{supplier.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('error', response.data)
        self.assertTrue(Supplier.objects.filter(pk=supplier.id).exists())

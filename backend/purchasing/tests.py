"""
Comprehensive test suite for Purchasing module
Tests: purchase order creation, item totals, receiving, documents and edge cases
"""
import shutil
import tempfile
from datetime import date

from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase, override_settings
from rest_framework import status
from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.purchasing.models import PurchaseOrder, PurchaseOrderItem, PurchaseOrderFile
from backend.purchasing.serializers import generate_po_number


class PurchaseOrderModelTests(TestCase):
    """Test PurchaseOrder and PurchaseOrderItem model methods"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.purchase_order = TestDataFactory.create_purchase_order(user=self.user, po_number='PO-2025-001')

    def test_purchase_order_str(self):
        """Test purchase order string representation"""
        self.assertEqual(str(self.purchase_order), 'PO-2025-001')

    def test_item_subtotal(self):
        """Test item subtotal is quantity x unit price"""
        item = TestDataFactory.create_purchase_order_item(self.purchase_order, quantity=4, unit_price=1250)
        self.assertEqual(item.subtotal, 5000)

    def test_items_total(self):
        """Test purchase order total over its items"""
        TestDataFactory.create_purchase_order_item(self.purchase_order, quantity=2, unit_price=1000)
        TestDataFactory.create_purchase_order_item(self.purchase_order, sku='PART-2', quantity=3, unit_price=500)
        self.assertEqual(self.purchase_order.get_items_total(), 3500)

    def test_po_number_sequence(self):
        """Test PO numbers count up per order year"""
        TestDataFactory.create_purchase_order(po_number='PO-2025-007')
        self.assertEqual(generate_po_number(date(2025, 3, 1)), 'PO-2025-008')
        self.assertEqual(generate_po_number(date(2026, 1, 5)), 'PO-2026-001')


class PurchaseOrderAPITests(TestCase):
    """Test purchase order API endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.supplier = TestDataFactory.create_supplier(name='Onderdelen BV')

    def test_create_purchase_order_with_items(self):
        """Test creating a purchase order computes item subtotals and total"""
        response = self.client.post('/api/v1/purchase-orders/', {
            'title': 'Pump spare parts',
            'supplier': self.supplier.id,
            'order_date': '2025-05-01',
            'expected_delivery_date': '2025-05-10',
            'items': [
                {'sku': 'PUMP-1', 'product_name': 'Pump', 'quantity': 2, 'unit_price': 1500},
                {'sku': 'SEAL-1', 'product_name': 'Seal', 'quantity': 10, 'unit_price': 100},
            ],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['po_number'], 'PO-2025-001')
        self.assertEqual(response.data['total_amount'], 4000)
        self.assertEqual(len(response.data['items']), 2)
        self.assertEqual(response.data['status'], 'aangekocht')
        self.assertTrue(AuditLog.objects.filter(model_name='PurchaseOrder', action='create').exists())

    def test_create_rejects_delivery_before_order(self):
        """Test expected delivery cannot precede the order date"""
        response = self.client.post('/api/v1/purchase-orders/', {
            'title': 'Late',
            'supplier': self.supplier.id,
            'order_date': '2025-05-10',
            'expected_delivery_date': '2025-05-01',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('expected_delivery_date', response.data)

    def test_create_rejects_invalid_item(self):
        """Test item validation errors are reported under items"""
        response = self.client.post('/api/v1/purchase-orders/', {
            'title': 'Bad item',
            'supplier': self.supplier.id,
            'order_date': '2025-05-01',
            'items': [{'sku': 'X', 'product_name': 'X', 'quantity': 0}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('items', response.data)
        self.assertFalse(PurchaseOrder.objects.exists())

    def test_update_replaces_items(self):
        """Test sending items on update replaces them and recomputes the total"""
        purchase_order = TestDataFactory.create_purchase_order(user=self.user, supplier=self.supplier)
        TestDataFactory.create_purchase_order_item(purchase_order, quantity=1, unit_price=100)

        response = self.client.patch(f'/api/v1/purchase-orders/{purchase_order.id}/', {
            'items': [{'sku': 'NEW-1', 'product_name': 'New', 'quantity': 3, 'unit_price': 700}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([i['sku'] for i in response.data['items']], ['NEW-1'])
        self.assertEqual(response.data['total_amount'], 2100)

    def test_update_without_items_keeps_items(self):
        """Test updating other fields leaves items untouched"""
        purchase_order = TestDataFactory.create_purchase_order(user=self.user, supplier=self.supplier)
        TestDataFactory.create_purchase_order_item(purchase_order)

        response = self.client.patch(f'/api/v1/purchase-orders/{purchase_order.id}/', {'is_paid': True}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['is_paid'])
        self.assertEqual(len(response.data['items']), 1)

    def test_list_filters(self):
        """Test list filters on archived, paid and search"""
        TestDataFactory.create_purchase_order(supplier=self.supplier)
        paid = TestDataFactory.create_purchase_order(supplier=self.supplier)
        paid.is_paid = True
        paid.save()
        archived = TestDataFactory.create_purchase_order(supplier=self.supplier)
        archived.archived = True
        archived.save()

        response = self.client.get('/api/v1/purchase-orders/')
        self.assertEqual(response.data['count'], 2)

        response = self.client.get('/api/v1/purchase-orders/?archived=all')
        self.assertEqual(response.data['count'], 3)

        response = self.client.get('/api/v1/purchase-orders/?is_paid=true')
        self.assertEqual([po['id'] for po in response.data['results']], [paid.id])

        response = self.client.get('/api/v1/purchase-orders/?search=Onderdelen')
        self.assertEqual(response.data['count'], 2)

    def test_delete_purchase_order(self):
        """Test deleting a purchase order removes its items"""
        purchase_order = TestDataFactory.create_purchase_order(supplier=self.supplier)
        TestDataFactory.create_purchase_order_item(purchase_order)
        response = self.client.delete(f'/api/v1/purchase-orders/{purchase_order.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(PurchaseOrderItem.objects.exists())

    def test_supplier_with_purchase_orders_cannot_be_deleted(self):
        """Test suppliers are protected while purchase orders reference them"""
        TestDataFactory.create_purchase_order(supplier=self.supplier)
        response = self.client.delete(f'/api/v1/suppliers/{self.supplier.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class PurchaseOrderReceiveTests(TestCase):
    """Test receiving purchase orders"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.purchase_order = TestDataFactory.create_purchase_order(user=self.user)
        self.item_a = TestDataFactory.create_purchase_order_item(self.purchase_order, sku='A', quantity=5)
        self.item_b = TestDataFactory.create_purchase_order_item(self.purchase_order, sku='B', quantity=3)

    def test_receive_full(self):
        """Test receiving without items receives everything"""
        response = self.client.post(f'/api/v1/purchase-orders/{self.purchase_order.id}/receive/', {
            'received_date': '2025-06-02'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'ontvangen')
        self.assertEqual(response.data['received_date'], '2025-06-02')
        self.assertEqual(response.data['received_by'], self.user.id)
        self.item_a.refresh_from_db()
        self.assertEqual(self.item_a.received_quantity, 5)

    def test_receive_partial(self):
        """Test listed items take their received quantity, others are received in full"""
        response = self.client.post(f'/api/v1/purchase-orders/{self.purchase_order.id}/receive/', {
            'items': [{'id': self.item_a.id, 'received_quantity': 2}]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.item_a.refresh_from_db()
        self.item_b.refresh_from_db()
        self.assertEqual(self.item_a.received_quantity, 2)
        self.assertEqual(self.item_b.received_quantity, 3)

    def test_receive_too_many(self):
        """Test receiving more than ordered is rejected"""
        response = self.client.post(f'/api/v1/purchase-orders/{self.purchase_order.id}/receive/', {
            'items': [{'id': self.item_a.id, 'received_quantity': 6}]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.purchase_order.refresh_from_db()
        self.assertEqual(self.purchase_order.status, 'aangekocht')

    def test_receive_unknown_item(self):
        """Test items from another purchase order are rejected"""
        response = self.client.post(f'/api/v1/purchase-orders/{self.purchase_order.id}/receive/', {
            'items': [{'id': 99999, 'received_quantity': 1}]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_receive_invalid_date(self):
        """Test an unparseable received_date"""
        response = self.client.post(f'/api/v1/purchase-orders/{self.purchase_order.id}/receive/', {
            'received_date': 'next tuesday'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_receive_processed_order(self):
        """Test a processed purchase order cannot be received again"""
        self.purchase_order.status = 'verwerkt'
        self.purchase_order.save()
        response = self.client.post(f'/api/v1/purchase-orders/{self.purchase_order.id}/receive/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class PurchaseOrderFileTests(TestCase):
    """Test purchase order documents"""

    def setUp(self):
        self.media_root = tempfile.mkdtemp()
        self.override = override_settings(MEDIA_ROOT=self.media_root)
        self.override.enable()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.purchase_order = TestDataFactory.create_purchase_order(user=self.user)

    def tearDown(self):
        self.override.disable()
        shutil.rmtree(self.media_root, ignore_errors=True)

    def test_upload_list_delete(self):
        """Test uploading, listing and removing documents"""
        invoice = SimpleUploadedFile('invoice.pdf', b'%PDF-1.4 invoice', content_type='application/pdf')
        response = self.client.post(
            f'/api/v1/purchase-orders/{self.purchase_order.id}/files/',
            {'files': [invoice]},
            format='multipart'
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        file_id = response.data['uploaded'][0]['id']
        self.assertEqual(response.data['uploaded'][0]['file_type'], 'application/pdf')

        response = self.client.get(f'/api/v1/purchase-orders/{self.purchase_order.id}/files/')
        self.assertEqual([f['file_name'] for f in response.data], ['invoice.pdf'])

        response = self.client.delete(f'/api/v1/purchase-orders/{self.purchase_order.id}/files/{file_id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(PurchaseOrderFile.objects.exists())

    def test_upload_without_files(self):
        """Test an upload without files"""
        response = self.client.post(f'/api/v1/purchase-orders/{self.purchase_order.id}/files/', {}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

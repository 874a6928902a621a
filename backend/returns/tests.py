"""
Test suite for Returns module
Tests: return creation against orders, kanban status changes, photos, items and stats
"""
import shutil
import tempfile
from io import BytesIO

from django.core.cache import cache
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase, override_settings
from django.utils import timezone
from PIL import Image
from rest_framework import status
from backend.core.cache_utils import make_cache_key, ORDER_STATS_PREFIX, RETURN_STATS_PREFIX
from backend.core.models import Activity, AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.notes.models import Note
from backend.orders.views import get_order_stats
from backend.returns.models import Return, ReturnItem
from backend.returns.views import get_return_stats


def make_png(name='photo.png'):
    buffer = BytesIO()
    Image.new('RGB', (8, 8), color='red').save(buffer, format='PNG')
    return SimpleUploadedFile(name, buffer.getvalue(), content_type='image/png')


class ReturnCreateTests(TestCase):
    """Test creating returns"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.customer = TestDataFactory.create_customer()
        self.order = TestDataFactory.create_order(customer=self.customer, order_number='#1001')

    def test_create_return_with_items(self):
        """Test a return with valid items gets a number, items and the order's customer"""
        response = self.client.post('/api/v1/returns/', {
            'order': self.order.id,
            'return_reason': 'damaged',
            'items': [{'sku': 'MT-200', 'product_name': 'Milk jug', 'quantity': 2}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['return_number'], f'RET-{timezone.now().year}-001')
        self.assertEqual(response.data['customer'], self.customer.id)
        self.assertEqual(response.data['status'], 'nieuw')
        self.assertEqual(len(response.data['items']), 1)
        self.assertIsNotNone(response.data['requested_at'])
        self.assertTrue(Activity.objects.filter(type='return_created').exists())

    def test_return_numbers_are_sequential(self):
        """Test the next return number follows the highest of the year"""
        TestDataFactory.create_return(return_number=f'RET-{timezone.now().year}-041')
        response = self.client.post('/api/v1/returns/', {'return_reason': 'defective'}, format='json')
        self.assertEqual(response.data['return_number'], f'RET-{timezone.now().year}-042')

    def test_unknown_sku_rejected(self):
        """Test items must be part of the order"""
        response = self.client.post('/api/v1/returns/', {
            'order': self.order.id,
            'items': [{'sku': 'NOPE-1', 'product_name': 'Ghost', 'quantity': 1}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('items', response.data)
        self.assertFalse(Return.objects.exists())

    def test_quantity_above_ordered_rejected(self):
        """Test returning more than was ordered"""
        response = self.client.post('/api/v1/returns/', {
            'order': self.order.id,
            'items': [{'sku': 'MT-100', 'product_name': 'Espresso machine', 'quantity': 3}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('items', response.data)

    def test_item_matched_by_title(self):
        """Test an item without a SKU matches the line item title"""
        response = self.client.post('/api/v1/returns/', {
            'order': self.order.id,
            'items': [{'product_name': 'Espresso machine', 'quantity': 1}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_other_reason_required(self):
        """Test the 'other' reason needs a description"""
        response = self.client.post('/api/v1/returns/', {'return_reason': 'other'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('other_reason', response.data)

        response = self.client.post('/api/v1/returns/', {
            'return_reason': 'other',
            'other_reason': 'Gift, not wanted'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_negative_refund_rejected(self):
        """Test refund amounts cannot be negative"""
        response = self.client.post('/api/v1/returns/', {'refund_amount': -100}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('refund_amount', response.data)

    def test_create_from_case(self):
        """Test a return prefilled from a case and its items"""
        case = TestDataFactory.create_case(user=self.user, customer=self.customer, order=self.order)
        case.items.create(sku='MT-100', product_name='Espresso machine', quantity=1, unit_price=4999)

        response = self.client.post(f'/api/v1/returns/from-case/{case.id}/', {'return_reason': 'defective'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['case'], case.id)
        self.assertEqual(response.data['order'], self.order.id)
        self.assertEqual([i['sku'] for i in response.data['items']], ['MT-100'])
        self.assertTrue(case.links.filter(link_type='return', linked_id=str(response.data['id'])).exists())
        self.assertTrue(case.events.filter(event_type='link_added').exists())


class ReturnListTests(TestCase):
    """Test listing and filtering returns"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.active = TestDataFactory.create_return(user=self.user)
        self.archived = TestDataFactory.create_return(user=self.user, status='klaar')
        self.archived.is_archived = True
        self.archived.save()

    def test_archived_hidden_by_default(self):
        """Test the list shows active returns unless asked otherwise"""
        response = self.client.get('/api/v1/returns/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([r['id'] for r in response.data['results']], [self.active.id])

        response = self.client.get('/api/v1/returns/?archived=true')
        self.assertEqual([r['id'] for r in response.data['results']], [self.archived.id])

        response = self.client.get('/api/v1/returns/?archived=all')
        self.assertEqual(response.data['count'], 2)

    def test_filter_by_status_and_search(self):
        """Test status filter and search on return number"""
        response = self.client.get('/api/v1/returns/?status=nieuw')
        self.assertEqual(response.data['count'], 1)

        response = self.client.get(f'/api/v1/returns/?search={self.active.return_number}')
        self.assertEqual([r['id'] for r in response.data['results']], [self.active.id])

    def test_status_label_in_list(self):
        """Test list rows carry the column label"""
        response = self.client.get('/api/v1/returns/')
        self.assertEqual(response.data['results'][0]['status_label'], 'Nieuw')


class ReturnStatusTests(TestCase):
    """Test kanban status changes"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.return_request = TestDataFactory.create_return(user=self.user)

    def test_received_stamps_and_records(self):
        """Test moving to 'ontvangen_controle' stamps received_at, logs activity and writes a system note"""
        response = self.client.patch(f'/api/v1/returns/{self.return_request.id}/', {
            'status': 'ontvangen_controle'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNotNone(response.data['received_at'])
        self.assertTrue(Activity.objects.filter(type='return_status_changed').exists())
        self.assertTrue(AuditLog.objects.filter(model_name='Return', action='status_change').exists())

        note = Note.objects.get(entity_type='return', entity_id=str(self.return_request.id))
        self.assertEqual(note.visibility, 'system')
        self.assertIn('Ontvangen - controle', note.plain_text)

    def test_completed_stamp_kept(self):
        """Test completed_at is set once and survives moving away and back"""
        url = f'/api/v1/returns/{self.return_request.id}/'
        response = self.client.patch(url, {'status': 'klaar'}, format='json')
        first_completed = response.data['completed_at']
        self.assertIsNotNone(first_completed)

        self.client.patch(url, {'status': 'wachten_klant'}, format='json')
        response = self.client.patch(url, {'status': 'klaar'}, format='json')
        self.assertEqual(response.data['completed_at'], first_completed)

    def test_any_status_to_any_status(self):
        """Test columns can be skipped"""
        response = self.client.patch(f'/api/v1/returns/{self.return_request.id}/', {
            'status': 'niet_ontvangen'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status_label'], 'Niet ontvangen')

    def test_unknown_status_rejected(self):
        """Test a status outside the kanban columns"""
        response = self.client.patch(f'/api/v1/returns/{self.return_request.id}/', {
            'status': 'lost_forever'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_without_status_change(self):
        """Test plain updates do not write a system note"""
        response = self.client.patch(f'/api/v1/returns/{self.return_request.id}/', {
            'tracking_number': '3SABC12345678'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(Note.objects.filter(entity_type='return').exists())


class ReturnStatsTests(TestCase):
    """Test return stats and their cache"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def tearDown(self):
        cache.clear()

    def test_stats_per_column(self):
        """Test counts per kanban column in column order"""
        TestDataFactory.create_return(status='nieuw')
        TestDataFactory.create_return(status='nieuw')
        TestDataFactory.create_return(status='klaar')

        response = self.client.get('/api/v1/returns/stats/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        by_status = {row['status']: row['count'] for row in response.data['by_status']}
        self.assertEqual(by_status['nieuw'], 2)
        self.assertEqual(by_status['klaar'], 1)
        self.assertEqual(by_status['onderweg'], 0)
        self.assertEqual(response.data['by_status'][0]['status'], 'nieuw')
        self.assertEqual(response.data['total'], 3)

    def test_stats_invalidated_on_change(self):
        """Test saving a return refreshes the cached stats"""
        self.assertEqual(get_return_stats()['total'], 0)
        TestDataFactory.create_return()
        self.assertEqual(get_return_stats()['total'], 1)

    def test_invalidation_keeps_other_cache_entries(self):
        """Test a return change only drops the return stats entry"""
        cache.set('dashboard:widgets', 'kept', 60)
        get_return_stats()
        get_order_stats()
        self.assertIsNotNone(cache.get(make_cache_key(RETURN_STATS_PREFIX)))

        TestDataFactory.create_return()
        self.assertIsNone(cache.get(make_cache_key(RETURN_STATS_PREFIX)))
        self.assertIsNotNone(cache.get(make_cache_key(ORDER_STATS_PREFIX)))
        self.assertEqual(cache.get('dashboard:widgets'), 'kept')


class ReturnPhotoTests(TestCase):
    """Test return photo upload and removal"""

    def setUp(self):
        self.media_root = tempfile.mkdtemp()
        self.override = override_settings(MEDIA_ROOT=self.media_root)
        self.override.enable()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.return_request = TestDataFactory.create_return(user=self.user)
        self.url = f'/api/v1/returns/{self.return_request.id}/photos/'

    def tearDown(self):
        self.override.disable()
        shutil.rmtree(self.media_root, ignore_errors=True)

    def test_upload_and_delete_photo(self):
        """Test a valid PNG is stored and can be removed"""
        response = self.client.post(self.url, {'photo': make_png()}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        photo_path = response.data['photo_path']
        self.assertTrue(photo_path.startswith(f'returns/{self.return_request.id}/'))
        self.assertEqual(response.data['photos'], [photo_path])

        response = self.client.delete(self.url, {'photo_path': photo_path}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['photos'], [])

    def test_reject_non_image(self):
        """Test a file that only claims to be an image"""
        fake = SimpleUploadedFile('photo.png', b'not really a png', content_type='image/png')
        response = self.client.post(self.url, {'photo': fake}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_reject_disallowed_type(self):
        """Test non-image content types"""
        document = SimpleUploadedFile('doc.pdf', b'%PDF-1.4', content_type='application/pdf')
        response = self.client.post(self.url, {'photo': document}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    @override_settings(RETURN_PHOTO_MAX_BYTES=10)
    def test_reject_oversized_photo(self):
        """Test the photo size limit"""
        response = self.client.post(self.url, {'photo': make_png()}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_unknown_photo(self):
        """Test removing a photo that is not on the return"""
        response = self.client.delete(self.url, {'photo_path': 'returns/1/missing.png'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class ReturnItemTests(TestCase):
    """Test return item endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.order = TestDataFactory.create_order()
        self.return_request = TestDataFactory.create_return(user=self.user, order=self.order)

    def test_add_item(self):
        """Test adding an item that is on the order"""
        response = self.client.post(f'/api/v1/returns/{self.return_request.id}/items/', {
            'sku': 'MT-200', 'product_name': 'Milk jug', 'quantity': 1
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(self.return_request.items.count(), 1)

    def test_add_item_not_on_order(self):
        """Test adding an item the order does not contain"""
        response = self.client.post(f'/api/v1/returns/{self.return_request.id}/items/', {
            'sku': 'XX-1', 'product_name': 'Unknown', 'quantity': 1
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_mark_restocked(self):
        """Test restocking stamps restocked_at once"""
        item = TestDataFactory.create_return_item(self.return_request)
        url = f'/api/v1/returns/{self.return_request.id}/items/{item.id}/'
        response = self.client.patch(url, {'restocked': True, 'condition': 'opened'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['restockable'])
        self.assertIsNotNone(response.data['restocked_at'])
        self.assertEqual(response.data['condition'], 'opened')

    def test_delete_item(self):
        """Test removing an item"""
        item = TestDataFactory.create_return_item(self.return_request)
        response = self.client.delete(f'/api/v1/returns/{self.return_request.id}/items/{item.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(ReturnItem.objects.exists())

"""
Test suite for Cases module
Tests: case creation, status changes, archiving, links and the timeline
"""
from django.test import TestCase
from rest_framework import status
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.cases.models import Case, CaseLink


class CaseCreateTests(TestCase):
    """Test opening cases"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.customer = TestDataFactory.create_customer(email='klant@example.com')
        self.order = TestDataFactory.create_order(customer=self.customer)

    def test_create_case_with_items(self):
        """Test a case gets the next number, its items and a created event"""
        response = self.client.post('/api/v1/cases/', {
            'title': 'Machine leaks',
            'customer': self.customer.id,
            'order': self.order.id,
            'items': [{'sku': 'MT-100', 'product_name': 'Espresso machine', 'quantity': 1}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['case_number'], 'CASE-001')
        self.assertEqual(response.data['customer_email'], 'klant@example.com')
        self.assertEqual(len(response.data['items']), 1)

        case = Case.objects.get(pk=response.data['id'])
        self.assertEqual(list(case.events.values_list('event_type', flat=True)), ['created'])

    def test_case_number_follows_highest(self):
        """Test case numbers continue after the highest existing one"""
        TestDataFactory.create_case(case_number='CASE-017')
        response = self.client.post('/api/v1/cases/', {'title': 'Question'}, format='json')
        self.assertEqual(response.data['case_number'], 'CASE-018')

    def test_item_sku_must_be_on_order(self):
        """Test items with SKUs the order does not have"""
        response = self.client.post('/api/v1/cases/', {
            'title': 'Wrong part',
            'order': self.order.id,
            'items': [{'sku': 'ZZ-9', 'product_name': 'Other', 'quantity': 1}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('items', response.data)
        self.assertFalse(Case.objects.exists())

    def test_title_required(self):
        """Test a case needs a title"""
        response = self.client.post('/api/v1/cases/', {'description': 'No title'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('title', response.data)


class CaseUpdateTests(TestCase):
    """Test status changes, assignment and archiving"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.case = TestDataFactory.create_case(user=self.user)
        self.url = f'/api/v1/cases/{self.case.id}/'

    def test_resolve_sets_resolved_at(self):
        """Test resolving stamps resolved_at and reopening clears it"""
        response = self.client.patch(self.url, {'status': 'resolved'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNotNone(response.data['resolved_at'])
        self.assertTrue(self.case.events.filter(event_type='status_change').exists())

        response = self.client.patch(self.url, {'status': 'in_progress'}, format='json')
        self.assertIsNone(response.data['resolved_at'])

    def test_assignment_event(self):
        """Test assigning a case records a timeline event"""
        agent = TestDataFactory.create_user(username='agent')
        response = self.client.patch(self.url, {'assigned_user': agent.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['assigned_user_username'], 'agent')
        event = self.case.events.get(event_type='assigned')
        self.assertIn('agent', event.message)

    def test_archive_and_unarchive(self):
        """Test archive hides a case from the default list"""
        response = self.client.post(f'{self.url}archive/')
        self.assertTrue(response.data['archived'])
        response = self.client.get('/api/v1/cases/')
        self.assertEqual(response.data['count'], 0)

        response = self.client.delete(f'{self.url}archive/')
        self.assertFalse(response.data['archived'])
        response = self.client.get('/api/v1/cases/')
        self.assertEqual(response.data['count'], 1)

    def test_search(self):
        """Test searching on case number"""
        TestDataFactory.create_case(title='Another')
        response = self.client.get(f'/api/v1/cases/?search={self.case.case_number}')
        self.assertEqual([c['id'] for c in response.data['results']], [self.case.id])

    def test_delete_case(self):
        """Test deleting a case"""
        response = self.client.delete(self.url)
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Case.objects.exists())


class CaseLinkTests(TestCase):
    """Test linking records to a case"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.case = TestDataFactory.create_case(user=self.user)
        self.url = f'/api/v1/cases/{self.case.id}/links/'

    def test_add_and_list_links(self):
        """Test adding links and filtering them by type"""
        response = self.client.post(self.url, {'link_type': 'order', 'linked_id': '42'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.client.post(self.url, {'link_type': 'email', 'linked_id': 'msg-1'}, format='json')

        response = self.client.get(f'{self.url}?link_type=email')
        self.assertEqual([link['linked_id'] for link in response.data], ['msg-1'])

    def test_duplicate_link_rejected(self):
        """Test linking the same record twice"""
        self.client.post(self.url, {'link_type': 'order', 'linked_id': '42'}, format='json')
        response = self.client.post(self.url, {'link_type': 'order', 'linked_id': '42'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('error', response.data)
        self.assertEqual(CaseLink.objects.count(), 1)

    def test_invalid_link_type(self):
        """Test unsupported link types"""
        response = self.client.post(self.url, {'link_type': 'invoice', 'linked_id': '1'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_remove_link_records_event(self):
        """Test unlinking shows on the timeline newest first"""
        response = self.client.post(self.url, {'link_type': 'repair', 'linked_id': 'R-7'}, format='json')
        link_id = response.data['id']

        response = self.client.delete(f'{self.url}{link_id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

        response = self.client.get(f'/api/v1/cases/{self.case.id}/events/')
        self.assertEqual(response.data[0]['event_type'], 'link_removed')
        self.assertEqual(response.data[1]['event_type'], 'link_added')

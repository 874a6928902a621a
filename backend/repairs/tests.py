"""
Test suite for Repairs module
Tests: repair creation and numbering, case links, status timeline, filters, delete rights and stats
"""
from datetime import timedelta

from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from backend.cases.models import CaseEvent, CaseLink
from backend.core.models import Activity, AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.notes import services as note_services
from backend.notes.models import Note
from backend.repairs.models import Repair


class RepairCreateTests(TestCase):
    """Test creating repairs"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.customer = TestDataFactory.create_customer()
        self.order = TestDataFactory.create_order(customer=self.customer, order_number='#2001')

    def test_create_repair(self):
        """Test a repair gets a number, the order's customer and an activity entry"""
        response = self.client.post('/api/v1/repairs/', {
            'title': 'Grinder makes noise',
            'order': self.order.id,
            'product_sku': 'MT-100',
            'issue_category': 'Maalwerk',
            'estimated_cost': 4500,
            'parts_needed': ['burr set'],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['repair_number'], f'REP-{timezone.now().year}-001')
        self.assertEqual(response.data['customer'], self.customer.id)
        self.assertEqual(response.data['status'], 'new')
        self.assertEqual(response.data['status_label'], 'Nieuw')
        self.assertEqual(response.data['parts_needed'], ['burr set'])
        self.assertEqual(response.data['created_by'], self.user.id)
        self.assertTrue(Activity.objects.filter(type='repair_created').exists())
        self.assertTrue(AuditLog.objects.filter(model_name='Repair', action='create').exists())

    def test_repair_numbers_are_sequential(self):
        """Test the next repair number follows the highest of the year"""
        TestDataFactory.create_repair(repair_number=f'REP-{timezone.now().year}-009')
        response = self.client.post('/api/v1/repairs/', {'title': 'Leaking boiler'}, format='json')
        self.assertEqual(response.data['repair_number'], f'REP-{timezone.now().year}-010')

    def test_title_required(self):
        """Test a repair needs a title"""
        response = self.client.post('/api/v1/repairs/', {'description': 'No title'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('title', response.data)

    def test_negative_cost_rejected(self):
        """Test costs cannot be negative"""
        response = self.client.post('/api/v1/repairs/', {'title': 'Pump', 'actual_cost': -1}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('actual_cost', response.data)

    def test_inventory_repair_needs_product(self):
        """Test inventory repairs must name the product"""
        response = self.client.post('/api/v1/repairs/', {
            'title': 'Returned stock unit', 'repair_type': 'inventory'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('product_sku', response.data)

        response = self.client.post('/api/v1/repairs/', {
            'title': 'Returned stock unit', 'repair_type': 'inventory', 'product_name': 'Espresso machine'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_create_with_case_links_case(self):
        """Test a repair on a case is added to the case links and timeline"""
        case = TestDataFactory.create_case(user=self.user)
        response = self.client.post('/api/v1/repairs/', {'title': 'Grinder', 'case': case.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(CaseLink.objects.filter(
            case=case, link_type='repair', linked_id=str(response.data['id'])
        ).exists())
        self.assertTrue(CaseEvent.objects.filter(case=case, event_type='link_added').exists())

    def test_create_from_case(self):
        """Test a repair prefilled from a case and its first item"""
        case = TestDataFactory.create_case(user=self.user, customer=self.customer, order=self.order,
                                           title='Machine stopped heating')
        case.items.create(sku='MT-100', product_name='Espresso machine')

        response = self.client.post(f'/api/v1/repairs/from-case/{case.id}/', {'priority': 'high'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['title'], 'Machine stopped heating')
        self.assertEqual(response.data['product_sku'], 'MT-100')
        self.assertEqual(response.data['customer'], self.customer.id)
        self.assertEqual(response.data['priority'], 'high')
        self.assertEqual(response.data['case_number'], case.case_number)
        self.assertEqual(case.links.filter(link_type='repair').count(), 1)

    def test_create_from_unknown_case(self):
        """Test a missing case"""
        response = self.client.post('/api/v1/repairs/from-case/99999/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class RepairStatusTests(TestCase):
    """Test status changes"""

    def setUp(self):
        self.user = TestDataFactory.create_user(role='TECHNICUS')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.repair = TestDataFactory.create_repair()
        self.url = f'/api/v1/repairs/{self.repair.id}/'

    def test_status_change_side_effects(self):
        """Test a status move adds a timeline entry, an activity and a system note"""
        response = self.client.patch(self.url, {'status': 'diagnosing'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['timeline']), 1)
        entry = response.data['timeline'][0]
        self.assertEqual((entry['from'], entry['to']), ('new', 'diagnosing'))
        self.assertEqual(entry['user_id'], self.user.id)

        note = Note.objects.get(entity_type='repair', entity_id=str(self.repair.id))
        self.assertEqual(note.visibility, 'system')
        self.assertEqual(note.plain_text, 'Status changed from Nieuw to Diagnose')
        self.assertTrue(Activity.objects.filter(type='repair_status_changed').exists())
        self.assertTrue(AuditLog.objects.filter(model_name='Repair', action='status_change').exists())

    def test_completion_stamped_once(self):
        """Test completed_at is set when the repair is finished and kept afterwards"""
        response = self.client.patch(self.url, {'status': 'completed'}, format='json')
        completed_at = response.data['completed_at']
        self.assertIsNotNone(completed_at)

        response = self.client.patch(self.url, {'status': 'returned'}, format='json')
        self.assertEqual(response.data['completed_at'], completed_at)
        self.assertEqual(len(response.data['timeline']), 2)

    def test_update_without_status_change(self):
        """Test editing other fields leaves the timeline alone"""
        response = self.client.patch(self.url, {'actual_cost': 3000}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['timeline'], [])
        self.assertFalse(Note.objects.filter(entity_type='repair').exists())

    def test_invalid_status(self):
        """Test an unknown status is rejected"""
        response = self.client.patch(self.url, {'status': 'in_repair'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_assigning_case_links_it(self):
        """Test moving a repair onto a case links it there"""
        case = TestDataFactory.create_case()
        self.client.patch(self.url, {'case': case.id}, format='json')
        self.assertTrue(case.links.filter(link_type='repair', linked_id=str(self.repair.id)).exists())


class RepairListTests(TestCase):
    """Test listing and filtering repairs"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_archived_hidden_by_default(self):
        """Test archived repairs only show with archived=true or all"""
        TestDataFactory.create_repair(title='Active')
        TestDataFactory.create_repair(title='Old', is_archived=True)

        response = self.client.get('/api/v1/repairs/')
        self.assertEqual([r['title'] for r in response.data['results']], ['Active'])
        response = self.client.get('/api/v1/repairs/?archived=true')
        self.assertEqual([r['title'] for r in response.data['results']], ['Old'])
        response = self.client.get('/api/v1/repairs/?archived=all')
        self.assertEqual(response.data['count'], 2)

    def test_filters(self):
        """Test status, technician and search filters"""
        technician = TestDataFactory.create_user(role='TECHNICUS')
        TestDataFactory.create_repair(title='Grinder', status='diagnosing', assigned_user=technician)
        TestDataFactory.create_repair(title='Boiler', status='waiting_parts', product_sku='BL-7')
        TestDataFactory.create_repair(title='Pump', status='completed')

        response = self.client.get('/api/v1/repairs/?status=diagnosing&status=waiting_parts')
        self.assertEqual(response.data['count'], 2)
        response = self.client.get(f'/api/v1/repairs/?assigned_user={technician.id}')
        self.assertEqual([r['title'] for r in response.data['results']], ['Grinder'])
        response = self.client.get('/api/v1/repairs/?search=bl-7')
        self.assertEqual([r['title'] for r in response.data['results']], ['Boiler'])

    def test_overdue_filter(self):
        """Test overdue means open and past the SLA deadline"""
        past = timezone.now() - timedelta(days=1)
        TestDataFactory.create_repair(title='Late', sla_deadline=past)
        TestDataFactory.create_repair(title='Done late', status='completed', sla_deadline=past)
        TestDataFactory.create_repair(title='On time', sla_deadline=timezone.now() + timedelta(days=3))

        response = self.client.get('/api/v1/repairs/?overdue=true')
        self.assertEqual([r['title'] for r in response.data['results']], ['Late'])
        self.assertTrue(response.data['results'][0]['is_overdue'])

    def test_invalid_filter(self):
        """Test an unknown status filter value"""
        response = self.client.get('/api/v1/repairs/?status=broken')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class RepairDeleteTests(TestCase):
    """Test who may delete repairs"""

    def setUp(self):
        self.repair = TestDataFactory.create_repair()
        self.url = f'/api/v1/repairs/{self.repair.id}/'
        self.client = AuthenticatedAPIClient()

    def test_technician_cannot_delete(self):
        """Test technicians get 403"""
        self.client.authenticate_user(TestDataFactory.create_user(role='TECHNICUS'))
        response = self.client.delete(self.url)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertTrue(Repair.objects.filter(pk=self.repair.id).exists())

    def test_support_can_delete(self):
        """Test support users delete and the deletion is audited"""
        self.client.authenticate_user(TestDataFactory.create_user(role='SUPPORT'))
        response = self.client.delete(self.url)
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Repair.objects.filter(pk=self.repair.id).exists())
        self.assertTrue(AuditLog.objects.filter(model_name='Repair', action='delete').exists())


class RepairStatsTests(TestCase):
    """Test repair stats"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_stats(self):
        """Test counts, overdue, urgent, average repair time and top issues"""
        now = timezone.now()
        TestDataFactory.create_repair(status='new', priority='urgent', issue_category='Lekkage')
        TestDataFactory.create_repair(status='diagnosing', sla_deadline=now - timedelta(hours=2),
                                      issue_category='Lekkage')
        finished = TestDataFactory.create_repair(status='completed', completed_at=now, issue_category='Maalwerk')
        Repair.objects.filter(pk=finished.pk).update(created_at=now - timedelta(days=4))
        TestDataFactory.create_repair(status='new', is_archived=True)

        response = self.client.get('/api/v1/repairs/stats/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        by_status = {row['status']: row['count'] for row in response.data['by_status']}
        self.assertEqual(by_status['new'], 1)
        self.assertEqual(by_status['completed'], 1)
        self.assertEqual(response.data['total'], 3)
        self.assertEqual(response.data['open'], 2)
        self.assertEqual(response.data['overdue'], 1)
        self.assertEqual(response.data['urgent'], 1)
        self.assertEqual(response.data['average_repair_days'], 4.0)
        self.assertEqual(response.data['top_issue_categories'][0], {'issue_category': 'Lekkage', 'count': 2})


class RepairLinkTests(TestCase):
    """Test repairs as a target of notes, todos and search"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.repair = TestDataFactory.create_repair(title='Grinder makes noise', product_sku='GR-55')

    def test_followup_on_repair_note_links_todo(self):
        """Test a follow-up on a repair note puts the repair on its todo"""
        note = TestDataFactory.create_note(self.user, entity_type='repair', entity_id=str(self.repair.id))
        _, todo = note_services.create_followup(note, self.user)
        self.assertEqual(todo.repair, self.repair)

        response = self.client.get(f'/api/v1/todos/?repair={self.repair.id}')
        self.assertEqual([t['id'] for t in response.data], [todo.id])

    def test_global_search_finds_repairs(self):
        """Test the global search has a repairs section"""
        response = self.client.get('/api/v1/search/?q=GR-55')
        self.assertEqual([r['id'] for r in response.data['repairs']], [self.repair.id])

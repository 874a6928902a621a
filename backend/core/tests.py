"""
Test suite for Core module
Tests: authentication, user administration, audit logs, activity feed and global search
"""
from django.contrib.auth.models import Group
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import AccessToken
from backend.core.models import AuditLog, Activity
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.core.utils import next_sequence_number, record_activity


class AuthTests(TestCase):
    """Test registration, login and the current user endpoint"""

    def setUp(self):
        self.client = APIClient()

    def test_register_returns_tokens(self):
        """Test registration creates an active user and returns a token pair"""
        response = self.client.post('/api/v1/auth/register/', {
            'username': 'nieuwe.collega',
            'email': 'collega@example.com',
            'password': 'Sterk-Wachtwoord-2025',
            'password_confirm': 'Sterk-Wachtwoord-2025',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)
        self.assertEqual(response.data['user']['role'], 'SUPPORT')

    def test_register_password_mismatch(self):
        """Test mismatching passwords"""
        response = self.client.post('/api/v1/auth/register/', {
            'username': 'collega',
            'email': 'collega@example.com',
            'password': 'Sterk-Wachtwoord-2025',
            'password_confirm': 'Ander-Wachtwoord-2025',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('password', response.data)

    def test_login_token_carries_role(self):
        """Test the access token includes username, role and groups"""
        user = TestDataFactory.create_user(username='technicus1', role='TECHNICUS')
        user.groups.add(Group.objects.create(name='Technicus'))

        response = self.client.post('/api/v1/auth/login/', {
            'username': 'technicus1',
            'password': 'testpass123'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        token = AccessToken(response.data['access'])
        self.assertEqual(token['username'], 'technicus1')
        self.assertEqual(token['role'], 'TECHNICUS')
        self.assertEqual(token['groups'], ['Technicus'])

    def test_login_wrong_password(self):
        """Test login with a wrong password"""
        TestDataFactory.create_user(username='support1')
        response = self.client.post('/api/v1/auth/login/', {
            'username': 'support1',
            'password': 'wrong'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_unauthenticated_access(self):
        """Test API endpoints require authentication"""
        response = self.client.get('/api/v1/returns/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_flags_for_technician(self):
        """Test capability flags for a technician"""
        user = TestDataFactory.create_user(role='TECHNICUS')
        client = AuthenticatedAPIClient()
        client.authenticate_user(user)

        response = client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['is_admin'])
        self.assertFalse(response.data['can_access_returns'])
        self.assertFalse(response.data['can_access_purchasing'])
        self.assertTrue(response.data['can_access_repairs'])

    def test_me_flags_for_admin(self):
        """Test capability flags for an admin"""
        user = TestDataFactory.create_user(role='ADMIN')
        client = AuthenticatedAPIClient()
        client.authenticate_user(user)

        response = client.get('/api/v1/auth/me/')
        self.assertTrue(response.data['is_admin'])
        self.assertTrue(response.data['can_manage_users'])
        self.assertTrue(response.data['can_access_audit_logs'])


class UserAdminTests(TestCase):
    """Test user administration endpoints"""

    def setUp(self):
        self.admin = TestDataFactory.create_user(username='beheerder', role='ADMIN', is_staff=True)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_staff_lists_users(self):
        """Test staff can list and filter users"""
        TestDataFactory.create_user(role='TECHNICUS')
        response = self.client.get('/api/v1/users/?role=TECHNICUS')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)

    def test_non_staff_forbidden(self):
        """Test non-staff users cannot manage users"""
        user = TestDataFactory.create_user()
        self.client.authenticate_user(user)
        response = self.client.get('/api/v1/users/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_cannot_delete_self(self):
        """Test an admin cannot delete their own account"""
        response = self.client.delete(f'/api/v1/users/{self.admin.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_directory_for_mentions(self):
        """Test the user directory lists active users for any user"""
        TestDataFactory.create_user(username='anna')
        inactive = TestDataFactory.create_user(username='annabel')
        inactive.is_active = False
        inactive.save()

        support = TestDataFactory.create_user()
        self.client.authenticate_user(support)
        response = self.client.get('/api/v1/users/directory/?q=anna')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([u['username'] for u in response.data], ['anna'])


class AuditLogTests(TestCase):
    """Test audit log visibility"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.other = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_mutations_are_audited(self):
        """Test creating a record writes an audit entry for the user"""
        self.client.post('/api/v1/cases/', {'title': 'Audit me'}, format='json')
        entry = AuditLog.objects.get(model_name='Case')
        self.assertEqual(entry.user, self.user)
        self.assertEqual(entry.action, 'create')

    def test_users_see_own_entries(self):
        """Test non-staff users only see their own entries"""
        AuditLog.objects.create(user=self.user, action='update', model_name='Return')
        foreign = AuditLog.objects.create(user=self.other, action='update', model_name='Return')

        response = self.client.get('/api/v1/audit-logs/')
        self.assertEqual(response.data['count'], 1)

        response = self.client.get(f'/api/v1/audit-logs/{foreign.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_filter_by_model(self):
        """Test filtering on model name"""
        AuditLog.objects.create(user=self.user, action='update', model_name='Return')
        AuditLog.objects.create(user=self.user, action='update', model_name='Todo')
        response = self.client.get('/api/v1/audit-logs/?model=Todo')
        self.assertEqual(response.data['count'], 1)


class ActivityTests(TestCase):
    """Test the activity feed"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_feed_newest_first_with_limit(self):
        """Test the feed order, limit and type filter"""
        record_activity('case_created', 'first', user=self.user)
        record_activity('return_created', 'second', user=self.user)
        record_activity('return_created', 'third', user=self.user)

        response = self.client.get('/api/v1/activities/?limit=2')
        self.assertEqual(len(response.data), 2)

        response = self.client.get('/api/v1/activities/?type=case_created')
        self.assertEqual([a['description'] for a in response.data], ['first'])
        self.assertEqual(Activity.objects.count(), 3)


class SequenceNumberTests(TestCase):
    """Test human-readable number generation"""

    def test_next_number_skips_foreign_values(self):
        """Test non-numeric suffixes are ignored"""
        from backend.cases.models import Case

        TestDataFactory.create_case(case_number='CASE-009')
        TestDataFactory.create_case(case_number='CASE-OLD')
        self.assertEqual(next_sequence_number(Case.objects.all(), 'case_number', 'CASE-'), 'CASE-010')


class GlobalSearchTests(TestCase):
    """Test the global search endpoint"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_empty_query(self):
        """Test an empty query returns empty sections"""
        response = self.client.get('/api/v1/search/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['notes'], [])
        self.assertEqual(response.data['orders'], [])

    def test_search_across_sections(self):
        """Test a query matches orders, cases and notes"""
        order = TestDataFactory.create_order(order_number='#55123')
        TestDataFactory.create_case(title='Follow up 55123')
        TestDataFactory.create_note(self.user, entity_id=str(order.id), content='Refund for 55123 approved')

        response = self.client.get('/api/v1/search/?q=55123')
        self.assertEqual(len(response.data['orders']), 1)
        self.assertEqual(len(response.data['cases']), 1)
        self.assertEqual(len(response.data['notes']), 1)


class CreateUserGroupsCommandTests(TestCase):
    """Test the create_user_groups management command"""

    def test_groups_created_idempotently(self):
        """Test the three application groups exist after running twice"""
        from io import StringIO
        from django.core.management import call_command

        call_command('create_user_groups', stdout=StringIO())
        call_command('create_user_groups', stdout=StringIO())

        self.assertEqual(
            sorted(Group.objects.values_list('name', flat=True)),
            ['Admin', 'Support', 'Technicus']
        )
        technicus = Group.objects.get(name='Technicus')
        self.assertTrue(technicus.permissions.filter(codename='add_note').exists())
        self.assertTrue(technicus.permissions.filter(codename='change_repair').exists())
        self.assertFalse(technicus.permissions.filter(codename='add_return').exists())
        support = Group.objects.get(name='Support')
        self.assertFalse(support.permissions.filter(codename='add_user').exists())


class SettingTests(TestCase):
    """Test runtime settings administration"""

    def setUp(self):
        self.admin = TestDataFactory.create_user(role='ADMIN', is_staff=True)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_setting_crud(self):
        """Test creating, updating and deleting a setting"""
        response = self.client.post('/api/v1/settings/', {
            'key': 'return_window_days',
            'value': '30'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        setting_id = response.data['id']

        response = self.client.patch(f'/api/v1/settings/{setting_id}/', {'value': '14'}, format='json')
        self.assertEqual(response.data['value'], '14')

        response = self.client.delete(f'/api/v1/settings/{setting_id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

    def test_settings_require_staff(self):
        """Test non-staff users cannot read settings"""
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.get('/api/v1/settings/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class TokenRefreshTests(TestCase):
    """Test refreshing access tokens"""

    def test_refresh_with_garbage(self):
        """Test an invalid refresh token"""
        response = APIClient().post('/api/v1/auth/refresh/', {'refresh': 'not-a-token'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

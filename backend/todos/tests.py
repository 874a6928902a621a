"""
Test suite for Todos module
"""
from django.test import TestCase
from rest_framework import status
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient


class TodoAPITests(TestCase):
    """Test todo endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_todo(self):
        """Test creating a todo linked to a return"""
        return_request = TestDataFactory.create_return()
        response = self.client.post('/api/v1/todos/', {
            'title': 'Call customer about refund',
            'return_request': return_request.id,
            'priority': 'high'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['created_by'], self.user.id)
        self.assertIsNone(response.data['completed_at'])

    def test_completed_at_follows_status(self):
        """Test completed_at is set on done and cleared when reopened"""
        todo = TestDataFactory.create_todo(user=self.user)
        url = f'/api/v1/todos/{todo.id}/'

        response = self.client.patch(url, {'status': 'done'}, format='json')
        self.assertIsNotNone(response.data['completed_at'])

        response = self.client.patch(url, {'status': 'in_progress'}, format='json')
        self.assertIsNone(response.data['completed_at'])

    def test_mine_filter(self):
        """Test 'mine' lists todos assigned to or created by the user"""
        other = TestDataFactory.create_user()
        TestDataFactory.create_todo(user=self.user, title='Created by me')
        TestDataFactory.create_todo(user=other, assigned_user=self.user, title='Assigned to me')
        TestDataFactory.create_todo(user=other, title='Not mine')

        response = self.client.get('/api/v1/todos/?mine=true')
        self.assertEqual(sorted(t['title'] for t in response.data), ['Assigned to me', 'Created by me'])

    def test_filter_by_linked_record(self):
        """Test filtering todos on the linked case"""
        case = TestDataFactory.create_case()
        todo = TestDataFactory.create_todo(user=self.user)
        todo.case = case
        todo.save()
        TestDataFactory.create_todo(user=self.user)

        response = self.client.get(f'/api/v1/todos/?case={case.id}')
        self.assertEqual([t['id'] for t in response.data], [todo.id])


class SubtaskAPITests(TestCase):
    """Test subtasks"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.todo = TestDataFactory.create_todo(user=self.user)
        self.url = f'/api/v1/todos/{self.todo.id}/subtasks/'

    def test_subtasks_append(self):
        """Test new subtasks go to the end of the list"""
        first = self.client.post(self.url, {'title': 'Check serial number'}, format='json')
        second = self.client.post(self.url, {'title': 'Print label'}, format='json')
        self.assertEqual(first.data['position'], 0)
        self.assertEqual(second.data['position'], 1)

    def test_progress(self):
        """Test subtask progress on the todo"""
        response = self.client.post(self.url, {'title': 'Step 1'}, format='json')
        self.client.post(self.url, {'title': 'Step 2'}, format='json')
        self.client.patch(f"{self.url}{response.data['id']}/", {'completed': True}, format='json')

        response = self.client.get(f'/api/v1/todos/{self.todo.id}/')
        self.assertEqual(response.data['subtask_progress'], {'done': 1, 'total': 2})

    def test_delete_subtask(self):
        """Test removing a subtask"""
        response = self.client.post(self.url, {'title': 'Temporary'}, format='json')
        response = self.client.delete(f"{self.url}{response.data['id']}/")
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertEqual(self.todo.subtasks.count(), 0)

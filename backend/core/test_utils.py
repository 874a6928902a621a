"""
Test utilities and factories for creating test data
"""
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from backend.parties.models import Customer, Supplier
from backend.orders.models import Order
from backend.cases.models import Case
from backend.returns.models import Return, ReturnItem
from backend.repairs.models import Repair
from backend.purchasing.models import PurchaseOrder, PurchaseOrderItem
from backend.todos.models import Todo
from django.utils import timezone
import random
import string

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_user(username=None, email=None, password='testpass123', role='SUPPORT',
                    is_staff=False, is_superuser=False):
        """Create a test user"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{username}@test.com'
        return User.objects.create_user(
            username=username,
            email=email,
            password=password,
            role=role,
            is_staff=is_staff,
            is_superuser=is_superuser
        )

    @staticmethod
    def create_customer(email=None, first_name='Jan', last_name='Jansen'):
        """Create a test customer"""
        if not email:
            email = f'{TestDataFactory.random_string(8).lower()}@example.com'
        return Customer.objects.create(
            email=email,
            first_name=first_name,
            last_name=last_name,
            phone='0612345678'
        )

    @staticmethod
    def create_supplier(name=None, supplier_code=None):
        """Create a test supplier"""
        if not name:
            name = f'Supplier_{TestDataFactory.random_string(6)}'
        if not supplier_code:
            supplier_code = f'SUP{TestDataFactory.random_string(5).upper()}'
        return Supplier.objects.create(
            name=name,
            supplier_code=supplier_code,
            email='inkoop@example.com',
            city='Utrecht'
        )

    @staticmethod
    def create_order(customer=None, order_number=None, line_items=None, status='pending', total_amount=4999):
        """Create a test order with Shopify-style line items"""
        if not order_number:
            order_number = f'#{random.randint(1000, 99999)}'
        if line_items is None:
            line_items = [
                {'sku': 'MT-100', 'title': 'Espresso machine', 'quantity': 1, 'price': '49.99'},
                {'sku': 'MT-200', 'title': 'Milk jug', 'quantity': 2, 'price': '9.95'},
            ]
        return Order.objects.create(
            shopify_order_id=TestDataFactory.random_string(12),
            order_number=order_number,
            customer=customer,
            customer_email=customer.email if customer else '',
            total_amount=total_amount,
            status=status,
            order_data={'line_items': line_items},
            order_date=timezone.now()
        )

    @staticmethod
    def create_case(user=None, customer=None, order=None, title='Broken on arrival', case_number=None):
        """Create a test case"""
        if not case_number:
            case_number = f'CASE-{random.randint(100, 99999)}'
        return Case.objects.create(
            case_number=case_number,
            title=title,
            customer=customer,
            customer_email=customer.email if customer else '',
            order=order,
            created_by=user
        )

    @staticmethod
    def create_return(user=None, customer=None, order=None, case=None, status='nieuw', return_number=None):
        """Create a test return"""
        if not return_number:
            return_number = f'RET-{timezone.now().year}-{random.randint(100, 99999)}'
        return Return.objects.create(
            return_number=return_number,
            customer=customer,
            order=order,
            case=case,
            status=status,
            created_by=user,
            requested_at=timezone.now()
        )

    @staticmethod
    def create_repair(user=None, customer=None, order=None, case=None, title='Grinder makes noise',
                      status='new', repair_number=None, **kwargs):
        """Create a test repair"""
        if not repair_number:
            repair_number = f'REP-{timezone.now().year}-{random.randint(100, 99999)}'
        return Repair.objects.create(
            repair_number=repair_number,
            title=title,
            customer=customer,
            order=order,
            case=case,
            status=status,
            created_by=user,
            **kwargs
        )

    @staticmethod
    def create_return_item(return_request, sku='MT-100', product_name='Espresso machine', quantity=1):
        """Create a test return item"""
        return ReturnItem.objects.create(
            return_request=return_request,
            sku=sku,
            product_name=product_name,
            quantity=quantity,
            unit_price=4999
        )

    @staticmethod
    def create_purchase_order(user=None, supplier=None, po_number=None, status='aangekocht', order_date=None):
        """Create a test purchase order"""
        if not supplier:
            supplier = TestDataFactory.create_supplier()
        if not order_date:
            order_date = timezone.now().date()
        if not po_number:
            po_number = f'PO-{order_date.year}-{random.randint(100, 99999)}'
        return PurchaseOrder.objects.create(
            po_number=po_number,
            title='Spare parts',
            supplier=supplier,
            order_date=order_date,
            status=status,
            created_by=user
        )

    @staticmethod
    def create_purchase_order_item(purchase_order, sku='PART-1', product_name='Gasket', quantity=10, unit_price=250):
        """Create a test purchase order item"""
        return PurchaseOrderItem.objects.create(
            purchase_order=purchase_order,
            sku=sku,
            product_name=product_name,
            quantity=quantity,
            unit_price=unit_price
        )

    @staticmethod
    def create_todo(user=None, title=None, status='todo', assigned_user=None):
        """Create a test todo"""
        return Todo.objects.create(
            title=title or f'Todo {TestDataFactory.random_string(6)}',
            status=status,
            created_by=user,
            assigned_user=assigned_user
        )

    @staticmethod
    def create_note(author, entity_type='order', entity_id='1', content='Customer called about delivery',
                    parent_note=None, visibility='internal', **kwargs):
        """Create a note through the notes service so derived fields are filled"""
        from backend.notes.services import create_note
        return create_note(
            author=author,
            entity_type=entity_type,
            entity_id=entity_id,
            content=content,
            visibility=visibility,
            parent_note=parent_note,
            **kwargs
        )


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()

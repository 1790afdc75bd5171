"""
Tests for accounts: registration, bearer tokens, password flows and admin
user management.

Test Cases:
1. Register / login / logout with real bearer tokens
2. Token revocation and expiry of revocation rows
3. Profile and password change
4. Forgot / reset password via the emailed token
5. Admin user endpoints
"""
import re
from datetime import timedelta
from decimal import Decimal

from django.core import mail
from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIClient

from accounts import services
from accounts.models import RevokedToken, User, token_digest
from accounts.tasks import purge_expired_tokens
from accounts.tokens import issue_token, revoke_token, verify_token
from cart import services as cart_services
from core.exceptions import Conflict, Unauthenticated, ValidationFailed
from core.permissions import Role
from inventory.models import Category, Product
from orders.models import Order
from orders.services import cancel_order, create_order


def make_user(email, role=Role.CUSTOMER, password='password123'):
    return User.objects.create_user(
        email=email,
        password=password,
        first_name='Alex',
        last_name='Account',
        role=role,
    )


class TokenTestCase(TestCase):

    def setUp(self):
        self.user = make_user('alex@example.com')

    def test_issued_token_verifies(self):
        claims = verify_token(issue_token(self.user))

        self.assertEqual(claims.user_id, str(self.user.pk))
        self.assertEqual(claims.role, Role.CUSTOMER)

    def test_tampered_token_rejected(self):
        token = issue_token(self.user)

        with self.assertRaises(Unauthenticated):
            verify_token(token[:-2] + 'xx')

    def test_revoked_token_rejected(self):
        token = issue_token(self.user)
        revoke_token(token)

        with self.assertRaises(Unauthenticated):
            verify_token(token)

    def test_revoking_twice_is_harmless(self):
        token = issue_token(self.user)
        revoke_token(token)
        revoke_token(token)

        self.assertEqual(RevokedToken.objects.count(), 1)

    def test_reset_token_stored_as_digest(self):
        with self.captureOnCommitCallbacks(execute=True):
            services.request_password_reset('alex@example.com')
        raw_token = re.search(r'token=([0-9a-f]{64})', mail.outbox[0].body).group(1)

        self.user.refresh_from_db()
        self.assertEqual(self.user.reset_token_hash, token_digest(raw_token))

    def test_purge_only_removes_expired_rows(self):
        RevokedToken.objects.create(
            digest=token_digest('old'),
            expires_at=timezone.now() - timedelta(minutes=1),
        )
        RevokedToken.objects.create(
            digest=token_digest('fresh'),
            expires_at=timezone.now() + timedelta(days=1),
        )

        result = purge_expired_tokens()

        self.assertEqual(result, {'purged': 1})
        self.assertTrue(RevokedToken.objects.filter(digest=token_digest('fresh')).exists())


class AccountServiceTestCase(TestCase):

    def test_register_creates_customer_and_queues_welcome(self):
        with self.captureOnCommitCallbacks(execute=True):
            user, token = services.register_user(
                email='  New@Example.com ',
                password='password123',
                first_name='New',
                last_name='Person',
            )

        self.assertEqual(user.email, 'new@example.com')
        self.assertEqual(user.role, Role.CUSTOMER)
        self.assertEqual(verify_token(token).user_id, str(user.pk))
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['new@example.com'])

    def test_register_duplicate_email_case_insensitive(self):
        make_user('taken@example.com')

        with self.assertRaises(Conflict):
            services.register_user(
                email='TAKEN@example.com',
                password='password123',
                first_name='Other',
                last_name='Person',
            )

    def test_login_bad_password(self):
        make_user('alex@example.com')

        with self.assertRaises(Unauthenticated):
            services.login(email='alex@example.com', password='wrong-password')

    def test_change_password_requires_current(self):
        user = make_user('alex@example.com')

        with self.assertRaises(Unauthenticated):
            services.change_password(user, current_password='nope', new_password='newpassword1')

        services.change_password(user, current_password='password123', new_password='newpassword1')
        user.refresh_from_db()
        self.assertTrue(user.check_password('newpassword1'))

    def test_admin_cannot_delete_self(self):
        admin = make_user('admin@example.com', Role.ADMIN)

        with self.assertRaises(ValidationFailed):
            services.admin_delete_user(admin, admin.pk)

    def test_admin_role_change_sets_staff_flag(self):
        user = make_user('alex@example.com')

        user = services.admin_update_user(user.pk, role=Role.ADMIN)

        self.assertTrue(user.is_staff)
        self.assertEqual(user.role, Role.ADMIN)


class AuthAPITestCase(TestCase):

    def setUp(self):
        self.client = APIClient()
        self.user = make_user('alex@example.com')

    def _login(self, email='alex@example.com', password='password123'):
        return self.client.post('/api/auth/login/', {'email': email, 'password': password}, format='json')

    def test_register(self):
        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.post('/api/auth/register/', {
                'email': 'new@example.com',
                'password': 'password123',
                'first_name': 'New',
                'last_name': 'Person',
            }, format='json')

        self.assertEqual(response.status_code, 201)
        self.assertTrue(response.data['success'])
        self.assertEqual(response.data['data']['user']['role'], Role.CUSTOMER)
        self.assertIn('token', response.data['data'])
        self.assertNotIn('password', response.data['data']['user'])
        self.assertEqual(len(mail.outbox), 1)

    def test_register_duplicate_returns_409(self):
        response = self.client.post('/api/auth/register/', {
            'email': 'alex@example.com',
            'password': 'password123',
            'first_name': 'Alex',
            'last_name': 'Again',
        }, format='json')

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data['error'], 'Email already registered')

    def test_register_validation(self):
        response = self.client.post('/api/auth/register/', {
            'email': 'not-an-email',
            'password': 'short',
            'first_name': 'A',
            'last_name': 'Person',
        }, format='json')

        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.data['success'])
        for field in ('email', 'password', 'first_name'):
            self.assertIn(field, response.data['details'])

    def test_login(self):
        response = self._login()

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['data']['user']['email'], 'alex@example.com')

    def test_login_wrong_password(self):
        response = self._login(password='wrong-password')

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.data['error'], 'Invalid email or password')

    def test_profile_with_bearer_token(self):
        token = self._login().data['data']['token']
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')

        response = self.client.get('/api/auth/profile/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['data']['email'], 'alex@example.com')

    def test_missing_token(self):
        response = self.client.get('/api/auth/profile/')

        self.assertEqual(response.status_code, 401)
        self.assertFalse(response.data['success'])

    def test_garbage_token(self):
        self.client.credentials(HTTP_AUTHORIZATION='Bearer not-a-token')

        response = self.client.get('/api/auth/profile/')

        self.assertEqual(response.status_code, 401)

    def test_logout_revokes_token(self):
        """
        Given: A logged-in client
        When: It logs out and reuses the same token
        Then: The token is rejected
        """
        token = self._login().data['data']['token']
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')

        response = self.client.post('/api/auth/logout/')
        self.assertEqual(response.status_code, 200)

        response = self.client.get('/api/auth/profile/')
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.data['error'], 'Token has been invalidated. Please login again.')

    def test_token_for_deleted_user(self):
        token = issue_token(self.user)
        User.objects.filter(pk=self.user.pk).delete()
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')

        response = self.client.get('/api/auth/profile/')

        self.assertEqual(response.status_code, 401)

    def test_update_profile(self):
        self.client.force_authenticate(user=self.user)

        response = self.client.patch('/api/auth/profile/', {'first_name': 'Alexis'}, format='json')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['data']['first_name'], 'Alexis')
        self.assertEqual(response.data['data']['last_name'], 'Account')

    def test_change_password(self):
        self.client.force_authenticate(user=self.user)

        response = self.client.post('/api/auth/change-password/', {
            'current_password': 'password123',
            'new_password': 'newpassword1',
        }, format='json')

        self.assertEqual(response.status_code, 200)
        self.client.force_authenticate(user=None)
        self.assertEqual(self._login(password='newpassword1').status_code, 200)


class PasswordResetTestCase(TestCase):

    def setUp(self):
        self.client = APIClient()
        self.user = make_user('alex@example.com')

    def _request_reset(self, email):
        with self.captureOnCommitCallbacks(execute=True):
            return self.client.post('/api/auth/forgot-password/', {'email': email}, format='json')

    def test_reset_with_emailed_token(self):
        """
        Given: A forgot-password request for a known email
        When: The token from the email is used to reset
        Then: The new password works and the token is single use
        """
        response = self._request_reset('alex@example.com')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(mail.outbox), 1)
        token = re.search(r'token=([0-9a-f]{64})', mail.outbox[0].body).group(1)

        response = self.client.post('/api/auth/reset-password/', {
            'token': token,
            'new_password': 'brandnew123',
        }, format='json')
        self.assertEqual(response.status_code, 200)

        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('brandnew123'))

        response = self.client.post('/api/auth/reset-password/', {
            'token': token,
            'new_password': 'another123',
        }, format='json')
        self.assertEqual(response.status_code, 400)

    def test_unknown_email_gives_same_answer(self):
        response = self._request_reset('nobody@example.com')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(mail.outbox), 0)

    def test_expired_token(self):
        self._request_reset('alex@example.com')
        token = re.search(r'token=([0-9a-f]{64})', mail.outbox[0].body).group(1)
        User.objects.filter(pk=self.user.pk).update(
            reset_token_expires_at=timezone.now() - timedelta(seconds=1)
        )

        response = self.client.post('/api/auth/reset-password/', {
            'token': token,
            'new_password': 'brandnew123',
        }, format='json')

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['error'], 'Invalid or expired reset token')


class AdminUserAPITestCase(TestCase):

    def setUp(self):
        self.client = APIClient()
        self.admin = make_user('admin@example.com', Role.ADMIN)
        self.vendor = make_user('vendor@example.com', Role.VENDOR)
        self.customer = make_user('customer@example.com')
        self.client.force_authenticate(user=self.admin)

    def test_list_users_filtered_by_role(self):
        response = self.client.get('/api/admin/users/', {'role': Role.VENDOR})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['data'][0]['email'], 'vendor@example.com')

    def test_customer_forbidden(self):
        self.client.force_authenticate(user=self.customer)

        response = self.client.get('/api/admin/users/')

        self.assertEqual(response.status_code, 403)
        self.assertFalse(response.data['success'])

    def test_update_user_email_conflict(self):
        response = self.client.patch(
            f'/api/admin/users/{self.customer.pk}/',
            {'email': 'vendor@example.com'},
            format='json',
        )

        self.assertEqual(response.status_code, 409)

    def test_delete_user(self):
        response = self.client.delete(f'/api/admin/users/{self.customer.pk}/')

        self.assertEqual(response.status_code, 200)
        self.assertFalse(User.objects.filter(pk=self.customer.pk).exists())

    def test_cannot_delete_user_with_open_orders(self):
        """
        Given: The customer checked out 2 of 5 units
        When: An admin deletes the customer
        Then: 409, and the order and the reserved stock are untouched
        """
        product = Product.objects.create(
            name='Desk Lamp',
            price=Decimal('20.00'),
            quantity=5,
            category=Category.objects.create(name='Home'),
        )
        cart_services.add_item(self.customer, product.id, 2)
        order = create_order(self.customer)

        response = self.client.delete(f'/api/admin/users/{self.customer.pk}/')

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data['error'], 'Cannot delete a user with existing orders')
        self.assertTrue(Order.objects.filter(pk=order.pk).exists())
        product.refresh_from_db()
        self.assertEqual(product.quantity, 3)

    def test_delete_user_after_orders_cancelled(self):
        product = Product.objects.create(
            name='Desk Lamp',
            price=Decimal('20.00'),
            quantity=5,
            category=Category.objects.create(name='Home'),
        )
        cart_services.add_item(self.customer, product.id, 2)
        order = create_order(self.customer)
        cancel_order(self.customer, order.id)

        response = self.client.delete(f'/api/admin/users/{self.customer.pk}/')

        self.assertEqual(response.status_code, 200)
        product.refresh_from_db()
        self.assertEqual(product.quantity, 5)

    def test_cannot_delete_self(self):
        response = self.client.delete(f'/api/admin/users/{self.admin.pk}/')

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['error'], 'Cannot delete your own account')

    def test_unknown_user(self):
        response = self.client.get('/api/admin/users/00000000-0000-0000-0000-000000000000/')

        self.assertEqual(response.status_code, 404)

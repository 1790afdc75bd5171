"""
Tests for product reviews.

Test Cases:
1. One review per user and product
2. Listing by product and by author
3. Delete: owner or admin only
4. HTTP endpoints and validation
"""
from datetime import timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIClient

from accounts.models import User
from core.exceptions import Conflict, Forbidden, NotFound
from core.permissions import Role
from inventory.models import Category, Product
from reviews import services
from reviews.models import Review


def make_user(email, role=Role.CUSTOMER):
    return User.objects.create_user(
        email=email,
        password='password123',
        first_name='Test',
        last_name='User',
        role=role,
    )


class ReviewTestMixin:

    def setUp(self):
        self.customer = make_user('reader@example.com')
        self.other = make_user('other@example.com')
        self.admin = make_user('admin@example.com', Role.ADMIN)
        self.category = Category.objects.create(name='Books')
        self.product = Product.objects.create(
            name='Django Book',
            price=Decimal('30.00'),
            quantity=5,
            category=self.category,
        )


class ReviewServiceTestCase(ReviewTestMixin, TestCase):

    def test_create_review(self):
        review = services.create_review(
            self.customer,
            product_id=self.product.id,
            rating=5,
            comment='  Clear and practical.  ',
        )

        self.assertEqual(review.rating, 5)
        self.assertEqual(review.comment, 'Clear and practical.')
        self.assertEqual(review.user, self.customer)

    def test_second_review_of_same_product_conflicts(self):
        """
        Given: The customer already reviewed the book
        When: They submit another review for it
        Then: Conflict, and only the first review exists
        """
        services.create_review(self.customer, product_id=self.product.id, rating=4, comment='Pretty good read')

        with self.assertRaises(Conflict):
            services.create_review(self.customer, product_id=self.product.id, rating=1, comment='Changed my mind')

        self.assertEqual(Review.objects.filter(user=self.customer).count(), 1)

    def test_other_users_may_review_same_product(self):
        services.create_review(self.customer, product_id=self.product.id, rating=4, comment='Pretty good read')
        services.create_review(self.other, product_id=self.product.id, rating=2, comment='Not for beginners')

        self.assertEqual(Review.objects.filter(product=self.product).count(), 2)

    def test_review_missing_product(self):
        Product.objects.filter(pk=self.product.pk).delete()

        with self.assertRaises(NotFound):
            services.create_review(
                self.customer,
                product_id=self.product.id,
                rating=3,
                comment='Where did it go?',
            )

    def test_product_reviews_newest_first(self):
        older = services.create_review(self.customer, product_id=self.product.id, rating=4, comment='Pretty good read')
        newer = services.create_review(self.other, product_id=self.product.id, rating=2, comment='Not for beginners')
        Review.objects.filter(pk=older.pk).update(created_at=timezone.now() - timedelta(days=1))

        reviews = list(services.list_product_reviews(self.product.id))

        self.assertEqual([r.pk for r in reviews], [newer.pk, older.pk])

    def test_product_reviews_for_missing_product(self):
        product_id = self.product.id
        Product.objects.filter(pk=product_id).delete()

        with self.assertRaises(NotFound):
            services.list_product_reviews(product_id)

    def test_user_reviews_only_lists_own(self):
        services.create_review(self.customer, product_id=self.product.id, rating=4, comment='Pretty good read')
        services.create_review(self.other, product_id=self.product.id, rating=2, comment='Not for beginners')

        reviews = list(services.list_user_reviews(self.customer))

        self.assertEqual(len(reviews), 1)
        self.assertEqual(reviews[0].user, self.customer)

    def test_owner_can_delete(self):
        review = services.create_review(self.customer, product_id=self.product.id, rating=4, comment='Pretty good read')

        services.delete_review(self.customer, review.id)

        self.assertFalse(Review.objects.filter(pk=review.pk).exists())

    def test_other_customer_cannot_delete(self):
        review = services.create_review(self.customer, product_id=self.product.id, rating=4, comment='Pretty good read')

        with self.assertRaises(Forbidden):
            services.delete_review(self.other, review.id)

        self.assertTrue(Review.objects.filter(pk=review.pk).exists())

    def test_admin_can_delete_any_review(self):
        review = services.create_review(self.customer, product_id=self.product.id, rating=4, comment='Pretty good read')

        services.delete_review(self.admin, review.id)

        self.assertFalse(Review.objects.filter(pk=review.pk).exists())

    def test_delete_missing_review(self):
        review = services.create_review(self.customer, product_id=self.product.id, rating=4, comment='Pretty good read')
        Review.objects.filter(pk=review.pk).delete()

        with self.assertRaises(NotFound):
            services.delete_review(self.customer, review.id)

    def test_deleting_product_deletes_its_reviews(self):
        services.create_review(self.customer, product_id=self.product.id, rating=4, comment='Pretty good read')

        Product.objects.filter(pk=self.product.pk).delete()

        self.assertFalse(Review.objects.exists())


class ReviewAPITestCase(ReviewTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.client = APIClient()
        self.client.force_authenticate(user=self.customer)

    def _post(self, **overrides):
        payload = {
            'product_id': str(self.product.id),
            'rating': 5,
            'comment': 'Worth every penny.',
        }
        payload.update(overrides)
        return self.client.post('/api/reviews/', payload, format='json')

    def test_create_review(self):
        response = self._post()

        self.assertEqual(response.status_code, 201)
        self.assertTrue(response.data['success'])
        self.assertEqual(response.data['data']['rating'], 5)
        self.assertEqual(response.data['data']['user']['email'], 'reader@example.com')

    def test_duplicate_review_returns_409(self):
        self._post()

        response = self._post(rating=1)

        self.assertEqual(response.status_code, 409)
        self.assertFalse(response.data['success'])
        self.assertEqual(response.data['error'], 'You have already reviewed this product')

    def test_rating_out_of_range(self):
        response = self._post(rating=6)

        self.assertEqual(response.status_code, 400)
        self.assertIn('rating', response.data['details'])

    def test_comment_too_short(self):
        response = self._post(comment='Meh')

        self.assertEqual(response.status_code, 400)
        self.assertIn('comment', response.data['details'])

    def test_product_reviews_are_public(self):
        self._post()
        anonymous = APIClient()

        response = anonymous.get(f'/api/reviews/products/{self.product.id}/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['count'], 1)

    def test_my_reviews(self):
        self._post()

        response = self.client.get('/api/reviews/users/me/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['data'][0]['product']['name'], 'Django Book')

    def test_create_requires_authentication(self):
        response = APIClient().post(
            '/api/reviews/',
            {'product_id': str(self.product.id), 'rating': 5, 'comment': 'Worth every penny.'},
            format='json',
        )

        self.assertEqual(response.status_code, 401)

    def test_delete_someone_elses_review(self):
        review_id = self._post().data['data']['id']
        self.client.force_authenticate(user=self.other)

        response = self.client.delete(f'/api/reviews/{review_id}/')

        self.assertEqual(response.status_code, 403)

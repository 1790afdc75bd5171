"""
Review Service Layer.
"""
import logging

from django.db import IntegrityError, transaction

from core.exceptions import Conflict, NotFound
from core.permissions import ensure_owner_or_admin
from inventory.models import Product
from .models import Review

logger = logging.getLogger(__name__)

DUPLICATE_MESSAGE = 'You have already reviewed this product'


def create_review(user, *, product_id, rating, comment) -> Review:
    """
    Raises:
        NotFound: product does not exist
        Conflict: the user already reviewed this product
    """
    product = Product.objects.filter(pk=product_id).first()
    if product is None:
        raise NotFound('Product not found')
    if Review.objects.filter(product=product, user=user).exists():
        raise Conflict(DUPLICATE_MESSAGE)

    try:
        with transaction.atomic():
            review = Review.objects.create(
                product=product,
                user=user,
                rating=rating,
                comment=comment.strip(),
            )
    except IntegrityError:
        # Lost a race with a concurrent submission
        raise Conflict(DUPLICATE_MESSAGE)

    logger.info(f"User {user.pk} reviewed product {product.pk} ({rating}/5)")
    return review


def list_product_reviews(product_id):
    if not Product.objects.filter(pk=product_id).exists():
        raise NotFound('Product not found')
    return Review.objects.filter(product_id=product_id).select_related('user').order_by('-created_at')


def list_user_reviews(user):
    return Review.objects.filter(user=user).select_related('product').order_by('-created_at')


@transaction.atomic
def delete_review(user, review_id) -> None:
    review = Review.objects.select_for_update().filter(pk=review_id).first()
    if review is None:
        raise NotFound('Review not found')
    ensure_owner_or_admin(user, review.user_id, 'Access denied. You can only delete your own reviews.')
    review.delete()
    logger.info(f"Review {review_id} deleted by {user.pk}")

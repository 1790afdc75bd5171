"""
Cart API Views.

Implements:
- GET /cart/ - Current user's cart (created empty on first access)
- DELETE /cart/ - Remove every item
- POST /cart/items/ - Add a product (merges with an existing line)
- PATCH /cart/items/{id}/ - Change a line's quantity
- DELETE /cart/items/{id}/ - Remove a line
"""
from rest_framework import status
from rest_framework.views import APIView

from core.responses import success
from . import services
from .models import Cart
from .serializers import AddItemSerializer, CartSerializer, UpdateItemSerializer


def _render(cart):
    cart = Cart.objects.prefetch_related('items').get(pk=cart.pk)
    return CartSerializer(cart).data


class CartView(APIView):
    def get(self, request):
        return success(_render(services.get_cart(request.user)))

    def delete(self, request):
        cart = services.clear_cart(request.user)
        return success(_render(cart), message='Cart cleared successfully')


class CartItemListView(APIView):
    def post(self, request):
        serializer = AddItemSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        cart = services.add_item(request.user, **serializer.validated_data)
        return success(
            _render(cart),
            message='Item added to cart successfully',
            status=status.HTTP_201_CREATED,
        )


class CartItemDetailView(APIView):
    def patch(self, request, item_id):
        serializer = UpdateItemSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        cart = services.update_item(request.user, item_id, serializer.validated_data['quantity'])
        return success(_render(cart), message='Cart updated successfully')

    def delete(self, request, item_id):
        cart = services.remove_item(request.user, item_id)
        return success(_render(cart), message='Item removed from cart successfully')

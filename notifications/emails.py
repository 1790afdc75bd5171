"""
Plain-text bodies for transactional emails.
"""
from django.conf import settings

STATUS_MESSAGES = {
    'confirmed': 'Your order has been confirmed and is being prepared!',
    'shipped': 'Great news! Your order has been shipped!',
    'delivered': 'Your order has been delivered! Enjoy!',
    'cancelled': 'Your order has been cancelled. If you have questions, contact support.',
}


def welcome(user):
    subject = 'Welcome to Storefront!'
    body = f"""Hello {user.first_name}!

Thank you for registering with us. You can now:
  - Browse our products
  - Add items to your cart
  - Place and track orders

Get started: {settings.FRONTEND_URL}
"""
    return subject, body


def order_confirmation(order, first_name):
    lines = [
        f"  - {item.quantity}x {item.product_name} @ ${item.price} = ${item.subtotal}"
        for item in order.items.all()
    ]
    subject = f"Order Confirmation - #{order.order_number}"
    body = f"""Hello {first_name}!

Thank you for your order. We've received it and will start processing it soon.

Order: #{order.order_number}
Status: {order.status}
Items:
{chr(10).join(lines)}

Total: ${order.total}
"""
    return subject, body


def order_status_update(order, first_name, new_status):
    message = STATUS_MESSAGES.get(new_status, f"Your order status has been updated to: {new_status}")
    subject = f"Order Update - #{order.order_number}"
    body = f"""Hello {first_name}!

{message}

Order: #{order.order_number}
Status: {new_status}
"""
    return subject, body


def password_reset(user, raw_token):
    reset_url = f"{settings.FRONTEND_URL}/reset-password?token={raw_token}"
    subject = 'Password Reset Request'
    body = f"""Hello {user.first_name},

We received a request to reset your password. Use the link below:

{reset_url}

This link will expire in 1 hour. If you didn't request this, please ignore this email.
"""
    return subject, body

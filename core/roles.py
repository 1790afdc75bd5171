"""
User roles. Kept free of DRF imports so models can use it during app loading.
"""


class Role:
    ADMIN = 'admin'
    VENDOR = 'vendor'
    CUSTOMER = 'customer'

    CHOICES = [
        (ADMIN, 'Admin'),
        (VENDOR, 'Vendor'),
        (CUSTOMER, 'Customer'),
    ]

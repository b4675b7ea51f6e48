from django.urls import path
from . import views

urlpatterns = [
    path('orders', views.create_order, name='create-order'),
    path('orders/<str:user_id>', views.customer_orders, name='customer-orders'),
    path('admin/orders', views.admin_orders, name='admin-orders'),
    path('admin/orders/<str:order_id>', views.update_order_status, name='update-order-status'),
]

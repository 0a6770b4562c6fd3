from django.urls import path
from . import views

urlpatterns = [
    path('pos/tables/', views.TableListCreateView.as_view(), name='table_list'),
    path('pos/tables/<int:table_id>/status', views.TableStatusView.as_view(), name='table_status'),
    path('pos/menu-categories/', views.MenuCategoryListCreateView.as_view(), name='menu_category_list'),
    path('pos/menu-items/', views.MenuItemListCreateView.as_view(), name='menu_item_list'),
    path('pos/menu-items/<int:menu_item_id>', views.MenuItemDetailView.as_view(), name='menu_item_detail'),
    path('pos/orders/', views.OrderListCreateView.as_view(), name='order_list'),
    path('pos/orders/kitchen', views.KitchenOrdersView.as_view(), name='kitchen_orders'),
    path('pos/orders/running', views.RunningOrdersView.as_view(), name='running_orders'),
    path('pos/orders/<int:order_id>', views.OrderDetailView.as_view(), name='order_detail'),
    path('pos/orders/<int:order_id>/status', views.OrderStatusView.as_view(), name='order_status'),
    path('pos/orders/<int:order_id>/payment', views.OrderPaymentView.as_view(), name='order_payment'),
    path('pos/orders/<int:order_id>/checkout', views.OrderCheckoutView.as_view(), name='order_checkout'),
    path('public/<str:hotel_code>/menu', views.PublicMenuView.as_view(), name='public_menu'),
    path('public/<str:hotel_code>/orders', views.PublicOrderCreateView.as_view(), name='public_order_create'),
    path('public/<str:hotel_code>/orders/<str:order_number>', views.PublicOrderTrackView.as_view(),
         name='public_order_track'),
]

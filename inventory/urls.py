from django.urls import path
from . import views

urlpatterns = [
    path('inventory/', views.InventoryListCreateView.as_view(), name='inventory_list'),
    path('inventory/alerts/low-stock', views.LowStockView.as_view(), name='inventory_low_stock'),
    path('inventory/<int:item_id>', views.InventoryDetailView.as_view(), name='inventory_detail'),
    path('inventory/<int:item_id>/adjust', views.StockAdjustView.as_view(), name='inventory_adjust'),
    path('inventory/<int:item_id>/transactions', views.StockTransactionListView.as_view(),
         name='inventory_transactions'),
]

from django.urls import path
from . import views

urlpatterns = [
    path('billing/invoices', views.InvoiceListCreateView.as_view(), name='invoice_list'),
    path('billing/invoices/<int:invoice_id>', views.InvoiceDetailView.as_view(), name='invoice_detail'),
    path('billing/invoices/<int:invoice_id>/payment', views.InvoicePaymentView.as_view(), name='invoice_payment'),
    path('billing/pending', views.PendingInvoicesView.as_view(), name='invoice_pending'),
]

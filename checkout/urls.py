from django.urls import path

from checkout.views import (
    CreditsCheckoutView,
    CryptoPaymentCreateView,
    CryptoPaymentDetailView,
    CryptoPaymentQuoteView,
    CryptoPaymentStatusView,
)
from checkout.views_admin import (
    AdminPaymentDimensionsView,
    AdminPaymentExportView,
    AdminPaymentListView,
)

app_name = 'checkout'

urlpatterns = [
    path('crypto-payment', CryptoPaymentCreateView.as_view(), name='create'),
    path('crypto-payment/status', CryptoPaymentStatusView.as_view(), name='status'),
    path('crypto-payment/<str:transaction_id>', CryptoPaymentDetailView.as_view(), name='detail'),
    path('crypto-payment/<str:transaction_id>/quote', CryptoPaymentQuoteView.as_view(), name='quote'),
    path('credits/checkout', CreditsCheckoutView.as_view(), name='credits-checkout'),
    path('admin/payments', AdminPaymentListView.as_view(), name='admin-payments'),
    path('admin/payments/export', AdminPaymentExportView.as_view(), name='admin-payments-export'),
    path('admin/payments/<int:payment_id>/dimensions', AdminPaymentDimensionsView.as_view(),
         name='admin-payment-dimensions'),
]

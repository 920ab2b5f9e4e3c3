from django.urls import path

from . import views

app_name = "billing_core"

urlpatterns = [
    path("invoices/", views.invoice_list_view, name="invoice-list"),
    path("invoices/next-number/", views.invoice_next_number_view,
         name="invoice-next-number"),
    path("invoices/<int:invoice_id>/", views.invoice_detail_view,
         name="invoice-detail"),
    path("invoices/<int:invoice_id>/send/", views.send_invoice_view,
         name="invoice-send"),
    path("invoices/<int:invoice_id>/payments/", views.record_payment_view,
         name="invoice-payment"),
    path("trust/accounts/", views.trust_account_list_view,
         name="trust-account-list"),
    path("trust/accounts/<int:account_id>/", views.trust_account_detail_view,
         name="trust-account-detail"),
    path("trust/accounts/<int:account_id>/deposits/",
         views.trust_deposit_view, name="trust-deposit"),
    path("trust/accounts/<int:account_id>/refunds/",
         views.trust_refund_view, name="trust-refund"),
    path("trust/accounts/<int:account_id>/transfers/",
         views.trust_transfer_view, name="trust-transfer"),
    path("trust/accounts/<int:account_id>/transactions/",
         views.trust_transactions_view, name="trust-transactions"),
    path("trust/accounts/<int:account_id>/reconciliation/",
         views.reconciliation_view, name="trust-reconciliation"),
    path("trust/clients/<int:client_id>/balance/",
         views.client_trust_balance_view, name="client-trust-balance"),
]

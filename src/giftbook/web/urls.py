"""
URL configuration for the JSON API.
"""

from django.urls import path

from . import views

urlpatterns = [
    path("health/", views.health, name="health"),
    path("api/scrape-transactions/", views.scrape_transactions, name="scrape_transactions"),
    path(
        "api/scrape-accounts/connect/",
        views.scrape_account_connect,
        name="scrape_account_connect",
    ),
    path(
        "api/events/<str:event_id>/ledger/summary/",
        views.ledger_summary,
        name="ledger_summary",
    ),
]

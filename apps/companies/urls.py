"""
Company API URLs.
"""
from django.urls import path
from apps.companies.views import CompanyFreezeView

app_name = 'companies'

urlpatterns = [
    path('<uuid:company_id>/freeze', CompanyFreezeView.as_view(), name='company-freeze'),
]

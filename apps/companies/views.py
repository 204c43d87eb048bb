"""
Company REST API views.
"""
from rest_framework.views import APIView

from apps.companies.serializers import CompanySerializer, FreezeSerializer
from apps.companies.services import CompanyService
from apps.core.permissions import IsOwner
from apps.core.responses import success_response


class CompanyFreezeView(APIView):
    """
    POST   /api/v1/companies/<id>/freeze   freeze the company (Owner only)
    DELETE /api/v1/companies/<id>/freeze   unfreeze it
    """

    permission_classes = [IsOwner]

    def post(self, request, company_id):
        serializer = FreezeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        company = CompanyService.freeze_company(
            request.principal, company_id, reason=serializer.validated_data['reason']
        )
        return success_response(CompanySerializer(company).data, 'Company frozen successfully')

    def delete(self, request, company_id):
        company = CompanyService.unfreeze_company(request.principal, company_id)
        return success_response(CompanySerializer(company).data, 'Company unfrozen successfully')

"""
Staff-only review views over stored crypto payments.

No pagination or server-side filtering beyond a substring search; this is a
low-volume internal tool.
"""
import io

from django.http import HttpResponse, QueryDict
from django.utils import timezone
from loguru import logger
from rest_framework import status
from rest_framework.authentication import SessionAuthentication
from rest_framework.permissions import IsAdminUser
from rest_framework.response import Response
from rest_framework.views import APIView

from checkout import store
from checkout.errors import CheckoutValidationError, PaymentNotFound, PersistenceError
from checkout.export import search_payments, write_csv
from checkout.models import CryptoPayment
from checkout.serializers import CryptoPaymentAdminSerializer


def _filtered(request):
    queryset = CryptoPayment.objects.order_by('-created_at')
    return search_payments(queryset, request.query_params.get('search', ''))


class AdminPaymentListView(APIView):
    authentication_classes = [SessionAuthentication]
    permission_classes = [IsAdminUser]

    def get(self, request, *args, **kwargs):
        payments = _filtered(request)
        return Response(
            CryptoPaymentAdminSerializer(payments, many=True).data,
            status=status.HTTP_200_OK,
        )


class AdminPaymentDimensionsView(APIView):
    """Partially update package dimensions; omitted fields stay untouched."""
    authentication_classes = [SessionAuthentication]
    permission_classes = [IsAdminUser]

    def patch(self, request, payment_id, *args, **kwargs):
        data = request.data
        if isinstance(data, QueryDict):
            data = data.dict()
        elif not isinstance(data, dict):
            return Response({'error': 'Expected a JSON object.'}, status=status.HTTP_400_BAD_REQUEST)
        try:
            payment = store.update_dimensions(payment_id, data)
        except CheckoutValidationError as exc:
            return Response({'error': exc.message}, status=status.HTTP_400_BAD_REQUEST)
        except PaymentNotFound:
            return Response({'error': 'Payment not found'}, status=status.HTTP_404_NOT_FOUND)
        except PersistenceError as exc:
            return Response({'error': str(exc)}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
        return Response(CryptoPaymentAdminSerializer(payment).data, status=status.HTTP_200_OK)


class AdminPaymentExportView(APIView):
    authentication_classes = [SessionAuthentication]
    permission_classes = [IsAdminUser]

    def get(self, request, *args, **kwargs):
        buffer = io.StringIO()
        count = write_csv(_filtered(request), buffer)
        filename = f'crypto-payments-{timezone.now().date().isoformat()}.csv'
        logger.info('exported {} crypto payments for {}', count, request.user)
        response = HttpResponse(buffer.getvalue(), content_type='text/csv')
        response['Content-Disposition'] = f'attachment; filename="{filename}"'
        return response

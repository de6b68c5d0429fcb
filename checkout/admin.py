import io

from django.contrib import admin
from django.http import HttpResponse
from django.utils import timezone

from checkout.export import SEARCH_FIELDS, write_csv
from checkout.models import CryptoPayment


@admin.register(CryptoPayment)
class CryptoPaymentAdmin(admin.ModelAdmin):
    list_display = (
        "order_id", "company", "city", "country", "status", "amount_cents",
        "tax_rate_percentage", "pounds", "length", "width", "height", "created_at",
    )
    list_editable = CryptoPayment.DIMENSION_FIELDS
    list_filter = ("status", "country")
    search_fields = SEARCH_FIELDS
    ordering = ("-created_at",)
    actions = ("export_csv",)

    def has_delete_permission(self, request, obj=None):
        return False

    def has_add_permission(self, request):
        return False

    def get_readonly_fields(self, request, obj=None):
        return [
            field.name for field in self.model._meta.fields
            if field.name not in CryptoPayment.DIMENSION_FIELDS
        ]

    @admin.action(description="Export selected to CSV")
    def export_csv(self, request, queryset):
        buffer = io.StringIO()
        write_csv(queryset.order_by("-created_at"), buffer)
        response = HttpResponse(buffer.getvalue(), content_type="text/csv")
        filename = f"crypto-payments-{timezone.now().date().isoformat()}.csv"
        response["Content-Disposition"] = f'attachment; filename="{filename}"'
        return response

import django_filters as filters

from custody.models import EscrowTransaction, WithdrawalRequest
from custody.services import EscrowService, WithdrawalService


class EscrowTransactionFilter(filters.FilterSet):
    search = filters.CharFilter(method="filter_search")

    class Meta:
        model = EscrowTransaction
        fields = ["status", "currency", "auto_released", "search"]

    def filter_search(self, queryset, name, value):
        return EscrowService.apply_search(queryset, value)


class WithdrawalRequestFilter(filters.FilterSet):
    provider = filters.CharFilter(field_name="mobile_money_provider")
    max_amount = filters.NumberFilter(field_name="amount", lookup_expr="lte")
    search = filters.CharFilter(method="filter_search")

    class Meta:
        model = WithdrawalRequest
        fields = ["status", "provider", "user_type", "max_amount", "search"]

    def filter_search(self, queryset, name, value):
        return WithdrawalService.apply_search(queryset, value)

"""
View-side gate that supplies the dealer to dealer-scoped querysets.
"""
from rest_framework.permissions import IsAuthenticated

from .permissions import HasDealerSession


class DealerSessionMixin:
    """
    Mixin для DRF views - единственная точка, откуда view получает дилера.

    HasDealerSession кладёт membership в request; без него запрос
    отклоняется с 401 ещё до вызова handler'а.

    Использование:
        class MyViewSet(DealerSessionMixin, viewsets.ModelViewSet):
            queryset = MyModel.objects.all()
            required_permission = Permission.GROUPS_VIEW
    """

    permission_classes = [IsAuthenticated, HasDealerSession]

    def get_dealer(self):
        return self.request.dealer_membership.dealer

    def get_queryset(self):
        return super().get_queryset().for_dealer(self.get_dealer())

    def perform_create(self, serializer):
        serializer.save(dealer=self.get_dealer())

    def get_serializer_context(self):
        context = super().get_serializer_context()
        membership = getattr(self.request, 'dealer_membership', None)
        if membership is not None:
            context['dealer'] = membership.dealer
        return context

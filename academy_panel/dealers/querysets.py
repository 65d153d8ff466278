from django.db import models


class DealerContextRequired(Exception):
    """Raised when a dealer-scoped query is built without a dealer."""
    pass


class DealerScopedQuerySet(models.QuerySet):
    """
    QuerySet для моделей, принадлежащих дилеру.

    for_dealer(None) - ошибка, а не "все записи": отсутствие контекста
    дилера никогда не расширяет выборку.
    """

    dealer_field = 'dealer'

    def for_dealer(self, dealer):
        if dealer is None:
            raise DealerContextRequired(
                f'{self.model.__name__} query requires a dealer context'
            )
        return self.filter(**{self.dealer_field: dealer})

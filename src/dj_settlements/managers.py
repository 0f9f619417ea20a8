from django.contrib.contenttypes.models import ContentType
from django.db import models

from . import state_machine


def _shop_lookup(shop):
    return {
        "shop_type": ContentType.objects.get_for_model(shop),
        "shop_id": shop.pk,
    }


class SellerBalanceManager(models.Manager):
    def get_for_shop(self, shop, seller_id, for_update=False):
        """Returns the balance row or None, without creating it."""
        qs = self.filter(seller_id=seller_id, **_shop_lookup(shop))
        if for_update:
            qs = qs.select_for_update()
        return qs.first()

    def get_or_create_for_shop(self, shop, seller_id):
        """
        Lazily creates the balance row. Safe under concurrency: a losing
        creator falls back to reading the winner's row.
        """
        balance, _ = self.get_or_create(seller_id=seller_id, **_shop_lookup(shop))
        return balance

    def lock_for_shop(self, shop, seller_id):
        """
        Returns the balance row locked for update. Must run inside an atomic block.
        """
        balance = self.get_or_create_for_shop(shop, seller_id)
        return self.select_for_update().get(pk=balance.pk)


class SettlementQuerySet(models.QuerySet):
    def for_shop(self, shop):
        return self.filter(**_shop_lookup(shop))

    def for_seller(self, seller_id):
        return self.filter(seller_id=seller_id)

    def with_status(self, *statuses):
        return self.filter(status__in=statuses)

    def pending(self):
        return self.with_status(state_machine.PENDING).order_by("requested_at", "id")

    def reserved(self):
        return self.with_status(*state_machine.RESERVED)

    def requested_between(self, start=None, end=None):
        qs = self
        if start is not None:
            qs = qs.filter(requested_at__gte=start)
        if end is not None:
            qs = qs.filter(requested_at__lte=end)
        return qs

    def completed_between(self, start=None, end=None):
        qs = self.with_status(state_machine.COMPLETED)
        if start is not None:
            qs = qs.filter(completed_at__gte=start)
        if end is not None:
            qs = qs.filter(completed_at__lte=end)
        return qs


SettlementManager = models.Manager.from_queryset(SettlementQuerySet)


class OrderSettlementQuerySet(models.QuerySet):
    def for_shop(self, shop):
        return self.filter(**_shop_lookup(shop))

    def for_order(self, order):
        return self.filter(
            order_type=ContentType.objects.get_for_model(order), order_id=order.pk
        )

    def unmatured(self):
        return self.filter(matured_at__isnull=True)

    def due_for_maturation(self, now):
        return self.unmatured().filter(eligible_at__lte=now).order_by("eligible_at", "id")

    def unattributed(self):
        """Matured entries not yet linked to a payout."""
        return self.filter(matured_at__isnull=False, settlement__isnull=True).order_by(
            "order_delivered_at", "id"
        )

    def settled_order_ids(self, order_model):
        return self.filter(
            order_type=ContentType.objects.get_for_model(order_model)
        ).values("order_id")


OrderSettlementManager = models.Manager.from_queryset(OrderSettlementQuerySet)

from __future__ import annotations

from decimal import Decimal

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from dj_settlements.exceptions import SettlementException
from dj_settlements.services import AccrualService, EligibilityService
from dj_settlements.utils import get_commission_percent, get_shop_model, split_commission


class Command(BaseCommand):
    help = "Accrue delivered orders into seller balances and mature entries past their hold period."

    def add_arguments(self, parser):
        parser.add_argument("--shop-id", action="append", dest="shop_ids", help="Limit to shop (repeatable)")
        parser.add_argument("--hold-days", type=int, help="Override the configured hold period")
        parser.add_argument(
            "--include-held",
            action="store_true",
            help="Also accrue delivered orders still inside the hold period (into pending balance)",
        )
        parser.add_argument("--skip-maturation", action="store_true")
        parser.add_argument("--dry-run", action="store_true")

    def handle(self, *args, **options):
        hold_days = options.get("hold_days")
        if hold_days is not None and hold_days < 0:
            raise CommandError("--hold-days cannot be negative.")

        Shop = get_shop_model()
        shops = Shop.objects.order_by("pk")
        if options.get("shop_ids"):
            shops = shops.filter(pk__in=options["shop_ids"])
            if not shops.exists():
                raise CommandError("No matching shops found.")

        now = timezone.now()
        created_count = 0
        skipped_count = 0
        total_amount = Decimal("0.00")

        for shop in list(shops):
            if options["dry_run"]:
                scan_hold = 0 if options["include_held"] else hold_days
                orders = EligibilityService.get_eligible_orders(shop, scan_hold, now)
                if not orders:
                    continue
                percent = get_commission_percent(shop)
                amount = sum(
                    (split_commission(order.total_amount, percent)[2] for order in orders),
                    Decimal("0.00"),
                )
                self.stdout.write(
                    f"DRY-RUN accrual shop_id={shop.pk} orders={len(orders)} amount={amount}"
                )
                continue

            try:
                result = AccrualService.accrue_shop(
                    shop,
                    hold_period_days=hold_days,
                    include_held=options["include_held"],
                    now=now,
                )
            except SettlementException as exc:
                self.stderr.write(f"FAILED accrual shop_id={shop.pk} code={exc.code} {exc.message}")
                continue

            created_count += len(result.created)
            skipped_count += result.skipped
            total_amount += result.total_amount
            if result.created:
                self.stdout.write(
                    f"ACCRUED shop_id={shop.pk} orders={len(result.created)} amount={result.total_amount}"
                )

        matured = None
        if not options["dry_run"] and not options["skip_maturation"]:
            matured = AccrualService.mature_due(now)

        self.stdout.write(
            "Settlement accrual completed: "
            f"created={created_count}, skipped={skipped_count}, amount={total_amount}, "
            f"matured={matured.matured if matured else 0}, "
            f"matured_amount={matured.amount if matured else Decimal('0.00')}, "
            f"dry_run={options['dry_run']}"
        )

import uuid
from decimal import Decimal

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("contenttypes", "0002_remove_content_type_name"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Settlement",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("uuid", models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ("shop_id", models.PositiveBigIntegerField()),
                ("amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("platform_fee", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("net_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("approved", "Approved"),
                            ("processing", "Processing"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                            ("cancelled", "Cancelled"),
                        ],
                        default="pending",
                        max_length=20,
                    ),
                ),
                (
                    "method",
                    models.CharField(
                        choices=[
                            ("bank_transfer", "Bank transfer"),
                            ("payos", "PayOS"),
                            ("wallet", "Wallet"),
                        ],
                        max_length=20,
                    ),
                ),
                ("bank_account", models.CharField(blank=True, max_length=50, null=True)),
                ("bank_name", models.CharField(blank=True, max_length=100, null=True)),
                ("account_holder_name", models.CharField(blank=True, max_length=100, null=True)),
                ("transaction_reference", models.CharField(blank=True, max_length=100, null=True)),
                ("notes", models.TextField(blank=True, default="")),
                ("failure_reason", models.TextField(blank=True, default="")),
                ("requested_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("approved_at", models.DateTimeField(blank=True, null=True)),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("failed_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "processed_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="settlement_processed",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "seller",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="settlement_requests",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "shop_type",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="settlement_settlements",
                        to="contenttypes.contenttype",
                    ),
                ),
            ],
            options={
                "verbose_name": "Settlement",
                "verbose_name_plural": "Settlements",
                "indexes": [
                    models.Index(fields=["status", "requested_at"], name="settlement_status_req_idx"),
                    models.Index(fields=["shop_type", "shop_id"], name="settlement_shop_idx"),
                    models.Index(fields=["status", "completed_at"], name="settlement_status_done_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount__gt", 0)), name="settlement_amount_positive"
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("platform_fee__lte", models.F("amount"))),
                        name="settlement_fee_within_amount",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="SellerBalance",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("shop_id", models.PositiveBigIntegerField()),
                ("available_balance", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("pending_balance", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("total_earned", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("total_withdrawn", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("total_payout_fees", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                (
                    "total_pending_withdrawal",
                    models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "seller",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="sellerbalance_set",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "shop_type",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="sellerbalance_balances",
                        to="contenttypes.contenttype",
                    ),
                ),
            ],
            options={
                "verbose_name": "Seller balance",
                "verbose_name_plural": "Seller balances",
                "unique_together": {("seller", "shop_type", "shop_id")},
                "indexes": [
                    models.Index(fields=["shop_type", "shop_id"], name="balance_shop_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("available_balance__gte", 0)),
                        name="balance_available_non_negative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("pending_balance__gte", 0)),
                        name="balance_pending_non_negative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("total_pending_withdrawal__gte", 0)),
                        name="balance_reserved_non_negative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="OrderSettlement",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("uuid", models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ("order_id", models.PositiveBigIntegerField()),
                ("shop_id", models.PositiveBigIntegerField()),
                ("order_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("commission_percent", models.DecimalField(decimal_places=2, max_digits=5)),
                ("commission", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("settlement_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("order_delivered_at", models.DateTimeField()),
                ("eligible_at", models.DateTimeField()),
                ("matured_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "order_type",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="ordersettlement_orders",
                        to="contenttypes.contenttype",
                    ),
                ),
                (
                    "seller",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="ordersettlement_entries",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "shop_type",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="ordersettlement_shop_entries",
                        to="contenttypes.contenttype",
                    ),
                ),
                (
                    "settlement",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="order_settlements",
                        to="dj_settlements.settlement",
                    ),
                ),
            ],
            options={
                "verbose_name": "Order settlement",
                "verbose_name_plural": "Order settlements",
                "unique_together": {("order_type", "order_id")},
                "indexes": [
                    models.Index(
                        fields=["shop_type", "shop_id", "matured_at"], name="entry_shop_matured_idx"
                    ),
                    models.Index(fields=["eligible_at"], name="entry_eligible_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("commission__lte", models.F("order_amount"))),
                        name="entry_commission_within_order",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("settlement_amount__gte", 0)),
                        name="entry_amount_non_negative",
                    ),
                ],
            },
        ),
    ]

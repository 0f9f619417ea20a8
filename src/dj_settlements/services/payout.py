"""
Payout state machine transitions.

Each transition locks the shop balance first and the settlement second (the
same order every mutator uses), validates the current state, then writes the
new state and its balance effect in one transaction.
"""
import logging

from django.utils import timezone

from .. import state_machine
from ..exceptions import Unauthorized, ValidationError
from ..models import OrderSettlement, Settlement
from ..signals import settlement_status_changed
from ..transactions import run_in_transaction
from ..utils import is_settlement_admin
from .common import apply_balance_change, get_settlement, lock_balance_for

logger = logging.getLogger(__name__)

REFERENCE_MAX_LENGTH = 100


def _require_admin(user, action):
    if not is_settlement_admin(user):
        raise Unauthorized(f"Only admins can {action} settlements.")


def _require_admin_or_system(user, action):
    # ``None`` is the system actor (scheduled jobs, gateway webhooks)
    if user is not None:
        _require_admin(user, action)


def _clean_reference(reference, required=True):
    reference = (reference or "").strip()
    if required and not reference:
        raise ValidationError("Transaction reference is required.")
    if len(reference) > REFERENCE_MAX_LENGTH:
        raise ValidationError(
            f"Transaction reference cannot exceed {REFERENCE_MAX_LENGTH} characters."
        )
    return reference or None


class PayoutService:
    @classmethod
    def _transition(cls, settlement_id, target, apply):
        """
        Run ``apply(settlement, balance, now)`` for a legal transition to ``target``.
        Illegal transitions raise before anything is written.
        """

        def _run():
            # Lock order: balance row, then settlement row
            unlocked = get_settlement(settlement_id)
            balance = lock_balance_for(unlocked)
            settlement = get_settlement(unlocked.pk, for_update=True)

            previous = settlement.status
            state_machine.assert_transition(previous, target)

            now = timezone.now()
            apply(settlement, balance, now)
            settlement.status = target
            settlement.save()

            settlement_status_changed.send(
                sender=cls, settlement=settlement, previous_status=previous
            )
            logger.info(
                "Settlement transition: settlement=%s %s -> %s amount=%s",
                settlement.uuid,
                previous,
                target,
                settlement.amount,
            )
            return settlement

        return run_in_transaction(_run)

    @staticmethod
    def _release(settlement, balance, reason):
        """Return a reserved amount to the available balance."""
        apply_balance_change(
            balance,
            reason,
            sender=PayoutService,
            total_pending_withdrawal=-settlement.amount,
            available_balance=settlement.amount,
        )
        # Funds are free again, so are the ledger entries backing them
        OrderSettlement.objects.filter(settlement=settlement).update(settlement=None)

    @classmethod
    def approve(cls, settlement_id, admin):
        """Pending -> Approved. The amount is already reserved, no balance effect."""
        _require_admin(admin, "approve")

        def apply(settlement, balance, now):
            settlement.approved_at = now
            settlement.processed_by = admin

        return cls._transition(settlement_id, Settlement.STATUS_APPROVED, apply)

    @classmethod
    def process(cls, settlement_id, transaction_reference, admin=None, notes=None):
        """Approved -> Processing, once the payout call has been initiated."""
        _require_admin_or_system(admin, "process")
        reference = _clean_reference(transaction_reference)

        def apply(settlement, balance, now):
            settlement.transaction_reference = reference
            settlement.processed_at = now
            if admin is not None:
                settlement.processed_by = admin
            if notes:
                settlement.notes = notes

        return cls._transition(settlement_id, Settlement.STATUS_PROCESSING, apply)

    @classmethod
    def complete(cls, settlement_id, transaction_reference=None, admin=None):
        """
        Processing -> Completed on payout confirmation.
        The reservation is consumed: net amount is withdrawn, the fee is retained.
        """
        _require_admin_or_system(admin, "complete")
        reference = _clean_reference(transaction_reference, required=False)

        def apply(settlement, balance, now):
            final_reference = reference or settlement.transaction_reference
            if not final_reference:
                raise ValidationError("Transaction reference is required to complete.")
            apply_balance_change(
                balance,
                "withdrawal_completed",
                sender=cls,
                total_pending_withdrawal=-settlement.amount,
                total_withdrawn=settlement.net_amount,
                total_payout_fees=settlement.platform_fee,
            )
            settlement.transaction_reference = final_reference
            settlement.completed_at = now
            if admin is not None:
                settlement.processed_by = admin

        return cls._transition(settlement_id, Settlement.STATUS_COMPLETED, apply)

    @classmethod
    def fail(cls, settlement_id, reason, admin=None):
        """Any non-terminal state -> Failed; the reserved amount becomes available again."""
        _require_admin_or_system(admin, "fail")
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("A failure reason is required.")

        def apply(settlement, balance, now):
            cls._release(settlement, balance, "withdrawal_failed")
            settlement.failure_reason = reason
            settlement.failed_at = now
            if admin is not None:
                settlement.processed_by = admin

        return cls._transition(settlement_id, Settlement.STATUS_FAILED, apply)

    @classmethod
    def cancel(cls, settlement_id, user, reason=""):
        """Pending/Approved -> Cancelled by the requesting seller or an admin."""
        settlement = get_settlement(settlement_id)
        is_admin = is_settlement_admin(user)
        if not is_admin and (user is None or settlement.seller_id != user.pk):
            raise Unauthorized("Only the requesting seller or an admin can cancel.")

        def apply(settlement, balance, now):
            cls._release(settlement, balance, "withdrawal_cancelled")
            settlement.failure_reason = (reason or "").strip()
            settlement.cancelled_at = now
            if is_admin:
                settlement.processed_by = user

        return cls._transition(settlement.pk, Settlement.STATUS_CANCELLED, apply)

    @classmethod
    def reject(cls, settlement_id, admin, reason):
        """Admin refusal of a Pending/Approved request, recorded as Cancelled with a reason."""
        _require_admin(admin, "reject")
        if not (reason or "").strip():
            raise ValidationError("A rejection reason is required.")
        return cls.cancel(settlement_id, admin, reason=reason)

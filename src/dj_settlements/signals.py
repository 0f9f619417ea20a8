from django.dispatch import Signal

# Sent when a ledger entry is created for a delivered order.
# Arguments: order_settlement
order_settlement_created = Signal()

# Sent after a SellerBalance row is mutated.
# Arguments: balance, reason
balance_changed = Signal()

# Sent when a seller requests a withdrawal.
# Arguments: settlement
settlement_requested = Signal()

# Sent after each payout state transition.
# Arguments: settlement, previous_status
settlement_status_changed = Signal()

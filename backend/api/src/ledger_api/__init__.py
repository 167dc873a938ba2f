"""REST API for the payment ledger."""

"""
Order back office for the storefront: cancellation, refunds and
administrative deletion.
"""

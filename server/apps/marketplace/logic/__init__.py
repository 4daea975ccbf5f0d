"""Business logic layer for marketplace app.

This package contains all business logic for selling content:
- Listings and shared links with their access rules
- Affiliate registration and commission payouts
- Purchase settlement and the transaction ledger
"""

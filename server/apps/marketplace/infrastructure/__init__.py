"""Infrastructure layer for marketplace app.

Random identifiers (affiliate codes, link ids, receipt numbers)
and parsing of payment gateway confirmations.
"""

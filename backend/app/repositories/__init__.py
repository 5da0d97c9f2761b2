"""
Data access for rooms, bookings and the read-only ticket/enrollment lookup.
Functions take the request's AsyncSession and never commit; the caller
owns the transaction.
"""

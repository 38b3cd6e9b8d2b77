"""Stay ledger: hotel room availability, bookings and payment ledger reconciliation."""

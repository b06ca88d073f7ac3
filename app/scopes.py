from enum import StrEnum


class BookingScope(StrEnum):
    # Customer scopes
    READ = "bookings:read"  # view own bookings
    WRITE = "bookings:write"  # create a booking
    CANCEL = "bookings:cancel"  # cancel own booking

    # Platform manager scopes
    MANAGE = "bookings:manage"  # assign vendors, move any booking

    # Vendor scopes
    VENDOR = "bookings:vendor"  # accept/reject, assign beauticians on own bookings

    # Finance
    INVOICE = "invoices:write"  # generate invoices

    # Admin scopes
    ADMIN = "admin:bookings"
    ADMIN_READ = "admin:bookings:read"
    ADMIN_WRITE = "admin:bookings:write"
    ADMIN_FINANCE = "admin:finance"


BOOKING_SCOPE_DESCRIPTIONS: dict[str, str] = {
    BookingScope.READ: "View your own bookings.",
    BookingScope.WRITE: "Create a new beauty service booking.",
    BookingScope.CANCEL: "Cancel your own booking while it is still active.",
    BookingScope.MANAGE: "Assign vendors and move any booking through its lifecycle.",
    BookingScope.VENDOR: "Accept, reject and staff bookings assigned to your shop.",
    BookingScope.INVOICE: "Generate invoices for payable bookings.",
    BookingScope.ADMIN_READ: "Read any booking regardless of owner (admin).",
    BookingScope.ADMIN_WRITE: "Modify any booking status (admin).",
    BookingScope.ADMIN_FINANCE: "View invoice statistics and payouts (admin).",
}

"""
Service Layer Architecture

Business logic for the dispatch back office, kept out of the route handlers.
Write operations return ``(success, error, data)`` tuples and run inside
``TransactionHelper.with_transaction``; ``error`` is a ``ServiceError``.

Services Architecture:
- **AvailabilityChecker** (availability_service): read-only slot eligibility
- **AssignmentService**: shift roster, single/batch/range creation
- **BookingService**: booking lifecycle and its event trail
- **OtpService**: phone verification gate for public bookings
- **DriverService / AmbulanceService**: fleet roster management
- **MonitoringService**: live positions and fleet utilisation
- **ExpenseService**: expense ledger and approval workflow

Import services from their modules; utils.scheduling depends on
services.errors, so this package stays free of eager imports.
"""

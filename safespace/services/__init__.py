"""SafeSpace campus safety services.

Service layout, leaves first:
- school_registry: school catalog and credentials
- membership: code verification and sessions
- history_ledger: append-only alert audit trail
- alert_coordinator: per-school alert state machine
- notification_hub: live status fan-out
- chat_relay: ordered message relay
- campus_api: HTTP adapter over all of the above
"""

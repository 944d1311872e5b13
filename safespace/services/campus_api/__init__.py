"""Campus API: HTTP interface to the campus safety core.

Endpoints:
- POST /schools - Register school
- GET /schools?q= - Search schools
- GET /schools/<id> - Get school
- POST /schools/<id>/buildings - Add building (admin)
- POST /schools/<id>/join - Student login with join code
- POST /schools/<id>/admin - Admin login with admin code
- POST /sessions/logout - Revoke the current session
- POST /alerts/trigger - Raise alert (student)
- POST /alerts/cancel - Cancel own alert (student)
- GET /alerts/mine - Own active alert (student)
- POST /schools/<id>/alerts/<principal_ref>/resolve - Clear an alert (admin)
- GET /schools/<id>/alerts/live - Live status (admin)
- GET /schools/<id>/alerts/history?since= - Ledger history (admin)
- GET /schools/<id>/alerts/verify - Verify ledger chain (admin)
- GET /schools/<id>/alerts/stream - Live status stream, SSE (admin)
- POST|GET /schools/<id>/messages - Chat relay
"""

from .config import CampusConfig

__all__ = ["CampusConfig"]

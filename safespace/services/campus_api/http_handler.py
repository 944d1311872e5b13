"""Campus API HTTP handler - school, membership and alert endpoints.

Thin Flask adapter over the core services. Sessions travel as bearer
tokens in the Authorization header; the live status stream is served as
Server-Sent Events.
"""
import json
import logging
from typing import Optional

from flask import Flask, Response, jsonify, request, stream_with_context

from safespace.shared.database import get_connection_manager
from safespace.shared.errors import (
    AuthError,
    InvalidStateError,
    NotFoundError,
    SafeSpaceError,
    StorageError,
    ValidationError,
)
from safespace.shared.models import Role, Session
from safespace.shared.utils import configure_pii_salt
from safespace.services.alert_coordinator import AlertCoordinator
from safespace.services.chat_relay import ChatRelay
from safespace.services.history_ledger import HistoryLedger, LedgerRepository
from safespace.services.membership import MembershipAuthenticator, SessionStore
from safespace.services.notification_hub import NotificationHub
from safespace.services.school_registry import SchoolRegistry, SchoolRepository
from .config import CampusConfig

logger = logging.getLogger(__name__)

# Initialize Flask app
app = Flask(__name__)

config = CampusConfig.from_env()
configure_pii_salt(config.pii_salt)

# Durable storage is optional; in-memory otherwise
connection_manager = None
school_repository = None
ledger_repository = None
if config.use_database:
    connection_manager = get_connection_manager()
    school_repository = SchoolRepository(connection_manager)
    school_repository.create_table()
    ledger_repository = LedgerRepository(connection_manager)
    ledger_repository.create_table()

registry = SchoolRegistry(repository=school_repository)
session_store = SessionStore(ttl_seconds=config.session_ttl_seconds)
authenticator = MembershipAuthenticator(registry, session_store=session_store)
ledger = HistoryLedger(repository=ledger_repository)
hub = NotificationHub(queue_size=config.subscriber_queue_size)
coordinator = AlertCoordinator(registry, ledger, hub=hub)
chat_relay = ChatRelay(max_message_length=config.max_message_length)

recovered_alerts = coordinator.recover()


class MissingCredentialsError(AuthError):
    """No bearer token on a request that needs one."""
    pass


# Order matters: subclasses before their bases
_STATUS_CODES = (
    (MissingCredentialsError, 401),
    (ValidationError, 400),
    (AuthError, 403),
    (NotFoundError, 404),
    (InvalidStateError, 409),
    (StorageError, 503),
)


def _error_response(error: SafeSpaceError):
    status = next(
        (code for cls, code in _STATUS_CODES if isinstance(error, cls)), 500
    )
    return jsonify({"error": str(error), "type": type(error).__name__}), status


def _bearer_token() -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def _require_session(
    school_id: Optional[str] = None,
    role: Optional[Role] = None,
) -> Session:
    token = _bearer_token()
    if token is None:
        raise MissingCredentialsError("Bearer session token required")

    session = session_store.resolve(token)
    if school_id is not None and session.school_id != school_id:
        raise AuthError("Session is not valid for this school")
    if role is not None and session.role != role:
        raise AuthError(f"Requires a {role.value} session")
    return session


def _int_arg(name: str, default: int = 0) -> int:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")


def _parse_buildings(raw) -> Optional[list]:
    """Accept a list or the comma-separated form ("Main, Gym, Library")."""
    if raw is None:
        return None
    if isinstance(raw, str):
        return [b.strip() for b in raw.split(",") if b.strip()]
    if isinstance(raw, list):
        return raw
    raise ValidationError("buildings must be a list or comma-separated string")


@app.route("/health", methods=["GET"])
def health():
    """Health check endpoint."""
    body = {
        "status": "healthy",
        "service": "campus-api",
        "schools": len(registry),
    }
    if connection_manager is not None:
        body["database"] = connection_manager.health_check()
    return jsonify(body), 200


@app.route("/ready", methods=["GET"])
def ready():
    """Readiness check: the database, when configured, must answer."""
    if connection_manager is not None and not connection_manager.health_check()["healthy"]:
        return jsonify({"status": "not_ready", "reason": "database_unavailable"}), 503
    return jsonify({"status": "ready", "recovered_alerts": recovered_alerts}), 200


@app.route("/schools", methods=["POST"])
def register_school():
    """Register a school.

    Request Body:
        {
            "name": "Chavez MS",
            "district": "Unified",
            "join_secret": "CHAVEZ2026",
            "admin_secret": "ADMIN99",
            "buildings": ["Main", "Gym"]
        }
    """
    try:
        data = request.get_json(silent=True)
        if not data:
            return jsonify({"error": "Request body required"}), 400

        school = registry.register(
            name=data.get("name", ""),
            join_secret=data.get("join_secret", ""),
            admin_secret=data.get("admin_secret", ""),
            district=data.get("district"),
            buildings=_parse_buildings(data.get("buildings")),
        )
        return jsonify(school.to_public_dict()), 201

    except SafeSpaceError as e:
        return _error_response(e)
    except Exception as e:
        logger.error("SCHOOL_REGISTER_ERROR", extra={"error": str(e)})
        return jsonify({"error": "Failed to register school"}), 500


@app.route("/schools", methods=["GET"])
def search_schools():
    """Search schools by name.

    Query Params:
        q: Case-insensitive name fragment (empty lists all)
    """
    try:
        schools = registry.search(request.args.get("q", ""))
        return jsonify({
            "count": len(schools),
            "schools": [s.to_public_dict() for s in schools],
        }), 200

    except Exception as e:
        logger.error("SCHOOL_SEARCH_ERROR", extra={"error": str(e)})
        return jsonify({"error": "Failed to search schools"}), 500


@app.route("/schools/<school_id>", methods=["GET"])
def get_school(school_id: str):
    try:
        return jsonify(registry.get(school_id).to_public_dict()), 200

    except SafeSpaceError as e:
        return _error_response(e)
    except Exception as e:
        logger.error("SCHOOL_GET_ERROR", extra={"error": str(e)})
        return jsonify({"error": "Failed to load school"}), 500


@app.route("/schools/<school_id>/buildings", methods=["POST"])
def add_building(school_id: str):
    """Add a building (admin only).

    Request Body:
        {"name": "Library"}
    """
    try:
        _require_session(school_id, Role.ADMIN)
        data = request.get_json(silent=True)
        if not data:
            return jsonify({"error": "Request body required"}), 400

        school = registry.add_building(school_id, data.get("name", ""))
        return jsonify(school.to_public_dict()), 200

    except SafeSpaceError as e:
        return _error_response(e)
    except Exception as e:
        logger.error("SCHOOL_BUILDING_ERROR", extra={"error": str(e)})
        return jsonify({"error": "Failed to add building"}), 500


def _authenticate(school_id: str, role: Role):
    data = request.get_json(silent=True)
    if not data:
        return jsonify({"error": "Request body required"}), 400

    code = data.get("code")
    if role == Role.ADMIN:
        session = authenticator.verify_admin(school_id, code)
    else:
        session = authenticator.verify_join(school_id, code)
    return jsonify(session.to_dict()), 201


@app.route("/schools/<school_id>/join", methods=["POST"])
def join_school(school_id: str):
    """Authenticate with the student join code.

    Request Body:
        {"code": "CHAVEZ2026"}
    """
    try:
        return _authenticate(school_id, Role.STUDENT)

    except SafeSpaceError as e:
        return _error_response(e)
    except Exception as e:
        logger.error("MEMBERSHIP_JOIN_ERROR", extra={"error": str(e)})
        return jsonify({"error": "Failed to join school"}), 500


@app.route("/schools/<school_id>/admin", methods=["POST"])
def admin_login(school_id: str):
    """Authenticate with the admin code.

    Request Body:
        {"code": "ADMIN99"}
    """
    try:
        return _authenticate(school_id, Role.ADMIN)

    except SafeSpaceError as e:
        return _error_response(e)
    except Exception as e:
        logger.error("MEMBERSHIP_ADMIN_ERROR", extra={"error": str(e)})
        return jsonify({"error": "Failed to log in"}), 500


@app.route("/sessions/logout", methods=["POST"])
def logout():
    try:
        _require_session()
        session_store.revoke(_bearer_token())
        return jsonify({"status": "logged_out"}), 200

    except SafeSpaceError as e:
        return _error_response(e)
    except Exception as e:
        logger.error("SESSION_LOGOUT_ERROR", extra={"error": str(e)})
        return jsonify({"error": "Failed to log out"}), 500


@app.route("/alerts/trigger", methods=["POST"])
def trigger_alert():
    """Raise an alert for the calling student.

    Request Body:
        {"building": "Gym", "room": "Locker room"}
    """
    try:
        session = _require_session(role=Role.STUDENT)
        data = request.get_json(silent=True)
        if not data:
            return jsonify({"error": "Request body required"}), 400

        state = coordinator.trigger(
            session,
            building=data.get("building", ""),
            room=data.get("room"),
        )
        return jsonify(state.to_dict()), 201

    except SafeSpaceError as e:
        return _error_response(e)
    except Exception as e:
        logger.error("ALERT_TRIGGER_ERROR", extra={"error": str(e)})
        return jsonify({"error": "Failed to trigger alert"}), 500


@app.route("/alerts/cancel", methods=["POST"])
def cancel_alert():
    try:
        session = _require_session(role=Role.STUDENT)
        coordinator.cancel(session)
        return jsonify({"status": "cancelled"}), 200

    except SafeSpaceError as e:
        return _error_response(e)
    except Exception as e:
        logger.error("ALERT_CANCEL_ERROR", extra={"error": str(e)})
        return jsonify({"error": "Failed to cancel alert"}), 500


@app.route("/alerts/mine", methods=["GET"])
def my_alert():
    """The calling student's active alert, or null."""
    try:
        session = _require_session(role=Role.STUDENT)
        state = coordinator.active_alert(session)
        return jsonify({"alert": state.to_dict() if state else None}), 200

    except SafeSpaceError as e:
        return _error_response(e)
    except Exception as e:
        logger.error("ALERT_MINE_ERROR", extra={"error": str(e)})
        return jsonify({"error": "Failed to load alert"}), 500


@app.route("/schools/<school_id>/alerts/<principal_ref>/resolve", methods=["POST"])
def resolve_alert(school_id: str, principal_ref: str):
    """Clear a student's active alert (admin only)."""
    try:
        session = _require_session(school_id, Role.ADMIN)
        coordinator.resolve(session, principal_ref)
        return jsonify({"status": "resolved", "principal_ref": principal_ref}), 200

    except SafeSpaceError as e:
        return _error_response(e)
    except Exception as e:
        logger.error("ALERT_RESOLVE_ERROR", extra={"error": str(e)})
        return jsonify({"error": "Failed to resolve alert"}), 500


@app.route("/schools/<school_id>/alerts/live", methods=["GET"])
def live_status(school_id: str):
    """Current active alerts (admin only)."""
    try:
        _require_session(school_id, Role.ADMIN)
        return jsonify(coordinator.snapshot(school_id).to_dict()), 200

    except SafeSpaceError as e:
        return _error_response(e)
    except Exception as e:
        logger.error("ALERT_LIVE_ERROR", extra={"error": str(e)})
        return jsonify({"error": "Failed to load live status"}), 500


@app.route("/schools/<school_id>/alerts/history", methods=["GET"])
def alert_history(school_id: str):
    """Ledger events after a sequence (admin only).

    Query Params:
        since: Return events with a greater sequence (default 0)
    """
    try:
        _require_session(school_id, Role.ADMIN)
        registry.get(school_id)
        events = ledger.read_since(school_id, _int_arg("since", 0))
        return jsonify({
            "count": len(events),
            "last_sequence": ledger.last_sequence(school_id),
            "events": [e.to_dict() for e in events],
        }), 200

    except SafeSpaceError as e:
        return _error_response(e)
    except Exception as e:
        logger.error("ALERT_HISTORY_ERROR", extra={"error": str(e)})
        return jsonify({"error": "Failed to load history"}), 500


@app.route("/schools/<school_id>/alerts/verify", methods=["GET"])
def verify_ledger(school_id: str):
    """Verify the school's ledger hash chain (admin only)."""
    try:
        _require_session(school_id, Role.ADMIN)
        is_valid = ledger.verify_chain(school_id)

        return jsonify({
            "chain_valid": is_valid,
            "message": "Ledger integrity verified" if is_valid else "LEDGER INTEGRITY COMPROMISED",
        }), 200 if is_valid else 500

    except SafeSpaceError as e:
        return _error_response(e)
    except Exception as e:
        logger.error("LEDGER_VERIFY_ERROR", extra={"error": str(e)})
        return jsonify({"error": "Failed to verify ledger"}), 500


@app.route("/schools/<school_id>/alerts/stream", methods=["GET"])
def stream_status(school_id: str):
    """Live status as Server-Sent Events (admin only).

    The current snapshot is sent first, then one event per transition.

    Query Params:
        limit: End the stream after this many snapshots (default: never)
    """
    try:
        _require_session(school_id, Role.ADMIN)
        limit = _int_arg("limit", 0)
        subscription = coordinator.subscribe(school_id)

    except SafeSpaceError as e:
        return _error_response(e)
    except Exception as e:
        logger.error("ALERT_STREAM_ERROR", extra={"error": str(e)})
        return jsonify({"error": "Failed to open status stream"}), 500

    def generate():
        sent = 0
        try:
            while not limit or sent < limit:
                snapshot = subscription.get(timeout=config.stream_poll_seconds)
                if snapshot is None:
                    if subscription.closed:
                        return
                    yield ": keepalive\n\n"
                    continue
                payload = json.dumps(snapshot.to_dict())
                yield f"id: {snapshot.sequence}\nevent: status\ndata: {payload}\n\n"
                sent += 1
        finally:
            hub.unsubscribe(subscription)

    return Response(
        stream_with_context(generate()),
        mimetype="text/event-stream",
        headers={"Cache-Control": "no-cache"},
    )


@app.route("/schools/<school_id>/messages", methods=["POST"])
def post_message(school_id: str):
    """Relay a chat message within the school.

    Request Body:
        {"text": "Where are you?"}
    """
    try:
        session = _require_session(school_id)
        data = request.get_json(silent=True)
        if not data:
            return jsonify({"error": "Request body required"}), 400

        message = chat_relay.post(session, data.get("text", ""))
        return jsonify(message.to_dict()), 201

    except SafeSpaceError as e:
        return _error_response(e)
    except Exception as e:
        logger.error("CHAT_POST_ERROR", extra={"error": str(e)})
        return jsonify({"error": "Failed to send message"}), 500


@app.route("/schools/<school_id>/messages", methods=["GET"])
def read_messages(school_id: str):
    """Messages after a sequence.

    Query Params:
        since: Return messages with a greater sequence (default 0)
    """
    try:
        _require_session(school_id)
        messages = chat_relay.read_since(school_id, _int_arg("since", 0))
        return jsonify({
            "count": len(messages),
            "messages": [m.to_dict() for m in messages],
        }), 200

    except SafeSpaceError as e:
        return _error_response(e)
    except Exception as e:
        logger.error("CHAT_READ_ERROR", extra={"error": str(e)})
        return jsonify({"error": "Failed to read messages"}), 500


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    app.run(host="0.0.0.0", port=config.port, debug=False, threaded=True)

from datetime import datetime, timezone


def now_iso():
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def ack(req_id: str, ok: bool, action: str = None, code: str = "OK", error: str = None, details=None):
    """Reply envelope for action commands received over MQTT."""
    return {"v": 1, "req_id": req_id, "ok": ok, "action": action, "code": code, "error": error,
            "details": details or {}, "ts": now_iso()}

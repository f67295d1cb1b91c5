from flask import Flask, request, jsonify
from flask_cors import CORS
import time
import uuid
import threading

from landmark.config import build_config, is_integer
from landmark.fingerprint import Fingerprinter, fingerprint_pcm
from landmark.logging_config import setup_logger

logger = setup_logger(__name__)

app = Flask(__name__)
CORS(app)

app.config["MAX_CONTENT_LENGTH"] = 10 * 1024 * 1024
app.config["SESSION_TTL"] = 30 * 60
app.config["MAX_SESSION_NFFT"] = 4096

# Options a client may set when opening a session
SESSION_OPTIONS = {
    "verbose",
    "sampling_rate",
    "nfft",
    "step",
    "mnlm",
    "mppp",
    "if_min",
    "if_max",
    "window_df",
    "window_dt",
    "pruning_dt",
}

DEFAULT_CONFIG = build_config()


class Session:
    """One live stream: a fingerprinter and the lock serialising its writes."""

    def __init__(self, fingerprinter):
        self.fingerprinter = fingerprinter
        self.lock = threading.Lock()
        self.created_at = time.time()
        self.last_seen = self.created_at
        self.num_hashes = 0


sessions = {}
sessions_lock = threading.Lock()


def get_session(session_id):
    with sessions_lock:
        return sessions.get(session_id)


def cleanup_idle_sessions(max_idle=None):
    """Close sessions that received nothing for `max_idle` seconds."""
    max_idle = max_idle if max_idle is not None else app.config["SESSION_TTL"]
    cutoff_time = time.time() - max_idle
    with sessions_lock:
        idle = [sid for sid, s in sessions.items() if s.last_seen < cutoff_time]
        for session_id in idle:
            del sessions[session_id]
    for session_id in idle:
        logger.info(f"Closed idle session {session_id}")
    return len(idle)


def cleanup_loop():
    """Background task closing idle sessions every few minutes."""
    while True:
        try:
            closed = cleanup_idle_sessions()
            if closed:
                logger.info(f"🧹 Cleanup complete. Closed {closed} sessions.")
        except Exception as e:
            logger.error(f"Error in cleanup task: {e}")
        time.sleep(5 * 60)


def session_options(overrides):
    """Check client supplied options before any table is built for them."""
    if not isinstance(overrides, dict):
        raise TypeError("options must be a JSON object")

    unknown = sorted(set(overrides) - SESSION_OPTIONS)
    if unknown:
        raise TypeError(f"unsupported options: {', '.join(unknown)}")

    nfft = overrides.get("nfft")
    max_nfft = app.config["MAX_SESSION_NFFT"]
    if is_integer(nfft) and nfft > max_nfft:
        raise ValueError(f"nfft must be <= {max_nfft}, got {nfft}")
    return overrides


@app.route("/api/status")
def api_status():
    with sessions_lock:
        num_sessions = len(sessions)
    return jsonify(
        {
            "status": "ok",
            "config": DEFAULT_CONFIG.summary(),
            "sessions": num_sessions,
        }
    )


@app.route("/api/fingerprint", methods=["POST"])
def api_fingerprint():
    data = request.get_data()
    if not data:
        return jsonify({"success": False, "message": "No audio data"}), 400

    start_time = time.time()
    batch, metadata = fingerprint_pcm(data, config=DEFAULT_CONFIG)
    elapsed = time.time() - start_time

    return jsonify(
        {
            "success": True,
            **batch.to_dict(),
            "metadata": metadata,
            "query_time": round(elapsed * 1000, 1),
        }
    )


@app.route("/api/sessions", methods=["POST"])
def api_open_session():
    overrides = request.get_json(silent=True) or {}
    try:
        fingerprinter = Fingerprinter(build_config(**session_options(overrides)))
    except (TypeError, ValueError) as e:
        return jsonify({"success": False, "message": f"Invalid configuration: {e}"}), 400

    session_id = uuid.uuid4().hex
    with sessions_lock:
        sessions[session_id] = Session(fingerprinter)

    logger.info(f"Opened session {session_id}")
    return jsonify(
        {
            "success": True,
            "session_id": session_id,
            "dt": fingerprinter.config.dt,
        }
    ), 201


@app.route("/api/sessions/<session_id>/chunks", methods=["POST"])
def api_write_chunk(session_id):
    session = get_session(session_id)
    if session is None:
        return jsonify({"success": False, "message": "Session not found"}), 404

    with session.lock:
        batch = session.fingerprinter.write(request.get_data())
        session.num_hashes += len(batch)
        session.last_seen = time.time()

    return jsonify({"success": True, **batch.to_dict()})


@app.route("/api/sessions/<session_id>", methods=["DELETE"])
def api_close_session(session_id):
    with sessions_lock:
        session = sessions.pop(session_id, None)
    if session is None:
        return jsonify({"success": False, "message": "Session not found"}), 404

    with session.lock:
        pending = session.fingerprinter.flush()
        frames = session.fingerprinter.frames_processed

    logger.info(f"Closed session {session_id}: {session.num_hashes} hashes")
    return jsonify(
        {
            "success": True,
            "num_frames": frames,
            "num_hashes": session.num_hashes,
            "pending_bytes": pending,
        }
    )


def main():
    cleanup_thread = threading.Thread(target=cleanup_loop, daemon=True)
    cleanup_thread.start()
    logger.info("🕒 Session cleanup task started")

    print("\n🌐 Starting fingerprint server at http://localhost:5000\n")
    app.run(host="0.0.0.0", port=5000, debug=False, threaded=True)


if __name__ == "__main__":
    main()

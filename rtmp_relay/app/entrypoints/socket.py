"""Socket.IO server entrypoint."""
from __future__ import annotations

from .. import create_app
from ...extensions import socketio


def main() -> None:
    app = create_app()
    host = app.config["RELAY_HOST"]
    port = int(app.config["RELAY_PORT"])
    run_kwargs = {}
    if socketio.async_mode == "threading":
        run_kwargs["allow_unsafe_werkzeug"] = True
    try:
        socketio.run(app, host=host, port=port, **run_kwargs)
    finally:
        app.extensions["session_registry"].shutdown()


if __name__ == "__main__":  # pragma: no cover - manual entrypoint
    main()


__all__ = ["main"]

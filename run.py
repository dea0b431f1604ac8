"""
Entry point for the Meeting Recorder API.
Starts the FastAPI application with uvicorn.
"""

import sys
import os
import uvicorn

# Add the current directory to sys.path
current_dir = os.path.dirname(os.path.abspath(__file__))
if current_dir not in sys.path:
    sys.path.insert(0, current_dir)

# Import settings
from meeting_recorder.config.settings import settings


def run():
    """Run the Meeting Recorder API server."""
    host, port = settings.server.host, settings.server.port
    print("\n" + "=" * 60)
    print("MEETING RECORDER API")
    print("=" * 60)
    print(f"🚀 Starting FastAPI application...")
    print(f"📍 Host: {host}:{port}")
    print(f"📚 API Docs: http://{host}:{port}/api/docs")
    print(f"🎙️ Join: POST http://{host}:{port}/api/v1/session/join")
    print(f"📤 Webhook: {settings.delivery.webhook_url or 'not configured'}")
    print("=" * 60 + "\n")

    uvicorn.run(
        "meeting_recorder.main:app",
        host=host,
        port=port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    try:
        run()
    except KeyboardInterrupt:
        print("\n👋 Goodbye!")
    except Exception as e:
        print(f"\n❌ Fatal error: {e}")
        sys.exit(1)

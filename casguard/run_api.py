#!/usr/bin/env python3
"""
FastAPI server runner for casguard
"""

import sys

import uvicorn


def main(host: str = "0.0.0.0", port: int = 8787, reload: bool = False):
    """Run the FastAPI server"""
    try:
        print(f"🚀 Starting casguard on port {port}...")
        print(f"📝 API Documentation: http://localhost:{port}/docs")
        print()

        uvicorn.run(
            "casguard.application:create_app",
            factory=True,
            host=host,
            port=port,
            reload=reload,
            log_level="info"
        )
    except KeyboardInterrupt:
        print("\n👋 Server stopped by user")
    except Exception as e:
        print(f"❌ Error starting server: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()

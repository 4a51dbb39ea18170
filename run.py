#!/usr/bin/env python3
"""
Zenith Bank Entry Point

Starts the FastAPI server with the configured storage backend.
"""

import sys

from zenith_bank.api import run_server
from zenith_bank.config import get_config


if __name__ == "__main__":
    config = get_config()
    print("🏦 Starting Zenith Bank...")
    print(f"💾 Storage: {config.storage_backend} ({config.database_path})")
    print("🔒 Audit trail active" if config.enable_audit_logging else "🔓 Audit trail disabled")
    print(f"🌐 API available at: http://localhost:{config.api_port}")
    print(f"📚 Documentation at: http://localhost:{config.api_port}/docs")
    print()
    
    try:
        run_server(
            host=config.api_host,
            port=config.api_port,
            debug="--debug" in sys.argv
        )
    except KeyboardInterrupt:
        print("\n👋 Shutting down Zenith Bank...")
    except Exception as e:
        print(f"❌ Error starting server: {e}")
        sys.exit(1)

#!/usr/bin/env python3
"""
Startup script for the Artwork Recommender System

Starts the FastAPI server with settings loaded from the environment
(or a .env file).
"""

import sys

import uvicorn

from config.settings import get_settings, validate_settings


def main():
    """Start the FastAPI server."""
    print("Artwork Recommender System - Starting Server")
    print("=" * 50)

    try:
        settings = get_settings()
        validate_settings(settings)
    except Exception as e:
        print(f"✗ Invalid configuration: {e}")
        sys.exit(1)

    print("✓ Configuration loaded successfully")
    print(f"  - API Host: {settings.api_host}")
    print(f"  - API Port: {settings.api_port}")
    print(f"  - Debug Mode: {settings.debug}")
    print(f"  - Log Level: {settings.log_level}")
    print(f"  - Narrative Provider: {settings.narrative_provider}")
    print(f"  - Redis Cache: {'enabled' if settings.redis_enabled else 'disabled'}")

    print(f"\n🚀 Starting server on {settings.api_host}:{settings.api_port}")
    print("Press Ctrl+C to stop the server")
    print("=" * 50)

    try:
        uvicorn.run(
            "api.main:app",
            host=settings.api_host,
            port=settings.api_port,
            reload=settings.debug,
            log_level=settings.log_level.lower(),
            access_log=True
        )
    except KeyboardInterrupt:
        print("\n\n🛑 Server stopped by user")


if __name__ == "__main__":
    main()

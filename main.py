#!/usr/bin/env python3
"""
Land Listings API server entry point

Usage:
    python main.py [--host HOST] [--port PORT] [--reload]
"""
import argparse
import uvicorn
from app.core.config import settings


def parse_args():
    parser = argparse.ArgumentParser(description=f"Run the {settings.APP_NAME}")
    parser.add_argument("--host", default=settings.API_HOST, help="Bind address")
    parser.add_argument("--port", type=int, default=settings.API_PORT, help="Bind port")
    parser.add_argument("--reload", action="store_true", default=settings.DEBUG,
                        help="Restart on code changes")
    return parser.parse_args()


def main():
    """Start the API server"""
    args = parse_args()
    base_url = f"http://{args.host}:{args.port}"

    print("="*70)
    print(f"{settings.APP_NAME} v{settings.APP_VERSION} [{settings.ENVIRONMENT}]")
    print("="*70)
    print(f"\nListings: {base_url}{settings.API_PREFIX}/listings")
    print(f"Health:   {base_url}{settings.API_PREFIX}/health")
    print(f"Docs:     {base_url}/docs")
    if not (settings.CLOUDINARY_URL or settings.CLOUDINARY_CLOUD_NAME):
        print("\n⚠️  Cloudinary is not configured; image uploads will fail")
    print("\n" + "="*70 + "\n")

    uvicorn.run(
        "app.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level="debug" if settings.DEBUG else "info",
    )


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
# =============================================================================
# scripts/start_worker.py - Celery Worker Entry Point
# =============================================================================
# Starts a Celery worker with the embedded beat scheduler, so the daily key
# rotation runs without a separate beat process.
#
# Usage:
#   # Start worker (development, from the project root after pip install -e .)
#   python -m scripts.start_worker
#
#   # Or use Celery CLI directly
#   celery -A workers.celery_app worker --beat --loglevel=info -Q default,key_rotation
#
# Prerequisites:
#   - Redis must be running
#   - Environment variables must be set (.env file)
# =============================================================================

from workers.celery_app import celery_app


def main():
    """Start the Celery worker with beat."""
    print("=" * 60)
    print("Hunter Key Manager Celery Worker")
    print("=" * 60)
    print()
    print("Starting worker (rotation scheduled by beat)...")
    print("Press Ctrl+C to stop")
    print()

    celery_app.worker_main([
        "worker",
        "--beat",
        "--loglevel=info",
        "--queues=default,key_rotation",
        "--concurrency=1",
    ])


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""
Entry point for the Scouting Service.

Usage:
    python run.py                    # Run the API server (default)
    python run.py serve              # Run the API server explicitly
    python run.py import 2024        # Import a season's events and matches from TBA

Environment Variables:
    FLASK_ENV: development, production or testing (default: development)
    PORT: Port to run on (default: 5000)
    TBA_API_KEY: Read key for The Blue Alliance (required for import)
"""
import os
import sys


def run_server():
    """Run the scouting API."""
    from scouting.app import create_app

    app = create_app()
    port = int(os.getenv('PORT', 5000))
    debug = os.getenv('FLASK_ENV', 'development') == 'development'

    print(f"Starting Scouting Service on port {port}...")
    app.run(host='0.0.0.0', port=port, debug=debug)


def run_import(year: int):
    """Pull one season of events, matches and alliances from TBA."""
    from scouting.app import create_app
    from scouting.tba_client import TBAError

    app = create_app()
    with app.app_context():
        try:
            events, matches = app.events.import_year(year)
        except TBAError as e:
            print(f"Import failed: {e}")
            sys.exit(1)

    print(f"Imported {events} events and {matches} matches for {year}")


if __name__ == '__main__':
    mode = sys.argv[1] if len(sys.argv) > 1 else 'serve'

    if mode == 'serve':
        run_server()
    elif mode == 'import' and len(sys.argv) > 2 and sys.argv[2].isdigit():
        run_import(int(sys.argv[2]))
    else:
        print(f"Unknown mode: {' '.join(sys.argv[1:])}")
        print("Usage: python run.py [serve|import <year>]")
        sys.exit(1)

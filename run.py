#!/usr/bin/env python3
"""
Defect Scan - Main Entry Point

Run this script to start the web application, or pass --image to analyze
a single file and print the result as JSON.

Usage:
    python run.py [--host HOST] [--port PORT] [--debug]
    python run.py --image PATH [--min-spot-size N] [--min-contrast PCT]

Example:
    python run.py --host 0.0.0.0 --port 5000 --debug
"""

import argparse
import json
import logging
import sys

from defectscan import create_app
from defectscan.core import DetectionError, DetectionParams, process_single_image

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


def main():
    parser = argparse.ArgumentParser(description='Defect Scan Web Application')
    parser.add_argument('--host', default='0.0.0.0', help='Host to bind to (default: 0.0.0.0)')
    parser.add_argument('--port', type=int, default=5000, help='Port to bind to (default: 5000)')
    parser.add_argument('--debug', action='store_true', help='Enable debug mode')
    parser.add_argument('--image', help='Analyze this image once instead of serving')
    parser.add_argument('--min-spot-size', type=int, default=40, help='Minimum component size in pixels (default: 40)')
    parser.add_argument('--min-contrast', type=float, default=12.0, help='Minimum contrast, percent of 255 (default: 12)')
    args = parser.parse_args()

    if args.image:
        params = DetectionParams(
            min_spot_size_px=args.min_spot_size,
            min_contrast_percent=args.min_contrast,
        )
        try:
            result = process_single_image(args.image, params)
        except (DetectionError, FileNotFoundError) as e:
            logging.getLogger(__name__).error(str(e))
            sys.exit(1)
        print(json.dumps(result.to_dict(include_edges=False), indent=2))
        return

    app = create_app()

    print(f"""
╔══════════════════════════════════════════════════════════╗
║                      DEFECT SCAN                         ║
║              Global Contrast Defect Finder               ║
╠══════════════════════════════════════════════════════════╣
║                                                          ║
║   API listening at: http://{args.host}:{args.port}/api                ║
║                                                          ║
╚══════════════════════════════════════════════════════════╝
    """)

    app.run(host=args.host, port=args.port, debug=args.debug)


if __name__ == '__main__':
    main()

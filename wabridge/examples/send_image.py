"""
Example: Send an image message

Usage:
    python -m wabridge.examples.send_image --phone "+1 234 567 890" --file photo.jpg --caption "Look!"
"""

import argparse
import sys

from ._runner import banner, send_file


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Send a WhatsApp image")
    parser.add_argument("--phone", required=True, help="Phone number with country code")
    parser.add_argument("--file", required=True, help="Path to the image")
    parser.add_argument("--caption", default="Check out this image!", help="Optional caption")
    args = parser.parse_args(argv)

    banner("Send Image")
    return send_file(args.phone, args.file, args.caption, "Image")


if __name__ == "__main__":
    sys.exit(main())

"""
Example: Send a video message

Usage:
    python -m wabridge.examples.send_video --phone "+1 234 567 890" --file clip.mp4

Note: WhatsApp limits videos to about 16MB.
"""

import argparse
import sys

from ._runner import banner, send_file

VIDEO_LIMIT_MB = 16


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Send a WhatsApp video")
    parser.add_argument("--phone", required=True, help="Phone number with country code")
    parser.add_argument("--file", required=True, help="Path to the video")
    parser.add_argument("--caption", default="Check out this video!", help="Optional caption")
    args = parser.parse_args(argv)

    banner("Send Video")
    return send_file(args.phone, args.file, args.caption, "Video", size_warning_mb=VIDEO_LIMIT_MB)


if __name__ == "__main__":
    sys.exit(main())

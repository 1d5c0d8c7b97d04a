import json
import subprocess

from logger_config import get_logger

logger = get_logger(__name__)


def probe_duration(path, timeout=30):
    """Duration of a local video in seconds, or None if ffprobe cannot read it."""
    cmd = [
        "ffprobe", "-v", "error",
        "-print_format", "json",
        "-show_format",
        str(path),
    ]
    try:
        r = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.warning(f"⚠️  ffprobe failed for {path}: {e}")
        return None

    if r.returncode != 0:
        logger.warning(f"⚠️  ffprobe could not read {path}: {r.stderr.strip()[:200]}")
        return None

    try:
        duration = float(json.loads(r.stdout or "{}").get("format", {}).get("duration"))
    except (TypeError, ValueError):
        return None
    return duration

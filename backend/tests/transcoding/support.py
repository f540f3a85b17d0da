"""Helpers shared by the ingest pipeline tests.

External tools are replaced by tiny executable Python scripts so the
pipeline runs real subprocesses without needing ffmpeg installed.
"""

import os
import sys
import textwrap
from pathlib import Path
from typing import Callable, Optional

from app.core.storage import LocalStorage, Storage, StorageResult


FAKE_FFPROBE = r'''
import json
import os
import sys

path = sys.argv[-1]
if not os.path.exists(path) or os.path.getsize(path) == 0:
    sys.stderr.write(path + ": Invalid data found when processing input\n")
    sys.exit(1)

print(json.dumps({
    "streams": [
        {"index": 0, "codec_type": "audio", "sample_rate": "44100"},
        {"index": 1, "codec_type": "video", "width": 1920, "height": 1080},
    ],
    "format": {"duration": "DURATION", "bit_rate": "4000000"},
}))
'''

FAKE_FFMPEG = r'''
import math
import os
import sys

args = sys.argv[1:]


def opt(name):
    return args[args.index(name) + 1]


hls_time = int(opt("-hls_time"))
template = opt("-hls_segment_filename")
playlist = args[-1]
duration = DURATION

lines = [
    "#EXTM3U",
    "#EXT-X-VERSION:6",
    "#EXT-X-TARGETDURATION:%d" % hls_time,
    "#EXT-X-MEDIA-SEQUENCE:0",
    "#EXT-X-PLAYLIST-TYPE:VOD",
    "#EXT-X-INDEPENDENT-SEGMENTS",
]
remaining = duration
for i in range(int(math.ceil(duration / hls_time))):
    length = min(hls_time, remaining)
    remaining -= length
    with open(template % i, "wb") as f:
        f.write(b"\x47" * 188 * (i + 1))
    lines.append("#EXTINF:%.6f," % length)
    lines.append(os.path.basename(template % i))
lines.append("#EXT-X-ENDLIST")

with open(playlist, "w") as f:
    f.write("\n".join(lines) + "\n")

sys.stderr.write("frame=  500 fps=100 q=-1.0 Lsize=N/A time=00:00:20.00 speed=4x\n")
'''

FAILING_TOOL = r'''
import sys

sys.stderr.write("Conversion failed!\n")
sys.exit(1)
'''

SLEEPING_TOOL = r'''
import time

time.sleep(60)
'''

# Forks a helper into the same process group, records its pid, then hangs
FORKING_TOOL = r'''
import subprocess
import sys
import time

helper = subprocess.Popen([sys.executable, "-c", "import time; time.sleep(60)"])
with open(PID_FILE, "w") as f:
    f.write(str(helper.pid))
time.sleep(60)
'''


def write_executable(directory: Path, name: str, body: str) -> Path:
    """Write an executable Python script and return its path."""
    path = directory / name
    path.write_text(f"#!{sys.executable}\n" + textwrap.dedent(body))
    path.chmod(0o755)
    return path


def pid_alive(pid: int) -> bool:
    """True if ``pid`` is a running (non-zombie) process."""
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    try:
        with open(f"/proc/{pid}/stat") as f:
            state = f.read().rsplit(")", 1)[1].split()[0]
    except (FileNotFoundError, IndexError):
        return False
    return state not in ("Z", "X")


class RecordingStorage(Storage):
    """In-memory storage that records every put and can fail on demand."""

    def __init__(self, fail_on: Optional[Callable[[str], bool]] = None):
        self.puts: list[tuple[str, bytes, str]] = []
        self.objects: dict[str, bytes] = {}
        self.fail_on = fail_on

    def upload_bytes(self, content, key, content_type="application/octet-stream"):
        if self.fail_on is not None and self.fail_on(key):
            return StorageResult(success=False, key=key, error_message="simulated outage")
        self.puts.append((key, content, content_type))
        self.objects[key] = content
        return StorageResult(success=True, key=key, file_size=len(content))

    def exists(self, key):
        return key in self.objects

    @property
    def keys(self) -> list[str]:
        return [key for key, _, _ in self.puts]


def workspace_entries(temp_root: Path) -> list[Path]:
    if not temp_root.exists():
        return []
    return list(temp_root.iterdir())


def stored_files(storage: Storage) -> list[str]:
    backend = storage._backend
    assert isinstance(backend, LocalStorage)
    return sorted(
        str(p.relative_to(backend.base_path))
        for p in backend.base_path.rglob("*")
        if p.is_file()
    )

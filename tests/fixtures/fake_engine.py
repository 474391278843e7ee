"""Stand-in conversion engine used by the test suite.

Usage: fake_engine.py MODE INPUT OUTPUT_DIR STEM TARGET

Modes:
    success          write <stem>.<target> and exit 0
    crash            print to stderr and exit 3
    empty            exit 0 without writing anything
    zero-byte        write an empty output file and exit 0
    partial-crash    write a partial output file and exit 1
    renamed          write a differently named file with the target suffix
    noisy            print a lot of output and exit 2
    flood            stream several megabytes of output and exit 2
    sleep:SECONDS    sleep, then behave like success
    spawn-hang       start a sleeping child, record its pid, then hang
"""

import subprocess
import sys
import time
from pathlib import Path


def main() -> int:
    mode, input_path, output_dir, stem, target = sys.argv[1:6]
    data = Path(input_path).read_bytes()
    output = Path(output_dir) / f"{stem}.{target}"

    if mode.startswith("sleep:"):
        time.sleep(float(mode.split(":", 1)[1]))
        mode = "success"

    if mode == "success":
        output.write_bytes(b"converted:" + data)
        print(f"converted {Path(input_path).name}")
        return 0
    if mode == "crash":
        print("engine blew up", file=sys.stderr)
        return 3
    if mode == "empty":
        return 0
    if mode == "zero-byte":
        output.write_bytes(b"")
        return 0
    if mode == "partial-crash":
        output.write_bytes(b"partial")
        return 1
    if mode == "renamed":
        (Path(output_dir) / f"renamed-by-engine.{target}").write_bytes(data)
        return 0
    if mode == "noisy":
        print("x" * 10000)
        print("tail marker")
        return 2
    if mode == "flood":
        line = "y" * 1023 + "\n"
        for _ in range(8 * 1024):
            sys.stdout.write(line)
        print("tail marker")
        return 2
    if mode == "spawn-hang":
        child = subprocess.Popen([sys.executable, "-c", "import time; time.sleep(60)"])
        (Path(output_dir).parent / "child.pid").write_text(str(child.pid))
        time.sleep(60)
        return 0

    print(f"unknown mode {mode}", file=sys.stderr)
    return 64


if __name__ == "__main__":
    sys.exit(main())

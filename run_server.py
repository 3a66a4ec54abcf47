from __future__ import annotations

import os
import signal
import subprocess
import sys
import time
import webbrowser
from pathlib import Path


def _repo_root() -> Path:
    return Path(__file__).resolve().parent


def _run_with_env(cmd: list[str], *, cwd: Path, env_overrides: dict[str, str]) -> subprocess.Popen:
    env = os.environ.copy()
    env.update(env_overrides)
    return subprocess.Popen(
        cmd,
        cwd=str(cwd),
        env=env,
        stdout=None,
        stderr=None,
        shell=False,
    )


def main() -> int:
    root = _repo_root()
    port = os.environ.get("COURSECANVAS_PORT", "8000").strip() or "8000"
    data_dir = Path(os.environ.get("COURSECANVAS_DATA_DIR") or (root / "data"))
    (data_dir / "media").mkdir(parents=True, exist_ok=True)

    print("[run_server] Starting coursecanvas backend (dev mode)")
    backend_cmd = [
        sys.executable,
        "-m",
        "uvicorn",
        "--app-dir",
        str(root / "apps" / "backend"),
        "coursecanvas.main:app",
        "--reload",
        "--port",
        port,
    ]
    env_overrides = {"COURSECANVAS_DATA_DIR": str(data_dir)}
    proc = _run_with_env(backend_cmd, cwd=root, env_overrides=env_overrides)

    try:
        time.sleep(0.5)
        print("")
        print(f"[run_server] API:     http://localhost:{port}/api/health")
        print(f"[run_server] Docs:    http://localhost:{port}/docs")
        print(f"[run_server] Data in: {data_dir}")
        print("")
        print("[run_server] Press Ctrl+C to stop.")

        if os.environ.get("COURSECANVAS_OPEN_BROWSER", "").strip() in {"1", "true", "yes"}:
            webbrowser.open(f"http://localhost:{port}/docs", new=1)

        while True:
            code = proc.poll()
            if code is not None:
                print(f"[run_server] Backend exited with code {code}.")
                return code
            time.sleep(0.2)
    except KeyboardInterrupt:
        return 0
    finally:
        if proc.poll() is None:
            if sys.platform.startswith("win"):
                proc.terminate()
            else:
                proc.send_signal(signal.SIGTERM)
            try:
                proc.wait(timeout=3)
            except subprocess.TimeoutExpired:
                proc.kill()


if __name__ == "__main__":
    raise SystemExit(main())

"""Docker-based renderer client utilities."""
from __future__ import annotations

import subprocess
from pathlib import Path
from typing import List


def docker_command(image: str, workdir: Path, command: List[str]) -> List[str]:
    return [
        "docker",
        "run",
        "--rm",
        "-v",
        f"{workdir}:/data",
        "-w",
        "/data",
        image,
    ] + command


def run_docker_renderer(image: str, workdir: Path, command: List[str]) -> subprocess.CompletedProcess[str]:
    """Run ``command`` inside ``image`` with ``workdir`` mounted at ``/data``.

    Output is captured so callers can surface the renderer's error message.
    """
    return subprocess.run(
        docker_command(image, workdir, command),
        check=True,
        capture_output=True,
        text=True,
    )

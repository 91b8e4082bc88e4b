"""Mermaid parser backed by mermaid-cli (local ``mmdc`` or dockerized)."""
from __future__ import annotations

import atexit
import json
import logging
import shutil
import subprocess
import tempfile
from functools import lru_cache
from pathlib import Path
from typing import List, Optional, Protocol

from diagram_ai.renderers.docker_client import run_docker_renderer
from diagram_ai.utils.config import settings

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "mermaid-config.json"
RENDERER_CONFIG = {"startOnLoad": False, "securityLevel": "loose", "theme": "default"}

# docker run exits with these when the container itself could not start
_DOCKER_FAILURE_CODES = {125, 126, 127}


class MermaidSyntaxError(ValueError):
    """Raised when the engine rejects diagram source."""


class MermaidEngineUnavailable(RuntimeError):
    """Raised when mermaid-cli cannot be started at all."""


class MermaidEngine(Protocol):
    def parse(self, text: str) -> None:
        """Return silently for valid source, raise ``MermaidSyntaxError`` otherwise."""


def parse_error_message(output: str) -> str:
    """Pull the parser message out of mermaid-cli output, dropping the stack trace."""
    lines = output.strip().splitlines()
    start = next((i for i, line in enumerate(lines) if "error" in line.lower()), None)
    if start is None:
        return output.strip() or "Mermaid parse failed"
    message: List[str] = []
    for line in lines[start:]:
        if line.lstrip().startswith("at ") and line[:1].isspace():
            break
        message.append(line)
    text = "\n".join(message).strip()
    if text.startswith("Error:"):
        text = text[len("Error:"):].strip()
    return text


class MermaidCliEngine:
    """Runs ``mmdc`` on a scratch file and maps failures to exceptions."""

    def __init__(
        self,
        cli_path: Optional[str] = None,
        image: Optional[str] = None,
        use_docker: Optional[bool] = None,
    ):
        self.cli_path = cli_path or settings.mermaid_cli_path
        self.image = image or settings.mermaid_renderer_image
        self.use_docker = settings.use_docker_renderer if use_docker is None else use_docker
        self._executable: Optional[str] = None
        self._config_path: Optional[Path] = None

    @property
    def initialized(self) -> bool:
        return self._config_path is not None

    def initialize(self) -> None:
        """Locate the CLI and write the renderer config; runs once per engine."""
        if self.initialized:
            return
        if self.use_docker:
            if shutil.which("docker") is None:
                raise MermaidEngineUnavailable("docker is not installed")
        else:
            self._executable = shutil.which(self.cli_path)
            if self._executable is None:
                raise MermaidEngineUnavailable(f"mermaid-cli not found: {self.cli_path}")
        config_dir = Path(tempfile.mkdtemp(prefix="diagram-ai-mermaid-"))
        config_path = config_dir / CONFIG_FILENAME
        config_path.write_text(json.dumps(RENDERER_CONFIG), encoding="utf-8")
        atexit.register(shutil.rmtree, config_dir, True)
        self._config_path = config_path
        logger.info("Mermaid engine initialized", extra={"docker": self.use_docker, "image": self.image})

    def _run(self, workdir: Path, command: List[str]) -> None:
        if self.use_docker:
            run_docker_renderer(self.image, workdir, command)
        else:
            subprocess.run(
                [self._executable] + command,
                cwd=workdir,
                check=True,
                capture_output=True,
                text=True,
            )

    def parse(self, text: str) -> None:
        self.initialize()
        with tempfile.TemporaryDirectory() as tmp_dir:
            workdir = Path(tmp_dir)
            (workdir / "input.mmd").write_text(text, encoding="utf-8")
            shutil.copyfile(self._config_path, workdir / CONFIG_FILENAME)
            command = ["-i", "input.mmd", "-o", "output.svg", "-c", CONFIG_FILENAME, "-q"]
            try:
                self._run(workdir, command)
            except FileNotFoundError as exc:
                raise MermaidEngineUnavailable(str(exc)) from exc
            except subprocess.CalledProcessError as exc:
                output = exc.stderr or exc.stdout or ""
                if self.use_docker and exc.returncode in _DOCKER_FAILURE_CODES:
                    raise MermaidEngineUnavailable(output.strip() or "docker run failed") from exc
                raise MermaidSyntaxError(parse_error_message(output)) from exc


@lru_cache(maxsize=1)
def get_mermaid_engine() -> MermaidCliEngine:
    """Return the process-wide engine, initializing it on first use."""
    engine = MermaidCliEngine()
    engine.initialize()
    return engine

# renderer.py
from __future__ import annotations
import logging
import os
import subprocess
import tempfile
import time
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

from resumeforge.errors import RenderError

logger = logging.getLogger(__name__)

ARTIFACT_SUFFIXES = (".tex", ".pdf", ".aux", ".log", ".out")


class LatexRenderer:
    """Compile LaTeX source to PDF bytes with an external engine."""

    def __init__(
        self,
        command: str = "pdflatex",
        timeout: float = 60.0,
        strict: bool = False,
        workdir: Optional[str] = None,
    ):
        self.command = command
        self.timeout = timeout
        self.strict = strict
        self.workdir = Path(workdir) if workdir else Path(tempfile.gettempdir())

    @classmethod
    def from_config(cls, config) -> "LatexRenderer":
        return cls(
            command=config.get("LATEX_COMMAND", "pdflatex"),
            timeout=config.get("LATEX_TIMEOUT", 60.0),
            strict=config.get("LATEX_STRICT", False),
            workdir=config.get("LATEX_WORKDIR") or None,
        )

    def _basename(self, user_id: str) -> str:
        return f"{user_id}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"

    @contextmanager
    def _artifacts(self, user_id: str) -> Iterator[Path]:
        """Yield the .tex path for this run; every sibling artifact is removed on exit."""
        self.workdir.mkdir(parents=True, exist_ok=True)
        base = self.workdir / self._basename(user_id)
        try:
            yield base.with_suffix(".tex")
        finally:
            for suffix in ARTIFACT_SUFFIXES:
                path = base.with_suffix(suffix)
                try:
                    path.unlink()
                except FileNotFoundError:
                    pass
                except OSError as e:
                    logger.error("Error deleting temporary file %s: %s", path, e)

    def _command(self, tex_path: Path) -> List[str]:
        return [
            self.command,
            "-interaction=nonstopmode",
            "-halt-on-error",
            "-output-directory",
            str(tex_path.parent),
            str(tex_path),
        ]

    def render(self, markup: str, user_id: str) -> bytes:
        """Return the compiled PDF, or raise RenderError.

        A non-zero compiler exit is only fatal in strict mode; otherwise the
        PDF is accepted if the compiler still wrote one.
        """
        with self._artifacts(user_id) as tex_path:
            tex_path.write_text(markup, encoding="utf-8")
            pdf_path = tex_path.with_suffix(".pdf")
            try:
                result = subprocess.run(
                    self._command(tex_path),
                    cwd=str(tex_path.parent),
                    stdin=subprocess.DEVNULL,
                    capture_output=True,
                    text=True,
                    errors="replace",
                    timeout=self.timeout,
                    env={**os.environ, "TEXINPUTS": f"{tex_path.parent}{os.pathsep}"},
                )
            except subprocess.TimeoutExpired:
                raise RenderError(f"{self.command} timed out after {self.timeout:g}s")
            except FileNotFoundError:
                raise RenderError(f"{self.command} not found; install a TeX distribution")

            if result.returncode != 0:
                tail = (result.stdout or result.stderr or "")[-500:]
                logger.warning("%s exited with %d for %s: %s",
                               self.command, result.returncode, tex_path.name, tail)
                if self.strict:
                    raise RenderError(f"{self.command} exited with code {result.returncode}")

            if not pdf_path.exists():
                raise RenderError(f"PDF file was not generated for {tex_path.name}")

            data = pdf_path.read_bytes()
            logger.info("Rendered %s (%d bytes)", pdf_path.name, len(data))
            return data

"""
LaTeX Compilation Module

Each request compiles in its own scratch directory (job) so concurrent requests
never share source, log or PDF files. Compilation runs pdflatex once in
nonstop, halt-on-error mode under a timeout.
"""

import asyncio
import os
import re
import secrets
import shutil
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple, Union

from dotenv import load_dotenv

from rescribe.contexts.rendering.logger import (
    _log_debug,
    _log_warning,
    log_compilation_result,
    log_compilation_start,
)
from rescribe.exceptions import CompilationError, CompilerNotFoundError
from rescribe.utils.pdf_processing import page_count
from rescribe.utils.timestamp import now_exact

load_dotenv()

LATEX_COMPILER = os.getenv("LATEX_COMPILER", "pdflatex")
KEEP_LATEX_ARTIFACTS = os.getenv("KEEP_LATEX_ARTIFACTS", "false").lower() == "true"

SOURCE_FILENAME = "resume.tex"
PDF_FILENAME = "resume.pdf"
LOG_FILENAME = "resume.log"

# LaTeX intermediate files created during compilation
LATEX_ARTIFACTS = [".aux", ".log", ".out", ".toc"]

DEFAULT_TIMEOUT_S = 120.0
MAX_OUTPUT_BYTES = 10 * 1024 * 1024

ERROR_LINE_PATTERN = re.compile(r"\bl\.(\d+)")


@dataclass
class CompilationJob:
    """
    One isolated compilation request.

    Attributes:
        id: Unique job identifier (timestamp plus random suffix)
        work_dir: Scratch directory owned exclusively by this job
        source_path: Path of the written .tex source
    """

    id: str
    work_dir: Path
    source_path: Path

    @property
    def pdf_path(self) -> Path:
        return self.work_dir / PDF_FILENAME


@dataclass
class CompilationOutcome:
    """
    Result of a successful LaTeX compilation.

    Attributes:
        success: Whether compilation succeeded
        pdf_path: Path to generated PDF (None if failed)
        log: Engine log file content, or stdout + stderr when no log file exists
        stdout: Standard output from pdflatex
        stderr: Standard error from pdflatex
        errors: List of parsed LaTeX errors
        warnings: List of parsed LaTeX warnings
        page_count: Number of pages in generated PDF (None if not available)
    """

    success: bool
    pdf_path: Optional[Path] = None
    log: str = ""
    stdout: str = ""
    stderr: str = ""
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    page_count: Optional[int] = None


def new_job_id() -> str:
    """Timestamp to the microsecond plus 24 random bits, e.g. 20260101_120000_000001_a3f09c."""
    return f"{now_exact()}_{secrets.token_hex(3)}"


def prepare_job(job_id: str, latex_source: str, scratch_root: Union[str, Path]) -> Path:
    """
    Create the job's scratch directory and write the LaTeX source into it.

    Args:
        job_id: Unique job identifier
        latex_source: Complete LaTeX document
        scratch_root: Parent directory for job directories (created if missing)

    Returns:
        The job's working directory

    Raises:
        FileExistsError: If a directory for job_id already exists
    """
    work_dir = Path(scratch_root) / f"job_{job_id}"
    work_dir.parent.mkdir(parents=True, exist_ok=True)
    # A collision must fail loudly rather than let two jobs share files
    work_dir.mkdir(exist_ok=False)

    (work_dir / SOURCE_FILENAME).write_text(latex_source, encoding="utf-8")
    _log_debug(f"Prepared job {job_id} in {work_dir}")
    return work_dir


def create_job(latex_source: str, scratch_root: Union[str, Path]) -> CompilationJob:
    """Allocate a fresh job id and prepare its scratch directory."""
    job_id = new_job_id()
    work_dir = prepare_job(job_id, latex_source, scratch_root)
    return CompilationJob(id=job_id, work_dir=work_dir, source_path=work_dir / SOURCE_FILENAME)


def discard_job(work_dir: Union[str, Path]) -> None:
    """Remove a job's scratch directory and everything in it."""
    shutil.rmtree(work_dir, ignore_errors=True)
    _log_debug(f"Removed scratch directory {work_dir}")


def resolve_compiler_executable(raw: Optional[str] = None) -> str:
    """
    Normalize a configured compiler path.

    Surrounding quotes and whitespace are stripped. When the value names a
    directory (an existing one, or anything ending in a path separator), the
    platform's pdflatex binary name is appended. Existence of the binary itself is
    not checked; a missing executable surfaces when it is spawned.

    Example:
        >>> resolve_compiler_executable('"/usr/local/texlive/bin/"')
        '/usr/local/texlive/bin/pdflatex'
    """
    binary_name = "pdflatex.exe" if os.name == "nt" else "pdflatex"
    exe = (raw or "").strip().strip("\"'").strip()
    if not exe:
        return binary_name

    if exe.endswith(("/", "\\")) or Path(exe).is_dir():
        return str(Path(exe) / binary_name)
    return exe


def _parse_latex_log(log_content: str) -> Tuple[List[str], List[str]]:
    """
    Parse LaTeX log content for errors and warnings.

    Returns:
        Tuple of (errors, warnings)
    """
    errors = []
    warnings = []

    # LaTeX error pattern: "! Error message"
    for match in re.finditer(r"^! (.+)$", log_content, re.MULTILINE):
        errors.append(match.group(1).strip())

    # Error lines that don't start with "!"
    for pattern in [r"Undefined control sequence", r"File ended while scanning use of", r"Emergency stop"]:
        match = re.search(rf"({pattern}.*?)$", log_content, re.MULTILINE)
        if match and match.group(1) not in errors:
            errors.append(match.group(1))

    warning_patterns = [
        r"LaTeX Warning: (.+)",
        r"Package \w+ Warning: (.+)",
        r"Overfull \\hbox \((.+)\)",
        r"Underfull \\hbox \((.+)\)",
    ]
    for pattern in warning_patterns:
        for match in re.finditer(pattern, log_content, re.MULTILINE):
            warnings.append(match.group(1).strip())

    return errors, warnings


def extract_error_line(log_content: str) -> Optional[int]:
    """Source line of the first error from TeX's "l.<n>" context marker, if present."""
    match = ERROR_LINE_PATTERN.search(log_content or "")
    return int(match.group(1)) if match else None


def _decode_output(raw: Optional[bytes], max_bytes: int) -> str:
    if not raw:
        return ""
    if len(raw) > max_bytes:
        raw = raw[:max_bytes]
    return raw.decode("utf-8", errors="replace")


def _read_log(work_dir: Path, stdout: str, stderr: str) -> str:
    """Prefer the engine's log file; fall back to captured stdout + stderr."""
    log_file = work_dir / LOG_FILENAME
    if log_file.exists():
        # pdflatex writes log files in latin-1 encoding (font metadata contains non-UTF-8)
        log = log_file.read_text(encoding="latin-1")
    else:
        log = stdout
    if stderr and stderr not in log:
        log = f"{log}\n{stderr}" if log else stderr
    return log


async def compile_latex(
    work_dir: Union[str, Path],
    executable: Optional[str] = LATEX_COMPILER,
    timeout: float = DEFAULT_TIMEOUT_S,
    max_output_bytes: int = MAX_OUTPUT_BYTES,
    job_id: Optional[str] = None,
) -> CompilationOutcome:
    """
    Compile resume.tex in work_dir to resume.pdf.

    Runs `<pdflatex> -interaction=nonstopmode -halt-on-error resume.tex` with
    work_dir as the current directory. Captured output is capped at
    max_output_bytes per stream.

    Args:
        work_dir: Job directory holding resume.tex
        executable: Compiler path or directory (default: LATEX_COMPILER env)
        timeout: Seconds before the compiler process is killed
        max_output_bytes: Cap on captured stdout/stderr
        job_id: Identifier used in log lines (default: work_dir name)

    Returns:
        CompilationOutcome with success=True and the PDF path

    Raises:
        CompilerNotFoundError: If the executable cannot be spawned
        CompilationError: On timeout, nonzero exit, or missing PDF. The error
            carries the log, captured output and best-effort error line.
    """
    work_dir = Path(work_dir)
    job_id = job_id or work_dir.name
    exe = resolve_compiler_executable(executable)

    # Clean any existing output files to ensure unambiguous success detection
    for ext in [".pdf"] + LATEX_ARTIFACTS:
        old_file = work_dir / f"{Path(SOURCE_FILENAME).stem}{ext}"
        if old_file.exists():
            old_file.unlink()

    cmd = [exe, "-interaction=nonstopmode", "-halt-on-error", SOURCE_FILENAME]
    log_compilation_start(job_id, exe, work_dir)
    start_time = time.monotonic()

    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            cwd=str(work_dir),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except (FileNotFoundError, PermissionError) as e:
        raise CompilerNotFoundError(
            f"{exe} is not installed or not in PATH. Please install TeX Live or MiKTeX.",
            log=str(e),
        ) from e

    try:
        raw_stdout, raw_stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        try:
            process.kill()
        except ProcessLookupError:
            pass
        await process.wait()
        _log_warning(f"Job {job_id}: compiler killed after {timeout:.0f}s")
        raise CompilationError(
            f"LaTeX compilation timed out after {timeout:.0f}s",
            log=await asyncio.to_thread(_read_log, work_dir, "", ""),
        )

    elapsed = time.monotonic() - start_time
    stdout = _decode_output(raw_stdout, max_output_bytes)
    stderr = _decode_output(raw_stderr, max_output_bytes)
    log = await asyncio.to_thread(_read_log, work_dir, stdout, stderr)
    errors, warnings = _parse_latex_log(log)

    pdf_path = work_dir / PDF_FILENAME
    success = process.returncode == 0 and pdf_path.exists()
    if process.returncode == 0 and not pdf_path.exists() and not errors:
        errors.append("PDF file was not generated")

    outcome = CompilationOutcome(
        success=success,
        pdf_path=pdf_path if success else None,
        log=log,
        stdout=stdout,
        stderr=stderr,
        errors=errors,
        warnings=warnings,
        page_count=await asyncio.to_thread(page_count, pdf_path) if success else None,
    )
    log_compilation_result(job_id, outcome, elapsed)

    if not success:
        message = (
            "LaTeX compilation failed"
            if process.returncode != 0
            else "LaTeX compilation produced no PDF"
        )
        raise CompilationError(
            message,
            log=log,
            stdout=stdout,
            stderr=stderr,
            line_number=extract_error_line(log),
        )

    return outcome

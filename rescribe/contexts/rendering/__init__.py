"""
Rendering Context

Responsibilities:
- Allocates an isolated scratch directory per compilation job
- Compiles LaTeX to PDF with pdflatex under a timeout
- Parses compiler logs for errors, warnings and the failing source line

Owns: Job directories, compiler invocation, log diagnostics
Never: Generates or edits LaTeX content, talks to storage
"""

from rescribe.contexts.rendering.compiler import (
    CompilationJob,
    CompilationOutcome,
    compile_latex,
    create_job,
    discard_job,
    new_job_id,
    prepare_job,
    resolve_compiler_executable,
)

__all__ = [
    "CompilationJob",
    "CompilationOutcome",
    "compile_latex",
    "create_job",
    "discard_job",
    "new_job_id",
    "prepare_job",
    "resolve_compiler_executable",
]

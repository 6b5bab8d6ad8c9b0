"""
Resume pipeline: the two request flows.

Upload:    PDF bytes -> text -> AI LaTeX -> compile -> publish -> URL
Recompile: edited LaTeX -> sanitize -> compile -> publish -> URL

Requests share no mutable state; each compile gets its own scratch directory.
"""

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple, Union

from loguru import logger

from rescribe.contexts.generation import GenerationChain, ProviderRole
from rescribe.contexts.intake import DEFAULT_MAX_UPLOAD_BYTES, extract_text_from_pdf, validate_upload
from rescribe.contexts.publishing import ArtifactPublisher, CleanupQueue, Identity, PublishedArtifact
from rescribe.contexts.rendering import compile_latex, create_job, discard_job
from rescribe.contexts.rendering.compiler import DEFAULT_TIMEOUT_S, KEEP_LATEX_ARTIFACTS, LATEX_COMPILER, MAX_OUTPUT_BYTES
from rescribe.exceptions import InputValidationError
from rescribe.utils.latex_sanitizer import sanitize_latex
from rescribe.utils.timestamp import epoch_ms


@dataclass
class UploadResult:
    """
    Outcome of the upload flow.

    Attributes:
        latex: Sanitized LaTeX that was compiled
        provider: Chain position that produced the LaTeX
        provider_name: Concrete provider (e.g., "gemini/gemini-2.5-flash")
        artifact: Published PDF location
        pdf_url: Public URL with cache-busting query parameter
        log: Compiler log of the successful run
    """

    latex: str
    provider: ProviderRole
    provider_name: str
    artifact: PublishedArtifact
    pdf_url: str
    log: str


@dataclass
class RecompileResult:
    """Outcome of the recompile flow."""

    latex: str
    artifact: PublishedArtifact
    pdf_url: str
    log: str


def with_cache_buster(url: str, stamp: Optional[int] = None) -> str:
    """Append t=<epoch ms> so clients never show a stale cached PDF."""
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}t={stamp if stamp is not None else epoch_ms()}"


class ResumePipeline:
    """
    Wires intake, generation, rendering and publishing together.

    Args:
        chain: AI generation chain
        publisher: Artifact publisher
        scratch_root: Parent directory for per-job scratch directories
        compiler: pdflatex path or directory
        compile_timeout: Seconds before the compiler is killed
        max_output_bytes: Cap on captured compiler output
        max_upload_bytes: Upload size limit
        keep_artifacts: Keep scratch directories after a successful publish
        cleanup_queue: Background queue for stale-PDF removal (None disables cleanup)
    """

    def __init__(
        self,
        chain: GenerationChain,
        publisher: ArtifactPublisher,
        scratch_root: Union[str, Path],
        compiler: Optional[str] = LATEX_COMPILER,
        compile_timeout: float = DEFAULT_TIMEOUT_S,
        max_output_bytes: int = MAX_OUTPUT_BYTES,
        max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
        keep_artifacts: bool = KEEP_LATEX_ARTIFACTS,
        cleanup_queue: Optional[CleanupQueue] = None,
    ):
        self.chain = chain
        self.publisher = publisher
        self.scratch_root = Path(scratch_root)
        self.compiler = compiler
        self.compile_timeout = compile_timeout
        self.max_output_bytes = max_output_bytes
        self.max_upload_bytes = max_upload_bytes
        self.keep_artifacts = keep_artifacts
        self.cleanup_queue = cleanup_queue

    async def process_upload(
        self,
        data: Optional[bytes],
        content_type: Optional[str],
        identity: Identity,
        file_name: Optional[str] = None,
    ) -> UploadResult:
        """
        Turn an uploaded resume PDF into a published, AI-formatted PDF.

        Raises:
            InputValidationError: NO_FILE, INVALID_FILE_TYPE, FILE_TOO_LARGE
            PDFExtractionError: PDF_EXTRACTION_FAILED
            CompilationError: LATEX_COMPILATION_FAILED or COMPILER_NOT_FOUND
            PublishError: STORAGE_UPLOAD_FAILED
        """
        validate_upload(data, content_type, self.max_upload_bytes)
        text = await asyncio.to_thread(extract_text_from_pdf, data)

        generation = await self.chain.generate(text)
        logger.info(f"LaTeX for {identity} supplied by {generation.provider_name}")

        artifact, pdf_url, log = await self._compile_and_publish(generation.latex, identity, file_name)
        return UploadResult(
            latex=generation.latex,
            provider=generation.provider,
            provider_name=generation.provider_name,
            artifact=artifact,
            pdf_url=pdf_url,
            log=log,
        )

    async def recompile(
        self,
        latex: Optional[str],
        identity: Identity,
        file_name: Optional[str] = None,
    ) -> RecompileResult:
        """
        Sanitize user-edited LaTeX, compile it and publish the PDF.

        Raises:
            InputValidationError: INVALID_LATEX (not a string) or EMPTY_LATEX (blank)
            CompilationError: LATEX_COMPILATION_FAILED or COMPILER_NOT_FOUND
            PublishError: STORAGE_UPLOAD_FAILED
        """
        if not isinstance(latex, str):
            raise InputValidationError(
                "No LaTeX code provided",
                details="Please provide LaTeX code to compile",
                code="INVALID_LATEX",
            )

        sanitized = sanitize_latex(latex)
        if not sanitized.strip():
            raise InputValidationError(
                "LaTeX code is empty",
                details="Please provide non-empty LaTeX code",
                code="EMPTY_LATEX",
            )

        artifact, pdf_url, log = await self._compile_and_publish(sanitized, identity, file_name)
        return RecompileResult(latex=sanitized, artifact=artifact, pdf_url=pdf_url, log=log)

    async def _compile_and_publish(
        self, latex: str, identity: Identity, file_name: Optional[str]
    ) -> Tuple[PublishedArtifact, str, str]:
        job = await asyncio.to_thread(create_job, latex, self.scratch_root)
        logger.info(f"Job {job.id} for {identity}: compiling in {job.work_dir}")

        try:
            outcome = await compile_latex(
                job.work_dir,
                executable=self.compiler,
                timeout=self.compile_timeout,
                max_output_bytes=self.max_output_bytes,
                job_id=job.id,
            )
        except Exception:
            logger.warning(f"Job {job.id} failed; scratch directory kept at {job.work_dir}")
            raise

        artifact = await self.publisher.publish(outcome.pdf_path, identity, file_name)

        if self.cleanup_queue is not None:
            self.cleanup_queue.submit(identity, keep=[artifact.storage_path])

        if not self.keep_artifacts:
            await asyncio.to_thread(discard_job, job.work_dir)

        return artifact, with_cache_buster(artifact.public_url), outcome.log

"""Exceptions raised by the rescribe pipeline, each with a stable error code."""

from typing import Optional


class RescribeError(Exception):
    """
    Base class for pipeline errors surfaced to the caller.

    Attributes:
        message: Short error description
        code: Stable machine-readable code (e.g., "LATEX_COMPILATION_FAILED")
        details: Human-readable explanation suitable for the end user
    """

    code = "PROCESSING_ERROR"

    def __init__(self, message: str, details: Optional[str] = None, code: Optional[str] = None):
        self.message = message
        self.details = details or message
        if code is not None:
            self.code = code

        parts = [message]
        if details and details != message:
            parts.append(details)

        super().__init__("\n".join(parts))


class InputValidationError(RescribeError):
    """Rejected input that never reaches the AI or compile stages."""

    code = "INVALID_INPUT"


class PDFExtractionError(InputValidationError):
    """PDF bytes could not be parsed, or contained no selectable text."""

    code = "PDF_EXTRACTION_FAILED"


class CompilationError(RescribeError):
    """
    LaTeX compilation exited unsuccessfully.

    Attributes:
        log: Combined diagnostic log (engine .log file, or stdout + stderr)
        stdout: Captured compiler stdout
        stderr: Captured compiler stderr
        line_number: Best-effort source line of the first error, if found
    """

    code = "LATEX_COMPILATION_FAILED"

    def __init__(
        self,
        message: str,
        log: str = "",
        stdout: str = "",
        stderr: str = "",
        line_number: Optional[int] = None,
    ):
        self.log = log
        self.stdout = stdout
        self.stderr = stderr
        self.line_number = line_number

        if line_number is not None:
            details = f"LaTeX error on line {line_number}. Check the compile log for details."
        else:
            details = log or message

        # Keep the raw log in str(error) so callers can present it verbatim
        full_message = f"{message}: {log}" if log else message
        super().__init__(full_message, details=details)
        self.message = message


class CompilerNotFoundError(CompilationError):
    """The LaTeX executable could not be spawned."""

    code = "COMPILER_NOT_FOUND"


class StorageError(RescribeError):
    """A storage backend operation failed."""

    code = "STORAGE_ERROR"

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class PublishError(RescribeError):
    """Uploading the compiled PDF failed after all retries."""

    code = "STORAGE_UPLOAD_FAILED"

    def __init__(self, message: str, last_error: Optional[BaseException] = None):
        self.last_error = last_error
        super().__init__(message)

"""
rescribe - PDF resume to compiled LaTeX resume

Turns an uploaded PDF resume into ATS-friendly LaTeX with an AI provider chain,
repairs and compiles that LaTeX, and publishes the PDF to per-user storage.

Architecture:
- Intake Context: PDF upload validation and text extraction
- Generation Context: Prompted LaTeX generation with provider fallback
- Rendering Context: Scratch directories and pdflatex invocation
- Publishing Context: Durable per-user storage with retry and cleanup
"""

__version__ = "0.1.0"

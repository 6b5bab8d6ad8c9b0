"""
Shared fixtures: a fake pdflatex executable and an in-memory text PDF builder.
"""

import stat

import pytest

# Stand-in for pdflatex. Behavior is keyed on markers in resume.tex:
#   SLEEP -> hangs (timeout tests)
#   FAIL  -> writes an error log and exits 1
#   else  -> writes resume.pdf and a log with one warning, exits 0
FAKE_PDFLATEX = r"""#!/bin/sh
for last; do :; done
if grep -q 'SLEEP' "$last"; then
  exec sleep 30
fi
if grep -q 'FAIL' "$last"; then
  printf '! Undefined control sequence.\nl.7 \\FAIL\n' > resume.log
  echo "fake compile failed" >&2
  exit 1
fi
printf '%%PDF-1.4\n%%%%EOF\n' > resume.pdf
printf 'LaTeX Warning: Reference undefined.\n' > resume.log
echo "Output written on resume.pdf"
exit 0
"""


@pytest.fixture
def fake_pdflatex(tmp_path):
    """Path to an executable fake pdflatex script."""
    script = tmp_path / "texbin" / "pdflatex"
    script.parent.mkdir()
    script.write_text(FAKE_PDFLATEX)
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return script


def _build_text_pdf(lines):
    """Single-page PDF (Helvetica) with one text line per entry, xref offsets computed."""
    ops = ["BT", "/F1 12 Tf", "14 TL", "72 720 Td"]
    for line in lines:
        escaped = line.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")
        ops.append(f"({escaped}) Tj T*")
    ops.append("ET")
    stream = "\n".join(ops).encode("latin-1")

    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] /Contents 4 0 R "
        b"/Resources << /Font << /F1 5 0 R >> >> >>",
        b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"\nendstream",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]

    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, 1):
        offsets.append(len(out))
        out += b"%d 0 obj\n" % number + body + b"\nendobj\n"

    xref_offset = len(out)
    out += b"xref\n0 %d\n" % (len(objects) + 1)
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += b"%010d 00000 n \n" % offset
    out += b"trailer\n<< /Size %d /Root 1 0 R >>\nstartxref\n%d\n%%%%EOF\n" % (
        len(objects) + 1,
        xref_offset,
    )
    return bytes(out)


@pytest.fixture
def make_text_pdf():
    """Factory fixture: make_text_pdf(["line 1", "line 2"]) -> PDF bytes."""
    return _build_text_pdf

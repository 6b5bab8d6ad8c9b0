"""
LaTeX Sanitizer

Best-effort repair of AI-generated or user-edited LaTeX before compilation.

The passes are heuristics, not a parser: every public function returns a string and
never raises, and sanitize_latex() is idempotent so later stages can re-apply it.

Passes applied by sanitize_latex(), in order:
    1. Neutralize shell-escape and file-write primitives
    2. Remove inline comment spans that would swallow following commands
    3. Collapse doubled line-break escapes
    4. Fix known AI typos in rule commands
    5. Balance itemize environments before sections and the document end
    6. Strip redefinitions of \\hrulefill
    7. Remove a period after \\end{document}
    8. Drop trailing periods from placeholder profile links
"""

import re
import unicodedata
from typing import Any, List, Tuple

from rescribe.utils.text_processing import extract_balanced_delimiters

BLOCKED_MARKER = "% blocked"

DOCUMENT_RE = re.compile(r"\\documentclass[\s\S]*\\end\{document\}")
VALID_DOCUMENT_RE = re.compile(r"^\s*\\documentclass[\s\S]*\\end\{document\}\s*$")

# Fences with an optional language tag, and the <<< >>> markers the prompt wraps input in
_FENCE_RE = re.compile(r"`{3,}[ \t]*[A-Za-z]*|<<<|>>>")

_SHELL_ESCAPE_RE = re.compile(r"\\write18\s*(?:\{[^{}]*\})?[ \t]*\n?", re.IGNORECASE)
_FILE_WRITE_RE = re.compile(
    r"\\openout\s*\d+(?:\s*=\s*[^\s\\{}%]+)?[ \t]*\n?", re.IGNORECASE
)

# Unescaped % up to (not including) the next command on the same line. A % is
# unescaped when preceded by an even run of backslashes (\\% is a line break and a
# comment). URL escapes such as %20 inside \href targets are not comments.
_INLINE_COMMENT_RE = re.compile(
    r"(?<!\\)(?P<breaks>(?:\\\\)*)%(?![0-9][0-9A-Fa-f])[^\\\n]*(?=\\)"
)

_BACKSLASH_RUN_RE = re.compile(r"\\{4,}")

_RULE_TYPO_RE = re.compile(r"\\ule\{")
_RULE_DIMENSION_RE = re.compile(
    r"(\\rule\s*(?:\[[^\]]*\])?\s*\{)\s*(linewidth|textwidth|columnwidth)\s*\}"
)
_HRULE_TRAILING_RE = re.compile(r"\\hrule[ \t]+$", re.MULTILINE)

_ITEMIZE_TOKEN_RE = re.compile(
    r"\\begin\s*\{itemize\}|\\end\s*\{itemize\}|\\(?:sub){0,2}section\b\*?|\\end\s*\{document\}"
)
_LINE_COMMENT_RE = re.compile(r"(?<!\\)(?:\\\\)*%")
ITEMIZE_CLOSE = r"\end{itemize}"

_HRULEFILL_REDEFINITION_RE = re.compile(
    r"\\(?:re)?newcommand\*?\s*(?:\{\s*\\hrulefill\s*\}|\\hrulefill\b)\s*(?:\[\d\])?\s*"
)

_END_DOCUMENT_PERIOD_RE = re.compile(r"\\end\{document\}[ \t]*\.+")

_PLACEHOLDER_LINK_RES = [
    re.compile(r"(\\href\s*\{\s*https?://(?:www\.)?linkedin\.com/[^{}\s]*?)\.+(\s*\})"),
    re.compile(r"(\\href\s*\{\s*https?://(?:www\.)?github\.com/[^{}\s]*?)\.+(\s*\})"),
    re.compile(r"(\\href\s*\{\s*mailto:[^{}\s]*?)\.+(\s*\})"),
]

# Order matters: backslash first so later replacements are never re-escaped
LATEX_SPECIAL_CHARS = {
    "\\": r"\textbackslash{}",
    "{": r"\{",
    "}": r"\}",
    "$": r"\$",
    "#": r"\#",
    "%": r"\%",
    "&": r"\&",
    "_": r"\_",
    "^": r"\textasciicircum{}",
    "~": r"\textasciitilde{}",
}
_LATEX_SPECIAL_RE = re.compile("|".join(re.escape(char) for char in LATEX_SPECIAL_CHARS))

_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]")
_UNICODE_REPLACEMENTS = {
    "\u201c": '"',
    "\u201d": '"',
    "\u2018": "'",
    "\u2019": "'",
    "\u2013": "-",
    "\u2014": "-",
    "\u2022": "-",
}


# =============================================================================
# EXTRACTION
# =============================================================================


def strip_markdown_fences(text: Any) -> str:
    """
    Remove Markdown code fences and <<< >>> boundary markers, then trim.

    Fences may carry a language tag (```latex, ```text, ```python). Removal
    repeats until no marker remains, so deleting one marker cannot leave a new one
    behind.

    Example:
        >>> strip_markdown_fences("```latex\\n\\\\documentclass{article}\\n```")
        '\\\\documentclass{article}'
    """
    if not text or not isinstance(text, str):
        return ""

    count = 1
    while count:
        text, count = _FENCE_RE.subn("", text)

    return text.strip()


def extract_latex_document(text: Any) -> str:
    """
    Return the span from the first \\documentclass through the last \\end{document}.

    Surrounding prose is dropped. Input without such a span is returned unchanged,
    which callers detect with is_valid_latex_document().
    """
    if not isinstance(text, str):
        return ""

    match = DOCUMENT_RE.search(text)
    return match.group(0) if match else text


def is_valid_latex_document(text: Any) -> bool:
    """Check that text starts with \\documentclass and ends with \\end{document}."""
    return isinstance(text, str) and bool(VALID_DOCUMENT_RE.match(text))


def strip_bad_unicode(text: Any) -> str:
    """Drop control characters and map smart quotes, dashes and bullets to ASCII."""
    if not text or not isinstance(text, str):
        return ""

    text = _CONTROL_CHARS_RE.sub("", text)
    for char, replacement in _UNICODE_REPLACEMENTS.items():
        text = text.replace(char, replacement)
    return text


def to_ascii(text: str) -> str:
    """Transliterate to ASCII, dropping characters without an ASCII base form."""
    normalized = unicodedata.normalize("NFKD", strip_bad_unicode(text))
    return normalized.encode("ascii", "ignore").decode("ascii")


def escape_latex(text: Any) -> str:
    """
    Escape the ten LaTeX special characters for verbatim inclusion.

    Replacement happens in a single scan, so the braces introduced for
    \\textbackslash{} and friends are never escaped a second time.

    Example:
        >>> escape_latex("100% & $5_ok")
        '100\\\\% \\\\& \\\\$5\\\\_ok'
    """
    if not text:
        return ""

    return _LATEX_SPECIAL_RE.sub(lambda m: LATEX_SPECIAL_CHARS[m.group(0)], str(text))


# =============================================================================
# SANITATION PASSES
# =============================================================================


def neutralize_dangerous_commands(latex: str) -> str:
    r"""Replace \write18 and \openout primitives with an inert comment line."""
    latex = _SHELL_ESCAPE_RE.sub(BLOCKED_MARKER + "\n", latex)
    return _FILE_WRITE_RE.sub(BLOCKED_MARKER + "\n", latex)


def remove_inline_comments(latex: str) -> str:
    """
    Remove % comments that are followed by a command on the same line.

    Single-line documents are common in model output; in those, a comment
    silently swallows every command after it.
    """
    return _INLINE_COMMENT_RE.sub(r"\g<breaks>", latex)


def collapse_backslash_runs(latex: str) -> str:
    r"""
    Collapse runs of four or more backslashes (doubled \\ escapes).

    Even runs become a single line break (\\). Odd runs keep the trailing command
    backslash (\\\textbf stays a line break followed by \textbf).
    """
    return _BACKSLASH_RUN_RE.sub(
        lambda m: "\\\\\\" if len(m.group(0)) % 2 else "\\\\", latex
    )


def fix_rule_typos(latex: str) -> str:
    r"""Fix \ule -> \rule and \rule{linewidth} -> \rule{\linewidth}."""
    latex = _RULE_TYPO_RE.sub(r"\\rule{", latex)
    latex = _RULE_DIMENSION_RE.sub(r"\1\\\2}", latex)
    return _HRULE_TRAILING_RE.sub(r"\\hrule", latex)


def _code_portion(line: str) -> str:
    """Return the part of a line before its first unescaped % comment."""
    match = _LINE_COMMENT_RE.search(line)
    return line[: match.end() - 1] if match else line


def balance_itemize(latex: str) -> str:
    r"""
    Balance itemize environments with a line-oriented open counter.

    Transitions per token (tokens inside % comments are ignored):
        \begin{itemize}            -> count += 1
        \end{itemize}, count > 0   -> count -= 1
        \end{itemize}, count == 0  -> token dropped (stray close)
        \section / \end{document}  -> emit `count` close lines first, count = 0

    The counter never goes negative. Closes are injected on their own lines
    immediately before the structural token. Dropping a close can splice its
    neighbours into a new token (\end{itemi\end{itemize}ze}), so a line is
    rescanned until nothing more is dropped.
    """
    open_count = 0
    output: List[str] = []

    for line in latex.split("\n"):
        count_before = open_count
        rebuilt, open_count, dropped = _balance_line(line, count_before)
        dropped_any = dropped
        while dropped:
            rebuilt, open_count, dropped = _balance_line(rebuilt, count_before)

        # A line that held nothing but a stray close disappears entirely
        if dropped_any and not rebuilt.strip():
            continue
        output.append(rebuilt)

    return "\n".join(output)


def _balance_line(line: str, open_count: int) -> Tuple[str, int, bool]:
    """One scan of balance_itemize() over a line; returns (line, open_count, dropped)."""
    tokens = list(_ITEMIZE_TOKEN_RE.finditer(_code_portion(line)))
    if not tokens:
        return line, open_count, False

    pieces: List[str] = []
    cursor = 0
    dropped = False

    for token in tokens:
        text = token.group(0)

        if text.startswith("\\begin"):
            open_count += 1
            continue

        if "itemize" in text:
            if open_count > 0:
                open_count -= 1
            else:
                pieces.append(line[cursor : token.start()])
                cursor = token.end()
                dropped = True
            continue

        # Section start or document end closes everything still open
        if open_count > 0:
            before = line[cursor : token.start()]
            if before.strip():
                pieces.append(before.rstrip() + "\n")
            else:
                pieces.append(before)
            pieces.append((ITEMIZE_CLOSE + "\n") * open_count)
            cursor = token.start()
            open_count = 0

    pieces.append(line[cursor:])
    return "".join(pieces), open_count, dropped


def remove_hrulefill_redefinitions(latex: str) -> str:
    r"""
    Remove \newcommand / \renewcommand definitions of the built-in \hrulefill.

    The definition body (one balanced brace group) goes with the command. When the
    definition was the only thing on its line, the whole line is removed. Removal
    repeats until no definition is left, since a removed definition can splice its
    neighbours into a new one.
    """
    removed = _remove_hrulefill_once(latex)
    while removed != latex:
        latex, removed = removed, _remove_hrulefill_once(removed)
    return latex


def _remove_hrulefill_once(latex: str) -> str:
    pieces: List[str] = []
    cursor = 0

    for match in _HRULEFILL_REDEFINITION_RE.finditer(latex):
        start = match.start()
        if start < cursor:
            continue

        end = match.end()
        if end < len(latex) and latex[end] == "{":
            try:
                _, end = extract_balanced_delimiters(latex, end + 1)
            except ValueError:
                # Unbalanced body: drop the rest of the line
                newline = latex.find("\n", end)
                end = len(latex) if newline == -1 else newline

        line_start = latex.rfind("\n", 0, start) + 1
        line_end = latex.find("\n", end)
        if line_end == -1:
            line_end = len(latex)
        if line_start >= cursor and not latex[line_start:start].strip() and not latex[end:line_end].strip():
            start = line_start
            end = min(line_end + 1, len(latex))

        pieces.append(latex[cursor:start])
        cursor = end

    pieces.append(latex[cursor:])
    return "".join(pieces)


def remove_end_document_period(latex: str) -> str:
    r"""Remove a stray period right after \end{document}."""
    return _END_DOCUMENT_PERIOD_RE.sub(r"\\end{document}", latex)


def fix_placeholder_links(latex: str) -> str:
    """Drop trailing periods inside LinkedIn, GitHub and mailto link targets."""
    for pattern in _PLACEHOLDER_LINK_RES:
        latex = pattern.sub(r"\1\2", latex)
    return latex


SANITIZE_PASSES = (
    neutralize_dangerous_commands,
    remove_inline_comments,
    collapse_backslash_runs,
    fix_rule_typos,
    balance_itemize,
    remove_hrulefill_redefinitions,
    remove_end_document_period,
    fix_placeholder_links,
)


def _sanitize_once(latex: str) -> str:
    for sanitize_pass in SANITIZE_PASSES:
        latex = sanitize_pass(latex)
    return latex


def sanitize_latex(latex: Any) -> str:
    """
    Repair LaTeX so it is safer and more likely to compile.

    Non-string or empty input yields "". The ordered passes are repeated until the
    output stops changing, which makes the function idempotent. Never raises; a
    missing \\documentclass / \\end{document} pair is left for the caller to detect.
    """
    if not latex or not isinstance(latex, str):
        return ""

    sanitized = _sanitize_once(latex)
    while sanitized != latex:
        latex, sanitized = sanitized, _sanitize_once(sanitized)

    return latex


def sanitize_with_report(latex: Any) -> Tuple[str, List[str]]:
    """
    Sanitize and report which passes changed the input on the first sweep.

    Used for debug logging; the returned LaTeX equals sanitize_latex(latex).
    """
    if not latex or not isinstance(latex, str):
        return "", []

    changed = []
    current = latex
    for sanitize_pass in SANITIZE_PASSES:
        updated = sanitize_pass(current)
        if updated != current:
            changed.append(sanitize_pass.__name__)
        current = updated

    return sanitize_latex(latex), changed

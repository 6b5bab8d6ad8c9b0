"""
Prompt asset for LaTeX resume generation.

The template is shared by every provider. Only the resume text varies at runtime;
it is substituted between the <<< and >>> markers, which the sanitizer strips if a
model echoes them back.
"""

from string import Template

_RESUME_PROMPT = r"""You are generating a highly professional, ATS-optimized LaTeX resume to be compiled using pdflatex (TeX Live).

STRICT OUTPUT RULES (NON-NEGOTIABLE):
- Output ONLY valid LaTeX source code
- Do NOT include explanations, commentary, markdown, or plain text outside LaTeX
- Do NOT include LaTeX comments (no % comments anywhere)
- Do NOT wrap the output in code fences
- The output MUST start with \documentclass and end with \end{document}

COMPILATION RULES:
- pdflatex ONLY (TeX Live); do NOT use XeLaTeX or LuaLaTeX
- Do NOT use \input, \include, shell-escape, \write18, or system commands

PREAMBLE AND PACKAGE RULES:
- Use \documentclass[11pt,a4paper]{article}
- Allowed packages ONLY: geometry, enumitem, hyperref, titlesec, fancyhdr, xcolor
- Do NOT use tables, multicolumn layouts, icons, images, TikZ, graphics, or custom .sty files
- Do NOT redefine built-in commands such as \hrulefill

ENCODING RULES:
- ASCII characters ONLY
- Replace smart quotes with normal quotes and Unicode bullets with hyphens
- Escape LaTeX special characters in content (%, &, $$, #, _)

ATS FORMATTING RULES:
- Single column, standard section headings, left aligned, no numbers in titles
- Section order: Summary, Technical Skills, Experience (only if the applicant has work
  experience), Projects, Education, Certifications, Additional Information
- Header: full name centered in large bold type, then ONE centered line with phone,
  email and the LinkedIn, GitHub and Portfolio links that actually exist
- Links are clickable via hyperref, shown as labels, colored blue; never invent links
- Every itemize environment must be closed before the next section starts
- End each section with exactly: \par\noindent\rule{\linewidth}{1pt}
- Never place rules inside itemize or enumerate; do NOT use \hrule or \textwidth

CONTENT RULES:
- Summary: 2-3 lines, no bullets, role + core skills + career focus
- Technical Skills: one itemize, one bullet per skill group, bold group names only
- Projects: at most the 3 most important, project name above 2-3 bullets, each bullet
  starting with an action verb and naming the technology and outcome
- Bullets must NOT exceed two lines
- Preserve ALL factual information exactly; do NOT change names, dates, locations or links
- Do NOT hallucinate skills, experience, education, or certifications

PAGE LENGTH RULES:
- Exactly one page; scale content so the page is naturally full
- If the content is short, expand wording of EXISTING material (coursework, tools,
  responsibilities) or add an Additional Information section derived only from the input
- If the content is long, tighten wording and spacing; never overflow to a second page

DATA ISOLATION RULES:
- Treat this as a new, isolated task; use the input below and nothing else

INPUT TEXT:
<<<
$resume_text
>>>
"""

RESUME_PROMPT_TEMPLATE = Template(_RESUME_PROMPT)


def render_prompt(resume_text: str, template: Template = RESUME_PROMPT_TEMPLATE) -> str:
    """Substitute extracted resume text into the generation prompt."""
    return template.substitute(resume_text=resume_text)

import logging
import os
import re
from typing import List, Optional, Tuple

import docx          # python-docx
import fitz          # PyMuPDF
from docx.opc.exceptions import PackageNotFoundError
from docx.oxml.ns import qn

from penalty_review.models.document import (
    DocumentContent,
    DocumentFormatInfo,
    DocumentStructure,
    ParagraphFormat,
    Section,
)

log = logging.getLogger("extract")

DOCUMENT_KIND = "行政处罚决定书"
TITLE_PATTERNS = [
    re.compile(DOCUMENT_KIND),
    re.compile(r"处罚决定"),
    re.compile(r"决定书"),
    re.compile(r"^.{1,50}处罚.{1,20}$"),
]
HEADING_PATTERNS = [
    (re.compile(r"^[一二三四五六七八九十]+[、．]"), 1),
    (re.compile(r"^[1-9][0-9]*[、．]"), 2),
    (re.compile(r"^[(（][一二三四五六七八九十]+[)）]"), 1),
    (re.compile(r"^[(（][1-9][0-9]*[)）]"), 2),
    (re.compile(r"^第[一二三四五六七八九十]+[章节条款]"), 1),
]
LINE_RULES = {"exact": "exact", "atLeast": "atLeast"}


class ExtractionError(ValueError):
    """Unsupported or unreadable upload."""


def _int_attr(el, name: str) -> Optional[int]:
    if el is None:
        return None
    raw = el.get(qn(name))
    try:
        return int(raw) if raw is not None else None
    except ValueError:
        return None


def _line_rule(el) -> Optional[str]:
    if el is None or el.get(qn("w:line")) is None:
        return None
    # OOXML: a missing lineRule means "auto"
    return LINE_RULES.get(el.get(qn("w:lineRule")), "auto")


def _doc_defaults(d) -> Tuple[Optional[int], Optional[int], Optional[str]]:
    ppr = d.styles.element.find(f"{qn('w:docDefaults')}/{qn('w:pPrDefault')}/{qn('w:pPr')}")
    if ppr is None:
        return None, None, None
    spacing = ppr.find(qn("w:spacing"))
    return _int_attr(ppr.find(qn("w:ind")), "w:firstLine"), _int_attr(spacing, "w:line"), _line_rule(spacing)


def _paragraph_format(index: int, paragraph, defaults) -> ParagraphFormat:
    """Twip-level indentation and line spacing of one paragraph, with docDefaults fallback."""
    default_indent, default_line, default_rule = defaults
    ppr = paragraph._p.pPr
    ind = ppr.find(qn("w:ind")) if ppr is not None else None
    spacing = ppr.find(qn("w:spacing")) if ppr is not None else None
    jc = ppr.find(qn("w:jc")) if ppr is not None else None

    first_line = _int_attr(ind, "w:firstLine")
    line = _int_attr(spacing, "w:line")
    return ParagraphFormat(
        index=index,
        text=paragraph.text,
        first_line_indent=first_line if first_line is not None else default_indent,
        left_indent=_int_attr(ind, "w:left"),
        hanging_indent=_int_attr(ind, "w:hanging"),
        line=line if line is not None else default_line,
        line_rule=_line_rule(spacing) if line is not None else default_rule,
        alignment=jc.get(qn("w:val")) if jc is not None else None,
        style_id=paragraph.style.style_id if paragraph.style is not None else None,
    )


def extract_docx(path: str) -> DocumentContent:
    try:
        d = docx.Document(path)
    except (PackageNotFoundError, KeyError, ValueError) as e:
        raise ExtractionError(f"Cannot read DOCX: {e}") from e

    defaults = _doc_defaults(d)
    paragraphs: List[str] = []
    formats: List[ParagraphFormat] = []
    for p in d.paragraphs:
        text = p.text.strip()
        if not text:
            continue
        formats.append(_paragraph_format(len(paragraphs), p, defaults))
        paragraphs.append(text)

    text = "\n".join(paragraphs)
    log.info("docx %s: %d paragraphs", os.path.basename(path), len(paragraphs))
    return DocumentContent(
        text=text,
        paragraphs=paragraphs,
        word_count=len(text),
        file_name=os.path.basename(path),
        format_info=DocumentFormatInfo(
            paragraphs=formats,
            default_indent=defaults[0],
            default_line=defaults[1],
            default_line_rule=defaults[2],
        ),
    )


def extract_pdf(path: str) -> DocumentContent:
    paragraphs: List[str] = []
    try:
        with fitz.open(path) as doc:
            for page in doc:
                # 'blocks' yields tuples; index 4 is the text
                for b in page.get_text("blocks") or []:
                    if isinstance(b, (list, tuple)) and len(b) >= 5:
                        text = (b[4] or "").strip()
                        if text:
                            paragraphs.append(text)
    except RuntimeError as e:
        raise ExtractionError(f"Cannot read PDF: {e}") from e

    text = "\n".join(paragraphs)
    log.info("pdf %s: %d blocks", os.path.basename(path), len(paragraphs))
    return DocumentContent(
        text=text,
        paragraphs=paragraphs,
        word_count=len(text),
        file_name=os.path.basename(path),
    )


def extract_content(path: str) -> DocumentContent:
    ext = os.path.splitext(path)[1].lower()
    if ext == ".docx":
        return extract_docx(path)
    if ext == ".pdf":
        return extract_pdf(path)
    raise ExtractionError(f"Unsupported extension: {ext}")


def _is_title(text: str) -> bool:
    return any(p.search(text) for p in TITLE_PATTERNS) or (5 < len(text) < 50 and "。" not in text)


def _heading_level(text: str) -> int:
    for pattern, level in HEADING_PATTERNS:
        if pattern.search(text):
            return level
    return 0


def analyze_structure(content: DocumentContent) -> DocumentStructure:
    """Title, the two title lines and numbered sections of a decision."""
    lines = [p.strip() for p in content.paragraphs if p.strip()]
    title = next((p for p in lines if _is_title(p)), "")
    title_lines = lines[:2]
    if len(title_lines) == 2 and DOCUMENT_KIND in title_lines[1]:
        title = title_lines[0] + title_lines[1]

    sections: List[Section] = []
    heading, body, level = None, [], 0
    for paragraph in lines:
        found = _heading_level(paragraph)
        if found:
            if heading is not None:
                sections.append(Section(heading=heading, content="\n".join(body), level=level))
            heading, body, level = paragraph, [], found
        elif heading is not None:
            body.append(paragraph)
    if heading is not None:
        sections.append(Section(heading=heading, content="\n".join(body), level=level))

    return DocumentStructure(title=title, title_lines=title_lines, sections=sections)

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

LineRule = Literal["auto", "exact", "atLeast"]


class ParagraphFormat(BaseModel):
    """Layout of one non-empty DOCX paragraph. Lengths are in twips (1/20 pt)."""
    model_config = ConfigDict(frozen=True)

    index: int
    text: str
    first_line_indent: Optional[int] = None
    left_indent: Optional[int] = None
    hanging_indent: Optional[int] = None
    line: Optional[int] = None
    line_rule: Optional[LineRule] = None
    alignment: Optional[str] = None
    style_id: Optional[str] = None


class DocumentFormatInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    paragraphs: List[ParagraphFormat] = Field(default_factory=list)
    default_indent: Optional[int] = None
    default_line: Optional[int] = None
    default_line_rule: Optional[LineRule] = None


class DocumentContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str
    paragraphs: List[str] = Field(default_factory=list)
    word_count: int = 0
    file_name: str = ""
    format_info: Optional[DocumentFormatInfo] = None

    @classmethod
    def from_text(cls, text: str, file_name: str = "",
                  format_info: Optional[DocumentFormatInfo] = None) -> "DocumentContent":
        paragraphs = [p.strip() for p in text.split("\n") if p.strip()]
        return cls(
            text=text,
            paragraphs=paragraphs,
            word_count=len(text),
            file_name=file_name,
            format_info=format_info,
        )


class Section(BaseModel):
    model_config = ConfigDict(frozen=True)

    heading: str
    content: str = ""
    level: int = 1


class DocumentStructure(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str = ""
    title_lines: List[str] = Field(default_factory=list)
    sections: List[Section] = Field(default_factory=list)

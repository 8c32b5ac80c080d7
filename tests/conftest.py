# tests/conftest.py
from __future__ import annotations
import datetime as dt
import io
import shutil
import tempfile
from typing import Generator, List

import pytest
from fastapi.testclient import TestClient

from penalty_review.main import app
from penalty_review.core import config
from penalty_review.models.document import DocumentContent, DocumentFormatInfo, ParagraphFormat
from penalty_review.services.extract import analyze_structure
from penalty_review.services.llm import LLMError

import fitz  # PyMuPDF
import docx
from docx.shared import Pt

TODAY = dt.date(2025, 6, 1)

# A decision that passes every rule in the catalog
COMPLIANT_PARAGRAPHS = [
    "XX市市场监督管理局",
    "行政处罚决定书",
    "（XX市监）罚处〔2025〕18号",
    "当事人：XX市明达商贸有限公司",
    "统一社会信用代码：91330100MA2XXXXXXX",
    "法定代表人：王明",
    "住所：XX市XX区XX路88号",
    "经查，2025年3月10日，本局执法人员对当事人位于XX市XX区XX路88号的经营场所进行现场检查，"
    "发现当事人货架上陈列销售的预包装食品“XX牌桃酥”共计120袋，其标签未标注生产日期和保质期。"
    "经进一步调查，上述食品系当事人从XX食品厂购进，购进价格每袋6元，当事人按每袋10元的价格对外销售，"
    "截至检查之日已售出80袋，违法所得320元。",
    "以上事实有现场检查笔录、询问笔录、进货票据、营业执照复印件及现场照片等证据证明。",
    "当事人的上述行为违反了《中华人民共和国食品安全法》第七十一条第一款的规定，"
    "属于经营标签不符合规定的预包装食品的行为。",
    "本局已依法向当事人告知拟作出行政处罚的事实、理由、依据及当事人依法享有的陈述、申辩权利，"
    "当事人在法定期限内未提出陈述、申辩意见。",
    "依据《中华人民共和国食品安全法》第一百二十五条第一款第（二）项的规定，"
    "本局决定对当事人作出如下行政处罚：",
    "一、没收违法所得320元；",
    "二、罚款人民币5000元。",
    "当事人应当自收到本决定书之日起十五日内，持本决定书到指定银行缴纳罚款。",
    "当事人逾期不缴纳罚款的，本局将每日按罚款数额的百分之三加处罚款，并依法申请人民法院强制执行。",
    "如不服本处罚决定，可以在收到本决定书之日起六十日内向XX市人民政府申请行政复议；"
    "也可以在收到本决定书之日起六个月内直接向XX市XX区人民法院提起行政诉讼。",
    "XX市市场监督管理局",
    "2025年5月10日",
]


def well_formatted(paragraphs: List[str]) -> DocumentFormatInfo:
    return DocumentFormatInfo(paragraphs=[
        ParagraphFormat(index=i, text=p, first_line_indent=420, line=560, line_rule="exact")
        for i, p in enumerate(paragraphs)
    ])


def make_content(paragraphs: List[str], formatted: bool = True) -> DocumentContent:
    return DocumentContent.from_text(
        "\n".join(paragraphs),
        file_name="decision.docx",
        format_info=well_formatted(paragraphs) if formatted else None,
    )


class FakeChatClient:
    """Replays canned replies; an Exception in the list is raised instead."""
    model = "fake-model"

    def __init__(self, replies):
        self.replies = list(replies)
        self.calls = []

    def chat(self, messages, temperature=0.3, max_tokens=2048):
        self.calls.append(messages)
        if not self.replies:
            raise LLMError("no canned reply left")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


# --------------------------------------------------------------------
# Fixtures for temporary DATA_DIR so tests don't pollute real data dir
# --------------------------------------------------------------------
@pytest.fixture(scope="session")
def tmp_data_dir() -> Generator[str, None, None]:
    d = tempfile.mkdtemp(prefix="test-data-")
    yield d
    shutil.rmtree(d, ignore_errors=True)

@pytest.fixture(autouse=True, scope="session")
def patch_data_dir(tmp_data_dir):
    config.DATA_DIR = tmp_data_dir

@pytest.fixture(autouse=True)
def no_llm_credentials(monkeypatch):
    # tests never reach a real endpoint
    monkeypatch.delenv(config.LLM_API_KEY_ENV, raising=False)

# --------------------------------------------------------------------
# FastAPI test client available as fixture `client`
# --------------------------------------------------------------------
@pytest.fixture(scope="session")
def client() -> TestClient:
    return TestClient(app)

# --------------------------------------------------------------------
# Documents
# --------------------------------------------------------------------
@pytest.fixture
def today() -> dt.date:
    return TODAY

@pytest.fixture
def compliant_paragraphs() -> List[str]:
    return list(COMPLIANT_PARAGRAPHS)

@pytest.fixture
def compliant_content() -> DocumentContent:
    return make_content(COMPLIANT_PARAGRAPHS)

@pytest.fixture
def compliant_structure(compliant_content):
    return analyze_structure(compliant_content)

@pytest.fixture
def fake_chat():
    return FakeChatClient

# --------------------------------------------------------------------
# Helpers to create in-memory sample PDF and DOCX
# --------------------------------------------------------------------
def _pdf_bytes(text: str) -> bytes:
    doc = fitz.open()
    page = doc.new_page()
    page.insert_text((72, 100), text, fontsize=12)
    data = doc.tobytes()
    doc.close()
    return data

def docx_bytes(paragraphs: List[str], indent_pt: float = 21, line_pt: float = 28) -> bytes:
    d = docx.Document()
    for text in paragraphs:
        p = d.add_paragraph(text)
        if indent_pt:
            p.paragraph_format.first_line_indent = Pt(indent_pt)
        if line_pt:
            p.paragraph_format.line_spacing = Pt(line_pt)
    buf = io.BytesIO()
    d.save(buf)
    return buf.getvalue()

@pytest.fixture
def sample_pdf_bytes() -> bytes:
    return _pdf_bytes("This is a sample sentence.\nAnother line here.")

@pytest.fixture
def sample_docx_bytes() -> bytes:
    return docx_bytes(["This is a sample sentence.", "Another paragraph here."])

@pytest.fixture
def decision_docx_bytes() -> bytes:
    return docx_bytes(COMPLIANT_PARAGRAPHS)

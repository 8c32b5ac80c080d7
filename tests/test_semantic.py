import json

import pytest

from penalty_review.models.semantic import AnalysisOptions
from penalty_review.services.llm import LLMError, Parsed, Unparseable, extract_json
from penalty_review.services.semantic import (
    SemanticAnalysisError,
    SemanticAnalyzer,
    build_analysis_prompt,
    parse_analysis_response,
    refine_location,
    sanitize_text,
)

REPORT = {
    "issues": [
        {"type": "warning", "category": "逻辑一致性", "title": "金额表述不一致",
         "description": "罚款金额前后不同", "location": "第 12 段", "suggestion": "统一金额",
         "confidence": 92},
        {"type": "fatal", "title": "  多余空格 ", "description": "字段后有空格"},
    ],
    "summary": {"languageScore": 78, "logicScore": 88, "overallAssessment": "整体 良好"},
}


def test_extract_json_from_prose_with_fence():
    reply = "分析如下：\n```json\n" + json.dumps(REPORT, ensure_ascii=False) + "\n```\n以上。"
    result = extract_json(reply)
    assert isinstance(result, Parsed)
    assert result.payload["summary"]["logicScore"] == 88


def test_extract_json_ignores_braces_inside_strings():
    reply = '前言 {"a": "含有}的文本", "b": {"c": 1}} 后记 {坏的}'
    result = extract_json(reply)
    assert isinstance(result, Parsed)
    assert result.payload == {"a": "含有}的文本", "b": {"c": 1}}


def test_extract_json_unparseable():
    assert isinstance(extract_json("没有任何结构化内容"), Unparseable)
    assert isinstance(extract_json(""), Unparseable)


def test_json_reply_is_normalised():
    analysis = parse_analysis_response(json.dumps(REPORT, ensure_ascii=False))
    assert analysis.parsed_as == "json"
    assert [i.id for i in analysis.issues] == ["ai_1", "ai_2"]
    first, second = analysis.issues
    assert first.location == "第12段"
    assert first.confidence == 92
    assert second.type == "info"
    assert second.category == "AI分析"
    assert second.title == "多余空格"
    assert analysis.language_score == 78
    assert analysis.overall_assessment == "整体良好"


def test_natural_language_sections():
    reply = (
        "## 严重问题\n- 未写明当事人身份证号码\n- 缺少\n"
        "## 警告问题\n1. 法律条款引用不完整\n"
        "## 总体评价\n文书基本规范"
    )
    analysis = parse_analysis_response(reply)
    assert analysis.parsed_as == "natural_language"
    assert [(i.type, i.title) for i in analysis.issues] == [("critical", "严重问题"), ("warning", "警告问题")]
    assert analysis.language_score == 95 - 10 - 5
    assert analysis.overall_assessment == "文书基本规范"


def test_keyword_fallback_and_empty():
    analysis = parse_analysis_response("文书整体尚可，但有个别表述不规范。")
    assert [i.title for i in analysis.issues] == ["AI检测到改进点"]
    assert analysis.issues[0].location == "全文"
    assert analysis.language_score == 80

    empty = parse_analysis_response("OK")
    assert empty.parsed_as == "empty"
    assert empty.issues == []


def test_sanitize_and_locations():
    assert sanitize_text('"description": "罚款 金额 不一致"') == "罚款金额不一致"
    assert sanitize_text("") == "内容待补充"
    assert refine_location("第 三 部分") == "第三部分"
    assert refine_location("", "复议期限表述有误") == "救济及履行要求段"
    assert refine_location(None, "") == "全文"


def test_prompt_reflects_options(compliant_content, compliant_structure):
    strict = build_analysis_prompt(compliant_content, compliant_structure, AnalysisOptions(strict_mode=True))
    lax = build_analysis_prompt(compliant_content, compliant_structure,
                                AnalysisOptions(enable_language_check=False))
    assert "请特别严格地审查所有细节问题。" in strict
    assert "标点符号使用规范" in strict and "标点符号使用规范" not in lax
    assert compliant_structure.title in strict


def test_analyzer_labels_model_and_wraps_transport_errors(fake_chat, compliant_content, compliant_structure):
    client = fake_chat([json.dumps(REPORT, ensure_ascii=False)])
    analysis = SemanticAnalyzer(client).analyze(compliant_content, compliant_structure)
    assert analysis.model_used == "fake-model"
    assert client.calls[0][0]["role"] == "system"

    broken = SemanticAnalyzer(fake_chat([LLMError("timeout")]))
    with pytest.raises(SemanticAnalysisError):
        broken.analyze(compliant_content, compliant_structure)

from backend.src.models.assistant import RagDocument
from backend.src.services.citation_utils import (
    extract_cited_source_indexes,
    parse_thinking_and_reply,
    remap_citation_indexes,
    resolve_cited_sources,
)


def _source(source_id: str) -> RagDocument:
    return RagDocument(id=source_id, source_type="Note", title=source_id, content="")


def test_parse_thinking_and_reply_with_both_tags():
    parsed = parse_thinking_and_reply("<think>step by step</think>Final answer")
    assert parsed.thinking == "step by step"
    assert parsed.reply == "Final answer"


def test_parse_thinking_and_reply_unterminated():
    parsed = parse_thinking_and_reply("<think>partial")
    assert parsed.thinking == "partial"
    assert parsed.reply == ""


def test_parse_thinking_and_reply_without_tags():
    parsed = parse_thinking_and_reply("  just an answer ")
    assert parsed.thinking == ""
    assert parsed.reply == "  just an answer "


def test_reply_leading_whitespace_is_trimmed_after_close_tag():
    parsed = parse_thinking_and_reply("<think> a </think>\n\nAnswer ")
    assert parsed.thinking == "a"
    assert parsed.reply == "Answer "


def test_extract_indexes_dedupes_in_first_appearance_order():
    assert extract_cited_source_indexes("see [3], [1] and [3] or [0] [x]") == [3, 1]


def test_only_ascii_digits_count_as_citations():
    content = "see ١ in [١] and [२], then [2]"
    sources = [_source("a"), _source("b")]

    assert extract_cited_source_indexes(content) == [2]
    citations = resolve_cited_sources(content, sources)
    assert remap_citation_indexes(content, citations) == "see ١ in [١] and [२], then [1]"


def test_round_trip_renumbers_densely():
    content = "Refs [2] [2] [1]"
    sources = [_source("a"), _source("b")]

    cited = resolve_cited_sources(content, sources)

    assert [c.source.id for c in cited] == ["b", "a"]
    assert [c.citation_index for c in cited] == [1, 2]
    assert [c.original_citation_index for c in cited] == [2, 1]
    assert remap_citation_indexes(content, cited) == "Refs [1] [1] [2]"


def test_out_of_range_citations_are_dropped_and_left_in_text():
    content = "A [5] B [2]"
    cited = resolve_cited_sources(content, [_source("a"), _source("b")])

    assert [(c.citation_index, c.original_citation_index) for c in cited] == [(1, 2)]
    assert remap_citation_indexes(content, cited) == "A [5] B [1]"


def test_same_source_under_two_indexes_counts_once():
    shared = _source("shared")
    content = "x [1] y [2] z [3]"
    cited = resolve_cited_sources(content, [shared, shared, _source("other")])

    assert [(c.source.id, c.citation_index) for c in cited] == [("shared", 1), ("other", 2)]
    # Index 2 resolved to a duplicate source, so it is left as written.
    assert remap_citation_indexes(content, cited) == "x [1] y [2] z [2]"


def test_remap_without_citations_returns_content():
    assert remap_citation_indexes("nothing [1]", []) == "nothing [1]"


def test_resolve_accepts_plain_mappings():
    cited = resolve_cited_sources("[1]", [{"id": "dict-source"}])
    assert cited[0].source == {"id": "dict-source"}

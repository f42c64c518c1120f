"""Tests for citation post-processing."""

from flowchat.conversation.models import SourceDocument
from flowchat.conversation.sources import dedupe_source_documents, is_valid_url


def doc(content: str, score: float | None = None, url: str | None = None) -> SourceDocument:
    metadata: dict[str, object] = {}
    if score is not None:
        metadata["score"] = score
    if url is not None:
        metadata["sourceUrl"] = url
    return SourceDocument(page_content=content, metadata=metadata)


class TestIsValidUrl:
    """Tests for is_valid_url."""

    def test_valid(self) -> None:
        assert is_valid_url("https://docs.example.com/a")

    def test_invalid(self) -> None:
        assert not is_valid_url(None)
        assert not is_valid_url("")
        assert not is_valid_url("just words")


class TestDedupeSourceDocuments:
    """Tests for dedupe_source_documents."""

    def test_scored_first_descending(self) -> None:
        result = dedupe_source_documents([doc("a"), doc("b", 0.2), doc("c", 0.9)])
        assert [d.page_content for d in result] == ["c", "b", "a"]

    def test_unscored_keep_order(self) -> None:
        result = dedupe_source_documents([doc("a"), doc("b"), doc("c")])
        assert [d.page_content for d in result] == ["a", "b", "c"]

    def test_duplicate_urls_keep_best(self) -> None:
        url = "https://docs.example.com/page"
        result = dedupe_source_documents([doc("low", 0.1, url), doc("high", 0.8, url)])
        assert [d.page_content for d in result] == ["high"]

    def test_documents_without_url_kept(self) -> None:
        result = dedupe_source_documents([doc("a", url="not a url"), doc("b", url="not a url")])
        assert len(result) == 2

"""Citation post-processing."""

from urllib.parse import urlparse

from flowchat.conversation.models import SourceDocument


def is_valid_url(value: str | None) -> bool:
    """Absolute URL with a scheme and a location."""
    if not value:
        return False
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return bool(parsed.scheme) and bool(parsed.netloc or parsed.path)


def dedupe_source_documents(documents: list[SourceDocument]) -> list[SourceDocument]:
    """Rank citations by score and drop repeated source URLs.

    Documents with a ``score`` come first, highest score first; the rest keep
    their relative order. Among documents sharing a valid ``sourceUrl`` only
    the best ranked is kept. Documents without a valid URL are always kept.
    """
    ranked = sorted(
        documents,
        key=lambda doc: (doc.score is None, -(doc.score or 0.0)),
    )

    seen: set[str] = set()
    result: list[SourceDocument] = []
    for doc in ranked:
        url = doc.source_url
        if not is_valid_url(url):
            result.append(doc)
            continue
        if url in seen:
            continue
        seen.add(url)
        result.append(doc)
    return result

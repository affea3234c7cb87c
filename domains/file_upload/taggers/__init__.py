"""Tag derivation strategies for uploaded files."""

from domains.file_upload.taggers.strategies import (
    ExprTagger,
    PlainTagger,
    RegexpTagger,
    Tagger,
    build_taggers,
)

__all__ = ["ExprTagger", "PlainTagger", "RegexpTagger", "Tagger", "build_taggers"]

import logging
import re
import string

logger = logging.getLogger(__name__)

# Patterns are ASCII-only on purpose: the vocabulary was fitted on text
# cleaned with ASCII word boundaries.
_TAG_RE = re.compile(r'<[^>]+>')
_ENTITY_RE = re.compile(r'&[a-z0-9#]+;', re.IGNORECASE)
_OBFUSCATION_RE = re.compile(r'\b(x{3,}|\.{3,}|-{3,})\b', re.ASCII)
_URL_RE = re.compile(r'https?://\S+', re.IGNORECASE)
_EMAIL_RE = re.compile(r'\S+@\S+')
_DIGITS_RE = re.compile(r'[0-9]+')
_PUNCTUATION_RE = re.compile(f"[{re.escape(string.punctuation)}]")


def _drop_short_tokens(text: str) -> str:
    # Digit and punctuation removal can expose new marker runs ("xxx1" -> "xxx"),
    # so keep filtering until nothing changes.
    while True:
        tokens = [t for t in _OBFUSCATION_RE.sub(' ', text).split() if len(t) > 2]
        cleaned = ' '.join(tokens)
        if cleaned == text:
            return cleaned
        text = cleaned


def clean_text(text) -> str:
    """
    Normalizes subject + HTML body into the token stream the term vectorizer
    and the lexical handcrafted features are computed on.

    The order of the steps matters and must match the offline cleaning that
    produced the vocabulary.
    """
    if not isinstance(text, str):
        logger.warning("clean_text received non-string input, returning empty string.")
        return ""

    cleaned = text.lower()
    cleaned = _TAG_RE.sub(' ', cleaned)
    cleaned = _ENTITY_RE.sub(' ', cleaned)
    cleaned = _OBFUSCATION_RE.sub(' ', cleaned)
    cleaned = _URL_RE.sub('', cleaned)
    cleaned = _EMAIL_RE.sub('', cleaned)
    cleaned = _DIGITS_RE.sub('', cleaned)
    cleaned = _PUNCTUATION_RE.sub(' ', cleaned)
    return _drop_short_tokens(cleaned)

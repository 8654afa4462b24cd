# --- START OF FILE: feature_engineering.py ---

import logging
import math
import re
from urllib.parse import urlparse

import numpy as np
from bs4 import BeautifulSoup

from . import heuristic_lists as hl

logger = logging.getLogger(__name__)

# Every feature this module computes, in the order the offline script wrote
# them. The model's own order comes from handcrafted_feature_names.json;
# this list is what a fresh export of that file would contain.
HANDCRAFTED_FEATURE_COLUMNS = [
    # Lexical
    'word_count',
    'char_count',
    'sentence_count',
    'avg_word_length',
    'avg_sentence_length',
    'forwarded_line_ratio',
    'short_sentence_ratio',
    # Links / URLs
    'num_links',
    'has_ip_url',
    'has_shortened_url',
    'link_text_url_mismatch',
    'suspicious_domain_keyword_count',
    'has_url_encoding',
    'has_unicode_in_url',
    'deceptive_url_pattern',
    'domain_mismatch',
    # Sender
    'sender_is_free_domain',
    'sender_claims_major_brand',
    'has_mismatched_sender_replyto',
    'has_reply_to',
    'multiple_from_fields',
    'suspicious_cc_bcc',
    # Content
    'phishing_keyword_count',
    'has_urgent_phrase',
    'has_attachment_mention',
    'has_generic_greeting',
    'has_threat_language',
    'has_financial_request',
    # Structure / markup
    'html_content_ratio',
    'has_forms',
    'has_button_tag',
    'input_field_count',
    'iframe_count',
    'hidden_element_count',
    'div_count',
    'suspicious_form_action',
    'external_form_submission',
    'form_with_password_field',
    'has_script_tag',
    'script_tag_count',
    'event_handler_count',
    'has_eval_pattern',
    'has_document_write',
    'has_window_open',
    'has_settimeout_interval',
    'has_js_obfuscation',
    # Style
    'exclamation_mark_count',
    'question_mark_count',
    'all_caps_char_ratio',
    # Visual deception
    'has_link_style_manipulation',
    'has_favicon_link',
    'has_fake_security_image',
    'has_status_bar_manipulation',
    'visual_deception_score',
]


def _alternation(words) -> str:
    return '(' + '|'.join(words) + ')'


# --- Compiled patterns ---
_SENTENCE_END_RE = re.compile(r'[.!?]+')
_TAG_RE = re.compile(r'<[^>]+>')

_IP_URL_RE = re.compile(r'https?://\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}', re.ASCII)
_SHORTENER_RE = re.compile(hl.URL_SHORTENER_PATTERN, re.IGNORECASE)
_SUSPICIOUS_DOMAIN_RE = re.compile(_alternation(hl.SUSPICIOUS_DOMAIN_KEYWORDS), re.IGNORECASE)
_LINK_PREFIX_RE = re.compile(r'^(https?://)?(www\.)?')
_LINK_TEXT_URL_RE = re.compile(r'^(https?://|www\.)')
_HREF_DOMAIN_RE = re.compile(r'https?://(?:www\.)?([^/]+)')
_URL_ENCODING_RE = re.compile(r'%[0-9A-Fa-f]{2}')
_UNICODE_ESCAPE_RE = re.compile(r'\\u[0-9a-fA-F]{4}')
_LOOKALIKE_RES = [
    re.compile(rf'{brand}[^\s]*\.com(?!\.{brand}\.com)', re.IGNORECASE) for brand in hl.LOOKALIKE_BRANDS
]

_FREE_MAIL_RE = re.compile(_alternation(hl.FREE_MAIL_PROVIDERS) + r'\.', re.IGNORECASE)
_BRAND_CLAIM_RE = re.compile(_alternation(hl.CLAIMED_BRAND_KEYWORDS), re.IGNORECASE)
_ADDRESS_DOMAIN_RE = re.compile(r'@([\w.-]+\.\w+)', re.ASCII)
_REPLY_TO_ANY_RE = re.compile(r'reply-to:')
_REPLY_TO_RE = re.compile(r'^reply-to:', re.IGNORECASE | re.MULTILINE)
_FROM_HEADER_RE = re.compile(r'^from:', re.IGNORECASE | re.MULTILINE)
_CC_BCC_RE = re.compile(r'^(cc|bcc):', re.IGNORECASE | re.MULTILINE)
_UNDISCLOSED_RE = re.compile(r'undisclosed', re.IGNORECASE)

_KEYWORD_RES = [re.compile(rf'\b{re.escape(kw)}\b', re.IGNORECASE | re.ASCII) for kw in hl.PHISHING_KEYWORDS]
_URGENT_RE = re.compile(rf'\b{_alternation(hl.URGENT_PHRASES)}\b', re.IGNORECASE | re.ASCII)
_ATTACHMENT_RE = re.compile(rf'\b{_alternation(hl.ATTACHMENT_WORDS)}\b', re.IGNORECASE | re.ASCII)
_GENERIC_GREETING_RE = re.compile(
    rf'\b{_alternation(hl.GREETING_OPENERS)}\s+{_alternation(hl.GENERIC_RECIPIENTS)}\b', re.IGNORECASE | re.ASCII
)
_THREAT_VERB_RE = re.compile(rf'\b{_alternation(hl.THREAT_VERBS)}', re.IGNORECASE | re.ASCII)
_THREAT_OBJECT_RE = re.compile(rf'{_alternation(hl.THREAT_OBJECTS)}\b', re.IGNORECASE | re.ASCII)
_FINANCIAL_RE = re.compile(rf'\b{_alternation(hl.FINANCIAL_REQUEST_WORDS)}\b', re.IGNORECASE | re.ASCII)

_HIDDEN_STYLE_RE = re.compile(r'style\s*=\s*["\'][^"\']*(display:\s*none|visibility:\s*hidden)', re.IGNORECASE)
_LOCAL_FORM_ACTION_RE = re.compile(r'^(#|/|mailto:)', re.IGNORECASE)
_TRUSTED_FORM_ACTION_RE = re.compile(
    rf'https?://([\w-]+\.)*{_alternation(hl.TRUSTED_FORM_ACTION_BRANDS)}\.com', re.IGNORECASE | re.ASCII
)
_ABSOLUTE_URL_RE = re.compile(r'^https?://', re.IGNORECASE)
_EVENT_HANDLER_RE = re.compile(rf'on{_alternation(hl.EVENT_HANDLERS)}\s*=', re.IGNORECASE)
_EVAL_RE = re.compile(r'eval\s*\(', re.IGNORECASE)
_DOCUMENT_WRITE_RE = re.compile(r'document\.write', re.IGNORECASE)
_WINDOW_OPEN_RE = re.compile(r'window\.open', re.IGNORECASE)
_TIMER_RE = re.compile(r'(setTimeout|setInterval)', re.IGNORECASE)
_JS_OBFUSCATION_RE = re.compile(
    r'(\\x[0-9a-f]{2})|(\\u[0-9a-f]{4})|String\.fromCharCode|unescape|encodeURIComponent', re.IGNORECASE
)

_LINK_STYLE_RE = re.compile(r'(color|text-decoration)', re.IGNORECASE)
_SECURITY_IMAGE_RE = re.compile(
    rf'{_alternation(hl.SECURITY_IMAGE_WORDS)}[\s\S]*\.{_alternation(hl.IMAGE_EXTENSIONS)}', re.IGNORECASE
)
_STATUS_BAR_RE = re.compile(r'(window\.status|onmouseover\s*=\s*["\']window\.status)', re.IGNORECASE)


# ===================================================================
# === FEATURE GROUPS ===
# ===================================================================

def _lexical_features(cleaned_text: str, body_text: str) -> dict:
    features = {}
    words = cleaned_text.split()
    features['word_count'] = len(words)
    features['char_count'] = len(cleaned_text)

    terminators = _SENTENCE_END_RE.findall(cleaned_text)
    if not cleaned_text.strip():
        sentence_count = 0
    elif terminators:
        sentence_count = len(terminators)
    else:
        sentence_count = 1
    features['sentence_count'] = sentence_count

    features['avg_word_length'] = sum(len(w) for w in words) / len(words) if words else 0
    features['avg_sentence_length'] = len(words) / sentence_count if sentence_count > 0 else 0

    lines = body_text.split('\n')
    forwarded = sum(1 for line in lines if line.strip().startswith('>'))
    features['forwarded_line_ratio'] = forwarded / len(lines) if lines else 0

    short_sentences = 0
    if sentence_count > 0:
        rough_sentences = [s for s in _SENTENCE_END_RE.split(cleaned_text) if s.strip()]
        short_sentences = sum(1 for s in rough_sentences if len(s.split()) < 5)
    features['short_sentence_ratio'] = short_sentences / sentence_count if sentence_count > 0 else 0
    return features


def _href_domain(href: str, href_lower: str):
    try:
        hostname = urlparse(href).hostname
    except ValueError:
        hostname = None
    if hostname:
        return hostname
    match = _HREF_DOMAIN_RE.search(href_lower)
    return match.group(1) if match else None


def _link_features(links, text_with_html: str) -> dict:
    has_ip_url = has_shortened_url = url_encoding = unicode_escape = 0
    mismatches = suspicious_domains = 0

    for link in links:
        href = link.get('href')
        if not href:
            continue
        if _IP_URL_RE.search(href):
            has_ip_url = 1
        if _SHORTENER_RE.search(href):
            has_shortened_url = 1

        link_text = link.get_text().strip().lower()
        href_lower = href.lower()
        simplified_text = _LINK_PREFIX_RE.sub('', link_text, count=1)
        simplified_href = _LINK_PREFIX_RE.sub('', href_lower, count=1)
        if (_LINK_TEXT_URL_RE.search(link_text) and simplified_text != simplified_href
                and not simplified_href.startswith(simplified_text)):
            mismatches += 1

        domain = _href_domain(href, href_lower)
        if domain and _SUSPICIOUS_DOMAIN_RE.search(domain):
            suspicious_domains += 1

        if _URL_ENCODING_RE.search(href):
            url_encoding = 1
        if _UNICODE_ESCAPE_RE.search(href):
            unicode_escape = 1

    return {
        'num_links': len(links),
        'has_ip_url': has_ip_url,
        'has_shortened_url': has_shortened_url,
        'link_text_url_mismatch': mismatches,
        'suspicious_domain_keyword_count': suspicious_domains,
        'has_url_encoding': 1 if _URL_ENCODING_RE.search(text_with_html) else url_encoding,
        'has_unicode_in_url': 1 if _UNICODE_ESCAPE_RE.search(text_with_html) else unicode_escape,
        'deceptive_url_pattern': int(any(r.search(text_with_html) for r in _LOOKALIKE_RES)),
        'domain_mismatch': int(mismatches > 0),
    }


def _followed_by(first_re, second_re, text: str) -> bool:
    """True when second_re matches somewhere after the first match of first_re."""
    first = first_re.search(text)
    return bool(first and second_re.search(text, first.end()))


def _common_prefix(a: str, b: str) -> str:
    size = 0
    for x, y in zip(a, b):
        if x != y:
            break
        size += 1
    return a[:size]


def _has_mismatched_reply_to(text: str) -> bool:
    """
    A `from:`, then an address domain, then a `reply-to:`, then an address
    whose domain does not start with that first domain. Linear in the
    text length.
    """
    lowered = text.lower()
    from_at = lowered.find('from:')
    if from_at < 0:
        return False
    reply_tos = [(m.start(), m.end()) for m in _REPLY_TO_ANY_RE.finditer(lowered, from_at)]
    if not reply_tos:
        return False
    addresses = [
        (m.start(), m.end(), m.group(1))
        for m in _ADDRESS_DOMAIN_RE.finditer(lowered, from_at + len('from:'))
    ]

    # shared_prefix[i]: longest prefix common to every domain from i onward
    shared_prefix = [''] * len(addresses)
    common = None
    for i in range(len(addresses) - 1, -1, -1):
        domain = addresses[i][2]
        common = domain if common is None else _common_prefix(common, domain)
        shared_prefix[i] = common

    r = j = 0
    for _, end, domain in addresses:
        while r < len(reply_tos) and reply_tos[r][0] < end:
            r += 1
        if r == len(reply_tos):
            return False
        while j < len(addresses) and addresses[j][0] < reply_tos[r][1]:
            j += 1
        if j == len(addresses):
            return False
        if not shared_prefix[j].startswith(domain):
            return True
    return False


def _sender_features(sender: str, text_with_html: str) -> dict:
    sender_domain = ''
    if sender:
        match = _ADDRESS_DOMAIN_RE.search(sender)
        if match:
            sender_domain = match.group(1).lower()
    return {
        'sender_is_free_domain': int(bool(sender_domain and _FREE_MAIL_RE.search(sender_domain))),
        'sender_claims_major_brand': int(bool(sender_domain and _BRAND_CLAIM_RE.search(sender_domain))),
        'has_mismatched_sender_replyto': int(_has_mismatched_reply_to(text_with_html)),
        'has_reply_to': int(bool(_REPLY_TO_RE.search(text_with_html))),
        'multiple_from_fields': int(len(_FROM_HEADER_RE.findall(text_with_html)) > 1),
        'suspicious_cc_bcc': int(_followed_by(_CC_BCC_RE, _UNDISCLOSED_RE, text_with_html)),
    }


def _content_features(cleaned_text: str) -> dict:
    lowered = cleaned_text.lower()
    return {
        'phishing_keyword_count': sum(len(r.findall(lowered)) for r in _KEYWORD_RES),
        'has_urgent_phrase': int(bool(_URGENT_RE.search(cleaned_text))),
        'has_attachment_mention': int(bool(_ATTACHMENT_RE.search(cleaned_text))),
        'has_generic_greeting': int(bool(_GENERIC_GREETING_RE.search(cleaned_text))),
        'has_threat_language': int(_followed_by(_THREAT_VERB_RE, _THREAT_OBJECT_RE, cleaned_text)),
        'has_financial_request': int(bool(_FINANCIAL_RE.search(cleaned_text))),
    }


def _markup_features(soup: BeautifulSoup, body_html: str, text_with_html: str) -> dict:
    forms = soup.find_all('form')
    scripts = soup.find_all('script')

    suspicious_action = external_action = 0
    for form in forms:
        action = form.get('action')
        if not action:
            continue
        if not _LOCAL_FORM_ACTION_RE.search(action) and not _TRUSTED_FORM_ACTION_RE.search(action):
            suspicious_action = 1
        if _ABSOLUTE_URL_RE.search(action):
            external_action = 1

    return {
        'html_content_ratio': len(_TAG_RE.findall(body_html)) / len(body_html) if body_html else 0,
        'has_forms': int(len(forms) > 0),
        'has_button_tag': int(soup.find('button') is not None),
        'input_field_count': len(soup.find_all('input')),
        'iframe_count': len(soup.find_all('iframe')),
        'hidden_element_count': len(_HIDDEN_STYLE_RE.findall(text_with_html)),
        'div_count': len(soup.find_all('div')),
        'suspicious_form_action': suspicious_action,
        'external_form_submission': external_action,
        'form_with_password_field': int(len(soup.select('form input[type="password"]')) > 0),
        'has_script_tag': int(len(scripts) > 0),
        'script_tag_count': len(scripts),
        'event_handler_count': len(_EVENT_HANDLER_RE.findall(text_with_html)),
        'has_eval_pattern': int(bool(_EVAL_RE.search(text_with_html))),
        'has_document_write': int(bool(_DOCUMENT_WRITE_RE.search(text_with_html))),
        'has_window_open': int(bool(_WINDOW_OPEN_RE.search(text_with_html))),
        'has_settimeout_interval': int(bool(_TIMER_RE.search(text_with_html))),
        'has_js_obfuscation': int(bool(_JS_OBFUSCATION_RE.search(text_with_html))),
    }


def _style_features(raw_text: str) -> dict:
    upper = sum(1 for ch in raw_text if 'A' <= ch <= 'Z')
    return {
        'exclamation_mark_count': raw_text.count('!'),
        'question_mark_count': raw_text.count('?'),
        'all_caps_char_ratio': upper / len(raw_text) if raw_text else 0,
    }


def _visual_deception_features(soup: BeautifulSoup, links, text_with_html: str) -> dict:
    style_manipulation = int(any(
        link.get('style') and _LINK_STYLE_RE.search(link.get('style')) for link in links
    ))
    fake_security_image = int(any(
        img.get('src') and _SECURITY_IMAGE_RE.search(img.get('src')) for img in soup.find_all('img')
    ))
    status_bar = int(bool(_STATUS_BAR_RE.search(text_with_html)))
    return {
        'has_link_style_manipulation': style_manipulation,
        'has_favicon_link': int(len(soup.select('link[rel~="icon"]')) > 0),
        'has_fake_security_image': fake_security_image,
        'has_status_bar_manipulation': status_bar,
        'visual_deception_score': fake_security_image + style_manipulation + status_bar,
    }


# ===================================================================
# === PUBLIC API ===
# ===================================================================

def to_number(value):
    """Coerces a feature value: booleans -> 0/1, anything non-numeric or NaN -> 0."""
    if isinstance(value, (bool, np.bool_)):
        return int(value)
    if value is None:
        return 0
    if isinstance(value, (int, np.integer)):
        return int(value)
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    return 0 if math.isnan(number) else number


def extract_handcrafted_features(email, cleaned_text: str, feature_names=None) -> dict:
    """
    Computes every handcrafted feature for one message.

    `email` is a RawMessageContent, `cleaned_text` the output of clean_text()
    for subject + HTML body. Names listed in `feature_names` that this module
    does not produce are added with value 0.
    """
    raw_text = f"{email.subject} {email.body_text}"
    text_with_html = f"{email.subject} {email.body_html}"
    soup = BeautifulSoup(email.body_html, 'html.parser')
    links = soup.find_all('a')

    features = {}
    features.update(_lexical_features(cleaned_text, email.body_text))
    features.update(_link_features(links, text_with_html))
    features.update(_sender_features(email.sender, text_with_html))
    features.update(_content_features(cleaned_text))
    features.update(_markup_features(soup, email.body_html, text_with_html))
    features.update(_style_features(raw_text))
    features.update(_visual_deception_features(soup, links, text_with_html))

    for name in feature_names or ():
        features.setdefault(name, 0)
    features = {name: to_number(value) for name, value in features.items()}

    logger.debug(f"Handcrafted features extracted. Count: {len(features)}")
    return features


def vectorize_handcrafted_features(features: dict, feature_names) -> np.ndarray:
    """
    Lays the named features out in the model's column order.
    Missing names and non-numeric values become 0.
    """
    vector = np.zeros(len(feature_names), dtype=np.float32)
    for position, name in enumerate(feature_names):
        value = features.get(name, 0)
        if isinstance(value, bool) or not isinstance(value, (int, float, np.number)):
            value = to_number(value)
        vector[position] = 0 if math.isnan(value) else value
    return vector

# --- END OF FILE: feature_engineering.py ---

from types import MappingProxyType


class RawMessageContent:
    """Read-only view of the message fields supplied by the content provider."""

    FIELDS = ('sender', 'subject', 'body_text', 'body_html')
    # The browser extension posts camelCase keys.
    ALIASES = {'bodyText': 'body_text', 'bodyHtml': 'body_html'}

    def __init__(self, sender='', subject='', body_text='', body_html=''):
        values = {'sender': sender, 'subject': subject, 'body_text': body_text, 'body_html': body_html}
        self._data = MappingProxyType({key: '' if value is None else str(value) for key, value in values.items()})

    @classmethod
    def from_dict(cls, payload):
        data = {}
        for key, value in (payload or {}).items():
            key = cls.ALIASES.get(key, key)
            if key in cls.FIELDS:
                data[key] = value
        return cls(**data)

    @property
    def sender(self):
        return self._data['sender']

    @property
    def subject(self):
        return self._data['subject']

    @property
    def body_text(self):
        return self._data['body_text']

    @property
    def body_html(self):
        return self._data['body_html']

    def has_content(self):
        """A scan needs at least a subject or a plain-text body."""
        return bool(self.subject or self.body_text)

    def to_dict(self):
        return dict(self._data)

    def __eq__(self, other):
        if not isinstance(other, RawMessageContent):
            return NotImplemented
        return self._data == other._data

    def __repr__(self):
        return f"RawMessageContent(sender={self.sender!r}, subject={self.subject[:30]!r})"

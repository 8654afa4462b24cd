# --- START OF FILE: heuristic_lists.py ---
#
# Keyword, brand and domain lists used by the handcrafted features.
# These were chosen by the offline training script and the model was fitted
# against them, so they are frozen: changing any entry means retraining and
# bumping HEURISTICS_VERSION together with the exported artifacts.

HEURISTICS_VERSION = "2024.1"

# Link / URL heuristics
URL_SHORTENER_PATTERN = r'(bit\.ly|goo\.gl|tinyurl|t\.co|is\.gd|ow\.ly|buff\.ly)'
SUSPICIOUS_DOMAIN_KEYWORDS = (
    'secure', 'login', 'verify', 'account', 'billing', 'password', 'confirm', 'support', 'service',
)
LOOKALIKE_BRANDS = ('paypal', 'apple', 'google')

# Sender heuristics
FREE_MAIL_PROVIDERS = ('gmail', 'googlemail', 'hotmail', 'outlook', 'yahoo', 'aol')
CLAIMED_BRAND_KEYWORDS = (
    'paypal', 'apple', 'google', 'microsoft', 'amazon', 'netflix', 'facebook', 'bank', 'chase',
    r'wells\s*fargo', 'irs', 'gov',
)

# Content heuristics
PHISHING_KEYWORDS = (
    'verify', 'account', 'suspended', 'locked', 'urgent', 'immediately', 'action required', 'password',
    'login', 'signin', 'security', 'update', 'click', 'link', 'confirm', 'validate', 'ssn',
    'social security', 'credit card', 'bank', 'statement', 'invoice', 'payment', 'alert', 'unusual',
    'problem', 'issue', 'expire', 'limited', 'offer', 'winner', 'prize', 'confidential', 'important',
    'warning', 'fraud', 'access', 'restricted', 'failed', 'unable', 'due', 'overdue', 'risk',
)
URGENT_PHRASES = (
    'urgent', 'immediately', 'asap', 'now', 'important', 'alert', 'action required', 'limited time',
)
ATTACHMENT_WORDS = ('attachment', 'attached', 'document', 'file', 'report', 'invoice')
GREETING_OPENERS = ('dear', 'hello')
GENERIC_RECIPIENTS = ('customer', 'user', 'member', 'valued', 'client', 'subscriber')
THREAT_VERBS = ('suspend', 'terminate', 'cancel', 'close', 'delete', 'remove', 'lock', 'disable')
THREAT_OBJECTS = ('account', 'access')
FINANCIAL_REQUEST_WORDS = ('payment', 'invoice', 'transfer', 'wire', 'bank', 'credit card', 'ssn', 'tax id')

# Structural / markup heuristics
TRUSTED_FORM_ACTION_BRANDS = ('paypal', 'google', 'apple', 'amazon', 'microsoft', 'facebook')
EVENT_HANDLERS = ('click', 'load', 'mouseover', 'submit', 'focus', 'blur', 'change', 'keyup', 'keydown')

# Visual deception heuristics
SECURITY_IMAGE_WORDS = ('lock', 'secure', 'verify', 'ssl', 'trust', 'shield', 'badge', 'cert')
IMAGE_EXTENSIONS = ('png', 'gif', 'jpg', 'jpeg')

# --- END OF FILE: heuristic_lists.py ---

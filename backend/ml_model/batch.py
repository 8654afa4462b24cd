import logging

import pandas as pd

from .exceptions import PhishingScanError
from .models import RawMessageContent

logger = logging.getLogger(__name__)

# A bare text column from older exports is treated as the plain-text body.
BODY_COLUMN_FALLBACKS = ("email_text", "text")


def read_input_file(filepath):
    """Reads messages from a .csv export or a .txt file with one body per line."""
    filepath = str(filepath)
    if filepath.endswith(".csv"):
        df = pd.read_csv(filepath, dtype=str).fillna("")
        if "body_text" not in df.columns:
            for col in BODY_COLUMN_FALLBACKS:
                if col in df.columns:
                    df = df.rename(columns={col: "body_text"})
                    break
        return [RawMessageContent.from_dict(row) for row in df.to_dict(orient="records")]
    elif filepath.endswith(".txt"):
        with open(filepath, "r", encoding="utf-8") as f:
            return [RawMessageContent(body_text=line.strip()) for line in f if line.strip()]
    else:
        raise ValueError("Only .csv or .txt files are supported")


def scan_batch(pipeline, messages):
    """Scans every message; a failing row is reported, not raised."""
    rows = []
    for email in messages:
        try:
            result = pipeline.scan(email)
            rows.append({"subject": email.subject, "label": result.label, "error": None, "stage": None})
        except PhishingScanError as e:
            rows.append({"subject": email.subject, "label": None, "error": e.message, "stage": e.stage})
    logger.info(f"Batch scan finished: {len(rows)} messages.")
    return pd.DataFrame(rows, columns=["subject", "label", "error", "stage"])

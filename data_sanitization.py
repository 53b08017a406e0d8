"""
Data Sanitization Module - Rehab Coach
Free-text normalisation for symptom screening and PHI redaction for notes/logs
"""

import re

# Free-text keys that must never leave the process verbatim
FREE_TEXT_KEYS = ('free_text', 'notes')


def normalize_symptom_text(text):
    """Lower-case free text and collapse punctuation/whitespace for keyword matching."""
    if not text:
        return ""

    normalized = text.lower()

    # Curly quotes from mobile keyboards
    normalized = normalized.replace('’', "'").replace('‘', "'")

    # Hyphens and slashes separate words ("give-way", "pop/snap")
    normalized = re.sub(r'[-/]', ' ', normalized)

    # Drop everything except letters, digits, apostrophes and spaces
    normalized = re.sub(r"[^a-z0-9' ]+", ' ', normalized)

    # Clean up multiple spaces
    normalized = re.sub(r'\s+', ' ', normalized).strip()

    return normalized


def redact_phi(text):
    """Remove PHI from user-entered notes while keeping the symptom description."""
    if not text:
        return ""

    sanitized = text

    # Remove specific dates (but keep relative time references)
    sanitized = re.sub(r'\b\d{1,2}[/-]\d{1,2}[/-]\d{2,4}\b', '[date removed]', sanitized)
    sanitized = re.sub(r'\b(January|February|March|April|May|June|July|August|September|October|November|December)\s+\d{1,2},?\s+\d{2,4}\b', '[date removed]', sanitized, flags=re.IGNORECASE)

    # Remove email addresses
    sanitized = re.sub(r'\b[\w.+-]+@[\w-]+\.[\w.-]+\b', '[email removed]', sanitized)

    # Remove phone numbers
    sanitized = re.sub(r'\b\d{3}[-.]?\d{3}[-.]?\d{4}\b', '[phone removed]', sanitized)

    # Remove addresses (simple pattern)
    sanitized = re.sub(r'\b\d+\s+\w+\s+(Street|St|Avenue|Ave|Road|Rd|Boulevard|Blvd|Drive|Dr|Lane|Ln)\b', '[address removed]', sanitized, flags=re.IGNORECASE)

    # Clean up multiple spaces
    sanitized = re.sub(r'\s+', ' ', sanitized).strip()

    return sanitized


def redact_free_text_fields(data_dict):
    """Return a copy of a payload with every free-text field passed through redact_phi."""
    if not isinstance(data_dict, dict):
        return data_dict

    sanitized = {}
    for key, value in data_dict.items():
        if key in FREE_TEXT_KEYS and isinstance(value, str):
            sanitized[key] = redact_phi(value)
        elif isinstance(value, dict):
            sanitized[key] = redact_free_text_fields(value)
        else:
            sanitized[key] = value

    return sanitized


def scrub_event(event):
    """Drop free text from a Sentry event's request body before it is sent."""
    request = event.get('request') if isinstance(event, dict) else None
    if not request:
        return event

    data = request.get('data')
    if isinstance(data, dict):
        request['data'] = {
            key: '[redacted]' if key in FREE_TEXT_KEYS else value
            for key, value in data.items()
        }
    elif isinstance(data, str) and data:
        request['data'] = '[redacted]'

    return event

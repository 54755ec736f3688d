# taxi_backend\logic\text_repair.py
# Text Repair: Reverses the common mojibake where UTF-8 bytes were decoded as cp1252/latin-1
# (e.g. 'SÃ£o JosÃ©' -> 'São José'). Applied where data enters the system and before report layout.

MOJIBAKE_MARKERS = ('Ã', 'Â', 'â€')
FALLBACK_ENCODINGS = ('cp1252', 'latin-1')


def looks_mis_decoded(text):
    return any(marker in text for marker in MOJIBAKE_MARKERS)


def repair_text(value):
    """
    Undoes one UTF-8 -> cp1252/latin-1 mis-decoding step.
    Values that are not strings, carry no telltale sequence, or do not re-decode cleanly
    are returned unchanged, so clean text (including a genuine 'SÃO') is never altered.
    """
    if not isinstance(value, str) or not looks_mis_decoded(value):
        return value

    for encoding in FALLBACK_ENCODINGS:
        try:
            return value.encode(encoding).decode('utf-8')
        except UnicodeError:
            continue
    return value


def repair_record(obj):
    """Applies repair_text to every string inside dicts, lists and tuples"""
    if isinstance(obj, dict):
        return {key: repair_record(value) for key, value in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [repair_record(item) for item in obj]
    return repair_text(obj)

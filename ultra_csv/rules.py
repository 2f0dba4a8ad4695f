"""
Inference and reading defaults.

Everything the reader falls back to when neither the caller nor the
analysis of the input decides otherwise.
"""

DEFAULT_ENCODING = "utf-8"
DEFAULT_DELIMITER = ","
DEFAULT_QUOTE_CHAR = '"'
DEFAULT_LINE_TERMINATOR = "\n"

# Separators the delimiter guesser chooses from.
CANDIDATE_DELIMITERS = (",", ";", " ", "\t")

# Number of leading lines sampled for inference.
LOOKAHEAD = 100

# Lenient mode gives up after this many failed reads in a row.
MAX_CONSECUTIVE_FAILURES = 100

# Bytes handed to the charset detector.
CHARSET_SAMPLE_SIZE = 65536

# Cell syntax shared by the type guesser and the parsing steps.
INTEGER_PATTERN = r"\d+"
SIGNED_INTEGER_PATTERN = r"[-+]?\d+"
DECIMAL_PATTERN = r"[-+]?\d+([.,]\d+)?"

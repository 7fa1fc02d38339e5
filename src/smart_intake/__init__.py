"""Smart intake: turn quick user input into structured productivity drafts."""

__version__ = "0.1.0"

"""Token estimation for context budgeting."""

from typing import Callable, Optional

import tiktoken

# Any callable mapping text to a token count can stand in for the encoder
TokenEstimator = Callable[[str], int]


class TiktokenEstimator:
    """Counts tokens with the cl100k_base encoding (closest to Claude's tokenizer).

    The encoding is loaded on first use.
    """

    def __init__(self, encoding_name: str = "cl100k_base"):
        self.encoding_name = encoding_name
        self._encoder: Optional[tiktoken.Encoding] = None

    def __call__(self, text: str) -> int:
        if not text:
            return 0
        if self._encoder is None:
            self._encoder = tiktoken.get_encoding(self.encoding_name)
        return len(self._encoder.encode(text, disallowed_special=()))

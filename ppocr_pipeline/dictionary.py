"""
Character Dictionary

Fixed, ordered symbol table used to turn recognizer token ids into text.
Token id N maps to the N-th symbol; ids outside the table are skipped.

PP-OCRv5 recognizers are trained against the multilingual table
ppocrv5_dict.txt, which ships next to the model files and is loaded with
CharacterDictionary.from_file(). The embedded ASCII table (printable
ASCII in PaddleOCR's English dictionary order plus the space symbol)
matches English-only recognizers and is the fallback when no table file
is available.
"""

import string
from pathlib import Path
from typing import Iterable, Sequence, Tuple, Union

ASCII_SYMBOLS: Tuple[str, ...] = tuple(
    string.digits
    + ":;<=>?@"
    + string.ascii_uppercase
    + "[\\]^_`"
    + string.ascii_lowercase
    + "{|}~"
    + "!\"#$%&'()*+,-./"
) + (" ",)


class CharacterDictionary:
    """
    Immutable token id → symbol table

    Decoding is a pure function over read-only data, so one instance
    can be shared across threads without locking.
    """

    def __init__(self, symbols: Sequence[str]):
        """
        Args:
            symbols: Symbols in token id order
        """
        if not symbols:
            raise ValueError("dictionary must contain at least one symbol")
        self._symbols: Tuple[str, ...] = tuple(symbols)

    @classmethod
    def ascii(cls) -> "CharacterDictionary":
        """Embedded printable-ASCII table (English recognizers)"""
        return cls(ASCII_SYMBOLS)

    @classmethod
    def default(cls) -> "CharacterDictionary":
        """Fallback table when no model dictionary file is available"""
        return cls.ascii()

    @classmethod
    def from_file(
        cls,
        path: Union[str, Path],
        use_space_char: bool = True,
    ) -> "CharacterDictionary":
        """
        Load a PaddleOCR-style dictionary file

        Args:
            path: Text file with one symbol per line (UTF-8)
            use_space_char: Append the space symbol after the file's symbols

        Returns:
            CharacterDictionary
        """
        with open(path, "r", encoding="utf-8") as f:
            symbols = [line.rstrip("\r\n") for line in f]

        # A trailing newline leaves one empty entry behind
        while symbols and symbols[-1] == "":
            symbols.pop()

        if use_space_char and " " not in symbols:
            symbols.append(" ")

        return cls(symbols)

    def __len__(self) -> int:
        return len(self._symbols)

    def __getitem__(self, token_id: int) -> str:
        return self._symbols[token_id]

    @property
    def num_classes(self) -> int:
        """Recognizer output width: one blank class plus every symbol"""
        return len(self._symbols) + 1

    def decode(self, tokens: Iterable) -> str:
        """
        Map token ids to symbols and concatenate them in order

        Args:
            tokens: Token ids, or objects carrying an `id` attribute

        Returns:
            Decoded text (empty string for an empty sequence)
        """
        size = len(self._symbols)
        parts = []
        for token in tokens:
            token_id = getattr(token, "id", token)
            if 0 <= token_id < size:
                parts.append(self._symbols[token_id])
        return "".join(parts)

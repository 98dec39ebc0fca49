"""
Core types for tokenization.
"""

from typing_extensions import TypeAliasType

Token = TypeAliasType("Token", int)
TokenBytes = TypeAliasType("TokenBytes", bytes)
TokenPair = TypeAliasType("TokenPair", tuple[Token, Token])
Document = TypeAliasType("Document", str | bytes)

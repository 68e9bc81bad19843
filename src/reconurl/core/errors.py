from __future__ import annotations


class URLParseError(ValueError):
    pass


class EmptyInputError(URLParseError):
    """Nothing left to parse once fragment and query are stripped."""


class InvalidURLError(URLParseError):
    """The strict syntax parser rejected the input and unsafe mode was off."""


class EmptyHostError(URLParseError):
    """Input was classified as absolute but no host could be resolved."""


class URLSyntaxError(ValueError):
    pass

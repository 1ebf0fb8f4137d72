"""Symbol spelling corrections.

Positions were historically stored under slashless symbols (``EURUSD``)
that the registry does not know, so they were valued with the fallback
config. These helpers map such spellings to the canonical registry symbol.
"""

from typing import Iterable, Mapping

from tradeledger.instruments import InstrumentRegistry


def compact_symbol(symbol: str) -> str:
    """Strip separators and upper-case a symbol: 'eur/usd' -> 'EURUSD'."""
    return symbol.replace("/", "").replace("-", "").replace("_", "").replace(" ", "").upper()


def default_symbol_mappings(registry: InstrumentRegistry) -> dict[str, str]:
    """Misspelled symbol -> canonical symbol for every registry pair.

    Only symbols containing a separator have an alternative spelling.
    """
    mappings = {}
    for symbol in registry.symbols():
        compact = compact_symbol(symbol)
        if compact != symbol and compact not in registry:
            mappings[compact] = symbol
    return mappings


def normalize_symbol(
    raw: str,
    registry: InstrumentRegistry,
    extra: Mapping[str, str] | None = None,
) -> str:
    """Canonical spelling for ``raw`` if one is known, else ``raw`` unchanged."""
    if raw in registry:
        return raw
    if extra and raw in extra:
        return extra[raw]
    return default_symbol_mappings(registry).get(compact_symbol(raw), raw)


def stored_symbol_mappings(
    stored_symbols: Iterable[str],
    registry: InstrumentRegistry,
    extra: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Stored symbol -> canonical symbol, for every stored spelling that differs."""
    mappings = {}
    for raw in stored_symbols:
        canonical = normalize_symbol(raw, registry, extra)
        if canonical != raw:
            mappings[raw] = canonical
    return mappings

from dataclasses import dataclass, field, replace
from typing import Mapping

DEFAULT_PARAMETER_NAMES: dict[str, str] = {
    "identifier": "identifier",
    "filename": "filename",
    "chunkNumber": "chunkNumber",
    "chunkSize": "chunkSize",
    "totalChunks": "totalChunks",
    "totalSize": "totalSize",
    "relativePath": "relativePath",
}


@dataclass(frozen=True)
class ParameterNames:
    """Maps protocol short names to wire names.

    The wire key read from the request is ``prefix + wire_name`` with the first
    letter of the wire name upper-cased, so with the default ``resumable`` prefix
    ``identifier`` is read from ``resumableIdentifier``.
    """

    prefix: str = "resumable"
    names: Mapping[str, str] = field(
        default_factory=lambda: dict(DEFAULT_PARAMETER_NAMES)
    )

    def with_overrides(self, overrides: Mapping[str, str]) -> "ParameterNames":
        unknown = set(overrides) - set(DEFAULT_PARAMETER_NAMES)
        if unknown:
            raise ValueError(f"Unknown parameter names: {sorted(unknown)}")
        return replace(self, names={**self.names, **overrides})

    def wire_name(self, short_name: str) -> str:
        name = self.names[short_name]
        if not self.prefix:
            return name
        return self.prefix + name[:1].upper() + name[1:]

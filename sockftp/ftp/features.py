"""Server capability discovery from the FEAT reply."""

from dataclasses import dataclass, fields
from typing import Iterable, List, Optional, Tuple, Union

# Simple features recorded as present/absent
FEATURES: Tuple[str, ...] = (
    "UTF8",
    "EPRT",
    "IDLE",
    "MDTM",
    "SIZE",
    "MFMT",
    "MLSD",
    "PRET",
    "PBSZ",
    "PROT",
    "TVFS",
    "ESTA",
    "PASV",
    "EPSV",
    "ESTP",
)

SubTokens = Union[Tuple[str, ...], bool]


@dataclass(frozen=True)
class FeatureMatrix:
    """Capabilities advertised by the server.

    REST, MLST and AUTH are False when absent, otherwise the tuple of
    parameters listed after the feature name.
    """
    UTF8: bool = False
    EPRT: bool = False
    IDLE: bool = False
    MDTM: bool = False
    SIZE: bool = False
    MFMT: bool = False
    MLSD: bool = False
    PRET: bool = False
    PBSZ: bool = False
    PROT: bool = False
    TVFS: bool = False
    ESTA: bool = False
    PASV: bool = False
    EPSV: bool = False
    ESTP: bool = False
    REST: SubTokens = False
    MLST: SubTokens = False
    AUTH: SubTokens = False

    def supports(self, feature: str) -> bool:
        """True if ``feature`` was advertised."""
        return getattr(self, feature.upper(), False) is not False

    def to_dict(self) -> dict:
        """Convert the matrix to a plain dictionary."""
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_lines(cls, lines: Iterable[str]) -> "FeatureMatrix":
        """
        Build a matrix from the body lines of a FEAT reply.

        Args:
            lines: Reply lines, with or without surrounding whitespace

        Returns:
            Populated FeatureMatrix
        """
        discovered = [line.strip() for line in lines]
        flags = {feat: any(_names(line, feat) for line in discovered) for feat in FEATURES}

        mlst = _find(discovered, "MLST")
        auth = _find_all(discovered, "AUTH")
        rest = _find(discovered, "REST")

        return cls(
            **flags,
            MLST=tuple(t for t in mlst.split(";") if t) if mlst is not None else False,
            AUTH=tuple(t for a in auth for t in a.split()) if auth else False,
            REST=tuple(rest.split()) if rest is not None else False,
        )


def _names(line: str, feature: str) -> bool:
    return line == feature or line.startswith(feature + " ")


def _find(lines: List[str], feature: str) -> Optional[str]:
    for line in lines:
        if _names(line, feature):
            return line[len(feature):].strip()
    return None


def _find_all(lines: List[str], feature: str) -> List[str]:
    # Some servers list each AUTH mechanism on its own line
    return [line[len(feature):].strip() for line in lines if _names(line, feature)]

"""Species and database-type taxonomies with ordered alias tables.

Both enumerations are resolved from database names by substring matching
against a fixed, priority-ordered alias table: the lower-cased name is
scanned against each alias in turn and the first alias it contains wins.
Several aliases are substrings of others (``est`` / ``estgene``) or share
a compound name (``homo_sapiens_core_expression_est_24_34e`` contains
``expression``, ``core`` and ``est``), so the table order is part of the
contract and must not be re-sorted.
"""

from __future__ import annotations

from enum import Enum


def _resolve(name: str, table: tuple[tuple[str, Enum], ...], default: Enum) -> Enum:
    """Return the value of the first alias in *table* contained in *name*."""
    lowered = name.lower()
    for alias, value in table:
        if alias in lowered:
            return value
    return default


# ---------------------------------------------------------------------------
# Database types
# ---------------------------------------------------------------------------


class DatabaseType(str, Enum):
    """Category of a database, inferred from its name."""

    CORE = "core"
    EST = "est"
    ESTGENE = "estgene"
    OTHERFEATURES = "otherfeatures"
    CDNA = "cdna"
    VEGA = "vega"
    COMPARA = "compara"
    MART = "mart"
    VARIATION = "variation"
    FUNCGEN = "funcgen"
    DISEASE = "disease"
    HAPLOTYPE = "haplotype"
    LITE = "lite"
    GO = "go"
    EXPRESSION = "expression"
    XREF = "xref"
    UNKNOWN = "unknown"

    @classmethod
    def resolve_alias(cls, name: str) -> DatabaseType:
        """Resolve a database name or alias to a :class:`DatabaseType`.

        Returns :attr:`UNKNOWN` when no alias is contained in *name*.
        """
        return _resolve(name, DATABASE_TYPE_ALIASES, cls.UNKNOWN)  # type: ignore[return-value]

    @property
    def is_generic(self) -> bool:
        """True for gene-set databases sharing the core schema."""
        return self in _GENERIC_TYPES


# ``expression`` precedes ``core`` and ``est`` because expression databases
# are named like homo_sapiens_core_expression_est_24_34e.  ``estgene`` and
# ``otherfeatures`` precede ``est``; ``go`` is last as the shortest alias.
DATABASE_TYPE_ALIASES: tuple[tuple[str, DatabaseType], ...] = (
    ("expression", DatabaseType.EXPRESSION),
    ("estgene", DatabaseType.ESTGENE),
    ("otherfeatures", DatabaseType.OTHERFEATURES),
    ("funcgen", DatabaseType.FUNCGEN),
    ("core", DatabaseType.CORE),
    ("cdna", DatabaseType.CDNA),
    ("est", DatabaseType.EST),
    ("vega", DatabaseType.VEGA),
    ("compara", DatabaseType.COMPARA),
    ("mart", DatabaseType.MART),
    ("variation", DatabaseType.VARIATION),
    ("disease", DatabaseType.DISEASE),
    ("haplotype", DatabaseType.HAPLOTYPE),
    ("lite", DatabaseType.LITE),
    ("xref", DatabaseType.XREF),
    ("go", DatabaseType.GO),
)

_GENERIC_TYPES = frozenset(
    {
        DatabaseType.CORE,
        DatabaseType.EST,
        DatabaseType.ESTGENE,
        DatabaseType.VEGA,
        DatabaseType.CDNA,
        DatabaseType.OTHERFEATURES,
    }
)


# ---------------------------------------------------------------------------
# Species
# ---------------------------------------------------------------------------


class Species(str, Enum):
    """Species a database belongs to, inferred from its name."""

    HOMO_SAPIENS = "homo_sapiens"
    MUS_MUSCULUS = "mus_musculus"
    RATTUS_NORVEGICUS = "rattus_norvegicus"
    DANIO_RERIO = "danio_rerio"
    TAKIFUGU_RUBRIPES = "takifugu_rubripes"
    TETRAODON_NIGROVIRIDIS = "tetraodon_nigroviridis"
    DROSOPHILA_MELANOGASTER = "drosophila_melanogaster"
    ANOPHELES_GAMBIAE = "anopheles_gambiae"
    CAENORHABDITIS_ELEGANS = "caenorhabditis_elegans"
    CAENORHABDITIS_BRIGGSAE = "caenorhabditis_briggsae"
    GALLUS_GALLUS = "gallus_gallus"
    PAN_TROGLODYTES = "pan_troglodytes"
    CANIS_FAMILIARIS = "canis_familiaris"
    BOS_TAURUS = "bos_taurus"
    XENOPUS_TROPICALIS = "xenopus_tropicalis"
    CIONA_INTESTINALIS = "ciona_intestinalis"
    APIS_MELLIFERA = "apis_mellifera"
    SACCHAROMYCES_CEREVISIAE = "saccharomyces_cerevisiae"
    UNKNOWN = "unknown"

    @classmethod
    def resolve_alias(cls, name: str) -> Species:
        """Resolve a database name or alias (``human``, ``mouse``...) to a :class:`Species`."""
        return _resolve(name, SPECIES_ALIASES, cls.UNKNOWN)  # type: ignore[return-value]

    @property
    def taxonomy_id(self) -> str | None:
        """NCBI taxonomy id, or ``None`` for :attr:`UNKNOWN`."""
        return _TAXONOMY_IDS.get(self)


# Binomial names first, then common names; the three-letter aliases come
# last since they are the likeliest to turn up inside unrelated names.
SPECIES_ALIASES: tuple[tuple[str, Species], ...] = (
    ("homo_sapiens", Species.HOMO_SAPIENS),
    ("mus_musculus", Species.MUS_MUSCULUS),
    ("rattus_norvegicus", Species.RATTUS_NORVEGICUS),
    ("danio_rerio", Species.DANIO_RERIO),
    ("takifugu_rubripes", Species.TAKIFUGU_RUBRIPES),
    ("fugu_rubripes", Species.TAKIFUGU_RUBRIPES),
    ("tetraodon_nigroviridis", Species.TETRAODON_NIGROVIRIDIS),
    ("drosophila_melanogaster", Species.DROSOPHILA_MELANOGASTER),
    ("anopheles_gambiae", Species.ANOPHELES_GAMBIAE),
    ("caenorhabditis_elegans", Species.CAENORHABDITIS_ELEGANS),
    ("caenorhabditis_briggsae", Species.CAENORHABDITIS_BRIGGSAE),
    ("gallus_gallus", Species.GALLUS_GALLUS),
    ("pan_troglodytes", Species.PAN_TROGLODYTES),
    ("canis_lupus_familiaris", Species.CANIS_FAMILIARIS),
    ("canis_familiaris", Species.CANIS_FAMILIARIS),
    ("bos_taurus", Species.BOS_TAURUS),
    ("xenopus_tropicalis", Species.XENOPUS_TROPICALIS),
    ("ciona_intestinalis", Species.CIONA_INTESTINALIS),
    ("apis_mellifera", Species.APIS_MELLIFERA),
    ("saccharomyces_cerevisiae", Species.SACCHAROMYCES_CEREVISIAE),
    ("human", Species.HOMO_SAPIENS),
    ("mouse", Species.MUS_MUSCULUS),
    ("zebrafish", Species.DANIO_RERIO),
    ("fugu", Species.TAKIFUGU_RUBRIPES),
    ("tetraodon", Species.TETRAODON_NIGROVIRIDIS),
    ("drosophila", Species.DROSOPHILA_MELANOGASTER),
    ("mosquito", Species.ANOPHELES_GAMBIAE),
    ("elegans", Species.CAENORHABDITIS_ELEGANS),
    ("briggsae", Species.CAENORHABDITIS_BRIGGSAE),
    ("chicken", Species.GALLUS_GALLUS),
    ("chimp", Species.PAN_TROGLODYTES),
    ("xenopus", Species.XENOPUS_TROPICALIS),
    ("ciona", Species.CIONA_INTESTINALIS),
    ("honeybee", Species.APIS_MELLIFERA),
    ("yeast", Species.SACCHAROMYCES_CEREVISIAE),
    ("rat", Species.RATTUS_NORVEGICUS),
    ("dog", Species.CANIS_FAMILIARIS),
    ("cow", Species.BOS_TAURUS),
)

_TAXONOMY_IDS: dict[Species, str] = {
    Species.HOMO_SAPIENS: "9606",
    Species.MUS_MUSCULUS: "10090",
    Species.RATTUS_NORVEGICUS: "10116",
    Species.DANIO_RERIO: "7955",
    Species.TAKIFUGU_RUBRIPES: "31033",
    Species.TETRAODON_NIGROVIRIDIS: "99883",
    Species.DROSOPHILA_MELANOGASTER: "7227",
    Species.ANOPHELES_GAMBIAE: "7165",
    Species.CAENORHABDITIS_ELEGANS: "6239",
    Species.CAENORHABDITIS_BRIGGSAE: "6238",
    Species.GALLUS_GALLUS: "9031",
    Species.PAN_TROGLODYTES: "9598",
    Species.CANIS_FAMILIARIS: "9615",
    Species.BOS_TAURUS: "9913",
    Species.XENOPUS_TROPICALIS: "8364",
    Species.CIONA_INTESTINALIS: "7719",
    Species.APIS_MELLIFERA: "7460",
    Species.SACCHAROMYCES_CEREVISIAE: "4932",
}

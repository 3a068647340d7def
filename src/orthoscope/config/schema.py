"""Pydantic models for orthoscope configuration."""

import hashlib
import json
from pathlib import Path

from pydantic import BaseModel, Field, field_validator


class SourceVersions(BaseModel):
    """Version information for the external data sources of an installation."""

    oma_release: str = Field(
        ...,
        min_length=1,
        description="OMA release the hierarchical orthologous groups come from",
    )
    uberon_version: str = Field(
        default="unknown",
        description="Uberon release used for anatomical/developmental entities",
    )
    taxonomy_version: str = Field(
        default="unknown",
        description="NCBI taxonomy snapshot used for taxa and species",
    )


class IngestionConfig(BaseModel):
    """Settings for reading and ingesting orthology hierarchies."""

    taxon_id_property: str = Field(
        default="taxid",
        description="OrthoXML group property holding the NCBI taxon ID",
    )
    taxon_range_property: str = Field(
        default="TaxRange",
        description="OrthoXML group property holding the taxon name",
    )
    gene_id_separator: str = Field(
        default="; ",
        min_length=1,
        description="Separator between several identifiers of one OrthoXML gene",
    )


class QueryConfig(BaseModel):
    """Settings for multi-species query composition."""

    max_workers: int = Field(
        default=4,
        ge=1,
        le=64,
        description="Threads used for independent ortholog/homology lookups",
    )
    lookup_timeout_seconds: float | None = Field(
        default=30.0,
        gt=0,
        description="Timeout for one batch of lookups (null = no timeout)",
    )


class OrthoscopeConfig(BaseModel):
    """Main orthoscope configuration."""

    data_dir: Path = Field(
        ...,
        description="Directory for provenance sidecars and exported files",
    )
    duckdb_path: Path = Field(
        ...,
        description="Path to the DuckDB database holding the orthology index",
    )
    versions: SourceVersions = Field(
        ...,
        description="Data source version information",
    )
    ingestion: IngestionConfig = Field(
        default_factory=IngestionConfig,
        description="Orthology ingestion settings",
    )
    query: QueryConfig = Field(
        default_factory=QueryConfig,
        description="Query composition settings",
    )

    @field_validator("data_dir")
    @classmethod
    def create_directory(cls, v: Path) -> Path:
        """Create directory if it doesn't exist."""
        v.mkdir(parents=True, exist_ok=True)
        return v

    def config_hash(self) -> str:
        """
        Compute SHA-256 hash of the configuration.

        Returns a deterministic hash based on all config values,
        useful for tracking which settings produced an index.
        """
        config_dict = self.model_dump(mode="python")
        config_json = json.dumps(
            config_dict,
            sort_keys=True,
            default=str,
        )
        return hashlib.sha256(config_json.encode()).hexdigest()

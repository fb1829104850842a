"""
Debug tracing for the hopgraph pipeline.

When debug mode is enabled, the generator records a snapshot of each pipeline
stage so it is possible to see why a hop ended up where it did.

Usage:
    >>> generator = TracerouteGraphGenerator()
    >>> graph = generator.generate([payload], mode="full", debug=True)
    >>> trace = generator.get_trace()
    >>> print(trace.summary())
    >>> trace.dump_to_file("debug_trace.txt")

Stages, in order:
1. normalize - one entry per address-family payload
2. merge - merged probe id and node/edge counts
3. group - ASN groups and colors
4. rank - (rank, order) of every node
5. position - (x, y) of every node
6. style - edge labels and stroke widths
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class PipelineStage:
    """
    Snapshot of state at a pipeline stage.

    Attributes:
        name: Name of this pipeline stage
        data: Dictionary of relevant data at this stage
    """

    name: str
    data: Dict[str, Any]

    def __str__(self) -> str:
        lines = [f"=== Stage: {self.name} ==="]
        for key, value in self.data.items():
            # Truncate long values
            str_val = str(value)
            if len(str_val) > 100:
                str_val = str_val[:100] + "..."
            lines.append(f"  {key}: {str_val}")
        return "\n".join(lines)


@dataclass
class PipelineTrace:
    """
    Complete trace of one graph generation.

    Attributes:
        stages: List of pipeline stages with their data
        mode: Payload mode of the traced run
        asn_mode: ASN presentation mode of the traced run
    """

    stages: List[PipelineStage] = field(default_factory=list)
    mode: str = ""
    asn_mode: str = ""

    def add_stage(self, name: str, data: Dict[str, Any]) -> None:
        self.stages.append(PipelineStage(name, dict(data)))

    def get_stage(self, name: str) -> Optional[PipelineStage]:
        """Get the first pipeline stage with the given name."""
        for stage in self.stages:
            if stage.name == name:
                return stage
        return None

    def get_stages(self, name: str) -> List[PipelineStage]:
        return [stage for stage in self.stages if stage.name == name]

    def summary(self) -> str:
        lines = [
            "=" * 60,
            "PIPELINE TRACE SUMMARY",
            "=" * 60,
            "",
            f"Mode: {self.mode}",
            f"ASN mode: {self.asn_mode}",
            "",
            f"Pipeline stages: {len(self.stages)}",
        ]
        for stage in self.stages:
            lines.append(f"  {stage.name}")
        return "\n".join(lines)

    def dump(self) -> str:
        lines = [self.summary(), "", "=" * 60, "DETAILED TRACE", "=" * 60, ""]
        for stage in self.stages:
            lines.append(str(stage))
            lines.append("")
        return "\n".join(lines)

    def dump_to_file(self, filename: str) -> None:
        """Write the complete trace dump to a file."""
        with open(filename, "w", encoding="utf-8") as f:
            f.write(self.dump())

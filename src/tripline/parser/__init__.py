"""Script text to directive stream."""

from tripline.parser.flow import FlowParser
from tripline.parser.lines import (
    ActionLineParser,
    LineParser,
    RequirementLineParser,
    TriggerLineParser,
)

__all__ = [
    "FlowParser",
    "LineParser",
    "ActionLineParser",
    "RequirementLineParser",
    "TriggerLineParser",
]

"""A small builder for ffmpeg ``-filter_complex`` graphs.

Planning code appends :class:`FilterStage` objects; the textual syntax is only
produced by :meth:`FilterGraph.serialize` at the very end.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Union

# "0:v", "1:a", "2" etc. refer to encoder inputs rather than graph labels
_STREAM_SPEC_RE = re.compile(r"^\d+(:[vas](:\d+)?)?$")


def filter_call(name: str, *positional: object, **options: object) -> str:
    """Format one filter: ``filter_call("scale", 600, 600, force_original_aspect_ratio="decrease")``.

    Values are inserted verbatim; quote expressions that contain ``,`` or ``:``
    before passing them in.
    """
    args = [str(p) for p in positional]
    args.extend(f"{k}={v}" for k, v in options.items() if v is not None)
    if not args:
        return name
    return f"{name}={':'.join(args)}"


@dataclass
class FilterStage:
    inputs: List[str]
    filters: List[str]
    outputs: List[str]

    @property
    def output(self) -> str:
        return self.outputs[0]

    def serialize(self) -> str:
        ins = "".join(f"[{label}]" for label in self.inputs)
        outs = "".join(f"[{label}]" for label in self.outputs)
        return f"{ins}{','.join(self.filters)}{outs}"


@dataclass
class FilterGraph:
    stages: List[FilterStage] = field(default_factory=list)
    _counters: Dict[str, int] = field(default_factory=dict, repr=False)

    def new_label(self, prefix: str) -> str:
        n = self._counters.get(prefix, 0)
        self._counters[prefix] = n + 1
        return f"{prefix}{n}"

    @property
    def labels(self) -> List[str]:
        return [label for s in self.stages for label in s.outputs]

    def _append(self, inputs: Sequence[str], filters: Sequence[str], outputs: List[str]) -> None:
        if not filters:
            raise ValueError("a filter stage needs at least one filter")
        existing = set(self.labels)
        for label in outputs:
            if label in existing:
                raise ValueError(f"duplicate filter graph label '{label}'")
        self.stages.append(FilterStage(list(inputs), list(filters), outputs))

    def add(
        self,
        inputs: Union[str, Sequence[str]],
        filters: Union[str, Sequence[str]],
        output: Optional[str] = None,
        prefix: str = "s",
    ) -> str:
        """Append a single-output stage and return its output label."""
        if isinstance(inputs, str):
            inputs = [inputs]
        if isinstance(filters, str):
            filters = [filters]
        label = output or self.new_label(prefix)
        self._append(inputs, filters, [label])
        return label

    def split(self, source: str, count: int, prefix: str = "split") -> List[str]:
        """Fan ``source`` out into ``count`` independent branches."""
        if count < 1:
            raise ValueError("split count must be at least 1")
        if count == 1:
            return [source]
        labels = [self.new_label(prefix) for _ in range(count)]
        self._append([source], [f"split={count}"], labels)
        return labels

    def validate(self) -> None:
        """Check every label is defined before use and consumed at most once."""
        defined = set()
        consumed = set()
        for stage in self.stages:
            for label in stage.inputs:
                if _STREAM_SPEC_RE.match(label):
                    continue
                if label not in defined:
                    raise ValueError(f"label '{label}' used before it is defined")
                if label in consumed:
                    raise ValueError(f"label '{label}' consumed more than once")
                consumed.add(label)
            defined.update(stage.outputs)

    def serialize(self) -> str:
        self.validate()
        return ";".join(stage.serialize() for stage in self.stages)

    def __str__(self) -> str:
        return self.serialize()

    def __len__(self) -> int:
        return len(self.stages)

#!/usr/bin/env python3
"""
Job spec module for the resource-control benchmark orchestrator.

A job spec is the replayable description of one benchmark invocation:

    KIND[:id=ID][:KEY[=VAL]...][::KEY[=VAL]...]...

The leading property group carries options common to the whole job. Each
"::" separator opens another property group, so one job can carry several
alternate property sets for parameter sweeps or multi-view formatting.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from infra.errors import ParseError

PropGroup = Dict[str, str]


@dataclass(frozen=True)
class JobSpec:
    """
    Parsed benchmark job request.

    Specs are never mutated after parsing. Property groups are kept sorted by
    key so equal specs serialize identically.

    The text form has no escaping: str() only re-parses to an equal spec when
    no kind, id, key or value contains ":", no key contains "=" or is "id",
    and no property group after the first is empty. from_dict() rejects the
    first three.
    """

    kind: str
    id: Optional[str] = None
    props: List[PropGroup] = field(default_factory=lambda: [{}])

    def __post_init__(self):
        if not self.kind:
            raise ParseError(self.kind, "invalid job type")
        props = [dict(sorted(group.items())) for group in self.props] or [{}]
        object.__setattr__(self, "props", props)

    def __str__(self) -> str:
        toks = [self.kind]
        if self.id is not None:
            toks.append(f"id={self.id}")
        for idx, group in enumerate(self.props):
            if idx > 0:
                toks.append("")
            for key, val in group.items():
                toks.append(f"{key}={val}")
        return ":".join(toks)

    def __hash__(self) -> int:
        return hash(str(self))

    @property
    def ident(self) -> str:
        """Short KIND[:ID] label used in listings."""
        return f"{self.kind}:{self.id}" if self.id is not None else self.kind

    def has_props(self) -> bool:
        """Check whether any property group is non-empty."""
        return any(len(group) > 0 for group in self.props)

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "id": self.id, "props": [dict(g) for g in self.props]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JobSpec":
        """
        Build a JobSpec from its serialized form.

        Raises:
            ValueError: If the mapping is malformed
        """
        if not isinstance(data, dict):
            raise ValueError(f"job spec must be a mapping, got {type(data).__name__}")
        kind = data.get("kind")
        if not isinstance(kind, str) or not kind:
            raise ValueError("job spec is missing \"kind\"")
        job_id = data.get("id")
        if job_id is not None:
            job_id = str(job_id)
        props = data.get("props") or [{}]
        if not isinstance(props, list) or not all(isinstance(g, dict) for g in props):
            raise ValueError("job spec \"props\" must be a list of mappings")
        props = [{str(k): "" if v is None else str(v) for k, v in g.items()} for g in props]

        texts = [kind, job_id or ""]
        for group in props:
            for key, val in group.items():
                if key == "id" or "=" in key:
                    raise ValueError(f"invalid property key {key!r}")
                texts += [key, val]
        for text in texts:
            if ":" in text:
                raise ValueError(f"{text!r} can't contain \":\"")
        return cls(kind=kind, id=job_id, props=props)


def parse_job_spec(spec: str) -> JobSpec:
    """
    Parse a job spec string.

    Args:
        spec: Spec text, e.g. "iocost-qos:id=qos:vrate-max=125::vrate=100"

    Returns:
        Parsed JobSpec

    Raises:
        ParseError: If the kind is missing
    """
    toks = spec.split(":")
    kind = toks[0]
    if not kind:
        raise ParseError(spec, "invalid job type")

    job_id = None
    props: List[PropGroup] = [{}]

    for tok in toks[1:]:
        if not tok:
            # Only the leading group, which holds options common to all
            # following groups, may stay empty.
            if len(props) == 1 or len(props[-1]) > 0:
                props.append({})
            continue

        key, _, val = tok.partition("=")
        if key == "id":
            job_id = val
        else:
            props[-1][key] = val

    if len(props) > 1 and not props[-1]:
        props.pop()

    return JobSpec(kind=kind, id=job_id, props=props)

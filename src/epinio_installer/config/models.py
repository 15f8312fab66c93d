# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/epinio_installer/config/models.py

from __future__ import annotations

from enum import Enum
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ComponentType(str, Enum):
    HELM = "helm"
    YAML = "yaml"
    NAMESPACE = "namespace"


class ActionType(str, Enum):
    POD = "pod"
    LOADBALANCER = "loadbalancer"
    CRD = "crd"
    JOB = "job"


class ValueType(str, Enum):
    LABEL = "label"
    ANNOTATION = "annotation"


class ComponentAction(BaseModel):
    """A readiness check, e.g. a pod selector or a CRD name."""

    type: ActionType
    selector: str = ""
    namespace: str = ""


class Source(BaseModel):
    """
    Where a component comes from.

    Helm charts can be referenced by:
      - ``path`` to a packaged chart or an unpacked chart directory
      - absolute ``url`` to a packaged chart
      - ``chart`` name plus repo ``url`` (and optionally ``version``)

    YAML components only use ``path``.
    """

    name: str = ""       # helm release name
    chart: str = ""
    path: str = ""
    url: str = ""
    version: str = ""

    def is_path(self) -> bool:
        return bool(self.path) and not self.chart and not self.url

    def is_url(self) -> bool:
        return not self.path and not self.chart and bool(self.url)

    def is_helm_ref(self) -> bool:
        return not self.path and bool(self.chart) and bool(self.url)


class Value(BaseModel):
    name: str
    value: str = ""
    type: Optional[ValueType] = None

    @field_validator("value", mode="before")
    @classmethod
    def _stringify(cls, v):
        # YAML turns `true` / `3` into bool / int; helm and templates want text
        if v is None:
            return ""
        if isinstance(v, bool):
            return "true" if v else "false"
        return str(v)


class Component(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    namespace: str = ""
    type: ComponentType
    source: Source = Field(default_factory=Source)
    values: List[Value] = Field(default_factory=list)
    needs: List[str] = Field(default_factory=list)   # ids this component depends on
    pre_deploy: List[ComponentAction] = Field(default_factory=list, alias="preDeploy")
    wait_complete: List[ComponentAction] = Field(default_factory=list, alias="waitComplete")

    @field_validator("needs", mode="before")
    @classmethod
    def _needs_as_list(cls, v):
        # older manifests declare a single dependency as a plain string
        if v is None or v == "":
            return []
        if isinstance(v, str):
            return [v]
        return [n for n in v if n]

    def values_map(self) -> Dict[str, str]:
        return {v.name: v.value for v in self.values}

    def labels(self) -> Dict[str, str]:
        return {v.name: v.value for v in self.values if v.type == ValueType.LABEL}

    def annotations(self) -> Dict[str, str]:
        return {v.name: v.value for v in self.values if v.type == ValueType.ANNOTATION}

    def __str__(self) -> str:
        return self.id


class Manifest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    components: List[Component] = Field(default_factory=list, alias="Components")

    @model_validator(mode="before")
    @classmethod
    def _accept_lowercase_key(cls, data):
        if isinstance(data, dict) and "components" in data and "Components" not in data:
            data = dict(data)
            data["Components"] = data.pop("components")
        return data

    @model_validator(mode="after")
    def _unique_ids(self) -> "Manifest":
        seen = set()
        for c in self.components:
            if c.id in seen:
                raise ValueError(f"duplicate component id '{c.id}'")
            seen.add(c.id)
        return self

    # Helper methods
    def ids(self) -> List[str]:
        return [c.id for c in self.components]

    def by_id(self) -> Dict[str, Component]:
        return {c.id: c for c in self.components}

    def without(self, component_id: str) -> "Manifest":
        """
        Returns a copy with the component removed, both from the list and
        from the ``needs`` of every remaining component.
        """
        return Manifest(components=list(remove_component(self.components, component_id)))

    def __str__(self) -> str:
        return ", ".join(self.ids())


def remove_component(components: Iterable[Component], component_id: str) -> Iterable[Component]:
    for c in components:
        if c.id == component_id:
            continue
        if component_id in c.needs:
            c = c.model_copy(update={"needs": [n for n in c.needs if n != component_id]})
        yield c

# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/epinio_installer/kube/namespaces.py

from __future__ import annotations

import logging

from kubernetes.client.rest import ApiException

from epinio_installer.config.models import Component
from epinio_installer.k8s.client import ClusterClient

log = logging.getLogger("epinio_installer")

CONFLICT = 409
NOT_FOUND = 404


class NamespaceApplier:
    """
    namespace-type components. The namespace name is the component's
    `namespace`, falling back to its id; label and annotation values become
    metadata.
    """

    def __init__(self, cluster: ClusterClient):
        self.cluster = cluster

    @staticmethod
    def namespace_name(component: Component) -> str:
        return component.namespace or component.id

    def apply(self, component: Component) -> None:
        """Create the namespace, or merge labels/annotations into the existing one."""
        name = self.namespace_name(component)
        labels = component.labels()
        annotations = component.annotations()

        try:
            self.cluster.create_namespace(name, labels, annotations)
            log.info("[namespace] created %s", name)
            return
        except ApiException as e:
            if e.status != CONFLICT:
                raise

        ns = self.cluster.get_namespace(name)
        ns.metadata.labels = {**(ns.metadata.labels or {}), **labels}
        ns.metadata.annotations = {**(ns.metadata.annotations or {}), **annotations}
        self.cluster.update_namespace(ns)
        log.info("[namespace] updated existing %s", name)

    def delete(self, component: Component) -> None:
        name = self.namespace_name(component)
        try:
            self.cluster.delete_namespace(name)
        except ApiException as e:
            if e.status == NOT_FOUND:
                log.info("[namespace] %s already gone", name)
                return
            raise
        log.info("[namespace] deleted %s", name)

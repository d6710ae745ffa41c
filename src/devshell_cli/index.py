# DevShell™ — Declarative Reproducible Development Environments
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Layered package index.

The index answers one question: where is package X installed? Building or
fetching packages belongs to the external package manager; this module
only maps names to prefixes.

Layers are consulted outer-to-inner. For a descriptor the order is:

    last overlay → ... → first overlay → channel

so an overlay can shadow a channel package, and a later overlay can shadow
an earlier one. A PackageRef pinned to an input (``rust-overlay#foo``)
only consults that input's layer.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from .errors import UnresolvedReferenceError
from .interfaces import IndexLayer
from .models import EnvironmentDescriptor, PackageRef

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MappingLayer:
    """Explicit name -> prefix table.

    Keys may be ``name`` or ``name@version``; a versioned ref prefers the
    versioned key and falls back to the bare name.
    """

    name: str
    providers: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "providers", MappingProxyType(dict(self.providers))
        )

    def get(self, ref: PackageRef) -> str | None:
        if ref.version:
            versioned = self.providers.get(f"{ref.name}@{ref.version}")
            if versioned is not None:
                return versioned
        return self.providers.get(ref.name)


@dataclass(frozen=True)
class StoreLayer:
    """Derives ``<store_root>/<input>/<name>[-<version>]`` without I/O.

    A store layer cannot know what it does not provide, so only the
    channel layer (``catch_all``) answers unpinned refs; the others answer
    refs pinned to them.
    """

    name: str
    store_root: str
    catch_all: bool = True

    def get(self, ref: PackageRef) -> str | None:
        if not self.catch_all and ref.input != self.name:
            return None
        leaf = ref.name
        if ref.version:
            leaf = f"{leaf}-{ref.version}"
        root = self.store_root.rstrip("/")
        return f"{root}/{self.name}/{leaf}"


class LayeredIndex:
    """Immutable, ordered stack of layers (outermost first)."""

    def __init__(self, layers: tuple[IndexLayer, ...] | list[IndexLayer]):
        self._layers: tuple[IndexLayer, ...] = tuple(layers)

    @property
    def layers(self) -> tuple[IndexLayer, ...]:
        return self._layers

    @property
    def layer_names(self) -> tuple[str, ...]:
        return tuple(layer.name for layer in self._layers)

    def with_layer(self, layer: IndexLayer) -> LayeredIndex:
        """Return a new index with ``layer`` as the outermost layer."""
        return LayeredIndex((layer,) + self._layers)

    def lookup(self, ref: PackageRef) -> str:
        for layer in self._layers:
            if ref.input is not None and layer.name != ref.input:
                continue
            prefix = layer.get(ref)
            if prefix is not None:
                logger.debug("Index: %s -> %s (layer %s)", ref, prefix, layer.name)
                return prefix

        where = (
            f"layer '{ref.input}'" if ref.input is not None
            else f"layers {list(self.layer_names)}"
        )
        raise UnresolvedReferenceError(
            f"package '{ref}' not found in {where}"
        )


def build_index(
    descriptor: EnvironmentDescriptor,
    table: Mapping[str, Mapping[str, str]] | None = None,
    store_root: str = "/nix/store",
) -> LayeredIndex:
    """Assemble the layer stack for a descriptor.

    With a ``table`` (loaded from an index file) each input gets a
    MappingLayer built from its entry; inputs missing from the table get an
    empty layer. Without a table every input gets a StoreLayer, and only
    the channel's layer answers unpinned refs.

    Inputs that are neither the channel nor an overlay are still added
    (innermost) so that pinned refs to them resolve.
    """
    ordered: list[str] = list(reversed(descriptor.overlays))
    if descriptor.channel is not None:
        ordered.append(descriptor.channel)
    for name in descriptor.input_names:
        if name not in ordered:
            ordered.append(name)

    layers: list[IndexLayer] = []
    for name in ordered:
        if table is not None:
            layers.append(MappingLayer(name, table.get(name, {})))
        else:
            layers.append(
                StoreLayer(name, store_root, catch_all=name == descriptor.channel)
            )

    logger.debug("Index layers (outer -> inner): %s", ordered)
    return LayeredIndex(layers)

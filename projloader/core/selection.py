from __future__ import annotations
import logging
from collections.abc import Iterable, Mapping
from typing import Any, Dict, Optional, Set

from graphql.language import FieldNode, FragmentSpreadNode, InlineFragmentNode
from strawberry.types.nodes import FragmentSpread, InlineFragment

from ..errors import MalformedSelection
from .fields import FieldSet
from .naming import NameConverter, fields_map_for, resolve_field_name
from .utils import key_column_for

logger = logging.getLogger(__name__)

_INLINE_FRAGMENTS = (InlineFragment, InlineFragmentNode)


class ProjectionExtractor:
    """Turn a field-selection tree into the flat projection of one entity shape.

    Only fields selected directly under the current entity count. A relation
    contributes the column holding the related id; its own sub-selection is
    left to the related entity's loader. Fragments are flattened into the
    current level. The shape's key field is always part of the result.
    """

    def __init__(self, *, auto_camel_case: bool = False, name_converter: NameConverter = None):
        self._auto_camel = bool(auto_camel_case)
        self._name_converter = name_converter

    def _map_name(self, name: str, fields_map: Dict[str, Any]) -> Optional[str]:
        return resolve_field_name(name, fields_map, auto_camel=self._auto_camel, name_converter=self._name_converter)

    def _children(self, node: Any) -> list[Any]:
        selset = getattr(node, 'selection_set', None)
        if selset is not None:
            return list(getattr(selset, 'selections', None) or [])
        sels = getattr(node, 'selections', None)
        if sels is None:
            return []
        if isinstance(sels, (str, bytes, Mapping)) or not isinstance(sels, Iterable):
            raise MalformedSelection(f"Selections of {node!r} are not a sequence", node=node)
        return list(sels)

    def _name_of(self, node: Any) -> Any:
        n = getattr(node, 'name', None)
        if hasattr(n, 'value'):
            return getattr(n, 'value', None)
        return n

    def _root_children(self, selection: Any) -> list[Any]:
        if isinstance(selection, (list, tuple)):
            return list(selection)
        if getattr(selection, 'selection_set', None) is None and getattr(selection, 'selections', None) is None:
            raise MalformedSelection(f"Cannot read selections from {type(selection).__name__}", node=selection)
        return self._children(selection)

    def _take(self, name: Any, node: Any, fields_map: Dict[str, Any], out: Set[str]) -> None:
        if not isinstance(name, str) or not name:
            raise MalformedSelection(f"Field node without a name: {node!r}", node=node)
        if name.startswith('__'):
            return
        attr = self._map_name(name, fields_map)
        if attr is None:
            logger.debug("ignoring field %r: not declared on the shape", name)
            return
        column = fields_map[attr].column
        if column:
            out.add(column)

    def _walk(self, children: list[Any], fields_map: Dict[str, Any], out: Set[str], fragments: Mapping[str, Any], visiting: Set[str]) -> int:
        seen = 0
        for child in children:
            if child is None:
                raise MalformedSelection("Selection contains a null node")
            if isinstance(child, _INLINE_FRAGMENTS):
                seen += self._walk(self._children(child), fields_map, out, fragments, visiting)
                continue
            if isinstance(child, FragmentSpread):
                # Strawberry already resolved the fragment's selections.
                seen += self._walk(self._children(child), fields_map, out, fragments, visiting)
                continue
            if isinstance(child, FragmentSpreadNode):
                frag_name = self._name_of(child)
                frag_def = fragments.get(frag_name) if frag_name else None
                if frag_def is None:
                    raise MalformedSelection(f"Unknown fragment {frag_name!r}", node=child)
                if frag_name in visiting:
                    raise MalformedSelection(f"Fragment {frag_name!r} spreads itself", node=child)
                visiting.add(frag_name)
                try:
                    seen += self._walk(self._children(frag_def), fields_map, out, fragments, visiting)
                finally:
                    visiting.discard(frag_name)
                continue
            if isinstance(child, FieldNode):
                self._take(child.name.value if child.name else None, child, fields_map, out)
            else:
                self._take(self._name_of(child), child, fields_map, out)
            seen += 1
        return seen

    def _walk_mapping(self, tree: Mapping[Any, Any], fields_map: Dict[str, Any], out: Set[str]) -> int:
        seen = 0
        for name, sub in tree.items():
            self._check_subtree(name, sub, tree)
            self._take(name, tree, fields_map, out)
            seen += 1
        return seen

    def _check_subtree(self, name: Any, sub: Any, parent: Mapping[Any, Any]) -> None:
        if not isinstance(name, str) or not name:
            raise MalformedSelection(f"Field node without a name: {parent!r}", node=parent)
        if sub is None or sub is True:
            return
        if not isinstance(sub, Mapping):
            raise MalformedSelection(f"Selection for {name!r} must be None, True or a mapping, got {type(sub).__name__}", node=sub)
        for child, grandchild in sub.items():
            self._check_subtree(child, grandchild, sub)

    def extract(self, selection: Any, shape: Any, fragments: Optional[Mapping[str, Any]] = None) -> FieldSet:
        """Return the backend fields of ``shape`` selected by ``selection``.

        Args:
            selection: A root field node (Strawberry ``SelectedField`` or
                graphql-core ``FieldNode``), a list of its child nodes, or a
                mapping ``{field: None | True | {...}}``.
            shape: The entity shape the selection applies to.
            fragments: Fragment definitions by name, needed only for raw
                graphql-core ``FragmentSpreadNode`` children.

        Raises:
            MalformedSelection: the tree cannot be walked or selects nothing.
        """
        if selection is None:
            raise MalformedSelection("Selection tree is None")
        fields_map = fields_map_for(shape)
        if not fields_map:
            raise TypeError(f"{shape!r} is not an entity shape")
        out: Set[str] = set()
        if isinstance(selection, Mapping):
            seen = self._walk_mapping(selection, fields_map, out)
        else:
            seen = self._walk(self._root_children(selection), fields_map, out, fragments or {}, set())
        if not seen:
            raise MalformedSelection(f"Selection for {getattr(shape, '__name__', shape)} selects no fields", node=selection)
        out.add(key_column_for(shape))
        return frozenset(out)


_default_extractor = ProjectionExtractor()


def extract(selection: Any, shape: Any, fragments: Optional[Mapping[str, Any]] = None) -> FieldSet:
    """Shortcut for :meth:`ProjectionExtractor.extract` without name conversion."""
    return _default_extractor.extract(selection, shape, fragments)

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable, Iterable, Union

from mergesub.services.line_codec import clean_node_string, split_lines, try_decode_base64
from mergesub.services.store import Store, StoreError


@dataclass
class ChangeResult:
    changed: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)

    @property
    def all_changed(self) -> bool:
        return bool(self.changed) and not self.unchanged


def split_input(value: Union[str, Iterable[str], None]) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return value.split("\n")
    return [v for v in value if isinstance(v, str)]


def _strip(s: str) -> str:
    return s.strip()


async def _save(store: Store, subscriptions: Iterable[str], nodes: str) -> None:
    if not await store.put(subscriptions, nodes):
        raise StoreError("store write failed")


async def add_subscriptions(store: Store, items: Iterable[str]) -> ChangeResult:
    data = await store.get()
    subs = list(data.subscriptions)
    result = ChangeResult()
    for item in (i.strip() for i in items):
        if not item:
            continue
        if any(existing.strip() == item for existing in subs):
            result.unchanged.append(item)
        else:
            subs.append(item)
            result.changed.append(item)
    if result.changed:
        await _save(store, subs, data.nodes)
    return result


async def delete_subscriptions(
    store: Store,
    items: Iterable[str],
    normalize: Callable[[str], str] = _strip,
) -> ChangeResult:
    data = await store.get()
    subs = list(data.subscriptions)
    result = ChangeResult()
    for item in (normalize(i) for i in items):
        if not item:
            continue
        idx = next((n for n, s in enumerate(subs) if normalize(s) == item), None)
        if idx is None:
            result.unchanged.append(item)
        else:
            del subs[idx]
            result.changed.append(item)
    if result.changed:
        await _save(store, subs, data.nodes)
    return result


async def add_nodes(store: Store, items: Iterable[str]) -> ChangeResult:
    """Nodes are stored decoded, so base64-wrapped links are unwrapped first."""
    data = await store.get()
    nodes = split_lines(data.nodes)
    result = ChangeResult()
    for item in (i.strip() for i in items):
        if not item:
            continue
        node = try_decode_base64(item)
        if node in nodes:
            result.unchanged.append(node)
        else:
            nodes.append(node)
            result.changed.append(node)
    if result.changed:
        await _save(store, data.subscriptions, "\n".join(nodes))
    return result


async def delete_nodes(store: Store, items: Iterable[str]) -> ChangeResult:
    data = await store.get()
    # the remaining list is saved in cleaned form
    nodes = [n for n in (clean_node_string(x) for x in data.nodes.split("\n")) if n]
    result = ChangeResult()
    for item in (clean_node_string(i) for i in items):
        if not item:
            continue
        if item in nodes:
            nodes.remove(item)
            result.changed.append(item)
        else:
            result.unchanged.append(item)
    if result.changed:
        await _save(store, data.subscriptions, "\n".join(nodes))
    return result

"""Recursive remote tree traversal with shortcut resolution."""

from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Optional

from drivemirror.errors import AuthError, DriveMirrorError, SyncTimeoutError
from drivemirror.models import DriveItem
from drivemirror.util.mime import is_folder

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Snapshot:
    """
    Flattened view of everything reachable from a root folder.

    Shortcut targets that are folders appear as folder items whose parent is
    the folder holding the shortcut; their ids are listed in
    `shortcut_target_ids`. The root itself is not part of `items`.
    """

    root_id: str
    items: list[DriveItem] = field(default_factory=list)
    shortcut_target_ids: set[str] = field(default_factory=set)

    @property
    def folders(self) -> list[DriveItem]:
        return [i for i in self.items if i.is_folder]

    @property
    def non_folders(self) -> list[DriveItem]:
        return [i for i in self.items if not i.is_folder]


class TreeWalker:
    """
    Breadth-first walk over a remote folder tree.

    Every remote id is visited at most once, which also terminates shortcut
    cycles. A folder reachable both directly and through a shortcut keeps its
    real parent. A shortcut whose target cannot be fetched is logged and skipped.
    """

    def __init__(
        self,
        controller: Any,
        *,
        deadline_sec: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._controller = controller
        self._deadline_sec = deadline_sec
        self._clock = clock

    def walk(self, root_id: str) -> Snapshot:
        deadline = self._clock() + self._deadline_sec if self._deadline_sec else None
        snapshot = Snapshot(root_id=root_id)
        seen_items: set[str] = {root_id}
        visited_folders: set[str] = {root_id}
        queue: deque[str] = deque([root_id])
        # (holding folder, target) pairs, placed only once the real tree is exhausted.
        pending_targets: deque[tuple[str, DriveItem]] = deque()

        while queue or pending_targets:
            if not queue:
                holder_id, target = pending_targets.popleft()
                if target.item_id in visited_folders:
                    continue
                visited_folders.add(target.item_id)
                snapshot.shortcut_target_ids.add(target.item_id)
                if target.item_id not in seen_items:
                    seen_items.add(target.item_id)
                    snapshot.items.append(replace(target, parents=[holder_id]))
                queue.append(target.item_id)
                continue

            folder_id = queue.popleft()
            for child in self._list_children(folder_id, deadline):
                if child.item_id in seen_items:
                    continue
                seen_items.add(child.item_id)
                snapshot.items.append(child)

                if child.is_folder:
                    if child.item_id not in visited_folders:
                        visited_folders.add(child.item_id)
                        queue.append(child.item_id)
                    continue

                if not child.is_shortcut:
                    continue

                target = self._resolve_shortcut(child)
                if target is not None and target.item_id not in visited_folders:
                    pending_targets.append((folder_id, target))

        logger.info(
            "Traversed %s: %d items, %d folders, %d shortcut targets",
            root_id,
            len(snapshot.items),
            len(visited_folders) - 1,
            len(snapshot.shortcut_target_ids),
        )
        return snapshot

    def _list_children(self, folder_id: str, deadline: Optional[float]) -> list[DriveItem]:
        children: list[DriveItem] = []
        page_token: Optional[str] = None
        while True:
            self._check_deadline(deadline)
            page = self._controller.list_children_page(folder_id, page_token)
            children.extend(page.items)
            page_token = page.next_page_token
            if not page_token:
                return children

    def _resolve_shortcut(self, shortcut: DriveItem) -> Optional[DriveItem]:
        """Return the target when it is a folder, otherwise None."""
        target_id = shortcut.shortcut_target_id
        if not target_id:
            return None
        known_mime = shortcut.shortcut_target_mime_type
        if known_mime and not is_folder(known_mime):
            return None

        try:
            target = self._controller.get(target_id)
        except AuthError:
            raise
        except DriveMirrorError as exc:
            logger.warning(
                "Skipping shortcut %s (%s): target %s could not be fetched: %s",
                shortcut.item_id,
                shortcut.name,
                target_id,
                exc,
            )
            return None

        return target if target.is_folder else None

    def _check_deadline(self, deadline: Optional[float]) -> None:
        if deadline is not None and self._clock() > deadline:
            raise SyncTimeoutError(
                "Traversal exceeded its deadline",
                details={"deadline_sec": self._deadline_sec},
            )

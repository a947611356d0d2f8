from .full_sync import FullSync, folder_generations
from .locks import KeyedLock
from .quick_sync import QuickSync
from .records import ROOT_DESCRIPTION, ROOT_TITLE, VIEW_PATHS, icon_link_64
from .traversal import Snapshot, TreeWalker

__all__ = [
    "FullSync",
    "KeyedLock",
    "QuickSync",
    "ROOT_DESCRIPTION",
    "ROOT_TITLE",
    "Snapshot",
    "TreeWalker",
    "VIEW_PATHS",
    "folder_generations",
    "icon_link_64",
]

"""Name-to-id folder lookup scoped to a single tool invocation."""

from __future__ import annotations

import logging

from inbox_a2a.core.errors import ErrorKind, MailboxError
from inbox_a2a.mailbox.base import Folder, MailboxClient

logger = logging.getLogger(__name__)

ARCHIVE_ATTRIBUTES = {"archive", "\\archive", "\\all"}
ARCHIVE_NAMES = {"archive", "all mail", "[gmail]/all mail"}


class FolderCache:
    """Lazily built folder index for one mailbox.

    The index is loaded on first use and reloaded once when a lookup misses,
    so folders created elsewhere are still found. Create one per request; it is
    never shared between callers.
    """

    def __init__(self, mailbox: MailboxClient) -> None:
        self._mailbox = mailbox
        self._folders: list[Folder] | None = None

    async def _load(self) -> list[Folder]:
        self._folders = await self._mailbox.list_folders()
        logger.debug("Loaded %d folders", len(self._folders))
        return self._folders

    async def folders(self) -> list[Folder]:
        if self._folders is None:
            return await self._load()
        return self._folders

    def _match(self, name_or_id: str) -> Folder | None:
        wanted = name_or_id.strip().lower()
        for folder in self._folders or []:
            if folder.id == name_or_id or folder.name.lower() == wanted:
                return folder
        return None

    async def find(self, name_or_id: str) -> Folder | None:
        """Resolve a folder by id or case-insensitive name, refreshing once on miss."""
        await self.folders()
        folder = self._match(name_or_id)
        if folder is None:
            await self._load()
            folder = self._match(name_or_id)
        return folder

    async def resolve_id(self, name_or_id: str) -> str:
        """Like :meth:`find` but raises when the folder does not exist."""
        folder = await self.find(name_or_id)
        if folder is None:
            raise MailboxError(f"Folder not found: {name_or_id}", ErrorKind.NOT_FOUND, 404)
        return folder.id

    async def ensure(self, name: str) -> Folder:
        """Return the named folder, creating it when missing."""
        folder = await self.find(name)
        if folder is not None:
            return folder
        logger.info("Creating folder %r", name)
        folder = await self._mailbox.create_folder(name)
        if self._folders is not None:
            self._folders.append(folder)
        return folder

    async def archive_id(self) -> str:
        """Locate the archive folder by system attribute, then by name."""
        folders = await self.folders()
        for folder in folders:
            if any(a.lower() in ARCHIVE_ATTRIBUTES for a in folder.attributes):
                return folder.id
        for folder in folders:
            if folder.name.lower() in ARCHIVE_NAMES:
                return folder.id
        raise MailboxError("Archive folder not found", ErrorKind.NOT_FOUND, 404)

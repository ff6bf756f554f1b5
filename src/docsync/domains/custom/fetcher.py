"""CustomFetcher: write files returned by a user supplied function"""

import posixpath

from loguru import logger

from docsync.core.fetcher import BaseFetcher, FetchOutcome
from docsync.core.protocols import Workspace
from docsync.errors import SourceSyncError
from docsync.models import CustomSource, SOURCE_TYPE_CUSTOM


class CustomFetcher(BaseFetcher):
    """Materialize a CustomSource into `<docs_root>/<output_folder>`"""

    source_types = (SOURCE_TYPE_CUSTOM,)

    def _fetch(self, source: CustomSource, workspace: Workspace, docs_root: str) -> FetchOutcome:
        files = source.fetch_fn() or []
        target = self.output_dir(docs_root, source.output_folder)
        workspace.remove(target)
        workspace.mkdir(target)

        for item in files:
            relative = posixpath.normpath(item.path.lstrip('/'))
            if relative.startswith('..'):
                raise SourceSyncError(f"Invalid file path from custom source: {item.path}")
            workspace.write_file(posixpath.join(target, relative), item.content)

        workspace.filter_tree(target, self.tree_filter)
        count = workspace.count_files(target, self.tree_filter)
        logger.debug(f"[{source.id}] custom source returned {len(files)} file(s), kept {count}")
        return FetchOutcome(file_count=count)

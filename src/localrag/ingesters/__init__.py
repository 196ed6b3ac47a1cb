"""Source tree loaders (ingesters) for LocalRag."""

from localrag.ingesters.folder_ingester import FolderIngester, doc_type_for
from localrag.ingesters.result import LoadResult

__all__ = ["FolderIngester", "LoadResult", "doc_type_for"]
